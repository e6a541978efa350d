"""
Hawker Pulse - Scoring Script

Runs one opportunity scoring pass and prints the top-ranked zones.

Usage:
    python scripts/compute_scores.py
    python scripts/compute_scores.py --config wide_bandwidth --notes "Bandwidth sweep" --top 20
"""

from __future__ import annotations

import argparse
import sys

from hawker_pulse.scoring.engine import OpportunityScoreBuilder, get_latest_scores
from hawker_pulse.shared.config import get_config
from hawker_pulse.shared.logging_config import configure_logging
from hawker_pulse.storage.repository import Repository


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute hawker centre opportunity scores")
    parser.add_argument("--config", dest="config_name", help="Kernel config name")
    parser.add_argument("--notes", help="Notes stored on the score snapshot")
    parser.add_argument("--top", type=int, default=10, help="Number of top zones to print")
    parser.add_argument("--env", dest="environment", help="Config environment (dev, prod)")
    parser.add_argument("--log-level", help="Override the configured log level")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = get_config(args.environment)
    configure_logging(config, level=args.log_level)

    repository = Repository.from_config(config)
    result = OpportunityScoreBuilder(repository, config).run(args.config_name, args.notes)

    if not result.success:
        print(f"Scoring failed: {result.error_message}")
        return 1

    names = repository.get_zone_names()

    print("\n" + "=" * 60)
    print(f"SCORE SNAPSHOT #{result.snapshot_id} ({result.kernel_config})")
    print("=" * 60)
    print(f"Zones scored: {result.zones_scored}, excluded: {result.zones_excluded}")
    for component, info in result.normalization.items():
        flag = " (zero MAD)" if info.get("zero_mad") else ""
        print(f"  {component}: median={info['median']:.4f} mad={info['mad']:.4f}{flag}")

    print(f"\nTop {args.top} zones:")
    for score in get_latest_scores(repository)[: args.top]:
        zone_name = names.get(score["zone_id"], score["zone_id"])
        print(
            f"  {score['rank']:>4}. {zone_name:<32} H={score['score']:>12.2f} "
            f"p={score['percentile']:.1f}"
        )
    print("=" * 60 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
