"""
Unit tests for robust normalization and percentile ranking.
"""

import numpy as np
import pytest

from hawker_pulse.scoring.normalize import MAD_SCALE, ZeroMadPolicy, percentile_ranks, robust_zscore
from hawker_pulse.shared.errors import ScoringError


class TestRobustZscore:
    """Test cases for robust_zscore."""

    def test_outlier(self):
        """Test median and MAD resist the outlier."""
        z, info = robust_zscore([1, 2, 3, 4, 100])

        assert info.median == 3.0
        assert info.mad == 1.0
        assert not info.zero_mad
        assert z[2] == 0.0
        assert z[4] == pytest.approx(97 / MAD_SCALE)

    def test_even_count_uses_true_median(self):
        """Test an even number of values averages the middle pair."""
        _, info = robust_zscore([1, 2, 3, 10])
        assert info.median == 2.5

    def test_zero_mad_fill(self):
        """Test identical values give zero z-scores under zero_fill."""
        z, info = robust_zscore([5, 5, 5, 9], policy=ZeroMadPolicy.ZERO_FILL)
        assert z.tolist() == [0.0, 0.0, 0.0, 0.0]
        assert info.zero_mad

    def test_zero_mad_abort(self):
        """Test zero MAD raises under abort."""
        with pytest.raises(ScoringError, match="supply"):
            robust_zscore([0.0, 0.0, 0.0], policy="abort", component="supply")

    def test_empty(self):
        """Test no zones raises."""
        with pytest.raises(ScoringError):
            robust_zscore([])

    @pytest.mark.parametrize("bad", [np.nan, np.inf])
    def test_non_finite(self, bad):
        """Test NaN and inf raise."""
        with pytest.raises(ScoringError):
            robust_zscore([1.0, bad, 3.0])

    def test_custom_scale(self):
        """Test the MAD scale factor is configurable."""
        z, _ = robust_zscore([1, 2, 3, 4, 100], mad_scale=1.0)
        assert z[4] == 97.0


class TestPercentileRanks:
    """Test cases for percentile_ranks."""

    def test_ranks(self):
        """Test the best score gets rank 1 and percentile 100."""
        ranks, percentiles = percentile_ranks(["a", "b", "c", "d"], [0.5, 2.0, -1.0, 1.0])

        assert ranks == [3, 1, 4, 2]
        assert percentiles == [50.0, 100.0, 25.0, 75.0]

    def test_ties_broken_by_zone_id(self):
        """Test equal scores are ordered by zone ID."""
        ranks, _ = percentile_ranks(["b", "a", "c"], np.array([1.0, 1.0, 0.0]))
        assert ranks == [2, 1, 3]

    def test_single_zone(self):
        """Test a single zone is rank 1 at percentile 100."""
        assert percentile_ranks(["a"], [0.0]) == ([1], [100.0])
