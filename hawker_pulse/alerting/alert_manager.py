"""
Hawker Pulse - Alert Manager

Severity-routed alerts for ingestion and scoring runs:
- Log channel for every severity
- Slack webhook for warnings and critical failures
- Per-alert cooldown and hourly rate limit

Pipelines send a warning when a run ends partial and a critical alert when it
fails; successful runs send nothing.

Usage:
    alert_manager = AlertManager(config)

    alert_manager.send_alert(
        title="Low match rate",
        message="Only 41% of population rows matched a subzone",
        severity="warning",
        dataset="population",
        metadata={"match_rate": 0.41},
    )

    alert_manager.send_pipeline_alert(pipeline_result)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

import requests

from hawker_pulse.shared.config import Settings, get_config

if TYPE_CHECKING:
    from hawker_pulse.datasets.base.pipeline import PipelineResult

logger = logging.getLogger(__name__)


class AlertSeverity(StrEnum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertChannel(StrEnum):
    """Alert delivery channels."""

    LOG = "log"
    SLACK = "slack"


@dataclass
class Alert:
    """Alert message."""

    title: str
    message: str
    severity: AlertSeverity
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    dataset: str | None = None
    snapshot_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.severity}:{self.title}:{self.dataset}"

    def to_dict(self) -> dict[str, Any]:
        """Convert alert to dictionary."""
        return {
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "dataset": self.dataset,
            "snapshot_id": self.snapshot_id,
            "metadata": self.metadata,
        }


@dataclass
class AlertHistory:
    """Track alert history for rate limiting."""

    alert_key: str
    last_sent: datetime
    count_in_window: int = 1


class AlertManager:
    """
    Alert routing by severity.

    Default routing comes from `alerting.routing` in config:
    - INFO: log
    - WARNING: log + slack
    - CRITICAL: log + slack
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize alert manager.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.enabled = self.config.alerting.enabled

        self._alert_history: dict[str, AlertHistory] = {}

        self.max_alerts_per_hour = self.config.alerting.rate_limit.max_alerts_per_hour
        self.cooldown_minutes = self.config.alerting.rate_limit.cooldown_minutes

    def send_alert(
        self,
        title: str,
        message: str,
        severity: Literal["info", "warning", "critical"] = "info",
        dataset: str | None = None,
        snapshot_id: int | None = None,
        metadata: dict[str, Any] | None = None,
        channels: list[str] | None = None,
    ) -> bool:
        """
        Send an alert through configured channels.

        Args:
            title: Alert title
            message: Alert message
            severity: Severity level (info, warning, critical)
            dataset: Associated dataset kind
            snapshot_id: Ingestion or score snapshot the alert refers to
            metadata: Additional metadata
            channels: Override default channel routing

        Returns:
            True if every channel delivered, False if disabled, rate limited or
            a channel failed
        """
        if not self.enabled:
            return False

        alert = Alert(
            title=title,
            message=message,
            severity=AlertSeverity(severity),
            dataset=dataset,
            snapshot_id=snapshot_id,
            metadata=metadata or {},
        )

        if not self._should_send_alert(alert):
            logger.warning(
                f"Alert rate limited: {title}",
                extra={"title": title, "severity": severity},
            )
            return False

        if channels is None:
            channels = self._get_channels_for_severity(alert.severity)

        success = True
        for channel in channels:
            try:
                self._send_to_channel(alert, AlertChannel(channel))
            except (requests.RequestException, ValueError) as e:
                logger.error(
                    f"Failed to send alert to {channel}: {e}",
                    extra={"channel": channel, "alert": alert.title},
                    exc_info=True,
                )
                success = False

        self._record_alert(alert)

        return success

    def send_pipeline_alert(self, result: PipelineResult) -> bool:
        """
        Alert on a partial or failed ingestion run.

        Returns:
            True if an alert was sent
        """
        if result.status == "partial":
            severity: Literal["warning", "critical"] = "warning"
            title = f"Ingestion partial: {result.dataset}"
        elif result.status == "failed":
            severity = "critical"
            title = f"Ingestion failed: {result.dataset}"
        else:
            return False

        counts = result.counts
        lines = [f"Snapshot {result.snapshot_id} from {result.source_url or 'no source'}"]
        if result.error_message:
            lines.append(f"Error: {result.error_message}")
        for key in ("processed", "invalid", "errors", "match_rate"):
            if key in counts:
                lines.append(f"  - {key}: {counts[key]}")

        return self.send_alert(
            title=title,
            message="\n".join(lines),
            severity=severity,
            dataset=result.dataset,
            snapshot_id=result.snapshot_id,
            metadata={"status": result.status, "counts": counts},
        )

    def send_scoring_alert(self, kernel_config: str, error: str) -> bool:
        """Alert on a scoring run that could not complete."""
        return self.send_alert(
            title=f"Scoring failed: {kernel_config}",
            message=error,
            severity="critical",
            metadata={"kernel_config": kernel_config},
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _should_send_alert(self, alert: Alert) -> bool:
        """Check if alert should be sent based on rate limiting."""
        history = self._alert_history.get(alert.key)
        if history is None:
            return True

        now = datetime.now(UTC)
        if now - history.last_sent < timedelta(minutes=self.cooldown_minutes):
            return False

        window_start = now - timedelta(hours=1)
        if history.last_sent > window_start and history.count_in_window >= self.max_alerts_per_hour:
            return False

        return True

    def _record_alert(self, alert: Alert) -> None:
        """Record alert in history for rate limiting."""
        now = datetime.now(UTC)
        history = self._alert_history.get(alert.key)

        if history is None:
            self._alert_history[alert.key] = AlertHistory(alert_key=alert.key, last_sent=now)
            return

        if history.last_sent < now - timedelta(hours=1):
            history.count_in_window = 1
        else:
            history.count_in_window += 1
        history.last_sent = now

    def _get_channels_for_severity(self, severity: AlertSeverity) -> list[str]:
        """Get default channels for a severity level."""
        routing = self.config.alerting.routing

        if severity == AlertSeverity.CRITICAL:
            return routing.critical
        elif severity == AlertSeverity.WARNING:
            return routing.warning
        else:
            return routing.info

    def _send_to_channel(self, alert: Alert, channel: AlertChannel) -> None:
        """Send alert to a specific channel."""
        if channel == AlertChannel.LOG:
            self._send_to_log(alert)
        elif channel == AlertChannel.SLACK:
            self._send_to_slack(alert)

    def _send_to_log(self, alert: Alert) -> None:
        log_level = {
            AlertSeverity.INFO: logging.INFO,
            AlertSeverity.WARNING: logging.WARNING,
            AlertSeverity.CRITICAL: logging.CRITICAL,
        }[alert.severity]

        logger.log(
            log_level,
            f"ALERT: {alert.title} - {alert.message}",
            extra={
                "alert_severity": alert.severity.value,
                "dataset": alert.dataset,
                "snapshot_id": alert.snapshot_id,
                "metadata": alert.metadata,
            },
        )

    def _send_to_slack(self, alert: Alert) -> None:
        """Send alert to Slack via webhook."""
        webhook_url = self.config.slack_webhook_url

        if not webhook_url:
            logger.warning("Slack webhook URL not configured, skipping Slack alert")
            return

        color = {
            AlertSeverity.INFO: "#36a64f",
            AlertSeverity.WARNING: "#ff9900",
            AlertSeverity.CRITICAL: "#ff0000",
        }[alert.severity]

        fields = [
            {"title": "Severity", "value": alert.severity.value.upper(), "short": True},
            {
                "title": "Timestamp",
                "value": alert.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC"),
                "short": True,
            },
        ]
        if alert.dataset:
            fields.append({"title": "Dataset", "value": alert.dataset, "short": True})
        if alert.snapshot_id is not None:
            fields.append({"title": "Snapshot", "value": str(alert.snapshot_id), "short": True})

        payload = {
            "attachments": [
                {
                    "color": color,
                    "title": alert.title,
                    "text": alert.message,
                    "fields": fields,
                    "footer": "Hawker Pulse Data Pipeline",
                    "ts": int(alert.timestamp.timestamp()),
                }
            ]
        }

        response = requests.post(
            webhook_url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=10,
        )
        if response.status_code != 200:
            raise requests.HTTPError(f"Slack API error: {response.status_code} - {response.text}")

        logger.info(f"Sent alert to Slack: {alert.title}")


# =============================================================================
# Convenience Functions
# =============================================================================


def send_alert(
    title: str,
    message: str,
    severity: Literal["info", "warning", "critical"] = "info",
    dataset: str | None = None,
    config: Settings | None = None,
) -> bool:
    """
    Convenience function to send an alert.

    Args:
        title: Alert title
        message: Alert message
        severity: Severity level
        dataset: Associated dataset
        config: Configuration object

    Returns:
        True if sent successfully
    """
    manager = AlertManager(config)
    return manager.send_alert(title, message, severity, dataset)
