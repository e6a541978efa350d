"""
Hawker Pulse - Alerting

Severity-routed notifications for ingestion and scoring runs (log, Slack)
with rate limiting.
"""

from hawker_pulse.alerting.alert_manager import (
    Alert,
    AlertChannel,
    AlertManager,
    AlertSeverity,
    send_alert,
)

__all__ = [
    "Alert",
    "AlertChannel",
    "AlertManager",
    "AlertSeverity",
    "send_alert",
]
