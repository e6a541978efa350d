"""
Tests for Alert Manager

Tests severity routing, Slack delivery, rate limiting and the ingestion and
scoring alert helpers.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from hawker_pulse.alerting.alert_manager import (
    Alert,
    AlertChannel,
    AlertManager,
    AlertSeverity,
    send_alert,
)
from hawker_pulse.datasets.base.pipeline import PipelineResult


@pytest.fixture
def mock_post():
    """Mock requests.post for Slack webhook testing."""
    with patch("hawker_pulse.alerting.alert_manager.requests.post") as post:
        post.return_value = MagicMock(status_code=200, text="ok")
        yield post


@pytest.fixture
def manager(test_config):
    """AlertManager with dev config and log-only routing."""
    return AlertManager(test_config)


# ---------------------------------------------------------------------------
# Alert dataclass
# ---------------------------------------------------------------------------


def test_alert_initialization():
    """Test Alert dataclass initialization."""
    alert = Alert(
        title="Low match rate",
        message="41% matched",
        severity=AlertSeverity.WARNING,
        dataset="population",
    )

    assert alert.dataset == "population"
    assert alert.snapshot_id is None
    assert alert.metadata == {}
    assert isinstance(alert.timestamp, datetime)
    assert alert.key == "warning:Low match rate:population"


def test_alert_to_dict():
    """Test Alert to_dict conversion."""
    alert = Alert(title="Test", message="Message", severity=AlertSeverity.INFO, snapshot_id=7)

    alert_dict = alert.to_dict()

    assert alert_dict["severity"] == "info"
    assert alert_dict["snapshot_id"] == 7
    assert "timestamp" in alert_dict


def test_enum_values():
    """Test severity and channel enum values."""
    assert [s.value for s in AlertSeverity] == ["info", "warning", "critical"]
    assert [c.value for c in AlertChannel] == ["log", "slack"]


# ---------------------------------------------------------------------------
# Sending alerts
# ---------------------------------------------------------------------------


def test_send_alert_to_log(manager):
    """Test sending alert to log channel."""
    assert manager.send_alert(title="Test Alert", message="Test message", severity="info")


def test_send_alert_disabled(test_config):
    """Test a disabled manager sends nothing."""
    test_config.alerting.enabled = False
    manager = AlertManager(test_config)

    assert manager.send_alert(title="Ignored", message="x") is False


def test_send_alert_all_severities(manager):
    """Test alert sending for all severity levels."""
    for sev in ("info", "warning", "critical"):
        assert manager.send_alert(title=f"{sev} Alert", message="Test", severity=sev)


def test_dev_routing_is_log_only(manager):
    """Test dev config keeps every severity on the log channel."""
    for severity in AlertSeverity:
        assert manager._get_channels_for_severity(severity) == ["log"]


def test_send_alert_to_slack(test_config, mock_post):
    """Test sending alert to Slack."""
    test_config.slack_webhook_url = "https://hooks.slack.com/test"
    manager = AlertManager(test_config)

    success = manager.send_alert(
        title="Ingestion failed: bus_stops",
        message="Source unavailable",
        severity="critical",
        dataset="bus_stops",
        snapshot_id=3,
        channels=["slack"],
    )

    assert success
    mock_post.assert_called_once()
    args, kwargs = mock_post.call_args
    assert args[0] == "https://hooks.slack.com/test"
    attachment = kwargs["json"]["attachments"][0]
    assert attachment["title"] == "Ingestion failed: bus_stops"
    assert attachment["color"] == "#ff0000"
    assert {"title": "Snapshot", "value": "3", "short": True} in attachment["fields"]


def test_send_alert_slack_error(test_config, mock_post):
    """Test a non-200 Slack response reports failure."""
    test_config.slack_webhook_url = "https://hooks.slack.com/test"
    mock_post.return_value = MagicMock(status_code=500, text="boom")
    manager = AlertManager(test_config)

    assert manager.send_alert(title="Broken", message="x", severity="warning", channels=["slack"]) is False


def test_send_alert_slack_no_webhook(manager, mock_post):
    """Test Slack send skips when no webhook URL is configured."""
    manager.config.slack_webhook_url = None

    assert manager.send_alert(title="No Webhook", message="x", severity="warning", channels=["slack"])
    mock_post.assert_not_called()


def test_convenience_send_alert(test_config):
    """Test the module-level helper."""
    assert send_alert("Hello", "World", severity="info", dataset="subzones", config=test_config)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


def test_rate_limiting(test_config):
    """Test the hourly limit stops repeats of the same alert."""
    test_config.alerting.rate_limit.cooldown_minutes = 0
    test_config.alerting.rate_limit.max_alerts_per_hour = 2
    manager = AlertManager(test_config)

    results = [
        manager.send_alert(title="Same Alert", message="Same", dataset="population") for _ in range(3)
    ]

    assert results == [True, True, False]


def test_cooldown(manager):
    """Test the cooldown suppresses an immediate repeat."""
    assert manager.send_alert(title="Cooldown", message="x", dataset="mrt_exits")
    assert manager.send_alert(title="Cooldown", message="x", dataset="mrt_exits") is False
    assert manager.send_alert(title="Cooldown", message="x", dataset="bus_stops")


def test_alert_history_count_increments(manager):
    """Test alert history count increments on repeated recording."""
    alert = Alert(title="Repeat", message="Msg", severity=AlertSeverity.INFO, dataset="d")
    manager._record_alert(alert)
    manager._record_alert(alert)

    assert manager._alert_history[alert.key].count_in_window == 2


# ---------------------------------------------------------------------------
# Ingestion and scoring helpers
# ---------------------------------------------------------------------------


def test_pipeline_alert_success_sends_nothing(manager):
    """Test successful runs do not alert."""
    result = PipelineResult(dataset="subzones", status="success", snapshot_id=1)
    assert manager.send_pipeline_alert(result) is False


def test_pipeline_alert_partial(manager):
    """Test partial runs send a warning."""
    result = PipelineResult(
        dataset="population",
        status="partial",
        snapshot_id=2,
        counts={"processed": 10, "invalid": 1, "errors": 0, "match_rate": 0.4},
    )

    with patch.object(manager, "send_alert", return_value=True) as send:
        assert manager.send_pipeline_alert(result)

    kwargs = send.call_args.kwargs
    assert kwargs["severity"] == "warning"
    assert kwargs["title"] == "Ingestion partial: population"
    assert "match_rate: 0.4" in kwargs["message"]
    assert kwargs["snapshot_id"] == 2


def test_pipeline_alert_failed(manager):
    """Test failed runs send a critical alert with the error."""
    result = PipelineResult(
        dataset="bus_stops", status="failed", snapshot_id=3, error_message="No source available"
    )

    with patch.object(manager, "send_alert", return_value=True) as send:
        manager.send_pipeline_alert(result)

    kwargs = send.call_args.kwargs
    assert kwargs["severity"] == "critical"
    assert kwargs["title"] == "Ingestion failed: bus_stops"
    assert "Error: No source available" in kwargs["message"]


def test_scoring_alert(manager):
    """Test scoring failures send a critical alert."""
    with patch.object(manager, "send_alert", return_value=True) as send:
        assert manager.send_scoring_alert("default", "Zero MAD for supply")

    kwargs = send.call_args.kwargs
    assert kwargs["title"] == "Scoring failed: default"
    assert kwargs["severity"] == "critical"
    assert kwargs["metadata"] == {"kernel_config": "default"}
