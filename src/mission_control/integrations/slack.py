"""Slack incoming-webhook delivery and the overdue-task alert."""

import logging
from dataclasses import dataclass

from mission_control.config import WEBHOOK_TIMEOUT_SECONDS, get_config
from mission_control.core.constants import TASK_STUCK_THRESHOLD_HOURS
from mission_control.core.reports import build_overdue_slack_payload
from mission_control.db.models import Task

logger = logging.getLogger(__name__)


class SlackError(Exception):
    """Raised when a Slack delivery is required to succeed and does not."""


@dataclass
class SlackSendResult:
    ok: bool
    reason: str | None = None
    status: int | None = None
    body: str | None = None

    def raise_for_failure(self):
        if not self.ok:
            raise SlackError(f"Slack delivery failed: {self.reason} {self.status or ''} {self.body or ''}".strip())


@dataclass
class OverdueAlertResult:
    ok: bool
    sent: bool
    reason: str | None = None
    count: int = 0
    preview: dict | None = None
    status: int | None = None
    body: str | None = None

    @property
    def http_status(self) -> int:
        return 200 if self.ok else 502

    def to_dict(self) -> dict:
        data = {"ok": self.ok, "sent": self.sent}
        if self.reason:
            data["reason"] = self.reason
        if self.sent:
            data["count"] = self.count
        if self.preview is not None:
            data["preview"] = self.preview
        if not self.ok:
            data["status"] = self.status
            data["body"] = self.body
        return data


def get_webhook_client(url: str | None, timeout: int = WEBHOOK_TIMEOUT_SECONDS):
    """Get a Slack WebhookClient. Returns None if no URL provided."""
    if not url:
        return None
    from slack_sdk.webhook import WebhookClient
    return WebhookClient(url, timeout=timeout)


def send_webhook(
    payload: dict,
    url: str | None = None,
    timeout: int = WEBHOOK_TIMEOUT_SECONDS,
) -> SlackSendResult:
    """Post a payload to an incoming webhook. Never raises; failures come back as results."""
    client = get_webhook_client(url or get_config().slack_webhook_url, timeout=timeout)
    if not client:
        return SlackSendResult(ok=False, reason="missing_webhook_url")

    try:
        response = client.send_dict(payload)
    except Exception as e:
        logger.exception("Slack webhook delivery raised")
        return SlackSendResult(ok=False, reason="slack_error", body=str(e))

    if not 200 <= response.status_code < 300:
        logger.warning(
            "Slack webhook returned %s: %s", response.status_code, response.body
        )
        return SlackSendResult(
            ok=False, reason="slack_error", status=response.status_code, body=response.body
        )

    logger.info("Slack webhook delivered (%s)", response.status_code)
    return SlackSendResult(ok=True, status=response.status_code)


def trigger_overdue_alert(
    stale_tasks: list[Task],
    reference_time,
    webhook_url: str | None = None,
    base_url: str | None = None,
    threshold_hours: float = TASK_STUCK_THRESHOLD_HOURS,
    timeout: int = WEBHOOK_TIMEOUT_SECONDS,
) -> OverdueAlertResult:
    """Send the overdue-task alert for the given stuck tasks, if there are any."""
    if not stale_tasks:
        return OverdueAlertResult(ok=True, sent=False, reason="no_overdue_tasks")

    payload = build_overdue_slack_payload(
        stale_tasks, reference_time, base_url=base_url, threshold_hours=threshold_hours
    )
    result = send_webhook(payload, webhook_url, timeout=timeout)

    if not result.ok:
        if result.reason == "missing_webhook_url":
            return OverdueAlertResult(
                ok=True, sent=False, reason="missing_webhook", preview=payload
            )
        return OverdueAlertResult(
            ok=False,
            sent=False,
            reason=result.reason or "slack_error",
            status=result.status,
            body=result.body,
        )

    return OverdueAlertResult(ok=True, sent=True, count=len(stale_tasks))
