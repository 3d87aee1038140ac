from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import httpx
import structlog

from app.core.config import get_settings

logger = structlog.get_logger(__name__)
ALERT_TIMEOUT_SECONDS = 5.0


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class WorkflowAlertRule:
    severity: AlertSeverity
    page_slack: bool
    action: str


# Unknown events still reach the generic webhook.
DEFAULT_RULE = WorkflowAlertRule(
    severity=AlertSeverity.WARNING,
    page_slack=False,
    action="review worker logs",
)
WORKFLOW_ALERT_RULES = {
    "forge_partial_burn_detected": WorkflowAlertRule(
        severity=AlertSeverity.CRITICAL,
        page_slack=True,
        action="inputs burned without an output item; reconcile the owner manually",
    ),
    "forge_burn_unconfirmed": WorkflowAlertRule(
        severity=AlertSeverity.CRITICAL,
        page_slack=True,
        action="burn tx outcome unknown; check the chain before unlocking the inputs",
    ),
    "mint_commit_conflict": WorkflowAlertRule(
        severity=AlertSeverity.ERROR,
        page_slack=True,
        action="token minted on chain but the local commit lost a race; verify catalog and owned items",
    ),
}
SLACK_EMOJI = {
    AlertSeverity.CRITICAL: ":rotating_light:",
    AlertSeverity.ERROR: ":red_circle:",
    AlertSeverity.WARNING: ":warning:",
}


def _webhook(settings: object, attr: str) -> str:
    value = getattr(settings, attr, "")
    return value.strip() if isinstance(value, str) else ""


def _delivery_plan(rule: WorkflowAlertRule, settings: object) -> list[tuple[str, str]]:
    plan: list[tuple[str, str]] = []
    slack_url = _webhook(settings, "ops_alert_slack_webhook_url")
    if rule.page_slack and slack_url:
        plan.append(("slack", slack_url))
    generic_url = _webhook(settings, "ops_alert_webhook_url")
    if generic_url:
        plan.append(("generic", generic_url))
    return plan


def _generic_body(
    *,
    event: str,
    rule: WorkflowAlertRule,
    payload: dict[str, object],
    environment: str,
    sent_at: datetime,
) -> dict[str, object]:
    return {
        "event": event,
        "severity": rule.severity.value,
        "operation_id": payload.get("operation_id"),
        "action": rule.action,
        "environment": environment,
        "sent_at": sent_at.isoformat(),
        "payload": payload,
    }


def _slack_body(
    *,
    event: str,
    rule: WorkflowAlertRule,
    payload: dict[str, object],
    environment: str,
) -> dict[str, object]:
    headline = f"{SLACK_EMOJI[rule.severity]} *{event}* ({environment})"
    details = json.dumps(payload, sort_keys=True, indent=2, default=str)
    return {
        "text": f"[{rule.severity.value.upper()}] {event}",
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": headline}},
            {"type": "section", "text": {"type": "mrkdwn", "text": f"Action: {rule.action}"}},
            {"type": "section", "text": {"type": "mrkdwn", "text": f"```{details}```"}},
        ],
    }


async def send_ops_alert(*, event: str, payload: dict[str, object]) -> bool:
    """Deliver a workflow alert; True when at least one webhook accepted it."""
    settings = get_settings()
    rule = WORKFLOW_ALERT_RULES.get(event, DEFAULT_RULE)
    plan = _delivery_plan(rule, settings)
    if not plan:
        logger.warning("ops_alert_not_configured", alert_event=event)
        return False

    environment = _webhook(settings, "app_env") or "dev"
    sent_at = datetime.now(timezone.utc)
    delivered: list[str] = []
    async with httpx.AsyncClient(timeout=ALERT_TIMEOUT_SECONDS) as client:
        for channel, url in plan:
            if channel == "slack":
                body = _slack_body(event=event, rule=rule, payload=payload, environment=environment)
            else:
                body = _generic_body(
                    event=event,
                    rule=rule,
                    payload=payload,
                    environment=environment,
                    sent_at=sent_at,
                )
            try:
                response = await client.post(url, json=body)
                response.raise_for_status()
            except httpx.HTTPError:
                logger.exception("ops_alert_delivery_failed", alert_event=event, channel=channel)
                continue
            delivered.append(channel)

    if not delivered:
        logger.error("ops_alert_undelivered", alert_event=event, channels=[channel for channel, _ in plan])
        return False
    logger.info("ops_alert_delivered", alert_event=event, severity=rule.severity.value, channels=delivered)
    return True
