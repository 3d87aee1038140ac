from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from app.services import alerts

OPS_URL = "https://ops.example.local/hook"
SLACK_URL = "https://slack.example.local/hook"


class _RecordingClient:
    def __init__(self, posts: list[tuple[str, dict[str, Any]]], failing: set[str]) -> None:
        self.posts = posts
        self.failing = failing

    async def __aenter__(self) -> "_RecordingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def post(self, url: str, json: dict[str, Any]) -> httpx.Response:
        self.posts.append((url, json))
        if url in self.failing:
            raise httpx.ConnectError("unreachable")
        return httpx.Response(200, request=httpx.Request("POST", url))


@pytest.fixture
def posts() -> list[tuple[str, dict[str, Any]]]:
    return []


def _configure(monkeypatch, posts, *, ops: str = "", slack: str = "", failing: set[str] | None = None) -> None:  # noqa: ANN001
    settings = SimpleNamespace(app_env="test", ops_alert_webhook_url=ops, ops_alert_slack_webhook_url=slack)
    monkeypatch.setattr(alerts, "get_settings", lambda: settings)
    monkeypatch.setattr(
        alerts.httpx,
        "AsyncClient",
        lambda timeout: _RecordingClient(posts, failing or set()),  # noqa: ARG005
    )


@pytest.mark.asyncio
async def test_alert_is_skipped_without_webhooks(monkeypatch, posts) -> None:
    _configure(monkeypatch, posts)

    assert await alerts.send_ops_alert(event="mint_commit_conflict", payload={"operation_id": "op-1"}) is False
    assert posts == []


@pytest.mark.asyncio
async def test_partial_burn_pages_slack_before_generic(monkeypatch, posts) -> None:
    _configure(monkeypatch, posts, ops=OPS_URL, slack=SLACK_URL)

    sent = await alerts.send_ops_alert(
        event="forge_partial_burn_detected",
        payload={"operation_id": "op-9", "burn_tx_ref": "tx-burn"},
    )

    assert sent is True
    assert [url for url, _ in posts] == [SLACK_URL, OPS_URL]
    slack_body = posts[0][1]
    assert slack_body["text"] == "[CRITICAL] forge_partial_burn_detected"
    assert "reconcile" in slack_body["blocks"][1]["text"]["text"]
    generic_body = posts[1][1]
    assert generic_body["severity"] == "critical"
    assert generic_body["operation_id"] == "op-9"
    assert generic_body["environment"] == "test"


@pytest.mark.asyncio
async def test_unknown_event_only_reaches_generic_webhook(monkeypatch, posts) -> None:
    _configure(monkeypatch, posts, ops=OPS_URL, slack=SLACK_URL)

    sent = await alerts.send_ops_alert(event="stalled_workflows_resumed", payload={"mint": 2})

    assert sent is True
    assert [url for url, _ in posts] == [OPS_URL]
    assert posts[0][1]["severity"] == "warning"
    assert posts[0][1]["operation_id"] is None


@pytest.mark.asyncio
async def test_alert_counts_as_sent_when_one_channel_fails(monkeypatch, posts) -> None:
    _configure(monkeypatch, posts, ops=OPS_URL, slack=SLACK_URL, failing={SLACK_URL})

    assert await alerts.send_ops_alert(event="mint_commit_conflict", payload={"operation_id": "op-5"}) is True
    assert len(posts) == 2


@pytest.mark.asyncio
async def test_alert_fails_when_every_channel_fails(monkeypatch, posts) -> None:
    _configure(monkeypatch, posts, ops=OPS_URL, failing={OPS_URL})

    assert await alerts.send_ops_alert(event="mint_commit_conflict", payload={"operation_id": "op-3"}) is False
