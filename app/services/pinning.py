from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from app.core.config import get_settings
from app.services.blockchain_gateway import send_collaborator_request
from app.workflows.errors import GatewayRejectedError

logger = structlog.get_logger(__name__)


class PinningService(Protocol):
    async def pin(self, metadata: dict[str, Any]) -> str: ...


class HttpPinningService:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls) -> HttpPinningService:
        settings = get_settings()
        headers = {}
        if settings.pinning_service_token:
            headers["Authorization"] = f"Bearer {settings.pinning_service_token}"
        return cls(
            httpx.AsyncClient(
                base_url=settings.pinning_service_url,
                timeout=httpx.Timeout(settings.external_http_timeout_seconds),
                headers=headers,
            )
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def pin(self, metadata: dict[str, Any]) -> str:
        body = await send_collaborator_request(
            self._client,
            "POST",
            "/v1/pins",
            operation="pin",
            json={"metadata": metadata},
        )
        content_id = body.get("content_id")
        if not isinstance(content_id, str) or not content_id:
            raise GatewayRejectedError("pin: response has no content_id")
        logger.info("metadata_pinned", content_id=content_id)
        return content_id
