from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx
import structlog

from app.core.config import get_settings
from app.workflows.errors import GatewayRejectedError, TransientGatewayError

logger = structlog.get_logger(__name__)


class TxKind(str, Enum):
    MINT = "MINT"
    BURN = "BURN"


class TxStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(slots=True)
class TransactionRequest:
    kind: TxKind
    recipient: str
    idempotency_key: str
    asset_refs: list[str] = field(default_factory=list)
    content_id: str | None = None
    policy_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "recipient": self.recipient,
            "idempotency_key": self.idempotency_key,
            "asset_refs": list(self.asset_refs),
            "content_id": self.content_id,
            "policy_id": self.policy_id,
        }


class BlockchainGateway(Protocol):
    async def submit(self, tx: TransactionRequest) -> str: ...

    async def status(self, tx_ref: str) -> TxStatus: ...

    async def query_ownership(self, address: str, item_refs: list[str]) -> set[str]: ...

    async def asset_ref_for(self, tx_ref: str) -> str: ...


def raise_for_collaborator_response(response: httpx.Response, *, operation: str) -> None:
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientGatewayError(f"{operation}: HTTP {response.status_code}")
    if response.status_code >= 400:
        raise GatewayRejectedError(f"{operation}: HTTP {response.status_code} {response.text[:200]}")


async def send_collaborator_request(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    *,
    operation: str,
    json: dict[str, Any] | None = None,
) -> dict[str, Any]:
    try:
        response = await client.request(method, path, json=json)
    except httpx.TransportError as exc:
        raise TransientGatewayError(f"{operation}: {exc.__class__.__name__}") from exc
    raise_for_collaborator_response(response, operation=operation)
    try:
        body = response.json()
    except ValueError as exc:
        raise GatewayRejectedError(f"{operation}: malformed response body") from exc
    if not isinstance(body, dict):
        raise GatewayRejectedError(f"{operation}: unexpected response shape")
    return body


class HttpBlockchainGateway:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls) -> HttpBlockchainGateway:
        settings = get_settings()
        headers = {}
        if settings.blockchain_gateway_token:
            headers["Authorization"] = f"Bearer {settings.blockchain_gateway_token}"
        return cls(
            httpx.AsyncClient(
                base_url=settings.blockchain_gateway_url,
                timeout=httpx.Timeout(settings.external_http_timeout_seconds),
                headers=headers,
            )
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit(self, tx: TransactionRequest) -> str:
        body = await send_collaborator_request(
            self._client,
            "POST",
            "/v1/transactions",
            operation="tx_submit",
            json=tx.to_payload(),
        )
        tx_ref = body.get("tx_ref")
        if not isinstance(tx_ref, str) or not tx_ref:
            raise GatewayRejectedError("tx_submit: response has no tx_ref")
        logger.info("tx_submitted", kind=tx.kind.value, tx_ref=tx_ref, idempotency_key=tx.idempotency_key)
        return tx_ref

    async def _transaction(self, tx_ref: str) -> dict[str, Any]:
        return await send_collaborator_request(
            self._client,
            "GET",
            f"/v1/transactions/{tx_ref}",
            operation="tx_status",
        )

    async def status(self, tx_ref: str) -> TxStatus:
        body = await self._transaction(tx_ref)
        try:
            return TxStatus(str(body.get("status", "")).lower())
        except ValueError as exc:
            raise TransientGatewayError(f"tx_status: unknown status {body.get('status')!r}") from exc

    async def asset_ref_for(self, tx_ref: str) -> str:
        body = await self._transaction(tx_ref)
        asset_refs = body.get("asset_refs") or []
        if not asset_refs:
            raise GatewayRejectedError(f"tx_status: confirmed transaction {tx_ref} reports no asset")
        return str(asset_refs[0])

    async def query_ownership(self, address: str, item_refs: list[str]) -> set[str]:
        body = await send_collaborator_request(
            self._client,
            "POST",
            "/v1/ownership",
            operation="ownership_query",
            json={"address": address, "asset_refs": list(item_refs)},
        )
        return {str(ref) for ref in body.get("owned", [])}
