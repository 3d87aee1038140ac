from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

import pytest

from app.economy.forge import store as forge_store
from app.economy.forge import workflow as forge_workflow
from app.economy.forge.types import ForgeFailureKind
from app.economy.forge.workflow import ForgeContext, ForgeWorkflow
from app.services.blockchain_gateway import TransactionRequest, TxKind, TxStatus
from app.workflows.errors import TransientGatewayError
from app.workflows.retry import RetryPolicy

INPUTS = ["asset-1", "asset-2", "asset-3"]
WALLET = "0xf000000000000000000000000000000000000001"


class _Transaction:
    async def __aenter__(self) -> object:
        return object()

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class _SessionLocal:
    @staticmethod
    def begin() -> _Transaction:
        return _Transaction()


class _Gateway:
    def __init__(
        self,
        *,
        owned: set[str] | None = None,
        burn_status: TxStatus = TxStatus.CONFIRMED,
        mint_outage: bool = False,
    ) -> None:
        self.owned = set(INPUTS) if owned is None else owned
        self.burn_status = burn_status
        self.mint_outage = mint_outage
        self.submitted: list[TxKind] = []

    async def query_ownership(self, address: str, item_refs: list[str]) -> set[str]:
        return {ref for ref in item_refs if ref in self.owned}

    async def submit(self, tx: TransactionRequest) -> str:
        self.submitted.append(tx.kind)
        if tx.kind == TxKind.MINT and self.mint_outage:
            raise TransientGatewayError("HTTP 503")
        return f"tx-{tx.kind.value.lower()}"

    async def status(self, tx_ref: str) -> TxStatus:
        return self.burn_status if tx_ref == "tx-burn" else TxStatus.CONFIRMED

    async def asset_ref_for(self, tx_ref: str) -> str:
        return f"{tx_ref}:0"


class _Pinning:
    async def pin(self, metadata: dict[str, Any]) -> str:
        return "bafy-forged"


class _RecordingStore:
    def __init__(self) -> None:
        self.stage = "created"
        self.stages: list[str] = []
        self.failure: dict[str, Any] | None = None

    async def begin_run(self, op_id: UUID) -> str | None:
        return self.stage

    async def mark_stage(self, op_id: UUID, *, stage: str, fields: dict[str, Any]) -> None:
        self.stages.append(stage)
        self.stage = stage

    async def mark_failed(self, op_id: UUID, *, stage: str, error: str, failure_kind: str | None) -> None:
        self.failure = {"stage": stage, "error": error, "failure_kind": failure_kind}


@pytest.fixture
def chain_effects(monkeypatch) -> dict[str, list[Any]]:
    effects: dict[str, list[Any]] = {"burned": [], "transferred_out": [], "alerts": []}

    async def _mark_burned(session, *, forge_operation_id: UUID, now_utc) -> int:  # noqa: ANN001
        effects["burned"].append(forge_operation_id)
        return len(INPUTS)

    async def _mark_transferred_out(session, *, identity_key: str, asset_refs: list[str], now_utc) -> int:  # noqa: ANN001
        effects["transferred_out"].extend(asset_refs)
        return len(asset_refs)

    async def _alert(*, event: str, payload: dict[str, object]) -> bool:
        effects["alerts"].append((event, payload))
        return True

    monkeypatch.setattr(forge_workflow, "SessionLocal", _SessionLocal)
    monkeypatch.setattr(forge_workflow.OwnedItemsRepo, "mark_burned_for_forge", _mark_burned)
    monkeypatch.setattr(forge_workflow.OwnedItemsRepo, "mark_transferred_out", _mark_transferred_out)
    monkeypatch.setattr(forge_workflow, "send_ops_alert", _alert)
    return effects


def _workflow(gateway: _Gateway, store: _RecordingStore) -> ForgeWorkflow:
    return ForgeWorkflow(
        gateway=gateway,
        pinning=_Pinning(),
        store=store,
        retry_policy=RetryPolicy(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0, jitter_seconds=0.0),
        poll_interval_seconds=0.0,
        max_polls=2,
    )


def _context() -> ForgeContext:
    return ForgeContext(
        operation_id=uuid4(),
        identity_key=WALLET,
        forge_type="CATEGORY",
        output_tier="ULTIMATE",
        category_code="science",
        input_asset_refs=list(INPUTS),
    )


@pytest.mark.asyncio
async def test_mint_outage_after_confirmed_burn_is_partial_burn(chain_effects) -> None:
    gateway = _Gateway(mint_outage=True)
    store = _RecordingStore()
    ctx = _context()

    outcome = await _workflow(gateway, store).run(ctx)

    assert outcome.completed is False
    assert outcome.failure_kind == ForgeFailureKind.PARTIAL_BURNED.value
    assert store.stages == ["ownership_verified", "burn_submitted", "burn_confirmed", "pinned"]
    assert store.failure is not None
    assert store.failure["failure_kind"] == "PARTIAL_BURNED"
    assert store.failure["error"].startswith("forge.mint_submitted: TransientGatewayError")
    assert gateway.submitted == [TxKind.BURN, TxKind.MINT, TxKind.MINT, TxKind.MINT]
    assert chain_effects["burned"] == [ctx.operation_id]
    [(event, payload)] = chain_effects["alerts"]
    assert event == "forge_partial_burn_detected"
    assert payload["burn_tx_ref"] == "tx-burn"


@pytest.mark.asyncio
async def test_transferred_input_fails_before_any_chain_call(chain_effects) -> None:
    gateway = _Gateway(owned={"asset-1", "asset-3"})
    store = _RecordingStore()

    outcome = await _workflow(gateway, store).run(_context())

    assert outcome.failure_kind == ForgeFailureKind.OWNERSHIP_CHANGED.value
    assert store.failure is not None
    assert store.failure["failure_kind"] == "OWNERSHIP_CHANGED"
    assert store.failure["stage"] == "created"
    assert store.failure["failure_kind"] != ForgeFailureKind.PARTIAL_BURNED.value
    assert gateway.submitted == []
    assert chain_effects["transferred_out"] == ["asset-2"]
    assert chain_effects["burned"] == []
    assert chain_effects["alerts"] == []


@pytest.mark.asyncio
async def test_unresolved_burn_is_reported_and_not_treated_as_plain_failure(chain_effects) -> None:
    gateway = _Gateway(burn_status=TxStatus.PENDING)
    store = _RecordingStore()

    outcome = await _workflow(gateway, store).run(_context())

    assert outcome.failure_kind == ForgeFailureKind.BURN_UNCONFIRMED.value
    assert store.failure is not None
    assert store.failure["stage"] == "burn_submitted"
    assert gateway.submitted == [TxKind.BURN]
    assert chain_effects["burned"] == []
    assert [event for event, _ in chain_effects["alerts"]] == ["forge_burn_unconfirmed"]


@pytest.mark.asyncio
async def test_rejected_burn_is_a_plain_burn_failure(chain_effects) -> None:
    gateway = _Gateway(burn_status=TxStatus.FAILED)
    store = _RecordingStore()

    outcome = await _workflow(gateway, store).run(_context())

    assert outcome.failure_kind == ForgeFailureKind.BURN_FAILED.value
    assert chain_effects["alerts"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("failure_kind", "released"),
    [
        (ForgeFailureKind.OWNERSHIP_CHANGED, True),
        (ForgeFailureKind.BURN_FAILED, True),
        (ForgeFailureKind.WORKFLOW_ERROR, True),
        (ForgeFailureKind.BURN_UNCONFIRMED, False),
        (ForgeFailureKind.PARTIAL_BURNED, False),
    ],
)
async def test_failed_forge_releases_inputs_only_when_no_burn_can_have_landed(
    monkeypatch,
    failure_kind: ForgeFailureKind,
    released: bool,
) -> None:
    calls: dict[str, list[Any]] = {"failed": [], "released": []}

    async def _mark_failed(session, *, operation_id: UUID, stage: str, error: str, failure_kind: str, now_utc) -> None:  # noqa: ANN001
        calls["failed"].append(failure_kind)

    async def _release(session, *, forge_operation_id: UUID) -> int:  # noqa: ANN001
        calls["released"].append(forge_operation_id)
        return 3

    monkeypatch.setattr(forge_store, "SessionLocal", _SessionLocal)
    monkeypatch.setattr(forge_store.ForgeOperationsRepo, "mark_failed", _mark_failed)
    monkeypatch.setattr(forge_store.OwnedItemsRepo, "release_forge_locks", _release)
    op_id = uuid4()

    await forge_store.SqlForgeWorkflowStore().mark_failed(
        op_id,
        stage="burn_submitted",
        error="boom",
        failure_kind=failure_kind.value,
    )

    assert calls["failed"] == [failure_kind.value]
    assert calls["released"] == ([op_id] if released else [])
