from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

import pytest

from app.economy.forge.workflow import classify_forge_failure
from app.economy.mint.types import COMMIT_CONFLICT
from app.economy.mint.workflow import classify_mint_failure
from app.workflows.engine import (
    WorkflowRunner,
    WorkflowStep,
    describe_error,
    workflow_mutex_key,
)
from app.workflows.errors import (
    CommitConflictError,
    ConfirmationExhaustedError,
    GatewayRejectedError,
    OwnershipChangedError,
    StepExhaustedError,
    TransactionFailedError,
    TransientGatewayError,
)
from app.workflows.retry import RetryPolicy


class FakeWorkflowStore:
    def __init__(self, stage: str | None = "created") -> None:
        self.stage = stage
        self.marks: list[tuple[str, dict[str, Any]]] = []
        self.failures: list[dict[str, Any]] = []

    async def begin_run(self, op_id: UUID) -> str | None:
        return self.stage

    async def mark_stage(self, op_id: UUID, *, stage: str, fields: dict[str, Any]) -> None:
        self.marks.append((stage, dict(fields)))
        self.stage = stage

    async def mark_failed(self, op_id: UUID, *, stage: str, error: str, failure_kind: str | None) -> None:
        self.failures.append({"stage": stage, "error": error, "failure_kind": failure_kind})


class Recorder:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def step(self, name: str, result: dict[str, Any] | None = None, error: Exception | None = None):  # noqa: ANN201
        async def run(ctx: object) -> dict[str, Any] | None:
            self.calls.append(name)
            if error is not None:
                raise error
            return result

        return run


def _policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=1, jitter_seconds=0.0)


def _runner(recorder: Recorder, store: FakeWorkflowStore, **overrides: Any) -> WorkflowRunner[object]:
    steps = [
        WorkflowStep("validated", recorder.step("validated")),
        WorkflowStep("submitted", recorder.step("submitted", {"tx_ref": "tx-1"}), external=True),
        WorkflowStep("confirmed", recorder.step("confirmed", error=overrides.pop("confirm_error", None)), enter_stage=True),
        WorkflowStep("committed", recorder.step("committed")),
    ]
    return WorkflowRunner("demo", steps, store, retry_policy=_policy(), **overrides)


@pytest.mark.asyncio
async def test_runner_persists_each_stage_with_fields() -> None:
    recorder = Recorder()
    store = FakeWorkflowStore()

    outcome = await _runner(recorder, store).run(uuid4(), object())

    assert outcome.completed is True
    assert outcome.stage == "committed"
    assert recorder.calls == ["validated", "submitted", "confirmed", "committed"]
    assert store.marks == [
        ("validated", {}),
        ("submitted", {"tx_ref": "tx-1"}),
        ("confirmed", {}),
        ("confirmed", {}),
        ("committed", {}),
    ]


@pytest.mark.asyncio
async def test_runner_resumes_after_last_persisted_stage() -> None:
    recorder = Recorder()
    store = FakeWorkflowStore(stage="submitted")

    outcome = await _runner(recorder, store).run(uuid4(), object())

    assert outcome.completed is True
    assert recorder.calls == ["confirmed", "committed"]


@pytest.mark.asyncio
async def test_runner_reenters_a_stage_persisted_on_entry() -> None:
    recorder = Recorder()
    store = FakeWorkflowStore(stage="confirmed")

    await _runner(recorder, store).run(uuid4(), object())

    assert recorder.calls == ["confirmed", "committed"]
    assert store.marks[0] == ("confirmed", {})


@pytest.mark.asyncio
async def test_runner_skips_operations_that_are_not_pending() -> None:
    recorder = Recorder()
    store = FakeWorkflowStore(stage=None)

    outcome = await _runner(recorder, store).run(uuid4(), object())

    assert outcome.skipped is True
    assert recorder.calls == []


@pytest.mark.asyncio
async def test_runner_records_failure_at_current_stage() -> None:
    recorder = Recorder()
    store = FakeWorkflowStore()
    runner = _runner(
        recorder,
        store,
        confirm_error=GatewayRejectedError("HTTP 400"),
        classify_failure=lambda stage, exc: f"kind:{stage}",
    )

    outcome = await runner.run(uuid4(), object())

    assert outcome.completed is False
    assert outcome.stage == "confirmed"
    assert outcome.failure_kind == "kind:confirmed"
    assert store.failures == [
        {"stage": "confirmed", "error": "GatewayRejectedError: HTTP 400", "failure_kind": "kind:confirmed"}
    ]
    assert "committed" not in recorder.calls


def test_runner_rejects_duplicate_or_reserved_stage_names() -> None:
    recorder = Recorder()
    with pytest.raises(ValueError):
        WorkflowRunner(
            "bad",
            [WorkflowStep("a", recorder.step("a")), WorkflowStep("a", recorder.step("a"))],
            FakeWorkflowStore(),
            retry_policy=_policy(),
        )
    with pytest.raises(ValueError):
        WorkflowRunner("bad", [WorkflowStep("created", recorder.step("x"))], FakeWorkflowStore(), retry_policy=_policy())


def test_describe_error_names_exhausted_step() -> None:
    exhausted = StepExhaustedError("mint.submit", TransientGatewayError("HTTP 503"))

    assert describe_error(exhausted) == "mint.submit: TransientGatewayError: HTTP 503"
    assert workflow_mutex_key("mint", "abc") == "lock:workflow:mint:abc"


def test_forge_failures_classified_by_stage_and_cause() -> None:
    assert classify_forge_failure("created", OwnershipChangedError(["a1"])) == "OWNERSHIP_CHANGED"
    exhausted_submit = StepExhaustedError("forge.burn_submitted", TransientGatewayError("x"))
    assert classify_forge_failure("ownership_verified", exhausted_submit) == "WORKFLOW_ERROR"
    assert classify_forge_failure("burn_submitted", ConfirmationExhaustedError("tx-burn", 5)) == "BURN_UNCONFIRMED"
    assert classify_forge_failure("burn_submitted", TransactionFailedError("tx-burn")) == "BURN_FAILED"
    assert classify_forge_failure("burn_confirmed", GatewayRejectedError("x")) == "PARTIAL_BURNED"
    assert classify_forge_failure("mint_submitted", TransientGatewayError("x")) == "PARTIAL_BURNED"


def test_mint_commit_conflict_is_classified() -> None:
    assert classify_mint_failure("awaiting_confirmation", CommitConflictError("sold out")) == COMMIT_CONFLICT
    assert classify_mint_failure("pinned", GatewayRejectedError("x")) is None
