from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar
from uuid import UUID

import structlog

from app.workflows.errors import StepExhaustedError
from app.workflows.retry import RetryPolicy

logger = structlog.get_logger(__name__)

INITIAL_STAGE = "created"

C = TypeVar("C")


def workflow_mutex_key(kind: str, op_id: UUID | str) -> str:
    return f"lock:workflow:{kind}:{op_id}"


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, StepExhaustedError):
        return f"{exc.step}: {exc.cause.__class__.__name__}: {exc.cause}"
    return f"{exc.__class__.__name__}: {exc}"


@dataclass(frozen=True, slots=True)
class WorkflowStep(Generic[C]):
    """One stage of a workflow.

    `run` returns the operation columns to persist together with the stage
    (for example a tx ref). External steps go through the retry policy. An
    `enter_stage` step persists its stage before running, and a run resuming at
    that stage enters the step again.
    """

    name: str
    run: Callable[[C], Awaitable[dict[str, Any] | None]]
    external: bool = False
    enter_stage: bool = False


@dataclass(slots=True)
class WorkflowOutcome:
    op_id: UUID
    completed: bool
    stage: str
    error: str | None = None
    failure_kind: str | None = None
    skipped: bool = False


class WorkflowStore(Protocol):
    async def begin_run(self, op_id: UUID) -> str | None: ...

    async def mark_stage(self, op_id: UUID, *, stage: str, fields: dict[str, Any]) -> None: ...

    async def mark_failed(
        self,
        op_id: UUID,
        *,
        stage: str,
        error: str,
        failure_kind: str | None,
    ) -> None: ...


FailureClassifier = Callable[[str, BaseException], "str | None"]


class WorkflowRunner(Generic[C]):
    def __init__(
        self,
        name: str,
        steps: Sequence[WorkflowStep[C]],
        store: WorkflowStore,
        *,
        retry_policy: RetryPolicy,
        classify_failure: FailureClassifier | None = None,
    ) -> None:
        stage_names = [step.name for step in steps]
        if len(set(stage_names)) != len(stage_names) or INITIAL_STAGE in stage_names:
            raise ValueError(f"invalid stage list for workflow {name}: {stage_names}")
        self.name = name
        self.steps = list(steps)
        self.store = store
        self.retry_policy = retry_policy
        self.classify_failure = classify_failure

    def remaining_steps(self, stage: str) -> list[WorkflowStep[C]]:
        if stage == INITIAL_STAGE:
            return list(self.steps)
        for index, step in enumerate(self.steps):
            if step.name == stage:
                return self.steps[index:] if step.enter_stage else self.steps[index + 1 :]
        raise ValueError(f"unknown stage {stage!r} for workflow {self.name}")

    async def _run_step(self, step: WorkflowStep[C], ctx: C) -> dict[str, Any] | None:
        if step.external:
            return await self.retry_policy.run(f"{self.name}.{step.name}", lambda: step.run(ctx))
        return await step.run(ctx)

    async def run(self, op_id: UUID, ctx: C) -> WorkflowOutcome:
        stage = await self.store.begin_run(op_id)
        if stage is None:
            logger.info("workflow_run_skipped_not_pending", workflow=self.name, op_id=str(op_id))
            return WorkflowOutcome(op_id=op_id, completed=False, stage="", skipped=True)

        for step in self.remaining_steps(stage):
            if step.enter_stage and stage != step.name:
                await self.store.mark_stage(op_id, stage=step.name, fields={})
                stage = step.name
            try:
                fields = await self._run_step(step, ctx)
            except Exception as exc:
                error = describe_error(exc)
                failure_kind = self.classify_failure(stage, exc) if self.classify_failure else None
                await self.store.mark_failed(op_id, stage=stage, error=error, failure_kind=failure_kind)
                logger.warning(
                    "workflow_failed",
                    workflow=self.name,
                    op_id=str(op_id),
                    stage=stage,
                    failed_step=step.name,
                    failure_kind=failure_kind,
                    error=error,
                )
                return WorkflowOutcome(
                    op_id=op_id,
                    completed=False,
                    stage=stage,
                    error=error,
                    failure_kind=failure_kind,
                )
            await self.store.mark_stage(op_id, stage=step.name, fields=fields or {})
            stage = step.name
            logger.info("workflow_stage_completed", workflow=self.name, op_id=str(op_id), stage=stage)

        return WorkflowOutcome(op_id=op_id, completed=True, stage=stage)
