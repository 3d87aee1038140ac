from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from app.db.repo.forge_operations_repo import ForgeOperationsRepo
from app.db.repo.owned_items_repo import OwnedItemsRepo
from app.db.session import SessionLocal
from app.economy.forge.types import INPUT_LOCKING_FAILURES, ForgeFailureKind


class SqlForgeWorkflowStore:
    async def begin_run(self, op_id: UUID) -> str | None:
        async with SessionLocal.begin() as session:
            return await ForgeOperationsRepo.begin_run(
                session,
                operation_id=op_id,
                now_utc=datetime.now(timezone.utc),
            )

    async def mark_stage(self, op_id: UUID, *, stage: str, fields: dict[str, Any]) -> None:
        async with SessionLocal.begin() as session:
            await ForgeOperationsRepo.mark_stage(
                session,
                operation_id=op_id,
                stage=stage,
                fields=fields,
                now_utc=datetime.now(timezone.utc),
            )

    async def mark_failed(
        self,
        op_id: UUID,
        *,
        stage: str,
        error: str,
        failure_kind: str | None,
    ) -> None:
        kind = failure_kind or ForgeFailureKind.WORKFLOW_ERROR.value
        async with SessionLocal.begin() as session:
            await ForgeOperationsRepo.mark_failed(
                session,
                operation_id=op_id,
                stage=stage,
                error=error,
                failure_kind=kind,
                now_utc=datetime.now(timezone.utc),
            )
            if ForgeFailureKind(kind) not in INPUT_LOCKING_FAILURES:
                await OwnedItemsRepo.release_forge_locks(session, forge_operation_id=op_id)
