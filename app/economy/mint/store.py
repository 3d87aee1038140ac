from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from app.db.repo.mint_operations_repo import MintOperationsRepo
from app.db.session import SessionLocal
from app.economy.mint.types import COMMIT_CONFLICT


class SqlMintWorkflowStore:
    """Persists mint workflow progress, one short transaction per call."""

    async def begin_run(self, op_id: UUID) -> str | None:
        async with SessionLocal.begin() as session:
            return await MintOperationsRepo.begin_run(
                session,
                operation_id=op_id,
                now_utc=datetime.now(timezone.utc),
            )

    async def mark_stage(self, op_id: UUID, *, stage: str, fields: dict[str, Any]) -> None:
        async with SessionLocal.begin() as session:
            await MintOperationsRepo.mark_stage(
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
        if failure_kind == COMMIT_CONFLICT:
            error = f"{COMMIT_CONFLICT}: {error}"
        async with SessionLocal.begin() as session:
            await MintOperationsRepo.mark_failed(
                session,
                operation_id=op_id,
                stage=stage,
                error=error,
                now_utc=datetime.now(timezone.utc),
            )
