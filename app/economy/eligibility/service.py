from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.game_settings import GameSettings, get_game_settings
from app.core.identity import Identity, IdentityKind
from app.db.models.mint_eligibilities import MintEligibility
from app.db.repo.mint_eligibilities_repo import MintEligibilitiesRepo
from app.economy.eligibility.errors import (
    EligibilityExpiredError,
    EligibilityNotFoundError,
    EligibilityUsedError,
    TransferWindowClosedError,
    WalletRequiredError,
)
from app.economy.eligibility.rules import (
    eligibility_expires_at,
    eligibility_window_minutes,
    is_expired,
    is_transferable,
)
from app.economy.eligibility.types import Eligibility, EligibilityStatus, TransferResult

logger = structlog.get_logger(__name__)


class EligibilityService:
    @staticmethod
    def to_eligibility(row: MintEligibility) -> Eligibility:
        return Eligibility(
            eligibility_id=row.id,
            identity_key=row.identity_key,
            identity_kind=row.identity_kind,
            category_code=row.category_code,
            season_id=row.season_id,
            source_session_id=row.source_session_id,
            status=EligibilityStatus(row.status),
            window_minutes=row.window_minutes,
            created_at=row.created_at,
            expires_at=row.expires_at,
            used_at=row.used_at,
            transferred_from=row.transferred_from,
        )

    @staticmethod
    async def grant(
        session: AsyncSession,
        *,
        identity: Identity,
        category_code: str,
        source_session_id: UUID | None,
        season_id: str | None,
        now_utc: datetime,
        settings: GameSettings | None = None,
    ) -> Eligibility | None:
        """Grants a mint right, or returns None when one is already active for the category."""
        resolved_settings = settings or get_game_settings()
        await MintEligibilitiesRepo.expire_stale_for_category(
            session,
            identity_key=identity.key,
            category_code=category_code,
            now_utc=now_utc,
        )

        window_minutes = eligibility_window_minutes(identity.kind, resolved_settings)
        eligibility_id = uuid4()
        created = await MintEligibilitiesRepo.insert_active_if_absent(
            session,
            eligibility_id=eligibility_id,
            identity_key=identity.key,
            identity_kind=identity.kind.value,
            category_code=category_code,
            season_id=season_id,
            source_session_id=source_session_id,
            window_minutes=window_minutes,
            created_at=now_utc,
            expires_at=eligibility_expires_at(now_utc, window_minutes),
        )
        if not created:
            logger.info(
                "eligibility_grant_skipped_active_exists",
                identity_key=identity.key,
                category_code=category_code,
                source_session_id=str(source_session_id) if source_session_id else None,
            )
            return None

        row = await MintEligibilitiesRepo.get_by_id(session, eligibility_id)
        if row is None:
            raise EligibilityNotFoundError
        logger.info(
            "eligibility_granted",
            eligibility_id=str(eligibility_id),
            identity_key=identity.key,
            identity_kind=identity.kind.value,
            category_code=category_code,
            window_minutes=window_minutes,
        )
        return EligibilityService.to_eligibility(row)

    @staticmethod
    async def validate_for_mint(
        session: AsyncSession,
        *,
        identity: Identity,
        eligibility_id: UUID,
        now_utc: datetime,
        for_update: bool = False,
    ) -> MintEligibility:
        if for_update:
            row = await MintEligibilitiesRepo.get_by_id_for_update(session, eligibility_id)
        else:
            row = await MintEligibilitiesRepo.get_by_id(session, eligibility_id)
        if row is None or row.identity_key != identity.key:
            raise EligibilityNotFoundError
        if row.status == EligibilityStatus.EXPIRED.value:
            raise EligibilityExpiredError
        if row.status == EligibilityStatus.USED.value:
            raise EligibilityUsedError
        if is_expired(row.expires_at, now_utc):
            raise EligibilityExpiredError
        return row

    @staticmethod
    async def mark_used(session: AsyncSession, *, eligibility_id: UUID, now_utc: datetime) -> bool:
        return await MintEligibilitiesRepo.mark_used_if_active(
            session,
            eligibility_id=eligibility_id,
            now_utc=now_utc,
        )

    @staticmethod
    async def expire_sweep(session: AsyncSession, *, now_utc: datetime, limit: int = 1000) -> list[UUID]:
        expired_ids = await MintEligibilitiesRepo.expire_due(session, now_utc=now_utc, limit=limit)
        if expired_ids:
            logger.info("eligibility_expired_batch", expired=len(expired_ids))
        return expired_ids

    @staticmethod
    async def transfer(
        session: AsyncSession,
        *,
        guest: Identity,
        wallet: Identity,
        now_utc: datetime,
        settings: GameSettings | None = None,
    ) -> TransferResult:
        if wallet.kind != IdentityKind.CONNECTED:
            raise WalletRequiredError

        resolved_settings = settings or get_game_settings()
        candidates = await MintEligibilitiesRepo.list_active_for_identity_for_update(
            session,
            identity_key=guest.key,
        )
        moved: list[Eligibility] = []
        left_to_lapse: list[UUID] = []
        for row in candidates:
            if not is_transferable(
                created_at=row.created_at,
                expires_at=row.expires_at,
                now_utc=now_utc,
                transfer_window_minutes=resolved_settings.guest_transfer_window_minutes,
            ):
                left_to_lapse.append(row.id)
                continue

            held = await MintEligibilitiesRepo.get_active_for_category(
                session,
                identity_key=wallet.key,
                category_code=row.category_code,
            )
            if held is not None:
                left_to_lapse.append(row.id)
                continue

            try:
                async with session.begin_nested():
                    reassigned = await MintEligibilitiesRepo.reassign_owner(
                        session,
                        eligibility_id=row.id,
                        from_identity_key=guest.key,
                        to_identity_key=wallet.key,
                        to_identity_kind=wallet.kind.value,
                        now_utc=now_utc,
                    )
            except IntegrityError:
                reassigned = False
            if not reassigned:
                left_to_lapse.append(row.id)
                continue

            await session.refresh(row)
            moved.append(EligibilityService.to_eligibility(row))

        if candidates and not moved:
            logger.info(
                "eligibility_transfer_window_closed",
                guest_key=guest.key,
                wallet_key=wallet.key,
                lapsed=len(left_to_lapse),
            )
            raise TransferWindowClosedError

        logger.info(
            "eligibility_transferred",
            guest_key=guest.key,
            wallet_key=wallet.key,
            moved=len(moved),
            lapsed=len(left_to_lapse),
        )
        return TransferResult(moved=moved, left_to_lapse=left_to_lapse)

    @staticmethod
    async def list_for_identity(
        session: AsyncSession,
        *,
        identity: Identity,
        status: EligibilityStatus | None = None,
        limit: int = 50,
    ) -> list[Eligibility]:
        rows = await MintEligibilitiesRepo.list_for_identity(
            session,
            identity_key=identity.key,
            status=status.value if status is not None else None,
            limit=min(max(1, limit), 100),
        )
        return [EligibilityService.to_eligibility(row) for row in rows]
