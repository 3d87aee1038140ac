from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.identity import Identity
from app.db.models.mint_operations import MintOperation
from app.db.repo.mint_eligibilities_repo import MintEligibilitiesRepo
from app.db.repo.mint_operations_repo import MintOperationsRepo
from app.economy.catalog.errors import NoStockAvailableError
from app.economy.catalog.selector import CatalogSelector
from app.economy.eligibility.errors import EligibilityNotFoundError, WalletRequiredError
from app.economy.eligibility.service import EligibilityService
from app.economy.mint.errors import MintOperationNotFoundError
from app.economy.mint.types import MintInitiation, MintOperationView, OperationStatus

logger = structlog.get_logger(__name__)

CLAIM_ATTEMPTS = 3


class MintService:
    @staticmethod
    def to_view(row: MintOperation) -> MintOperationView:
        return MintOperationView(
            operation_id=row.id,
            eligibility_id=row.eligibility_id,
            identity_key=row.identity_key,
            catalog_item_id=row.catalog_item_id,
            status=OperationStatus(row.status),
            stage=row.stage,
            tx_ref=row.tx_ref,
            asset_ref=row.asset_ref,
            attempts=int(row.attempts),
            last_error=row.last_error,
            created_at=row.created_at,
            updated_at=row.updated_at,
            confirmed_at=row.confirmed_at,
            failed_at=row.failed_at,
        )

    @staticmethod
    async def initiate_mint(
        session: AsyncSession,
        *,
        identity: Identity,
        eligibility_id: UUID,
        now_utc: datetime,
    ) -> MintInitiation:
        """Creates the PENDING mint operation for an eligibility.

        The caller enqueues the workflow after commit. Repeated calls return the
        live operation; a FAILED one allows a new attempt while the eligibility
        is still ACTIVE.
        """
        if not identity.is_connected:
            raise WalletRequiredError

        row = await MintEligibilitiesRepo.get_by_id_for_update(session, eligibility_id)
        if row is None or row.identity_key != identity.key:
            raise EligibilityNotFoundError

        live = await MintOperationsRepo.get_live_for_eligibility(session, eligibility_id=eligibility_id)
        if live is not None:
            return MintInitiation(operation=MintService.to_view(live), created=False)

        eligibility = await EligibilityService.validate_for_mint(
            session,
            identity=identity,
            eligibility_id=eligibility_id,
            now_utc=now_utc,
        )
        operation_id = uuid4()
        for attempt in range(CLAIM_ATTEMPTS):
            item = await CatalogSelector.select_for_eligibility(
                session,
                eligibility_id=eligibility.id,
                category_code=eligibility.category_code,
            )
            async with session.begin_nested():
                created = await MintOperationsRepo.insert_pending_if_absent(
                    session,
                    operation_id=operation_id,
                    eligibility_id=eligibility.id,
                    identity_key=identity.key,
                    catalog_item_id=item.item_id,
                    now_utc=now_utc,
                )
            if created:
                break
            logger.info(
                "mint_catalog_claim_collision",
                eligibility_id=str(eligibility.id),
                catalog_item_id=str(item.item_id),
                attempt=attempt,
            )
        else:
            raise NoStockAvailableError(eligibility.category_code)

        operation = await MintOperationsRepo.get_by_id(session, operation_id)
        if operation is None:
            raise MintOperationNotFoundError
        logger.info(
            "mint_initiated",
            operation_id=str(operation_id),
            eligibility_id=str(eligibility.id),
            identity_key=identity.key,
            catalog_item_id=str(operation.catalog_item_id),
        )
        return MintInitiation(operation=MintService.to_view(operation), created=True)

    @staticmethod
    async def get_mint_operation(
        session: AsyncSession,
        *,
        identity: Identity,
        operation_id: UUID,
    ) -> MintOperationView:
        row = await MintOperationsRepo.get_by_id(session, operation_id)
        if row is None or row.identity_key != identity.key:
            raise MintOperationNotFoundError
        return MintService.to_view(row)
