from __future__ import annotations

from app.api.routes.rewards_models import (
    EligibilityResponse,
    ForgeOperationResponse,
    ForgeReadinessResponse,
    MintOperationResponse,
)
from app.economy.eligibility.types import Eligibility
from app.economy.forge.types import ForgeOperationView, ForgeReadiness
from app.economy.mint.types import MintOperationView


def eligibility_response(eligibility: Eligibility) -> EligibilityResponse:
    return EligibilityResponse(
        eligibility_id=eligibility.eligibility_id,
        category_code=eligibility.category_code,
        season_id=eligibility.season_id,
        status=eligibility.status.value,
        window_minutes=eligibility.window_minutes,
        created_at=eligibility.created_at,
        expires_at=eligibility.expires_at,
        used_at=eligibility.used_at,
        transferred_from=eligibility.transferred_from,
    )


def mint_operation_response(operation: MintOperationView) -> MintOperationResponse:
    return MintOperationResponse(
        operation_id=operation.operation_id,
        eligibility_id=operation.eligibility_id,
        catalog_item_id=operation.catalog_item_id,
        status=operation.status.value,
        stage=operation.stage,
        tx_ref=operation.tx_ref,
        asset_ref=operation.asset_ref,
        attempts=operation.attempts,
        last_error=operation.last_error,
        created_at=operation.created_at,
        updated_at=operation.updated_at,
        confirmed_at=operation.confirmed_at,
        failed_at=operation.failed_at,
    )


def forge_readiness_response(readiness: ForgeReadiness) -> ForgeReadinessResponse:
    return ForgeReadinessResponse(
        forge_type=readiness.forge_type.value,
        ready=readiness.ready,
        required=readiness.required,
        have=readiness.have,
        category_code=readiness.category_code,
        season_id=readiness.season_id,
    )


def forge_operation_response(operation: ForgeOperationView) -> ForgeOperationResponse:
    return ForgeOperationResponse(
        operation_id=operation.operation_id,
        forge_type=operation.forge_type.value,
        category_code=operation.category_code,
        season_id=operation.season_id,
        output_tier=operation.output_tier.value,
        input_item_ids=operation.input_item_ids,
        status=operation.status,
        stage=operation.stage,
        failure_kind=operation.failure_kind.value if operation.failure_kind is not None else None,
        burn_tx_ref=operation.burn_tx_ref,
        mint_tx_ref=operation.mint_tx_ref,
        output_item_id=operation.output_item_id,
        last_error=operation.last_error,
        created_at=operation.created_at,
        updated_at=operation.updated_at,
        completed_at=operation.completed_at,
    )
