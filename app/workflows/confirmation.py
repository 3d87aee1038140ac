from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from app.services.blockchain_gateway import BlockchainGateway, TxStatus
from app.workflows.errors import ConfirmationExhaustedError, TransactionFailedError, TransientGatewayError

logger = structlog.get_logger(__name__)


async def wait_for_confirmation(
    gateway: BlockchainGateway,
    tx_ref: str,
    *,
    interval_seconds: float,
    max_polls: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    for poll in range(1, max_polls + 1):
        try:
            status = await gateway.status(tx_ref)
        except TransientGatewayError as exc:
            logger.warning("tx_status_poll_failed", tx_ref=tx_ref, poll=poll, error=str(exc))
            status = TxStatus.PENDING
        if status == TxStatus.CONFIRMED:
            logger.info("tx_confirmed", tx_ref=tx_ref, polls=poll)
            return
        if status == TxStatus.FAILED:
            raise TransactionFailedError(tx_ref)
        if poll < max_polls:
            await sleep(interval_seconds)
    raise ConfirmationExhaustedError(tx_ref, max_polls)
