from __future__ import annotations

from datetime import date, datetime

import structlog

from app.core.game_settings import GameSettings, get_game_settings
from app.core.identity import Identity, IdentityKind
from app.core.rate_lock_store import RateLockStore
from app.db.session import SessionLocal
from app.economy.eligibility.errors import TransferWindowClosedError, WalletRequiredError
from app.economy.eligibility.service import EligibilityService
from app.economy.eligibility.types import TransferResult
from app.game.sessions.rules import session_day_key

logger = structlog.get_logger(__name__)


async def link_guest_to_wallet(
    *,
    lock_store: RateLockStore,
    guest: Identity,
    wallet: Identity,
    now_utc: datetime,
    settings: GameSettings | None = None,
) -> TransferResult:
    """Re-keys a guest onto a wallet identity.

    Today's session count moves once the eligibility transfer has committed,
    and also when every guest eligibility is past its transfer window; the
    wallet keeps its own count when that transaction fails for any other
    reason. The wallet never ends above the connected daily cap.
    """
    if wallet.kind != IdentityKind.CONNECTED or guest.kind != IdentityKind.GUEST:
        raise WalletRequiredError

    settings = settings or get_game_settings()
    day_key = session_day_key(
        now_utc,
        timezone_name=settings.daily_reset_timezone,
        reset_hour=settings.daily_reset_hour,
    )

    try:
        async with SessionLocal.begin() as session:
            result = await EligibilityService.transfer(
                session,
                guest=guest,
                wallet=wallet,
                now_utc=now_utc,
                settings=settings,
            )
    except TransferWindowClosedError as exc:
        exc.carried_daily_count = await _carry_daily_count(lock_store, guest, wallet, day_key, settings)
        raise

    result.carried_daily_count = await _carry_daily_count(lock_store, guest, wallet, day_key, settings)
    logger.info(
        "guest_linked_to_wallet",
        guest_key=guest.key,
        wallet_key=wallet.key,
        moved=len(result.moved),
        carried_daily_count=result.carried_daily_count,
    )
    return result


async def _carry_daily_count(
    lock_store: RateLockStore,
    guest: Identity,
    wallet: Identity,
    day_key: date,
    settings: GameSettings,
) -> int:
    return await lock_store.carry_daily_count(
        guest.key,
        wallet.key,
        day_key=day_key,
        daily_cap=settings.daily_sessions_connected,
    )
