from __future__ import annotations

from datetime import datetime, timedelta

from app.core.game_settings import GameSettings
from app.core.identity import IdentityKind


def eligibility_window_minutes(kind: IdentityKind, settings: GameSettings) -> int:
    if kind == IdentityKind.CONNECTED:
        return settings.eligibility_window_connected_minutes
    return settings.eligibility_window_guest_minutes


def eligibility_expires_at(created_at: datetime, window_minutes: int) -> datetime:
    return created_at + timedelta(minutes=window_minutes)


def is_expired(expires_at: datetime, now_utc: datetime) -> bool:
    return expires_at <= now_utc


def is_transferable(
    *,
    created_at: datetime,
    expires_at: datetime,
    now_utc: datetime,
    transfer_window_minutes: int,
) -> bool:
    """Guest rights move only within the guest window of their grant."""
    if is_expired(expires_at, now_utc):
        return False
    return now_utc < created_at + timedelta(minutes=transfer_window_minutes)
