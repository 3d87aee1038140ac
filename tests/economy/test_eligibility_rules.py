from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.core.identity import IdentityKind
from app.economy.eligibility.rules import (
    eligibility_expires_at,
    eligibility_window_minutes,
    is_expired,
    is_transferable,
)
from tests.game.session_fakes import make_settings

UTC = timezone.utc
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def test_window_depends_on_identity_kind() -> None:
    settings = make_settings(eligibility_window_connected_minutes=60, eligibility_window_guest_minutes=25)

    assert eligibility_window_minutes(IdentityKind.CONNECTED, settings) == 60
    assert eligibility_window_minutes(IdentityKind.GUEST, settings) == 25


def test_expiry_boundary_is_inclusive() -> None:
    expires_at = eligibility_expires_at(NOW, 25)

    assert expires_at == NOW + timedelta(minutes=25)
    assert is_expired(expires_at, expires_at - timedelta(microseconds=1)) is False
    assert is_expired(expires_at, expires_at) is True


def test_transfer_requires_live_grant_inside_guest_window() -> None:
    expires_at = NOW + timedelta(minutes=60)

    assert is_transferable(
        created_at=NOW,
        expires_at=expires_at,
        now_utc=NOW + timedelta(minutes=24),
        transfer_window_minutes=25,
    )
    assert not is_transferable(
        created_at=NOW,
        expires_at=expires_at,
        now_utc=NOW + timedelta(minutes=25),
        transfer_window_minutes=25,
    )
    assert not is_transferable(
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=10),
        now_utc=NOW + timedelta(minutes=10),
        transfer_window_minutes=25,
    )
