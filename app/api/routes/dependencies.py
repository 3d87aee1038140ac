from __future__ import annotations

from functools import lru_cache

from fastapi import Header, HTTPException
from redis.asyncio import Redis

from app.core.identity import Identity, IdentityKind
from app.core.rate_lock_store import RateLockStore, RedisRateLockStore, build_redis_client
from app.game.sessions.state_store import RedisSessionStateStore, SessionStateStore

IDENTITY_KEY_MAX_LENGTH = 128


def get_identity(
    x_identity_key: str | None = Header(default=None),
    x_identity_kind: str = Header(default="guest"),
) -> Identity:
    key = (x_identity_key or "").strip()
    if not key or len(key) > IDENTITY_KEY_MAX_LENGTH:
        raise HTTPException(status_code=401, detail={"code": "E_IDENTITY_REQUIRED"})
    try:
        kind = IdentityKind(x_identity_kind.strip().upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"code": "E_IDENTITY_KIND_INVALID"}) from exc
    return Identity(key=key, kind=kind)


@lru_cache
def _redis_client() -> Redis:
    return build_redis_client()


def get_rate_lock_store() -> RateLockStore:
    return RedisRateLockStore(_redis_client())


def get_session_state_store() -> SessionStateStore:
    return RedisSessionStateStore(_redis_client())
