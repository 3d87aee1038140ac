from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Protocol

import structlog
from redis.asyncio import Redis

from app.core.config import get_settings

logger = structlog.get_logger(__name__)

DAY_KEY_TTL_SECONDS = 48 * 60 * 60


class AdmissionOutcome(str, Enum):
    ADMITTED = "ADMITTED"
    ALREADY_ACTIVE = "ALREADY_ACTIVE"
    ON_COOLDOWN = "ON_COOLDOWN"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"


@dataclass(slots=True)
class AdmissionDecision:
    outcome: AdmissionOutcome
    daily_count: int = 0
    retry_after_seconds: int = 0


def session_lock_key(identity_key: str) -> str:
    return f"lock:session:{identity_key}"


def daily_counter_key(identity_key: str, day_key: date) -> str:
    return f"limit:daily:{identity_key}:{day_key.isoformat()}"


def cooldown_key(identity_key: str) -> str:
    return f"cooldown:{identity_key}"


def seen_questions_key(identity_key: str, category_code: str, day_key: date) -> str:
    return f"seen:{identity_key}:{category_code}:{day_key.isoformat()}"


class RateLockStore(Protocol):
    async def try_admit(
        self,
        identity_key: str,
        *,
        session_id: str,
        day_key: date,
        daily_cap: int,
        lock_ttl_seconds: int,
        counter_ttl_seconds: int = DAY_KEY_TTL_SECONDS,
    ) -> AdmissionDecision: ...

    async def abort_admission(self, identity_key: str, *, session_id: str, day_key: date) -> bool: ...

    async def release_session(
        self,
        identity_key: str,
        *,
        session_id: str,
        cooldown_seconds: int,
        now_utc: datetime,
    ) -> bool: ...

    async def get_active_session_id(self, identity_key: str) -> str | None: ...

    async def get_daily_count(self, identity_key: str, day_key: date) -> int: ...

    async def get_cooldown_remaining(self, identity_key: str) -> int: ...

    async def add_seen_questions(
        self,
        identity_key: str,
        *,
        category_code: str,
        day_key: date,
        question_ids: list[str],
    ) -> None: ...

    async def get_seen_questions(self, identity_key: str, *, category_code: str, day_key: date) -> set[str]: ...

    async def carry_daily_count(
        self,
        from_identity: str,
        to_identity: str,
        *,
        day_key: date,
        daily_cap: int,
    ) -> int: ...

    async def acquire_mutex(self, name: str, *, token: str, ttl_ms: int) -> bool: ...

    async def release_mutex(self, name: str, *, token: str) -> bool: ...

    async def reset_daily_keys(self, day_key: date) -> int: ...


class RedisRateLockStore:
    # KEYS: lock, daily counter, cooldown
    # ARGV: session id, lock ttl, daily cap, counter ttl
    # Returns {code, value}: 0 admitted (value=new count), 1 already active,
    # 2 on cooldown (value=ttl), 3 daily limit reached (value=count).
    _LUA_ADMIT = """
    if redis.call('EXISTS', KEYS[1]) == 1 then
      return {1, 0}
    end
    local count = tonumber(redis.call('GET', KEYS[2]) or '0')
    if count > 0 then
      local cooldown_ttl = redis.call('TTL', KEYS[3])
      if cooldown_ttl > 0 then
        return {2, cooldown_ttl}
      end
    end
    if count >= tonumber(ARGV[3]) then
      return {3, count}
    end
    redis.call('SET', KEYS[1], ARGV[1], 'EX', tonumber(ARGV[2]))
    count = redis.call('INCR', KEYS[2])
    if redis.call('TTL', KEYS[2]) < 0 then
      redis.call('EXPIRE', KEYS[2], tonumber(ARGV[4]))
    end
    return {0, count}
    """

    # KEYS: lock, daily counter. ARGV: session id
    _LUA_ABORT = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
      redis.call('DEL', KEYS[1])
      local count = tonumber(redis.call('GET', KEYS[2]) or '0')
      if count > 0 then
        redis.call('DECR', KEYS[2])
      end
      return 1
    end
    return 0
    """

    # KEYS: lock, cooldown. ARGV: session id, cooldown seconds, cooldown marker
    _LUA_RELEASE = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
      redis.call('DEL', KEYS[1])
      if tonumber(ARGV[2]) > 0 then
        redis.call('SET', KEYS[2], ARGV[3], 'EX', tonumber(ARGV[2]))
      end
      return 1
    end
    return 0
    """

    # KEYS: source counter, target counter. ARGV: target ttl, target daily cap
    # The target never ends above its cap; the source is cleared either way.
    _LUA_CARRY = """
    local moved = tonumber(redis.call('GET', KEYS[1]) or '0')
    if moved > 0 then
      local current = tonumber(redis.call('GET', KEYS[2]) or '0')
      local cap = tonumber(ARGV[2])
      redis.call('SET', KEYS[2], math.max(current, math.min(cap, current + moved)), 'KEEPTTL')
      if redis.call('TTL', KEYS[2]) < 0 then
        redis.call('EXPIRE', KEYS[2], tonumber(ARGV[1]))
      end
      redis.call('DEL', KEYS[1])
    end
    return moved
    """

    _LUA_COMPARE_AND_DELETE = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
      return redis.call('DEL', KEYS[1])
    end
    return 0
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def try_admit(
        self,
        identity_key: str,
        *,
        session_id: str,
        day_key: date,
        daily_cap: int,
        lock_ttl_seconds: int,
        counter_ttl_seconds: int = DAY_KEY_TTL_SECONDS,
    ) -> AdmissionDecision:
        code, value = await self._client.eval(  # type: ignore[misc]
            self._LUA_ADMIT,
            3,
            session_lock_key(identity_key),
            daily_counter_key(identity_key, day_key),
            cooldown_key(identity_key),
            session_id,
            lock_ttl_seconds,
            daily_cap,
            counter_ttl_seconds,
        )
        code = int(code)
        value = int(value)
        if code == 0:
            return AdmissionDecision(outcome=AdmissionOutcome.ADMITTED, daily_count=value)
        if code == 1:
            return AdmissionDecision(outcome=AdmissionOutcome.ALREADY_ACTIVE)
        if code == 2:
            return AdmissionDecision(outcome=AdmissionOutcome.ON_COOLDOWN, retry_after_seconds=value)
        return AdmissionDecision(outcome=AdmissionOutcome.DAILY_LIMIT_REACHED, daily_count=value)

    async def abort_admission(self, identity_key: str, *, session_id: str, day_key: date) -> bool:
        released = await self._client.eval(  # type: ignore[misc]
            self._LUA_ABORT,
            2,
            session_lock_key(identity_key),
            daily_counter_key(identity_key, day_key),
            session_id,
        )
        return int(released) == 1

    async def release_session(
        self,
        identity_key: str,
        *,
        session_id: str,
        cooldown_seconds: int,
        now_utc: datetime,
    ) -> bool:
        released = await self._client.eval(  # type: ignore[misc]
            self._LUA_RELEASE,
            2,
            session_lock_key(identity_key),
            cooldown_key(identity_key),
            session_id,
            cooldown_seconds,
            now_utc.isoformat(),
        )
        return int(released) == 1

    async def get_active_session_id(self, identity_key: str) -> str | None:
        raw = await self._client.get(session_lock_key(identity_key))
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else str(raw)

    async def get_daily_count(self, identity_key: str, day_key: date) -> int:
        raw = await self._client.get(daily_counter_key(identity_key, day_key))
        return int(raw) if raw is not None else 0

    async def get_cooldown_remaining(self, identity_key: str) -> int:
        ttl = await self._client.ttl(cooldown_key(identity_key))
        return max(0, int(ttl))

    async def add_seen_questions(
        self,
        identity_key: str,
        *,
        category_code: str,
        day_key: date,
        question_ids: list[str],
    ) -> None:
        if not question_ids:
            return
        key = seen_questions_key(identity_key, category_code, day_key)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.sadd(key, *question_ids)
            pipe.expire(key, DAY_KEY_TTL_SECONDS)
            await pipe.execute()

    async def get_seen_questions(self, identity_key: str, *, category_code: str, day_key: date) -> set[str]:
        members = await self._client.smembers(seen_questions_key(identity_key, category_code, day_key))
        return {member.decode() if isinstance(member, bytes) else str(member) for member in members}

    async def carry_daily_count(
        self,
        from_identity: str,
        to_identity: str,
        *,
        day_key: date,
        daily_cap: int,
    ) -> int:
        moved = await self._client.eval(  # type: ignore[misc]
            self._LUA_CARRY,
            2,
            daily_counter_key(from_identity, day_key),
            daily_counter_key(to_identity, day_key),
            DAY_KEY_TTL_SECONDS,
            daily_cap,
        )
        return int(moved)

    async def acquire_mutex(self, name: str, *, token: str, ttl_ms: int) -> bool:
        acquired = await self._client.set(name, token, nx=True, px=ttl_ms)
        return bool(acquired)

    async def release_mutex(self, name: str, *, token: str) -> bool:
        released = await self._client.eval(  # type: ignore[misc]
            self._LUA_COMPARE_AND_DELETE,
            1,
            name,
            token,
        )
        return int(released) == 1

    async def reset_daily_keys(self, day_key: date) -> int:
        deleted = 0
        suffix = day_key.isoformat()
        for pattern in (f"limit:daily:*:{suffix}", f"seen:*:*:{suffix}"):
            batch: list[bytes | str] = []
            async for key in self._client.scan_iter(match=pattern, count=500):
                batch.append(key)
                if len(batch) >= 500:
                    deleted += int(await self._client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(await self._client.delete(*batch))
        logger.info("daily_keys_reset", day_key=suffix, deleted=deleted)
        return deleted


def build_redis_client() -> Redis:
    return Redis.from_url(get_settings().redis_url)
