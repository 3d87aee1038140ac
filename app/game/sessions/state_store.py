from __future__ import annotations

import json
from dataclasses import asdict
from datetime import date, datetime
from typing import Protocol
from uuid import UUID

from redis.asyncio import Redis

from app.core.identity import IdentityKind
from app.game.sessions.types import RecordedAnswer, ServedQuestion, SessionState

ACTIVE_SESSIONS_KEY = "sessions:active"
STATE_TTL_SLACK_SECONDS = 600


def session_state_key(session_id: UUID | str) -> str:
    return f"session:{session_id}"


def answer_mutex_key(session_id: UUID | str) -> str:
    return f"lock:answer:{session_id}"


def _encode_meta(state: SessionState) -> str:
    return json.dumps(
        {
            "session_id": str(state.session_id),
            "identity_key": state.identity_key,
            "identity_kind": state.identity_kind.value,
            "category_code": state.category_code,
            "day_key": state.day_key.isoformat(),
            "started_at": state.started_at.isoformat(),
            "deadline_at": state.deadline_at.isoformat(),
            "timer_seconds": state.timer_seconds,
            "answer_grace_ms": state.answer_grace_ms,
            "questions": [asdict(question) for question in state.questions],
        },
        separators=(",", ":"),
    )


def _encode_answer(answer: RecordedAnswer) -> str:
    payload = asdict(answer)
    payload["served_at"] = answer.served_at.isoformat()
    payload["answered_at"] = answer.answered_at.isoformat()
    return json.dumps(payload, separators=(",", ":"))


def _decode_answer(raw: str) -> RecordedAnswer:
    payload = json.loads(raw)
    payload["served_at"] = datetime.fromisoformat(payload["served_at"])
    payload["answered_at"] = datetime.fromisoformat(payload["answered_at"])
    return RecordedAnswer(**payload)


def decode_state(fields: dict[str, str]) -> SessionState | None:
    raw_meta = fields.get("meta")
    if raw_meta is None:
        return None
    meta = json.loads(raw_meta)
    state = SessionState(
        session_id=UUID(meta["session_id"]),
        identity_key=meta["identity_key"],
        identity_kind=IdentityKind(meta["identity_kind"]),
        category_code=meta["category_code"],
        day_key=date.fromisoformat(meta["day_key"]),
        started_at=datetime.fromisoformat(meta["started_at"]),
        deadline_at=datetime.fromisoformat(meta["deadline_at"]),
        timer_seconds=int(meta["timer_seconds"]),
        answer_grace_ms=int(meta["answer_grace_ms"]),
        questions=[ServedQuestion(**question) for question in meta["questions"]],
    )
    for field_name, value in fields.items():
        if field_name.startswith("served:"):
            state.served_at[int(field_name.split(":", 1)[1])] = datetime.fromisoformat(value)
        elif field_name.startswith("answer:"):
            answer = _decode_answer(value)
            state.answers[answer.question_index] = answer
    return state


def encode_state(state: SessionState) -> dict[str, str]:
    fields = {"meta": _encode_meta(state)}
    for index, served_at in state.served_at.items():
        fields[f"served:{index}"] = served_at.isoformat()
    for index, answer in state.answers.items():
        fields[f"answer:{index}"] = _encode_answer(answer)
    return fields


class SessionStateStore(Protocol):
    async def save(self, state: SessionState, *, ttl_seconds: int) -> None: ...

    async def load(self, session_id: UUID) -> SessionState | None: ...

    async def record_answer(self, session_id: UUID, answer: RecordedAnswer) -> bool: ...

    async def delete(self, session_id: UUID) -> None: ...

    async def track(self, session_id: UUID, *, deadline_at: datetime) -> None: ...

    async def due_session_ids(self, now_utc: datetime, *, limit: int) -> list[UUID]: ...


class RedisSessionStateStore:
    """Transient session progress kept in one Redis hash per session.

    Answers are written with HSETNX so an index can be recorded once; the
    durable copy lives in quiz_sessions/quiz_attempts after the first answer.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def save(self, state: SessionState, *, ttl_seconds: int) -> None:
        key = session_state_key(state.session_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=encode_state(state))
            pipe.expire(key, ttl_seconds)
            await pipe.execute()

    async def load(self, session_id: UUID) -> SessionState | None:
        raw = await self._client.hgetall(session_state_key(session_id))
        if not raw:
            return None
        fields = {
            (name.decode() if isinstance(name, bytes) else name): (
                value.decode() if isinstance(value, bytes) else value
            )
            for name, value in raw.items()
        }
        return decode_state(fields)

    async def record_answer(self, session_id: UUID, answer: RecordedAnswer) -> bool:
        key = session_state_key(session_id)
        created = await self._client.hsetnx(key, f"answer:{answer.question_index}", _encode_answer(answer))
        if created:
            await self._client.hsetnx(
                key,
                f"served:{answer.question_index + 1}",
                answer.answered_at.isoformat(),
            )
        return bool(created)

    async def delete(self, session_id: UUID) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(session_state_key(session_id))
            pipe.zrem(ACTIVE_SESSIONS_KEY, str(session_id))
            await pipe.execute()

    async def track(self, session_id: UUID, *, deadline_at: datetime) -> None:
        await self._client.zadd(ACTIVE_SESSIONS_KEY, {str(session_id): deadline_at.timestamp()})

    async def due_session_ids(self, now_utc: datetime, *, limit: int) -> list[UUID]:
        members = await self._client.zrangebyscore(
            ACTIVE_SESSIONS_KEY,
            "-inf",
            now_utc.timestamp(),
            start=0,
            num=max(1, limit),
        )
        return [UUID(member.decode() if isinstance(member, bytes) else member) for member in members]
