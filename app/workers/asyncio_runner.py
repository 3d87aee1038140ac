from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")


async def _run_job(awaitable: Awaitable[T], log_context: dict[str, object]) -> T:
    # asyncpg connections are bound to the loop that opened them; each job gets a fresh loop and pool.
    await dispose_engine()
    try:
        with structlog.contextvars.bound_contextvars(**log_context):
            return await awaitable
    finally:
        await dispose_engine()


def run_async_job(awaitable: Awaitable[T], **log_context: object) -> T:
    """Runs one task body on its own event loop; `log_context` is bound to every log line it emits."""
    return asyncio.run(_run_job(awaitable, log_context))
