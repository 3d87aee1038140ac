from __future__ import annotations

import pytest
from sqlalchemy import text

from app.core.config import get_settings
from app.core.integration_safety import assert_safe_integration_targets
from app.db.session import engine

TRUNCATE_TABLES = (
    "question_flags",
    "leaderboard_snapshots",
    "season_points",
    "owned_items",
    "forge_operations",
    "mint_operations",
    "catalog_items",
    "mint_eligibilities",
    "quiz_attempts",
    "quiz_sessions",
    "seasons",
    "quiz_questions",
    "quiz_categories",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} RESTART IDENTITY CASCADE"


@pytest.fixture(scope="session", autouse=True)
def guard_integration_targets() -> None:
    assert_safe_integration_targets(
        database_url=engine.url.render_as_string(hide_password=False),
        redis_url=get_settings().redis_url,
    )


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # Dispose pooled connections between tests to avoid cross-event-loop asyncpg reuse.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
