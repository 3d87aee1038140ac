from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from sqlalchemy.engine import make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
COMPOSE_POSTGRES_HOSTS = frozenset({"postgres", "trivia_forge_postgres"})
COMPOSE_REDIS_HOSTS = frozenset({"redis", "trivia_forge_redis"})


@dataclass(frozen=True, slots=True)
class IntegrationTargetCheck:
    backend: str
    is_safe: bool
    reason: str
    target: str
    host: str


def _reject(backend: str, reason: str, *, target: str, host: str) -> IntegrationTargetCheck:
    return IntegrationTargetCheck(backend=backend, is_safe=False, reason=reason, target=target, host=host)


def check_postgres_target(database_url: str) -> IntegrationTargetCheck:
    """Integration tests TRUNCATE every table, so only a local database named as a test DB passes."""
    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    if parsed.get_backend_name() != "postgresql":
        return _reject("postgres", "only PostgreSQL test databases are supported", target=db_name, host=host)
    if not db_name:
        return _reject("postgres", "database name is empty", target=db_name, host=host)
    if TEST_DB_NAME_RE.search(db_name) is None:
        return _reject("postgres", "database name must contain 'test'", target=db_name, host=host)
    if host not in LOCAL_HOSTS | COMPOSE_POSTGRES_HOSTS:
        return _reject("postgres", "host is not a local integration host", target=db_name, host=host)
    return IntegrationTargetCheck(backend="postgres", is_safe=True, reason="ok", target=db_name, host=host)


def check_redis_target(redis_url: str) -> IntegrationTargetCheck:
    """Session locks and daily counters live in db 0; integration runs must use another index."""
    parsed = urlsplit(redis_url)
    host = (parsed.hostname or "").strip().lower()
    db_index = parsed.path.lstrip("/") or "0"

    if parsed.scheme not in {"redis", "rediss"}:
        return _reject("redis", "only redis:// URLs are supported", target=db_index, host=host)
    if not db_index.isdigit() or int(db_index) == 0:
        return _reject("redis", "db index must be a non-zero number", target=db_index, host=host)
    if host not in LOCAL_HOSTS | COMPOSE_REDIS_HOSTS:
        return _reject("redis", "host is not a local integration host", target=db_index, host=host)
    return IntegrationTargetCheck(backend="redis", is_safe=True, reason="ok", target=db_index, host=host)


def assert_safe_integration_targets(*, database_url: str, redis_url: str) -> None:
    failures = [
        check
        for check in (check_postgres_target(database_url), check_redis_target(redis_url))
        if not check.is_safe
    ]
    if not failures:
        return

    details = "\n".join(
        f"- {check.backend}: {check.reason} (target='{check.target}' host='{check.host}')" for check in failures
    )
    raise RuntimeError(
        "Refusing to run destructive integration tests.\n"
        f"{details}\n"
        "Use a local 'trivia_forge_test' database and a non-zero Redis db, e.g. redis://localhost:6379/15."
    )
