from __future__ import annotations

from contextlib import asynccontextmanager
from types import SimpleNamespace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.api.routes import dependencies
from app.api.routes import eligibilities as eligibility_routes
from app.api.routes import forge as forge_routes
from app.api.routes import leaderboard as leaderboard_routes
from app.api.routes import mint as mint_routes
from app.api.routes import questions as question_routes
from app.economy.catalog.errors import NoStockAvailableError
from app.economy.eligibility.errors import (
    EligibilityExpiredError,
    TransferWindowClosedError,
    WalletRequiredError,
)
from app.economy.eligibility.types import Eligibility, EligibilityStatus, TransferResult
from app.economy.forge.errors import ForgeNotReadyError
from app.economy.forge.types import ForgeOperationView, ForgeType, ItemTier
from app.economy.mint.types import MintInitiation, MintOperationView, OperationStatus
from app.game.leaderboard.types import LeaderboardEntry, LeaderboardPage, RankedEntry
from app.game.questions.errors import QuestionNotFoundError
from app.game.questions.flags import QuestionFlagResult
from app.main import app
from tests.game.session_fakes import FakeRateLockStore

UTC = timezone.utc
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
WALLET_HEADERS = {"X-Identity-Key": "addr_test1wallet", "X-Identity-Kind": "connected"}
GUEST_HEADERS = {"X-Identity-Key": "guest-abc"}


class _FakeSessionLocal:
    @asynccontextmanager
    async def begin(self):  # noqa: ANN201
        yield object()


def _eligibility(**overrides: object) -> Eligibility:
    values: dict[str, object] = {
        "eligibility_id": uuid4(),
        "identity_key": WALLET_HEADERS["X-Identity-Key"],
        "identity_kind": "CONNECTED",
        "category_code": "science",
        "season_id": "S20260101",
        "source_session_id": uuid4(),
        "status": EligibilityStatus.ACTIVE,
        "window_minutes": 60,
        "created_at": NOW,
        "expires_at": NOW + timedelta(minutes=60),
    }
    values.update(overrides)
    return Eligibility(**values)  # type: ignore[arg-type]


def _mint_operation(status: OperationStatus = OperationStatus.PENDING) -> MintOperationView:
    return MintOperationView(
        operation_id=uuid4(),
        eligibility_id=uuid4(),
        identity_key=WALLET_HEADERS["X-Identity-Key"],
        catalog_item_id=uuid4(),
        status=status,
        stage="created",
        tx_ref=None,
        asset_ref=None,
        attempts=0,
        last_error=None,
        created_at=NOW,
        updated_at=NOW,
    )


def _forge_operation() -> ForgeOperationView:
    return ForgeOperationView(
        operation_id=uuid4(),
        identity_key=WALLET_HEADERS["X-Identity-Key"],
        forge_type=ForgeType.CATEGORY,
        category_code="science",
        season_id=None,
        output_tier=ItemTier.ULTIMATE,
        input_item_ids=[uuid4() for _ in range(3)],
        status="PENDING",
        stage="created",
        failure_kind=None,
        burn_tx_ref=None,
        mint_tx_ref=None,
        output_item_id=None,
        last_error=None,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def enqueued(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str]]:
    calls: list[tuple[str, str]] = []
    for module in (eligibility_routes, mint_routes, forge_routes, leaderboard_routes, question_routes):
        monkeypatch.setattr(module, "SessionLocal", _FakeSessionLocal())
    monkeypatch.setattr(
        mint_routes,
        "enqueue_mint_workflow",
        lambda *, operation_id: calls.append(("mint", operation_id)) or True,
    )
    monkeypatch.setattr(
        forge_routes,
        "enqueue_forge_workflow",
        lambda *, operation_id: calls.append(("forge", operation_id)) or True,
    )
    return calls


@pytest.fixture
def client(enqueued: list[tuple[str, str]]) -> TestClient:
    return TestClient(app)


def test_list_eligibilities_filters_by_status(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    captured: dict[str, object] = {}
    item = _eligibility()

    async def fake_list(session, *, identity, status, limit):  # noqa: ANN001
        captured.update(identity_key=identity.key, status=status, limit=limit)
        return [item]

    monkeypatch.setattr(eligibility_routes.EligibilityService, "list_for_identity", fake_list)

    response = client.get("/v1/eligibilities?status=ACTIVE&limit=10", headers=WALLET_HEADERS)

    assert response.status_code == 200
    assert response.json()["items"][0]["eligibility_id"] == str(item.eligibility_id)
    assert captured == {"identity_key": "addr_test1wallet", "status": EligibilityStatus.ACTIVE, "limit": 10}


def test_mint_claim_creates_operation_and_enqueues(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
    enqueued: list[tuple[str, str]],
) -> None:
    operation = _mint_operation()

    async def fake_initiate(session, *, identity, eligibility_id, now_utc):  # noqa: ANN001
        return MintInitiation(operation=operation, created=True)

    monkeypatch.setattr(mint_routes.MintService, "initiate_mint", fake_initiate)

    response = client.post(f"/v1/eligibilities/{uuid4()}/mint", headers=WALLET_HEADERS)

    assert response.status_code == 202
    assert response.json()["operation_id"] == str(operation.operation_id)
    assert enqueued == [("mint", str(operation.operation_id))]


def test_repeated_mint_claim_returns_existing_operation(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
    enqueued: list[tuple[str, str]],
) -> None:
    operation = _mint_operation(OperationStatus.CONFIRMED)

    async def fake_initiate(session, *, identity, eligibility_id, now_utc):  # noqa: ANN001
        return MintInitiation(operation=operation, created=False)

    monkeypatch.setattr(mint_routes.MintService, "initiate_mint", fake_initiate)

    response = client.post(f"/v1/eligibilities/{uuid4()}/mint", headers=WALLET_HEADERS)

    assert response.status_code == 200
    assert response.json()["status"] == "CONFIRMED"
    assert enqueued == []


@pytest.mark.parametrize(
    ("error", "status_code", "code"),
    [
        (EligibilityExpiredError(), 410, "E_ELIGIBILITY_EXPIRED"),
        (WalletRequiredError(), 403, "E_WALLET_REQUIRED"),
        (NoStockAvailableError("science"), 409, "E_NO_STOCK"),
    ],
)
def test_mint_claim_errors_map_to_codes(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
    error: Exception,
    status_code: int,
    code: str,
) -> None:
    async def fake_initiate(session, *, identity, eligibility_id, now_utc):  # noqa: ANN001
        raise error

    monkeypatch.setattr(mint_routes.MintService, "initiate_mint", fake_initiate)

    response = client.post(f"/v1/eligibilities/{uuid4()}/mint", headers=GUEST_HEADERS)

    assert response.status_code == status_code
    assert response.json()["detail"] == {"code": code}


def test_link_wallet_moves_guest_rights(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    lock_store = FakeRateLockStore()
    captured: dict[str, object] = {}
    moved = _eligibility(transferred_from="guest-abc")
    lapsed = uuid4()

    async def fake_link(*, lock_store, guest, wallet, now_utc):  # noqa: ANN001
        captured.update(guest=guest.key, guest_kind=guest.kind.value, wallet=wallet.key, wallet_kind=wallet.kind.value)
        return TransferResult(moved=[moved], left_to_lapse=[lapsed], carried_daily_count=2)

    monkeypatch.setattr(eligibility_routes, "link_guest_to_wallet", fake_link)
    app.dependency_overrides[dependencies.get_rate_lock_store] = lambda: lock_store
    try:
        response = client.post(
            "/v1/identity/link-wallet",
            json={"wallet_address": " addr_test1wallet "},
            headers=GUEST_HEADERS,
        )
    finally:
        app.dependency_overrides.clear()

    payload = response.json()
    assert response.status_code == 200
    assert captured == {
        "guest": "guest-abc",
        "guest_kind": "GUEST",
        "wallet": "addr_test1wallet",
        "wallet_kind": "CONNECTED",
    }
    assert payload["moved"][0]["transferred_from"] == "guest-abc"
    assert payload["left_to_lapse"] == [str(lapsed)]
    assert payload["carried_daily_count"] == 2


def test_link_wallet_after_window_reports_carried_count(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    async def fake_link(*, lock_store, guest, wallet, now_utc):  # noqa: ANN001
        raise TransferWindowClosedError(carried_daily_count=3)

    monkeypatch.setattr(eligibility_routes, "link_guest_to_wallet", fake_link)
    app.dependency_overrides[dependencies.get_rate_lock_store] = lambda: FakeRateLockStore()
    try:
        response = client.post(
            "/v1/identity/link-wallet",
            json={"wallet_address": "addr_test1wallet"},
            headers=GUEST_HEADERS,
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 410
    assert response.json()["detail"] == {"code": "E_TRANSFER_WINDOW_CLOSED", "carried_daily_count": 3}


def test_forge_initiation_enqueues_workflow(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
    enqueued: list[tuple[str, str]],
) -> None:
    operation = _forge_operation()

    async def fake_initiate(session, *, identity, forge_type, now_utc, category_code, season_id):  # noqa: ANN001
        assert forge_type == ForgeType.CATEGORY
        assert category_code == "science"
        return operation

    monkeypatch.setattr(forge_routes.ForgeService, "initiate_forge", fake_initiate)

    response = client.post(
        "/v1/forge",
        json={"forge_type": "CATEGORY", "category_code": "science"},
        headers=WALLET_HEADERS,
    )

    assert response.status_code == 202
    assert response.json()["output_tier"] == "ULTIMATE"
    assert enqueued == [("forge", str(operation.operation_id))]


def test_forge_not_ready_is_conflict(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    async def fake_initiate(session, **kwargs):  # noqa: ANN001, ANN003
        raise ForgeNotReadyError

    monkeypatch.setattr(forge_routes.ForgeService, "initiate_forge", fake_initiate)

    response = client.post("/v1/forge", json={"forge_type": "MASTER"}, headers=WALLET_HEADERS)

    assert response.status_code == 409
    assert response.json()["detail"] == {"code": "E_FORGE_NOT_READY"}


def test_forge_rejects_unknown_forge_type(client: TestClient) -> None:
    response = client.post("/v1/forge", json={"forge_type": "LEGENDARY"}, headers=WALLET_HEADERS)

    assert response.status_code == 422


def test_leaderboard_includes_caller_rank(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    entry = LeaderboardEntry(
        identity_key="addr_test1wallet",
        points=42,
        items_minted=1,
        perfect_count=2,
        avg_response_ms=3100.0,
        sessions_used=6,
        first_achieved_at=NOW,
    )
    ranked = RankedEntry(rank=1, entry=entry)

    async def fake_page(session, *, season_id, limit, offset):  # noqa: ANN001
        return LeaderboardPage(season_id=season_id, source="live", limit=limit, offset=offset, entries=[ranked])

    async def fake_rank(session, *, season_id, identity_key):  # noqa: ANN001
        return ranked if identity_key == entry.identity_key else None

    monkeypatch.setattr(leaderboard_routes.LeaderboardService, "get_page", fake_page)
    monkeypatch.setattr(leaderboard_routes.LeaderboardService, "get_identity_rank", fake_rank)

    response = client.get("/v1/leaderboard?season_id=S20260101&limit=5", headers=WALLET_HEADERS)

    payload = response.json()
    assert response.status_code == 200
    assert payload["season_id"] == "S20260101"
    assert payload["entries"][0]["points"] == 42
    assert payload["me"]["rank"] == 1


def test_leaderboard_without_current_season_is_not_found(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
) -> None:
    async def no_season(session):  # noqa: ANN001
        return None

    monkeypatch.setattr(leaderboard_routes.SeasonService, "get_current_season", no_season)

    response = client.get("/v1/leaderboard")

    assert response.status_code == 404
    assert response.json()["detail"] == {"code": "E_SEASON_NOT_FOUND"}


def test_current_season_reports_grace_window(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    now_utc = datetime.now(UTC)
    season = SimpleNamespace(
        id="S20260101",
        name="Season 2026-01-01",
        starts_at=now_utc - timedelta(days=91),
        ends_at=now_utc - timedelta(days=1),
        grace_days=7,
        is_active=True,
    )

    async def current(session):  # noqa: ANN001
        return season

    monkeypatch.setattr(leaderboard_routes.SeasonService, "get_current_season", current)

    response = client.get("/v1/seasons/current")

    assert response.status_code == 200
    payload = response.json()
    assert payload["season_id"] == "S20260101"
    assert payload["in_grace"] is True
    assert payload["seasonal_forge_open"] is True


def test_category_leaderboard_uses_current_season(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    captured: dict[str, object] = {}
    entry = LeaderboardEntry(
        identity_key="addr_test1wallet",
        points=12,
        items_minted=0,
        perfect_count=1,
        avg_response_ms=None,
        sessions_used=2,
        first_achieved_at=NOW,
    )

    async def category(session, code):  # noqa: ANN001
        return SimpleNamespace(code=code)

    async def current(session):  # noqa: ANN001
        return SimpleNamespace(id="S20260101")

    async def fake_page(session, *, season_id, category_code, limit, offset):  # noqa: ANN001
        captured.update(season_id=season_id, category_code=category_code, limit=limit, offset=offset)
        return LeaderboardPage(
            season_id=season_id,
            source="category",
            limit=limit,
            offset=offset,
            entries=[RankedEntry(rank=1, entry=entry)],
            category_code=category_code,
        )

    monkeypatch.setattr(leaderboard_routes.QuizCategoriesRepo, "get_by_code", category)
    monkeypatch.setattr(leaderboard_routes.SeasonService, "get_current_season", current)
    monkeypatch.setattr(leaderboard_routes.LeaderboardService, "get_category_page", fake_page)

    response = client.get("/v1/leaderboard/categories/science?offset=20")

    payload = response.json()
    assert response.status_code == 200
    assert captured == {"season_id": "S20260101", "category_code": "science", "limit": 20, "offset": 20}
    assert payload["category_code"] == "science"
    assert payload["entries"][0]["points"] == 12
    assert payload["entries"][0]["avg_response_ms"] is None


def test_category_leaderboard_unknown_category_is_not_found(
    monkeypatch: pytest.MonkeyPatch,
    client: TestClient,
) -> None:
    async def missing(session, code):  # noqa: ANN001
        return None

    monkeypatch.setattr(leaderboard_routes.QuizCategoriesRepo, "get_by_code", missing)

    response = client.get("/v1/leaderboard/categories/nope")

    assert response.status_code == 404
    assert response.json()["detail"] == {"code": "E_UNKNOWN_CATEGORY"}


def test_flag_question_records_trimmed_reason(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    captured: dict[str, object] = {}
    flag_id = uuid4()

    async def fake_flag(session, *, identity, question_id, reason, now_utc):  # noqa: ANN001
        captured.update(identity=identity.key, question_id=question_id, reason=reason)
        return QuestionFlagResult(flag_id=flag_id, question_id=question_id, created=True)

    monkeypatch.setattr(question_routes.QuestionFlagService, "flag_question", fake_flag)

    response = client.post(
        "/v1/questions/science_001/flag",
        json={"reason": "  two options are correct  "},
        headers=GUEST_HEADERS,
    )

    assert response.status_code == 200
    assert response.json() == {"flag_id": str(flag_id), "question_id": "science_001", "created": True}
    assert captured == {"identity": "guest-abc", "question_id": "science_001", "reason": "two options are correct"}


@pytest.mark.parametrize("reason", ["", "   ", "x" * 1001])
def test_flag_question_rejects_blank_or_oversized_reason(client: TestClient, reason: str) -> None:
    response = client.post("/v1/questions/science_001/flag", json={"reason": reason}, headers=GUEST_HEADERS)

    assert response.status_code == 422


def test_flag_question_requires_identity(client: TestClient) -> None:
    response = client.post("/v1/questions/science_001/flag", json={"reason": "typo"})

    assert response.status_code == 401
    assert response.json()["detail"] == {"code": "E_IDENTITY_REQUIRED"}


def test_flag_unknown_question_is_not_found(monkeypatch: pytest.MonkeyPatch, client: TestClient) -> None:
    async def fake_flag(session, **kwargs):  # noqa: ANN001, ANN003
        raise QuestionNotFoundError

    monkeypatch.setattr(question_routes.QuestionFlagService, "flag_question", fake_flag)

    response = client.post("/v1/questions/missing/flag", json={"reason": "typo"}, headers=GUEST_HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"] == {"code": "E_QUESTION_NOT_FOUND"}
