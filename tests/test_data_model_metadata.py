from __future__ import annotations

from sqlalchemy import CheckConstraint, UniqueConstraint

from app.db.models import (  # noqa: F401
    CatalogItem,
    ForgeOperation,
    LeaderboardSnapshot,
    MintEligibility,
    MintOperation,
    OwnedItem,
    QuestionFlag,
    QuizAttempt,
    QuizCategory,
    QuizQuestion,
    QuizSession,
    Season,
    SeasonPoints,
)
from app.db.models.base import Base


def _check_names(table_name: str) -> set[str]:
    table = Base.metadata.tables[table_name]
    return {constraint.name for constraint in table.constraints if isinstance(constraint, CheckConstraint)}


def _index_names(table_name: str) -> set[str]:
    return {index.name for index in Base.metadata.tables[table_name].indexes}


def test_all_tables_registered() -> None:
    expected_tables = {
        "quiz_categories",
        "quiz_questions",
        "seasons",
        "quiz_sessions",
        "quiz_attempts",
        "mint_eligibilities",
        "catalog_items",
        "mint_operations",
        "forge_operations",
        "owned_items",
        "season_points",
        "leaderboard_snapshots",
        "question_flags",
    }
    assert expected_tables == set(Base.metadata.tables)


def test_single_use_and_single_claim_indexes_present() -> None:
    eligibility_indexes = {index.name: index for index in Base.metadata.tables["mint_eligibilities"].indexes}
    assert eligibility_indexes["uq_mint_eligibilities_active_per_category"].unique is True
    assert "idx_mint_eligibilities_status_expires" in eligibility_indexes
    assert "ck_mint_eligibilities_used_consistency" in _check_names("mint_eligibilities")

    operation_indexes = {index.name: index for index in Base.metadata.tables["mint_operations"].indexes}
    assert operation_indexes["uq_mint_operations_live_per_eligibility"].unique is True
    assert operation_indexes["uq_mint_operations_pending_per_catalog_item"].unique is True


def test_forge_and_ownership_constraints_present() -> None:
    assert {
        "ck_forge_operations_failure_kind",
        "ck_forge_operations_failure_consistency",
        "ck_forge_operations_partial_has_burn",
    } <= _check_names("forge_operations")
    assert "ck_owned_items_burned_consistency" in _check_names("owned_items")
    assert "idx_owned_items_locked_by_forge" in _index_names("owned_items")
    assert "ck_catalog_items_minted_consistency" in _check_names("catalog_items")


def test_session_tables_constraints_present() -> None:
    assert "ck_quiz_sessions_terminal_consistency" in _check_names("quiz_sessions")
    attempts = Base.metadata.tables["quiz_attempts"]
    unique_names = {
        constraint.name for constraint in attempts.constraints if isinstance(constraint, UniqueConstraint)
    }
    assert "uq_quiz_attempts_session_index" in unique_names


def test_season_tables_constraints_present() -> None:
    season_indexes = {index.name: index for index in Base.metadata.tables["seasons"].indexes}
    assert season_indexes["uq_seasons_single_active"].unique is True
    assert "ck_seasons_window" in _check_names("seasons")
    assert "idx_season_points_season_points" in _index_names("season_points")
    assert "idx_leaderboard_snapshots_final" in _index_names("leaderboard_snapshots")


def test_forge_failure_kinds_and_nullable_average() -> None:
    failure_kind = next(
        constraint
        for constraint in Base.metadata.tables["forge_operations"].constraints
        if isinstance(constraint, CheckConstraint) and constraint.name == "ck_forge_operations_failure_kind"
    )
    for kind in ("OWNERSHIP_CHANGED", "BURN_FAILED", "BURN_UNCONFIRMED", "PARTIAL_BURNED", "WORKFLOW_ERROR"):
        assert f"'{kind}'" in str(failure_kind.sqltext)
    assert Base.metadata.tables["season_points"].c.avg_response_ms.nullable is True
    assert Base.metadata.tables["leaderboard_snapshots"].c.avg_response_ms.nullable is True


def test_question_flags_allow_one_open_flag_per_identity() -> None:
    flag_indexes = {index.name: index for index in Base.metadata.tables["question_flags"].indexes}
    assert flag_indexes["uq_question_flags_open_per_identity"].unique is True
    assert "idx_question_flags_unhandled" in flag_indexes
