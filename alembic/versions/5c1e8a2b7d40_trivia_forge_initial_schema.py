"""trivia_forge_initial_schema

Revision ID: 5c1e8a2b7d40
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e8a2b7d40"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "quiz_categories",
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("code", name="pk_quiz_categories"),
    )

    op.create_table(
        "quiz_questions",
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=False),
        sa.Column("correct_option", sa.SmallInteger(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("times_served", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_served_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("correct_option >= 0", name="ck_quiz_questions_correct_option_non_negative"),
        sa.CheckConstraint("status IN ('ACTIVE','DISABLED')", name="ck_quiz_questions_status"),
        sa.ForeignKeyConstraint(
            ["category_code"],
            ["quiz_categories.code"],
            name="fk_quiz_questions_category_code_quiz_categories",
        ),
        sa.PrimaryKeyConstraint("question_id", name="pk_quiz_questions"),
    )
    op.create_index("idx_quiz_questions_category_status", "quiz_questions", ["category_code", "status"])
    op.create_index("idx_quiz_questions_last_served", "quiz_questions", ["category_code", "last_served_at"])

    op.create_table(
        "seasons",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("grace_days", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("ends_at > starts_at", name="ck_seasons_window"),
        sa.CheckConstraint("grace_days >= 0", name="ck_seasons_grace_non_negative"),
        sa.PrimaryKeyConstraint("id", name="pk_seasons"),
    )
    op.create_index(
        "uq_seasons_single_active",
        "seasons",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )
    op.create_index("idx_seasons_starts", "seasons", ["starts_at"])

    op.create_table(
        "quiz_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("identity_kind", sa.String(16), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("question_ids", postgresql.JSONB(), nullable=False),
        sa.Column("question_count", sa.Integer(), nullable=False),
        sa.Column("timer_seconds", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_perfect", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("avg_response_ms", sa.Float(), nullable=True),
        sa.Column("season_id", sa.String(64), nullable=True),
        sa.Column("eligibility_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("day_key", sa.Date(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('ACTIVE','WON','LOST','FORFEIT')", name="ck_quiz_sessions_status"),
        sa.CheckConstraint("identity_kind IN ('GUEST','CONNECTED')", name="ck_quiz_sessions_identity_kind"),
        sa.CheckConstraint("score >= 0 AND score <= question_count", name="ck_quiz_sessions_score_range"),
        sa.CheckConstraint(
            "(status = 'ACTIVE') = (completed_at IS NULL)",
            name="ck_quiz_sessions_terminal_consistency",
        ),
        sa.ForeignKeyConstraint(
            ["category_code"],
            ["quiz_categories.code"],
            name="fk_quiz_sessions_category_code_quiz_categories",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_quiz_sessions"),
    )
    op.create_index("idx_sessions_identity_started", "quiz_sessions", ["identity_key", "started_at"])
    op.create_index("idx_sessions_category", "quiz_sessions", ["category_code"])
    op.create_index("idx_sessions_day_key", "quiz_sessions", ["day_key"])

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_index", sa.SmallInteger(), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("selected_option", sa.SmallInteger(), nullable=True),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("timed_out", sa.Boolean(), nullable=False),
        sa.Column("served_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("response_ms", sa.Integer(), nullable=False),
        sa.Column("client_elapsed_ms", sa.Integer(), nullable=True),
        sa.CheckConstraint("response_ms >= 0", name="ck_quiz_attempts_response_ms_non_negative"),
        sa.CheckConstraint("question_index >= 0", name="ck_quiz_attempts_question_index_non_negative"),
        sa.CheckConstraint(
            "NOT timed_out OR (selected_option IS NULL AND NOT is_correct)",
            name="ck_quiz_attempts_timeout_is_incorrect",
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["quiz_sessions.id"],
            name="fk_quiz_attempts_session_id_quiz_sessions",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_quiz_attempts"),
        sa.UniqueConstraint("session_id", "question_index", name="uq_quiz_attempts_session_index"),
    )
    op.create_index("idx_attempts_session", "quiz_attempts", ["session_id"])
    op.create_index("idx_attempts_question", "quiz_attempts", ["question_id"])

    op.create_table(
        "mint_eligibilities",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("identity_kind", sa.String(16), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=False),
        sa.Column("season_id", sa.String(64), nullable=True),
        sa.Column("source_session_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("window_minutes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transferred_from", sa.String(128), nullable=True),
        sa.Column("transferred_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('ACTIVE','USED','EXPIRED')", name="ck_mint_eligibilities_status"),
        sa.CheckConstraint(
            "identity_kind IN ('GUEST','CONNECTED')",
            name="ck_mint_eligibilities_identity_kind",
        ),
        sa.CheckConstraint("expires_at > created_at", name="ck_mint_eligibilities_expiry_after_create"),
        sa.CheckConstraint(
            "(status = 'USED') = (used_at IS NOT NULL)",
            name="ck_mint_eligibilities_used_consistency",
        ),
        sa.ForeignKeyConstraint(
            ["category_code"],
            ["quiz_categories.code"],
            name="fk_mint_eligibilities_category_code_quiz_categories",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_mint_eligibilities"),
    )
    op.create_index("idx_mint_eligibilities_identity_status", "mint_eligibilities", ["identity_key", "status"])
    op.create_index("idx_mint_eligibilities_status_expires", "mint_eligibilities", ["status", "expires_at"])
    op.create_index(
        "uq_mint_eligibilities_active_per_category",
        "mint_eligibilities",
        ["identity_key", "category_code"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "catalog_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("image_uri", sa.Text(), nullable=False),
        sa.Column("attributes", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("content_id", sa.String(128), nullable=True),
        sa.Column("is_minted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("minted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "is_minted = (minted_at IS NOT NULL)",
            name="ck_catalog_items_minted_consistency",
        ),
        sa.ForeignKeyConstraint(
            ["category_code"],
            ["quiz_categories.code"],
            name="fk_catalog_items_category_code_quiz_categories",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_catalog_items"),
    )
    op.create_index("idx_catalog_items_category_minted", "catalog_items", ["category_code", "is_minted"])

    op.create_table(
        "mint_operations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("eligibility_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("catalog_item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("stage", sa.String(32), nullable=False),
        sa.Column("content_id", sa.String(128), nullable=True),
        sa.Column("tx_ref", sa.String(128), nullable=True),
        sa.Column("asset_ref", sa.String(256), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('PENDING','CONFIRMED','FAILED')", name="ck_mint_operations_status"),
        sa.ForeignKeyConstraint(
            ["eligibility_id"],
            ["mint_eligibilities.id"],
            name="fk_mint_operations_eligibility_id_mint_eligibilities",
        ),
        sa.ForeignKeyConstraint(
            ["catalog_item_id"],
            ["catalog_items.id"],
            name="fk_mint_operations_catalog_item_id_catalog_items",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_mint_operations"),
    )
    op.create_index("idx_mint_operations_identity", "mint_operations", ["identity_key", "created_at"])
    op.create_index("idx_mint_operations_status_updated", "mint_operations", ["status", "updated_at"])
    op.create_index(
        "uq_mint_operations_live_per_eligibility",
        "mint_operations",
        ["eligibility_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('PENDING','CONFIRMED')"),
    )
    op.create_index(
        "uq_mint_operations_pending_per_catalog_item",
        "mint_operations",
        ["catalog_item_id"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    op.create_table(
        "forge_operations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("forge_type", sa.String(16), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=True),
        sa.Column("season_id", sa.String(64), nullable=True),
        sa.Column("output_tier", sa.String(16), nullable=False),
        sa.Column("input_item_ids", postgresql.JSONB(), nullable=False),
        sa.Column("input_asset_refs", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("stage", sa.String(32), nullable=False),
        sa.Column("failure_kind", sa.String(32), nullable=True),
        sa.Column("burn_tx_ref", sa.String(128), nullable=True),
        sa.Column("burn_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("mint_tx_ref", sa.String(128), nullable=True),
        sa.Column("content_id", sa.String(128), nullable=True),
        sa.Column("output_asset_ref", sa.String(256), nullable=True),
        sa.Column("output_item_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("forge_type IN ('CATEGORY','MASTER','SEASONAL')", name="ck_forge_operations_type"),
        sa.CheckConstraint("status IN ('PENDING','CONFIRMED','FAILED')", name="ck_forge_operations_status"),
        sa.CheckConstraint(
            "failure_kind IS NULL OR failure_kind IN ('OWNERSHIP_CHANGED','PARTIAL_BURNED','WORKFLOW_ERROR')",
            name="ck_forge_operations_failure_kind",
        ),
        sa.CheckConstraint(
            "(status = 'FAILED') = (failure_kind IS NOT NULL)",
            name="ck_forge_operations_failure_consistency",
        ),
        sa.CheckConstraint(
            "failure_kind IS DISTINCT FROM 'PARTIAL_BURNED' OR burn_confirmed_at IS NOT NULL",
            name="ck_forge_operations_partial_has_burn",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_forge_operations"),
    )
    op.create_index("idx_forge_operations_identity", "forge_operations", ["identity_key", "created_at"])
    op.create_index("idx_forge_operations_status_updated", "forge_operations", ["status", "updated_at"])

    op.create_table(
        "owned_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("asset_ref", sa.String(256), nullable=False),
        sa.Column("category_code", sa.String(32), nullable=True),
        sa.Column("season_id", sa.String(64), nullable=True),
        sa.Column("tier", sa.String(16), nullable=False),
        sa.Column("provenance", sa.String(16), nullable=False),
        sa.Column("catalog_item_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("mint_operation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("forge_operation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("locked_by_forge_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_burned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("burned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transferred_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("tier IN ('CATEGORY','ULTIMATE','MASTER','SEASONAL')", name="ck_owned_items_tier"),
        sa.CheckConstraint("provenance IN ('MINTED','FORGED')", name="ck_owned_items_provenance"),
        sa.CheckConstraint("is_burned = (burned_at IS NOT NULL)", name="ck_owned_items_burned_consistency"),
        sa.PrimaryKeyConstraint("id", name="pk_owned_items"),
        sa.UniqueConstraint("asset_ref", name="uq_owned_items_asset_ref"),
    )
    op.create_index("idx_owned_items_identity", "owned_items", ["identity_key", "is_burned"])
    op.create_index("idx_owned_items_locked_by_forge", "owned_items", ["locked_by_forge_id"])

    op.create_table(
        "season_points",
        sa.Column("season_id", sa.String(64), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("perfect_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("items_minted", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("avg_response_ms", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("sessions_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("first_achieved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_season_points_points_non_negative"),
        sa.CheckConstraint("sessions_used >= 0", name="ck_season_points_sessions_non_negative"),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"], name="fk_season_points_season_id_seasons"),
        sa.PrimaryKeyConstraint("season_id", "identity_key", name="pk_season_points"),
    )
    op.create_index("idx_season_points_season_points", "season_points", ["season_id", "points"])

    op.create_table(
        "leaderboard_snapshots",
        sa.Column("season_id", sa.String(64), nullable=False),
        sa.Column("snapshot_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("perfect_count", sa.Integer(), nullable=False),
        sa.Column("items_minted", sa.Integer(), nullable=False),
        sa.Column("avg_response_ms", sa.Float(), nullable=False),
        sa.Column("sessions_used", sa.Integer(), nullable=False),
        sa.Column("first_achieved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(
            ["season_id"],
            ["seasons.id"],
            name="fk_leaderboard_snapshots_season_id_seasons",
        ),
        sa.PrimaryKeyConstraint("season_id", "snapshot_at", "identity_key", name="pk_leaderboard_snapshots"),
    )
    op.create_index(
        "idx_leaderboard_snapshots_rank",
        "leaderboard_snapshots",
        ["season_id", "snapshot_at", "rank"],
    )
    op.create_index(
        "idx_leaderboard_snapshots_final",
        "leaderboard_snapshots",
        ["season_id", "rank"],
        postgresql_where=sa.text("is_final"),
    )


def downgrade() -> None:
    op.drop_table("leaderboard_snapshots")
    op.drop_table("season_points")
    op.drop_table("owned_items")
    op.drop_table("forge_operations")
    op.drop_table("mint_operations")
    op.drop_table("catalog_items")
    op.drop_table("mint_eligibilities")
    op.drop_table("quiz_attempts")
    op.drop_table("quiz_sessions")
    op.drop_table("seasons")
    op.drop_table("quiz_questions")
    op.drop_table("quiz_categories")
