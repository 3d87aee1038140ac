"""burn_failure_kinds_flags_null_avg

Revision ID: 8d41f0c3a9e2
Revises: 5c1e8a2b7d40
Create Date: 2026-10-16 15:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "8d41f0c3a9e2"
down_revision: str | None = "5c1e8a2b7d40"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

FAILURE_KIND_CONSTRAINT = "ck_forge_operations_failure_kind"


def upgrade() -> None:
    op.drop_constraint(FAILURE_KIND_CONSTRAINT, "forge_operations", type_="check")
    op.create_check_constraint(
        FAILURE_KIND_CONSTRAINT,
        "forge_operations",
        "failure_kind IS NULL OR failure_kind IN "
        "('OWNERSHIP_CHANGED','BURN_FAILED','BURN_UNCONFIRMED','PARTIAL_BURNED','WORKFLOW_ERROR')",
    )

    op.alter_column("season_points", "avg_response_ms", existing_type=sa.Float(), nullable=True, server_default=None)
    op.execute("UPDATE season_points SET avg_response_ms = NULL WHERE sessions_used = 0")
    op.alter_column("leaderboard_snapshots", "avg_response_ms", existing_type=sa.Float(), nullable=True)
    op.execute("UPDATE leaderboard_snapshots SET avg_response_ms = NULL WHERE sessions_used = 0")

    op.create_table(
        "question_flags",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("identity_key", sa.String(128), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("handled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("handled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["question_id"],
            ["quiz_questions.question_id"],
            name="fk_question_flags_question_id_quiz_questions",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_question_flags"),
    )
    op.create_index(
        "uq_question_flags_open_per_identity",
        "question_flags",
        ["question_id", "identity_key"],
        unique=True,
        postgresql_where=sa.text("handled = false"),
    )
    op.create_index(
        "idx_question_flags_unhandled",
        "question_flags",
        ["handled", "created_at"],
        postgresql_where=sa.text("handled = false"),
    )


def downgrade() -> None:
    op.drop_index("idx_question_flags_unhandled", table_name="question_flags")
    op.drop_index("uq_question_flags_open_per_identity", table_name="question_flags")
    op.drop_table("question_flags")

    op.execute("UPDATE leaderboard_snapshots SET avg_response_ms = 0 WHERE avg_response_ms IS NULL")
    op.alter_column("leaderboard_snapshots", "avg_response_ms", existing_type=sa.Float(), nullable=False)
    op.execute("UPDATE season_points SET avg_response_ms = 0 WHERE avg_response_ms IS NULL")
    op.alter_column(
        "season_points",
        "avg_response_ms",
        existing_type=sa.Float(),
        nullable=False,
        server_default=sa.text("0"),
    )

    op.drop_constraint(FAILURE_KIND_CONSTRAINT, "forge_operations", type_="check")
    op.execute(
        "UPDATE forge_operations SET failure_kind = 'WORKFLOW_ERROR' "
        "WHERE failure_kind IN ('BURN_FAILED','BURN_UNCONFIRMED')"
    )
    op.create_check_constraint(
        FAILURE_KIND_CONSTRAINT,
        "forge_operations",
        "failure_kind IS NULL OR failure_kind IN ('OWNERSHIP_CHANGED','PARTIAL_BURNED','WORKFLOW_ERROR')",
    )
