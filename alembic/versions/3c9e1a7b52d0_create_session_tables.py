"""create participant session tables

Revision ID: 3c9e1a7b52d0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c9e1a7b52d0"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "participant_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("survey_id", sa.String(), nullable=False),
        sa.Column("survey_version", sa.String(), nullable=False),
        sa.Column("participant_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("progress", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("tenant_id", "session_id", name="uq_tenant_session"),
    )
    for column in ("id", "session_id", "tenant_id", "survey_id", "participant_id"):
        op.create_index(
            f"ix_participant_sessions_{column}", "participant_sessions", [column]
        )

    op.create_table(
        "session_responses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "session_pk",
            sa.Integer(),
            sa.ForeignKey("participant_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_id", sa.String(), nullable=False),
        sa.Column("response_value", sa.JSON(), nullable=True),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.UniqueConstraint("session_pk", "question_id", name="uq_session_question"),
    )
    op.create_index("ix_session_responses_id", "session_responses", ["id"])


def downgrade() -> None:
    op.drop_index("ix_session_responses_id", table_name="session_responses")
    op.drop_table("session_responses")
    for column in ("participant_id", "survey_id", "tenant_id", "session_id", "id"):
        op.drop_index(f"ix_participant_sessions_{column}", table_name="participant_sessions")
    op.drop_table("participant_sessions")
