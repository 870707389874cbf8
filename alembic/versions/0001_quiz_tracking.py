"""wrong answers, scores and attempt history"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_quiz_tracking"
down_revision = None
branch_labels = None
depends_on = None

_bigint_pk = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "wrong_answers",
        sa.Column("user_id", sa.String(length=128), primary_key=True),
        sa.Column("question_id", sa.String(length=128), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_wrong", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_correct", sa.DateTime(timezone=True), nullable=True),
        sa.Column("question_snapshot", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index("ix_wrong_answers_user", "wrong_answers", ["user_id"], unique=False)

    op.create_table(
        "scores",
        sa.Column("id", _bigint_pk, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("exam", sa.String(length=128), nullable=False),
        sa.Column("token", sa.String(length=8), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_scores_user", "scores", ["user_id"], unique=False)
    op.create_index("ix_scores_created", "scores", ["created"], unique=False)

    op.create_table(
        "attempts",
        sa.Column("id", _bigint_pk, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("question_id", sa.String(length=128), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("correct", sa.Boolean(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_attempts_user_ts", "attempts", ["user_id", "ts"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_attempts_user_ts", table_name="attempts")
    op.drop_table("attempts")
    op.drop_index("ix_scores_created", table_name="scores")
    op.drop_index("ix_scores_user", table_name="scores")
    op.drop_table("scores")
    op.drop_index("ix_wrong_answers_user", table_name="wrong_answers")
    op.drop_table("wrong_answers")
