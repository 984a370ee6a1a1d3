"""Add auto_category_corrections and auto_category_suggestions_log tables.

Corrections are an append-only audit trail of user re-categorizations. The
suggestions log records what the engine proposed and what the user did with it.

Revision ID: 003
Revises: 002
Create Date: 2026-01-30
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None

CORRECTION_TYPES = (
    "auto_to_manual",
    "wrong_auto_choice",
    "missing_category",
    "updated_learned_pattern",
    "confidence_override",
)


def upgrade() -> None:
    op.create_table(
        "auto_category_corrections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "original_category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "corrected_category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description_text", sa.Text(), nullable=False),
        sa.Column("correction_type", sa.String(32), nullable=False),
        sa.Column("confidence_at_correction", sa.SmallInteger(), server_default="0", nullable=False),
        sa.Column("corrected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "correction_type IN ({})".format(", ".join(f"'{t}'" for t in CORRECTION_TYPES)),
            name="ck_auto_category_corrections_type",
        ),
    )
    op.create_index(
        "idx_auto_category_corrections_user_corrected",
        "auto_category_corrections",
        ["user_id", "corrected_at"],
    )
    op.create_index("ix_auto_category_corrections_transaction_id", "auto_category_corrections", ["transaction_id"])
    op.create_index(
        "ix_auto_category_corrections_corrected_category_id",
        "auto_category_corrections",
        ["corrected_category_id"],
    )

    op.create_table(
        "auto_category_suggestions_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "suggested_category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("confidence_score", sa.SmallInteger(), nullable=False),
        sa.Column("matched_keywords", JSONB, nullable=True),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("user_action", sa.String(16), nullable=True),
        sa.Column("suggested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(
        "idx_auto_category_suggestions_user_suggested",
        "auto_category_suggestions_log",
        ["user_id", "suggested_at"],
    )
    op.create_index("ix_auto_category_suggestions_log_transaction_id", "auto_category_suggestions_log", ["transaction_id"])
    op.create_index("ix_auto_category_suggestions_log_source", "auto_category_suggestions_log", ["source"])
    op.create_index("ix_auto_category_suggestions_log_user_action", "auto_category_suggestions_log", ["user_action"])


def downgrade() -> None:
    op.drop_table("auto_category_suggestions_log")
    op.drop_table("auto_category_corrections")
