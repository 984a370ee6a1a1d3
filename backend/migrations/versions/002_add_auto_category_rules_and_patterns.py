"""Add auto_category_rules and learned_category_patterns tables.

Rules hold a unique priority per user. Learned patterns are unique per
(user, keyword, category) so concurrent corrections cannot duplicate a row.

Revision ID: 002
Revises: 001
Create Date: 2026-01-30
"""

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "auto_category_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pattern", sa.String(255), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "priority", name="uq_auto_category_rules_user_priority"),
    )
    op.create_index("idx_auto_category_rules_user_active", "auto_category_rules", ["user_id", "is_active"])
    op.create_index("idx_auto_category_rules_user_archived", "auto_category_rules", ["user_id", "archived_at"])

    op.create_table(
        "learned_category_patterns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id", ondelete="CASCADE"), nullable=False),
        sa.Column("keyword", sa.String(255), nullable=False),
        sa.Column("occurrence_count", sa.Integer(), server_default="1", nullable=False),
        sa.Column("confidence_score", sa.SmallInteger(), server_default="50", nullable=False),
        sa.Column("first_learned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "keyword", "category_id", name="uq_learned_patterns_user_keyword_category"),
        sa.CheckConstraint("confidence_score BETWEEN 0 AND 100", name="ck_learned_patterns_confidence_range"),
        sa.CheckConstraint("occurrence_count >= 0", name="ck_learned_patterns_occurrences_positive"),
    )
    op.create_index(
        "idx_learned_patterns_user_active_confidence",
        "learned_category_patterns",
        ["user_id", "is_active", "confidence_score"],
    )
    op.create_index("ix_learned_category_patterns_category_id", "learned_category_patterns", ["category_id"])


def downgrade() -> None:
    op.drop_table("learned_category_patterns")
    op.drop_table("auto_category_rules")
