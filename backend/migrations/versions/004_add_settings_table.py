"""Add settings table for runtime-tunable values.

Seeds the auto-apply confidence threshold so it can be changed without a
restart.

Revision ID: 004
Revises: 003
Create Date: 2026-02-03
"""

from alembic import op
import sqlalchemy as sa

revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    settings_table = op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("type", sa.String(16), server_default="string", nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_settings_key", "settings", ["key"], unique=True)

    op.bulk_insert(
        settings_table,
        [
            {
                "key": "auto_apply_confidence_threshold",
                "value": "90",
                "type": "integer",
                "description": "Suggestions at or above this confidence are applied without confirmation",
            }
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_settings_key", table_name="settings")
    op.drop_table("settings")
