"""create notifications table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19 09:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create notifications table for appointment notices."""
    op.create_table(
        "notifications",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("recipient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("kind", sa.String(50), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "externally_delivered",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "kind IN ('appointment_created', 'appointment_updated', 'appointment_reminder')",
            name="notifications_kind_check",
        ),
    )

    op.create_index("idx_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index(
        "idx_notifications_recipient_read", "notifications", ["recipient_id", "read"]
    )
    op.create_index("idx_notifications_created_at", "notifications", [sa.text("created_at DESC")])


def downgrade() -> None:
    """Drop notifications table."""
    op.drop_index("idx_notifications_created_at", table_name="notifications")
    op.drop_index("idx_notifications_recipient_read", table_name="notifications")
    op.drop_index("idx_notifications_recipient_id", table_name="notifications")
    op.drop_table("notifications")
