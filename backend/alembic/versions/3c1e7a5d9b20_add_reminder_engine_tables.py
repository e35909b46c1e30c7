"""add reminder engine tables

Revision ID: 3c1e7a5d9b20
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1e7a5d9b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "user_preferences",
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("lead_times", sa.Text(), nullable=False),
        sa.Column("channels", sa.Text(), nullable=False),
        sa.Column("email_address", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.String(length=26), nullable=True),
        sa.Column("updated_at", sa.String(length=26), nullable=True),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "receipts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("vendor", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("date", sa.String(length=10), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("due_date", sa.String(length=10), nullable=True),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.String(length=26), nullable=True),
        sa.Column("updated_at", sa.String(length=26), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("receipts", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_receipts_user_id"), ["user_id"], unique=False)
        batch_op.create_index("ix_receipts_user_due", ["user_id", "due_date"], unique=False)

    op.create_table(
        "scheduled_notifications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("receipt_id", sa.String(length=36), nullable=True),
        sa.Column("channel", sa.String(length=10), nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("due_date", sa.String(length=10), nullable=False),
        sa.Column("lead_time_days", sa.Integer(), nullable=False),
        sa.Column("scheduled_send_at", sa.String(length=26), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.String(length=26), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.String(length=26), nullable=True),
        sa.Column("updated_at", sa.String(length=26), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "receipt_id", "channel", "lead_time_days", "due_date",
            name="uq_scheduled_notification",
        ),
    )
    with op.batch_alter_table("scheduled_notifications", schema=None) as batch_op:
        batch_op.create_index("ix_scheduled_notifications_due", ["status", "scheduled_send_at"], unique=False)
        batch_op.create_index("ix_scheduled_notifications_user", ["user_id", "status"], unique=False)

    op.create_table(
        "notification_history",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("receipt_id", sa.String(length=36), nullable=True),
        sa.Column("scheduled_notification_id", sa.String(length=36), nullable=True),
        sa.Column("notification_type", sa.String(length=10), nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.String(length=26), nullable=False),
        sa.Column("sent_day", sa.String(length=10), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("notification_history", schema=None) as batch_op:
        batch_op.create_index(
            "ix_notification_history_receipt_sent",
            ["receipt_id", "notification_type", "sent_at"],
            unique=False,
        )
        batch_op.create_index("ix_notification_history_user", ["user_id", "sent_at"], unique=False)
        batch_op.create_index(
            "uq_notification_history_daily_sent",
            ["receipt_id", "notification_type", "recipient", "sent_day"],
            unique=True,
            sqlite_where=sa.text("status = 'sent'"),
            postgresql_where=sa.text("status = 'sent'"),
        )


def downgrade() -> None:
    """Downgrade schema."""
    with op.batch_alter_table("notification_history", schema=None) as batch_op:
        batch_op.drop_index("uq_notification_history_daily_sent")
        batch_op.drop_index("ix_notification_history_user")
        batch_op.drop_index("ix_notification_history_receipt_sent")
    op.drop_table("notification_history")

    with op.batch_alter_table("scheduled_notifications", schema=None) as batch_op:
        batch_op.drop_index("ix_scheduled_notifications_user")
        batch_op.drop_index("ix_scheduled_notifications_due")
    op.drop_table("scheduled_notifications")

    with op.batch_alter_table("receipts", schema=None) as batch_op:
        batch_op.drop_index("ix_receipts_user_due")
        batch_op.drop_index(batch_op.f("ix_receipts_user_id"))
    op.drop_table("receipts")

    op.drop_table("user_preferences")
