"""initial schema: users, animals, vaccines, vaccinations, notifications

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("role", sa.String(), nullable=False, server_default="FARMER"),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("push_token", sa.String(), nullable=True),
        sa.Column("notify_email", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notify_sms", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notify_push", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "animals",
        sa.Column("animal_id", sa.Uuid(), primary_key=True),
        sa.Column("farmer_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("tag_number", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("species", sa.String(), nullable=False),
        sa.Column("breed", sa.String(), nullable=True),
        sa.Column("sex", sa.String(), nullable=True),
        sa.Column("health_status", sa.String(), nullable=False, server_default="healthy"),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_animals_farmer_id", "animals", ["farmer_id"])

    op.create_table(
        "vaccines",
        sa.Column("vaccine_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("manufacturer", sa.String(), nullable=True),
        sa.Column("vaccine_type", sa.String(), nullable=True),
        sa.Column("route", sa.String(), nullable=True),
        sa.Column("booster_interval_value", sa.Integer(), nullable=True),
        sa.Column("booster_interval_unit", sa.String(), nullable=True),
        sa.Column("total_doses", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "vaccinations",
        sa.Column("vaccination_id", sa.Uuid(), primary_key=True),
        sa.Column("animal_id", sa.Uuid(), sa.ForeignKey("animals.animal_id", ondelete="CASCADE"), nullable=False),
        sa.Column("vaccine_id", sa.Uuid(), sa.ForeignKey("vaccines.vaccine_id", ondelete="SET NULL"), nullable=True),
        sa.Column("administered_by", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column("vaccine_name", sa.String(), nullable=False),
        sa.Column("batch_number", sa.String(), nullable=True),
        sa.Column("administered_at", sa.DateTime(), nullable=False),
        sa.Column("next_due_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="completed"),
        sa.Column("notes", sa.String(), nullable=True),
    )
    op.create_index("ix_vaccinations_next_due_at", "vaccinations", ["next_due_at"])

    channel_columns = []
    for channel in ("email", "sms", "push"):
        channel_columns += [
            sa.Column(f"{channel}_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(f"{channel}_sent_at", sa.DateTime(), nullable=True),
            sa.Column(f"{channel}_error", sa.String(), nullable=True),
        ]

    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.Uuid(), primary_key=True),
        sa.Column("recipient_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False, server_default="medium"),
        sa.Column("related_animal_id", sa.Uuid(), sa.ForeignKey("animals.animal_id", ondelete="SET NULL"), nullable=True),
        sa.Column("related_vaccine_id", sa.Uuid(), sa.ForeignKey("vaccines.vaccine_id", ondelete="SET NULL"), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        *channel_columns,
        sa.Column("dispatch_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dispatch_started_at", sa.DateTime(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_scheduled_for", "notifications", ["scheduled_for"])
    op.create_index("ix_notifications_recipient_status", "notifications", ["recipient_id", "status"])
    op.create_index("ix_notifications_type_status", "notifications", ["type", "status"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("vaccinations")
    op.drop_table("vaccines")
    op.drop_table("animals")
    op.drop_table("users")
