"""create rooms, users and queue_entries

Revision ID: 001_create_rooms_users_queue
Revises: 
Create Date: 2026-10-12

"""

from alembic import op
import sqlalchemy as sa


revision = "001_create_rooms_users_queue"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rooms",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("uq_rooms_name_lower", "rooms", [sa.text("lower(name)")], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=150), nullable=False),
        sa.Column("role", sa.String(length=30), server_default=sa.text("'VET'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column(
            "current_room_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("rooms.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("room_checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("current_room_id", name="uq_users_current_room_id"),
        sa.CheckConstraint("role IN ('VET', 'FRONT_DESK', 'ADMIN')", name="ck_users_role"),
    )

    op.create_table(
        "queue_entries",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("patient_name", sa.String(length=150), nullable=False),
        sa.Column("tutor_name", sa.String(length=150), nullable=False),
        sa.Column("service_type", sa.String(length=50), nullable=False),
        sa.Column("patient_id", sa.String(length=64), nullable=True),
        sa.Column("priority", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column("status", sa.String(length=30), server_default=sa.text("'WAITING'"), nullable=False),
        sa.Column("has_scheduled_appointment", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "assigned_vet_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "room_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("rooms.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("called_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("priority BETWEEN 1 AND 3", name="ck_queue_entries_priority"),
        sa.CheckConstraint(
            "status IN ('WAITING', 'CALLED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')",
            name="ck_queue_entries_status",
        ),
        sa.CheckConstraint(
            "(status = 'COMPLETED') = (completed_at IS NOT NULL)",
            name="ck_queue_entries_completed_at",
        ),
    )


def downgrade() -> None:
    op.drop_table("queue_entries")
    op.drop_table("users")
    op.drop_index("uq_rooms_name_lower", table_name="rooms")
    op.drop_table("rooms")
