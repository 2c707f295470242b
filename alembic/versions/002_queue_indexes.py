"""add queue_entries partial indexes (selection order + history)

Revision ID: 002_queue_indexes
Revises: 001_create_rooms_users_queue
Create Date: 2026-10-12

"""

from alembic import op
import sqlalchemy as sa


revision = "002_queue_indexes"
down_revision = "001_create_rooms_users_queue"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Serves call-next and the active list: priority asc, then FIFO.
    op.create_index(
        "idx_queue_entries_active",
        "queue_entries",
        ["status", "priority", "created_at"],
        unique=False,
        postgresql_where=sa.text("status IN ('WAITING', 'CALLED', 'IN_PROGRESS')"),
        sqlite_where=sa.text("status IN ('WAITING', 'CALLED', 'IN_PROGRESS')"),
    )

    op.create_index(
        "idx_queue_entries_history",
        "queue_entries",
        ["completed_at"],
        unique=False,
        postgresql_where=sa.text("status = 'COMPLETED'"),
        sqlite_where=sa.text("status = 'COMPLETED'"),
    )

    op.create_index("idx_queue_entries_assigned_vet", "queue_entries", ["assigned_vet_id", "status"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_queue_entries_assigned_vet", table_name="queue_entries")
    op.drop_index("idx_queue_entries_history", table_name="queue_entries")
    op.drop_index("idx_queue_entries_active", table_name="queue_entries")
