"""create view tracking tables

Revision ID: 20261017_create_view_tracking
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261017_create_view_tracking"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "view_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entry_id", sa.String(length=64), nullable=False),
        sa.Column("ip_address", sa.String(length=128), nullable=False),
        sa.Column("viewed_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_view_logs_entry_ip_time", "view_logs", ["entry_id", "ip_address", "viewed_at"])

    op.create_table(
        "view_durations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entry_id", sa.String(length=64), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("logged_at", sa.BigInteger(), nullable=False),
        sa.Column("ip_address", sa.String(length=128), nullable=True),
    )
    op.create_index("ix_view_durations_entry_id", "view_durations", ["entry_id"])


def downgrade():
    op.drop_index("ix_view_durations_entry_id", table_name="view_durations")
    op.drop_table("view_durations")
    op.drop_index("ix_view_logs_entry_ip_time", table_name="view_logs")
    op.drop_table("view_logs")
