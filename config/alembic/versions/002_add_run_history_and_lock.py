"""Add clustering run history and the pass lock table.

Revision ID: 002_run_history
Revises: 001_loss_tables
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "002_run_history"
down_revision = "001_loss_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "clustering_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("trigger", sa.String(), nullable=False, server_default="worker"),
        sa.Column("status", sa.String(), nullable=False, server_default="running"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("signals_fetched", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clusters_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clusters_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("signals_clustered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("signals_suppressed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("signals_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=True),
    )
    op.create_index("ix_clustering_runs_started_at", "clustering_runs", ["started_at"])

    op.create_table(
        "run_locks",
        sa.Column("name", sa.String(), primary_key=True),
        sa.Column("holder", sa.String(), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("run_locks")
    op.drop_index("ix_clustering_runs_started_at")
    op.drop_table("clustering_runs")
