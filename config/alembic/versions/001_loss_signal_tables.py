"""Create loss signal, cluster and membership tables.

Revision ID: 001_loss_tables
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "001_loss_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "loss_signals",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("source_type", sa.String(), nullable=False),
        sa.Column("source_name", sa.String(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("reported_at", sa.DateTime(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("address_text", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state_code", sa.String(), nullable=True),
        sa.Column("zip", sa.String(), nullable=True),
        sa.Column("severity_raw", sa.Float(), nullable=True),
        sa.Column("confidence_raw", sa.Float(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("source_type", "source_name", "external_id", name="uq_loss_signals_source_external"),
    )
    op.create_index("ix_loss_signals_source_type", "loss_signals", ["source_type"])
    op.create_index("ix_loss_signals_event_type", "loss_signals", ["event_type"])
    op.create_index("ix_loss_signals_occurred_at", "loss_signals", ["occurred_at"])

    op.create_table(
        "loss_clusters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("center_lat", sa.Float(), nullable=False),
        sa.Column("center_lng", sa.Float(), nullable=False),
        sa.Column("address_text", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state_code", sa.String(), nullable=True),
        sa.Column("zip", sa.String(), nullable=True),
        sa.Column("time_window_start", sa.DateTime(), nullable=False),
        sa.Column("time_window_end", sa.DateTime(), nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=False),
        sa.Column("verification_status", sa.String(), nullable=False),
        sa.Column("signal_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("source_types", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_loss_clusters_event_type", "loss_clusters", ["event_type"])
    op.create_index("ix_loss_clusters_time_window_start", "loss_clusters", ["time_window_start"])
    op.create_index("ix_loss_clusters_verification_status", "loss_clusters", ["verification_status"])
    op.create_index("ix_loss_clusters_state_code", "loss_clusters", ["state_code"])
    op.create_index("ix_loss_clusters_center", "loss_clusters", ["center_lat", "center_lng"])

    op.create_table(
        "loss_cluster_signals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "cluster_id",
            sa.Integer(),
            sa.ForeignKey("loss_clusters.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "signal_id",
            sa.String(),
            sa.ForeignKey("loss_signals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("signal_id", name="uq_loss_cluster_signals_signal"),
    )
    op.create_index("ix_loss_cluster_signals_cluster_id", "loss_cluster_signals", ["cluster_id"])


def downgrade() -> None:
    op.drop_index("ix_loss_cluster_signals_cluster_id")
    op.drop_table("loss_cluster_signals")
    op.drop_index("ix_loss_clusters_center")
    op.drop_index("ix_loss_clusters_state_code")
    op.drop_index("ix_loss_clusters_verification_status")
    op.drop_index("ix_loss_clusters_time_window_start")
    op.drop_index("ix_loss_clusters_event_type")
    op.drop_table("loss_clusters")
    op.drop_index("ix_loss_signals_occurred_at")
    op.drop_index("ix_loss_signals_event_type")
    op.drop_index("ix_loss_signals_source_type")
    op.drop_table("loss_signals")
