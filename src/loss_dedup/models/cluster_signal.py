"""Membership table linking loss clusters to their signals."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loss_dedup.models.base import Base

if TYPE_CHECKING:
    from loss_dedup.models.loss_cluster import LossCluster
    from loss_dedup.models.loss_signal import LossSignal


class ClusterSignal(Base):
    """Links a signal to the single cluster it belongs to.

    The unique constraint on ``signal_id`` means a signal can be a member
    of at most one cluster, ever.
    """

    __tablename__ = "loss_cluster_signals"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    cluster_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("loss_clusters.id", ondelete="CASCADE"), index=True
    )
    signal_id: Mapped[str] = mapped_column(sa.String, sa.ForeignKey("loss_signals.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    cluster: Mapped[LossCluster] = relationship("LossCluster", back_populates="members")
    signal: Mapped[LossSignal] = relationship("LossSignal")

    __table_args__ = (sa.UniqueConstraint("signal_id", name="uq_loss_cluster_signals_signal"),)
