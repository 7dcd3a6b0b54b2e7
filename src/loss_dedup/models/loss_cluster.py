"""Loss cluster model -- the deduplicated, confidence-scored incident."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loss_dedup.models.base import Base

if TYPE_CHECKING:
    from loss_dedup.models.cluster_signal import ClusterSignal


class LossCluster(Base):
    """One inferred real-world incident built from one or more signals.

    ``event_type`` is fixed at creation.  ``verification_status`` is always
    written together with ``confidence_score`` via
    :func:`loss_dedup.scoring.confidence.verification_status`.
    """

    __tablename__ = "loss_clusters"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(sa.String, index=True)

    # Centroid of member signal coordinates
    center_lat: Mapped[float] = mapped_column(sa.Float)
    center_lng: Mapped[float] = mapped_column(sa.Float)

    # Best-available location from the most complete member
    address_text: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    city: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    state_code: Mapped[str | None] = mapped_column(sa.String, nullable=True, index=True)
    zip: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # min/max occurred_at across members
    time_window_start: Mapped[datetime] = mapped_column(sa.DateTime, index=True)
    time_window_end: Mapped[datetime] = mapped_column(sa.DateTime)

    confidence_score: Mapped[int] = mapped_column(sa.Integer)
    verification_status: Mapped[str] = mapped_column(sa.String, index=True)

    signal_count: Mapped[int] = mapped_column(sa.Integer, default=1)
    # Sorted list of distinct source types (JSON for SQLite compatibility)
    source_types: Mapped[list | None] = mapped_column(sa.JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    members: Mapped[list[ClusterSignal]] = relationship(
        "ClusterSignal", back_populates="cluster", cascade="all, delete-orphan"
    )
