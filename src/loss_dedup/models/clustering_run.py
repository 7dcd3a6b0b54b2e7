from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from loss_dedup.models.base import Base


class ClusteringRun(Base):
    """History row written at the end of every clustering pass."""

    __tablename__ = "clustering_runs"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    trigger: Mapped[str] = mapped_column(sa.String, default="worker")
    status: Mapped[str] = mapped_column(sa.String, default="running")
    started_at: Mapped[datetime] = mapped_column(sa.DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    signals_fetched: Mapped[int] = mapped_column(sa.Integer, default=0)
    clusters_created: Mapped[int] = mapped_column(sa.Integer, default=0)
    clusters_updated: Mapped[int] = mapped_column(sa.Integer, default=0)
    signals_clustered: Mapped[int] = mapped_column(sa.Integer, default=0)
    signals_suppressed: Mapped[int] = mapped_column(sa.Integer, default=0)
    signals_skipped: Mapped[int] = mapped_column(sa.Integer, default=0)
    errors: Mapped[list | None] = mapped_column(sa.JSON, nullable=True)
