from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from loss_dedup.models.base import Base


class LossSignal(Base):
    """A single source-reported observation of a possible loss event.

    Rows are written by the ingestion adapters and never mutated; the
    clustering engine only reads them.
    """

    __tablename__ = "loss_signals"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True)

    # Source attribution
    source_type: Mapped[str] = mapped_column(sa.String, index=True)
    source_name: Mapped[str] = mapped_column(sa.String, default="unknown")
    external_id: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # Classification
    event_type: Mapped[str] = mapped_column(sa.String, index=True)

    # Temporal
    occurred_at: Mapped[datetime] = mapped_column(sa.DateTime, index=True)
    reported_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    # Spatial -- signals without coordinates are never clustered
    lat: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    lng: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    address_text: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    city: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    state_code: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    zip: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # Source-reported strength
    severity_raw: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    confidence_raw: Mapped[float | None] = mapped_column(sa.Float, nullable=True)

    raw_data: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        sa.UniqueConstraint("source_type", "source_name", "external_id", name="uq_loss_signals_source_external"),
    )
