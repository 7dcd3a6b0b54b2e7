from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from loss_dedup.models.base import Base


class RunLock(Base):
    """Lease row serializing clustering passes across processes.

    The primary key on ``name`` makes a second concurrent insert fail;
    ``expires_at`` lets a later pass reclaim a lease left by a crashed run.
    """

    __tablename__ = "run_locks"

    name: Mapped[str] = mapped_column(sa.String, primary_key=True)
    holder: Mapped[str] = mapped_column(sa.String)
    acquired_at: Mapped[datetime] = mapped_column(sa.DateTime)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime)
