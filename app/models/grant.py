# app/models/grant.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GrantRecord(Base):
    """
    One completed (or simulated) grant.

    Written once, after the distribution transfer succeeded; never updated.
    Wei amounts are stored as decimal strings since they overflow 64-bit
    integer columns.
    """

    __tablename__ = "grants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    recipient: Mapped[str] = mapped_column(String(42), nullable=False)
    grantor: Mapped[str] = mapped_column(String, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)

    gross_amount_wei: Mapped[str] = mapped_column(String(78), nullable=False)
    fee_wei: Mapped[str] = mapped_column(String(78), nullable=False)
    net_amount_wei: Mapped[str] = mapped_column(String(78), nullable=False)

    # lowercase; the idempotency key
    funding_tx_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    distribution_tx_hash: Mapped[str] = mapped_column(String(80), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")
    mock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        Index("ix_grants_recipient", "recipient"),
        Index("ix_grants_grantor", "grantor"),
        Index("ix_grants_created_at", "created_at"),
    )

    @property
    def gross_amount(self) -> int:
        return int(self.gross_amount_wei)

    @property
    def fee(self) -> int:
        return int(self.fee_wei)

    @property
    def net_amount(self) -> int:
        return int(self.net_amount_wei)


class GrantorStats(Base):
    """
    Running totals per grantor address. Only ever incremented.
    """

    __tablename__ = "grantor_stats"

    address: Mapped[str] = mapped_column(String, primary_key=True)
    total_grants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount_wei: Mapped[str] = mapped_column(String(78), nullable=False, default="0")

    @property
    def total_amount(self) -> int:
        return int(self.total_amount_wei)
