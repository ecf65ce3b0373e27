#app/services/ledger_service.py
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateFundingTransaction
from app.db.base import Base
from app.db.session import build_engine, build_sessionmaker
from app.models.grant import GrantRecord, GrantorStats

RECENT_GRANTS_LIMIT = 10


@dataclass(frozen=True)
class LedgerTotals:
    total_grants: int
    total_granted: int
    total_fees: int
    unique_recipients: int
    unique_grantors: int


class GrantLedger:
    """
    Grant history and grantor totals.

    Sole owner of GrantRecord / GrantorStats rows. Every public method runs
    under one re-entrant lock, so request handlers can share an instance.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._Session = build_sessionmaker(engine)
        self._lock = threading.RLock()
        Base.metadata.create_all(bind=engine)

    @classmethod
    def from_url(cls, database_url: str) -> "GrantLedger":
        return cls(build_engine(database_url))

    def dispose(self) -> None:
        self._engine.dispose()

    # ─────────────────────────────────────────────
    # INTERNAL HELPERS
    # ─────────────────────────────────────────────

    def _find_by_funding_tx(self, db: Session, tx_hash: str) -> Optional[GrantRecord]:
        return db.execute(
            select(GrantRecord).where(GrantRecord.funding_tx_hash == tx_hash.lower())
        ).scalar_one_or_none()

    # ─────────────────────────────────────────────
    # WRITES
    # ─────────────────────────────────────────────

    def insert(
        self,
        *,
        recipient: str,
        grantor: str,
        reason: str,
        gross_amount: int,
        fee: int,
        net_amount: int,
        funding_tx_hash: str,
        distribution_tx_hash: str,
        mock: bool = False,
        created_at: Optional[datetime] = None,
    ) -> GrantRecord:
        """
        Insert-if-absent keyed by funding_tx_hash.

        The grant row and the grantor's running totals are written in one
        transaction. Raises DuplicateFundingTransaction if the funding hash
        has already been consumed.
        """
        if fee + net_amount != gross_amount:
            raise ValueError("fee + net_amount must equal gross_amount")

        row = GrantRecord(
            recipient=recipient.lower(),
            grantor=grantor.lower(),
            reason=reason,
            gross_amount_wei=str(gross_amount),
            fee_wei=str(fee),
            net_amount_wei=str(net_amount),
            funding_tx_hash=funding_tx_hash.lower(),
            distribution_tx_hash=distribution_tx_hash,
            status="completed",
            mock=mock,
        )
        if created_at is not None:
            row.created_at = created_at

        with self._lock, self._Session() as db:
            existing = self._find_by_funding_tx(db, funding_tx_hash)
            if existing:
                raise DuplicateFundingTransaction(existing.id)

            db.add(row)

            stats = db.get(GrantorStats, row.grantor)
            if stats is None:
                stats = GrantorStats(address=row.grantor, total_grants=0, total_amount_wei="0")
                db.add(stats)
            stats.total_grants += 1
            stats.total_amount_wei = str(stats.total_amount + gross_amount)

            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = self._find_by_funding_tx(db, funding_tx_hash)
                if existing is None:
                    raise
                raise DuplicateFundingTransaction(existing.id)

            db.refresh(row)
            return row

    # ─────────────────────────────────────────────
    # READ-ONLY
    # ─────────────────────────────────────────────

    def find_by_funding_tx(self, tx_hash: str) -> Optional[GrantRecord]:
        with self._lock, self._Session() as db:
            return self._find_by_funding_tx(db, tx_hash)

    def get_by_id(self, grant_id: str) -> Optional[GrantRecord]:
        with self._lock, self._Session() as db:
            return db.get(GrantRecord, grant_id)

    def list(
        self,
        *,
        recipient: Optional[str] = None,
        grantor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[GrantRecord]:
        stmt = select(GrantRecord)
        if recipient:
            stmt = stmt.where(GrantRecord.recipient == recipient.lower())
        if grantor:
            stmt = stmt.where(GrantRecord.grantor == grantor.lower())
        stmt = stmt.order_by(GrantRecord.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._lock, self._Session() as db:
            return list(db.execute(stmt).scalars().all())

    def get_grantor_stats(self, address: str) -> Tuple[Optional[GrantorStats], List[GrantRecord]]:
        """
        (stats or None, that grantor's most recent grants).
        """
        with self._lock, self._Session() as db:
            stats = db.get(GrantorStats, address.lower())
            if stats is None:
                return None, []
        return stats, self.list(grantor=address, limit=RECENT_GRANTS_LIMIT)

    def aggregate_totals(self) -> LedgerTotals:
        with self._lock, self._Session() as db:
            rows = db.execute(select(GrantRecord)).scalars().all()

        return LedgerTotals(
            total_grants=len(rows),
            total_granted=sum(r.net_amount for r in rows),
            total_fees=sum(r.fee for r in rows),
            unique_recipients=len({r.recipient for r in rows}),
            unique_grantors=len({r.grantor for r in rows}),
        )
