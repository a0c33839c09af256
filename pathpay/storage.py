"""Persistence layer for the calculation history and the compare list.

Both collections hold plain record dictionaries built from an
``AmortizationResult`` by :func:`build_record`. Records are stored as JSON
payloads in a SQLAlchemy table and scoped to an owner token (a web session,
or ``"local"`` for the command line). It defaults to SQLite for local use, but
accepts any SQLAlchemy-compatible URL.

The history is unbounded and append-only. The compare list holds at most
three records per owner; adding a fourth is rejected with
``CompareListFullError`` and the stored list is left as it was.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .data_models import AmortizationResult, LoanCategory, round_money
from .exceptions import CompareListFullError, StorageError
from .utils import format_date

logger = logging.getLogger(__name__)

Base = declarative_base()

HISTORY = "history"
COMPARE = "compare"
COMPARE_LIMIT = 3
LOCAL_OWNER = "local"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanRecordModel(Base):
    __tablename__ = "loan_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(16), index=True, nullable=False)
    owner = Column(String(64), index=True, nullable=False)
    title = Column(String(255), nullable=False)
    category = Column(String(32), nullable=False)
    payload_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


def build_record(
    result: AmortizationResult,
    category: Union[LoanCategory, str],
    title: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Return the persisted form of a calculation.

    Money values are two-digit decimal strings and dates are ``DD/MM/YYYY``
    strings (``None`` when unknown), so a record reads back exactly as it
    was displayed.
    """
    category = LoanCategory.parse(category)
    created = created_at or _utcnow()
    return {
        "title": (title or "").strip() or "Untitled",
        "category": category.value,
        "principal": str(round_money(result.principal)),
        "term_months": result.term_months,
        "annual_rate_percent": str(result.annual_rate_percent),
        "repayment_frequency": result.repayment_frequency.value,
        "amortization_method": result.amortization_method.value,
        "periodic_payment": str(result.rounded_periodic_payment),
        "total_interest": str(round_money(result.total_interest)),
        "total_payment": str(round_money(result.total_payment)),
        "payoff_date": format_date(result.payoff_date) if result.payoff_date else None,
        "start_date": format_date(result.start_date) if result.start_date else None,
        "created_at": created.isoformat(),
    }


def open_stores(url: str) -> Tuple["HistoryStore", "CompareStore"]:
    """Create both stores on a single database engine."""
    try:
        engine = create_engine(url, future=True)
        Base.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        logger.warning("Could not open database %s: %s", url, exc)
        raise StorageError("Could not open the loan database", {"url": url}) from exc
    return HistoryStore(engine), CompareStore(engine)


class RecordStore:
    """Database-backed list of loan records for one collection."""

    collection: str = ""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False, future=True)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.warning("%s store operation failed: %s", self.collection, exc)
            raise StorageError(f"Could not access the {self.collection} store", {"error": str(exc)}) from exc

    def _owned(self, owner: str):
        return (LoanRecordModel.collection == self.collection) & (LoanRecordModel.owner == owner)

    def list(self, owner: str = LOCAL_OWNER) -> List[Dict[str, Any]]:
        if not owner:
            return []
        with self._session() as session:
            rows = session.execute(
                select(LoanRecordModel).where(self._owned(owner)).order_by(LoanRecordModel.id.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def count(self, owner: str = LOCAL_OWNER) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count(LoanRecordModel.id)).where(self._owned(owner))
            ).scalar_one()

    def add(self, owner: str, record: Dict[str, Any]) -> int:
        """Store ``record`` and return its id."""
        if not owner:
            raise StorageError("An owner token is required to store a record")
        with self._session() as session:
            self._check_capacity(session, owner)
            row = LoanRecordModel(
                collection=self.collection,
                owner=owner,
                title=record.get("title") or "Untitled",
                category=record.get("category", ""),
                payload_json=json.dumps(record),
            )
            session.add(row)
            session.flush()
            # Another writer may have filled the list since the first check.
            self._check_capacity(session, owner, flushed=True)
            session.commit()
            logger.info("Added %s record %s (%s)", self.collection, row.id, row.title)
            return row.id

    def remove(self, owner: str, record_id: int) -> bool:
        """Delete one record; returns ``False`` when the owner has no such record."""
        if not owner:
            return False
        with self._session() as session:
            row = session.get(LoanRecordModel, record_id)
            if row is None or row.owner != owner or row.collection != self.collection:
                return False
            session.delete(row)
            session.commit()
            logger.info("Removed %s record %s", self.collection, record_id)
            return True

    def clear(self, owner: str = LOCAL_OWNER) -> int:
        """Delete every record of ``owner`` and return how many were removed."""
        if not owner:
            return 0
        with self._session() as session:
            deleted = session.execute(
                LoanRecordModel.__table__.delete().where(self._owned(owner))
            ).rowcount
            session.commit()
            logger.info("Cleared %d %s records", deleted, self.collection)
            return deleted

    def _check_capacity(self, session: Session, owner: str, flushed: bool = False) -> None:
        pass

    @staticmethod
    def _to_dict(row: LoanRecordModel) -> Dict[str, Any]:
        record = json.loads(row.payload_json)
        record["id"] = row.id
        return record


class HistoryStore(RecordStore):
    """Unbounded, append-only calculation history."""

    collection = HISTORY


class CompareStore(RecordStore):
    """Compare list holding at most ``max_items`` records per owner."""

    collection = COMPARE

    def __init__(self, engine: Engine, *, max_items: int = COMPARE_LIMIT) -> None:
        super().__init__(engine)
        self.max_items = max_items

    def _check_capacity(self, session: Session, owner: str, flushed: bool = False) -> None:
        current = session.execute(
            select(func.count(LoanRecordModel.id)).where(self._owned(owner))
        ).scalar_one()
        if flushed:
            current -= 1
        if current >= self.max_items:
            logger.warning("Compare list for %s is full (%d items)", owner, current)
            raise CompareListFullError(self.max_items)
