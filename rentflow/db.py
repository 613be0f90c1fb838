"""
rentflow.db
===========

SQLite (or any SQLAlchemy URL) persistence layer for Rentflow.

This module exposes:

* ``engine`` – a global SQLModel engine built from ``settings.DB_URL``
* ``SessionLocal`` – a session factory used via ``with SessionLocal() as s:``
* ``create_all()`` – helper to create tables at first run
* ``RentalDB`` / ``AuditRecordDB`` – table models plus CRUD helpers

Timestamps are written as aware UTC and always come back as aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, JSON, update
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .clock import as_business_time, load_zone
from .models import AuditAction, AuditRecord, RentalSnapshot, RentalStatus
from .settings import DB_ECHO, DB_URL, settings


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
def make_engine(url: str = DB_URL, echo: bool = DB_ECHO) -> Engine:
    """Create an engine; in‑memory SQLite shares one connection across threads."""
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo)


engine = make_engine()


# ---------------------------------------------------------------------------
# Session factory
# ---------------------------------------------------------------------------
def SessionLocal(bind: Engine | None = None) -> Session:  # noqa: N802 (factory camel‑case for consistency with FastAPI docs)
    """Return a new Session bound to *bind* (the global engine by default)."""
    return Session(bind if bind is not None else engine)


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    moment = as_business_time(value, load_zone(settings.business_timezone))
    if moment is None:
        return None
    return moment.astimezone(timezone.utc)


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    # SQLite hands back naive values; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# ORM models
# ---------------------------------------------------------------------------
class RentalDB(SQLModel, table=True):
    """Row representation of a :class:`rentflow.models.RentalSnapshot`."""

    __tablename__ = "rentals"

    id: str = Field(primary_key=True, index=True)
    rental_status: RentalStatus = Field(default=RentalStatus.SCHEDULED, index=True)
    payment_status: Optional[str] = None
    rental_start_date: Optional[datetime] = None
    rental_end_date: Optional[datetime] = None
    rental_started_at: Optional[datetime] = None
    rental_started_by: Optional[str] = None
    rental_completed_at: Optional[datetime] = None
    rental_completed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    updated_at: Optional[datetime] = None
    customer_name: Optional[str] = None
    vehicle_id: Optional[str] = Field(default=None, index=True)

    # ---------------------------------------------------------------------
    # Converters
    # ---------------------------------------------------------------------
    @classmethod
    def from_snapshot(cls, rental: RentalSnapshot) -> "RentalDB":
        """Create a DB row from an in‑memory snapshot."""
        return cls(
            id=rental.id,
            rental_status=rental.rental_status,
            payment_status=rental.payment_status,
            rental_start_date=_to_db(rental.rental_start_date),
            rental_end_date=_to_db(rental.rental_end_date),
            rental_started_at=_to_db(rental.rental_started_at),
            rental_started_by=rental.rental_started_by,
            rental_completed_at=_to_db(rental.rental_completed_at),
            rental_completed_by=rental.rental_completed_by,
            cancelled_at=_to_db(rental.cancelled_at),
            cancelled_by=rental.cancelled_by,
            cancellation_reason=rental.cancellation_reason,
            updated_at=_to_db(rental.updated_at),
            customer_name=rental.customer_name,
            vehicle_id=rental.vehicle_id,
        )

    def to_snapshot(self) -> RentalSnapshot:
        """Convert the DB row back into an immutable snapshot."""
        return RentalSnapshot(
            id=self.id,
            rental_status=self.rental_status,
            payment_status=self.payment_status,
            rental_start_date=_from_db(self.rental_start_date),
            rental_end_date=_from_db(self.rental_end_date),
            rental_started_at=_from_db(self.rental_started_at),
            rental_started_by=self.rental_started_by,
            rental_completed_at=_from_db(self.rental_completed_at),
            rental_completed_by=self.rental_completed_by,
            cancelled_at=_from_db(self.cancelled_at),
            cancelled_by=self.cancelled_by,
            cancellation_reason=self.cancellation_reason,
            updated_at=_from_db(self.updated_at),
            customer_name=self.customer_name,
            vehicle_id=self.vehicle_id,
        )


class AuditRecordDB(SQLModel, table=True):
    """Row representation of an :class:`rentflow.models.AuditRecord`."""

    __tablename__ = "rental_audit_log"

    pk: Optional[int] = Field(default=None, primary_key=True)
    rental_id: str = Field(index=True)
    action: str
    actor_id: Optional[str] = None
    performed_at: datetime
    old_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    new_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    reason: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    @classmethod
    def from_record(cls, entry: AuditRecord) -> "AuditRecordDB":
        return cls(
            rental_id=entry.rental_id,
            action=entry.action.value,
            actor_id=entry.actor_id,
            performed_at=_to_db(entry.performed_at),
            old_data=dict(entry.old_data),
            new_data=dict(entry.new_data),
            reason=entry.reason,
            details=dict(entry.metadata),
        )

    def to_record(self) -> AuditRecord:
        return AuditRecord(
            rental_id=self.rental_id,
            action=AuditAction(self.action),
            actor_id=self.actor_id,
            performed_at=_from_db(self.performed_at),
            old_data=dict(self.old_data or {}),
            new_data=dict(self.new_data or {}),
            reason=self.reason,
            metadata=dict(self.details or {}),
        )


# ---------------------------------------------------------------------------
# Convenience CRUD helpers
# ---------------------------------------------------------------------------
def upsert_rental(s: Session, rental: RentalSnapshot) -> None:
    """Insert or update a rental row."""
    s.merge(RentalDB.from_snapshot(rental))
    s.commit()


def swap_rental(s: Session, rental: RentalSnapshot, expected_status: RentalStatus) -> bool:
    """
    Update the row only if its stored status is still *expected_status*.

    Returns ``True`` when a row was written.
    """
    values = RentalDB.from_snapshot(rental).model_dump(exclude={"id"})
    result = s.connection().execute(
        update(RentalDB)
        .where(RentalDB.id == rental.id)
        .where(RentalDB.rental_status == expected_status)
        .values(**values)
    )
    s.commit()
    return result.rowcount == 1


def get_rental(s: Session, rental_id: str) -> RentalSnapshot | None:
    """Return a rental by id or *None* if missing."""
    row = s.get(RentalDB, rental_id)
    return row.to_snapshot() if row else None


def all_rentals(s: Session, status: RentalStatus | None = None) -> list[RentalSnapshot]:
    """Return every rental, optionally only those at *status*."""
    query = select(RentalDB)
    if status is not None:
        query = query.where(RentalDB.rental_status == status)
    rows = s.exec(query.order_by(RentalDB.id)).all()
    return [row.to_snapshot() for row in rows]


def add_audit_record(s: Session, entry: AuditRecord) -> None:
    s.add(AuditRecordDB.from_record(entry))
    s.commit()


def audit_records(s: Session, rental_id: str | None = None) -> List[AuditRecord]:
    """Audit entries, oldest first, optionally for one rental."""
    query = select(AuditRecordDB)
    if rental_id is not None:
        query = query.where(AuditRecordDB.rental_id == rental_id)
    rows = s.exec(query.order_by(AuditRecordDB.pk)).all()
    return [row.to_record() for row in rows]


# ---------------------------------------------------------------------------
# Utility: create tables
# ---------------------------------------------------------------------------
def create_all(bind: Engine | None = None) -> None:
    """Create the rental and audit tables (safe if they already exist)."""
    SQLModel.metadata.create_all(bind if bind is not None else engine)


# ---------------------------------------------------------------------------
# Lightweight CLI
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    """
    Quick bootstrap helper.

    Examples
    --------
    $ python -m rentflow.db --create        # first‑time table creation
    """
    import argparse

    parser = argparse.ArgumentParser(prog="python -m rentflow.db",
                                     description="Rentflow DB utilities")
    parser.add_argument("--create", action="store_true", help="create tables")
    args = parser.parse_args()

    if args.create:
        create_all()
        print(f"rentflow schema initialised at {DB_URL}")
