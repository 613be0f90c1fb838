"""
rentflow.registry_db
====================

SQLModel‑backed implementation of the RentalRegistry public surface.

This adapter wraps the CRUD helpers in :pymod:`rentflow.db` so that any
code expecting the in‑memory RentalRegistry can switch to a persistent
store without changing its API calls.  :class:`DBAuditSink` writes audit
records to the same database.
"""

from __future__ import annotations

from typing import Iterator, List, Optional

from sqlmodel import Session

from rentflow.db import (
    SessionLocal,
    add_audit_record,
    all_rentals,
    audit_records,
    get_rental,
    swap_rental,
    upsert_rental,
)
from rentflow.models import AuditRecord, RentalSnapshot, RentalStatus
from rentflow.registry import StaleSnapshotError


class DBRentalRegistry:
    """
    Drop‑in replacement backed by a database session.

    Methods mirror the in‑memory RentalRegistry:
    * add(rental) / save(rental, expected_status=None)
    * get(rental_id)
    * find_by_status(status) / find_by_vehicle(vehicle_id)
    * iteration / len()
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session: Session = session or SessionLocal()

    # ------------------------------------------------------------------ CRUD
    def add(self, rental: RentalSnapshot) -> None:
        upsert_rental(self._session, rental)

    def get(self, rental_id: str) -> RentalSnapshot:
        rental = get_rental(self._session, rental_id)
        if rental is None:
            raise KeyError(rental_id)
        return rental

    def save(self, rental: RentalSnapshot,
             expected_status: Optional[RentalStatus] = None) -> None:
        if expected_status is None:
            upsert_rental(self._session, rental)
            return
        if not swap_rental(self._session, rental, expected_status):
            current = get_rental(self._session, rental.id)
            raise StaleSnapshotError(rental.id, expected_status,
                                     current.rental_status if current else None)

    def find_by_status(self, status: RentalStatus) -> List[RentalSnapshot]:
        return all_rentals(self._session, status)

    def find_by_vehicle(self, vehicle_id: str) -> List[RentalSnapshot]:
        return [r for r in all_rentals(self._session) if r.vehicle_id == vehicle_id]

    # ------------------------------------------------------ dunder helpers
    def __iter__(self) -> Iterator[RentalSnapshot]:
        yield from all_rentals(self._session)

    def __len__(self) -> int:
        return len(all_rentals(self._session))

    def __contains__(self, rental_id: object) -> bool:
        return isinstance(rental_id, str) and get_rental(self._session, rental_id) is not None

    # ----------------------------------------------------- context manager
    def __enter__(self) -> "DBRentalRegistry":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._session.close()


class DBAuditSink:
    """AuditSink that appends rows to the ``rental_audit_log`` table."""

    def __init__(self, session: Session | None = None) -> None:
        self._session: Session = session or SessionLocal()

    def record(self, entry: AuditRecord) -> None:
        add_audit_record(self._session, entry)

    def for_rental(self, rental_id: str) -> List[AuditRecord]:
        return audit_records(self._session, rental_id)

    def __iter__(self) -> Iterator[AuditRecord]:
        yield from audit_records(self._session)

    def __len__(self) -> int:
        return len(audit_records(self._session))
