"""
rentflow.registry
=================

An in‑memory store of :class:`rentflow.models.RentalSnapshot` objects
keyed by rental id.

This module is intentionally simple—only the standard library—so that
the reconciler and the HTTP layer can be unit‑tested without a database.
:pymod:`rentflow.registry_db` offers the same surface over SQLModel.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

from .models import RentalSnapshot, RentalStatus


class StaleSnapshotError(RuntimeError):
    """The stored rental changed since the caller read it."""

    def __init__(self, rental_id: str, expected: RentalStatus,
                 actual: Optional[RentalStatus]) -> None:
        super().__init__(
            f"rental {rental_id} is {actual.value if actual else 'missing'}, "
            f"expected {expected.value}"
        )
        self.rental_id = rental_id
        self.expected = expected
        self.actual = actual


class RentalRegistry:
    """
    Dictionary‑backed registry of rentals.

    Example
    -------
    >>> reg = RentalRegistry()
    >>> reg.add(RentalSnapshot("r-1"))
    >>> reg.get("r-1").rental_status
    <RentalStatus.SCHEDULED: 'scheduled'>
    """

    def __init__(self) -> None:
        self._rentals: Dict[str, RentalSnapshot] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def add(self, rental: RentalSnapshot) -> None:
        """Insert or overwrite a rental."""
        self._rentals[rental.id] = rental

    def get(self, rental_id: str) -> RentalSnapshot:
        """Retrieve by id (raise KeyError if not present)."""
        return self._rentals[rental_id]

    def save(self, rental: RentalSnapshot,
             expected_status: Optional[RentalStatus] = None) -> None:
        """
        Write *rental* back.

        With *expected_status* the write only happens if the stored rental
        still has that status (compare‑and‑swap); otherwise
        :class:`StaleSnapshotError` is raised and nothing changes.
        """
        if expected_status is not None:
            current = self._rentals.get(rental.id)
            actual = current.rental_status if current else None
            if actual is not expected_status:
                raise StaleSnapshotError(rental.id, expected_status, actual)
        self._rentals[rental.id] = rental

    def find_by_status(self, status: RentalStatus) -> List[RentalSnapshot]:
        """Return all rentals currently at the given status."""
        return [r for r in self._rentals.values() if r.rental_status is status]

    def find_by_vehicle(self, vehicle_id: str) -> List[RentalSnapshot]:
        return [r for r in self._rentals.values() if r.vehicle_id == vehicle_id]

    # ------------------------------------------------------------------
    # Dunder helpers for convenience
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[RentalSnapshot]:
        return iter(list(self._rentals.values()))

    def __len__(self) -> int:
        return len(self._rentals)

    def __contains__(self, rental_id: object) -> bool:
        return rental_id in self._rentals
