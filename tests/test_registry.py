"""
tests/test_registry.py
======================

Unit tests for rentflow.registry.RentalRegistry
"""

import pytest

from rentflow.models import RentalSnapshot, RentalStatus
from rentflow.registry import RentalRegistry, StaleSnapshotError


def _demo_registry():
    reg = RentalRegistry()
    reg.add(RentalSnapshot("r-1", vehicle_id="ATV-01"))  # scheduled
    reg.add(RentalSnapshot("r-2", "rented", vehicle_id="ATV-02"))
    reg.add(RentalSnapshot("r-3", "completed", vehicle_id="ATV-01"))
    return reg


def test_add_and_get_by_id():
    reg = RentalRegistry()
    r = RentalSnapshot("r-42")
    reg.add(r)
    assert reg.get("r-42") is r
    assert "r-42" in reg


def test_get_missing_raises_key_error():
    with pytest.raises(KeyError):
        RentalRegistry().get("nope")


def test_find_by_status_and_vehicle():
    reg = _demo_registry()
    assert [r.id for r in reg.find_by_status(RentalStatus.RENTED)] == ["r-2"]
    assert [r.id for r in reg.find_by_vehicle("ATV-01")] == ["r-1", "r-3"]


def test_len_and_iter():
    reg = _demo_registry()
    assert len(reg) == 3
    assert {r.id for r in reg} == {"r-1", "r-2", "r-3"}


def test_save_with_matching_expected_status():
    reg = _demo_registry()
    reg.save(reg.get("r-1").with_changes(rental_status=RentalStatus.RENTED),
             expected_status=RentalStatus.SCHEDULED)
    assert reg.get("r-1").rental_status is RentalStatus.RENTED


def test_save_with_stale_expected_status():
    reg = _demo_registry()
    with pytest.raises(StaleSnapshotError) as exc:
        reg.save(RentalSnapshot("r-2", "completed"), expected_status=RentalStatus.SCHEDULED)
    assert exc.value.actual is RentalStatus.RENTED
    assert reg.get("r-2").rental_status is RentalStatus.RENTED


def test_save_expected_on_missing_rental():
    with pytest.raises(StaleSnapshotError, match="missing"):
        RentalRegistry().save(RentalSnapshot("ghost"), expected_status=RentalStatus.SCHEDULED)
