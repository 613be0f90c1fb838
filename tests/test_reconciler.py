"""
tests/test_reconciler.py
========================

Unit tests for rentflow.reconciler.reconcile against the in-memory
RentalRegistry.
"""

from datetime import datetime, timedelta, timezone

from rentflow.audit import InMemoryAuditSink
from rentflow.models import AuditAction, RentalSnapshot, RentalStatus
from rentflow.reconciler import reconcile
from rentflow.registry import RentalRegistry

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
H = timedelta(hours=1)


def _registry():
    reg = RentalRegistry()
    reg.add(RentalSnapshot("due", "scheduled", rental_start_date=T0 - H, rental_end_date=T0 + 2 * H))
    reg.add(RentalSnapshot("over", "rented", rental_start_date=T0 - 5 * H, rental_end_date=T0 - H,
                           rental_started_at=T0 - 5 * H, rental_started_by="staff-1"))
    reg.add(RentalSnapshot("later", "scheduled", rental_start_date=T0 + 5 * H, rental_end_date=T0 + 6 * H))
    return reg


def test_reconcile_applies_and_audits(clock):
    reg, sink = _registry(), InMemoryAuditSink()
    updates = reconcile(reg, True, clock=clock, sink=sink)

    assert [(u.snapshot.id, u.new_status) for u in updates] == [
        ("due", RentalStatus.RENTED),
        ("over", RentalStatus.COMPLETED),
    ]
    assert reg.get("due").rental_status is RentalStatus.RENTED
    assert reg.get("due").rental_started_by == "system"
    assert reg.get("over").rental_completed_at == T0
    assert reg.get("later").rental_status is RentalStatus.SCHEDULED

    entries = list(sink)
    assert [e.rental_id for e in entries] == ["due", "over"]
    assert all(e.action is AuditAction.STATUS_CHANGE for e in entries)
    assert entries[0].metadata["trigger"] == "auto"
    assert entries[0].actor_id == "system"


def test_reconcile_without_auto_activation(clock):
    reg = _registry()
    updates = reconcile(reg, False, clock=clock)
    assert [u.snapshot.id for u in updates] == ["over"]
    assert reg.get("due").rental_status is RentalStatus.SCHEDULED


def test_second_pass_is_empty(clock):
    reg = _registry()
    reconcile(reg, True, clock=clock)
    assert reconcile(reg, True, clock=clock) == []


def test_dry_run_writes_nothing(clock):
    reg, sink = _registry(), InMemoryAuditSink()
    updates = reconcile(reg, True, clock=clock, sink=sink, dry_run=True)
    assert len(updates) == 2
    assert reg.get("due").rental_status is RentalStatus.SCHEDULED
    assert len(sink) == 0


def test_conflicting_rental_is_skipped(clock, caplog):
    class RacingRegistry(RentalRegistry):
        """Someone cancels 'due' between our read and our write."""

        def save(self, rental, expected_status=None):
            if rental.id == "due":
                super().save(self.get("due").with_changes(rental_status=RentalStatus.CANCELLED))
            super().save(rental, expected_status)

    reg = RacingRegistry()
    for r in _registry():
        reg.add(r)

    updates = reconcile(reg, True, clock=clock)
    assert [u.snapshot.id for u in updates] == ["over"]
    assert reg.get("due").rental_status is RentalStatus.CANCELLED
    assert "skipping rental due" in caplog.text


def test_failing_audit_sink_does_not_halt_the_pass(clock, caplog):
    class Broken:
        def record(self, entry):
            raise RuntimeError("audit backend down")

    reg = _registry()
    updates = reconcile(reg, True, clock=clock, sink=Broken())

    assert [u.snapshot.id for u in updates] == ["due", "over"]
    assert reg.get("due").rental_status is RentalStatus.RENTED
    assert reg.get("over").rental_status is RentalStatus.COMPLETED
    assert "audit sink failed for rental over" in caplog.text
