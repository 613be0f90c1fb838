"""
tests/test_cli.py
=================

Tests for the ``rentflow`` command line, driven through ``main(argv)``
with an in-memory registry and a fixed clock.
"""

from rentflow.audit import InMemoryAuditSink
from rentflow.cli import demo_rentals, main
from rentflow.models import RentalStatus
from rentflow.registry import RentalRegistry


def _seeded(clock):
    reg = RentalRegistry()
    assert main(["seed"], registry=reg, clock=clock) == 0
    return reg


def test_seed_covers_every_state(clock):
    statuses = {r.rental_status for r in demo_rentals(clock)}
    assert statuses == {RentalStatus.SCHEDULED, RentalStatus.RENTED, RentalStatus.CANCELLED}
    assert len(_seeded(clock)) == 6


def test_list_prints_sorted_rows(clock, capsys):
    reg = _seeded(clock)
    capsys.readouterr()
    assert main(["list"], registry=reg, clock=clock) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 6
    assert lines[0].startswith("r-1006")       # scheduled, earliest start
    assert "start,cancel" in lines[1]          # r-1002 is due now
    assert lines[-1].startswith("r-1005")      # cancelled last


def test_reconcile_dry_run_and_apply(clock, capsys):
    reg = _seeded(clock)
    sink = InMemoryAuditSink()
    capsys.readouterr()

    assert main(["reconcile", "--dry-run"], registry=reg, sink=sink, clock=clock) == 0
    assert "2 rental(s) would change" in capsys.readouterr().out
    assert len(sink) == 0

    assert main(["reconcile"], registry=reg, sink=sink, clock=clock) == 0
    out = capsys.readouterr().out
    assert "r-1002: scheduled -> rented" in out
    assert "r-1004: rented -> completed" in out
    assert len(sink) == 2
    # refunded payment stays frozen
    assert reg.get("r-1006").rental_status is RentalStatus.SCHEDULED


def test_reconcile_without_auto_activation(clock, capsys):
    reg = _seeded(clock)
    capsys.readouterr()
    main(["reconcile", "--no-auto-activate"], registry=reg, clock=clock)
    assert "1 rental(s) updated" in capsys.readouterr().out


def test_start_complete_cancel(clock, capsys):
    reg = _seeded(clock)
    sink = InMemoryAuditSink()

    assert main(["start", "r-1001", "--actor", "staff-7"], registry=reg, sink=sink, clock=clock) == 0
    assert reg.get("r-1001").rental_status is RentalStatus.RENTED

    assert main(["complete", "r-1001", "--actor", "staff-7", "--media", "2"],
                registry=reg, sink=sink, clock=clock) == 0
    assert reg.get("r-1001").rental_completed_by == "staff-7"
    assert sink.for_rental("r-1001")[-1].metadata["closing_media_count"] == 2

    assert main(["cancel", "r-1002", "--actor", "staff-7", "--reason", "no-show"],
                registry=reg, sink=sink, clock=clock) == 0
    assert reg.get("r-1002").cancellation_reason == "no-show"


def test_denied_transition_exits_1_with_reason(clock, capsys):
    reg = _seeded(clock)
    capsys.readouterr()
    assert main(["cancel", "r-1005", "--actor", "s", "--reason", "again"],
                registry=reg, clock=clock) == 1
    assert "Cannot cancel cancelled rental" in capsys.readouterr().err


def test_unknown_rental(clock, capsys):
    assert main(["start", "ghost", "--actor", "s"], registry=RentalRegistry(), clock=clock) == 1
    assert "not found" in capsys.readouterr().err


def test_init_db_in_memory(capsys):
    assert main(["--db", "sqlite://", "init-db"]) == 0
    assert "schema initialised" in capsys.readouterr().out


def test_lost_race_exits_1_and_leaves_no_audit(clock, capsys):
    class RacingRegistry(RentalRegistry):
        def save(self, rental, expected_status=None):
            super().save(self.get(rental.id).with_changes(rental_status=RentalStatus.CANCELLED))
            super().save(rental, expected_status)

    reg = RacingRegistry()
    for rental in demo_rentals(clock):
        reg.add(rental)
    sink = InMemoryAuditSink()

    assert main(["start", "r-1001", "--actor", "staff-7"], registry=reg, sink=sink, clock=clock) == 1
    assert reg.get("r-1001").rental_status is RentalStatus.CANCELLED
    assert sink.for_rental("r-1001") == []
