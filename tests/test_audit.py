"""
tests/test_audit.py
===================

Unit tests for rentflow.audit sinks and record builders.
"""

import logging
from datetime import datetime, timezone

from rentflow.audit import (
    InMemoryAuditSink,
    LoggingAuditSink,
    default_sink,
    status_change_record,
)
from rentflow.models import AuditAction, RentalSnapshot, RentalStatus

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _entry(rental_id="r-1", new=RentalStatus.RENTED):
    return status_change_record(RentalSnapshot(rental_id), RentalStatus.SCHEDULED, new,
                                trigger="manual", actor_id="staff-1", now=T0)


def test_status_change_record_fields():
    e = _entry()
    assert e.action is AuditAction.STATUS_CHANGE
    assert e.old_data == {"rental_status": "scheduled"}
    assert e.new_data == {"rental_status": "rented"}
    assert e.metadata["trigger"] == "manual"
    assert e.metadata["previous_status"] == "scheduled"
    assert e.performed_at == T0


def test_in_memory_sink_is_bounded():
    sink = InMemoryAuditSink(maxlen=2)
    for rid in ("a", "b", "c"):
        sink.record(_entry(rid))
    assert [e.rental_id for e in sink] == ["b", "c"]
    assert len(sink.for_rental("a")) == 0
    sink.clear()
    assert len(sink) == 0


def test_default_sink_uses_configured_capacity():
    sink = default_sink()
    for i in range(150):
        sink.record(_entry(f"r-{i}"))
    assert len(sink) == 100


def test_logging_sink(caplog):
    with caplog.at_level(logging.INFO, logger="rentflow.audit"):
        LoggingAuditSink().record(_entry())
    assert "rental r-1 status_change: scheduled -> rented by staff-1" in caplog.text
