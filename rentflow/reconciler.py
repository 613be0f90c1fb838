"""
rentflow.reconciler
===================

One reconciliation pass over a rental store.

An external scheduler (cron, a worker, the ``rentflow reconcile`` command)
calls :pyfunc:`reconcile` periodically.  The pass reads the clock once,
asks :pyfunc:`rentflow.lifecycle.batch_evaluate` which rentals drifted,
writes each one back with a compare‑and‑swap on its old status and emits
a system audit record for it.  A rental that changed underneath us is
logged and skipped, and so is a failing audit sink; neither stops the
rest of the batch.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol

from .audit import AuditSink, status_change_record
from .clock import Clock, resolve
from .lifecycle import apply_update, batch_evaluate, deliver
from .models import RentalSnapshot, RentalStatus, StatusUpdate
from .registry import StaleSnapshotError
from .settings import settings

logger = logging.getLogger(__name__)


class RentalStore(Protocol):
    """What the reconciler needs from a registry."""

    def __iter__(self) -> Iterable[RentalSnapshot]: ...

    def save(self, rental: RentalSnapshot,
             expected_status: Optional[RentalStatus] = None) -> None: ...


def reconcile(registry: RentalStore, auto_activate: bool | None = None, *,
              clock: Clock | None = None, sink: AuditSink | None = None,
              dry_run: bool = False) -> List[StatusUpdate]:
    """
    Bring every stored rental in line with the clock.

    Returns the updates that were applied (or, with *dry_run*, that would
    have been).  Rentals lost to a concurrent writer are left out.
    """
    if auto_activate is None:
        auto_activate = settings.auto_activate

    now = resolve(clock).now()
    updates = batch_evaluate(list(registry), auto_activate, clock=clock, now=now,
                             stacklevel=3)
    if dry_run:
        logger.info("dry run: %d rental(s) would change", len(updates))
        return updates

    applied: List[StatusUpdate] = []
    for update in updates:
        new_snapshot = apply_update(update, now, settings.system_actor)
        try:
            registry.save(new_snapshot, expected_status=update.old_status)
        except StaleSnapshotError as exc:
            logger.warning("skipping rental %s: %s", update.snapshot.id, exc)
            continue

        applied.append(StatusUpdate(new_snapshot, update.old_status, update.new_status))
        logger.info("rental %s status changed: %s -> %s (auto)",
                    update.snapshot.id, update.old_status.value, update.new_status.value)
        deliver(sink, status_change_record(
            new_snapshot, update.old_status, update.new_status,
            trigger="auto", actor_id=settings.system_actor, now=now,
        ))

    logger.info("reconcile pass: %d drifted, %d applied", len(updates), len(applied))
    return applied
