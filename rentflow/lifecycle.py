"""
rentflow.lifecycle
==================

State machine for a :class:`rentflow.models.RentalSnapshot`.

    scheduled ──start──▶ rented ──complete──▶ completed
        │                  │
        └──────cancel──────┴──▶ cancelled

``refunded`` is set by the payment side and freezes the rental.

Three layers live here:

* predicates (:pyfunc:`can_start`, :pyfunc:`can_complete`,
  :pyfunc:`can_cancel`) answer *may this happen now?* and never raise;
* executors (:pyfunc:`start`, :pyfunc:`complete`, :pyfunc:`cancel`)
  return a new snapshot plus an audit record, or raise
  :class:`IllegalTransition` carrying the predicate's reason;
* the evaluator (:pyfunc:`evaluate_status`, :pyfunc:`batch_evaluate`)
  recommends what the status *should* be given the clock.  It is advisory
  and never persists anything.

Nothing in this module mutates its input.
"""

from __future__ import annotations

import logging
import warnings
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import audit as _audit
from .audit import AuditSink
from .clock import Clock, as_business_time, as_utc, format_business_time, resolve
from .models import (
    AuditRecord,
    Decision,
    RentalSnapshot,
    RentalStatus,
    StatusUpdate,
    TERMINAL_STATUSES,
    TransitionResult,
)
from .settings import settings

logger = logging.getLogger(__name__)


class IllegalTransition(ValueError):
    """An executor was called while its predicate denies the transition."""

    def __init__(self, reason: str, action: Optional[str] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.action = action


class DataQualityWarning(UserWarning):
    """A rental is missing data the evaluator needs; its status was left alone."""


# ---------------------------------------------------------------------
# Allowed transitions: action → (legal source statuses, target status)
# ---------------------------------------------------------------------
RULES: Dict[str, Tuple[frozenset, RentalStatus]] = {
    "start":    (frozenset({RentalStatus.SCHEDULED}), RentalStatus.RENTED),
    "complete": (frozenset({RentalStatus.RENTED}), RentalStatus.COMPLETED),
    "cancel":   (frozenset({RentalStatus.SCHEDULED, RentalStatus.RENTED}),
                 RentalStatus.CANCELLED),
}


def _now(clock: Clock | None, now: datetime | None) -> Tuple[datetime, tzinfo]:
    """Read the clock once; *now* overrides it when the caller already did."""
    clk = resolve(clock)
    tz = clk.tz
    moment = as_business_time(now, tz) if now is not None else clk.now()
    return moment, tz


def _early_window(early_window: timedelta | None) -> timedelta:
    return early_window if early_window is not None else settings.early_start_window


# ---------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------
def can_start(snapshot: Optional[RentalSnapshot], *, clock: Clock | None = None,
              now: datetime | None = None,
              early_window: timedelta | None = None) -> Decision:
    """
    May staff start this rental now?

    Starting is allowed from ``early_window`` (24h by default) before the
    scheduled start onwards; starting late is always allowed.
    """
    if snapshot is None:
        return Decision.deny("Rental not found")

    status = snapshot.rental_status
    if status is not RentalStatus.SCHEDULED:
        return Decision.deny(f"Rental is {status.value}, not scheduled")

    if snapshot.rental_started_at is not None:
        return Decision.deny("Rental has already been started")

    moment, tz = _now(clock, now)
    scheduled_start = as_utc(snapshot.rental_start_date, tz)
    if scheduled_start is not None and scheduled_start - as_utc(moment, tz) > _early_window(early_window):
        when = format_business_time(scheduled_start, clock)
        return Decision.deny(f"Rental is scheduled for {when}. Too early to start.")

    return Decision.allow()


# older call sites still ask whether a rental can be "activated"
can_activate = can_start


def can_complete(snapshot: Optional[RentalSnapshot]) -> Decision:
    """May this rental be completed?  There is no time restriction."""
    if snapshot is None:
        return Decision.deny("Rental not found")

    status = snapshot.rental_status
    if status is not RentalStatus.RENTED:
        return Decision.deny(f"Rental is {status.value}, not rented")

    if snapshot.rental_started_at is None:
        return Decision.deny("Rental has not been started yet")

    return Decision.allow()


def can_cancel(snapshot: Optional[RentalSnapshot]) -> Decision:
    """Scheduled and rented rentals can be cancelled; closed ones cannot."""
    if snapshot is None:
        return Decision.deny("Rental not found")

    status = snapshot.rental_status
    if status not in RULES["cancel"][0]:
        return Decision.deny(f"Cannot cancel {status.value} rental")

    return Decision.allow()


# ---------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------
def deliver(sink: AuditSink | None, entry: AuditRecord) -> None:
    """Hand *entry* to *sink*; a failing sink is logged, never raised."""
    if sink is None:
        return
    try:
        sink.record(entry)
    except Exception:
        # the transition already happened; a lost audit line must not undo it
        logger.exception("audit sink failed for rental %s (%s)",
                         entry.rental_id, entry.action.value)


def _refuse(action: str, snapshot: Optional[RentalSnapshot], decision: Decision) -> None:
    if not decision:
        logger.info("refused %s on rental %s: %s",
                    action, getattr(snapshot, "id", None), decision.reason)
        raise IllegalTransition(decision.reason or f"cannot {action} rental", action=action)


def start(snapshot: RentalSnapshot, actor_id: str, *, clock: Clock | None = None,
          sink: AuditSink | None = None,
          early_window: timedelta | None = None) -> TransitionResult:
    """
    Move a scheduled rental to ``rented``.

    Raises
    ------
    IllegalTransition
        With :pyfunc:`can_start`'s reason when the start is refused.
    """
    moment, _ = _now(clock, None)
    _refuse("start", snapshot, can_start(snapshot, clock=clock, now=moment,
                                         early_window=early_window))

    target = RULES["start"][1]
    after = snapshot.with_changes(
        rental_status=target,
        rental_started_at=moment,
        rental_started_by=actor_id,
        updated_at=moment,
    )
    entry = _audit.start_record(snapshot, after, actor_id, moment)
    deliver(sink, entry)
    logger.info("rental %s started by %s", snapshot.id, actor_id)
    return TransitionResult(after, entry)


def complete(snapshot: RentalSnapshot, actor_id: str, *, closing_media_count: int = 0,
             clock: Clock | None = None, sink: AuditSink | None = None) -> TransitionResult:
    """Close a rented rental.  *closing_media_count* is kept on the audit record."""
    _refuse("complete", snapshot, can_complete(snapshot))
    moment, _ = _now(clock, None)

    target = RULES["complete"][1]
    after = snapshot.with_changes(
        rental_status=target,
        rental_completed_at=moment,
        rental_completed_by=actor_id,
        updated_at=moment,
    )
    entry = _audit.complete_record(snapshot, after, actor_id, moment,
                                   closing_media_count=closing_media_count or 0)
    deliver(sink, entry)
    logger.info("rental %s completed by %s", snapshot.id, actor_id)
    return TransitionResult(after, entry)


def cancel(snapshot: RentalSnapshot, actor_id: str, reason: Optional[str] = None, *,
           clock: Clock | None = None, sink: AuditSink | None = None) -> TransitionResult:
    """Cancel a scheduled or rented rental, keeping the free‑text *reason*."""
    _refuse("cancel", snapshot, can_cancel(snapshot))
    moment, _ = _now(clock, None)

    target = RULES["cancel"][1]
    after = snapshot.with_changes(
        rental_status=target,
        cancelled_at=moment,
        cancelled_by=actor_id,
        cancellation_reason=reason,
        updated_at=moment,
    )
    entry = _audit.cancel_record(snapshot, after, actor_id, moment, reason)
    deliver(sink, entry)
    logger.info("rental %s cancelled by %s", snapshot.id, actor_id)
    return TransitionResult(after, entry)


EXECUTORS: Dict[str, Callable[..., TransitionResult]] = {
    "start": start,
    "complete": complete,
    "cancel": cancel,
}


def perform(action: str, snapshot: RentalSnapshot, actor_id: str, **options) -> TransitionResult:
    """Dispatch *action* (``start``/``complete``/``cancel``) to its executor."""
    try:
        executor = EXECUTORS[action]
    except KeyError:
        raise IllegalTransition(f"Unknown action {action!r}", action=action) from None
    return executor(snapshot, actor_id, **options)


# ---------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------
def evaluate_status(snapshot: RentalSnapshot, auto_activate: bool | None = None, *,
                    clock: Clock | None = None,
                    now: datetime | None = None,
                    stacklevel: int = 2) -> RentalStatus:
    """
    Recommend the status *snapshot* should have at *now*.

    Rules, first match wins:

    1. refunded payment, cancelled or refunded status → unchanged
    2. start or end missing → unchanged (and a :class:`DataQualityWarning`)
    3. past the end → ``completed``
    4. inside the window and already rented → ``rented``
    5. inside the window, ``auto_activate`` and scheduled → ``rented``
    6. before the start → ``rented``/``completed`` stay, else ``scheduled``
    7. anything else → unchanged

    *stacklevel* is handed to :pyfunc:`warnings.warn` so the warning points
    at the code that asked for the evaluation.
    """
    current = snapshot.rental_status
    if snapshot.is_payment_refunded or current in TERMINAL_STATUSES:
        return current

    if snapshot.rental_start_date is None or snapshot.rental_end_date is None:
        logger.warning("missing rental dates for status evaluation: %s", snapshot.id)
        warnings.warn(
            f"rental {snapshot.id} is missing its rental window; status left as {current.value}",
            DataQualityWarning,
            stacklevel=stacklevel,
        )
        return current

    if auto_activate is None:
        auto_activate = settings.auto_activate

    moment, tz = _now(clock, now)
    moment = as_utc(moment, tz)
    start_at = as_utc(snapshot.rental_start_date, tz)
    end_at = as_utc(snapshot.rental_end_date, tz)

    if moment >= end_at:
        return RentalStatus.COMPLETED
    if moment >= start_at and current is RentalStatus.RENTED:
        return RentalStatus.RENTED
    if moment >= start_at and auto_activate and current is RentalStatus.SCHEDULED:
        return RentalStatus.RENTED
    if moment < start_at:
        if current in (RentalStatus.RENTED, RentalStatus.COMPLETED):
            return current
        return RentalStatus.SCHEDULED
    return current


def batch_evaluate(snapshots: Iterable[RentalSnapshot], auto_activate: bool | None = None, *,
                   clock: Clock | None = None,
                   now: datetime | None = None,
                   stacklevel: int = 2) -> List[StatusUpdate]:
    """
    Evaluate every snapshot against one instant and return the ones that change.

    The clock is read once so the whole pass sees a single "now".  Output
    order follows input order.
    """
    moment, _ = _now(clock, now)
    updates: List[StatusUpdate] = []
    for snapshot in snapshots:
        new_status = evaluate_status(snapshot, auto_activate, clock=clock, now=moment,
                                     stacklevel=stacklevel + 1)
        if new_status is not snapshot.rental_status:
            updates.append(StatusUpdate(snapshot, snapshot.rental_status, new_status))
    return updates


def apply_update(update: StatusUpdate, now: datetime,
                 actor_id: Optional[str] = None) -> RentalSnapshot:
    """
    Materialise a recommended status as a new snapshot.

    Auto‑activation stamps ``rental_started_at`` and auto‑completion stamps
    ``rental_completed_at``, so the timestamps keep matching the path the
    rental actually took.
    """
    actor_id = actor_id or settings.system_actor
    snapshot = update.snapshot
    changes = {"rental_status": update.new_status, "updated_at": now}
    if update.new_status is RentalStatus.RENTED and snapshot.rental_started_at is None:
        changes.update(rental_started_at=now, rental_started_by=actor_id)
    if update.new_status is RentalStatus.COMPLETED and snapshot.rental_completed_at is None:
        changes.update(rental_completed_at=now, rental_completed_by=actor_id)
    return snapshot.with_changes(**changes)
