"""
rentflow.presentation
=====================

Pure helpers the dashboard and the API use to show rentals: ordering,
which buttons to offer, badge colours and countdown text.  Colours are
Tailwind class strings because that is what the front end consumes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional, Union

from .clock import Clock, as_utc, format_business_time, resolve
from .lifecycle import can_cancel, can_complete, can_start
from .models import RentalSnapshot, RentalStatus

STATUS_PRIORITY: Dict[RentalStatus, int] = {
    RentalStatus.SCHEDULED: 1,
    RentalStatus.RENTED: 2,
    RentalStatus.COMPLETED: 3,
    RentalStatus.CANCELLED: 4,
    RentalStatus.REFUNDED: 5,
}
_UNKNOWN_PRIORITY = 999
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

StatusLike = Union[RentalStatus, str, None]


def _coerce(status: StatusLike) -> Optional[RentalStatus]:
    if isinstance(status, RentalStatus):
        return status
    try:
        return RentalStatus(str(status).lower())
    except ValueError:
        return None


# ---------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------
def sort_by_status_and_time(rentals: Iterable[RentalSnapshot], *,
                            clock: Clock | None = None) -> List[RentalSnapshot]:
    """
    Return a new list ordered by status priority, then earliest start.

    The sort is stable; rentals without a start date sort as if they
    started at the epoch.
    """
    tz = resolve(clock).tz

    def key(rental: RentalSnapshot):
        start = as_utc(rental.rental_start_date, tz) or _EPOCH
        return STATUS_PRIORITY.get(rental.rental_status, _UNKNOWN_PRIORITY), start

    return sorted(rentals, key=key)


# ---------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ActionSpec:
    action: str
    label: str
    color: str
    icon: str
    primary: bool


START_ACTION = ActionSpec("start", "Start Rental", "bg-green-500 hover:bg-green-600", "play", True)
COMPLETE_ACTION = ActionSpec("complete", "Complete Now", "bg-blue-500 hover:bg-blue-600", "check", True)
CANCEL_ACTION = ActionSpec("cancel", "Cancel", "bg-red-500 hover:bg-red-600", "x", False)


def get_available_actions(rental: Optional[RentalSnapshot], *,
                          clock: Clock | None = None) -> List[ActionSpec]:
    """Actions whose predicate currently allows them, in start/complete/cancel order."""
    if rental is None:
        return []

    actions: List[ActionSpec] = []
    if can_start(rental, clock=clock):
        actions.append(START_ACTION)
    if can_complete(rental):
        actions.append(COMPLETE_ACTION)
    if can_cancel(rental):
        actions.append(CANCEL_ACTION)
    return actions


# ---------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------
_BADGES: Dict[RentalStatus, Dict[str, str]] = {
    RentalStatus.SCHEDULED: {"color": "bg-yellow-100 text-yellow-800", "label": "Scheduled"},
    RentalStatus.RENTED: {"color": "bg-green-100 text-green-800", "label": "Rented"},
    RentalStatus.COMPLETED: {"color": "bg-blue-100 text-blue-800", "label": "Completed"},
    RentalStatus.CANCELLED: {"color": "bg-red-100 text-red-800", "label": "Cancelled"},
    RentalStatus.REFUNDED: {"color": "bg-purple-100 text-purple-800", "label": "Refunded"},
}

_BADGE_CONFIGS: Dict[RentalStatus, Dict[str, str]] = {
    RentalStatus.SCHEDULED: {"color": "bg-blue-100 text-blue-800 border-blue-200", "label": "Scheduled"},
    RentalStatus.RENTED: {"color": "bg-green-100 text-green-800 border-green-200", "label": "Rented"},
    RentalStatus.COMPLETED: {"color": "bg-gray-100 text-gray-800 border-gray-200", "label": "Completed"},
    RentalStatus.CANCELLED: {"color": "bg-red-100 text-red-800 border-red-200", "label": "Cancelled"},
    RentalStatus.REFUNDED: {"color": "bg-orange-100 text-orange-800 border-orange-200", "label": "Refunded"},
}


def get_status_badge(status: StatusLike, rental: Optional[RentalSnapshot] = None, *,
                     clock: Clock | None = None) -> Dict[str, str]:
    """
    Label and colour for a status pill.

    Rented rentals that carry a start stamp get a ``subtitle`` with the
    start time in the business zone.
    """
    known = _coerce(status)
    if known is None:
        return {"color": "bg-gray-100 text-gray-800", "label": str(status)}

    badge = dict(_BADGES[known])
    if known is RentalStatus.RENTED and rental is not None and rental.rental_started_at:
        badge["subtitle"] = f"Started: {format_business_time(rental.rental_started_at, clock)}"
    return badge


def get_status_badge_config(status: StatusLike) -> Dict[str, str]:
    """Bordered badge variant used by list and calendar views."""
    known = _coerce(status)
    if known is None:
        return {"color": "bg-gray-100 text-gray-800 border-gray-200", "label": status or "Unknown"}
    return dict(_BADGE_CONFIGS[known])


# ---------------------------------------------------------------------
# Countdown text
# ---------------------------------------------------------------------
class TimeRemaining(NamedTuple):
    text: str
    is_overdue: bool


def _countdown(target: Optional[datetime], missing: str, clock: Clock | None) -> TimeRemaining:
    if target is None:
        return TimeRemaining(missing, False)

    clk = resolve(clock)
    diff = as_utc(target, clk.tz) - as_utc(clk.now(), clk.tz)

    if diff <= timedelta(0):
        overdue = int(-diff.total_seconds())
        hours, minutes = overdue // 3600, (overdue % 3600) // 60
        if hours > 0:
            return TimeRemaining(f"{hours}h {minutes}m overdue", True)
        return TimeRemaining(f"{minutes}m overdue", True)

    remaining = int(diff.total_seconds())
    days = remaining // 86400
    hours = (remaining % 86400) // 3600
    minutes = (remaining % 3600) // 60
    if days > 0:
        return TimeRemaining(f"{days}d {hours}h {minutes}m", False)
    if hours > 0:
        return TimeRemaining(f"{hours}h {minutes}m", False)
    return TimeRemaining(f"{minutes}m", False)


def time_until_start(rental: Optional[RentalSnapshot], *,
                     clock: Clock | None = None) -> TimeRemaining:
    return _countdown(rental.rental_start_date if rental else None, "No start date", clock)


def time_until_end(rental: Optional[RentalSnapshot], *,
                   clock: Clock | None = None) -> TimeRemaining:
    return _countdown(rental.rental_end_date if rental else None, "No end date", clock)
