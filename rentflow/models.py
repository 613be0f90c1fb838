"""
rentflow.models
===============

Dataclasses and enums representing a single rental and the records the
life‑cycle engine produces about it.  These objects are intentionally
lightweight; they carry **no** external‑library dependencies so that
importing `rentflow` stays fast even in constrained environments.

Every dataclass here is frozen: the engine proposes new snapshots, it
never edits the one it was handed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional

# payment_status value that freezes a rental for good
REFUNDED_PAYMENT = "refunded"


class RentalStatus(str, Enum):
    """Legal life‑cycle states for a rental."""
    SCHEDULED = "scheduled"
    RENTED = "rented"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

    def __str__(self) -> str:        # reasons read "Rental is rented, ..."
        return self.value


TERMINAL_STATUSES = frozenset({RentalStatus.CANCELLED, RentalStatus.REFUNDED})

_TIMESTAMP_FIELDS = (
    "rental_start_date",
    "rental_end_date",
    "rental_started_at",
    "rental_completed_at",
    "cancelled_at",
    "updated_at",
)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class RentalSnapshot:
    """
    Immutable view of one rental at a point of observation.

    Parameters
    ----------
    id : str
        Identifier owned by the external store.
    rental_status : RentalStatus | str, default=SCHEDULED
        Current life‑cycle phase.  Strings are coerced; ``None`` means
        scheduled.
    payment_status : str | None
        Independent payment state; ``"refunded"`` freezes the rental.
    rental_start_date, rental_end_date : datetime | None
        The rental window ``[start, end)``.  Both are needed to evaluate
        the status.
    rental_started_at, rental_started_by
        Stamped once by the start transition.
    rental_completed_at, rental_completed_by
        Stamped once when the rental completes.
    cancelled_at, cancelled_by, cancellation_reason
        Stamped once by the cancel transition.
    """
    id: str
    rental_status: RentalStatus = RentalStatus.SCHEDULED
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
    vehicle_id: Optional[str] = None

    def __post_init__(self) -> None:
        status = self.rental_status
        if status is None:
            status = RentalStatus.SCHEDULED
        elif not isinstance(status, RentalStatus):
            status = RentalStatus(str(status).lower())
        object.__setattr__(self, "rental_status", status)
        for name in _TIMESTAMP_FIELDS:
            object.__setattr__(self, name, _parse_timestamp(getattr(self, name)))

    # Convenience helpers -------------------------------------------------
    @property
    def is_payment_refunded(self) -> bool:
        return (self.payment_status or "").lower() == REFUNDED_PAYMENT

    def with_changes(self, **changes: Any) -> "RentalSnapshot":
        """Return a copy with *changes* applied (the original is untouched)."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON‑friendly mapping (ISO‑8601 timestamps, status value)."""
        data = asdict(self)
        data["rental_status"] = self.rental_status.value
        for name in _TIMESTAMP_FIELDS:
            value = data[name]
            data[name] = value.isoformat() if value is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RentalSnapshot":
        """Build a snapshot from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class Decision:
    """Outcome of a transition predicate."""
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(False, reason)


class AuditAction(str, Enum):
    """Kinds of entries written to the audit trail."""
    START_RENTAL = "start_rental"
    COMPLETE_RENTAL = "complete_rental"
    CANCEL_RENTAL = "cancel_rental"
    STATUS_CHANGE = "status_change"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AuditRecord:
    """One audit‑trail entry, handed to an :class:`~rentflow.audit.AuditSink`."""
    rental_id: str
    action: AuditAction
    actor_id: Optional[str]
    performed_at: datetime
    old_data: Dict[str, Any] = field(default_factory=dict)
    new_data: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class TransitionResult(NamedTuple):
    """New snapshot plus the audit record describing how it came about."""
    snapshot: RentalSnapshot
    audit: AuditRecord


@dataclass(frozen=True)
class StatusUpdate:
    """A rental whose recommended status differs from its stored one."""
    snapshot: RentalSnapshot
    old_status: RentalStatus
    new_status: RentalStatus
