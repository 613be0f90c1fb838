"""
rentflow.audit
==============

Audit trail plumbing.

The engine never decides *where* audit records go.  Transition executors
and the reconciler build :class:`~rentflow.models.AuditRecord` values and
hand them to whatever :class:`AuditSink` the caller injected: the
in‑memory ring buffer below, the logging sink, or the database sink in
:pymod:`rentflow.registry_db`.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, Iterator, List, Optional, Protocol

from .models import AuditAction, AuditRecord, RentalSnapshot, RentalStatus
from .settings import settings

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    """Destination for audit records (file, table, queue, ...)."""

    def record(self, entry: AuditRecord) -> None: ...


class InMemoryAuditSink:
    """
    Bounded in‑process history, newest last.

    Example
    -------
    >>> sink = InMemoryAuditSink(maxlen=2)
    >>> len(sink)
    0
    """

    def __init__(self, maxlen: Optional[int] = None) -> None:
        self._entries: Deque[AuditRecord] = deque(maxlen=maxlen)

    def record(self, entry: AuditRecord) -> None:
        self._entries.append(entry)

    def for_rental(self, rental_id: str) -> List[AuditRecord]:
        """Entries about one rental, oldest first."""
        return [e for e in self._entries if e.rental_id == rental_id]

    def clear(self) -> None:
        self._entries.clear()

    def __iter__(self) -> Iterator[AuditRecord]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class LoggingAuditSink:
    """Writes one INFO line per record."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def record(self, entry: AuditRecord) -> None:
        old = entry.old_data.get("rental_status")
        new = entry.new_data.get("rental_status")
        self._log.info(
            "rental %s %s: %s -> %s by %s%s",
            entry.rental_id,
            entry.action.value,
            old,
            new,
            entry.actor_id,
            f" ({entry.reason})" if entry.reason else "",
        )


def default_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink(maxlen=settings.audit_log_capacity)


# ---------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------
def _base_metadata(old: RentalStatus, new: RentalStatus, now: datetime) -> Dict[str, Any]:
    return {
        "action_type": "status_change",
        "previous_status": old.value,
        "new_status": new.value,
        "timezone": str(now.tzinfo),
        "timestamp_local": now.isoformat(),
    }


def start_record(before: RentalSnapshot, after: RentalSnapshot, actor_id: str,
                 now: datetime) -> AuditRecord:
    return AuditRecord(
        rental_id=before.id,
        action=AuditAction.START_RENTAL,
        actor_id=actor_id,
        performed_at=now,
        old_data={
            "rental_status": before.rental_status.value,
            "rental_started_at": None,
        },
        new_data={
            "rental_status": after.rental_status.value,
            "rental_started_at": now.isoformat(),
            "rental_started_by": actor_id,
        },
        metadata=_base_metadata(before.rental_status, after.rental_status, now),
    )


def complete_record(before: RentalSnapshot, after: RentalSnapshot, actor_id: str,
                    now: datetime, closing_media_count: int = 0) -> AuditRecord:
    metadata = _base_metadata(before.rental_status, after.rental_status, now)
    metadata["closing_media_count"] = closing_media_count
    return AuditRecord(
        rental_id=before.id,
        action=AuditAction.COMPLETE_RENTAL,
        actor_id=actor_id,
        performed_at=now,
        old_data={
            "rental_status": before.rental_status.value,
            "rental_completed_at": None,
        },
        new_data={
            "rental_status": after.rental_status.value,
            "rental_completed_at": now.isoformat(),
            "rental_completed_by": actor_id,
        },
        metadata=metadata,
    )


def cancel_record(before: RentalSnapshot, after: RentalSnapshot, actor_id: str,
                  now: datetime, reason: Optional[str]) -> AuditRecord:
    return AuditRecord(
        rental_id=before.id,
        action=AuditAction.CANCEL_RENTAL,
        actor_id=actor_id,
        performed_at=now,
        old_data={"rental_status": before.rental_status.value},
        new_data={
            "rental_status": after.rental_status.value,
            "cancelled_at": now.isoformat(),
            "cancelled_by": actor_id,
        },
        reason=reason,
        metadata=_base_metadata(before.rental_status, after.rental_status, now),
    )


def status_change_record(snapshot: RentalSnapshot, old: RentalStatus, new: RentalStatus,
                         trigger: str, actor_id: Optional[str],
                         now: datetime) -> AuditRecord:
    """
    Record a status change that did not go through an executor.

    *trigger* is ``"manual"``, ``"auto"`` or ``"system"``.
    """
    metadata = _base_metadata(old, new, now)
    metadata["trigger"] = trigger
    return AuditRecord(
        rental_id=snapshot.id,
        action=AuditAction.STATUS_CHANGE,
        actor_id=actor_id,
        performed_at=now,
        old_data={"rental_status": old.value},
        new_data={"rental_status": new.value},
        metadata=metadata,
    )
