"""
api.rentals
===========

Endpoints for reading rentals and driving their life‑cycle.

Transition endpoints answer **409** with the refusal reason as ``detail``
so staff see *why* an action is blocked ("Rental is completed, not
scheduled"), and **404** for unknown ids.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from rentflow.audit import AuditSink
from rentflow.clock import Clock
from rentflow.lifecycle import IllegalTransition, deliver, perform
from rentflow.models import RentalSnapshot, RentalStatus
from rentflow.presentation import (
    get_available_actions,
    get_status_badge,
    get_status_badge_config,
    sort_by_status_and_time,
    time_until_end,
    time_until_start,
)
from rentflow.reconciler import reconcile
from rentflow.registry import RentalRegistry, StaleSnapshotError
from rentflow.settings import Settings
from .deps import get_audit_sink, get_clock, get_registry, get_settings

router = APIRouter(tags=["rentals"])


# ---------- request / response models ----------
class RentalIn(BaseModel):
    """Rental as created by the booking workflow."""
    model_config = ConfigDict(extra="ignore")

    id: str
    rental_status: RentalStatus = RentalStatus.SCHEDULED
    payment_status: Optional[str] = None
    rental_start_date: Optional[datetime] = None
    rental_end_date: Optional[datetime] = None
    customer_name: Optional[str] = None
    vehicle_id: Optional[str] = None


class RentalOut(RentalIn):
    rental_started_at: Optional[datetime] = None
    rental_started_by: Optional[str] = None
    rental_completed_at: Optional[datetime] = None
    rental_completed_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class ActorRequest(BaseModel):
    actor_id: str = Field(..., min_length=1)


class CompleteRequest(ActorRequest):
    closing_media_count: int = Field(0, ge=0)


class CancelRequest(ActorRequest):
    reason: str = Field(..., min_length=1)


class StatusChange(BaseModel):
    id: str
    old_status: RentalStatus
    new_status: RentalStatus


# ---------- helpers ----------
def _load(registry: RentalRegistry, rental_id: str) -> RentalSnapshot:
    try:
        return registry.get(rental_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Rental not found") from None


def _transition(action: str, rental_id: str, actor_id: str, registry: RentalRegistry,
                sink: AuditSink, clock: Clock, **options: Any) -> Dict[str, Any]:
    rental = _load(registry, rental_id)
    try:
        result = perform(action, rental, actor_id, clock=clock, **options)
        registry.save(result.snapshot, expected_status=rental.rental_status)
    except IllegalTransition as exc:
        raise HTTPException(status_code=409, detail=exc.reason) from exc
    except StaleSnapshotError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    # audited only once the new snapshot is stored
    deliver(sink, result.audit)
    return result.snapshot.to_dict()


# ---------- GET /rentals ----------
@router.get("/rentals", response_model=List[RentalOut])
def list_rentals(
    status: Optional[RentalStatus] = Query(None, description="Only rentals at this status"),
    registry: RentalRegistry = Depends(get_registry),
    clock: Clock = Depends(get_clock),
):
    """All rentals, ordered by status priority then earliest start."""
    rentals = registry.find_by_status(status) if status else list(registry)
    return [r.to_dict() for r in sort_by_status_and_time(rentals, clock=clock)]


# ---------- POST /rentals ----------
@router.post("/rentals", status_code=201, response_model=RentalOut)
def add_rental(body: RentalIn, registry: RentalRegistry = Depends(get_registry)):
    if body.id in registry:
        raise HTTPException(status_code=409, detail=f"Rental {body.id} already exists")
    rental = RentalSnapshot.from_dict(body.model_dump())
    registry.add(rental)
    return rental.to_dict()


# ---------- GET /rentals/{id} ----------
@router.get("/rentals/{rental_id}", response_model=RentalOut)
def get_rental(rental_id: str, registry: RentalRegistry = Depends(get_registry)):
    return _load(registry, rental_id).to_dict()


@router.get("/rentals/{rental_id}/actions")
def rental_actions(
    rental_id: str,
    registry: RentalRegistry = Depends(get_registry),
    clock: Clock = Depends(get_clock),
):
    """Buttons the UI should offer for this rental right now."""
    rental = _load(registry, rental_id)
    return [asdict(a) for a in get_available_actions(rental, clock=clock)]


@router.get("/rentals/{rental_id}/badge")
def rental_badge(
    rental_id: str,
    bordered: bool = Query(False, description="Return the bordered list/calendar variant"),
    registry: RentalRegistry = Depends(get_registry),
    clock: Clock = Depends(get_clock),
):
    rental = _load(registry, rental_id)
    if bordered:
        return get_status_badge_config(rental.rental_status)
    return get_status_badge(rental.rental_status, rental, clock=clock)


@router.get("/rentals/{rental_id}/countdown")
def rental_countdown(
    rental_id: str,
    registry: RentalRegistry = Depends(get_registry),
    clock: Clock = Depends(get_clock),
):
    rental = _load(registry, rental_id)
    return {
        "until_start": time_until_start(rental, clock=clock)._asdict(),
        "until_end": time_until_end(rental, clock=clock)._asdict(),
    }


# ---------- transitions ----------
@router.post("/rentals/{rental_id}/start", response_model=RentalOut)
def start_rental(
    rental_id: str,
    body: ActorRequest,
    registry: RentalRegistry = Depends(get_registry),
    sink: AuditSink = Depends(get_audit_sink),
    clock: Clock = Depends(get_clock),
):
    return _transition("start", rental_id, body.actor_id, registry, sink, clock)


@router.post("/rentals/{rental_id}/complete", response_model=RentalOut)
def complete_rental(
    rental_id: str,
    body: CompleteRequest,
    registry: RentalRegistry = Depends(get_registry),
    sink: AuditSink = Depends(get_audit_sink),
    clock: Clock = Depends(get_clock),
):
    return _transition("complete", rental_id, body.actor_id, registry, sink, clock,
                       closing_media_count=body.closing_media_count)


@router.post("/rentals/{rental_id}/cancel", response_model=RentalOut)
def cancel_rental(
    rental_id: str,
    body: CancelRequest,
    registry: RentalRegistry = Depends(get_registry),
    sink: AuditSink = Depends(get_audit_sink),
    clock: Clock = Depends(get_clock),
):
    return _transition("cancel", rental_id, body.actor_id, registry, sink, clock,
                       reason=body.reason)


# ---------- POST /reconcile ----------
@router.post("/reconcile", response_model=List[StatusChange])
def run_reconcile(
    auto_activate: Optional[bool] = Query(None, description="Defaults to the configured policy"),
    dry_run: bool = Query(False),
    registry: RentalRegistry = Depends(get_registry),
    sink: AuditSink = Depends(get_audit_sink),
    clock: Clock = Depends(get_clock),
    cfg: Settings = Depends(get_settings),
):
    """Run one reconciliation pass and report what changed."""
    if auto_activate is None:
        auto_activate = cfg.auto_activate
    updates = reconcile(registry, auto_activate, clock=clock, sink=sink, dry_run=dry_run)
    return [
        StatusChange(id=u.snapshot.id, old_status=u.old_status, new_status=u.new_status)
        for u in updates
    ]
