"""
Rentflow
========

Rental life‑cycle engine for an ATV / vehicle rental and tour business:
decides when a rental may be started, completed or cancelled, and what
status it *should* have given the clock.

Import structure
----------------
`import rentflow` is intentionally cheap: only the stdlib-based
sub‑modules are imported by default.  Heavy dependencies such as
*sqlmodel* and *matplotlib* are only imported when you explicitly
access :pymod:`rentflow.db` or :pymod:`rentflow.viz`.

Sub‑modules
~~~~~~~~~~~
- :pymod:`rentflow.models`        – ``RentalSnapshot`` dataclass + :class:`~rentflow.models.RentalStatus` enum
- :pymod:`rentflow.clock`         – business‑timezone time source (``BusinessClock``, ``FixedClock``)
- :pymod:`rentflow.lifecycle`     – predicates, transition executors, status evaluator
- :pymod:`rentflow.reconciler`    – scheduled reconciliation pass over a store
- :pymod:`rentflow.audit`         – audit sinks and record builders
- :pymod:`rentflow.presentation`  – sorting, action, badge and countdown helpers
- :pymod:`rentflow.registry`      – ``RentalRegistry`` in‑memory store
- :pymod:`rentflow.registry_db`   – SQLModel‑backed store and audit sink
- :pymod:`rentflow.viz`           – plotting helpers (status bar chart + timeline)

Quick start
-----------
>>> from rentflow.clock import FixedClock
>>> from rentflow.lifecycle import evaluate_status
>>> from rentflow.models import RentalSnapshot
>>> clock = FixedClock("2024-01-01T00:30:00Z")
>>> r = RentalSnapshot("r-1", "scheduled", rental_start_date="2024-01-01T00:00:00Z",
...                    rental_end_date="2024-01-02T00:00:00Z")
>>> evaluate_status(r, auto_activate=True, clock=clock)
<RentalStatus.RENTED: 'rented'>

"""

__all__ = [
    "models",
    "clock",
    "lifecycle",
    "reconciler",
    "audit",
    "presentation",
    "registry",
    "viz",
]

__version__ = "0.1.0"
