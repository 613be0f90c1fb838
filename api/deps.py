"""
api.deps
========

FastAPI dependency providers.

`get_registry` returns a **DBRentalRegistry** so every request talks to
the persistent store; tests swap any of these out through
``app.dependency_overrides``.
"""

from functools import lru_cache

from rentflow.audit import AuditSink
from rentflow.clock import Clock, default_clock
from rentflow.db import SessionLocal, create_all
from rentflow.registry_db import DBAuditSink, DBRentalRegistry
from rentflow.settings import Settings, settings


@lru_cache
def get_registry() -> DBRentalRegistry:
    """Singleton DB‑backed rental registry (tables created on first use)."""
    create_all()
    return DBRentalRegistry(SessionLocal())


@lru_cache
def get_audit_sink() -> AuditSink:
    """Audit records go to the ``rental_audit_log`` table."""
    create_all()
    return DBAuditSink(SessionLocal())


def get_clock() -> Clock:
    """Business‑timezone wall clock."""
    return default_clock()


@lru_cache
def get_settings() -> Settings:
    """Return application settings."""
    return settings
