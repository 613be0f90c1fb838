"""
rentflow.clock
==============

The one place the platform clock is read.

Every rule in :pymod:`rentflow.lifecycle` compares rental timestamps with
"now" in the business timezone (a single IANA zone for the whole system,
see :pyattr:`rentflow.settings.Settings.business_timezone`).  Callers that
need determinism inject a :class:`FixedClock`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Optional, Protocol, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import settings

logger = logging.getLogger(__name__)

TimestampLike = Union[datetime, str, None]


class ClockUnavailable(RuntimeError):
    """The time source cannot produce a trustworthy "now"."""


class Clock(Protocol):
    """Anything with a ``now()`` returning an aware datetime."""

    @property
    def tz(self) -> tzinfo: ...

    def now(self) -> datetime: ...


def load_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising :class:`ClockUnavailable` if unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        logger.error("cannot load timezone %r: %s", name, exc)
        raise ClockUnavailable(f"unknown business timezone {name!r}") from exc


class BusinessClock:
    """Wall clock rendered in the business timezone."""

    def __init__(self, timezone_name: str | None = None) -> None:
        self.timezone_name = timezone_name or settings.business_timezone
        self._tz: Optional[ZoneInfo] = None

    @property
    def tz(self) -> ZoneInfo:
        if self._tz is None:
            self._tz = load_zone(self.timezone_name)
        return self._tz

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def __repr__(self) -> str:
        return f"BusinessClock({self.timezone_name!r})"


class FixedClock:
    """
    Clock frozen at one instant.

    Example
    -------
    >>> clk = FixedClock("2024-01-01T00:00:00Z")   # Africa/Casablanca, UTC+1
    >>> clk.advance(hours=2).isoformat()
    '2024-01-01T03:00:00+01:00'
    """

    def __init__(self, instant: TimestampLike, tz: tzinfo | None = None) -> None:
        self._tz = tz or load_zone(settings.business_timezone)
        parsed = as_business_time(instant, self._tz)
        if parsed is None:
            raise ClockUnavailable("FixedClock needs an instant")
        self._instant = parsed

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: TimestampLike) -> datetime:
        parsed = as_business_time(instant, self._tz)
        if parsed is None:
            raise ClockUnavailable("FixedClock needs an instant")
        self._instant = parsed
        return self._instant

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """Move the clock forward by *delta* (or ``timedelta(**kwargs)``) of real time."""
        step = delta or timedelta(**kwargs)
        self._instant = (self._instant.astimezone(timezone.utc) + step).astimezone(self._tz)
        return self._instant

    def __repr__(self) -> str:
        return f"FixedClock({self._instant.isoformat()!r})"


@lru_cache
def default_clock() -> BusinessClock:
    """Process‑wide clock built from settings."""
    return BusinessClock(settings.business_timezone)


def resolve(clock: Clock | None) -> Clock:
    return clock if clock is not None else default_clock()


# ---------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------
def as_business_time(value: TimestampLike, tz: tzinfo) -> Optional[datetime]:
    """
    Normalise *value* to an aware datetime in *tz*.

    ISO strings are parsed (a trailing ``Z`` means UTC); naive datetimes
    are taken to already be business‑local wall time.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def as_utc(value: TimestampLike, tz: tzinfo) -> Optional[datetime]:
    """
    Like :pyfunc:`as_business_time` but expressed in UTC.

    Two datetimes sharing one ``ZoneInfo`` compare and subtract by wall
    time, which is off by the shift across a DST change.  Rules that
    compare instants go through this helper; *tz* only decides how naive
    input is read.
    """
    moment = as_business_time(value, tz)
    if moment is None:
        return None
    return moment.astimezone(timezone.utc)


def format_business_time(value: TimestampLike, clock: Clock | None = None) -> str:
    """Render *value* as ``MM/DD/YYYY, HH:MM:SS`` in the business zone."""
    moment = as_business_time(value, resolve(clock).tz)
    if moment is None:
        return ""
    return moment.strftime("%m/%d/%Y, %H:%M:%S")
