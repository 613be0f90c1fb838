"""
rentflow.cli
============

Operator command line.

Examples
--------
$ rentflow init-db
$ rentflow seed
$ rentflow list
$ rentflow reconcile --dry-run
$ rentflow start r-1001 --actor staff-7
$ rentflow cancel r-1002 --actor staff-7 --reason "customer no-show"
$ rentflow summary --out images/status.png
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from datetime import timedelta
from typing import List, Optional, Sequence

from .audit import AuditSink, LoggingAuditSink
from .clock import Clock, ClockUnavailable, format_business_time, resolve
from .lifecycle import IllegalTransition, deliver, perform
from .models import RentalSnapshot, RentalStatus
from .presentation import get_available_actions, sort_by_status_and_time, time_until_end
from .reconciler import reconcile
from .registry import StaleSnapshotError
from .settings import DB_URL

logger = logging.getLogger(__name__)


def demo_rentals(clock: Clock | None = None) -> List[RentalSnapshot]:
    """A handful of rentals around "now" covering every interesting state."""
    now = resolve(clock).now()
    hour = timedelta(hours=1)
    return [
        RentalSnapshot("r-1001", RentalStatus.SCHEDULED, "paid",
                       now + 20 * hour, now + 23 * hour,
                       customer_name="Amina Haddad", vehicle_id="ATV-01"),
        RentalSnapshot("r-1002", RentalStatus.SCHEDULED, "paid",
                       now - hour, now + 2 * hour,
                       customer_name="Youssef Benali", vehicle_id="ATV-02"),
        RentalSnapshot("r-1003", RentalStatus.RENTED, "paid",
                       now - 2 * hour, now + hour,
                       rental_started_at=now - 2 * hour, rental_started_by="staff-1",
                       customer_name="Lena Vogel", vehicle_id="ATV-03"),
        RentalSnapshot("r-1004", RentalStatus.RENTED, "paid",
                       now - 6 * hour, now - hour,
                       rental_started_at=now - 6 * hour, rental_started_by="staff-1",
                       customer_name="Marco Rossi", vehicle_id="QUAD-01"),
        RentalSnapshot("r-1005", RentalStatus.CANCELLED, "unpaid",
                       now + 48 * hour, now + 50 * hour,
                       cancelled_at=now - 3 * hour, cancelled_by="staff-2",
                       cancellation_reason="weather",
                       customer_name="Sara Idrissi", vehicle_id="ATV-01"),
        RentalSnapshot("r-1006", RentalStatus.SCHEDULED, "refunded",
                       now - 30 * hour, now - 27 * hour,
                       customer_name="Tom Becker", vehicle_id="BUGGY-01"),
    ]


def _open_store(args):
    from .db import SessionLocal, make_engine
    from .registry_db import DBAuditSink, DBRentalRegistry

    session = SessionLocal(make_engine(args.db))
    return DBRentalRegistry(session), DBAuditSink(session)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rentflow",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Rentflow rental life-cycle tools
            --------------------------------
            Inspect rentals, run a reconciliation pass and apply
            start / complete / cancel transitions.
            """
        ),
    )
    parser.add_argument("--db", default=DB_URL, help="SQLAlchemy database URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables")
    sub.add_parser("seed", help="insert demo rentals around the current time")
    sub.add_parser("list", help="list rentals by status and start time")

    rec = sub.add_parser("reconcile", help="bring rental statuses in line with the clock")
    rec.add_argument("--no-auto-activate", dest="auto_activate", action="store_false",
                     default=None, help="do not move scheduled rentals to rented")
    rec.add_argument("--dry-run", action="store_true", help="report without writing")

    for name in ("start", "complete", "cancel"):
        p = sub.add_parser(name, help=f"{name} a rental")
        p.add_argument("rental_id")
        p.add_argument("--actor", required=True, help="staff member id")
        if name == "complete":
            p.add_argument("--media", type=int, default=0, help="closing photos/videos taken")
        if name == "cancel":
            p.add_argument("--reason", required=True, help="why the rental is cancelled")

    summ = sub.add_parser("summary", help="write a status bar chart PNG")
    summ.add_argument("--out", default=None, help="output PNG path")
    summ.add_argument("--timeline", action="store_true", help="also write a timeline chart")
    return parser


def _print_rentals(rentals, clock: Clock | None) -> None:
    for rental in sort_by_status_and_time(rentals, clock=clock):
        actions = ",".join(a.action for a in get_available_actions(rental, clock=clock)) or "-"
        remaining = time_until_end(rental, clock=clock).text
        print(f"{rental.id:<10} {rental.rental_status.value:<10} "
              f"{format_business_time(rental.rental_start_date, clock):<22} "
              f"{remaining:<16} {actions}")


def main(argv: Optional[Sequence[str]] = None, *, registry=None,
         sink: AuditSink | None = None, clock: Clock | None = None) -> int:
    """Entry point; *registry*, *sink* and *clock* are injectable for tests."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init-db":
        from .db import create_all, make_engine

        create_all(make_engine(args.db))
        print(f"rentflow schema initialised at {args.db}")
        return 0

    if registry is None:
        registry, db_sink = _open_store(args)
        sink = sink or db_sink
    sink = sink or LoggingAuditSink()

    try:
        if args.command == "seed":
            for rental in demo_rentals(clock):
                registry.add(rental)
                print(f"Added: {rental.id} ({rental.rental_status.value})")
            return 0

        if args.command == "list":
            _print_rentals(registry, clock)
            return 0

        if args.command == "reconcile":
            updates = reconcile(registry, args.auto_activate, clock=clock, sink=sink,
                                dry_run=args.dry_run)
            for u in updates:
                print(f"{u.snapshot.id}: {u.old_status.value} -> {u.new_status.value}")
            print(f"{len(updates)} rental(s) {'would change' if args.dry_run else 'updated'}")
            return 0

        if args.command in ("start", "complete", "cancel"):
            try:
                rental = registry.get(args.rental_id)
            except KeyError:
                print(f"rental {args.rental_id} not found", file=sys.stderr)
                return 1
            options = {"clock": clock}
            if args.command == "complete":
                options["closing_media_count"] = args.media
            if args.command == "cancel":
                options["reason"] = args.reason
            try:
                result = perform(args.command, rental, args.actor, **options)
            except IllegalTransition as exc:
                print(exc.reason, file=sys.stderr)
                return 1
            try:
                registry.save(result.snapshot, expected_status=rental.rental_status)
            except StaleSnapshotError as exc:
                print(exc, file=sys.stderr)
                return 1
            deliver(sink, result.audit)
            print(f"{rental.id}: {rental.rental_status.value} -> "
                  f"{result.snapshot.rental_status.value}")
            return 0

        if args.command == "summary":
            from .viz import rental_timeline, status_summary

            rentals = list(registry)
            print(f"status snapshot saved to {status_summary(rentals, args.out)}")
            if args.timeline:
                print(f"timeline saved to {rental_timeline(rentals, clock=clock)}")
            return 0
    except ClockUnavailable as exc:
        logger.error("clock unavailable: %s", exc)
        return 2

    return 1


if __name__ == "__main__":
    sys.exit(main())
