"""
rentflow.viz
============

Minimal plotting helpers used by the ``rentflow summary`` command and the
ops dashboard screenshots.  The package ``__init__`` never imports this
module, so importing `rentflow` alone stays lightweight.

Outputs are PNGs written to the *images/* folder (auto‑created if
needed).  Filenames can be overridden via keyword argument.
"""
from __future__ import annotations

import os
from collections import Counter
from pathlib import Path
from typing import Iterable

import matplotlib.dates as mdates
import matplotlib.pyplot as plt

from .clock import Clock, as_business_time, resolve
from .models import RentalSnapshot, RentalStatus
from .presentation import sort_by_status_and_time

# default output dir
_IMG_DIR = Path("images")

# hex equivalents of the badge palette
STATUS_COLORS = {
    RentalStatus.SCHEDULED: "#ca8a04",
    RentalStatus.RENTED: "#16a34a",
    RentalStatus.COMPLETED: "#2563eb",
    RentalStatus.CANCELLED: "#dc2626",
    RentalStatus.REFUNDED: "#9333ea",
}


def _target(out_path: str | os.PathLike | None, default_name: str) -> Path:
    if out_path is None:
        _IMG_DIR.mkdir(exist_ok=True)
        return _IMG_DIR / default_name
    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


# ---------------------------------------------------------------------
# Plot 1 – bar chart of rental counts by status
# ---------------------------------------------------------------------
def status_summary(
    rentals: Iterable[RentalSnapshot],
    out_path: str | os.PathLike | None = None,
) -> Path:
    """
    Generate a bar chart of how many rentals are in each status.

    Parameters
    ----------
    rentals : iterable of RentalSnapshot
        A registry or any collection of snapshots.
    out_path : str or Path, default='images/status_snapshot.png'
        Where to save the PNG.

    Returns
    -------
    pathlib.Path
        Final image path for convenience.
    """
    counts = Counter(r.rental_status for r in rentals)
    statuses = list(RentalStatus)
    ys = [counts.get(s, 0) for s in statuses]

    plt.figure()
    bars = plt.bar([s.value for s in statuses], ys,
                   color=[STATUS_COLORS[s] for s in statuses], edgecolor="#333")
    # add counts on top of each bar
    for rect, cnt in zip(bars, ys):
        plt.text(rect.get_x() + rect.get_width() / 2,
                 cnt + 0.05,
                 str(cnt),
                 ha="center", va="bottom",
                 fontsize=8, color="#333")
    plt.grid(axis="y", linestyle=":", alpha=0.3)
    plt.title("Rental Status Snapshot")
    plt.ylabel("Rental Count")
    plt.tight_layout()

    out_path = _target(out_path, "status_snapshot.png")
    plt.savefig(out_path, dpi=120, bbox_inches="tight")
    plt.close()
    return out_path


# ---------------------------------------------------------------------
# Plot 2 – rental windows on a time axis
# ---------------------------------------------------------------------
def rental_timeline(
    rentals: Iterable[RentalSnapshot],
    out_path: str | os.PathLike | None = None,
    *,
    clock: Clock | None = None,
) -> Path:
    """
    Draw one horizontal bar per rental spanning its rental window.

    Rentals missing either date are skipped.  A dashed line marks "now".
    """
    clk = resolve(clock)
    tz = clk.tz
    rows = [r for r in sort_by_status_and_time(rentals, clock=clock)
            if r.rental_start_date is not None and r.rental_end_date is not None]

    fig, ax = plt.subplots(figsize=(8, max(2, 0.4 * len(rows) + 1)))
    for i, rental in enumerate(rows):
        start = as_business_time(rental.rental_start_date, tz)
        end = as_business_time(rental.rental_end_date, tz)
        ax.barh(i, mdates.date2num(end) - mdates.date2num(start),
                left=mdates.date2num(start),
                color=STATUS_COLORS[rental.rental_status], edgecolor="#333")

    ax.set_yticks(range(len(rows)))
    ax.set_yticklabels([r.customer_name or r.id for r in rows], fontsize=8)
    ax.axvline(mdates.date2num(clk.now()), color="#333", linestyle="--", linewidth=1)
    ax.xaxis_date(tz)
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%m-%d %H:%M", tz=tz))
    fig.autofmt_xdate()
    ax.set_title("Rental Timeline")
    fig.tight_layout()

    out_path = _target(out_path, "rental_timeline.png")
    fig.savefig(out_path, dpi=120, bbox_inches="tight")
    plt.close(fig)
    return out_path
