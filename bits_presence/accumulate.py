"""
Occupancy accumulation
======================

Walks the same-day intervals with a day cursor. Every calendar day the
cursor passes halves the cells of its weekday once (Sundays are skipped),
then the interval's slots get the open flag. After the last interval the
cursor is driven up to yesterday so days without any record decay too.

Phases are strictly sequential:

    1. gap fill + slot marking, interval by interval
    2. trailing gap fill up to yesterday
    3. smoothing, once, over the raw bytes
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence

import numpy as np

from bits_presence.errors import CrossMidnightError, EmptyIntervalSetError
from bits_presence.grid import GridGeometry, OccupancyGrid, Weekday
from bits_presence.intervals import Interval
from bits_presence.reporting import log

ONE_DAY = timedelta(days=1)

# round(255 * sqrt(v / 255)): 0 -> 0, 255 -> 255, concave in between
SMOOTHING_TABLE = np.rint(255.0 * np.sqrt(np.arange(256) / 255.0)).astype(np.uint8)


def smooth(value: int) -> int:
    if not 0 <= value <= 255:
        raise ValueError(f"cell value {value} outside [0, 255]")
    return int(SMOOTHING_TABLE[value])


class OccupancyAccumulator:
    def __init__(self, first_day: date, geometry: GridGeometry):
        self.geometry = geometry
        self.grid = OccupancyGrid(geometry)
        self.cursor = first_day - ONE_DAY
        self.decayed_days = 0
        self.marked_intervals = 0

    def advance_to(self, day: date) -> None:
        """Move the cursor forward to ``day``, decaying every weekday passed on the way."""
        if day < self.cursor:
            raise ValueError(f"cannot move day cursor back from {self.cursor} to {day}")
        while self.cursor != day:
            self.cursor += ONE_DAY
            weekday = Weekday.of(self.cursor)
            if weekday is None:
                continue
            self.grid.decay(weekday)
            self.decayed_days += 1

    def slot_mask(self, interval: Interval) -> np.ndarray:
        """Slots of the interval's day whose start lies within [start, end].

        Slot starts are ascending and an interval is one contiguous span, so
        the selected slots always form a single run.
        """
        starts = self.geometry.slot_starts(interval.start.date())
        start = np.datetime64(interval.start, "us")
        end = np.datetime64(interval.end, "us")
        return (starts >= start) & (starts <= end)

    def add(self, interval: Interval) -> None:
        if interval.start.date() != interval.end.date():
            raise CrossMidnightError(f"period across midnight: {interval.start} - {interval.end}")
        self.advance_to(interval.start.date())
        weekday = Weekday.of(interval.start.date())
        if weekday is None:
            return
        self.grid.mark(weekday, self.slot_mask(interval))
        self.marked_intervals += 1

    def finish(self, today: date) -> None:
        yesterday = today - ONE_DAY
        if self.cursor < yesterday:
            self.advance_to(yesterday)


def accumulate(
    intervals: Sequence[Interval],
    today: date,
    geometry: GridGeometry | None = None,
) -> OccupancyGrid:
    """Smoothed per-(weekday, block, slot) open probability, scaled to [0, 255]."""
    if not intervals:
        raise EmptyIntervalSetError("No intervals to accumulate")
    geometry = geometry or GridGeometry()

    acc = OccupancyAccumulator(intervals[0].start.date(), geometry)
    for interval in intervals:
        acc.add(interval)
    acc.finish(today)
    log(f"  {acc.marked_intervals:,} intervals marked, {acc.decayed_days:,} days decayed, "
        f"cursor at {acc.cursor}")

    return acc.grid.map(SMOOTHING_TABLE)
