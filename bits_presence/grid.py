"""
Weekly occupancy grid
=====================

The grid holds one byte per (weekday, block, slot):

    weekday  Monday..Saturday (Sunday has no row at all)
    block    one displayed hour, starting at ``window_start``
    slot     1/granularity of an hour, the finest time unit

Bit 0x80 of a raw cell means "observed open on the most recent day of that
weekday"; lower bits are what is left of older observations after halving.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import IntEnum
from typing import Iterator

import numpy as np

from bits_presence.errors import ConfigurationError

OPEN_FLAG = 0x80


class Weekday(IntEnum):
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5

    @classmethod
    def of(cls, day: date) -> Weekday | None:
        """Weekday of ``day``, or None for Sunday which the grid does not represent."""
        wd = day.weekday()
        return None if wd == 6 else cls(wd)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GridGeometry:
    # time window
    window_start: time = time(8, 0, 0)
    blocks_per_day: int = 13
    granularity: int = 24
    # image layout, in pixels
    x_offset: int = 61
    y_offset: int = 31
    block_width: int = 49

    def __post_init__(self) -> None:
        if self.blocks_per_day < 1 or self.granularity < 1:
            raise ConfigurationError("blocks_per_day and granularity must be positive")
        if self.block_width < 1 or self.x_offset < 0 or self.y_offset < 0:
            raise ConfigurationError("image layout values must be non-negative and block_width positive")
        start = timedelta(hours=self.window_start.hour, minutes=self.window_start.minute,
                          seconds=self.window_start.second)
        if start + timedelta(hours=self.blocks_per_day) > timedelta(days=1):
            raise ConfigurationError(
                f"window of {self.blocks_per_day} hours starting at {self.window_start} "
                "does not fit in one day"
            )

    @property
    def shape(self) -> tuple[int, int, int]:
        return (len(Weekday), self.blocks_per_day, self.granularity)

    @property
    def slots_per_day(self) -> int:
        return self.blocks_per_day * self.granularity

    @property
    def slot_step(self) -> timedelta:
        return timedelta(hours=1) / self.granularity

    def slot_starts(self, day: date) -> np.ndarray:
        """Start time of every slot of ``day``, as datetime64[us], ascending."""
        first = np.datetime64(datetime.combine(day, self.window_start), "us")
        step = np.timedelta64(self.slot_step, "us")
        return first + np.arange(self.slots_per_day) * step

    def slot_time(self, block: int, slot: int) -> time:
        start = datetime.combine(date.min, self.window_start)
        return (start + (block * self.granularity + slot) * self.slot_step).time()

    # -- pixel layout: one column of blocks per weekday, one pixel row per slot,
    #    one pixel of spacing between neighbouring blocks

    def block_origin(self, weekday: Weekday, block: int) -> tuple[int, int]:
        """(x, y) of the top-left pixel of a block."""
        x = self.x_offset + int(weekday) * (self.block_width + 1)
        y = self.y_offset + block * (self.granularity + 1)
        return x, y

    def canvas_size(self) -> tuple[int, int]:
        """Smallest (width, height) an image must have to hold every block."""
        x, y = self.block_origin(Weekday.SATURDAY, self.blocks_per_day - 1)
        return x + self.block_width, y + self.granularity


# ---------------------------------------------------------------------------
# Grid container
# ---------------------------------------------------------------------------


class OccupancyGrid:
    def __init__(self, geometry: GridGeometry, values: np.ndarray | None = None):
        self.geometry = geometry
        if values is None:
            values = np.zeros(geometry.shape, dtype=np.uint8)
        values = np.asarray(values)
        if values.shape != geometry.shape:
            raise ValueError(f"grid values have shape {values.shape}, expected {geometry.shape}")
        if values.dtype != np.uint8:
            if values.size and (values.min() < 0 or values.max() > 255):
                raise ValueError("grid values must lie in [0, 255]")
            values = values.astype(np.uint8)
        self._values = values.copy()

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the underlying (weekday, block, slot) array."""
        view = self._values.view()
        view.flags.writeable = False
        return view

    def _check(self, block: int, slot: int) -> None:
        if not 0 <= block < self.geometry.blocks_per_day:
            raise IndexError(f"block {block} out of range")
        if not 0 <= slot < self.geometry.granularity:
            raise IndexError(f"slot {slot} out of range")

    def __getitem__(self, key: tuple[Weekday, int, int]) -> int:
        weekday, block, slot = key
        self._check(block, slot)
        return int(self._values[Weekday(weekday), block, slot])

    def day(self, weekday: Weekday) -> np.ndarray:
        """Read-only (block, slot) view of one weekday."""
        return self.values[Weekday(weekday)]

    def cells(self) -> Iterator[tuple[Weekday, int, int, int]]:
        for weekday in Weekday:
            for block in range(self.geometry.blocks_per_day):
                for slot in range(self.geometry.granularity):
                    yield weekday, block, slot, int(self._values[weekday, block, slot])

    def decay(self, weekday: Weekday) -> None:
        """Halve every cell of one weekday (floor division)."""
        self._values[Weekday(weekday)] //= 2

    def mark(self, weekday: Weekday, mask: np.ndarray) -> int:
        """Set the open flag on the slots of ``weekday`` selected by a per-day mask."""
        mask = np.asarray(mask, dtype=bool).reshape(self.geometry.blocks_per_day, self.geometry.granularity)
        day = self._values[Weekday(weekday)]
        day[mask] |= OPEN_FLAG
        return int(mask.sum())

    def map(self, table: np.ndarray) -> OccupancyGrid:
        """New grid with every cell replaced by ``table[cell]``."""
        return OccupancyGrid(self.geometry, np.asarray(table, dtype=np.uint8)[self._values])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OccupancyGrid):
            return NotImplemented
        return self.geometry == other.geometry and np.array_equal(self._values, other._values)

    def __repr__(self) -> str:
        return f"OccupancyGrid(shape={self.geometry.shape}, nonzero={int(np.count_nonzero(self._values))})"
