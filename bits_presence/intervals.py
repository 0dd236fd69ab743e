"""
Open-interval reconstruction
============================

Turns the ascending event stream into open intervals that each start and end
on the same calendar day. The reader is a two-state machine:

    EXPECT_OPEN  --OPEN(t)-->   EXPECT_CLOSE (opened at t)
    EXPECT_CLOSE --CLOSED(t)--> EXPECT_OPEN, emitting [opened, t] split at midnight

Any event that does not match the expected state is a duplicate and leaves
the state untouched. A stream ending while open contributes nothing.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Iterable

from bits_presence.errors import MalformedLogError
from bits_presence.events import Event, State
from bits_presence.reporting import log

END_OF_DAY = time(23, 59, 59)


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"interval ends before it starts: {self.start} > {self.end}")

    def contains(self, t: datetime) -> bool:
        return self.start <= t <= self.end


class Expect(Enum):
    OPEN = "open"
    CLOSE = "close"


@dataclass(frozen=True)
class ReaderState:
    expect: Expect = Expect.OPEN
    opened_at: datetime | None = None


def split_at_midnight(start: datetime, end: datetime) -> list[Interval]:
    """Split [start, end] into same-day pieces; inner days become 00:00:00-23:59:59."""
    pieces = []
    while end.date() > start.date():
        day_end = max(start, datetime.combine(start.date(), END_OF_DAY))
        pieces.append(Interval(start, day_end))
        start = datetime.combine(start.date() + timedelta(days=1), time(0, 0, 0))
    pieces.append(Interval(start, end))
    return pieces


def step(state: ReaderState, event: Event) -> tuple[ReaderState, list[Interval]]:
    """Transition function of the reader. Returns ``state`` itself when the event is ignored."""
    if state.expect is Expect.OPEN:
        if event.state is not State.OPEN:
            return state, []
        return ReaderState(Expect.CLOSE, event.timestamp), []

    if event.state is not State.CLOSED:
        return state, []
    return ReaderState(), split_at_midnight(state.opened_at, event.timestamp)


def reconstruct(events: Iterable[Event]) -> list[Interval]:
    state = ReaderState()
    intervals: list[Interval] = []
    previous: datetime | None = None
    n_events = 0
    n_duplicates = 0

    for event in events:
        if previous is not None and event.timestamp < previous:
            raise MalformedLogError(
                f"Event stream is not in ascending order at {event.timestamp} (after {previous})"
            )
        previous = event.timestamp
        n_events += 1

        new_state, pieces = step(state, event)
        if new_state is state:
            n_duplicates += 1
        state = new_state
        intervals.extend(pieces)

    log(f"  {n_events:,} events, {n_duplicates:,} duplicates ignored, {len(intervals):,} intervals")
    if state.expect is Expect.CLOSE:
        log(f"  Still open since {state.opened_at}, trailing period dropped")
    if not intervals:
        raise MalformedLogError(f"Event log yields no open interval ({n_events} usable events)")
    return intervals
