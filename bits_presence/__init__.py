"""Weekly opening-probability map built from an open/closed event log."""
from bits_presence.accumulate import OccupancyAccumulator, accumulate, smooth
from bits_presence.errors import (
    ConfigurationError,
    CrossMidnightError,
    EmptyIntervalSetError,
    EventSourceError,
    MalformedLogError,
    OutputError,
    PresenceError,
    TemplateLoadError,
)
from bits_presence.events import Event, State, load_events, parse_events
from bits_presence.grid import GridGeometry, OccupancyGrid, Weekday
from bits_presence.intervals import Interval, reconstruct
from bits_presence.render import render

__all__ = [
    "ConfigurationError",
    "CrossMidnightError",
    "EmptyIntervalSetError",
    "Event",
    "EventSourceError",
    "GridGeometry",
    "Interval",
    "MalformedLogError",
    "OccupancyAccumulator",
    "OccupancyGrid",
    "OutputError",
    "PresenceError",
    "State",
    "TemplateLoadError",
    "Weekday",
    "accumulate",
    "load_events",
    "parse_events",
    "reconstruct",
    "render",
    "smooth",
]
