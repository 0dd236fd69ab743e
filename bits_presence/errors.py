"""Errors raised by the presence pipeline. Every one of them is fatal to a run."""
from __future__ import annotations


class PresenceError(RuntimeError):
    pass


class ConfigurationError(PresenceError):
    """Configuration file missing, unreadable or incomplete."""


class EventSourceError(PresenceError):
    """The event log could not be read from its backend."""


class MalformedLogError(PresenceError):
    """The event log cannot be turned into open intervals."""


class EmptyIntervalSetError(PresenceError):
    """No interval to anchor the day cursor on."""


class CrossMidnightError(PresenceError):
    """An interval reached the accumulator spanning more than one day."""


class TemplateLoadError(PresenceError):
    """The template image is unreadable or too small for the grid layout."""


class OutputError(PresenceError):
    """An output file could not be removed or written."""
