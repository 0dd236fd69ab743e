"""
Event log loading
=================

The event log is a list of (timestamp, state) rows produced by a query
against the configured backend. Only the first two result columns are used,
by position. Rows are normalised to ascending timestamp order before they
reach the interval reconstructor.
"""
from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Iterable

import polars as pl

from bits_presence.config import SourceConfig
from bits_presence.errors import EventSourceError, MalformedLogError
from bits_presence.reporting import log

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S%.f",
    "%Y-%m-%dT%H:%M:%S%.f",
)

CSV_TABLE = "events"


class State(IntEnum):
    CLOSED = 0
    OPEN = 1


@dataclass(frozen=True)
class Event:
    timestamp: datetime
    state: State


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


def read_event_frame(source: SourceConfig) -> pl.DataFrame:
    if source.kind == "uri":
        return _read_uri(source)
    if not source.database.exists():
        raise EventSourceError(f"Event source not found: {source.database}")
    if source.kind == "csv":
        return _read_csv(source)
    return _read_sqlite(source)


def _read_csv(source: SourceConfig) -> pl.DataFrame:
    # every column as text; parsing happens in events_from_frame
    lf = pl.scan_csv(source.database, has_header=True, infer_schema_length=0)
    ctx = pl.SQLContext(frames={CSV_TABLE: lf})
    try:
        return ctx.execute(source.query, eager=True)
    except pl.exceptions.PolarsError as e:
        raise EventSourceError(f"Event query failed on {source.label}: {e}") from e


def _read_sqlite(source: SourceConfig) -> pl.DataFrame:
    try:
        with closing(sqlite3.connect(source.database)) as conn:
            return pl.read_database(source.query, connection=conn)
    except (sqlite3.Error, pl.exceptions.PolarsError) as e:
        raise EventSourceError(f"Event query failed on {source.label}: {e}") from e


def _read_uri(source: SourceConfig) -> pl.DataFrame:
    # networked servers (MySQL, PostgreSQL, ...) through connectorx
    try:
        return pl.read_database_uri(source.query, source.uri)
    except ImportError as e:
        raise EventSourceError(
            "Reading a database URI needs connectorx (pip install bits-presence[server])"
        ) from e
    except (RuntimeError, pl.exceptions.PolarsError) as e:
        raise EventSourceError(f"Event query failed on {source.label}: {e}") from e


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def _parse_timestamp_flex(col: pl.Expr) -> pl.Expr:
    text = col.cast(pl.Utf8).str.strip_chars()
    return pl.coalesce([
        text.str.strptime(pl.Datetime("us"), fmt, strict=False)
        for fmt in TIMESTAMP_FORMATS
    ])


def _parse_state(col: pl.Expr) -> pl.Expr:
    first = col.cast(pl.Utf8).str.slice(0, 1)
    return (
        pl.when(first == "1").then(pl.lit(int(State.OPEN)))
        .when(first == "0").then(pl.lit(int(State.CLOSED)))
        .otherwise(None)
        .cast(pl.Int8)
    )


def events_from_frame(frame: pl.DataFrame) -> list[Event]:
    """Parse a (timestamp, state) frame into events sorted by ascending timestamp.

    Rows whose state is empty or not '0'/'1' are dropped. A timestamp that
    cannot be parsed is fatal.
    """
    if frame.width < 2:
        raise EventSourceError(
            f"Event query must return (timestamp, state) columns, got {frame.columns}"
        )
    ts_name, state_name = frame.columns[:2]
    ts_dtype = frame.schema[ts_name]
    ts_expr = (
        pl.col(ts_name).cast(pl.Datetime("us"))
        if ts_dtype == pl.Datetime
        else _parse_timestamp_flex(pl.col(ts_name))
    )

    df = frame.select([
        pl.col(ts_name).cast(pl.Utf8).alias("timestamp_raw"),
        ts_expr.alias("timestamp"),
        _parse_state(pl.col(state_name)).alias("state"),
    ])

    bad = df.filter(pl.col("timestamp").is_null())
    if bad.height > 0:
        raise MalformedLogError(
            f"{bad.height} event(s) with unparseable timestamp, first: {bad['timestamp_raw'][0]!r}"
        )

    skipped = df.filter(pl.col("state").is_null()).height
    if skipped:
        log(f"  Skipped {skipped} event(s) with empty or unknown state")

    df = df.filter(pl.col("state").is_not_null()).select(["timestamp", "state"])
    # A newest-first log is reversed as a whole so events sharing a timestamp
    # keep their real order; anything else gets a stable sort.
    stamps = df.get_column("timestamp")
    if stamps.is_sorted(descending=True) and not stamps.is_sorted():
        df = df.reverse()
    df = df.sort("timestamp", maintain_order=True)
    return [Event(ts, State(s)) for ts, s in df.iter_rows()]


def parse_events(rows: Iterable[tuple[str, str]]) -> list[Event]:
    """Events from in-memory (timestamp, state) string pairs, in either order."""
    rows = list(rows)
    schema = {"timestamp": pl.Utf8, "state": pl.Utf8}
    frame = pl.DataFrame(rows, schema=schema, orient="row") if rows else pl.DataFrame(schema=schema)
    return events_from_frame(frame)


def load_events(source: SourceConfig) -> list[Event]:
    frame = read_event_frame(source)
    log(f"  {frame.height:,} rows from {source.kind} source {source.label}")
    return events_from_frame(frame)
