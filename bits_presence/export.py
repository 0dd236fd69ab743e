from __future__ import annotations

from pathlib import Path

import polars as pl

from bits_presence.errors import OutputError
from bits_presence.grid import OccupancyGrid


def grid_frame(grid: OccupancyGrid) -> pl.DataFrame:
    """One row per cell: weekday, block, slot, slot start time, value and probability."""
    geometry = grid.geometry
    rows = [
        (weekday.name.title(), block, slot, geometry.slot_time(block, slot).isoformat(), value)
        for weekday, block, slot, value in grid.cells()
    ]
    return (
        pl.DataFrame(
            rows,
            schema={
                "weekday": pl.Utf8,
                "block": pl.Int64,
                "slot": pl.Int64,
                "slot_start": pl.Utf8,
                "value": pl.Int64,
            },
            orient="row",
        )
        .with_columns((pl.col("value") / 255.0).round(4).alias("probability"))
    )


def write_grid_csv(grid: OccupancyGrid, out_path: Path) -> None:
    frame = grid_frame(grid)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        frame.write_csv(out_path)
    except (OSError, pl.exceptions.PolarsError) as e:
        raise OutputError(f"Cannot write grid table {out_path}: {e}") from e
