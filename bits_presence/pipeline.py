#!/usr/bin/env python3
"""
BITS presence map
=================

Reads the open/closed log, estimates for every weekday (Mon-Sat) and every
2.5 minute slot between 08:00 and 21:00 how likely the place is open, and
paints the result onto a template image.

Usage:
    bits-presence --config bits_presence.toml [--today YYYY-MM-DD]
"""
from __future__ import annotations

import argparse
import sys
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from bits_presence.accumulate import accumulate
from bits_presence.config import DEFAULT_CONFIG, Config, load_config
from bits_presence.errors import PresenceError
from bits_presence.events import load_events
from bits_presence.export import write_grid_csv
from bits_presence.figures import fig_weekly_heatmap
from bits_presence.grid import OccupancyGrid
from bits_presence.intervals import reconstruct
from bits_presence.render import remove_stale_output, render
from bits_presence.reporting import close_log_file, log, open_log_file


@dataclass
class RunSummary:
    n_events: int
    n_intervals: int
    first_day: date
    last_day: date
    grid: OccupancyGrid
    output_image: Path


def run(cfg: Config, today: date) -> RunSummary:
    t0 = time.time()
    log("=" * 60)
    log(f"BITS presence map - today is {today}")
    log("=" * 60)

    # Nothing stale may survive a failed run
    remove_stale_output(cfg.images.output_image)

    log("[PHASE 1/4] Reading event log...")
    events = load_events(cfg.source)

    log("[PHASE 2/4] Reconstructing open intervals...")
    intervals = reconstruct(events)
    first_day = intervals[0].start.date()
    last_day = intervals[-1].start.date()
    log(f"  Intervals span {first_day} .. {last_day}")

    log("[PHASE 3/4] Accumulating weekly probabilities...")
    grid = accumulate(intervals, today, cfg.grid)

    # the image is written last
    if cfg.outputs.grid_csv is not None:
        write_grid_csv(grid, cfg.outputs.grid_csv)
        log(f"  Grid table: {cfg.outputs.grid_csv}")

    log("[PHASE 4/4] Rendering image...")
    render(grid, cfg.images.input_image, cfg.images.output_image, cfg.grid)

    if cfg.outputs.figure is not None:
        try:
            fig_weekly_heatmap(grid, cfg.outputs.figure, cfg.outputs.figure_dpi)
            log(f"  Figure: {cfg.outputs.figure}")
        except Exception as e:
            log(f"  Figure: FAILED - {e}")

    log(f"Done in {time.time() - t0:.1f}s")
    return RunSummary(
        n_events=len(events),
        n_intervals=len(intervals),
        first_day=first_day,
        last_day=last_day,
        grid=grid,
        output_image=cfg.images.output_image,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render the weekly presence probability map.")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG),
        help="Path to TOML config file.",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference date (YYYY-MM-DD); days up to the one before it are decayed. Defaults to the local date.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        cfg = load_config(Path(args.config))
        if cfg.outputs.log_file is not None:
            open_log_file(cfg.outputs.log_file)
        run(cfg, args.today or date.today())
    except PresenceError as e:
        log(f"FAILED - {type(e).__name__}: {e}")
        return 1
    finally:
        close_log_file()
    return 0


if __name__ == "__main__":
    sys.exit(main())
