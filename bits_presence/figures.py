"""Diagnostic figure of the weekly grid, drawn with the same ramp as the rendered image."""
from __future__ import annotations

from pathlib import Path

import numpy as np

from bits_presence.grid import OccupancyGrid, Weekday


def setup_matplotlib():
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    plt.rcParams.update({
        "font.size": 10,
        "axes.labelsize": 11,
        "axes.titlesize": 12,
        "xtick.labelsize": 9,
        "ytick.labelsize": 9,
        "savefig.bbox": "tight",
        "savefig.pad_inches": 0.1,
    })
    return plt


def presence_colormap():
    from matplotlib.colors import LinearSegmentedColormap
    # 0 -> red, 127.5 -> yellow, 255 -> green, as in render.cell_colors
    return LinearSegmentedColormap.from_list("presence", ["#FF0000", "#FFFF00", "#00FF00"])


def fig_weekly_heatmap(grid: OccupancyGrid, out_path: Path, dpi: int = 150) -> None:
    plt = setup_matplotlib()
    geometry = grid.geometry

    # rows: slots of the day, columns: weekdays
    matrix = grid.values.reshape(len(Weekday), geometry.slots_per_day).T.astype(float)

    fig, ax = plt.subplots(figsize=(6, 8))
    im = ax.imshow(matrix, aspect="auto", cmap=presence_colormap(), vmin=0, vmax=255,
                   interpolation="nearest")
    cbar = fig.colorbar(im, ax=ax)
    cbar.set_ticks([0, 64, 128, 192, 255])
    cbar.set_ticklabels(["0%", "25%", "50%", "75%", "100%"])
    cbar.set_label("Probability open")

    ax.set_xticks(range(len(Weekday)))
    ax.set_xticklabels([wd.name[:3].title() for wd in Weekday])
    block_rows = np.arange(geometry.blocks_per_day) * geometry.granularity
    ax.set_yticks(block_rows)
    ax.set_yticklabels([geometry.slot_time(b, 0).strftime("%H:%M") for b in range(geometry.blocks_per_day)])
    ax.set_title("Weekly opening probability")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
