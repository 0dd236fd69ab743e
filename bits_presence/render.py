"""
Heatmap rendering onto a template image.

Each block is painted as ``block_width`` x ``granularity`` pixels, one pixel
row per slot, coloured on a red (0) -> yellow -> green (255) ramp. Pixels
outside the painted blocks keep the template's values.
"""
from __future__ import annotations

import os
from pathlib import Path

import numpy as np
from PIL import Image

from bits_presence.errors import OutputError, TemplateLoadError
from bits_presence.grid import GridGeometry, OccupancyGrid, Weekday
from bits_presence.reporting import log


def cell_colors(values: np.ndarray) -> np.ndarray:
    """RGB for cell values in [0, 255]; adds a trailing axis of length 3."""
    v = np.asarray(values, dtype=np.int32)
    rgb = np.zeros(v.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = np.minimum(255, 2 * (255 - v))
    rgb[..., 1] = np.minimum(255, 2 * v)
    return rgb


def paint_grid(pixels: np.ndarray, grid: OccupancyGrid, geometry: GridGeometry) -> None:
    """Paint every block of ``grid`` into an (H, W, 3) pixel buffer, in place."""
    colors = cell_colors(grid.values)
    for weekday in Weekday:
        for block in range(geometry.blocks_per_day):
            x, y = geometry.block_origin(weekday, block)
            pixels[y:y + geometry.granularity, x:x + geometry.block_width] = colors[weekday, block][:, None, :]


def load_template(path: Path, geometry: GridGeometry) -> tuple[np.ndarray, str]:
    """Template pixels as an (H, W, 3) uint8 array, plus the image format to write back."""
    try:
        with Image.open(path) as img:
            fmt = img.format or "PNG"
            pixels = np.array(img.convert("RGB"))
    except (OSError, ValueError) as e:
        raise TemplateLoadError(f"Cannot load template image {path}: {e}") from e

    need_w, need_h = geometry.canvas_size()
    h, w = pixels.shape[:2]
    if w < need_w or h < need_h:
        raise TemplateLoadError(
            f"Template {path.name} is {w}x{h}, the grid layout needs at least {need_w}x{need_h}"
        )
    return pixels, fmt


def write_image(pixels: np.ndarray, path: Path, fmt: str) -> None:
    """Write through a temporary sibling and move it into place."""
    tmp = path.with_name(f".{path.name}.partial")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(pixels).save(tmp, format=fmt)
        os.replace(tmp, path)
    except OSError as e:
        _discard(tmp)
        raise OutputError(f"Cannot write output image {path}: {e}") from e
    except BaseException:
        _discard(tmp)
        raise


def _discard(tmp: Path) -> None:
    try:
        tmp.unlink(missing_ok=True)
    except OSError:
        log(f"  Could not remove partial file {tmp}")


def remove_stale_output(path: Path) -> None:
    if not path.exists():
        return
    try:
        path.unlink()
    except OSError as e:
        raise OutputError(f"Cannot remove previous output {path}: {e}") from e
    log(f"  Removed previous output {path.name}")


def render(
    grid: OccupancyGrid,
    template_path: Path,
    output_path: Path,
    geometry: GridGeometry | None = None,
) -> np.ndarray:
    geometry = geometry or grid.geometry
    pixels, fmt = load_template(template_path, geometry)
    paint_grid(pixels, grid, geometry)
    write_image(pixels, output_path, fmt)
    log(f"  Wrote {output_path} ({pixels.shape[1]}x{pixels.shape[0]} {fmt})")
    return pixels
