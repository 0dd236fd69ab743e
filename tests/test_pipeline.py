from __future__ import annotations

import tempfile
import unittest
from datetime import date
from pathlib import Path

import numpy as np
import polars as pl
from PIL import Image

from bits_presence.config import load_config
from bits_presence.errors import MalformedLogError, OutputError
from bits_presence.grid import GridGeometry, Weekday
from bits_presence.pipeline import main, run

LOG = """changed_at,status
2021-03-01 12:00:00,0
2021-03-01 09:00:00,1
2021-03-01 08:00:00,1
2021-02-27 10:00:00,0
"""


class TestPipeline(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        Image.new("RGB", (420, 400), (255, 255, 255)).save(self.tmp / "template.png")
        (self.tmp / "log.csv").write_text(LOG, encoding="utf-8")
        self.output = self.tmp / "www" / "presence.png"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def write_config(self, extra: str = "") -> Path:
        path = self.tmp / "bits_presence.toml"
        path.write_text(
            """
[source]
database = "log.csv"
query = "SELECT changed_at, status FROM events ORDER BY changed_at DESC"

[images]
input_image = "template.png"
output_image = "www/presence.png"
""" + extra,
            encoding="utf-8",
        )
        return path

    def test_run_end_to_end(self) -> None:
        cfg = load_config(self.write_config(
            '\n[outputs]\ngrid_csv = "out/grid.csv"\n'
        ))
        summary = run(cfg, date(2021, 3, 2))

        self.assertEqual(summary.n_events, 4)
        self.assertEqual(summary.n_intervals, 1)
        self.assertEqual(summary.first_day, date(2021, 3, 1))
        self.assertEqual(summary.grid[Weekday.MONDAY, 3, 23], 181)
        self.assertEqual(summary.grid[Weekday.MONDAY, 5, 0], 0)
        self.assertTrue(self.output.exists())

        table = pl.read_csv(cfg.outputs.grid_csv)
        self.assertEqual(table.height, 6 * 13 * 24)
        first = table.row(0, named=True)
        self.assertEqual(first["weekday"], "Monday")
        self.assertEqual(first["slot_start"], "08:00:00")
        self.assertEqual(first["value"], 181)

    def test_main_writes_image_and_figure(self) -> None:
        path = self.write_config('\n[outputs]\nfigure = "out/heatmap.png"\nfigure_dpi = 40\nlog_file = "out/log.txt"\n')
        self.assertEqual(main(["--config", str(path), "--today", "2021-03-02"]), 0)
        self.assertTrue((self.tmp / "out" / "heatmap.png").exists())
        self.assertIn("PHASE 4/4", (self.tmp / "out" / "log.txt").read_text(encoding="utf-8"))
        with Image.open(self.output) as img:
            pixels = np.array(img.convert("RGB"))
        x, y = GridGeometry().block_origin(Weekday.TUESDAY, 0)
        self.assertEqual(pixels[y, x].tolist(), [255, 0, 0])

    def test_failed_run_leaves_no_stale_output(self) -> None:
        self.output.parent.mkdir(parents=True)
        self.output.write_bytes(b"yesterday's image")
        (self.tmp / "log.csv").write_text("changed_at,status\n2021-03-01 08:00:00,0\n", encoding="utf-8")

        cfg = load_config(self.write_config())
        with self.assertRaises(MalformedLogError):
            run(cfg, date(2021, 3, 2))
        self.assertFalse(self.output.exists())
        self.assertEqual(main(["--config", str(self.tmp / "bits_presence.toml")]), 1)

    def test_failed_export_leaves_no_image(self) -> None:
        (self.tmp / "blocker").write_bytes(b"")
        cfg = load_config(self.write_config('\n[outputs]\ngrid_csv = "blocker/grid.csv"\n'))
        with self.assertRaises(OutputError):
            run(cfg, date(2021, 3, 2))
        self.assertFalse(self.output.exists())
        self.assertEqual(main(["--config", str(self.tmp / "bits_presence.toml"), "--today", "2021-03-02"]), 1)

    def test_missing_config_exits_nonzero(self) -> None:
        self.assertEqual(main(["--config", str(self.tmp / "absent.toml")]), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
