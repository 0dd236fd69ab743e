from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TextIO

_log_file: TextIO | None = None


def log(msg: str) -> None:
    ts = datetime.now().strftime("%H:%M:%S")
    line = f"[{ts}] {msg}"
    print(line)
    if _log_file is not None:
        _log_file.write(line + "\n")
        _log_file.flush()


def open_log_file(path: Path) -> None:
    global _log_file
    close_log_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    _log_file = open(path, "a", encoding="utf-8")


def close_log_file() -> None:
    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None
