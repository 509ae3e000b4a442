"""
Per-sample data log.

Each record is a row of tab-terminated values closed by ``\\r\\n``; the
step manager writes scalar, filtered, peak, threshold and timestamp_ns.
Files are named after the minute they were opened in and never overwrite
an existing log.
"""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_COLUMNS = ["scalar", "filtered", "peak", "threshold", "timestamp_ns"]


def log_filename(now: datetime) -> str:
    # Month is zero-based to stay compatible with logs recorded on the device.
    return f"data_{now.year}_{now.month - 1}_{now.day}_{now.hour}_{now.minute}"


class DataLogger:
    """
    File-backed log sink.

    Opening raises ``OSError`` to the caller. Failures while writing are
    logged and kept in ``error_message``; they never reach the per-sample
    path that feeds the logger.
    """
    def __init__(self, directory=".", now: datetime | None = None):
        self.directory = Path(directory)
        self.filename = log_filename(now or datetime.now())
        self.path = self.directory / self.filename
        while self.path.exists():
            self.filename += "_"
            self.path = self.directory / self.filename
        self.error_message = ""
        self._fh = self.path.open("x", encoding="utf-8", newline="")

    @property
    def closed(self) -> bool:
        return self._fh is None or self._fh.closed

    def _write(self, text):
        if self.closed:
            self._record_error(f"write to closed log {self.filename}")
            return
        try:
            self._fh.write(text)
        except OSError as exc:
            self._record_error(f"write failed on {self.filename}: {exc}")

    def _record_error(self, msg):
        logger.error(msg)
        self.error_message += msg + "\n"

    def write_value(self, value) -> None:
        self._write(f"{value}\t")

    def write_newline(self) -> None:
        self._write("\r\n")

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._fh.close()
        except OSError as exc:
            self._record_error(f"close failed on {self.filename}: {exc}")
        logger.info("data log closed: %s", self.path)


__all__ = ["DataLogger", "LOG_COLUMNS", "log_filename"]
