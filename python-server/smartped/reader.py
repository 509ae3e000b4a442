import logging
import math
import time
import threading
import queue

try:
    import serial  # optional dependency for serial ports
except ImportError:
    serial = None

from .manager import Sample

logger = logging.getLogger(__name__)


def _to_ns(token):
    token = token.strip()
    try:
        return int(token)
    except ValueError:
        # float literal such as "1.5e9" is truncated
        return int(float(token))


def parse_line(line):
    """
    Parse 'x,y,z,timestamp_ns' -> Sample
    Returns None if malformed.
    """
    s = line.strip()
    if not s or s.startswith("#"):
        return None
    parts = s.split(",")
    if len(parts) != 4:
        return None
    try:
        x, y, z = (float(p) for p in parts[:3])
        t_ns = _to_ns(parts[3])
    except (ValueError, OverflowError):
        return None
    if not all(math.isfinite(v) for v in (x, y, z)):
        return None
    return Sample(x, y, z, t_ns)


def load_samples(filepath):
    """Read a whole recording; malformed lines are skipped with a warning."""
    samples = []
    with open(filepath, "r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, 1):
            rec = parse_line(line)
            if rec is None:
                if line.strip() and not line.lstrip().startswith("#"):
                    logger.warning("Skipping malformed line %d: %s", lineno, line.strip()[:80])
                continue
            samples.append(rec)
    return samples


class ReaderThread(threading.Thread):
    """Background reader: serial or file → queue of parsed records."""

    def __init__(self, port, baud, filepath, out_q, stop_evt, parse_fn=parse_line):
        super().__init__(daemon=True)
        if parse_fn is None:
            raise ValueError("parse_fn is required for ReaderThread")
        self.port = port
        self.baud = baud
        self.filepath = filepath
        self.q = out_q
        self.stop_evt = stop_evt
        self.parse_fn = parse_fn
        self.ser = None
        self.fp = None
        self.dropped = 0

    def open(self):
        if self.filepath:
            try:
                self.fp = open(self.filepath, "r", encoding="utf-8")
            except OSError as exc:
                logger.error("Failed to open %s: %s", self.filepath, exc)
                return False
            return True
        if serial is None:
            logger.error("pyserial not installed. Use --file or pip install pyserial")
            return False
        try:
            self.ser = serial.Serial(self.port, self.baud, timeout=0.1)
            return True
        except (OSError, serial.SerialException) as exc:
            logger.error("Failed to open serial %s: %s", self.port, exc)
            return False

    def readline(self):
        if self.fp:
            return self.fp.readline()
        if self.ser:
            data = self.ser.readline()
            if isinstance(data, bytes):
                return data.decode("utf-8", "ignore")
        return ""

    def close(self):
        if self.fp:
            self.fp.close()
        if self.ser and self.ser.is_open:
            self.ser.close()

    def run(self):
        if not self.open():
            return
        try:
            while not self.stop_evt.is_set():
                line = self.readline()
                if not line:
                    time.sleep(0.001)  # back off to keep CPU usage low
                    continue
                record = self.parse_fn(line)
                if record is None:
                    continue
                try:
                    self.q.put_nowait(record)
                except queue.Full:
                    # Drop samples if the consumer is lagging; lowers latency.
                    self.dropped += 1
        finally:
            self.close()


__all__ = ["ReaderThread", "parse_line", "load_samples"]
