import queue
import threading
import time

import pytest

from smartped.manager import Sample
from smartped.reader import ReaderThread, load_samples, parse_line


@pytest.mark.parametrize("line,expected", [
    ("0.1,-0.2,9.7,1000\n", Sample(0.1, -0.2, 9.7, 1000)),
    ("  1,2,3,1.5e9 ", Sample(1.0, 2.0, 3.0, 1_500_000_000)),
    ("0,0,0,1234567890123", Sample(0.0, 0.0, 0.0, 1234567890123)),
])
def test_parse_line_valid(line, expected):
    assert parse_line(line) == expected


@pytest.mark.parametrize("line", [
    "",
    "   \n",
    "# x,y,z,timestamp_ns",
    "1,2,3",
    "1,2,3,4,5",
    "a,b,c,d",
    "1,2,nan,100",
    "1,inf,2,100",
    "1,2,3,nan",
])
def test_parse_line_rejects(line):
    assert parse_line(line) is None


def test_load_samples_skips_bad_lines(tmp_path, caplog):
    path = tmp_path / "walk.csv"
    path.write_text("# header\n0,0,0,0\ngarbage\n1,1,1,10\n")
    samples = load_samples(path)
    assert samples == [Sample(0.0, 0.0, 0.0, 0), Sample(1.0, 1.0, 1.0, 10)]
    assert "line 3" in caplog.text


def test_reader_thread_streams_file(tmp_path):
    path = tmp_path / "walk.csv"
    path.write_text("".join(f"0,0,{i},{i * 10}\n" for i in range(5)))
    q = queue.Queue(maxsize=100)
    stop = threading.Event()
    reader = ReaderThread(None, 115200, str(path), q, stop)
    reader.start()
    got = []
    deadline = time.monotonic() + 5.0
    while len(got) < 5 and time.monotonic() < deadline:
        try:
            got.append(q.get(timeout=0.1))
        except queue.Empty:
            pass
    stop.set()
    reader.join(timeout=2.0)
    assert [s.timestamp_ns for s in got] == [0, 10, 20, 30, 40]
    assert not reader.is_alive()


def test_reader_thread_drops_when_queue_full(tmp_path):
    path = tmp_path / "walk.csv"
    path.write_text("".join(f"0,0,0,{i}\n" for i in range(10)))
    q = queue.Queue(maxsize=3)
    stop = threading.Event()
    reader = ReaderThread(None, 115200, str(path), q, stop)
    reader.start()
    deadline = time.monotonic() + 5.0
    while reader.dropped < 7 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    reader.join(timeout=2.0)
    assert q.qsize() == 3
    assert reader.dropped == 7


def test_reader_thread_missing_file_exits(tmp_path):
    reader = ReaderThread(None, 115200, str(tmp_path / "none.csv"), queue.Queue(), threading.Event())
    reader.start()
    reader.join(timeout=2.0)
    assert not reader.is_alive()


def test_reader_requires_parser():
    with pytest.raises(ValueError):
        ReaderThread(None, 115200, "x.csv", queue.Queue(), threading.Event(), parse_fn=None)
