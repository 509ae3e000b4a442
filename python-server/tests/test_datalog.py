import logging
from datetime import datetime

import pytest

from smartped.datalog import DataLogger, log_filename

WHEN = datetime(2024, 3, 9, 14, 5)


def test_filename_uses_zero_based_month():
    assert log_filename(WHEN) == "data_2024_2_9_14_5"


def test_existing_files_are_never_overwritten(tmp_path):
    (tmp_path / "data_2024_2_9_14_5").write_text("keep")
    first = DataLogger(tmp_path, now=WHEN)
    second = DataLogger(tmp_path, now=WHEN)
    assert first.filename == "data_2024_2_9_14_5_"
    assert second.filename == "data_2024_2_9_14_5__"
    assert (tmp_path / "data_2024_2_9_14_5").read_text() == "keep"
    first.close()
    second.close()


def test_record_format(tmp_path):
    dl = DataLogger(tmp_path, now=WHEN)
    for v in (0.5, -1.25, 0.0, 2.0, 123456789):
        dl.write_value(v)
    dl.write_newline()
    dl.close()
    assert dl.path.read_bytes() == b"0.5\t-1.25\t0.0\t2.0\t123456789\t\r\n"


def test_write_after_close_is_logged_not_raised(tmp_path, caplog):
    dl = DataLogger(tmp_path, now=WHEN)
    dl.close()
    with caplog.at_level(logging.ERROR, logger="smartped.datalog"):
        dl.write_value(1.0)
        dl.write_newline()
    assert "closed log" in caplog.text
    assert dl.error_message.count("\n") == 2


def test_close_is_idempotent(tmp_path):
    dl = DataLogger(tmp_path, now=WHEN)
    dl.close()
    dl.close()
    assert dl.closed


def test_open_failure_raises_to_caller(tmp_path):
    with pytest.raises(OSError):
        DataLogger(tmp_path / "missing" / "dir", now=WHEN)
