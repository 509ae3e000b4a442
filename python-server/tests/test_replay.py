import pytest

from conftest import sample_for_scalar
import step_replay
from smartped.manager import StepDetectionManager


def _write_csv(path, samples):
    lines = ["# x,y,z,timestamp_ns"]
    lines += [f"{s.x},{s.y},{s.z},{s.timestamp_ns}" for s in samples]
    path.write_text("\n".join(lines) + "\n")


def test_replay_summary(square_wave):
    samples = square_wave(256)
    seen = []
    summary = step_replay.replay(samples, StepDetectionManager(),
                                 on_step=lambda i, s, n: seen.append((i, n)))
    assert summary["samples"] == 256
    assert summary["updates"] == 32
    assert summary["steps"] == 4
    assert [i for i, _ in seen] == [32, 96, 160, 224]
    assert summary["mean_sample_rate"] == pytest.approx(100.0)
    assert summary["duration_s"] == pytest.approx(2.55)


def test_main_prints_steps(tmp_path, capsys, square_wave):
    path = tmp_path / "walk.csv"
    _write_csv(path, square_wave(256))
    assert step_replay.main(["--file", str(path), "--no-prefs"]) == 0
    out = capsys.readouterr().out
    assert "Loaded 256 samples" in out
    assert "STEP 4" in out
    assert "steps:             4" in out


def test_main_writes_data_log(tmp_path, square_wave):
    path = tmp_path / "walk.csv"
    _write_csv(path, square_wave(64))
    logs = tmp_path / "logs"
    logs.mkdir()
    assert step_replay.main(["--file", str(path), "--write-log", "--log-dir", str(logs), "--quiet"]) == 0
    written = list(logs.iterdir())
    assert len(written) == 1
    assert written[0].read_bytes().count(b"\r\n") == 64


def test_main_reports_missing_file(tmp_path):
    assert step_replay.main(["--file", str(tmp_path / "none.csv")]) == 1


def test_main_flat_signal_has_no_steps(tmp_path, capsys):
    path = tmp_path / "still.csv"
    _write_csv(path, [sample_for_scalar(0.0, i * 10_000_000) for i in range(40)])
    assert step_replay.main(["--file", str(path), "--quiet"]) == 0
    assert "NO STEPS DETECTED" in capsys.readouterr().out
