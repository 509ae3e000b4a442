"""
Step detection manager.

Takes raw tri-axial acceleration samples one at a time, pushes them through
the filter chain (bias-corrected magnitude -> low-pass -> zero crossing ->
dynamic threshold), counts steps and keeps batch / block statistics for the
sample rate, run time and step rate.

The manager performs no I/O of its own. A log sink may be attached, in which
case every processed sample is appended to it as one record.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Protocol

from .datalog import DataLogger
from .filters import LowPassFilter, ThresholdEstimator, ZeroCrossingDetector

logger = logging.getLogger(__name__)

BIAS = 9.8          # gravity removed from the magnitude (m/s^2)
BIAS_MARGIN = 0.2   # extra z bias, only inside the magnitude
BATCH_SIZE = 8      # samples per "update ready" signal
BLOCK_NUMBER = 16   # batches per step-rate window

DEFAULT_THRESHOLD = 70
DEFAULT_CUTOFF = 0.0625
DEFAULT_STAGES = 4
TARGET_CORNER_HZ = 4.0


class Sample(NamedTuple):
    x: float
    y: float
    z: float
    timestamp_ns: int


class LogSink(Protocol):
    def write_value(self, value) -> None: ...

    def write_newline(self) -> None: ...

    def close(self) -> None: ...


@dataclass
class FrameState:
    """Scratch values for the most recently processed sample."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    scalar: float = 0.0
    filtered: float = 0.0
    peak: float = 0.0
    threshold: float = 0.0
    timestamp_ns: int = 0


@dataclass
class PedometerState:
    steps: int = 0
    run_time: int = 0               # ns
    offset: float = 0.0             # calibration offset
    threshold: int = DEFAULT_THRESHOLD  # trigger fraction, percent
    low_pass: bool = False
    last_peak: float = 0.0
    step_rate: float = 0.0          # steps / minute
    instant_threshold: float = 0.0  # current dynamic threshold
    # batch accounting
    sample_count: int = 0
    batch_start: Optional[int] = None
    block_length: int = 0           # ns, length of the latest batch
    # step-rate window accounting
    block_steps: int = 0
    block_count: int = 0
    block_start: Optional[int] = None
    block_end: Optional[int] = None


def _clamp_percent(value) -> int:
    return max(0, min(100, int(value)))


class StepDetectionManager:
    """
    Orchestrates the filter chain and owns all pedometer state.

    ``process`` returns True once every ``BATCH_SIZE`` samples, signalling
    that derived statistics are worth refreshing on the host side.
    Access must be serialized by the host; nothing here takes a lock.
    """
    def __init__(self, run_time=0, offset=0.0, threshold=DEFAULT_THRESHOLD,
                 steps=0, low_pass=False, cutoff=DEFAULT_CUTOFF,
                 stages=DEFAULT_STAGES, sink: Optional[LogSink] = None):
        self.state = PedometerState(
            steps=max(0, int(steps)),
            run_time=int(run_time),
            offset=float(offset),
            threshold=_clamp_percent(threshold),
            low_pass=bool(low_pass),
        )
        self.frame = FrameState()
        self.low_pass_filter = LowPassFilter(cutoff, stages)
        self.zero_crossing = ZeroCrossingDetector()
        self.threshold_estimator = ThresholdEstimator()
        self.sink = sink

    # ------------------------ per-sample path ------------------------
    def process(self, x: float, y: float, z: float, timestamp_ns: int) -> bool:
        st = self.state
        fr = self.frame

        # Margin enters the norm only; the reported scalar subtracts plain BIAS.
        z_biased = z + BIAS + BIAS_MARGIN
        fr.x, fr.y, fr.z = x, y, z_biased
        fr.scalar = math.sqrt(x * x + y * y + z_biased * z_biased) - BIAS
        fr.timestamp_ns = timestamp_ns

        # The filter always runs so its state stays warm when toggled on.
        lp = self.low_pass_filter.process(fr.scalar, timestamp_ns)
        fr.filtered = lp if st.low_pass else fr.scalar

        fr.peak = self.zero_crossing.process(fr.filtered, timestamp_ns)
        if fr.peak != 0.0:
            st.instant_threshold = self.threshold_estimator.process(fr.peak, timestamp_ns)
        fr.threshold = st.instant_threshold

        if fr.peak > (st.threshold / 100.0) * st.instant_threshold:
            st.last_peak = fr.peak
            st.steps += 1
            st.block_steps += 1

        self._write_log()

        st.sample_count = (st.sample_count + 1) % BATCH_SIZE
        if st.sample_count != 0:
            return False
        self._close_batch(timestamp_ns)
        return True

    def process_sample(self, sample: Sample) -> bool:
        return self.process(sample.x, sample.y, sample.z, sample.timestamp_ns)

    def _close_batch(self, timestamp_ns):
        st = self.state
        if st.batch_start is not None:
            st.block_length = timestamp_ns - st.batch_start
        st.batch_start = timestamp_ns
        st.run_time += max(0, st.block_length)

        st.block_count += 1
        if st.block_count < BLOCK_NUMBER:
            return
        st.block_count = 0
        st.block_end = timestamp_ns
        window_ns = 0 if st.block_start is None else st.block_end - st.block_start
        if window_ns > 0:
            st.step_rate = st.block_steps / (window_ns / (1e9 * 60))
        else:
            st.step_rate = 0.0
        logger.debug("step-rate window closed: %d steps, %.1f steps/min",
                     st.block_steps, st.step_rate)
        st.block_start = timestamp_ns
        st.block_steps = 0

    def _write_log(self):
        if self.sink is None:
            return
        fr = self.frame
        self.sink.write_value(fr.scalar)
        self.sink.write_value(fr.filtered)
        self.sink.write_value(fr.peak)
        self.sink.write_value(fr.threshold)
        self.sink.write_value(fr.timestamp_ns)
        self.sink.write_newline()

    # ------------------------ user operations ------------------------
    def reset(self) -> None:
        """Zero steps and run time, re-bias the offset and restart the threshold."""
        st = self.state
        st.steps = 0
        st.run_time = 0
        # Re-based, not accumulated: the current raw reading becomes the zero point.
        st.offset = -self.frame.scalar
        self.threshold_estimator.reset()
        st.instant_threshold = 0.0
        logger.info("pedometer reset (offset=%.4f)", st.offset)

    def sample_rate(self) -> float:
        """Rate over the latest batch in Hz; also retunes the low-pass corner to ~4 Hz."""
        block_length = self.state.block_length
        if block_length <= 0:
            return 0.0
        sr = (BATCH_SIZE * 1e9) / block_length
        self.low_pass_filter.set_cutoff(TARGET_CORNER_HZ / sr)
        return sr

    # ------------------------ log sink ------------------------
    def attach_sink(self, sink: Optional[LogSink]) -> None:
        self.sink = sink

    def open_log(self, directory=".") -> str:
        """Close any open data log, open a fresh one and return its file name."""
        self.close_log()
        data_logger = DataLogger(directory)
        self.sink = data_logger
        logger.info("data log opened: %s", data_logger.path)
        return data_logger.filename

    def close_log(self) -> None:
        if self.sink is not None:
            self.sink.close()
            self.sink = None

    # ------------------------ accessors ------------------------
    @property
    def scalar(self) -> float:
        return self.frame.scalar

    @property
    def calibrated_scalar(self) -> float:
        return self.frame.scalar + self.state.offset

    @property
    def last_peak(self) -> float:
        return self.state.last_peak

    @property
    def step_rate(self) -> float:
        return self.state.step_rate

    @property
    def instant_threshold(self) -> float:
        return self.state.instant_threshold

    @property
    def steps(self) -> int:
        return self.state.steps

    @steps.setter
    def steps(self, value):
        self.state.steps = max(0, int(value))

    @property
    def run_time(self) -> int:
        return self.state.run_time

    @run_time.setter
    def run_time(self, value):
        self.state.run_time = int(value)

    @property
    def offset(self) -> float:
        return self.state.offset

    @offset.setter
    def offset(self, value):
        self.state.offset = float(value)

    @property
    def threshold(self) -> int:
        return self.state.threshold

    @threshold.setter
    def threshold(self, value):
        self.state.threshold = _clamp_percent(value)

    @property
    def low_pass(self) -> bool:
        return self.state.low_pass

    @low_pass.setter
    def low_pass(self, value):
        self.state.low_pass = bool(value)

    def snapshot(self) -> dict:
        """Plain-dict view of the statistics a host displays."""
        st = self.state
        fr = self.frame
        return {
            "steps": st.steps,
            "run_time_s": st.run_time / 1e9,
            "step_rate": st.step_rate,
            "last_peak": st.last_peak,
            "threshold_pct": st.threshold,
            "dynamic_threshold": st.instant_threshold,
            "low_pass": st.low_pass,
            "offset": st.offset,
            "scalar": fr.scalar,
            "filtered": fr.filtered,
            "x": fr.x,
            "y": fr.y,
            "z": fr.z,
        }


__all__ = [
    'Sample',
    'LogSink',
    'FrameState',
    'PedometerState',
    'StepDetectionManager',
    'BIAS',
    'BIAS_MARGIN',
    'BATCH_SIZE',
    'BLOCK_NUMBER',
    'DEFAULT_THRESHOLD',
    'DEFAULT_CUTOFF',
    'DEFAULT_STAGES',
]
