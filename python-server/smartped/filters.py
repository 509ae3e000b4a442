"""
Signal filters for the step detector.
No GUI or I/O dependencies - pure per-sample logic shared by every host.

Every filter exposes the same two operations, ``reset()`` and
``process(sample, timestamp_ns) -> float``, so the manager can drive them
uniformly.
"""
from __future__ import annotations

import math
from typing import Protocol


class SignalFilter(Protocol):
    def reset(self) -> None: ...

    def process(self, sample: float, timestamp_ns: int) -> float: ...


class LowPassFilter:
    """
    Cascade of single-pole recursive low-pass stages.

    ``cutoff`` is a normalized frequency (corner frequency / sample rate).
    The timestamp handed to ``process`` is ignored; the caller retunes the
    filter through ``set_cutoff`` when the sample rate changes.
    """
    def __init__(self, cutoff: float = 0.0625, stages: int = 4):
        if stages < 0:
            raise ValueError(f"stages must be >= 0, got {stages}")
        self.stages = stages
        self.cutoff = cutoff
        self.gain = 0.0
        self.decay = 0.0
        self.acc = [0.0] * stages
        self._compute_weights()

    def _compute_weights(self):
        self.decay = math.exp(-2.0 * math.pi * self.cutoff)
        self.gain = 1.0 - self.decay

    def set_cutoff(self, cutoff: float) -> None:
        """Recompute the coefficients; accumulators are left untouched."""
        self.cutoff = cutoff
        self._compute_weights()

    def reset(self) -> None:
        for i in range(self.stages):
            self.acc[i] = 0.0

    def process(self, sample: float, timestamp_ns: int = 0) -> float:
        # With zero stages the loop is empty and the input passes straight through.
        y = sample
        for i in range(self.stages):
            y = self.gain * y + self.decay * self.acc[i]
            self.acc[i] = y
        return y


NEGATIVE, ZERO, POSITIVE = -1, 0, 1


def sign(value: float) -> int:
    if value == 0.0:
        return ZERO
    if value > 0.0:
        return POSITIVE
    return NEGATIVE


class ZeroCrossingDetector:
    """
    Emits the gradient (units per second) at each negative -> non-negative
    crossing and 0.0 everywhere else.

    Two samples sharing a timestamp never count as a crossing: the gradient
    is undefined, so the detector reports 0.0 and only updates its history.
    """
    def __init__(self):
        self.prev_value = 0.0
        self.prev_t_ns = 0

    def reset(self) -> None:
        self.prev_value = 0.0
        self.prev_t_ns = 0

    def process(self, sample: float, timestamp_ns: int) -> float:
        out = 0.0
        if sign(self.prev_value) == NEGATIVE and sign(sample) != NEGATIVE:
            dt_s = (timestamp_ns - self.prev_t_ns) / 1e9
            if dt_s != 0.0:
                out = abs((sample - self.prev_value) / dt_s)
        self.prev_value = sample
        self.prev_t_ns = timestamp_ns
        return out


class ThresholdEstimator:
    """
    Fixed-weight 4-tap moving average over recent peak strengths.

    The weights decay roughly by half per tap, giving an exponential-style
    response to changes in step intensity.
    """
    WEIGHTS = (0.533, 0.267, 0.133, 0.067)

    def __init__(self):
        self.history = [0.0] * len(self.WEIGHTS)

    def reset(self) -> None:
        for i in range(len(self.history)):
            self.history[i] = 0.0

    def process(self, sample: float, timestamp_ns: int = 0) -> float:
        # Most recent first; the oldest entry falls off the end.
        self.history.pop()
        self.history.insert(0, sample)
        return sum(w * v for w, v in zip(self.WEIGHTS, self.history))


__all__ = [
    'SignalFilter',
    'LowPassFilter',
    'ZeroCrossingDetector',
    'ThresholdEstimator',
    'sign',
    'NEGATIVE',
    'ZERO',
    'POSITIVE',
]
