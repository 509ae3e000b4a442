import math

import numpy as np
import pytest

from smartped.filters import (LowPassFilter, ThresholdEstimator, ZeroCrossingDetector,
                              sign, NEGATIVE, ZERO, POSITIVE)


def test_lowpass_coefficients():
    lp = LowPassFilter(0.0625, 4)
    assert lp.decay == pytest.approx(math.exp(-2 * math.pi * 0.0625))
    assert lp.gain == pytest.approx(1.0 - lp.decay)
    assert lp.acc == [0.0] * 4


def test_lowpass_single_stage_recursion():
    lp = LowPassFilter(0.1, 1)
    a, b = lp.gain, lp.decay
    y1 = lp.process(1.0, 0)
    y2 = lp.process(1.0, 1)
    assert y1 == pytest.approx(a)
    assert y2 == pytest.approx(a + b * a)


def test_lowpass_output_never_exceeds_input_envelope():
    rng = np.random.default_rng(7)
    lp = LowPassFilter(0.2, 4)
    envelope = 0.0
    for i, x in enumerate(rng.normal(0.0, 3.0, size=500)):
        envelope = max(envelope, abs(x))
        y = lp.process(float(x), i)
        assert abs(y) <= envelope + 1e-9


def test_lowpass_converges_to_constant_input():
    lp = LowPassFilter(0.0625, 4)
    for i in range(400):
        y = lp.process(2.5, i)
    assert y == pytest.approx(2.5, rel=1e-6)


def test_lowpass_ignores_timestamp():
    a = LowPassFilter(0.05, 3)
    b = LowPassFilter(0.05, 3)
    for i, x in enumerate([0.3, -1.2, 4.0, 0.0, 2.2]):
        assert a.process(x, i) == b.process(x, 10**12 - i * 7)


def test_set_cutoff_keeps_accumulators():
    lp = LowPassFilter(0.0625, 2)
    lp.process(1.0, 0)
    before = list(lp.acc)
    lp.set_cutoff(0.01)
    assert lp.acc == before
    assert lp.decay == pytest.approx(math.exp(-2 * math.pi * 0.01))


def test_lowpass_reset_is_idempotent():
    lp = LowPassFilter(0.0625, 4)
    for i in range(10):
        lp.process(float(i), i)
    lp.reset()
    once = list(lp.acc)
    lp.reset()
    assert lp.acc == once == [0.0] * 4
    assert len(lp.acc) == 4


def test_lowpass_zero_stages_passes_input_through():
    lp = LowPassFilter(0.0625, 0)
    assert lp.process(3.25, 0) == 3.25
    lp.reset()
    assert lp.acc == []


def test_lowpass_negative_stages_rejected():
    with pytest.raises(ValueError):
        LowPassFilter(0.0625, -1)


def test_sign_classes():
    assert sign(0.0) == ZERO
    assert sign(-0.0) == ZERO
    assert sign(1e-12) == POSITIVE
    assert sign(-3.0) == NEGATIVE


def test_zero_crossing_upward_emits_gradient():
    zc = ZeroCrossingDetector()
    t0, t1 = 1_000_000_000, 1_020_000_000
    assert zc.process(-1.0, t0) == 0.0
    assert zc.process(1.0, t1) == pytest.approx(abs(2.0 / ((t1 - t0) / 1e9)))


def test_zero_crossing_without_sign_change_is_silent():
    zc = ZeroCrossingDetector()
    assert zc.process(1.0, 0) == 0.0
    assert zc.process(2.0, 10_000_000) == 0.0


def test_zero_crossing_to_exact_zero_counts():
    zc = ZeroCrossingDetector()
    zc.process(-0.5, 0)
    assert zc.process(0.0, 500_000_000) == pytest.approx(1.0)


def test_zero_crossing_downward_is_ignored():
    zc = ZeroCrossingDetector()
    zc.process(1.0, 0)
    assert zc.process(-1.0, 10_000_000) == 0.0


def test_zero_crossing_first_sample_never_fires():
    zc = ZeroCrossingDetector()
    assert zc.process(5.0, 123) == 0.0


def test_zero_crossing_equal_timestamps_is_not_an_event():
    zc = ZeroCrossingDetector()
    zc.process(-1.0, 42)
    assert zc.process(1.0, 42) == 0.0
    # history still moved on
    assert zc.prev_value == 1.0
    assert zc.prev_t_ns == 42


def test_zero_crossing_reset_clears_history():
    zc = ZeroCrossingDetector()
    zc.process(-1.0, 100)
    zc.reset()
    zc.reset()
    assert (zc.prev_value, zc.prev_t_ns) == (0.0, 0)
    assert zc.process(1.0, 200) == 0.0


def test_threshold_weights_sum_to_one():
    assert sum(ThresholdEstimator.WEIGHTS) == pytest.approx(1.0)


def test_threshold_converges_on_constant_input():
    te = ThresholdEstimator()
    for _ in range(4):
        out = te.process(7.5, 0)
    assert out == pytest.approx(7.5)


def test_threshold_history_shifts_most_recent_first():
    te = ThresholdEstimator()
    for v in (1.0, 2.0, 3.0, 4.0, 5.0):
        out = te.process(v, 0)
    assert te.history == [5.0, 4.0, 3.0, 2.0]
    assert out == pytest.approx(0.533 * 5 + 0.267 * 4 + 0.133 * 3 + 0.067 * 2)


def test_threshold_after_reset_uses_first_weight_only():
    te = ThresholdEstimator()
    for v in (9.0, 9.0, 9.0):
        te.process(v, 0)
    te.reset()
    assert te.history == [0.0] * 4
    assert te.process(4.0, 0) == pytest.approx(4.0 * 0.533)
