import pytest

from smartped.manager import BIAS_MARGIN, Sample


def sample_for_scalar(scalar, t_ns):
    """Sample whose bias-corrected magnitude minus 1 g equals ``scalar``."""
    return Sample(0.0, 0.0, scalar - BIAS_MARGIN, int(t_ns))


@pytest.fixture
def square_wave():
    """-1 / +1 scalar square wave at 100 Hz, half period of 32 samples."""
    def make(n, half_period=32, dt_ns=10_000_000):
        out = []
        for i in range(n):
            level = -1.0 if (i // half_period) % 2 == 0 else 1.0
            out.append(sample_for_scalar(level, i * dt_ns))
        return out
    return make
