import math

import pytest

from palmchord.smoothing import (
    MovingAverage,
    ORIGIN,
    is_valid_position,
    smooth_sample,
)
from palmchord.sources import Sample


def truncated_mean(values):
    return int(sum(values) / len(values))


def test_mean_of_last_window_samples():
    ma = MovingAverage(window=3)
    xs = [10, -40, 7, 100, 101, -3, 55]
    for i, x in enumerate(xs):
        ma.add_sample(x, 2 * x, -x)
        last = xs[max(0, i - 2) : i + 1]
        expected = truncated_mean(last)
        assert ma.current_position() == (
            expected,
            truncated_mean([2 * v for v in last]),
            truncated_mean([-v for v in last]),
        )


def test_warm_up_uses_fewer_samples():
    ma = MovingAverage(window=5)
    ma.add_sample(10, 10, 10)
    ma.add_sample(21, 21, 21)
    assert len(ma) == 2
    assert ma.current_position() == (15, 15, 15)


def test_truncates_toward_zero():
    ma = MovingAverage(window=2)
    ma.add_sample(-1, 1, 0)
    ma.add_sample(-2, 2, 0)
    # -1.5 -> -1 (floor division would give -2)
    assert ma.current_position() == (-1, 1, 0)


def test_empty_window_is_origin():
    assert MovingAverage().current_position() == ORIGIN


def test_window_must_be_positive():
    with pytest.raises(ValueError):
        MovingAverage(window=0)


def test_oldest_sample_is_evicted():
    ma = MovingAverage(window=2)
    for x in (1000, 0, 0):
        ma.add_sample(x, 0, 0)
    assert len(ma) == 2
    assert ma.current_position() == (0, 0, 0)


def test_is_valid_position():
    assert is_valid_position(0.0, -1.5, 3)
    assert not is_valid_position(math.nan, 0, 0)
    assert not is_valid_position(0, math.inf, 0)


def test_invalid_sample_is_not_inserted():
    ma = MovingAverage(window=3)
    assert smooth_sample(Sample(30.7, 60.2, -9.9), ma) == (30, 60, -9)
    assert smooth_sample(Sample(math.nan, 1.0, 1.0), ma) == ORIGIN
    assert len(ma) == 1
    assert ma.current_position() == (30, 60, -9)
