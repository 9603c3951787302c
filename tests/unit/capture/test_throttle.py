"""Tests for the minimum-interval frame throttle."""

import pytest

from card_overlay.capture.throttle import FrameThrottle


def emitted(throttle: FrameThrottle, times):
    count = 0
    for now in times:
        if throttle.ready(now):
            throttle.mark(now)
            count += 1
    return count


def test_first_tick_always_ready():
    assert FrameThrottle(0.041).ready(0.0)


def test_ticks_closer_than_interval_emit_once():
    assert emitted(FrameThrottle(0.041), [1.000, 1.010]) == 1


def test_ticks_further_than_interval_emit_both():
    assert emitted(FrameThrottle(0.041), [1.000, 1.050]) == 2


@pytest.mark.parametrize("times, expected", [([1.000, 1.010], 1), ([1.000, 1.050], 2)])
def test_40ms_interval(times, expected):
    assert emitted(FrameThrottle(0.040), times) == expected


def test_skipped_ticks_do_not_reset_clock():
    # 10 ms cadence against a 41 ms interval: emits at 0, 50, 100 ms
    times = [i * 0.010 for i in range(11)]
    assert emitted(FrameThrottle(0.041), times) == 3


def test_reset():
    throttle = FrameThrottle(1.0)
    throttle.mark(5.0)
    assert not throttle.ready(5.5)
    throttle.reset()
    assert throttle.ready(5.5)
    assert throttle.last_emit is None


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        FrameThrottle(-0.1)
