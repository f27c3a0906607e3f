import time
from unittest.mock import patch

from locengine.clock import elapsed_millis_since_boot, system_time


def test_system_time_is_current_microseconds():
    before = time.time_ns() // 1000
    value = system_time(0)
    after = time.time_ns() // 1000
    assert before <= value <= after


def test_elapsed_millis_is_current_milliseconds():
    before = time.time_ns() // 1_000_000
    value = elapsed_millis_since_boot()
    after = time.time_ns() // 1_000_000
    assert before <= value <= after


@patch("time.time_ns", return_value=1_400_000_000_123_456_789)
def test_units_with_fixed_clock(mock_time_ns):
    assert system_time(0) == 1_400_000_000_123_456
    assert elapsed_millis_since_boot() == 1_400_000_000_123


@patch("time.time_ns", return_value=1_400_000_000_123_456_789)
def test_clock_argument_is_ignored(mock_time_ns):
    assert system_time(7) == system_time(0)
    assert elapsed_millis_since_boot() == system_time(1) // 1000