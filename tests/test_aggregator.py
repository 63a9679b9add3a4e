"""Tests for aggregate statistics over log snapshots."""

import pytest

from sensor_bridge import aggregator
from sensor_bridge.models import LogSnapshot, TemperatureUnit
from sensor_bridge.protocol import SENTINEL
from sensor_bridge.temperature_log import TemperatureLog


def _snapshot(*values: float, capacity: int = 10) -> LogSnapshot:
    log = TemperatureLog(capacity=capacity)
    for value in values:
        log.append(value)
    return log.snapshot()


def test_empty_log_has_no_data() -> None:
    """Test that an all-sentinel log reports no data everywhere."""
    snapshot = _snapshot()

    assert aggregator.max_reading(snapshot) is None
    assert aggregator.min_reading(snapshot) is None
    assert aggregator.average(snapshot) is None
    assert aggregator.summarize(snapshot, TemperatureUnit.CELSIUS) is None


def test_single_reading() -> None:
    """Test that one in-range value is the max, min and average."""
    snapshot = _snapshot(21.5)

    assert aggregator.max_reading(snapshot) == 21.5
    assert aggregator.min_reading(snapshot) == 21.5
    assert aggregator.average(snapshot) == 21.5


def test_single_reading_in_fahrenheit() -> None:
    """Test that conversion applies to every aggregate."""
    summary = aggregator.summarize(_snapshot(100.0), TemperatureUnit.FAHRENHEIT)

    assert summary is not None
    assert summary.high == pytest.approx(212.0)
    assert summary.low == pytest.approx(212.0)
    assert summary.average == pytest.approx(212.0)
    assert summary.unit is TemperatureUnit.FAHRENHEIT
    assert summary.count == 1


def test_basic_statistics() -> None:
    """Test max, min and average over a few readings."""
    snapshot = _snapshot(10.0, 20.0, 30.0)

    summary = aggregator.summarize(snapshot, TemperatureUnit.CELSIUS)
    assert summary is not None
    assert (summary.high, summary.low, summary.average) == (30.0, 10.0, 20.0)

    summary_f = aggregator.summarize(snapshot, TemperatureUnit.FAHRENHEIT)
    assert summary_f is not None
    assert summary_f.high == pytest.approx(86.0)
    assert summary_f.low == pytest.approx(50.0)
    assert summary_f.average == pytest.approx(68.0)


def test_implausible_values_excluded() -> None:
    """Test that values outside the plausible band never surface."""
    snapshot = _snapshot(250.0, -250.0, 15.0, 25.0)

    assert aggregator.max_reading(snapshot) == 25.0
    assert aggregator.min_reading(snapshot) == 15.0
    assert aggregator.average(snapshot) == 20.0


def test_only_implausible_values() -> None:
    """Test that a log of pure noise reports no data."""
    snapshot = _snapshot(999.0, -999.0)

    assert aggregator.max_reading(snapshot) is None
    assert aggregator.min_reading(snapshot) is None
    assert aggregator.average(snapshot) is None


def test_band_edges_are_plausible() -> None:
    """Test that exactly +/-200 still counts."""
    snapshot = _snapshot(200.0, -200.0)

    assert aggregator.max_reading(snapshot) == 200.0
    assert aggregator.min_reading(snapshot) == -200.0
    assert aggregator.average(snapshot) == 0.0


def test_sentinels_ignored_after_partial_fill() -> None:
    """Test that unwritten slots do not drag down the minimum or average."""
    snapshot = _snapshot(5.0, capacity=3600)

    assert SENTINEL in snapshot.values
    assert aggregator.min_reading(snapshot) == 5.0
    assert aggregator.average(snapshot) == 5.0


def test_to_display() -> None:
    """Test unit conversion at output time."""
    assert aggregator.to_display(0.0, TemperatureUnit.FAHRENHEIT) == 32.0
    assert aggregator.to_display(-40.0, TemperatureUnit.FAHRENHEIT) == -40.0
    assert aggregator.to_display(21.5, TemperatureUnit.CELSIUS) == 21.5
