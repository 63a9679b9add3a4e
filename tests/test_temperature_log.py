"""Tests for the circular temperature log."""

import threading

import pytest

from sensor_bridge.protocol import LOG_CAPACITY, SENTINEL
from sensor_bridge.temperature_log import TemperatureLog


def test_new_log_is_empty() -> None:
    """Test that a fresh log holds only sentinels and reports no latest value."""
    log = TemperatureLog()

    assert log.capacity == LOG_CAPACITY
    assert log.latest() is None

    snapshot = log.snapshot()
    assert snapshot.next_index == 0
    assert len(snapshot.values) == LOG_CAPACITY
    assert all(v == SENTINEL for v in snapshot.values)
    assert snapshot.latest() is None
    assert snapshot.ordered() == ()


def test_latest_tracks_last_append() -> None:
    """Test that latest() always equals the most recent append."""
    log = TemperatureLog(capacity=4)

    for value in [21.5, -3.0, 0.0, 19.25, 22.0, 22.5]:
        log.append(value)
        assert log.latest() == value
        assert log.snapshot().latest() == value


def test_zero_reading_is_not_empty() -> None:
    """Test that 0.0 is a real reading, distinct from the empty sentinel."""
    log = TemperatureLog(capacity=3)
    log.append(0.0)

    assert log.latest() == 0.0


def test_overwrites_oldest_after_wraparound() -> None:
    """Test that only the most recent capacity readings are kept."""
    log = TemperatureLog(capacity=5)

    for value in range(12):
        log.append(float(value))

    snapshot = log.snapshot()
    assert snapshot.ordered() == (7.0, 8.0, 9.0, 10.0, 11.0)
    assert snapshot.next_index == 12 % 5
    assert log.latest() == 11.0


def test_latest_at_exact_capacity() -> None:
    """Test latest() when the cursor has just wrapped back to slot 0."""
    log = TemperatureLog(capacity=3)
    for value in (1.0, 2.0, 3.0):
        log.append(value)

    assert log.snapshot().next_index == 0
    assert log.latest() == 3.0


def test_implausible_values_are_stored_as_is() -> None:
    """Test that the log keeps values the aggregates will later ignore."""
    log = TemperatureLog(capacity=3)
    log.append(500.0)

    assert log.latest() == 500.0
    assert 500.0 in log.snapshot().values


def test_invalid_capacity() -> None:
    """Test that a non-positive capacity is rejected."""
    with pytest.raises(ValueError):
        TemperatureLog(capacity=0)


@pytest.mark.parametrize("lock_factory", [threading.Lock, threading.RLock])
def test_shared_lock_is_used(lock_factory) -> None:
    """Test that a log built with a shared lock of either kind blocks while it is held."""
    lock = lock_factory()
    log = TemperatureLog(capacity=3, lock=lock)
    done = threading.Event()

    def writer() -> None:
        log.append(1.0)
        done.set()

    with lock:
        thread = threading.Thread(target=writer)
        thread.start()
        assert not done.wait(timeout=0.2), "append should wait for the shared lock"

    assert done.wait(timeout=2.0)
    thread.join()
    assert log.latest() == 1.0


def test_snapshots_during_concurrent_appends() -> None:
    """Test that snapshots taken while appending are always consistent."""
    log = TemperatureLog(capacity=50)
    stop = threading.Event()

    def writer() -> None:
        value = 0
        while not stop.is_set():
            log.append(float(value % 100))
            value += 1

    thread = threading.Thread(target=writer, daemon=True)
    thread.start()

    try:
        for _ in range(200):
            snapshot = log.snapshot()
            assert len(snapshot.values) == 50
            assert 0 <= snapshot.next_index < 50
            latest = snapshot.latest()
            # The slot before the cursor is always the last completed write
            assert latest is None or 0.0 <= latest < 100.0
    finally:
        stop.set()
        thread.join(timeout=2.0)
