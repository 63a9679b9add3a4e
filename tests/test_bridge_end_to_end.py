"""End-to-end tests of the assembled bridge with a simulated board."""

import io
import json
import signal
import socket
import threading
import time
from typing import Callable, List, Optional

import pytest

from fakes.fake_serial import FakeSerial
from sensor_bridge import protocol
from sensor_bridge.config import BridgeConfig
from sensor_bridge.lifecycle import (
    SensorBridge,
    ShutdownSignal,
    install_signal_handlers,
    watch_console,
)
from sensor_bridge.transport import Transport


def _wait_for(condition: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(0.02)
    return condition()


def send(address, code: str) -> Optional[str]:
    """Issue one command the way the watch companion does."""
    with socket.create_connection(address, timeout=3.0) as sock:
        sock.sendall(f"GET /{code} HTTP/1.1\r\n\r\n".encode("ascii"))
        chunks = []
        while True:
            chunk = sock.recv(1024)
            if not chunk:
                break
            chunks.append(chunk)
    body = b"".join(chunks)
    if not body:
        return None
    return json.loads(body)["name"]


@pytest.fixture
def board() -> FakeSerial:
    return FakeSerial(timeout=0.02)


@pytest.fixture
def bridge(board: FakeSerial):
    config = BridgeConfig(
        port=0,
        host="127.0.0.1",
        accept_timeout_s=0.1,
        client_timeout_s=1.0,
        log_capacity=100,
    )
    bridge = SensorBridge(config, Transport(board))
    bridge.start()
    yield bridge
    bridge.stop()


def test_empty_bridge_reports_no_data(bridge: SensorBridge) -> None:
    """Test the very first request against a fresh bridge."""
    assert send(bridge.dispatcher.address, "b") == protocol.MSG_NO_DATA


def test_readings_flow_from_board_to_client(bridge: SensorBridge, board: FakeSerial) -> None:
    """Test ingestion, stats and unit toggling through real threads and sockets."""
    for value in (10.0, 20.0, 30.0):
        board.emit_reading(value)
    assert _wait_for(lambda: bridge.log.latest() == 30.0)

    address = bridge.dispatcher.address
    assert send(address, "b") == "30.0 C"
    assert send(address, "d") == "H: 30.0 L: 10.0 AVG: 20.0"

    replies = [send(address, "a") for _ in range(3)]
    assert replies == [None, None, "86.0 F"]
    assert board.display_unit == "F"
    assert send(address, "d") == "H: 86.0 L: 50.0 AVG: 68.0"


def test_trip_then_reset(bridge: SensorBridge, board: FakeSerial) -> None:
    """Test the alarm path from board event to client reset."""
    address = bridge.dispatcher.address

    board.trip()
    assert _wait_for(lambda: bridge.state.tripped)
    assert send(address, "t") == protocol.MSG_TRIPPED

    assert send(address, "r") == protocol.MSG_ALARM_RESET
    assert send(address, "t") == protocol.MSG_NOT_TRIPPED
    assert board.alarm_active is False


def test_standby_press(bridge: SensorBridge, board: FakeSerial) -> None:
    """Test one standby button press (three resends)."""
    address = bridge.dispatcher.address

    replies = [send(address, "s") for _ in range(3)]

    assert replies == [None, None, protocol.MSG_STANDBY_ENGAGED]
    assert board.standby is True
    assert board.commands == ["s"]


def test_device_error_visible_to_clients(bridge: SensorBridge, board: FakeSerial) -> None:
    """Test that an unplugged board surfaces as a device error and recovers."""
    address = bridge.dispatcher.address
    board.emit_reading(21.0)
    assert _wait_for(lambda: bridge.log.latest() == 21.0)

    board.fail_reads = True
    assert _wait_for(lambda: bridge.state.device_error)
    assert send(address, "b") == protocol.MSG_DEVICE_ERROR
    assert send(address, "d") == protocol.MSG_DEVICE_ERROR

    board.fail_reads = False
    assert _wait_for(lambda: not bridge.state.device_error)
    assert send(address, "b") == "21.0 C"


def test_concurrent_ingestion_and_requests(bridge: SensorBridge, board: FakeSerial) -> None:
    """Test that heavy ingestion during client traffic never tears a reply."""
    address = bridge.dispatcher.address
    stop = threading.Event()
    errors: List[BaseException] = []

    def feed() -> None:
        i = 0
        while not stop.is_set():
            board.emit_reading(float(i % 40))
            i += 1
            if i % 50 == 0:
                time.sleep(0.001)

    feeder = threading.Thread(target=feed, daemon=True)
    feeder.start()

    try:
        assert _wait_for(lambda: bridge.log.latest() is not None)
        for _ in range(30):
            latest = send(address, "b")
            assert latest is not None
            value, unit = latest.split()
            assert unit == "C"
            assert 0.0 <= float(value) < 40.0

            stats = send(address, "d")
            assert stats is not None and stats.startswith("H: ")
            parts = stats.split()
            high, low, avg = float(parts[1]), float(parts[3]), float(parts[5])
            assert low <= avg <= high
    except BaseException as e:
        errors.append(e)
        raise
    finally:
        stop.set()
        feeder.join(timeout=2.0)

    assert bridge.ingestor.is_running()
    assert bridge.dispatcher.is_running()
    assert not errors


def test_shutdown_stops_both_loops(board: FakeSerial) -> None:
    """Test that one shutdown trigger ends ingestion and serving."""
    config = BridgeConfig(port=0, host="127.0.0.1", accept_timeout_s=0.1)
    shutdown = ShutdownSignal()
    bridge = SensorBridge(config, Transport(board), shutdown=shutdown)
    bridge.start()
    address = bridge.dispatcher.address

    waiter = threading.Thread(target=bridge.wait, kwargs={"poll_s": 0.05})
    waiter.start()
    shutdown.trigger("from test")
    waiter.join(timeout=5.0)

    assert not waiter.is_alive()
    assert not bridge.ingestor.is_running()
    assert not bridge.dispatcher.is_running()
    assert board.is_open is False
    assert shutdown.reason == "from test"
    with pytest.raises(OSError):
        socket.create_connection(address, timeout=1.0).close()


def test_console_quit() -> None:
    """Test that typing q on the console triggers shutdown."""
    shutdown = ShutdownSignal()

    thread = watch_console(shutdown, io.StringIO("status\n\nq\n"))
    thread.join(timeout=2.0)

    assert shutdown.is_set()
    assert shutdown.reason == "requested from console"


def test_console_eof_keeps_running() -> None:
    """Test that closing stdin without q does not shut down."""
    shutdown = ShutdownSignal()

    thread = watch_console(shutdown, io.StringIO("hello\n"))
    thread.join(timeout=2.0)

    assert not shutdown.is_set()


def test_sigterm_triggers_shutdown() -> None:
    """Test that SIGTERM is routed to the shutdown signal."""
    shutdown = ShutdownSignal()
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}

    try:
        install_signal_handlers(shutdown)
        signal.raise_signal(signal.SIGTERM)
        assert shutdown.wait(timeout=2.0)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    assert shutdown.reason == "on SIGTERM"
