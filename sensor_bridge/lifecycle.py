"""Process lifecycle: shutdown signalling and bridge assembly."""

import logging
import signal
import sys
import threading
from typing import Optional, TextIO

from sensor_bridge.config import BridgeConfig
from sensor_bridge.device_controller import DeviceController
from sensor_bridge.device_state import DeviceState
from sensor_bridge.dispatcher import ConnectionDispatcher
from sensor_bridge.ingestor import SerialIngestor
from sensor_bridge.temperature_log import TemperatureLog
from sensor_bridge.transport import Transport

logger = logging.getLogger(__name__)


class ShutdownSignal:
    """Advisory stop flag polled by the ingestor and dispatcher loops."""

    def __init__(self) -> None:
        self.event = threading.Event()
        self.reason: Optional[str] = None

    def trigger(self, reason: str = "requested") -> None:
        if not self.event.is_set():
            self.reason = reason
            logger.info(f"Shutdown {reason}")
        self.event.set()

    def is_set(self) -> bool:
        return self.event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.event.wait(timeout=timeout)


def watch_console(shutdown: ShutdownSignal, stream: Optional[TextIO] = None) -> threading.Thread:
    """Trigger shutdown when the operator types q or Q.

    Other input is ignored. End of input stops watching without shutting
    down, so the bridge keeps running when started without a terminal.

    Returns:
        The started daemon thread
    """
    source = stream if stream is not None else sys.stdin

    def _loop() -> None:
        for line in source:
            if line.strip()[:1] in ("q", "Q"):
                shutdown.trigger("requested from console")
                return
            if shutdown.is_set():
                return
        logger.debug("Console input closed, no longer watching for quit")

    thread = threading.Thread(target=_loop, name="ConsoleWatcher", daemon=True)
    thread.start()
    return thread


def install_signal_handlers(shutdown: ShutdownSignal) -> None:
    """Route SIGINT and SIGTERM to the shutdown signal (main thread only)."""

    def _handler(signum: int, _frame: object) -> None:
        shutdown.trigger(f"on {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


class SensorBridge:
    """Wires the device link, shared state and both service loops together.

    One reentrant lock guards both the temperature log and the device flags.
    Handlers hold it across their state and log reads, so a reply never
    mixes flags and readings from two different moments.
    """

    def __init__(
        self,
        config: BridgeConfig,
        transport: Transport,
        shutdown: Optional[ShutdownSignal] = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self.shutdown = shutdown if shutdown is not None else ShutdownSignal()

        self._lock = threading.RLock()
        self.log = TemperatureLog(capacity=config.log_capacity, lock=self._lock)
        self.state = DeviceState(lock=self._lock)
        self.controller = DeviceController(transport, self.state)
        self.ingestor = SerialIngestor(
            transport, self.log, self.state, stop_event=self.shutdown.event
        )
        self.dispatcher = ConnectionDispatcher(
            self.log,
            self.state,
            self.controller,
            host=config.host,
            port=config.port,
            stop_event=self.shutdown.event,
            accept_timeout_s=config.accept_timeout_s,
            client_timeout_s=config.client_timeout_s,
        )

    def start(self) -> None:
        """Bind the listening socket, then start ingestion and serving.

        Raises:
            BridgeStartupError: If the socket cannot be bound
        """
        self.dispatcher.bind()
        self.ingestor.start()
        self.dispatcher.start()
        logger.info("Sensor bridge running")

    def wait(self, poll_s: float = 0.5) -> None:
        """Block until shutdown is triggered, then stop everything."""
        while not self.shutdown.wait(timeout=poll_s):
            pass
        self.stop()

    def stop(self) -> None:
        """Trigger shutdown, wait for both loops to exit and close the device."""
        self.shutdown.trigger()
        self.dispatcher.stop()
        self.ingestor.stop()
        self.transport.close()
        logger.info(
            f"Sensor bridge stopped ({self.ingestor.lines_ingested} readings, "
            f"{self.dispatcher.connections_served} connections)"
        )
