"""Background ingestion of the device's serial stream."""

import logging
import math
import threading
from typing import Optional

from sensor_bridge import protocol
from sensor_bridge.device_state import DeviceState
from sensor_bridge.errors import SerialIOError
from sensor_bridge.temperature_log import TemperatureLog
from sensor_bridge.transport import LineFramer, Transport

logger = logging.getLogger(__name__)


class SerialIngestor:
    """Reads the device stream and feeds the temperature log and alarm state.

    Each completed line is either the trip token, which marks the alarm as
    tripped, or a decimal reading, which is appended to the log. Lines that
    do not parse as a finite number are dropped and counted; they never
    affect the device error flag.

    A failed read marks the device in error until the next successful read,
    and drops any partial line received before it.
    Neither bad lines nor read errors stop the loop; only the stop event does.
    """

    def __init__(
        self,
        transport: Transport,
        log: TemperatureLog,
        state: DeviceState,
        stop_event: Optional[threading.Event] = None,
        error_backoff_s: float = 0.5,
    ) -> None:
        """Initialize ingestor.

        Args:
            transport: Device link to read from
            log: Destination for readings
            state: Shared flags (tripped, device_error)
            stop_event: Shutdown signal shared with the rest of the bridge.
                       A private event is created when omitted.
            error_backoff_s: Pause after a failed read before retrying
        """
        self._transport = transport
        self._log = log
        self._state = state
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._error_backoff_s = error_backoff_s
        self._framer = LineFramer()
        self._thread: Optional[threading.Thread] = None

        self.lines_ingested = 0
        self.dropped_lines = 0
        self.trip_events = 0

    # ========================================================================
    # Thread Control
    # ========================================================================

    def start(self) -> None:
        """Start background thread reading the device stream."""
        if self.is_running():
            raise RuntimeError("Ingestor already running")

        self._thread = threading.Thread(
            target=self._reader_loop,
            name="SerialIngestor",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Started serial ingestor thread")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to exit and join the thread."""
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Ingestor thread did not stop cleanly")
        self._thread = None

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the loop to exit without signalling it."""
        if self._thread:
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ========================================================================
    # Line Handling
    # ========================================================================

    def feed(self, data: bytes) -> int:
        """Frame a chunk of device output and apply every completed line.

        Args:
            data: Raw bytes as read from the device

        Returns:
            Number of lines completed by this chunk
        """
        lines = self._framer.feed(data)
        for line in lines:
            self._handle_line(line)
        return len(lines)

    def _handle_line(self, line: str) -> None:
        if line.startswith(protocol.TRIP_TOKEN):
            self._state.mark_tripped()
            self.trip_events += 1
            logger.info("Trip event received from device")
            return

        try:
            value = float(line)
        except ValueError:
            value = math.nan

        if not math.isfinite(value):
            self.dropped_lines += 1
            logger.debug(f"Dropping unparseable line: {line[:60]!r}")
            return

        self._log.append(value)
        self.lines_ingested += 1

    def _reader_loop(self) -> None:
        logger.info(f"Serial ingestor loop started (thread {threading.get_ident()})")

        while not self._stop_event.is_set():
            try:
                data = self._transport.read_chunk()
            except SerialIOError as e:
                # Bytes before the failure can't be joined to bytes after it
                self._framer.reset()
                if self._state.set_device_error(True):
                    logger.error(f"Serial read failed: {e}")
                if self._stop_event.wait(timeout=self._error_backoff_s):
                    break
                continue

            self._state.set_device_error(False)
            if not data:
                continue

            try:
                self.feed(data)
            except Exception as e:
                logger.error(f"Error handling device output: {e}", exc_info=True)

        logger.info("Serial ingestor loop stopped")
