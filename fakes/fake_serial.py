"""Fake serial port that simulates the temperature/motion sensor board.

The board streams one line per event over the serial link: a temperature in
Celsius roughly once a second, or ``tripped`` when the motion sensor fires.
It accepts single-byte commands: ``f`` toggles its own display unit, ``s``
toggles standby (no readings while in standby), ``r`` resets the alarm and
``m`` shows the warning message on the 7-segment display.
"""

import logging
import queue
import random
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)


class FakeSerial:
    """Deterministic simulator of the sensor board's serial behavior.

    Tests push device output with ``emit_line``/``emit_raw`` and inspect the
    control bytes the host wrote through ``received``. Optionally a
    background thread streams readings like the real board.
    """

    def __init__(self, timeout: float = 0.05, chunk_size: Optional[int] = None) -> None:
        """Initialize fake board.

        Args:
            timeout: How long read() waits for output before returning b"".
            chunk_size: If set, read() never returns more than this many
                        bytes, to exercise partial-line framing.
        """
        self.timeout = timeout
        self.chunk_size = chunk_size

        # Board state driven by host commands
        self.display_unit = "C"
        self.standby = False
        self.alarm_active = False
        self.messages_shown = 0

        # Every byte written by the host, in order
        self.received = bytearray()

        # Raise from read() while set (simulates an unplugged board)
        self.fail_reads = False

        self._output_queue: "queue.Queue[bytes]" = queue.Queue()
        self._leftover = bytearray()
        self._lock = threading.Lock()

        self._stream_thread: Optional[threading.Thread] = None
        self._stop_streaming = threading.Event()

        self.is_open = True

    # ========================================================================
    # SerialLike Interface
    # ========================================================================

    def close(self) -> None:
        """Close the fake serial port."""
        self.is_open = False
        self.stop_streaming()
        logger.debug("FakeSerial closed")

    def write(self, data: bytes) -> int:
        """Receive control bytes from the host.

        Returns:
            Number of bytes written
        """
        if not self.is_open:
            raise RuntimeError("Port is closed")

        with self._lock:
            self.received.extend(data)
        for byte in data:
            self._handle_command(chr(byte))
        return len(data)

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes of board output.

        Returns:
            Available bytes, or b"" if nothing arrived within the timeout
        """
        if not self.is_open:
            raise RuntimeError("Port is closed")

        if self.fail_reads:
            raise OSError("device reports readiness to read but returned no data")

        limit = size if self.chunk_size is None else min(size, self.chunk_size)

        if not self._leftover:
            try:
                self._leftover.extend(self._output_queue.get(timeout=self.timeout))
            except queue.Empty:
                return b""

        # Drain whatever else is already queued
        while len(self._leftover) < limit:
            try:
                self._leftover.extend(self._output_queue.get_nowait())
            except queue.Empty:
                break

        chunk = bytes(self._leftover[:limit])
        del self._leftover[:limit]
        return chunk

    def flush(self) -> None:
        """Flush output buffer (no-op for fake serial)."""
        pass

    # ========================================================================
    # Test Helpers: Board Output
    # ========================================================================

    def emit_raw(self, data: bytes) -> None:
        """Queue raw bytes as board output (no terminator added)."""
        self._output_queue.put(data)

    def emit_line(self, text: str) -> None:
        """Queue one line of board output with its LF terminator."""
        self.emit_raw(text.encode("ascii") + b"\n")

    def emit_reading(self, celsius: float) -> None:
        self.emit_line(f"{celsius:.2f}")

    def trip(self) -> None:
        """Simulate the motion sensor firing."""
        self.alarm_active = True
        self.emit_line("tripped")

    @property
    def commands(self) -> List[str]:
        """Control commands received so far, one character each."""
        with self._lock:
            return [chr(b) for b in self.received]

    # ========================================================================
    # Internal: Command Handling
    # ========================================================================

    def _handle_command(self, cmd: str) -> None:
        if cmd == "f":
            self.display_unit = "F" if self.display_unit == "C" else "C"
        elif cmd == "s":
            self.standby = not self.standby
        elif cmd == "r":
            self.alarm_active = False
        elif cmd == "m":
            self.messages_shown += 1
        else:
            logger.debug(f"FakeSerial ignoring unknown command {cmd!r}")

    # ========================================================================
    # Internal: Threading
    # ========================================================================

    def start_streaming(self, period_s: float = 1.0, trip_chance: float = 0.0) -> None:
        """Start background thread emitting readings like the real board.

        Args:
            period_s: Seconds between readings
            trip_chance: Probability that a cycle also reports a trip event
        """
        self._stop_streaming.clear()
        self._stream_thread = threading.Thread(
            target=self._streaming_loop,
            args=(period_s, trip_chance),
            name="FakeSensorStream",
            daemon=True,
        )
        self._stream_thread.start()
        logger.debug("Started streaming thread")

    def stop_streaming(self) -> None:
        """Stop streaming thread if running."""
        if self._stream_thread and self._stream_thread.is_alive():
            self._stop_streaming.set()
            self._stream_thread.join(timeout=2.0)
            self._stream_thread = None
            logger.debug("Stopped streaming thread")

    def _streaming_loop(self, period_s: float, trip_chance: float) -> None:
        logger.debug(f"Streaming loop started, period={period_s:.3f}s")
        temp = 22.0

        while not self._stop_streaming.is_set():
            if not self.standby:
                temp += random.uniform(-0.3, 0.3)
                self.emit_reading(temp)
                if random.random() < trip_chance:
                    self.trip()
            self._stop_streaming.wait(period_s)

        logger.debug("Streaming loop stopped")
