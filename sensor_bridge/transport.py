"""Serial transport layer for the sensor device link."""

import logging
import threading
from typing import List, Optional, Protocol

from sensor_bridge import protocol
from sensor_bridge.errors import SerialIOError

logger = logging.getLogger(__name__)


class SerialLike(Protocol):
    """Protocol for serial port interface (allows test doubles)."""

    def write(self, data: bytes) -> int:
        """Write bytes to serial port."""
        ...

    def read(self, size: int = 1) -> bytes:
        """Read up to size bytes from serial port."""
        ...

    def flush(self) -> None:
        """Flush output buffer (force transmission)."""
        ...

    def close(self) -> None:
        """Close serial port."""
        ...

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        ...


class Transport:
    """Wrapper around pyserial for the device link.

    The ingestor only reads and the controller only writes, so the write
    direction has its own lock and reads are left unsynchronized.
    """

    def __init__(self, serial_port: SerialLike) -> None:
        """Initialize transport with a serial port instance.

        Args:
            serial_port: Object implementing SerialLike protocol
                        (e.g., serial.Serial or FakeSerial for testing)
        """
        self._port = serial_port
        self._write_lock = threading.Lock()

    @classmethod
    def open(
        cls, port: str, baud: int = protocol.DEFAULT_BAUD, timeout_s: float = 0.2
    ) -> "Transport":
        """Open a real serial port (requires pyserial).

        Args:
            port: Serial port device name (e.g., "/dev/ttyACM0")
            baud: Baud rate. Default 9600 matches the device sketch.
            timeout_s: Read timeout in seconds. Bounds how long the ingestor
                      can go without checking for shutdown.

        Returns:
            Transport instance wrapping opened serial port

        Raises:
            SerialIOError: If port cannot be opened
        """
        import serial

        try:
            ser = serial.Serial(
                port=port,
                baudrate=baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=timeout_s,
                rtscts=False,
                dsrdtr=False,
                xonxoff=False
            )
            logger.info(f"Opened serial port {port} at {baud} baud, timeout={timeout_s}s")
            return cls(ser)
        except (serial.SerialException, ValueError, OSError) as e:
            raise SerialIOError(f"Failed to open {port} at {baud} baud: {e}") from e

    def close(self) -> None:
        """Close the serial port."""
        if self._port.is_open:
            self._port.close()
            logger.info("Closed serial port")

    @property
    def is_open(self) -> bool:
        """Check if port is currently open."""
        return self._port.is_open

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to the device.

        Args:
            data: Raw bytes to send

        Raises:
            SerialIOError: If write fails
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        with self._write_lock:
            try:
                sent = self._port.write(data)
                self._port.flush()
                logger.debug(f"Sent {sent} bytes: {data!r}")
            except Exception as e:
                raise SerialIOError(f"Failed to write to port: {e}") from e

    def read_chunk(self, size: int = protocol.SERIAL_READ_SIZE) -> bytes:
        """Read whatever the device has sent, up to size bytes.

        Returns b"" when the read timeout expires with nothing pending,
        which is a successful read.

        Raises:
            SerialIOError: If port is closed or read fails
        """
        if not self._port.is_open:
            raise SerialIOError("Serial port is not open")

        try:
            return self._port.read(size)
        except Exception as e:
            raise SerialIOError(f"Failed to read from port: {e}") from e


class LineFramer:
    """Splits a byte stream into text lines.

    Partial lines are carried over between calls to ``feed``. CR and
    surrounding whitespace are stripped and blank lines are skipped. An
    unterminated line longer than ``max_line_bytes`` is discarded up to the
    next terminator.
    """

    def __init__(self, max_line_bytes: int = protocol.MAX_LINE_BYTES) -> None:
        self._pending = bytearray()
        self._max_line_bytes = max_line_bytes
        self._discarding = False
        self.overflows = 0

    def feed(self, data: bytes) -> List[str]:
        """Add bytes and return every line they complete.

        Args:
            data: Next chunk from the device (any size, may be empty)

        Returns:
            Completed lines, decoded as ASCII with undecodable bytes replaced
        """
        lines: List[str] = []
        self._pending.extend(data)

        while True:
            idx = self._pending.find(protocol.LINE_TERMINATOR)
            if idx < 0:
                break
            raw = bytes(self._pending[:idx])
            del self._pending[: idx + 1]

            if self._discarding:
                self._discarding = False
                continue

            line = raw.decode("ascii", errors="replace").strip()
            if line:
                lines.append(line)

        if len(self._pending) > self._max_line_bytes:
            logger.warning(
                f"Dropping {len(self._pending)} bytes of unterminated input "
                f"(limit {self._max_line_bytes})"
            )
            self._pending.clear()
            self._discarding = True
            self.overflows += 1

        return lines

    @property
    def pending(self) -> Optional[bytes]:
        """Bytes of the current partial line, or None if there are none."""
        return bytes(self._pending) if self._pending else None

    def reset(self) -> None:
        """Forget any partial line so the next line starts fresh."""
        if self._pending or self._discarding:
            logger.debug(f"Discarding {len(self._pending)} bytes of partial line")
        self._pending.clear()
        self._discarding = False
