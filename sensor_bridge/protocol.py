"""Wire constants for the serial device link and the client TCP protocol.

Serial side: the device streams one line of text per event, either the trip
token or a decimal temperature in Celsius, and accepts single-byte control
commands.

Client side: one request per TCP connection. The command code sits at a fixed
offset so a plain ``GET /<code>`` request from the watch companion works.
"""

from enum import Enum
from typing import Final

# ============================================================================
# Serial Link
# ============================================================================

DEFAULT_BAUD: Final[int] = 9600

# Device terminates every output line with LF (CR is tolerated and stripped)
LINE_TERMINATOR: Final[bytes] = b"\n"

# Longest unterminated line kept while waiting for LF
MAX_LINE_BYTES: Final[int] = 1000

# Bytes requested per serial read
SERIAL_READ_SIZE: Final[int] = 1000

# Motion sensor event line (matched as a prefix)
TRIP_TOKEN: Final[str] = "tripped"

# Outbound control bytes
CTRL_TOGGLE_UNIT: Final[bytes] = b"f"
CTRL_TOGGLE_STANDBY: Final[bytes] = b"s"
CTRL_RESET_ALARM: Final[bytes] = b"r"
CTRL_SHOW_MESSAGE: Final[bytes] = b"m"

# ============================================================================
# Temperature Log
# ============================================================================

# One hour of history at 1 Hz
LOG_CAPACITY: Final[int] = 3600

# Marks a slot that was never written; below absolute zero in Celsius
SENTINEL: Final[float] = -274.0

# Readings outside this band are treated as serial noise by the aggregates
PLAUSIBLE_MIN: Final[float] = -200.0
PLAUSIBLE_MAX: Final[float] = 200.0

# ============================================================================
# Client Protocol
# ============================================================================

# Offset of the command byte in a request ("GET /b ...")
COMMAND_OFFSET: Final[int] = 5

# Minimum request length that carries a command byte
MIN_REQUEST_BYTES: Final[int] = COMMAND_OFFSET + 1

# Largest request read from a client
MAX_REQUEST_BYTES: Final[int] = 1024

# Client debounced toggles are resent this many times per button press
TOGGLE_RESEND_COUNT: Final[int] = 3


class Command(Enum):
    """Single-character command codes accepted from clients."""

    TOGGLE_UNIT = "a"
    LATEST = "b"
    STATS = "d"
    MESSAGE = "m"
    RESET_ALARM = "r"
    TOGGLE_STANDBY = "s"
    TRIPPED = "t"

    @classmethod
    def from_byte(cls, code: int) -> "Command":
        """Look up a command from its raw request byte.

        Raises:
            ValueError: If the byte is not a known command code
        """
        return cls(chr(code))


# ============================================================================
# Response Payloads
# ============================================================================

MSG_NO_DATA: Final[str] = "No data available."
MSG_DEVICE_ERROR: Final[str] = "Device error!!!"
MSG_MESSAGE_SENT: Final[str] = "Message Sent"
MSG_ALARM_RESET: Final[str] = "Alarm Reset"
MSG_STANDBY_ENGAGED: Final[str] = "Standby engaged."
MSG_STANDBY_DISENGAGED: Final[str] = "Standby disengaged."
MSG_TRIPPED: Final[str] = "tripped"
MSG_NOT_TRIPPED: Final[str] = "nottripped"
