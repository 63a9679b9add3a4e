"""One-shot TCP command server for watch clients.

Each connection carries a single request. The byte at offset 5 selects the
command (so ``GET /b HTTP/1.1`` asks for the latest reading); the reply is a
JSON object with a single ``name`` string, after which the connection is
closed. Connections are serviced one at a time.

Requests with an unknown command code, or too short to carry one, are closed
without a reply. So are the debounced toggle requests that do not fire.
"""

import logging
import socket
import threading
from typing import Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from sensor_bridge import aggregator, protocol
from sensor_bridge.device_controller import DeviceController
from sensor_bridge.device_state import DeviceState
from sensor_bridge.errors import BridgeStartupError
from sensor_bridge.models import TemperatureUnit
from sensor_bridge.protocol import Command
from sensor_bridge.temperature_log import TemperatureLog

logger = logging.getLogger(__name__)


class NameResponse(BaseModel):
    """Reply body for every command."""
    name: str


def encode_response(payload: str) -> bytes:
    """Serialize a payload as the newline-terminated JSON reply."""
    return (NameResponse(name=payload).model_dump_json() + "\n").encode("utf-8")


def format_reading(value: float, unit: TemperatureUnit) -> str:
    return f"{value:.1f} {unit.value}"


def read_request(
    conn: socket.socket,
    min_bytes: int = protocol.MIN_REQUEST_BYTES,
    max_bytes: int = protocol.MAX_REQUEST_BYTES,
) -> bytes:
    """Read from a client until the command byte has arrived.

    Stops early if the peer closes or the socket timeout expires, so the
    result may be shorter than min_bytes.

    Args:
        conn: Accepted client socket (with a timeout set)
        min_bytes: Bytes needed to reach the command code
        max_bytes: Upper bound on bytes read

    Returns:
        Request bytes received so far
    """
    data = bytearray()
    while len(data) < min_bytes:
        try:
            chunk = conn.recv(max_bytes - len(data))
        except socket.timeout:
            logger.warning(f"Client timed out after {len(data)} bytes")
            break
        if not chunk:
            break
        data.extend(chunk)
    return bytes(data)


class ConnectionDispatcher:
    """Accept loop and command table for client requests.

    Per connection: await request, dispatch, respond, close. Handlers read
    the log and device state at the moment they run, never a cached copy.
    """

    def __init__(
        self,
        log: TemperatureLog,
        state: DeviceState,
        controller: DeviceController,
        host: str = "0.0.0.0",
        port: int = 0,
        stop_event: Optional[threading.Event] = None,
        accept_timeout_s: float = 0.5,
        client_timeout_s: float = 2.0,
    ) -> None:
        """Initialize dispatcher (the socket is opened by bind()).

        Args:
            log: Temperature history
            state: Shared device flags
            controller: Relay for control commands
            host: Interface to listen on
            port: TCP port; 0 picks a free one
            stop_event: Shutdown signal shared with the rest of the bridge.
                       A private event is created when omitted.
            accept_timeout_s: How often the accept loop checks for shutdown
            client_timeout_s: Limit on waiting for a client's request bytes
        """
        self._log = log
        self._state = state
        self._controller = controller
        self._host = host
        self._port = port
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._accept_timeout_s = accept_timeout_s
        self._client_timeout_s = client_timeout_s

        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self.connections_served = 0

        self._handlers: Dict[Command, Callable[[], Optional[str]]] = {
            Command.TOGGLE_UNIT: self._handle_toggle_unit,
            Command.LATEST: self._handle_latest,
            Command.STATS: self._handle_stats,
            Command.MESSAGE: self._handle_message,
            Command.RESET_ALARM: self._handle_reset_alarm,
            Command.TOGGLE_STANDBY: self._handle_toggle_standby,
            Command.TRIPPED: self._handle_tripped,
        }

    # ========================================================================
    # Socket Lifecycle
    # ========================================================================

    def bind(self) -> Tuple[str, int]:
        """Open the listening socket.

        Returns:
            (host, port) actually bound

        Raises:
            BridgeStartupError: If the socket cannot be bound
        """
        if self._sock is not None:
            return self.address

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._host, self._port))
            sock.listen(1)
        except OSError as e:
            sock.close()
            raise BridgeStartupError(
                f"Unable to listen on {self._host}:{self._port}: {e}"
            ) from e

        sock.settimeout(self._accept_timeout_s)
        self._sock = sock
        logger.info(f"Server configured to listen on {self.address[0]}:{self.address[1]}")
        return self.address

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port)."""
        if self._sock is None:
            raise RuntimeError("Dispatcher is not bound")
        host, port = self._sock.getsockname()[:2]
        return host, port

    def close(self) -> None:
        """Close the listening socket."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            logger.info("Server closed listening socket")

    # ========================================================================
    # Thread Control
    # ========================================================================

    def start(self) -> None:
        """Bind if needed and run the accept loop in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Dispatcher already running")

        self.bind()
        self._thread = threading.Thread(
            target=self.serve_forever,
            name="ConnectionDispatcher",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Started dispatcher thread")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the accept loop to exit and join it."""
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Dispatcher thread did not stop cleanly")
        self._thread = None
        self.close()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the accept loop to exit without signalling it."""
        if self._thread:
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def serve_forever(self) -> None:
        """Accept and service connections one at a time until shutdown."""
        assert self._sock is not None
        logger.info("Dispatcher loop started")

        while not self._stop_event.is_set():
            try:
                conn, addr = self._sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._stop_event.is_set():
                    break
                logger.error(f"Accept failed: {e}")
                self._stop_event.wait(timeout=self._accept_timeout_s)
                continue

            with conn:
                self.handle_connection(conn, addr)

        self.close()
        logger.info("Dispatcher loop stopped")

    # ========================================================================
    # Request Handling
    # ========================================================================

    def handle_connection(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        """Service one client: read, dispatch, reply. The caller closes conn."""
        logger.info(f"Server got a connection from ({addr[0]}, {addr[1]})")
        conn.settimeout(self._client_timeout_s)

        try:
            request = read_request(conn)
        except OSError as e:
            logger.warning(f"Failed to read request from {addr[0]}: {e}")
            return

        logger.debug(f"Request: {request[:80]!r}")
        response = self.dispatch(request)
        self.connections_served += 1
        if response is None:
            return

        try:
            conn.sendall(response)
        except OSError as e:
            logger.error(f"Server failed to send message: {e}")

    def dispatch(self, request: bytes) -> Optional[bytes]:
        """Run the command a request names.

        Args:
            request: Raw request bytes

        Returns:
            Encoded reply, or None if the connection should close silently
        """
        if len(request) < protocol.MIN_REQUEST_BYTES:
            logger.warning(f"Ignoring short request ({len(request)} bytes)")
            return None

        code = request[protocol.COMMAND_OFFSET]
        try:
            command = Command.from_byte(code)
        except ValueError:
            logger.warning(f"Ignoring unknown command code {chr(code)!r}")
            return None

        try:
            payload = self._handlers[command]()
        except Exception as e:
            logger.error(f"Abandoning {command.name} request: {e}", exc_info=True)
            return None

        if payload is None:
            return None
        return encode_response(payload)

    def _latest_payload(self) -> str:
        with self._state.lock:
            status = self._state.snapshot()
            latest = self._log.latest()

        if status.device_error:
            return protocol.MSG_DEVICE_ERROR
        if latest is None:
            return protocol.MSG_NO_DATA
        return format_reading(aggregator.to_display(latest, status.unit), status.unit)

    def _handle_toggle_unit(self) -> Optional[str]:
        if self._controller.toggle_unit() is None:
            return None
        return self._latest_payload()

    def _handle_latest(self) -> Optional[str]:
        return self._latest_payload()

    def _handle_stats(self) -> Optional[str]:
        with self._state.lock:
            status = self._state.snapshot()
            snapshot = self._log.snapshot()

        if status.device_error:
            return protocol.MSG_DEVICE_ERROR
        if snapshot.latest() is None:
            return protocol.MSG_NO_DATA

        summary = aggregator.summarize(snapshot, status.unit)
        if summary is None:
            return protocol.MSG_NO_DATA
        return f"H: {summary.high:.1f} L: {summary.low:.1f} AVG: {summary.average:.1f}"

    def _handle_message(self) -> Optional[str]:
        self._controller.request_message()
        return protocol.MSG_MESSAGE_SENT

    def _handle_reset_alarm(self) -> Optional[str]:
        self._controller.reset_alarm()
        return protocol.MSG_ALARM_RESET

    def _handle_toggle_standby(self) -> Optional[str]:
        active = self._controller.toggle_standby()
        if active is None:
            return None
        return protocol.MSG_STANDBY_ENGAGED if active else protocol.MSG_STANDBY_DISENGAGED

    def _handle_tripped(self) -> Optional[str]:
        if self._state.tripped:
            return protocol.MSG_TRIPPED
        return protocol.MSG_NOT_TRIPPED
