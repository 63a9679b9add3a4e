"""Runtime configuration for the bridge process.

The listening port is the one required setting and comes from the command
line. Everything else has a default that can be overridden through
environment variables:

    BRIDGE_HOST       interface to listen on (default 0.0.0.0)
    SERIAL_PORT       device path (default /dev/ttyACM0)
    SERIAL_BAUD       baud rate (default 9600)
    SERIAL_TIMEOUT_S  serial read timeout (default 0.2)
    CLIENT_TIMEOUT_S  wait for a client's request bytes (default 2.0)
    ACCEPT_TIMEOUT_S  accept loop shutdown polling period (default 0.5)
    LOG_LEVEL         logging level name (default INFO)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from sensor_bridge.errors import ConfigError
from sensor_bridge.protocol import DEFAULT_BAUD, LOG_CAPACITY

DEFAULT_HOST = "0.0.0.0"
DEFAULT_SERIAL_PORT = "/dev/ttyACM0"


@dataclass
class BridgeConfig:
    """Settings for one bridge process.

    Attributes:
        port: TCP port clients connect to (0 picks a free port).
        host: Interface to listen on.
        serial_port: Device path of the sensor board.
        baud: Serial baud rate.
        serial_timeout_s: Serial read timeout.
        client_timeout_s: Time allowed for a client to send its request.
        accept_timeout_s: Accept loop shutdown polling period.
        log_capacity: Readings kept in the temperature log.
        log_level: Logging level name.
    """

    port: int
    host: str = DEFAULT_HOST
    serial_port: str = DEFAULT_SERIAL_PORT
    baud: int = DEFAULT_BAUD
    serial_timeout_s: float = 0.2
    client_timeout_s: float = 2.0
    accept_timeout_s: float = 0.5
    log_capacity: int = LOG_CAPACITY
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not (0 <= self.port <= 65535):
            raise ConfigError(f"port must be 0-65535, got {self.port}")

        if self.baud <= 0:
            raise ConfigError(f"baud must be positive, got {self.baud}")

        for name in ("serial_timeout_s", "client_timeout_s", "accept_timeout_s"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

        if self.log_capacity <= 0:
            raise ConfigError(f"log_capacity must be positive, got {self.log_capacity}")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError(f"Unknown log level {self.log_level!r}")

    @classmethod
    def from_env(
        cls,
        port: int,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: object,
    ) -> "BridgeConfig":
        """Build a config from the environment.

        Args:
            port: Listening port from the command line
            environ: Variables to read (defaults to os.environ)
            **overrides: Values taking precedence over the environment
                        (None values are ignored)

        Raises:
            ConfigError: If a variable does not parse or a value is invalid
        """
        env = os.environ if environ is None else environ

        try:
            values = {
                "host": env.get("BRIDGE_HOST", DEFAULT_HOST),
                "serial_port": env.get("SERIAL_PORT", DEFAULT_SERIAL_PORT),
                "baud": int(env.get("SERIAL_BAUD", str(DEFAULT_BAUD))),
                "serial_timeout_s": float(env.get("SERIAL_TIMEOUT_S", "0.2")),
                "client_timeout_s": float(env.get("CLIENT_TIMEOUT_S", "2.0")),
                "accept_timeout_s": float(env.get("ACCEPT_TIMEOUT_S", "0.5")),
                "log_level": env.get("LOG_LEVEL", "INFO"),
            }
        except ValueError as e:
            raise ConfigError(f"Invalid environment setting: {e}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(port=port, **values)  # type: ignore[arg-type]
