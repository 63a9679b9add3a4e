"""Custom exceptions for the sensor bridge."""


class SensorBridgeError(Exception):
    """Base exception for all sensor bridge errors."""

    pass


class SerialIOError(SensorBridgeError):
    """Raised when serial communication fails (port closed, unplugged, etc)."""

    pass


class ConfigError(SensorBridgeError):
    """Raised when the bridge configuration is missing or invalid."""

    pass


class BridgeStartupError(SensorBridgeError):
    """Raised when the device link or listening socket cannot be opened."""

    pass
