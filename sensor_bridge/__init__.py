"""
sensor_bridge - Serial temperature sensor to watch client bridge.

Buffers the last hour of readings from an Arduino-class sensor board, tracks
alarm and device state, and answers one-shot TCP requests from a watch app.
"""

from sensor_bridge.config import BridgeConfig
from sensor_bridge.device_controller import DeviceController
from sensor_bridge.device_state import Debouncer, DeviceState
from sensor_bridge.dispatcher import ConnectionDispatcher
from sensor_bridge.errors import (
    BridgeStartupError,
    ConfigError,
    SensorBridgeError,
    SerialIOError,
)
from sensor_bridge.ingestor import SerialIngestor
from sensor_bridge.lifecycle import SensorBridge, ShutdownSignal
from sensor_bridge.models import DeviceStatus, LogSnapshot, TemperatureSummary, TemperatureUnit
from sensor_bridge.temperature_log import TemperatureLog

__version__ = "0.1.0"

__all__ = [
    "SensorBridge",
    "BridgeConfig",
    "ShutdownSignal",
    "TemperatureLog",
    "DeviceState",
    "Debouncer",
    "DeviceController",
    "SerialIngestor",
    "ConnectionDispatcher",
    "LogSnapshot",
    "DeviceStatus",
    "TemperatureSummary",
    "TemperatureUnit",
    "SensorBridgeError",
    "SerialIOError",
    "ConfigError",
    "BridgeStartupError",
]
