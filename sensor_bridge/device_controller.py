"""Control commands relayed from clients to the sensor device."""

import logging
from typing import Optional

from sensor_bridge import protocol
from sensor_bridge.device_state import DeviceState
from sensor_bridge.errors import SerialIOError
from sensor_bridge.models import TemperatureUnit
from sensor_bridge.transport import Transport

logger = logging.getLogger(__name__)


class DeviceController:
    """Applies client control commands to shared state and the device.

    Unit and standby toggles are debounced: the client sends each of them
    three times per button press, so only every third call flips the state
    and writes the control byte. Alarm reset and message requests act on
    every call.

    The controller is the only writer on the serial link. A failed write is
    logged and the state change is kept, so the client still gets an answer.
    """

    def __init__(self, transport: Transport, state: DeviceState) -> None:
        self._transport = transport
        self._state = state

    def toggle_unit(self) -> Optional[TemperatureUnit]:
        """Count a unit-toggle request; flip the display unit when it fires.

        Returns:
            New display unit if the toggle fired, None if it was absorbed
        """
        unit = self._state.advance_unit_toggle()
        if unit is None:
            logger.debug(f"Unit toggle absorbed (count {self._state.unit_toggle_count})")
            return None

        self._send(protocol.CTRL_TOGGLE_UNIT)
        logger.info(f"Display unit switched to {unit.value}")
        return unit

    def toggle_standby(self) -> Optional[bool]:
        """Count a standby-toggle request; flip standby when it fires.

        Returns:
            New standby flag if the toggle fired, None if it was absorbed
        """
        active = self._state.advance_standby_toggle()
        if active is None:
            logger.debug(
                f"Standby toggle absorbed (count {self._state.standby_toggle_count})"
            )
            return None

        self._send(protocol.CTRL_TOGGLE_STANDBY)
        logger.info(f"Standby {'engaged' if active else 'disengaged'}")
        return active

    def reset_alarm(self) -> None:
        """Clear the tripped flag here and on the device."""
        self._state.clear_tripped()
        self._send(protocol.CTRL_RESET_ALARM)
        logger.info("Alarm reset")

    def request_message(self) -> None:
        """Ask the device to show its warning message."""
        self._send(protocol.CTRL_SHOW_MESSAGE)

    def _send(self, command: bytes) -> None:
        try:
            self._transport.write_bytes(command)
        except SerialIOError as e:
            logger.error(f"Failed to send control byte {command!r}: {e}")
