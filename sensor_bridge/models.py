"""Data models for the sensor bridge."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from sensor_bridge.protocol import SENTINEL


class TemperatureUnit(Enum):
    """Display unit for temperatures reported to clients."""

    CELSIUS = "C"
    FAHRENHEIT = "F"

    def toggled(self) -> "TemperatureUnit":
        """Return the other unit."""
        if self is TemperatureUnit.CELSIUS:
            return TemperatureUnit.FAHRENHEIT
        return TemperatureUnit.CELSIUS


@dataclass(frozen=True)
class LogSnapshot:
    """Point-in-time copy of the temperature log.

    Attributes:
        values: Every slot of the ring, sentinels included, in storage order.
        next_index: Slot the next reading will be written to.
    """

    values: Tuple[float, ...]
    next_index: int

    @property
    def capacity(self) -> int:
        return len(self.values)

    def latest(self) -> Optional[float]:
        """Most recently written value, or None if the log is empty.

        The slot before ``next_index`` only holds the sentinel when nothing
        has ever been written, even after the ring has wrapped.
        """
        value = self.values[(self.next_index - 1) % self.capacity]
        if value == SENTINEL:
            return None
        return value

    def ordered(self) -> Tuple[float, ...]:
        """Written values ordered oldest to newest (sentinels dropped)."""
        rotated = self.values[self.next_index:] + self.values[: self.next_index]
        return tuple(v for v in rotated if v != SENTINEL)


@dataclass(frozen=True)
class DeviceStatus:
    """Immutable view of the shared device flags.

    Attributes:
        unit: Current display unit.
        standby_active: Device has been told to enter standby.
        tripped: Motion alarm fired and has not been reset.
        device_error: Most recent serial read failed.
    """

    unit: TemperatureUnit
    standby_active: bool
    tripped: bool
    device_error: bool


@dataclass(frozen=True)
class TemperatureSummary:
    """High/low/average over the log, already converted to ``unit``."""

    high: float
    low: float
    average: float
    unit: TemperatureUnit
    count: int
