"""Shared device and alarm flags with a single locking discipline."""

import logging
import threading
from typing import ContextManager, Optional

from sensor_bridge.models import DeviceStatus, TemperatureUnit
from sensor_bridge.protocol import TOGGLE_RESEND_COUNT

logger = logging.getLogger(__name__)


class Debouncer:
    """Counts repeated triggers and fires on every Nth one.

    The watch client sends each toggle command several times per button
    press (three times for unit and standby). Every call advances the counter;
    only the calls that complete a full group fire, so one press produces
    exactly one toggle.

    Not thread-safe on its own. DeviceState calls it under its lock.
    """

    def __init__(self, every: int = TOGGLE_RESEND_COUNT) -> None:
        if every <= 0:
            raise ValueError(f"every must be positive, got {every}")
        self._every = every
        self._count = 0

    def trigger(self) -> bool:
        """Register one invocation.

        Returns:
            True if this invocation completes a group and should act
        """
        self._count += 1
        return self._count % self._every == 0

    @property
    def count(self) -> int:
        """Invocations seen so far."""
        return self._count


class DeviceState:
    """Unit mode, standby, alarm and device-health flags.

    Mutated by the serial ingestor (tripped, device_error) and by the device
    controller (unit, standby, alarm reset). Every accessor takes the same
    lock, which the bridge shares with the temperature log.
    """

    def __init__(
        self,
        lock: Optional[ContextManager[bool]] = None,
        debounce_every: int = TOGGLE_RESEND_COUNT,
    ) -> None:
        """Initialize with defaults: Celsius, not standby, not tripped, no error.

        Args:
            lock: Reentrant lock shared with other bridge state. A private
                RLock is created when omitted.
            debounce_every: Client resend count for the toggle commands.
        """
        self._lock = lock if lock is not None else threading.RLock()
        self._unit = TemperatureUnit.CELSIUS
        self._standby_active = False
        self._tripped = False
        self._device_error = False
        self._unit_debounce = Debouncer(debounce_every)
        self._standby_debounce = Debouncer(debounce_every)

    def snapshot(self) -> DeviceStatus:
        """Get all flags as one consistent, immutable view."""
        with self._lock:
            return DeviceStatus(
                unit=self._unit,
                standby_active=self._standby_active,
                tripped=self._tripped,
                device_error=self._device_error,
            )

    @property
    def lock(self) -> ContextManager[bool]:
        """The lock guarding these flags (and the log, when shared)."""
        return self._lock

    @property
    def unit(self) -> TemperatureUnit:
        with self._lock:
            return self._unit

    @property
    def standby_active(self) -> bool:
        with self._lock:
            return self._standby_active

    @property
    def tripped(self) -> bool:
        with self._lock:
            return self._tripped

    @property
    def device_error(self) -> bool:
        with self._lock:
            return self._device_error

    # ========================================================================
    # Ingestor Side
    # ========================================================================

    def mark_tripped(self) -> None:
        """Record a motion trip event."""
        with self._lock:
            self._tripped = True

    def set_device_error(self, failed: bool) -> bool:
        """Record the outcome of the latest serial read.

        Args:
            failed: True if the read raised

        Returns:
            True if the flag changed
        """
        with self._lock:
            changed = self._device_error != failed
            self._device_error = failed
        if changed:
            if failed:
                logger.warning("Device marked in error state")
            else:
                logger.info("Device error cleared")
        return changed

    # ========================================================================
    # Controller Side
    # ========================================================================

    def clear_tripped(self) -> None:
        """Reset the motion alarm."""
        with self._lock:
            self._tripped = False

    def advance_unit_toggle(self) -> Optional[TemperatureUnit]:
        """Count one unit-toggle request and flip the unit when it fires.

        Returns:
            The new unit if the toggle fired, otherwise None
        """
        with self._lock:
            if not self._unit_debounce.trigger():
                return None
            self._unit = self._unit.toggled()
            return self._unit

    def advance_standby_toggle(self) -> Optional[bool]:
        """Count one standby-toggle request and flip standby when it fires.

        Returns:
            The new standby flag if the toggle fired, otherwise None
        """
        with self._lock:
            if not self._standby_debounce.trigger():
                return None
            self._standby_active = not self._standby_active
            return self._standby_active

    @property
    def unit_toggle_count(self) -> int:
        with self._lock:
            return self._unit_debounce.count

    @property
    def standby_toggle_count(self) -> int:
        with self._lock:
            return self._standby_debounce.count
