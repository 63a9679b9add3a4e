"""Pure aggregate computations over temperature log snapshots.

Implausible values are filtered here rather than at ingestion, so transient
serial noise stored in the log never reaches a client as a high/low/average.
Values in the log are always in the unit the device reports (Celsius);
conversion for display happens only at output time.
"""

import logging
from typing import Optional

import pandas as pd

from sensor_bridge.models import LogSnapshot, TemperatureSummary, TemperatureUnit
from sensor_bridge.protocol import PLAUSIBLE_MAX, PLAUSIBLE_MIN, SENTINEL

logger = logging.getLogger(__name__)


def plausible_readings(snapshot: LogSnapshot) -> pd.Series:
    """Written readings inside [PLAUSIBLE_MIN, PLAUSIBLE_MAX].

    Sentinels fall below the band, so they are dropped along with noise.
    """
    series = pd.Series(snapshot.values, dtype="float64")
    series = series[series != SENTINEL]
    return series[series.between(PLAUSIBLE_MIN, PLAUSIBLE_MAX)]


def max_reading(snapshot: LogSnapshot) -> Optional[float]:
    """Largest plausible reading, or None if there is none."""
    series = plausible_readings(snapshot)
    if series.empty:
        return None
    return float(series.max())


def min_reading(snapshot: LogSnapshot) -> Optional[float]:
    """Smallest plausible reading, or None if there is none."""
    series = plausible_readings(snapshot)
    if series.empty:
        return None
    return float(series.min())


def average(snapshot: LogSnapshot) -> Optional[float]:
    """Mean of plausible readings, or None if there is none."""
    series = plausible_readings(snapshot)
    if series.empty:
        return None
    return float(series.mean())


def to_display(value: float, unit: TemperatureUnit) -> float:
    """Convert a stored Celsius value into the display unit."""
    if unit is TemperatureUnit.FAHRENHEIT:
        return value * 9 / 5 + 32
    return value


def summarize(snapshot: LogSnapshot, unit: TemperatureUnit) -> Optional[TemperatureSummary]:
    """High, low and average in the display unit.

    Args:
        snapshot: Log contents to summarize
        unit: Unit to report in

    Returns:
        TemperatureSummary, or None if no reading qualifies
    """
    series = plausible_readings(snapshot)
    if series.empty:
        return None

    high = float(series.max())
    low = float(series.min())
    mean = float(series.mean())
    logger.debug(f"Aggregates over {len(series)} readings: max={high} min={low} avg={mean}")

    return TemperatureSummary(
        high=to_display(high, unit),
        low=to_display(low, unit),
        average=to_display(mean, unit),
        unit=unit,
        count=len(series),
    )
