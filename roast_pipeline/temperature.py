"""
Temperature conversion and sanitization for roast logger data.

In Artisan exports channel ``temp1`` is the environmental temperature (ET)
and ``temp2`` is the bean temperature (BT). The mapping is fixed by the
format and is not configurable.
"""

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

# Artisan writes -1.0 for samples the device failed to deliver
SENTINEL_INVALID = -1.0

ABSOLUTE_ZERO = {"C": -273.15, "F": -459.67}
MAX_PLAUSIBLE = {"C": 1000.0, "F": 1832.0}


@dataclass
class NormalizedTemperatures:
    """Bean and environmental series in a single unit."""

    bean_temps: List[Optional[float]]
    env_temps: List[Optional[float]]
    unit: str
    sanitized_count: int = 0


def is_valid_unit(unit: Any) -> bool:
    return unit in ("F", "C")


def convert_temperature(value: float, from_unit: str, to_unit: str) -> float:
    """
    Convert a temperature between Fahrenheit and Celsius.

    Args:
        value: Temperature in ``from_unit``
        from_unit: 'F' or 'C'
        to_unit: 'F' or 'C'

    Returns:
        Temperature in ``to_unit``
    """
    if from_unit == to_unit:
        return value
    if from_unit == "F":
        return (value - 32) * 5 / 9
    return value * 9 / 5 + 32


def sanitize_reading(value: Any, unit: str) -> Optional[float]:
    """
    Coerce one raw reading to a float, or None when it cannot be trusted.

    Rejects nulls, non-numbers (bools and strings included), NaN/inf, the
    logger sentinel, values below absolute zero and values above a generous
    upper bound.
    """
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        return None
    value = float(value)
    if not math.isfinite(value) or value == SENTINEL_INVALID:
        return None
    if value < ABSOLUTE_ZERO[unit] or value > MAX_PLAUSIBLE[unit]:
        return None
    return value


def _sanitize_array(values: Sequence[Any], unit: str) -> np.ndarray:
    cleaned = [sanitize_reading(v, unit) for v in values]
    return np.array([np.nan if v is None else v for v in cleaned], dtype=float)


def _to_list(arr: np.ndarray) -> List[Optional[float]]:
    return [None if np.isnan(v) else float(v) for v in arr]


def convert_series(values: Sequence[Any], from_unit: str, to_unit: str) -> List[Optional[float]]:
    """
    Sanitize and convert a series of readings.

    Args:
        values: Raw readings in ``from_unit``
        from_unit: Source unit
        to_unit: Target unit

    Returns:
        Converted readings with untrusted samples replaced by None
    """
    arr = _sanitize_array(values, from_unit)
    if from_unit != to_unit:
        arr = convert_temperature(arr, from_unit, to_unit)
    return _to_list(arr)


def normalize_temperatures(
    temp1: Sequence[Any],
    temp2: Sequence[Any],
    source_unit: str,
    target_unit: str = "F",
) -> NormalizedTemperatures:
    """
    Map logger channels to bean/environmental series in the target unit.

    Args:
        temp1: Channel 1 readings (environmental temperature)
        temp2: Channel 2 readings (bean temperature)
        source_unit: Unit the readings were recorded in
        target_unit: Unit to convert to

    Returns:
        NormalizedTemperatures with a count of the readings that were nulled
    """
    env = _sanitize_array(temp1, source_unit)
    bean = _sanitize_array(temp2, source_unit)

    raw_missing = sum(1 for v in list(temp1) + list(temp2) if v is None)
    sanitized = int(np.isnan(env).sum() + np.isnan(bean).sum()) - raw_missing
    if sanitized:
        logger.warning("Nulled %d implausible temperature readings", sanitized)

    if source_unit != target_unit:
        env = convert_temperature(env, source_unit, target_unit)
        bean = convert_temperature(bean, source_unit, target_unit)

    return NormalizedTemperatures(
        bean_temps=_to_list(bean),
        env_temps=_to_list(env),
        unit=target_unit,
        sanitized_count=sanitized,
    )
