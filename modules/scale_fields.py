"""
Scale Field Store
=================
Multiplier/divisor pairs reported by ElectricalMeasurement and Metering
clusters, persisted in the platform device's fields so they survive a
driver restart. Defaults apply until the device reports its own factors.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("modules.scale_fields")


class Quantity(Enum):
    CURRENT = "current"
    VOLTAGE = "voltage"
    POWER = "power"
    ENERGY = "energy"


# Persisted field names, kept stable across driver versions
FIELD_KEYS = {
    Quantity.CURRENT: ("ac_current_multiplier", "ac_current_divisor"),
    Quantity.VOLTAGE: ("ac_voltage_multiplier", "ac_voltage_divisor"),
    Quantity.POWER: ("ac_power_multiplier", "ac_power_divisor"),
    Quantity.ENERGY: ("metering_multiplier", "metering_divisor"),
}

DEFAULT_MULTIPLIER = 1
DEFAULT_DIVISORS = {
    Quantity.CURRENT: 1000,
    Quantity.VOLTAGE: 1,
    Quantity.POWER: 1,
    Quantity.ENERGY: 100,
}


@dataclass(frozen=True)
class ScaleFactor:
    quantity: Quantity
    multiplier: float
    divisor: float


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def scaled_value(raw: Any, multiplier: Any, divisor: Any) -> Optional[float]:
    """raw * multiplier / divisor. A divisor of 0 means multiply only."""
    raw_number = _to_number(raw)
    if raw_number is None:
        return None
    mult = _to_number(multiplier)
    div = _to_number(divisor)
    if mult is None:
        mult = 1
    if div is None:
        div = 1
    if div == 0:
        return raw_number * mult
    return (raw_number * mult) / div


class ScaleFieldStore:
    """Per-device scale factors backed by persisted platform fields."""

    def __init__(self, platform_device):
        self.platform_device = platform_device

    def update(self, quantity: Quantity, multiplier: Any = None, divisor: Any = None):
        mult_key, div_key = FIELD_KEYS[quantity]
        if multiplier is not None:
            self.platform_device.set_field(mult_key, multiplier, persist=True)
            logger.debug(f"[{self.platform_device.id}] {quantity.value} multiplier = {multiplier}")
        if divisor is not None:
            self.platform_device.set_field(div_key, divisor, persist=True)
            logger.debug(f"[{self.platform_device.id}] {quantity.value} divisor = {divisor}")

    def resolve(self, quantity: Quantity) -> ScaleFactor:
        mult_key, div_key = FIELD_KEYS[quantity]
        multiplier = _to_number(self.platform_device.get_field(mult_key))
        divisor = _to_number(self.platform_device.get_field(div_key))
        return ScaleFactor(
            quantity=quantity,
            multiplier=DEFAULT_MULTIPLIER if multiplier is None else multiplier,
            divisor=DEFAULT_DIVISORS[quantity] if divisor is None else divisor,
        )

    def scale(self, raw: Any, quantity: Quantity) -> Optional[float]:
        factor = self.resolve(quantity)
        return scaled_value(raw, factor.multiplier, factor.divisor)
