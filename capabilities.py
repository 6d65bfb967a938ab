"""
Capability event model.
Normalized events handed to the platform: {capability, attribute, value, unit}.
"""
from dataclasses import dataclass
from typing import Any, Optional

SWITCH = "switch"
POWER_METER = "powerMeter"
ENERGY_METER = "energyMeter"
VOLTAGE_MEASUREMENT = "voltageMeasurement"
CURRENT_MEASUREMENT = "currentMeasurement"
TEMPERATURE_MEASUREMENT = "temperatureMeasurement"
HUMIDITY_MEASUREMENT = "relativeHumidityMeasurement"
BATTERY = "battery"
REFRESH = "refresh"


@dataclass(frozen=True)
class CapabilityEvent:
    capability: str
    attribute: str
    value: Any
    unit: Optional[str] = None

    def __str__(self) -> str:
        value_str = str(self.value)
        if self.unit:
            value_str = f"{value_str} {self.unit}"
        return f"{self.capability}.{self.attribute}={value_str}"


def switch(is_on: bool) -> CapabilityEvent:
    return CapabilityEvent(SWITCH, "switch", "on" if is_on else "off")


def switch_from_value(value: Any) -> CapabilityEvent:
    """true/1 is on, anything else is off."""
    return switch(value is True or (not isinstance(value, bool) and value == 1))


def power(watts: float) -> CapabilityEvent:
    return CapabilityEvent(POWER_METER, "power", watts, "W")


def energy(kwh: float) -> CapabilityEvent:
    return CapabilityEvent(ENERGY_METER, "energy", kwh, "kWh")


def voltage(volts: float) -> CapabilityEvent:
    return CapabilityEvent(VOLTAGE_MEASUREMENT, "voltage", volts, "V")


def current(amps: float) -> CapabilityEvent:
    return CapabilityEvent(CURRENT_MEASUREMENT, "current", amps, "A")


def temperature(celsius: float) -> CapabilityEvent:
    return CapabilityEvent(TEMPERATURE_MEASUREMENT, "temperature", celsius, "C")


def humidity(percent: float) -> CapabilityEvent:
    return CapabilityEvent(HUMIDITY_MEASUREMENT, "humidity", percent, "%")


def battery(percent: int) -> CapabilityEvent:
    return CapabilityEvent(BATTERY, "battery", percent, "%")
