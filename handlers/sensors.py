"""
Sensor cluster handlers.
Handles: Temperature (0x0402), Humidity (0x0405) and battery reports from
PowerConfiguration (0x0001).
"""
import logging
from typing import Any, Optional

from zigpy.zcl.clusters.general import PowerConfiguration
from zigpy.zcl.clusters.measurement import RelativeHumidity, TemperatureMeasurement

import capabilities
from .base import AttributeDecoder, AttributeHandler, ValueForwarder

logger = logging.getLogger("handlers.sensors")

# Cluster IDs
POWER_CONFIGURATION = PowerConfiguration.cluster_id  # 0x0001
TEMPERATURE_MEASUREMENT = TemperatureMeasurement.cluster_id  # 0x0402
RELATIVE_HUMIDITY = RelativeHumidity.cluster_id  # 0x0405

# Attribute IDs
MEASURED_VALUE = 0x0000
ATTR_BATTERY_VOLTAGE = 0x0020
ATTR_BATTERY_PERCENTAGE = 0x0021

# Default reporting for battery-powered sensors
TEMP_MIN_REPORT_INTERVAL = 30
TEMP_MAX_REPORT_INTERVAL = 300
TEMP_REPORTABLE_CHANGE = 50      # 0.5 degrees

HUMIDITY_MIN_REPORT_INTERVAL = 30
HUMIDITY_MAX_REPORT_INTERVAL = 300
HUMIDITY_REPORTABLE_CHANGE = 100  # 1%

BATTERY_MIN_REPORT_INTERVAL = 3600
BATTERY_MAX_REPORT_INTERVAL = 21600
BATTERY_REPORTABLE_CHANGE = 1


def _centi(value: Any) -> Optional[float]:
    # Measured values are in 0.01 units
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value / 100


def temperature_event(value: Any):
    celsius = _centi(value)
    return capabilities.temperature(celsius) if celsius is not None else None


def humidity_event(value: Any):
    percent = _centi(value)
    return capabilities.humidity(percent) if percent is not None else None


# ============================================================
# POWER CONFIGURATION CLUSTER (0x0001)
# Battery status for battery-powered devices
# ============================================================
class BatteryVoltageHandler(AttributeHandler):
    """Voltage in 100mV units. Once seen, raw percentage reports are ignored."""

    def handle(self, device, report):
        if report.value is None:
            return
        voltage_mv = report.value * 100
        percent = device.mapper.emit_battery_from_voltage("main", voltage_mv)
        device.log.debug(f"Battery voltage: {voltage_mv}mV -> {percent}%")


class BatteryPercentageHandler(AttributeHandler):
    """Percentage is 0-200 (0.5% steps)."""

    def handle(self, device, report):
        if report.value is None:
            return
        percent = device.mapper.emit_battery_from_percentage("main", report.value)
        if percent is not None:
            device.log.debug(f"Battery: {percent}% (raw: {report.value})")


def register_sensor_handlers(decoder: AttributeDecoder):
    decoder.register(TEMPERATURE_MEASUREMENT, MEASURED_VALUE, ValueForwarder(temperature_event, "main"))
    decoder.register(RELATIVE_HUMIDITY, MEASURED_VALUE, ValueForwarder(humidity_event, "main"))
    decoder.register(POWER_CONFIGURATION, ATTR_BATTERY_VOLTAGE, BatteryVoltageHandler())
    decoder.register(POWER_CONFIGURATION, ATTR_BATTERY_PERCENTAGE, BatteryPercentageHandler())
