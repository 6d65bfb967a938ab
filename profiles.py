"""
Device Profiles
===============
Per-model tables: component/endpoint layout, child endpoints, bindings,
reporting configuration, refresh reads, attribute handlers and Tuya
datapoint definitions.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from transport import ReportingConfig
from handlers.base import AttributeDecoder
from handlers.general import (
    ONOFF_CLUSTER,
    ATTR_ON_OFF,
    ATTR_STARTUP_ON_OFF,
    ATTR_MOES_STARTUP_ON_OFF,
    SwitchStateHandler,
    PowerOnBehaviorHandler,
)
from handlers.power import (
    ELECTRICAL_MEASUREMENT,
    METERING,
    ATTR_ACTIVE_POWER,
    ATTR_RMS_VOLTAGE,
    ATTR_RMS_CURRENT,
    ATTR_CURRENT_SUMM_DELIVERED,
    register_power_handlers,
    scale_attribute_ids,
)
from handlers import sensors
from handlers.tuya import DatapointDefinition, DatapointKind


@dataclass(frozen=True)
class AttributeRead:
    endpoint: int
    cluster_id: int
    attribute_ids: Tuple[int, ...]


@dataclass(frozen=True)
class ReportingEntry:
    endpoint: int
    cluster_id: int
    config: ReportingConfig


@dataclass
class DriverProfile:
    name: str
    components: Dict[str, int] = field(default_factory=lambda: {"main": 1})
    child_endpoints: Tuple[int, ...] = ()
    child_profile: Optional[str] = None
    tuya_magic_packet: bool = False
    power_on_attribute: Optional[int] = None
    bindings: List[Tuple[int, int]] = field(default_factory=list)
    reporting: List[ReportingEntry] = field(default_factory=list)
    switch_reads: List[AttributeRead] = field(default_factory=list)
    measurement_reads: List[AttributeRead] = field(default_factory=list)
    sensor_reads: List[AttributeRead] = field(default_factory=list)
    scale_reads: List[AttributeRead] = field(default_factory=list)
    datapoints: List[DatapointDefinition] = field(default_factory=list)
    register_handlers: Optional[Callable[[AttributeDecoder, "DriverProfile"], None]] = None

    @property
    def datapoint_only(self) -> bool:
        """Switches are driven through Tuya datapoints instead of OnOff."""
        return any(d.kind == DatapointKind.SWITCH for d in self.datapoints)

    def build_decoder(self) -> AttributeDecoder:
        decoder = AttributeDecoder()
        if self.register_handlers is not None:
            self.register_handlers(decoder, self)
        return decoder


def _register_switch(decoder: AttributeDecoder, profile: DriverProfile):
    decoder.register(ONOFF_CLUSTER, ATTR_ON_OFF, SwitchStateHandler())
    if profile.power_on_attribute is not None:
        decoder.register(ONOFF_CLUSTER, profile.power_on_attribute, PowerOnBehaviorHandler())


def _register_plug(decoder: AttributeDecoder, profile: DriverProfile):
    _register_switch(decoder, profile)
    register_power_handlers(decoder)


def _register_sensor(decoder: AttributeDecoder, profile: DriverProfile):
    sensors.register_sensor_handlers(decoder)


def _onoff_reads(endpoints) -> List[AttributeRead]:
    return [AttributeRead(ep, ONOFF_CLUSTER, (ATTR_ON_OFF,)) for ep in endpoints]


# ============================================================
# WP30 EU 3-gang plug (Tuya TS011F variant)
# ============================================================
WP30_COMPONENTS = {"main": 1, "l2": 2, "l3": 3}

WP30_EU_PLUG = DriverProfile(
    name="wp30-eu-plug",
    components=WP30_COMPONENTS,
    child_endpoints=(2, 3),
    child_profile="wp30-eu-plug-child-switch",
    tuya_magic_packet=True,
    power_on_attribute=ATTR_MOES_STARTUP_ON_OFF,
    bindings=[(ep, ONOFF_CLUSTER) for ep in WP30_COMPONENTS.values()] + [
        (1, ELECTRICAL_MEASUREMENT),
        (1, METERING),
    ],
    reporting=[
        ReportingEntry(ep, ONOFF_CLUSTER, ReportingConfig(ATTR_ON_OFF, 0, 600))
        for ep in WP30_COMPONENTS.values()
    ] + [
        ReportingEntry(1, ELECTRICAL_MEASUREMENT, ReportingConfig(ATTR_ACTIVE_POWER, 5, 300, 1)),
        ReportingEntry(1, ELECTRICAL_MEASUREMENT, ReportingConfig(ATTR_RMS_VOLTAGE, 5, 300, 1)),
        ReportingEntry(1, ELECTRICAL_MEASUREMENT, ReportingConfig(ATTR_RMS_CURRENT, 5, 300, 1)),
        ReportingEntry(1, METERING, ReportingConfig(ATTR_CURRENT_SUMM_DELIVERED, 30, 900, 1)),
    ],
    switch_reads=_onoff_reads(WP30_COMPONENTS.values()),
    measurement_reads=[
        AttributeRead(1, ELECTRICAL_MEASUREMENT, (ATTR_ACTIVE_POWER, ATTR_RMS_VOLTAGE, ATTR_RMS_CURRENT)),
        AttributeRead(1, METERING, (ATTR_CURRENT_SUMM_DELIVERED,)),
    ],
    scale_reads=[
        AttributeRead(1, ELECTRICAL_MEASUREMENT, tuple(scale_attribute_ids(ELECTRICAL_MEASUREMENT))),
        AttributeRead(1, METERING, tuple(scale_attribute_ids(METERING))),
    ],
    register_handlers=_register_plug,
)

# ============================================================
# Single plug with standard power-on attribute
# ============================================================
ZIGBEE_METERING_PLUG = DriverProfile(
    name="zigbee-metering-plug",
    power_on_attribute=ATTR_STARTUP_ON_OFF,
    bindings=[(1, ONOFF_CLUSTER), (1, ELECTRICAL_MEASUREMENT), (1, METERING)],
    reporting=[
        ReportingEntry(1, ONOFF_CLUSTER, ReportingConfig(ATTR_ON_OFF, 0, 600)),
        ReportingEntry(1, ELECTRICAL_MEASUREMENT, ReportingConfig(ATTR_ACTIVE_POWER, 5, 300, 1)),
        ReportingEntry(1, ELECTRICAL_MEASUREMENT, ReportingConfig(ATTR_RMS_VOLTAGE, 5, 300, 1)),
        ReportingEntry(1, ELECTRICAL_MEASUREMENT, ReportingConfig(ATTR_RMS_CURRENT, 5, 300, 1)),
        ReportingEntry(1, METERING, ReportingConfig(ATTR_CURRENT_SUMM_DELIVERED, 30, 900, 1)),
    ],
    switch_reads=_onoff_reads([1]),
    measurement_reads=WP30_EU_PLUG.measurement_reads,
    scale_reads=WP30_EU_PLUG.scale_reads,
    register_handlers=_register_plug,
)

# ============================================================
# Tuya temperature/humidity sensor (battery)
# ============================================================
TUYA_TEMP_HUMIDITY_SENSOR = DriverProfile(
    name="tuya-temp-humidity-sensor",
    tuya_magic_packet=True,
    bindings=[
        (1, sensors.TEMPERATURE_MEASUREMENT),
        (1, sensors.RELATIVE_HUMIDITY),
        (1, sensors.POWER_CONFIGURATION),
    ],
    reporting=[
        ReportingEntry(1, sensors.TEMPERATURE_MEASUREMENT, ReportingConfig(
            sensors.MEASURED_VALUE, sensors.TEMP_MIN_REPORT_INTERVAL,
            sensors.TEMP_MAX_REPORT_INTERVAL, sensors.TEMP_REPORTABLE_CHANGE)),
        ReportingEntry(1, sensors.RELATIVE_HUMIDITY, ReportingConfig(
            sensors.MEASURED_VALUE, sensors.HUMIDITY_MIN_REPORT_INTERVAL,
            sensors.HUMIDITY_MAX_REPORT_INTERVAL, sensors.HUMIDITY_REPORTABLE_CHANGE)),
        ReportingEntry(1, sensors.POWER_CONFIGURATION, ReportingConfig(
            sensors.ATTR_BATTERY_VOLTAGE, sensors.BATTERY_MIN_REPORT_INTERVAL,
            sensors.BATTERY_MAX_REPORT_INTERVAL, sensors.BATTERY_REPORTABLE_CHANGE)),
        ReportingEntry(1, sensors.POWER_CONFIGURATION, ReportingConfig(
            sensors.ATTR_BATTERY_PERCENTAGE, sensors.BATTERY_MIN_REPORT_INTERVAL,
            sensors.BATTERY_MAX_REPORT_INTERVAL, sensors.BATTERY_REPORTABLE_CHANGE)),
    ],
    sensor_reads=[
        AttributeRead(1, sensors.TEMPERATURE_MEASUREMENT, (sensors.MEASURED_VALUE,)),
        AttributeRead(1, sensors.RELATIVE_HUMIDITY, (sensors.MEASURED_VALUE,)),
        AttributeRead(1, sensors.POWER_CONFIGURATION,
                      (sensors.ATTR_BATTERY_VOLTAGE, sensors.ATTR_BATTERY_PERCENTAGE)),
    ],
    # TS0601 variants of the same sensor report over EF00 instead
    datapoints=[
        DatapointDefinition(1, DatapointKind.TEMPERATURE),
        DatapointDefinition(2, DatapointKind.HUMIDITY),
        DatapointDefinition(4, DatapointKind.BATTERY),
    ],
    register_handlers=_register_sensor,
)

# ============================================================
# Tuya datapoint-only 3-gang plug (TS0601)
# ============================================================
TUYA_DP_PLUG = DriverProfile(
    name="tuya-dp-plug",
    components=WP30_COMPONENTS,
    child_endpoints=(2, 3),
    child_profile="wp30-eu-plug-child-switch",
    tuya_magic_packet=True,
    datapoints=[
        DatapointDefinition(1, DatapointKind.SWITCH, "main"),
        DatapointDefinition(2, DatapointKind.SWITCH, "l2"),
        DatapointDefinition(3, DatapointKind.SWITCH, "l3"),
        DatapointDefinition(17, DatapointKind.ENERGY),
        DatapointDefinition(18, DatapointKind.CURRENT),
        DatapointDefinition(19, DatapointKind.POWER),
        DatapointDefinition(20, DatapointKind.VOLTAGE),
    ],
)

PROFILES: Dict[str, DriverProfile] = {
    p.name: p for p in (WP30_EU_PLUG, ZIGBEE_METERING_PLUG, TUYA_TEMP_HUMIDITY_SENSOR, TUYA_DP_PLUG)
}


def get_profile(name: str) -> DriverProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise KeyError(f"Unknown driver profile {name!r}") from None
