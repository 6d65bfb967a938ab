"""
Zigbee Attribute Handlers Package
"""
import logging

logger = logging.getLogger("handlers")

# Import base infrastructure FIRST
from .base import (
    AttributeKey,
    AttributeReport,
    AttributeHandler,
    ValueForwarder,
    ScaledValueForwarder,
    ScaleFieldUpdater,
    CompositeHandler,
    AttributeDecoder,
    ClusterListener,
)

from .general import (
    SwitchStateHandler,
    PowerOnBehaviorHandler,
)

from .power import register_power_handlers

from .sensors import (
    BatteryVoltageHandler,
    BatteryPercentageHandler,
    register_sensor_handlers,
)

from .tuya import (
    TUYA_CLUSTER_ID,
    Datapoint,
    DatapointDefinition,
    DatapointKind,
    TuyaDatapointDecoder,
    parse_payload,
)

# Public API
__all__ = [
    # Base
    "AttributeKey",
    "AttributeReport",
    "AttributeHandler",
    "ValueForwarder",
    "ScaledValueForwarder",
    "ScaleFieldUpdater",
    "CompositeHandler",
    "AttributeDecoder",
    "ClusterListener",

    # General
    "SwitchStateHandler",
    "PowerOnBehaviorHandler",

    # Power
    "register_power_handlers",

    # Sensors
    "BatteryVoltageHandler",
    "BatteryPercentageHandler",
    "register_sensor_handlers",

    # Tuya
    "TUYA_CLUSTER_ID",
    "Datapoint",
    "DatapointDefinition",
    "DatapointKind",
    "TuyaDatapointDecoder",
    "parse_payload",
]
