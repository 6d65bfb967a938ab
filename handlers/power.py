"""
Power measurement handlers.
Handles: ElectricalMeasurement (0x0B04) and Metering (0x0702), including the
multiplier/divisor attributes that scale their raw readings.
"""
import logging

from zigpy.zcl.clusters.homeautomation import ElectricalMeasurement
from zigpy.zcl.clusters.smartenergy import Metering

import capabilities
from modules.scale_fields import Quantity
from .base import AttributeDecoder, ScaledValueForwarder, ScaleFieldUpdater

logger = logging.getLogger("handlers.power")

# ============================================================
# ELECTRICAL MEASUREMENT CLUSTER (0x0B04)
# ============================================================
ELECTRICAL_MEASUREMENT = ElectricalMeasurement.cluster_id  # 0x0B04

ATTR_RMS_VOLTAGE = 0x0505
ATTR_RMS_CURRENT = 0x0508
ATTR_ACTIVE_POWER = 0x050B
ATTR_AC_VOLTAGE_MULTIPLIER = 0x0600
ATTR_AC_VOLTAGE_DIVISOR = 0x0601
ATTR_AC_CURRENT_MULTIPLIER = 0x0602
ATTR_AC_CURRENT_DIVISOR = 0x0603
ATTR_AC_POWER_MULTIPLIER = 0x0604
ATTR_AC_POWER_DIVISOR = 0x0605

# ============================================================
# METERING CLUSTER (0x0702)
# ============================================================
METERING = Metering.cluster_id  # 0x0702

ATTR_CURRENT_SUMM_DELIVERED = 0x0000
ATTR_METERING_MULTIPLIER = 0x0301
ATTR_METERING_DIVISOR = 0x0302

SCALE_ATTRIBUTES = {
    ELECTRICAL_MEASUREMENT: (
        (ATTR_AC_VOLTAGE_MULTIPLIER, Quantity.VOLTAGE, ScaleFieldUpdater.MULTIPLIER),
        (ATTR_AC_VOLTAGE_DIVISOR, Quantity.VOLTAGE, ScaleFieldUpdater.DIVISOR),
        (ATTR_AC_CURRENT_MULTIPLIER, Quantity.CURRENT, ScaleFieldUpdater.MULTIPLIER),
        (ATTR_AC_CURRENT_DIVISOR, Quantity.CURRENT, ScaleFieldUpdater.DIVISOR),
        (ATTR_AC_POWER_MULTIPLIER, Quantity.POWER, ScaleFieldUpdater.MULTIPLIER),
        (ATTR_AC_POWER_DIVISOR, Quantity.POWER, ScaleFieldUpdater.DIVISOR),
    ),
    METERING: (
        (ATTR_METERING_MULTIPLIER, Quantity.ENERGY, ScaleFieldUpdater.MULTIPLIER),
        (ATTR_METERING_DIVISOR, Quantity.ENERGY, ScaleFieldUpdater.DIVISOR),
    ),
}


def register_power_handlers(decoder: AttributeDecoder, component: str = "main"):
    """Measurements plus their scale-factor attributes."""
    decoder.register(ELECTRICAL_MEASUREMENT, ATTR_ACTIVE_POWER,
                     ScaledValueForwarder(Quantity.POWER, capabilities.power, component))
    decoder.register(ELECTRICAL_MEASUREMENT, ATTR_RMS_VOLTAGE,
                     ScaledValueForwarder(Quantity.VOLTAGE, capabilities.voltage, component))
    decoder.register(ELECTRICAL_MEASUREMENT, ATTR_RMS_CURRENT,
                     ScaledValueForwarder(Quantity.CURRENT, capabilities.current, component))
    decoder.register(METERING, ATTR_CURRENT_SUMM_DELIVERED,
                     ScaledValueForwarder(Quantity.ENERGY, capabilities.energy, component))

    for cluster_id, entries in SCALE_ATTRIBUTES.items():
        for attr_id, quantity, part in entries:
            decoder.register(cluster_id, attr_id, ScaleFieldUpdater(quantity, part))


def scale_attribute_ids(cluster_id: int):
    return [attr_id for attr_id, _, _ in SCALE_ATTRIBUTES[cluster_id]]
