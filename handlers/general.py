"""
General cluster handlers.
Handles: On/Off state per endpoint and the power-on behavior attribute.
"""
import logging

from zigpy.zcl.clusters.general import OnOff

import capabilities
# Tuya/Moes plugs keep power-on behavior in manufacturer attribute 0x8002
from modules.power_on_behavior import ATTR_MOES_STARTUP_ON_OFF, ATTR_STARTUP_ON_OFF
from .base import AttributeHandler, AttributeReport

logger = logging.getLogger("handlers.general")

# ============================================================
# ON/OFF CLUSTER (0x0006)
# ============================================================
ONOFF_CLUSTER = OnOff.cluster_id  # 0x0006

ATTR_ON_OFF = 0x0000

CMD_OFF = 0x00
CMD_ON = 0x01


class SwitchStateHandler(AttributeHandler):
    """
    OnOff state for the report's endpoint.
    The event goes to the endpoint's component and, if one exists, to the
    child device proxying that endpoint.
    """

    def handle(self, device, report: AttributeReport):
        if report.value is None:
            return
        device.log.debug(f"Zigbee RX OnOff EP{report.endpoint}: {report.value!r}")
        device.emit_switch_event(report.endpoint, capabilities.switch_from_value(report.value))


class PowerOnBehaviorHandler(AttributeHandler):
    """Records the device's power-on behavior. Emits nothing."""

    def handle(self, device, report: AttributeReport):
        device.log.debug(f"Zigbee RX PowerOnBehavior: {report.value!r}")
        device.power_on_behavior.update_from_report(report.value)
