"""
Capability Event Mapper
=======================
Hands capability events to the platform and logs value transitions.

Events are always emitted, even when the value did not change; only the
"Value changed" log line depends on the comparison with the platform's last
known state.
"""
import logging
import math
from typing import Any, Iterable, Optional

import capabilities
from capabilities import CapabilityEvent
from modules.endpoints import PRIMARY_COMPONENT

logger = logging.getLogger("modules.event_mapper")

BATTERY_VOLTAGE_MIN_MV = 1500
BATTERY_VOLTAGE_MAX_MV = 2800


def values_equal(a: Any, b: Any) -> bool:
    """Native equality, then string form (so 1.0 and "1.0" compare equal)."""
    if a == b:
        return True
    if a is None or b is None:
        return False
    return str(a) == str(b)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def battery_voltage_to_percent(voltage_mv: Optional[float]) -> Optional[int]:
    if voltage_mv is None:
        return None
    span = BATTERY_VOLTAGE_MAX_MV - BATTERY_VOLTAGE_MIN_MV
    percent = round_half_up(((voltage_mv - BATTERY_VOLTAGE_MIN_MV) / span) * 100)
    return clamp_percent(percent)


class CapabilityEventMapper:

    def __init__(self, platform_device, components: Iterable[str] = (PRIMARY_COMPONENT,), log=None):
        self.platform_device = platform_device
        self.components = set(components) | {PRIMARY_COMPONENT}
        self.log = log or logger
        # In-memory only, a restart lets raw percentage through again
        self.last_battery_voltage_mv: Optional[float] = None

    def resolve_component(self, component: Optional[str]) -> str:
        if component in self.components:
            return component
        return PRIMARY_COMPONENT

    def _previous_value(self, component: str, event: CapabilityEvent) -> Any:
        getter = getattr(self.platform_device, "get_latest_state", None)
        if getter is None:
            return None
        try:
            return getter(component, event.capability, event.attribute)
        except Exception as e:
            self.log.debug(f"Latest state lookup failed for {component}: {e}")
            return None

    def log_value_change(self, component: str, event: CapabilityEvent) -> bool:
        previous = self._previous_value(component, event)
        if values_equal(previous, event.value):
            return False
        self.log.info(f"Value changed on {component}: {event} (was {previous})")
        return True

    def emit(self, component: Optional[str], event: CapabilityEvent) -> str:
        component = self.resolve_component(component)
        self.log_value_change(component, event)
        self.platform_device.emit_component_event(component, event)
        return component

    # ============================================================
    # BATTERY (voltage wins over raw percentage)
    # ============================================================

    def emit_battery_from_voltage(self, component: Optional[str], voltage_mv: float) -> Optional[int]:
        percent = battery_voltage_to_percent(voltage_mv)
        if percent is None:
            return None
        self.last_battery_voltage_mv = voltage_mv
        self.emit(component, capabilities.battery(percent))
        return percent

    def emit_battery_percent(self, component: Optional[str], percent: int) -> Optional[int]:
        """Already-scaled percentage; dropped once a voltage reading was seen."""
        if self.last_battery_voltage_mv is not None:
            self.log.debug(f"Battery percentage {percent} ignored, voltage preferred")
            return None
        percent = clamp_percent(percent)
        self.emit(component, capabilities.battery(percent))
        return percent

    def emit_battery_from_percentage(self, component: Optional[str], raw: float) -> Optional[int]:
        """raw is in half-percent units (0-200)."""
        return self.emit_battery_percent(component, round_half_up(raw / 2))
