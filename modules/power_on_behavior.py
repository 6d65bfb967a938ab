"""
Power-on behavior (a.k.a. power outage memory).

The device reports its behavior as an enum on the OnOff cluster; the user
sets it through the `powerOutageMemory` preference. A write is only sent
when the preference differs from the last value the device reported.

The enum encoding depends on the attribute: the Tuya/Moes attribute 0x8002
uses 0/1/2, the ZCL StartUpOnOff attribute 0x4003 uses 0x02 for toggle and
0xFF for previous.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("modules.power_on_behavior")

POWER_ON_BEHAVIOR_PREF = "powerOutageMemory"
POWER_OUTAGE_FIELD = "power_outage_memory"

ATTR_STARTUP_ON_OFF = 0x4003
ATTR_MOES_STARTUP_ON_OFF = 0x8002

BEHAVIOR_ALIASES = {
    "off": "off",
    "on": "on",
    "restore": "restore",
    "previous": "restore",
}

MOES_POWER_ON_ENUM = {
    "off": 0,
    "on": 1,
    "restore": 2,
}

# 0x02 (toggle) has no preference counterpart
ZCL_STARTUP_ON_OFF_ENUM = {
    "off": 0x00,
    "on": 0x01,
    "restore": 0xFF,
}

POWER_ON_ENUMS: Dict[int, Dict[str, int]] = {
    ATTR_MOES_STARTUP_ON_OFF: MOES_POWER_ON_ENUM,
    ATTR_STARTUP_ON_OFF: ZCL_STARTUP_ON_OFF_ENUM,
}


def normalize_behavior(requested: Any) -> Optional[str]:
    """Map a preference value onto off/on/restore, or None if unknown."""
    if not isinstance(requested, str):
        return None
    return BEHAVIOR_ALIASES.get(requested.lower())


class PowerOnBehaviorState:

    def __init__(self, platform_device, attribute_id: Optional[int]):
        self.platform_device = platform_device
        # None when the model has no power-on attribute
        self.attribute_id = attribute_id
        self.to_enum = POWER_ON_ENUMS.get(attribute_id, MOES_POWER_ON_ENUM)
        self.from_enum = {enum_value: behavior for behavior, enum_value in self.to_enum.items()}

    @property
    def supported(self) -> bool:
        return self.attribute_id is not None

    @property
    def value(self) -> Optional[str]:
        return self.platform_device.get_field(POWER_OUTAGE_FIELD)

    def update_from_report(self, raw: Any) -> Optional[str]:
        """Record the device-reported enum. Returns the new behavior if it changed."""
        behavior = self.from_enum.get(raw)
        if behavior is None:
            logger.debug(f"[{self.platform_device.id}] Unknown power-on behavior value {raw!r}")
            return None
        if self.value == behavior:
            return None
        self.platform_device.set_field(POWER_OUTAGE_FIELD, behavior, persist=True)
        logger.info(f"[{self.platform_device.id}] Power outage memory set to {behavior}")
        return behavior

    def enum_to_write(self, requested: Any) -> Optional[int]:
        """
        Enum value to write for a preference, or None when nothing should be
        sent (unsupported model, unknown value, device already matches).
        """
        if not self.supported:
            logger.info(f"[{self.platform_device.id}] Power-on behavior attribute not available for this device")
            return None
        behavior = normalize_behavior(requested)
        if behavior is None:
            logger.info(f"[{self.platform_device.id}] Unsupported power outage memory: {requested!r}")
            return None
        if behavior == self.value:
            logger.debug(f"[{self.platform_device.id}] Power outage memory already {behavior}")
            return None
        return self.to_enum[behavior]
