"""
Child device registry.
Creates one platform child device per child-eligible endpoint when the user
enables the `exposeChildSwitches` preference.
"""
import logging
from typing import Iterable, Set

from host import ChildDeviceDescriptor, is_child_device
from modules.endpoints import child_key_for_endpoint

logger = logging.getLogger("modules.child_devices")

CHILD_SWITCH_PREF = "exposeChildSwitches"


class ChildDeviceRegistry:

    def __init__(self, platform_driver, child_endpoints: Iterable[int], child_profile: str,
                 default_label: str = "Zigbee Device"):
        self.platform_driver = platform_driver
        self.child_endpoints = list(child_endpoints)
        self.child_profile = child_profile
        self.default_label = default_label
        # Keys requested in this process; the host may create children asynchronously
        self._requested: Set[str] = set()

    @staticmethod
    def supports_children(device) -> bool:
        return hasattr(device, "get_child_by_parent_assigned_key")

    @staticmethod
    def children_enabled(device) -> bool:
        prefs = getattr(device, "preferences", None) or {}
        return prefs.get(CHILD_SWITCH_PREF) is True

    def child_for(self, device, endpoint: int):
        """Return the child device proxying `endpoint`, if any."""
        if device is None or not self.supports_children(device):
            return None
        return device.get_child_by_parent_assigned_key(child_key_for_endpoint(endpoint))

    def _label_for(self, device, endpoint: int) -> str:
        base_label = getattr(device, "label", None) or self.default_label
        return f"{base_label} L{endpoint}"

    def ensure_children(self, device) -> int:
        """
        Create missing children for every child-eligible endpoint.
        Returns the number of creation requests issued.
        """
        if device is None or is_child_device(device):
            return 0
        if not self.children_enabled(device):
            return 0
        if not self.supports_children(device):
            logger.info(f"[{device.id}] Child devices require a newer hub firmware, skipping")
            return 0

        created = 0
        for endpoint in self.child_endpoints:
            key = child_key_for_endpoint(endpoint)
            if device.get_child_by_parent_assigned_key(key) is not None:
                continue
            if key in self._requested:
                logger.debug(f"[{device.id}] Child {key} already requested")
                continue

            label = self._label_for(device, endpoint)
            descriptor = ChildDeviceDescriptor(
                parent_device_id=device.id,
                parent_assigned_child_key=key,
                label=label,
                profile=self.child_profile,
                manufacturer=getattr(self.platform_driver, "name", "zigbee"),
                model=self.child_profile,
                vendor_provided_label=label,
            )
            if self._create(device, descriptor):
                self._requested.add(key)
                created += 1
        return created

    def _create(self, device, descriptor: ChildDeviceDescriptor) -> bool:
        try:
            result = self.platform_driver.try_create_device(descriptor.as_dict())
        except Exception as e:
            logger.warning(f"[{device.id}] Failed to create child {descriptor.parent_assigned_child_key}: {e}")
            return False
        if result is False:
            logger.warning(f"[{device.id}] Host refused child {descriptor.parent_assigned_child_key}")
            return False
        logger.info(f"[{device.id}] Requested child device '{descriptor.label}'")
        return True
