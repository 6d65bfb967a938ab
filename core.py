"""
Zigbee Driver Service Core
Dispatches platform lifecycle events, capability commands and raw zigpy
messages to the per-device drivers.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import zigpy.device

import capabilities
from device import ZigbeeDevice
from handlers.tuya import TUYA_CLUSTER_ID
from host import is_child_device
from modules.reporting import SleepFn
from settings import DriverSettings, load_settings
from transport import ZigpyTransport

logger = logging.getLogger("core")

LIFECYCLE_EVENTS = {
    "added": "added",
    "init": "init",
    "doConfigure": "do_configure",
    "infoChanged": "info_changed",
    "removed": "removed",
}


class DriverService:
    """
    One driver (one DriverProfile) serving many platform devices.

    Child devices never get a ZigbeeDevice of their own: their lifecycle
    events are skipped and their commands are routed to the parent.
    """

    def __init__(self, platform_driver, profile, settings: Optional[DriverSettings] = None,
                 transport_factory: Optional[Callable[[Any], Any]] = None,
                 sleep: Optional[SleepFn] = None):
        self.platform_driver = platform_driver
        self.profile = profile
        self.settings = settings or load_settings()
        self.transport_factory = transport_factory or ZigpyTransport
        self._sleep = sleep

        # Keyed by platform device id
        self.devices: Dict[str, ZigbeeDevice] = {}
        # zigpy IEEE -> platform device id
        self._ieee_to_id: Dict[str, str] = {}

    # =========================================================================
    # DEVICE REGISTRY
    # =========================================================================

    def register_device(self, platform_device, zigpy_dev: Optional[zigpy.device.Device] = None,
                        transport=None) -> Optional[ZigbeeDevice]:
        """Create (or replace) the driver for a platform device."""
        if is_child_device(platform_device):
            logger.debug(f"[{platform_device.id}] Child device, not registered")
            return None

        if transport is None:
            if zigpy_dev is None:
                raise ValueError("register_device needs a zigpy device or a transport")
            transport = self.transport_factory(zigpy_dev)

        device_id = str(platform_device.id)
        device = ZigbeeDevice(
            platform_device, self.platform_driver, self.profile, transport,
            settings=self.settings, sleep=self._sleep,
        )
        if zigpy_dev is not None:
            device.attach(zigpy_dev)
            self._ieee_to_id[str(zigpy_dev.ieee)] = device_id

        self.devices[device_id] = device
        logger.info(f"[{device_id}] Registered ({self.profile.name})")
        return device

    def get_device(self, platform_device) -> Optional[ZigbeeDevice]:
        """The driver owning `platform_device`; for a child, its parent's."""
        device = self.devices.get(str(platform_device.id))
        if device is None and is_child_device(platform_device):
            parent = platform_device.get_parent_device()
            if parent is not None:
                device = self.devices.get(str(parent.id))
        return device

    def device_for_ieee(self, ieee: str) -> Optional[ZigbeeDevice]:
        device_id = self._ieee_to_id.get(ieee)
        return self.devices.get(device_id) if device_id is not None else None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def handle_lifecycle(self, event: str, platform_device, **kwargs):
        """Dispatch a platform lifecycle event by its platform name."""
        method = LIFECYCLE_EVENTS.get(event)
        if method is None:
            logger.debug(f"[{platform_device.id}] Lifecycle event '{event}' ignored")
            return None

        if is_child_device(platform_device):
            logger.debug(f"[{platform_device.id}] Lifecycle '{event}' skipped for child device")
            return None

        device = self.devices.get(str(platform_device.id))
        if device is None:
            logger.warning(f"[{platform_device.id}] Lifecycle '{event}' for unregistered device")
            return None

        if method == "removed":
            return self._remove(device)
        return getattr(device, method)(**kwargs)

    def _remove(self, device: ZigbeeDevice) -> asyncio.Task:
        self.devices.pop(device.device_id, None)
        for ieee, device_id in list(self._ieee_to_id.items()):
            if device_id == device.device_id:
                del self._ieee_to_id[ieee]
        logger.info(f"[{device.device_id}] Device removed")
        return asyncio.get_running_loop().create_task(device.removed())

    # =========================================================================
    # CAPABILITY COMMANDS
    # =========================================================================

    def handle_capability_command(self, platform_device, capability: str, command: str,
                                  component: str = "main") -> bool:
        device = self.get_device(platform_device)
        if device is None:
            logger.warning(f"[{platform_device.id}] Command {capability}.{command} for unknown device")
            return False

        target, endpoint = device.router.resolve_command_target(platform_device, component)
        target_device = self.devices.get(str(target.id), device)

        if capability == capabilities.SWITCH and command in ("on", "off"):
            target_device.switch_command(endpoint, command == "on")
            return True
        if capability == capabilities.REFRESH and command == "refresh":
            target_device.refresh()
            return True

        logger.info(f"[{platform_device.id}] Unsupported command {capability}.{command}")
        return False

    # =========================================================================
    # ZIGPY APPLICATION LISTENER INTERFACE
    # =========================================================================

    def handle_message(
            self,
            sender: zigpy.device.Device,
            profile: int,
            cluster: int,
            src_ep: int,
            dst_ep: int,
            message: bytes
    ):
        """Raw message interceptor - Tuya EF00 frames bypass the ZCL cluster layer."""
        ieee = str(sender.ieee)
        logger.debug(f"[{ieee}] Raw message: profile=0x{profile:04x}, cluster=0x{cluster:04x}, "
                     f"src_ep={src_ep}, dst_ep={dst_ep}, len={len(message)}")

        if cluster != TUYA_CLUSTER_ID:
            return

        device = self.device_for_ieee(ieee)
        if device is not None:
            device.handle_raw_message(cluster, message)

    def device_removed(self, zigpy_dev: zigpy.device.Device):
        """Called by zigpy when a device leaves; the platform device stays."""
        ieee = str(zigpy_dev.ieee)
        device = self.device_for_ieee(ieee)
        if device is not None:
            logger.info(f"[{device.device_id}] Radio device {ieee} removed")
            self._remove(device)
