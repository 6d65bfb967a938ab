"""
Zigbee Device Driver - per-device state, lifecycle and command handling.
Ties the attribute decoder, Tuya datapoint decoder, endpoint routing,
child devices and the reporting/poll protocol to one platform device.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from error_handler import fail_soft
from handlers.base import AttributeReport, ClusterListener
from handlers.general import ONOFF_CLUSTER, ATTR_ON_OFF, CMD_OFF, CMD_ON
from handlers.tuya import TUYA_CLUSTER_ID, TuyaDatapointDecoder, build_set_data_frame
from modules.child_devices import CHILD_SWITCH_PREF, ChildDeviceRegistry
from modules.endpoints import EndpointComponentRouter, PRIMARY_ENDPOINT
from modules.event_mapper import CapabilityEventMapper
from modules.log_level import DeviceLogger, LogLevelPolicy
from modules.power_on_behavior import POWER_ON_BEHAVIOR_PREF, PowerOnBehaviorState
from modules.reporting import PollScheduler, ReportingConfigurator, SleepFn, call_later
from modules.scale_fields import ScaleFieldStore
from settings import DriverSettings
from transport import FrameKind, OutboundFrame

logger = logging.getLogger("device")


@dataclass
class DeviceState:
    """Mutable per-device runtime state. Nothing here is persisted."""
    tuya_seq: int = 0
    delayed: Set[asyncio.Task] = field(default_factory=set)
    listeners: List[ClusterListener] = field(default_factory=list)

    def next_tuya_seq(self) -> int:
        self.tuya_seq = (self.tuya_seq + 1) % 0x10000
        return self.tuya_seq


class ZigbeeDevice:
    """
    Driver-side wrapper around one (non-child) platform device.

    Handlers are synchronous and never wait for protocol responses: every
    outbound frame is fire-and-forget through the transport, replies arrive
    later as attribute reports.
    """

    def __init__(self, platform_device, platform_driver, profile, transport,
                 settings: Optional[DriverSettings] = None, sleep: Optional[SleepFn] = None):
        self.platform_device = platform_device
        self.platform_driver = platform_driver
        self.profile = profile
        self.transport = transport
        self.settings = settings or DriverSettings()
        self.device_id = str(platform_device.id)
        self._sleep = sleep

        self.state = DeviceState()

        self.log_policy = LogLevelPolicy(platform_device, self.settings.default_log_level)
        self.log = DeviceLogger(logger, self.device_id, self.log_policy)

        self.router = EndpointComponentRouter(profile.components)
        self.scale_fields = ScaleFieldStore(platform_device)
        self.mapper = CapabilityEventMapper(platform_device, self.router.components, log=self.log)
        self.power_on_behavior = PowerOnBehaviorState(platform_device, profile.power_on_attribute)

        self.children: Optional[ChildDeviceRegistry] = None
        if profile.child_endpoints:
            self.children = ChildDeviceRegistry(
                platform_driver, profile.child_endpoints, profile.child_profile,
            )

        self.decoder = profile.build_decoder()
        self.tuya = TuyaDatapointDecoder(profile.datapoints)
        self.configurator = ReportingConfigurator(profile, self.send_frame, self.device_id)
        self.poller = PollScheduler(
            self.settings.poll_interval,
            self.configurator.refresh_measurements,
            name=f"[{self.device_id}] measurement poll",
            sleep=sleep,
        )

        logger.info(f"[{self.device_id}] Device driver created - profile: {profile.name}")

    # ============================================================
    # OUTBOUND
    # ============================================================

    def send_frame(self, frame: OutboundFrame):
        self.log.debug(f"Zigbee TX {frame.label}: {frame}")
        self.transport.send_frame(frame)

    def call_later(self, delay: float, action: Callable[[], None]) -> asyncio.Task:
        """Device-owned delayed call, cancelled on removal."""
        task = call_later(delay, action, sleep=self._sleep)
        self.state.delayed.add(task)
        task.add_done_callback(self.state.delayed.discard)
        return task

    def send_datapoint(self, dp_id: int, dp_type: int, value: Any):
        frame = build_set_data_frame(self.state.next_tuya_seq(), dp_id, dp_type, value)
        self.send_frame(OutboundFrame(
            PRIMARY_ENDPOINT, TUYA_CLUSTER_ID, FrameKind.RAW, payload=frame, label=f"Tuya DP{dp_id}",
        ))

    # ============================================================
    # LIFECYCLE
    # ============================================================

    def apply_log_level(self) -> str:
        return self.log_policy.apply()

    def attach(self, zigpy_dev):
        """
        Listen on every cluster the attribute decoder handles. Tuya 0xEF00
        frames arrive only through the application's raw message hook.
        """
        wanted = {key.cluster_id for key in self.decoder.keys()}
        wanted.discard(TUYA_CLUSTER_ID)

        for ep_id, ep in zigpy_dev.endpoints.items():
            if ep_id == 0:
                continue
            for cluster in ep.in_clusters.values():
                if cluster.cluster_id in wanted:
                    self.state.listeners.append(ClusterListener(self, cluster))

        self.log.debug(f"Attached {len(self.state.listeners)} cluster listeners")

    def ensure_children(self) -> int:
        if self.children is None:
            return 0
        return self.children.ensure_children(self.platform_device)

    def _start_refresh_cycle(self):
        self.configurator.refresh()
        self.call_later(self.settings.settle_delay, self.configurator.refresh_switches)
        self.poller.start()

    @fail_soft
    def added(self):
        self.apply_log_level()
        self.ensure_children()
        self.configurator.send_magic_packet()
        self._start_refresh_cycle()

    @fail_soft
    def init(self):
        self.log.info(f"Driver version {self.settings.driver_version} ({self.profile.name})")
        self.apply_log_level()
        self.ensure_children()
        self.configurator.send_magic_packet()
        self._start_refresh_cycle()

    @fail_soft
    def do_configure(self):
        self.apply_log_level()
        self.configurator.configure()
        self.call_later(self.settings.settle_delay, self.configurator.refresh_switches)

    @fail_soft
    def info_changed(self, old_prefs: Optional[Dict[str, Any]] = None):
        old_prefs = old_prefs or {}
        prefs = self.platform_device.preferences or {}

        level = self.apply_log_level()
        self.log.info(f"Log level set to {level}")

        requested = prefs.get(POWER_ON_BEHAVIOR_PREF)
        if requested is not None and requested != old_prefs.get(POWER_ON_BEHAVIOR_PREF):
            self.set_power_on_behavior(requested)

        if prefs.get(CHILD_SWITCH_PREF) is True and old_prefs.get(CHILD_SWITCH_PREF) is not True:
            self.ensure_children()

    @fail_soft
    async def removed(self):
        self.poller.stop()
        for task in list(self.state.delayed):
            task.cancel()
        self.state.delayed.clear()
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()
        self.log.info("Device removed")

    # ============================================================
    # INBOUND
    # ============================================================

    @fail_soft
    def handle_attribute_report(self, report: AttributeReport) -> bool:
        return self.decoder.dispatch(self, report)

    def handle_cluster_command(self, endpoint: int, cluster_id: int, command_id: int, args):
        self.log.debug(f"Command 0x{command_id:02x} on EP{endpoint} 0x{cluster_id:04X} ignored: {args}")

    @fail_soft
    def handle_raw_message(self, cluster_id: int, message: bytes):
        if cluster_id == TUYA_CLUSTER_ID and self.tuya:
            return self.tuya.handle_raw_data(self, message)
        return []

    def emit_switch_event(self, endpoint: int, event) -> str:
        """Emit on the endpoint's component and mirror to its child, if any."""
        component = self.mapper.emit(self.router.component_for(endpoint), event)
        if self.children is not None:
            child = self.children.child_for(self.platform_device, endpoint)
            if child is not None:
                child.emit_event(event)
        return component

    # ============================================================
    # COMMANDS
    # ============================================================

    @fail_soft
    def switch_command(self, endpoint: int, on: bool):
        component = self.router.component_for(endpoint)
        self.log.debug(f"Switch command {'on' if on else 'off'} on {component} (endpoint {endpoint})")

        if self.profile.datapoint_only:
            definition = self.tuya.definition_for_switch(component)
            if definition is None:
                self.log.info(f"No switch datapoint for {component}, command dropped")
                return
            self.send_datapoint(definition.dp_id, definition.write_type, on)
            return

        self.send_frame(OutboundFrame(
            endpoint, ONOFF_CLUSTER, FrameKind.COMMAND, CMD_ON if on else CMD_OFF, label="OnOff",
        ))
        # Some firmware ignores the command but honours the write
        self.send_frame(OutboundFrame(
            endpoint, ONOFF_CLUSTER, FrameKind.WRITE, ATTR_ON_OFF, bool(on), label="OnOff write",
        ))
        self.call_later(self.settings.confirm_delay, lambda: self.configurator.refresh_switch(endpoint))

    @fail_soft
    def refresh(self):
        self.configurator.refresh()

    def set_power_on_behavior(self, requested: Any) -> bool:
        enum_value = self.power_on_behavior.enum_to_write(requested)
        if enum_value is None:
            return False
        self.log.info(f"Setting power outage memory to {requested}")
        self.send_frame(OutboundFrame(
            PRIMARY_ENDPOINT, ONOFF_CLUSTER, FrameKind.WRITE,
            self.power_on_behavior.attribute_id, enum_value, label="PowerOnBehavior write",
        ))
        return True
