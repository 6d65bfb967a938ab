"""
Reporting configuration and fallback polling.

Many cheap Zigbee plugs accept a configure-reporting request and then never
report, or report only some attributes. The driver therefore binds and
configures reporting once, and additionally re-reads the measurement
attributes on a fixed interval.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from transport import FrameKind, OutboundFrame

logger = logging.getLogger("modules.reporting")

BASIC_CLUSTER = 0x0000
ONOFF_CLUSTER = 0x0006

# Manufacturer name, ZCL version, app version, model, power source and 0xFFFE.
# Tuya firmware stays silent until it sees this exact read.
TUYA_MAGIC_ATTRIBUTES = (0x0004, 0x0000, 0x0001, 0x0005, 0x0007, 0xFFFE)

SleepFn = Callable[[float], Awaitable[None]]


class ReportingConfigurator:
    """Builds the bind/configure/read frames for one device profile."""

    def __init__(self, profile, send: Callable[[OutboundFrame], None], device_id: str = ""):
        self.profile = profile
        self.send = send
        self.device_id = device_id

    def _read(self, endpoint: int, cluster_id: int, attribute_ids: Iterable[int], label: str):
        self.send(OutboundFrame(endpoint, cluster_id, FrameKind.READ, list(attribute_ids), label=label))

    def _read_all(self, reads, label: str):
        for read in reads:
            self._read(read.endpoint, read.cluster_id, read.attribute_ids, label)

    def send_magic_packet(self):
        if not self.profile.tuya_magic_packet:
            return
        self._read(1, BASIC_CLUSTER, TUYA_MAGIC_ATTRIBUTES, "Tuya magic packet")

    def refresh_switches(self):
        self._read_all(self.profile.switch_reads, "switch read")

    def refresh_switch(self, endpoint: int):
        self._read(endpoint, ONOFF_CLUSTER, [0x0000], "OnOff confirmation read")

    def refresh_measurements(self):
        self._read_all(self.profile.measurement_reads, "measurement read")

    def refresh_power_on_behavior(self):
        if self.profile.power_on_attribute is None:
            return
        self._read(1, ONOFF_CLUSTER, [self.profile.power_on_attribute], "power-on behavior read")

    def refresh(self):
        """Immediate read of every tracked attribute."""
        self.refresh_switches()
        self.refresh_measurements()
        self._read_all(self.profile.sensor_reads, "sensor read")
        self.refresh_power_on_behavior()

    def configure(self):
        """Bind, configure reporting, learn scale factors, then refresh."""
        logger.info(f"[{self.device_id}] Configuring {self.profile.name}")
        self.send_magic_packet()

        for endpoint, cluster_id in self.profile.bindings:
            self.send(OutboundFrame(endpoint, cluster_id, FrameKind.BIND, label="bind"))

        # Devices are free to ignore these, the fallback poll covers that
        for entry in self.profile.reporting:
            self.send(OutboundFrame(
                entry.endpoint,
                entry.cluster_id,
                FrameKind.CONFIGURE_REPORTING,
                entry.config.attribute_id,
                entry.config,
                label="configure reporting",
            ))

        self._read_all(self.profile.scale_reads, "scale factor read")
        self.refresh()


class PollScheduler:
    """
    Single-flight repeating task.

    start() while a chain is already running is a no-op, so a repeated
    `init` cannot stack up a second chain. stop() cancels it.
    """

    IDLE = "idle"
    RUNNING = "running"

    def __init__(self, interval: float, action: Callable[[], None], name: str = "poll",
                 sleep: Optional[SleepFn] = None):
        self.interval = interval
        self.action = action
        self.name = name
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> str:
        if self._task is not None and not self._task.done():
            return self.RUNNING
        return self.IDLE

    @property
    def running(self) -> bool:
        return self.state == self.RUNNING

    def start(self) -> bool:
        if self.running:
            logger.debug(f"{self.name}: already running")
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"{self.name}: started, every {self.interval}s")
        return True

    async def _run(self):
        while True:
            await self._sleep(self.interval)
            try:
                self.action()
            except Exception as e:
                logger.error(f"{self.name}: poll failed: {e}", exc_info=True)

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug(f"{self.name}: stopped")


def call_later(delay: float, action: Callable[[], None], sleep: Optional[SleepFn] = None) -> asyncio.Task:
    """One-shot delayed call on the running loop. Cancel the task to drop it."""
    sleep = sleep or asyncio.sleep

    async def _delayed():
        await sleep(delay)
        try:
            action()
        except Exception as e:
            logger.error(f"Delayed call failed: {e}", exc_info=True)

    return asyncio.get_running_loop().create_task(_delayed())
