"""
Radio transport.

Outbound frames are fire-and-forget: the driver never awaits a response,
replies come back later as ordinary attribute reports. ZigpyTransport runs
each send as a background task on the event loop and only logs failures.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Set

from error_handler import get_error_handler

logger = logging.getLogger("transport")

HA_PROFILE_ID = 0x0104


class FrameKind(Enum):
    READ = "read"
    WRITE = "write"
    COMMAND = "command"
    BIND = "bind"
    CONFIGURE_REPORTING = "configure_reporting"
    RAW = "raw"


@dataclass(frozen=True)
class ReportingConfig:
    """A configure-reporting tuple for one attribute."""
    attribute_id: int
    min_interval: int
    max_interval: int
    reportable_change: int = 1


@dataclass
class OutboundFrame:
    """
    One fire-and-forget request.

    attribute_or_command depends on kind:
      READ                -> list of attribute ids
      WRITE               -> attribute id (payload is the value)
      COMMAND             -> command id (payload is a tuple of args)
      CONFIGURE_REPORTING -> attribute id (payload is a ReportingConfig)
      BIND                -> None
      RAW                 -> None (payload is a full ZCL frame)
    """
    endpoint: int
    cluster_id: int
    kind: FrameKind
    attribute_or_command: Any = None
    payload: Any = None
    label: str = ""

    def __str__(self) -> str:
        return (f"{self.kind.value} EP{self.endpoint} 0x{self.cluster_id:04X} "
                f"{self.attribute_or_command!r} {self.payload!r}")


def zcl_sequence(data: bytes) -> int:
    """Sequence number of a raw ZCL frame (after the optional manufacturer code)."""
    return data[3] if data[0] & 0x04 else data[1]


class Transport(Protocol):
    def send_frame(self, frame: OutboundFrame) -> None: ...


class ZigpyTransport:
    """Sends OutboundFrames through a zigpy device."""

    def __init__(self, zigpy_dev):
        self.zigpy_dev = zigpy_dev
        self.ieee = str(zigpy_dev.ieee)
        self._tasks: Set[asyncio.Task] = set()
        self._seq = 0

    def send_frame(self, frame: OutboundFrame) -> None:
        logger.debug(f"[{self.ieee}] TX {frame.label or ''} {frame}")
        try:
            coro = self._build_request(frame)
        except LookupError as e:
            logger.debug(f"[{self.ieee}] Dropping frame, {e}")
            return

        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t, f=frame: self._on_done(t, f))

    def _on_done(self, task: asyncio.Task, frame: OutboundFrame):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            get_error_handler().record_error(error, f"{self.ieee} {frame}")

    def _get_cluster(self, endpoint_id: int, cluster_id: int):
        ep = self.zigpy_dev.endpoints.get(endpoint_id)
        if ep is None:
            raise LookupError(f"EP{endpoint_id} not found")
        cluster = ep.in_clusters.get(cluster_id) or ep.out_clusters.get(cluster_id)
        if cluster is None:
            raise LookupError(f"cluster 0x{cluster_id:04X} not on EP{endpoint_id}")
        return cluster

    def _next_seq(self) -> int:
        self._seq = (self._seq + 1) % 0x100
        return self._seq

    def _build_request(self, frame: OutboundFrame):
        if frame.kind == FrameKind.RAW:
            data: bytes = frame.payload
            return self.zigpy_dev.request(
                profile=HA_PROFILE_ID,
                cluster=frame.cluster_id,
                src_ep=frame.endpoint,
                dst_ep=frame.endpoint,
                sequence=zcl_sequence(data) if data else self._next_seq(),
                data=data,
                expect_reply=False,
            )

        cluster = self._get_cluster(frame.endpoint, frame.cluster_id)

        if frame.kind == FrameKind.READ:
            return cluster.read_attributes(list(frame.attribute_or_command), allow_cache=False)
        if frame.kind == FrameKind.WRITE:
            return cluster.write_attributes({frame.attribute_or_command: frame.payload})
        if frame.kind == FrameKind.COMMAND:
            args = frame.payload or ()
            return cluster.command(frame.attribute_or_command, *args, expect_reply=False)
        if frame.kind == FrameKind.BIND:
            return cluster.bind()
        if frame.kind == FrameKind.CONFIGURE_REPORTING:
            config: ReportingConfig = frame.payload
            return cluster.configure_reporting(
                config.attribute_id,
                config.min_interval,
                config.max_interval,
                config.reportable_change,
            )
        raise LookupError(f"unsupported frame kind {frame.kind}")

    async def close(self):
        """Cancel in-flight sends."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
