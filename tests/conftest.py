import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import pytest

from modules.log_level import DRIVER_LOGGERS
from settings import DriverSettings
from transport import FrameKind, OutboundFrame


class LegacyPlatformDevice:
    """Platform device of a hub without child device lookup."""

    def __init__(self, id="plug-1", label="Plug", preferences=None, parent=None,
                 parent_assigned_child_key=None):
        self.id = id
        self.label = label
        self.preferences: Dict[str, Any] = dict(preferences or {})
        self.parent = parent
        self.parent_assigned_child_key = parent_assigned_child_key
        self.fields: Dict[str, Any] = {}
        self.persisted = set()
        self.component_events: List[Tuple[str, Any]] = []
        self.events: List[Any] = []
        self.latest: Dict[Tuple[str, str, str], Any] = {}

    def get_field(self, key):
        return self.fields.get(key)

    def set_field(self, key, value, persist=False):
        self.fields[key] = value
        if persist:
            self.persisted.add(key)

    def emit_event(self, event):
        self.events.append(event)

    def emit_component_event(self, component, event):
        self.component_events.append((component, event))
        self.latest[(component, event.capability, event.attribute)] = event.value

    def get_latest_state(self, component, capability, attribute):
        return self.latest.get((component, capability, attribute))

    def get_parent_device(self):
        return self.parent

    def values(self, capability: Optional[str] = None):
        return [(c, e.value) for c, e in self.component_events
                if capability is None or e.capability == capability]


class FakePlatformDevice(LegacyPlatformDevice):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.children: Dict[str, "FakePlatformDevice"] = {}

    def get_child_by_parent_assigned_key(self, key):
        return self.children.get(key)


class FakePlatformDriver:
    """Records child creation requests; can materialize children on the parent."""

    def __init__(self, name="wp30-eu-plug", result=None, error=None, materialize=False):
        self.name = name
        self.result = result
        self.error = error
        self.materialize = materialize
        self.descriptors: List[Dict[str, Any]] = []
        self.parents: Dict[str, FakePlatformDevice] = {}

    def try_create_device(self, descriptor):
        self.descriptors.append(descriptor)
        if self.error is not None:
            raise self.error
        if self.materialize:
            parent = self.parents[descriptor["parent_device_id"]]
            key = descriptor["parent_assigned_child_key"]
            parent.children[key] = FakePlatformDevice(
                id=f"{parent.id}-{key}",
                label=descriptor["label"],
                parent=parent,
                parent_assigned_child_key=key,
            )
        return self.result


class RecordingTransport:

    def __init__(self):
        self.frames: List[OutboundFrame] = []
        self.closed = False

    def send_frame(self, frame: OutboundFrame):
        self.frames.append(frame)

    async def close(self):
        self.closed = True

    def of_kind(self, kind: FrameKind) -> List[OutboundFrame]:
        return [f for f in self.frames if f.kind == kind]

    def reads(self, cluster_id: Optional[int] = None) -> List[Tuple[int, int, Tuple[int, ...]]]:
        return [
            (f.endpoint, f.cluster_id, tuple(f.attribute_or_command))
            for f in self.of_kind(FrameKind.READ)
            if cluster_id is None or f.cluster_id == cluster_id
        ]

    def clear(self):
        self.frames.clear()


class ManualSleep:
    """Injectable sleep: coroutines block until the test releases them."""

    def __init__(self):
        self.waiters: List[Tuple[float, asyncio.Future]] = []
        self.calls: List[float] = []

    async def __call__(self, delay: float):
        fut = asyncio.get_running_loop().create_future()
        self.waiters.append((delay, fut))
        self.calls.append(delay)
        await fut

    @property
    def pending(self) -> int:
        return sum(1 for _, fut in self.waiters if not fut.done())

    async def release(self, delay: Optional[float] = None):
        """Wake every sleeper (or only those sleeping `delay`), then let them run."""
        remaining = []
        for waited, fut in self.waiters:
            if delay is None or waited == delay:
                if not fut.done():
                    fut.set_result(None)
            else:
                remaining.append((waited, fut))
        self.waiters = remaining
        await settle()


async def settle(rounds: int = 5):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def platform_device():
    return FakePlatformDevice(id="plug-1", label="Kitchen Plug")


@pytest.fixture
def platform_driver(platform_device):
    driver = FakePlatformDriver(materialize=True)
    driver.parents[platform_device.id] = platform_device
    return driver


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def settings():
    return DriverSettings(poll_interval=60, settle_delay=1, confirm_delay=2)


@pytest.fixture
def manual_sleep():
    return ManualSleep()


@pytest.fixture(autouse=True)
def reset_driver_log_levels():
    yield
    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)
