"""
Platform collaborator interfaces.

The hub platform owns device objects, their key/value fields, event
publishing and child device creation. The drivers only talk to it through
these narrow protocols.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Protocol

from capabilities import CapabilityEvent


class PlatformDevice(Protocol):
    """A platform device object (parent or child)."""

    id: str
    label: Optional[str]
    preferences: Dict[str, Any]
    parent_assigned_child_key: Optional[str]

    def get_field(self, key: str) -> Any: ...

    def set_field(self, key: str, value: Any, persist: bool = False) -> None: ...

    def emit_event(self, event: CapabilityEvent) -> None: ...

    def emit_component_event(self, component: str, event: CapabilityEvent) -> None: ...

    def get_latest_state(self, component: str, capability: str, attribute: str) -> Any: ...

    def get_parent_device(self) -> Optional["PlatformDevice"]: ...

    # Optional on older hubs:
    # def get_child_by_parent_assigned_key(self, key: str) -> Optional[PlatformDevice]


class PlatformDriver(Protocol):
    """The platform-side driver handle used to create child devices."""

    name: str

    def try_create_device(self, descriptor: Dict[str, Any]) -> Any: ...


@dataclass
class ChildDeviceDescriptor:
    parent_device_id: str
    parent_assigned_child_key: str
    label: str
    profile: str
    manufacturer: str
    model: str
    vendor_provided_label: str
    type: str = "EDGE_CHILD"
    device_network_id: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_child_device(device: Optional[PlatformDevice]) -> bool:
    return device is not None and getattr(device, "parent_assigned_child_key", None) is not None
