"""
Endpoint <-> component routing.

Multi-gang devices expose one endpoint per gang; the platform sees each as a
component ("main", "l2", ...) or, optionally, as a child device that proxies
the endpoint through the parent's radio connection.
"""
import logging
from typing import Dict, Mapping, Optional, Tuple

from host import is_child_device

logger = logging.getLogger("modules.endpoints")

PRIMARY_COMPONENT = "main"
PRIMARY_ENDPOINT = 1


def child_key_for_endpoint(endpoint: int) -> str:
    return f"{endpoint:02X}"


def endpoint_from_child_key(key: str) -> Optional[int]:
    try:
        return int(key, 16)
    except (TypeError, ValueError):
        return None


class EndpointComponentRouter:
    """Static bijection between components and endpoints."""

    def __init__(self, component_to_endpoint: Mapping[str, int]):
        self._component_to_endpoint: Dict[str, int] = dict(component_to_endpoint)
        self._endpoint_to_component: Dict[int, str] = {
            ep: comp for comp, ep in self._component_to_endpoint.items()
        }
        if len(self._endpoint_to_component) != len(self._component_to_endpoint):
            raise ValueError(f"Component/endpoint table is not one-to-one: {component_to_endpoint}")

    @property
    def components(self):
        return list(self._component_to_endpoint)

    @property
    def endpoints(self):
        return list(self._endpoint_to_component)

    def component_for(self, endpoint: int) -> str:
        return self._endpoint_to_component.get(endpoint, PRIMARY_COMPONENT)

    def endpoint_for(self, component: Optional[str]) -> int:
        return self._component_to_endpoint.get(component, PRIMARY_ENDPOINT)

    def resolve_command_target(self, device, component: Optional[str]) -> Tuple[object, int]:
        """
        Return (target device, endpoint) for a command issued on `device`.

        A command on a child device becomes a frame to the parent, addressed
        to the endpoint encoded in the child's key.
        """
        if is_child_device(device) and hasattr(device, "get_parent_device"):
            parent = device.get_parent_device()
            endpoint = endpoint_from_child_key(device.parent_assigned_child_key)
            if parent is not None and endpoint is not None:
                return parent, endpoint
            logger.warning(
                f"[{device.id}] Child key {device.parent_assigned_child_key!r} "
                f"could not be resolved, addressing device directly"
            )
        return device, self.endpoint_for(component)
