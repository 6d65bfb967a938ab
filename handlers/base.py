"""
Attribute Handler Base
Typed (cluster, attribute) dispatch for ZCL attribute reports, plus the
zigpy listener that feeds it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, NamedTuple, Optional, TYPE_CHECKING

from capabilities import CapabilityEvent
from modules.scale_fields import Quantity

if TYPE_CHECKING:
    from device import ZigbeeDevice

logger = logging.getLogger("handlers.base")


class AttributeKey(NamedTuple):
    cluster_id: int
    attribute_id: int

    def __str__(self) -> str:
        return f"0x{self.cluster_id:04X}/0x{self.attribute_id:04X}"


@dataclass(frozen=True)
class AttributeReport:
    endpoint: int
    cluster_id: int
    attribute_id: int
    value: Any
    timestamp: Optional[float] = None

    @property
    def key(self) -> AttributeKey:
        return AttributeKey(self.cluster_id, self.attribute_id)


def unwrap(value: Any) -> Any:
    """Strip zigpy TypeValue wrappers."""
    if hasattr(value, 'value') and not isinstance(value, (int, float, str, bytes)):
        return value.value
    return value


# ============================================================
# HANDLER VARIANTS
# ============================================================

class AttributeHandler:
    """Handles one kind of attribute report. Must be idempotent."""

    def handle(self, device: 'ZigbeeDevice', report: AttributeReport) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return self.__class__.__name__


class ValueForwarder(AttributeHandler):
    """
    Converts the raw value into a capability event and emits it on the
    component of the report's endpoint (or a fixed component).
    """

    def __init__(self, convert: Callable[[Any], Optional[CapabilityEvent]], component: Optional[str] = None):
        self.convert = convert
        self.component = component

    def handle(self, device, report):
        if report.value is None:
            return
        event = self.convert(report.value)
        if event is None:
            return
        component = self.component or device.router.component_for(report.endpoint)
        device.mapper.emit(component, event)


class ScaledValueForwarder(AttributeHandler):
    """Applies the device's learned scale factor before forwarding."""

    def __init__(self, quantity: Quantity, factory: Callable[[float], CapabilityEvent], component: str = "main"):
        self.quantity = quantity
        self.factory = factory
        self.component = component

    def handle(self, device, report):
        scaled = device.scale_fields.scale(report.value, self.quantity)
        if scaled is None:
            device.log.debug(f"Non-numeric {self.quantity.value} value {report.value!r} ignored")
            return
        device.mapper.emit(self.component, self.factory(scaled))

    def __repr__(self) -> str:
        return f"ScaledValueForwarder({self.quantity.value})"


class ScaleFieldUpdater(AttributeHandler):
    """Stores a reported multiplier or divisor. Emits nothing."""

    MULTIPLIER = "multiplier"
    DIVISOR = "divisor"

    def __init__(self, quantity: Quantity, part: str):
        if part not in (self.MULTIPLIER, self.DIVISOR):
            raise ValueError(f"Unknown scale part {part!r}")
        self.quantity = quantity
        self.part = part

    def handle(self, device, report):
        if report.value is None:
            return
        device.scale_fields.update(self.quantity, **{self.part: report.value})

    def __repr__(self) -> str:
        return f"ScaleFieldUpdater({self.quantity.value}.{self.part})"


class CompositeHandler(AttributeHandler):
    """Runs several handlers for the same attribute, in order."""

    def __init__(self, *handlers: AttributeHandler):
        self.handlers = list(handlers)

    def handle(self, device, report):
        for handler in self.handlers:
            handler.handle(device, report)

    def __repr__(self) -> str:
        return f"CompositeHandler({self.handlers})"


# ============================================================
# DECODER
# ============================================================

class AttributeDecoder:
    """Routes attribute reports to the handler registered for their key."""

    def __init__(self, handlers: Optional[Dict[AttributeKey, AttributeHandler]] = None):
        self._handlers: Dict[AttributeKey, AttributeHandler] = dict(handlers or {})

    def register(self, cluster_id: int, attribute_id: int, handler: AttributeHandler):
        key = AttributeKey(cluster_id, attribute_id)
        existing = self._handlers.get(key)
        if existing is not None:
            handler = CompositeHandler(existing, handler)
        self._handlers[key] = handler
        return handler

    def handler_for(self, cluster_id: int, attribute_id: int) -> Optional[AttributeHandler]:
        return self._handlers.get(AttributeKey(cluster_id, attribute_id))

    def keys(self):
        return list(self._handlers)

    def dispatch(self, device: 'ZigbeeDevice', report: AttributeReport) -> bool:
        """Returns True if a handler ran to completion."""
        handler = self._handlers.get(report.key)
        if handler is None:
            logger.debug(f"[{device.device_id}] No handler for {report.key} on EP{report.endpoint}, ignored")
            return False

        try:
            handler.handle(device, report)
            return True
        except Exception as e:
            logger.error(
                f"[{device.device_id}] {handler!r} failed for {report.key} "
                f"value={report.value!r}: {e}",
                exc_info=True,
            )
            return False


# ============================================================
# ZIGPY LISTENER INTERFACE
# ============================================================

class ClusterListener:
    """
    Subscribes to one zigpy cluster and turns its callbacks into
    AttributeReports for the owning device.
    """

    def __init__(self, device: 'ZigbeeDevice', cluster):
        self.device = device
        self.cluster = cluster
        self.endpoint_id = cluster.endpoint.endpoint_id
        self.cluster_id = cluster.cluster_id
        self.cluster.add_listener(self)
        logger.debug(
            f"[{device.device_id}] EP{self.endpoint_id} - listener registered for 0x{self.cluster_id:04X}"
        )

    def attribute_updated(self, attrid: int, value: Any, timestamp: Optional[float] = None):
        report = AttributeReport(
            endpoint=self.endpoint_id,
            cluster_id=self.cluster_id,
            attribute_id=attrid,
            value=unwrap(value),
            timestamp=timestamp,
        )
        self.device.handle_attribute_report(report)

    def cluster_command(self, tsn: int, command_id: int, args):
        self.device.handle_cluster_command(self.endpoint_id, self.cluster_id, command_id, args)

    def general_command(self, hdr, args):
        logger.debug(f"[{self.device.device_id}] general_command: hdr={hdr}, args={args}")

    def device_announce(self, *args, **kwargs):
        logger.debug(f"[{self.device.device_id}] device_announce")
