"""
Tuya-specific datapoint handling for Zigbee devices.
Handles: the Tuya manufacturer cluster (0xEF00) datapoint list, both inbound
reports and outbound SET_DATA writes.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import capabilities
from capabilities import CapabilityEvent
from error_handler import MalformedDatapoint
from modules.endpoints import PRIMARY_COMPONENT

logger = logging.getLogger("handlers.tuya")

TUYA_CLUSTER_ID = 0xEF00

# Tuya DP command IDs
TUYA_SET_DATA = 0x00
TUYA_GET_DATA = 0x01
TUYA_SET_DATA_RESPONSE = 0x02
TUYA_ACTIVE_STATUS_REPORT = 0x06

DATA_COMMANDS = (TUYA_GET_DATA, TUYA_SET_DATA_RESPONSE, TUYA_ACTIVE_STATUS_REPORT)

# DP type identifiers
DP_TYPE_RAW = 0x00
DP_TYPE_BOOL = 0x01
DP_TYPE_VALUE = 0x02  # 4-byte integer
DP_TYPE_STRING = 0x03
DP_TYPE_ENUM = 0x04
DP_TYPE_BITMAP = 0x05

# Frame Control 0x15: cluster-specific, manufacturer specific, client to
# server, default response disabled
TUYA_FRAME_CONTROL = 0x15
NO_MANUFACTURER_ID = 0xFFFF

SEQUENCE_LEN = 2
RECORD_HEADER_LEN = 4


@dataclass(frozen=True)
class Datapoint:
    dp_id: int
    dp_type: int
    data: bytes

    def decode(self) -> Any:
        """Decode the raw bytes per the declared type tag."""
        data = self.data
        if self.dp_type == DP_TYPE_BOOL:
            if len(data) != 1:
                raise MalformedDatapoint(f"DP{self.dp_id}: bool needs 1 byte, got {len(data)}")
            return bool(data[0])
        if self.dp_type == DP_TYPE_VALUE:
            if len(data) != 4:
                raise MalformedDatapoint(f"DP{self.dp_id}: value needs 4 bytes, got {len(data)}")
            return int.from_bytes(data, 'big', signed=True)
        if self.dp_type == DP_TYPE_ENUM:
            if len(data) != 1:
                raise MalformedDatapoint(f"DP{self.dp_id}: enum needs 1 byte, got {len(data)}")
            return data[0]
        if self.dp_type == DP_TYPE_BITMAP:
            if len(data) not in (1, 2, 4):
                raise MalformedDatapoint(f"DP{self.dp_id}: bitmap needs 1/2/4 bytes, got {len(data)}")
            return int.from_bytes(data, 'big')
        if self.dp_type == DP_TYPE_STRING:
            return data.decode('utf-8', errors='ignore')
        if self.dp_type == DP_TYPE_RAW:
            return bytes(data)
        raise MalformedDatapoint(f"DP{self.dp_id}: unknown type 0x{self.dp_type:02x}")

    @classmethod
    def encode(cls, dp_id: int, dp_type: int, value: Any) -> 'Datapoint':
        if dp_type == DP_TYPE_BOOL:
            data = bytes([1 if value else 0])
        elif dp_type == DP_TYPE_VALUE:
            data = int(value).to_bytes(4, 'big', signed=True)
        elif dp_type == DP_TYPE_ENUM:
            data = bytes([int(value)])
        elif dp_type == DP_TYPE_STRING:
            data = str(value).encode('utf-8')
        elif dp_type == DP_TYPE_BITMAP:
            data = int(value).to_bytes(4, 'big')
        else:
            data = bytes(value) if isinstance(value, (list, tuple, bytes, bytearray)) else bytes([value])
        return cls(dp_id, dp_type, data)

    def serialize(self) -> bytes:
        return bytes([
            self.dp_id,
            self.dp_type,
            (len(self.data) >> 8) & 0xFF,
            len(self.data) & 0xFF,
        ]) + self.data


# ============================================================
# DATAPOINT DEFINITIONS
# ============================================================

class DatapointKind:
    SWITCH = "switch"
    CURRENT = "current"
    POWER = "power"
    VOLTAGE = "voltage"
    ENERGY = "energy"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    BATTERY = "battery"


# kind -> (numerator, default rate)
RATE_RULES: Dict[str, Tuple[int, int]] = {
    DatapointKind.CURRENT: (10, 10000),
    DatapointKind.POWER: (100, 1000),
    DatapointKind.VOLTAGE: (100, 1000),
    DatapointKind.ENERGY: (10, 10000),
    DatapointKind.TEMPERATURE: (1, 10),
    DatapointKind.HUMIDITY: (1, 1),
}

EVENT_FACTORIES = {
    DatapointKind.CURRENT: capabilities.current,
    DatapointKind.POWER: capabilities.power,
    DatapointKind.VOLTAGE: capabilities.voltage,
    DatapointKind.ENERGY: capabilities.energy,
    DatapointKind.TEMPERATURE: capabilities.temperature,
    DatapointKind.HUMIDITY: capabilities.humidity,
}


@dataclass(frozen=True)
class DatapointDefinition:
    dp_id: int
    kind: str
    group: str = PRIMARY_COMPONENT
    rate: Optional[int] = None

    @property
    def write_type(self) -> int:
        return DP_TYPE_BOOL if self.kind == DatapointKind.SWITCH else DP_TYPE_VALUE

    def convert(self, value: Any) -> CapabilityEvent:
        if self.kind == DatapointKind.SWITCH:
            return capabilities.switch_from_value(value)

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedDatapoint(f"DP{self.dp_id}: {self.kind} needs a number, got {value!r}")

        if self.kind == DatapointKind.BATTERY:
            return capabilities.battery(max(0, min(100, int(value))))

        numerator, default_rate = RATE_RULES[self.kind]
        rate = self.rate or default_rate
        return EVENT_FACTORIES[self.kind]((numerator * value) / rate)


# ============================================================
# PAYLOAD PARSING
# ============================================================

def parse_payload(payload: bytes) -> List[Datapoint]:
    """
    Walk a datapoint list: [seq_hi, seq_lo] then records of
    [dp_id, dp_type, len_hi, len_lo, ...data...].
    """
    datapoints = []
    offset = SEQUENCE_LEN

    while offset + RECORD_HEADER_LEN <= len(payload):
        dp_id = payload[offset]
        dp_type = payload[offset + 1]
        dp_len = (payload[offset + 2] << 8) | payload[offset + 3]
        start = offset + RECORD_HEADER_LEN

        if start + dp_len > len(payload):
            logger.warning(
                f"DP{dp_id} declares {dp_len} bytes but only {len(payload) - start} remain, "
                f"stopping at offset {offset}"
            )
            break

        datapoints.append(Datapoint(dp_id, dp_type, bytes(payload[start:start + dp_len])))
        offset = start + dp_len

    if offset < len(payload) and offset + RECORD_HEADER_LEN > len(payload):
        logger.debug(f"Ignoring {len(payload) - offset} trailing byte(s) in Tuya payload")

    return datapoints


def strip_zcl_header(message: bytes) -> Optional[Tuple[int, bytes]]:
    """Returns (command_id, payload) of a raw ZCL frame, or None if too short."""
    if len(message) < 3:
        return None

    fc = message[0]
    # Manufacturer Specific bit (0x04) adds a 2-byte manufacturer code
    header_len = 5 if fc & 0x04 else 3
    if len(message) < header_len:
        return None
    return message[header_len - 1], bytes(message[header_len:])


def encode_set_data(seq: int, dp_id: int, dp_type: int, value: Any) -> bytes:
    """SET_DATA payload: 2-byte sequence number then one datapoint record."""
    seq &= 0xFFFF
    return bytes([(seq >> 8) & 0xFF, seq & 0xFF]) + Datapoint.encode(dp_id, dp_type, value).serialize()


def build_set_data_frame(seq: int, dp_id: int, dp_type: int, value: Any) -> bytes:
    """Complete manufacturer-specific ZCL frame carrying a SET_DATA command."""
    zcl_seq = seq & 0xFF
    header = bytes([
        TUYA_FRAME_CONTROL,
        NO_MANUFACTURER_ID & 0xFF,
        (NO_MANUFACTURER_ID >> 8) & 0xFF,
        zcl_seq,
        TUYA_SET_DATA,
    ])
    return header + encode_set_data(seq, dp_id, dp_type, value)


# ============================================================
# TUYA MANUFACTURER CLUSTER (0xEF00)
# ============================================================

class TuyaDatapointDecoder:
    """
    Decodes datapoint lists for one model's definition table and routes the
    resulting events by definition group.
    """

    def __init__(self, definitions: Iterable[DatapointDefinition]):
        self.definitions: Dict[int, DatapointDefinition] = {d.dp_id: d for d in definitions}

    def __bool__(self) -> bool:
        return bool(self.definitions)

    def definition_for_switch(self, component: str) -> Optional[DatapointDefinition]:
        for definition in self.definitions.values():
            if definition.kind == DatapointKind.SWITCH and definition.group == component:
                return definition
        return None

    def process(self, device, datapoints: Iterable[Datapoint]) -> List[Tuple[str, CapabilityEvent]]:
        """Sequential; an unknown or malformed datapoint never blocks its siblings."""
        emitted = []
        for dp in datapoints:
            definition = self.definitions.get(dp.dp_id)
            if definition is None:
                device.log.debug(f"Unknown DP{dp.dp_id} (type {dp.dp_type}), skipped")
                continue

            try:
                event = definition.convert(dp.decode())
            except MalformedDatapoint as e:
                device.log.warning(f"Malformed datapoint skipped: {e}")
                continue

            device.log.debug(f"DP{dp.dp_id}: {definition.kind} -> {event}")
            if definition.kind == DatapointKind.SWITCH:
                endpoint = device.router.endpoint_for(definition.group)
                component = device.emit_switch_event(endpoint, event)
            elif definition.kind == DatapointKind.BATTERY:
                if device.mapper.emit_battery_percent(definition.group, event.value) is None:
                    continue
                component = device.mapper.resolve_component(definition.group)
            else:
                component = device.mapper.emit(definition.group, event)
            emitted.append((component, event))
        return emitted

    def handle_frame(self, device, command_id: int, payload: bytes) -> List[Tuple[str, CapabilityEvent]]:
        if command_id not in DATA_COMMANDS:
            device.log.debug(f"Tuya command 0x{command_id:02x} ignored")
            return []
        return self.process(device, parse_payload(payload))

    def handle_raw_data(self, device, message: bytes) -> List[Tuple[str, CapabilityEvent]]:
        """Handle a raw ZCL frame received on the Tuya cluster."""
        stripped = strip_zcl_header(message)
        if stripped is None:
            return []
        command_id, payload = stripped
        return self.handle_frame(device, command_id, payload)
