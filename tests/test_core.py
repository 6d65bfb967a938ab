from unittest.mock import MagicMock

import pytest

import capabilities
from core import DriverService
from handlers.general import CMD_ON, ONOFF_CLUSTER
from handlers.tuya import DP_TYPE_VALUE, TUYA_CLUSTER_ID
from modules.child_devices import CHILD_SWITCH_PREF
from profiles import TUYA_DP_PLUG, TUYA_TEMP_HUMIDITY_SENSOR, WP30_EU_PLUG
from tests.conftest import FakePlatformDevice, RecordingTransport, settle
from transport import FrameKind


@pytest.fixture
def service(platform_driver, settings, manual_sleep):
    return DriverService(platform_driver, WP30_EU_PLUG, settings=settings, sleep=manual_sleep)


def test_child_lifecycle_is_skipped(service, platform_device):
    child = FakePlatformDevice(id="child", parent=platform_device, parent_assigned_child_key="02")
    assert service.register_device(child, transport=RecordingTransport()) is None
    assert service.handle_lifecycle("init", child) is None
    assert service.devices == {}


async def test_child_command_goes_to_parent_endpoint(service, platform_device, transport):
    service.register_device(platform_device, transport=transport)
    platform_device.preferences[CHILD_SWITCH_PREF] = True
    service.handle_lifecycle("infoChanged", platform_device, old_prefs={})
    child = platform_device.children["03"]

    assert service.handle_capability_command(child, capabilities.SWITCH, "on")
    commands = transport.of_kind(FrameKind.COMMAND)
    assert [(f.endpoint, f.cluster_id, f.attribute_or_command) for f in commands] == [(3, ONOFF_CLUSTER, CMD_ON)]

    await service.handle_lifecycle("removed", platform_device)


async def test_component_command_on_parent(service, platform_device, transport):
    service.register_device(platform_device, transport=transport)
    service.handle_capability_command(platform_device, capabilities.SWITCH, "off", component="l2")
    assert transport.of_kind(FrameKind.COMMAND)[0].endpoint == 2
    await service.handle_lifecycle("removed", platform_device)


def test_refresh_command(service, platform_device, transport):
    service.register_device(platform_device, transport=transport)
    assert service.handle_capability_command(platform_device, capabilities.REFRESH, "refresh")
    assert transport.reads()


def test_unknown_command_and_device(service, platform_device, transport):
    assert not service.handle_capability_command(platform_device, capabilities.SWITCH, "on")
    service.register_device(platform_device, transport=transport)
    assert not service.handle_capability_command(platform_device, "colorControl", "setHue")


async def test_lifecycle_dispatch_and_removal(service, platform_device, transport, manual_sleep):
    service.register_device(platform_device, transport=transport)
    service.handle_lifecycle("init", platform_device)
    await settle()
    device = service.devices["plug-1"]
    assert device.poller.running

    await service.handle_lifecycle("removed", platform_device)
    await settle()
    assert "plug-1" not in service.devices
    assert not device.poller.running
    assert service.handle_lifecycle("init", platform_device) is None


def test_register_attaches_zigpy_listeners(service, platform_device):
    zigpy_dev = MagicMock()
    zigpy_dev.ieee = "aa:bb:cc:dd:ee:ff:00:11"

    onoff = MagicMock(cluster_id=ONOFF_CLUSTER)
    onoff.endpoint.endpoint_id = 1
    color = MagicMock(cluster_id=0x0300)
    color.endpoint.endpoint_id = 1
    endpoint = MagicMock()
    endpoint.in_clusters = {ONOFF_CLUSTER: onoff, 0x0300: color}
    zdo = MagicMock()
    zigpy_dev.endpoints = {0: zdo, 1: endpoint}

    device = service.register_device(platform_device, zigpy_dev, transport=RecordingTransport())
    onoff.add_listener.assert_called_once()
    color.add_listener.assert_not_called()
    assert service.device_for_ieee("aa:bb:cc:dd:ee:ff:00:11") is device


def test_handle_message_routes_tuya_frames(platform_driver, settings, platform_device):
    service = DriverService(platform_driver, TUYA_DP_PLUG, settings=settings)
    zigpy_dev = MagicMock()
    zigpy_dev.ieee = "00:11"
    zigpy_dev.endpoints = {}
    service.register_device(platform_device, zigpy_dev, transport=RecordingTransport())

    power = bytes([19, DP_TYPE_VALUE, 0, 4, 0, 0, 0x03, 0xE8])
    message = bytes([0x09, 0x01, 0x02, 0x00, 0x01]) + power
    service.handle_message(zigpy_dev, 0x0104, TUYA_CLUSTER_ID, 1, 1, message)
    service.handle_message(zigpy_dev, 0x0104, ONOFF_CLUSTER, 1, 1, message)

    assert platform_device.values("powerMeter") == [("main", 100.0)]


def test_tuya_frames_have_a_single_intake(platform_driver, settings, platform_device):
    service = DriverService(platform_driver, TUYA_TEMP_HUMIDITY_SENSOR, settings=settings)
    zigpy_dev = MagicMock()
    zigpy_dev.ieee = "00:22"

    temperature = MagicMock(cluster_id=0x0402)
    temperature.endpoint.endpoint_id = 1
    tuya = MagicMock(cluster_id=TUYA_CLUSTER_ID)
    tuya.endpoint.endpoint_id = 1
    endpoint = MagicMock()
    endpoint.in_clusters = {0x0402: temperature, TUYA_CLUSTER_ID: tuya}
    zigpy_dev.endpoints = {1: endpoint}

    device = service.register_device(platform_device, zigpy_dev, transport=RecordingTransport())
    temperature.add_listener.assert_called_once()
    tuya.add_listener.assert_not_called()

    record = bytes([1, DP_TYPE_VALUE, 0, 4, 0, 0, 0, 0xD7])
    message = bytes([0x09, 0x01, 0x02, 0x00, 0x01]) + record
    service.handle_message(zigpy_dev, 0x0104, TUYA_CLUSTER_ID, 1, 1, message)
    device.handle_cluster_command(1, TUYA_CLUSTER_ID, 0x02, [message[3:]])

    assert platform_device.values("temperatureMeasurement") == [("main", 21.5)]
