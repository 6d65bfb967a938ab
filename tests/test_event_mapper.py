import logging

import pytest

import capabilities
from modules.event_mapper import (
    CapabilityEventMapper,
    battery_voltage_to_percent,
    round_half_up,
    values_equal,
)
from tests.conftest import FakePlatformDevice


@pytest.fixture
def device():
    return FakePlatformDevice()


@pytest.fixture
def mapper(device):
    return CapabilityEventMapper(device, ("main", "l2", "l3"))


def test_events_always_emitted(mapper, device):
    mapper.emit("main", capabilities.power(10.0))
    mapper.emit("main", capabilities.power(10.0))
    assert device.values("powerMeter") == [("main", 10.0), ("main", 10.0)]


def test_unknown_component_goes_to_main(mapper, device):
    assert mapper.emit("l7", capabilities.switch(True)) == "main"
    assert device.component_events[0][0] == "main"


def test_value_change_logged_only_on_change(mapper, caplog):
    with caplog.at_level(logging.INFO, logger="modules.event_mapper"):
        mapper.emit("l2", capabilities.switch(True))
        mapper.emit("l2", capabilities.switch(True))
        mapper.emit("l2", capabilities.switch(False))
    changes = [r for r in caplog.records if "Value changed" in r.getMessage()]
    assert len(changes) == 2
    assert "switch.switch=off" in changes[1].getMessage()


def test_values_equal_falls_back_to_string_form():
    assert values_equal(1, 1)
    assert values_equal(1.0, "1.0")
    assert not values_equal(None, "None")
    assert not values_equal(1, 2)


def test_battery_voltage_curve():
    assert battery_voltage_to_percent(1500) == 0
    assert battery_voltage_to_percent(2800) == 100
    assert battery_voltage_to_percent(2150) == 50
    assert battery_voltage_to_percent(3100) == 100
    assert battery_voltage_to_percent(1200) == 0
    assert round_half_up(2.5) == 3


def test_voltage_suppresses_raw_percentage(mapper, device):
    mapper.emit_battery_from_percentage("main", 180)
    assert device.values("battery") == [("main", 90)]

    mapper.emit_battery_from_voltage("main", 2800)
    assert mapper.emit_battery_from_percentage("main", 50) is None
    assert device.values("battery") == [("main", 90), ("main", 100)]
