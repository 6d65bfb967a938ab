import pytest

from modules.child_devices import CHILD_SWITCH_PREF, ChildDeviceRegistry
from tests.conftest import FakePlatformDevice, FakePlatformDriver, LegacyPlatformDevice


def make_registry(driver):
    return ChildDeviceRegistry(driver, (2, 3), "wp30-eu-plug-child-switch")


@pytest.fixture
def parent():
    return FakePlatformDevice(id="plug-1", label="Desk", preferences={CHILD_SWITCH_PREF: True})


def test_creates_one_child_per_endpoint(parent):
    driver = FakePlatformDriver()
    registry = make_registry(driver)

    assert registry.ensure_children(parent) == 2
    labels = [d["label"] for d in driver.descriptors]
    keys = [d["parent_assigned_child_key"] for d in driver.descriptors]
    assert labels == ["Desk L2", "Desk L3"]
    assert keys == ["02", "03"]
    descriptor = driver.descriptors[0]
    assert descriptor["type"] == "EDGE_CHILD"
    assert descriptor["profile"] == "wp30-eu-plug-child-switch"
    assert descriptor["parent_device_id"] == "plug-1"


def test_ensure_children_is_idempotent_before_host_creates_them(parent):
    driver = FakePlatformDriver()
    registry = make_registry(driver)
    registry.ensure_children(parent)
    assert registry.ensure_children(parent) == 0
    assert len(driver.descriptors) == 2


def test_existing_children_are_not_recreated(parent):
    driver = FakePlatformDriver(materialize=True)
    driver.parents[parent.id] = parent
    make_registry(driver).ensure_children(parent)

    # A fresh registry (driver restart) finds the children on the host
    assert make_registry(driver).ensure_children(parent) == 0
    assert len(driver.descriptors) == 2
    assert make_registry(driver).child_for(parent, 3).label == "Desk L3"


def test_preference_must_be_exactly_true():
    driver = FakePlatformDriver()
    registry = make_registry(driver)
    for value in (None, False, "true", 1):
        device = FakePlatformDevice(preferences={CHILD_SWITCH_PREF: value})
        assert registry.ensure_children(device) == 0
    assert driver.descriptors == []


def test_child_device_never_creates_children(parent):
    driver = FakePlatformDriver()
    child = FakePlatformDevice(parent=parent, parent_assigned_child_key="02",
                               preferences={CHILD_SWITCH_PREF: True})
    assert make_registry(driver).ensure_children(child) == 0


def test_legacy_host_is_a_no_op(caplog):
    driver = FakePlatformDriver()
    device = LegacyPlatformDevice(preferences={CHILD_SWITCH_PREF: True})
    with caplog.at_level("INFO"):
        assert make_registry(driver).ensure_children(device) == 0
    assert driver.descriptors == []
    assert "newer hub firmware" in caplog.text


def test_creation_failure_is_skipped_and_retried_later(parent):
    driver = FakePlatformDriver(error=RuntimeError("busy"))
    registry = make_registry(driver)
    assert registry.ensure_children(parent) == 0

    driver.error = None
    assert registry.ensure_children(parent) == 2


def test_explicit_false_result_counts_as_failure(parent):
    driver = FakePlatformDriver(result=False)
    registry = make_registry(driver)
    assert registry.ensure_children(parent) == 0
    assert len(driver.descriptors) == 2
