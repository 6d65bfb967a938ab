import asyncio

import pytest

from handlers.general import ATTR_MOES_STARTUP_ON_OFF, ONOFF_CLUSTER
from handlers.power import ELECTRICAL_MEASUREMENT, METERING
from modules.reporting import (
    TUYA_MAGIC_ATTRIBUTES,
    PollScheduler,
    ReportingConfigurator,
    call_later,
)
from profiles import TUYA_TEMP_HUMIDITY_SENSOR, WP30_EU_PLUG
from tests.conftest import settle
from transport import FrameKind


@pytest.fixture
def configurator(transport):
    return ReportingConfigurator(WP30_EU_PLUG, transport.send_frame, "plug-1")


def test_refresh_reads_every_tracked_attribute(configurator, transport):
    configurator.refresh()
    reads = transport.reads()
    assert (1, ONOFF_CLUSTER, (0x0000,)) in reads
    assert (3, ONOFF_CLUSTER, (0x0000,)) in reads
    assert (1, ELECTRICAL_MEASUREMENT, (0x050B, 0x0505, 0x0508)) in reads
    assert (1, METERING, (0x0000,)) in reads
    assert (1, ONOFF_CLUSTER, (ATTR_MOES_STARTUP_ON_OFF,)) in reads


def test_configure_binds_reports_and_learns_scale(configurator, transport):
    configurator.configure()

    magic = transport.frames[0]
    assert magic.kind == FrameKind.READ
    assert tuple(magic.attribute_or_command) == TUYA_MAGIC_ATTRIBUTES

    binds = [(f.endpoint, f.cluster_id) for f in transport.of_kind(FrameKind.BIND)]
    assert binds == [(1, ONOFF_CLUSTER), (2, ONOFF_CLUSTER), (3, ONOFF_CLUSTER),
                     (1, ELECTRICAL_MEASUREMENT), (1, METERING)]

    reporting = {(f.endpoint, f.cluster_id, f.attribute_or_command):
                 (f.payload.min_interval, f.payload.max_interval)
                 for f in transport.of_kind(FrameKind.CONFIGURE_REPORTING)}
    assert reporting[(2, ONOFF_CLUSTER, 0x0000)] == (0, 600)
    assert reporting[(1, ELECTRICAL_MEASUREMENT, 0x050B)] == (5, 300)
    assert reporting[(1, METERING, 0x0000)] == (30, 900)

    assert (1, ELECTRICAL_MEASUREMENT, (0x0600, 0x0601, 0x0602, 0x0603, 0x0604, 0x0605)) in transport.reads()
    assert (1, METERING, (0x0301, 0x0302)) in transport.reads()


def test_sensor_has_no_magic_switch_or_power_on_reads(transport):
    profile = TUYA_TEMP_HUMIDITY_SENSOR
    ReportingConfigurator(profile, transport.send_frame).refresh()
    clusters = {cluster for _, cluster, _ in transport.reads()}
    assert clusters == {0x0402, 0x0405, 0x0001}


async def test_poll_is_single_flight(manual_sleep):
    calls = []
    poller = PollScheduler(60, lambda: calls.append("poll"), sleep=manual_sleep)

    assert poller.start() is True
    assert poller.start() is False
    await settle()
    assert poller.running
    assert manual_sleep.pending == 1

    await manual_sleep.release()
    await manual_sleep.release()
    assert calls == ["poll", "poll"]
    assert manual_sleep.pending == 1

    poller.stop()
    await settle()
    assert poller.state == PollScheduler.IDLE


async def test_poll_survives_failing_action(manual_sleep):
    calls = []

    def action():
        calls.append(1)
        raise RuntimeError("radio busy")

    poller = PollScheduler(60, action, sleep=manual_sleep)
    poller.start()
    await settle()
    await manual_sleep.release()
    await manual_sleep.release()
    assert len(calls) == 2
    assert poller.running
    poller.stop()


async def test_restart_after_stop(manual_sleep):
    poller = PollScheduler(60, lambda: None, sleep=manual_sleep)
    poller.start()
    poller.stop()
    await settle()
    assert poller.start() is True
    poller.stop()


async def test_call_later_runs_once(manual_sleep):
    calls = []
    task = call_later(1, lambda: calls.append("done"), sleep=manual_sleep)
    await settle()
    assert calls == []
    await manual_sleep.release(1)
    assert calls == ["done"]
    assert task.done()


async def test_call_later_cancel():
    calls = []
    task = call_later(10, lambda: calls.append("late"))
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert calls == []
