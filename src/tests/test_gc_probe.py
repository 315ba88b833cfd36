import gc

import pytest
from unittest.mock import Mock

from skylight.common.gc_probe import GCProbe, GCWindow


@pytest.fixture
def probe():
    probe = GCProbe()
    yield probe
    probe.disable()


def test_enable_and_disable_register_callback(probe):
    probe.enable()
    probe.enable()
    assert gc.callbacks.count(probe._callback) == 1
    assert probe.enabled

    probe.disable()
    assert probe._callback not in gc.callbacks
    assert not probe.enabled


def test_accumulates_collection_time(probe, mocker):
    mocker.patch(
        "skylight.common.gc_probe.time.perf_counter", side_effect=[1.0, 1.5, 2.0, 2.25]
    )

    probe._callback("start", {"generation": 0})
    probe._callback("stop", {"generation": 0})
    probe._callback("start", {"generation": 2})
    probe._callback("stop", {"generation": 2})

    assert probe.total_time() == pytest.approx(0.75)

    probe.clear()
    assert probe.total_time() == 0.0


def test_stop_without_start_is_ignored(probe):
    probe._callback("stop", {"generation": 0})
    assert probe.total_time() == 0.0


def test_real_collection_is_measured(probe):
    probe.enable()
    gc.collect()
    assert probe.total_time() > 0.0


def test_window_subtracts_baseline():
    probe = Mock(spec=GCProbe)
    probe.total_time.side_effect = [2.0, 2.5]

    assert GCWindow(probe).elapsed() == pytest.approx(0.5)


def test_window_never_negative():
    probe = Mock(spec=GCProbe)
    probe.total_time.side_effect = [2.0, 0.0]

    assert GCWindow(probe).elapsed() == 0.0
