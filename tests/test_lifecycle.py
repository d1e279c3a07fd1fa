"""Tests for the ordered release of process-scope resources."""

import pytest

from DetectorLinac.core.data_models import RunManagerState
from DetectorLinac.core.lifecycle import ResourceLifecycleManager
from DetectorLinac.core.run_manager import MTRunManager
from DetectorLinac.core.visualization import VisualizationManager
from DetectorLinac.utils.validation import ResourceLifecycleError


class Resource:
    def __init__(self, name, calls, fail=False):
        self.name = name
        self.calls = calls
        self.fail = fail

    def close(self):
        self._release()

    def terminate(self):
        self._release()

    def _release(self):
        self.calls.append(self.name)
        if self.fail:
            raise RuntimeError(f"{self.name} failed")


def _adopt_all(lifecycle, calls, failing=()):
    lifecycle.adopt_vis_manager(Resource("vis", calls, "vis" in failing))
    lifecycle.adopt_run_manager(Resource("run_manager", calls, "run_manager" in failing))
    lifecycle.adopt_session(Resource("session", calls, "session" in failing))


def test_release_order_regardless_of_adoption_order():
    calls = []
    lifecycle = ResourceLifecycleManager()
    _adopt_all(lifecycle, calls)
    lifecycle.release_all()
    assert calls == ["session", "run_manager", "vis"]
    assert lifecycle.released == ["session", "run_manager", "vis_manager"]


def test_release_happens_once():
    calls = []
    lifecycle = ResourceLifecycleManager()
    _adopt_all(lifecycle, calls)
    lifecycle.release_all()
    lifecycle.release_all()
    assert calls == ["session", "run_manager", "vis"]
    assert lifecycle.is_released


def test_release_continues_after_failure_and_reraises_first():
    calls = []
    lifecycle = ResourceLifecycleManager()
    _adopt_all(lifecycle, calls, failing=("session", "vis"))
    with pytest.raises(RuntimeError, match="session failed"):
        lifecycle.release_all()
    assert calls == ["session", "run_manager", "vis"]


def test_context_manager_releases_on_error():
    calls = []
    with pytest.raises(KeyError):
        with ResourceLifecycleManager() as lifecycle:
            _adopt_all(lifecycle, calls, failing=("run_manager",))
            raise KeyError("boom")
    assert calls == ["session", "run_manager", "vis"]


def test_context_manager_raises_release_error_on_clean_exit():
    calls = []
    with pytest.raises(RuntimeError, match="run_manager failed"):
        with ResourceLifecycleManager() as lifecycle:
            _adopt_all(lifecycle, calls, failing=("run_manager",))


def test_partial_adoption():
    calls = []
    lifecycle = ResourceLifecycleManager()
    lifecycle.adopt_run_manager(Resource("run_manager", calls))
    lifecycle.release_all()
    assert calls == ["run_manager"]


def test_double_adoption_rejected():
    lifecycle = ResourceLifecycleManager()
    lifecycle.adopt_session(Resource("session", []))
    with pytest.raises(ResourceLifecycleError, match="already been adopted"):
        lifecycle.adopt_session(Resource("session", []))


def test_adoption_after_release_rejected():
    lifecycle = ResourceLifecycleManager()
    lifecycle.release_all()
    with pytest.raises(ResourceLifecycleError, match="released"):
        lifecycle.adopt_run_manager(Resource("run_manager", []))


def test_releases_real_resources(context, register):
    manager = register(MTRunManager(context, 2))
    manager.initialize()
    vis = VisualizationManager()
    vis.initialize()
    with ResourceLifecycleManager() as lifecycle:
        lifecycle.adopt_run_manager(manager)
        lifecycle.adopt_vis_manager(vis)
    assert manager.state is RunManagerState.TERMINATED
