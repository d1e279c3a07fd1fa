"""Tests for the run managers and their factory."""

import threading

import pytest

from DetectorLinac.core import run_manager as run_manager_module
from DetectorLinac.core.actions import (
    ActionInitialization,
    LinacActionInitialization,
    PrimaryGeneratorAction,
    UserActions,
)
from DetectorLinac.core.data_models import RunManagerState
from DetectorLinac.core.energy_log import EnergyDepositionLog
from DetectorLinac.core.geometry import VoxelPhantomConstruction
from DetectorLinac.core.run_context import RunContext
from DetectorLinac.core.run_manager import RunManager, MTRunManager, create_run_manager
from DetectorLinac.physics.physics_list import PhysicsListAssembler
from DetectorLinac.utils.config import RunConfig, THREAD_ENV_VAR
from DetectorLinac.utils.validation import ConfigurationError, RunManagerStateError


def test_factory_serial(context, caplog):
    with caplog.at_level("INFO", logger="detector_linac"):
        manager = create_run_manager(context, multithreaded=False)
    assert type(manager) is RunManager
    assert manager.number_of_threads == 1
    assert "DetectorLinac running in serial mode" in caplog.text


def test_factory_sizes_pool_from_environment(context, caplog):
    with caplog.at_level("INFO", logger="detector_linac"):
        manager = create_run_manager(context, multithreaded=True, environ={THREAD_ENV_VAR: "6"})
    assert isinstance(manager, MTRunManager)
    assert manager.number_of_threads == 6
    assert "DetectorLinac running in multithreaded mode with 6 threads" in caplog.text


@pytest.mark.parametrize("raw", ["0", "abc", None])
def test_factory_falls_back_to_default_threads(context, raw):
    environ = {} if raw is None else {THREAD_ENV_VAR: raw}
    manager = create_run_manager(context, multithreaded=True, environ=environ)
    assert manager.number_of_threads == context.config.default_threads


def test_factory_follows_module_switch(context, monkeypatch):
    monkeypatch.setattr(run_manager_module, "MULTITHREADED", False)
    assert type(create_run_manager(context)) is RunManager


def test_thread_count_is_read_only(context):
    manager = MTRunManager(context, 3)
    with pytest.raises(AttributeError):
        manager.number_of_threads = 5


def test_run_manager_requires_random_engine():
    with pytest.raises(ConfigurationError, match="random engine"):
        RunManager(RunContext(RunConfig()))


def test_initialize_requires_all_user_initializations(context, small_config):
    manager = RunManager(context)
    manager.set_user_initialization(VoxelPhantomConstruction(small_config.geometry))
    with pytest.raises(RunManagerStateError, match="physics list, action initialization"):
        manager.initialize()
    assert manager.state is RunManagerState.CREATED


def test_set_user_initialization_rejects_unknown_type(context):
    with pytest.raises(TypeError):
        RunManager(context).set_user_initialization("not an initialization")


def test_beam_on_before_initialize_rejected(context):
    with pytest.raises(RunManagerStateError, match="created"):
        RunManager(context).beam_on(1)


def test_initialization_locked_after_initialize(context, small_config, register):
    manager = register(RunManager(context))
    manager.initialize()
    assert manager.state is RunManagerState.INITIALIZED
    with pytest.raises(RunManagerStateError):
        manager.set_user_initialization(VoxelPhantomConstruction(small_config.geometry))
    with pytest.raises(RunManagerStateError):
        manager.initialize()
    manager.terminate()


def test_runs_return_to_initialized(context, register):
    manager = register(RunManager(context))
    manager.initialize()
    first = manager.beam_on(3)
    second = manager.beam_on(2)
    assert (first.run_id, second.run_id) == (0, 1)
    assert (first.num_events, second.num_events) == (3, 2)
    assert manager.state is RunManagerState.INITIALIZED
    assert [run.run_id for run in manager.master_run_action.completed_runs] == [0, 1]
    manager.terminate()


def test_terminate_rejects_everything_afterwards(context, register):
    manager = register(RunManager(context))
    manager.initialize()
    manager.terminate()
    assert manager.state is RunManagerState.TERMINATED
    with pytest.raises(RunManagerStateError, match="terminated"):
        manager.beam_on(1)
    with pytest.raises(RunManagerStateError, match="terminated"):
        manager.initialize()
    with pytest.raises(RunManagerStateError, match="terminated"):
        manager.set_user_initialization(object())
    with pytest.raises(RunManagerStateError, match="already been terminated"):
        manager.terminate()


def test_negative_event_count_rejected(context, register):
    with register(RunManager(context)) as manager:
        manager.initialize()
        with pytest.raises(ValueError):
            manager.beam_on(-1)
        assert manager.state is RunManagerState.INITIALIZED


def test_context_manager_terminates(context, register):
    with register(MTRunManager(context, 2)) as manager:
        manager.initialize()
    assert manager.state is RunManagerState.TERMINATED


def test_print_progress_logs_event_starts(context, register, caplog):
    manager = register(RunManager(context))
    manager.initialize()
    manager.print_progress = 2
    with caplog.at_level("INFO", logger="detector_linac"):
        manager.beam_on(5)
    manager.terminate()
    starts = [r.getMessage() for r in caplog.records if "starts." in r.getMessage()]
    assert starts == ["--> Event 0 starts.", "--> Event 2 starts.", "--> Event 4 starts."]


class _ThreadRecorder(ActionInitialization):
    def __init__(self):
        self.built = []
        self.threads = set()
        self.lock = threading.Lock()

    def build(self, worker_id):
        self.built.append(worker_id)
        recorder = self

        class Source(PrimaryGeneratorAction):
            def generate_primaries(self, event, rng):
                with recorder.lock:
                    recorder.threads.add((worker_id, threading.current_thread().name))
                return []

        return UserActions(primary_generator=Source())


def test_each_worker_owns_one_bundle(context, small_config):
    actions = _ThreadRecorder()
    manager = MTRunManager(context, 3)
    manager.set_user_initialization(VoxelPhantomConstruction(small_config.geometry))
    manager.set_user_initialization(PhysicsListAssembler().assemble())
    manager.set_user_initialization(actions)
    manager.initialize()
    summary = manager.beam_on(60)
    manager.terminate()

    assert actions.built == [0, 1, 2]
    assert summary.num_events == 60
    assert summary.num_threads == 3
    # A bundle is only ever used by one thread, and each thread by one bundle
    assert len({w for w, _ in actions.threads}) == len(actions.threads)
    assert len({t for _, t in actions.threads}) == len(actions.threads)
    assert all(name.startswith("G4WT") for _, name in actions.threads)


def _simulate(config, threads, num_events=12):
    """Run one process worth of simulation and return the log content."""
    context = RunContext.create(config)
    manager = RunManager(context) if threads == 1 else MTRunManager(context, threads)
    with EnergyDepositionLog(config.edep_log_path) as log:
        manager.set_user_initialization(VoxelPhantomConstruction(config.geometry))
        manager.set_user_initialization(PhysicsListAssembler(config.physics_modules).assemble())
        manager.set_user_initialization(LinacActionInitialization(log, context.gun))
        manager.initialize()
        summary = manager.beam_on(num_events)
        manager.terminate()
    with open(config.edep_log_path) as f:
        return f.read(), summary


def test_serial_runs_are_reproducible(small_config):
    first, first_summary = _simulate(small_config, 1)
    second, second_summary = _simulate(small_config, 1)
    assert first
    assert first == second
    assert first_summary == second_summary


@pytest.mark.parametrize("threads", [2, 4])
def test_multithreaded_log_matches_serial(small_config, threads):
    serial, serial_summary = _simulate(small_config, 1)
    threaded, threaded_summary = _simulate(small_config, threads)
    assert threaded == serial
    assert threaded_summary.total_edep == serial_summary.total_edep
    assert threaded_summary.num_steps == serial_summary.num_steps


def test_different_seeds_give_different_logs(small_config):
    baseline, _ = _simulate(small_config, 1)
    small_config.random_seeds = (1, 2)
    other, _ = _simulate(small_config, 1)
    assert baseline != other


def test_log_holds_one_record_per_simulated_step(small_config):
    context = RunContext.create(small_config)
    manager = MTRunManager(context, 3)
    with EnergyDepositionLog(small_config.edep_log_path) as log:
        manager.set_user_initialization(VoxelPhantomConstruction(small_config.geometry))
        manager.set_user_initialization(PhysicsListAssembler(small_config.physics_modules).assemble())
        manager.set_user_initialization(LinacActionInitialization(log, context.gun))
        manager.initialize()
        summaries = [manager.beam_on(n) for n in (7, 0, 5)]
        manager.terminate()

    with open(small_config.edep_log_path) as f:
        lines = f.read().splitlines()
    num_steps = sum(summary.num_steps for summary in summaries)
    assert num_steps > 0
    assert len(lines) == num_steps == log.records_written
    assert [sum(1 for line in lines if line.split()[0] == str(s.run_id)) for s in summaries] == \
        [s.num_steps for s in summaries]
