"""Run managers driving the simulation loop, and their factory."""

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Mapping, Optional

from .actions import ActionInitialization, UserActions
from .data_models import RunManagerState, EventSummary, RunSummary
from .geometry import DetectorConstruction
from ..physics.physics_list import GenericPhysicsList
from ..physics.transport import TransportEngine
from ..utils.config import resolve_thread_count
from ..utils.validation import ConfigurationError, RunManagerStateError
from ..utils.logging import get_logger


logger = get_logger()

# Build-time switch between the serial and the multi-worker run manager.
MULTITHREADED = True

WORKER_SPAWN_TIMEOUT_S = 30.0


class RunManager:
    """Serial run manager.

    Lifecycle: CREATED -> INITIALIZED -> RUNNING -> ... -> TERMINATED.
    User initializations are accepted only while CREATED; ``initialize``
    freezes them. ``beam_on`` returns to INITIALIZED when the run ends, so
    several runs can follow each other. Nothing is accepted once
    TERMINATED.

    Attributes:
        context: Run context of the process
        print_progress: Log every N-th event start (0 disables)
    """

    multithreaded = False

    def __init__(self, context):
        if context.random_engine is None:
            raise ConfigurationError("The random engine must be configured before the run manager is created")
        self.context = context
        self.print_progress = context.config.print_progress
        self._state = RunManagerState.CREATED
        self._detector: Optional[DetectorConstruction] = None
        self._physics_list: Optional[GenericPhysicsList] = None
        self._action_initialization: Optional[ActionInitialization] = None
        self._engine: Optional[TransportEngine] = None
        self._master_run_action = None
        self._worker_actions: List[UserActions] = []
        self._run_count = 0

    @property
    def state(self) -> RunManagerState:
        return self._state

    @property
    def number_of_threads(self) -> int:
        return 1

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def geometry(self):
        return self._engine.geometry if self._engine is not None else None

    @property
    def worker_actions(self) -> List[UserActions]:
        return list(self._worker_actions)

    @property
    def master_run_action(self):
        return self._master_run_action

    def _require(self, operation: str, *states: RunManagerState) -> None:
        if self._state is RunManagerState.TERMINATED:
            raise RunManagerStateError(f"Cannot {operation}: run manager has been terminated")
        if self._state not in states:
            allowed = ', '.join(s.value for s in states)
            raise RunManagerStateError(
                f"Cannot {operation} while run manager is {self._state.value} (requires {allowed})"
            )

    def set_user_initialization(self, initialization) -> None:
        """Register the detector construction, physics list or action initialization.

        Raises:
            RunManagerStateError: If the run manager is already initialized
            TypeError: If the object is none of the three kinds
        """
        self._require('set user initialization', RunManagerState.CREATED)
        if isinstance(initialization, DetectorConstruction):
            self._detector = initialization
        elif isinstance(initialization, GenericPhysicsList):
            self._physics_list = initialization
        elif isinstance(initialization, ActionInitialization):
            self._action_initialization = initialization
        else:
            raise TypeError(f"Unsupported user initialization: {type(initialization).__name__}")
        logger.debug(f"User initialization registered: {type(initialization).__name__}")

    def initialize(self) -> None:
        """Build geometry, physics and actions, then start the workers.

        Raises:
            RunManagerStateError: If called twice or before all user initializations are set
            ConfigurationError: If geometry or physics construction fails
        """
        self._require('initialize', RunManagerState.CREATED)
        missing = [
            name for name, value in (
                ('detector construction', self._detector),
                ('physics list', self._physics_list),
                ('action initialization', self._action_initialization),
            ) if value is None
        ]
        if missing:
            raise RunManagerStateError(f"Cannot initialize: missing {', '.join(missing)}")

        geometry = self._detector.construct()
        process_table = self._physics_list.construct_processes(self.context.config.cuts)
        if process_table.is_empty():
            raise ConfigurationError(f"{self._physics_list!r} registered no processes")
        self._engine = TransportEngine(geometry, process_table, self.context.config.cuts)

        self._master_run_action = self._action_initialization.build_for_master()
        self._worker_actions = [
            self._action_initialization.build(worker_id) for worker_id in range(self.number_of_threads)
        ]
        self._start_workers()

        self._state = RunManagerState.INITIALIZED
        logger.info(f"Run manager initialized ({self.number_of_threads} thread(s))")

    def beam_on(self, num_events: int) -> RunSummary:
        """Process ``num_events`` events and return the merged run totals.

        Raises:
            RunManagerStateError: If the run manager is not initialized
            ValueError: If ``num_events`` is negative
        """
        self._require('start a run', RunManagerState.INITIALIZED)
        if num_events < 0:
            raise ValueError(f"Number of events must be >= 0, got {num_events}")

        run_id = self._run_count
        self._run_count += 1
        summary = RunSummary(run_id=run_id, num_events_requested=num_events,
                             num_threads=self.number_of_threads)

        self._state = RunManagerState.RUNNING
        try:
            if self._master_run_action is not None:
                self._master_run_action.on_run_start(summary)
            for event_summary in self._process_events(run_id, num_events):
                summary.merge(event_summary)
            if self._master_run_action is not None:
                self._master_run_action.on_run_end(summary)
        finally:
            self._state = RunManagerState.INITIALIZED
        return summary

    def _process_events(self, run_id: int, num_events: int) -> List[EventSummary]:
        actions = self._worker_actions[0]
        return [self._process_event(actions, 0, run_id, event_id) for event_id in range(num_events)]

    def _process_event(self, actions: UserActions, worker_id: int, run_id: int,
                       event_id: int) -> EventSummary:
        if self.print_progress and event_id % self.print_progress == 0:
            logger.info(f"--> Event {event_id} starts.")
        rng = self.context.random_engine.event_generator(run_id, event_id)
        return self._engine.process_event(run_id, event_id, rng, actions, worker_id)

    def _start_workers(self) -> None:
        pass

    def _stop_workers(self) -> None:
        pass

    def terminate(self) -> None:
        """Stop the workers and release the run manager.

        Raises:
            RunManagerStateError: If already terminated or a run is in progress
        """
        if self._state is RunManagerState.TERMINATED:
            raise RunManagerStateError("Run manager has already been terminated")
        if self._state is RunManagerState.RUNNING:
            raise RunManagerStateError("Cannot terminate the run manager during a run")
        self._stop_workers()
        self._state = RunManagerState.TERMINATED
        self._engine = None
        self._worker_actions = []
        logger.info(f"Run manager terminated after {self._run_count} run(s)")

    def __enter__(self) -> 'RunManager':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._state is not RunManagerState.TERMINATED:
            self.terminate()


class MTRunManager(RunManager):
    """Run manager dispatching events to a fixed pool of worker threads.

    Each worker owns one UserActions bundle for its whole life. The pool
    size is fixed at construction.
    """

    multithreaded = True

    def __init__(self, context, number_of_threads: int):
        if number_of_threads < 1:
            raise ConfigurationError(f"Number of threads must be >= 1, got {number_of_threads}")
        super().__init__(context)
        self._number_of_threads = int(number_of_threads)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._bundles: 'queue.SimpleQueue' = queue.SimpleQueue()
        self._local = threading.local()

    @property
    def number_of_threads(self) -> int:
        return self._number_of_threads

    def _start_workers(self) -> None:
        for worker_id, actions in enumerate(self._worker_actions):
            self._bundles.put((worker_id, actions))
        self._executor = ThreadPoolExecutor(
            max_workers=self._number_of_threads,
            thread_name_prefix='G4WT',
            initializer=self._bind_worker,
        )
        # Hold every task at a barrier so the executor has to spawn the whole pool now.
        barrier = threading.Barrier(self._number_of_threads)
        spawns = [
            self._executor.submit(barrier.wait, WORKER_SPAWN_TIMEOUT_S)
            for _ in range(self._number_of_threads)
        ]
        for future in spawns:
            future.result()
        logger.debug(f"{self._number_of_threads} worker threads started")

    def _bind_worker(self) -> None:
        self._local.worker = self._bundles.get_nowait()

    def _run_on_worker(self, run_id: int, event_id: int) -> EventSummary:
        worker_id, actions = self._local.worker
        return self._process_event(actions, worker_id, run_id, event_id)

    def _process_events(self, run_id: int, num_events: int) -> List[EventSummary]:
        futures = [
            self._executor.submit(self._run_on_worker, run_id, event_id)
            for event_id in range(num_events)
        ]
        try:
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise

    def _stop_workers(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def create_run_manager(context, multithreaded: Optional[bool] = None,
                       environ: Optional[Mapping[str, str]] = None) -> RunManager:
    """Create the run manager selected by the build-time switch.

    Args:
        context: RunContext with the random engine already configured
        multithreaded: Multi-worker variant; None follows MULTITHREADED
        environ: Environment used to resolve the worker count (defaults to os.environ)

    Returns:
        RunManager or MTRunManager
    """
    if multithreaded is None:
        multithreaded = MULTITHREADED
    if multithreaded:
        pool = resolve_thread_count(environ, default=context.config.default_threads)
        run_manager = MTRunManager(context, pool.resolved)
        logger.info(f"DetectorLinac running in multithreaded mode with {pool.resolved} threads")
    else:
        run_manager = RunManager(context)
        logger.info("DetectorLinac running in serial mode")
    return run_manager
