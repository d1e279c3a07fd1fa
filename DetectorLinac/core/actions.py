"""User action hooks and the action initialization bundle."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional
import numpy as np

from .data_models import Event, Track, Step, StepRecord, RunSummary
from .energy_log import EnergyDepositionLog
from ..utils.config import GunConfig
from ..utils.logging import get_logger


logger = get_logger()


class UserTrackingAction:
    """Per-track hooks. Called on the worker that owns the track."""

    def on_track_start(self, track: Track) -> None:
        pass

    def on_track_end(self, track: Track) -> None:
        pass


class UserSteppingAction:
    """Per-step hook. Called on the worker that owns the track."""

    def on_step(self, step: Step) -> None:
        pass


class UserEventAction:
    """Per-event hooks. Called on the worker processing the event."""

    def on_event_start(self, event: Event) -> None:
        pass

    def on_event_end(self, event: Event) -> None:
        pass


class UserRunAction:
    """Per-run hooks. Called on the master thread."""

    def on_run_start(self, run: RunSummary) -> None:
        pass

    def on_run_end(self, run: RunSummary) -> None:
        pass


class PrimaryGeneratorAction:
    """Produces the primary tracks of an event."""

    def generate_primaries(self, event: Event, rng: np.random.Generator) -> List[Track]:
        raise NotImplementedError


@dataclass
class UserActions:
    """Actions owned by one worker.

    Attributes:
        primary_generator: Source of primary tracks
        tracking: Per-track hooks
        stepping: Per-step hook
        event: Per-event hooks
    """
    primary_generator: PrimaryGeneratorAction
    tracking: UserTrackingAction = field(default_factory=UserTrackingAction)
    stepping: UserSteppingAction = field(default_factory=UserSteppingAction)
    event: UserEventAction = field(default_factory=UserEventAction)


class ActionInitialization:
    """Builds the user actions.

    ``build`` is called once for every worker at run manager
    initialization, ``build_for_master`` once for the master thread.
    """

    def build(self, worker_id: int) -> UserActions:
        raise NotImplementedError

    def build_for_master(self) -> Optional[UserRunAction]:
        return None


class GunPrimaryGenerator(PrimaryGeneratorAction):
    """Single-particle gun with Gaussian beam and energy spread.

    Reads the shared GunConfig at every event, so /gun/ commands issued
    between runs take effect on the next run.
    """

    def __init__(self, gun: GunConfig):
        self.gun = gun

    def generate_primaries(self, event, rng):
        gun = self.gun
        position = np.array(gun.position_mm, dtype=float)
        if gun.beam_sigma_mm > 0.0:
            position[:2] += rng.normal(0.0, gun.beam_sigma_mm, size=2)
        energy = gun.energy_mev
        if gun.energy_sigma_mev > 0.0:
            energy = max(rng.normal(gun.energy_mev, gun.energy_sigma_mev), 1e-6)
        direction = np.array(gun.direction, dtype=float)
        direction /= np.linalg.norm(direction)
        return [Track(
            track_id=1,
            parent_id=0,
            particle=gun.particle,
            kinetic_energy=float(energy),
            position=position,
            direction=direction,
        )]


class TrackingAction(UserTrackingAction):
    """Counts tracks per particle type and records where each track started."""

    def __init__(self):
        self.track_counts: Counter = Counter()

    def on_track_start(self, track):
        self.track_counts[track.particle] += 1
        track.user_info['vertex'] = track.position.copy()
        track.user_info['vertex_energy'] = track.kinetic_energy

    def on_track_end(self, track):
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Track {track.track_id} ({track.particle}, parent {track.parent_id}) "
                f"ended after {track.step_number} steps"
            )


class SteppingAction(UserSteppingAction):
    """Collects one StepRecord per step and hands them to the log per event.

    Attributes:
        log: Shared energy deposition log
    """

    def __init__(self, log: EnergyDepositionLog):
        self.log = log
        self._records: List[StepRecord] = []

    def begin_event(self, event: Event) -> None:
        self._records = []

    def on_step(self, step):
        self._records.append(StepRecord.from_step(step))

    def end_event(self, event: Event) -> None:
        records, self._records = self._records, []
        self.log.write_event(event.run_id, event.event_id, records)


class EventAction(UserEventAction):
    """Brackets the stepping action buffer and keeps per-worker totals."""

    def __init__(self, stepping: SteppingAction):
        self.stepping = stepping
        self.events_processed = 0
        self.total_edep = 0.0

    def on_event_start(self, event):
        self.stepping.begin_event(event)

    def on_event_end(self, event):
        self.stepping.end_event(event)
        self.events_processed += 1
        self.total_edep += event.total_edep


class RunAction(UserRunAction):
    """Reports run totals and flushes the log at the end of each run.

    Attributes:
        completed_runs: Summaries of all finished runs
    """

    def __init__(self, log: Optional[EnergyDepositionLog] = None):
        self.log = log
        self.completed_runs: List[RunSummary] = []

    def on_run_start(self, run):
        logger.info(
            f"### Run {run.run_id} starts: {run.num_events_requested} events "
            f"on {run.num_threads} thread(s)"
        )

    def on_run_end(self, run):
        self.completed_runs.append(run)
        if self.log is not None:
            self.log.flush()
        logger.info(
            f"### Run {run.run_id} ended: {run.num_events} events, {run.num_tracks} tracks, "
            f"{run.num_steps} steps, total energy deposit {run.total_edep:.6g} MeV"
        )


class LinacActionInitialization(ActionInitialization):
    """Standard actions of the linac driver.

    Attributes:
        log: Energy deposition log shared by all workers
        gun: Primary source settings shared by all workers
    """

    def __init__(self, log: EnergyDepositionLog, gun: GunConfig):
        self.log = log
        self.gun = gun

    def build(self, worker_id: int) -> UserActions:
        stepping = SteppingAction(self.log)
        return UserActions(
            primary_generator=GunPrimaryGenerator(self.gun),
            tracking=TrackingAction(),
            stepping=stepping,
            event=EventAction(stepping),
        )

    def build_for_master(self) -> UserRunAction:
        return RunAction(self.log)
