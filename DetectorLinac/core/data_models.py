"""Core data models for the linac simulation driver."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import numpy as np
import torch


class RandomEngineType(Enum):
    """numpy bit generators selectable as the process random engine."""
    PCG64 = 'PCG64'
    MT19937 = 'MT19937'
    PHILOX = 'Philox'
    SFC64 = 'SFC64'

    @property
    def bit_generator(self) -> type:
        return getattr(np.random, self.value)


@dataclass(frozen=True)
class RandomSeedPair:
    """Two independent seeds plus the engine they drive.

    Attributes:
        primary: First seed
        secondary: Second seed
        engine: Bit generator selector
    """
    primary: int
    secondary: int
    engine: RandomEngineType = RandomEngineType.MT19937

    @property
    def entropy(self) -> Tuple[int, int]:
        return (self.primary, self.secondary)


DEFAULT_SEEDS = RandomSeedPair(
    primary=534524575674523,
    secondary=526345623452457,
    engine=RandomEngineType.MT19937
)


@dataclass(frozen=True)
class ThreadPoolConfig:
    """Resolved worker pool size.

    Attributes:
        requested: Raw value of the override variable, None when unset
        resolved: Worker count in use (>= 1)
        source: 'environment' or 'default'
    """
    requested: Optional[str]
    resolved: int
    source: str = 'default'


class CommandModeKind(Enum):
    INTERACTIVE = 'interactive'
    BATCH = 'batch'


@dataclass(frozen=True)
class CommandMode:
    """How the process hands control to the command interpreter.

    Attributes:
        kind: Interactive session or single batch script
        script: Script path for batch mode
    """
    kind: CommandModeKind
    script: Optional[Path] = None

    @classmethod
    def interactive(cls) -> 'CommandMode':
        return cls(kind=CommandModeKind.INTERACTIVE)

    @classmethod
    def batch(cls, script) -> 'CommandMode':
        return cls(kind=CommandModeKind.BATCH, script=Path(script))

    @property
    def is_interactive(self) -> bool:
        return self.kind is CommandModeKind.INTERACTIVE


class RunManagerState(Enum):
    CREATED = 'created'
    INITIALIZED = 'initialized'
    RUNNING = 'running'
    TERMINATED = 'terminated'


@dataclass
class GeometryData:
    """Voxelised detector model.

    Attributes:
        material_map: Tensor of material IDs [X, Y, Z]
        density_map: Tensor of densities in g/cm³ [X, Y, Z]
        voxel_size: Voxel dimensions in mm (dx, dy, dz)
        dimensions: Grid dimensions (nx, ny, nz)
        origin: Position of the grid corner in mm
        material_names: Material name for each material ID
    """
    material_map: torch.Tensor
    density_map: torch.Tensor
    voxel_size: Tuple[float, float, float]
    dimensions: Tuple[int, int, int]
    origin: Tuple[float, float, float]
    material_names: List[str]

    def locate(self, position: np.ndarray) -> Optional[Tuple[int, int, int]]:
        """Return the voxel index containing ``position``, or None if outside."""
        index = []
        for axis in range(3):
            i = int(np.floor((position[axis] - self.origin[axis]) / self.voxel_size[axis]))
            if i < 0 or i >= self.dimensions[axis]:
                return None
            index.append(i)
        return tuple(index)


@dataclass
class Track:
    """A particle being transported.

    Attributes:
        track_id: Identifier unique within the event (primaries start at 1)
        parent_id: Identifier of the creating track (0 for primaries)
        particle: Particle name
        kinetic_energy: Kinetic energy in MeV
        position: Position in mm [3]
        direction: Unit momentum direction [3]
        creator_process: Process that created the track
        step_number: Number of steps taken so far
        alive: False once the track has stopped or left the world
        user_info: Free slot for user actions
    """
    track_id: int
    parent_id: int
    particle: str
    kinetic_energy: float
    position: np.ndarray
    direction: np.ndarray
    creator_process: str = 'primary'
    step_number: int = 0
    alive: bool = True
    user_info: Dict = field(default_factory=dict)


@dataclass
class Event:
    """Identity and running totals of the event being processed."""
    run_id: int
    event_id: int
    worker_id: int = 0
    num_tracks: int = 0
    num_steps: int = 0
    total_edep: float = 0.0


@dataclass
class Step:
    """A single transport step.

    Attributes:
        event: Owning event
        track: Track after the step
        pre_position: Position before the step in mm
        post_position: Position after the step in mm
        length: Step length in mm
        energy_deposit: Energy deposited along the step in MeV
        material: Material of the pre-step voxel
        process: Name of the process that limited the step
    """
    event: Event
    track: Track
    pre_position: np.ndarray
    post_position: np.ndarray
    length: float
    energy_deposit: float
    material: str
    process: str


@dataclass(frozen=True)
class StepRecord:
    """One line of the energy deposition log."""
    run_id: int
    event_id: int
    track_id: int
    parent_id: int
    particle: str
    step_number: int
    x: float
    y: float
    z: float
    kinetic_energy: float
    energy_deposit: float
    step_length: float
    material: str
    process: str

    @classmethod
    def from_step(cls, step: Step) -> 'StepRecord':
        track = step.track
        return cls(
            run_id=step.event.run_id,
            event_id=step.event.event_id,
            track_id=track.track_id,
            parent_id=track.parent_id,
            particle=track.particle,
            step_number=track.step_number,
            x=float(step.post_position[0]),
            y=float(step.post_position[1]),
            z=float(step.post_position[2]),
            kinetic_energy=float(track.kinetic_energy),
            energy_deposit=float(step.energy_deposit),
            step_length=float(step.length),
            material=step.material,
            process=step.process
        )

    def to_line(self) -> str:
        return (
            f"{self.run_id} {self.event_id} {self.track_id} {self.parent_id} "
            f"{self.particle} {self.step_number} "
            f"{self.x:.6e} {self.y:.6e} {self.z:.6e} "
            f"{self.kinetic_energy:.6e} {self.energy_deposit:.6e} {self.step_length:.6e} "
            f"{self.material} {self.process}"
        )


@dataclass(frozen=True)
class EventSummary:
    """Totals of one processed event."""
    run_id: int
    event_id: int
    num_tracks: int
    num_steps: int
    total_edep: float


@dataclass
class RunSummary:
    """Totals of one beamOn, merged on the master thread."""
    run_id: int
    num_events_requested: int
    num_threads: int = 1
    num_events: int = 0
    num_tracks: int = 0
    num_steps: int = 0
    total_edep: float = 0.0

    def merge(self, event: EventSummary) -> None:
        self.num_events += 1
        self.num_tracks += event.num_tracks
        self.num_steps += event.num_steps
        self.total_edep += event.total_edep
