"""Configuration management for linac simulation runs."""

import os
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Mapping, Optional, Tuple
from pathlib import Path

import yaml

from ..core.data_models import (
    RandomEngineType,
    RandomSeedPair,
    ThreadPoolConfig,
    DEFAULT_SEEDS,
)
from .logging import get_logger
from .validation import ConfigurationError


logger = get_logger()

THREAD_ENV_VAR = 'DICOM_NTHREADS'
DEFAULT_THREAD_COUNT = 4
DEFAULT_EDEP_LOG_PATH = './SteppingAction.txt'
DEFAULT_VIS_MACRO = 'vis.mac'
SUPPORTED_PARTICLES = ('gamma', 'e-', 'e+')


def parse_thread_count(raw: Optional[str], default: int = DEFAULT_THREAD_COUNT) -> int:
    """Parse a worker count, falling back to ``default`` on bad input.

    Numeric strings are converted through float and truncated, so ``"6"``
    and ``"6.0"`` both give 6. Absent, non-numeric, non-finite and
    non-positive values give ``default``.

    Args:
        raw: Raw value, usually taken from the environment
        default: Fallback worker count (must be >= 1)

    Returns:
        Resolved worker count (>= 1)
    """
    if default < 1:
        raise ValueError(f"default thread count must be >= 1, got {default}")
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    if value != value or value in (float('inf'), float('-inf')):
        return default
    count = int(value)
    return count if count > 0 else default


def resolve_thread_count(
    environ: Optional[Mapping[str, str]] = None,
    default: int = DEFAULT_THREAD_COUNT,
    variable: str = THREAD_ENV_VAR
) -> ThreadPoolConfig:
    """Resolve the worker count from the environment.

    Args:
        environ: Environment mapping (defaults to ``os.environ``)
        default: Fallback worker count
        variable: Name of the environment variable to read

    Returns:
        ThreadPoolConfig describing the requested and resolved counts
    """
    if environ is None:
        environ = os.environ
    raw = environ.get(variable)
    resolved = parse_thread_count(raw, default)

    if raw is not None and _is_positive_number(raw):
        source = 'environment'
    else:
        source = 'default'
        if raw is not None:
            logger.warning(f"Ignoring invalid {variable}={raw!r}; using {default} threads")

    return ThreadPoolConfig(requested=raw, resolved=resolved, source=source)


def _is_positive_number(raw: str) -> bool:
    try:
        return int(float(raw.strip())) > 0
    except (ValueError, OverflowError):
        return False


@dataclass
class GeometryConfig:
    """Voxelised phantom geometry.

    Attributes:
        dimensions: Number of voxels along x, y, z
        voxel_size_mm: Voxel edge lengths in mm
        phantom_material: Material filling the phantom
        world_material: Material of the leading air gap
        air_gap_voxels: Number of leading z slices filled with world material
        inserts: Slabs of other materials, each ``{'material', 'z_start', 'z_stop'}``
            in voxel indices (stop exclusive)
    """
    dimensions: Tuple[int, int, int] = (30, 30, 30)
    voxel_size_mm: Tuple[float, float, float] = (10.0, 10.0, 10.0)
    phantom_material: str = 'G4_WATER'
    world_material: str = 'G4_AIR'
    air_gap_voxels: int = 0
    inserts: List[Dict] = field(default_factory=list)

    def __post_init__(self):
        self.dimensions = tuple(int(n) for n in self.dimensions)
        self.voxel_size_mm = tuple(float(s) for s in self.voxel_size_mm)
        if len(self.dimensions) != 3 or len(self.voxel_size_mm) != 3:
            raise ConfigurationError("Geometry dimensions and voxel size must have 3 components")
        if any(n <= 0 for n in self.dimensions):
            raise ConfigurationError(f"Geometry dimensions must be positive, got {self.dimensions}")
        if any(s <= 0 for s in self.voxel_size_mm):
            raise ConfigurationError(f"Voxel size must be positive, got {self.voxel_size_mm}")

    @property
    def half_extent_mm(self) -> Tuple[float, float, float]:
        return tuple(n * s / 2.0 for n, s in zip(self.dimensions, self.voxel_size_mm))


@dataclass
class GunConfig:
    """Primary particle source.

    Attributes:
        particle: Particle name ('gamma', 'e-' or 'e+')
        energy_mev: Mean kinetic energy in MeV
        energy_sigma_mev: Gaussian energy spread in MeV
        position_mm: Source position in mm
        direction: Momentum direction (normalised on use)
        beam_sigma_mm: Gaussian transverse beam spread in mm
    """
    particle: str = 'gamma'
    energy_mev: float = 6.0
    energy_sigma_mev: float = 0.0
    position_mm: Tuple[float, float, float] = (0.0, 0.0, -149.0)
    direction: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    beam_sigma_mm: float = 1.0

    def __post_init__(self):
        self.position_mm = tuple(float(v) for v in self.position_mm)
        self.direction = tuple(float(v) for v in self.direction)
        if self.particle not in SUPPORTED_PARTICLES:
            raise ConfigurationError(
                f"Unsupported particle '{self.particle}', expected one of {SUPPORTED_PARTICLES}"
            )
        if self.energy_mev <= 0:
            raise ConfigurationError(f"energy_mev must be positive, got {self.energy_mev}")
        if self.energy_sigma_mev < 0 or self.beam_sigma_mm < 0:
            raise ConfigurationError("Energy and beam spreads must be non-negative")
        if all(v == 0.0 for v in self.direction):
            raise ConfigurationError("Gun direction must be a non-zero vector")


@dataclass
class CutsConfig:
    """Production and stepping limits.

    Attributes:
        energy_cut_mev: Particles below this energy deposit locally
        max_energy_loss_fraction: Largest fraction of kinetic energy lost in one charged step
        max_step_mm: Step limit applied by G4StepLimiterPhysics
    """
    energy_cut_mev: float = 0.01
    max_energy_loss_fraction: float = 0.2
    max_step_mm: float = 5.0

    def __post_init__(self):
        if self.energy_cut_mev <= 0:
            raise ConfigurationError(f"energy_cut_mev must be positive, got {self.energy_cut_mev}")
        if not 0 < self.max_energy_loss_fraction <= 1:
            raise ConfigurationError(
                f"max_energy_loss_fraction must be in (0, 1], got {self.max_energy_loss_fraction}"
            )
        if self.max_step_mm <= 0:
            raise ConfigurationError(f"max_step_mm must be positive, got {self.max_step_mm}")


@dataclass
class RunConfig:
    """Configuration for a linac simulation run.

    Attributes:
        random_seeds: The two fixed seeds of the random engine
        random_engine: Name of the numpy bit generator (see RandomEngineType)
        default_threads: Worker count used when DICOM_NTHREADS is unusable
        physics_modules: Ordered physics constructor names
        edep_log_path: Energy deposition log, truncated at start
        visualization: Create a visualization manager
        vis_macro: Macro executed before an interactive session when visualization is on
        print_progress: Log every N-th event start (0 disables)
        geometry: Phantom geometry
        gun: Primary source
        cuts: Production and stepping limits
    """
    random_seeds: Tuple[int, int] = (DEFAULT_SEEDS.primary, DEFAULT_SEEDS.secondary)
    random_engine: str = DEFAULT_SEEDS.engine.value
    default_threads: int = DEFAULT_THREAD_COUNT
    physics_modules: List[str] = field(default_factory=lambda: ['G4EmStandardPhysics'])
    edep_log_path: str = DEFAULT_EDEP_LOG_PATH
    visualization: bool = False
    vis_macro: str = DEFAULT_VIS_MACRO
    print_progress: int = 0
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    gun: GunConfig = field(default_factory=GunConfig)
    cuts: CutsConfig = field(default_factory=CutsConfig)

    def __post_init__(self):
        if isinstance(self.geometry, dict):
            self.geometry = GeometryConfig(**self.geometry)
        if isinstance(self.gun, dict):
            self.gun = GunConfig(**self.gun)
        if isinstance(self.cuts, dict):
            self.cuts = CutsConfig(**self.cuts)
        self._validate()

    def _validate(self) -> None:
        """Validate configuration parameters."""
        if len(self.random_seeds) != 2:
            raise ConfigurationError(f"random_seeds must hold two integers, got {self.random_seeds}")
        self.random_seeds = tuple(int(s) for s in self.random_seeds)
        if any(s < 0 for s in self.random_seeds):
            raise ConfigurationError("random_seeds must be non-negative")

        try:
            RandomEngineType(self.random_engine)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown random engine '{self.random_engine}', expected one of "
                f"{[t.value for t in RandomEngineType]}"
            ) from e

        if self.default_threads < 1:
            raise ConfigurationError(f"default_threads must be >= 1, got {self.default_threads}")

        if not self.physics_modules:
            raise ConfigurationError("physics_modules must name at least one module")
        self.physics_modules = list(self.physics_modules)

        if self.print_progress < 0:
            raise ConfigurationError(f"print_progress must be >= 0, got {self.print_progress}")

    @property
    def seed_pair(self) -> RandomSeedPair:
        return RandomSeedPair(
            primary=self.random_seeds[0],
            secondary=self.random_seeds[1],
            engine=RandomEngineType(self.random_engine)
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'RunConfig':
        """Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            RunConfig instance

        Raises:
            ConfigurationError: If the file cannot be read or holds invalid values
        """
        try:
            with open(yaml_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {yaml_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed configuration file {yaml_path}: {e}") from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration file {yaml_path} must contain a mapping")

        try:
            return cls(**config_dict)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration in {yaml_path}: {e}") from e

    def to_yaml(self, yaml_path: str) -> None:
        """Save configuration to YAML file.

        Args:
            yaml_path: Path to save YAML configuration
        """
        config_dict = asdict(self)
        config_dict['random_seeds'] = list(self.random_seeds)
        for section in ('geometry', 'gun'):
            for key, value in config_dict[section].items():
                if isinstance(value, tuple):
                    config_dict[section][key] = list(value)

        Path(yaml_path).parent.mkdir(parents=True, exist_ok=True)
        with open(yaml_path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
