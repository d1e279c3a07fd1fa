"""Physics list assembly from named physics constructors."""

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from .constants import STANDARD_LOW_ENERGY_LIMIT_MEV, LIVERMORE_LOW_ENERGY_LIMIT_MEV
from .processes import (
    Process,
    DiscreteProcess,
    PhotoElectricEffect,
    ComptonScattering,
    GammaConversion,
    ElectronIonisation,
    MultipleScattering,
    PositronAnnihilation,
    StepLimiter,
)
from ..utils.validation import UnknownPhysicsModuleError
from ..utils.logging import get_logger


logger = get_logger()

PARTICLES = ('gamma', 'e-', 'e+')
CHARGED_PARTICLES = ('e-', 'e+')

PHYSICS_CONSTRUCTORS: Dict[str, Type['PhysicsConstructor']] = {}


def register_physics(name: str):
    """Class decorator adding a physics constructor to the registry."""
    def decorator(cls):
        if name in PHYSICS_CONSTRUCTORS:
            raise ValueError(f"Physics constructor '{name}' is already registered")
        cls.physics_name = name
        PHYSICS_CONSTRUCTORS[name] = cls
        return cls
    return decorator


class ProcessTable:
    """Processes attached to each particle type.

    The first process registered under a given name for a particle is kept;
    later registrations of the same name are ignored, so physics modules
    appended to a list cannot override earlier ones.
    """

    def __init__(self):
        self._processes: Dict[str, 'OrderedDict[str, Process]'] = {
            particle: OrderedDict() for particle in PARTICLES
        }

    def register(self, particle: str, process: Process, owner: str = '') -> bool:
        """Attach ``process`` to ``particle``.

        Returns:
            True if the process was added, False if the name was already taken
        """
        processes = self._processes[particle]
        if process.name in processes:
            logger.debug(
                f"{owner or 'physics'}: process '{process.name}' for {particle} "
                f"already registered, keeping {processes[process.name]!r}"
            )
            return False
        processes[process.name] = process
        return True

    def get(self, particle: str, name: str) -> Optional[Process]:
        return self._processes.get(particle, {}).get(name)

    def process_names(self, particle: str) -> List[str]:
        return list(self._processes[particle])

    def discrete(self, particle: str) -> List[DiscreteProcess]:
        return [p for p in self._processes[particle].values() if isinstance(p, DiscreteProcess)]

    def is_empty(self) -> bool:
        return not any(self._processes.values())


class PhysicsConstructor:
    """Base class of named physics modules."""

    physics_name = ''

    def construct_processes(self, table: ProcessTable, cuts) -> None:
        raise NotImplementedError


class _ElectromagneticPhysics(PhysicsConstructor):
    low_energy_limit = STANDARD_LOW_ENERGY_LIMIT_MEV

    def construct_processes(self, table: ProcessTable, cuts) -> None:
        limit = self.low_energy_limit
        for process in (PhotoElectricEffect(limit), ComptonScattering(limit), GammaConversion(limit)):
            table.register('gamma', process, self.physics_name)
        for particle in CHARGED_PARTICLES:
            table.register(particle, MultipleScattering(limit), self.physics_name)
            table.register(particle, ElectronIonisation(limit), self.physics_name)
        table.register('e+', PositronAnnihilation(limit), self.physics_name)


@register_physics('G4EmStandardPhysics')
class EmStandardPhysics(_ElectromagneticPhysics):
    """Standard electromagnetic physics."""
    low_energy_limit = STANDARD_LOW_ENERGY_LIMIT_MEV


@register_physics('G4EmLivermorePhysics')
class EmLivermorePhysics(_ElectromagneticPhysics):
    """Electromagnetic physics with models valid down to 250 eV."""
    low_energy_limit = LIVERMORE_LOW_ENERGY_LIMIT_MEV


@register_physics('G4StepLimiterPhysics')
class StepLimiterPhysics(PhysicsConstructor):
    """Limits charged-particle steps to ``cuts.max_step_mm``."""

    def construct_processes(self, table: ProcessTable, cuts) -> None:
        for particle in CHARGED_PARTICLES:
            table.register(particle, StepLimiter(cuts.max_step_mm), self.physics_name)


class GenericPhysicsList:
    """Ordered, immutable physics configuration.

    Names are resolved against the registry on construction; the process
    table itself is built when the run manager initializes.
    """

    def __init__(self, names: Sequence[str]):
        names = tuple(names)
        if not names:
            raise UnknownPhysicsModuleError("A physics list needs at least one physics module")
        unknown = [name for name in names if name not in PHYSICS_CONSTRUCTORS]
        if unknown:
            raise UnknownPhysicsModuleError(
                f"Unknown physics module(s): {', '.join(unknown)}. "
                f"Available: {', '.join(sorted(PHYSICS_CONSTRUCTORS))}"
            )
        self._names: Tuple[str, ...] = names
        self._constructors = tuple(PHYSICS_CONSTRUCTORS[name] for name in names)

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    def construct_processes(self, cuts) -> ProcessTable:
        """Build the process table, applying modules in list order."""
        table = ProcessTable()
        for constructor_cls in self._constructors:
            constructor_cls().construct_processes(table, cuts)
        for particle in PARTICLES:
            logger.debug(f"Processes for {particle}: {table.process_names(particle)}")
        return table

    def __repr__(self) -> str:
        return f"GenericPhysicsList({list(self._names)})"


class PhysicsListAssembler:
    """Collects physics module names in order and builds the physics list.

    Attributes:
        names: Module names in insertion order
    """

    def __init__(self, names: Iterable[str] = ('G4EmStandardPhysics',)):
        self.names: List[str] = list(names)

    def append(self, name: str) -> 'PhysicsListAssembler':
        self.names.append(name)
        return self

    def assemble(self) -> GenericPhysicsList:
        """Build the physics list.

        Raises:
            UnknownPhysicsModuleError: If a name is not registered
        """
        physics_list = GenericPhysicsList(self.names)
        logger.info(f"Physics list assembled: {', '.join(physics_list.names)}")
        return physics_list
