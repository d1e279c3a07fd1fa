"""Core run management components."""

from .data_models import (
    RandomEngineType,
    RandomSeedPair,
    DEFAULT_SEEDS,
    ThreadPoolConfig,
    CommandMode,
    CommandModeKind,
    RunManagerState,
    GeometryData,
    Track,
    Event,
    Step,
    StepRecord,
    EventSummary,
    RunSummary
)
from .random_engine import RandomEngine, RandomEngineConfigurator
from .run_context import RunContext
from .energy_log import EnergyDepositionLog
from .geometry import DetectorConstruction, VoxelPhantomConstruction
from .actions import (
    UserActions,
    ActionInitialization,
    LinacActionInitialization,
    PrimaryGeneratorAction,
    UserTrackingAction,
    UserSteppingAction,
    UserEventAction,
    UserRunAction
)
from .run_manager import RunManager, MTRunManager, create_run_manager, MULTITHREADED
from .visualization import VisualizationManager
from .session import CommandInterpreter, InteractiveSession
from .dispatcher import resolve_command_mode, dispatch
from .lifecycle import ResourceLifecycleManager

__all__ = [
    'RandomEngineType',
    'RandomSeedPair',
    'DEFAULT_SEEDS',
    'ThreadPoolConfig',
    'CommandMode',
    'CommandModeKind',
    'RunManagerState',
    'GeometryData',
    'Track',
    'Event',
    'Step',
    'StepRecord',
    'EventSummary',
    'RunSummary',
    'RandomEngine',
    'RandomEngineConfigurator',
    'RunContext',
    'EnergyDepositionLog',
    'DetectorConstruction',
    'VoxelPhantomConstruction',
    'UserActions',
    'ActionInitialization',
    'LinacActionInitialization',
    'PrimaryGeneratorAction',
    'UserTrackingAction',
    'UserSteppingAction',
    'UserEventAction',
    'UserRunAction',
    'RunManager',
    'MTRunManager',
    'create_run_manager',
    'MULTITHREADED',
    'VisualizationManager',
    'CommandInterpreter',
    'InteractiveSession',
    'resolve_command_mode',
    'dispatch',
    'ResourceLifecycleManager'
]
