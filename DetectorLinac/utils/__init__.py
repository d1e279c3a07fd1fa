"""Utility modules for configuration, logging, and validation."""

from .config import (
    RunConfig,
    GeometryConfig,
    GunConfig,
    CutsConfig,
    parse_thread_count,
    resolve_thread_count,
)
from .logging import setup_logger, get_logger, set_verbosity
from .validation import (
    DetectorLinacError,
    ConfigurationError,
    UnknownPhysicsModuleError,
    GeometryError,
    UsageError,
    RunManagerStateError,
    CommandError,
    MacroNotFoundError,
    ResourceLifecycleError,
    validate_config,
    validate_macro_path,
)

__all__ = [
    'RunConfig',
    'GeometryConfig',
    'GunConfig',
    'CutsConfig',
    'parse_thread_count',
    'resolve_thread_count',
    'setup_logger',
    'get_logger',
    'set_verbosity',
    'DetectorLinacError',
    'ConfigurationError',
    'UnknownPhysicsModuleError',
    'GeometryError',
    'UsageError',
    'RunManagerStateError',
    'CommandError',
    'MacroNotFoundError',
    'ResourceLifecycleError',
    'validate_config',
    'validate_macro_path',
]
