"""Error types and validation utilities for run configuration."""

from pathlib import Path
from typing import Union

from .logging import get_logger


logger = get_logger()


class DetectorLinacError(Exception):
    """Base exception for all driver errors."""
    pass


class ConfigurationError(DetectorLinacError):
    """Raised when the run configuration is invalid.

    Configuration errors are fatal: no run is started.
    """
    pass


class UnknownPhysicsModuleError(ConfigurationError):
    """Raised when a physics list names an unregistered module."""
    pass


class GeometryError(ConfigurationError):
    """Raised when the detector geometry is malformed."""
    pass


class UsageError(ConfigurationError):
    """Raised when the process arguments are not understood."""
    pass


class RunManagerStateError(DetectorLinacError):
    """Raised when a run manager operation is issued in the wrong state."""
    pass


class CommandError(DetectorLinacError):
    """Raised when a control command cannot be applied."""
    pass


class MacroNotFoundError(CommandError):
    """Raised when a command script does not exist or cannot be read."""
    pass


class ResourceLifecycleError(DetectorLinacError):
    """Raised when a process-scope resource is adopted or released twice."""
    pass


def validate_macro_path(path: Union[str, Path]) -> Path:
    """Validate that a command script exists and is a readable file.

    Args:
        path: Path to the script

    Returns:
        Resolved Path object

    Raises:
        MacroNotFoundError: If the script is missing or not a regular file
    """
    try:
        path_obj = Path(path).expanduser().resolve()
    except (ValueError, OSError) as e:
        raise MacroNotFoundError(f"Invalid macro path: {path}") from e

    if not path_obj.exists():
        raise MacroNotFoundError(f"Macro file not found: {path}")
    if not path_obj.is_file():
        raise MacroNotFoundError(f"Macro path is not a file: {path}")

    return path_obj


def validate_config(config) -> None:
    """Validate run configuration beyond the dataclass checks.

    Args:
        config: RunConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from ..physics.physics_list import PHYSICS_CONSTRUCTORS

    unknown = [name for name in config.physics_modules if name not in PHYSICS_CONSTRUCTORS]
    if unknown:
        raise UnknownPhysicsModuleError(
            f"Unknown physics module(s): {', '.join(unknown)}. "
            f"Available: {', '.join(sorted(PHYSICS_CONSTRUCTORS))}"
        )

    log_parent = Path(config.edep_log_path).parent
    if not log_parent.exists():
        raise ConfigurationError(
            f"Directory for energy deposition log does not exist: {log_parent}"
        )

    if config.visualization and not Path(config.vis_macro).exists():
        logger.warning(f"Visualization macro not found: {config.vis_macro}")

    logger.debug("Configuration validation passed")
