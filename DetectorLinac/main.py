"""Process entry point: configure, dispatch the command mode and tear down."""

import argparse
import logging
import sys
from typing import Iterable, Mapping, Optional, TextIO

from .core.data_models import CommandMode
from .core.dispatcher import resolve_command_mode, dispatch
from .core.energy_log import EnergyDepositionLog
from .core.geometry import VoxelPhantomConstruction
from .core.actions import LinacActionInitialization
from .core.lifecycle import ResourceLifecycleManager
from .core.run_context import RunContext
from .core.run_manager import create_run_manager
from .core.session import CommandInterpreter, InteractiveSession
from .core.visualization import VisualizationManager
from .physics.physics_list import PhysicsListAssembler
from .utils.config import RunConfig, DEFAULT_EDEP_LOG_PATH
from .utils.logging import setup_logger
from .utils.validation import ConfigurationError, DetectorLinacError, UsageError, validate_config


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='detector-linac',
        description="Run the linac voxel phantom simulation, interactively or from a macro file"
    )
    parser.add_argument("scripts", nargs="*", metavar="script-path",
                        help="Macro file to execute in batch mode (interactive session if omitted)")
    parser.add_argument("--config", type=str, default=None, help="YAML run configuration")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level")
    parser.add_argument("--log-file", type=str, default=None, help="Also write the log to this file")
    return parser.parse_args(argv)


def run(config: RunConfig, mode: CommandMode, stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Set up the simulation, hand control to the command mode and tear down.

    The energy deposition log is opened first and closed last. The
    session, run manager and visualization manager are released in that
    order on every exit path.

    Args:
        config: Run configuration
        mode: Interactive or batch command mode
        stdin: Input stream of an interactive session (defaults to sys.stdin)
        stdout: Output stream of an interactive session (defaults to sys.stdout)
        environ: Environment used to size the worker pool (defaults to os.environ)

    Returns:
        Process exit code

    Raises:
        DetectorLinacError: On configuration, state or command failures
    """
    validate_config(config)

    with EnergyDepositionLog(config.edep_log_path) as log:
        context = RunContext.create(config)

        with ResourceLifecycleManager() as lifecycle:
            run_manager = create_run_manager(context, environ=environ)
            lifecycle.adopt_run_manager(run_manager)

            run_manager.set_user_initialization(VoxelPhantomConstruction(config.geometry))
            run_manager.set_user_initialization(PhysicsListAssembler(config.physics_modules).assemble())
            run_manager.set_user_initialization(LinacActionInitialization(log, context.gun))
            run_manager.initialize()

            vis_manager = None
            if config.visualization:
                vis_manager = VisualizationManager()
                vis_manager.initialize()
                lifecycle.adopt_vis_manager(vis_manager)

            interpreter = CommandInterpreter(context, run_manager, context.gun, vis_manager)
            context.bind_interpreter(interpreter)

            dispatch(
                mode,
                interpreter,
                lifecycle,
                session_factory=lambda i: InteractiveSession(i, stdin=stdin, stdout=stdout),
                vis_macro=config.vis_macro,
            )

    return EXIT_SUCCESS


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    logger = setup_logger(
        level=logging.DEBUG if args.log_file else getattr(logging, args.log_level),
        log_file=args.log_file,
        console_level=getattr(logging, args.log_level),
    )

    # Truncate the log before anything else can fail
    try:
        try:
            config = RunConfig.from_yaml(args.config) if args.config else RunConfig()
        except ConfigurationError:
            EnergyDepositionLog.truncate(DEFAULT_EDEP_LOG_PATH)
            raise
        EnergyDepositionLog.truncate(config.edep_log_path)
        mode = resolve_command_mode(args.scripts)
        return run(config, mode)
    except UsageError as e:
        logger.error(f"Usage error: {e}")
        return EXIT_USAGE
    except DetectorLinacError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
