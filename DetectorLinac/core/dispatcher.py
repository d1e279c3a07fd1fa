"""Selection and dispatch of the command mode."""

from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from .data_models import CommandMode
from ..utils.validation import UsageError
from ..utils.logging import get_logger


logger = get_logger()


def resolve_command_mode(args: Sequence[str]) -> CommandMode:
    """Choose the command mode from the positional process arguments.

    Args:
        args: Positional arguments after the program name

    Returns:
        Interactive mode for no argument, batch mode for one script path

    Raises:
        UsageError: If more than one argument is given
    """
    args = list(args)
    if not args:
        return CommandMode.interactive()
    if len(args) == 1:
        return CommandMode.batch(args[0])
    raise UsageError(f"Expected at most one macro file, got {len(args)}: {' '.join(args)}")


def dispatch(mode: CommandMode, interpreter, lifecycle, session_factory: Callable,
             vis_macro: Optional[Union[str, Path]] = None) -> None:
    """Hand control to an interactive session or to a batch script.

    Interactive mode registers the session with the lifecycle manager,
    runs the visualization macro when a visualization manager exists and
    the macro is present, and blocks until the session ends. Batch mode
    executes exactly the given script.

    Args:
        mode: Command mode from resolve_command_mode
        interpreter: CommandInterpreter bound to the run context
        lifecycle: ResourceLifecycleManager owning the session
        session_factory: Callable building a session from the interpreter
        vis_macro: Visualization macro run before an interactive session

    Raises:
        MacroNotFoundError: If the batch script does not exist
        CommandError: If a batch command fails
    """
    if mode.is_interactive:
        session = session_factory(interpreter)
        lifecycle.adopt_session(session)
        if interpreter.vis_manager is not None and vis_macro is not None:
            if Path(vis_macro).is_file():
                interpreter.execute_macro(vis_macro)
            else:
                logger.warning(f"Visualization macro not found, skipping: {vis_macro}")
        session.session_start()
    else:
        logger.info(f"Batch mode: {mode.script}")
        interpreter.execute_macro(mode.script)
