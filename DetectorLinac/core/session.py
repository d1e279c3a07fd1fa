"""Macro command interpreter and interactive control session."""

import shlex
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, TextIO, Tuple, Union

from .data_models import RunManagerState
from ..physics.constants import ENERGY_UNITS, LENGTH_UNITS
from ..utils.config import SUPPORTED_PARTICLES
from ..utils.validation import CommandError, RunManagerStateError, validate_macro_path
from ..utils.logging import get_logger, set_verbosity


logger = get_logger()

MAX_MACRO_DEPTH = 16

EXIT_COMMANDS = ('exit', 'quit')


class CommandInterpreter:
    """Applies /control, /run, /gun and /vis commands.

    Commands are applied on the calling thread, one at a time. A command
    either completes or raises CommandError; /run/beamOn blocks until the
    run has ended.

    Attributes:
        context: Run context the interpreter is bound to
        run_manager: Run manager receiving /run/ commands
        gun: Primary source settings changed by /gun/ commands
        vis_manager: Visualization manager receiving /vis/ commands, if any
        history: Commands applied successfully, in order
    """

    def __init__(self, context, run_manager, gun, vis_manager=None):
        self.context = context
        self.run_manager = run_manager
        self.gun = gun
        self.vis_manager = vis_manager
        self.history: List[str] = []
        self.run_summaries = []
        self._macro_stack: List[Path] = []
        self._handlers: Dict[str, Callable[[List[str]], None]] = {
            '/control/execute': self._control_execute,
            '/control/verbose': self._control_verbose,
            '/control/echo': self._control_echo,
            '/run/initialize': self._run_initialize,
            '/run/beamOn': self._run_beam_on,
            '/run/printProgress': self._run_print_progress,
            '/gun/particle': self._gun_particle,
            '/gun/energy': self._gun_energy,
            '/gun/position': self._gun_position,
            '/gun/direction': self._gun_direction,
        }

    @property
    def commands(self) -> List[str]:
        names = sorted(self._handlers)
        if self.vis_manager is not None:
            names.append('/vis/...')
        return names

    def apply_command(self, line: str) -> None:
        """Parse and apply one command line.

        Blank lines and lines starting with '#' are ignored.

        Raises:
            CommandError: If the command is unknown or its parameters are invalid
            RunManagerStateError: If a /run/ command is issued in the wrong state
        """
        line = line.strip()
        if not line or line.startswith('#'):
            return
        try:
            tokens = shlex.split(line, comments=True)
        except ValueError as e:
            raise CommandError(f"Cannot parse command '{line}': {e}") from e
        if not tokens:
            return

        command, parameters = tokens[0], tokens[1:]
        if command.startswith('/vis/'):
            self._forward_to_vis(command, parameters)
        else:
            handler = self._handlers.get(command)
            if handler is None:
                raise CommandError(f"Command <{command}> not found")
            handler(parameters)
        self.history.append(line)

    def execute_macro(self, path: Union[str, Path]) -> None:
        """Apply every command of a macro file in order.

        Raises:
            MacroNotFoundError: If the macro does not exist
            CommandError: If a command fails, or nesting exceeds MAX_MACRO_DEPTH
        """
        macro = validate_macro_path(path)
        if len(self._macro_stack) >= MAX_MACRO_DEPTH:
            raise CommandError(f"Macro nesting deeper than {MAX_MACRO_DEPTH} at {path}")
        if macro in self._macro_stack:
            raise CommandError(f"Macro {path} executes itself recursively")

        logger.info(f"Executing macro {macro}")
        self._macro_stack.append(macro)
        try:
            with open(macro, 'r') as f:
                lines = f.readlines()
            for line_number, line in enumerate(lines, start=1):
                try:
                    self.apply_command(line)
                except CommandError as e:
                    raise CommandError(f"{macro.name}:{line_number}: {e}") from e
        finally:
            self._macro_stack.pop()

    def _forward_to_vis(self, command: str, parameters: List[str]) -> None:
        if self.vis_manager is None:
            logger.debug(f"Visualization disabled, ignoring {command}")
            return
        self.vis_manager.handle(command, tuple(parameters))

    # /control/

    def _control_execute(self, parameters):
        self._expect(parameters, 1, '/control/execute <macro>')
        self.execute_macro(parameters[0])

    def _control_verbose(self, parameters):
        self._expect(parameters, 1, '/control/verbose <level>')
        set_verbosity(self._as_int(parameters[0], 'verbose level', minimum=0))

    def _control_echo(self, parameters):
        logger.info(' '.join(parameters))

    # /run/

    def _run_initialize(self, parameters):
        if self.run_manager.state is RunManagerState.CREATED:
            self.run_manager.initialize()
        else:
            logger.info("Run manager is already initialized")

    def _run_beam_on(self, parameters):
        self._expect(parameters, 1, '/run/beamOn <number of events>')
        num_events = self._as_int(parameters[0], 'number of events', minimum=0)
        if self.run_manager.state is RunManagerState.CREATED:
            self.run_manager.initialize()
        self.run_summaries.append(self.run_manager.beam_on(num_events))

    def _run_print_progress(self, parameters):
        self._expect(parameters, 1, '/run/printProgress <N>')
        self.run_manager.print_progress = self._as_int(parameters[0], 'print progress', minimum=0)

    # /gun/

    def _gun_particle(self, parameters):
        self._expect(parameters, 1, '/gun/particle <name>')
        if parameters[0] not in SUPPORTED_PARTICLES:
            raise CommandError(
                f"Unsupported particle '{parameters[0]}', expected one of {SUPPORTED_PARTICLES}"
            )
        self.gun.particle = parameters[0]

    def _gun_energy(self, parameters):
        if len(parameters) not in (1, 2):
            raise CommandError("Usage: /gun/energy <value> [eV|keV|MeV|GeV]")
        unit = parameters[1] if len(parameters) == 2 else 'MeV'
        energy = self._as_float(parameters[0], 'energy') * self._unit(unit, ENERGY_UNITS)
        if energy <= 0.0:
            raise CommandError(f"Gun energy must be positive, got {parameters[0]} {unit}")
        self.gun.energy_mev = energy

    def _gun_position(self, parameters):
        if len(parameters) not in (3, 4):
            raise CommandError("Usage: /gun/position <x> <y> <z> [um|mm|cm|m]")
        scale = self._unit(parameters[3], LENGTH_UNITS) if len(parameters) == 4 else 1.0
        self.gun.position_mm = tuple(self._as_float(v, 'position') * scale for v in parameters[:3])

    def _gun_direction(self, parameters):
        self._expect(parameters, 3, '/gun/direction <x> <y> <z>')
        direction = tuple(self._as_float(v, 'direction') for v in parameters)
        if all(v == 0.0 for v in direction):
            raise CommandError("Gun direction must be a non-zero vector")
        self.gun.direction = direction

    # parameter helpers

    @staticmethod
    def _expect(parameters: List[str], count: int, usage: str) -> None:
        if len(parameters) != count:
            raise CommandError(f"Usage: {usage}")

    @staticmethod
    def _as_int(value: str, name: str, minimum: Optional[int] = None) -> int:
        try:
            number = int(value)
        except ValueError as e:
            raise CommandError(f"Invalid {name}: '{value}' is not an integer") from e
        if minimum is not None and number < minimum:
            raise CommandError(f"Invalid {name}: must be >= {minimum}, got {number}")
        return number

    @staticmethod
    def _as_float(value: str, name: str) -> float:
        try:
            return float(value)
        except ValueError as e:
            raise CommandError(f"Invalid {name}: '{value}' is not a number") from e

    @staticmethod
    def _unit(unit: str, table: Dict[str, float]) -> float:
        if unit not in table:
            raise CommandError(f"Unknown unit '{unit}', expected one of {', '.join(table)}")
        return table[unit]


class InteractiveSession:
    """Line-oriented control session reading commands from a stream.

    The session ends on 'exit', 'quit' or end of input. Failing commands
    are reported on the output stream and the session continues.

    Attributes:
        interpreter: Interpreter the commands are applied to
        prompt: Prompt written before each command
    """

    prompt = 'DetectorLinac> '

    def __init__(self, interpreter: CommandInterpreter, stdin: Optional[TextIO] = None,
                 stdout: Optional[TextIO] = None):
        self.interpreter = interpreter
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.commands_applied = 0
        self.errors: List[Tuple[str, str]] = []
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def session_start(self) -> None:
        """Read and apply commands until exit, quit or end of input."""
        if self._closed:
            raise CommandError("Session has been closed")
        logger.info("Interactive session started")
        while True:
            self.stdout.write(self.prompt)
            self.stdout.flush()
            line = self.stdin.readline()
            if not line:
                self.stdout.write('\n')
                break
            command = line.strip()
            if command in EXIT_COMMANDS:
                break
            if command == 'help':
                self._print_help()
                continue
            try:
                self.interpreter.apply_command(command)
            except (CommandError, RunManagerStateError, ValueError) as e:
                self.errors.append((command, str(e)))
                self.stdout.write(f"ERROR: {e}\n")
                logger.debug(f"Command failed: {command}: {e}")
            else:
                if command and not command.startswith('#'):
                    self.commands_applied += 1
        logger.info(f"Interactive session ended after {self.commands_applied} command(s)")

    def _print_help(self) -> None:
        self.stdout.write("Available commands:\n")
        for name in self.interpreter.commands:
            self.stdout.write(f"  {name}\n")
        self.stdout.write(f"  {' | '.join(EXIT_COMMANDS)}\n")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug("Interactive session closed")
