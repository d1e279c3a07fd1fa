"""Visualization manager recording scene commands."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..utils.validation import CommandError
from ..utils.logging import get_logger


logger = get_logger()


@dataclass
class SceneCommand:
    command: str
    parameters: Tuple[str, ...]


class VisualizationManager:
    """Keeps the scene description built by /vis/ commands.

    Nothing is rendered; the manager only records the commands it accepted
    so that a viewer (or a test) can replay them.

    Attributes:
        scene: Accepted commands in order of arrival
        viewer: Name given to /vis/open, None until a viewer is opened
    """

    def __init__(self):
        self.scene: List[SceneCommand] = []
        self.viewer: Optional[str] = None
        self._initialized = False
        self._closed = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        if self._initialized:
            logger.debug("Visualization manager already initialized")
            return
        self._initialized = True
        logger.info("Visualization manager initialized")

    def handle(self, command: str, parameters: Tuple[str, ...] = ()) -> None:
        """Record one /vis/ command.

        Args:
            command: Full command path, e.g. '/vis/open'
            parameters: Command parameters as given

        Raises:
            CommandError: If the manager is not initialized or already closed
        """
        if self._closed:
            raise CommandError(f"Visualization manager is closed, cannot apply {command}")
        if not self._initialized:
            raise CommandError(f"Visualization manager is not initialized, cannot apply {command}")
        if command == '/vis/open':
            self.viewer = parameters[0] if parameters else 'default'
        self.scene.append(SceneCommand(command, tuple(parameters)))
        logger.debug(f"Scene command recorded: {command} {' '.join(parameters)}".rstrip())

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info(f"Visualization manager closed ({len(self.scene)} scene commands)")
