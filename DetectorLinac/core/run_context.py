"""Explicit per-process run context."""

from dataclasses import replace
from typing import Optional

from ..utils.config import RunConfig, GunConfig
from ..utils.validation import ConfigurationError


class RunContext:
    """State shared by the components of one process.

    Replaces process-wide singletons (random engine, command interpreter).
    Built once by ``RunContext.create`` and passed explicitly to every
    component that needs it.

    Attributes:
        config: Run configuration
        gun: Primary source settings, mutable between runs through /gun/ commands
        random_engine: Installed RandomEngine (None until configured)
        interpreter: Command interpreter bound to this context (None until created)
    """

    def __init__(self, config: RunConfig):
        self.config = config
        self.gun: GunConfig = replace(config.gun)
        self.random_engine = None
        self.interpreter = None

    @classmethod
    def create(cls, config: Optional[RunConfig] = None) -> 'RunContext':
        """Build a context and configure its random engine.

        Args:
            config: Run configuration (defaults to RunConfig())

        Returns:
            RunContext with the random engine installed
        """
        from .random_engine import RandomEngineConfigurator

        context = cls(config or RunConfig())
        RandomEngineConfigurator.configure(context, context.config.seed_pair)
        return context

    def install_random_engine(self, engine) -> None:
        if self.random_engine is not None:
            raise ConfigurationError("Random engine has already been configured for this run context")
        self.random_engine = engine

    def bind_interpreter(self, interpreter) -> None:
        if self.interpreter is not None:
            raise ConfigurationError("A command interpreter is already bound to this run context")
        self.interpreter = interpreter
