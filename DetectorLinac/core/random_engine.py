"""Deterministic random engine for the whole process."""

import numpy as np

from .data_models import RandomSeedPair, DEFAULT_SEEDS
from ..utils.logging import get_logger


logger = get_logger()


class RandomEngine:
    """Seeded source of per-event random generators.

    Every event draws from its own stream, keyed on the seed pair and the
    (run, event) identifiers, so the sequence an event sees does not depend
    on which worker processes it or in which order events complete.

    Attributes:
        seeds: The installed seed pair
    """

    def __init__(self, seeds: RandomSeedPair):
        self.seeds = seeds
        self._bit_generator = seeds.engine.bit_generator

    def event_generator(self, run_id: int, event_id: int) -> np.random.Generator:
        """Return the generator for one event.

        Args:
            run_id: Index of the beamOn within the process
            event_id: Index of the event within the run

        Returns:
            numpy Generator positioned at the start of the event's stream
        """
        sequence = np.random.SeedSequence(
            entropy=list(self.seeds.entropy),
            spawn_key=(run_id, event_id)
        )
        return np.random.Generator(self._bit_generator(sequence))


class RandomEngineConfigurator:
    """Installs the random engine on a run context, exactly once."""

    @staticmethod
    def configure(context, seeds: RandomSeedPair = DEFAULT_SEEDS) -> RandomEngine:
        """Create the engine and install it on ``context``.

        Must run before the run manager is created.

        Args:
            context: RunContext receiving the engine
            seeds: Seed pair and engine selector

        Returns:
            The installed RandomEngine

        Raises:
            ConfigurationError: If the context already has an engine
        """
        engine = RandomEngine(seeds)
        context.install_random_engine(engine)
        logger.info(
            f"Random engine {seeds.engine.value} seeded with "
            f"({seeds.primary}, {seeds.secondary})"
        )
        return engine
