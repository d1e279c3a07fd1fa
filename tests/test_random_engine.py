"""Tests for the seeded random engine and the run context."""

import numpy as np
import pytest
import torch

from DetectorLinac.core.data_models import RandomEngineType, RandomSeedPair, DEFAULT_SEEDS
from DetectorLinac.core.random_engine import RandomEngine, RandomEngineConfigurator
from DetectorLinac.core.run_context import RunContext
from DetectorLinac.utils.config import RunConfig
from DetectorLinac.utils.validation import ConfigurationError


def test_same_seeds_same_sequence():
    a = RandomEngine(DEFAULT_SEEDS).event_generator(0, 7).random(16)
    b = RandomEngine(DEFAULT_SEEDS).event_generator(0, 7).random(16)
    np.testing.assert_array_equal(a, b)


def test_events_and_runs_get_distinct_streams():
    engine = RandomEngine(DEFAULT_SEEDS)
    first = engine.event_generator(0, 0).random(8)
    assert not np.array_equal(first, engine.event_generator(0, 1).random(8))
    assert not np.array_equal(first, engine.event_generator(1, 0).random(8))


def test_stream_independent_of_request_order():
    engine = RandomEngine(DEFAULT_SEEDS)
    late = [engine.event_generator(0, i).random() for i in reversed(range(5))]
    early = [RandomEngine(DEFAULT_SEEDS).event_generator(0, i).random() for i in range(5)]
    assert late[::-1] == early


def test_different_seeds_differ():
    other = RandomSeedPair(primary=1, secondary=2)
    a = RandomEngine(DEFAULT_SEEDS).event_generator(0, 0).random(8)
    b = RandomEngine(other).event_generator(0, 0).random(8)
    assert not np.array_equal(a, b)


@pytest.mark.parametrize("engine_type", list(RandomEngineType))
def test_every_engine_type_builds_a_generator(engine_type):
    seeds = RandomSeedPair(primary=11, secondary=13, engine=engine_type)
    generator = RandomEngine(seeds).event_generator(0, 0)
    assert isinstance(generator.bit_generator, engine_type.bit_generator)


def test_configurator_installs_once():
    context = RunContext(RunConfig())
    engine = RandomEngineConfigurator.configure(context, DEFAULT_SEEDS)
    assert context.random_engine is engine
    with pytest.raises(ConfigurationError, match="already been configured"):
        RandomEngineConfigurator.configure(context, DEFAULT_SEEDS)


def test_configurator_leaves_global_torch_state_alone():
    state = torch.get_rng_state()
    RunContext.create(RunConfig(random_seeds=(42, 43)))
    assert torch.equal(state, torch.get_rng_state())


def test_context_uses_configured_seeds():
    context = RunContext.create(RunConfig(random_seeds=(5, 6), random_engine="PCG64"))
    assert context.random_engine.seeds == RandomSeedPair(5, 6, RandomEngineType.PCG64)


def test_context_gun_is_a_private_copy():
    config = RunConfig()
    context = RunContext.create(config)
    context.gun.energy_mev = 2.5
    assert config.gun.energy_mev == 6.0


def test_context_binds_one_interpreter():
    context = RunContext(RunConfig())
    context.bind_interpreter(object())
    with pytest.raises(ConfigurationError):
        context.bind_interpreter(object())
