"""Shared fixtures for the DetectorLinac tests."""

import logging

import pytest

from DetectorLinac.core.actions import LinacActionInitialization
from DetectorLinac.core.energy_log import EnergyDepositionLog
from DetectorLinac.core.geometry import VoxelPhantomConstruction
from DetectorLinac.core.run_context import RunContext
from DetectorLinac.physics.physics_list import PhysicsListAssembler
from DetectorLinac.utils.config import RunConfig
from DetectorLinac.utils.logging import DEFAULT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers bound to streams captured by a previous test."""
    yield
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def small_config(tmp_path):
    """Five-voxel water cube with a 1 MeV photon beam entering at its face."""
    return RunConfig(
        edep_log_path=str(tmp_path / "SteppingAction.txt"),
        vis_macro=str(tmp_path / "vis.mac"),
        default_threads=2,
        geometry={
            "dimensions": [5, 5, 5],
            "voxel_size_mm": [10.0, 10.0, 10.0],
            "inserts": [{"material": "G4_BONE_COMPACT_ICRU", "z_start": 2, "z_stop": 3}],
        },
        gun={
            "particle": "gamma",
            "energy_mev": 1.0,
            "position_mm": [0.0, 0.0, -24.0],
            "beam_sigma_mm": 2.0,
        },
        cuts={"energy_cut_mev": 0.05, "max_step_mm": 5.0},
        physics_modules=["G4EmStandardPhysics", "G4StepLimiterPhysics"],
    )


@pytest.fixture
def context(small_config):
    return RunContext.create(small_config)


@pytest.fixture
def energy_log(small_config):
    log = EnergyDepositionLog(small_config.edep_log_path)
    log.open()
    yield log
    log.close()


@pytest.fixture
def register(small_config, energy_log):
    """Register geometry, physics list and actions in the usual order."""
    def _register(run_manager):
        run_manager.set_user_initialization(VoxelPhantomConstruction(small_config.geometry))
        run_manager.set_user_initialization(PhysicsListAssembler(small_config.physics_modules).assemble())
        run_manager.set_user_initialization(LinacActionInitialization(energy_log, run_manager.context.gun))
        return run_manager
    return _register
