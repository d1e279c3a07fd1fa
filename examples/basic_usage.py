"""
Basic usage example for the linac simulation driver.

This example demonstrates how to:
1. Load a run configuration
2. Assemble the run manager step by step
3. Issue commands programmatically and read the energy deposition log
"""

from pathlib import Path

import numpy as np

from DetectorLinac.core import (
    RunContext,
    EnergyDepositionLog,
    VoxelPhantomConstruction,
    LinacActionInitialization,
    CommandInterpreter,
    ResourceLifecycleManager,
    create_run_manager,
)
from DetectorLinac.physics import PhysicsListAssembler
from DetectorLinac.utils import RunConfig, setup_logger


EXAMPLE_DIR = Path(__file__).parent


def example_programmatic_run():
    """Run a short simulation without the command line entry point."""
    print("\n=== Example 1: Programmatic run ===\n")

    setup_logger(level=20)  # INFO level

    config = RunConfig.from_yaml(str(EXAMPLE_DIR / 'linac_config.yaml'))

    with EnergyDepositionLog(config.edep_log_path) as log:
        context = RunContext.create(config)
        with ResourceLifecycleManager() as lifecycle:
            run_manager = create_run_manager(context)
            lifecycle.adopt_run_manager(run_manager)

            run_manager.set_user_initialization(VoxelPhantomConstruction(config.geometry))
            run_manager.set_user_initialization(
                PhysicsListAssembler(config.physics_modules).append('G4EmLivermorePhysics').assemble()
            )
            run_manager.set_user_initialization(LinacActionInitialization(log, context.gun))
            run_manager.initialize()

            interpreter = CommandInterpreter(context, run_manager, context.gun)
            context.bind_interpreter(interpreter)
            interpreter.apply_command('/gun/energy 2 MeV')
            interpreter.apply_command('/run/beamOn 20')

            summary = interpreter.run_summaries[-1]
            print(f"Events: {summary.num_events}, threads: {summary.num_threads}")
            print(f"Total energy deposit: {summary.total_edep:.4f} MeV")

    return config.edep_log_path


def example_read_log(log_path: str):
    """Sum the deposited energy per material from the log."""
    print("\n=== Example 2: Reading the energy deposition log ===\n")

    totals = {}
    with open(log_path) as f:
        for line in f:
            fields = line.split()
            totals[fields[12]] = totals.get(fields[12], 0.0) + float(fields[10])

    for material, edep in sorted(totals.items()):
        print(f"  {material:24s} {edep:10.4f} MeV")

    edeps = np.array(list(totals.values()))
    print(f"\nTotal: {edeps.sum():.4f} MeV over {len(totals)} materials")


if __name__ == '__main__':
    example_read_log(example_programmatic_run())
