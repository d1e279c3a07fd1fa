"""
Multi-threaded Monte Carlo driver for a linac beam in a voxel phantom

Configures a reproducible random engine, sizes a worker pool, assembles a
modular electromagnetic physics list and hands control to a macro
interpreter, writing every simulated step to a plaintext energy
deposition log.
"""

__version__ = "0.1.0"

from .core.run_manager import RunManager, MTRunManager, create_run_manager
from .core.run_context import RunContext
from .utils.config import RunConfig

__all__ = ['RunManager', 'MTRunManager', 'create_run_manager', 'RunContext', 'RunConfig']
