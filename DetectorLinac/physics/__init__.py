"""Physics modules: materials, processes, physics lists and transport."""

from .materials import MaterialProperties, MATERIALS, get_material
from .physics_list import (
    PHYSICS_CONSTRUCTORS,
    register_physics,
    ProcessTable,
    PhysicsConstructor,
    GenericPhysicsList,
    PhysicsListAssembler
)
from .transport import TransportEngine

__all__ = [
    'MaterialProperties',
    'MATERIALS',
    'get_material',
    'PHYSICS_CONSTRUCTORS',
    'register_physics',
    'ProcessTable',
    'PhysicsConstructor',
    'GenericPhysicsList',
    'PhysicsListAssembler',
    'TransportEngine'
]
