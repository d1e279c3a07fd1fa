"""Detector geometry providers."""

from typing import Dict, List
import torch

from .data_models import GeometryData
from ..physics.materials import MATERIALS
from ..utils.config import GeometryConfig
from ..utils.validation import GeometryError
from ..utils.logging import get_logger


logger = get_logger()


class DetectorConstruction:
    """Supplies the detector model to the run manager.

    Subclasses implement ``construct``; the run manager calls it once,
    during initialization.
    """

    def construct(self) -> GeometryData:
        raise NotImplementedError


class VoxelPhantomConstruction(DetectorConstruction):
    """Box phantom on a regular voxel grid centred on the origin.

    The grid is filled with the phantom material. The first
    ``air_gap_voxels`` slices along z hold the world material and each
    insert replaces a range of z slices with its own material.

    Attributes:
        config: Geometry configuration
    """

    def __init__(self, config: GeometryConfig):
        self.config = config

    def construct(self) -> GeometryData:
        """Build material and density tensors.

        Raises:
            GeometryError: If a material is unknown or an insert is out of range
        """
        config = self.config
        nx, ny, nz = config.dimensions

        slab_materials = [(0, config.air_gap_voxels, config.world_material)]
        for insert in config.inserts:
            try:
                slab_materials.append((int(insert['z_start']), int(insert['z_stop']), insert['material']))
            except (KeyError, TypeError, ValueError) as e:
                raise GeometryError(
                    f"Insert {insert!r} must define material, z_start and z_stop"
                ) from e

        material_names: List[str] = [config.phantom_material]
        material_ids: Dict[str, int] = {config.phantom_material: 0}
        for _, _, name in slab_materials:
            if name not in material_ids:
                material_ids[name] = len(material_names)
                material_names.append(name)

        unknown = [name for name in material_names if name not in MATERIALS]
        if unknown:
            raise GeometryError(
                f"Unknown material(s): {', '.join(unknown)}. "
                f"Available: {', '.join(sorted(MATERIALS))}"
            )

        material_map = torch.zeros((nx, ny, nz), dtype=torch.int32)
        for z_start, z_stop, name in slab_materials:
            if z_start == z_stop:
                continue
            if not 0 <= z_start < z_stop <= nz:
                raise GeometryError(
                    f"Slab of {name} spans z slices [{z_start}, {z_stop}), "
                    f"outside the grid of {nz} slices"
                )
            material_map[:, :, z_start:z_stop] = material_ids[name]

        densities = torch.tensor(
            [MATERIALS[name].density for name in material_names], dtype=torch.float32
        )
        density_map = densities[material_map.long()]

        origin = tuple(-h for h in config.half_extent_mm)
        geometry = GeometryData(
            material_map=material_map,
            density_map=density_map,
            voxel_size=config.voxel_size_mm,
            dimensions=config.dimensions,
            origin=origin,
            material_names=material_names,
        )

        logger.info(
            f"Phantom constructed: {nx}x{ny}x{nz} voxels of "
            f"{config.voxel_size_mm} mm, materials={material_names}"
        )
        for name, material_id in material_ids.items():
            count = torch.sum(material_map == material_id).item()
            logger.debug(f"Material '{name}' (ID={material_id}): {count} voxels")

        return geometry
