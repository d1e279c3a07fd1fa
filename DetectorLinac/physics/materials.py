"""Material table used by the phantom geometry and the process models."""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class MaterialProperties:
    """Properties of a material.

    Attributes:
        name: NIST-style material name
        density: Density in g/cm³
        z_over_a: Mean ratio of atomic number to mass number
        effective_z: Effective atomic number for photoelectric absorption
        radiation_length: Radiation length in g/cm²
    """
    name: str
    density: float
    z_over_a: float
    effective_z: float
    radiation_length: float


MATERIALS: Dict[str, MaterialProperties] = {
    m.name: m for m in (
        MaterialProperties('G4_AIR', 0.00120479, 0.49919, 7.6, 36.62),
        MaterialProperties('G4_WATER', 1.0, 0.55509, 7.42, 36.08),
        MaterialProperties('G4_LUNG_ICRP', 1.05, 0.54965, 7.5, 36.4),
        MaterialProperties('G4_ADIPOSE_TISSUE_ICRP', 0.95, 0.55947, 6.5, 41.0),
        MaterialProperties('G4_MUSCLE_SKELETAL_ICRP', 1.05, 0.54938, 7.6, 36.4),
        MaterialProperties('G4_BONE_COMPACT_ICRU', 1.85, 0.53010, 12.3, 27.0),
        MaterialProperties('G4_PMMA', 1.19, 0.53937, 6.5, 40.55),
        MaterialProperties('G4_Al', 2.699, 0.48181, 13.0, 24.01),
        MaterialProperties('G4_W', 19.3, 0.40252, 74.0, 6.76),
    )
}


def get_material(name: str) -> MaterialProperties:
    """Look up a material by name.

    Raises:
        KeyError: If the material is not defined
    """
    try:
        return MATERIALS[name]
    except KeyError:
        raise KeyError(
            f"Unknown material '{name}'. Available: {', '.join(sorted(MATERIALS))}"
        ) from None
