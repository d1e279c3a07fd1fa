"""Simplified electromagnetic process models.

Photons interact through discrete processes (photoelectric absorption,
Compton scattering, pair conversion). Electrons and positrons lose energy
continuously and are deflected by multiple scattering; positrons annihilate
at rest. Models are deliberately simple and only need to be stable and
reproducible.
"""

from dataclasses import dataclass, field
from typing import List
import numpy as np

from ..core.data_models import Track
from .constants import (
    ELECTRON_MASS_MEV,
    CLASSICAL_ELECTRON_RADIUS_CM,
    AVOGADRO,
    PAIR_THRESHOLD_MEV,
    EPSILON,
    HIGHLAND_CONSTANT_MEV,
    HIGHLAND_LOG_COEFFICIENT,
    WATER_Z_OVER_A,
    WATER_STOPPING_POWER,
    PHOTOELECTRIC_COEFFICIENT,
    PAIR_COEFFICIENT,
    MM_TO_CM,
)
from .materials import MaterialProperties


def rotate_direction(direction: np.ndarray, cos_theta: float, phi: float) -> np.ndarray:
    """Rotate ``direction`` by polar angle theta and azimuth phi.

    The angles are given relative to ``direction`` itself.
    """
    cos_theta = min(max(cos_theta, -1.0), 1.0)
    sin_theta = np.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    px = sin_theta * np.cos(phi)
    py = sin_theta * np.sin(phi)
    pz = cos_theta

    ux, uy, uz = direction
    up = ux * ux + uy * uy
    if up > 0.0:
        up = np.sqrt(up)
        new = np.array([
            (ux * uz * px - uy * py) / up + ux * pz,
            (uy * uz * px + ux * py) / up + uy * pz,
            -up * px + uz * pz,
        ])
    elif uz < 0.0:
        new = np.array([-px, py, -pz])
    else:
        new = np.array([px, py, pz])
    return new / np.linalg.norm(new)


def isotropic_direction(rng: np.random.Generator) -> np.ndarray:
    cos_theta = 2.0 * rng.random() - 1.0
    phi = 2.0 * np.pi * rng.random()
    sin_theta = np.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    return np.array([sin_theta * np.cos(phi), sin_theta * np.sin(phi), cos_theta])


def beta_squared(kinetic_energy: float) -> float:
    gamma = 1.0 + kinetic_energy / ELECTRON_MASS_MEV
    return 1.0 - 1.0 / (gamma * gamma)


@dataclass
class Secondary:
    """A particle produced by an interaction."""
    particle: str
    kinetic_energy: float
    direction: np.ndarray


@dataclass
class InteractionResult:
    """Outcome of a discrete interaction.

    Attributes:
        local_edep: Energy deposited at the interaction point in MeV
        secondaries: Particles to be tracked
    """
    local_edep: float = 0.0
    secondaries: List[Secondary] = field(default_factory=list)


class Process:
    """Base class of all processes."""

    name = 'process'

    def __init__(self, low_energy_limit: float):
        self.low_energy_limit = low_energy_limit

    def __repr__(self) -> str:
        return f"{type(self).__name__}(low_energy_limit={self.low_energy_limit})"


class DiscreteProcess(Process):
    """A process that occurs at a sampled point along the path."""

    def cross_section(self, energy: float, material: MaterialProperties) -> float:
        """Mass attenuation coefficient in cm²/g."""
        raise NotImplementedError

    def interact(self, track: Track, material: MaterialProperties,
                 rng: np.random.Generator) -> InteractionResult:
        """Apply the interaction to ``track`` in place."""
        raise NotImplementedError


class PhotoElectricEffect(DiscreteProcess):
    """Photon absorption with emission of a photoelectron along the photon direction."""

    name = 'phot'

    def cross_section(self, energy: float, material: MaterialProperties) -> float:
        energy = max(energy, self.low_energy_limit)
        return PHOTOELECTRIC_COEFFICIENT * material.effective_z ** 3 / energy ** 3

    def interact(self, track, material, rng):
        energy = track.kinetic_energy
        track.kinetic_energy = 0.0
        track.alive = False
        direction = rotate_direction(track.direction, 2.0 * rng.random() - 1.0, 2.0 * np.pi * rng.random())
        return InteractionResult(secondaries=[Secondary('e-', energy, direction)])


class ComptonScattering(DiscreteProcess):
    """Incoherent scattering with Klein-Nishina sampling."""

    name = 'compt'

    def cross_section(self, energy: float, material: MaterialProperties) -> float:
        k = max(energy, self.low_energy_limit) / ELECTRON_MASS_MEV
        one_2k = 1.0 + 2.0 * k
        log_term = np.log(one_2k)
        sigma_e = 2.0 * np.pi * CLASSICAL_ELECTRON_RADIUS_CM ** 2 * (
            (1.0 + k) / k ** 2 * (2.0 * (1.0 + k) / one_2k - log_term / k)
            + log_term / (2.0 * k)
            - (1.0 + 3.0 * k) / one_2k ** 2
        )
        return sigma_e * AVOGADRO * material.z_over_a

    def interact(self, track, material, rng):
        energy = track.kinetic_energy
        e0m = energy / ELECTRON_MASS_MEV
        eps0 = 1.0 / (1.0 + 2.0 * e0m)
        eps0sq = eps0 * eps0
        alpha1 = -np.log(eps0)
        alpha2 = alpha1 + 0.5 * (1.0 - eps0sq)

        while True:
            if alpha1 > alpha2 * rng.random():
                epsilon = np.exp(-alpha1 * rng.random())
                epsilonsq = epsilon * epsilon
            else:
                epsilonsq = eps0sq + (1.0 - eps0sq) * rng.random()
                epsilon = np.sqrt(epsilonsq)
            onecost = (1.0 - epsilon) / (epsilon * e0m)
            sint2 = onecost * (2.0 - onecost)
            greject = 1.0 - epsilon * sint2 / (1.0 + epsilonsq)
            if greject >= rng.random():
                break

        incoming = track.direction.copy()
        scattered_energy = epsilon * energy
        track.direction = rotate_direction(incoming, 1.0 - onecost, 2.0 * np.pi * rng.random())
        track.kinetic_energy = scattered_energy

        electron_energy = energy - scattered_energy
        if electron_energy <= 0.0:
            return InteractionResult()
        momentum = energy * incoming - scattered_energy * track.direction
        norm = np.linalg.norm(momentum)
        if norm < EPSILON:
            return InteractionResult(local_edep=electron_energy)
        return InteractionResult(secondaries=[Secondary('e-', electron_energy, momentum / norm)])


class GammaConversion(DiscreteProcess):
    """Pair production above 2 m_e c²."""

    name = 'conv'

    def cross_section(self, energy: float, material: MaterialProperties) -> float:
        if energy <= PAIR_THRESHOLD_MEV:
            return 0.0
        return PAIR_COEFFICIENT * material.effective_z * np.log(energy / PAIR_THRESHOLD_MEV)

    def interact(self, track, material, rng):
        available = track.kinetic_energy - PAIR_THRESHOLD_MEV
        track.kinetic_energy = 0.0
        track.alive = False
        if available <= 0.0:
            return InteractionResult()

        fraction = rng.random()
        opening = ELECTRON_MASS_MEV / (available + PAIR_THRESHOLD_MEV)
        secondaries = []
        for particle, energy in (('e-', fraction * available), ('e+', (1.0 - fraction) * available)):
            cos_theta = np.cos(min(np.pi, rng.rayleigh(opening)))
            direction = rotate_direction(track.direction, cos_theta, 2.0 * np.pi * rng.random())
            secondaries.append(Secondary(particle, energy, direction))
        return InteractionResult(secondaries=secondaries)


class ElectronIonisation(Process):
    """Continuous collision energy loss of electrons and positrons."""

    name = 'eIoni'

    def stopping_power(self, energy: float, material: MaterialProperties) -> float:
        """Mass collision stopping power in MeV cm²/g."""
        energy = max(energy, self.low_energy_limit)
        return WATER_STOPPING_POWER * (material.z_over_a / WATER_Z_OVER_A) / beta_squared(energy)


class MultipleScattering(Process):
    """Gaussian angular deflection after each charged step (Highland width)."""

    name = 'msc'

    def deflect(self, track: Track, step_mm: float, material: MaterialProperties,
                rng: np.random.Generator) -> None:
        energy = track.kinetic_energy
        if energy <= 0.0 or step_mm <= 0.0:
            return
        thickness = step_mm * MM_TO_CM * material.density / material.radiation_length
        if thickness <= EPSILON:
            return
        momentum = np.sqrt(energy * (energy + 2.0 * ELECTRON_MASS_MEV))
        beta = momentum / (energy + ELECTRON_MASS_MEV)
        log_term = max(0.0, 1.0 + HIGHLAND_LOG_COEFFICIENT * np.log(thickness))
        theta0 = HIGHLAND_CONSTANT_MEV / (beta * momentum) * np.sqrt(thickness) * log_term
        theta = min(np.pi, rng.rayleigh(theta0)) if theta0 > 0.0 else 0.0
        track.direction = rotate_direction(track.direction, np.cos(theta), 2.0 * np.pi * rng.random())


class PositronAnnihilation(Process):
    """Two back-to-back 511 keV photons when a positron stops."""

    name = 'annihil'

    def at_rest(self, track: Track, rng: np.random.Generator) -> List[Secondary]:
        direction = isotropic_direction(rng)
        return [
            Secondary('gamma', ELECTRON_MASS_MEV, direction),
            Secondary('gamma', ELECTRON_MASS_MEV, -direction),
        ]


class StepLimiter(Process):
    """Caps the step length of charged particles."""

    name = 'StepLimiter'

    def __init__(self, max_step_mm: float):
        super().__init__(low_energy_limit=0.0)
        self.max_step_mm = max_step_mm

    def __repr__(self) -> str:
        return f"StepLimiter(max_step_mm={self.max_step_mm})"
