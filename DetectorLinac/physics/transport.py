"""Reference transport engine driving the user actions."""

from typing import List
import numpy as np

from ..core.data_models import GeometryData, Track, Event, Step, EventSummary
from .constants import BOUNDARY_PUSH_MM, EPSILON, MAX_STEPS_PER_TRACK, CM_TO_MM
from .materials import MaterialProperties, get_material
from .physics_list import ProcessTable
from .processes import Secondary
from ..utils.logging import get_logger


logger = get_logger()

TRANSPORTATION = 'Transportation'


class TransportEngine:
    """Condensed-history transport through a voxel geometry.

    One engine is shared by all workers; it holds no per-event state, every
    call to ``process_event`` works on its own stack and generator.

    Attributes:
        geometry: Voxelised detector model
        process_table: Processes attached to each particle
        cuts: Production and stepping limits (CutsConfig)
    """

    def __init__(self, geometry: GeometryData, process_table: ProcessTable, cuts):
        self.geometry = geometry
        self.process_table = process_table
        self.cuts = cuts

        # Scalar lookups on numpy copies of the geometry tensors
        self._material_ids = geometry.material_map.cpu().numpy()
        self._densities = geometry.density_map.cpu().numpy()
        self._materials: List[MaterialProperties] = [
            get_material(name) for name in geometry.material_names
        ]
        self._origin = np.asarray(geometry.origin, dtype=float)
        self._voxel_size = np.asarray(geometry.voxel_size, dtype=float)

        logger.info(
            f"TransportEngine initialized: geometry={geometry.dimensions}, "
            f"energy cut={cuts.energy_cut_mev} MeV"
        )

    def process_event(self, run_id: int, event_id: int, rng: np.random.Generator,
                      actions, worker_id: int = 0) -> EventSummary:
        """Generate primaries and transport all tracks of one event.

        Args:
            run_id: Run index
            event_id: Event index within the run
            rng: Generator dedicated to this event
            actions: UserActions bundle of the calling worker
            worker_id: Index of the calling worker

        Returns:
            EventSummary with the event totals
        """
        event = Event(run_id=run_id, event_id=event_id, worker_id=worker_id)
        actions.event.on_event_start(event)

        stack: List[Track] = list(reversed(actions.primary_generator.generate_primaries(event, rng)))
        next_track_id = max((t.track_id for t in stack), default=0) + 1

        while stack:
            track = stack.pop()
            event.num_tracks += 1
            secondaries = self._transport_track(track, event, rng, actions)
            new_tracks = []
            for secondary in secondaries:
                new_tracks.append(Track(
                    track_id=next_track_id,
                    parent_id=track.track_id,
                    particle=secondary.particle,
                    kinetic_energy=secondary.kinetic_energy,
                    position=secondary.position,
                    direction=secondary.direction,
                    creator_process=secondary.creator_process,
                ))
                next_track_id += 1
            stack.extend(reversed(new_tracks))

        actions.event.on_event_end(event)
        return EventSummary(
            run_id=run_id,
            event_id=event_id,
            num_tracks=event.num_tracks,
            num_steps=event.num_steps,
            total_edep=event.total_edep,
        )

    def _transport_track(self, track: Track, event: Event, rng: np.random.Generator,
                         actions) -> List['_PendingSecondary']:
        actions.tracking.on_track_start(track)
        produced: List[_PendingSecondary] = []

        while track.alive:
            voxel = self.geometry.locate(track.position)
            if voxel is None:
                track.alive = False
                break
            if track.step_number >= MAX_STEPS_PER_TRACK:
                logger.warning(
                    f"Event {event.event_id}: track {track.track_id} exceeded "
                    f"{MAX_STEPS_PER_TRACK} steps and was killed"
                )
                track.alive = False
                break

            material = self._materials[self._material_ids[voxel]]
            density = float(self._densities[voxel])
            pre_position = track.position.copy()

            if track.particle == 'gamma':
                length, edep, process = self._photon_step(track, voxel, material, density, rng, produced)
            else:
                length, edep, process = self._charged_step(track, voxel, material, density, rng, produced)

            track.step_number += 1
            event.num_steps += 1
            event.total_edep += edep
            actions.stepping.on_step(Step(
                event=event,
                track=track,
                pre_position=pre_position,
                post_position=track.position.copy(),
                length=length,
                energy_deposit=edep,
                material=material.name,
                process=process,
            ))

        actions.tracking.on_track_end(track)
        return produced

    def _distance_to_boundary(self, position: np.ndarray, direction: np.ndarray, voxel) -> float:
        distance = np.inf
        for axis in range(3):
            d = direction[axis]
            if abs(d) < EPSILON:
                continue
            low = self._origin[axis] + voxel[axis] * self._voxel_size[axis]
            plane = low + self._voxel_size[axis] if d > 0 else low
            distance = min(distance, (plane - position[axis]) / d)
        return max(distance, 0.0)

    def _photon_step(self, track, voxel, material, density, rng, produced):
        processes = self.process_table.discrete('gamma')
        coefficients = [
            p.cross_section(track.kinetic_energy, material) * density / CM_TO_MM for p in processes
        ]
        total = float(sum(coefficients))
        boundary = self._distance_to_boundary(track.position, track.direction, voxel)
        interaction = rng.exponential(1.0 / total) if total > 0.0 else np.inf

        if interaction >= boundary:
            length = boundary + BOUNDARY_PUSH_MM
            track.position = track.position + length * track.direction
            return length, 0.0, TRANSPORTATION

        track.position = track.position + interaction * track.direction
        threshold = rng.random() * total
        chosen = processes[-1]
        cumulative = 0.0
        for process, coefficient in zip(processes, coefficients):
            cumulative += coefficient
            if threshold < cumulative:
                chosen = process
                break

        result = chosen.interact(track, material, rng)
        edep = result.local_edep + self._accept_secondaries(
            result.secondaries, chosen.name, track.position, produced
        )
        if track.alive and track.kinetic_energy < self.cuts.energy_cut_mev:
            edep += track.kinetic_energy
            track.kinetic_energy = 0.0
            track.alive = False
        return interaction, edep, chosen.name

    def _charged_step(self, track, voxel, material, density, rng, produced):
        ionisation = self.process_table.get(track.particle, 'eIoni')
        limiter = self.process_table.get(track.particle, 'StepLimiter')
        msc = self.process_table.get(track.particle, 'msc')

        energy = track.kinetic_energy
        dedx = ionisation.stopping_power(energy, material) * density / CM_TO_MM if ionisation else 0.0

        length = self._distance_to_boundary(track.position, track.direction, voxel) + BOUNDARY_PUSH_MM
        process = TRANSPORTATION
        if dedx > 0.0:
            loss_step = self.cuts.max_energy_loss_fraction * energy / dedx
            if loss_step < length:
                length, process = loss_step, ionisation.name
        if limiter is not None and limiter.max_step_mm < length:
            length, process = limiter.max_step_mm, limiter.name

        track.position = track.position + length * track.direction
        edep = min(energy, dedx * length)
        track.kinetic_energy = energy - edep

        if track.kinetic_energy <= self.cuts.energy_cut_mev:
            edep += track.kinetic_energy
            track.kinetic_energy = 0.0
            track.alive = False
            annihilation = self.process_table.get(track.particle, 'annihil')
            if annihilation is not None:
                edep += self._accept_secondaries(
                    annihilation.at_rest(track, rng), annihilation.name, track.position, produced
                )
                process = annihilation.name
        elif msc is not None:
            msc.deflect(track, length, material, rng)

        return length, edep, process

    def _accept_secondaries(self, secondaries: List[Secondary], creator: str,
                            position: np.ndarray, produced: List['_PendingSecondary']) -> float:
        """Queue secondaries above the production cut; return the energy deposited locally."""
        local = 0.0
        for secondary in secondaries:
            if secondary.kinetic_energy < self.cuts.energy_cut_mev:
                local += secondary.kinetic_energy
            else:
                produced.append(_PendingSecondary(secondary, creator, position.copy()))
        return local


class _PendingSecondary:
    __slots__ = ('particle', 'kinetic_energy', 'direction', 'creator_process', 'position')

    def __init__(self, secondary: Secondary, creator_process: str, position: np.ndarray):
        self.particle = secondary.particle
        self.kinetic_energy = secondary.kinetic_energy
        self.direction = secondary.direction
        self.creator_process = creator_process
        self.position = position
