"""
Event stepping engine.

A primary particle and all delta rays it produces are stepped through
the sensor one collision at a time. Particles waiting to be stepped are
kept in a first-in first-out queue seeded with the primary; the event is
complete once the queue is empty.

Per particle the engine runs a small state machine:

    AWAITING_UPDATE -> STEPPING -> INELASTIC | ELASTIC -> AWAITING_UPDATE
                                -> EXITED
                       INELASTIC -> ABSORBED

Inelastic collisions transfer a virtual-photon energy which the
photoabsorption model turns into electron and hole energies. Energies
above the delta cut become new electrons on the queue, the rest are
converted into the electron-hole pairs of one cluster.
"""

import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional

import numpy as np

from bichsel_mc.core.geometry import SensorGeometry
from bichsel_mc.core.particle import Particle, ParticleType
from bichsel_mc.core.records import Cluster, DepositedCharge, MCParticle
from bichsel_mc.errors import ConfigurationError
from bichsel_mc.physics.collision import SILICON, CollisionModel, CollisionParameters
from bichsel_mc.physics.ionizer import PhotoAbsorptionIonizer
from bichsel_mc.physics.pairs import poisson_pairs, slow_down
from bichsel_mc.physics.scattering import SingleScattering
from bichsel_mc.physics.tables import CrossSectionTables
from bichsel_mc.transport.assembly import assemble

logger = logging.getLogger(__name__)

ABSORPTION_FLOOR = 1e-6     # MeV, residual energy treated as zero


class StepState(Enum):
    AWAITING_UPDATE = 'awaiting_update'
    STEPPING = 'stepping'
    INELASTIC = 'inelastic'
    ELASTIC = 'elastic'
    ABSORBED = 'absorbed'
    EXITED = 'exited'


class EventStats:
    """Counters of one event."""

    def __init__(self):
        self.steps = 0
        self.elastic = 0
        self.inelastic = 0
        self.energy_loss = 0.0      # eV, deposited (delta energies excluded)
        self.pairs = 0
        self.pairs_squared = 0
        self.deltas = 0
        # (energy [MeV], inelastic path [um], elastic path [um]) per update
        self.mean_free_paths: List[tuple] = []
        # filled only by engines recording histograms
        self.step_lengths: List[float] = []       # um
        self.elastic_cosines: List[float] = []
        self.delta_cosines: List[float] = []      # to the parent direction

    @property
    def pair_rms(self) -> float:
        return float(np.sqrt(self.pairs_squared))

    def as_dict(self) -> dict:
        return {
            'steps': self.steps,
            'elastic': self.elastic,
            'inelastic': self.inelastic,
            'energy_loss': self.energy_loss,
            'pairs': self.pairs,
            'pair_rms': self.pair_rms,
            'deltas': self.deltas,
        }

    def __repr__(self) -> str:
        return (f"EventStats(steps={self.steps}, ion={self.inelastic}, elas={self.elastic}, "
                f"dE={self.energy_loss * 1e-3:.4g} keV, eh={self.pairs}, deltas={self.deltas})")


class EventResult:
    """
    Output of one event.

    Attributes:
        particles: Stepped particles in stepping order (index = MCParticle index)
        mc_particles: One MCParticle per stepped particle, parents resolved
        clusters: Clusters in creation order
        deposits: Electron and hole DepositedCharges, two per cluster
        stats: Event counters
    """

    def __init__(self, particles: List[Particle], mc_particles: List[MCParticle],
                 clusters: List[Cluster], deposits: List[DepositedCharge],
                 stats: EventStats):
        self.particles = particles
        self.mc_particles = mc_particles
        self.clusters = clusters
        self.deposits = deposits
        self.stats = stats

    @property
    def total_pairs(self) -> int:
        return sum(c.pairs for c in self.clusters)

    def __repr__(self) -> str:
        return (f"EventResult(particles={len(self.mc_particles)}, "
                f"clusters={len(self.clusters)}, pairs={self.total_pairs})")


class SteppingEngine:
    """
    Steps one event from its primary particle to an empty delta queue.

    The engine holds only read-only state (tables, geometry, cuts); every
    call to ``run`` owns its queue, output buffers and random generator,
    so one engine can serve any number of events.

    Usage:
        engine = SteppingEngine(tables, BoxSensor(), energy_threshold=1.68)
        result = engine.run(primary, np.random.default_rng(1))
    """

    def __init__(self, tables: CrossSectionTables, geometry: SensorGeometry,
                 energy_threshold: float, delta_energy_cut: float = 0.009,
                 fast: bool = True, material: dict = SILICON,
                 histograms: bool = False,
                 on_step: Optional[Callable[[StepState, Particle], None]] = None):
        """
        Parameters:
            tables: Loaded cross-section tables
            geometry: Sensor geometry
            energy_threshold: Pair-creation threshold [eV]
            delta_energy_cut: Minimum energy of tracked delta rays [MeV]
            fast: Poisson pair counting instead of the explicit random walk
            material: Absorber properties
            histograms: Record step lengths and scattering angles
            on_step: Called with the new state and the particle after
                every state transition
        """
        if energy_threshold <= 0:
            raise ConfigurationError(f"energy_threshold must be positive, got {energy_threshold}")
        if delta_energy_cut <= 0:
            raise ConfigurationError(f"delta_energy_cut must be positive, got {delta_energy_cut}")

        self.geometry = geometry
        self.energy_threshold = float(energy_threshold)
        self.delta_energy_cut = float(delta_energy_cut)
        self.fast = fast
        self.histograms = histograms
        self.on_step = on_step

        self.model = CollisionModel(tables, material)
        self.ionizer = PhotoAbsorptionIonizer()
        self.scattering = SingleScattering()

    def run(self, primary: Particle, rng: np.random.Generator) -> EventResult:
        """
        Step the primary and all its secondaries.

        Parameters:
            primary: Primary particle, in local sensor coordinates
            rng: Random generator owned by this event

        Returns:
            EventResult with MCParticles, clusters and deposited charges
        """
        deltas: Deque[Particle] = deque([primary])
        finished: List[Particle] = []
        clusters: List[Cluster] = []
        stats = EventStats()

        while deltas:
            particle = deltas.popleft()
            # index of the MCParticle this particle will produce
            index = len(finished)
            logger.debug("Delta %d: %s, cost %.4g", index, particle, particle.direction[2])

            state = self._step_particle(particle, index, deltas, clusters, stats, rng)
            logger.debug("Particle %d %s at %s", index, state.value, particle.position)
            finished.append(particle)

        mc_particles, deposits = assemble(finished, clusters, self.geometry)

        logger.debug("steps %d, ion %d, elas %d, dE %.4g keV, eh %d, cl %d",
                     stats.steps, stats.inelastic, stats.elastic,
                     stats.energy_loss * 1e-3, stats.pairs, len(clusters))
        return EventResult(finished, mc_particles, clusters, deposits, stats)

    def _notify(self, state: StepState, particle: Particle):
        if self.on_step is not None:
            self.on_step(state, particle)

    def _step_particle(self, particle: Particle, index: int, deltas: Deque[Particle],
                       clusters: List[Cluster], stats: EventStats,
                       rng: np.random.Generator) -> StepState:
        """Run the state machine of one particle until it is absorbed or leaves."""
        params: Optional[CollisionParameters] = None
        state = StepState.AWAITING_UPDATE

        while True:
            self._notify(state, particle)

            if state is StepState.AWAITING_UPDATE:
                if params is None or params.needs_update(particle.energy):
                    params = self.model.compute(particle)
                    stats.mean_free_paths.append((
                        particle.energy,
                        1e4 / params.inverse_inelastic if params.inverse_inelastic > 0 else np.inf,
                        1e4 / params.inverse_elastic if params.inverse_elastic > 0 else np.inf,
                    ))
                state = StepState.STEPPING

            elif state is StepState.STEPPING:
                if params.total_inverse_path <= 0.0:
                    # no interaction left, the particle leaves on a straight line
                    state = StepState.EXITED
                    continue

                # exponential step, [cm] -> [mm]
                step = -np.log(1.0 - rng.random()) * params.mean_free_path * 10.0
                if not self.geometry.is_within_sensor(particle.step_target(step)):
                    logger.debug("Left the sensor from %s", particle.position)
                    state = StepState.EXITED
                    continue

                particle.step(step)
                stats.steps += 1
                if self.histograms:
                    stats.step_lengths.append(step * 1e3)
                if rng.random() > params.elastic_probability:
                    state = StepState.INELASTIC
                else:
                    state = StepState.ELASTIC

            elif state is StepState.INELASTIC:
                stats.inelastic += 1
                state = self._inelastic(particle, index, params, deltas, clusters, stats, rng)

            elif state is StepState.ELASTIC:
                stats.elastic += 1
                direction = self.scattering.elastic(particle.direction, params.screening, rng)
                if self.histograms:
                    stats.elastic_cosines.append(float(np.dot(particle.direction, direction)))
                particle.set_direction(direction)
                state = StepState.AWAITING_UPDATE

            else:
                return state

    def _inelastic(self, particle: Particle, index: int, params: CollisionParameters,
                   deltas: Deque[Particle], clusters: List[Cluster], stats: EventStats,
                   rng: np.random.Generator) -> StepState:
        """Ionizing collision: energy loss, delta rays and one cluster."""
        energy_gamma = self.model.sample_energy_loss(params, rng)   # [eV]

        residual = particle.energy - energy_gamma * 1e-6            # [MeV]
        if residual < self.delta_energy_cut:
            # last collision takes all of the remaining energy
            energy_gamma = particle.energy * 1e6
            residual = 0.0

        stats.energy_loss += energy_gamma

        delta_direction = self.scattering.delta_direction(
            particle.direction, energy_gamma, particle.energy, rng)

        veh: List[float] = []
        if energy_gamma > self.energy_threshold:
            veh = self.ionizer.ionize(energy_gamma, rng)

        pairs = self._create_pairs(veh, particle, index, delta_direction, deltas, stats, rng)
        stats.pairs += pairs
        stats.pairs_squared += pairs * pairs
        logger.debug("  dE %.6g eV, neh %d", energy_gamma, pairs)

        if pairs > 0:
            clusters.append(Cluster(pairs, particle.position, index, particle.time, energy_gamma))

        particle.set_energy(particle.energy - energy_gamma * 1e-6)

        if particle.energy < ABSORPTION_FLOOR or residual < ABSORPTION_FLOOR:
            logger.debug("Absorbed at %s", particle.position)
            return StepState.ABSORBED

        if particle.is_electron:
            self.model.refresh_elastic(params, particle)
        return StepState.AWAITING_UPDATE

    def _create_pairs(self, veh: List[float], particle: Particle, index: int,
                      delta_direction: np.ndarray, deltas: Deque[Particle],
                      stats: EventStats, rng: np.random.Generator) -> int:
        """
        Drain the electron/hole energy stack.

        Energies above the delta cut start new electrons; the remainder is
        converted into electron-hole pairs.
        """
        cut_ev = self.delta_energy_cut * 1e6
        energy_sum = 0.0
        pairs = 0

        while veh:
            energy = veh.pop()
            if energy > cut_ev:
                deltas.append(Particle(energy * 1e-6, particle.position, delta_direction,
                                       ParticleType.ELECTRON, time=particle.time, parent=index))
                stats.deltas += 1
                if self.histograms:
                    stats.delta_cosines.append(float(np.dot(particle.direction, delta_direction)))
                stats.energy_loss -= energy    # deposited by the delta itself
                continue

            energy_sum += energy
            if not self.fast:
                pairs += slow_down(energy, self.energy_threshold, veh, rng)

        if self.fast:
            pairs = poisson_pairs(energy_sum, rng)
        return pairs
