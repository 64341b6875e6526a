"""
Assembly of the output records of an event.

Particles are stored in stepping order, so a particle's position in the
list is the index of its MCParticle. Parent links and the particle of
each deposited charge are carried as indices while the event runs and
resolved to objects here, once every record exists.
"""

from typing import List, Sequence, Tuple

from bichsel_mc.core.geometry import SensorGeometry
from bichsel_mc.core.particle import Particle
from bichsel_mc.core.records import CarrierType, Cluster, DepositedCharge, MCParticle


def build_mc_particles(particles: Sequence[Particle],
                       geometry: SensorGeometry) -> List[MCParticle]:
    """One MCParticle per stepped particle, parents still unresolved."""
    mc_particles = []
    for particle in particles:
        mc_particles.append(MCParticle(
            local_start=particle.position_start,
            global_start=geometry.local_to_global(particle.position_start),
            local_end=particle.position,
            global_end=geometry.local_to_global(particle.position),
            particle_type=particle.type,
            time_start=particle.time_start,
            time_end=particle.time,
            parent_index=particle.parent,
        ))
    return mc_particles


def build_deposits(clusters: Sequence[Cluster],
                   geometry: SensorGeometry) -> List[DepositedCharge]:
    """An electron and a hole DepositedCharge for every cluster."""
    deposits = []
    for cluster in clusters:
        global_position = geometry.local_to_global(cluster.position)
        for carrier in (CarrierType.ELECTRON, CarrierType.HOLE):
            deposits.append(DepositedCharge(
                local_position=cluster.position,
                global_position=global_position,
                carrier=carrier,
                charge=cluster.pairs,
                time=cluster.time,
                particle_index=cluster.particle_index,
            ))
    return deposits


def link_records(mc_particles: List[MCParticle], deposits: List[DepositedCharge]):
    """
    Resolve index links to object references.

    Raises:
        IndexError: A link points outside the MCParticle list
    """
    n = len(mc_particles)
    for i, mcp in enumerate(mc_particles):
        if mcp.parent_index >= 0:
            if mcp.parent_index >= i:
                raise IndexError(f"MCParticle {i} has parent {mcp.parent_index} "
                                 f"that was not stepped before it")
            mcp.parent = mc_particles[mcp.parent_index]

    for deposit in deposits:
        if not 0 <= deposit.particle_index < n:
            raise IndexError(f"Deposit refers to MCParticle {deposit.particle_index} "
                             f"of {n}")
        deposit.mc_particle = mc_particles[deposit.particle_index]


def assemble(particles: Sequence[Particle], clusters: Sequence[Cluster],
             geometry: SensorGeometry) -> Tuple[List[MCParticle], List[DepositedCharge]]:
    """Build and link the MCParticles and DepositedCharges of an event."""
    mc_particles = build_mc_particles(particles, geometry)
    deposits = build_deposits(clusters, geometry)
    link_records(mc_particles, deposits)
    return mc_particles, deposits
