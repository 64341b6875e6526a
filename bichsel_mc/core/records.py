"""
Output records of a simulated event.

Clusters are produced by the stepping engine; MCParticles and
DepositedCharges are the records handed to downstream consumers.
MCParticle parents and DepositedCharge particles are linked by index
first and resolved to objects once every particle of the event exists.
"""

from enum import IntEnum
from typing import List, Optional, Sequence

import numpy as np

from bichsel_mc.core.particle import ParticleType


# Structured dtypes used for array export (HDF5 output)
MCPARTICLE_DTYPE = np.dtype([
    ('local_start', np.float64, 3),   # [mm]
    ('local_end', np.float64, 3),     # [mm]
    ('global_start', np.float64, 3),  # [mm]
    ('global_end', np.float64, 3),    # [mm]
    ('particle_type', np.int32),
    ('time_start', np.float64),       # [ns]
    ('time_end', np.float64),         # [ns]
    ('parent', np.int64),             # index, -1 for primaries
])

DEPOSIT_DTYPE = np.dtype([
    ('local_position', np.float64, 3),
    ('global_position', np.float64, 3),
    ('carrier', np.int8),             # -1 electron, +1 hole
    ('charge', np.int64),             # number of carriers
    ('time', np.float64),
    ('mc_particle', np.int64),
])


class CarrierType(IntEnum):
    ELECTRON = -1
    HOLE = 1


class Cluster:
    """Electron-hole pairs created by one inelastic collision."""

    __slots__ = ('_pairs', '_position', '_particle_index', '_time', '_energy')

    def __init__(self, pairs: int, position, particle_index: int,
                 time: float, energy: float = 0.0):
        """
        Parameters:
            pairs: Number of electron-hole pairs (> 0)
            position: Local position [mm]
            particle_index: Index of the generating MCParticle
            time: Local creation time [ns]
            energy: Virtual-photon energy of the collision [eV]
        """
        if pairs <= 0:
            raise ValueError(f"Cluster needs a positive number of pairs, got {pairs}")
        self._pairs = int(pairs)
        self._position = np.array(position, dtype=np.float64)
        self._position.setflags(write=False)
        self._particle_index = int(particle_index)
        self._time = float(time)
        self._energy = float(energy)

    @property
    def pairs(self) -> int:
        return self._pairs

    @property
    def position(self) -> np.ndarray:
        return self._position

    @property
    def particle_index(self) -> int:
        return self._particle_index

    @property
    def time(self) -> float:
        return self._time

    @property
    def energy(self) -> float:
        return self._energy

    def __repr__(self) -> str:
        return (f"Cluster(pairs={self._pairs}, pos={self._position.tolist()}, "
                f"particle={self._particle_index}, t={self._time:.4g} ns)")


class MCParticle:
    """Monte Carlo truth of one stepped particle."""

    def __init__(self, local_start, global_start, local_end, global_end,
                 particle_type: ParticleType, time_start: float,
                 time_end: float, parent_index: int = -1):
        self.local_start = np.asarray(local_start, dtype=np.float64)
        self.global_start = np.asarray(global_start, dtype=np.float64)
        self.local_end = np.asarray(local_end, dtype=np.float64)
        self.global_end = np.asarray(global_end, dtype=np.float64)
        self.particle_type = ParticleType(particle_type)
        self.time_start = float(time_start)
        self.time_end = float(time_end)
        self.parent_index = int(parent_index)
        self.parent: Optional["MCParticle"] = None

    @property
    def is_primary(self) -> bool:
        return self.parent_index < 0

    def __repr__(self) -> str:
        return (f"MCParticle({self.particle_type.name}, start={self.local_start.tolist()}, "
                f"end={self.local_end.tolist()}, parent={self.parent_index})")


class DepositedCharge:
    """Charge carriers of one sign deposited by a cluster."""

    def __init__(self, local_position, global_position, carrier: CarrierType,
                 charge: int, time: float, particle_index: int):
        self.local_position = np.asarray(local_position, dtype=np.float64)
        self.global_position = np.asarray(global_position, dtype=np.float64)
        self.carrier = CarrierType(carrier)
        self.charge = int(charge)
        self.time = float(time)
        self.particle_index = int(particle_index)
        self.mc_particle: Optional[MCParticle] = None

    def __repr__(self) -> str:
        return (f"DepositedCharge({self.carrier.name}, n={self.charge}, "
                f"pos={self.local_position.tolist()}, particle={self.particle_index})")


def mcparticles_to_array(mc_particles: Sequence[MCParticle]) -> np.ndarray:
    """Convert MCParticles to a structured array (MCPARTICLE_DTYPE)."""
    array = np.zeros(len(mc_particles), dtype=MCPARTICLE_DTYPE)
    for i, mcp in enumerate(mc_particles):
        array['local_start'][i] = mcp.local_start
        array['local_end'][i] = mcp.local_end
        array['global_start'][i] = mcp.global_start
        array['global_end'][i] = mcp.global_end
        array['particle_type'][i] = int(mcp.particle_type)
        array['time_start'][i] = mcp.time_start
        array['time_end'][i] = mcp.time_end
        array['parent'][i] = mcp.parent_index
    return array


def deposits_to_array(deposits: List[DepositedCharge]) -> np.ndarray:
    """Convert DepositedCharges to a structured array (DEPOSIT_DTYPE)."""
    array = np.zeros(len(deposits), dtype=DEPOSIT_DTYPE)
    for i, dep in enumerate(deposits):
        array['local_position'][i] = dep.local_position
        array['global_position'][i] = dep.global_position
        array['carrier'][i] = int(dep.carrier)
        array['charge'][i] = dep.charge
        array['time'][i] = dep.time
        array['mc_particle'][i] = dep.particle_index
    return array
