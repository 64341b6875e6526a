"""
Particle state for the stepping engine.

A particle is owned by exactly one event while it is being stepped. All
kinematic quantities are derived from the kinetic energy and refreshed
whenever the energy changes.

Units:
    energy [MeV], position [mm], time [ns], momentum [MeV/c],
    velocity [mm/ns]
"""

from enum import IntEnum
from typing import Tuple, Union

import numpy as np

from bichsel_mc.errors import ConfigurationError


SPEED_OF_LIGHT = 299.792458  # mm/ns


class ParticleType(IntEnum):
    """Particle species, numbered as in the Bichsel tables."""

    NONE = 0
    PROTON = 1
    PION = 2
    KAON = 3
    ELECTRON = 4
    MUON = 5
    HELIUM = 6
    LITHIUM = 7
    CARBON = 8
    IRON = 9


# Rest mass [MeV/c²]
PARTICLE_MASSES = {
    ParticleType.PROTON: 938.2723,
    ParticleType.PION: 139.578,
    ParticleType.KAON: 493.67,
    ParticleType.ELECTRON: 0.51099906,
    ParticleType.MUON: 105.65932,
    ParticleType.HELIUM: 3727.379,
    ParticleType.LITHIUM: 6533.833,
    ParticleType.CARBON: 11174.862,
    ParticleType.IRON: 52089.77,
}

# Charge number |z|
PARTICLE_CHARGES = {
    ParticleType.PROTON: 1.0,
    ParticleType.PION: 1.0,
    ParticleType.KAON: 1.0,
    ParticleType.ELECTRON: 1.0,
    ParticleType.MUON: 1.0,
    ParticleType.HELIUM: 2.0,
    ParticleType.LITHIUM: 3.0,
    ParticleType.CARBON: 6.0,
    ParticleType.IRON: 26.0,
}

_PARTICLE_ALIASES = {
    'proton': ParticleType.PROTON,
    'p': ParticleType.PROTON,
    'H-1': ParticleType.PROTON,
    'pion': ParticleType.PION,
    'pi': ParticleType.PION,
    'kaon': ParticleType.KAON,
    'K': ParticleType.KAON,
    'electron': ParticleType.ELECTRON,
    'e': ParticleType.ELECTRON,
    'e-': ParticleType.ELECTRON,
    'muon': ParticleType.MUON,
    'mu': ParticleType.MUON,
    'helium': ParticleType.HELIUM,
    'alpha': ParticleType.HELIUM,
    'He-4': ParticleType.HELIUM,
    'lithium': ParticleType.LITHIUM,
    'Li-7': ParticleType.LITHIUM,
    'carbon': ParticleType.CARBON,
    'C-12': ParticleType.CARBON,
    'iron': ParticleType.IRON,
    'Fe-56': ParticleType.IRON,
}


def parse_particle_type(particle_type: Union[str, int, ParticleType]) -> ParticleType:
    """
    Resolve a species name or integer tag.

    Examples:
        'proton' or 1 → ParticleType.PROTON
        'C-12' → ParticleType.CARBON

    Raises:
        ConfigurationError: unknown species, or NONE
    """
    if isinstance(particle_type, ParticleType):
        resolved = particle_type
    elif isinstance(particle_type, (int, np.integer)) and not isinstance(particle_type, bool):
        try:
            resolved = ParticleType(int(particle_type))
        except ValueError:
            raise ConfigurationError(f"Unknown particle type {particle_type}") from None
    else:
        name = str(particle_type)
        resolved = _PARTICLE_ALIASES.get(name, _PARTICLE_ALIASES.get(name.lower()))
        if resolved is None and name.upper() in ParticleType.__members__:
            resolved = ParticleType[name.upper()]
        if resolved is None:
            raise ConfigurationError(f"Unknown particle type '{particle_type}'. "
                                     f"Available: {sorted(_PARTICLE_ALIASES)}")

    if resolved is ParticleType.NONE:
        raise ConfigurationError("Particle type NONE cannot be simulated")
    return resolved


class Particle:
    """Single particle being stepped through the sensor."""

    def __init__(self, energy: float,
                 position: Tuple[float, float, float],
                 direction: Tuple[float, float, float],
                 particle_type: ParticleType,
                 time: float = 0.0,
                 parent: int = -1):
        """
        Initialize a particle.

        Parameters:
            energy: Kinetic energy [MeV]
            position: (x, y, z) local position of generation [mm]
            direction: (dx, dy, dz) direction (normalized internally)
            particle_type: Species
            time: Local time of generation [ns]
            parent: Index of the parent MCParticle, -1 for a primary
        """
        self.type = ParticleType(particle_type)
        self.position_start = np.array(position, dtype=np.float64)
        self.position = self.position_start.copy()
        self.direction = np.zeros(3)
        self.set_direction(direction)
        self.time_start = float(time)
        self.time = float(time)
        self.parent = int(parent)

        self.mass = PARTICLE_MASSES[self.type]
        self.charge = PARTICLE_CHARGES[self.type]

        self.energy = 0.0
        self.energy_start = max(float(energy), 0.0)
        self.gamma = 1.0
        self.betasquared = 0.0
        self.momentum = 0.0
        self.velocity = 0.0
        self.set_energy(energy)

    def set_energy(self, energy: float):
        """Set kinetic energy [MeV] and refresh derived kinematics."""
        self.energy = max(float(energy), 0.0)
        self.gamma = self.energy / self.mass + 1.0
        betagamma = np.sqrt(self.gamma * self.gamma - 1.0)  # p/m
        self.betasquared = betagamma * betagamma / (1.0 + betagamma * betagamma)
        self.momentum = self.mass * betagamma
        self.velocity = betagamma / self.gamma * SPEED_OF_LIGHT

    def set_direction(self, direction):
        """Set direction of motion (normalized)."""
        dir_array = np.array(direction, dtype=np.float64)
        self.direction = dir_array / np.linalg.norm(dir_array)

    def step(self, length: float):
        """Move along the current direction [mm] and advance the local time."""
        self.position = self.position + length * self.direction
        self.time += length / self.velocity

    def step_target(self, length: float) -> np.ndarray:
        """Position reached after a step of ``length`` [mm], without moving."""
        return self.position + length * self.direction

    @property
    def is_electron(self) -> bool:
        return self.type is ParticleType.ELECTRON

    def __repr__(self) -> str:
        return (f"Particle({self.type.name}, E={self.energy * 1e3:.3f} keV, "
                f"pos={np.round(self.position, 6).tolist()}, parent={self.parent})")
