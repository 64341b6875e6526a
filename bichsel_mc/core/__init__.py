"""Core module: Particle state, sensor geometry and output records."""

from bichsel_mc.core.particle import Particle, ParticleType
from bichsel_mc.core.geometry import BoxSensor, SensorGeometry
from bichsel_mc.core.records import Cluster, DepositedCharge, MCParticle

__all__ = ["Particle", "ParticleType", "BoxSensor", "SensorGeometry",
           "Cluster", "DepositedCharge", "MCParticle"]
