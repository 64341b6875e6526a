"""
BICHSEL_MC: energy-loss straggling of charged particles in silicon

A Monte Carlo code stepping single particles and their delta rays
through a silicon sensor, collision by collision, using the Bichsel
cross-section tables and the Mazziotta photoabsorption model.

Modules:
    core: Particle state, sensor geometry, output records
    physics: Cross-section tables, collision parameters, ionization, pairs
    transport: Stepping engine and event loop
    scoring: Run statistics and spectra
    io: HDF5 output
"""

__version__ = "0.1.0"

from bichsel_mc.config import SimulationConfig, load_config
from bichsel_mc.core.geometry import BoxSensor, SensorGeometry
from bichsel_mc.core.particle import Particle, ParticleType
from bichsel_mc.errors import BichselError, ConfigurationError
from bichsel_mc.physics.tables import CrossSectionTables
from bichsel_mc.transport.engine import DepositionEngine
from bichsel_mc.transport.stepping import SteppingEngine

__all__ = [
    "SimulationConfig",
    "load_config",
    "BoxSensor",
    "SensorGeometry",
    "Particle",
    "ParticleType",
    "BichselError",
    "ConfigurationError",
    "CrossSectionTables",
    "DepositionEngine",
    "SteppingEngine",
]
