"""Physics module: Cross-section tables, collisions, ionization, pair creation."""

from bichsel_mc.physics.tables import CrossSectionTables
from bichsel_mc.physics.collision import CollisionModel, CollisionParameters
from bichsel_mc.physics.ionizer import PhotoAbsorptionIonizer
from bichsel_mc.physics.scattering import SingleScattering

__all__ = ["CrossSectionTables", "CollisionModel", "CollisionParameters",
           "PhotoAbsorptionIonizer", "SingleScattering"]
