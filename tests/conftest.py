import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bichsel_mc.core.geometry import BoxSensor
from bichsel_mc.physics.pairs import pair_threshold
from bichsel_mc.physics.tables import N2, TABLE_SIZE, CrossSectionTables, energy_grid

# Drude model of the silicon valence band [eV]
PLASMON_ENERGY = 16.6
DAMPING = 3.0


def drude_dielectric(energy):
    """Real and imaginary dielectric constant of a free-electron gas."""
    denom = energy * energy + DAMPING * DAMPING
    eps1 = 1.0 - PLASMON_ENERGY ** 2 / denom
    eps2 = PLASMON_ENERGY ** 2 * DAMPING / (energy * denom)
    return eps1, eps2


def write_synthetic_tables(directory: Path, n2: int = N2, size: int = TABLE_SIZE,
                           n_rows: int = TABLE_SIZE):
    """Write HEPS, MACOM and EMERC tables on the generated energy grid."""
    energy, width = energy_grid(n2, size)
    eps1, eps2 = drude_dielectric(energy)
    rim = eps2 / (eps1 * eps1 + eps2 * eps2)
    dfdE = rim * 0.0092456 * energy
    # A(E): a Bethe-ridge term plus half the oscillator strength below E
    # (free-electron limit at high energy)
    ae = 3.0 * energy * dfdE + 0.5 * np.cumsum(dfdE * width)

    with open(directory / 'HEPS.TAB', 'w') as f:
        f.write(f"{n2} {size}\n")
        for j in range(n_rows):
            f.write(f"{j + 1} {energy[j]:.8e} {eps1[j]:.8e} {eps2[j]:.8e} {rim[j]:.8e}\n")

    with open(directory / 'MACOM.TAB', 'w') as f:
        f.write(f"{n2} {size}\n")
        for j in range(n_rows):
            f.write(f"{j + 1} {energy[j]:.8e} {ae[j]:.8e}\n")

    with open(directory / 'EMERC.TAB', 'w') as f:
        f.write(f"{n2} {size}\n")
        f.write("Emerson et al., Phys Rev B7, 1798 (1973)\n")
        f.write("low-energy A(E) and minimum momentum transfer\n")
        f.write("j E A(E) xkmn\n")
        for j in range(min(200, n_rows)):
            xkmn = 0.1 if energy[j] < 11.9 else 0.0
            f.write(f"{j + 1} {energy[j]:.8e} {ae[j]:.8e} {xkmn:.8e}\n")


@pytest.fixture(scope="session")
def table_dir(tmp_path_factory):
    directory = tmp_path_factory.mktemp("bichsel_data")
    write_synthetic_tables(directory)
    return directory


@pytest.fixture(scope="session")
def tables(table_dir):
    return CrossSectionTables.load([table_dir], use_cache=False)


@pytest.fixture
def thin_sensor():
    """10 um thick sensor."""
    return BoxSensor(thickness=0.010, pitch=0.025)


@pytest.fixture
def threshold():
    return pair_threshold(293.15)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)
