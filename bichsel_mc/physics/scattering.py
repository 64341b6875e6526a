"""
Angular kinematics of single collisions.

Elastic scattering samples the polar angle from the screened Rutherford
distribution; inelastic collisions emit the delta ray at the angle fixed
by two-body kinematics. Both angles are drawn in the particle frame
(z along the direction of flight) and rotated into the sensor frame.

References:
    - B. Chaoui et al., elastic scattering of low-energy electrons (2006)
    - F. Salvat et al., PENELOPE, ionisation kinematics
"""

import numpy as np
import numba

from bichsel_mc.physics.collision import ELECTRON_MASS


@numba.njit(fastmath=True, cache=True)
def rotate_to_frame(direction: np.ndarray, cost: float, phi: float) -> np.ndarray:
    """
    Rotate a direction given in the particle frame into the sensor frame.

    The particle frame has its z axis along ``direction``; the new
    direction has polar angle acos(cost) and azimuth phi in that frame.

    Parameters:
        direction: Current direction unit vector [x, y, z]
        cost: Cosine of the polar angle in the particle frame
        phi: Azimuthal angle [radians]

    Returns:
        New direction unit vector [x, y, z] in the sensor frame
    """
    cost = min(max(cost, -1.0), 1.0)
    sint = np.sqrt(1.0 - cost * cost)
    d0 = sint * np.cos(phi)
    d1 = sint * np.sin(phi)
    d2 = cost

    cz = min(max(direction[2], -1.0), 1.0)
    sz = np.sqrt(1.0 - cz * cz)
    phif = np.arctan2(direction[1], direction[0])
    cf = np.cos(phif)
    sf = np.sin(phif)

    new_x = cz * cf * d0 - sf * d1 + sz * cf * d2
    new_y = cz * sf * d0 + cf * d1 + sz * sf * d2
    new_z = -sz * d0 + cz * d2

    # Normalize (rounding accumulates over many collisions)
    norm = np.sqrt(new_x * new_x + new_y * new_y + new_z * new_z)

    result = np.empty(3, dtype=np.float64)
    result[0] = new_x / norm
    result[1] = new_y / norm
    result[2] = new_z / norm
    return result


@numba.njit(fastmath=True, cache=True)
def delta_emission_cosine(energy_gamma: float, energy: float) -> float:
    """
    Cosine of the delta-ray emission angle.

    Parameters:
        energy_gamma: Energy transfer [eV]
        energy: Kinetic energy of the emitting particle [MeV]

    Returns:
        cos(theta), at most 1 (90 degrees for small transfers)
    """
    cost = np.sqrt(energy_gamma / (2.0 * ELECTRON_MASS * 1e6 + energy_gamma)
                   * (energy + 2.0 * ELECTRON_MASS) / energy)
    return min(cost, 1.0)


@numba.njit(fastmath=True, cache=True)
def elastic_cosine(screening: float, r: float) -> float:
    """
    Screened Rutherford polar angle by inversion.

    cos(theta) = 1 - 2 gn r / (2 + gn - 2 r), gn the screening parameter
    and r uniform in [0, 1).
    """
    return 1.0 - 2.0 * screening * r / (2.0 + screening - 2.0 * r)


class SingleScattering:
    """
    Direction sampling for elastic and inelastic collisions.

    Usage:
        scattering = SingleScattering()
        direction = scattering.elastic(direction, params.screening, rng)
        delta_dir = scattering.delta_direction(direction, energy_gamma, energy, rng)
    """

    def elastic(self, direction: np.ndarray, screening: float,
                rng: np.random.Generator) -> np.ndarray:
        """New direction after an elastic collision."""
        cost = elastic_cosine(screening, rng.random())
        phi = 2.0 * np.pi * rng.random()
        return rotate_to_frame(direction, cost, phi)

    def delta_direction(self, direction: np.ndarray, energy_gamma: float,
                        energy: float, rng: np.random.Generator) -> np.ndarray:
        """Emission direction of a delta ray taking ``energy_gamma`` [eV]."""
        cost = delta_emission_cosine(energy_gamma, energy)
        phi = 2.0 * np.pi * rng.random()
        return rotate_to_frame(direction, cost, phi)

