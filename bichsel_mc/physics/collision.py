"""
Inelastic and elastic collision parameters in silicon.

For a particle of given kinetic energy this computes the inverse
inelastic and elastic mean free paths, the elastic screening parameter
and the normalized cumulative energy-loss distribution used to sample
virtual-photon energies.

The inelastic cross section follows the Bethe-Fano formulation with the
generalized oscillator strength split into close, distant longitudinal,
distant transverse and Rutherford-like contributions.

References:
    - H. Bichsel, Rev. Mod. Phys. 60, 663 (1988)
    - U. Fano, Ann. Rev. Nucl. Sci. 13, 1 (1963)
    - M. Inokuti, Rev. Mod. Phys. 43, 297 (1971)
    - E. A. Uehling, Ann. Rev. Nucl. Sci. 4, 315 (1954)
"""

import logging
from typing import Tuple

import numpy as np
import numba

from bichsel_mc.core.particle import Particle
from bichsel_mc.physics.tables import CrossSectionTables

logger = logging.getLogger(__name__)

# Silicon absorber
SILICON = {
    'Z': 14.0,              # atomic number
    'A': 28.086,            # atomic weight
    'rho': 2.329,           # density [g/cm³]
    'X0': 9.36,             # radiation length [cm]
}

ELECTRON_MASS = 0.51099906          # MeV
RYDBERG = 13.6056981                # eV
BOHR_RADIUS = 0.529177e-8           # cm
AVOGADRO = 6.0221367e23
# 8 pi Ry² a0² / m_e  [cm² eV² / eV]
FAC = 8.0 * np.pi * RYDBERG * RYDBERG * BOHR_RADIUS ** 2 / ELECTRON_MASS / 1e6
COULOMB_E2 = 14.4e-14               # e² [MeV cm]

UPDATE_FRACTION = 0.9               # recompute below 90% of the last energy


@numba.njit(fastmath=True, cache=True)
def collision_spectrum(E: np.ndarray, dE: np.ndarray, eps1: np.ndarray,
                       eps2: np.ndarray, dfdE: np.ndarray, ae: np.ndarray,
                       xkmn: np.ndarray, betasq: float, gamma: float,
                       emax: float, ekin: float,
                       is_electron: bool) -> Tuple[float, np.ndarray, int, float]:
    """
    Differential collision cross section E²·sigma(E) summed over the four
    generalized-oscillator-strength terms (Inokuti sums).

    Parameters:
        E, dE: Energy grid and bin widths [eV]
        eps1, eps2: Real and imaginary dielectric constant
        dfdE: Dipole oscillator strength
        ae: Integrated generalized oscillator strength A(E)
        xkmn: Minimum momentum transfer parameter (E < 11.9 eV)
        betasq: beta² of the particle
        gamma: Lorentz factor
        emax: Maximum energy transfer [eV]
        ekin: Kinetic energy [eV]
        is_electron: Use the electron (Møller) correction

    Returns:
        (tsig, sig, nlast, stpw):
            tsig: integral of sigma(E) dE over contributing bins
            sig: E²·sigma(E) per bin (zero beyond nlast)
            nlast: last contributing bin, -1 if none
            stpw: integral of E·sigma(E) dE
    """
    n = E.shape[0]
    sig = np.zeros(n)
    tsig = 0.0
    stpw = 0.0
    nlast = -1
    twombb = 2.0 * ELECTRON_MASS * 1e6 * betasq  # 2 m beta² [eV]

    for j in range(n):
        if E[j] > emax:
            break

        # Eq. (3.1) in RMP
        q1 = RYDBERG
        if E[j] < 11.9:
            q1 = xkmn[j] * xkmn[j] * RYDBERG
        elif E[j] < 100.0:
            q1 = 0.025 * 0.025 * RYDBERG

        qmin = E[j] * E[j] / twombb
        if E[j] < 11.9 and q1 < qmin:
            sig1 = 0.0
        else:
            sig1 = E[j] * dfdE[j] * np.log(q1 / qmin)

        # longitudinal excitation, Eq. (46) in Fano; Eq. (2.9) in RMP
        epbe = max(1.0 - betasq * eps1[j], 1e-20)  # Fano Eq. (47)
        sig2 = E[j] * dfdE[j] * (-0.5) * np.log(epbe * epbe + (betasq * eps2[j]) ** 2)

        # arctan approaches pi for betasq*eps1 > 1
        thet = np.arctan(eps2[j] * betasq / epbe)
        if thet < 0.0:
            thet = thet + np.pi

        denom = eps1[j] * eps1[j] + eps2[j] * eps2[j]
        sig3 = 0.0
        if denom > 0.0:
            sig3 = 0.0092456 * E[j] * E[j] * thet * (betasq - eps1[j] / denom)

        # Eqs. 9 & 2 in Uehling
        uef = 1.0 - E[j] * betasq / emax
        if is_electron:
            uef = (1.0 + (E[j] / (ekin - E[j])) ** 2
                   + ((gamma - 1.0) / gamma * E[j] / ekin) ** 2
                   - (2.0 * gamma - 1.0) * E[j] / (gamma * gamma * (ekin - E[j])))
        # factor 2: the integral was over d(lnK) rather than d(lnQ)
        sig4 = 2.0 * ae[j] * uef

        sig[j] = sig1 + sig2 + sig3 + sig4
        tsig += sig[j] * dE[j] / (E[j] * E[j])
        stpw += sig[j] * dE[j] / E[j]
        nlast = j

    return tsig, sig, nlast, stpw


@numba.njit(fastmath=True, cache=True)
def max_energy_transfer(mass: float, gamma: float, energy: float,
                        is_electron: bool) -> float:
    """
    Maximum energy transfer in a single collision [eV].

    Uehling, also Sternheimer & Peierls Eq. (53). Electrons can lose at
    most half of their energy to an identical particle.
    """
    if is_electron:
        return 0.5 * energy * 1e6
    emax = mass * (gamma * gamma - 1.0) / (
        0.5 * mass / ELECTRON_MASS + 0.5 * ELECTRON_MASS / mass + gamma)
    return emax * 1e6


class CollisionParameters:
    """
    Collision parameters of one particle at one energy.

    Attributes:
        energy: Kinetic energy the parameters were computed at [MeV]
        inverse_inelastic: 1 / inelastic mean free path [1/cm]
        inverse_elastic: 1 / elastic mean free path [1/cm]
        screening: Elastic screening parameter
        totsig: Normalized cumulative inelastic distribution over bins
            0..nlast (empty when no bin contributes)
        nlast: Last contributing energy bin, -1 if none
        emax: Maximum energy transfer [eV]
        stopping_power: Mean energy loss per path length [eV/cm]
    """

    def __init__(self, energy: float, inverse_inelastic: float,
                 inverse_elastic: float, screening: float,
                 totsig: np.ndarray, nlast: int, emax: float,
                 stopping_power: float):
        self.energy = energy
        self.inverse_inelastic = inverse_inelastic
        self.inverse_elastic = inverse_elastic
        self.screening = screening
        self.totsig = totsig
        self.nlast = nlast
        self.emax = emax
        self.stopping_power = stopping_power

    def needs_update(self, energy: float) -> bool:
        """Parameters are refreshed once the energy drops below 90%."""
        return energy < UPDATE_FRACTION * self.energy

    @property
    def total_inverse_path(self) -> float:
        return self.inverse_inelastic + self.inverse_elastic

    @property
    def mean_free_path(self) -> float:
        """Total mean free path [cm]."""
        total = self.total_inverse_path
        return 1.0 / total if total > 0.0 else np.inf

    @property
    def elastic_probability(self) -> float:
        total = self.total_inverse_path
        return self.inverse_elastic / total if total > 0.0 else 0.0

    def __repr__(self) -> str:
        return (f"CollisionParameters(E={self.energy:.6g} MeV, "
                f"inelastic={self.inverse_inelastic:.4g}/cm, "
                f"elastic={self.inverse_elastic:.4g}/cm, nlast={self.nlast})")


class CollisionModel:
    """
    Collision-parameter model for silicon.

    Usage:
        model = CollisionModel(tables)
        params = model.compute(particle)
        energy_gamma = model.sample_energy_loss(params, rng)
    """

    def __init__(self, tables: CrossSectionTables, material: dict = SILICON):
        """
        Parameters:
            tables: Loaded (read-only) cross-section tables
            material: Absorber properties (Z, A, rho, X0)
        """
        self.tables = tables
        self.material = material
        self.atomic_number = material['Z']
        self.radiation_length = material['X0']
        # atoms per cm³
        self.atnu = AVOGADRO * material['rho'] / material['A']

    def compute(self, particle: Particle) -> CollisionParameters:
        """
        Evaluate all collision parameters at the particle's current energy.

        When the maximum energy transfer lies below the first table
        energy no bin contributes and the inelastic inverse path is zero.
        """
        t = self.tables
        emax = max_energy_transfer(particle.mass, particle.gamma, particle.energy,
                                   particle.is_electron)

        tsig, sig, nlast, stpw = collision_spectrum(
            t.E, t.dE, t.dielectric_real, t.dielectric_imag, t.dfdE,
            t.oscillator_strength_ae, t.xkmn, particle.betasquared,
            particle.gamma, emax, particle.energy * 1e6, particle.is_electron
        )

        dec = particle.charge ** 2 * self.atnu * FAC / particle.betasquared
        inverse_inelastic = tsig * dec

        totsig = np.empty(0)
        if nlast >= 0:
            # running integral of H(E) dE, negative bins carry no probability
            h = sig[:nlast + 1] * dec / (t.E[:nlast + 1] ** 2)
            totsig = np.cumsum(np.maximum(h, 0.0) * t.dE[:nlast + 1])
            norm = totsig[-1]
            if norm > 0.0 and inverse_inelastic > 0.0:
                totsig /= norm
            else:
                totsig = np.empty(0)
                nlast = -1
                inverse_inelastic = 0.0
        else:
            inverse_inelastic = 0.0

        inverse_elastic, screening = self.elastic(particle)

        params = CollisionParameters(
            energy=particle.energy,
            inverse_inelastic=inverse_inelastic,
            inverse_elastic=inverse_elastic,
            screening=screening,
            totsig=totsig,
            nlast=nlast,
            emax=emax,
            stopping_power=stpw * dec,
        )

        logger.debug("%s Ekin %.6g keV, beta %.6g, gamma %.6g, Emax %.6g eV, nlast %d, "
                     "inelastic %.6g um, elastic %.6g um",
                     particle.type.name, particle.energy * 1e3, np.sqrt(particle.betasquared),
                     particle.gamma, emax, nlast,
                     1e4 / inverse_inelastic if inverse_inelastic > 0 else np.inf,
                     1e4 / inverse_elastic if inverse_elastic > 0 else np.inf)
        return params

    def elastic(self, particle: Particle) -> Tuple[float, float]:
        """
        Inverse elastic mean free path [1/cm] and screening parameter.

        Electrons: screened Rutherford cross section with Molière
        screening. Heavier particles: radiation-length approximation,
        capped at 10 X0, with unit screening parameter.
        """
        z = self.atomic_number
        if particle.is_electron:
            energy = particle.energy
            if energy <= 0.0:
                return 0.0, 1.0
            # p² [MeV²], 2nd binomial
            psq = energy * (energy + 2.0 * particle.mass)
            gn = 2.0 * 2.61 * z ** (2.0 / 3.0) / psq * 1e-6  # Moliere
            ff = 0.5 * np.pi * COULOMB_E2 ** 2 * z * z / (energy * energy)
            s0el = 2.0 * ff / (gn * (2.0 + gn))  # [cm²/atom]
            return self.atnu * s0el, gn

        getot = particle.energy + particle.mass
        x0 = self.radiation_length
        xlel = min(2232.0 * x0 * (particle.momentum ** 2 / (getot * particle.charge)) ** 2,
                   10.0 * x0)
        return xlel, 1.0

    def refresh_elastic(self, params: CollisionParameters, particle: Particle):
        """Re-evaluate only the elastic part at the particle's current energy."""
        params.inverse_elastic, params.screening = self.elastic(particle)

    def sample_energy_loss(self, params: CollisionParameters,
                           rng: np.random.Generator) -> float:
        """
        Draw a virtual-photon energy [eV] by inverting the cumulative table.

        The bin is chosen by inversion, the energy is uniform between the
        bin's lower and upper grid energies.
        """
        if params.nlast < 0:
            return 0.0
        E = self.tables.E
        yr = rng.random()
        je = int(np.searchsorted(params.totsig[1:params.nlast + 1], yr, side='right')) + 1
        je = min(je, params.nlast + 1, E.shape[0] - 1)
        return E[je - 1] + (E[je] - E[je - 1]) * rng.random()
