"""
Photoabsorption and Auger cascade in silicon shells.

Converts the energy of a virtual photon into the energies of the
electrons and holes it creates. The photon is absorbed in the valence
band or in one of the L23, L1 or K shells; inner-shell vacancies relax
through fixed Auger and Coster-Kronig transition tables.

Based on the shell model of M. N. Mazziotta as used by H. Bichsel.

References:
    - M. N. Mazziotta, Nucl. Instr. and Meth. A 584 (2008) 436
    - G. W. Fraser et al., Nucl. Instr. and Meth. A 350 (1994) 368
"""

import logging
from typing import List

import numpy as np

logger = logging.getLogger(__name__)

# Shell binding energies [eV], indexed by shell number:
# 1: valence band upper edge, 2: L23, 3: L1, 4: K
SHELL_ENERGY = (0.0, 12.0, 99.2, 148.7, 1839.0)
VALENCE_ENERGY = SHELL_ENERGY[1]

VALENCE, L23, L1, K = 1, 2, 3, 4

# Photoabsorption probability of the M, L23, L1 and K shells, extrapolated
# from Fig. 1 in Fraser et al.
ABSORPTION_ENERGY = np.array([0.0, 40.0, 50.0, 99.2, 99.2, 148.7, 148.7, 150.0,
                              300.0, 500.0, 1000.0, 1839.0, 1839.0, 2000.0])
ABSORPTION_PROBABILITY = np.array([
    # M
    [0.0, 1.0, 1.0, 1.0, 0.03, 0.03, 0.02, 0.02, 0.02, 0.02, 0.03, 0.05, 0.0, 0.0],
    # L23
    [0.0, 0.0, 0.0, 0.0, 0.97, 0.92, 0.88, 0.88, 0.83, 0.70, 0.55, 0.39, 0.0, 0.0],
    # L1
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.1, 0.1, 0.15, 0.28, 0.42, 0.56, 0.08, 0.08],
    # K
    [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.92, 0.92],
])

# Transition probabilities and Auger electron energies [eV] per vacancy
AUGER_PROBABILITY = {
    K: (0.1920, 0.3885, 0.2325, 0.0720, 0.0030, 0.1000, 0.0040, 0.0070, 0.0010),
    L1: (0.0250, 0.9750),
    L23: (0.9990, 0.0010),
}
AUGER_ENERGY = {
    K: (1541.6, 1591.1, 1640.6, 1690.3, 1690.3, 1739.8, 1739.8, 1839.0, 1839.0),
    L1: (148.7, 49.5),
    L23: (99.2, 0.0),
}
AUGER_INTEGRAL = {shell: np.cumsum(p) for shell, p in AUGER_PROBABILITY.items()}


def shell_probabilities(energy_gamma: float) -> np.ndarray:
    """
    Absorption probabilities of the M, L23, L1 and K shells (not normalized).

    Linear interpolation on the tabulated curve; outside the table range
    the edge values are used.
    """
    if energy_gamma > ABSORPTION_ENERGY[-1]:
        return ABSORPTION_PROBABILITY[:, -1].copy()

    # first bin (from index 3) with EPP[i] < E <= EPP[i+1]
    iep = 3
    while iep < 13:
        if ABSORPTION_ENERGY[iep] < energy_gamma <= ABSORPTION_ENERGY[iep + 1]:
            break
        iep += 1
    iep = min(iep, 12)

    e0, e1 = ABSORPTION_ENERGY[iep], ABSORPTION_ENERGY[iep + 1]
    p0, p1 = ABSORPTION_PROBABILITY[:, iep], ABSORPTION_PROBABILITY[:, iep + 1]
    return p0 + (p1 - p0) / (e1 - e0) * (energy_gamma - e0)


class PhotoAbsorptionIonizer:
    """
    Shell selection and Auger cascade for virtual photons in silicon.

    The ionizer holds no random state: every call takes the event's
    generator, so a seeded generator reproduces the same result.

    Usage:
        ionizer = PhotoAbsorptionIonizer()
        veh = ionizer.ionize(150.0, rng)
        while veh:
            energy = veh.pop()
    """

    def select_shell(self, energy_gamma: float, rng: np.random.Generator) -> int:
        """Shell (1-4) absorbing a photon of the given energy [eV]."""
        if energy_gamma <= VALENCE_ENERGY:
            return 0
        if energy_gamma <= ABSORPTION_ENERGY[3]:
            return VALENCE

        cumulative = np.cumsum(shell_probabilities(energy_gamma))
        cumulative /= cumulative[-1]
        rs = rng.random()
        iv = int(np.searchsorted(cumulative, rs, side='right')) + 1
        return min(iv, K)

    def ionize(self, energy_gamma: float, rng: np.random.Generator) -> List[float]:
        """
        Electron and hole energies [eV] created by a virtual photon.

        Parameters:
            energy_gamma: Photon energy [eV]
            rng: Random generator of the current event

        Returns:
            Energies to be processed as a stack (last in, first out).
            Empty when the photon deposits nothing.
        """
        veh: List[float] = []
        shell = self.select_shell(energy_gamma, rng)
        logger.debug("Shells for %.6g eV: shell %d", energy_gamma, shell)

        # photoabsorption in the valence band
        if shell <= VALENCE:
            if energy_gamma < 0.1:
                return veh
            rv = rng.random()
            if energy_gamma < VALENCE_ENERGY:
                veh.append(rv * energy_gamma)
                veh.append((1.0 - rv) * energy_gamma)
            else:
                veh.append(rv * VALENCE_ENERGY)
                veh.append(energy_gamma - rv * VALENCE_ENERGY)
            return veh

        # photoabsorption in an inner shell
        photoelectron = energy_gamma - SHELL_ENERGY[shell]
        if photoelectron <= 0.0:
            logger.debug("Photoelectron with non-positive energy: %.6g eV in shell %d at %.6g eV",
                         energy_gamma, shell, SHELL_ENERGY[shell])
            return veh
        veh.append(photoelectron)

        raug = rng.random()
        if shell == L23:
            self._l23_vacancy(raug, veh, rng)
        elif shell == L1:
            self._l1_vacancy(raug, veh, rng)
        else:
            self._k_vacancy(raug, veh, rng)
        return veh

    def _k_vacancy(self, raug: float, veh: List[float], rng: np.random.Generator):
        integral = AUGER_INTEGRAL[K]
        ks = 1
        if raug >= integral[0]:
            for js in range(2, len(integral) + 1):
                if integral[js - 2] <= raug < integral[js - 1]:
                    ks = js
        energy_auger = AUGER_ENERGY[K][ks - 1]

        if ks >= 8:
            # K M M
            self._transition(energy_auger, veh, rng)
        elif ks in (6, 7):
            # K L23 M
            self._split_valence(energy_auger, veh, rng)
            self._l23_vacancy(rng.random(), veh, rng)
        elif ks in (4, 5):
            # K L1 M
            self._split_valence(energy_auger, veh, rng)
            self._l1_vacancy(rng.random(), veh, rng)
        elif ks == 3:
            # K L23 L23
            veh.append(energy_auger)
            self._l23_vacancy(rng.random(), veh, rng)
            self._l23_vacancy(rng.random(), veh, rng)
        elif ks == 2:
            # K L1 L23
            veh.append(energy_auger)
            self._l23_vacancy(rng.random(), veh, rng)
            self._l1_vacancy(rng.random(), veh, rng)
        else:
            # K L1 L1
            veh.append(energy_auger)
            self._l1_vacancy(rng.random(), veh, rng)
            self._l1_vacancy(rng.random(), veh, rng)

    def _l1_vacancy(self, r: float, veh: List[float], rng: np.random.Generator):
        """Fill an L1 vacancy: L1 L23 M (Coster-Kronig) or L1 M M."""
        if r > AUGER_INTEGRAL[L1][0]:
            self._split_valence(AUGER_ENERGY[L1][1], veh, rng)
            self._l23_vacancy(rng.random(), veh, rng)
        else:
            self._transition(AUGER_ENERGY[L1][0], veh, rng)

    def _l23_vacancy(self, r: float, veh: List[float], rng: np.random.Generator):
        """Fill an L23 vacancy: L23 M M."""
        if r <= AUGER_INTEGRAL[L23][0]:
            self._transition(AUGER_ENERGY[L23][0], veh, rng)

    def _split_valence(self, energy_auger: float, veh: List[float],
                       rng: np.random.Generator):
        """Emit a valence hole and the Auger electron sharing ``energy_auger``."""
        energy = VALENCE_ENERGY * rng.random()
        veh.append(energy)
        veh.append(energy_auger - energy)

    def _transition(self, energy_auger: float, veh: List[float],
                    rng: np.random.Generator):
        """
        Auger transition into the valence band.

        Emits the Auger electron and two holes. The holes share up to
        twice the valence width but both stay below the valence edge.
        """
        energy = (1.0 + inverse_triangular(rng)) * VALENCE_ENERGY  # 0..2*Ev
        veh.append(energy_auger - energy)

        low = max(0.0, energy - VALENCE_ENERGY)
        high = min(energy, VALENCE_ENERGY)
        hole_energy = rng.uniform(low, high)
        veh.append(hole_energy)
        veh.append(energy - hole_energy)


def inverse_triangular(rng: np.random.Generator) -> float:
    """
    Draw from the V-shaped density |x| on [-1, 1].

    Piecewise-linear distribution with nodes (-1, 0, 1) and weights
    (1, 0, 1).
    """
    v = 2.0 * rng.random() - 1.0
    return float(np.copysign(np.sqrt(abs(v)), v))
