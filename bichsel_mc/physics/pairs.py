"""
Conversion of low-energy electrons and holes into electron-hole pairs.

Two modes:
    fast: Poisson-distributed pair count with mean E / 3.645 eV
    slow: explicit competition between impact ionization and phonon
          emission (Alig et al., PRB 22 (1980) 5565), splitting the
          energy of every ionizing carrier into two daughters

The slow mode dominates the CPU time of a simulation.
"""

import numpy as np

PAIR_CREATION_ENERGY = 3.645    # mean energy per e-h pair in Si [eV]
PHONON_ENERGY = 0.063           # optical phonon energy [eV]
ALIG_A = 5.2                    # phonon/ionization ratio parameter (Alig 1980)


def pair_threshold(temperature: float) -> float:
    """
    Default pair-creation threshold [eV] at a temperature [K].

    Band gap Egap(T) = 1.17 - 4.73e-4 T² / (636 + T) with the threshold
    energy 1.5 * 1.17 eV of Alig et al.
    """
    return 1.5 * 1.17 - 4.73e-4 * temperature * temperature / (636.0 + temperature)


def gena1(rng: np.random.Generator) -> float:
    """
    Fraction of the excess energy given to the first daughter.

    Rejection sampling of 105/16 (1-x)² sqrt(x) (integral 1, maximum
    1.8782971) under the envelope 1.8783.
    """
    while True:
        r1 = rng.random()
        r2 = rng.random()
        alph1 = 105.0 / 16.0 * (1.0 - r1) * (1.0 - r1) * np.sqrt(r1)
        if alph1 <= 1.8783 * r2:
            return r1


def gena2(rng: np.random.Generator) -> float:
    """
    Fraction of the remaining energy given to the second daughter.

    Rejection sampling of 8/pi sqrt(x(1-x)) under the envelope 1.27324.
    """
    while True:
        r1 = rng.random()
        r2 = rng.random()
        alph2 = 8.0 / np.pi * np.sqrt(r1 * (1.0 - r1))
        if alph2 <= 1.27324 * r2:
            return r1


def ionization_probability(energy: float, threshold: float) -> float:
    """Probability that a carrier of ``energy`` [eV] ionizes rather than emits a phonon."""
    return 1.0 / (1.0 + ALIG_A * 105.0 / 2.0 / np.pi * np.sqrt(energy - PHONON_ENERGY)
                  / (energy - threshold) ** 3.5)


def poisson_pairs(energy_sum: float, rng: np.random.Generator) -> int:
    """Fast mode: Poisson pair count for a summed carrier energy [eV]."""
    if energy_sum <= 0.0:
        return 0
    return int(rng.poisson(energy_sum / PAIR_CREATION_ENERGY))


def slow_down(energy: float, threshold: float, veh: list,
              rng: np.random.Generator) -> int:
    """
    Slow mode: step one carrier down to the pair threshold.

    Every ionization creates a pair and two daughters; daughters above the
    threshold are pushed onto ``veh`` for later processing.

    Parameters:
        energy: Carrier energy [eV]
        threshold: Pair-creation threshold [eV]
        veh: Stack of carrier energies still to be processed
        rng: Random generator of the current event

    Returns:
        Number of pairs created by this carrier (daughters excluded)
    """
    pairs = 0
    while energy > threshold:
        if rng.random() < ionization_probability(energy, threshold):
            pairs += 1
            e1 = gena1(rng) * (energy - threshold)
            e2 = gena2(rng) * (energy - threshold - e1)
            if e1 > threshold:
                veh.append(e1)
            if e2 > threshold:
                veh.append(e2)
            energy = energy - e1 - e2 - threshold
        else:
            energy -= PHONON_ENERGY
    return pairs
