import numpy as np
import pytest

from bichsel_mc.physics.pairs import (
    PAIR_CREATION_ENERGY,
    gena1,
    gena2,
    ionization_probability,
    pair_threshold,
    poisson_pairs,
    slow_down,
)


def test_threshold_at_room_temperature():
    assert pair_threshold(293.15) == pytest.approx(1.755 - 4.73e-4 * 293.15 ** 2 / 929.15)
    assert pair_threshold(250.0) > pair_threshold(300.0)


def test_poisson_pairs_mean(rng):
    energy_sum = 1000.0
    counts = [poisson_pairs(energy_sum, rng) for _ in range(5000)]
    assert np.mean(counts) == pytest.approx(energy_sum / PAIR_CREATION_ENERGY, rel=0.01)
    assert poisson_pairs(0.0, rng) == 0


def test_gena_fractions_in_unit_interval(rng):
    a1 = np.array([gena1(rng) for _ in range(5000)])
    a2 = np.array([gena2(rng) for _ in range(5000)])
    assert np.all((a1 >= 0.0) & (a1 < 1.0))
    assert np.all((a2 >= 0.0) & (a2 < 1.0))
    # gena2 is symmetric about 1/2
    assert np.mean(a2) == pytest.approx(0.5, abs=0.02)


def test_ionization_probability_rises_with_energy(threshold):
    energies = np.array([2.5, 3.0, 4.0, 6.0, 10.0, 30.0])
    p = np.array([ionization_probability(e, threshold) for e in energies])
    assert np.all(np.diff(p) > 0)
    assert np.all((p > 0) & (p < 1))


def test_slow_down_below_threshold_creates_nothing(threshold, rng):
    veh = []
    assert slow_down(threshold * 0.9, threshold, veh, rng) == 0
    assert veh == []


def test_slow_down_daughters_above_threshold(threshold, rng):
    veh = []
    pairs = slow_down(200.0, threshold, veh, rng)
    assert pairs >= 1
    assert all(e > threshold for e in veh)
    assert sum(veh) < 200.0


def _slow_mode_pairs(energy, threshold, rng):
    veh = [energy]
    pairs = 0
    while veh:
        pairs += slow_down(veh.pop(), threshold, veh, rng)
    return pairs


def test_fast_and_slow_modes_agree_on_scale(threshold):
    rng = np.random.default_rng(2024)
    energy = 100.0
    trials = 300
    slow = np.mean([_slow_mode_pairs(energy, threshold, rng) for _ in range(trials)])
    fast = np.mean([poisson_pairs(energy, rng) for _ in range(trials)])

    assert fast == pytest.approx(energy / PAIR_CREATION_ENERGY, rel=0.05)
    # phonon losses make the random walk slightly more expensive per pair
    energy_per_pair = energy / slow
    assert PAIR_CREATION_ENERGY < energy_per_pair < 4.0
    assert energy_per_pair == pytest.approx(3.8, abs=0.12)
