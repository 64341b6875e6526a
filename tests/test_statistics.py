import numpy as np
import pytest
from scipy import stats

from bichsel_mc.scoring.statistics import EventStatistics


class _Stats:
    def __init__(self, energy_loss, pairs, deltas=0):
        self.energy_loss = energy_loss
        self.pairs = pairs
        self.deltas = deltas
        self.steps = 10
        self.elastic = 4
        self.inelastic = 6
        self.pair_rms = 1.0
        self.mean_free_paths = [(1000.0, 0.25, 100.0)]
        self.step_lengths = [0.3, 0.1, 2.0]
        self.elastic_cosines = [0.99, 0.5]
        self.delta_cosines = [0.1] * deltas


class _Result:
    def __init__(self, energy_loss, pairs, deltas=0):
        self.stats = _Stats(energy_loss, pairs, deltas)
        self.clusters = []


def _filled(n=400, seed=0):
    rng = np.random.default_rng(seed)
    statistics = EventStatistics()
    for energy_loss in stats.moyal.rvs(loc=80.0, scale=8.0, size=n, random_state=rng):
        energy_loss = max(energy_loss, 1.0) * 1e3   # eV
        statistics.fill(_Result(energy_loss, int(energy_loss / 3.645),
                                deltas=int(energy_loss > 1.2e5)))
    return statistics


def test_empty_summary():
    statistics = EventStatistics()
    assert statistics.summary() == {'n_events': 0}
    assert statistics.fit_energy_loss() is None


def test_degenerate_spectrum_is_not_fitted():
    statistics = EventStatistics()
    for _ in range(5):
        statistics.fill(_Result(1000.0, 274))
    assert statistics.fit_energy_loss() is None
    assert 'moyal_loc' not in statistics.summary()


def test_moyal_fit_recovers_most_probable_value():
    summary = _filled().summary()
    assert summary['n_events'] == 400
    assert summary['moyal_loc'] == pytest.approx(80.0, rel=0.05)
    assert summary['moyal_scale'] == pytest.approx(8.0, rel=0.2)
    assert summary['energy_per_pair'] == pytest.approx(3.645, rel=0.01)


def test_plot_writes_file(tmp_path):
    import matplotlib
    matplotlib.use('Agg')

    path = tmp_path / 'straggling.png'
    _filled(100).plot(path)
    assert path.exists()
    assert path.stat().st_size > 0


def test_distributions_only_kept_with_histograms():
    result = _Result(1000.0, 274)
    plain = EventStatistics(histograms=False)
    plain.fill(result)
    assert plain.pairs == [274]
    assert plain.step_lengths == []
    assert plain.mean_free_paths == []

    full = EventStatistics()
    full.fill(result)
    assert full.step_lengths == [0.3, 0.1, 2.0]
    assert full.elastic_cosines == [0.99, 0.5]
    assert len(full.mean_free_paths) == 1
