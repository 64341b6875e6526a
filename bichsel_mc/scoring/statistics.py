"""
Run statistics and spectra.

Collects per-event totals from the stepping engine and summarizes them.
The energy-loss spectrum is fitted with a Moyal distribution, a closed
form approximation of the Landau straggling function.

References:
    - J. E. Moyal, Phil. Mag. 46, 263 (1955)
    - H. Bichsel, Rev. Mod. Phys. 60, 663 (1988)
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
from scipy import stats

from bichsel_mc.physics.pairs import PAIR_CREATION_ENERGY

logger = logging.getLogger(__name__)


class EventStatistics:
    """
    Accumulates event totals. Filled by a single writer (the process
    that collects the event results).

    Per-event totals are always kept. Distributions that grow with the
    number of collisions (cluster sizes, mean free paths, step lengths,
    scattering angles, cluster depths) are only kept with
    ``histograms=True``.

    Usage:
        statistics = EventStatistics()
        for result in results:
            statistics.fill(result)
        print(statistics.summary())
        statistics.plot('straggling.png')
    """

    def __init__(self, histograms: bool = True):
        self.histograms = histograms
        self.energy_loss = []       # keV per event
        self.pairs = []
        self.clusters = []
        self.deltas = []
        self.steps = []
        self.elastic = []
        self.inelastic = []
        self.pair_rms = []
        self.cluster_sizes = []
        # (energy [MeV], inelastic path [um], elastic path [um])
        self.mean_free_paths = []
        self.step_lengths = []      # um
        self.elastic_cosines = []
        self.delta_cosines = []
        self.cluster_depths = []    # local z [um]

    def fill(self, result):
        """Add one EventResult."""
        s = result.stats
        self.energy_loss.append(s.energy_loss * 1e-3)
        self.pairs.append(s.pairs)
        self.clusters.append(len(result.clusters))
        self.deltas.append(s.deltas)
        self.steps.append(s.steps)
        self.elastic.append(s.elastic)
        self.inelastic.append(s.inelastic)
        self.pair_rms.append(s.pair_rms)
        if not self.histograms:
            return
        self.cluster_sizes.extend(c.pairs for c in result.clusters)
        self.mean_free_paths.extend(s.mean_free_paths)
        self.step_lengths.extend(s.step_lengths)
        self.elastic_cosines.extend(s.elastic_cosines)
        self.delta_cosines.extend(s.delta_cosines)
        self.cluster_depths.extend(c.position[2] * 1e3 for c in result.clusters)

    def __len__(self) -> int:
        return len(self.energy_loss)

    def fit_energy_loss(self) -> Optional[Tuple[float, float]]:
        """
        Moyal fit (loc, scale) of the energy-loss spectrum [keV].

        Returns None with fewer than two events or a degenerate spectrum.
        """
        data = np.asarray(self.energy_loss)
        if data.size < 2 or np.ptp(data) == 0.0:
            return None
        loc, scale = stats.moyal.fit(data)
        return float(loc), float(scale)

    def summary(self) -> Dict[str, float]:
        """Means and spreads of the event totals."""
        n = len(self)
        if n == 0:
            return {'n_events': 0}

        energy_loss = np.asarray(self.energy_loss)
        pairs = np.asarray(self.pairs, dtype=np.float64)
        clusters = np.asarray(self.clusters, dtype=np.float64)

        result = {
            'n_events': n,
            'mean_energy_loss': float(energy_loss.mean()),
            'median_energy_loss': float(np.median(energy_loss)),
            'mean_pairs': float(pairs.mean()),
            'std_pairs': float(pairs.std()),
            'mean_clusters': float(clusters.mean()),
            'var_clusters': float(clusters.var()),
            'mean_deltas': float(np.mean(self.deltas)),
            'mean_steps': float(np.mean(self.steps)),
            'mean_elastic': float(np.mean(self.elastic)),
            'mean_inelastic': float(np.mean(self.inelastic)),
            'energy_per_pair': (float(energy_loss.sum() * 1e3 / pairs.sum())
                                if pairs.sum() > 0 else float('nan')),
        }

        fit = self.fit_energy_loss()
        if fit is not None:
            result['moyal_loc'], result['moyal_scale'] = fit
        return result

    def print_summary(self):
        s = self.summary()
        print(f"\nStatistics: {s['n_events']} events")
        if s['n_events'] == 0:
            return
        print(f"  Energy loss:  {s['mean_energy_loss']:.3f} keV "
              f"(median {s['median_energy_loss']:.3f} keV)")
        if 'moyal_loc' in s:
            print(f"  Moyal fit:    MPV {s['moyal_loc']:.3f} keV, "
                  f"width {s['moyal_scale']:.3f} keV")
        print(f"  e-h pairs:    {s['mean_pairs']:.1f} ± {s['std_pairs']:.1f} "
              f"({s['energy_per_pair']:.3f} eV/pair, nominal {PAIR_CREATION_ENERGY} eV)")
        print(f"  Clusters:     {s['mean_clusters']:.2f} per event")
        print(f"  Delta rays:   {s['mean_deltas']:.2f} per event")
        print(f"  Steps:        {s['mean_steps']:.1f} "
              f"(inelastic {s['mean_inelastic']:.1f}, elastic {s['mean_elastic']:.1f})")

    def plot(self, path: Union[str, Path], title: str = 'Energy deposition in silicon'):
        """
        Save a 2x4 figure: energy loss with Moyal fit, pairs per event,
        step lengths, cluster depths, cluster sizes, mean free paths
        against energy, elastic and delta-ray emission angles.

        Only the two per-event panels are filled without ``histograms``.
        """
        import matplotlib.pyplot as plt

        fig, axes = plt.subplots(2, 4, figsize=(22, 9))
        fig.suptitle(title, fontsize=14)

        # energy loss
        ax = axes[0, 0]
        energy_loss = np.asarray(self.energy_loss)
        with_deltas = np.asarray(self.deltas) > 0
        if energy_loss.size:
            bins = np.linspace(0.0, np.percentile(energy_loss, 99) * 1.2 + 1e-9, 100)
            ax.hist(energy_loss, bins=bins, histtype='step', color='k', label='all')
            ax.hist(energy_loss[~with_deltas], bins=bins, histtype='step', color='b',
                    label='no delta rays')
            ax.hist(energy_loss[with_deltas], bins=bins, histtype='step', color='r',
                    label='with delta rays')
            fit = self.fit_energy_loss()
            if fit is not None:
                x = 0.5 * (bins[1:] + bins[:-1])
                ax.plot(x, stats.moyal.pdf(x, *fit) * energy_loss.size * (bins[1] - bins[0]),
                        'g--', label=f'Moyal MPV {fit[0]:.2f} keV')
        ax.set_xlabel('Energy loss [keV]')
        ax.set_ylabel('Events')
        ax.legend()

        # pairs per event
        ax = axes[0, 1]
        if self.pairs:
            ax.hist(np.asarray(self.pairs) * 1e-3, bins=100, histtype='step', color='k')
        ax.set_xlabel('e-h pairs per event [k]')
        ax.set_ylabel('Events')

        # cluster sizes
        ax = axes[1, 0]
        if self.cluster_sizes:
            sizes = np.asarray(self.cluster_sizes)
            ax.hist(np.log10(sizes), bins=80, histtype='step', color='k')
        ax.set_xlabel('log10(pairs per cluster)')
        ax.set_ylabel('Clusters')
        ax.set_yscale('log')

        # mean free paths
        ax = axes[1, 1]
        if self.mean_free_paths:
            mfp = np.asarray(self.mean_free_paths)
            energy = mfp[:, 0]
            for column, label, marker in ((1, 'inelastic', 'b.'), (2, 'elastic', 'r.')):
                finite = np.isfinite(mfp[:, column])
                ax.plot(energy[finite], mfp[finite, column], marker, markersize=2, label=label)
            ax.set_xscale('log')
            ax.set_yscale('log')
            ax.legend()
        ax.set_xlabel('Kinetic energy [MeV]')
        ax.set_ylabel('Mean free path [µm]')

        # step lengths
        ax = axes[0, 2]
        if self.step_lengths:
            steps = np.asarray(self.step_lengths)
            ax.hist(np.log10(steps[steps > 0]), bins=100, histtype='step', color='k')
            ax.set_yscale('log')
        ax.set_xlabel('log10(step length [µm])')
        ax.set_ylabel('Steps')

        # cluster depth
        ax = axes[0, 3]
        if self.cluster_depths:
            ax.hist(self.cluster_depths, bins=100, histtype='step', color='k')
        ax.set_xlabel('Cluster z [µm]')
        ax.set_ylabel('Clusters')

        # elastic scattering angles
        ax = axes[1, 2]
        if self.elastic_cosines:
            theta = np.degrees(np.arccos(np.clip(self.elastic_cosines, -1.0, 1.0)))
            ax.hist(theta, bins=180, range=(0.0, 180.0), histtype='step', color='k')
            ax.set_yscale('log')
        ax.set_xlabel('Elastic scattering angle [deg]')
        ax.set_ylabel('Collisions')

        # delta-ray emission angles
        ax = axes[1, 3]
        if self.delta_cosines:
            theta = np.degrees(np.arccos(np.clip(self.delta_cosines, -1.0, 1.0)))
            ax.hist(theta, bins=90, range=(0.0, 90.0), histtype='step', color='k')
        ax.set_xlabel('Delta-ray emission angle [deg]')
        ax.set_ylabel('Delta rays')

        for ax in axes.flat:
            ax.grid(True, alpha=0.3)

        fig.tight_layout()
        fig.savefig(path, dpi=150)
        plt.close(fig)
        logger.info("Saved statistics plot to %s", path)
