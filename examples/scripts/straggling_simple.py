"""
Energy-Loss Straggling - Simple Example

Simulates single particles crossing a silicon sensor and histograms the
energy loss, the number of electron-hole pairs and the cluster sizes.

Expected results for 120 GeV protons in 285 um of silicon:
    - Most probable energy loss: ~80 keV (~22k e-h pairs)
    - Mean energy loss well above the most probable value (Landau tail)
    - ~3.6 eV per electron-hole pair

The cross-section tables (HEPS.TAB, MACOM.TAB, EMERC.TAB) are looked up
in the configured data_paths, $BICHSEL_DATA_DIR and bichsel_mc/data.

Usage:
    python examples/scripts/straggling_simple.py [config.yaml] [n_events] [output.h5]
"""

import logging
import sys
from pathlib import Path

from bichsel_mc import DepositionEngine, load_config
from bichsel_mc.io import write_events


def simulate_straggling(config_path, n_events: int = 1000, output=None,
                        parallel: bool = True):
    """
    Run a straggling simulation.

    Parameters:
        config_path: YAML configuration file
        n_events: Number of events to simulate
        output: HDF5 file for the event records (optional)
        parallel: Use a process pool

    Returns:
        The engine, holding the run statistics
    """
    config = load_config(config_path)

    print(f"\n{'='*70}")
    print(f"Straggling Simulation")
    print(f"{'='*70}")
    print(f"  Particle: {config.particle_type.name}")
    print(f"  Energy: {config.source_energy} MeV")
    print(f"  Sensor: {config.sensor['thickness'] * 1e3:.0f} um")
    print(f"  Mode: {'fast' if config.fast else 'slow'}")
    print(f"  Events: {n_events:,}")
    print(f"{'='*70}\n")

    engine = DepositionEngine(config)
    if parallel:
        results = engine.run_parallel(n_events)
    else:
        results = engine.run(n_events)

    if output is not None:
        write_events(output, results, attrs={
            'particle_type': config.particle_type.name,
            'source_energy': config.source_energy,
            'seed': config.seed,
        })
        print(f"\nEvents saved: {output}")

    if config.output_plots:
        plot_path = Path(config_path).with_suffix('.png').name
        engine.statistics.plot(plot_path, title=f"{config.particle_type.name} "
                                                f"{config.source_energy:g} MeV in silicon")
        print(f"Plot saved: {plot_path}")

    return engine


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    default_config = Path(__file__).parent.parent / 'configs' / 'proton_120GeV.yaml'
    config_path = sys.argv[1] if len(sys.argv) > 1 else default_config
    n_events = int(sys.argv[2]) if len(sys.argv) > 2 else 1000
    output = sys.argv[3] if len(sys.argv) > 3 else None

    simulate_straggling(config_path, n_events, output)
