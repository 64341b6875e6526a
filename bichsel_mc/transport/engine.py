"""
Event loop of the deposition simulation.

Creates the primary particle of every event, steps it with a
SteppingEngine and collects the results. Events are independent: each
has its own random stream derived from the run seed and the event
number, so sequential and parallel runs give identical events.
"""

import logging
import multiprocessing as mp
import time
from typing import List, Optional

import numpy as np
from tqdm import tqdm

from bichsel_mc.config import SimulationConfig
from bichsel_mc.core.geometry import SensorGeometry
from bichsel_mc.core.particle import Particle
from bichsel_mc.physics.tables import CrossSectionTables, default_data_paths
from bichsel_mc.scoring.statistics import EventStatistics
from bichsel_mc.transport.stepping import EventResult, SteppingEngine

logger = logging.getLogger(__name__)


# Engine instance of each worker process
_worker_engine = None


def _init_worker(config, tables, geometry):
    """Build the engine once per worker process."""
    global _worker_engine
    tables.freeze()
    _worker_engine = DepositionEngine(config, tables=tables, geometry=geometry)


def _run_event_worker(event: int) -> EventResult:
    return _worker_engine.run_event(event)


class DepositionEngine:
    """
    Energy deposition of single particles in a silicon sensor.

    Example:
        config = load_config('run.yaml')
        engine = DepositionEngine(config)
        results = engine.run(10000)
        engine.statistics.print_summary()
    """

    def __init__(self, config: SimulationConfig,
                 tables: Optional[CrossSectionTables] = None,
                 geometry: Optional[SensorGeometry] = None):
        """
        Parameters:
            config: Simulation parameters
            tables: Cross-section tables (loaded from config.data_paths if None)
            geometry: Sensor geometry (built from config.sensor if None)
        """
        self.config = config
        self.tables = tables if tables is not None else CrossSectionTables.load(
            default_data_paths(config.data_paths))
        self.geometry = geometry if geometry is not None else config.build_sensor()

        self.stepping = SteppingEngine(
            self.tables, self.geometry,
            energy_threshold=config.energy_threshold,
            delta_energy_cut=config.delta_energy_cut,
            fast=config.fast,
            histograms=config.output_plots,
        )
        self.statistics = EventStatistics(histograms=config.output_plots)

        thickness = self.geometry.sensor_thickness()
        pitch = self.geometry.pixel_pitch()
        if config.incidence_angle is None:
            self.turn = np.arctan(pitch / thickness)
        else:
            self.turn = np.radians(config.incidence_angle)
        # projected track length along x
        self.width = thickness * np.tan(self.turn)

        logger.info("particle type     %s", config.particle_type.name)
        logger.info("kinetic energy    %g MeV", config.source_energy)
        logger.info("pixel pitch       %g um", pitch * 1e3)
        logger.info("pixel depth       %g um", thickness * 1e3)
        logger.info("incident angle    %.4g deg", np.degrees(self.turn))
        logger.info("track width       %.4g um", self.width * 1e3)
        logger.info("temperature       %g K", config.temperature)

    def event_rng(self, event: int) -> np.random.Generator:
        """Random generator of one event."""
        return np.random.default_rng(np.random.SeedSequence(self.config.seed, spawn_key=(event,)))

    def create_primary(self, rng: np.random.Generator) -> Particle:
        """
        Primary particle entering the sensor's back side.

        The track centre is uniform over one pixel pitch; the entry point
        is shifted by half the projected track width.
        """
        thickness = self.geometry.sensor_thickness()
        pitch = self.geometry.pixel_pitch()

        xm = pitch * (rng.random() - 0.5)
        position = (xm - 0.5 * self.width, 0.0, -0.5 * thickness)
        direction = (np.sin(self.turn), 0.0, np.cos(self.turn))

        energy = self.config.source_energy
        if self.config.source_energy_spread > 0:
            energy = max(rng.normal(energy, self.config.source_energy_spread), 0.0)

        return Particle(energy, position, direction, self.config.particle_type)

    def run_event(self, event: int) -> EventResult:
        """Simulate one event."""
        rng = self.event_rng(event)
        primary = self.create_primary(rng)
        return self.stepping.run(primary, rng)

    def run(self, n_events: int, verbose: bool = True) -> List[EventResult]:
        """
        Simulate events sequentially.

        Parameters:
            n_events: Number of events
            verbose: Show a progress bar and print a summary

        Returns:
            EventResults in event order
        """
        start_time = time.time()
        results = []
        for event in tqdm(range(n_events), desc='Events', disable=not verbose):
            result = self.run_event(event)
            self.statistics.fill(result)
            results.append(result)

        self._report(n_events, time.time() - start_time, verbose)
        return results

    def run_parallel(self, n_events: int, n_processes: Optional[int] = None,
                     verbose: bool = True) -> List[EventResult]:
        """
        Simulate events on a process pool.

        Every worker builds its engine once; events are distributed one
        by one and statistics are filled here, in event order.

        Parameters:
            n_events: Number of events
            n_processes: Number of worker processes (default: cpu_count)
            verbose: Show a progress bar and print a summary
        """
        if n_processes is None:
            n_processes = mp.cpu_count()

        if verbose:
            print(f"\nParallel run: {n_events} events on {n_processes} cores")

        start_time = time.time()
        results = []
        with mp.Pool(n_processes, initializer=_init_worker,
                     initargs=(self.config, self.tables, self.geometry)) as pool:
            chunksize = max(1, n_events // (4 * n_processes))
            for result in tqdm(pool.imap(_run_event_worker, range(n_events), chunksize=chunksize),
                               total=n_events, desc='Events', disable=not verbose):
                self.statistics.fill(result)
                results.append(result)

        self._report(n_events, time.time() - start_time, verbose)
        return results

    def _report(self, n_events: int, elapsed: float, verbose: bool):
        rate = n_events / elapsed if elapsed > 0 else float('inf')
        logger.info("Simulated %d events in %.1f s (%.0f events/s)", n_events, elapsed, rate)
        if verbose:
            print(f"\nRun complete:")
            print(f"  Time: {elapsed:.1f}s")
            print(f"  Rate: {rate:.0f} events/sec")
            self.statistics.print_summary()
