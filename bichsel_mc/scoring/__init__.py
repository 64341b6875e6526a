"""Scoring module: Run statistics and spectra."""

from bichsel_mc.scoring.statistics import EventStatistics

__all__ = ["EventStatistics"]
