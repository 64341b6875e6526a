"""Input/output: HDF5 event records."""

from bichsel_mc.io.hdf5 import read_events, write_events

__all__ = ["read_events", "write_events"]
