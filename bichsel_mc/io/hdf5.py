"""
HDF5 output of simulated events.

Layout:
    /attrs                      run parameters
    /event_00000/mc_particles   MCPARTICLE_DTYPE
    /event_00000/deposits       DEPOSIT_DTYPE
    /event_00000.attrs          event counters

Links between records are stored as indices into mc_particles, -1 for
a primary.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import h5py
import numpy as np

from bichsel_mc.core.records import deposits_to_array, mcparticles_to_array

logger = logging.getLogger(__name__)


def _event_group(event: int) -> str:
    return f"event_{event:05d}"


def write_events(path: Union[str, Path], results: Sequence,
                 attrs: Optional[Dict] = None):
    """
    Write the records of a list of EventResults.

    Parameters:
        path: Output file, overwritten if it exists
        results: EventResults in event order
        attrs: Run parameters stored as file attributes
    """
    with h5py.File(path, 'w') as f:
        f.attrs['n_events'] = len(results)
        for key, value in (attrs or {}).items():
            f.attrs[key] = value

        for event, result in enumerate(results):
            group = f.create_group(_event_group(event))
            group.create_dataset('mc_particles', data=mcparticles_to_array(result.mc_particles))
            group.create_dataset('deposits', data=deposits_to_array(result.deposits))
            for key, value in result.stats.as_dict().items():
                group.attrs[key] = value

    logger.info("Wrote %d events to %s", len(results), path)


def read_events(path: Union[str, Path]) -> List[Dict[str, np.ndarray]]:
    """Read back the structured arrays written by ``write_events``."""
    events = []
    with h5py.File(path, 'r') as f:
        for event in range(int(f.attrs['n_events'])):
            group = f[_event_group(event)]
            events.append({
                'mc_particles': group['mc_particles'][()],
                'deposits': group['deposits'][()],
                'stats': dict(group.attrs),
            })
    return events
