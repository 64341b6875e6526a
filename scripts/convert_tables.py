"""
Convert the Bichsel ASCII tables to a single binary NumPy cache.

Reads HEPS.TAB, MACOM.TAB and EMERC.TAB from a data directory and
writes BICHSEL_TABLES.npz next to them. CrossSectionTables.load prefers
the cache when it is present, which matters for process pools where
every worker loads the tables.

Usage:
    python scripts/convert_tables.py [data_dir]
"""

import sys
import time
from pathlib import Path

import numpy as np

from bichsel_mc.physics.tables import CACHE_NAME, CrossSectionTables


def convert_tables(data_dir='bichsel_mc/data'):
    """Convert the ASCII tables in ``data_dir`` to CACHE_NAME."""
    data_path = Path(data_dir)

    if not data_path.is_dir():
        print(f"Error: {data_path} does not exist")
        return 1

    print(f"Reading ASCII tables from {data_path}")
    start = time.time()
    tables = CrossSectionTables.load([data_path], use_cache=False)
    time_ascii = time.time() - start
    print(f"  ASCII load: {time_ascii*1000:.1f}ms")

    cache = data_path / CACHE_NAME
    tables.save_npz(cache)

    start = time.time()
    loaded = CrossSectionTables.from_npz(cache)
    time_binary = time.time() - start
    print(f"  Binary load: {time_binary*1000:.1f}ms")

    for name in CrossSectionTables._ARRAYS:
        if not np.array_equal(getattr(tables, name), getattr(loaded, name)):
            print(f"Error: table '{name}' differs after conversion")
            cache.unlink()
            return 1

    speedup = time_ascii / time_binary if time_binary > 0 else float('inf')
    print(f"  Speedup: {speedup:.0f}x faster")
    print(f"  ✓ Saved: {cache}")
    return 0


if __name__ == "__main__":
    sys.exit(convert_tables(*sys.argv[1:2]))
