#!/usr/bin/env python3
"""
Quick check of an installation.

Run this after setting up the environment: it imports the stack, looks
for the cross-section tables and steps a few events.

Usage:
    python examples/scripts/check_installation.py [data_dir]
"""

import sys
import time

print("="*70)
print("bichsel_mc Installation Check")
print("="*70)

# 1. Third-party stack
print("\n1. Checking imports...")
import numpy as np
import numba
import scipy
import h5py
import yaml

print("   ✓ NumPy:", np.__version__)
print("   ✓ Numba:", numba.__version__)
print("   ✓ SciPy:", scipy.__version__)
print("   ✓ h5py:", h5py.__version__)
print("   ✓ PyYAML:", yaml.__version__)

from bichsel_mc import __version__, BoxSensor, Particle, ParticleType, SteppingEngine
from bichsel_mc.errors import TableNotFoundError
from bichsel_mc.physics.collision import CollisionModel
from bichsel_mc.physics.pairs import pair_threshold
from bichsel_mc.physics.tables import CrossSectionTables, default_data_paths

print("   ✓ bichsel_mc:", __version__)

# 2. Cross-section tables
print("\n2. Looking for cross-section tables...")
paths = default_data_paths(sys.argv[1:])
try:
    tables = CrossSectionTables.load(paths)
except TableNotFoundError as e:
    print(f"   ✗ {e}")
    print("\n   Copy HEPS.TAB, MACOM.TAB and EMERC.TAB to one of:")
    for path in paths:
        print(f"     {path}")
    print("   or set $BICHSEL_DATA_DIR")
    sys.exit(1)
print(f"   ✓ Loaded: {tables}")

# 3. Collision parameters (triggers JIT compilation)
print("\n3. Collision parameters of a 120 GeV proton...")
model = CollisionModel(tables)
proton = Particle(120000.0, (0, 0, 0), (0, 0, 1), ParticleType.PROTON)
start = time.time()
params = model.compute(proton)
print(f"   ✓ First call (with compilation): {(time.time() - start)*1000:.1f} ms")
start = time.time()
params = model.compute(proton)
print(f"   ✓ Second call: {(time.time() - start)*1000:.2f} ms")
print(f"   ✓ Inelastic mean free path: {1e4 / params.inverse_inelastic:.3f} µm")
print(f"     (Expected: ~0.26 µm for minimum ionizing particles)")
print(f"   ✓ Mean energy loss: {params.stopping_power * 1e-7:.3f} keV/µm")

# 4. A few events
print("\n4. Stepping 100 events through 285 µm...")
sensor = BoxSensor(thickness=0.285, pitch=0.025)
engine = SteppingEngine(tables, sensor, pair_threshold(293.15))
rng = np.random.default_rng(1)
start = time.time()
pairs = [engine.run(Particle(120000.0, (0, 0, -0.1425), (0, 0, 1), ParticleType.PROTON),
                    rng).stats.pairs for _ in range(100)]
elapsed = time.time() - start
print(f"   ✓ {100/elapsed:.0f} events/sec")
print(f"   ✓ Median pairs per event: {np.median(pairs):.0f}")
print(f"     (Expected: ~21000 for 285 µm)")

print("\n" + "="*70)
print("Installation check complete!")
print("="*70)
print("\nNext steps:")
print("  1. Run examples/scripts/straggling_simple.py")
print("  2. Convert the tables once with scripts/convert_tables.py")
