import logging

import numpy as np
import pytest

from bichsel_mc.errors import ConfigurationError, TableFormatError, TableNotFoundError
from bichsel_mc.physics.tables import (
    CACHE_NAME,
    K_SHELL_EDGE,
    N2,
    TABLE_SIZE,
    CrossSectionTables,
    energy_grid,
    find_table_file,
)
from conftest import write_synthetic_tables


def test_energy_grid_hits_k_shell_edge():
    energy, width = energy_grid()
    assert energy.shape == (TABLE_SIZE,)
    assert energy[0] == pytest.approx(K_SHELL_EDGE / 1024.0)
    # ten octaves above Emin
    assert energy[10 * N2] == pytest.approx(K_SHELL_EDGE, rel=1e-10)
    assert np.all(np.diff(energy) > 0)
    assert np.allclose(energy[1:] / energy[:-1], 2.0 ** (1.0 / N2))
    assert width[-1] == 0.0
    assert np.allclose(width[:-1], np.diff(energy))


def test_load_fills_tables(tables):
    assert tables.frozen
    assert np.all(tables.dfdE >= 0)
    assert np.any(tables.dfdE > 0)
    assert tables.xkmn[tables.E < 11.9] == pytest.approx(0.1)
    assert np.all(tables.xkmn[200:] == 0.0)


def test_tables_are_read_only(tables):
    with pytest.raises(ValueError):
        tables.dfdE[0] = 1.0
    with pytest.raises(RuntimeError):
        tables.read_heps('HEPS.TAB')


def test_missing_table_is_configuration_error(tmp_path):
    with pytest.raises(TableNotFoundError) as excinfo:
        CrossSectionTables.load([tmp_path])
    assert isinstance(excinfo.value, ConfigurationError)
    assert isinstance(excinfo.value, FileNotFoundError)


def test_find_table_file_accepts_file_path(table_dir):
    path = table_dir / 'MACOM.TAB'
    assert find_table_file('MACOM', [path]) == path
    assert find_table_file('MACOM', [table_dir]) == path


def test_header_mismatch_warns_and_truncates(tmp_path, caplog):
    write_synthetic_tables(tmp_path, size=TABLE_SIZE + 10, n_rows=TABLE_SIZE + 10)
    with caplog.at_level(logging.WARNING, logger='bichsel_mc.physics.tables'):
        tables = CrossSectionTables.load([tmp_path], use_cache=False)
    assert 'differ' in caplog.text
    assert tables.dfdE.shape == (TABLE_SIZE,)


def test_short_file_leaves_trailing_zeros(tmp_path):
    write_synthetic_tables(tmp_path, n_rows=600)
    tables = CrossSectionTables.load([tmp_path], use_cache=False)
    assert tables.dfdE[599] > 0
    assert np.all(tables.dfdE[600:] == 0.0)
    assert np.all(tables.oscillator_strength_ae[600:] == 0.0)


def test_unreadable_row_raises(tmp_path):
    write_synthetic_tables(tmp_path)
    with open(tmp_path / 'MACOM.TAB') as f:
        lines = f.readlines()
    lines.insert(5, "5 1.0 abc\n")
    with open(tmp_path / 'MACOM.TAB', 'w') as f:
        f.writelines(lines)
    with pytest.raises(TableFormatError):
        CrossSectionTables.load([tmp_path], use_cache=False)


def test_npz_cache_round_trip(tmp_path, tables):
    cache = tmp_path / CACHE_NAME
    tables.save_npz(cache)
    loaded = CrossSectionTables.load([tmp_path])
    assert loaded.frozen
    for name in CrossSectionTables._ARRAYS:
        assert np.array_equal(getattr(loaded, name), getattr(tables, name))


def test_cache_in_later_path_does_not_shadow_ascii_tables(tmp_path, tables):
    configured = tmp_path / 'configured'
    fallback = tmp_path / 'fallback'
    configured.mkdir()
    fallback.mkdir()
    write_synthetic_tables(configured, n_rows=600)
    tables.save_npz(fallback / CACHE_NAME)

    loaded = CrossSectionTables.load([configured, fallback])
    assert loaded.dfdE[599] > 0
    assert loaded.dfdE[700] == 0.0


def test_cache_in_earlier_path_is_used(tmp_path, tables):
    cached = tmp_path / 'cached'
    ascii_dir = tmp_path / 'ascii'
    cached.mkdir()
    ascii_dir.mkdir()
    tables.save_npz(cached / CACHE_NAME)
    write_synthetic_tables(ascii_dir, n_rows=600)

    loaded = CrossSectionTables.load([cached, ascii_dir])
    assert loaded.dfdE[700] == tables.dfdE[700]
    assert loaded.dfdE[700] > 0
