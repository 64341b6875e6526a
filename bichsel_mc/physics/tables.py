"""
Cross-section tables for silicon.

Reads the three Bichsel data files:
    HEPS.TAB  - dielectric constant eps = eps1 + i*eps2 and Im(-1/eps)
                as a function of energy loss (RMP 60, 663 (1988), II.E)
    MACOM.TAB - integral over momentum transfer of the generalized
                oscillator strength summed over shells, A(E), Eq. (2.11)
    EMERC.TAB - A(E) and the minimum momentum transfer below 11.9 eV,
                from Emerson et al., Phys Rev B7, 1798 (1973)

The energy grid is not read from the files. It is generated here and the
tabulated rows must line up with it.

References:
    - H. Bichsel, Rev. Mod. Phys. 60, 663 (1988)
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from bichsel_mc.errors import TableFormatError, TableNotFoundError

logger = logging.getLogger(__name__)

N2 = 64                 # energy bins per octave
TABLE_SIZE = 1250       # number of energy bins
K_SHELL_EDGE = 1839.0   # Si K-shell edge [eV]
TABLE_SUFFIX = '.TAB'
CACHE_NAME = 'BICHSEL_TABLES.npz'

PathLike = Union[str, Path]


def energy_grid(n2: int = N2, size: int = TABLE_SIZE) -> Tuple[np.ndarray, np.ndarray]:
    """
    Generate the geometric energy grid and bin widths [eV].

    Emin is chosen so that one grid point falls exactly on the K-shell
    edge at 1839 eV. The last bin width is zero.

    Returns:
        (E, dE): arrays of length ``size``
    """
    u = np.log(2.0) / n2
    um = np.exp(u)
    ken = int(np.log(K_SHELL_EDGE / 1.5) / u)
    emin = K_SHELL_EDGE / 2.0 ** (ken // n2)

    energy = np.empty(size)
    energy[0] = emin
    for j in range(1, size):
        energy[j] = energy[j - 1] * um

    width = np.zeros(size)
    width[:-1] = energy[1:] - energy[:-1]
    return energy, width


def default_data_paths(extra_paths: Optional[Iterable[PathLike]] = None) -> List[Path]:
    """
    Table search paths, in lookup order.

    Configured paths first, then $BICHSEL_DATA_DIR, the package data
    directory and finally <XDG_DATA_DIRS>/bichsel_mc/data.
    """
    paths = [Path(p) for p in (extra_paths or [])]

    env_dir = os.environ.get('BICHSEL_DATA_DIR')
    if env_dir:
        paths.append(Path(env_dir))

    package_dir = Path(__file__).parent.parent / 'data'
    if package_dir.is_dir():
        paths.append(package_dir)

    data_dirs = os.environ.get('XDG_DATA_DIRS') or '/usr/local/share/:/usr/share/:'
    for data_dir in data_dirs.split(':'):
        if not data_dir:
            continue
        candidate = Path(data_dir) / 'bichsel_mc' / 'data'
        if candidate.is_dir():
            paths.append(candidate)

    return paths


def find_table_file(name: str, data_paths: Sequence[PathLike],
                    suffix: str = TABLE_SUFFIX) -> Path:
    """
    Locate the data file for a logical table name.

    Parameters:
        name: Logical table name ('HEPS', 'MACOM', 'EMERC')
        data_paths: Directories to search, or explicit file paths
        suffix: File suffix (compared case-insensitively)

    Raises:
        TableNotFoundError: No readable file found
    """
    for path in data_paths:
        path = Path(path)
        if path.is_dir():
            for candidate in sorted(path.iterdir()):
                if candidate.stem == name and candidate.suffix.upper() == suffix.upper():
                    if candidate.is_file() and os.access(candidate, os.R_OK):
                        return candidate
        elif path.is_file() and path.stem == name and path.suffix.upper() == suffix.upper():
            return path

    raise TableNotFoundError(
        f"Data file '{name}{suffix}' not found in any of: "
        f"{[str(p) for p in data_paths]}"
    )


def _parse_header(line: str, path: Path) -> Tuple[int, int]:
    fields = line.split()
    try:
        return int(fields[0]), int(fields[1])
    except (IndexError, ValueError):
        raise TableFormatError(f"{path.name}: expected 'n2 nume' header, got {line.strip()!r}") from None


def _read_header(path: Path) -> Tuple[int, int]:
    try:
        with open(path, 'r') as f:
            line = f.readline()
    except OSError as exc:
        raise TableNotFoundError(f"Error opening data file {path}: {exc}") from exc
    return _parse_header(line, path)


def _read_rows(path: Path, n_header: int, max_index: int,
               n_values: int) -> Tuple[List[str], List[Tuple[int, List[float]]]]:
    """
    Read header lines and indexed data rows.

    Rows are read until the row index reaches ``max_index`` or the file
    ends. Blank lines are skipped.

    Returns:
        (header_lines, [(index, values), ...])
    """
    rows = []
    try:
        with open(path, 'r') as f:
            header = [f.readline() for _ in range(n_header)]
            jt = 1
            for line in f:
                if jt >= max_index:
                    break
                fields = line.split()
                if not fields:
                    continue
                try:
                    jt = int(fields[0])
                    values = [float(v) for v in fields[1:1 + n_values]]
                except ValueError:
                    raise TableFormatError(f"{path.name}: unreadable row {line.strip()!r}") from None
                if len(values) < n_values:
                    raise TableFormatError(f"{path.name}: row {jt} has {len(values)} values, "
                                           f"expected {n_values}")
                rows.append((jt, values))
    except OSError as exc:
        raise TableNotFoundError(f"Error opening data file {path}: {exc}") from exc

    return header, rows


def _find_cache(data_paths: Sequence[Path]) -> Optional[Path]:
    """
    Binary cache to use instead of the ASCII tables, if any.

    Search paths are walked in order and the first one holding either
    the cache or HEPS.TAB decides: ASCII tables in an earlier path are
    never shadowed by a cache further down the list.
    """
    for path in data_paths:
        try:
            return find_table_file(Path(CACHE_NAME).stem, [path], suffix='.npz')
        except TableNotFoundError:
            pass
        try:
            heps = find_table_file('HEPS', [path])
        except TableNotFoundError:
            continue
        logger.debug("Using ASCII tables next to %s", heps)
        return None
    return None


class CrossSectionTables:
    """
    Tabulated silicon response, indexed by energy bin.

    Built once (``CrossSectionTables.load``) and read-only afterwards; one
    instance is shared by every event.

    Attributes (arrays of length TABLE_SIZE):
        E: bin energy [eV]
        dE: bin width [eV]
        dielectric_real, dielectric_imag: eps1, eps2
        dfdE: dipole oscillator strength df/dE [1/eV]
        oscillator_strength_ae: A(E), integral of the generalized
            oscillator strength over momentum transfer
        xkmn: minimum momentum transfer parameter below 11.9 eV
    """

    _ARRAYS = ('E', 'dE', 'dielectric_real', 'dielectric_imag', 'dfdE',
               'oscillator_strength_ae', 'xkmn')

    def __init__(self, n2: int = N2, size: int = TABLE_SIZE):
        self.n2 = n2
        self.size = size
        self.E, self.dE = energy_grid(n2, size)
        self.dielectric_real = np.zeros(size)
        self.dielectric_imag = np.zeros(size)
        self.dfdE = np.zeros(size)
        self.oscillator_strength_ae = np.zeros(size)
        self.xkmn = np.zeros(size)
        self._frozen = False

        logger.debug("n2 %d, Emin %.6g eV, um %.8g, E[nume] %.6g eV",
                     n2, self.E[0], np.exp(np.log(2.0) / n2), self.E[-1])

    @classmethod
    def load(cls, data_paths: Optional[Sequence[PathLike]] = None,
             use_cache: bool = True) -> "CrossSectionTables":
        """
        Load the tables from the data search paths.

        Uses a binary cache (BICHSEL_TABLES.npz, see
        scripts/convert_tables.py) when it sits in the first search path
        holding any tables, the ASCII tables otherwise.

        Parameters:
            data_paths: Search paths (defaults to ``default_data_paths()``)
            use_cache: Accept a binary cache if present

        Raises:
            TableNotFoundError: A table file is missing or unreadable
            TableFormatError: A table file cannot be parsed
        """
        if data_paths is None:
            data_paths = default_data_paths()
        data_paths = [Path(p) for p in data_paths]

        if use_cache:
            cache = _find_cache(data_paths)
            if cache is not None:
                return cls.from_npz(cache)

        tables = cls()
        tables.read_heps(find_table_file('HEPS', data_paths))
        tables.read_macom(find_table_file('MACOM', data_paths))
        tables.read_emerc(find_table_file('EMERC', data_paths))
        tables.freeze()
        return tables

    def _check_header(self, name: str, n2t: int, numt: int) -> int:
        logger.debug("%s.TAB: n2t %d, numt %d", name, n2t, numt)
        if n2t != self.n2:
            logger.warning("%s: n2 (%d) & n2t (%d) differ", name, self.n2, n2t)
        if numt != self.size:
            logger.warning("%s: nume (%d) & numt (%d) differ", name, self.size, numt)
        return min(numt, self.size)

    def read_heps(self, path: PathLike):
        """Read HEPS.TAB: rows of 'j E eps1 eps2 Im(-1/eps)'."""
        self._check_writable()
        path = Path(path)
        n2t, numt = _read_header(path)
        numt = self._check_header('HEPS', n2t, numt)

        _, rows = _read_rows(path, 1, numt, 4)
        for jt, (_, eps1, eps2, rim) in rows:
            if not 1 <= jt <= self.size:
                continue
            j = jt - 1
            self.dielectric_real[j] = eps1
            self.dielectric_imag[j] = eps2
            # dipole oscillator strength, essentially Eq. (2.20)
            self.dfdE[j] = rim * 0.0092456 * self.E[j]

        logger.info("Read %d data lines from HEPS.TAB", len(rows))

    def read_macom(self, path: PathLike):
        """Read MACOM.TAB: rows of 'j E A(E)'."""
        self._check_writable()
        path = Path(path)
        n2t, numt = _read_header(path)
        numt = self._check_header('MACOM', n2t, numt)

        _, rows = _read_rows(path, 1, numt, 2)
        for jt, (_, ae) in rows:
            if 1 <= jt <= self.size:
                self.oscillator_strength_ae[jt - 1] = ae

        logger.info("Read %d data lines from MACOM.TAB", len(rows))

    def read_emerc(self, path: PathLike):
        """Read EMERC.TAB: four header lines, rows of 'j E A(E) xkmn' below j = 200."""
        self._check_writable()
        path = Path(path)
        header, rows = _read_rows(path, 4, 200, 3)

        fields = header[0].split() if header else []
        if fields and fields[0].isdigit() and int(fields[0]) != self.n2:
            logger.warning("EMERC: n2 (%d) & n2t (%s) differ", self.n2, fields[0])

        for jt, (_, ae, xkmn) in rows:
            if 1 <= jt <= self.size:
                self.oscillator_strength_ae[jt - 1] = ae
                self.xkmn[jt - 1] = xkmn

        logger.info("Read %d data lines from EMERC.TAB", len(rows))

    def freeze(self):
        """Make every table read-only."""
        for name in self._ARRAYS:
            getattr(self, name).setflags(write=False)
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_writable(self):
        if self._frozen:
            raise RuntimeError("CrossSectionTables are read-only after loading")

    def save_npz(self, path: PathLike):
        """Store all tables in a binary .npz cache."""
        np.savez(path, n2=self.n2, size=self.size,
                 **{name: getattr(self, name) for name in self._ARRAYS})

    @classmethod
    def from_npz(cls, path: PathLike) -> "CrossSectionTables":
        """Load tables from a binary cache written by ``save_npz``."""
        with np.load(path) as data:
            tables = cls(int(data['n2']), int(data['size']))
            for name in cls._ARRAYS[2:]:
                getattr(tables, name)[:] = data[name]
        logger.info("Loaded cross-section tables from %s", Path(path).name)
        tables.freeze()
        return tables

    def __repr__(self) -> str:
        return (f"CrossSectionTables(n2={self.n2}, size={self.size}, "
                f"E=[{self.E[0]:.4g}, {self.E[-1]:.4g}] eV)")
