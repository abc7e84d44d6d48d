"""Parsers of the custom override mini-formats.

Every parser reads its whole input before returning and raises
``ImportFormatError`` on the first problem, so the caller can insert the
result atomically.

Strings
-------
* SSP:        ``"N|depth_1|speed_1|...|depth_N|speed_N"``
* bathymetry: ``"N|range_1|depth_1|...|range_N|depth_N"`` (ranges and depths >= 0)
* sediment:   ``"type|velc|vels|density|attc|atts"``

Files
-----
* SSP: a header ``<TYPE> <anchor lat> <anchor lon>`` followed by whitespace
  separated rows whose columns depend on ``TYPE``:

  ============================== ==========================================
  SSP                            range depth speed
  FULL                           range depth temperature salinity pressure speed
  TEMPERATURE_SALINITY_PRESSURE  range temperature salinity pressure
  DEPTH_TEMPERATURE_SALINITY     range depth temperature salinity
  ============================== ==========================================

  A range <= 0 means "every range". Consecutive rows with the same range form
  one profile.
* bathymetry: ``range depth`` pairs until end of file.
"""
import logging
from typing import List, Tuple

from oceanenv.config import PRECISION
from oceanenv.db.store import ALL_RANGES
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.sediment import Sediment
from oceanenv.definitions.ssp import SSP
from oceanenv.errors import ImportFormatError

logger = logging.getLogger(__name__)

SSP_FILE_COLUMNS = {
    'SSP': ('depth', 'speed'),
    'FULL': ('depth', 'temperature', 'salinity', 'pressure', 'speed'),
    'TEMPERATURE_SALINITY_PRESSURE': ('temperature', 'salinity', 'pressure'),
    'DEPTH_TEMPERATURE_SALINITY': ('depth', 'temperature', 'salinity'),
}


def _pipe_fields(text: str, what: str) -> Tuple[int, List[str]]:
    """Split ``"N|a|b|..."``; returns N and the 2N value tokens."""
    text = str(text).strip()
    if '|' not in text:
        raise ImportFormatError(f"{what} string: separator | not found in {text!r}")
    tokens = text.split('|')
    if tokens[-1].strip() == '':
        tokens = tokens[:-1]
    try:
        count = int(tokens[0])
    except ValueError:
        raise ImportFormatError(f"{what} string: bad entry count {tokens[0]!r}")
    if count <= 0:
        raise ImportFormatError(f"{what} string: entry count must be positive, got {count}")
    values = tokens[1:]
    if len(values) != 2 * count:
        raise ImportFormatError(f"{what} string: expected {2 * count} values after the count, got {len(values)}")
    return count, values


def _float(token, what):
    try:
        return float(token)
    except ValueError:
        raise ImportFormatError(f"{what}: non numeric value {token!r}")


def parse_ssp_string(text: str, depth_precision: float = PRECISION['ssp_depth']) -> SSP:
    count, values = _pipe_fields(text, 'SSP')
    ssp = SSP(depth_precision)
    for i in range(count):
        depth = _float(values[2 * i], 'SSP string')
        speed = _float(values[2 * i + 1], 'SSP string')
        try:
            ssp.insert_value(depth, speed)
        except ValueError as e:
            raise ImportFormatError(f"SSP string entry {i}: {e}")
    return ssp


def parse_bathymetry_string(text: str) -> List[Tuple[float, float]]:
    count, values = _pipe_fields(text, 'Bathymetry')
    out = []
    for i in range(count):
        range_m = _float(values[2 * i], 'Bathymetry string')
        depth = _float(values[2 * i + 1], 'Bathymetry string')
        if depth < 0.0:
            raise ImportFormatError(f"Bathymetry string entry {i}: negative depth {depth}")
        if range_m < 0.0:
            raise ImportFormatError(f"Bathymetry string entry {i}: negative range {range_m}")
        out.append((range_m, depth))
    return out


def parse_sediment_string(text: str) -> Sediment:
    return Sediment.parse(text)


def read_ssp_file(path, depth_precision: float = PRECISION['ssp_depth']):
    """Parse a custom SSP file.

    Returns ``(anchor, [(range, SSP), ...])`` with ranges <= 0 mapped to the
    range wildcard.
    """
    with open(path, 'r', encoding='utf-8') as fh:
        tokens = fh.read().split()
    if len(tokens) < 3:
        raise ImportFormatError(f"{path}: header '<TYPE> <lat> <lon>' missing")
    ssp_type = tokens[0].upper()
    if ssp_type not in SSP_FILE_COLUMNS:
        raise ImportFormatError(f"{path}: unknown SSP file type {tokens[0]!r}, "
                                f"expected one of {sorted(SSP_FILE_COLUMNS)}")
    anchor = GeoPoint(_float(tokens[1], path), _float(tokens[2], path))
    if not anchor.is_valid():
        raise ImportFormatError(f"{path}: invalid anchor coordinates {anchor}")
    columns = ('range',) + SSP_FILE_COLUMNS[ssp_type]
    body = tokens[3:]
    if len(body) % len(columns):
        raise ImportFormatError(f"{path}: {len(body)} values do not form rows of {len(columns)} columns")

    profiles = []
    seen = set()
    last_range = None
    for start in range(0, len(body), len(columns)):
        row = dict(zip(columns, (_float(t, path) for t in body[start:start + len(columns)])))
        range_m = row['range'] if row['range'] > 0.0 else ALL_RANGES
        if range_m != last_range:
            if range_m in seen:
                raise ImportFormatError(f"{path}: range {range_m:g} appears in two separate blocks")
            seen.add(range_m)
            profiles.append((range_m, SSP(depth_precision)))
            last_range = range_m
        try:
            profiles[-1][1].insert_from_tsp(depth=row.get('depth'), temperature=row.get('temperature'),
                                            salinity=row.get('salinity'), pressure=row.get('pressure'),
                                            speed=row.get('speed'), latitude=anchor.latitude)
        except ValueError as e:
            raise ImportFormatError(f"{path}: row {start // len(columns) + 1}: {e}")
    if not profiles:
        raise ImportFormatError(f"{path}: no SSP rows")
    logger.debug('%s: %s file, %d profiles around %s', path, ssp_type, len(profiles), anchor)
    return anchor, profiles


def read_bathymetry_file(path) -> List[Tuple[float, float]]:
    with open(path, 'r', encoding='utf-8') as fh:
        tokens = fh.read().split()
    if not tokens or len(tokens) % 2:
        raise ImportFormatError(f"{path}: expected range/depth pairs, got {len(tokens)} values")
    out = []
    for i in range(0, len(tokens), 2):
        range_m = _float(tokens[i], path)
        depth = _float(tokens[i + 1], path)
        if depth < 0.0:
            raise ImportFormatError(f"{path}: negative depth {depth} at range {range_m}")
        if range_m < 0.0:
            raise ImportFormatError(f"{path}: negative range {range_m}")
        out.append((range_m, depth))
    return out
