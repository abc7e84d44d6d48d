"""Sound speed profiles.

An SSP maps depth (m, positive down) to sound speed (m/s). Optionally it also
keeps the temperature (°C), salinity (psu) and pressure (bar) columns it was
computed from. Depth keys are rounded to ``depth_precision`` so that depths
read from different sources still collide.

The weighted addition used for time interpolation and averaging is provided
by ``+`` (key-wise, missing keys inserted) together with scalar ``*`` and
``/``; every column is combined the same way.
"""
import copy
import logging
import math

import numpy as np

from oceanenv.config import PRECISION
from oceanenv.errors import ImportFormatError
from oceanenv.utils import quantize

logger = logging.getLogger(__name__)

HEADER_DEPTH = 'DEPTH_[m]'
HEADER_SSP = 'SSP_[m/s]'
HEADER_TEMPERATURE = 'TEMPERATURE_[C°]'
HEADER_SALINITY = 'SALINITY_[ppu]'
HEADER_PRESSURE = 'PRESSURE_[bar]'

_COLUMNS = ('speed', 'temperature', 'salinity', 'pressure')


def mackenzie_speed(temperature, salinity, depth):
    """Sound speed (m/s) from the Mackenzie (1981) nine-term equation.

    Valid for 2-30 °C, 25-40 psu and 0-8000 m. Accepts numpy arrays.
    """
    t = np.asarray(temperature, dtype=float)
    s = np.asarray(salinity, dtype=float)
    d = np.asarray(depth, dtype=float)
    return (1448.96 + 4.591 * t - 5.304e-2 * t ** 2 + 2.374e-4 * t ** 3
            + 1.340 * (s - 35.0) + 1.630e-2 * d + 1.675e-7 * d ** 2
            - 1.025e-2 * t * (s - 35.0) - 7.139e-13 * t * d ** 3)


def depth_from_pressure(pressure_bar, latitude=45.0):
    """Depth (m) from pressure (bar) with the UNESCO (Fofonoff & Millard 1983) formula."""
    p = np.asarray(pressure_bar, dtype=float) * 10.0  # dbar
    x = math.sin(math.radians(latitude)) ** 2
    g = 9.780318 * (1.0 + (5.2788e-3 + 2.36e-5 * x) * x) + 1.092e-6 * p
    return ((((-1.82e-15 * p + 2.279e-10) * p - 2.2512e-5) * p + 9.72659) * p) / g


class SSP:
    """Depth-keyed sound speed profile."""

    def __init__(self, depth_precision=PRECISION['ssp_depth']):
        self.depth_precision = float(depth_precision)
        self.speed = {}
        self.temperature = {}
        self.salinity = {}
        self.pressure = {}

    @classmethod
    def from_pairs(cls, pairs, depth_precision=PRECISION['ssp_depth']) -> 'SSP':
        ssp = cls(depth_precision)
        for depth, speed in pairs:
            ssp.insert_value(depth, speed)
        return ssp

    def _key(self, depth):
        return quantize(depth, self.depth_precision)

    # ── insertion ───────────────────────────────────────────────────────────
    def insert_value(self, depth: float, speed: float) -> 'SSP':
        if not (depth >= 0.0):
            raise ValueError(f"SSP depth must be >= 0, got {depth}")
        if not (speed > 0.0):
            raise ValueError(f"SSP speed must be > 0, got {speed}")
        self.speed[self._key(depth)] = float(speed)
        return self

    def insert_from_tsp(self, depth=None, temperature=None, salinity=None, pressure=None,
                        speed=None, latitude=45.0) -> 'SSP':
        """Insert a row given some of depth / temperature / salinity / pressure.

        Depth comes from pressure when missing; speed comes from the Mackenzie
        equation when missing.
        """
        if depth is None:
            if pressure is None:
                raise ValueError('either depth or pressure is required')
            depth = float(depth_from_pressure(pressure, latitude))
        if speed is None:
            if temperature is None or salinity is None:
                raise ValueError('temperature and salinity are required to compute sound speed')
            speed = float(mackenzie_speed(temperature, salinity, depth))
        self.insert_value(depth, speed)
        key = self._key(depth)
        if temperature is not None:
            self.temperature[key] = float(temperature)
        if salinity is not None:
            self.salinity[key] = float(salinity)
        if pressure is not None:
            self.pressure[key] = float(pressure)
        return self

    # ── queries ─────────────────────────────────────────────────────────────
    def is_valid(self) -> bool:
        return len(self.speed) > 0

    def __len__(self):
        return len(self.speed)

    def __iter__(self):
        for depth in sorted(self.speed):
            yield depth, self.speed[depth]

    def depths(self) -> np.ndarray:
        return np.asarray(sorted(self.speed), dtype=float)

    def speeds(self) -> np.ndarray:
        return np.asarray([self.speed[d] for d in sorted(self.speed)], dtype=float)

    def min_depth(self) -> float:
        return min(self.speed) if self.speed else math.inf

    def max_depth(self) -> float:
        return max(self.speed) if self.speed else -math.inf

    def speed_at(self, depth: float) -> float:
        """Linearly interpolated speed at ``depth``, clamped at both ends."""
        if not self.speed:
            return math.nan
        return float(np.interp(depth, self.depths(), self.speeds()))

    def has_tsp(self) -> bool:
        return bool(self.temperature) and bool(self.salinity)

    def copy(self) -> 'SSP':
        return copy.deepcopy(self)

    def __eq__(self, other):
        if not isinstance(other, SSP):
            return NotImplemented
        return all(getattr(self, c) == getattr(other, c) for c in _COLUMNS)

    def isclose(self, other: 'SSP', rel_tol=1e-9, abs_tol=1e-9) -> bool:
        if sorted(self.speed) != sorted(other.speed):
            return False
        return bool(np.allclose(self.speeds(), other.speeds(), rtol=rel_tol, atol=abs_tol))

    def __repr__(self):
        rows = ', '.join(f"{d:g}: {s:g}" for d, s in self)
        return f"SSP({{{rows}}})"

    # ── derived profiles ────────────────────────────────────────────────────
    def truncate(self, max_depth: float) -> 'SSP':
        """Copy cut at ``max_depth``; a sample is extrapolated at the cut when needed.

        Returns a not-valid SSP when ``max_depth`` is above the first sample.
        """
        depths = self.depths()
        if depths.size == 0 or max_depth < depths[0]:
            return SSP(self.depth_precision)
        out = SSP(self.depth_precision)
        for d, s in self:
            if d <= max_depth:
                out.speed[d] = s
        if self._key(max_depth) not in out.speed and max_depth < depths[-1]:
            kept = out.depths()
            if kept.size >= 2:
                d1, d0 = kept[-1], kept[-2]
                s1, s0 = out.speed[d1], out.speed[d0]
                out.insert_value(max_depth, s1 + (max_depth - d1) * (s1 - s0) / (d1 - d0))
            else:
                out.insert_value(max_depth, out.speed[kept[-1]])
        return out

    def transform(self, min_depth=None, max_depth=None, total_steps=None) -> 'SSP':
        """Resample every column on ``total_steps`` equally spaced depths."""
        if not self.is_valid():
            return SSP(self.depth_precision)
        depths = self.depths()
        min_depth = depths[0] if min_depth is None else min_depth
        max_depth = depths[-1] if max_depth is None else max_depth
        total_steps = len(depths) if not total_steps or total_steps <= 0 else int(total_steps)
        if total_steps < 2 or max_depth <= min_depth:
            raise ValueError('transform needs at least two steps and max_depth > min_depth')
        grid = np.linspace(min_depth, max_depth, total_steps)
        out = SSP(self.depth_precision)
        for name in _COLUMNS:
            column = getattr(self, name)
            if not column:
                continue
            keys = np.asarray(sorted(column), dtype=float)
            vals = np.asarray([column[k] for k in keys], dtype=float)
            resampled = np.interp(grid, keys, vals)
            target = getattr(out, name)
            for d, v in zip(grid, resampled):
                target[out._key(d)] = float(v)
        return out

    # ── arithmetic ──────────────────────────────────────────────────────────
    def __iadd__(self, other):
        if isinstance(other, SSP):
            for name in _COLUMNS:
                mine = getattr(self, name)
                for k, v in getattr(other, name).items():
                    key = self._key(k)
                    mine[key] = mine.get(key, 0.0) + v
        else:
            k = float(other)
            for name in _COLUMNS:
                column = getattr(self, name)
                for key in column:
                    column[key] += k
        return self

    def __add__(self, other):
        out = self.copy()
        out += other
        return out

    def __isub__(self, other):
        if isinstance(other, SSP):
            for name in _COLUMNS:
                mine = getattr(self, name)
                for k, v in getattr(other, name).items():
                    key = self._key(k)
                    mine[key] = mine.get(key, 0.0) - v
        else:
            self += -float(other)
        return self

    def __sub__(self, other):
        out = self.copy()
        out -= other
        return out

    def __imul__(self, k):
        k = float(k)
        for name in _COLUMNS:
            column = getattr(self, name)
            for key in column:
                column[key] *= k
        return self

    def __mul__(self, k):
        out = self.copy()
        out *= k
        return out

    __rmul__ = __mul__

    def __itruediv__(self, k):
        return self.__imul__(1.0 / float(k))

    def __truediv__(self, k):
        out = self.copy()
        out /= k
        return out

    # ── textual form ────────────────────────────────────────────────────────
    @classmethod
    def read(cls, stream, depth_precision=PRECISION['ssp_depth'], latitude=45.0) -> 'SSP':
        """Read the column format written by :meth:`write`.

        The first line names the columns; DEPTH or PRESSURE is required, and
        either SSP or both TEMPERATURE and SALINITY.
        """
        header = stream.readline().split()
        present = set(header)
        if HEADER_DEPTH not in present and HEADER_PRESSURE not in present:
            raise ImportFormatError(f"SSP header needs {HEADER_DEPTH} or {HEADER_PRESSURE}: {header}")
        if HEADER_SSP not in present and not (HEADER_TEMPERATURE in present and HEADER_SALINITY in present):
            raise ImportFormatError(f"SSP header needs {HEADER_SSP} or temperature and salinity: {header}")
        ssp = cls(depth_precision)
        for lineno, line in enumerate(stream, start=2):
            tokens = line.split()
            if not tokens:
                continue
            if len(tokens) != len(header):
                raise ImportFormatError(f"line {lineno}: expected {len(header)} columns, got {len(tokens)}")
            try:
                row = dict(zip(header, (float(t) for t in tokens)))
            except ValueError:
                raise ImportFormatError(f"line {lineno}: non numeric value in {line.strip()!r}")
            ssp.insert_from_tsp(depth=row.get(HEADER_DEPTH), temperature=row.get(HEADER_TEMPERATURE),
                                salinity=row.get(HEADER_SALINITY), pressure=row.get(HEADER_PRESSURE),
                                speed=row.get(HEADER_SSP), latitude=latitude)
        return ssp

    def write(self, stream) -> None:
        digits = PRECISION['write_digits']
        header = [HEADER_DEPTH, HEADER_SSP]
        extra = [(HEADER_TEMPERATURE, self.temperature), (HEADER_SALINITY, self.salinity),
                 (HEADER_PRESSURE, self.pressure)]
        extra = [(h, col) for h, col in extra if col]
        header.extend(h for h, _ in extra)
        stream.write(' '.join(header) + '\n')
        for d, s in self:
            values = [d, s] + [col.get(d, math.nan) for _, col in extra]
            stream.write(' '.join(f"{v:.{digits}g}" for v in values) + '\n')
