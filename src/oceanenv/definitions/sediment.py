"""Seafloor sediment geoacoustic description.

A Sediment carries a type label and five shape parameters: compressional and
shear speed (m/s), density (g/cm³), compressional and shear attenuation
(dB/λ). Arithmetic acts on the five parameters and records the operation in
the type label, so ``0.4 * clay + 0.6 * sand`` is labelled
``"( CLAY * 0.4 ) + ( SAND * 0.6 )"``.
"""
from dataclasses import dataclass, field, replace
import logging
import math

from oceanenv.config import SEDIMENT_NOT_SET, SEDIMENT_PRESETS
from oceanenv.errors import ImportFormatError

logger = logging.getLogger(__name__)

_PARAMS = ('velc', 'vels', 'density', 'attc', 'atts')


def _fmt(x):
    return f"{x:g}"


@dataclass
class Sediment:
    type: str = ''
    velc: float = SEDIMENT_NOT_SET
    vels: float = SEDIMENT_NOT_SET
    density: float = SEDIMENT_NOT_SET
    attc: float = SEDIMENT_NOT_SET
    atts: float = SEDIMENT_NOT_SET
    depth: float = field(default=SEDIMENT_NOT_SET, compare=False)

    @classmethod
    def from_preset(cls, name: str, depth: float = SEDIMENT_NOT_SET) -> 'Sediment':
        """Build one of the DECK41 presets (``'GRAVEL'``, ``'SAND'``, ...).

        Gravel, silt and mud get a shear speed of ``vels * depth**0.3`` when
        ``depth`` is positive.
        """
        key = name.upper()
        if key not in SEDIMENT_PRESETS:
            raise KeyError(f"Unknown sediment preset '{name}'")
        p = SEDIMENT_PRESETS[key]
        vels = p['vels']
        if p['depth_scaled_shear'] and depth != SEDIMENT_NOT_SET and depth > 0.0:
            vels = vels * depth ** 0.3
        return cls(p['name'], p['velc'], vels, p['density'], p['attc'], p['atts'], depth)

    @classmethod
    def parse(cls, text: str) -> 'Sediment':
        """Parse ``"<type>|velc|vels|density|attc|atts"``."""
        tokens = [t.strip() for t in str(text).split('|')]
        if len(tokens) != 6 or not tokens[0]:
            raise ImportFormatError(f"Sediment string needs a type and five parameters: {text!r}")
        try:
            values = [float(t) for t in tokens[1:]]
        except ValueError:
            raise ImportFormatError(f"Sediment string has a non numeric parameter: {text!r}")
        return cls(tokens[0], *values)

    def params(self):
        return tuple(getattr(self, p) for p in _PARAMS)

    def is_valid(self) -> bool:
        return all(v != SEDIMENT_NOT_SET for v in self.params())

    def __str__(self):
        if not self.is_valid():
            return 'Sediment(not valid)'
        return (f"{self.type}; velc = {self.velc:g}; vels = {self.vels:g}; density = {self.density:g}; "
                f"attc = {self.attc:g}; atts = {self.atts:g}")

    def isclose(self, other: 'Sediment', rel_tol: float = 1e-9, abs_tol: float = 0.0) -> bool:
        """Parameter-wise closeness, ignoring the type label."""
        return all(math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)
                   for a, b in zip(self.params(), other.params()))

    # ── arithmetic ──────────────────────────────────────────────────────────
    def _combine(self, other, op, symbol):
        if isinstance(other, Sediment):
            label = f"{self.type} {symbol} {other.type}"
            values = [op(a, b) for a, b in zip(self.params(), other.params())]
        else:
            k = float(other)
            label = f"{self.type} {symbol} {_fmt(k)}"
            values = [op(a, k) for a in self.params()]
        return Sediment(label, *values, depth=self.depth)

    def _scale(self, k, op, symbol):
        k = float(k)
        values = [op(a, k) for a in self.params()]
        return Sediment(f"( {self.type} {symbol} {_fmt(k)} )", *values, depth=self.depth)

    def __add__(self, other):
        return self._combine(other, lambda a, b: a + b, '+')

    def __sub__(self, other):
        return self._combine(other, lambda a, b: a - b, '-')

    def __mul__(self, other):
        if isinstance(other, Sediment):
            return self._combine(other, lambda a, b: a * b, '*')
        return self._scale(other, lambda a, b: a * b, '*')

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, Sediment):
            return self._combine(other, lambda a, b: a / b, '/')
        return self._scale(other, lambda a, b: a / b, '/')

    def __radd__(self, other):
        # lets sum() start from 0
        if other == 0:
            return replace(self)
        return self.__add__(other)
