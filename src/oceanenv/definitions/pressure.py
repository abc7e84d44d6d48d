"""Complex acoustic pressure."""
import cmath
import math


NOT_VALID = complex(math.inf, math.inf)


class Pressure:
    """Complex pressure value with arithmetic against Pressure, complex and scalars."""

    __slots__ = ('value',)

    def __init__(self, real=NOT_VALID, imag=0.0):
        if isinstance(real, Pressure):
            self.value = real.value
        elif isinstance(real, complex):
            self.value = real
        else:
            self.value = complex(float(real), float(imag))

    @classmethod
    def not_valid(cls) -> 'Pressure':
        return cls(NOT_VALID)

    def is_valid(self) -> bool:
        return self.value != NOT_VALID

    @property
    def real(self):
        return self.value.real

    @property
    def imag(self):
        return self.value.imag

    def __complex__(self):
        return self.value

    def __abs__(self):
        return abs(self.value)

    def phase(self) -> float:
        return cmath.phase(self.value)

    def tx_loss_db(self) -> float:
        """Transmission loss ``-20 log10 |p|`` (dB re 1 m)."""
        if not self.is_valid():
            return -math.inf
        mag = abs(self.value)
        if mag == 0.0:
            return math.inf
        return -20.0 * math.log10(mag)

    def __repr__(self):
        return f"Pressure({self.value.real:g}, {self.value.imag:g})"

    def __eq__(self, other):
        if isinstance(other, Pressure):
            return self.value == other.value
        if isinstance(other, (complex, int, float)):
            return self.value == other
        return NotImplemented

    def __hash__(self):
        return hash(self.value)

    @staticmethod
    def _v(other):
        return other.value if isinstance(other, Pressure) else complex(other)

    def __add__(self, other):
        return Pressure(self.value + self._v(other))

    __radd__ = __add__

    def __sub__(self, other):
        return Pressure(self.value - self._v(other))

    def __rsub__(self, other):
        return Pressure(self._v(other) - self.value)

    def __mul__(self, other):
        return Pressure(self.value * self._v(other))

    __rmul__ = __mul__

    def __truediv__(self, other):
        return Pressure(self.value / self._v(other))

    def copy(self) -> 'Pressure':
        return Pressure(self.value)
