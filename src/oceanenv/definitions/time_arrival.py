"""Channel impulse responses as sparse (delay, complex gain) taps."""
import copy
import math

from oceanenv.config import PRECISION
from oceanenv.definitions.pressure import Pressure
from oceanenv.utils import quantize


class TimeArr:
    """Delay (s) -> complex gain map.

    Delays are rounded to ``delay_precision``. A TimeArr with no taps, or whose
    only zero-delay tap is the not-valid pressure, is not valid.
    """

    def __init__(self, taps=None, delay_precision=PRECISION['arrival_delay']):
        self.delay_precision = float(delay_precision)
        self.taps = {}
        for delay, gain in (taps or {}).items():
            self.insert_value(delay, gain)

    @classmethod
    def single(cls, pressure, delay=0.0, delay_precision=PRECISION['arrival_delay']) -> 'TimeArr':
        arr = cls(delay_precision=delay_precision)
        p = Pressure(pressure)
        if not p.is_valid():
            arr.taps[0.0] = p.value
        else:
            arr.insert_value(delay, p)
        return arr

    def _key(self, delay):
        return quantize(delay, self.delay_precision)

    def insert_value(self, delay: float, gain) -> 'TimeArr':
        key = self._key(delay)
        self.taps[key] = self.taps.get(key, 0j) + complex(gain)
        return self

    def is_valid(self) -> bool:
        if not self.taps:
            return False
        return not (0.0 in self.taps and self.taps[0.0] == Pressure.not_valid().value)

    def __len__(self):
        return len(self.taps)

    def __iter__(self):
        for delay in sorted(self.taps):
            yield delay, self.taps[delay]

    def __eq__(self, other):
        if not isinstance(other, TimeArr):
            return NotImplemented
        return self.taps == other.taps

    def __repr__(self):
        return f"TimeArr({len(self.taps)} taps)"

    def copy(self) -> 'TimeArr':
        return copy.deepcopy(self)

    def min_delay(self) -> float:
        return min(self.taps) if self.taps else math.inf

    def max_delay(self) -> float:
        return max(self.taps) if self.taps else -math.inf

    def coherent_sum(self) -> Pressure:
        """All taps summed into one pressure."""
        return Pressure(sum(self.taps.values(), 0j))

    def as_pressure(self) -> Pressure:
        if not self.is_valid():
            return Pressure.not_valid()
        return self.coherent_sum()

    def coherent_sum_sample(self, resolution: float) -> 'TimeArr':
        """Taps closer than ``resolution`` to the start of their bin are summed coherently."""
        out = TimeArr(delay_precision=self.delay_precision)
        if not self.taps:
            return out
        bin_start = None
        for delay, gain in self:
            if bin_start is None or delay > bin_start + resolution:
                bin_start = delay
            out.taps[bin_start] = out.taps.get(bin_start, 0j) + gain
        return out

    def incoherent_sum_sample(self, resolution: float) -> 'TimeArr':
        """Same binning as :meth:`coherent_sum_sample` with power summation."""
        power = {}
        bin_start = None
        for delay, gain in self:
            if bin_start is None or delay > bin_start + resolution:
                bin_start = delay
            power[bin_start] = power.get(bin_start, 0.0) + abs(gain) ** 2
        out = TimeArr(delay_precision=self.delay_precision)
        out.taps = {d: complex(math.sqrt(p)) for d, p in power.items()}
        return out

    def crop(self, start: float, end: float) -> 'TimeArr':
        out = TimeArr(delay_precision=self.delay_precision)
        out.taps = {d: g for d, g in self.taps.items() if start <= d < end}
        return out

    # ── arithmetic ──────────────────────────────────────────────────────────
    def __iadd__(self, other):
        if isinstance(other, TimeArr):
            for delay, gain in other.taps.items():
                self.insert_value(delay, gain)
        else:
            k = complex(other)
            for delay in self.taps:
                self.taps[delay] += k
        return self

    def __add__(self, other):
        out = self.copy()
        out += other
        return out

    __radd__ = __add__

    def __isub__(self, other):
        if isinstance(other, TimeArr):
            for delay, gain in other.taps.items():
                self.insert_value(delay, -gain)
        else:
            k = complex(other)
            for delay in self.taps:
                self.taps[delay] -= k
        return self

    def __sub__(self, other):
        out = self.copy()
        out -= other
        return out

    def __imul__(self, k):
        k = complex(k)
        for delay in self.taps:
            self.taps[delay] *= k
        return self

    def __mul__(self, k):
        out = self.copy()
        out *= k
        return out

    __rmul__ = __mul__

    def __itruediv__(self, k):
        k = complex(k)
        for delay in self.taps:
            self.taps[delay] /= k
        return self

    def __truediv__(self, k):
        out = self.copy()
        out /= k
        return out
