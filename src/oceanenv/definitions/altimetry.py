"""Sea-surface altimetry profiles (range in m -> surface height in m)."""
import copy

import numpy as np


class Altimetry:
    def __init__(self, profile=None):
        self.profile = {float(r): float(h) for r, h in (profile or {}).items()}

    @classmethod
    def flat(cls, height: float = 0.0) -> 'Altimetry':
        return cls({0.0: height})

    def is_valid(self) -> bool:
        return len(self.profile) > 0

    def insert_value(self, range_m: float, height: float) -> 'Altimetry':
        self.profile[float(range_m)] = float(height)
        return self

    def __len__(self):
        return len(self.profile)

    def __iter__(self):
        for r in sorted(self.profile):
            yield r, self.profile[r]

    def __eq__(self, other):
        if not isinstance(other, Altimetry):
            return NotImplemented
        return self.profile == other.profile

    def __repr__(self):
        return f"Altimetry({dict(self)})"

    def copy(self) -> 'Altimetry':
        return copy.deepcopy(self)

    def height_at(self, range_m: float) -> float:
        ranges = np.asarray(sorted(self.profile), dtype=float)
        heights = np.asarray([self.profile[r] for r in ranges], dtype=float)
        return float(np.interp(range_m, ranges, heights))

    def crop(self, start: float, end: float) -> 'Altimetry':
        return Altimetry({r: h for r, h in self.profile.items() if start <= r <= end})

    def __add__(self, other):
        out = self.copy()
        if isinstance(other, Altimetry):
            for r, h in other.profile.items():
                out.profile[r] = out.profile.get(r, 0.0) + h
        else:
            out.profile = {r: h + float(other) for r, h in out.profile.items()}
        return out

    def __mul__(self, k):
        return Altimetry({r: h * float(k) for r, h in self.profile.items()})

    __rmul__ = __mul__

    def __truediv__(self, k):
        return Altimetry({r: h / float(k) for r, h in self.profile.items()})
