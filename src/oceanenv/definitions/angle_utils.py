"""Bearing and longitude wrapping shared by the geometry and the override stores.

Plain numpy; scalars and arrays are both accepted.
"""
import math
import numpy as np


def wrap_2pi(x: float) -> float:
    """Bearing in radians folded into [0, 2*pi)."""
    return np.mod(np.asarray(x, dtype=float), 2.0 * math.pi)


def wrap_lon_deg(x: float) -> float:
    """Longitude in degrees folded into [-180, 180)."""
    return np.mod(np.asarray(x, dtype=float) + 180.0, 360.0) - 180.0


def bearing_diff_rad(a: float, b: float) -> np.ndarray:
    """Absolute difference between two bearings folded into [0, pi].

    ``|a - b|`` is taken first and reflected around pi, so 350° vs 10° gives
    20°.
    """
    d = np.abs(np.asarray(a, dtype=float) - np.asarray(b, dtype=float))
    return np.where(d > math.pi, 2.0 * math.pi - d, d)
