"""
utils.py

Helpers shared by the definitions and the backing databases:

- `safe_log_exception(msg, exc, **ctx)` : log a caught exception with context
- `safe_build_kdtree(lat, lon, name)`   : cKDTree over scattered lat/lon samples, or None
- `nearest_sample(tree, lat, lon)`      : index of the sample closest to a point
- `quantize(value, precision)`          : round a float used as a dictionary key
"""

from typing import Any, Optional
import logging
import numpy as np
from scipy.spatial import cKDTree

logger = logging.getLogger(__name__)


def safe_log_exception(msg: str, exc: Exception, **ctx: Any) -> None:
    """Log ``exc`` with a traceback and ``key=value`` context on one line."""
    parts = [msg, str(exc)]
    parts.extend(f"{k}={v!r}" for k, v in ctx.items())
    logger.error(' | '.join(parts), exc_info=exc)


def _unit_vectors(lat, lon) -> np.ndarray:
    phi = np.radians(np.asarray(lat, dtype=float))
    lam = np.radians(np.asarray(lon, dtype=float))
    return np.column_stack([np.cos(phi) * np.cos(lam), np.cos(phi) * np.sin(lam), np.sin(phi)])


def safe_build_kdtree(lat, lon, name: str = 'KDTree') -> Optional[cKDTree]:
    """Index scattered samples on the unit sphere.

    Chord distance grows with great-circle distance, so the nearest neighbour
    is right across the antimeridian and near the poles. Returns None when
    there is nothing to index or the coordinates can not be used.
    """
    try:
        lat = np.asarray(lat, dtype=float).ravel()
        lon = np.asarray(lon, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        safe_log_exception(f'{name}: coordinates are not numeric', e)
        return None
    if lat.size == 0 or lat.size != lon.size:
        logger.warning('%s: %d latitudes and %d longitudes, no index built', name, lat.size, lon.size)
        return None
    missing = int((~(np.isfinite(lat) & np.isfinite(lon))).sum())
    if missing:
        logger.warning('%s: %d samples without coordinates, no index built', name, missing)
        return None
    logger.debug('%s: indexing %d samples', name, lat.size)
    return cKDTree(_unit_vectors(lat, lon))


def nearest_sample(tree: cKDTree, lat: float, lon: float) -> int:
    _, idx = tree.query(_unit_vectors([lat], [lon])[0])
    return int(idx)


def quantize(value: float, precision: float) -> float:
    """Round ``value`` to the nearest multiple of ``precision``.

    Two floats that differ by less than half a precision step map to the same
    key. Infinite and NaN values are returned unchanged.
    """
    v = float(value)
    if precision <= 0 or not np.isfinite(v):
        return v
    return float(np.round(v / precision) * precision)
