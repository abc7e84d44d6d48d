"""GEBCO style bathymetry read from NetCDF.

Two layouts are accepted:

* ``elevation(lat, lon)``: a regular 2-D grid, queried by nearest cell.
* ``z`` flat vector with ``lat``/``lon`` either as the grid axes
  (``len(z) == len(lat) * len(lon)``, row major on latitude) or as per-sample
  coordinates of the same length as ``z`` (nearest sample through a KD tree).

Elevations are positive up: a value <= 0 is returned as a positive depth, a
value above the sea surface is land and yields ``math.inf`` (or the land
approximation depth when ``approx_land_to_sea_surface`` is set).
"""
import logging
import math

import numpy as np

from oceanenv.config import BATHYMETRY
from oceanenv.db.base import NOT_FOUND_DEPTH, BathymetryDb, NetcdfDb
from oceanenv.definitions.geo import GeoPoint
from oceanenv.errors import DbConnectionError
from oceanenv.utils import nearest_sample, safe_build_kdtree

logger = logging.getLogger(__name__)


def elevation_to_depth(elevation: float, approx_land: bool = False) -> float:
    """Positive-down depth from a positive-up elevation; land -> inf or the land approximation."""
    if elevation is None or not np.isfinite(elevation):
        return NOT_FOUND_DEPTH
    if elevation <= 0.0:
        return abs(float(elevation))
    if approx_land:
        return BATHYMETRY['land_approximation_depth']
    return NOT_FOUND_DEPTH


class GebcoBathymetryDb(NetcdfDb, BathymetryDb):
    def __init__(self, path, name: str = 'gebco', approx_land_to_sea_surface: bool = False, **kwargs):
        super().__init__(name, path, **kwargs)
        self.approx_land_to_sea_surface = approx_land_to_sea_surface
        self._layout = None
        self._tree = None
        self._z = None
        self._lat = None
        self._lon = None

    def finalize(self) -> None:
        ds = self.ds
        lat_var, lon_var = BATHYMETRY['lat_var'], BATHYMETRY['lon_var']
        if BATHYMETRY['grid_var'] in ds.variables:
            self._layout = 'grid'
            return
        if BATHYMETRY['flat_var'] not in ds.variables:
            raise DbConnectionError(self.name, f"neither '{BATHYMETRY['grid_var']}' nor "
                                               f"'{BATHYMETRY['flat_var']}' found in {self.path}")
        if lat_var not in ds.variables or lon_var not in ds.variables:
            raise DbConnectionError(self.name, f"'{BATHYMETRY['flat_var']}' needs '{lat_var}' and '{lon_var}'")
        self._z = np.asarray(ds[BATHYMETRY['flat_var']].values, dtype=float).ravel()
        self._lat = np.asarray(ds[lat_var].values, dtype=float).ravel()
        self._lon = np.asarray(ds[lon_var].values, dtype=float).ravel()
        if self._z.size == self._lat.size * self._lon.size and self._z.size != self._lat.size:
            self._layout = 'axes'
        elif self._z.size == self._lat.size == self._lon.size:
            self._layout = 'scattered'
            self._tree = safe_build_kdtree(self._lat, self._lon, name=self.name)
        else:
            raise DbConnectionError(self.name, f"'{BATHYMETRY['flat_var']}' size {self._z.size} does not match "
                                               f"{lat_var}/{lon_var} sizes {self._lat.size}/{self._lon.size}")

    def _release(self) -> None:
        super()._release()
        self._tree = self._z = self._lat = self._lon = None

    def _elevation(self, point: GeoPoint) -> float:
        if self._layout == 'grid':
            cell = self.ds[BATHYMETRY['grid_var']].sel(
                {BATHYMETRY['lat_var']: point.latitude, BATHYMETRY['lon_var']: point.longitude}, method='nearest')
            return float(cell.values)
        if self._layout == 'axes':
            i = int(np.abs(self._lat - point.latitude).argmin())
            j = int(np.abs(self._lon - point.longitude).argmin())
            return float(self._z[i * self._lon.size + j])
        if self._tree is None:
            return math.nan
        return float(self._z[nearest_sample(self._tree, point.latitude, point.longitude)])

    def get_value(self, point: GeoPoint) -> float:
        self._require_open()
        if not point.is_valid():
            logger.warning('%s: invalid coordinates %s', self.name, point)
            return NOT_FOUND_DEPTH
        elevation = self._elevation(point)
        if elevation > 0.0:
            logger.debug('%s: coordinates %s are on land, altitude = %g', self.name, point, elevation)
        return elevation_to_depth(elevation, self.approx_land_to_sea_surface)
