"""NetCDF readers of the three DECK41 seafloor products.

Each reader exposes ``get_seafloor_type(point) -> SedimentTypes`` and is used
as one tier of ``Deck41SedimentDb``. Missing or masked cells read as NODATA.
"""
import logging

import numpy as np

from oceanenv.config import DECK41
from oceanenv.db.base import NetcdfDb
from oceanenv.db.deck41 import Deck41Type, SedimentTypes
from oceanenv.definitions.geo import GeoPoint
from oceanenv.errors import DbConnectionError
from oceanenv.utils import nearest_sample, safe_build_kdtree

logger = logging.getLogger(__name__)

NODATA_TYPES = SedimentTypes(Deck41Type.NODATA, Deck41Type.NODATA)


def _as_type_id(value) -> int:
    v = float(value)
    if not np.isfinite(v):
        return int(Deck41Type.NODATA)
    return int(v)


class _Deck41Netcdf(NetcdfDb):
    required_vars = (DECK41['main_var'], DECK41['secondary_var'])

    def _read_pair(self, index) -> SedimentTypes:
        ds = self._require_open()
        main = ds[DECK41['main_var']]
        sec = ds[DECK41['secondary_var']]
        try:
            return SedimentTypes(_as_type_id(main[index].values), _as_type_id(sec[index].values))
        except IndexError:
            logger.debug('%s: index %s outside the product', self.name, index)
            return NODATA_TYPES


class Deck41CoordDb(_Deck41Netcdf):
    """Point-resolution product.

    Two layouts are read: a regular grid with ``lat``/``lon`` dimensions, or
    scattered samples sharing one dimension with ``lat``/``lon`` vectors (the
    nearest sample is used).
    """

    def __init__(self, path, name: str = 'deck41_coord', **kwargs):
        super().__init__(name, path, **kwargs)
        self._tree = None
        self._gridded = False

    def finalize(self) -> None:
        super().finalize()
        ds = self.ds
        lat_var, lon_var = DECK41['lat_var'], DECK41['lon_var']
        dims = ds[DECK41['main_var']].dims
        if lat_var in dims and lon_var in dims:
            self._gridded = True
            return
        if lat_var not in ds.variables or lon_var not in ds.variables:
            raise DbConnectionError(self.name, f"no '{lat_var}'/'{lon_var}' coordinates in {self.path}")
        self._tree = safe_build_kdtree(ds[lat_var].values, ds[lon_var].values, name=self.name)

    def _release(self) -> None:
        super()._release()
        self._tree = None

    def get_seafloor_type(self, point: GeoPoint) -> SedimentTypes:
        if not point.is_valid():
            return NODATA_TYPES
        ds = self._require_open()
        if self._gridded:
            cell = ds[[DECK41['main_var'], DECK41['secondary_var']]].sel(
                {DECK41['lat_var']: point.latitude, DECK41['lon_var']: point.longitude}, method='nearest')
            types = SedimentTypes(_as_type_id(cell[DECK41['main_var']].values),
                                  _as_type_id(cell[DECK41['secondary_var']].values))
        elif self._tree is None:
            return NODATA_TYPES
        else:
            types = self._read_pair(nearest_sample(self._tree, point.latitude, point.longitude))
        if self.debug:
            logger.debug('%s: %s -> %s', self.name, point, types)
        return types


class Deck41MarsdenOneDb(_Deck41Netcdf):
    """1°x1° product indexed by (marsden square, one degree square)."""

    def __init__(self, path, name: str = 'deck41_marsden_one', **kwargs):
        super().__init__(name, path, **kwargs)

    def get_seafloor_type(self, point: GeoPoint) -> SedimentTypes:
        if not point.is_valid():
            return NODATA_TYPES
        square, one = point.marsden_coord()
        return self._read_pair((square, one))


class Deck41MarsdenDb(_Deck41Netcdf):
    """10°x10° product indexed by marsden square."""

    def __init__(self, path, name: str = 'deck41_marsden', **kwargs):
        super().__init__(name, path, **kwargs)

    def get_seafloor_type(self, point: GeoPoint) -> SedimentTypes:
        if not point.is_valid():
            return NODATA_TYPES
        return self._read_pair(point.marsden_square())
