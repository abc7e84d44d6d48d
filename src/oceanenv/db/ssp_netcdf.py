"""World Ocean Atlas sound speed profiles read from NetCDF.

The ``ssp`` variable is laid out ``(lat, lon, depth)`` or, for monthly
climatologies, ``(time, lat, lon, depth)``. The depth axis is the ``depth``
coordinate when the file carries one, the WOA standard levels otherwise.
Queries take the nearest grid cell; masked levels (NaN, fill values, non
positive speeds) below the bottom are dropped from the returned SSP.
"""
import logging

import numpy as np

from oceanenv.config import PRECISION, SSP_DB
from oceanenv.db.base import NetcdfDb, SspDb
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.ssp import SSP
from oceanenv.definitions.timeref import ALL_TIMES, as_datetime
from oceanenv.errors import DbConnectionError

logger = logging.getLogger(__name__)


class WoaSspDb(NetcdfDb, SspDb):
    required_vars = (SSP_DB['ssp_var'],)

    def __init__(self, path, name: str = 'woa', **kwargs):
        super().__init__(name, path, **kwargs)
        self.depths = None

    def finalize(self) -> None:
        super().finalize()
        var = self.ds[SSP_DB['ssp_var']]
        for dim in (SSP_DB['lat_var'], SSP_DB['lon_var']):
            if dim not in var.dims:
                raise DbConnectionError(self.name, f"'{SSP_DB['ssp_var']}' has no '{dim}' dimension")
        depth_dim = var.dims[-1]
        if SSP_DB['depth_var'] in self.ds.variables:
            self.depths = np.asarray(self.ds[SSP_DB['depth_var']].values, dtype=float)
        else:
            self.depths = np.asarray(SSP_DB['standard_depths'][:var.sizes[depth_dim]], dtype=float)
        if self.depths.size != var.sizes[depth_dim]:
            raise DbConnectionError(self.name, f"depth axis has {self.depths.size} levels, "
                                               f"'{SSP_DB['ssp_var']}' has {var.sizes[depth_dim]}")

    def _release(self) -> None:
        super()._release()
        self.depths = None

    def _time_selector(self, var, time):
        """isel/sel arguments picking the time slice for ``time``."""
        dim = SSP_DB['time_dim']
        if dim not in var.dims:
            return {}, {}
        if time is None or as_datetime(time) == ALL_TIMES:
            return {dim: 0}, {}
        when = as_datetime(time)
        if var.sizes[dim] == 12 and not np.issubdtype(self.ds[dim].dtype, np.datetime64):
            # monthly climatology
            return {dim: when.month - 1}, {}
        return {}, {dim: np.datetime64(when)}

    def get_value(self, point: GeoPoint, time=ALL_TIMES, depth_precision: float = PRECISION['ssp_depth']) -> SSP:
        ds = self._require_open()
        out = SSP(depth_precision)
        if not point.is_valid():
            logger.warning('%s: invalid coordinates %s', self.name, point)
            return out
        var = ds[SSP_DB['ssp_var']]
        by_index, by_value = self._time_selector(var, time)
        if by_index:
            var = var.isel(by_index)
        if by_value:
            var = var.sel(by_value, method='nearest')
        column = var.sel({SSP_DB['lat_var']: point.latitude, SSP_DB['lon_var']: point.longitude}, method='nearest')
        speeds = np.asarray(column.values, dtype=float).ravel()
        fill = var.attrs.get('_FillValue', var.encoding.get('_FillValue'))
        for depth, speed in zip(self.depths, speeds):
            if not np.isfinite(speed) or speed <= 0.0 or (fill is not None and speed == fill):
                continue
            out.insert_value(depth, speed)
        if self.debug:
            logger.debug('%s: %s at %s -> %d levels', self.name, point, time, len(out))
        return out
