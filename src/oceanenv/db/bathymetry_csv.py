"""Bathymetry on a regular UTM grid stored as CSV.

Each CSV row is one northing line starting from ``northing_start``, each column
one easting step from ``easting_start``; cells are ``spacing`` metres wide and
hold elevations (positive up). Query coordinates are projected to UTM with
pyproj and the containing cell is read.
"""
import logging
import math
from typing import Optional

import numpy as np
import pandas as pd
from pyproj import Transformer

from oceanenv.config import BATHYMETRY
from oceanenv.db.base import NOT_FOUND_DEPTH, BathymetryDb, TextualDb
from oceanenv.db.bathymetry_netcdf import elevation_to_depth
from oceanenv.definitions.geo import GeoPoint
from oceanenv.errors import DbConnectionError

logger = logging.getLogger(__name__)


def utm_epsg(point: GeoPoint) -> int:
    """WGS84 / UTM EPSG code of the zone containing ``point``."""
    zone = int((point.longitude + 180.0) // 6.0) % 60 + 1
    return (32600 if point.latitude >= 0.0 else 32700) + zone


class UtmCsvBathymetryDb(TextualDb, BathymetryDb):
    def __init__(self, path, spacing: float = 1.0, easting_range=(0.0, 0.0), northing_range=(0.0, 0.0),
                 epsg: Optional[int] = None, separator: str = BATHYMETRY['csv_separator'],
                 approx_land_to_sea_surface: bool = False, name: str = 'utm_csv'):
        super().__init__(name, path)
        self.spacing = float(spacing)
        self.easting_start, self.easting_end = map(float, easting_range)
        self.northing_start, self.northing_end = map(float, northing_range)
        self.epsg = epsg
        self.separator = separator
        self.approx_land_to_sea_surface = approx_land_to_sea_surface
        self.grid: Optional[np.ndarray] = None
        self._transformers = {}

    def open(self) -> None:
        self._require_file()
        if self.spacing <= 0.0:
            raise DbConnectionError(self.name, f"grid spacing must be positive, got {self.spacing}")

    def finalize(self) -> None:
        try:
            frame = pd.read_csv(self.path, sep=self.separator, header=None, dtype=float)
        except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise DbConnectionError(self.name, f"can not read {self.path}: {e}") from e
        self.grid = frame.to_numpy(dtype=float)
        logger.info('%s: %d northing rows x %d easting columns', self.name, *self.grid.shape)

    def _release(self) -> None:
        self.grid = None

    def _to_utm(self, point: GeoPoint):
        epsg = self.epsg or utm_epsg(point)
        tr = self._transformers.get(epsg)
        if tr is None:
            tr = Transformer.from_crs('EPSG:4326', f'EPSG:{epsg}', always_xy=True)
            self._transformers[epsg] = tr
        return tr.transform(point.longitude, point.latitude)

    def cell_index(self, point: GeoPoint):
        """(row, column) of the cell containing ``point``; None outside the grid."""
        if not point.is_valid():
            return None
        easting, northing = self._to_utm(point)
        if not (self.easting_start <= easting <= self.easting_end
                and self.northing_start <= northing <= self.northing_end):
            logger.debug('%s: utm (%.2f, %.2f) outside the grid ranges', self.name, easting, northing)
            return None
        col = int(math.floor((easting - self.easting_start) / self.spacing))
        row = int(math.floor((northing - self.northing_start) / self.spacing))
        return row, col

    def get_value(self, point: GeoPoint) -> float:
        if self.grid is None:
            raise DbConnectionError(self.name, 'connection is not open')
        idx = self.cell_index(point)
        if idx is None or idx[0] >= self.grid.shape[0] or idx[1] >= self.grid.shape[1]:
            logger.warning('%s: coordinates %s are outside the CSV bathymetry', self.name, point)
            return NOT_FOUND_DEPTH
        elevation = float(self.grid[idx])
        if elevation > 0.0:
            logger.debug('%s: coordinates %s are on land, altitude = %g', self.name, point, elevation)
        return elevation_to_depth(elevation, self.approx_land_to_sea_surface)
