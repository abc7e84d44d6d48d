from datetime import datetime

import numpy as np
import pytest
import xarray as xr

from oceanenv.db.base import BathymetryDb, SedimentDb, SspDb
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.sediment import Sediment
from oceanenv.definitions.ssp import SSP


class FakeBathymetryDb(BathymetryDb):
    """Constant depth; counts queries and closes."""

    def __init__(self, depth=100.0, name='fake_bathymetry'):
        super().__init__(name)
        self.depth = depth
        self.queries = 0
        self.closed = 0

    def open(self):
        pass

    def _release(self):
        self.closed += 1

    def get_value(self, point):
        self.queries += 1
        return self.depth


class FakeSedimentDb(SedimentDb):
    def __init__(self, sediment=None, name='fake_sediment'):
        super().__init__(name)
        self.sediment = sediment if sediment is not None else Sediment.from_preset('SAND')
        self.many_calls = []
        self.closed = 0

    def open(self):
        pass

    def _release(self):
        self.closed += 1

    def get_value(self, point):
        return self.sediment

    def get_value_many(self, points):
        self.many_calls.append(list(points))
        return self.sediment


class FakeSspDb(SspDb):
    """Profile whose speeds grow by one m/s per hour after ``origin``."""

    def __init__(self, origin=datetime(2020, 1, 1), name='fake_ssp'):
        super().__init__(name)
        self.origin = origin
        self.times = []
        self.closed = 0

    def open(self):
        pass

    def _release(self):
        self.closed += 1

    def get_value(self, point, time, depth_precision=1e-6):
        self.times.append(time)
        hours = (time - self.origin).total_seconds() / 3600.0
        return SSP.from_pairs([(0.0, 1500.0 + hours), (100.0, 1490.0 + hours)], depth_precision)


def open_fake(db):
    db.open_connection()
    return db


@pytest.fixture
def tx():
    return GeoPoint(42.0, 10.0, 10.0)


@pytest.fixture
def rx():
    return GeoPoint(42.01, 10.01, 50.0)


@pytest.fixture
def fake_bathymetry_db():
    return open_fake(FakeBathymetryDb())


@pytest.fixture
def fake_sediment_db():
    return open_fake(FakeSedimentDb())


@pytest.fixture
def fake_ssp_db():
    return open_fake(FakeSspDb())


@pytest.fixture
def gebco_grid_nc(tmp_path):
    """3x3 elevation grid around (42, 10) with one land cell."""
    lat = np.array([41.0, 42.0, 43.0])
    lon = np.array([9.0, 10.0, 11.0])
    elevation = np.array([[-100.0, -200.0, -300.0],
                          [-400.0, -500.0, 15.0],
                          [-700.0, -800.0, -900.0]])
    path = tmp_path / 'gebco.nc'
    xr.Dataset({'elevation': (('lat', 'lon'), elevation)},
               coords={'lat': lat, 'lon': lon}).to_netcdf(path)
    return path


@pytest.fixture
def woa_nc(tmp_path):
    """Monthly climatology on a 2x2 grid, three depth levels, last level masked in January."""
    lat = np.array([40.0, 45.0])
    lon = np.array([5.0, 15.0])
    depth = np.array([0.0, 50.0, 100.0])
    ssp = np.empty((12, 2, 2, 3))
    for month in range(12):
        ssp[month] = np.array([1500.0, 1495.0, 1490.0]) + month
    ssp[0, :, :, 2] = np.nan
    path = tmp_path / 'woa.nc'
    xr.Dataset({'ssp': (('time', 'lat', 'lon', 'depth'), ssp)},
               coords={'time': np.arange(12), 'lat': lat, 'lon': lon, 'depth': depth}).to_netcdf(path)
    return path


@pytest.fixture
def deck41_nc(tmp_path):
    """The three DECK41 products.

    coord grid: SAND/SAND at (42, 10), NODATA/SAND elsewhere
    marsden one degree: (ROCKS, NODATA) everywhere
    marsden square: (NODATA, NODATA) everywhere
    """
    lat = np.array([41.0, 42.0, 43.0])
    lon = np.array([9.0, 10.0, 11.0])
    main = np.full((3, 3), 11.0)
    sec = np.full((3, 3), 1.0)
    main[1, 1] = 1.0
    coord = tmp_path / 'deck41_coord.nc'
    xr.Dataset({'seafloor_main_type': (('lat', 'lon'), main),
                'seafloor_secondary_type': (('lat', 'lon'), sec)},
               coords={'lat': lat, 'lon': lon}).to_netcdf(coord)

    one = tmp_path / 'deck41_marsden_one.nc'
    xr.Dataset({'seafloor_main_type': (('square', 'one'), np.full((940, 100), 6.0)),
                'seafloor_secondary_type': (('square', 'one'), np.full((940, 100), 11.0))}).to_netcdf(one)

    square = tmp_path / 'deck41_marsden.nc'
    xr.Dataset({'seafloor_main_type': (('square',), np.full(940, 11.0)),
                'seafloor_secondary_type': (('square',), np.full(940, 11.0))}).to_netcdf(square)
    return coord, one, square
