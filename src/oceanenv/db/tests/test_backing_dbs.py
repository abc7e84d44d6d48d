import math
from datetime import datetime

import numpy as np
import pytest
import xarray as xr
from pyproj import Transformer

from oceanenv.db.bathymetry_csv import UtmCsvBathymetryDb, utm_epsg
from oceanenv.db.bathymetry_netcdf import GebcoBathymetryDb, elevation_to_depth
from oceanenv.db.ssp_netcdf import WoaSspDb
from oceanenv.db.store import ALL_TIMES
from oceanenv.definitions.geo import GeoPoint
from oceanenv.errors import DbConnectionError


def test_elevation_to_depth():
    assert elevation_to_depth(-250.0) == 250.0
    assert elevation_to_depth(0.0) == 0.0
    assert elevation_to_depth(12.0) == math.inf
    assert elevation_to_depth(12.0, approx_land=True) == pytest.approx(1e-9)
    assert elevation_to_depth(float('nan')) == math.inf


# ── GEBCO NetCDF ─────────────────────────────────────────────────────────────
def test_gebco_grid(gebco_grid_nc):
    with GebcoBathymetryDb(gebco_grid_nc) as db:
        assert db.get_value(GeoPoint(42.0, 10.0)) == 500.0
        assert db.get_value(GeoPoint(41.2, 9.1)) == 100.0
        assert db.get_value(GeoPoint(42.0, 11.0)) == math.inf
        assert db.get_value(GeoPoint()) == math.inf


def test_gebco_land_approximation(gebco_grid_nc):
    with GebcoBathymetryDb(gebco_grid_nc, approx_land_to_sea_surface=True) as db:
        assert db.get_value(GeoPoint(42.0, 11.0)) == pytest.approx(1e-9)


def test_gebco_flat_vector_on_axes(tmp_path):
    lat = np.array([0.0, 1.0])
    lon = np.array([0.0, 1.0, 2.0])
    z = np.array([-10.0, -11.0, -12.0, -20.0, -21.0, -22.0])
    path = tmp_path / 'axes.nc'
    xr.Dataset({'z': (('xy',), z), 'lat': (('y',), lat), 'lon': (('x',), lon)}).to_netcdf(path)
    with GebcoBathymetryDb(path) as db:
        assert db.get_value(GeoPoint(0.9, 2.2)) == 22.0
        assert db.get_value(GeoPoint(0.1, 0.8)) == 11.0


def test_gebco_scattered_samples(tmp_path):
    lat = np.array([10.0, 10.0, 11.0])
    lon = np.array([179.9, -179.0, 170.0])
    z = np.array([-1000.0, -2000.0, -3000.0])
    path = tmp_path / 'scattered.nc'
    xr.Dataset({'z': (('n',), z), 'lat': (('n',), lat), 'lon': (('n',), lon)}).to_netcdf(path)
    with GebcoBathymetryDb(path) as db:
        # nearest across the antimeridian
        assert db.get_value(GeoPoint(10.0, -179.95)) == 1000.0
        assert db.get_value(GeoPoint(11.0, 170.1)) == 3000.0


def test_gebco_missing_file_or_variables(tmp_path):
    with pytest.raises(DbConnectionError):
        GebcoBathymetryDb(tmp_path / 'nope.nc').open_connection()
    path = tmp_path / 'empty.nc'
    xr.Dataset({'depth': (('n',), np.zeros(2))}).to_netcdf(path)
    db = GebcoBathymetryDb(path)
    with pytest.raises(DbConnectionError):
        db.open_connection()
    assert not db.is_open
    assert db.ds is None


# ── WOA NetCDF ───────────────────────────────────────────────────────────────
def test_woa_monthly_profile(woa_nc):
    with WoaSspDb(woa_nc) as db:
        july = db.get_value(GeoPoint(44.0, 14.0), datetime(2020, 7, 15))
        assert list(july.depths()) == pytest.approx([0.0, 50.0, 100.0])
        assert july.speed_at(0.0) == pytest.approx(1506.0)


def test_woa_masked_levels_are_dropped(woa_nc):
    with WoaSspDb(woa_nc) as db:
        january = db.get_value(GeoPoint(40.0, 5.0), datetime(2020, 1, 10))
        assert len(january) == 2
        assert db.get_value(GeoPoint(40.0, 5.0), ALL_TIMES) == january


def test_woa_invalid_point_gives_empty_profile(woa_nc):
    with WoaSspDb(woa_nc) as db:
        assert not db.get_value(GeoPoint(), datetime(2020, 3, 1)).is_valid()


def test_woa_standard_depths_when_axis_missing(tmp_path):
    path = tmp_path / 'woa_plain.nc'
    ssp = np.full((1, 1, 4), 1500.0)
    xr.Dataset({'ssp': (('lat', 'lon', 'level'), ssp)},
               coords={'lat': [0.0], 'lon': [0.0]}).to_netcdf(path)
    with WoaSspDb(path) as db:
        assert list(db.get_value(GeoPoint(0.0, 0.0), ALL_TIMES).depths()) == pytest.approx([0.0, 10.0, 20.0, 30.0])


def test_db_without_open_connection_raises(woa_nc):
    with pytest.raises(DbConnectionError):
        WoaSspDb(woa_nc).get_value(GeoPoint(40.0, 5.0), ALL_TIMES)


# ── UTM CSV ──────────────────────────────────────────────────────────────────
def test_utm_epsg():
    assert utm_epsg(GeoPoint(42.0, 9.0)) == 32632
    assert utm_epsg(GeoPoint(-33.9, 18.4)) == 32734


@pytest.fixture
def utm_csv(tmp_path):
    easting, northing = Transformer.from_crs('EPSG:4326', 'EPSG:32632', always_xy=True).transform(9.0, 42.0)
    path = tmp_path / 'grid.csv'
    path.write_text('-10,-11,-12\n'
                    '-20,-21,5\n'
                    '-30,-31,-32\n')
    return path, (easting - 15.0, easting + 15.0), (northing - 15.0, northing + 15.0)


def test_utm_csv_cell_lookup(utm_csv):
    path, e_range, n_range = utm_csv
    with UtmCsvBathymetryDb(path, spacing=10.0, easting_range=e_range, northing_range=n_range) as db:
        assert db.grid.shape == (3, 3)
        assert db.cell_index(GeoPoint(42.0, 9.0)) == (1, 1)
        assert db.get_value(GeoPoint(42.0, 9.0)) == 21.0
        assert db.get_value(GeoPoint(43.0, 9.0)) == math.inf


def test_utm_csv_land_cell(utm_csv):
    path, e_range, n_range = utm_csv
    lon, lat = Transformer.from_crs('EPSG:32632', 'EPSG:4326', always_xy=True).transform(e_range[0] + 25.0,
                                                                                     n_range[0] + 15.0)
    with UtmCsvBathymetryDb(path, spacing=10.0, easting_range=e_range, northing_range=n_range) as db:
        assert db.get_value(GeoPoint(lat, lon)) == math.inf
    with UtmCsvBathymetryDb(path, spacing=10.0, easting_range=e_range, northing_range=n_range,
                            approx_land_to_sea_surface=True) as db:
        assert db.get_value(GeoPoint(lat, lon)) == pytest.approx(1e-9)


def test_utm_csv_bad_configuration(tmp_path):
    path = tmp_path / 'grid.csv'
    path.write_text('1,2\n')
    with pytest.raises(DbConnectionError):
        UtmCsvBathymetryDb(path, spacing=0.0).open_connection()
    with pytest.raises(DbConnectionError):
        UtmCsvBathymetryDb(tmp_path / 'missing.csv').open_connection()
