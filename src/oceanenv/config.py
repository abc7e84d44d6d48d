# -*- coding: utf-8 -*-

"""
oceanenv/config.py

This module centralizes the constants used by the environmental lookup layer.
Keeping geodesy values, store sentinels, numeric precisions and sediment presets
in one place keeps the override stores, the backing databases and the tests
consistent with one another.

Contents:
---------
1. GEO:
   - Spherical earth radius used by bearing / great-circle computations.
   - Sentinel for a coordinate that has not been set, and the valid bounds.

2. STORE_WILDCARDS:
   - Reserved keys meaning "valid for every query" at the bearing, range and
     time levels of a SpatialStore.  The anchor wildcard is a not-set point.

3. PRECISION:
   - Rounding applied to float keys (SSP depths, arrival delays, result-cache
     frequencies) so that keys computed in different ways still collide.

4. SEDIMENT_PRESETS:
   - Geoacoustic parameters of the DECK41 seafloor classes.
   - Presets flagged with `depth_scaled_shear` have a shear speed that grows
     with `depth ** 0.3`.

5. DECK41:
   - Numeric type ids used by the DECK41 NetCDF products, blend weights of the
     weighted-average conditions and the variable names read from disk.

6. BATHYMETRY / SSP_DB:
   - Variable names and defaults of the NetCDF / CSV backing stores.

Usage:
------
    from oceanenv.config import GEO, STORE_WILDCARDS

If these values ever need to come from a file, this module is the only place
that has to change.
"""
from datetime import datetime

# ───────────────────────────────────────────────────────────────────────────────
# 1) GEODESY
# ───────────────────────────────────────────────────────────────────────────────
GEO = {
    'earth_radius': 6371000.0,        # mean spherical radius (m)
    'not_set': -2000.0,               # latitude/longitude of an unset point
    'lat_bounds': (-90.0, 90.0),
    'lon_bounds': (-180.0, 180.0),
    # used by GeoPoint.to_ecef for non-spherical models
    'spheroids': {
        'wgs84': 'EPSG:4979',
        'grs80': '+proj=longlat +ellps=GRS80 +no_defs',
    },
}

# ───────────────────────────────────────────────────────────────────────────────
# 2) OVERRIDE STORE SENTINELS
# ───────────────────────────────────────────────────────────────────────────────
STORE_WILDCARDS = {
    'bearing': -190.0,                # sorts before every valid bearing (rad)
    'range': -10.0,                   # sorts before every valid range (m)
    'time': datetime(1901, 1, 1, 0, 0, 0),
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) KEY PRECISIONS
# ───────────────────────────────────────────────────────────────────────────────
PRECISION = {
    'ssp_depth': 1.0e-6,              # m
    'arrival_delay': 1.0e-9,          # s
    'result_frequency': 1.0e-5,       # Hz
    'write_digits': 17,               # significant digits in textual caches
}

# ───────────────────────────────────────────────────────────────────────────────
# 4) SEDIMENT PRESETS (velc m/s, vels m/s, density g/cm³, attc dB/λ, atts dB/λ)
# ───────────────────────────────────────────────────────────────────────────────
SEDIMENT_NOT_SET = -10000.0

SEDIMENT_PRESETS = {
    'GRAVEL':     {'name': 'GRAVEL',    'velc': 1800.0, 'vels': 180.0,  'density': 2.0,  'attc': 0.6,  'atts': 1.5, 'depth_scaled_shear': True},
    'SAND':       {'name': 'SAND',      'velc': 1650.0, 'vels': 110.0,  'density': 1.9,  'attc': 0.8,  'atts': 2.5, 'depth_scaled_shear': False},
    'SILT':       {'name': 'SILT',      'velc': 1575.0, 'vels': 80.0,   'density': 1.7,  'attc': 1.0,  'atts': 1.5, 'depth_scaled_shear': True},
    'CLAY':       {'name': 'CLAY',      'velc': 1510.0, 'vels': 95.0,   'density': 1.51, 'attc': 0.17, 'atts': 1.0, 'depth_scaled_shear': False},
    'OOZE':       {'name': 'OOZE',      'velc': 1560.0, 'vels': 95.0,   'density': 1.6,  'attc': 0.2,  'atts': 0.0, 'depth_scaled_shear': False},
    'MUD':        {'name': 'MUD',       'velc': 1540.0, 'vels': 70.0,   'density': 1.6,  'attc': 0.8,  'atts': 1.3, 'depth_scaled_shear': True},
    # DECK41 "rocks" are modelled as chalk
    'ROCKS':      {'name': 'CHALK',     'velc': 2400.0, 'vels': 1000.0, 'density': 2.2,  'attc': 0.1,  'atts': 0.2, 'depth_scaled_shear': False},
    'ORGANIC':    {'name': 'ORGANIC',   'velc': 0.0,    'vels': 0.0,    'density': 0.0,  'attc': 0.0,  'atts': 0.0, 'depth_scaled_shear': False},
    # manganese nodules are modelled as limestone
    'NODULES':    {'name': 'LIMESTONE', 'velc': 3000.0, 'vels': 1500.0, 'density': 2.4,  'attc': 0.1,  'atts': 0.2, 'depth_scaled_shear': False},
    'HARDBOTTOM': {'name': 'CLAY',      'velc': 5250.0, 'vels': 2500.0, 'density': 3.5,  'attc': 0.1,  'atts': 0.2, 'depth_scaled_shear': False},
}

# ───────────────────────────────────────────────────────────────────────────────
# 5) DECK41 SEDIMENT CLASSIFICATION
# ───────────────────────────────────────────────────────────────────────────────
DECK41 = {
    'type_ids': {
        'GRAVEL': 0, 'SAND': 1, 'SILT': 2, 'CLAY': 3, 'OOZE': 4, 'MUD': 5,
        'ROCKS': 6, 'ORGANIC': 7, 'NODULES': 8, 'HARDBOTTOM': 9, 'NODATA': 11,
    },
    # (main weight, secondary weight)
    'blend_weights': {
        'E': (0.65, 0.35),
        'F': (0.4, 0.6),
    },
    'main_var': 'seafloor_main_type',
    'secondary_var': 'seafloor_secondary_type',
    'lat_var': 'lat',
    'lon_var': 'lon',
}

# ───────────────────────────────────────────────────────────────────────────────
# 6) BATHYMETRY AND SOUND SPEED BACKING STORES
# ───────────────────────────────────────────────────────────────────────────────
BATHYMETRY = {
    'grid_var': 'elevation',          # 2-D lat/lon grid
    'flat_var': 'z',                  # flat vector paired with lat/lon vectors
    'lat_var': 'lat',
    'lon_var': 'lon',
    'land_approximation_depth': 1.0e-9,
    'csv_separator': ',',
}

SSP_DB = {
    'ssp_var': 'ssp',
    'lat_var': 'lat',
    'lon_var': 'lon',
    'depth_var': 'depth',
    'time_dim': 'time',
    # World Ocean Atlas standard depth levels (m)
    'standard_depths': (
        0.0, 10.0, 20.0, 30.0, 50.0, 75.0, 100.0, 125.0, 150.0, 200.0, 250.0,
        300.0, 400.0, 500.0, 600.0, 700.0, 800.0, 900.0, 1000.0, 1100.0,
        1200.0, 1300.0, 1400.0, 1500.0, 1750.0, 2000.0, 2500.0, 3000.0,
        3500.0, 4000.0, 4500.0, 5000.0, 5500.0,
    ),
}

AVERAGE_SSP = {
    'samples': 1,
}
