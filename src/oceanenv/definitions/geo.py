"""Geographic points and spherical-earth geometry.

A ``GeoPoint`` is latitude/longitude in decimal degrees plus a depth in metres
(positive downward). Points are immutable, hashable and ordered
lexicographically on (latitude, longitude, depth) so they can be used directly
as dictionary keys and sorted.

Bearings are radians clockwise from north in [0, 2*pi); distances are metres
along the great circle of a sphere of radius ``GEO['earth_radius'] - depth``.
"""
from dataclasses import dataclass
from functools import lru_cache
import math

import numpy as np
from pyproj import Transformer

from oceanenv.config import GEO
from oceanenv.definitions.angle_utils import wrap_2pi, wrap_lon_deg

EARTH_RADIUS = GEO['earth_radius']
COORD_NOT_SET = GEO['not_set']


@lru_cache(maxsize=4)
def _ecef_transformer(spheroid: str) -> Transformer:
    try:
        crs = GEO['spheroids'][spheroid]
    except KeyError:
        raise KeyError(f"Unknown spheroid '{spheroid}'; expected one of {sorted(GEO['spheroids'])} or 'sphere'")
    if crs.startswith('+proj'):
        target = crs.replace('+proj=longlat', '+proj=geocent')
    else:
        target = 'EPSG:4978'
    return Transformer.from_crs(crs, target, always_xy=True)


@dataclass(frozen=True, order=True)
class GeoPoint:
    latitude: float = COORD_NOT_SET
    longitude: float = COORD_NOT_SET
    depth: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'latitude', float(self.latitude))
        object.__setattr__(self, 'longitude', float(self.longitude))
        object.__setattr__(self, 'depth', float(self.depth))

    def __str__(self):
        return f"({self.latitude:.6f}, {self.longitude:.6f}, {self.depth:g} m)"

    def is_valid(self) -> bool:
        lat_lo, lat_hi = GEO['lat_bounds']
        lon_lo, lon_hi = GEO['lon_bounds']
        return lat_lo <= self.latitude <= lat_hi and lon_lo <= self.longitude <= lon_hi

    def surface(self) -> 'GeoPoint':
        """Same latitude/longitude at zero depth."""
        if self.depth == 0.0:
            return self
        return GeoPoint(self.latitude, self.longitude)

    def with_depth(self, depth: float) -> 'GeoPoint':
        return GeoPoint(self.latitude, self.longitude, depth)

    # ── great-circle geometry ────────────────────────────────────────────────
    def initial_bearing(self, destination: 'GeoPoint') -> float:
        """Initial bearing (rad, [0, 2*pi)) of the great circle to ``destination``."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(destination.latitude)
        d_lon = math.radians(destination.longitude - self.longitude)
        y = math.sin(d_lon) * math.cos(lat2)
        x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)
        return float(wrap_2pi(math.atan2(y, x)))

    def final_bearing(self, destination: 'GeoPoint') -> float:
        return float(np.mod(destination.initial_bearing(self) + math.pi, 2.0 * math.pi))

    def great_circle_distance(self, destination: 'GeoPoint', depth: float = 0.0) -> float:
        """Haversine distance (m) to ``destination`` on a sphere of radius R - depth."""
        lat1 = math.radians(self.latitude)
        lat2 = math.radians(destination.latitude)
        d_lat = lat2 - lat1
        d_lon = math.radians(destination.longitude - self.longitude)
        a = math.sin(d_lat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2.0) ** 2
        a = min(max(a, 0.0), 1.0)
        c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
        return (EARTH_RADIUS - depth) * c

    def destination(self, bearing: float, distance: float, depth: float = 0.0) -> 'GeoPoint':
        """Point reached travelling ``distance`` metres along ``bearing`` (rad).

        The returned point has zero depth; longitude is wrapped to [-180, 180).
        """
        lat1 = math.radians(self.latitude)
        lon1 = math.radians(self.longitude)
        delta = distance / (EARTH_RADIUS - depth)
        lat2 = math.asin(math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(bearing))
        lon2 = lon1 + math.atan2(math.sin(bearing) * math.sin(delta) * math.cos(lat1),
                                 math.cos(delta) - math.sin(lat1) * math.sin(lat2))
        lat_deg = math.degrees(lat2)
        if lat_deg > 90.0:
            lat_deg -= 180.0
        return GeoPoint(lat_deg, float(wrap_lon_deg(math.degrees(lon2))))

    def along_great_circle(self, end: 'GeoPoint', distance: float) -> 'GeoPoint':
        """Point ``distance`` metres from here on the way to ``end``.

        Depth changes linearly with the travelled fraction. When both points
        share latitude/longitude the path is vertical.
        """
        total = self.great_circle_distance(end, self.depth)
        if total == 0.0:
            return GeoPoint(self.latitude, self.longitude, self.depth + math.copysign(distance, end.depth - self.depth))
        surf = self.destination(self.initial_bearing(end), distance, self.depth)
        return surf.with_depth(self.depth + distance / total * (end.depth - self.depth))

    # ── DECK41 marsden indices ──────────────────────────────────────────────
    def marsden_one_degree(self) -> int:
        """Index (0-99) of the 1°x1° sub-square inside the marsden square."""
        if not self.is_valid():
            return int(COORD_NOT_SET)
        lat = abs(self.latitude)
        lon = abs(self.longitude)
        return int((math.floor(lat) - math.floor(lat / 10.0) * 10.0) * 10.0
                   + (math.floor(lon) - math.floor(lon / 10.0) * 10.0))

    def marsden_square(self) -> int:
        """WMO 10°x10° marsden square number."""
        if not self.is_valid():
            return int(COORD_NOT_SET)
        lat = self.latitude
        lon = self.longitude
        if lon > 0.0:
            lon -= 360.0
        lon = abs(lon)
        if 0.0 <= lat < 80.0:
            quoz_long = int(math.ceil(lon / 10.0))
            # longitude band is (N, N+10]
            if math.fmod(lon, 10.0) == 0:
                quoz_long += 1
            return int(math.floor(lat / 10.0)) * 36 + quoz_long
        if lat >= 80.0:
            quoz_long = int(math.ceil(lon / 10.0))
            if math.fmod(lon, 10.0) == 0:
                quoz_long += 1
            return 900 + quoz_long
        lat = abs(lat)
        quoz_lat = int(math.floor(lat / 10.0))
        # southern latitude band is (N, N+10]
        if math.fmod(lat, 10.0) == 0:
            quoz_lat -= 1
        return 300 + quoz_lat * 36 + int(math.floor(lon / 10.0))

    def marsden_coord(self):
        return (self.marsden_square(), self.marsden_one_degree())

    # ── cartesian helpers ───────────────────────────────────────────────────
    def to_ecef(self, spheroid: str = 'wgs84'):
        """Earth-centred cartesian coordinates (m) as a numpy array (x, y, z)."""
        altitude = -self.depth
        if spheroid == 'sphere':
            lat = math.radians(self.latitude)
            lon = math.radians(self.longitude)
            r = EARTH_RADIUS + altitude
            return np.array([r * math.cos(lat) * math.cos(lon),
                             r * math.cos(lat) * math.sin(lon),
                             r * math.sin(lat)])
        x, y, z = _ecef_transformer(spheroid).transform(self.longitude, self.latitude, altitude)
        return np.array([x, y, z], dtype=float)

    def cartesian_distance(self, other: 'GeoPoint', spheroid: str = 'wgs84') -> float:
        return float(np.linalg.norm(self.to_ecef(spheroid) - other.to_ecef(spheroid)))


def points_depths(points) -> np.ndarray:
    """Depths of a sequence of GeoPoints as a float array."""
    return np.asarray([p.depth for p in points], dtype=float)
