"""
EnvironmentQueryManager: the single entry point a propagation model queries.

For every data kind the manager keeps an override store of user supplied
values and, optionally, a backing database. A query

1. asks the override store (nearest-neighbour around the receiver) and
   returns a hit immediately;
2. otherwise, without a backing database, logs a warning and returns the
   not-found value of the kind (``math.inf`` depth, not-valid Sediment,
   empty SSP, not-valid Pressure, empty TimeArr, empty Altimetry);
3. otherwise delegates to the backing database.

The manager owns its backing databases: replacing one closes the previous,
``close()`` closes all of them, and the manager can be moved with ``take()``
but never copied.
"""
import copy
import logging
from typing import Sequence

from oceanenv.config import AVERAGE_SSP, PRECISION
from oceanenv.db import importers
from oceanenv.db.base import NOT_FOUND_DEPTH, PressureResultDb, TimeArrResultDb
from oceanenv.db.store import (ALL_ANCHORS, ALL_BEARINGS, ALL_RANGES, ALL_TIMES, OwnedPolicy,
                               SpatialStore, SpatialTimeStore, VALUE)
from oceanenv.definitions.altimetry import Altimetry
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.pressure import Pressure
from oceanenv.definitions.sediment import Sediment
from oceanenv.definitions.ssp import SSP
from oceanenv.definitions.time_arrival import TimeArr
from oceanenv.definitions.timeref import add_seconds, seconds_between
from oceanenv.errors import ImportFormatError, InvariantViolation
from oceanenv.utils import safe_log_exception

logger = logging.getLogger(__name__)

DB_KINDS = ('bathymetry', 'sediment', 'ssp', 'pressure', 'time_arr')


class EnvironmentQueryManager:
    def __init__(self, bathymetry_db=None, sediment_db=None, ssp_db=None, pressure_db=None, time_arr_db=None):
        self._dbs = dict.fromkeys(DB_KINDS)
        self._new_stores()
        for kind, db in zip(DB_KINDS, (bathymetry_db, sediment_db, ssp_db, pressure_db, time_arr_db)):
            if db is not None:
                self._set_db(kind, db)

    def _new_stores(self):
        self.bathymetry_overrides = SpatialStore(VALUE)
        self.sediment_overrides = SpatialStore(OwnedPolicy())
        self.altimetry_overrides = SpatialStore(OwnedPolicy())
        self.ssp_overrides = SpatialTimeStore(OwnedPolicy())

    # ── ownership ───────────────────────────────────────────────────────────
    def __copy__(self):
        raise TypeError('EnvironmentQueryManager owns its databases and can not be copied; use take()')

    def __deepcopy__(self, memo):
        raise TypeError('EnvironmentQueryManager owns its databases and can not be copied; use take()')

    def take(self) -> 'EnvironmentQueryManager':
        """Move everything into a new manager and leave this one empty."""
        moved = type(self)()
        moved._dbs, self._dbs = self._dbs, dict.fromkeys(DB_KINDS)
        moved.bathymetry_overrides = self.bathymetry_overrides
        moved.sediment_overrides = self.sediment_overrides
        moved.altimetry_overrides = self.altimetry_overrides
        moved.ssp_overrides = self.ssp_overrides
        self._new_stores()
        return moved

    def close(self) -> None:
        """Close every backing database once and forget it."""
        closed = set()
        for kind in DB_KINDS:
            db = self._dbs[kind]
            self._dbs[kind] = None
            if db is None or id(db) in closed:
                continue
            closed.add(id(db))
            db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        dbs = ', '.join(f"{k}={type(v).__name__}" for k, v in self._dbs.items() if v is not None)
        return (f"EnvironmentQueryManager({dbs or 'no databases'}; overrides: "
                f"bathymetry={len(self.bathymetry_overrides)}, sediment={len(self.sediment_overrides)}, "
                f"ssp={len(self.ssp_overrides)}, altimetry={len(self.altimetry_overrides)})")

    # ── backing databases ───────────────────────────────────────────────────
    def _set_db(self, kind, db):
        previous = self._dbs[kind]
        if previous is not None and previous is not db:
            previous.close()
        self._dbs[kind] = db

    def set_bathymetry_db(self, db):
        self._set_db('bathymetry', db)

    def set_sediment_db(self, db):
        self._set_db('sediment', db)

    def set_ssp_db(self, db):
        self._set_db('ssp', db)

    def set_pressure_db(self, db):
        self._set_db('pressure', db)

    def set_time_arr_db(self, db):
        self._set_db('time_arr', db)

    @property
    def bathymetry_db(self):
        return self._dbs['bathymetry']

    @property
    def sediment_db(self):
        return self._dbs['sediment']

    @property
    def ssp_db(self):
        return self._dbs['ssp']

    @property
    def pressure_db(self):
        return self._dbs['pressure']

    @property
    def time_arr_db(self):
        return self._dbs['time_arr']

    # ── queries ─────────────────────────────────────────────────────────────
    @staticmethod
    def _override(store, tx, rx, *time):
        if store.is_empty():
            return None
        hit = store.nearest(tx, rx, *time)
        return hit.value if hit else None

    def get_bathymetry(self, tx: GeoPoint, rx: GeoPoint) -> float:
        depth = self._override(self.bathymetry_overrides, tx, rx)
        if depth is not None:
            return depth
        if self.bathymetry_db is None:
            logger.warning('no bathymetry database nor custom bathymetry found for tx = %s, rx = %s', tx, rx)
            return NOT_FOUND_DEPTH
        return self.bathymetry_db.get_value(rx)

    def fill_bathymetry(self, tx: GeoPoint, points: Sequence[GeoPoint]):
        """Copies of ``points`` with their depth set to the bathymetry there."""
        return [p.with_depth(self.get_bathymetry(tx, p)) for p in points]

    def get_sediment(self, tx: GeoPoint, rx: GeoPoint) -> Sediment:
        sediment = self._override(self.sediment_overrides, tx, rx)
        if sediment is not None:
            return sediment
        if self.sediment_db is None:
            logger.warning('no sediment database nor custom sediment found for tx = %s, rx = %s', tx, rx)
            return Sediment()
        return self.sediment_db.get_value(rx)

    def get_sediment_many(self, tx: GeoPoint, points: Sequence[GeoPoint]) -> Sediment:
        """Sediment representative of ``points``.

        With custom sediments, every point is resolved on its own and the
        most frequent type wins (the first type seen wins ties). Otherwise
        the backing database resolves the whole set at once.
        """
        points = list(points)
        if not self.sediment_overrides.is_empty():
            groups = {}
            for p in points:
                sediment = self.get_sediment(tx, p)
                if sediment.is_valid():
                    groups.setdefault(sediment.type, []).append(sediment)
            if groups:
                best = max(groups.values(), key=len)
                logger.debug('sediment vote over %d points: %s', len(points),
                             {k: len(v) for k, v in groups.items()})
                return best[0]
        if self.sediment_db is None:
            logger.warning('no sediment database nor custom sediment found for tx = %s, %d points', tx, len(points))
            return Sediment()
        return self.sediment_db.get_value_many(points)

    def get_ssp(self, tx: GeoPoint, rx: GeoPoint, time=ALL_TIMES,
                depth_precision: float = PRECISION['ssp_depth']) -> SSP:
        ssp = self._override(self.ssp_overrides, tx, rx, time)
        if ssp is not None:
            return ssp
        if self.ssp_db is None:
            logger.warning('no SSP database nor custom SSP found for tx = %s, rx = %s, time = %s', tx, rx, time)
            return SSP(depth_precision)
        return self.ssp_db.get_value(rx, time, depth_precision)

    def get_average_ssp(self, tx: GeoPoint, rx: GeoPoint, start, end, samples: int = AVERAGE_SSP['samples'],
                        depth_precision: float = PRECISION['ssp_depth']) -> SSP:
        """Mean of ``samples`` SSPs taken at ``start + i * (end - start) / samples``."""
        span = seconds_between(start, end)
        if span <= 0:
            raise InvariantViolation(f"average SSP needs end > start, got start = {start}, end = {end}")
        if samples <= 0:
            raise InvariantViolation(f"average SSP needs a positive number of samples, got {samples}")
        step = span / samples
        total = SSP(depth_precision)
        for i in range(samples):
            total += self.get_ssp(tx, rx, add_seconds(start, i * step), depth_precision)
        total /= samples
        return total

    def get_altimetry(self, tx: GeoPoint, rx: GeoPoint) -> Altimetry:
        altimetry = self._override(self.altimetry_overrides, tx, rx)
        if altimetry is not None:
            return altimetry
        logger.debug('no custom altimetry for tx = %s, rx = %s', tx, rx)
        return Altimetry()

    def get_time_arr(self, tx: GeoPoint, rx: GeoPoint, frequency: float, time) -> TimeArr:
        if self.time_arr_db is None:
            logger.warning('no time arrival results database for tx = %s, rx = %s', tx, rx)
            return TimeArrResultDb.not_found()
        return self.time_arr_db.get_value(tx, rx, frequency, time)

    def get_pressure(self, tx: GeoPoint, rx: GeoPoint, frequency: float, time) -> Pressure:
        if self.pressure_db is None:
            logger.warning('no pressure results database for tx = %s, rx = %s', tx, rx)
            return PressureResultDb.not_found()
        return self.pressure_db.get_value(tx, rx, frequency, time)

    def insert_time_arr(self, tx: GeoPoint, rx: GeoPoint, frequency: float, time, value: TimeArr) -> bool:
        if self.time_arr_db is None:
            return False
        return self.time_arr_db.insert_value(tx, rx, frequency, time, value)

    def insert_pressure(self, tx: GeoPoint, rx: GeoPoint, frequency: float, time, value) -> bool:
        if self.pressure_db is None:
            return False
        return self.pressure_db.insert_value(tx, rx, frequency, time, value)

    # ── custom overrides ────────────────────────────────────────────────────
    # set_custom_* keep an existing entry at the same key and return False;
    # replace_custom_* overwrite it.
    def set_custom_bathymetry(self, depth: float, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS,
                              range_m=ALL_RANGES) -> bool:
        return self.bathymetry_overrides.insert(float(depth), anchor, bearing, range_m)

    def replace_custom_bathymetry(self, depth: float, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES):
        self.bathymetry_overrides.replace(float(depth), anchor, bearing, range_m)

    def get_custom_bathymetry(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES):
        return self.bathymetry_overrides.get(anchor, bearing, range_m)

    def erase_custom_bathymetry(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES) -> bool:
        return self.bathymetry_overrides.erase(anchor, bearing, range_m)

    def set_custom_sediment(self, sediment: Sediment, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS,
                            range_m=ALL_RANGES) -> bool:
        return self.sediment_overrides.insert(copy.deepcopy(sediment), anchor, bearing, range_m)

    def replace_custom_sediment(self, sediment: Sediment, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS,
                                range_m=ALL_RANGES):
        self.sediment_overrides.replace(copy.deepcopy(sediment), anchor, bearing, range_m)

    def get_custom_sediment(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES):
        return self.sediment_overrides.get(anchor, bearing, range_m)

    def erase_custom_sediment(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES) -> bool:
        return self.sediment_overrides.erase(anchor, bearing, range_m)

    def set_custom_altimetry(self, altimetry: Altimetry, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS,
                             range_m=ALL_RANGES) -> bool:
        return self.altimetry_overrides.insert(altimetry.copy(), anchor, bearing, range_m)

    def replace_custom_altimetry(self, altimetry: Altimetry, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS,
                                 range_m=ALL_RANGES):
        self.altimetry_overrides.replace(altimetry.copy(), anchor, bearing, range_m)

    def get_custom_altimetry(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES):
        return self.altimetry_overrides.get(anchor, bearing, range_m)

    def erase_custom_altimetry(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES) -> bool:
        return self.altimetry_overrides.erase(anchor, bearing, range_m)

    def set_custom_ssp(self, ssp: SSP, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES,
                       time=ALL_TIMES) -> bool:
        return self.ssp_overrides.insert(ssp.copy(), anchor, bearing, range_m, time)

    def replace_custom_ssp(self, ssp: SSP, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES,
                           time=ALL_TIMES):
        self.ssp_overrides.replace(ssp.copy(), anchor, bearing, range_m, time)

    def get_custom_ssp(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, time=ALL_TIMES):
        return self.ssp_overrides.get(anchor, bearing, range_m, time)

    def erase_custom_ssp(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES,
                         time=ALL_TIMES) -> bool:
        return self.ssp_overrides.erase(anchor, bearing, range_m, time)

    # ── textual importers ───────────────────────────────────────────────────
    # Nothing is stored when the input is malformed or any of its keys is taken.
    @staticmethod
    def _insert_all(store, entries, what) -> bool:
        if not store.insert_many(entries):
            logger.warning('%s not imported: an override already exists at one of its keys', what)
            return False
        return True

    def import_custom_ssp(self, text: str, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES,
                          time=ALL_TIMES, depth_precision: float = PRECISION['ssp_depth']) -> bool:
        try:
            ssp = importers.parse_ssp_string(text, depth_precision)
        except ImportFormatError as e:
            logger.warning('custom SSP not imported: %s', e)
            return False
        return self._insert_all(self.ssp_overrides, [(ssp, anchor, bearing, range_m, time)], 'custom SSP')

    def import_custom_bathymetry(self, text: str, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS) -> bool:
        try:
            rows = importers.parse_bathymetry_string(text)
        except ImportFormatError as e:
            logger.warning('custom bathymetry not imported: %s', e)
            return False
        return self._insert_all(self.bathymetry_overrides,
                                [(depth, anchor, bearing, range_m) for range_m, depth in rows],
                                'custom bathymetry')

    def import_custom_sediment(self, text: str, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS,
                               range_m=ALL_RANGES) -> bool:
        try:
            sediment = importers.parse_sediment_string(text)
        except ImportFormatError as e:
            logger.warning('custom sediment not imported: %s', e)
            return False
        return self._insert_all(self.sediment_overrides, [(sediment, anchor, bearing, range_m)], 'custom sediment')

    def import_custom_ssp_file(self, path, time=ALL_TIMES, bearing=ALL_BEARINGS,
                               depth_precision: float = PRECISION['ssp_depth']) -> bool:
        try:
            anchor, profiles = importers.read_ssp_file(path, depth_precision)
        except ImportFormatError as e:
            logger.warning('custom SSP file %s not imported: %s', path, e)
            return False
        except OSError as e:
            safe_log_exception('custom SSP file not readable', e, path=path)
            return False
        entries = [(ssp, anchor, bearing, range_m, time) for range_m, ssp in profiles]
        if not self._insert_all(self.ssp_overrides, entries, f"custom SSP file {path}"):
            return False
        logger.info('%d custom SSPs imported from %s', len(profiles), path)
        return True

    def import_custom_bathymetry_file(self, path, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS) -> bool:
        try:
            rows = importers.read_bathymetry_file(path)
        except ImportFormatError as e:
            logger.warning('custom bathymetry file %s not imported: %s', path, e)
            return False
        except OSError as e:
            safe_log_exception('custom bathymetry file not readable', e, path=path)
            return False
        entries = [(depth, anchor, bearing, range_m) for range_m, depth in rows]
        if not self._insert_all(self.bathymetry_overrides, entries, f"custom bathymetry file {path}"):
            return False
        logger.info('%d custom depths imported from %s', len(rows), path)
        return True
