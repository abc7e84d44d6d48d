"""
Backing database interfaces.

Every backing store follows the same explicit lifecycle:

    db = SomeDb(...)
    db.open_connection()      # open() then finalize(), DbConnectionError on failure
    db.get_value(...)
    db.close()

``open`` locates the underlying resource (file, dataset), ``finalize``
checks that everything the queries need is present (variables, columns) and
builds whatever index the queries use. There is no retry: a store that failed
to open stays unusable.

The abstract classes below only fix the call contract consumed by
``EnvironmentQueryManager``; the concrete stores live in their own modules.
"""
from abc import ABC, abstractmethod
import logging
import math
import os
from typing import Optional, Sequence

import xarray as xr

from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.pressure import Pressure
from oceanenv.definitions.sediment import Sediment
from oceanenv.definitions.ssp import SSP
from oceanenv.definitions.time_arrival import TimeArr
from oceanenv.config import PRECISION
from oceanenv.errors import DbConnectionError

logger = logging.getLogger(__name__)


class BackingDb(ABC):
    """Connection lifecycle shared by every backing store."""

    def __init__(self, name: str):
        self.name = str(name)
        self._open = False
        self.debug = False

    @abstractmethod
    def open(self) -> None:
        """Locate the resource; raise DbConnectionError when it is missing."""

    def finalize(self) -> None:
        """Check the opened resource; default does nothing."""

    def open_connection(self) -> 'BackingDb':
        try:
            self.open()
            self.finalize()
        except DbConnectionError:
            self._release()
            raise
        except (OSError, KeyError, ValueError) as e:
            self._release()
            raise DbConnectionError(self.name, e) from e
        self._open = True
        logger.info('%s: connection open', self.name)
        return self

    def _release(self) -> None:
        """Free whatever ``open`` acquired."""

    def close(self) -> None:
        if not self._open:
            return
        self._release()
        self._open = False
        logger.info('%s: connection closed', self.name)

    @property
    def is_open(self) -> bool:
        return self._open

    def __enter__(self):
        if not self._open:
            self.open_connection()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self):
        state = 'open' if self._open else 'closed'
        return f"{type(self).__name__}({self.name!r}, {state})"


class TextualDb(BackingDb):
    """Store backed by a plain file on disk."""

    def __init__(self, name: str, path):
        super().__init__(name)
        self.path = os.fspath(path)

    def _require_file(self) -> None:
        if not os.path.isfile(self.path):
            raise DbConnectionError(self.name, f"file not found: {self.path}")


class NetcdfDb(BackingDb):
    """Store backed by an xarray Dataset opened from a NetCDF file.

    Subclasses list the variables their queries read in ``required_vars``;
    ``finalize`` checks they are present.
    """

    required_vars: Sequence[str] = ()

    def __init__(self, name: str, path, engine: Optional[str] = None):
        super().__init__(name)
        self.path = os.fspath(path)
        self.engine = engine
        self.ds: Optional[xr.Dataset] = None

    def open(self) -> None:
        if not os.path.isfile(self.path):
            raise DbConnectionError(self.name, f"file not found: {self.path}")
        kwargs = {'engine': self.engine} if self.engine else {}
        self.ds = xr.open_dataset(self.path, **kwargs)

    def finalize(self) -> None:
        missing = [v for v in self.required_vars if v not in self.ds.variables]
        if missing:
            raise DbConnectionError(self.name, f"missing variables {missing} in {self.path}")

    def _release(self) -> None:
        if self.ds is not None:
            self.ds.close()
            self.ds = None

    def _require_open(self) -> xr.Dataset:
        if self.ds is None:
            raise DbConnectionError(self.name, 'connection is not open')
        return self.ds


# ── kind-specific contracts ───────────────────────────────────────────────────
class BathymetryDb(BackingDb):
    @abstractmethod
    def get_value(self, point: GeoPoint) -> float:
        """Depth (m, positive down) at ``point``; ``math.inf`` when unknown."""

    def get_values(self, points: Sequence[GeoPoint]):
        return [self.get_value(p) for p in points]


class SedimentDb(BackingDb):
    @abstractmethod
    def get_value(self, point: GeoPoint) -> Sediment:
        """Sediment at ``point``; a not-valid Sediment when unknown."""

    def get_value_many(self, points: Sequence[GeoPoint]) -> Sediment:
        """Sediment representative of all ``points``; first point by default."""
        if not points:
            return Sediment()
        return self.get_value(points[0])


class SspDb(BackingDb):
    @abstractmethod
    def get_value(self, point: GeoPoint, time, depth_precision: float = PRECISION['ssp_depth']) -> SSP:
        """Sound speed profile at ``point`` and ``time``; empty SSP when unknown."""


class _ResultDb(BackingDb):
    """Cache of computed channel results keyed by (tx, rx, frequency, time)."""

    @abstractmethod
    def get_value(self, tx: GeoPoint, rx: GeoPoint, frequency: float, time):
        ...

    @abstractmethod
    def insert_value(self, tx: GeoPoint, rx: GeoPoint, frequency: float, time, value) -> bool:
        ...


class PressureResultDb(_ResultDb):
    not_found = staticmethod(Pressure.not_valid)


class TimeArrResultDb(_ResultDb):
    not_found = staticmethod(TimeArr)


NOT_FOUND_DEPTH = math.inf
