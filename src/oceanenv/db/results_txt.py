"""Whitespace separated caches of computed channel results.

One record per line, keyed by transmitter, receiver, frequency and time:

    tx_lat tx_lon tx_depth rx_lat rx_lon rx_depth frequency epoch_s <payload>

where ``<payload>`` is ``real imag`` for a pressure cache and
``n_taps (delay real imag) * n_taps`` for a time-arrival cache. Depths are
stored as absolute values, frequencies are matched to 1e-5 Hz, times to the
second. The whole file is loaded when the connection is opened and written
back on close only when something was inserted.
"""
import logging
import os

from oceanenv.config import PRECISION
from oceanenv.db.base import PressureResultDb, TextualDb, TimeArrResultDb
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.pressure import Pressure
from oceanenv.definitions.time_arrival import TimeArr
from oceanenv.definitions.timeref import to_epoch_seconds
from oceanenv.errors import DbConnectionError
from oceanenv.utils import quantize

logger = logging.getLogger(__name__)

_KEY_FIELDS = 8


def _num(x) -> str:
    return f"{x:.{PRECISION['write_digits']}g}"


class ResultRecords:
    """In-memory record map shared by the textual and the HDF5 caches."""

    def _init_records(self):
        self.records = {}
        self.modified = False

    @staticmethod
    def record_key(tx: GeoPoint, rx: GeoPoint, frequency: float, time):
        return (GeoPoint(tx.latitude, tx.longitude, abs(tx.depth)),
                GeoPoint(rx.latitude, rx.longitude, abs(rx.depth)),
                quantize(frequency, PRECISION['result_frequency']),
                to_epoch_seconds(time))

    @classmethod
    def key_from_fields(cls, fields):
        tx = GeoPoint(fields[0], fields[1], fields[2])
        rx = GeoPoint(fields[3], fields[4], fields[5])
        return cls.record_key(tx, rx, float(fields[6]), int(round(float(fields[7]))))

    @staticmethod
    def key_fields(key):
        tx, rx, frequency, epoch = key
        return [tx.latitude, tx.longitude, tx.depth, rx.latitude, rx.longitude, rx.depth, frequency, epoch]

    def __len__(self):
        return len(self.records)

    def _lookup(self, tx, rx, frequency, time):
        key = self.record_key(tx, rx, frequency, time)
        value = self.records.get(key)
        if self.debug:
            logger.debug('%s: lookup %s -> %s', self.name, key, 'hit' if value is not None else 'miss')
        return value

    def _store(self, tx, rx, frequency, time, value) -> bool:
        self.records[self.record_key(tx, rx, frequency, time)] = value
        self.modified = True
        return True


class _TxtResultDb(ResultRecords, TextualDb):
    def __init__(self, name, path):
        super().__init__(name, path)
        self._init_records()

    def open(self) -> None:
        # a missing cache file is created on the first write
        if os.path.exists(self.path) and not os.path.isfile(self.path):
            raise DbConnectionError(self.name, f"not a file: {self.path}")

    def finalize(self) -> None:
        self.records.clear()
        self.modified = False
        if not os.path.isfile(self.path):
            return
        with open(self.path, 'r', encoding='utf-8') as fh:
            for lineno, line in enumerate(fh, start=1):
                tokens = line.split()
                if not tokens:
                    continue
                try:
                    key = self.key_from_fields([float(t) for t in tokens[:_KEY_FIELDS]])
                    self.records[key] = self._parse_payload(tokens[_KEY_FIELDS:])
                except (ValueError, IndexError) as e:
                    logger.warning('%s: skipping malformed record at line %d: %s', self.name, lineno, e)
        logger.info('%s: %d records loaded from %s', self.name, len(self.records), self.path)

    def _parse_payload(self, tokens):
        raise NotImplementedError

    def _format_payload(self, value):
        raise NotImplementedError

    def write(self) -> None:
        with open(self.path, 'w', encoding='utf-8') as fh:
            for key in sorted(self.records):
                fields = ' '.join(_num(x) for x in self.key_fields(key))
                fh.write(f"{fields} {self._format_payload(self.records[key])}\n")
        self.modified = False

    def _release(self) -> None:
        if self.modified:
            self.write()
            logger.info('%s: %d records written to %s', self.name, len(self.records), self.path)


class PressureTxtDb(_TxtResultDb, PressureResultDb):
    def __init__(self, path, name: str = 'pressure_txt'):
        super().__init__(name, path)

    def _parse_payload(self, tokens):
        if len(tokens) != 2:
            raise ValueError(f"expected real and imaginary parts, got {len(tokens)} values")
        return complex(float(tokens[0]), float(tokens[1]))

    def _format_payload(self, value):
        return f"{_num(value.real)} {_num(value.imag)}"

    def get_value(self, tx, rx, frequency, time) -> Pressure:
        value = self._lookup(tx, rx, frequency, time)
        return self.not_found() if value is None else Pressure(value)

    def insert_value(self, tx, rx, frequency, time, value) -> bool:
        return self._store(tx, rx, frequency, time, complex(Pressure(value)))


class TimeArrTxtDb(_TxtResultDb, TimeArrResultDb):
    def __init__(self, path, name: str = 'time_arr_txt'):
        super().__init__(name, path)

    def _parse_payload(self, tokens):
        n_taps = int(tokens[0])
        if n_taps < 0 or len(tokens) != 1 + 3 * n_taps:
            raise ValueError(f"expected {n_taps} taps, got {(len(tokens) - 1) / 3:g}")
        arr = TimeArr()
        for i in range(n_taps):
            delay, re, im = (float(t) for t in tokens[1 + 3 * i:4 + 3 * i])
            arr.insert_value(delay, complex(re, im))
        return arr

    def _format_payload(self, value):
        taps = ' '.join(f"{_num(d)} {_num(g.real)} {_num(g.imag)}" for d, g in value)
        return f"{len(value)} {taps}".rstrip()

    def get_value(self, tx, rx, frequency, time) -> TimeArr:
        value = self._lookup(tx, rx, frequency, time)
        return self.not_found() if value is None else value.copy()

    def insert_value(self, tx, rx, frequency, time, value) -> bool:
        return self._store(tx, rx, frequency, time, value.copy())
