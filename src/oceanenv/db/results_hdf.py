"""Binary result caches in HDF5.

Same records as the textual caches, stored column-wise:

    keys      float64 (N, 8)   tx lat/lon/depth, rx lat/lon/depth, frequency, epoch s
    pressure  float64 (N, 2)   real, imag                       (pressure cache)
    offsets   int64   (N + 1)  tap slice of record i is taps[offsets[i]:offsets[i+1]]
    taps      float64 (M, 3)   delay, real, imag                (time-arrival cache)
"""
import logging
import os

import h5py
import numpy as np

from oceanenv.db.base import PressureResultDb, TextualDb, TimeArrResultDb
from oceanenv.db.results_txt import ResultRecords
from oceanenv.definitions.pressure import Pressure
from oceanenv.definitions.time_arrival import TimeArr
from oceanenv.errors import DbConnectionError

logger = logging.getLogger(__name__)


class _HdfResultDb(ResultRecords, TextualDb):
    def __init__(self, name, path):
        super().__init__(name, path)
        self._init_records()

    def open(self) -> None:
        if os.path.exists(self.path) and not h5py.is_hdf5(self.path):
            raise DbConnectionError(self.name, f"not an HDF5 file: {self.path}")

    def finalize(self) -> None:
        self.records.clear()
        self.modified = False
        if not os.path.isfile(self.path):
            return
        with h5py.File(self.path, 'r') as hdf:
            if 'keys' not in hdf:
                raise DbConnectionError(self.name, f"no 'keys' dataset in {self.path}")
            keys = hdf['keys'][:]
            self._read_payloads(hdf, keys)
        logger.info('%s: %d records loaded from %s', self.name, len(self.records), self.path)

    def write(self) -> None:
        ordered = sorted(self.records)
        keys = np.asarray([self.key_fields(k) for k in ordered], dtype=float).reshape(-1, 8)
        with h5py.File(self.path, 'w') as hdf:
            hdf.create_dataset('keys', data=keys)
            self._write_payloads(hdf, [self.records[k] for k in ordered])
        self.modified = False

    def _release(self) -> None:
        if self.modified:
            self.write()
            logger.info('%s: %d records written to %s', self.name, len(self.records), self.path)


class PressureHdfDb(_HdfResultDb, PressureResultDb):
    def __init__(self, path, name: str = 'pressure_hdf'):
        super().__init__(name, path)

    def _read_payloads(self, hdf, keys):
        values = hdf['pressure'][:]
        if len(values) != len(keys):
            raise DbConnectionError(self.name, f"{len(keys)} keys but {len(values)} pressure values")
        for fields, (re, im) in zip(keys, values):
            self.records[self.key_from_fields(fields)] = complex(re, im)

    def _write_payloads(self, hdf, values):
        data = np.asarray([[v.real, v.imag] for v in values], dtype=float).reshape(-1, 2)
        hdf.create_dataset('pressure', data=data)

    def get_value(self, tx, rx, frequency, time) -> Pressure:
        value = self._lookup(tx, rx, frequency, time)
        return self.not_found() if value is None else Pressure(value)

    def insert_value(self, tx, rx, frequency, time, value) -> bool:
        return self._store(tx, rx, frequency, time, complex(Pressure(value)))


class TimeArrHdfDb(_HdfResultDb, TimeArrResultDb):
    def __init__(self, path, name: str = 'time_arr_hdf'):
        super().__init__(name, path)

    def _read_payloads(self, hdf, keys):
        offsets = hdf['offsets'][:]
        taps = hdf['taps'][:]
        if len(offsets) != len(keys) + 1:
            raise DbConnectionError(self.name, f"{len(keys)} keys but {len(offsets)} offsets")
        for i, fields in enumerate(keys):
            arr = TimeArr()
            for delay, re, im in taps[offsets[i]:offsets[i + 1]]:
                arr.insert_value(delay, complex(re, im))
            self.records[self.key_from_fields(fields)] = arr

    def _write_payloads(self, hdf, values):
        offsets = np.zeros(len(values) + 1, dtype=np.int64)
        rows = []
        for i, arr in enumerate(values):
            rows.extend([d, g.real, g.imag] for d, g in arr)
            offsets[i + 1] = len(rows)
        hdf.create_dataset('offsets', data=offsets)
        hdf.create_dataset('taps', data=np.asarray(rows, dtype=float).reshape(-1, 3))

    def get_value(self, tx, rx, frequency, time) -> TimeArr:
        value = self._lookup(tx, rx, frequency, time)
        return self.not_found() if value is None else value.copy()

    def insert_value(self, tx, rx, frequency, time, value) -> bool:
        return self._store(tx, rx, frequency, time, value.copy())
