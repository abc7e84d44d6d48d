"""Override stores keyed by anchor point, bearing, range and optionally time.

A store holds user supplied environmental values (a depth, a Sediment, an SSP,
an Altimetry ...) that are valid around an *anchor* point, along a *bearing*
and at a *range* from it. Each level has a reserved wildcard key that means
"valid for every query at this level":

    ALL_ANCHORS   a not-set GeoPoint
    ALL_BEARINGS  -190.0
    ALL_RANGES    -10.0
    ALL_TIMES     1901-01-01 (time-aware store only)

Two lookups are offered:

``get(anchor, bearing, range[, time])``
    exact anchor, then ``lower_bound`` on bearing and on range, falling back
    to the last key when the bound runs past the end. An entry stored under
    every wildcard answers every query.

``nearest(tx, rx[, time])``
    for each anchor compute bearing and great-circle range to ``rx`` (using
    ``tx`` as origin for the wildcard anchor), decompose the range into an
    orthogonal offset from the nearest stored bearing and a projected range,
    pick the nearest stored range and keep the globally smallest distance.

Both return a ``LookupResult``; they never raise on a miss.

What happens to stored objects is decided by an ownership policy:
``ValuePolicy`` hands back the stored object itself (floats, immutable
values), ``OwnedPolicy`` hands back a deep copy and calls a release hook for
every value the store discards.
"""
from bisect import bisect_left, bisect_right, insort
import copy
import logging
import math

from oceanenv.config import STORE_WILDCARDS
from oceanenv.definitions.angle_utils import bearing_diff_rad, wrap_2pi
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.timeref import as_datetime, seconds_between, add_seconds

logger = logging.getLogger(__name__)

ALL_ANCHORS = GeoPoint()
ALL_BEARINGS = STORE_WILDCARDS['bearing']
ALL_RANGES = STORE_WILDCARDS['range']
ALL_TIMES = STORE_WILDCARDS['time']


class LookupResult:
    """Outcome of a store lookup: ``found`` flag plus the value (None on a miss)."""

    __slots__ = ('found', 'value')

    def __init__(self, found=False, value=None):
        self.found = bool(found)
        self.value = value if found else None

    @classmethod
    def hit(cls, value) -> 'LookupResult':
        return cls(True, value)

    @classmethod
    def miss(cls) -> 'LookupResult':
        return cls(False)

    def __bool__(self):
        return self.found

    def value_or(self, default):
        return self.value if self.found else default

    def __repr__(self):
        return f"LookupResult(found={self.found}, value={self.value!r})"


class ValuePolicy:
    """Stored objects are returned as they are; nothing to release."""

    name = 'value'

    def admit(self, value):
        return value

    def export(self, value):
        return value

    def release(self, value):
        pass


class OwnedPolicy:
    """The store owns what it is given.

    Lookups return deep copies so callers can never mutate a stored value.
    ``release`` (optional callable) is invoked on every value the store drops:
    a rejected insert, a replaced or erased entry, ``clear``.
    """

    name = 'owned'

    def __init__(self, release=None):
        self._release = release

    def admit(self, value):
        return value

    def export(self, value):
        return copy.deepcopy(value)

    def release(self, value):
        if self._release is not None:
            self._release(value)


VALUE = ValuePolicy()


class _Level:
    """One sorted level of the nested map."""

    __slots__ = ('_map', '_keys')

    def __init__(self):
        self._map = {}
        self._keys = []

    def __len__(self):
        return len(self._keys)

    def __contains__(self, key):
        return key in self._map

    def __getitem__(self, key):
        return self._map[key]

    def get(self, key, default=None):
        return self._map.get(key, default)

    def keys(self):
        return self._keys

    def value_at(self, i):
        return self._map[self._keys[i]]

    def set(self, key, value):
        if key not in self._map:
            insort(self._keys, key)
        self._map[key] = value

    def child(self, key):
        node = self._map.get(key)
        if node is None:
            node = _Level()
            self.set(key, node)
        return node

    def pop(self, key):
        value = self._map.pop(key)
        del self._keys[bisect_left(self._keys, key)]
        return value

    def items(self):
        for k in self._keys:
            yield k, self._map[k]


def _anchor_key(anchor):
    if anchor is None:
        return ALL_ANCHORS
    if not isinstance(anchor, GeoPoint):
        raise TypeError(f"anchor must be a GeoPoint, got {type(anchor).__name__}")
    return anchor.surface()


def _bearing_key(bearing):
    b = float(bearing)
    if b == ALL_BEARINGS:
        return b
    return float(wrap_2pi(b))


def _range_key(range_m):
    r = float(range_m)
    if r < 0.0 and r != ALL_RANGES:
        raise ValueError(f"range must be >= 0 or the range wildcard {ALL_RANGES}, got {r}")
    return r


def _concrete_start(keys, wildcard):
    """Index of the first non-wildcard key (wildcards sort first)."""
    return 1 if keys and keys[0] == wildcard else 0


class SpatialStore:
    """Anchor -> bearing -> range -> value store."""

    _levels = 3

    def __init__(self, policy=VALUE):
        self.policy = policy
        self._root = _Level()
        self._size = 0

    # ── key handling ────────────────────────────────────────────────────────
    def _keys(self, anchor, bearing, range_m, *rest):
        if rest:
            raise TypeError(f"{type(self).__name__} has no time level, got extra key {rest!r}")
        return (_anchor_key(anchor), _bearing_key(bearing), _range_key(range_m))

    def _parent(self, keys, create=False):
        node = self._root
        for k in keys[:-1]:
            if create:
                node = node.child(k)
            else:
                node = node.get(k)
                if node is None:
                    return None
        return node

    # ── size / iteration ────────────────────────────────────────────────────
    def __len__(self):
        return self._size

    def is_empty(self) -> bool:
        return self._size == 0

    def _walk(self, node, prefix, depth):
        for k, child in node.items():
            if depth == self._levels - 1:
                yield prefix + (k,), child
            else:
                yield from self._walk(child, prefix + (k,), depth + 1)

    def items(self):
        """Yield ``(key_tuple, value)`` for every stored entry, in key order."""
        for keys, value in self._walk(self._root, (), 0):
            yield keys, self.policy.export(value)

    # ── mutation ────────────────────────────────────────────────────────────
    def insert(self, value, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, *time) -> bool:
        """Store ``value``; returns False (and releases ``value``) when the key is taken."""
        keys = self._keys(anchor, bearing, range_m, *time)
        parent = self._parent(keys)
        if parent is not None and keys[-1] in parent:
            logger.debug('insert rejected, key %s already present', keys)
            self.policy.release(value)
            return False
        self._parent(keys, create=True).set(keys[-1], self.policy.admit(value))
        self._size += 1
        return True

    def insert_many(self, entries) -> bool:
        """Insert ``(value, anchor, bearing, range[, time])`` tuples all or nothing.

        When any key is already stored, or appears twice in ``entries``, the
        store is left untouched, every value is released and False returned.
        """
        entries = list(entries)
        keyed = [(self._keys(*entry[1:]), entry[0]) for entry in entries]
        seen = set()
        for keys, _ in keyed:
            if keys in seen or self._find_raw(keys):
                logger.debug('insert_many rejected, key %s already present', keys)
                for _, value in keyed:
                    self.policy.release(value)
                return False
            seen.add(keys)
        for keys, value in keyed:
            self._parent(keys, create=True).set(keys[-1], self.policy.admit(value))
            self._size += 1
        return True

    def replace(self, value, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, *time) -> None:
        """Store ``value`` unconditionally, releasing any previous value at that key."""
        keys = self._keys(anchor, bearing, range_m, *time)
        parent = self._parent(keys, create=True)
        if keys[-1] in parent:
            old = parent[keys[-1]]
            if old is not value:
                self.policy.release(old)
        else:
            self._size += 1
        parent.set(keys[-1], self.policy.admit(value))

    def erase(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, *time) -> bool:
        """Remove one entry and prune levels left empty. Returns False when absent."""
        keys = self._keys(anchor, bearing, range_m, *time)
        path = [self._root]
        for k in keys[:-1]:
            node = path[-1].get(k)
            if node is None:
                return False
            path.append(node)
        if keys[-1] not in path[-1]:
            return False
        self.policy.release(path[-1].pop(keys[-1]))
        self._size -= 1
        for depth in range(len(path) - 1, 0, -1):
            if len(path[depth]) == 0:
                path[depth - 1].pop(keys[depth - 1])
        return True

    def clear(self) -> None:
        for _, value in self._walk(self._root, (), 0):
            self.policy.release(value)
        self._root = _Level()
        self._size = 0

    # ── lookups ─────────────────────────────────────────────────────────────
    def _find_raw(self, keys):
        parent = self._parent(keys)
        if parent is None or keys[-1] not in parent:
            return LookupResult.miss()
        return LookupResult.hit(parent[keys[-1]])

    def find(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, *time) -> LookupResult:
        """Exact key lookup, no fallbacks."""
        raw = self._find_raw(self._keys(anchor, bearing, range_m, *time))
        if not raw:
            return raw
        return LookupResult.hit(self.policy.export(raw.value))

    def _global_default(self) -> LookupResult:
        return self._find_raw(self._keys(ALL_ANCHORS, ALL_BEARINGS, ALL_RANGES))

    def _resolve(self, entry, time) -> LookupResult:
        return LookupResult.hit(self.policy.export(entry))

    def get(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, *time) -> LookupResult:
        """Exact anchor, ``lower_bound`` bearing and range (last key on overflow)."""
        if self._size == 0:
            return LookupResult.miss()
        default = self._global_default()
        if default:
            return self._resolve(default.value, None)
        keys = self._keys(anchor, bearing, range_m, *time)
        bearings = self._root.get(keys[0])
        if bearings is None or len(bearings) == 0:
            return LookupResult.miss()
        i = min(bisect_left(bearings.keys(), keys[1]), len(bearings) - 1)
        ranges = bearings.value_at(i)
        j = min(bisect_left(ranges.keys(), keys[2]), len(ranges) - 1)
        return self._resolve(ranges.value_at(j), time[0] if time else None)

    def _ordered_anchors(self):
        # concrete anchors first so they win distance ties against the wildcard anchor
        wildcard = None
        for anchor, bearings in self._root.items():
            if anchor == ALL_ANCHORS:
                wildcard = bearings
                continue
            yield anchor, bearings
        if wildcard is not None:
            yield ALL_ANCHORS, wildcard

    def _nearest_entry(self, tx, rx):
        """Closest stored leaf to ``rx``; returns ``(entry, distance)`` or ``(None, inf)``."""
        best = None
        min_dist = math.inf
        for anchor, bearings in self._ordered_anchors():
            origin = tx if anchor == ALL_ANCHORS else anchor
            curr_b = origin.initial_bearing(rx)
            curr_r = origin.great_circle_distance(rx)

            bkeys = bearings.keys()
            b0 = _concrete_start(bkeys, ALL_BEARINGS)
            if b0 == len(bkeys):
                ranges = bearings[ALL_BEARINGS]
                delta_b = 0.0
            else:
                i = bisect_left(bkeys, curr_b, lo=b0)
                if i == len(bkeys):
                    i = len(bkeys) - 1
                ranges = bearings.value_at(i)
                delta_b = float(bearing_diff_rad(curr_b, bkeys[i]))

            ort_dist = curr_r * math.sin(delta_b)
            ort_projection = math.sqrt(max(curr_r * curr_r - ort_dist * ort_dist, 0.0))

            rkeys = ranges.keys()
            r0 = _concrete_start(rkeys, ALL_RANGES)
            if r0 == len(rkeys):
                entry = ranges[ALL_RANGES]
                curr_dist = ort_dist
            else:
                j = bisect_left(rkeys, ort_projection, lo=r0)
                if j == r0 or j == len(rkeys) or rkeys[j] == ort_projection:
                    if j == len(rkeys):
                        j = len(rkeys) - 1
                    curr_dist = math.sqrt(ort_projection ** 2 + (ort_projection - rkeys[j]) ** 2)
                else:
                    first_dist = math.sqrt(ort_projection ** 2 + (ort_projection - rkeys[j]) ** 2)
                    before_dist = math.sqrt(ort_projection ** 2 + (ort_projection - rkeys[j - 1]) ** 2)
                    curr_dist = min(first_dist, before_dist)
                    # equal distances keep the upper candidate
                    if curr_dist != first_dist:
                        j -= 1
                entry = ranges.value_at(j)

            logger.debug('nearest: anchor=%s bearing=%.6f range=%.3f delta_b=%.6f dist=%.3f',
                         anchor, curr_b, curr_r, delta_b, curr_dist)
            if curr_dist < min_dist:
                min_dist = curr_dist
                best = entry
                if curr_dist == 0:
                    break
        return best, min_dist

    def nearest(self, tx: GeoPoint, rx: GeoPoint, *time) -> LookupResult:
        """Nearest-neighbour lookup around ``rx`` for a transmitter at ``tx``."""
        if self._size == 0:
            return LookupResult.miss()
        entry, _ = self._nearest_entry(tx, rx)
        if entry is None:
            return LookupResult.miss()
        return self._resolve(entry, time[0] if time else None)


class SpatialTimeStore(SpatialStore):
    """Anchor -> bearing -> range -> time -> value store.

    Values must support ``value * float + value * float`` for interpolation.
    """

    _levels = 4

    def _keys(self, anchor, bearing, range_m, time_key=ALL_TIMES):
        return (_anchor_key(anchor), _bearing_key(bearing), _range_key(range_m), as_datetime(time_key))

    def _global_default(self) -> LookupResult:
        return self._find_raw(self._keys(ALL_ANCHORS, ALL_BEARINGS, ALL_RANGES, ALL_TIMES))

    def get(self, anchor=ALL_ANCHORS, bearing=ALL_BEARINGS, range_m=ALL_RANGES, time_key=ALL_TIMES) -> LookupResult:
        if self._size == 0:
            return LookupResult.miss()
        default = self._global_default()
        if default:
            return LookupResult.hit(self.policy.export(default.value))
        return super().get(anchor, bearing, range_m, time_key)

    def nearest(self, tx: GeoPoint, rx: GeoPoint, time_key=ALL_TIMES) -> LookupResult:
        return super().nearest(tx, rx, time_key)

    def _resolve(self, entry, time) -> LookupResult:
        return self.interpolate(entry, ALL_TIMES if time is None else time)

    def interpolate(self, entries, time_key) -> LookupResult:
        """Value of a time level at ``time_key``.

        Exact keys are returned as stored; earlier times clamp to the first
        key; later times wrap cyclically over the covered period; anything in
        between is a linear blend of the two bracketing entries.
        """
        keys = list(entries.keys())
        if ALL_TIMES in entries and len(keys) > 1:
            keys.remove(ALL_TIMES)
        if not keys:
            return LookupResult.miss()
        if len(keys) == 1:
            return LookupResult.hit(self.policy.export(entries[keys[0]]))
        t = as_datetime(time_key)
        if t in entries and t != ALL_TIMES:
            return LookupResult.hit(self.policy.export(entries[t]))
        t_min, t_max = keys[0], keys[-1]
        if t < t_min:
            return LookupResult.hit(self.policy.export(entries[t_min]))
        if t > t_max:
            span = seconds_between(t_min, t_max)
            t = add_seconds(t_min, math.fmod(seconds_between(t_min, t), span))
            if t in entries:
                return LookupResult.hit(self.policy.export(entries[t]))
        upper_idx = bisect_right(keys, t)
        if upper_idx == 0 or t <= t_min:
            return LookupResult.hit(self.policy.export(entries[t_min]))
        upper_idx = min(upper_idx, len(keys) - 1)
        lower, upper = keys[upper_idx - 1], keys[upper_idx]
        width = seconds_between(lower, upper)
        alpha = abs(seconds_between(t, upper)) / width
        beta = abs(seconds_between(lower, t)) / width
        return LookupResult.hit(entries[lower] * alpha + entries[upper] * beta)
