"""
DECK41 seafloor sediment resolution.

The DECK41 products classify the seafloor with a (main, secondary) pair of
type ids at three spatial resolutions: point coordinates, 1°x1° marsden
sub-squares and 10°x10° marsden squares. A query runs the tiers from the
finest to the coarsest:

    coord ──► marsden one degree ──► marsden square

At every tier the pair is classified by seven predicates (A..G):

    A  accept, build the main type
    B  escalate, falls back to the secondary type
    C  escalate, falls back to the main type
    D  escalate, falls back to the secondary type
    E  accept, 65 % main + 35 % secondary
    F  accept, 40 % main + 60 % secondary
    G  escalate, no data at all

A tier that escalates hands over to the next one. At the last tier an
escalation reverts to the previous tier's pair, unless that tier had no data
(G) in which case the current pair is used; two G tiers in a row cannot be
resolved.

The cascade state is carried in ``CascadeState`` return values; nothing is
kept on the resolver between calls.
"""
from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
import logging
from typing import Callable, Iterable, Optional, Sequence

import numpy as np

from oceanenv.config import DECK41
from oceanenv.db.base import SedimentDb
from oceanenv.definitions.geo import GeoPoint, points_depths
from oceanenv.definitions.sediment import Sediment
from oceanenv.errors import InvariantViolation, SedimentResolutionError

logger = logging.getLogger(__name__)


Deck41Type = IntEnum('Deck41Type', DECK41['type_ids'])

_HARD = frozenset({Deck41Type.GRAVEL, Deck41Type.SAND, Deck41Type.SILT, Deck41Type.MUD, Deck41Type.HARDBOTTOM})
_SOFT = frozenset({Deck41Type.GRAVEL, Deck41Type.SAND, Deck41Type.SILT, Deck41Type.MUD})
_OVERRIDE = frozenset({Deck41Type.ROCKS, Deck41Type.ORGANIC, Deck41Type.NODULES,
                       Deck41Type.NODATA, Deck41Type.HARDBOTTOM})
_AMBIGUOUS = frozenset({Deck41Type.CLAY, Deck41Type.OOZE, Deck41Type.ORGANIC,
                        Deck41Type.ROCKS, Deck41Type.NODULES})

TIER_NAMES = ('coord', 'marsden_one_degree', 'marsden_square')


@dataclass(frozen=True)
class SedimentTypes:
    main: int = Deck41Type.NODATA
    secondary: int = Deck41Type.NODATA

    def __str__(self):
        return f"({_type_name(self.main)}, {_type_name(self.secondary)})"


def _type_name(type_id) -> str:
    try:
        return Deck41Type(type_id).name
    except ValueError:
        return str(type_id)


@dataclass(frozen=True)
class TestState:
    """Predicates A..G of one (main, secondary) pair."""

    __test__ = False

    a: bool = False
    b: bool = False
    c: bool = False
    d: bool = False
    e: bool = False
    f: bool = False
    g: bool = False

    @classmethod
    def from_types(cls, types: SedimentTypes) -> 'TestState':
        main, sec = types.main, types.secondary
        nodata = Deck41Type.NODATA
        return cls(
            a=(main == sec and main in _HARD) or (main in _HARD and sec in _OVERRIDE),
            b=main == nodata and sec in _SOFT,
            c=main in _AMBIGUOUS and sec in _OVERRIDE,
            d=main == Deck41Type.ORGANIC or (main in (Deck41Type.ROCKS, Deck41Type.NODULES, nodata) and sec in _SOFT),
            e=(main != sec and main in _SOFT and (sec in _SOFT or sec in (Deck41Type.OOZE, Deck41Type.CLAY)))
              or (main == Deck41Type.OOZE and sec == Deck41Type.CLAY),
            f=main != sec and main in (Deck41Type.CLAY, Deck41Type.OOZE) and (sec in _SOFT or sec == Deck41Type.OOZE),
            g=main == nodata and sec == nodata,
        )

    def escalates(self) -> bool:
        return self.b or self.c or self.d or self.g

    def accepts(self) -> bool:
        return self.a or self.e or self.f

    def labels(self) -> str:
        return ''.join(k.upper() for k in 'abcdefg' if getattr(self, k))


@dataclass(frozen=True)
class CascadeState:
    types: SedimentTypes
    state: TestState
    tier: int

    @property
    def tier_name(self) -> str:
        return TIER_NAMES[self.tier] if self.tier < len(TIER_NAMES) else str(self.tier)


def dominant_type(type_ids: Iterable[int]) -> int:
    """Most frequent type id, NODATA ignored; smallest id wins ties."""
    counts = Counter(int(t) for t in type_ids)
    counts.pop(int(Deck41Type.NODATA), None)
    if not counts:
        return Deck41Type.NODATA
    return max(sorted(counts), key=counts.__getitem__)


def dominant_types(pairs: Iterable[SedimentTypes]) -> SedimentTypes:
    pairs = list(pairs)
    return SedimentTypes(dominant_type(p.main for p in pairs), dominant_type(p.secondary for p in pairs))


_PRESET_BY_TYPE = {
    Deck41Type.GRAVEL: 'GRAVEL',
    Deck41Type.SAND: 'SAND',
    Deck41Type.SILT: 'SILT',
    Deck41Type.CLAY: 'CLAY',
    Deck41Type.OOZE: 'OOZE',
    Deck41Type.MUD: 'MUD',
    Deck41Type.ROCKS: 'ROCKS',
    Deck41Type.ORGANIC: 'ORGANIC',
    Deck41Type.NODULES: 'NODULES',
    Deck41Type.HARDBOTTOM: 'HARDBOTTOM',
}


def create_sediment(type_id: int, depth: float) -> Sediment:
    """Preset Sediment of a DECK41 type id; not valid for NODATA or unknown ids."""
    try:
        preset = _PRESET_BY_TYPE[Deck41Type(type_id)]
    except (ValueError, KeyError):
        logger.warning('DECK41 type %s has no sediment preset', type_id)
        return Sediment()
    return Sediment.from_preset(preset, depth)


def average_depth(points: Sequence[GeoPoint]) -> float:
    if len(points) == 0:
        raise InvariantViolation('average depth of an empty point vector')
    return float(np.mean(points_depths(points)))


Tier = Callable[[Sequence[GeoPoint]], SedimentTypes]


class SedimentResolver:
    """Run the DECK41 cascade over an ordered list of tiers.

    Each tier is a callable mapping the query points to the dominant
    (main, secondary) pair at that tier's resolution.
    """

    def __init__(self, tiers: Sequence[Tier]):
        if not tiers:
            raise ValueError('SedimentResolver needs at least one tier')
        self.tiers = list(tiers)

    def resolve_types(self, points: Sequence[GeoPoint]) -> CascadeState:
        if len(points) == 0:
            raise InvariantViolation('sediment query with an empty point vector')
        last = len(self.tiers) - 1
        prev: Optional[CascadeState] = None
        for idx, tier in enumerate(self.tiers):
            types = tier(points)
            curr = CascadeState(types, TestState.from_types(types), idx)
            logger.debug('DECK41 tier %s: types %s, conditions %s', curr.tier_name, types, curr.state.labels())

            if curr.state.escalates():
                if idx < last:
                    prev = curr
                    continue
                if prev is None:
                    if curr.state.g:
                        raise SedimentResolutionError('no DECK41 data at any tier', points, curr)
                    return curr
                if prev.state.g:
                    if curr.state.g:
                        raise SedimentResolutionError('no DECK41 data at any tier', points, curr)
                    return curr
                logger.debug('DECK41 tiers exhausted, reverting to tier %s', prev.tier_name)
                return prev

            if curr.state.accepts():
                return curr

            raise SedimentResolutionError(f'no rule for DECK41 types {types}', points, curr)
        raise SedimentResolutionError('DECK41 cascade ended without a result', points, prev)

    def build_sediment(self, cascade: CascadeState, avg_depth: float) -> Sediment:
        types, state = cascade.types, cascade.state
        if state.a or state.c:
            return create_sediment(types.main, avg_depth)
        if state.b or state.d:
            return create_sediment(types.secondary, avg_depth)
        if state.e or state.f:
            w_main, w_sec = DECK41['blend_weights']['E' if state.e else 'F']
            main = create_sediment(types.main, avg_depth)
            sec = create_sediment(types.secondary, avg_depth)
            return main * w_main + sec * w_sec
        raise SedimentResolutionError(f'no sediment for DECK41 types {types}', (), cascade)

    def resolve(self, points: Sequence[GeoPoint]) -> Sediment:
        points = list(points)
        return self.build_sediment(self.resolve_types(points), average_depth(points))


def lookup_tier(db) -> Tier:
    """Tier querying ``db.get_seafloor_type(point)`` for every query point."""
    def query(points):
        return dominant_types(db.get_seafloor_type(p) for p in points)
    return query


class Deck41SedimentDb(SedimentDb):
    """SedimentDb over the three DECK41 products.

    The component stores are owned: opening and closing this database opens
    and closes all three.
    """

    def __init__(self, coord_db, marsden_one_db, marsden_db, name: str = 'deck41'):
        super().__init__(name)
        self.coord_db = coord_db
        self.marsden_one_db = marsden_one_db
        self.marsden_db = marsden_db
        self.resolver = SedimentResolver([lookup_tier(coord_db), lookup_tier(marsden_one_db), lookup_tier(marsden_db)])

    def _components(self):
        return (self.coord_db, self.marsden_one_db, self.marsden_db)

    def open(self) -> None:
        for db in self._components():
            if not db.is_open:
                db.open_connection()

    def _release(self) -> None:
        for db in self._components():
            db.close()

    def get_value(self, point: GeoPoint) -> Sediment:
        return self.get_value_many([point])

    def get_value_many(self, points: Sequence[GeoPoint]) -> Sediment:
        points = list(points)
        try:
            cascade = self.resolver.resolve_types(points)
        except SedimentResolutionError as e:
            if e.cascade is not None and e.cascade.state.g:
                logger.warning('%s: can not find a sea floor type, provide a custom sediment for %s',
                               self.name, ', '.join(str(p) for p in points))
                return Sediment()
            raise
        return self.resolver.build_sediment(cascade, average_depth(points))
