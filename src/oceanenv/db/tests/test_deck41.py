import pytest

from oceanenv.db.base import BackingDb
from oceanenv.db import deck41
from oceanenv.db.deck41 import (CascadeState, Deck41SedimentDb, Deck41Type as T, SedimentResolver, SedimentTypes,
                                average_depth, create_sediment, dominant_type)
from oceanenv.db.deck41_netcdf import Deck41CoordDb, Deck41MarsdenDb, Deck41MarsdenOneDb
from oceanenv.definitions.geo import GeoPoint
from oceanenv.definitions.sediment import Sediment
from oceanenv.errors import InvariantViolation, SedimentResolutionError

PROBE = [GeoPoint(42.0, 10.0, 100.0)]


class RecordingTier:
    def __init__(self, main, secondary):
        self.types = SedimentTypes(main, secondary)
        self.calls = 0

    def __call__(self, points):
        self.calls += 1
        return self.types


def _resolver(*pairs):
    tiers = [RecordingTier(m, s) for m, s in pairs]
    return SedimentResolver(tiers), tiers


@pytest.mark.parametrize('pair, labels', [
    ((T.SAND, T.SAND), 'A'),
    ((T.GRAVEL, T.ROCKS), 'A'),
    ((T.NODATA, T.SAND), 'BD'),
    ((T.ROCKS, T.NODATA), 'C'),
    ((T.ORGANIC, T.SAND), 'D'),
    ((T.SAND, T.CLAY), 'E'),
    ((T.OOZE, T.CLAY), 'E'),
    ((T.CLAY, T.SAND), 'F'),
    ((T.NODATA, T.NODATA), 'G'),
])
def test_predicates(pair, labels):
    assert deck41.TestState.from_types(SedimentTypes(*pair)).labels() == labels


def test_accept_does_not_query_later_tiers():
    resolver, tiers = _resolver((T.SAND, T.SAND), (T.CLAY, T.CLAY), (T.MUD, T.MUD))
    cascade = resolver.resolve_types(PROBE)
    assert cascade.tier == 0
    assert [t.calls for t in tiers] == [1, 0, 0]
    assert resolver.resolve(PROBE) == Sediment.from_preset('SAND', 100.0)


def test_blend_forty_sixty():
    resolver, _ = _resolver((T.CLAY, T.SAND), (T.NODATA, T.NODATA), (T.NODATA, T.NODATA))
    expected = Sediment.from_preset('CLAY', 100.0) * 0.4 + Sediment.from_preset('SAND', 100.0) * 0.6
    got = resolver.resolve(PROBE)
    assert got == expected
    assert got.velc == pytest.approx(0.4 * 1510.0 + 0.6 * 1650.0)


def test_blend_sixty_five_thirty_five():
    resolver, _ = _resolver((T.SAND, T.CLAY), (T.NODATA, T.NODATA), (T.NODATA, T.NODATA))
    got = resolver.resolve(PROBE)
    assert got.velc == pytest.approx(0.65 * 1650.0 + 0.35 * 1510.0)


def test_escalation_reverts_to_previous_tier():
    resolver, tiers = _resolver((T.NODATA, T.SAND), (T.ROCKS, T.NODATA), (T.NODATA, T.NODATA))
    cascade = resolver.resolve_types(PROBE)
    assert [t.calls for t in tiers] == [1, 1, 1]
    assert cascade.tier == 1
    assert cascade.types == SedimentTypes(T.ROCKS, T.NODATA)
    assert cascade.state.c
    assert resolver.resolve(PROBE).type == 'CHALK'


def test_escalation_resolved_at_middle_tier():
    resolver, tiers = _resolver((T.NODATA, T.SAND), (T.MUD, T.MUD), (T.NODATA, T.NODATA))
    assert resolver.resolve_types(PROBE).tier == 1
    assert tiers[2].calls == 0


def test_last_tier_used_when_previous_had_no_data():
    resolver, _ = _resolver((T.NODATA, T.NODATA), (T.NODATA, T.NODATA), (T.NODATA, T.SAND))
    cascade = resolver.resolve_types(PROBE)
    assert cascade.tier == 2
    assert resolver.resolve(PROBE).type == 'SAND'


def test_no_data_twice_is_fatal():
    resolver, _ = _resolver((T.NODATA, T.SAND), (T.NODATA, T.NODATA), (T.NODATA, T.NODATA))
    with pytest.raises(SedimentResolutionError) as err:
        resolver.resolve(PROBE)
    assert err.value.cascade.state.g
    assert '42.000000' in str(err.value)


def test_unclassified_pair_is_an_invariant_violation():
    resolver, _ = _resolver((T.HARDBOTTOM, T.CLAY), (T.SAND, T.SAND), (T.SAND, T.SAND))
    with pytest.raises(SedimentResolutionError):
        resolver.resolve(PROBE)


def test_empty_point_vector():
    resolver, _ = _resolver((T.SAND, T.SAND))
    with pytest.raises(InvariantViolation):
        resolver.resolve([])
    with pytest.raises(InvariantViolation):
        average_depth([])


def test_cascade_state_is_a_value():
    resolver, _ = _resolver((T.NODATA, T.SAND), (T.ROCKS, T.NODATA), (T.NODATA, T.NODATA))
    first = resolver.resolve_types(PROBE)
    second = resolver.resolve_types(PROBE)
    assert isinstance(first, CascadeState)
    assert first == second
    assert first.tier_name == 'marsden_one_degree'


def test_dominant_type_ignores_nodata_and_breaks_ties_low():
    assert dominant_type([T.SAND, T.SILT, T.SILT, T.SAND, T.NODATA, T.NODATA, T.NODATA]) == T.SAND
    assert dominant_type([T.NODATA, T.NODATA]) == T.NODATA


def test_average_depth_of_query_points():
    points = [GeoPoint(42.0, 10.0, 100.0), GeoPoint(42.0, 10.1, 300.0)]
    assert average_depth(points) == pytest.approx(200.0)


def test_create_sediment_without_preset_is_not_valid():
    assert not create_sediment(T.NODATA, 10.0).is_valid()
    assert create_sediment(T.NODULES, 10.0).type == 'LIMESTONE'


# ── Deck41SedimentDb ──────────────────────────────────────────────────────────
class FakeProduct(BackingDb):
    def __init__(self, name, main, secondary):
        super().__init__(name)
        self.types = SedimentTypes(main, secondary)
        self.released = 0

    def open(self):
        pass

    def _release(self):
        self.released += 1

    def get_seafloor_type(self, point):
        return self.types


def test_sediment_db_logs_and_returns_not_valid_without_data(caplog):
    products = [FakeProduct(f'p{i}', T.NODATA, T.NODATA) for i in range(3)]
    db = Deck41SedimentDb(*products)
    db.open_connection()
    with caplog.at_level('WARNING', logger='oceanenv.db.deck41'):
        sediment = db.get_value(GeoPoint(42.0, 10.0, 50.0))
    assert not sediment.is_valid()
    assert 'custom sediment' in caplog.text
    db.close()
    assert [p.released for p in products] == [1, 1, 1]


def test_sediment_db_propagates_classification_errors():
    db = Deck41SedimentDb(FakeProduct('c', T.HARDBOTTOM, T.CLAY), FakeProduct('o', T.SAND, T.SAND),
                          FakeProduct('m', T.SAND, T.SAND))
    db.open_connection()
    with pytest.raises(SedimentResolutionError):
        db.get_value(GeoPoint(42.0, 10.0, 50.0))


def test_sediment_db_over_netcdf_products(deck41_nc):
    coord, one, square = deck41_nc
    with Deck41SedimentDb(Deck41CoordDb(coord), Deck41MarsdenOneDb(one), Deck41MarsdenDb(square)) as db:
        assert db.get_value(GeoPoint(42.0, 10.0, 80.0)) == Sediment.from_preset('SAND', 80.0)
        # (NODATA, SAND) -> (ROCKS, NODATA) -> (NODATA, NODATA) reverts to the marsden one degree pair
        assert db.get_value(GeoPoint(41.0, 9.0, 80.0)).type == 'CHALK'
        many = db.get_value_many([GeoPoint(42.0, 10.0, 60.0), GeoPoint(42.01, 10.01, 100.0)])
        assert many.type == 'SAND'
        assert many.depth == pytest.approx(80.0)
    assert not db.coord_db.is_open


def test_marsden_readers(deck41_nc):
    _, one, square = deck41_nc
    with Deck41MarsdenOneDb(one) as db:
        assert db.get_seafloor_type(GeoPoint(41.0, 9.0)) == SedimentTypes(T.ROCKS, T.NODATA)
        assert db.get_seafloor_type(GeoPoint()) == SedimentTypes(T.NODATA, T.NODATA)
    with Deck41MarsdenDb(square) as db:
        assert db.get_seafloor_type(GeoPoint(41.0, 9.0)) == SedimentTypes(T.NODATA, T.NODATA)
