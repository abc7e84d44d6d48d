import io
import math
from datetime import datetime, timezone

import numpy as np
import pandas as pd
import pytest

from oceanenv.definitions.altimetry import Altimetry
from oceanenv.definitions.pressure import Pressure
from oceanenv.definitions.sediment import Sediment
from oceanenv.definitions.ssp import SSP, mackenzie_speed
from oceanenv.definitions.time_arrival import TimeArr
from oceanenv.definitions.timeref import ALL_TIMES, add_seconds, as_datetime, seconds_between, to_epoch_seconds
from oceanenv.errors import ImportFormatError


# ── Sediment ─────────────────────────────────────────────────────────────────
def test_sediment_presets():
    sand = Sediment.from_preset('sand', 50.0)
    assert sand.type == 'SAND' and sand.velc == 1650.0 and sand.vels == 110.0
    gravel = Sediment.from_preset('GRAVEL', 100.0)
    assert gravel.vels == pytest.approx(180.0 * 100.0 ** 0.3)
    assert Sediment.from_preset('GRAVEL').vels == 180.0
    assert Sediment.from_preset('ROCKS').type == 'CHALK'
    with pytest.raises(KeyError):
        Sediment.from_preset('BASALT')


def test_sediment_not_valid_by_default():
    assert not Sediment().is_valid()
    assert str(Sediment()) == 'Sediment(not valid)'
    assert Sediment.parse('X|1|2|3|4|5').is_valid()


def test_sediment_parse_errors():
    with pytest.raises(ImportFormatError):
        Sediment.parse('SAND|1|2|3|4')
    with pytest.raises(ImportFormatError):
        Sediment.parse('SAND|1|2|three|4|5')


def test_sediment_blend_label_and_values():
    clay = Sediment.from_preset('CLAY')
    sand = Sediment.from_preset('SAND')
    blend = clay * 0.4 + sand * 0.6
    assert blend.type == '( CLAY * 0.4 ) + ( SAND * 0.6 )'
    assert blend.density == pytest.approx(0.4 * 1.51 + 0.6 * 1.9)
    halved = sand / 2
    assert halved.velc == 825.0 and halved.type == '( SAND / 2 )'
    assert (sand - clay).velc == pytest.approx(140.0)


def test_sediment_sum_starts_from_zero():
    total = sum([Sediment.from_preset('SAND'), Sediment.from_preset('SAND')])
    assert total.velc == 3300.0
    assert (total / 2).isclose(Sediment.from_preset('SAND'))


def test_sediment_equality_ignores_depth():
    assert Sediment.from_preset('SAND', 10.0) == Sediment.from_preset('SAND', 20.0)


# ── SSP ──────────────────────────────────────────────────────────────────────
@pytest.fixture
def profile():
    return SSP.from_pairs([(0.0, 1500.0), (40.0, 1496.0), (100.0, 1490.0)])


def test_ssp_rejects_bad_samples():
    with pytest.raises(ValueError):
        SSP().insert_value(-1.0, 1500.0)
    with pytest.raises(ValueError):
        SSP().insert_value(10.0, 0.0)


def test_ssp_depth_keys_collide_within_precision():
    ssp = SSP().insert_value(10.0, 1500.0).insert_value(10.0 + 1e-9, 1501.0)
    assert len(ssp) == 1
    assert ssp.speed_at(10.0) == 1501.0


def test_ssp_queries(profile):
    assert profile.is_valid() and not SSP().is_valid()
    assert profile.min_depth() == 0.0 and profile.max_depth() == 100.0
    assert profile.speed_at(20.0) == pytest.approx(1498.0)
    assert profile.speed_at(500.0) == 1490.0
    assert math.isnan(SSP().speed_at(0.0))


def test_ssp_truncate(profile):
    cut = profile.truncate(70.0)
    assert list(cut.depths()) == pytest.approx([0.0, 40.0, 70.0])
    assert cut.speed_at(70.0) == pytest.approx(1493.0)
    assert profile.truncate(40.0) == SSP.from_pairs([(0.0, 1500.0), (40.0, 1496.0)])
    assert not profile.truncate(-5.0).is_valid()


def test_ssp_transform(profile):
    grid = profile.transform(total_steps=5)
    assert list(grid.depths()) == pytest.approx([0.0, 25.0, 50.0, 75.0, 100.0])
    assert grid.speed_at(50.0) == pytest.approx(1495.0)
    with pytest.raises(ValueError):
        profile.transform(total_steps=1)


def test_ssp_from_temperature_and_salinity():
    ssp = SSP().insert_from_tsp(depth=0.0, temperature=10.0, salinity=35.0)
    assert ssp.speed_at(0.0) == pytest.approx(float(mackenzie_speed(10.0, 35.0, 0.0)))
    assert ssp.speed_at(0.0) == pytest.approx(1489.8, abs=0.1)
    assert ssp.has_tsp()
    from_pressure = SSP().insert_from_tsp(pressure=100.0, temperature=10.0, salinity=35.0)
    assert from_pressure.min_depth() == pytest.approx(990.0, abs=10.0)
    with pytest.raises(ValueError):
        SSP().insert_from_tsp(depth=10.0, temperature=10.0)


def test_ssp_weighted_sum(profile):
    other = SSP.from_pairs([(0.0, 1510.0), (100.0, 1500.0)])
    mix = profile * 0.5 + other * 0.5
    assert mix.speed_at(0.0) == pytest.approx(1505.0)
    # depths present on one side only keep the weighted value
    assert mix.speed_at(40.0) == pytest.approx(748.0)
    mean = (profile + profile) / 2
    assert mean.isclose(profile)


def test_ssp_text_form(profile):
    buf = io.StringIO()
    profile.write(buf)
    assert buf.getvalue().splitlines()[0] == 'DEPTH_[m] SSP_[m/s]'
    buf.seek(0)
    assert SSP.read(buf) == profile


def test_ssp_text_form_from_tsp_columns():
    text = 'DEPTH_[m] TEMPERATURE_[C°] SALINITY_[ppu]\n0 10 35\n100 8 35\n'
    ssp = SSP.read(io.StringIO(text))
    assert len(ssp) == 2 and ssp.has_tsp()
    with pytest.raises(ImportFormatError):
        SSP.read(io.StringIO('DEPTH_[m] TEMPERATURE_[C°]\n0 10\n'))
    with pytest.raises(ImportFormatError):
        SSP.read(io.StringIO('DEPTH_[m] SSP_[m/s]\n0\n'))


# ── Pressure / TimeArr / Altimetry ───────────────────────────────────────────
def test_pressure():
    assert not Pressure().is_valid()
    assert Pressure.not_valid().tx_loss_db() == -math.inf
    p = Pressure(0.1, 0.0)
    assert p.tx_loss_db() == pytest.approx(20.0)
    assert (p * 2 + Pressure(0.0, 1.0)) == complex(0.2, 1.0)
    assert Pressure(0j).tx_loss_db() == math.inf


def test_time_arrival_taps():
    arr = TimeArr().insert_value(0.01, 1.0).insert_value(0.01 + 1e-12, 1j).insert_value(0.02, 2.0)
    assert len(arr) == 2
    (d0, g0), (d1, g1) = list(arr)
    assert d0 == pytest.approx(0.01) and g0 == 1 + 1j
    assert arr.min_delay() == pytest.approx(0.01) and arr.max_delay() == pytest.approx(0.02)
    assert arr.coherent_sum() == complex(3.0, 1.0)
    assert len(arr.crop(0.0, 0.015)) == 1


def test_time_arrival_validity():
    assert not TimeArr().is_valid()
    assert not TimeArr.single(Pressure.not_valid()).is_valid()
    assert not TimeArr.single(Pressure.not_valid()).as_pressure().is_valid()
    single = TimeArr.single(Pressure(0.5, 0.0), delay=0.1)
    assert single.is_valid() and single.as_pressure() == 0.5


def test_time_arrival_sampling():
    arr = TimeArr().insert_value(0.0, 1.0).insert_value(0.0005, -1.0).insert_value(0.01, 3.0)
    assert [g for _, g in arr.coherent_sum_sample(0.001)] == [0j, 3 + 0j]
    first = list(arr.incoherent_sum_sample(0.001))[0]
    assert first[0] == 0.0 and abs(first[1]) == pytest.approx(math.sqrt(2.0))


def test_time_arrival_arithmetic():
    a = TimeArr().insert_value(0.01, 1.0)
    b = TimeArr().insert_value(0.01, 1.0).insert_value(0.02, 1.0)
    total = a + b
    assert [g for _, g in total] == [2 + 0j, 1 + 0j]
    assert [g for _, g in total * 2] == [4 + 0j, 2 + 0j]
    assert [g for _, g in total - a] == [1 + 0j, 1 + 0j]
    assert len(a) == 1


def test_altimetry():
    flat = Altimetry.flat()
    assert flat.is_valid() and not Altimetry().is_valid()
    wave = Altimetry({0.0: 0.0, 100.0: 2.0})
    assert wave.height_at(50.0) == pytest.approx(1.0)
    assert (wave + flat).profile == {0.0: 0.0, 100.0: 2.0}
    assert (wave * 2).height_at(100.0) == 4.0
    assert wave.crop(10.0, 200.0) == Altimetry({100.0: 2.0})


# ── time references ──────────────────────────────────────────────────────────
def test_as_datetime_inputs():
    expected = datetime(2020, 1, 1, 12)
    assert as_datetime(expected) == expected
    assert as_datetime(pd.Timestamp('2020-01-01 12:00')) == expected
    assert as_datetime(np.datetime64('2020-01-01T12:00:00')) == expected
    assert as_datetime(datetime(2020, 1, 1, 12, tzinfo=timezone.utc)) == expected
    assert as_datetime(to_epoch_seconds(expected)) == expected
    with pytest.raises(TypeError):
        as_datetime('2020-01-01')


def test_time_arithmetic():
    start = datetime(2020, 1, 1)
    assert seconds_between(start, datetime(2020, 1, 1, 1)) == 3600.0
    assert add_seconds(start, 90.0) == datetime(2020, 1, 1, 0, 1, 30)
    assert to_epoch_seconds(ALL_TIMES) < 0
