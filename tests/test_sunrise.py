import pytest
import solarposition
import numpy as np
import datetime
import warnings
import pytz

from solarposition import (Observer, SPAParams, TransitSunriseSunset, PolarDayNightWarning,
                           transit_sunrise_sunset, solar_position,
                           next_sunrise, next_sunset, solar_noon,
                           previous_sunrise, previous_sunset, previous_solar_noon)

HOUR = datetime.timedelta(hours=1)

@pytest.fixture
def golden():
    return Observer(39.742476, -105.1786, 1830.14)

@pytest.fixture
def new_york():
    return Observer(40.7128, -74.006)

@pytest.fixture
def london():
    return Observer(51.5074, -0.1278, 11.0)

@pytest.fixture
def svalbard():
    return Observer(78.2232, 15.6267)

def _seconds(a, b):
    return abs((a - b).total_seconds())

def test_nrel_example(golden):
    '''spa.c reports 06:12:43 and 17:20:19 local standard time (UTC-7)'''
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        res = transit_sunrise_sunset(datetime.date(2003, 10, 17), golden, SPAParams(delta_t=67.0))
    assert isinstance(res, TransitSunriseSunset)
    assert _seconds(res.sunrise, datetime.datetime(2003, 10, 17, 13, 12, 43, 500000)) < 5
    assert _seconds(res.sunset, datetime.datetime(2003, 10, 18, 0, 20, 19, 500000)) < 5
    assert res.sunrise < res.transit < res.sunset
    midday = res.sunrise + (res.sunset - res.sunrise)/2
    assert _seconds(res.transit, midday) < 120

def test_output_types(golden):
    params = SPAParams(delta_t=67.0)
    from_date = transit_sunrise_sunset(datetime.date(2003, 10, 17), golden, params)
    from_naive = transit_sunrise_sunset(datetime.datetime(2003, 10, 17, 19, 30, 30), golden, params)
    from_str = transit_sunrise_sunset('2003-10-17T19:30:30Z', golden, params)
    from_float = transit_sunrise_sunset(1066419030.0, golden, params)
    from_64 = transit_sunrise_sunset(np.datetime64('2003-10-17T05:00'), golden, params)
    for v in from_date + from_naive:
        assert type(v) is datetime.datetime
        assert v.tzinfo is None
    assert from_naive == from_date
    for res in (from_str, from_float, from_64):
        for v, expected in zip(res, from_date):
            assert isinstance(v, np.datetime64)
            assert v == np.datetime64(expected)

@pytest.mark.parametrize('hour,minute,second', [(0, 0, 0), (8, 30, 45), (12, 0, 0), (23, 59, 59)])
def test_normalized_to_day(new_york, hour, minute, second):
    midnight = transit_sunrise_sunset(datetime.datetime(2020, 6, 21), new_york)
    other = transit_sunrise_sunset(datetime.datetime(2020, 6, 21, hour, minute, second), new_york)
    assert other == midnight

def test_sunset_on_next_utc_day(new_york):
    res = transit_sunrise_sunset(datetime.date(2020, 6, 21), new_york)
    #05:25 and 20:31 EDT
    assert _seconds(res.sunrise, datetime.datetime(2020, 6, 21, 9, 25)) < 180
    assert _seconds(res.sunset, datetime.datetime(2020, 6, 22, 0, 31)) < 180
    assert res.sunset.date() == datetime.date(2020, 6, 22)
    assert res.sunrise < res.transit < res.sunset

def test_delta_t_parameter(new_york):
    dt = datetime.datetime(2020, 6, 21)
    auto = transit_sunrise_sunset(dt, new_york, SPAParams(delta_t=None))
    zero = transit_sunrise_sunset(dt, new_york, SPAParams(delta_t=0.0))
    custom = transit_sunrise_sunset(dt, new_york, SPAParams(delta_t=69.0))
    #an hour of Delta T moves the interpolated sun by about 0.04 degrees
    hour = transit_sunrise_sunset(dt, new_york, SPAParams(delta_t=3600.0))
    assert all(a != b for a, b in zip(zero, hour))
    for a, b, c in zip(auto, zero, custom):
        assert _seconds(a, b) < 300
        assert _seconds(a, c) < 300

def test_london_summer_solstice(london):
    res = transit_sunrise_sunset(datetime.date(2024, 6, 21), london)
    assert res.sunset - res.sunrise > datetime.timedelta(hours=16)
    assert res.sunrise.date() == res.sunset.date() == datetime.date(2024, 6, 21)

def test_equator_equinox_noon():
    obs = Observer(0.0, 0.0)
    res = transit_sunrise_sunset(datetime.date(2024, 3, 20), obs)
    pos = solar_position(res.transit, obs)
    assert abs(90 - pos.apparent_elevation) < 0.2
    #about twelve hours of daylight
    assert abs((res.sunset - res.sunrise) - datetime.timedelta(hours=12)) < datetime.timedelta(minutes=10)

def test_polar_night(svalbard):
    dt = datetime.datetime(2025, 1, 15)
    with pytest.warns(PolarDayNightWarning, match=r'Sun does not rise or set.*polar night \(sun below horizon\)'):
        res = transit_sunrise_sunset(dt, svalbard)
    assert res.transit == res.sunrise == res.sunset == dt

def test_polar_day(svalbard):
    dt = datetime.datetime(2025, 6, 21)
    with pytest.warns(PolarDayNightWarning, match=r'Sun does not rise or set.*polar day \(sun above horizon\)'):
        res = transit_sunrise_sunset(dt, svalbard)
    assert res.transit == res.sunrise == res.sunset == dt

def test_polar_night_aware(svalbard):
    tz = datetime.timezone(datetime.timedelta(hours=1))
    utc_midnight = datetime.datetime(2025, 1, 15, tzinfo=datetime.timezone.utc)
    with pytest.warns(PolarDayNightWarning, match='polar night'):
        res = transit_sunrise_sunset(utc_midnight.astimezone(tz), svalbard)
    assert res.transit.tzinfo == tz
    assert res.transit == utc_midnight

def test_polar_warning_filter(svalbard):
    '''the caller decides how often the warning is shown'''
    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter('always')
        for day in range(10, 15):
            transit_sunrise_sunset(datetime.date(2025, 1, day), svalbard)
    assert len(w) == 5
    assert issubclass(w[0].category, solarposition.SolarPositionWarning)
    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter('ignore', solarposition.SolarPositionWarning)
        transit_sunrise_sunset(datetime.date(2025, 1, 10), svalbard)
    assert len(w) == 0
    with warnings.catch_warnings():
        warnings.simplefilter('error', PolarDayNightWarning)
        with pytest.raises(PolarDayNightWarning):
            transit_sunrise_sunset(datetime.date(2025, 1, 10), svalbard)

def test_timezone_round_trip(london):
    berlin = pytz.timezone('Europe/Berlin')
    aware = berlin.localize(datetime.datetime(2024, 6, 21, 12, 0))
    res = transit_sunrise_sunset(aware, london)
    naive = transit_sunrise_sunset(datetime.datetime(2024, 6, 21, 12, 0), london)
    for v, expected in zip(res, naive):
        assert v.tzinfo is not None
        assert v.tzinfo.zone == 'Europe/Berlin'
        assert v.astimezone(pytz.utc).replace(tzinfo=None) == expected

def test_aware_uses_local_date(london):
    #00:30 on the 21st in UTC+2 is still the 20th in UTC
    tz = datetime.timezone(datetime.timedelta(hours=2))
    res = transit_sunrise_sunset(datetime.datetime(2024, 6, 21, 0, 30, tzinfo=tz), london)
    expected = transit_sunrise_sunset(datetime.date(2024, 6, 21), london)
    assert [v.astimezone(datetime.timezone.utc).replace(tzinfo=None) for v in res] == list(expected)
    assert res.sunrise.utcoffset() == datetime.timedelta(hours=2)

def test_invalid_requests(new_york):
    with pytest.raises(ValueError):
        transit_sunrise_sunset(['2020-06-21', '2020-06-22'], new_york)
    nan_observer = Observer(np.nan, 0.0)
    with pytest.raises(ValueError):
        transit_sunrise_sunset(datetime.date(2020, 6, 21), nan_observer)
    with pytest.raises(ValueError):
        transit_sunrise_sunset(np.datetime64('NaT'), new_york)
    with pytest.raises(ValueError):
        next_sunrise(np.datetime64('NaT'), new_york)

def test_warning_location(new_york, svalbard):
    #warnings point at the caller, however deep the search goes
    auto = SPAParams(delta_t=None)
    with pytest.warns(solarposition.DeltaTWarning) as record:
        transit_sunrise_sunset('3500-06-21', new_york, auto)
        next_sunrise('3500-06-21T12:00:00Z', new_york, auto)
    assert len(record) >= 2
    assert all(w.filename.endswith('test_sunrise.py') for w in record)
    with pytest.warns(PolarDayNightWarning) as record:
        transit_sunrise_sunset(datetime.date(2024, 12, 21), svalbard)
        next_sunrise(datetime.date(2024, 12, 21), svalbard)
    assert len(record) >= 2
    assert all(w.filename.endswith('test_sunrise.py') for w in record)

## next and previous events

@pytest.fixture
def ny_days(new_york):
    day = datetime.date(2020, 6, 21)
    one = datetime.timedelta(days=1)
    return tuple(transit_sunrise_sunset(d, new_york) for d in (day - one, day, day + one))

def test_next_events(new_york, ny_days):
    _, result, next_day = ny_days
    assert next_sunrise(result.sunrise - HOUR, new_york) == result.sunrise
    assert next_sunrise(result.sunrise + HOUR, new_york) == next_day.sunrise
    assert next_sunset(result.sunset - HOUR, new_york) == result.sunset
    assert next_sunset(result.sunset + HOUR, new_york) == next_day.sunset
    assert solar_noon(result.transit - HOUR, new_york) == result.transit
    assert solar_noon(result.transit + HOUR, new_york) == next_day.transit
    #strictly after
    assert next_sunrise(result.sunrise, new_york) == next_day.sunrise
    assert next_sunset(result.sunset, new_york) == next_day.sunset
    assert solar_noon(result.transit, new_york) == next_day.transit

def test_previous_events(new_york, ny_days):
    prev_day, result, _ = ny_days
    assert previous_sunrise(result.sunrise + HOUR, new_york) == result.sunrise
    assert previous_sunrise(result.sunrise - HOUR, new_york) == prev_day.sunrise
    assert previous_sunset(result.sunset + HOUR, new_york) == result.sunset
    assert previous_sunset(result.sunset - HOUR, new_york) == prev_day.sunset
    assert previous_solar_noon(result.transit + HOUR, new_york) == result.transit
    assert previous_solar_noon(result.transit - HOUR, new_york) == prev_day.transit
    #strictly before
    assert previous_sunrise(result.sunrise, new_york) == prev_day.sunrise
    assert previous_sunset(result.sunset, new_york) == prev_day.sunset
    assert previous_solar_noon(result.transit, new_york) == prev_day.transit

def test_events_bracket(new_york, ny_days):
    _, result, _ = ny_days
    now = result.transit + 3*HOUR
    for nxt, prev in ((next_sunrise, previous_sunrise), (next_sunset, previous_sunset), (solar_noon, previous_solar_noon)):
        assert prev(now, new_york) < now < nxt(now, new_york)

def test_events_from_date(london, new_york):
    day = datetime.date(2020, 6, 21)
    result = transit_sunrise_sunset(day, london)
    prev_day = transit_sunrise_sunset(day - datetime.timedelta(days=1), london)
    #a date is its UTC midnight
    assert next_sunrise(day, london) == result.sunrise
    assert next_sunset(day, london) == result.sunset
    assert solar_noon(day, london) == result.transit
    assert next_sunrise(datetime.datetime(2020, 6, 21), london) == result.sunrise
    assert previous_sunrise(day, london) == prev_day.sunrise
    assert previous_sunset(day, london) == prev_day.sunset
    assert previous_solar_noon(day, london) == prev_day.transit
    #in New York the sunset of June 20 falls after midnight UTC on June 21
    ny_20 = transit_sunrise_sunset(day - datetime.timedelta(days=1), new_york)
    ny_19 = transit_sunrise_sunset(day - datetime.timedelta(days=2), new_york)
    assert next_sunset(day, new_york) == ny_20.sunset
    assert previous_sunset(day, new_york) == ny_19.sunset

def test_events_aware(new_york, ny_days):
    _, result, _ = ny_days
    ny_tz = pytz.timezone('America/New_York')
    utc_before = pytz.utc.localize(result.sunrise - HOUR)
    sunrise = next_sunrise(utc_before.astimezone(ny_tz), new_york)
    assert sunrise.tzinfo.zone == 'America/New_York'
    assert sunrise.astimezone(pytz.utc).replace(tzinfo=None) == result.sunrise
    utc_after = pytz.utc.localize(result.sunrise + HOUR)
    sunrise = previous_sunrise(utc_after.astimezone(ny_tz), new_york)
    assert sunrise.tzinfo.zone == 'America/New_York'
    assert sunrise.astimezone(pytz.utc).replace(tzinfo=None) == result.sunrise

def test_events_datetime64(new_york, ny_days):
    _, result, _ = ny_days
    sunrise = next_sunrise(np.datetime64(result.sunrise - HOUR), new_york)
    assert isinstance(sunrise, np.datetime64)
    assert sunrise == np.datetime64(result.sunrise)

def test_events_skip_polar_night(svalbard):
    with pytest.warns(PolarDayNightWarning, match='polar night'):
        sunrise = next_sunrise(datetime.date(2025, 1, 15), svalbard)
    #the sun returns to Longyearbyen in mid February
    assert sunrise.year == 2025 and sunrise.month == 2
    with pytest.warns(PolarDayNightWarning, match='polar night'):
        sunset = previous_sunset(datetime.date(2025, 1, 15), svalbard)
    assert sunset.year == 2024 and sunset.month in (10, 11)

def test_events_not_found(svalbard, monkeypatch):
    monkeypatch.setattr(solarposition, '_EVENT_SEARCH_DAYS', 5)
    with pytest.warns(PolarDayNightWarning):
        assert next_sunrise(datetime.date(2025, 1, 15), svalbard) is None
    with pytest.warns(PolarDayNightWarning):
        assert previous_solar_noon(datetime.date(2025, 6, 21), svalbard) is None
