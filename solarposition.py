# The MIT License (MIT)
# 
# Copyright (c) 2025 Samuel Bear Powell
# 
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
# 
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
# 
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

import sys, argparse, re, warnings
import numpy as np
import time,datetime
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

VERSION = '2.0.0'

_arg_parser = argparse.ArgumentParser(prog='solarposition',description='Compute the sun position and daily solar events given the time and location')
_arg_parser.add_argument('--version',action='version',version=f'%(prog)s {VERSION}')
_arg_parser.add_argument('--citation',action='store_true',help='Print citation information')
_arg_parser.add_argument('-t','--time',type=str,default='now',help='"now" or date and time in ISO8601 format or a (UTC) POSIX timestamp')
_arg_parser.add_argument('-lat','--latitude',type=float,default=51.48,help='observer latitude, in decimal degrees, positive for north')
_arg_parser.add_argument('-lon','--longitude',type=float,default=0.0,help='observer longitude, in decimal degrees, positive for east')
_arg_parser.add_argument('-alt','--altitude',type=float,default=0.0,help='observer altitude, in meters')
_arg_parser.add_argument('-T','--temperature',type=float,default=12.0,help='temperature, in degrees celcius')
_arg_parser.add_argument('-p','--pressure',type=float,default=101325.0,help='atmospheric pressure, in pascal')
_arg_parser.add_argument('-a','--atmos_refract',type=float,default=0.5667,help='atmospheric refraction at sunrise and sunset, in degrees')
_arg_parser.add_argument('-dt',type=float,default=None,help='difference between terrestrial time (TT) and universal time (UT), in seconds. Estimated from the date if omitted')
_arg_parser.add_argument('--no-refraction',dest='no_refraction',action='store_true',help='Do not apply the atmospheric refraction correction')
_arg_parser.add_argument('--rts',action='store_true',help='Also compute the sun transit, sunrise, and sunset times for the UTC day')
_arg_parser.add_argument('--csv',action='store_true',help='Comma separated values (time,dt,lat,lon,alt,temp,pressure,az,el,zen[,app_el,app_zen,eot][,transit,sunrise,sunset])')

def main(args=None, **kwargs):
    """Run solarposition command-line tool.

    If run without arguments, uses sys.argv, otherwise arguments may be
    specified by a list of strings to be parsed, e.g.:
        main(['--time','now'])
    or as keyword arguments:
        main(time='now')
    or as an argparse.Namespace object (as produced by argparse.ArgumentParser)

    Parameters
    ----------
    args : list of str or argparse.Namespace, optional
        Command-line arguments. sys.argv is used if not provided.
    version : bool
        If true, print the version information and quit
    citation : bool
        If true, print citation information and quit
    time : str
        "now" or date and time in ISO8601 format or a UTC POSIX timestamp
    latitude : float
        observer latitude in decimal degrees, positive for north
    longitude : float
        observer longitude in decimal degrees, positive for east
    altitude : float
        observer altitude in meters
    temperature : float
        temperature, in degrees celcius
    pressure : float
        atmospheric pressure, in pascal
    atmos_refract : float
        atmospheric refraction at sunrise and sunset, in degrees
    dt : float or None
        difference between terrestrial time (TT) and universal time (UT), estimated if None
    no_refraction : bool
        If True, skip the refraction correction and the equation of time
    rts : bool
        If True, also print the transit, sunrise, and sunset times
    csv : bool
        If True, output as comma separated values
    """
    if args is None and not kwargs:
        args = _arg_parser.parse_args()
    elif args is None:
        args = _arg_parser.parse_args([])
    elif isinstance(args,(list,tuple)):
        args = _arg_parser.parse_args(args)

    for kw in kwargs:
        setattr(args,kw,kwargs[kw])

    if args.citation:
        print("Algorithm:")
        print("  Ibrahim Reda, Afshin Andreas, \"Solar position algorithm for solar radiation applications\",")
        print("  Solar Energy, Volume 76, Issue 5, 2004, Pages 577-589, ISSN 0038-092X,")
        print("  doi:10.1016/j.solener.2003.12.003")
        print("Delta T:")
        print("  Polynomial expressions for Delta T, F. Espenak and J. Meeus, NASA Eclipse Web Site,")
        print("  based on L. V. Morrison and F. R. Stephenson (2004)")
        return 0

    t = _string_to_posix_time(args.time)
    dt = args.dt
    if dt is None:
        dt = delta_t_for(t)
    observer = Observer(args.latitude, args.longitude, args.altitude)
    params = SPAParams(dt, args.pressure, args.temperature, args.atmos_refract)
    refraction = None if args.no_refraction else 'spa'

    pos = solar_position(t, observer, params, refraction=refraction)
    rts = transit_sunrise_sunset(t, observer, params) if args.rts else None

    lat, lon, alt = observer.latitude, observer.longitude, observer.altitude
    temp, p = params.temperature, params.pressure
    if args.csv:
        #machine readable
        fields = [f'{t}', f'{dt}', f'{lat}', f'{lon}', f'{alt}', f'{temp}', f'{p}']
        fields += [f'{v:0.6f}' for v in pos]
        if rts is not None:
            fields += [np.datetime_as_string(v) + 'Z' for v in rts]
        print(', '.join(fields))
    else:
        ts = _posix_time_to_string(t)
        print(f"Computing sun position at T = {ts} + {dt:0.3f} s")
        print(f"Lat, Lon, Alt = {lat} deg, {lon} deg, {alt} m")
        print(f"T, P = {temp} C, {p} Pa")
        print("Results:")
        print(f"Azimuth, elevation, zenith = {pos.azimuth:0.6f} deg, {pos.elevation:0.6f} deg, {pos.zenith:0.6f} deg")
        if refraction is not None:
            print(f"Apparent elevation, zenith = {pos.apparent_elevation:0.6f} deg, {pos.apparent_zenith:0.6f} deg")
            print(f"Equation of time = {pos.equation_of_time:0.6f} min")
        if rts is not None:
            transit, sunrise, sunset = (np.datetime_as_string(v) + 'Z' for v in rts)
            print(f"Transit, sunrise, sunset = {transit}, {sunrise}, {sunset}")

    return 0

## Warnings
# Problems that do not prevent a result are reported through the warnings module.
# Callers pick the reporting policy with warnings filters, e.g.
#   warnings.simplefilter('once', SolarPositionWarning)

class SolarPositionWarning(UserWarning):
    """Base class for all warnings issued by this module"""

class PoleWarning(SolarPositionWarning):
    """The observer is at (or numerically at) one of the poles, where azimuth is undefined"""

class DeltaTWarning(SolarPositionWarning):
    """Delta T is extrapolated outside of the range of the polynomial expressions"""

class PolarDayNightWarning(SolarPositionWarning):
    """The sun does not rise or set on the requested day"""

class RefractionWarning(SolarPositionWarning):
    """A refraction model other than SPA's own was requested"""

## Data types

@dataclass(frozen=True)
class Observer:
    """Location of an observer on the WGS-84 ellipsoid

    Parameters
    ----------
    latitude : float
        decimal degrees, positive for north of the equator
    longitude : float
        decimal degrees, positive for east of Greenwich
    altitude : float, optional
        meters, default 0

    The terms of the parallax correction that depend only on the location are computed once,
    at construction.
    """
    latitude: float
    longitude: float
    altitude: float = 0.0
    latitude_rad: float = field(init=False, repr=False, compare=False)
    sin_lat: float = field(init=False, repr=False, compare=False)
    cos_lat: float = field(init=False, repr=False, compare=False)
    u: float = field(init=False, repr=False, compare=False)
    x: float = field(init=False, repr=False, compare=False)
    y: float = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        lat, lon, alt = float(self.latitude), float(self.longitude), float(self.altitude)
        #comparisons with NaN are False, so NaN passes through to the results
        if lat < -90 or lat > 90:
            raise ValueError(f'Latitude must be between -90 and 90 degrees, got {lat}')
        if lon < -180 or lon > 360:
            raise ValueError(f'Longitude must be between -180 and 360 degrees, got {lon}')
        if abs(abs(lat) - 90) < _POLE_TOLERANCE:
            warnings.warn(f'Latitude is {90 if lat > 0 else -90}: the sun azimuth is not well defined at the poles',
                          PoleWarning, stacklevel=3)
        phi = np.deg2rad(lat)
        #rho = distance from center of earth in units of the equatorial radius
        #NB: These equations look like they're based on WGS-84, but are rounded slightly
        # The WGS-84 reference ellipsoid has major axis a = 6378137 m, and flattening factor 1/f = 298.257223563
        # minor axis b = a*(1-f) = 6356752.3142 = 0.996647189335*a
        u = np.arctan(0.99664719*np.tan(phi)) #reduced latitude
        x = np.cos(u) + alt*np.cos(phi)/6378140 #rho cos(phi-prime)
        y = 0.99664719*np.sin(u) + alt*np.sin(phi)/6378140 #rho sin(phi-prime)
        for name, value in (('latitude', lat), ('longitude', lon), ('altitude', alt),
                            ('latitude_rad', phi), ('sin_lat', np.sin(phi)), ('cos_lat', np.cos(phi)),
                            ('u', u), ('x', x), ('y', y)):
            object.__setattr__(self, name, float(value))

_POLE_TOLERANCE = 1e-4

class SPAParams(NamedTuple):
    """Atmospheric and time-scale parameters of the solar position algorithm

    delta_t : float or None
        TT - UT in seconds, None to estimate it from the date
    pressure : float
        annual average local pressure, in pascal
    temperature : float
        annual average local temperature, in degrees celcius
    atmos_refract : float
        atmospheric refraction at sunrise and sunset, in degrees
    """
    delta_t: Optional[float] = 67.0
    pressure: float = 101325.0
    temperature: float = 12.0
    atmos_refract: float = 0.5667

class SolPos(NamedTuple):
    """Topocentric sun position, in degrees. Azimuth is measured eastward from north"""
    azimuth: float
    elevation: float
    zenith: float

class ApparentSolPos(NamedTuple):
    """Topocentric sun position with the apparent (refracted) elevation and zenith, in degrees"""
    azimuth: float
    elevation: float
    zenith: float
    apparent_elevation: float
    apparent_zenith: float

class SPASolPos(NamedTuple):
    """Full SPA result: position in degrees and the equation of time in minutes"""
    azimuth: float
    elevation: float
    zenith: float
    apparent_elevation: float
    apparent_zenith: float
    equation_of_time: float

class TransitSunriseSunset(NamedTuple):
    transit: object
    sunrise: object
    sunset: object

## Dates and times
# this application has unusual date/time requirements that are not supported by
# Python's time or datetime libraries. Specifically:
# 1. The subroutines use Julian days to represent time
# 2. The algorithm supports dates from year -2000 to 6000 (datetime supports years 1-9999)

# For that reason, we will use our own date & time codes
# We use the algorithms in "Euclidean affine functions and their application to calendar algorithms" C. Neri, L. Schneider (2022) https://doi.org/10.1002/spe.3172
#  to convert between rata die (day number since epoch) and Gregorian (year, month, day)
# We need to be able to convert the following to POSIX timestamps and Julian days:
#  datetime.datetime, datetime.date
#  numpy.datetime64
#  int/float POSIX timestamp
#  ISO8601 string

# the calendar is shifted by s*400 years so that all intermediate values are non-negative
_RD_S = 82
_RD_K = 719468 + 146097 * _RD_S
_RD_L = 400 * _RD_S

def _date_to_rd(year, month, day):
    '''Convert year, month, day to rata die (day number, 0 = 1970-01-01)
    Based on the algorithm in: "Euclidean affine functions and their application to calendar algorithms" C. Neri, L. Schneider (2022) https://doi.org/10.1002/spe.3172
    day may be fractional, fractional part is added to return value
    '''
    D_G = int(day)
    tod = day - D_G #split fractional part
    J = 1 if month <= 2 else 0
    Y = int(year) + _RD_L - J
    M = month + 12 if J else month
    D = D_G - 1
    C = Y // 100
    # Rata die.
    y_star = 1461 * Y // 4 - C + C // 4
    m_star = (979 * M - 2919) // 32
    N = y_star + m_star + D
    # Rata die shift.
    return N - _RD_K + tod

def _date_to_posix_time(year, month, day):
    return _date_to_rd(year, month, day)*86400 # rata die (fractional day number) x 86400 seconds per day

def _rd_to_date(rd):
    '''convert rata die (day number) to year, month, day
    "Euclidean affine functions and their application to calendar algorithms" C. Neri, L. Schneider (2022) https://doi.org/10.1002/spe.3172
    the fractional part of rd is added to the day
    '''
    N_U = int(np.floor(rd))
    tod = rd - N_U #split fractional part
    N = N_U + _RD_K
    # Century.
    C, N_C = divmod(4 * N + 3, 146097)
    N_C //= 4
    # Year.
    Z, N_Y = divmod(2939745 * (4 * N_C + 3), 4294967296)
    N_Y = N_Y // 2939745 // 4
    Y = 100 * C + Z
    # Month and day.
    M, D = divmod(2141 * N_Y + 197913, 65536)
    D //= 2141
    # Map. (Notice the year correction.)
    J = 1 if N_Y >= 306 else 0
    Y_G = Y - _RD_L + J
    M_G = M - 12 if J else M
    D_G = D + 1
    return (Y_G, M_G, D_G + tod)

def _posix_time_to_date(t):
    '''POSIX timestamp to (year, month, day)'''
    return _rd_to_date(t/86400) # (timestamp in seconds)/86400 -> rata die (fractional day number)

def _days_in_month(year, month):
    if month == 12:
        return 31
    return int(_date_to_rd(year, month + 1, 1) - _date_to_rd(year, month, 1))

_iso8601_re = re.compile(r'([+-]?\d{1,4})-?([01]\d)-?([0-3]\d)(?:[T ]([012]\d):?([0-6]\d)(?::?([0-6]\d(?:\.\d+)?))?)?(?:Z|(?:([+-]\d{2})(?::?(\d{2}))?))?')
def _string_to_posix_time(s):
    '''parse timestamp string to posix time, assumes UTC if timezone is not specified
    strings may be:
     - "now" -- which gets the current time
     - POSIX timestamp string
     - ISO 8601 formatted string (including negative years), the time of day is optional
    '''
    s = str(s).strip()
    if s == 'now':
        return time.time()
    try:
        return float(s)
    except ValueError:
        pass
    m = _iso8601_re.fullmatch(s)
    if not m:
        raise ValueError(f'Could not parse timestamp string {s!r} (must be "now" or float or ISO8601)')
    year,month,day,hour,minute,second,tz_hour,tz_minute = m.groups()
    year, month, day = int(year),int(month),int(day)
    hour, minute = int(hour or 0), int(minute or 0)
    second = float(second or 0)
    tz_hour, tz_minute = int(tz_hour or 0), int(tz_minute or 0)
    if tz_hour < 0 or (tz_hour == 0 and m.group(7) and m.group(7)[0] == '-'):
        tz = tz_hour - tz_minute/60 # timezone offset, in hours
    else:
        tz = tz_hour + tz_minute/60 # timezone offset, in hours
    rd = _date_to_rd(year, month, day) #to rata die
    #validate the date using _rd_to_date(_date_to_rd()) round trip
    if _rd_to_date(rd) != (year, month, day):
        raise ValueError(f'Invalid date in {s!r}')
    if hour > 23 or minute > 59 or second >= 60:
        raise ValueError(f'Invalid time in {s!r}')
    # UTC offsets vary from -12:00 (US Minor Outlying Islands) to +14:00 (Kiribati)
    if tz_minute > 59 or tz < -12 or tz > 14:
        raise ValueError(f'Invalid timezone in {s!r}')
    return 86400*rd + 3600*hour + 60*minute + second - 3600*tz

def _posix_time_to_string(t):
    '''Format a POSIX timestamp as ISO8601 with millisecond precision'''
    #we need our own because datetime.datetime.fromtimestamp() doesn't support dates before epoch
    year, month, fday = _posix_time_to_date(t)
    day = int(fday)
    ms = round((fday - day)*86400000) #milliseconds into the day
    hour, ms = divmod(ms, 3600000) #hour, ms into the hour
    minute, ms = divmod(ms, 60000) #minute, ms into the minute
    sec, ms = divmod(ms, 1000) #second, millisecond
    return f'{year:04}-{month:02}-{day:02}T{hour:02}:{minute:02}:{sec:02}.{ms:03}Z'

_string_to_posix_time_v = np.vectorize(_string_to_posix_time, otypes=[float])

def _get_timestamp(dt):
    '''get the POSIX timestamp of a single date/time object. Naive datetimes are UTC'''
    if isinstance(dt, datetime.datetime):
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt.timestamp()
    if isinstance(dt, datetime.date):
        return float(_date_to_posix_time(dt.year, dt.month, dt.day))
    if isinstance(dt, str):
        return _string_to_posix_time(dt)
    if isinstance(dt, np.datetime64):
        if np.isnat(dt):
            return np.nan
        return dt.astype('datetime64[us]').astype(np.int64)/1e6
    return float(dt)

_get_timestamp_v = np.vectorize(_get_timestamp, otypes=[float])

def to_timestamp(dt):
    '''Convert various date/time formats to POSIX timestamps

    Parameters
    ----------
    dt : array_like of datetime.datetime, datetime.date, numpy.datetime64, ISO8601 strings, or float
        date/times to convert to POSIX timestamps. Naive datetimes are taken to be UTC.

    Returns
    -------
    t : ndarray
        dt converted to POSIX timestamps (seconds since 1970-01-01T00:00:00Z)
    '''
    dt = np.asarray(dt)

    if np.issubdtype(dt.dtype, np.str_):
        t = _string_to_posix_time_v(dt)
    elif dt.dtype == object:
        t = _get_timestamp_v(dt)
    elif np.issubdtype(dt.dtype, np.datetime64):
        #NaT is a missing time, not the most negative int64
        t = np.where(np.isnat(dt), np.nan, dt.astype('datetime64[us]').astype(np.int64)/1e6)
    else:
        t = dt.astype(float)
    return t[()] #unwrap scalar values out of np.array

def _julian_day(t):
    """Calculate the Julian Day from posix timestamp (seconds since epoch)"""
    # 1970-01-01T00:00:00Z is JD 2440587.5 on the proleptic Gregorian calendar
    return t / 86400.0 + 2440587.5

def julian_day(dt):
    """Convert timestamps from various formats to Julian days

    Parameters
    ----------
    dt : array_like
        datetime.datetime, numpy.datetime64, ISO8601 strings, or POSIX timestamps (float or int)

    Returns
    -------
    jd : ndarray
        datetimes converted to fractional Julian days
    """
    jd = _julian_day(np.asarray(to_timestamp(dt)))
    return jd[()] # use [()] to "unwrap" scalar values out of np.array

def _julian_ephemeris_day(jd, deltat):
    """Calculate the Julian Ephemeris Day from the Julian Day and delta-time = (terrestrial time - universal time) in seconds"""
    return jd + deltat / 86400.0

def _julian_century(jd):
    """Caluclate the Julian Century from Julian Day or Julian Ephemeris Day"""
    return (jd - 2451545.0) / 36525.0

def _julian_millennium(jc):
    """Calculate the Julian Millennium from Julian Ephemeris Century"""
    return jc / 10.0

## Delta T
# Polynomial expressions for Delta T = TT - UT by F. Espenak and J. Meeus,
# from the historical record and the Morrison & Stephenson (2004) long-term parabola.
# Each range holds for lower <= year < upper and is a polynomial in u = (y - offset)/scale,
# where y = year + (month - 0.5)/12. Coefficients are highest order first, for np.polyval.
_DELTAT_TABLE = (
    (-np.inf, -500.0, 1820.0, 100.0, np.array([32.0, 0.0, -20.0])),
    (-500.0, 500.0, 0.0, 100.0, np.array([0.0090316521, 0.022174192, -0.1798452, -5.952053, 33.78311, -1014.41, 10583.6])),
    (500.0, 1600.0, 1000.0, 100.0, np.array([0.0083572073, -0.005050998, -0.8503463, 0.319781, 71.23472, -556.01, 1574.2])),
    (1600.0, 1700.0, 1600.0, 1.0, np.array([1/7129, -0.01532, -0.9808, 120.0])),
    (1700.0, 1800.0, 1700.0, 1.0, np.array([-1/1174000, 0.00013336, -0.0059285, 0.1603, 8.83])),
    (1800.0, 1860.0, 1800.0, 1.0, np.array([0.000000000875, -0.0000001699, 0.0000121272, -0.00037436, 0.0041116, 0.0068612, -0.332447, 13.72])),
    (1860.0, 1900.0, 1860.0, 1.0, np.array([1/233174, -0.0004473624, 0.01680668, -0.251754, 0.5737, 7.62])),
    (1900.0, 1920.0, 1900.0, 1.0, np.array([-0.000197, 0.0061966, -0.0598939, 1.494119, -2.79])),
    (1920.0, 1941.0, 1920.0, 1.0, np.array([0.0020936, -0.076100, 0.84493, 21.20])),
    (1941.0, 1961.0, 1950.0, 1.0, np.array([1/2547, -1/233, 0.407, 29.07])),
    (1961.0, 1986.0, 1975.0, 1.0, np.array([-1/718, -1/260, 1.067, 45.45])),
    (1986.0, 2005.0, 2000.0, 1.0, np.array([0.00002373599, 0.000651814, 0.0017275, -0.060374, 0.3345, 63.86])),
    (2005.0, 2050.0, 2000.0, 1.0, np.array([0.005589, 0.32217, 62.92])),
    #-20 + 32*u**2 - 0.5628*(2150 - y), expanded in u
    (2050.0, 2150.0, 1820.0, 100.0, np.array([32.0, 56.28, -205.724])),
    (2150.0, np.inf, 1820.0, 100.0, np.array([32.0, 0.0, -20.0])),
)

def delta_t(year, month=1):
    """Estimate Delta T = TT - UT, in seconds, for the given year and month

    Parameters
    ----------
    year : int or float
    month : int or float, optional
        may be fractional, 1 = January

    Returns
    -------
    delta_t : float
        seconds

    Issues a DeltaTWarning for years before -1999 or after 3000, where the estimate is
    an extrapolation.
    """
    if year < -1999 or year > 3000:
        _warn_delta_t_year(year, stacklevel=3)
    return _delta_t(year, month)

def _warn_delta_t_year(year, stacklevel):
    warnings.warn(f'Delta T is not well defined for year {year}: extrapolating outside of -1999 to 3000',
                  DeltaTWarning, stacklevel=stacklevel)

def _delta_t(year, month):
    y = year + (month - 0.5)/12
    for lower, upper, offset, scale, coeffs in _DELTAT_TABLE:
        if lower <= year < upper:
            return float(np.polyval(coeffs, (y - offset)/scale))
    raise RuntimeError(f'No Delta T expression covers year {year}')

def _delta_t_at(t):
    '''Delta T estimate at a POSIX timestamp, with the month made fractional by the day'''
    if not np.isfinite(t):
        return np.nan
    year, month, fday = _posix_time_to_date(t)
    day = int(fday)
    return _delta_t(year, month + (day - 1)/_days_in_month(year, month))

#valid range of the Delta T expressions, as POSIX times
_DELTAT_T_MIN = _date_to_posix_time(-1999, 1, 1)
_DELTAT_T_MAX = _date_to_posix_time(3001, 1, 1)

def _check_delta_t_range(t, stacklevel):
    '''Issue a DeltaTWarning for the first time outside the valid range.
    stacklevel counts from the function calling this one, as for warnings.warn
    '''
    t = np.asarray(t, dtype=float)
    outside = (t < _DELTAT_T_MIN) | (t >= _DELTAT_T_MAX)
    if np.any(outside):
        year = _posix_time_to_date(t[outside].flat[0])[0]
        _warn_delta_t_year(year, stacklevel + 2)

_delta_t_at_v = np.vectorize(_delta_t_at, otypes=[float])

def delta_t_for(dt):
    """Estimate Delta T = TT - UT, in seconds, at the given date/time(s)

    Parameters
    ----------
    dt : array_like
        datetime.datetime, datetime.date, numpy.datetime64, ISO8601 strings, or POSIX timestamps

    Returns
    -------
    delta_t : float or ndarray
    """
    t = to_timestamp(dt)
    _check_delta_t_range(t, stacklevel=2)
    return _delta_t_at_v(t)[()]

## Earth heliocentric position

def _cos_sum(x, coeffs):
    '''sum of A*cos(B + C*x) for each table of (A, B, C) rows in coeffs'''
    return np.array([np.sum(abc[:,0]*np.cos(abc[:,1] + abc[:,2]*x)) for abc in coeffs])

# Earth Heliocentric Longitude coefficients (L0, L1, L2, L3, L4, and L5 in paper)
_EHL = (
    #L5:
    np.array([(1.0, 3.14, 0.0)]),
    #L4:
    np.array([(114.0, 3.142, 0.0), (8.0, 4.13, 6283.08), (1.0, 3.84, 12566.15)]),
    #L3:
    np.array([(289.0, 5.844, 6283.076), (35.0, 0.0, 0.0,), (17.0, 5.49, 12566.15),
    (3.0, 5.2, 155.42), (1.0, 4.72, 3.52), (1.0, 5.3, 18849.23),
    (1.0, 5.97, 242.73)]),
    #L2:
    np.array([(52919.0, 0.0, 0.0), (8720.0, 1.0721, 6283.0758), (309.0, 0.867, 12566.152),
    (27.0, 0.05, 3.52), (16.0, 5.19, 26.3), (16.0, 3.68, 155.42),
    (10.0, 0.76, 18849.23), (9.0, 2.06, 77713.77), (7.0, 0.83, 775.52),
    (5.0, 4.66, 1577.34), (4.0, 1.03, 7.11), (4.0, 3.44, 5573.14),
    (3.0, 5.14, 796.3), (3.0, 6.05, 5507.55), (3.0, 1.19, 242.73),
    (3.0, 6.12, 529.69), (3.0, 0.31, 398.15), (3.0, 2.28, 553.57),
    (2.0, 4.38, 5223.69), (2.0, 3.75, 0.98)]),
    #L1:
    np.array([(628331966747.0, 0.0, 0.0), (206059.0, 2.678235, 6283.07585), (4303.0, 2.6351, 12566.1517),
    (425.0, 1.59, 3.523), (119.0, 5.796, 26.298), (109.0, 2.966, 1577.344),
    (93.0, 2.59, 18849.23), (72.0, 1.14, 529.69), (68.0, 1.87, 398.15),
    (67.0, 4.41, 5507.55), (59.0, 2.89, 5223.69), (56.0, 2.17, 155.42),
    (45.0, 0.4, 796.3), (36.0, 0.47, 775.52), (29.0, 2.65, 7.11),
    (21.0, 5.34, 0.98), (19.0, 1.85, 5486.78), (19.0, 4.97, 213.3),
    (17.0, 2.99, 6275.96), (16.0, 0.03, 2544.31), (16.0, 1.43, 2146.17),
    (15.0, 1.21, 10977.08), (12.0, 2.83, 1748.02), (12.0, 3.26, 5088.63),
    (12.0, 5.27, 1194.45), (12.0, 2.08, 4694), (11.0, 0.77, 553.57),
    (10.0, 1.3, 6286.6), (10.0, 4.24, 1349.87), (9.0, 2.7, 242.73),
    (9.0, 5.64, 951.72), (8.0, 5.3, 2352.87), (6.0, 2.65, 9437.76),
    (6.0, 4.67, 4690.48)]),
    #L0:
    np.array([(175347046.0, 0.0, 0.0), (3341656.0, 4.6692568, 6283.07585), (34894.0, 4.6261, 12566.1517),
    (3497.0, 2.7441, 5753.3849), (3418.0, 2.8289, 3.5231), (3136.0, 3.6277, 77713.7715),
    (2676.0, 4.4181, 7860.4194), (2343.0, 6.1352, 3930.2097), (1324.0, 0.7425, 11506.7698),
    (1273.0, 2.0371, 529.691), (1199.0, 1.1096, 1577.3435), (990.0, 5.233, 5884.927),
    (902.0, 2.045, 26.298), (857.0, 3.508, 398.149), (780.0, 1.179, 5223.694),
    (753.0, 2.533, 5507.553), (505.0, 4.583, 18849.228), (492.0, 4.205, 775.523),
    (357.0, 2.92, 0.067), (317.0, 5.849, 11790.629), (284.0, 1.899, 796.298),
    (271.0, 0.315, 10977.079), (243.0, 0.345, 5486.778), (206.0, 4.806, 2544.314),
    (205.0, 1.869, 5573.143), (202.0, 2.458, 6069.777), (156.0, 0.833, 213.299),
    (132.0, 3.411, 2942.463), (126.0, 1.083, 20.775), (115.0, 0.645, 0.98),
    (103.0, 0.636, 4694.003), (102.0, 0.976, 15720.839), (102.0, 4.267, 7.114),
    (99.0, 6.21, 2146.17), (98.0, 0.68, 155.42), (86.0, 5.98, 161000.69),
    (85.0, 1.3, 6275.96), (85.0, 3.67, 71430.7), (80.0, 1.81, 17260.15),
    (79.0, 3.04, 12036.46), (75.0, 1.76, 5088.63), (74.0, 3.5, 3154.69),
    (74.0, 4.68, 801.82), (70.0, 0.83, 9437.76), (62.0, 3.98, 8827.39),
    (61.0, 1.82, 7084.9), (57.0, 2.78, 6286.6), (56.0, 4.39, 14143.5),
    (56.0, 3.47, 6279.55), (52.0, 0.19, 12139.55), (52.0, 1.33, 1748.02),
    (51.0, 0.28, 5856.48), (49.0, 0.49, 1194.45), (41.0, 5.37, 8429.24),
    (41.0, 2.4, 19651.05), (39.0, 6.17, 10447.39), (37.0, 6.04, 10213.29),
    (37.0, 2.57, 1059.38), (36.0, 1.71, 2352.87), (36.0, 1.78, 6812.77),
    (33.0, 0.59, 17789.85), (30.0, 0.44, 83996.85), (30.0, 2.74, 1349.87),
    (25.0, 3.16, 4690.48)])
)

def _heliocentric_longitude(jme):
    """Compute the Earth Heliocentric Longitude (L) in degrees given the Julian Ephemeris Millennium"""
    #L5, ..., L0
    Li = _cos_sum(jme, _EHL)
    L = np.polyval(Li, jme) / 1e8
    L = np.rad2deg(L) % 360
    return L

#Earth Heliocentric Latitude coefficients (B0 and B1 in paper)
_EHB = ( 
    #B1:
    np.array([(9.0, 3.9, 5507.55), (6.0, 1.73, 5223.69)]),
    #B0:
    np.array([(280.0, 3.199, 84334.662), (102.0, 5.422, 5507.553), (80.0, 3.88, 5223.69),
    (44.0, 3.7, 2352.87), (32.0, 4.0, 1577.34)])
)

def _heliocentric_latitude(jme):
    """Compute the Earth Heliocentric Latitude (B) in degrees given the Julian Ephemeris Millennium"""
    Bi = _cos_sum(jme, _EHB)
    B = np.polyval(Bi, jme) / 1e8
    return np.rad2deg(B)

#Earth Heliocentric Radius coefficients (R0, R1, R2, R3, R4)
_EHR = (
    #R4:
    np.array([(4.0, 2.56, 6283.08)]),
    #R3:
    np.array([(145.0, 4.273, 6283.076), (7.0, 3.92, 12566.15)]),
    #R2:
    np.array([(4359.0, 5.7846, 6283.0758), (124.0, 5.579, 12566.152), (12.0, 3.14, 0.0),
    (9.0, 3.63, 77713.77), (6.0, 1.87, 5573.14), (3.0, 5.47, 18849.23)]),
    #R1:
    np.array([(103019.0, 1.10749, 6283.07585), (1721.0, 1.0644, 12566.1517), (702.0, 3.142, 0.0),
    (32.0, 1.02, 18849.23), (31.0, 2.84, 5507.55), (25.0, 1.32, 5223.69),
    (18.0, 1.42, 1577.34), (10.0, 5.91, 10977.08), (9.0, 1.42, 6275.96),
    (9.0, 0.27, 5486.78)]),
    #R0:
    np.array([(100013989.0, 0.0, 0.0), (1670700.0, 3.0984635, 6283.07585), (13956.0, 3.05525, 12566.1517),
    (3084.0, 5.1985, 77713.7715), (1628.0, 1.1739, 5753.3849), (1576.0, 2.8469, 7860.4194),
    (925.0, 5.453, 11506.77), (542.0, 4.564, 3930.21), (472.0, 3.661, 5884.927),
    (346.0, 0.964, 5507.553), (329.0, 5.9, 5223.694), (307.0, 0.299, 5573.143),
    (243.0, 4.273, 11790.629), (212.0, 5.847, 1577.344), (186.0, 5.022, 10977.079),
    (175.0, 3.012, 18849.228), (110.0, 5.055, 5486.778), (98.0, 0.89, 6069.78),
    (86.0, 5.69, 15720.84), (86.0, 1.27, 161000.69), (65.0, 0.27, 17260.15),
    (63.0, 0.92, 529.69), (57.0, 2.01, 83996.85), (56.0, 5.24, 71430.7),
    (49.0, 3.25, 2544.31), (47.0, 2.58, 775.52), (45.0, 5.54, 9437.76),
    (43.0, 6.01, 6275.96), (39.0, 5.36, 4694), (38.0, 2.39, 8827.39),
    (37.0, 0.83, 19651.05), (37.0, 4.9, 12139.55), (36.0, 1.67, 12036.46),
    (35.0, 1.84, 2942.46), (33.0, 0.24, 7084.9), (32.0, 0.18, 5088.63),
    (32.0, 1.78, 398.15), (28.0, 1.21, 6286.6), (28.0, 1.9, 6279.55),
    (26.0, 4.59, 10447.39)])
)

def _heliocentric_radius(jme):
    """Compute the Earth Heliocentric Radius (R) in astronomical units given the Julian Ephemeris Millennium"""
    Ri = _cos_sum(jme, _EHR)
    R = np.polyval(Ri, jme) / 1e8
    return R

def _heliocentric_position(jme):
    """Compute the Earth Heliocentric Longitude, Latitude, and Radius given the Julian Ephemeris Millennium
        Returns (L, B, R) where L = longitude in degrees, B = latitude in degrees, and R = radius in astronomical units
    """
    return _heliocentric_longitude(jme), _heliocentric_latitude(jme), _heliocentric_radius(jme)

def _geocentric_position(helio_pos):
    """Compute the geocentric longitude (Theta) and latitude (beta) (in degrees) of the sun given the earth's heliocentric position (L, B, R)"""
    L,B,R = helio_pos
    th = (L + 180) % 360
    b = -B
    return (th, b)

## Nutation and obliquity

#Nutation Longitude and Obliquity coefficients (Y)
_NLO_Y = np.array([(0.0,   0.0,   0.0,   0.0,   1.0), (-2.0,  0.0,   0.0,   2.0,   2.0), (0.0,   0.0,   0.0,   2.0,   2.0),
        (0.0,   0.0,   0.0,   0.0,   2.0), (0.0,   1.0,   0.0,   0.0,   0.0), (0.0,   0.0,   1.0,   0.0,   0.0),
        (-2.0,  1.0,   0.0,   2.0,   2.0), (0.0,   0.0,   0.0,   2.0,   1.0), (0.0,   0.0,   1.0,   2.0,   2.0),
        (-2.0,  -1.0,  0.0,   2.0,   2.0), (-2.0,  0.0,   1.0,   0.0,   0.0), (-2.0,  0.0,   0.0,   2.0,   1.0),
        (0.0,   0.0,   -1.0,  2.0,   2.0), (2.0,   0.0,   0.0,   0.0,   0.0), (0.0,   0.0,   1.0,   0.0,   1.0),
        (2.0,   0.0,   -1.0,  2.0,   2.0), (0.0,   0.0,   -1.0,  0.0,   1.0), (0.0,   0.0,   1.0,   2.0,   1.0),
        (-2.0,  0.0,   2.0,   0.0,   0.0), (0.0,   0.0,   -2.0,  2.0,   1.0), (2.0,   0.0,   0.0,   2.0,   2.0),
        (0.0,   0.0,   2.0,   2.0,   2.0), (0.0,   0.0,   2.0,   0.0,   0.0), (-2.0,  0.0,   1.0,   2.0,   2.0),
        (0.0,   0.0,   0.0,   2.0,   0.0), (-2.0,  0.0,   0.0,   2.0,   0.0), (0.0,   0.0,   -1.0,  2.0,   1.0),
        (0.0,   2.0,   0.0,   0.0,   0.0), (2.0,   0.0,   -1.0,  0.0,   1.0), (-2.0,  2.0,   0.0,   2.0,   2.0),
        (0.0,   1.0,   0.0,   0.0,   1.0), (-2.0,  0.0,   1.0,   0.0,   1.0), (0.0,   -1.0,  0.0,   0.0,   1.0),
        (0.0,   0.0,   2.0,   -2.0,  0.0), (2.0,   0.0,   -1.0,  2.0,   1.0), (2.0,   0.0,   1.0,   2.0,   2.0),
        (0.0,   1.0,   0.0,   2.0,   2.0), (-2.0,  1.0,   1.0,   0.0,   0.0), (0.0,   -1.0,  0.0,   2.0,   2.0),
        (2.0,   0.0,   0.0,   2.0,   1.0), (2.0,   0.0,   1.0,   0.0,   0.0), (-2.0,  0.0,   2.0,   2.0,   2.0),
        (-2.0,  0.0,   1.0,   2.0,   1.0), (2.0,   0.0,   -2.0,  0.0,   1.0), (2.0,   0.0,   0.0,   0.0,   1.0),
        (0.0,   -1.0,  1.0,   0.0,   0.0), (-2.0,  -1.0,  0.0,   2.0,   1.0), (-2.0,  0.0,   0.0,   0.0,   1.0),
        (0.0,   0.0,   2.0,   2.0,   1.0), (-2.0,  0.0,   2.0,   0.0,   1.0), (-2.0,  1.0,   0.0,   2.0,   1.0),
        (0.0,   0.0,   1.0,   -2.0,  0.0), (-1.0,  0.0,   1.0,   0.0,   0.0), (-2.0,  1.0,   0.0,   0.0,   0.0),
        (1.0,   0.0,   0.0,   0.0,   0.0), (0.0,   0.0,   1.0,   2.0,   0.0), (0.0,   0.0,   -2.0,  2.0,   2.0),
        (-1.0,  -1.0,  1.0,   0.0,   0.0), (0.0,   1.0,   1.0,   0.0,   0.0), (0.0,   -1.0,  1.0,   2.0,   2.0),
        (2.0,   -1.0,  -1.0,  2.0,   2.0), (0.0,   0.0,   3.0,   2.0,   2.0), (2.0,   -1.0,  0.0,   2.0,   2.0)])

#Nutation Longitude and Obliquity coefficients (a,b)
_NLO_AB = np.array([(-171996.0, -174.2), (-13187.0, -1.6), (-2274.0, -0.2), (2062.0, 0.2), (1426.0, -3.4), (712.0, 0.1),
        (-517.0, 1.2), (-386.0, -0.4), (-301.0, 0.0), (217.0, -0.5), (-158.0, 0.0), (129.0, 0.1),
        (123.0, 0.0), (63.0,  0.0), (63.0,  0.1), (-59.0, 0.0), (-58.0, -0.1), (-51.0, 0.0),
        (48.0,  0.0), (46.0,  0.0), (-38.0, 0.0), (-31.0, 0.0), (29.0,  0.0), (29.0,  0.0),
        (26.0,  0.0), (-22.0, 0.0), (21.0,  0.0), (17.0,  -0.1), (16.0,  0.0), (-16.0, 0.1),
        (-15.0, 0.0), (-13.0, 0.0), (-12.0, 0.0), (11.0,  0.0), (-10.0, 0.0), (-8.0,  0.0),
        (7.0,   0.0), (-7.0,  0.0), (-7.0,  0.0), (-7.0,  0.0), (6.0,   0.0), (6.0,   0.0),
        (6.0,   0.0), (-6.0,  0.0), (-6.0,  0.0), (5.0,   0.0), (-5.0,  0.0), (-5.0,  0.0),
        (-5.0,  0.0), (4.0,   0.0), (4.0,   0.0), (4.0,   0.0), (-4.0,  0.0), (-4.0,  0.0),
        (-4.0,  0.0), (3.0,   0.0), (-3.0,  0.0), (-3.0,  0.0), (-3.0,  0.0), (-3.0,  0.0),
        (-3.0,  0.0), (-3.0,  0.0), (-3.0,  0.0)])
#Nutation Longitude and Obliquity coefficients (c,d)
_NLO_CD = np.array([(92025.0,   8.9), (5736.0,    -3.1), (977.0, -0.5), (-895.0,    0.5),
        (54.0,  -0.1), (-7.0,  0.0), (224.0, -0.6), (200.0, 0.0),
        (129.0, -0.1), (-95.0, 0.3), (0.0,   0.0), (-70.0, 0.0),
        (-53.0, 0.0), (0.0,   0.0), (-33.0, 0.0), (26.0,  0.0),
        (32.0,  0.0), (27.0,  0.0), (0.0,   0.0), (-24.0, 0.0),
        (16.0,  0.0), (13.0,  0.0), (0.0,   0.0), (-12.0, 0.0),
        (0.0,   0.0), (0.0,   0.0), (-10.0, 0.0), (0.0,   0.0),
        (-8.0,  0.0), (7.0,   0.0), (9.0,   0.0), (7.0,   0.0),
        (6.0,   0.0), (0.0,   0.0), (5.0,   0.0), (3.0,   0.0),
        (-3.0,  0.0), (0.0,   0.0), (3.0,   0.0), (3.0,   0.0),
        (0.0,   0.0), (-3.0,  0.0), (-3.0,  0.0), (3.0,   0.0),
        (3.0,   0.0), (0.0,   0.0), (3.0,   0.0), (3.0,   0.0),
        (3.0,   0.0), (0.0, 0.0), (0.0, 0.0), (0.0, 0.0),
        (0.0, 0.0), (0.0, 0.0), (0.0, 0.0), (0.0, 0.0),
        (0.0, 0.0), (0.0, 0.0), (0.0, 0.0), (0.0, 0.0),
        (0.0, 0.0), (0.0, 0.0), (0.0, 0.0)])

def _fundamental_arguments(jce):
    """The five arguments of the nutation series (x0..x4, in degrees) given the Julian Ephemeris Century"""
    #mean elongation of the moon from the sun
    x0 = np.polyval([1./189474, -0.0019142, 445267.111480, 297.85036], jce)
    #mean anomaly of the sun (Earth)
    x1 = np.polyval([-1/3e5, -0.0001603, 35999.050340, 357.52772], jce)
    #mean anomaly of the moon
    x2 = np.polyval([1./56250, 0.0086972, 477198.867398, 134.96298], jce)
    #moon's argument of latitude
    x3 = np.polyval([1./327270, -0.0036825, 483202.017538, 93.27191], jce)
    #longitude of the ascending node of the moon's mean orbit on the ecliptic,
    # measured from the mean equinox of the date
    x4 = np.polyval([1./45e4, 0.0020708, -1934.136261, 125.04452], jce)
    return np.array([x0, x1, x2, x3, x4])

def _nutation(jce, x):
    """compute the nutation in longitude (delta_psi) and obliquity (delta_epsilon), in degrees,
    given the Julian Ephemeris Century and the fundamental arguments"""
    arg = np.deg2rad(np.dot(_NLO_Y, x))
    a,b = _NLO_AB.T
    c,d = _NLO_CD.T
    dp = np.sum((a + b*jce)*np.sin(arg))/36e6
    de = np.sum((c + d*jce)*np.cos(arg))/36e6
    return dp, de

def _ecliptic_mean_obliquity(jme):
    """Mean obliquity of the ecliptic (epsilon0), in arc seconds, given the Julian Ephemeris Millennium"""
    u = jme/10
    eq24_coeffs = np.array([2.45, 5.79, 27.87, 7.12, -39.05, -249.67, -51.38, 1999.25, -1.55, -4680.93, 84381.448])
    return np.polyval(eq24_coeffs, u)

def _ecliptic_true_obliquity(epsilon0, delta_epsilon):
    """True obliquity of the ecliptic (epsilon, in degrees)"""
    return epsilon0/3600.0 + delta_epsilon

def _aberration_correction(R):
    """Calculate the aberration correction (delta_tau, in degrees) given the Earth Heliocentric Radius (in AU)"""
    return -20.4898/(3600*R)

## Geocentric position

def _apparent_sun_longitude(theta, delta_psi, delta_tau):
    """Calculate the apparent sun longitude (lambda, in degrees)"""
    return theta + delta_psi + delta_tau

def _greenwich_mean_sidereal_time(jd, jc):
    """mean sidereal time at greenwich (v0, in degrees)"""
    return (280.46061837 + 360.98564736629*(jd - 2451545) + 0.000387933*(jc**2) - (jc**3)/38710000) % 360

def _greenwich_sidereal_time(v0, delta_psi, epsilon):
    """Calculate the apparent Greenwich sidereal time (v, in degrees)"""
    return v0 + delta_psi*np.cos(np.deg2rad(epsilon))

def _sun_ra_decl(llambda, epsilon, beta):
    """Calculate the sun's geocentric right ascension (alpha, in degrees) and declination (delta, in degrees)"""
    l = np.deg2rad(llambda)
    e = np.deg2rad(epsilon)
    b = np.deg2rad(beta)
    alpha = np.arctan2(np.sin(l)*np.cos(e) - np.tan(b)*np.sin(e), np.cos(l)) #x1 / x2
    alpha = np.rad2deg(alpha) % 360
    delta = np.arcsin(np.sin(b)*np.cos(e) + np.cos(b)*np.sin(e)*np.sin(l))
    delta = np.rad2deg(delta)
    return alpha, delta

def _geocentric_values(jd, delta_t):
    '''The earth-centered stages of the algorithm, shared by the position and the rise/set calculations'''
    jde = _julian_ephemeris_day(jd, delta_t)
    jc = _julian_century(jd)
    jce = _julian_century(jde)
    jme = _julian_millennium(jce)
    L, B, R = _heliocentric_position(jme)
    theta, beta = _geocentric_position((L, B, R))
    x = _fundamental_arguments(jce)
    delta_psi, delta_epsilon = _nutation(jce, x)
    epsilon0 = _ecliptic_mean_obliquity(jme)
    epsilon = _ecliptic_true_obliquity(epsilon0, delta_epsilon)
    delta_tau = _aberration_correction(R)
    llambda = _apparent_sun_longitude(theta, delta_psi, delta_tau)
    v0 = _greenwich_mean_sidereal_time(jd, jc)
    v = _greenwich_sidereal_time(v0, delta_psi, epsilon)
    alpha, delta = _sun_ra_decl(llambda, epsilon, beta)
    return dict(
        julian_day=jd,
        julian_century=jc,
        julian_eph_day=jde,
        julian_eph_century=jce,
        julian_eph_millennium=jme,
        earth_helio_lon=L,
        earth_helio_lat=B,
        earth_rad=R,
        geo_lon=theta,
        geo_lat=beta,
        mean_elongation=x[0],
        mean_anomaly_sun=x[1],
        mean_anomaly_moon=x[2],
        arg_lat_moon=x[3],
        asc_lon_moon=x[4],
        nutation_lon=delta_psi,
        nutation_obliquity=delta_epsilon,
        ecliptic_mean_obliquity=epsilon0,
        ecliptic_obliquity=epsilon,
        aberration_correction=delta_tau,
        sun_lon=llambda,
        greenwich_mean_sidereal_t=v0,
        greenwich_sidereal_t=v,
        geo_right_asc=alpha,
        geo_decl=delta,
    )

## Topocentric position

def _sun_topo_ra_decl_hour(observer, alpha, delta, v, R):
    """Calculate the sun's topocentric right ascension (alpha'), declination (delta'), and hour angle (H')
    Also returns the observer hour angle H, the equatorial horizontal parallax xi, and the parallax in right ascension
    """
    x, y = observer.x, observer.y
    H = (v + observer.longitude - alpha) % 360 #observer local hour angle
    #equatorial horizontal parallax of the sun, in degrees
    xi = 8.794/(3600*R)
    Hr, dr, xir = np.deg2rad(H), np.deg2rad(delta), np.deg2rad(xi)

    dar = np.arctan2(-x*np.sin(xir)*np.sin(Hr), np.cos(dr)-x*np.sin(xir)*np.cos(Hr))
    delta_alpha = np.rad2deg(dar)

    alpha_prime = (alpha + delta_alpha) % 360
    delta_prime = np.rad2deg(np.arctan2((np.sin(dr) - y*np.sin(xir))*np.cos(dar), np.cos(dr) - x*np.sin(xir)*np.cos(Hr)))
    H_prime = H - delta_alpha

    return alpha_prime, delta_prime, H_prime, H, xi, delta_alpha

_SUN_RADIUS = 0.26667

def _sun_topo_elevation_azimuth(observer, delta_prime, H_prime):
    """Compute the sun's topocentric elevation (without refraction) and azimuth angles
    azimuth is measured eastward from north
    """
    sin_phi, cos_phi = observer.sin_lat, observer.cos_lat
    dr, Hr = np.deg2rad(delta_prime), np.deg2rad(H_prime)
    e0 = np.rad2deg(np.arcsin(sin_phi*np.sin(dr) + cos_phi*np.cos(dr)*np.cos(Hr)))
    gamma = np.rad2deg(np.arctan2(np.sin(Hr), np.cos(Hr)*sin_phi - np.tan(dr)*cos_phi)) % 360
    Phi = (gamma + 180) % 360 #azimuth from north
    return e0, Phi

def _atmospheric_refraction_correction(e0, pressure, temperature, atmos_refract):
    """Refraction correction (delta_e, in degrees) to the elevation e0
    pressure = average local pressure in Pa
    temperature = average local temperature in C
    """
    if e0 < -(_SUN_RADIUS + atmos_refract):
        #sun is below the horizon
        return 0.0
    tmp = np.deg2rad(e0 + 10.3/(e0+5.11))
    return (pressure/100/1010.0)*(283.0/(273+temperature))*(1.02/(60*np.tan(tmp)))

def _equation_of_time(jme, alpha, delta_psi, epsilon):
    """Equation of time (E, in minutes): apparent minus mean solar time"""
    #sun's mean longitude, in degrees
    M = np.polyval([-1/2000000, -1/15300, 1/49931, 0.03032028, 360007.6982779, 280.4664567], jme) % 360
    E = 4*((M - 0.0057183 - alpha + delta_psi*np.cos(np.deg2rad(epsilon))) % 360)
    #limit to the 20 minutes either side of zero
    if E > 20:
        E -= 1440
    elif E < -20:
        E += 1440
    return E

def _intermediate_values(t, observer, delta_t, pressure=101325.0, temperature=12.0, atmos_refract=0.5667):
    '''Every intermediate quantity of the algorithm at POSIX time t, as a dict (all angles in degrees)'''
    iv = _geocentric_values(_julian_day(t), delta_t)
    alpha_p, delta_p, H_p, H, xi, delta_alpha = _sun_topo_ra_decl_hour(
        observer, iv['geo_right_asc'], iv['geo_decl'], iv['greenwich_sidereal_t'], iv['earth_rad'])
    e0, azimuth = _sun_topo_elevation_azimuth(observer, delta_p, H_p)
    delta_e = _atmospheric_refraction_correction(e0, pressure, temperature, atmos_refract)
    e = e0 + delta_e
    eot = _equation_of_time(iv['julian_eph_millennium'], iv['geo_right_asc'], iv['nutation_lon'], iv['ecliptic_obliquity'])
    iv.update(
        observer_hour=H,
        sun_horizontal_parallax=xi,
        sun_right_asc_parallax=delta_alpha,
        topo_right_asc=alpha_p,
        topo_decl=delta_p,
        topo_hour=H_p,
        topo_elevation_uncorrected=e0,
        topo_zenith_uncorrected=90 - e0,
        atmos_refract=delta_e,
        topo_elevation=e,
        topo_zenith=90 - e,
        topo_azimuth=azimuth,
        eq_of_t=eot,
    )
    return iv

def _sunpos(t, delta_t, observer, pressure, temperature, atmos_refract):
    """Compute azimuth, elevation, zenith, apparent elevation, apparent zenith, equation of time"""
    iv = _intermediate_values(t, observer, delta_t, pressure, temperature, atmos_refract)
    return (iv['topo_azimuth'], iv['topo_elevation_uncorrected'], iv['topo_zenith_uncorrected'],
            iv['topo_elevation'], iv['topo_zenith'], iv['eq_of_t'])

#observer (positional argument 2) is passed through without broadcasting
_sunpos_vec = np.vectorize(_sunpos, otypes=[float]*6, excluded={2})

def _topo_sunpos(t, delta_t, observer):
    """compute RA,dec,H, all in degrees"""
    iv = _geocentric_values(_julian_day(t), delta_t)
    return _sun_topo_ra_decl_hour(observer, iv['geo_right_asc'], iv['geo_decl'], iv['greenwich_sidereal_t'], iv['earth_rad'])[:3]

_topo_sunpos_vec = np.vectorize(_topo_sunpos, otypes=[float]*3, excluded={2})

def _refraction_mode(refraction):
    '''Resolve the refraction argument of solar_position to 'spa' or None'''
    if refraction is None:
        return None
    if isinstance(refraction, str):
        name = refraction.lower()
        if name == 'none':
            return None
        if name in ('spa', 'default'):
            return 'spa'
        raise ValueError(f'Unknown refraction model {refraction!r}, expected "spa" or None')
    if callable(refraction) or callable(getattr(refraction, 'refraction', None)):
        warnings.warn('SPA algorithm has its own refraction correction; the given refraction model is ignored',
                      RefractionWarning, stacklevel=3)
        return 'spa'
    raise ValueError(f'Invalid refraction model {refraction!r}')

def _resolve_delta_t(t, params):
    if params.delta_t is None:
        _check_delta_t_range(t, stacklevel=3)
        return _delta_t_at_v(t)
    return params.delta_t

def solar_position(dt, observer, params=None, refraction='spa', equation_of_time=None):
    """Compute the topocentric position of the sun as viewed at the given time and location.

    Parameters
    ----------
    dt : array_like of datetime, date, datetime64, str, or float
        datetime.datetime, datetime.date, numpy.datetime64, ISO8601 strings, or POSIX timestamps (float or int).
        Naive datetimes are UTC.
    observer : Observer
    params : SPAParams, optional
        delta_t, pressure, temperature, and atmos_refract. Defaults to SPAParams().
        Set delta_t to None to estimate it at each time.
    refraction : str, None, or refraction model, optional
        "spa" (default) applies the SPA refraction correction. None or "none" skips it.
        Other refraction models (callables, or objects with a refraction method) are
        accepted with a RefractionWarning and the SPA correction is used instead.
    equation_of_time : bool, optional
        Include the equation of time, in minutes. Defaults to True when refraction is applied.

    Returns
    -------
    SolPos, ApparentSolPos, or SPASolPos
        SolPos(azimuth, elevation, zenith) without refraction,
        ApparentSolPos(..., apparent_elevation, apparent_zenith) with refraction,
        SPASolPos(..., equation_of_time) with refraction and the equation of time.
        Angles are in degrees, azimuth measured eastward from north.
    """
    if params is None:
        params = SPAParams()
    mode = _refraction_mode(refraction)
    if equation_of_time is None:
        equation_of_time = mode is not None
    elif equation_of_time and mode is None:
        raise ValueError('The equation of time is only computed together with the SPA refraction correction')

    t = to_timestamp(dt)
    sp = _sunpos_vec(t, _resolve_delta_t(t, params), observer, params.pressure, params.temperature, params.atmos_refract)
    sp = tuple(a[()] for a in sp) #unwrap np.array() from scalars
    if mode is None:
        return SolPos(*sp[:3])
    if not equation_of_time:
        return ApparentSolPos(*sp[:5])
    return SPASolPos(*sp)

def topocentric_position(dt, observer, params=None):
    """Compute the topocentric coordinates of the sun as viewed at the given time and location.

    Parameters
    ----------
    dt : array_like of datetime, date, datetime64, str, or float
        datetime.datetime, datetime.date, numpy.datetime64, ISO8601 strings, or POSIX timestamps (float or int)
    observer : Observer
    params : SPAParams, optional
        only delta_t is used

    Returns
    -------
    right_ascension : ndarray, topocentric
    declination : ndarray, topocentric
    hour_angle : ndarray, topocentric
    """
    if params is None:
        params = SPAParams()
    t = to_timestamp(dt)
    sp = _topo_sunpos_vec(t, _resolve_delta_t(t, params), observer)
    return tuple(a[()] for a in sp)

## Sun transit, sunrise, and sunset
# The SPA appendix method: geocentric RA and declination at 0 TT of the day before, the day of, and
# the day after the request are interpolated quadratically to the approximate event times, and the
# event times are corrected once using the topocentric hour angle and altitude at those times.

#sun center altitude at sunrise and sunset (refraction + sun radius), in degrees
_SUNRISE_ELEVATION = -0.8333
#how far the next_* and previous_* helpers look for an event, in days
_EVENT_SEARCH_DAYS = 366

_EPOCH = datetime.datetime(1970, 1, 1)
_EPOCH_UTC = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

def _limit_degrees180pm(h):
    '''limit an angle to [-180, 180)'''
    return (h + 180) % 360 - 180

def _rts_timestamps(midnight, observer, params=None, stacklevel=3):
    '''Transit, sunrise, and sunset as POSIX timestamps (whole seconds) for the UTC day starting at midnight.
    Returns None, with a PolarDayNightWarning, if the sun does not cross the horizon that day.
    Warnings are attributed stacklevel frames up, as for warnings.warn.
    '''
    if params is None:
        params = SPAParams()
    dt = params.delta_t
    if dt is None:
        _check_delta_t_range(midnight, stacklevel)
        dt = _delta_t_at(midnight)
    jd = _julian_day(midnight)

    #apparent sidereal time at 0 UT
    nu = _geocentric_values(jd, dt)['greenwich_sidereal_t']
    #geocentric right ascension and declination at 0 TT of the days before, of, and after
    alpha, delta = [], []
    for day in (-1, 0, 1):
        iv = _geocentric_values(jd + day, 0.0)
        alpha.append(iv['geo_right_asc'])
        delta.append(iv['geo_decl'])

    lon = observer.longitude
    sin_phi, cos_phi = observer.sin_lat, observer.cos_lat
    h0 = _SUNRISE_ELEVATION
    #approximate transit time, in fraction of a day
    m0 = (alpha[1] - lon - nu)/360
    d0 = np.deg2rad(delta[1])
    cos_H0 = (np.sin(np.deg2rad(h0)) - sin_phi*np.sin(d0))/(cos_phi*np.cos(d0))
    if np.isnan(cos_H0):
        raise ValueError('Sun transit, sunrise, and sunset are undefined for NaN inputs')
    if abs(cos_H0) > 1:
        if cos_H0 > 1:
            condition = 'polar night (sun below horizon)'
        else:
            condition = 'polar day (sun above horizon)'
        warnings.warn(f'Sun does not rise or set on this date at the given location: {condition}. '
                      'Returning midnight UTC for all events.', PolarDayNightWarning, stacklevel=stacklevel)
        return None
    H0 = np.rad2deg(np.arccos(cos_H0)) #local hour angle at sunrise/sunset, in [0, 180]

    m1 = m0 % 1 #transit
    m2 = (m1 - H0/360) % 1 #sunrise
    m3 = (m1 + H0/360) % 1 #sunset
    #sunrise falls on the previous UTC day or sunset on the next
    rise_prev_day = m1 - H0/360 < 0
    set_next_day = m1 + H0/360 >= 1

    a_alpha, b_alpha = alpha[1] - alpha[0], alpha[2] - alpha[1]
    if abs(a_alpha) > 2: a_alpha %= 1
    if abs(b_alpha) > 2: b_alpha %= 1
    a_delta, b_delta = delta[1] - delta[0], delta[2] - delta[1]
    if abs(a_delta) > 2: a_delta %= 1
    if abs(b_delta) > 2: b_delta %= 1
    c_alpha, c_delta = b_alpha - a_alpha, b_delta - a_delta

    H_p, delta_p, h = [], [], []
    for m in (m1, m2, m3):
        nu_i = nu + 360.985647*m
        n = m + dt/86400
        alpha_i = alpha[1] + n*(a_alpha + b_alpha + c_alpha*n)/2
        delta_i = delta[1] + n*(a_delta + b_delta + c_delta*n)/2
        H_i = _limit_degrees180pm(nu_i + lon - alpha_i)
        dr, Hr = np.deg2rad(delta_i), np.deg2rad(H_i)
        H_p.append(H_i)
        delta_p.append(dr)
        h.append(np.rad2deg(np.arcsin(sin_phi*np.sin(dr) + cos_phi*np.cos(dr)*np.cos(Hr))))

    T = m1 - H_p[0]/360
    R = m2 + (h[1] - h0)/(360*np.cos(delta_p[1])*cos_phi*np.sin(np.deg2rad(H_p[1])))
    S = m3 + (h[2] - h0)/(360*np.cos(delta_p[2])*cos_phi*np.sin(np.deg2rad(H_p[2])))
    if rise_prev_day:
        R -= 1
    if set_next_day:
        S += 1
    return tuple(midnight + int(round(frac*86400)) for frac in (T, R, S))

def _naive_utc(t):
    return _EPOCH + datetime.timedelta(seconds=t)

def _utc_datetime64(t):
    return np.datetime64(int(t), 's')

def _request_day(dt):
    '''Split a request into (POSIX time, POSIX time of the UTC midnight of its day, output converter)
    dates are midnight UTC; aware datetimes use their local calendar date and are returned in their own zone;
    naive datetimes are UTC; anything else is returned as numpy.datetime64
    '''
    if isinstance(dt, datetime.datetime):
        t = _get_timestamp(dt)
        if dt.tzinfo is not None and dt.utcoffset() is not None:
            tz = dt.tzinfo
            midnight = _date_to_posix_time(dt.year, dt.month, dt.day)
            def convert(s):
                return (_EPOCH_UTC + datetime.timedelta(seconds=s)).astimezone(tz)
            return t, midnight, convert
        return t, int(np.floor(t/86400))*86400, _naive_utc
    if isinstance(dt, datetime.date):
        midnight = _date_to_posix_time(dt.year, dt.month, dt.day)
        return midnight, midnight, _naive_utc
    t = to_timestamp(dt)
    if np.ndim(t) != 0:
        raise ValueError('Expected a single date or time')
    t = float(t)
    if not np.isfinite(t):
        raise ValueError('Sun transit, sunrise, and sunset are undefined for NaN inputs')
    return t, int(np.floor(t/86400))*86400, _utc_datetime64

def transit_sunrise_sunset(dt, observer, params=None):
    """Compute the times of sun transit (solar noon), sunrise, and sunset for the UTC day of dt

    Parameters
    ----------
    dt : datetime.date, datetime.datetime, numpy.datetime64, str, or float
        Any time during the day of interest. datetime.date and naive datetimes are UTC.
        Aware datetimes select their local calendar date.
    observer : Observer
    params : SPAParams, optional
        only delta_t is used; None estimates it for the date

    Returns
    -------
    TransitSunriseSunset(transit, sunrise, sunset)
        naive UTC datetimes for date and naive datetime inputs, datetimes in the
        input's timezone for aware inputs, and numpy.datetime64 otherwise.
        When the sun does not rise or set (polar day or night) a PolarDayNightWarning
        is issued and all three are midnight UTC of the day.
    """
    t, midnight, convert = _request_day(dt)
    events = _rts_timestamps(midnight, observer, params)
    if events is None:
        events = (midnight, midnight, midnight)
    return TransitSunriseSunset(*(convert(e) for e in events))

def _find_event(dt, observer, params, index, forward):
    '''Search day by day for the first event (0 = transit, 1 = sunrise, 2 = sunset) after (or before) dt'''
    t, _, convert = _request_day(dt)
    midnight = int(np.floor(t/86400))*86400
    step = 86400 if forward else -86400
    #start one day back: sunrise may fall on the previous UTC day, sunset on the next
    for k in range(-1, _EVENT_SEARCH_DAYS + 1):
        events = _rts_timestamps(midnight + k*step, observer, params, stacklevel=4)
        if events is None:
            continue
        e = events[index]
        if (e > t) if forward else (e < t):
            return convert(e)
    return None

def next_sunrise(dt, observer, params=None):
    """First sunrise strictly after dt, or None if there is none within a year. See transit_sunrise_sunset"""
    return _find_event(dt, observer, params, 1, True)

def next_sunset(dt, observer, params=None):
    """First sunset strictly after dt, or None if there is none within a year. See transit_sunrise_sunset"""
    return _find_event(dt, observer, params, 2, True)

def solar_noon(dt, observer, params=None):
    """First sun transit strictly after dt, or None if there is none within a year. See transit_sunrise_sunset"""
    return _find_event(dt, observer, params, 0, True)

def previous_sunrise(dt, observer, params=None):
    """Last sunrise strictly before dt, or None if there is none within a year"""
    return _find_event(dt, observer, params, 1, False)

def previous_sunset(dt, observer, params=None):
    """Last sunset strictly before dt, or None if there is none within a year"""
    return _find_event(dt, observer, params, 2, False)

def previous_solar_noon(dt, observer, params=None):
    """Last sun transit strictly before dt, or None if there is none within a year"""
    return _find_event(dt, observer, params, 0, False)

if __name__ == '__main__':
    sys.exit(main())
