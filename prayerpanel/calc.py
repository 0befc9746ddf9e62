import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional

from .errors import ConfigurationError, InputRangeError
from .methods import (
    TIME_NAMES,
    AsrMethod,
    HighLatRule,
    Midnight,
    parse_asr_method,
    parse_high_lat_rule,
    resolve_method,
)

LOGGER = logging.getLogger(__name__)

INVALID_TIME = "-----"
RISE_SET_ANGLE = 0.833
TIME_FORMATS = ("24h", "12h", "float")


def _dtr(d):
    return (d * math.pi) / 180.0


def _rtd(r):
    return (r * 180.0) / math.pi


def _fix_angle(a):
    return a - 360.0 * math.floor(a / 360.0)


def _fix_hour(h):
    return h - 24.0 * math.floor(h / 24.0)


def _time_diff(time1, time2):
    return _fix_hour(time2 - time1)


def julian_date(y, m, d):
    if m <= 2:
        y -= 1
        m += 12
    a = math.floor(y / 100)
    b = 2 - a + math.floor(a / 4)
    return math.floor(365.25 * (y + 4716)) + math.floor(30.6001 * (m + 1)) + d + b - 1524.5


class SunPosition(NamedTuple):
    declination: float
    equation_of_time: float


def sun_position(jd):
    """Declination in degrees and equation of time in minutes for a julian date."""
    d = jd - 2451545.0
    g = _fix_angle(357.529 + 0.98560028 * d)
    q = _fix_angle(280.459 + 0.98564736 * d)
    L = _fix_angle(q + 1.915 * math.sin(_dtr(g)) + 0.020 * math.sin(_dtr(2 * g)))
    e = 23.439 - 0.00000036 * d
    ra = _rtd(math.atan2(math.cos(_dtr(e)) * math.sin(_dtr(L)), math.cos(_dtr(L)))) / 15.0
    ra = _fix_hour(ra)
    # q/15 and ra both live in [0, 24) so the raw difference can wrap a full day
    eqt = _fix_hour(q / 15.0 - ra + 12.0) - 12.0
    decl = _rtd(math.asin(math.sin(_dtr(e)) * math.sin(_dtr(L))))
    return SunPosition(decl, eqt * 60.0)


@dataclass(frozen=True)
class SolarDay:
    jd: float
    declination: float
    equation_of_time: float


def solar_day(day, lng):
    jd = julian_date(day.year, day.month, day.day) + 0.5 - lng / 360.0
    position = sun_position(jd)
    return SolarDay(jd, position.declination, position.equation_of_time)


def solar_noon(solar, lng, timezone):
    return 12.0 - solar.equation_of_time / 60.0 + timezone - lng / 15.0


def compute_time(angle, rising, solar, lat, lng, timezone):
    """Clock time at which the sun is `angle` degrees below the horizon.

    Returns None when the sun never reaches that angle on this day at this
    latitude (polar day or night).
    """
    decl = solar.declination
    denominator = math.cos(_dtr(lat)) * math.cos(_dtr(decl))
    if abs(denominator) < 1e-12:
        return None
    x = (-math.sin(_dtr(angle)) - math.sin(_dtr(lat)) * math.sin(_dtr(decl))) / denominator
    if not -1.0 <= x <= 1.0:
        return None
    t = _rtd(math.acos(x)) / 15.0
    noon = solar_noon(solar, lng, timezone)
    return noon - t if rising else noon + t


def asr_angle(factor, lat, decl):
    zenith = abs(lat - decl)
    if zenith >= 90.0:
        # the sun stays below the horizon at noon, no shadow to measure
        return None
    return -_rtd(math.atan(1.0 / (factor + math.tan(_dtr(zenith)))))


def rise_set_angle(elevation=0.0):
    return RISE_SET_ANGLE + 0.0347 * math.sqrt(max(elevation, 0.0))


def format_time(value, time_format="24h"):
    if time_format not in TIME_FORMATS:
        raise ConfigurationError(f"Unknown time format: {time_format}")
    if value is None:
        return None if time_format == "float" else INVALID_TIME
    if time_format == "float":
        return value
    value = _fix_hour(value + 0.5 / 60.0)
    hours = int(math.floor(value))
    minutes = int(math.floor((value - hours) * 60.0))
    if time_format == "12h":
        suffix = "AM" if hours < 12 else "PM"
        return f"{(hours + 11) % 12 + 1}:{minutes:02d} {suffix}"
    return f"{hours:02d}:{minutes:02d}"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float
    elevation: float = 0.0

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise InputRangeError(f"Latitude {self.lat} outside [-90, 90]")
        if not -180.0 <= self.lng <= 180.0:
            raise InputRangeError(f"Longitude {self.lng} outside [-180, 180]")


@dataclass(frozen=True)
class Adjustments:
    asr: AsrMethod = AsrMethod.STANDARD
    high_lats: Optional[HighLatRule] = None
    dhuhr_minutes: int = 0
    offsets: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "asr", parse_asr_method(self.asr))
        if self.high_lats is not None:
            object.__setattr__(self, "high_lats", parse_high_lat_rule(self.high_lats))
        unknown = set(self.offsets) - set(TIME_NAMES)
        if unknown:
            raise ConfigurationError(f"Unknown prayer for offset: {', '.join(sorted(unknown))}")
        object.__setattr__(self, "offsets", MappingProxyType(dict(self.offsets)))

    def __hash__(self):
        return hash((self.asr, self.high_lats, self.dhuhr_minutes, frozenset(self.offsets.items())))


@dataclass(frozen=True)
class PrayerTimeSet:
    fajr: Optional[float] = None
    sunrise: Optional[float] = None
    dhuhr: Optional[float] = None
    asr: Optional[float] = None
    sunset: Optional[float] = None
    maghrib: Optional[float] = None
    isha: Optional[float] = None
    midnight: Optional[float] = None

    def __getitem__(self, name):
        if name not in TIME_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def as_dict(self):
        return {name: getattr(self, name) for name in TIME_NAMES}

    def formatted(self, time_format="24h"):
        return {name: format_time(getattr(self, name), time_format) for name in TIME_NAMES}


def _check_timezone(timezone):
    if not -24.0 <= timezone <= 24.0:
        raise InputRangeError(f"Timezone offset {timezone} outside [-24, 24] hours")


class PrayTimes:
    def __init__(self, method, adjustments=None, custom=None):
        self.method = resolve_method(method, custom)
        self.adjustments = adjustments or Adjustments()
        if self.adjustments.high_lats is not None:
            self.high_lats = self.adjustments.high_lats
        elif self.method.high_lats is not None:
            self.high_lats = self.method.high_lats
        else:
            self.high_lats = HighLatRule.NIGHT_MIDDLE

    def get_times(self, day, coords, timezone):
        if not isinstance(coords, Coordinates):
            coords = Coordinates(*coords)
        _check_timezone(timezone)
        times = self._compute_times(day, coords, timezone)
        following = self._compute_times(day + timedelta(days=1), coords, timezone)
        times = self._adjust_minutes(times)
        times["midnight"] = self._compute_midnight(times, following)
        times = self._tune_times(times)
        return PrayerTimeSet(**{k: None if v is None else _fix_hour(v) for k, v in times.items()})

    def _compute_times(self, day, coords, timezone):
        solar = solar_day(day, coords.lng)
        lat, lng = coords.lat, coords.lng
        horizon = rise_set_angle(coords.elevation)
        method = self.method
        times = {
            "fajr": compute_time(method.fajr_angle, True, solar, lat, lng, timezone),
            "sunrise": compute_time(horizon, True, solar, lat, lng, timezone),
            "dhuhr": solar_noon(solar, lng, timezone),
            "asr": self._asr_time(solar, lat, lng, timezone),
            "sunset": compute_time(horizon, False, solar, lat, lng, timezone),
            "maghrib": None,
            "isha": None,
        }
        if method.maghrib_angle is not None:
            times["maghrib"] = compute_time(method.maghrib_angle, False, solar, lat, lng, timezone)
        if method.isha_angle is not None:
            times["isha"] = compute_time(method.isha_angle, False, solar, lat, lng, timezone)
        if self.high_lats is not HighLatRule.NONE:
            times = self._adjust_high_lats(times, day)
        return times

    def _asr_time(self, solar, lat, lng, timezone):
        angle = asr_angle(self.adjustments.asr.factor, lat, solar.declination)
        if angle is None:
            return None
        return compute_time(angle, False, solar, lat, lng, timezone)

    def _adjust_high_lats(self, times, day):
        sunrise, sunset = times["sunrise"], times["sunset"]
        if sunrise is None or sunset is None:
            return times
        night = _time_diff(sunset, sunrise)
        method = self.method
        adjusted = dict(times)
        adjusted["fajr"] = self._adjust_hl_time("fajr", times["fajr"], sunrise, method.fajr_angle, night, True, day)
        if method.maghrib_angle is not None:
            adjusted["maghrib"] = self._adjust_hl_time(
                "maghrib", times["maghrib"], sunset, method.maghrib_angle, night, False, day
            )
        if method.isha_angle is not None:
            adjusted["isha"] = self._adjust_hl_time("isha", times["isha"], sunset, method.isha_angle, night, False, day)
        return adjusted

    def _adjust_hl_time(self, name, time, base, angle, night, rising, day):
        portion = self._night_portion(angle, night)
        if time is not None:
            diff = _time_diff(time, base) if rising else _time_diff(base, time)
            if diff <= portion:
                return time
        LOGGER.debug(
            "%s on %s: %s replaced by %s night portion %.3fh",
            name, day.isoformat(), "no occurrence" if time is None else f"{time:.3f}", self.high_lats.value, portion,
        )
        return base - portion if rising else base + portion

    def _night_portion(self, angle, night):
        if self.high_lats is HighLatRule.ANGLE_BASED:
            return night * angle / 60.0
        if self.high_lats is HighLatRule.ONE_SEVENTH:
            return night / 7.0
        return night / 2.0

    def _adjust_minutes(self, times):
        times = dict(times)
        method = self.method
        times["dhuhr"] += self.adjustments.dhuhr_minutes / 60.0
        if method.maghrib_angle is None:
            sunset = times["sunset"]
            times["maghrib"] = None if sunset is None else sunset + method.maghrib_minutes / 60.0
        if method.isha_minutes is not None:
            maghrib = times["maghrib"]
            times["isha"] = None if maghrib is None else maghrib + method.isha_minutes / 60.0
        return times

    def _compute_midnight(self, times, following):
        sunset = times["sunset"]
        if self.method.midnight is Midnight.JAFARI:
            anchor = following["sunrise"]
        else:
            anchor = following["fajr"]
        if sunset is None or anchor is None:
            return None
        return sunset + _time_diff(sunset, anchor) / 2.0

    def _tune_times(self, times):
        tuned = dict(times)
        for name, minutes in self.adjustments.offsets.items():
            if tuned.get(name) is not None:
                tuned[name] += minutes / 60.0
        return tuned


def compute_daily_times(day, coords, timezone, method, adjustments=None, time_format="24h", custom=None):
    if time_format not in TIME_FORMATS:
        raise ConfigurationError(f"Unknown time format: {time_format}")
    times = PrayTimes(method, adjustments, custom).get_times(day, coords, timezone)
    return times.formatted(time_format)
