from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .errors import ConfigurationError


class Method(str, Enum):
    MWL = "MWL"
    ISNA = "ISNA"
    EGYPT = "Egypt"
    MAKKAH = "Makkah"
    KARACHI = "Karachi"
    TEHRAN = "Tehran"
    JAFARI = "Jafari"
    CUSTOM = "Custom"


class Midnight(str, Enum):
    STANDARD = "Standard"
    JAFARI = "Jafari"


class AsrMethod(str, Enum):
    STANDARD = "Standard"
    HANAFI = "Hanafi"

    @property
    def factor(self):
        return 2 if self is AsrMethod.HANAFI else 1


class HighLatRule(str, Enum):
    NIGHT_MIDDLE = "NightMiddle"
    ONE_SEVENTH = "OneSeventh"
    ANGLE_BASED = "AngleBased"
    NONE = "None"


@dataclass(frozen=True)
class MethodParams:
    name: str
    fajr_angle: float
    isha_angle: Optional[float] = None
    isha_minutes: Optional[float] = None
    maghrib_angle: Optional[float] = None
    maghrib_minutes: float = 0.0
    midnight: Midnight = Midnight.STANDARD
    high_lats: Optional[HighLatRule] = None

    def __post_init__(self):
        if (self.isha_angle is None) == (self.isha_minutes is None):
            raise ConfigurationError(f"{self.name}: isha needs either an angle or minutes")


METHODS = {
    Method.MWL: MethodParams("Muslim World League", fajr_angle=18, isha_angle=17),
    Method.ISNA: MethodParams("Islamic Society of North America", fajr_angle=15, isha_angle=15),
    Method.EGYPT: MethodParams("Egyptian General Authority of Survey", fajr_angle=19.5, isha_angle=17.5),
    Method.MAKKAH: MethodParams("Umm al-Qura University, Makkah", fajr_angle=18.5, isha_minutes=90),
    Method.KARACHI: MethodParams("University of Islamic Sciences, Karachi", fajr_angle=18, isha_angle=18),
    Method.TEHRAN: MethodParams(
        "Institute of Geophysics, University of Tehran",
        fajr_angle=17.7,
        isha_angle=14,
        maghrib_angle=4.5,
        midnight=Midnight.JAFARI,
    ),
    Method.JAFARI: MethodParams(
        "Shia Ithna-Ashari, Leva Institute, Qum",
        fajr_angle=16,
        isha_angle=14,
        maghrib_angle=4,
        midnight=Midnight.JAFARI,
    ),
}

CUSTOM_NAME = "Custom"

# Bounds offered by the preferences dialog of the panel.
CUSTOM_FAJR_RANGE = (10.0, 25.0)
CUSTOM_MAGHRIB_RANGE = (0.0, 30.0)
CUSTOM_ISHA_ANGLE_RANGE = (10.0, 25.0)
CUSTOM_ISHA_MINUTES_RANGE = (10.0, 120.0)

PRAYER_ORDER = ["fajr", "dhuhr", "asr", "maghrib", "isha"]
TIME_NAMES = ["fajr", "sunrise", "dhuhr", "asr", "sunset", "maghrib", "isha", "midnight"]


def _check_range(label, value, bounds):
    low, high = bounds
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Custom {label} must be a number, got {value!r}") from exc
    if not low <= value <= high:
        raise ConfigurationError(f"Custom {label} {value:g} outside [{low:g}, {high:g}]")
    return value


def custom_method(fajr, maghrib_minutes=0, isha=17, isha_in_minutes=False, high_lats=None):
    fajr = _check_range("fajr angle", fajr, CUSTOM_FAJR_RANGE)
    maghrib_minutes = _check_range("maghrib minutes", maghrib_minutes, CUSTOM_MAGHRIB_RANGE)
    base = METHODS[Method.MWL]
    if isha_in_minutes:
        isha_minutes = _check_range("isha minutes", isha, CUSTOM_ISHA_MINUTES_RANGE)
        isha_angle = None
    else:
        isha_angle = _check_range("isha angle", isha, CUSTOM_ISHA_ANGLE_RANGE)
        isha_minutes = None
    return replace(
        base,
        name=CUSTOM_NAME,
        fajr_angle=fajr,
        maghrib_angle=None,
        maghrib_minutes=maghrib_minutes,
        isha_angle=isha_angle,
        isha_minutes=isha_minutes,
        high_lats=high_lats,
    )


def parse_method(key):
    if isinstance(key, Method):
        return key
    if isinstance(key, str):
        lowered = key.strip().lower()
        for method in Method:
            if method.value.lower() == lowered:
                return method
    raise ConfigurationError(f"Unknown method: {key}")


def resolve_method(key, custom=None):
    if isinstance(key, MethodParams):
        return key
    method = parse_method(key)
    if method is Method.CUSTOM:
        if custom is None:
            raise ConfigurationError("Custom method requires fajr, maghrib and isha parameters")
        return custom
    return METHODS[method]


def _parse_enum(enum_cls, value, label):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == lowered:
                return member
    raise ConfigurationError(f"Unknown {label}: {value}")


def parse_asr_method(value):
    # the juristic schools that share the Standard shadow factor
    if isinstance(value, str) and value.strip().lower() in {"shafi", "maliki", "hanbali"}:
        return AsrMethod.STANDARD
    return _parse_enum(AsrMethod, value, "asr method")


def parse_high_lat_rule(value):
    return _parse_enum(HighLatRule, value, "high latitude rule")
