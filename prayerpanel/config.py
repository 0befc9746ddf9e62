import copy
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .calc import Adjustments, Coordinates
from .errors import ConfigurationError
from .methods import Method, custom_method, parse_asr_method, parse_high_lat_rule, parse_method, resolve_method

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", "prayer-panel")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.json")

DEFAULT_LOCATION = {"lat": 41.0082, "lng": 28.9784, "tz": "Europe/Istanbul", "label": "Istanbul, Turkey"}

DEFAULT_CONFIG = {
    "location": "Istanbul",
    "locations": {"Istanbul": DEFAULT_LOCATION},
    "method": "ISNA",
    "custom": {
        "fajr": 18.0,
        "maghrib": 0,
        "isha": 17.0,
        "isha_unit": "degrees"
    },
    "asr_method": "Standard",
    "high_latitude": "NightMiddle",
    "dhuhr_minutes": 0,
    "adjustments": {
        "fajr": 0,
        "sunrise": 0,
        "dhuhr": 0,
        "asr": 0,
        "sunset": 0,
        "maghrib": 0,
        "isha": 0,
        "midnight": 0
    },
    "timezone": {
        "manual": False,
        "offset": 0.0,
        "daylight": False
    },
    "time_format": "24h",
    "show": {
        "fajr": True,
        "sunrise": True,
        "dhuhr": True,
        "asr": True,
        "sunset": True,
        "maghrib": True,
        "isha": True,
        "midnight": True
    },
    "display": {
        "format": "{next_name}: {countdown}"
    }
}

# Saved locations closer than this in both axes are the same place.
LOCATION_TOLERANCE = 0.001


def _merge(defaults, loaded):
    merged = copy.deepcopy(defaults)
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict) and key != "locations":
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path=CONFIG_PATH):
    if not os.path.exists(path):
        LOGGER.info("Writing default settings to %s", path)
        save_config(DEFAULT_CONFIG, path)
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(path, "r", encoding="utf-8") as f:
        try:
            loaded = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid settings file {path}: {exc}") from exc
    return _merge(DEFAULT_CONFIG, loaded)


def save_config(config, path=CONFIG_PATH):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)


def method_from_config(config):
    method = parse_method(config.get("method", "ISNA"))
    if method is not Method.CUSTOM:
        return resolve_method(method)
    custom = config.get("custom", {})
    unit = custom.get("isha_unit", "degrees")
    if unit not in ("degrees", "minutes"):
        raise ConfigurationError(f"Unknown isha unit: {unit}")
    return custom_method(
        custom.get("fajr", 18.0),
        custom.get("maghrib", 0),
        custom.get("isha", 17.0),
        isha_in_minutes=unit == "minutes",
    )


def adjustments_from_config(config):
    offsets = {k: v for k, v in config.get("adjustments", {}).items() if v}
    return Adjustments(
        asr=parse_asr_method(config.get("asr_method", "Standard")),
        high_lats=parse_high_lat_rule(config.get("high_latitude", "NightMiddle")),
        dhuhr_minutes=int(config.get("dhuhr_minutes", 0)),
        offsets=offsets,
    )


def active_location(config):
    locations = config.get("locations", {})
    key = config.get("location")
    if key not in locations:
        if not locations:
            return "Istanbul", dict(DEFAULT_LOCATION)
        key = next(iter(locations))
        LOGGER.warning("Active location %r not saved, using %r", config.get("location"), key)
    return key, locations[key]


def coordinates_for(location):
    if location.get("lat") is None or location.get("lng") is None:
        raise ConfigurationError(f"Location has no coordinates: {location.get('label', '?')}")
    return Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))


def add_location(config, key, lat, lng, tz=None, label=None):
    coords = Coordinates(lat=float(lat), lng=float(lng))
    locations = config.setdefault("locations", {})
    for existing_key, loc in locations.items():
        if existing_key == key:
            continue
        if (abs(loc.get("lat", 1e9) - coords.lat) < LOCATION_TOLERANCE
                and abs(loc.get("lng", 1e9) - coords.lng) < LOCATION_TOLERANCE):
            LOGGER.info("Location %r already saved as %r", key, existing_key)
            config["location"] = existing_key
            return existing_key
    locations[key] = {
        "lat": coords.lat,
        "lng": coords.lng,
        "tz": tz,
        "label": label or key
    }
    config["location"] = key
    return key


def remove_location(config, key):
    locations = config.get("locations", {})
    if key not in locations:
        raise ConfigurationError(f"Unknown location: {key}")
    if len(locations) == 1:
        raise ConfigurationError("Cannot remove the only saved location")
    del locations[key]
    if config.get("location") == key:
        config["location"] = next(iter(locations))
    return config["location"]


def get_timezone(tz_name):
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except ZoneInfoNotFoundError as exc:
            raise ConfigurationError(f"Unknown time zone: {tz_name}") from exc
    return datetime.now().astimezone().tzinfo


def tz_hours_for_day(day, tzinfo):
    dt = datetime(day.year, day.month, day.day, 12, 0, 0, tzinfo=tzinfo)
    offset = dt.utcoffset()
    return offset.total_seconds() / 3600.0 if offset else 0.0


def timezone_for(config, location):
    tz = config.get("timezone", {})
    if tz.get("manual"):
        hours = float(tz.get("offset", 0.0))
        if tz.get("daylight"):
            hours += 1.0
        return timezone(timedelta(hours=hours))
    return get_timezone(location.get("tz"))
