from datetime import datetime, timedelta

from .calc import PrayTimes, format_time
from .config import (
    active_location,
    adjustments_from_config,
    coordinates_for,
    method_from_config,
    timezone_for,
    tz_hours_for_day,
)
from .methods import PRAYER_ORDER, TIME_NAMES


def float_to_time(value, tzinfo, day):
    seconds = int(round(value * 3600))
    return datetime(day.year, day.month, day.day, tzinfo=tzinfo) + timedelta(seconds=seconds)


def clock_hours(dt):
    return dt.hour + dt.minute / 60.0 + dt.second / 3600.0


def format_countdown(delta):
    total_minutes = int(delta.total_seconds() // 60)
    if total_minutes < 0:
        total_minutes = 0
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h{minutes:02d}"
    return f"{minutes}m"


def time_left(minutes):
    hours, mins = divmod(max(minutes, 0), 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours} {'hour' if hours == 1 else 'hours'}")
    if mins > 0:
        parts.append(f"{mins} {'minute' if mins == 1 else 'minutes'}")
    return " and ".join(parts)


def times_for_day(pray, coords, day, tzinfo):
    return pray.get_times(day, coords, tz_hours_for_day(day, tzinfo))


def prayer_moments(times, day, tzinfo):
    """Yield (name, datetime) for the prayers of `times`, computed for `day`.

    Values are clock hours in [0, 24). An evening prayer earlier than dhuhr
    has wrapped past midnight and belongs to the following date; a fajr later
    than dhuhr started the previous evening.
    """
    dhuhr = times["dhuhr"]
    for key in PRAYER_ORDER:
        value = times[key]
        if value is None:
            continue
        moment_day = day
        if dhuhr is not None:
            if key in ("maghrib", "isha") and value < dhuhr:
                moment_day = day + timedelta(days=1)
            elif key == "fajr" and value > dhuhr:
                moment_day = day - timedelta(days=1)
        yield key, float_to_time(value, tzinfo, moment_day)


def next_prayer(now, today_times, tomorrow_times, yesterday_times=None):
    today = now.date()
    candidates = list(prayer_moments(today_times, today, now.tzinfo))
    candidates += prayer_moments(tomorrow_times, today + timedelta(days=1), now.tzinfo)
    if yesterday_times is not None:
        candidates += prayer_moments(yesterday_times, today - timedelta(days=1), now.tzinfo)
    # dhuhr always occurs, so tomorrow has at least one prayer after now
    return min((c for c in candidates if now < c[1]), key=lambda c: c[1])


def build_tooltip(times, day, method_name, asr_method, location_label, time_format, show=None, next_name=None):
    show = show or {}
    lines = [f"{location_label} ({method_name}, Asr: {asr_method})", day.strftime("%a %b %d %Y")]
    for key in TIME_NAMES:
        if not show.get(key, True):
            continue
        marker = " <" if key == next_name else ""
        lines.append(f"{key.capitalize():<9}{format_time(times[key], time_format)}{marker}")
    return "\n".join(lines)


def _panel(config):
    location_key, loc = active_location(config)
    coords = coordinates_for(loc)
    tzinfo = timezone_for(config, loc)
    method = method_from_config(config)
    pray = PrayTimes(method, adjustments_from_config(config))
    return location_key, loc, coords, tzinfo, pray


def render_table(config, day):
    location_key, loc, coords, tzinfo, pray = _panel(config)
    times = times_for_day(pray, coords, day, tzinfo)
    return build_tooltip(
        times,
        day,
        pray.method.name,
        pray.adjustments.asr.value,
        loc.get("label") or location_key,
        config.get("time_format", "24h"),
    )


def render_waybar(config, now=None):
    location_key, loc, coords, tzinfo, pray = _panel(config)
    now = now.astimezone(tzinfo) if now else datetime.now(tzinfo)
    today = now.date()
    times_today = times_for_day(pray, coords, today, tzinfo)
    times_tomorrow = times_for_day(pray, coords, today + timedelta(days=1), tzinfo)
    times_yesterday = times_for_day(pray, coords, today - timedelta(days=1), tzinfo)

    time_format = config.get("time_format", "24h")
    next_name, next_dt = next_prayer(now, times_today, times_tomorrow, times_yesterday)
    tooltip = build_tooltip(
        times_today,
        today,
        pray.method.name,
        pray.adjustments.asr.value,
        loc.get("label") or location_key,
        time_format,
        config.get("show"),
        next_name,
    )

    delta = next_dt - now
    minutes = int(round(delta.total_seconds() / 60))
    label = next_name.capitalize()
    if minutes > 0:
        tooltip += f"\n\nTime to {label}: {time_left(minutes)}"
    else:
        tooltip += f"\n\nNow: {label}"

    display_format = config.get("display", {}).get("format", "{next_name}: {countdown}")
    text = display_format.format(
        next_name=label,
        next_time=format_time(clock_hours(next_dt), time_format),
        countdown=format_countdown(delta),
        minutes=minutes,
    )
    return {
        "text": text,
        "tooltip": tooltip,
        "class": "prayerpanel"
    }
