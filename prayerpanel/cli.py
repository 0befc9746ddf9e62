import argparse
import json
import logging
import sys
from datetime import date

from .calc import TIME_FORMATS
from .config import CONFIG_PATH, add_location, load_config, remove_location, save_config
from .errors import ConfigurationError
from .methods import (
    METHODS,
    TIME_NAMES,
    HighLatRule,
    Method,
    custom_method,
    parse_asr_method,
    parse_high_lat_rule,
    parse_method,
)
from .render import render_table, render_waybar
from .schedule import Ticker

LOGGER = logging.getLogger(__name__)


def _print_json(payload):
    print(json.dumps(payload, ensure_ascii=True), flush=True)


def _error_payload(exc):
    return {
        "text": "Prayer?",
        "tooltip": str(exc),
        "class": "prayerpanel-error"
    }


def handle_cli(args):
    config_path = args.config
    config = load_config(config_path)

    if args.list_methods:
        for method in Method:
            name = METHODS[method].name if method in METHODS else "Custom angles"
            print(f"{method.value}: {name}")
        return 0

    if args.list_locations:
        for name, loc in config.get("locations", {}).items():
            label = loc.get("label") or name
            tz = loc.get("tz") or "local"
            active = " *" if name == config.get("location") else ""
            print(f"{name}: {label} ({loc.get('lat')}, {loc.get('lng')}) [{tz}]{active}")
        return 0

    if args.use_location:
        if args.use_location not in config.get("locations", {}):
            raise ConfigurationError(f"Unknown location: {args.use_location}")
        config["location"] = args.use_location
        save_config(config, config_path)
        return 0

    if args.set_location:
        if args.lat is None or args.lng is None:
            raise ConfigurationError("--set-location needs --lat and --lng")
        add_location(config, args.set_location, args.lat, args.lng, tz=args.tz)
        save_config(config, config_path)
        return 0

    if args.remove_location:
        remove_location(config, args.remove_location)
        save_config(config, config_path)
        return 0

    if args.set_method:
        config["method"] = parse_method(args.set_method).value
        save_config(config, config_path)
        return 0

    if args.set_custom:
        fajr, maghrib, isha = args.set_custom
        custom_method(fajr, maghrib, isha, isha_in_minutes=args.isha_minutes)
        config["custom"] = {
            "fajr": float(fajr),
            "maghrib": float(maghrib),
            "isha": float(isha),
            "isha_unit": "minutes" if args.isha_minutes else "degrees"
        }
        config["method"] = Method.CUSTOM.value
        save_config(config, config_path)
        return 0

    if args.set_asr:
        config["asr_method"] = parse_asr_method(args.set_asr).value
        save_config(config, config_path)
        return 0

    if args.set_high_lats:
        config["high_latitude"] = parse_high_lat_rule(args.set_high_lats).value
        save_config(config, config_path)
        return 0

    if args.set_offset:
        prayer, minutes = args.set_offset
        prayer_key = prayer.lower()
        if prayer_key not in TIME_NAMES:
            raise ConfigurationError(f"Unknown prayer for offset: {prayer}")
        config.setdefault("adjustments", {})[prayer_key] = int(minutes)
        save_config(config, config_path)
        return 0

    if args.set_format:
        config["time_format"] = args.set_format
        save_config(config, config_path)
        return 0

    if args.waybar:
        _print_json(render_waybar(config))
        return 0

    if args.watch:
        ticker = Ticker(
            lambda: render_waybar(load_config(config_path)),
            _print_json,
            watch_path=config_path,
            on_error=_error_payload,
        )
        ticker.run()
        return 0

    if args.times:
        day = date.fromisoformat(args.date) if args.date else date.today()
        print(render_table(config, day))
        return 0

    return 0


def build_arg_parser():
    parser = argparse.ArgumentParser(description="Prayer times for a status bar panel")
    parser.add_argument("--waybar", action="store_true", help="Output a JSON panel payload once")
    parser.add_argument("--watch", action="store_true", help="Output a JSON panel payload every minute")
    parser.add_argument("--times", action="store_true", help="Print all prayer times for a day")
    parser.add_argument("--date", help="Day for --times (YYYY-MM-DD, default today)")
    parser.add_argument("--list-methods", action="store_true", help="List calculation methods")
    parser.add_argument("--list-locations", action="store_true", help="List saved locations")
    parser.add_argument("--use-location", help="Switch the active location")
    parser.add_argument("--set-location", help="Add or update a location and make it active")
    parser.add_argument("--remove-location", help="Remove a saved location")
    parser.add_argument("--lat", type=float, help="Latitude for --set-location")
    parser.add_argument("--lng", type=float, help="Longitude for --set-location")
    parser.add_argument("--tz", help="IANA time zone for --set-location (optional)")
    parser.add_argument("--set-method", help="Set calculation method")
    parser.add_argument(
        "--set-custom",
        nargs=3,
        type=float,
        metavar=("FAJR", "MAGHRIB", "ISHA"),
        help="Use custom angles: fajr degrees, maghrib minutes, isha degrees",
    )
    parser.add_argument("--isha-minutes", action="store_true", help="Read the --set-custom isha value as minutes")
    parser.add_argument("--set-asr", help="Set Asr method (Standard or Hanafi)")
    parser.add_argument(
        "--set-high-lats",
        help=f"Set high latitude rule ({', '.join(rule.value for rule in HighLatRule)})",
    )
    parser.add_argument("--set-offset", nargs=2, metavar=("PRAYER", "MIN"), help="Set prayer offset in minutes")
    parser.add_argument("--set-format", choices=[f for f in TIME_FORMATS if f != "float"], help="Set time format")
    parser.add_argument("--config", default=CONFIG_PATH, help="Settings file (default: %(default)s)")
    parser.add_argument("--verbose", action="store_true", help="Log calculation details to stderr")
    return parser


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return handle_cli(args)
    except KeyboardInterrupt:
        return 0
    except Exception as exc:
        LOGGER.debug("Command failed", exc_info=True)
        if args.waybar or args.watch:
            _print_json(_error_payload(exc))
            return 0
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
