from __future__ import annotations

import json
from pathlib import Path

import pytest

from prayerpanel.cli import main


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    return str(tmp_path / "config.json")


def _load(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def test_list_methods(config_path: str, capsys):
    assert main(["--config", config_path, "--list-methods"]) == 0
    out = capsys.readouterr().out
    assert "Makkah: Umm al-Qura University, Makkah" in out
    assert "Custom: Custom angles" in out


def test_location_management(config_path: str, capsys):
    assert main(["--config", config_path, "--set-location", "Mecca", "--lat", "21.4225", "--lng", "39.8262",
                 "--tz", "Asia/Riyadh"]) == 0
    config = _load(config_path)
    assert config["location"] == "Mecca"
    assert config["locations"]["Mecca"]["lat"] == 21.4225

    assert main(["--config", config_path, "--use-location", "Istanbul"]) == 0
    assert _load(config_path)["location"] == "Istanbul"

    assert main(["--config", config_path, "--list-locations"]) == 0
    out = capsys.readouterr().out
    assert "Mecca: Mecca (21.4225, 39.8262) [Asia/Riyadh]" in out
    assert "Istanbul: Istanbul, Turkey" in out

    assert main(["--config", config_path, "--remove-location", "Istanbul"]) == 0
    assert _load(config_path)["location"] == "Mecca"


def test_set_location_requires_coordinates(config_path: str, capsys):
    assert main(["--config", config_path, "--set-location", "Somewhere"]) == 1
    assert "needs --lat and --lng" in capsys.readouterr().err


def test_settings_commands(config_path: str):
    assert main(["--config", config_path, "--set-method", "jafari"]) == 0
    assert main(["--config", config_path, "--set-asr", "hanafi"]) == 0
    assert main(["--config", config_path, "--set-high-lats", "OneSeventh"]) == 0
    assert main(["--config", config_path, "--set-offset", "Isha", "3"]) == 0
    assert main(["--config", config_path, "--set-format", "12h"]) == 0
    config = _load(config_path)
    assert config["method"] == "Jafari"
    assert config["asr_method"] == "Hanafi"
    assert config["high_latitude"] == "OneSeventh"
    assert config["adjustments"]["isha"] == 3
    assert config["time_format"] == "12h"


def test_set_custom(config_path: str):
    assert main(["--config", config_path, "--set-custom", "16", "3", "90", "--isha-minutes"]) == 0
    config = _load(config_path)
    assert config["method"] == "Custom"
    assert config["custom"] == {"fajr": 16.0, "maghrib": 3.0, "isha": 90.0, "isha_unit": "minutes"}


def test_invalid_settings_are_rejected(config_path: str, capsys):
    assert main(["--config", config_path, "--set-method", "Diyanet"]) == 1
    assert "Error: Unknown method: Diyanet" in capsys.readouterr().err
    assert main(["--config", config_path, "--set-custom", "30", "0", "17"]) == 1
    assert main(["--config", config_path, "--set-offset", "Lunch", "5"]) == 1
    assert _load(config_path)["method"] == "ISNA"


def test_times_table(config_path: str, capsys):
    main(["--config", config_path, "--set-location", "Mecca", "--lat", "21.4225", "--lng", "39.8262",
          "--tz", "Asia/Riyadh"])
    main(["--config", config_path, "--set-method", "Makkah"])
    capsys.readouterr()
    assert main(["--config", config_path, "--times", "--date", "2024-06-21"]) == 0
    out = capsys.readouterr().out
    assert "Fri Jun 21 2024" in out
    assert "Dhuhr    12:2" in out


def test_waybar_reports_errors_as_payload(config_path: str, capsys):
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump({"method": "Nope"}, f)
    assert main(["--config", config_path, "--waybar"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["class"] == "prayerpanel-error"
    assert "Unknown method" in payload["tooltip"]


def test_waybar_payload(config_path: str, capsys):
    assert main(["--config", config_path, "--waybar"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["class"] == "prayerpanel"
    assert payload["tooltip"].startswith("Istanbul, Turkey (Islamic Society of North America")
