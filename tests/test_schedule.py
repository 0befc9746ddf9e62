from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from prayerpanel.errors import ConfigurationError
from prayerpanel.schedule import Ticker, seconds_until_next_minute


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2024, 6, 21, 10, 0, 15, 500000), 44.5),
        (datetime(2024, 6, 21, 10, 0, 0), 60.0),
        (datetime(2024, 6, 21, 10, 0, 59, 900000), 0.1),
    ],
)
def test_seconds_until_next_minute(now: datetime, expected: float):
    assert seconds_until_next_minute(now) == pytest.approx(expected)


def test_ticker_emits_only_changes():
    payloads = iter(["a", "a", "b", "b", "a"])
    emitted = []
    sleeps = []
    ticker = Ticker(
        render=lambda: next(payloads),
        emit=emitted.append,
        clock=lambda: datetime(2024, 6, 21, 10, 0, 30),
        sleep=sleeps.append,
        poll_interval=10.0,
    )
    assert ticker.run(max_ticks=5) == 5
    assert emitted == ["a", "b", "a"]
    # four waits of thirty seconds each, polled in ten second steps
    assert sleeps == [10.0] * 12


def test_ticker_wakes_up_when_settings_change(tmp_path: Path):
    settings = tmp_path / "config.json"
    settings.write_text("{}")
    sleeps = []

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        stat = settings.stat()
        os.utime(settings, (stat.st_atime, stat.st_mtime + 5))

    ticker = Ticker(
        render=lambda: "x",
        emit=lambda payload: None,
        watch_path=str(settings),
        clock=lambda: datetime(2024, 6, 21, 10, 0, 0),
        sleep=fake_sleep,
    )
    ticker.wait()
    assert sleeps == [1.0]
    assert ticker.settings_changed() is False


def _flaky_render(results):
    def render():
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result
    return render


def test_ticker_keeps_running_after_failed_render():
    results = iter(["a", ConfigurationError("Invalid settings file"), "b"])
    emitted = []
    ticker = Ticker(
        render=_flaky_render(results),
        emit=emitted.append,
        clock=lambda: datetime(2024, 6, 21, 10, 0, 59),
        sleep=lambda seconds: None,
        on_error=lambda exc: f"error: {exc}",
    )
    assert ticker.run(max_ticks=3) == 3
    assert emitted == ["a", "error: Invalid settings file", "b"]


def test_ticker_without_error_handler_raises():
    ticker = Ticker(render=_flaky_render(iter([ConfigurationError("boom")])), emit=lambda payload: None)
    with pytest.raises(ConfigurationError):
        ticker.tick()
