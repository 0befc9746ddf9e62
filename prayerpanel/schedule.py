import logging
import os
import time
from datetime import datetime

LOGGER = logging.getLogger(__name__)


def seconds_until_next_minute(now):
    return 60.0 - (now.second + now.microsecond / 1_000_000)


def file_mtime(path):
    if not path:
        return None
    try:
        return os.path.getmtime(path)
    except OSError:
        return None


class Ticker:
    """Re-render on every minute boundary and whenever the settings file changes.

    `render` builds the payload, `emit` publishes it. Payloads equal to the
    previously emitted one are dropped. When `on_error` is given, a failed
    render is logged and `on_error(exc)` is emitted in its place.
    """

    def __init__(self, render, emit, watch_path=None, clock=datetime.now, sleep=time.sleep, poll_interval=1.0,
                 on_error=None):
        self.render = render
        self.emit = emit
        self.watch_path = watch_path
        self.clock = clock
        self.sleep = sleep
        self.poll_interval = poll_interval
        self.on_error = on_error
        self.last_payload = None
        self._mtime = file_mtime(watch_path)

    def tick(self):
        try:
            payload = self.render()
        except Exception as exc:
            if self.on_error is None:
                raise
            LOGGER.warning("Render failed: %s", exc, exc_info=True)
            payload = self.on_error(exc)
        if payload == self.last_payload:
            return False
        self.last_payload = payload
        self.emit(payload)
        return True

    def settings_changed(self):
        mtime = file_mtime(self.watch_path)
        if mtime != self._mtime:
            self._mtime = mtime
            return True
        return False

    def wait(self):
        remaining = seconds_until_next_minute(self.clock())
        while remaining > 0:
            step = min(remaining, self.poll_interval)
            self.sleep(step)
            remaining -= step
            if self.settings_changed():
                LOGGER.debug("Settings changed, refreshing early")
                return

    def run(self, max_ticks=None):
        ticks = 0
        while True:
            self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                return ticks
            self.wait()
