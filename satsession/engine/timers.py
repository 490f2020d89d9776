"""Background timers of a live session: countdown and autosave."""
from __future__ import annotations

import logging
import threading
from typing import Callable

from satsession import config

log = logging.getLogger(__name__)


class RepeatingTimer(threading.Thread):
    """Calls ``function`` every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, function: Callable[[], object], name: str):
        super().__init__(name=name, daemon=True)
        self.interval = interval
        self.function = function
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.function()
            except Exception:
                log.exception("Timer %s callback failed", self.name)

    def stop(self) -> None:
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()


class SessionTimers:
    """The countdown tick and the periodic save of one session."""

    def __init__(
        self,
        on_tick: Callable[[], object],
        on_autosave: Callable[[], object],
        tick_interval: float = config.COUNTDOWN_TICK_SECONDS,
        autosave_interval: float = config.AUTOSAVE_INTERVAL_SECONDS,
        label: str = "session",
    ):
        self.countdown = RepeatingTimer(tick_interval, on_tick, f"{label}-countdown")
        self.autosave = RepeatingTimer(autosave_interval, on_autosave, f"{label}-autosave")

    def start(self) -> None:
        self.countdown.start()
        self.autosave.start()

    def stop(self) -> None:
        self.countdown.stop()
        self.autosave.stop()

    @property
    def running(self) -> bool:
        return any(
            timer.is_alive() and not timer.stopped
            for timer in (self.countdown, self.autosave)
        )
