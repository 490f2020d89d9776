"""Registry of live sessions: at most one controller per (user, test)."""
from __future__ import annotations

import logging
import threading
from typing import Callable

from sqlalchemy.orm import sessionmaker

from satsession.engine.navigation import NavigationController
from satsession.engine.scoring import CompletionReporter
from satsession.engine.session import SessionStatus
from satsession.services.content_service import ContentService
from satsession.services.results_service import ResultsService, build_results_service
from satsession.services.session_store import KeyValueStore, SessionStore

log = logging.getLogger(__name__)


class SessionManager:
    """Opens, tracks and closes the live sessions of all users."""

    def __init__(
        self,
        session_factory: sessionmaker,
        content: ContentService | None = None,
        results_factory: Callable[[sessionmaker, str], ResultsService] = build_results_service,
        start_timers: bool = True,
    ):
        self.session_factory = session_factory
        self.content = content or ContentService()
        self.results_factory = results_factory
        self.start_timers = start_timers
        self.kv = KeyValueStore(session_factory)
        self._lock = threading.Lock()
        self._live: dict[tuple[str, str], NavigationController] = {}
        self._reporters: dict[str, CompletionReporter] = {}

    def store_for(self, user_id: str) -> SessionStore:
        return SessionStore(self.kv, user_id)

    def _reporter_for(self, user_id: str) -> CompletionReporter:
        reporter = self._reporters.get(user_id)
        if reporter is None:
            reporter = CompletionReporter(
                self.store_for(user_id), self.results_factory(self.session_factory, user_id)
            )
            self._reporters[user_id] = reporter
        return reporter

    def open(self, user_id: str, test_id: str) -> NavigationController:
        """Return the live controller of the pair, opening it if needed.

        Raises ContentLoadError when the test cannot be loaded.
        """
        with self._lock:
            controller = self._live.get((user_id, test_id))
            if controller is not None and controller.session.status is not SessionStatus.COMPLETED:
                return controller
            test = self.content.get_test(test_id)
            controller = NavigationController.open(
                test, self.store_for(user_id), self._reporter_for(user_id)
            )
            if self.start_timers:
                controller.start_timers()
            self._live[(user_id, test_id)] = controller
            return controller

    def get(self, user_id: str, test_id: str) -> NavigationController | None:
        with self._lock:
            return self._live.get((user_id, test_id))

    def _pop(self, user_id: str, test_id: str) -> NavigationController | None:
        with self._lock:
            return self._live.pop((user_id, test_id), None)

    def close(self, user_id: str, test_id: str) -> None:
        """Tear the controller down after its final save."""
        controller = self._pop(user_id, test_id)
        if controller is not None:
            controller.teardown()

    def abandon(self, user_id: str, test_id: str) -> None:
        controller = self._pop(user_id, test_id)
        if controller is not None:
            controller.abandon()
        else:
            self.store_for(user_id).discard(test_id)
            log.info("Test %s abandoned by %s", test_id, user_id)

    def in_progress(self, user_id: str) -> list[str]:
        return self.store_for(user_id).in_progress_tests()

    def shutdown(self) -> None:
        with self._lock:
            controllers = list(self._live.values())
            self._live.clear()
        for controller in controllers:
            controller.teardown()
        log.info("Closed %d live sessions", len(controllers))
