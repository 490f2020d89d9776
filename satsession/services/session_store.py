"""Service layer for session persistence in the key-value store."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from satsession.engine.session import (
    SaveTier,
    Session,
    restore_session,
    session_payload,
)
from satsession.errors import PersistenceError
from satsession.models.content import Test
from satsession.models.db.kv_entry import KeyValueEntry
from satsession.utils import compact_dump, json_load

log = logging.getLogger(__name__)

PROGRESS_PREFIX = "test_progress_"
COMPLETION_PREFIX = "test_completion_"
RESULT_PREFIX = "test_result_"


class KeyValueStore:
    """String records in the ``kv_entries`` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, key: str) -> str | None:
        try:
            with self.session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                return entry.value if entry else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {key}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        try:
            with self.session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry is None:
                    db.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to write {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self.session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                if entry is not None:
                    db.delete(entry)
                    db.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete {key}: {exc}") from exc

    def keys(self, prefix: str) -> list[str]:
        try:
            with self.session_factory() as db:
                return list(
                    db.execute(
                        select(KeyValueEntry.key).where(KeyValueEntry.key.startswith(prefix, autoescape=True))
                    ).scalars()
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list {prefix}*: {exc}") from exc


class SessionStore:
    """
    Session records of one user, namespaced by test id.

    Besides the live session it keeps the last-completed summary and the
    correlation id of a started submission for each test.
    """

    def __init__(self, kv: KeyValueStore, user_id: str = "anonymous"):
        self.kv = kv
        self.user_id = user_id

    def _key(self, prefix: str, test_id: str) -> str:
        return f"{self.user_id}:{prefix}{test_id}"

    def load(self, test_id: str, test: Test | None = None) -> Session | None:
        """Restore the stored session for ``test_id``, or None."""
        try:
            raw = self.kv.get(self._key(PROGRESS_PREFIX, test_id))
        except PersistenceError as exc:
            log.error("Error loading saved progress: %s", exc)
            return None
        if raw is None:
            return None
        try:
            payload = json_load(raw)
        except ValueError as exc:
            log.error("Discarding unreadable progress for test %s: %s", test_id, exc)
            return None
        if not isinstance(payload, dict):
            return None
        try:
            session = restore_session(payload, test)
        except (TypeError, ValueError, AttributeError) as exc:
            log.error("Discarding malformed progress for test %s: %s", test_id, exc)
            return None
        session.test_id = test_id
        session.user_id = self.user_id
        return session

    def save(self, session: Session) -> SaveTier | None:
        """Persist ``session``, degrading full -> reduced -> minimal.

        Returns the tier that was written, or None when nothing could be
        written. Never raises.
        """
        key = self._key(PROGRESS_PREFIX, session.test_id)
        for tier in SaveTier:
            try:
                payload = session_payload(session, tier)
                serialized = compact_dump(payload)
                self.kv.set(key, serialized)
            except (TypeError, ValueError, PersistenceError) as exc:
                log.error("Error saving %s progress for test %s: %s", tier.value, session.test_id, exc)
                continue
            if tier is not SaveTier.FULL:
                log.warning("Saved %s progress for test %s", tier.value, session.test_id)
            session.last_saved = payload["lastSaved"]
            return tier
        log.error("All progress saves failed for test %s", session.test_id)
        return None

    def clear(self, test_id: str) -> None:
        self._delete(self._key(PROGRESS_PREFIX, test_id))

    def _delete(self, key: str) -> None:
        try:
            self.kv.delete(key)
        except PersistenceError as exc:
            log.error("Error clearing %s: %s", key, exc)

    def _write(self, key: str, payload: object) -> bool:
        try:
            self.kv.set(key, compact_dump(payload))
        except (TypeError, ValueError, PersistenceError) as exc:
            log.error("Error writing %s: %s", key, exc)
            return False
        return True

    def _read(self, key: str) -> object | None:
        try:
            raw = self.kv.get(key)
            return json_load(raw) if raw is not None else None
        except (ValueError, PersistenceError) as exc:
            log.error("Error reading %s: %s", key, exc)
            return None

    # Last-completed summary used by review screens

    def save_summary(self, test_id: str, summary: dict[str, object]) -> bool:
        return self._write(self._key(COMPLETION_PREFIX, test_id), summary)

    def load_summary(self, test_id: str) -> dict[str, object] | None:
        summary = self._read(self._key(COMPLETION_PREFIX, test_id))
        return summary if isinstance(summary, dict) else None

    # Correlation id of a started submission

    def save_correlation_id(self, test_id: str, correlation_id: str) -> bool:
        return self._write(self._key(RESULT_PREFIX, test_id), correlation_id)

    def load_correlation_id(self, test_id: str) -> str | None:
        value = self._read(self._key(RESULT_PREFIX, test_id))
        return value if isinstance(value, str) and value else None

    def clear_correlation_id(self, test_id: str) -> None:
        self._delete(self._key(RESULT_PREFIX, test_id))

    def discard(self, test_id: str) -> None:
        """Drop the live session and its submission id.

        The last-completed summary belongs to an earlier run and stays.
        """
        for prefix in (PROGRESS_PREFIX, RESULT_PREFIX):
            self._delete(self._key(prefix, test_id))

    def in_progress_tests(self) -> list[str]:
        prefix = self._key(PROGRESS_PREFIX, "")
        try:
            return [key[len(prefix):] for key in self.kv.keys(prefix)]
        except PersistenceError as exc:
            log.error("Error listing saved progress: %s", exc)
            return []
