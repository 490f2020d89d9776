"""
Session state of a single (user, test) exam run and its stored form.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field

from satsession.engine.highlights import Highlight
from satsession.models.content import Test
from satsession.utils import utc_now

log = logging.getLogger(__name__)

_POSITIONAL_KEY = re.compile(r"(\d+)-(\d+)")


class SessionStatus(str, enum.Enum):
    """Lifecycle status of a session."""

    IN_PROGRESS = "in-progress"
    INCOMPLETE_EXIT = "incomplete-exit"
    COMPLETED_PENDING = "completed-pending"
    COMPLETED = "completed"


class SessionView(str, enum.Enum):
    """Which screen of the exam the session is on."""

    ANSWERING = "answering"
    SECTION_REVIEW = "section-review"
    COMPLETED = "completed"


class SaveTier(str, enum.Enum):
    """How much of the session a stored record carries."""

    FULL = "full"
    REDUCED = "reduced"
    MINIMAL = "minimal"


@dataclass
class Session:
    """Progress of one user through one test.

    Answers, review marks and highlights are keyed by the question's
    stable id; positional ``S-Q`` keys are derived only for display.
    """

    test_id: str
    user_id: str = "anonymous"
    current_section: int = 0
    current_question: int = 1
    time_left: int = 0
    paused: bool = False
    view: SessionView = SessionView.ANSWERING
    status: SessionStatus = SessionStatus.IN_PROGRESS
    elapsed_seconds: int = 0
    answers: dict[str, str] = field(default_factory=dict)
    marked: set[str] = field(default_factory=set)
    highlights: dict[str, list[Highlight]] = field(default_factory=dict)
    correlation_id: str | None = None
    last_saved: str | None = None

    def current_question_id(self, test: Test) -> str | None:
        question = test.question_at(self.current_section, self.current_question)
        return question.id if question else None

    def record_answer(self, question_id: str, value: str) -> None:
        # Latest write wins
        self.answers[question_id] = value

    def positional_answers(self, test: Test) -> dict[str, str]:
        """Answers keyed by ``"<section>-<ordinal>"`` for review screens."""
        keyed = {}
        for section_index, ordinal, question in test.iter_questions():
            if question.id in self.answers:
                keyed[f"{section_index}-{ordinal}"] = self.answers[question.id]
        return keyed


def session_payload(session: Session, tier: SaveTier = SaveTier.FULL) -> dict[str, object]:
    """Build the stored record of ``session`` for the given tier.

    The minimal tier keeps only position and timer; the reduced tier adds
    answers and review marks; the full tier adds highlights.
    """
    payload: dict[str, object] = {
        "testId": session.test_id,
        "userId": session.user_id,
        "currentSection": session.current_section,
        "currentQuestion": session.current_question,
        "timeLeft": session.time_left,
        "isTimerStopped": session.paused,
        "view": session.view.value,
        "status": session.status.value,
        "elapsedSeconds": session.elapsed_seconds,
        "correlationId": session.correlation_id,
        "tier": tier.value,
        "lastSaved": utc_now(),
    }
    if tier is SaveTier.MINIMAL:
        return payload
    payload["answeredQuestions"] = [[key, value] for key, value in session.answers.items()]
    payload["markedForReviewQuestions"] = sorted(session.marked)
    if tier is SaveTier.FULL:
        payload["questionHighlights"] = [
            [key, [highlight.to_dict() for highlight in highlights]]
            for key, highlights in session.highlights.items()
        ]
    return payload


def _canonical_key(key: object, test: Test | None) -> str:
    """Map a legacy positional key to the question's stable id."""
    key = str(key)
    if test is None or test.position_of(key) is not None:
        return key
    match = _POSITIONAL_KEY.fullmatch(key)
    if match:
        question = test.question_at(int(match.group(1)), int(match.group(2)))
        if question is not None:
            return question.id
    return key


def _enum_value(enum_cls, value: object, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def restore_session(payload: dict[str, object], test: Test | None = None) -> Session:
    """Rebuild a Session from its stored record (any tier)."""
    session = Session(
        test_id=str(payload.get("testId", test.id if test else "")),
        user_id=str(payload.get("userId") or "anonymous"),
        current_section=int(payload.get("currentSection") or 0),
        current_question=int(payload.get("currentQuestion") or 1),
        time_left=max(int(payload.get("timeLeft") or 0), 0),
        paused=bool(payload.get("isTimerStopped", False)),
        view=_enum_value(SessionView, payload.get("view"), SessionView.ANSWERING),
        status=_enum_value(SessionStatus, payload.get("status"), SessionStatus.IN_PROGRESS),
        elapsed_seconds=int(payload.get("elapsedSeconds") or 0),
        correlation_id=payload.get("correlationId") or None,
        last_saved=payload.get("lastSaved"),
    )

    for entry in payload.get("answeredQuestions") or []:
        if isinstance(entry, (list, tuple)) and len(entry) == 2 and isinstance(entry[1], str):
            session.answers[_canonical_key(entry[0], test)] = entry[1]

    for key in payload.get("markedForReviewQuestions") or []:
        session.marked.add(_canonical_key(key, test))

    for entry in payload.get("questionHighlights") or []:
        if not (isinstance(entry, (list, tuple)) and len(entry) == 2):
            continue
        key = _canonical_key(entry[0], test)
        restored = []
        for item in entry[1] or []:
            try:
                highlight = Highlight.from_dict(item)
            except (KeyError, TypeError, ValueError, AttributeError):
                log.warning("Dropping malformed highlight record for question %s", key)
                continue
            highlight.question_key = key
            restored.append(highlight)
        if restored:
            session.highlights[key] = restored

    return session
