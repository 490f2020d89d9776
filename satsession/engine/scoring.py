"""
Scoring of a finished session and its submission to the results service.
"""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field

from satsession.engine.evaluator import evaluate
from satsession.engine.session import Session, SessionStatus
from satsession.errors import SubmissionError
from satsession.models.content import Test
from satsession.services.results_service import ResultsService
from satsession.services.session_store import SessionStore
from satsession.utils import utc_now

log = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class Grade:
    correct_count: int
    total_questions: int
    question_results: list[dict[str, object]]

    @property
    def incorrect_count(self) -> int:
        return self.total_questions - self.correct_count

    @property
    def score(self) -> int:
        if self.total_questions == 0:
            return 0
        return round_half_up(self.correct_count / self.total_questions * 100)


@dataclass
class CompletionResult:
    """Outcome of a finalize call."""

    score: int
    correct_count: int
    incorrect_count: int
    submission_payload: dict[str, object]
    correlation_id: str | None = None
    accepted: bool = False
    coins_earned: int = 0
    profile: dict[str, object] | None = None
    error: str | None = None

    @property
    def pending(self) -> bool:
        return not self.accepted

    def to_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "correctCount": self.correct_count,
            "incorrectCount": self.incorrect_count,
            "correlationId": self.correlation_id,
            "accepted": self.accepted,
            "pending": self.pending,
            "coinsEarned": self.coins_earned,
            "profile": self.profile,
            "error": self.error,
        }


def grade_session(session: Session, test: Test) -> Grade:
    """Evaluate every question of the test; unanswered counts as incorrect."""
    results = []
    correct = 0
    for _, _, question in test.iter_questions():
        answer = session.answers.get(question.id)
        is_correct = evaluate(question, answer)
        if is_correct:
            correct += 1
        results.append(
            {
                "question": question.id,
                "selectedAnswer": answer,
                "isCorrect": is_correct,
                "timeSpent": 0,
            }
        )
    return Grade(correct, len(results), results)


def build_submission_payload(grade: Grade) -> dict[str, object]:
    return {
        "questionResults": grade.question_results,
        "score": grade.score,
        "correctCount": grade.correct_count,
        "totalQuestions": grade.total_questions,
        "endTime": utc_now(),
        "status": "completed",
    }


def build_summary(
    session: Session,
    test: Test,
    status: str,
    score: int | None = None,
) -> dict[str, object]:
    """Last-completed summary record shown by review screens."""
    return {
        "testId": test.id,
        "attemptId": session.correlation_id,
        "completedAt": utc_now(),
        "totalQuestions": test.total_questions,
        "answeredQuestions": [
            [key, value] for key, value in session.positional_answers(test).items()
        ],
        "timeSpent": session.elapsed_seconds,
        "status": status,
        "score": score,
        "testData": {
            "title": test.title,
            "type": test.type,
            "sections": [
                {
                    "name": section.name,
                    "type": section.type.value,
                    "timeLimit": section.time_limit,
                    "questionCount": len(section.questions),
                }
                for section in test.sections
            ],
        },
    }


@dataclass
class CompletionReporter:
    """Finalizes sessions exactly once per correlation id.

    Concurrent finalize calls for the same (user, test) share one
    in-flight submission.
    """

    store: SessionStore
    results: ResultsService
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _inflight: dict[tuple[str, str], Future] = field(default_factory=dict, repr=False)

    def finalize(self, session: Session, test: Test) -> CompletionResult:
        key = (session.user_id, session.test_id)
        with self._lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
        if not owner:
            log.debug("Joining in-flight finalize for test %s", session.test_id)
            return future.result()

        try:
            result = self._finalize(session, test)
        except Exception as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def _correlation_id(self, session: Session) -> str:
        if session.correlation_id:
            return session.correlation_id
        stored = self.store.load_correlation_id(session.test_id)
        if stored:
            session.correlation_id = stored
            return stored
        correlation_id = self.results.start_attempt(session.test_id)
        session.correlation_id = correlation_id
        self.store.save_correlation_id(session.test_id, correlation_id)
        self.store.save(session)
        log.info("Started result %s for test %s", correlation_id, session.test_id)
        return correlation_id

    def _finalize(self, session: Session, test: Test) -> CompletionResult:
        grade = grade_session(session, test)
        payload = build_submission_payload(grade)
        result = CompletionResult(
            score=grade.score,
            correct_count=grade.correct_count,
            incorrect_count=grade.incorrect_count,
            submission_payload=payload,
        )

        if session.status is not SessionStatus.COMPLETED:
            session.status = SessionStatus.COMPLETED_PENDING
            self.store.save(session)

        try:
            result.correlation_id = self._correlation_id(session)
            ack = self.results.complete_attempt(result.correlation_id, payload)
            if not ack.accepted:
                raise SubmissionError("Results service did not accept the submission")
        except SubmissionError as exc:
            log.error("Error submitting results for test %s: %s", session.test_id, exc)
            result.error = str(exc)
            return result

        result.accepted = True
        result.coins_earned = ack.coins_earned
        session.status = SessionStatus.COMPLETED
        self.store.clear(session.test_id)
        self.store.clear_correlation_id(session.test_id)
        self.store.save_summary(
            session.test_id, build_summary(session, test, "completed", grade.score)
        )
        log.info(
            "Test %s completed: score %d (%d/%d), %d coins",
            session.test_id,
            grade.score,
            grade.correct_count,
            grade.total_questions,
            ack.coins_earned,
        )

        try:
            result.profile = self.results.refresh_profile()
        except Exception as exc:
            log.warning("Error refreshing profile after test %s: %s", session.test_id, exc)
        return result
