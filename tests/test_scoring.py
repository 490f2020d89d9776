import logging
import threading
import time

import pytest

from satsession.engine.scoring import (
    CompletionReporter,
    build_summary,
    grade_session,
    round_half_up,
)
from satsession.engine.session import Session, SessionStatus
from satsession.errors import SubmissionError
from satsession.services.results_service import ResultsService, SubmissionAck


class RecordingResults(ResultsService):
    def __init__(self) -> None:
        self.started: list[str] = []
        self.completed: list[str] = []
        self.gate: threading.Event | None = None
        self.rejected = False

    def start_attempt(self, test_id: str) -> str:
        self.started.append(test_id)
        return f"corr-{len(self.started)}"

    def complete_attempt(self, correlation_id: str, payload: dict) -> SubmissionAck:
        if self.gate is not None:
            assert self.gate.wait(5)
        self.completed.append(correlation_id)
        if self.rejected:
            return SubmissionAck(accepted=False)
        return SubmissionAck(accepted=True, coins_earned=1)

    def refresh_profile(self) -> dict:
        return {}


class FailingStart(RecordingResults):
    def start_attempt(self, test_id: str) -> str:
        raise SubmissionError("connection refused")


def test_round_half_up() -> None:
    assert round_half_up(66.666) == 67
    assert round_half_up(33.333) == 33
    assert round_half_up(12.5) == 13
    assert round_half_up(0.5) == 1


def test_unanswered_questions_count_as_incorrect(exam) -> None:
    grade = grade_session(Session(test_id=exam.id), exam)
    assert grade.total_questions == 3
    assert grade.correct_count == 0
    assert grade.score == 0
    assert [r["selectedAnswer"] for r in grade.question_results] == [None, None, None]
    assert [r["question"] for r in grade.question_results] == ["q1", "q2", "q3"]


def test_submission_payload_lists_every_question(exam, store) -> None:
    session = Session(test_id=exam.id, user_id=store.user_id)
    session.record_answer("q2", "beta")
    result = CompletionReporter(store, RecordingResults()).finalize(session, exam)

    payload = result.submission_payload
    assert payload["status"] == "completed"
    assert payload["score"] == 33
    verdicts = {r["question"]: r["isCorrect"] for r in payload["questionResults"]}
    assert verdicts == {"q1": False, "q2": True, "q3": False}


def test_finalize_twice_reuses_correlation_id(exam, store) -> None:
    results = RecordingResults()
    reporter = CompletionReporter(store, results)
    session = Session(test_id=exam.id, user_id=store.user_id)
    session.record_answer("q1", "quick")

    first = reporter.finalize(session, exam)
    second = reporter.finalize(session, exam)
    assert first.score == second.score == 33
    assert first.correlation_id == second.correlation_id == "corr-1"
    assert results.started == [exam.id]


def test_stored_correlation_id_is_reused(exam, store) -> None:
    store.save_correlation_id(exam.id, "corr-earlier")
    results = RecordingResults()
    session = Session(test_id=exam.id, user_id=store.user_id)

    result = CompletionReporter(store, results).finalize(session, exam)
    assert result.correlation_id == "corr-earlier"
    assert results.started == []
    assert session.status is SessionStatus.COMPLETED


def test_unreachable_service_keeps_session_pending(exam, store) -> None:
    session = Session(test_id=exam.id, user_id=store.user_id)
    session.record_answer("q1", "quick")

    result = CompletionReporter(store, FailingStart()).finalize(session, exam)
    assert result.pending
    assert result.correlation_id is None
    assert session.status is SessionStatus.COMPLETED_PENDING
    assert store.load(exam.id).answers == {"q1": "quick"}


def test_rejected_submission_is_pending(exam, store) -> None:
    results = RecordingResults()
    results.rejected = True
    session = Session(test_id=exam.id, user_id=store.user_id)

    result = CompletionReporter(store, results).finalize(session, exam)
    assert not result.accepted
    assert session.status is SessionStatus.COMPLETED_PENDING
    assert store.load_correlation_id(exam.id) == "corr-1"


def test_concurrent_finalize_is_coalesced(exam, store, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="satsession.engine.scoring")
    results = RecordingResults()
    results.gate = threading.Event()
    reporter = CompletionReporter(store, results)
    session = Session(test_id=exam.id, user_id=store.user_id)
    outcomes = []

    def run() -> None:
        outcomes.append(reporter.finalize(session, exam))

    first = threading.Thread(target=run)
    first.start()
    deadline = time.monotonic() + 5
    while not reporter._inflight and time.monotonic() < deadline:
        time.sleep(0.01)

    second = threading.Thread(target=run)
    second.start()
    while "Joining in-flight" not in caplog.text and time.monotonic() < deadline:
        time.sleep(0.01)

    results.gate.set()
    first.join(5)
    second.join(5)

    assert len(outcomes) == 2
    assert outcomes[0] is outcomes[1]
    assert results.completed == ["corr-1"]
    assert reporter._inflight == {}


def test_summary_describes_the_test(exam) -> None:
    session = Session(test_id=exam.id, correlation_id="corr-9", elapsed_seconds=42)
    session.record_answer("q3", "3.5")
    summary = build_summary(session, exam, "completed", 33)
    assert summary["attemptId"] == "corr-9"
    assert summary["answeredQuestions"] == [["1-1", "3.5"]]
    assert summary["timeSpent"] == 42
    assert summary["testData"]["sections"][1] == {
        "name": "Math",
        "type": "quantitative",
        "timeLimit": 1.5,
        "questionCount": 1,
    }
