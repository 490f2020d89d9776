from satsession.engine.highlights import Highlight
from satsession.engine.session import (
    SaveTier,
    Session,
    SessionStatus,
    SessionView,
    restore_session,
    session_payload,
)
from satsession.errors import PersistenceError
from satsession.services.session_store import SessionStore
from satsession.utils import compact_dump, json_load


def _session(exam) -> Session:
    session = Session(
        test_id=exam.id,
        user_id="client-1",
        current_section=0,
        current_question=2,
        time_left=95,
        paused=True,
        elapsed_seconds=25,
    )
    session.record_answer("q1", "quick")
    session.record_answer("q2", "beta")
    session.marked.add("q2")
    session.highlights["q1"] = [
        Highlight(id="h1", question_key="q1", text="quick", color="yellow", start=4, end=9)
    ]
    return session


def test_save_then_load_round_trip(store, exam) -> None:
    session = _session(exam)
    assert store.save(session) is SaveTier.FULL
    assert session.last_saved is not None

    loaded = store.load(exam.id, exam)
    assert loaded is not None
    assert (loaded.current_section, loaded.current_question) == (0, 2)
    assert loaded.time_left == 95
    assert loaded.paused is True
    assert loaded.elapsed_seconds == 25
    assert loaded.answers == session.answers
    assert loaded.marked == session.marked
    assert loaded.highlights == session.highlights
    assert loaded.user_id == "client-1"


def test_latest_answer_wins(exam) -> None:
    session = Session(test_id=exam.id)
    session.record_answer("q1", "lazy")
    session.record_answer("q1", "quick")
    assert session.answers == {"q1": "quick"}
    assert session.positional_answers(exam) == {"0-1": "quick"}


def test_load_missing_returns_none(store) -> None:
    assert store.load("unknown") is None


def test_load_discards_unreadable_record(store, kv) -> None:
    kv.set("client-1:test_progress_practice-1", "{not json")
    assert store.load("practice-1") is None


def test_load_discards_record_with_bad_fields(store, kv, exam) -> None:
    kv.set("client-1:test_progress_practice-1", '{"currentSection": "x", "timeLeft": 10}')
    assert store.load("practice-1", exam) is None

    kv.set("client-1:test_progress_practice-1", '{"answeredQuestions": 5}')
    assert store.load("practice-1", exam) is None


def test_records_are_namespaced_by_user_and_test(kv, exam) -> None:
    first = SessionStore(kv, "alice")
    second = SessionStore(kv, "bob")
    first.save(Session(test_id="t1", time_left=10))
    first.save(Session(test_id="t2", time_left=20))
    second.save(Session(test_id="t1", time_left=30))

    assert sorted(first.in_progress_tests()) == ["t1", "t2"]
    assert first.load("t1").time_left == 10
    assert second.load("t1").time_left == 30

    first.clear("t1")
    assert first.load("t1") is None
    assert second.load("t1") is not None


def test_save_degrades_to_reduced_when_highlights_fail(store, exam, monkeypatch) -> None:
    session = _session(exam)

    def broken_to_dict(self):
        raise ValueError("anchor is not serializable")

    monkeypatch.setattr(Highlight, "to_dict", broken_to_dict)
    assert store.save(session) is SaveTier.REDUCED

    loaded = store.load(exam.id, exam)
    assert loaded.answers == session.answers
    assert loaded.marked == {"q2"}
    assert loaded.highlights == {}


def test_save_degrades_to_minimal(store, exam, monkeypatch) -> None:
    session = _session(exam)
    real_set = store.kv.set

    def picky_set(key, value):
        if "answeredQuestions" in value:
            raise PersistenceError("record too large")
        real_set(key, value)

    monkeypatch.setattr(store.kv, "set", picky_set)
    assert store.save(session) is SaveTier.MINIMAL

    loaded = store.load(exam.id, exam)
    assert (loaded.current_section, loaded.current_question, loaded.time_left) == (0, 2, 95)
    assert loaded.answers == {}


def test_save_never_raises_when_every_tier_fails(store, exam, monkeypatch) -> None:
    def failing_set(key, value):
        raise PersistenceError("disk full")

    monkeypatch.setattr(store.kv, "set", failing_set)
    assert store.save(_session(exam)) is None


def test_legacy_positional_keys_map_to_question_ids(exam) -> None:
    payload = {
        "testId": exam.id,
        "currentSection": 1,
        "currentQuestion": 1,
        "timeLeft": 40,
        "answeredQuestions": [["0-2", "beta"], ["q3", "3.5"]],
        "markedForReviewQuestions": ["0-1"],
        "questionHighlights": [
            ["0-1", [{"id": "h1", "text": "quick", "color": "yellow", "anchor": {"start": 4, "end": 9}}]],
            ["q2", [{"text": "no id"}]],
        ],
    }
    session = restore_session(payload, exam)
    assert session.answers == {"q2": "beta", "q3": "3.5"}
    assert session.marked == {"q1"}
    assert list(session.highlights) == ["q1"]
    assert session.highlights["q1"][0].question_key == "q1"


def test_payload_tiers() -> None:
    session = Session(test_id="t1", time_left=5)
    session.record_answer("q1", "A")
    minimal = session_payload(session, SaveTier.MINIMAL)
    reduced = session_payload(session, SaveTier.REDUCED)
    full = session_payload(session, SaveTier.FULL)
    assert "answeredQuestions" not in minimal
    assert "questionHighlights" not in reduced
    assert reduced["answeredQuestions"] == [["q1", "A"]]
    assert full["questionHighlights"] == []
    assert json_load(compact_dump(full))["tier"] == "full"


def test_restore_tolerates_unknown_enum_values() -> None:
    session = restore_session({"testId": "t1", "view": "bogus", "status": "weird", "timeLeft": -3})
    assert session.view is SessionView.ANSWERING
    assert session.status is SessionStatus.IN_PROGRESS
    assert session.time_left == 0


def test_summary_and_correlation_records(store) -> None:
    assert store.load_summary("t1") is None
    assert store.save_summary("t1", {"status": "incomplete"})
    assert store.load_summary("t1") == {"status": "incomplete"}

    assert store.load_correlation_id("t1") is None
    store.save_correlation_id("t1", "abc123")
    assert store.load_correlation_id("t1") == "abc123"

    store.save(Session(test_id="t1"))
    store.discard("t1")
    assert store.load("t1") is None
    assert store.load_correlation_id("t1") is None
    assert store.load_summary("t1") == {"status": "incomplete"}
