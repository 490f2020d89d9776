from pathlib import Path

import pytest

from satsession.errors import ContentLoadError
from satsession.models.content import AnswerKind, SectionType
from satsession.models.content import Test as Exam
from satsession.services.content_service import ContentService, load_test_payload


def test_get_test_validates_content(data_dir: Path) -> None:
    test = ContentService().get_test("practice-1")
    assert test.id == "practice-1"
    assert test.total_questions == 3
    assert test.sections[1].type is SectionType.QUANTITATIVE
    assert test.sections[1].time_limit_seconds == 90
    assert test.question_at(1, 1).kind is AnswerKind.FREE_RESPONSE
    assert [o.content for o in test.question_at(0, 2).options] == ["alpha", "beta", "gamma"]
    assert test.position_of("q2") == (0, 2)


def test_missing_test_is_reported(data_dir: Path) -> None:
    with pytest.raises(ContentLoadError) as excinfo:
        ContentService().get_test("nope")
    assert excinfo.value.missing


def test_unreadable_payload(data_dir: Path) -> None:
    path = data_dir / "broken" / "test.json"
    path.parent.mkdir(parents=True)
    path.write_text("{oops", encoding="utf-8")
    with pytest.raises(ContentLoadError) as excinfo:
        ContentService().get_test("broken")
    assert not excinfo.value.missing


@pytest.mark.parametrize(
    "content",
    [
        {"title": "Empty", "sections": []},
        {"title": "No questions", "sections": [{"name": "A", "questions": []}]},
        {"title": "Bad type", "sections": [{"name": "A", "type": "music", "questions": [{}]}]},
        ["not", "an", "object"],
    ],
)
def test_invalid_tests_are_rejected(write_test, content) -> None:
    write_test("invalid", content)
    with pytest.raises(ContentLoadError):
        ContentService().get_test("invalid")


def test_wrapped_export_is_unwrapped(write_test, payload) -> None:
    write_test("wrapped", {"test": payload})
    assert load_test_payload("wrapped")["title"] == "Practice Test 1"
    assert ContentService().get_test("wrapped").id == "wrapped"


def test_questions_without_ids_get_positional_ids() -> None:
    test = Exam.model_validate(
        {
            "id": "t",
            "sections": [
                {"questions": [{"content": "a"}, {"_id": "mongo-1", "content": "b"}]},
                {"questions": [{"id": 7, "content": "c"}, {"content": "d"}]},
            ],
        }
    )
    ids = [question.id for _, _, question in test.iter_questions()]
    assert ids == ["0-1", "mongo-1", "7", "1-2"]
