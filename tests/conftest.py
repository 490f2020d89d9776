import json
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from satsession import config
from satsession.database import init_db, make_engine
from satsession.models.content import Test
from satsession.services.session_store import KeyValueStore, SessionStore


def write_test_file(base: Path, test_id: str, content: object) -> None:
    path = base / test_id / "test.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, ensure_ascii=False, indent=2), encoding="utf-8")


def build_payload() -> dict[str, object]:
    """Two sections: two choice questions, then one written question."""
    return {
        "title": "Practice Test 1",
        "type": "sat",
        "sections": [
            {
                "name": "Reading and Writing",
                "type": "verbal",
                "timeLimit": 2,
                "questions": [
                    {
                        "id": "q1",
                        "passage": "The **quick** brown fox jumps over the lazy dog.",
                        "content": "Which word describes the fox?",
                        "options": [
                            {"content": "quick", "isCorrect": True},
                            {"content": "lazy", "isCorrect": False},
                            {"content": "slow", "isCorrect": False},
                        ],
                    },
                    {
                        "id": "q2",
                        "content": "Pick the *second* option.",
                        "options": ["alpha", "beta", "gamma"],
                        "correctAnswer": 1,
                    },
                ],
            },
            {
                "name": "Math",
                "type": "quantitative",
                "timeLimit": 1.5,
                "questions": [
                    {
                        "id": "q3",
                        "content": "What is 7 divided by 2?",
                        "answerType": "written",
                        "acceptableAnswers": ["3.5", "7/2"],
                    },
                ],
            },
        ],
    }


@pytest.fixture
def payload() -> dict[str, object]:
    return build_payload()


@pytest.fixture
def exam(payload) -> Test:
    return Test.model_validate({**payload, "id": "practice-1"})


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker:
    engine = make_engine(f"sqlite:///{tmp_path / 'session.db'}")
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def kv(session_factory) -> KeyValueStore:
    return KeyValueStore(session_factory)


@pytest.fixture
def store(kv) -> SessionStore:
    return SessionStore(kv, "client-1")


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, payload) -> Path:
    """Content directory holding the sample test as ``practice-1``."""
    base = tmp_path / "tests"
    monkeypatch.setattr(config, "DATA_DIR", base)
    write_test_file(base, "practice-1", payload)
    return base


@pytest.fixture
def write_test(data_dir: Path):
    """Write raw content for another test id into the content directory."""
    return lambda test_id, content: write_test_file(data_dir, test_id, content)
