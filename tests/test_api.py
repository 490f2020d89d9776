import pytest
from fastapi.testclient import TestClient

from satsession.app import app
from satsession.database import get_db
from satsession.dependencies import get_session_manager
from satsession.services.results_service import LocalResultsService
from satsession.services.session_manager import SessionManager

ALICE = {"X-Client-Id": "alice"}
BASE = "/api/tests/practice-1/session"


@pytest.fixture
def client(session_factory, data_dir):
    manager = SessionManager(
        session_factory,
        results_factory=lambda factory, client_id: LocalResultsService(factory, client_id),
        start_timers=False,
    )

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_session_manager] = lambda: manager
    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _navigate(client: TestClient, action: str, **extra) -> dict:
    response = client.post(f"{BASE}/navigate", json={"action": action, **extra}, headers=ALICE)
    assert response.status_code == 200, response.text
    return response.json()


def _answer(client: TestClient, answer: str) -> dict:
    response = client.post(f"{BASE}/answer", json={"answer": answer}, headers=ALICE)
    assert response.status_code == 200, response.text
    return response.json()


def test_full_session_over_http(client: TestClient) -> None:
    opened = client.post(BASE, headers=ALICE)
    assert opened.status_code == 200
    assert opened.json()["clock"] == "2:00"

    assert _answer(client, "quick")["selectedAnswer"] == "quick"
    _navigate(client, "next")
    _answer(client, "alpha")
    assert _navigate(client, "next")["view"] == "section-review"
    assert _navigate(client, "advance")["sectionName"] == "Math"
    _answer(client, "3.5")
    _navigate(client, "next")
    finished = _navigate(client, "advance")

    assert finished["status"] == "completed"
    assert finished["result"]["score"] == 67
    assert finished["result"]["coinsEarned"] == 2
    assert finished["result"]["profile"]["coins"] == 2

    listed = client.get("/api/results", headers=ALICE).json()
    assert listed["total"] == 1
    assert listed["results"][0]["status"] == "completed"
    assert client.get("/api/results", headers={"X-Client-Id": "bob"}).json()["total"] == 0


def test_invalid_actions_conflict(client: TestClient) -> None:
    client.post(BASE, headers=ALICE)
    response = client.post(f"{BASE}/answer", json={"answer": "nope"}, headers=ALICE)
    assert response.status_code == 409

    response = client.post(f"{BASE}/navigate", json={"action": "advance"}, headers=ALICE)
    assert response.status_code == 409

    response = client.post(f"{BASE}/navigate", json={"action": "goto"}, headers=ALICE)
    assert response.status_code == 400

    response = client.post(f"{BASE}/navigate", json={"action": "sideways"}, headers=ALICE)
    assert response.status_code == 422


def test_missing_test_and_bad_ids(client: TestClient) -> None:
    assert client.post("/api/tests/unknown/session", headers=ALICE).status_code == 404
    assert client.post(BASE, headers={"X-Client-Id": "..\\x"}).status_code == 400
    assert client.get(BASE, headers=ALICE).status_code == 404


def test_mark_eliminate_and_pause(client: TestClient) -> None:
    client.post(BASE, headers=ALICE)
    assert client.post(f"{BASE}/mark", headers=ALICE).json() == {"markedForReview": True}
    eliminated = client.post(f"{BASE}/eliminate", json={"option": "lazy"}, headers=ALICE).json()
    assert eliminated["eliminated"] is True
    assert client.post(f"{BASE}/answer", json={"answer": "lazy"}, headers=ALICE).status_code == 409
    assert client.post(f"{BASE}/pause", headers=ALICE).json()["isTimerStopped"] is True

    snapshot = client.get(BASE, headers=ALICE).json()
    assert snapshot["markedForReview"] is True
    assert snapshot["isTimerStopped"] is True
    assert snapshot["questionStates"][0]["markedForReview"] is True


def test_highlight_endpoints(client: TestClient) -> None:
    client.post(BASE, headers=ALICE)
    assert client.post(f"{BASE}/highlights/mode", headers=ALICE).json() == {"highlightMode": True}

    selected = client.post(f"{BASE}/highlights/selection", json={"start": 35, "end": 39}, headers=ALICE)
    assert selected.json() == {"accepted": True, "highlightState": "selecting"}
    released = client.post(f"{BASE}/highlights/release", json={}, headers=ALICE).json()
    assert released["text"] == "lazy"

    committed = client.post(f"{BASE}/highlights", json={"color": "blue"}, headers=ALICE).json()
    highlight_id = committed["highlight"]["id"]
    assert f'data-highlight-id="{highlight_id}"' in committed["html"]

    rendered = client.get(f"{BASE}/render", headers=ALICE).json()
    assert rendered["html"] == committed["html"]
    assert rendered["skipped"] == []

    removed = client.delete(f"{BASE}/highlights/{highlight_id}", headers=ALICE)
    assert removed.status_code == 200
    assert "custom-highlight" not in removed.json()["html"]
    assert client.delete(f"{BASE}/highlights/{highlight_id}", headers=ALICE).status_code == 404

    client.post(f"{BASE}/highlights/selection", json={"start": 4, "end": 9}, headers=ALICE)
    client.post(f"{BASE}/highlights/release", json={}, headers=ALICE)
    cancelled = client.delete(f"{BASE}/highlights/pending", headers=ALICE).json()
    assert cancelled == {"highlightState": "idle"}
    assert client.post(f"{BASE}/highlights", json={"color": "blue"}, headers=ALICE).status_code == 409

    cleared = client.delete(f"{BASE}/highlights", headers=ALICE)
    assert cleared.status_code == 200


def test_save_exit_and_resume(client: TestClient) -> None:
    client.post(BASE, headers=ALICE)
    _answer(client, "quick")
    _navigate(client, "goto", ordinal=2)

    exited = client.post(f"{BASE}/exit", headers=ALICE).json()
    assert exited["status"] == "incomplete-exit"
    assert exited["saved"] == "full"
    assert client.get(BASE, headers=ALICE).status_code == 404

    resumed = client.post(BASE, headers=ALICE).json()
    assert resumed["status"] == "in-progress"
    assert resumed["currentQuestion"] == 2
    assert resumed["answeredCount"] == 1


def test_abandon_session(client: TestClient) -> None:
    client.post(BASE, headers=ALICE)
    _answer(client, "quick")
    assert client.delete(BASE, headers=ALICE).json()["status"] == "abandoned"
    assert client.get(BASE, headers=ALICE).status_code == 404
    assert client.post(BASE, headers=ALICE).json()["answeredCount"] == 0


def test_results_endpoints(client: TestClient) -> None:
    started = client.post("/api/results", json={"testId": "practice-1"}, headers=ALICE).json()
    result_id = started["result"]["id"]

    body = {
        "questionResults": [
            {"question": "q1", "selectedAnswer": "quick", "isCorrect": True},
            {"question": "q2", "selectedAnswer": None, "isCorrect": False},
        ]
    }
    assert client.put(f"/api/results/{result_id}", json=body, headers={"X-Client-Id": "bob"}).status_code == 403
    completed = client.put(f"/api/results/{result_id}", json=body, headers=ALICE).json()
    assert completed["coinsEarned"] == 1
    assert completed["result"]["percentage"] == 50.0

    assert client.get(f"/api/results/{result_id}", headers=ALICE).json()["result"]["id"] == result_id
    assert client.get("/api/results/missing", headers=ALICE).status_code == 404

    profile = client.get("/api/results/profile", headers=ALICE).json()
    assert profile == {"clientId": "alice", "totalTestsTaken": 1, "coins": 1, "averageAccuracy": 50.0}
