"""Test session endpoints."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from satsession.dependencies import get_client_id, get_session_manager
from satsession.engine.navigation import NavigationController
from satsession.models import (
    AnswerKind,
    AnswerRequest,
    EliminateRequest,
    HighlightCommitRequest,
    NavigateRequest,
    ReleaseRequest,
    SelectionRequest,
)
from satsession.services.session_manager import SessionManager
from satsession.utils import engine_errors, validate_id

router = APIRouter(prefix="/api/tests/{test_id}/session", tags=["sessions"])

ClientId = Annotated[str, Depends(get_client_id)]
Manager = Annotated[SessionManager, Depends(get_session_manager)]


def _live(manager: SessionManager, client_id: str, test_id: str) -> NavigationController:
    controller = manager.get(client_id, validate_id("testId", test_id))
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not open")
    return controller


@router.post("")
def open_session(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    """Open a fresh session or resume the stored one."""
    test_id = validate_id("testId", test_id)
    with engine_errors():
        controller = manager.open(client_id, test_id)
    return controller.snapshot()


@router.get("")
def get_session(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    return _live(manager, client_id, test_id).snapshot()


@router.delete("")
def abandon_session(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    """Abandon the session and delete its stored records."""
    test_id = validate_id("testId", test_id)
    manager.abandon(client_id, test_id)
    return {"status": "abandoned", "testId": test_id}


@router.post("/answer")
def answer(
    test_id: str, payload: AnswerRequest, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        if controller.question.kind is AnswerKind.CHOICE:
            controller.select_answer(payload.answer)
        else:
            controller.write_answer(payload.answer)
    return controller.snapshot()


@router.post("/mark")
def toggle_mark(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        marked = controller.toggle_mark_for_review()
    return {"markedForReview": marked}


@router.post("/eliminate")
def toggle_eliminate(
    test_id: str, payload: EliminateRequest, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        eliminated = controller.toggle_eliminate(payload.option)
    return {"option": payload.option, "eliminated": eliminated}


@router.post("/navigate")
def navigate(
    test_id: str, payload: NavigateRequest, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    """Move between questions, the section review and the next section."""
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        if payload.action == "next":
            controller.next()
        elif payload.action == "back":
            controller.back()
        elif payload.action == "goto":
            if payload.ordinal is None:
                raise HTTPException(status_code=400, detail="ordinal is required")
            controller.go_to(payload.ordinal)
        elif payload.action == "review":
            controller.open_review()
        elif payload.action == "review-back":
            controller.review_back()
        else:
            controller.advance_from_review()
    return controller.snapshot()


@router.post("/pause")
def toggle_pause(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        paused = controller.toggle_pause()
    return {"isTimerStopped": paused, "timeLeft": controller.session.time_left}


@router.post("/exit")
def save_and_exit(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    """Save progress as an incomplete exit and close the session."""
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        tier = controller.save_and_exit()
    manager.close(client_id, controller.test.id)
    return {
        "status": controller.session.status.value,
        "saved": tier.value if tier else None,
        "currentSection": controller.session.current_section,
        "currentQuestion": controller.session.current_question,
        "timeLeft": controller.session.time_left,
    }


@router.post("/finalize")
def retry_finalize(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    """Retry a submission left pending by a results service failure."""
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        result = controller.retry_finalize()
    return result.to_dict()


# Highlights


@router.get("/render")
def render(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    """HTML of the current question with its highlights applied."""
    controller = _live(manager, client_id, test_id)
    return {
        "questionId": controller.question.id,
        "html": controller.render(),
        "skipped": list(controller.highlighter.skipped),
    }


@router.post("/highlights/mode")
def toggle_highlight_mode(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    return {"highlightMode": controller.toggle_highlight_mode()}


@router.post("/highlights/selection")
def begin_selection(
    test_id: str, payload: SelectionRequest, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        accepted = controller.begin_selection(payload.start, payload.end)
    return {"accepted": accepted, "highlightState": controller.highlighter.state.value}


@router.post("/highlights/release")
def release_selection(
    test_id: str, payload: ReleaseRequest, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        accepted = controller.release_selection(payload.start, payload.end)
    pending = controller.highlighter.pending
    return {
        "accepted": accepted,
        "highlightState": controller.highlighter.state.value,
        "text": pending.text if pending else None,
    }


@router.post("/highlights")
def commit_highlight(
    test_id: str, payload: HighlightCommitRequest, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        highlight = controller.commit_highlight(payload.color)
    return {"highlight": highlight.to_dict(), "html": controller.render()}


@router.delete("/highlights/pending")
def cancel_highlight(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    controller.cancel_highlight()
    return {"highlightState": controller.highlighter.state.value}


@router.delete("/highlights/{highlight_id}")
def remove_highlight(
    test_id: str, highlight_id: str, client_id: ClientId, manager: Manager
) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        removed = controller.remove_highlight(highlight_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Highlight not found")
    return {"removed": highlight_id, "html": controller.render()}


@router.delete("/highlights")
def clear_highlights(test_id: str, client_id: ClientId, manager: Manager) -> dict[str, object]:
    controller = _live(manager, client_id, test_id)
    with engine_errors():
        controller.clear_highlights()
    return {"html": controller.render()}
