"""Results service endpoints backed by the local attempts store."""
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DbSession

from satsession.database import get_db
from satsession.dependencies import get_client_id
from satsession.models import ResultCompleteRequest, ResultStartRequest
from satsession.services import attempt_service
from satsession.utils import validate_id

router = APIRouter(prefix="/api/results", tags=["results"])

ClientId = Annotated[str, Depends(get_client_id)]
Db = Annotated[DbSession, Depends(get_db)]


@router.post("")
def start_result(payload: ResultStartRequest, client_id: ClientId, db: Db) -> dict[str, object]:
    """Create an in-progress result; its id is the client's correlation id."""
    test_id = validate_id("testId", payload.testId)
    attempt = attempt_service.start_attempt(db, test_id, client_id)
    return {"success": True, "result": attempt.to_dict()}


@router.get("")
def list_results(
    client_id: ClientId,
    db: Db,
    test_id: Annotated[str | None, Query(alias="testId")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> dict[str, object]:
    if test_id is not None:
        test_id = validate_id("testId", test_id)
    attempts = attempt_service.get_attempts_by_client(
        db, client_id, test_id=test_id, limit=limit, offset=offset
    )
    return {
        "results": [attempt.to_dict() for attempt in attempts],
        "total": attempt_service.count_attempts(db, client_id=client_id, test_id=test_id),
    }


@router.get("/profile")
def get_profile(client_id: ClientId, db: Db) -> dict[str, object]:
    """Aggregate coins and accuracy over completed results."""
    return attempt_service.profile_stats(db, client_id)


@router.get("/{result_id}")
def get_result(result_id: str, client_id: ClientId, db: Db) -> dict[str, object]:
    attempt = attempt_service.get_attempt(db, validate_id("resultId", result_id))
    if not attempt:
        raise HTTPException(status_code=404, detail="Result not found")
    if attempt.client_id != client_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return {"result": attempt.to_dict()}


@router.put("/{result_id}")
def complete_result(
    result_id: str,
    payload: ResultCompleteRequest,
    client_id: ClientId,
    db: Db,
) -> dict[str, object]:
    """Store per-question results and award coins."""
    attempt = attempt_service.complete_attempt(
        db,
        validate_id("resultId", result_id),
        [item.model_dump() for item in payload.questionResults],
        client_id=client_id,
    )
    return {
        "success": True,
        "coinsEarned": attempt.coins_earned,
        "result": attempt.to_dict(),
    }
