"""Service layer for submitted attempts using the SQL database."""
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session as DBSession, selectinload

from satsession import config
from satsession.models.db.attempt import Attempt, AttemptAnswer, AttemptStatus


def coins_for_percentage(percentage: float) -> int:
    """Reward coins for an overall percentage score."""
    for threshold, coins in config.COIN_THRESHOLDS:
        if percentage >= threshold:
            return coins
    return 0


def start_attempt(db: DBSession, test_id: str, client_id: str) -> Attempt:
    """Create a new in-progress attempt and return it."""
    previous = count_attempts(db, client_id=client_id, test_id=test_id)
    attempt = Attempt(
        id=uuid.uuid4().hex,
        test_id=test_id,
        client_id=client_id,
        attempt_number=previous + 1,
        status=AttemptStatus.IN_PROGRESS.value,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def complete_attempt(
    db: DBSession,
    attempt_id: str,
    question_results: list[dict[str, Any]],
    client_id: str | None = None,
) -> Attempt:
    """
    Store per-question results, score the attempt and award coins.

    Completing an already completed attempt returns it unchanged so that
    a retried submission is acknowledged with the original reward.
    """
    attempt = get_attempt(db, attempt_id)
    if not attempt:
        raise HTTPException(status_code=404, detail="Attempt not found")
    if client_id is not None and attempt.client_id != client_id:
        raise HTTPException(status_code=403, detail="Access denied")
    if attempt.is_completed:
        return attempt

    correct_count = 0
    seen: set[str] = set()
    for index, item in enumerate(question_results):
        question_id = str(item.get("question") or "")
        if not question_id or question_id in seen:
            continue
        seen.add(question_id)
        is_correct = bool(item.get("isCorrect"))
        if is_correct:
            correct_count += 1
        selected = item.get("selectedAnswer")
        attempt.answers.append(
            AttemptAnswer(
                question_id=question_id,
                question_index=index,
                selected_answer=selected if isinstance(selected, str) else None,
                is_correct=is_correct,
                time_spent=int(item.get("timeSpent") or 0),
            )
        )

    attempt.question_count = len(seen)
    attempt.correct_count = correct_count
    attempt.coins_earned = coins_for_percentage(attempt.percent_correct)
    attempt.status = AttemptStatus.COMPLETED.value
    attempt.finished_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(attempt)
    return attempt


def get_attempt(db: DBSession, attempt_id: str) -> Attempt | None:
    """Get attempt by ID with answers loaded."""
    return db.execute(
        select(Attempt)
        .options(selectinload(Attempt.answers))
        .where(Attempt.id == attempt_id)
    ).scalar_one_or_none()


def get_attempts_by_client(
    db: DBSession,
    client_id: str,
    test_id: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Attempt]:
    """
    Get attempts for a client, optionally filtered by test_id and status.
    """
    query = select(Attempt).where(Attempt.client_id == client_id)

    if test_id:
        query = query.where(Attempt.test_id == test_id)
    if status:
        query = query.where(Attempt.status == status)

    query = query.order_by(Attempt.started_at.desc()).limit(limit).offset(offset)

    return list(db.execute(query).scalars().all())


def count_attempts(
    db: DBSession,
    client_id: str | None = None,
    test_id: str | None = None,
    status: str | None = None,
) -> int:
    """Count attempts matching criteria."""
    query = select(func.count(Attempt.id))

    if client_id:
        query = query.where(Attempt.client_id == client_id)
    if test_id:
        query = query.where(Attempt.test_id == test_id)
    if status:
        query = query.where(Attempt.status == status)

    return db.execute(query).scalar() or 0


def profile_stats(db: DBSession, client_id: str) -> dict[str, object]:
    """Aggregate reward and accuracy statistics over completed attempts."""
    attempts = get_attempts_by_client(
        db, client_id, status=AttemptStatus.COMPLETED.value, limit=10_000
    )
    total = len(attempts)
    accuracy = sum(a.percent_correct for a in attempts) / total if total else 0.0
    return {
        "clientId": client_id,
        "totalTestsTaken": total,
        "coins": sum(a.coins_earned for a in attempts),
        "averageAccuracy": round(accuracy, 2),
    }
