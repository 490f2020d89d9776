"""
Attempt and AttemptAnswer database models for submitted test results.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from satsession.database import Base


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt."""

    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Attempt(Base):
    """
    Test attempt record.
    One remote record per finalized session; its id is the correlation id.
    """

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)

    # References
    test_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    client_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    attempt_number: Mapped[int] = mapped_column(default=1, nullable=False)

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )

    # Status and results
    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )
    question_count: Mapped[int] = mapped_column(default=0, nullable=False)
    correct_count: Mapped[int] = mapped_column(default=0, nullable=False)
    coins_earned: Mapped[int] = mapped_column(default=0, nullable=False)

    # Relationships
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptAnswer.question_index",
    )

    @property
    def percent_correct(self) -> float:
        """Calculate percentage of correct answers."""
        if self.question_count == 0:
            return 0.0
        return (self.correct_count / self.question_count) * 100

    @property
    def is_completed(self) -> bool:
        """Check if attempt is completed."""
        return self.status == AttemptStatus.COMPLETED.value

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "testId": self.test_id,
            "clientId": self.client_id,
            "attemptNumber": self.attempt_number,
            "status": self.status,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "questionCount": self.question_count,
            "correctCount": self.correct_count,
            "percentage": round(self.percent_correct, 2),
            "coinsEarned": self.coins_earned,
        }


class AttemptAnswer(Base):
    """
    Individual question result within an attempt.
    """

    __tablename__ = "attempt_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Question reference
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    question_index: Mapped[int] = mapped_column(nullable=False)  # Order in the test

    # Answer data
    selected_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool] = mapped_column(default=False, nullable=False)
    time_spent: Mapped[int] = mapped_column(default=0, nullable=False)

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    # Relationships
    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")
