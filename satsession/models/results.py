"""Results service request models."""
from pydantic import BaseModel, Field


class ResultStartRequest(BaseModel):
    """Model for creating a result record."""

    testId: str = Field(..., min_length=1)


class QuestionResult(BaseModel):
    """Verdict for a single question."""

    question: str = Field(..., min_length=1)
    selectedAnswer: str | None = None
    isCorrect: bool = False
    timeSpent: int = Field(default=0, ge=0)


class ResultCompleteRequest(BaseModel):
    """Model for completing a result record."""

    questionResults: list[QuestionResult]
    score: int | None = None
    correctCount: int | None = None
    totalQuestions: int | None = None
    endTime: str | None = None
    status: str = "completed"
