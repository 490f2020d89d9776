"""Pydantic models."""
from satsession.models.content import AnswerKind, Option, Question, Section, SectionType, Test
from satsession.models.results import QuestionResult, ResultCompleteRequest, ResultStartRequest
from satsession.models.sessions import (
    AnswerRequest,
    EliminateRequest,
    HighlightCommitRequest,
    NavigateRequest,
    ReleaseRequest,
    SelectionRequest,
)

__all__ = [
    "AnswerKind",
    "AnswerRequest",
    "EliminateRequest",
    "HighlightCommitRequest",
    "NavigateRequest",
    "Option",
    "Question",
    "QuestionResult",
    "ReleaseRequest",
    "ResultCompleteRequest",
    "ResultStartRequest",
    "Section",
    "SectionType",
    "SelectionRequest",
    "Test",
]
