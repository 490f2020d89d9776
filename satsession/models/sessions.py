"""Session request models."""
from typing import Literal

from pydantic import BaseModel, Field


class AnswerRequest(BaseModel):
    """Selected option content or written answer."""

    answer: str


class EliminateRequest(BaseModel):
    """Option to cross out or restore."""

    option: str = Field(..., min_length=1)


class NavigateRequest(BaseModel):
    """Model for a navigation action."""

    action: Literal["next", "back", "goto", "review", "review-back", "advance"]
    ordinal: int | None = Field(default=None, ge=1)


class SelectionRequest(BaseModel):
    """Text offsets of a selection in the rendered question."""

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class ReleaseRequest(BaseModel):
    """Final selection on pointer release; omitted offsets keep the current one."""

    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)


class HighlightCommitRequest(BaseModel):
    color: str = Field(..., min_length=1)
