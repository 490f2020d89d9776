"""Test content models as delivered by the content service."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


FREE_RESPONSE_TYPES = {"written", "free-response", "grid-in"}


class AnswerKind(str, Enum):
    """How a question is answered."""

    CHOICE = "choice"
    FREE_RESPONSE = "free-response"


class SectionType(str, Enum):
    """Kind of questions a section holds."""

    VERBAL = "verbal"
    QUANTITATIVE = "quantitative"


class ContentModel(BaseModel):
    """Base for content models: camelCase aliases, immutable once loaded."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class Option(ContentModel):
    """One answer option of a choice question."""

    content: str
    is_correct: bool = Field(default=False, alias="isCorrect")


class Question(ContentModel):
    """A single question with its answer key."""

    id: str = ""
    content: str = ""
    passage: str | None = None
    type: str | None = None
    answer_type: str | None = Field(default=None, alias="answerType")
    options: tuple[Option, ...] = ()
    correct_answer: str | int | None = Field(default=None, alias="correctAnswer")
    acceptable_answers: tuple[str, ...] = Field(default=(), alias="acceptableAnswers")
    written_answer: str | None = Field(default=None, alias="writtenAnswer")
    explanation: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("options", mode="before")
    @classmethod
    def _coerce_options(cls, value: object) -> object:
        # Options are sometimes authored as bare strings
        if not isinstance(value, list):
            return value
        return [
            {"content": item} if isinstance(item, str) else item for item in value
        ]

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _drop_bool_answer(cls, value: object) -> object:
        if isinstance(value, bool):
            return None
        return value

    @property
    def kind(self) -> AnswerKind:
        """Resolve the answer kind from the inconsistent authoring fields."""
        if self.answer_type in FREE_RESPONSE_TYPES or self.type in FREE_RESPONSE_TYPES:
            return AnswerKind.FREE_RESPONSE
        return AnswerKind.CHOICE

    @property
    def display_text(self) -> str:
        """Source text of the highlightable surface: passage then prompt."""
        if self.passage:
            return f"{self.passage}\n\n{self.content}"
        return self.content


class Section(ContentModel):
    """A timed block of questions of one type."""

    name: str = ""
    type: SectionType = SectionType.VERBAL
    time_limit: float = Field(default=0, alias="timeLimit", ge=0)
    questions: tuple[Question, ...] = ()

    @property
    def time_limit_seconds(self) -> int:
        """Section time limit converted from minutes."""
        return int(round(self.time_limit * 60))


class Test(ContentModel):
    """An exam: an ordered list of sections."""

    id: str
    title: str = ""
    type: str | None = None
    sections: tuple[Section, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _assign_positional_ids(cls, data: object) -> object:
        """Give questions without an id the positional key S-Q."""
        if not isinstance(data, dict):
            return data
        sections = data.get("sections")
        if not isinstance(sections, list):
            return data
        patched = []
        for section_index, section in enumerate(sections):
            if not isinstance(section, dict):
                patched.append(section)
                continue
            questions = section.get("questions")
            if isinstance(questions, list):
                fixed = []
                for ordinal, question in enumerate(questions, start=1):
                    if isinstance(question, dict) and not (
                        question.get("id") or question.get("_id")
                    ):
                        question = {**question, "id": f"{section_index}-{ordinal}"}
                    elif isinstance(question, dict) and not question.get("id"):
                        question = {**question, "id": question["_id"]}
                    fixed.append(question)
                section = {**section, "questions": fixed}
            patched.append(section)
        return {**data, "sections": patched}

    @property
    def total_questions(self) -> int:
        return sum(len(section.questions) for section in self.sections)

    def question_at(self, section_index: int, ordinal: int) -> Question | None:
        """Question by section index and 1-based ordinal."""
        if not 0 <= section_index < len(self.sections):
            return None
        questions = self.sections[section_index].questions
        if not 1 <= ordinal <= len(questions):
            return None
        return questions[ordinal - 1]

    def position_of(self, question_id: str) -> tuple[int, int] | None:
        """Section index and ordinal of a question id."""
        for section_index, section in enumerate(self.sections):
            for ordinal, question in enumerate(section.questions, start=1):
                if question.id == question_id:
                    return section_index, ordinal
        return None

    def iter_questions(self):
        """Yield (section_index, ordinal, question) for every question."""
        for section_index, section in enumerate(self.sections):
            for ordinal, question in enumerate(section.questions, start=1):
                yield section_index, ordinal, question
