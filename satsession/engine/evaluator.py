"""Correctness checks for submitted answers.

Upstream content is inconsistent about where the answer key lives, so
choice questions are checked against every representation in a fixed
order. All functions here are pure.
"""
from __future__ import annotations

from satsession.models.content import AnswerKind, Question


def normalize_free_response(value: str) -> str:
    """Trim and case-fold a written answer."""
    return value.strip().casefold()


def accepted_answers(question: Question) -> list[str]:
    """Acceptable-answers list plus the canonical written answer, deduplicated."""
    answers = list(question.acceptable_answers)
    if question.written_answer and question.written_answer not in answers:
        answers.append(question.written_answer)
    return answers


def _matches_flagged_option(question: Question, submitted: str) -> bool:
    return any(
        option.is_correct and option.content == submitted
        for option in question.options
    )


def _matches_string_key(question: Question, submitted: str) -> bool:
    return isinstance(question.correct_answer, str) and submitted == question.correct_answer


def _matches_indexed_option(question: Question, submitted: str) -> bool:
    index = question.correct_answer
    if not isinstance(index, int) or not 0 <= index < len(question.options):
        return False
    return submitted == question.options[index].content


def _matches_stringified_index(question: Question, submitted: str) -> bool:
    index = question.correct_answer
    return isinstance(index, int) and submitted == str(index)


CHOICE_RULES = (
    _matches_flagged_option,
    _matches_string_key,
    _matches_indexed_option,
    _matches_stringified_index,
)


def evaluate_choice(question: Question, submitted: str) -> bool:
    return any(rule(question, submitted) for rule in CHOICE_RULES)


def evaluate_free_response(question: Question, submitted: str) -> bool:
    # No numeric equivalence: "0.5" and "1/2" only match if both are listed
    normalized = normalize_free_response(submitted)
    return any(
        normalize_free_response(answer) == normalized
        for answer in accepted_answers(question)
    )


def evaluate(question: Question, submitted: object) -> bool:
    """Return True when ``submitted`` is a correct answer to ``question``."""
    if not isinstance(submitted, str) or not submitted:
        return False
    if question.kind is AnswerKind.FREE_RESPONSE:
        return evaluate_free_response(question, submitted)
    return evaluate_choice(question, submitted)
