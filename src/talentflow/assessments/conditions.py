"""
Assessment rules.

Conditional question visibility, integrity checks for the condition graph
and validation of submitted answers.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from talentflow.api.schemas import Assessment, AssessmentBody, Question, QuestionType, Section
from talentflow.errors import ValidationError

_TEXT_TYPES = (QuestionType.SHORT_TEXT, QuestionType.LONG_TEXT)


def default_assessment(job_id: int) -> Assessment:
    """Skeleton returned for a job that has no stored assessment."""
    return Assessment(
        job_id=job_id,
        title="New Assessment",
        sections=[
            Section(
                id="s1",
                title="Default Section",
                description="This is a default section.",
                questions=[],
            )
        ],
    )


def iter_questions(assessment: AssessmentBody) -> Iterator[Question]:
    """Yield every question in section order."""
    for section in assessment.sections:
        yield from section.questions


def _is_unanswered(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and not value)


def is_question_visible(question: Question, answers: Mapping[str, Any]) -> bool:
    """
    Decide whether a question is shown given the answers so far.

    Only the controlling question's answer is consulted, so evaluation
    terminates even on a cyclic condition graph. Any falsy controlling
    answer hides the question: unanswered, empty, ``0`` and ``False`` alike.
    A ``0`` still counts as an answer when checking required fields.
    """
    condition = question.condition
    if condition is None or not condition.question_id:
        return True

    target = answers.get(condition.question_id)
    if not target:
        return False

    if condition.operator == "eq":
        return condition.value in target if isinstance(target, list) else target == condition.value
    if condition.operator == "neq":
        return condition.value not in target if isinstance(target, list) else target != condition.value
    if condition.operator == "contains":
        if isinstance(target, list):
            return condition.value in target
        return str(condition.value) in str(target)
    return True


def find_condition_cycle(assessment: AssessmentBody) -> list[str] | None:
    """
    Find a cycle in the question reference graph.

    Each question points at most at one controlling question, so following
    the edges from every start node is enough.

    Returns:
        The question ids forming the cycle, in reference order, or None.
    """
    edges = {
        question.id: question.condition.question_id
        for question in iter_questions(assessment)
        if question.condition is not None
    }
    cleared: set[str] = set()
    for start in edges:
        path: list[str] = []
        on_path: set[str] = set()
        node: str | None = start
        while node is not None and node not in cleared:
            if node in on_path:
                return path[path.index(node):]
            path.append(node)
            on_path.add(node)
            node = edges.get(node)
        cleared.update(path)
    return None


def check_assessment(assessment: AssessmentBody) -> None:
    """
    Reject an assessment whose questions cannot be evaluated.

    Raises:
        ValidationError: On duplicate question ids, conditions that reference
            an unknown question or the question itself, or a condition cycle.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for question in iter_questions(assessment):
        if question.id in seen:
            duplicates.append(question.id)
        seen.add(question.id)
    if duplicates:
        raise ValidationError(
            f"Duplicate question id(s): {', '.join(sorted(set(duplicates)))}",
            details={"questions": sorted(set(duplicates))},
        )

    for question in iter_questions(assessment):
        if question.condition is None:
            continue
        target = question.condition.question_id
        if target == question.id:
            raise ValidationError(
                f"Question '{question.id}' cannot depend on itself",
                details={"question": question.id},
            )
        if target not in seen:
            raise ValidationError(
                f"Question '{question.id}' depends on unknown question '{target}'",
                details={"question": question.id, "depends_on": target},
            )

    cycle = find_condition_cycle(assessment)
    if cycle:
        raise ValidationError(
            f"Conditional questions form a cycle: {' -> '.join(cycle + cycle[:1])}",
            details={"cycle": cycle},
        )


def _check_answer(question: Question, value: Any) -> str | None:
    if question.type == QuestionType.NUMERIC:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return "Must be a number"
        if question.min is not None and number < question.min:
            return f"Must be at least {question.min:g}"
        if question.max is not None and number > question.max:
            return f"Must be at most {question.max:g}"
    elif question.type in _TEXT_TYPES:
        if question.max_length is not None and len(str(value)) > question.max_length:
            return f"Must be at most {question.max_length} characters"
    elif question.type == QuestionType.SINGLE_CHOICE and question.options:
        if value not in question.options:
            return "Not a valid option"
    elif question.type == QuestionType.MULTI_CHOICE and question.options:
        values = value if isinstance(value, list) else [value]
        if any(item not in question.options for item in values):
            return "Not a valid option"
    return None


def validate_answers(assessment: AssessmentBody, answers: Mapping[str, Any]) -> dict[str, str]:
    """
    Validate submitted answers against an assessment.

    Hidden questions are skipped entirely.

    Returns:
        Question id to error message, empty when the answers are valid.
    """
    errors: dict[str, str] = {}
    for question in iter_questions(assessment):
        if not is_question_visible(question, answers):
            continue
        value = answers.get(question.id)
        if _is_unanswered(value):
            if question.required:
                errors[question.id] = "This field is required"
            continue
        message = _check_answer(question, value)
        if message:
            errors[question.id] = message
    return errors
