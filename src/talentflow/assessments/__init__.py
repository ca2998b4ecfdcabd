"""
Assessment rules: visibility, condition-graph checks and answer validation.
"""

from talentflow.assessments.conditions import (
    check_assessment,
    default_assessment,
    find_condition_cycle,
    is_question_visible,
    validate_answers,
)

__all__ = [
    "check_assessment",
    "default_assessment",
    "find_condition_cycle",
    "is_question_visible",
    "validate_answers",
]
