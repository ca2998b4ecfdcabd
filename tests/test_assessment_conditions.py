"""
Tests for conditional question visibility and answer validation.
"""

import pytest

from talentflow.api.schemas import AssessmentBody, Condition, Question, QuestionType
from talentflow.assessments import (
    check_assessment,
    default_assessment,
    find_condition_cycle,
    is_question_visible,
    validate_answers,
)
from talentflow.errors import ValidationError


def _question(qid: str, qtype: QuestionType = QuestionType.SHORT_TEXT, **fields) -> Question:
    return Question(id=qid, type=qtype, label=qid.upper(), **fields)


def _assessment(*questions: Question) -> AssessmentBody:
    return AssessmentBody(sections=[{"id": "s1", "questions": list(questions)}])


class TestVisibility:
    """Tests for is_question_visible."""

    def test_unconditional_question_is_visible(self) -> None:
        assert is_question_visible(_question("q1"), {})

    @pytest.mark.parametrize(
        "operator, value, answer, expected",
        [
            ("eq", "Yes", "Yes", True),
            ("eq", "Yes", "No", False),
            ("neq", "Yes", "No", True),
            ("neq", "Yes", "Yes", False),
            ("contains", "React", "React and Vue", True),
            ("contains", "React", "Angular", False),
            ("contains", "React", ["React", "Vue"], True),
            ("eq", "Vue", ["React", "Vue"], True),
            ("neq", "Vue", ["React"], True),
        ],
    )
    def test_operators(self, operator: str, value, answer, expected: bool) -> None:
        question = _question("q2", condition=Condition(question_id="q1", operator=operator, value=value))

        assert is_question_visible(question, {"q1": answer}) is expected

    @pytest.mark.parametrize("answer", [None, "", [], 0, False])
    def test_falsy_controller_hides_question(self, answer) -> None:
        """Test that even 'neq' hides a question until its controller is answered."""
        question = _question("q2", condition=Condition(question_id="q1", operator="neq", value="x"))

        assert not is_question_visible(question, {"q1": answer})

    def test_cyclic_graph_terminates(self) -> None:
        """Test that evaluation only looks at the direct controller."""
        q1 = _question("q1", condition=Condition(question_id="q2", value="b"))
        q2 = _question("q2", condition=Condition(question_id="q1", value="a"))
        answers = {"q1": "a", "q2": "b"}

        assert is_question_visible(q1, answers)
        assert is_question_visible(q2, answers)


class TestIntegrity:
    """Tests for check_assessment and cycle detection."""

    def test_default_assessment_passes(self) -> None:
        check_assessment(default_assessment(1))

    def test_cycle_is_found(self) -> None:
        assessment = _assessment(
            _question("a", condition=Condition(question_id="c")),
            _question("b", condition=Condition(question_id="a")),
            _question("c", condition=Condition(question_id="b")),
            _question("d", condition=Condition(question_id="a")),
        )

        cycle = find_condition_cycle(assessment)

        assert cycle is not None
        assert sorted(cycle) == ["a", "b", "c"]

    def test_chain_without_cycle(self) -> None:
        assessment = _assessment(
            _question("a"),
            _question("b", condition=Condition(question_id="a")),
            _question("c", condition=Condition(question_id="b")),
        )

        assert find_condition_cycle(assessment) is None
        check_assessment(assessment)

    def test_self_reference(self) -> None:
        with pytest.raises(ValidationError):
            check_assessment(_assessment(_question("a", condition=Condition(question_id="a"))))

    def test_unknown_reference(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            check_assessment(_assessment(_question("a", condition=Condition(question_id="zz"))))

        assert exc_info.value.details["depends_on"] == "zz"

    def test_duplicate_ids_across_sections(self) -> None:
        assessment = AssessmentBody(
            sections=[
                {"id": "s1", "questions": [_question("q1")]},
                {"id": "s2", "questions": [_question("q1")]},
            ]
        )

        with pytest.raises(ValidationError):
            check_assessment(assessment)


class TestValidateAnswers:
    """Tests for validate_answers."""

    @pytest.fixture
    def assessment(self) -> AssessmentBody:
        return _assessment(
            _question("name", required=True, max_length=10),
            _question("years", QuestionType.NUMERIC, min=0, max=50),
            _question("lang", QuestionType.SINGLE_CHOICE, options=["Python", "Go"]),
            _question("tools", QuestionType.MULTI_CHOICE, options=["git", "docker"]),
            _question(
                "why_go",
                QuestionType.LONG_TEXT,
                required=True,
                condition=Condition(question_id="lang", value="Go"),
            ),
        )

    def test_valid_answers(self, assessment: AssessmentBody) -> None:
        answers = {"name": "Ada", "years": "7", "lang": "Python", "tools": ["git"]}

        assert validate_answers(assessment, answers) == {}

    def test_every_rule_reports(self, assessment: AssessmentBody) -> None:
        answers = {"name": "A very long name", "years": 99, "lang": "Rust", "tools": ["git", "svn"]}

        errors = validate_answers(assessment, answers)

        assert set(errors) == {"name", "years", "lang", "tools"}
        assert errors["years"] == "Must be at most 50"

    def test_required_missing(self, assessment: AssessmentBody) -> None:
        assert validate_answers(assessment, {})["name"] == "This field is required"

    def test_zero_is_an_answer_but_hides_dependents(self) -> None:
        """Test that 0 satisfies 'required' yet still hides a question conditioned on it."""
        assessment = _assessment(
            _question("years", QuestionType.NUMERIC, required=True),
            _question("details", required=True, condition=Condition(question_id="years", operator="neq", value=5)),
        )

        assert validate_answers(assessment, {"years": 0}) == {}
        assert validate_answers(assessment, {"years": 3}) == {"details": "This field is required"}

    def test_non_numeric(self, assessment: AssessmentBody) -> None:
        errors = validate_answers(assessment, {"name": "Ada", "years": "lots"})

        assert errors == {"years": "Must be a number"}

    def test_hidden_question_is_skipped(self, assessment: AssessmentBody) -> None:
        """Test that a required question is only enforced while visible."""
        assert validate_answers(assessment, {"name": "Ada", "lang": "Python"}) == {}
        assert validate_answers(assessment, {"name": "Ada", "lang": "Go"}) == {"why_go": "This field is required"}
