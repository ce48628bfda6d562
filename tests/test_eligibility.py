"""Tests for conditional eligibility and question enrichment."""

import pytest

from conftest import make_session
from survey_engine.engine.eligibility import (
    NO_CONDITION_REASON,
    enrich_questions,
    evaluate_question,
    strict_equals,
)


def by_id(enriched):
    return {q.id: q for q in enriched}


class TestStrictEquals:
    @pytest.mark.parametrize(
        "left,right,expected",
        [
            (True, True, True),
            (True, 1, False),
            (0, False, False),
            (1, 1.0, True),
            ("1", 1, False),
            ("yes", "yes", True),
        ],
    )
    def test_no_implicit_coercion(self, left, right, expected):
        assert strict_equals(left, right) is expected


class TestSingleCondition:
    def test_unconditional_question_is_always_eligible(self, pet_survey):
        decision = evaluate_question(pet_survey.get_question("Q1"), {})
        assert decision.eligible
        assert decision.reason == NO_CONDITION_REASON

    def test_unanswered_dependency(self, pet_survey):
        decision = evaluate_question(pet_survey.get_question("Q2"), {})
        assert not decision.eligible
        assert decision.reason == "Conditional: depends on unanswered question Q1"

    def test_matching_answer(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True})
        decision = evaluate_question(pet_survey.get_question("Q2"), session.responses)
        assert decision.eligible
        assert decision.reason == "Conditional logic satisfied (Q1 = 'true')"

    def test_non_matching_answer(self, pet_survey):
        session = make_session(pet_survey, {"Q1": False})
        decision = evaluate_question(pet_survey.get_question("Q2"), session.responses)
        assert not decision.eligible
        assert decision.reason == "Conditional: Q1 answer does not match required values"


class TestCompoundCondition:
    def test_and_with_one_condition_met_stays_ineligible(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True})
        decision = evaluate_question(pet_survey.get_question("Q3"), session.responses)
        assert not decision.eligible
        assert decision.reason == (
            "AND condition failed: Conditional: depends on unanswered question Q4"
        )

    def test_and_with_all_conditions_met(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True, "Q4": True})
        decision = evaluate_question(pet_survey.get_question("Q3"), session.responses)
        assert decision.eligible
        assert decision.reason == "All 2 conditions satisfied (AND)"

    def test_and_failure_lists_every_failing_condition(self, pet_survey):
        decision = evaluate_question(pet_survey.get_question("Q3"), {})
        assert decision.reason == (
            "AND condition failed: Conditional: depends on unanswered question Q1; "
            "Conditional: depends on unanswered question Q4"
        )

    def test_or_reports_first_satisfied_condition(self, pet_survey):
        question = pet_survey.get_question("Q3").model_copy(
            update={"conditional": pet_survey.get_question("Q3").conditional.model_copy(update={"operator": "OR"})}
        )
        session = make_session(pet_survey, {"Q1": False, "Q4": True})
        decision = evaluate_question(question, session.responses)
        assert decision.eligible
        assert decision.reason == "OR condition satisfied: Conditional logic satisfied (Q4 = 'true')"

        none_met = evaluate_question(question, make_session(pet_survey, {"Q1": False}).responses)
        assert not none_met.eligible
        assert none_met.reason == "OR condition failed: all 2 conditions not met"


class TestEnrichment:
    def test_enrichment_overlays_eligibility_and_answered_state(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True})
        enriched = by_id(enrich_questions(pet_survey.questions, session))

        assert [q.id for q in enrich_questions(pet_survey.questions, session)] == [
            "Q1", "Q2", "Q3", "Q4", "Q5", "Q6"
        ]
        assert enriched["Q1"].already_answered and enriched["Q1"].currently_eligible
        assert enriched["Q2"].currently_eligible and not enriched["Q2"].already_answered
        assert not enriched["Q3"].currently_eligible
        assert enriched["Q2"].text == pet_survey.get_question("Q2").text

    def test_answered_state_is_independent_of_eligibility(self, pet_survey):
        # Q2 wurde beantwortet, danach wurde Q1 auf false geändert
        session = make_session(pet_survey, {"Q1": False, "Q2": "Rex"})
        q2 = by_id(enrich_questions(pet_survey.questions, session))["Q2"]
        assert q2.already_answered
        assert not q2.currently_eligible

    def test_repeated_enrichment_is_identical(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True})
        first = enrich_questions(pet_survey.questions, session)
        second = enrich_questions(pet_survey.questions, session)
        assert [(q.currently_eligible, q.eligibility_reason) for q in first] == [
            (q.currently_eligible, q.eligibility_reason) for q in second
        ]
