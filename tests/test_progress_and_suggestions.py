"""Tests for progress calculation and the suggestion window."""

import pytest

from conftest import make_session, make_survey
from survey_engine.engine.eligibility import enrich_questions
from survey_engine.engine.progress import calculate_progress, initial_progress, round_half_up
from survey_engine.engine.suggestions import suggest_questions


class TestRounding:
    @pytest.mark.parametrize("value,expected", [(12.5, 13), (0.5, 1), (16.67, 17), (2.4, 2)])
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestProgress:
    def test_initial_progress(self, pet_survey):
        progress = initial_progress(pet_survey)
        assert progress.total_questions == 6
        assert progress.answered_questions == 0
        assert progress.required_remaining == 2
        assert progress.percent_complete == 0

    def test_counts_and_percent(self, pet_survey):
        progress = calculate_progress(pet_survey, make_session(pet_survey, {"Q1": True}))
        assert progress.answered_questions == 1
        assert progress.required_answered == 1
        assert progress.required_remaining == 1
        assert progress.percent_complete == 17
        assert progress.estimated_time_remaining == "5 minutes"

    def test_estimate_after_half(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True, "Q4": True, "Q6": "fluffy"})
        progress = calculate_progress(pet_survey, session)
        assert progress.percent_complete == 50
        # 3 offene Fragen / 2 = 1.5 -> 2
        assert progress.estimated_time_remaining == "2 minutes"

    def test_answers_count_regardless_of_eligibility(self, pet_survey):
        session = make_session(pet_survey, {"Q1": False, "Q2": "Rex"})
        assert calculate_progress(pet_survey, session).answered_questions == 2

    def test_bounds_and_full_completion(self, pet_survey):
        answers = {}
        for question in pet_survey.questions:
            answers[question.id] = "x"
            progress = calculate_progress(pet_survey, make_session(pet_survey, answers))
            assert 0 <= progress.percent_complete <= 100
            assert (progress.percent_complete == 100) == (
                progress.answered_questions == progress.total_questions
            )
        assert progress.estimated_time_remaining == "1 minutes"

    def test_large_survey_reaches_100_only_when_complete(self):
        survey = make_survey(
            questions=[{"id": f"q{i}", "text": "Question?", "type": "free-form"} for i in range(200)]
        )
        answers = {f"q{i}": "x" for i in range(199)}
        progress = calculate_progress(survey, make_session(survey, answers))
        assert progress.answered_questions == 199
        assert progress.percent_complete == 99

        answers["q199"] = "x"
        assert calculate_progress(survey, make_session(survey, answers)).percent_complete == 100


class TestSuggestions:
    def test_required_first_then_optional_up_to_minimum(self, pet_survey):
        enriched = enrich_questions(pet_survey.questions, make_session(pet_survey))
        assert [q.id for q in suggest_questions(enriched, 3, 5)] == ["Q1", "Q4", "Q5"]

    def test_excludes_answered_and_ineligible(self, pet_survey):
        session = make_session(pet_survey, {"Q1": True, "Q4": True})
        enriched = enrich_questions(pet_survey.questions, session)
        assert [q.id for q in suggest_questions(enriched, 3, 5)] == ["Q2", "Q3", "Q5"]

    def test_required_are_truncated_to_maximum(self, pet_survey):
        enriched = enrich_questions(pet_survey.questions, make_session(pet_survey, {"Q1": True}))
        required_all = [q.model_copy(update={"required": True}) for q in enriched]
        suggestions = suggest_questions(required_all, 1, 2)
        assert [q.id for q in suggestions] == ["Q2", "Q4"]

    def test_optional_pool_may_run_dry(self, pet_survey):
        answers = {"Q1": False, "Q4": False, "Q5": 3}
        enriched = enrich_questions(pet_survey.questions, make_session(pet_survey, answers))
        assert [q.id for q in suggest_questions(enriched, 3, 5)] == ["Q6"]
