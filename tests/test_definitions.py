"""Tests for survey definition models and the definition registry."""

import json

import pytest
from pydantic import ValidationError

from conftest import PET_SURVEY, make_survey
from survey_engine.definitions import build_registry, load_survey_definitions
from survey_engine.schemas import CompoundCondition, QuestionType


def write(path, document):
    path.write_text(json.dumps(document), encoding="utf-8")


class TestSurveyDefinition:
    def test_camel_case_document_is_parsed(self, pet_survey):
        assert pet_survey.metadata.estimated_duration == "5 minutes"
        assert pet_survey.questions[0].type == QuestionType.BOOLEAN
        assert isinstance(pet_survey.get_question("Q3").conditional, CompoundCondition)
        assert pet_survey.get_question("Q3").dependencies() == ["Q1", "Q4"]
        assert pet_survey.settings.allow_resume is True

    def test_definitions_are_immutable(self, pet_survey):
        with pytest.raises(ValidationError):
            pet_survey.questions[0].text = "changed"

    def test_duplicate_question_ids_are_rejected(self):
        questions = PET_SURVEY["questions"] + [PET_SURVEY["questions"][0]]
        with pytest.raises(ValidationError, match="Duplicate question ids: Q1"):
            make_survey(questions=questions)

    def test_unknown_dependency_is_rejected(self):
        questions = [
            {"id": "A", "type": "boolean", "text": "A?"},
            {"id": "B", "type": "boolean", "text": "B?", "conditional": {"dependsOn": "Z", "showIf": [True]}},
        ]
        with pytest.raises(ValidationError, match="unknown question Z"):
            make_survey(questions=questions)

    def test_self_dependency_is_rejected(self):
        questions = [{"id": "A", "type": "boolean", "text": "A?", "conditional": {"dependsOn": "A", "showIf": [True]}}]
        with pytest.raises(ValidationError, match="depends on itself"):
            make_survey(questions=questions)

    def test_survey_needs_questions(self):
        with pytest.raises(ValidationError):
            make_survey(questions=[])

    def test_unknown_question_type(self):
        questions = [{"id": "A", "type": "slider", "text": "A?"}]
        with pytest.raises(ValidationError):
            make_survey(questions=questions)

    def test_show_if_keeps_value_types(self, pet_survey):
        show_if = pet_survey.get_question("Q2").conditional.show_if
        assert show_if == [True]
        assert isinstance(show_if[0], bool)


class TestRegistry:
    def test_load_recursively_and_skip_invalid_files(self, tmp_path, caplog):
        nested = tmp_path / "team" / "2026"
        nested.mkdir(parents=True)
        write(tmp_path / "pets.json", PET_SURVEY)
        write(nested / "other.json", {**PET_SURVEY, "id": "other"})
        (tmp_path / "broken.json").write_text("{", encoding="utf-8")
        write(tmp_path / "invalid.json", {"id": "invalid"})

        registry = load_survey_definitions(tmp_path)

        assert sorted(registry) == ["other", "pets"]
        assert any("broken.json" in r.getMessage() for r in caplog.records)

    def test_undecodable_file_is_skipped(self, tmp_path, caplog):
        write(tmp_path / "pets.json", PET_SURVEY)
        (tmp_path / "latin1.json").write_bytes(b'{"id": "caf\xe9"}')

        registry = load_survey_definitions(tmp_path)

        assert list(registry) == ["pets"]
        assert any("latin1.json" in r.getMessage() for r in caplog.records)

    def test_registry_is_read_only(self, pet_survey):
        registry = build_registry([pet_survey])
        with pytest.raises(TypeError):
            registry["new"] = pet_survey

    def test_first_duplicate_wins(self, pet_survey):
        other = make_survey(metadata={"title": "Second", "description": "dup"})
        registry = build_registry([pet_survey, other])
        assert registry["pets"].metadata.title == "Pets"

    def test_missing_directory_gives_empty_registry(self, tmp_path):
        assert dict(load_survey_definitions(tmp_path / "nowhere")) == {}
