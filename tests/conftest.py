from datetime import datetime, timedelta, timezone

import pytest

from survey_engine.definitions import build_registry
from survey_engine.engine.progress import initial_progress
from survey_engine.engine.service import SurveyService
from survey_engine.providers.filesystem import FilesystemSurveyProvider
from survey_engine.schemas import (
    ParticipantSession,
    QuestionDefinition,
    SurveyDefinition,
    SurveyResponse,
)

# Montag, damit Wochenend-Regeln vorhersagbar sind
START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
TENANT = "tenant-a"

PET_SURVEY = {
    "id": "pets",
    "version": "2.0",
    "metadata": {
        "title": "Pets",
        "description": "Questions about pets",
        "estimatedDuration": "5 minutes",
    },
    "questions": [
        {"id": "Q1", "type": "boolean", "text": "Do you own a pet?", "required": True},
        {
            "id": "Q2",
            "type": "free-form",
            "text": "What is your pet's name?",
            "required": True,
            "conditional": {"dependsOn": "Q1", "showIf": [True]},
        },
        {
            "id": "Q3",
            "type": "free-form",
            "text": "How do you exercise your pet outdoors?",
            "conditional": {
                "operator": "AND",
                "conditions": [
                    {"dependsOn": "Q1", "showIf": [True]},
                    {"dependsOn": "Q4", "showIf": [True]},
                ],
            },
        },
        {"id": "Q4", "type": "boolean", "text": "Do you have a garden?"},
        {
            "id": "Q5",
            "type": "rating-scale",
            "text": "How happy is your pet?",
            "scale": {"min": 1, "max": 5, "step": 2},
        },
        {
            "id": "Q6",
            "type": "free-form",
            "text": "Describe your pet in a word or two",
            "validation": {"minLength": 5, "maxLength": 10},
        },
    ],
}


class FixedClock:
    """Steuerbare Uhr für deterministische Zeitstempel."""

    def __init__(self, start=START):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_question(**fields) -> QuestionDefinition:
    fields.setdefault("id", "q")
    fields.setdefault("text", "Question?")
    return QuestionDefinition.model_validate(fields)


def make_survey(document=None, **overrides) -> SurveyDefinition:
    data = dict(document or PET_SURVEY)
    data.update(overrides)
    return SurveyDefinition.model_validate(data)


def make_session(survey: SurveyDefinition, answers=None, **overrides) -> ParticipantSession:
    answers = answers or {}
    fields = dict(
        session_id="sess_test",
        survey_id=survey.id,
        survey_version=survey.version,
        participant_id="participant-1",
        tenant_id=TENANT,
        started_at=START,
        last_activity_at=START,
        progress=initial_progress(survey),
        responses={
            qid: SurveyResponse(question_id=qid, value=value, answered_at=START)
            for qid, value in answers.items()
        },
    )
    fields.update(overrides)
    return ParticipantSession(**fields)


@pytest.fixture
def pet_survey():
    return make_survey()


@pytest.fixture
def registry(pet_survey):
    no_resume = make_survey(
        id="no-resume",
        settings={"allowResume": False},
    )
    return build_registry([pet_survey, no_resume])


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
async def fs_provider(tmp_path, registry):
    definitions = tmp_path / "surveys"
    definitions.mkdir()
    provider = FilesystemSurveyProvider(registry, definitions, tmp_path / "responses")
    await provider.initialize()
    return provider


@pytest.fixture
def service(fs_provider, clock):
    ids = iter(f"{n:04d}" for n in range(1, 10000))
    return SurveyService(fs_provider, clock=clock, id_factory=lambda: next(ids))
