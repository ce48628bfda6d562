import csv
import io
import json
from typing import Any, List, Sequence

from ..schemas import ParticipantSession, SurveyDefinition

BASE_HEADERS = [
    "sessionId",
    "surveyId",
    "participantId",
    "status",
    "startedAt",
    "completedAt",
]


def sessions_to_json(sessions: Sequence[ParticipantSession]) -> str:
    documents = [s.model_dump(mode="json", by_alias=True) for s in sessions]
    return json.dumps(documents, indent=2)


def _cell(value: Any) -> Any:
    # Komplexe Werte (Listen, Matrix-Objekte) als JSON in eine Zelle
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def sessions_to_csv(survey: SurveyDefinition, sessions: Sequence[ParticipantSession]) -> str:
    """One row per session, one column per question id in definition order."""
    if not sessions:
        return ",".join(BASE_HEADERS)

    question_ids: List[str] = [q.id for q in survey.questions]
    fieldnames = BASE_HEADERS + question_ids

    # Kopfzeile ohne Anführungszeichen, Datenzeilen vollständig gequotet
    output = io.StringIO()
    output.write(",".join(fieldnames) + "\n")
    writer = csv.DictWriter(
        output,
        fieldnames=fieldnames,
        extrasaction="ignore",
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )

    for session in sessions:
        row = {
            "sessionId": session.session_id,
            "surveyId": session.survey_id,
            "participantId": session.participant_id,
            "status": session.status.value,
            "startedAt": session.started_at.isoformat(),
            "completedAt": session.completed_at.isoformat() if session.completed_at else "",
        }
        for question_id in question_ids:
            response = session.responses.get(question_id)
            row[question_id] = _cell(response.value) if response is not None else ""
        writer.writerow(row)

    return output.getvalue().rstrip("\n")
