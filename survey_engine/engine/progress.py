import math

from ..schemas import ParticipantSession, SessionProgress, SurveyDefinition


def round_half_up(value: float) -> int:
    # round() in Python rundet auf die gerade Zahl (12.5 -> 12), hier gilt 12.5 -> 13
    return int(math.floor(value + 0.5))


def initial_progress(survey: SurveyDefinition) -> SessionProgress:
    return SessionProgress(
        total_questions=len(survey.questions),
        answered_questions=0,
        required_answered=0,
        required_remaining=sum(1 for q in survey.questions if q.required),
        percent_complete=0,
        estimated_time_remaining=survey.metadata.estimated_duration,
    )


def calculate_progress(survey: SurveyDefinition, session: ParticipantSession) -> SessionProgress:
    """Derive completion metrics of ``session`` against ``survey``.

    Every recorded response counts as answered, whether or not its question is
    eligible at the time of the calculation.
    """
    total = len(survey.questions)
    answered = len(session.responses)
    required_total = sum(1 for q in survey.questions if q.required)
    required_answered = sum(
        1 for q in survey.questions if q.required and q.id in session.responses
    )

    # Definitionen haben mindestens eine Frage, total ist also nie 0
    percent = min(100, round_half_up(answered / total * 100))
    if answered < total:
        # 100 nur bei vollständig beantworteter Umfrage (ab 200 Fragen würde sonst aufgerundet)
        percent = min(99, percent)

    if percent >= 50:
        estimate = f"{max(1, round_half_up((total - answered) / 2))} minutes"
    else:
        estimate = survey.metadata.estimated_duration

    return SessionProgress(
        total_questions=total,
        answered_questions=answered,
        required_answered=required_answered,
        required_remaining=required_total - required_answered,
        percent_complete=percent,
        estimated_time_remaining=estimate,
    )
