"""Plain-language hints for a conversational agent driving the session.

Every conversational response carries one of these so the agent knows what
to do next without re-deriving it from the payload.
"""

from typing import List

from ..schemas import (
    CompleteSessionResult,
    EnrichedQuestion,
    ProgressReport,
    ResumeSessionResult,
    StartSessionResult,
    SubmitResponseResult,
)


def _question_list(questions: List[EnrichedQuestion]) -> str:
    return ", ".join(f"{q.id} ({q.text})" for q in questions)


def _next_step(suggestions: List[EnrichedQuestion]) -> str:
    if not suggestions:
        return "No further questions are available right now; check progress and complete the session if possible."
    return f"Ask next, in a natural conversational way: {_question_list(suggestions)}."


def for_start(result: StartSessionResult) -> str:
    meta = result.survey.metadata
    lines = [
        f"Session started for '{meta.title}'. Introduce the survey briefly and keep the tone conversational.",
    ]
    if meta.estimated_duration:
        lines.append(f"It takes about {meta.estimated_duration}.")
    lines.append(_next_step(result.next_suggested_questions))
    lines.append("Questions marked as not eligible must not be asked until their conditions are met.")
    return " ".join(lines)


def for_question(question: EnrichedQuestion) -> str:
    if question.already_answered:
        return f"Question {question.id} was already answered; only ask again if the participant wants to change the answer."
    if not question.currently_eligible:
        return f"Do not ask question {question.id} yet: {question.eligibility_reason}."
    required = "required" if question.required else "optional"
    return f"Question {question.id} is {required} and can be asked now."


def for_submit(result: SubmitResponseResult) -> str:
    if not result.success:
        problems = "; ".join(e.message for e in result.validation.errors)
        return f"The answer was not accepted: {problems}. Explain the problem and ask the question again."

    lines = ["Answer recorded."]
    unlocked = [c.question_id for c in result.updated_eligibility or [] if c.now_eligible]
    locked = [c.question_id for c in result.updated_eligibility or [] if not c.now_eligible]
    if unlocked:
        lines.append(f"Newly available questions: {', '.join(unlocked)}.")
    if locked:
        lines.append(f"No longer applicable: {', '.join(locked)}.")
    if result.progress is not None:
        lines.append(f"Progress: {result.progress.percent_complete}%.")
    lines.append(_next_step(result.next_suggested_questions or []))
    return " ".join(lines)


def for_progress(report: ProgressReport) -> str:
    if report.can_complete:
        if report.unanswered_optional:
            return (
                "All required questions are answered. Offer the remaining optional questions "
                f"({', '.join(q.id for q in report.unanswered_optional)}) or complete the session."
            )
        return "All questions are answered. Complete the session."
    blockers = "; ".join(b.message for b in report.completion_blockers)
    return f"The session cannot be completed yet: {blockers}."


def for_complete(result: CompleteSessionResult) -> str:
    summary = result.summary
    return (
        f"Survey completed: {summary.answered_questions} of {summary.total_questions} questions "
        f"answered in {summary.duration}. Thank the participant."
    )


def for_resume(result: ResumeSessionResult) -> str:
    answered = len(result.answered_questions)
    return (
        f"Welcome the participant back (last activity {result.elapsed_time_since_last_activity} ago, "
        f"{answered} questions already answered). Do not ask answered questions again. "
        + _next_step(result.next_suggested_questions)
    )
