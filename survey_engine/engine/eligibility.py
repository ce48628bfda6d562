"""Conditional eligibility of questions.

Eligibility is always derived from the responses recorded so far and is
recomputed on every read; nothing here is cached, because a single answer can
flip the eligibility of any number of other questions.
"""

import json
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping

from ..schemas import (
    CompoundCondition,
    ConditionalLogic,
    EnrichedQuestion,
    ParticipantSession,
    QuestionDefinition,
    SingleCondition,
    SurveyResponse,
)

NO_CONDITION_REASON = "Always available (no conditional logic)"


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    reason: str


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without Python's implicit bool/int coercion.

    ``True == 1`` holds in Python, but a recorded ``True`` must not satisfy a
    ``showIf`` of ``[1]``. Numbers still compare numerically across int/float.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    return type(left) is type(right) and left == right


def _describe(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def evaluate_single_condition(
    condition: SingleCondition, responses: Mapping[str, SurveyResponse]
) -> EligibilityDecision:
    response = responses.get(condition.depends_on)
    if response is None:
        return EligibilityDecision(
            False,
            f"Conditional: depends on unanswered question {condition.depends_on}",
        )

    if not any(strict_equals(allowed, response.value) for allowed in condition.show_if):
        return EligibilityDecision(
            False,
            f"Conditional: {condition.depends_on} answer does not match required values",
        )

    return EligibilityDecision(
        True,
        f"Conditional logic satisfied ({condition.depends_on} = '{_describe(response.value)}')",
    )


def evaluate_conditional(
    conditional: ConditionalLogic, responses: Mapping[str, SurveyResponse]
) -> EligibilityDecision:
    if isinstance(conditional, SingleCondition):
        return evaluate_single_condition(conditional, responses)

    if not isinstance(conditional, CompoundCondition):
        raise TypeError(f"Unsupported conditional logic: {conditional!r}")

    results = [evaluate_single_condition(c, responses) for c in conditional.conditions]
    count = len(conditional.conditions)

    if conditional.operator == "AND":
        failed = [r.reason for r in results if not r.eligible]
        if not failed:
            return EligibilityDecision(True, f"All {count} conditions satisfied (AND)")
        return EligibilityDecision(False, f"AND condition failed: {'; '.join(failed)}")

    # OR: nur der erste erfüllte Grund wird genannt
    for result in results:
        if result.eligible:
            return EligibilityDecision(True, f"OR condition satisfied: {result.reason}")
    return EligibilityDecision(False, f"OR condition failed: all {count} conditions not met")


def evaluate_question(
    question: QuestionDefinition, responses: Mapping[str, SurveyResponse]
) -> EligibilityDecision:
    if question.conditional is None:
        return EligibilityDecision(True, NO_CONDITION_REASON)
    return evaluate_conditional(question.conditional, responses)


def enrich_questions(
    questions: Iterable[QuestionDefinition], session: ParticipantSession
) -> List[EnrichedQuestion]:
    """Overlay each question with its eligibility and answered state for ``session``."""
    enriched = []
    for question in questions:
        decision = evaluate_question(question, session.responses)
        enriched.append(
            EnrichedQuestion(
                **dict(question),
                currently_eligible=decision.eligible,
                eligibility_reason=decision.reason,
                already_answered=question.id in session.responses,
            )
        )
    return enriched
