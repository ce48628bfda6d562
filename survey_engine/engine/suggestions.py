from typing import List, Sequence

from ..schemas import EnrichedQuestion

DEFAULT_MIN_SUGGESTIONS = 3
DEFAULT_MAX_SUGGESTIONS = 5


def suggest_questions(
    enriched_questions: Sequence[EnrichedQuestion],
    minimum: int = DEFAULT_MIN_SUGGESTIONS,
    maximum: int = DEFAULT_MAX_SUGGESTIONS,
) -> List[EnrichedQuestion]:
    """Pick the next askable questions, required ones first.

    Required questions fill the window up to ``maximum``; optional ones only
    top it up until ``minimum`` is reached. Both groups keep definition order.
    """
    askable = [q for q in enriched_questions if q.currently_eligible and not q.already_answered]
    required = [q for q in askable if q.required]
    optional = [q for q in askable if not q.required]

    suggestions = required[:maximum]
    if len(suggestions) < minimum:
        suggestions.extend(optional[: minimum - len(suggestions)])

    return suggestions[:maximum]
