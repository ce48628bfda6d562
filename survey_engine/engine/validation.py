"""Validation of a single response value against its question definition.

Every validator appends to a shared error list so that all violations of a
value are reported together; only the required/empty check short-circuits.
Errors are returned as data, never raised, so the conversational layer can
re-prompt the participant.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict, List, Optional

from ..schemas import (
    QuestionDefinition,
    QuestionType,
    ValidationErrorDetail,
    ValidationResult,
    ValidationRules,
)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Eingebaute Namen, die statt eines Regex in validation.pattern stehen dürfen
BUILTIN_PATTERNS = {"email": EMAIL_REGEX.pattern}

DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_REGEX = re.compile(
    r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d{3}(\d{3})?)?)?(Z|[+-]\d{2}:\d{2})?$"
)
TIME_REGEX = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")

ErrorList = List[ValidationErrorDetail]


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def is_number(value: Any) -> bool:
    # bool ist in Python eine Unterklasse von int und zählt hier nicht als Zahl
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _error(
    message: str,
    constraint: str,
    field: str = "value",
    expected: Any = None,
    actual: Any = None,
) -> ValidationErrorDetail:
    return ValidationErrorDetail(
        field=field,
        message=message,
        constraint=constraint,
        expected=expected,
        actual=actual,
    )


def _type_error(label: str, expected: str, value: Any) -> ValidationErrorDetail:
    article = "an" if expected[0] in "aeiou" else "a"
    return _error(
        f"{label} response must be {article} {expected}",
        "type",
        expected=expected,
        actual=_type_name(value),
    )


def validate_response(
    question: QuestionDefinition, value: Any, today: Optional[date] = None
) -> ValidationResult:
    """Validate ``value`` against ``question``.

    ``today`` anchors the past/future rules of temporal questions; it
    defaults to the current UTC date.
    """
    if question.required and is_empty(value):
        return ValidationResult(
            valid=False,
            errors=[
                _error(
                    "This question is required and must have a response",
                    "required",
                )
            ],
        )

    # Nicht beantwortete optionale Fragen sind immer gültig
    if is_empty(value):
        return ValidationResult(valid=True, errors=[])

    if today is None:
        today = datetime.now(timezone.utc).date()

    errors: ErrorList = []
    _VALIDATORS[question.type](question, value, errors, today)
    return ValidationResult(valid=not errors, errors=errors)


def _check_pattern(pattern: str, value: str, errors: ErrorList) -> None:
    source = BUILTIN_PATTERNS.get(pattern, pattern)
    try:
        regex = re.compile(source)
    except re.error as exc:
        errors.append(
            _error(
                f"Invalid regex pattern in validation rules: {exc}",
                "definition",
                field="validation.pattern",
                expected="valid regular expression",
                actual=pattern,
            )
        )
        return

    if not regex.search(value):
        errors.append(
            _error(
                f"Response does not match required pattern: {pattern}",
                "pattern",
                expected=pattern,
                actual=value,
            )
        )


def _validate_free_form(question, value, errors, today):
    if not isinstance(value, str):
        errors.append(_type_error("Free-form", "string", value))
        return

    rules = question.validation
    if rules is None:
        return

    if rules.min_length is not None and len(value) < rules.min_length:
        errors.append(
            _error(
                f"Response must be at least {rules.min_length} characters long "
                f"(currently {len(value)} characters)",
                "minLength",
                expected=rules.min_length,
                actual=len(value),
            )
        )

    if rules.max_length is not None and len(value) > rules.max_length:
        errors.append(
            _error(
                f"Response must not exceed {rules.max_length} characters "
                f"(currently {len(value)} characters)",
                "maxLength",
                expected=rules.max_length,
                actual=len(value),
            )
        )

    if rules.pattern:
        _check_pattern(rules.pattern, value, errors)


def _option_values(question: QuestionDefinition, errors: ErrorList) -> Optional[List[str]]:
    if not question.options:
        errors.append(
            _error(
                f"{question.type.value} question must have options defined",
                "definition",
                field="question.options",
            )
        )
        return None
    return [option.value for option in question.options]


def _validate_multiple_choice(question, value, errors, today):
    if not isinstance(value, str):
        errors.append(_type_error("Multiple-choice", "string", value))
        return

    valid_values = _option_values(question, errors)
    if valid_values is None:
        return

    if value not in valid_values:
        errors.append(
            _error(
                f"Invalid option selected. Must be one of: {', '.join(valid_values)}",
                "options",
                expected=valid_values,
                actual=value,
            )
        )


def _validate_multiple_select(question, value, errors, today):
    if not isinstance(value, list):
        errors.append(_type_error("Multiple-select", "array", value))
        return

    valid_values = _option_values(question, errors)
    if valid_values is None:
        return

    invalid = [v for v in value if not isinstance(v, str) or v not in valid_values]
    if invalid:
        errors.append(
            _error(
                f"Invalid selections: {', '.join(str(v) for v in invalid)}. "
                f"Must be from: {', '.join(valid_values)}",
                "options",
                expected=valid_values,
                actual=invalid,
            )
        )

    rules = question.validation
    if rules is None:
        return

    if rules.min_selections is not None and len(value) < rules.min_selections:
        errors.append(
            _error(
                f"Must select at least {rules.min_selections} option(s) "
                f"(currently {len(value)} selected)",
                "minSelections",
                expected=rules.min_selections,
                actual=len(value),
            )
        )

    if rules.max_selections is not None and len(value) > rules.max_selections:
        errors.append(
            _error(
                f"Must select no more than {rules.max_selections} option(s) "
                f"(currently {len(value)} selected)",
                "maxSelections",
                expected=rules.max_selections,
                actual=len(value),
            )
        )


def _validate_rating_scale(question, value, errors, today):
    if not is_number(value):
        errors.append(_type_error("Rating-scale", "number", value))
        return

    scale = question.scale
    if scale is None:
        errors.append(
            _error(
                "Rating-scale question must have scale defined",
                "definition",
                field="question.scale",
            )
        )
        return

    if value < scale.min or value > scale.max:
        errors.append(
            _error(
                f"Rating must be between {scale.min} and {scale.max} (received {value})",
                "range",
                expected={"min": scale.min, "max": scale.max},
                actual=value,
            )
        )

    if scale.step and (value - scale.min) % scale.step != 0:
        errors.append(
            _error(
                f"Rating must align with step size of {scale.step} starting from {scale.min}",
                "step",
                expected=scale.step,
                actual=value,
            )
        )


def _validate_email(question, value, errors, today):
    if not isinstance(value, str):
        errors.append(_type_error("Email", "string", value))
        return

    if not EMAIL_REGEX.match(value):
        errors.append(
            _error(
                "Invalid email address format",
                "pattern",
                expected="valid email address",
                actual=value,
            )
        )


def _validate_number(question, value, errors, today):
    if not is_number(value):
        errors.append(_type_error("Number", "number", value))
        return

    rules = question.validation
    if rules is None:
        return

    if rules.integer and not float(value).is_integer():
        errors.append(
            _error(
                "Number must be an integer",
                "integer",
                expected="integer",
                actual=value,
            )
        )

    if rules.min is not None and value < rules.min:
        errors.append(
            _error(
                f"Number must be at least {rules.min} (received {value})",
                "min",
                expected=rules.min,
                actual=value,
            )
        )

    if rules.max is not None and value > rules.max:
        errors.append(
            _error(
                f"Number must not exceed {rules.max} (received {value})",
                "max",
                expected=rules.max,
                actual=value,
            )
        )


def _validate_boolean(question, value, errors, today):
    if not isinstance(value, bool):
        errors.append(
            _error(
                "Boolean response must be true or false",
                "type",
                expected="boolean",
                actual=_type_name(value),
            )
        )


def _check_calendar_date(
    day: date, rules: Optional[ValidationRules], errors: ErrorList, today: date
) -> None:
    if rules is None:
        return

    if rules.min_date is not None and day < rules.min_date:
        errors.append(
            _error(
                f"Date must be on or after {rules.min_date.isoformat()}",
                "minDate",
                expected=rules.min_date.isoformat(),
                actual=day.isoformat(),
            )
        )

    if rules.max_date is not None and day > rules.max_date:
        errors.append(
            _error(
                f"Date must be on or before {rules.max_date.isoformat()}",
                "maxDate",
                expected=rules.max_date.isoformat(),
                actual=day.isoformat(),
            )
        )

    if not rules.allow_weekends and day.weekday() >= 5:
        errors.append(
            _error(
                "Weekend dates are not allowed",
                "allowWeekends",
                expected="weekday",
                actual=day.strftime("%A"),
            )
        )

    if not rules.allow_past and day < today:
        errors.append(
            _error(
                "Dates in the past are not allowed",
                "allowPast",
                expected=f"on or after {today.isoformat()}",
                actual=day.isoformat(),
            )
        )

    if not rules.allow_future and day > today:
        errors.append(
            _error(
                "Dates in the future are not allowed",
                "allowFuture",
                expected=f"on or before {today.isoformat()}",
                actual=day.isoformat(),
            )
        )

    if day in rules.excluded_dates:
        errors.append(
            _error(
                f"The date {day.isoformat()} is not available",
                "excludedDates",
                expected=[d.isoformat() for d in rules.excluded_dates],
                actual=day.isoformat(),
            )
        )


def _validate_date(question, value, errors, today):
    if not isinstance(value, str):
        errors.append(_type_error("Date", "string", value))
        return

    if not DATE_REGEX.match(value):
        errors.append(
            _error(
                "Date must use the ISO 8601 format YYYY-MM-DD",
                "format",
                expected="YYYY-MM-DD",
                actual=value,
            )
        )
        return

    try:
        day = date.fromisoformat(value)
    except ValueError:
        errors.append(
            _error(
                f"{value} is not a valid calendar date",
                "calendar",
                expected="valid calendar date",
                actual=value,
            )
        )
        return

    _check_calendar_date(day, question.validation, errors, today)


def _validate_datetime(question, value, errors, today):
    if not isinstance(value, str):
        errors.append(_type_error("Datetime", "string", value))
        return

    if not DATETIME_REGEX.match(value):
        errors.append(
            _error(
                "Datetime must use the ISO 8601 format YYYY-MM-DDTHH:MM[:SS][Z|±HH:MM]",
                "format",
                expected="YYYY-MM-DDTHH:MM:SS",
                actual=value,
            )
        )
        return

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        moment = datetime.fromisoformat(normalized)
    except ValueError:
        errors.append(
            _error(
                f"{value} is not a valid calendar date and time",
                "calendar",
                expected="valid date and time",
                actual=value,
            )
        )
        return

    # Verglichen wird das Kalenderdatum, wie es im Wert steht
    _check_calendar_date(moment.date(), question.validation, errors, today)


def _validate_time(question, value, errors, today):
    if not isinstance(value, str):
        errors.append(_type_error("Time", "string", value))
        return

    if not TIME_REGEX.match(value):
        errors.append(
            _error(
                "Time must use the ISO 8601 format HH:MM or HH:MM:SS",
                "format",
                expected="HH:MM[:SS]",
                actual=value,
            )
        )
        return

    try:
        moment = time.fromisoformat(value)
    except ValueError:
        errors.append(
            _error(
                f"{value} is not a valid time of day",
                "calendar",
                expected="valid time of day",
                actual=value,
            )
        )
        return

    rules = question.validation
    if rules is None:
        return

    if rules.min_time is not None and moment < rules.min_time:
        errors.append(
            _error(
                f"Time must be at or after {rules.min_time.isoformat()}",
                "minTime",
                expected=rules.min_time.isoformat(),
                actual=value,
            )
        )

    if rules.max_time is not None and moment > rules.max_time:
        errors.append(
            _error(
                f"Time must be at or before {rules.max_time.isoformat()}",
                "maxTime",
                expected=rules.max_time.isoformat(),
                actual=value,
            )
        )


def _validate_matrix(question, value, errors, today):
    if not isinstance(value, dict):
        errors.append(_type_error("Matrix", "object", value))
        return

    matrix = question.matrix
    if matrix is None:
        errors.append(
            _error(
                "Matrix question must have rows and columns defined",
                "definition",
                field="question.matrix",
            )
        )
        return

    row_ids = [row.id for row in matrix.rows]
    column_values = [column.value for column in matrix.columns]

    unknown_rows = [key for key in value if key not in row_ids]
    if unknown_rows:
        errors.append(
            _error(
                f"Unknown rows: {', '.join(unknown_rows)}. Must be from: {', '.join(row_ids)}",
                "rows",
                expected=row_ids,
                actual=unknown_rows,
            )
        )

    for row_id in row_ids:
        if row_id not in value:
            continue
        cell = value[row_id]
        field = f"value.{row_id}"

        if matrix.allow_multiple_per_row:
            if not isinstance(cell, list):
                errors.append(
                    _error(
                        f"Row {row_id} must be a list of column values",
                        "type",
                        field=field,
                        expected="array",
                        actual=_type_name(cell),
                    )
                )
                continue
            invalid = [c for c in cell if not isinstance(c, str) or c not in column_values]
        else:
            invalid = [] if isinstance(cell, str) and cell in column_values else [cell]

        if invalid:
            errors.append(
                _error(
                    f"Invalid value for row {row_id}. Must be one of: {', '.join(column_values)}",
                    "columns",
                    field=field,
                    expected=column_values,
                    actual=invalid if matrix.allow_multiple_per_row else cell,
                )
            )

    if question.required:
        missing = [row_id for row_id in row_ids if value.get(row_id) in (None, "", [])]
        if missing:
            errors.append(
                _error(
                    f"All rows must be answered. Missing: {', '.join(missing)}",
                    "missingRows",
                    expected=row_ids,
                    actual=missing,
                )
            )


_VALIDATORS: Dict[QuestionType, Callable[[QuestionDefinition, Any, ErrorList, date], None]] = {
    QuestionType.FREE_FORM: _validate_free_form,
    QuestionType.MULTIPLE_CHOICE: _validate_multiple_choice,
    QuestionType.MULTIPLE_SELECT: _validate_multiple_select,
    QuestionType.RATING_SCALE: _validate_rating_scale,
    QuestionType.EMAIL: _validate_email,
    QuestionType.NUMBER: _validate_number,
    QuestionType.BOOLEAN: _validate_boolean,
    QuestionType.DATE: _validate_date,
    QuestionType.DATETIME: _validate_datetime,
    QuestionType.TIME: _validate_time,
    QuestionType.MATRIX: _validate_matrix,
}

_missing = set(QuestionType) - set(_VALIDATORS)
if _missing:
    raise RuntimeError(
        f"No validator registered for question types: {sorted(t.value for t in _missing)}"
    )
