from typing import Any, Dict, Optional


class SurveyError(Exception):
    """Basis für alle strukturellen Fehler der Survey-Engine.

    Trägt neben der Nachricht einen Kontext (beteiligte IDs), damit der
    Aufrufer loggen und reagieren kann.
    """

    code = "SurveyError"
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "context": self.context}


class NotFoundError(SurveyError):
    """Survey, session or question does not exist."""

    code = "NotFound"
    status_code = 404


class InvalidRequestError(SurveyError):
    """Illegal state transition or malformed request."""

    code = "InvalidRequest"
    status_code = 400


class SessionConflictError(InvalidRequestError):
    """The session was modified by someone else since it was read."""

    code = "Conflict"
    status_code = 409


class InternalError(SurveyError):
    code = "InternalError"
    status_code = 500
