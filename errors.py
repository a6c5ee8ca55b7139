from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class CandidateErrorName(str, Enum):
    """Classifications attached to scheduled_corpus_candidate telemetry events."""

    ALREADY_SCHEDULED = "ALREADY_SCHEDULED"
    INSUFFICIENT_TIME_BEFORE_SCHEDULED_DATE = "INSUFFICIENT_TIME_BEFORE_SCHEDULED_DATE"
    DOMAIN_NOT_ALLOWED_FOR_AUTO_SCHEDULING = "DOMAIN_NOT_ALLOWED_FOR_AUTO_SCHEDULING"
    MISSING_EXCERPT = "MISSING_EXCERPT"
    MISSING_TITLE = "MISSING_TITLE"
    MISSING_IMAGE = "MISSING_IMAGE"


class CandidateError(Exception):
    """Per-candidate failure. Caught at the batch boundary, never past it."""

    def __init__(
        self,
        message: str,
        candidate_id: str = "",
        path: str = "",
        field: str = "",
        error_name: Optional[CandidateErrorName] = None,
    ):
        super().__init__(message)
        self.message = message
        self.candidate_id = candidate_id
        self.path = path
        self.field = field
        self.error_name = error_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "error_type": type(self).__name__,
            "error_name": self.error_name.value if self.error_name else None,
            "field": self.field,
            "path": self.path,
            "message": self.message,
        }


class StructuralError(CandidateError):
    """Candidate JSON failed a type, enum or shape check."""

    def __init__(self, message: str, candidate_id: str = "", path: str = "", field: str = "", expected: str = ""):
        super().__init__(message, candidate_id=candidate_id, path=path, field=field)
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["expected"] = self.expected
        return out


class SchedulingError(CandidateError):
    pass


class ReconciliationError(CandidateError):
    pass


class TelemetryEmissionFailure(Exception):
    pass


class AdminApiError(Exception):
    def __init__(self, message: str, code: str = "", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.errors = errors or []

    @property
    def is_already_scheduled(self) -> bool:
        if self.code == CandidateErrorName.ALREADY_SCHEDULED.value:
            return True
        # the API reports duplicate schedules as BAD_USER_INPUT with this wording
        return "already scheduled" in self.message.lower()
