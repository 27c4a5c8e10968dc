"""
Error kinds raised by the exam services.

Services raise these and never format responses; ``exambank.main`` maps
``status_code``/``code`` onto the HTTP error envelope.
"""
from typing import Any, Dict, Optional


class ExamError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ExamError):
    status_code = 404
    code = "not_found"


class ForbiddenError(ExamError):
    status_code = 403
    code = "forbidden"


class ConflictError(ExamError):
    status_code = 409
    code = "conflict"


class DeadlineExceededError(ExamError):
    status_code = 403
    code = "deadline_exceeded"


class ValidationError(ExamError):
    status_code = 400
    code = "validation_error"
