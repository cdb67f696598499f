# FILE: ipd_ledger/core/errors.py
from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """
    Base for every error the clinical core raises on purpose.
    Rendered by api/exception_handlers.py through the err() envelope.
    """
    status_code: int = 400
    code: str = "error"
    default_msg: str = "Request failed"

    def __init__(self, msg: Optional[str] = None, *, details: Any = None):
        self.msg = msg or self.default_msg
        self.details = details
        super().__init__(self.msg)


class ValidationError(DomainError):
    status_code = 422
    code = "validation_error"
    default_msg = "Validation error"

    def __init__(self, field: Optional[str], msg: Optional[str] = None):
        self.field = field
        super().__init__(msg, details={"field": field})


class Forbidden(DomainError):
    # never say which role/permission was missing
    status_code = 403
    code = "forbidden"
    default_msg = "Not permitted"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"
    default_msg = "Not found"


class EpisodeClosed(DomainError):
    status_code = 409
    code = "episode_closed"
    default_msg = "Episode is discharged; no further changes are allowed"


class Conflict(DomainError):
    status_code = 409
    code = "conflict"
    default_msg = "Episode was modified concurrently"
