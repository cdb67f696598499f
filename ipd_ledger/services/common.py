# FILE: ipd_ledger/services/common.py
from __future__ import annotations

from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from ipd_ledger.core.errors import NotFound, ValidationError
from ipd_ledger.models.episode import Episode

M = TypeVar("M", bound=BaseModel)


def get_episode_or_404(db: Session, episode_id: int) -> Episode:
    ep = db.get(Episode, episode_id)
    if not ep:
        raise NotFound("Episode not found")
    return ep


def validate_payload(schema: Type[M], payload: Any, fallback_field: Optional[str] = None) -> M:
    """
    Validate a raw request body against ``schema``.
    Runs only after the gate and closed-episode checks, so a forbidden caller
    never learns whether the payload was valid. Reports the first offending
    field.
    """
    if isinstance(payload, schema):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError(fallback_field, "Request body must be an object")
    try:
        return schema.model_validate(payload)
    except SchemaValidationError as e:
        first: Dict[str, Any] = e.errors()[0]
        loc = [str(p) for p in first.get("loc", ())]
        field = ".".join(loc) or fallback_field
        msg = first.get("msg") or "Invalid value"
        raise ValidationError(field, f"{field}: {msg}" if field else msg)
