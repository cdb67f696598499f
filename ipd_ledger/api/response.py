# FILE: ipd_ledger/api/response.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ipd_ledger.core.errors import DomainError


def _envelope(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    # ORM-backed pydantic models, datetimes and Decimal temperatures
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def ok(data: Any = None, *, meta: Optional[Dict[str, Any]] = None, status_code: int = 200) -> JSONResponse:
    body: Dict[str, Any] = {"ok": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return _envelope(status_code, body)


def err(msg: str, *, status_code: int, code: Optional[str] = None, details: Any = None) -> JSONResponse:
    return _envelope(status_code, {"ok": False, "error": {"msg": msg, "code": code, "details": details}})


def domain_err(exc: DomainError) -> JSONResponse:
    """Render a DomainError; its class fixes the status, code and details."""
    return err(exc.msg, status_code=exc.status_code, code=exc.code, details=exc.details)
