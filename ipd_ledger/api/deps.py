# ipd_ledger/api/deps.py
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from ipd_ledger.core.config import settings
from ipd_ledger.core.rbac import ActorContext, ROLES
from ipd_ledger.db.session import SessionLocal
from ipd_ledger.services.directory import DirectoryClient


# =========================================================
# DB (per request)
# =========================================================
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =========================================================
# External directories
# =========================================================
_directory: Optional[DirectoryClient] = None


def get_directory() -> DirectoryClient:
    global _directory
    if _directory is None:
        _directory = DirectoryClient.from_settings()
    return _directory


# =========================================================
# AUTH HELPERS
# =========================================================
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_token(raw_token: str) -> dict:
    try:
        return jwt.decode(raw_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def actor_from_token(raw_token: str) -> ActorContext:
    """
    Tokens are issued elsewhere; all this core needs is the subject id and
    the role claim. An optional ``name`` claim is used for attribution.
    """
    payload = _decode_token(raw_token)
    sub = payload.get("sub")
    role = payload.get("role")
    try:
        actor_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token payload")
    if role not in ROLES:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return ActorContext.for_role(actor_id, role, payload.get("name"))


def current_actor(
    authorization: Optional[str] = Header(None),
    directory: DirectoryClient = Depends(get_directory),
) -> ActorContext:
    raw = _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Missing token")
    actor = actor_from_token(raw)
    if actor.name:
        return actor
    name = directory.staff_name(actor.id)
    return ActorContext.for_role(actor.id, actor.role, name) if name else actor
