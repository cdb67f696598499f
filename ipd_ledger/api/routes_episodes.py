# FILE: ipd_ledger/api/routes_episodes.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ipd_ledger.api.deps import current_actor, get_db, get_directory
from ipd_ledger.api.response import ok
from ipd_ledger.core.rbac import ActorContext
from ipd_ledger.services import episode_query, episode_registry
from ipd_ledger.services.directory import DirectoryClient

router = APIRouter(prefix="/episodes", tags=["IPD – Episodes"])

# Bodies arrive as plain dicts: the services validate them only after the
# gate and the closed-episode check have passed.


@router.post("")
def create_episode(payload: Dict[str, Any] = Body(...),
                   db: Session = Depends(get_db),
                   actor: ActorContext = Depends(current_actor),
                   directory: DirectoryClient = Depends(get_directory)):
    ep = episode_registry.admit(db, actor, payload, directory=directory)
    return ok(episode_query.episode_out(ep), status_code=201)


@router.get("")
def list_episodes(
        status: Optional[str] = Query(None, description="admitted/under_observation/critical/stable/discharged"),
        ward: Optional[str] = Query(None, description="ward reference"),
        kind: Optional[str] = Query(None, description="ward/theatre"),
        q: Optional[str] = Query(None, description="patient name or admission number"),
        limit: int = Query(300, ge=1, le=500),
        db: Session = Depends(get_db),
        actor: ActorContext = Depends(current_actor),
):
    items = episode_query.list_episodes(db, actor, status=status, ward=ward,
                                        kind=kind, q=q, limit=limit)
    return ok(items, meta={"count": len(items)})


@router.get("/{episode_id}")
def get_episode(episode_id: int,
                latest_first: bool = False,
                db: Session = Depends(get_db),
                actor: ActorContext = Depends(current_actor)):
    return ok(episode_query.get_episode(db, actor, episode_id, latest_first=latest_first))


@router.patch("/{episode_id}/status")
def set_status(episode_id: int,
               payload: Dict[str, Any] = Body(...),
               db: Session = Depends(get_db),
               actor: ActorContext = Depends(current_actor)):
    ep = episode_registry.set_status(db, actor, episode_id, payload)
    return ok(episode_query.episode_out(ep))


@router.get("/{episode_id}/audit-trail")
def get_audit_trail(episode_id: int,
                    db: Session = Depends(get_db),
                    actor: ActorContext = Depends(current_actor)):
    return ok(episode_query.audit_trail(db, actor, episode_id))
