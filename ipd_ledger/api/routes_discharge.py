# FILE: ipd_ledger/api/routes_discharge.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from sqlalchemy.orm import Session

from ipd_ledger.api.deps import current_actor, get_db, get_directory
from ipd_ledger.api.response import ok
from ipd_ledger.core.rbac import ActorContext
from ipd_ledger.services import episode_query, episode_registry
from ipd_ledger.services.directory import DirectoryClient

router = APIRouter(prefix="/episodes", tags=["IPD – Discharge"])


@router.put("/{episode_id}/discharge")
def discharge_episode(episode_id: int,
                      background_tasks: BackgroundTasks,
                      payload: Dict[str, Any] = Body(...),
                      db: Session = Depends(get_db),
                      actor: ActorContext = Depends(current_actor),
                      directory: DirectoryClient = Depends(get_directory)):
    ep = episode_registry.discharge(db, actor, episode_id, payload)

    # committed above; the ward notice runs after the response and can only log
    background_tasks.add_task(episode_registry.notify_ward_of_discharge,
                              directory, episode_registry.discharge_notice(ep))
    return ok(episode_query.episode_out(ep))
