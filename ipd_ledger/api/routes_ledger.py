# FILE: ipd_ledger/api/routes_ledger.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ipd_ledger.api.deps import current_actor, get_db
from ipd_ledger.api.response import ok
from ipd_ledger.core.rbac import ActorContext
from ipd_ledger.schemas.ledger import (DiagnosisOut, MedicationOut,
                                       NursingNoteOut, VitalsOut)
from ipd_ledger.services import clinical_ledger

router = APIRouter(prefix="/episodes", tags=["IPD – Clinical ledger"])

# Append-only: there is deliberately no PUT/PATCH/DELETE on any entry.


def _listing(db: Session, actor: ActorContext, episode_id: int, kind: str,
             out_model, latest_first: bool):
    rows = clinical_ledger.list_entries(db, actor, episode_id, kind,
                                        latest_first=latest_first)
    return ok([out_model.model_validate(r) for r in rows])


# ---------------- Vitals ----------------


@router.post("/{episode_id}/vitals")
def record_vitals(episode_id: int,
                  payload: Dict[str, Any] = Body(...),
                  db: Session = Depends(get_db),
                  actor: ActorContext = Depends(current_actor)):
    v = clinical_ledger.append_vitals(db, actor, episode_id, payload)
    return ok(VitalsOut.model_validate(v), status_code=201)


@router.get("/{episode_id}/vitals")
def list_vitals(episode_id: int,
                latest_first: bool = False,
                db: Session = Depends(get_db),
                actor: ActorContext = Depends(current_actor)):
    return _listing(db, actor, episode_id, "vitals", VitalsOut, latest_first)


# ---------------- Medications ----------------


@router.post("/{episode_id}/medications")
def prescribe_medication(episode_id: int,
                         payload: Dict[str, Any] = Body(...),
                         db: Session = Depends(get_db),
                         actor: ActorContext = Depends(current_actor)):
    m = clinical_ledger.append_medication(db, actor, episode_id, payload)
    return ok(MedicationOut.model_validate(m), status_code=201)


@router.get("/{episode_id}/medications")
def list_medications(episode_id: int,
                     latest_first: bool = False,
                     db: Session = Depends(get_db),
                     actor: ActorContext = Depends(current_actor)):
    return _listing(db, actor, episode_id, "medications", MedicationOut, latest_first)


# ---------------- Nursing Notes ----------------


@router.post("/{episode_id}/nursing-notes")
def create_nursing_note(episode_id: int,
                        payload: Dict[str, Any] = Body(...),
                        db: Session = Depends(get_db),
                        actor: ActorContext = Depends(current_actor)):
    n = clinical_ledger.append_nursing_note(db, actor, episode_id, payload)
    return ok(NursingNoteOut.model_validate(n), status_code=201)


@router.get("/{episode_id}/nursing-notes")
def list_nursing_notes(episode_id: int,
                       latest_first: bool = False,
                       db: Session = Depends(get_db),
                       actor: ActorContext = Depends(current_actor)):
    return _listing(db, actor, episode_id, "nursing_notes", NursingNoteOut, latest_first)


# ---------------- Diagnosis ----------------


@router.post("/{episode_id}/diagnosis")
def add_diagnosis(episode_id: int,
                  payload: Dict[str, Any] = Body(...),
                  db: Session = Depends(get_db),
                  actor: ActorContext = Depends(current_actor)):
    d = clinical_ledger.append_diagnosis(db, actor, episode_id, payload)
    return ok(DiagnosisOut.model_validate(d), status_code=201)


@router.get("/{episode_id}/diagnosis")
def list_diagnoses(episode_id: int,
                   latest_first: bool = False,
                   db: Session = Depends(get_db),
                   actor: ActorContext = Depends(current_actor)):
    return _listing(db, actor, episode_id, "diagnoses", DiagnosisOut, latest_first)
