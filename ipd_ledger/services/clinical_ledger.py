# FILE: ipd_ledger/services/clinical_ledger.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, FrozenSet, List, Optional, Type

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ipd_ledger.core.errors import EpisodeClosed, NotFound, ValidationError
from ipd_ledger.core.rbac import (ActorContext, MEDICATION_ROLES,
                                  NURSING_NOTE_ROLES, VITALS_ROLES,
                                  diagnosis_roles, require_any_role,
                                  require_permission)
from ipd_ledger.models.episode import DISCHARGED, Episode
from ipd_ledger.models.ledger import (LEDGER_MODELS, DiagnosisEntry,
                                      MedicationEntry, NursingNoteEntry,
                                      VitalsEntry)
from ipd_ledger.schemas.ledger import (DiagnosisIn, MedicationIn,
                                       NursingNoteIn, VitalsIn)
from ipd_ledger.services.common import get_episode_or_404, validate_payload
from ipd_ledger.utils.timezone import utcnow

logger = logging.getLogger(__name__)


def _next_seq(db: Session, episode_id: int) -> int:
    """
    Allocate the next per-episode sequence number. The increment is a single
    conditional UPDATE, so concurrent appends never lose a number and an
    append that races a discharge fails instead of landing after it.
    """
    res = db.execute(
        update(Episode).where(
            Episode.id == episode_id,
            Episode.status != DISCHARGED,
        ).values(ledger_seq=Episode.ledger_seq + 1).execution_options(
            synchronize_session=False))
    if res.rowcount != 1:
        raise EpisodeClosed()
    return db.execute(
        select(Episode.ledger_seq).where(Episode.id == episode_id)).scalar_one()


def _append(
    db: Session,
    actor: ActorContext,
    episode_id: int,
    payload: Any,
    *,
    kind: str,
    roles: Callable[[Episode], FrozenSet[str]],
    schema: Type[BaseModel],
    build: Callable[[Any, ActorContext, datetime, int], Any],
    now: Optional[datetime],
    check: Optional[Callable[[Any, datetime], None]] = None,
):
    # order matters: existence, gate, closed, then payload
    ep = get_episode_or_404(db, episode_id)
    require_any_role(actor, roles(ep), action=f"ledger.{kind}")
    if ep.is_discharged:
        raise EpisodeClosed()
    data = validate_payload(schema, payload, kind)
    ts = now or utcnow()
    if check is not None:
        check(data, ts)

    try:
        seq = _next_seq(db, episode_id)
        entry = build(data, actor, ts, seq)
        entry.episode_id = episode_id
        db.add(entry)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    logger.info("Ledger %s #%s appended to episode %s by actor=%s", kind, seq,
                episode_id, actor.id)
    return entry


# ---------------- Vitals ----------------


def append_vitals(db: Session,
                  actor: ActorContext,
                  episode_id: int,
                  payload: Any,
                  *,
                  now: Optional[datetime] = None) -> VitalsEntry:

    def build(data: VitalsIn, who: ActorContext, ts: datetime, seq: int) -> VitalsEntry:
        bp = data.blood_pressure
        return VitalsEntry(seq=seq,
                           recorded_by=who.id,
                           recorded_by_name=who.display_name,
                           recorded_date=ts,
                           bp_systolic=bp.systolic if bp else None,
                           bp_diastolic=bp.diastolic if bp else None,
                           heart_rate=data.heart_rate,
                           temperature=data.temperature,
                           respiratory_rate=data.respiratory_rate,
                           oxygen_saturation=data.oxygen_saturation,
                           notes=data.notes or "")

    return _append(db, actor, episode_id, payload,
                   kind="vitals",
                   roles=lambda ep: VITALS_ROLES,
                   schema=VitalsIn,
                   build=build,
                   now=now)


# ---------------- Medications ----------------


def append_medication(db: Session,
                      actor: ActorContext,
                      episode_id: int,
                      payload: Any,
                      *,
                      now: Optional[datetime] = None) -> MedicationEntry:

    def check(data: MedicationIn, ts: datetime) -> None:
        # start_date defaults to the day of recording, so the range is only
        # complete here
        start = data.start_date or ts.date()
        if data.end_date is not None and data.end_date < start:
            raise ValidationError("end_date", "end_date: must be >= start_date")

    def build(data: MedicationIn, who: ActorContext, ts: datetime, seq: int) -> MedicationEntry:
        return MedicationEntry(seq=seq,
                               prescribed_by=who.id,
                               prescribed_by_name=who.display_name,
                               prescribed_date=ts,
                               medication=data.medication,
                               dosage=data.dosage,
                               frequency=data.frequency,
                               start_date=data.start_date or ts.date(),
                               end_date=data.end_date,
                               notes=data.notes or "")

    return _append(db, actor, episode_id, payload,
                   kind="medication",
                   roles=lambda ep: MEDICATION_ROLES,
                   schema=MedicationIn,
                   build=build,
                   check=check,
                   now=now)


# ---------------- Nursing notes ----------------


def append_nursing_note(db: Session,
                        actor: ActorContext,
                        episode_id: int,
                        payload: Any,
                        *,
                        now: Optional[datetime] = None) -> NursingNoteEntry:

    def build(data: NursingNoteIn, who: ActorContext, ts: datetime, seq: int) -> NursingNoteEntry:
        return NursingNoteEntry(seq=seq,
                                recorded_by=who.id,
                                recorded_by_name=who.display_name,
                                recorded_date=ts,
                                category=data.category,
                                note=data.note)

    return _append(db, actor, episode_id, payload,
                   kind="nursing_note",
                   roles=lambda ep: NURSING_NOTE_ROLES,
                   schema=NursingNoteIn,
                   build=build,
                   now=now)


# ---------------- Diagnoses ----------------


def append_diagnosis(db: Session,
                     actor: ActorContext,
                     episode_id: int,
                     payload: Any,
                     *,
                     now: Optional[datetime] = None) -> DiagnosisEntry:

    def build(data: DiagnosisIn, who: ActorContext, ts: datetime, seq: int) -> DiagnosisEntry:
        return DiagnosisEntry(seq=seq,
                              diagnosed_by=who.id,
                              diagnosed_by_name=who.display_name,
                              diagnosed_date=ts,
                              condition=data.condition,
                              notes=data.notes or "")

    return _append(db, actor, episode_id, payload,
                   kind="diagnosis",
                   roles=lambda ep: diagnosis_roles(ep.kind),
                   schema=DiagnosisIn,
                   build=build,
                   now=now)


# ---------------- Reads ----------------


def entries_for(db: Session, episode_id: int, kind: str) -> List[Any]:
    """All entries of one kind in insertion (seq) order; no gate."""
    model = LEDGER_MODELS.get(kind)
    if model is None:
        raise NotFound("Unknown ledger kind")
    return list(
        db.execute(
            select(model).where(model.episode_id == episode_id).order_by(
                model.seq)).scalars())


def list_entries(db: Session,
                 actor: ActorContext,
                 episode_id: int,
                 kind: str,
                 *,
                 latest_first: bool = False) -> List[Any]:
    require_permission(actor, "view_patients", action=f"ledger.{kind}.view")
    get_episode_or_404(db, episode_id)
    rows = entries_for(db, episode_id, kind)
    if latest_first:
        rows.reverse()
    return rows
