# FILE: ipd_ledger/services/episode_query.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ipd_ledger.core.errors import ValidationError
from ipd_ledger.core.rbac import ActorContext, require_permission
from ipd_ledger.models.audit import AuditLog
from ipd_ledger.models.episode import EPISODE_KINDS, EPISODE_STATUSES, Episode
from ipd_ledger.schemas.episode import AuditLogOut, EpisodeDetailOut, EpisodeOut
from ipd_ledger.schemas.ledger import (DiagnosisOut, MedicationOut,
                                       NursingNoteOut, VitalsOut)
from ipd_ledger.services.clinical_ledger import entries_for
from ipd_ledger.services.common import get_episode_or_404
from ipd_ledger.utils.timezone import utcnow

MAX_LIST = 500


def episode_out(ep: Episode, now: Optional[datetime] = None) -> EpisodeOut:
    out = EpisodeOut.model_validate(ep)
    out.length_of_stay = ep.compute_length_of_stay(now or utcnow())
    return out


def list_episodes(
    db: Session,
    actor: ActorContext,
    *,
    status: Optional[str] = None,
    ward: Optional[str] = None,
    kind: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 300,
    now: Optional[datetime] = None,
) -> List[EpisodeOut]:
    """
    Filtered listing, newest admission first. The free-text ``q`` matches
    patient name or admission number in SQL rather than over a fetched page.
    """
    require_permission(actor, "view_patients", action="episode.list")
    if status and status not in EPISODE_STATUSES:
        raise ValidationError("status", f"status: must be one of {', '.join(EPISODE_STATUSES)}")
    if kind and kind not in EPISODE_KINDS:
        raise ValidationError("kind", f"kind: must be one of {', '.join(EPISODE_KINDS)}")

    stmt = select(Episode)
    if status:
        stmt = stmt.where(Episode.status == status)
    if ward:
        stmt = stmt.where(Episode.ward_ref == ward)
    if kind:
        stmt = stmt.where(Episode.kind == kind)
    term = (q or "").strip()
    if term:
        stmt = stmt.where(
            or_(
                Episode.patient_name.icontains(term, autoescape=True),
                Episode.admission_number.icontains(term, autoescape=True),
            ))
    stmt = stmt.order_by(Episode.admission_date.desc(),
                         Episode.id.desc()).limit(min(max(limit, 1), MAX_LIST))

    ts = now or utcnow()
    return [episode_out(ep, ts) for ep in db.execute(stmt).scalars()]


def get_episode(
    db: Session,
    actor: ActorContext,
    episode_id: int,
    *,
    latest_first: bool = False,
    now: Optional[datetime] = None,
) -> EpisodeDetailOut:
    require_permission(actor, "view_patients", action="episode.view")
    ep = get_episode_or_404(db, episode_id)

    def rows(kind: str, out_model):
        items = [out_model.model_validate(r) for r in entries_for(db, ep.id, kind)]
        if latest_first:
            items.reverse()
        return items

    base = episode_out(ep, now)
    return EpisodeDetailOut(
        **base.model_dump(),
        vitals=rows("vitals", VitalsOut),
        medications=rows("medications", MedicationOut),
        nursing_notes=rows("nursing_notes", NursingNoteOut),
        diagnoses=rows("diagnoses", DiagnosisOut),
    )


def audit_trail(db: Session, actor: ActorContext, episode_id: int) -> List[AuditLogOut]:
    require_permission(actor, "view_audit_logs", action="episode.audit")
    get_episode_or_404(db, episode_id)
    logs = db.execute(
        select(AuditLog).where(AuditLog.episode_id == episode_id).order_by(
            AuditLog.id)).scalars()
    return [AuditLogOut.model_validate(a) for a in logs]
