# FILE: ipd_ledger/services/episode_registry.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ipd_ledger.core.errors import Conflict, EpisodeClosed, ValidationError
from ipd_ledger.core.rbac import (ActorContext, STATUS_ROLES, discharge_roles,
                                  require_any_role, require_permission)
from ipd_ledger.models.audit import AuditLog
from ipd_ledger.models.episode import DISCHARGED, Episode
from ipd_ledger.schemas.episode import DischargeIn, EpisodeIn, StatusIn
from ipd_ledger.services.common import get_episode_or_404, validate_payload
from ipd_ledger.services.directory import DirectoryClient
from ipd_ledger.services.id_gen import make_admission_number
from ipd_ledger.utils.timezone import to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def _audit(
    db: Session,
    actor: ActorContext,
    episode_id: int,
    action: str,
    old_values: Optional[Dict[str, Any]],
    new_values: Optional[Dict[str, Any]],
    at: datetime,
) -> None:
    db.add(
        AuditLog(actor_id=actor.id,
                 actor_role=actor.role,
                 action=action,
                 episode_id=episode_id,
                 old_values=old_values,
                 new_values=new_values,
                 created_at=at))


# ---------------- Admission ----------------


def admit(
    db: Session,
    actor: ActorContext,
    payload: Any,
    *,
    directory: Optional[DirectoryClient] = None,
    now: Optional[datetime] = None,
) -> Episode:
    """
    Open a new episode in status ``admitted`` and give it its admission
    number. Patient, ward and bed are referenced by id only.
    """
    require_permission(actor, "admit_patients", action="episode.admit")
    data = validate_payload(EpisodeIn, payload, "episode")
    ts = now or utcnow()

    patient_name = data.patient_name or ""
    if directory is not None:
        patient_name = directory.patient_name(data.patient_ref) or patient_name
        ward = directory.ward(data.ward_ref)
        if ward is not None and ward.get("is_active") is False:
            raise ValidationError("ward_ref", "ward_ref: ward is not active")

    admitted_at = to_naive_utc(data.admission_date) if data.admission_date else ts
    expected = (to_naive_utc(data.expected_discharge_date)
                if data.expected_discharge_date else None)
    contact = data.emergency_contact

    ep = Episode(kind=data.kind,
                 patient_ref=data.patient_ref,
                 patient_name=patient_name,
                 ward_ref=data.ward_ref,
                 bed_ref=data.bed_ref,
                 admitting_doctor_ref=data.admitting_doctor_ref,
                 assigned_nurse_ref=data.assigned_nurse_ref,
                 admission_date=admitted_at,
                 expected_discharge_date=expected,
                 admission_type=data.admission_type,
                 admission_reason=data.admission_reason,
                 notes=data.notes or "",
                 status="admitted",
                 emergency_contact_name=contact.name,
                 emergency_contact_phone=contact.phone,
                 emergency_contact_relationship=contact.relationship or "",
                 insurance_provider=(data.insurance.provider
                                     if data.insurance else None),
                 insurance_policy_number=(data.insurance.policy_number
                                          if data.insurance else None),
                 version=1,
                 ledger_seq=0,
                 created_by=actor.id,
                 created_at=ts)
    try:
        db.add(ep)
        db.flush()
        ep.admission_number = make_admission_number(ep.id, on_date=admitted_at)
        _audit(db, actor, ep.id, "ADMIT", None, {
            "admission_number": ep.admission_number,
            "status": ep.status,
            "kind": ep.kind,
            "ward_ref": ep.ward_ref,
            "bed_ref": ep.bed_ref,
        }, ts)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ep)
    logger.info("Admitted episode %s (%s) by actor=%s", ep.id, ep.admission_number, actor.id)
    return ep


# ---------------- Status ----------------


def set_status(
    db: Session,
    actor: ActorContext,
    episode_id: int,
    payload: Any,
    *,
    now: Optional[datetime] = None,
) -> Episode:
    """
    Re-label a live episode between the non-terminal statuses. Last writer
    wins unless ``expected_version`` is supplied.
    """
    ep = get_episode_or_404(db, episode_id)
    require_any_role(actor, STATUS_ROLES, action="episode.status")
    if ep.is_discharged:
        raise EpisodeClosed()
    data = validate_payload(StatusIn, payload, "status")
    ts = now or utcnow()
    old_status = ep.status

    stmt = update(Episode).where(Episode.id == episode_id,
                                 Episode.status != DISCHARGED)
    if data.expected_version is not None:
        stmt = stmt.where(Episode.version == data.expected_version)
    stmt = stmt.values(status=data.status, version=Episode.version + 1)

    try:
        res = db.execute(stmt.execution_options(synchronize_session=False))
        if res.rowcount != 1:
            db.rollback()
            current = get_episode_or_404(db, episode_id)
            if current.is_discharged:
                raise EpisodeClosed()
            logger.warning("Stale status update on episode %s (expected v%s, now v%s)",
                           episode_id, data.expected_version, current.version)
            raise Conflict(details={"version": current.version})
        _audit(db, actor, episode_id, "STATUS", {"status": old_status},
               {"status": data.status}, ts)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ep)
    logger.info("Episode %s status %s -> %s by actor=%s", episode_id, old_status,
                ep.status, actor.id)
    return ep


# ---------------- Discharge ----------------


def discharge(
    db: Session,
    actor: ActorContext,
    episode_id: int,
    payload: Any,
    *,
    now: Optional[datetime] = None,
) -> Episode:
    """
    The one irrevocable transition. Check-and-set on status at the storage
    layer: of several concurrent callers exactly one wins, the rest get
    EpisodeClosed (already closed when they looked) or Conflict (lost the race).
    """
    ep = get_episode_or_404(db, episode_id)
    require_any_role(actor, discharge_roles(ep.kind), action="episode.discharge")
    if ep.is_discharged:
        raise EpisodeClosed()
    data = validate_payload(DischargeIn, payload, "discharge")
    stop_ts = now or utcnow()
    old_status = ep.status

    stmt = (update(Episode).where(
        Episode.id == episode_id,
        Episode.status != DISCHARGED,
    ).values(
        status=DISCHARGED,
        discharge_date=stop_ts,
        discharge_reason=data.discharge_reason,
        discharge_summary=data.discharge_summary,
        discharged_by=actor.id,
        version=Episode.version + 1,
    ).execution_options(synchronize_session=False))

    try:
        res = db.execute(stmt)
        if res.rowcount != 1:
            logger.warning("Lost discharge race on episode %s (actor=%s)", episode_id, actor.id)
            raise Conflict("Episode was discharged concurrently")
        _audit(db, actor, episode_id, "DISCHARGE", {"status": old_status}, {
            "status": DISCHARGED,
            "discharge_date": stop_ts.isoformat(),
            "discharge_reason": data.discharge_reason,
        }, stop_ts)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ep)
    logger.info("Discharged episode %s (%s) reason=%s by actor=%s", episode_id,
                ep.admission_number, ep.discharge_reason, actor.id)
    return ep


def discharge_notice(ep: Episode) -> Dict[str, Any]:
    return {
        "episode_id": ep.id,
        "admission_number": ep.admission_number,
        "patient_ref": ep.patient_ref,
        "ward_ref": ep.ward_ref,
        "bed_ref": ep.bed_ref,
        "discharge_date": ep.discharge_date.isoformat() if ep.discharge_date else None,
        "discharge_reason": ep.discharge_reason,
    }


def notify_ward_of_discharge(directory: DirectoryClient, notice: Dict[str, Any]) -> bool:
    """
    Fire-and-forget ward/bed notification. Runs after the discharge is
    committed; any failure is logged and never undoes the discharge.
    """
    try:
        return directory.notify_discharge(notice)
    except Exception:
        logger.exception("Ward notification crashed for episode %s", notice.get("episode_id"))
        return False
