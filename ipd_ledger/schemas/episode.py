# FILE: ipd_ledger/schemas/episode.py
from __future__ import annotations
from datetime import datetime
from typing import Optional, List, Literal, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator

from ipd_ledger.schemas.ledger import (VitalsOut, MedicationOut,
                                       NursingNoteOut, DiagnosisOut)
from ipd_ledger.utils.timezone import to_naive_utc

EpisodeKind = Literal["ward", "theatre"]
AdmissionType = Literal["emergency", "elective", "transfer"]
ActiveStatus = Literal["admitted", "under_observation", "critical", "stable"]
DischargeReason = Literal["recovered", "referred", "against_medical_advice",
                          "deceased", "absconded", "transferred"]

# =====================================================================
# ------------------------------ Admission -----------------------------
# =====================================================================


class EmergencyContactIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(..., min_length=1, max_length=40)
    relationship: Optional[str] = Field("", max_length=60)


class InsuranceIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    provider: str = Field(..., min_length=1, max_length=120)
    policy_number: Optional[str] = Field("", max_length=120)


class EpisodeIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    patient_ref: str = Field(..., min_length=1, max_length=64)
    patient_name: Optional[str] = Field(None, max_length=200)
    ward_ref: str = Field(..., min_length=1, max_length=64)
    bed_ref: str = Field(..., min_length=1, max_length=64)
    kind: EpisodeKind = "ward"

    admission_date: Optional[datetime] = None
    expected_discharge_date: Optional[datetime] = None
    admission_type: AdmissionType = "elective"
    admission_reason: str = Field(..., min_length=1)
    admitting_doctor_ref: Optional[str] = Field(None, max_length=64)
    assigned_nurse_ref: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = ""

    emergency_contact: EmergencyContactIn
    insurance: Optional[InsuranceIn] = None

    @field_validator("expected_discharge_date")
    @classmethod
    def validate_expected_discharge(cls, v, info):
        admitted = info.data.get("admission_date")
        # either side may carry an offset; compare as naive UTC
        if v is not None and admitted is not None and to_naive_utc(v) < to_naive_utc(admitted):
            raise ValueError("expected_discharge_date must be >= admission_date")
        return v


class StatusIn(BaseModel):
    status: ActiveStatus
    expected_version: Optional[int] = Field(None, ge=1)


class DischargeIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    discharge_reason: DischargeReason
    discharge_summary: str = Field(..., min_length=1)


# =====================================================================
# ------------------------------- Output -------------------------------
# =====================================================================


class EpisodeOut(BaseModel):
    id: int
    admission_number: Optional[str] = None
    kind: str

    patient_ref: str
    patient_name: Optional[str] = None
    ward_ref: str
    bed_ref: str
    admitting_doctor_ref: Optional[str] = None
    assigned_nurse_ref: Optional[str] = None

    admission_date: datetime
    expected_discharge_date: Optional[datetime] = None
    admission_type: str
    admission_reason: Optional[str] = None
    notes: Optional[str] = None

    status: str
    discharge_date: Optional[datetime] = None
    discharge_reason: Optional[str] = None
    discharge_summary: Optional[str] = None
    discharged_by: Optional[int] = None

    emergency_contact: Dict[str, str]
    insurance: Optional[Dict[str, str]] = None

    version: int
    length_of_stay: int = 0

    model_config = ConfigDict(from_attributes=True)


class EpisodeDetailOut(EpisodeOut):
    vitals: List[VitalsOut] = []
    medications: List[MedicationOut] = []
    nursing_notes: List[NursingNoteOut] = []
    diagnoses: List[DiagnosisOut] = []


class AuditLogOut(BaseModel):
    id: int
    actor_id: int
    actor_role: str
    action: str
    episode_id: int
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("old_values", "new_values", mode="before")
    @classmethod
    def empty_as_none(cls, v):
        return v or None
