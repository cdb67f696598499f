from __future__ import annotations
from datetime import datetime
from sqlalchemy import (Column, Integer, String, DateTime, Text, Index)
from sqlalchemy.orm import relationship
from ipd_ledger.db.base import Base
from ipd_ledger.utils.timezone import utcnow

EPISODE_STATUSES = ("admitted", "under_observation", "critical", "stable",
                    "discharged")
ACTIVE_STATUSES = EPISODE_STATUSES[:-1]
DISCHARGED = "discharged"

EPISODE_KINDS = ("ward", "theatre")

ADMISSION_TYPES = ("emergency", "elective", "transfer")

DISCHARGE_REASONS = ("recovered", "referred", "against_medical_advice",
                     "deceased", "absconded", "transferred")


class Episode(Base):
    __tablename__ = "episodes"
    __table_args__ = (
        Index("ix_episodes_status_ward", "status", "ward_ref"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    admission_number = Column(String(40), unique=True, index=True, nullable=True)
    kind = Column(String(20), nullable=False, default="ward")  # ward/theatre

    # external references, never owned here
    patient_ref = Column(String(64), nullable=False, index=True)
    patient_name = Column(String(200), default="")  # snapshot for search
    ward_ref = Column(String(64), nullable=False, index=True)
    bed_ref = Column(String(64), nullable=False)
    admitting_doctor_ref = Column(String(64), nullable=True)
    assigned_nurse_ref = Column(String(64), nullable=True)

    admission_date = Column(DateTime, nullable=False, default=utcnow)
    expected_discharge_date = Column(DateTime, nullable=True)
    admission_type = Column(String(20), nullable=False,
                            default="elective")  # emergency/elective/transfer
    admission_reason = Column(Text, default="")
    notes = Column(Text, default="")

    status = Column(String(30), nullable=False, default="admitted", index=True)

    # set together, exactly once, by discharge
    discharge_date = Column(DateTime, nullable=True)
    discharge_reason = Column(String(40), nullable=True)
    discharge_summary = Column(Text, nullable=True)
    discharged_by = Column(Integer, nullable=True)

    emergency_contact_name = Column(String(120), default="")
    emergency_contact_phone = Column(String(40), default="")
    emergency_contact_relationship = Column(String(60), default="")

    insurance_provider = Column(String(120), nullable=True)
    insurance_policy_number = Column(String(120), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    ledger_seq = Column(Integer, nullable=False, default=0)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    vitals = relationship("VitalsEntry",
                          order_by="VitalsEntry.seq",
                          viewonly=True)
    medications = relationship("MedicationEntry",
                               order_by="MedicationEntry.seq",
                               viewonly=True)
    nursing_notes = relationship("NursingNoteEntry",
                                 order_by="NursingNoteEntry.seq",
                                 viewonly=True)
    diagnoses = relationship("DiagnosisEntry",
                             order_by="DiagnosisEntry.seq",
                             viewonly=True)

    @property
    def is_discharged(self) -> bool:
        return self.status == DISCHARGED

    @property
    def emergency_contact(self) -> dict:
        return {
            "name": self.emergency_contact_name or "",
            "phone": self.emergency_contact_phone or "",
            "relationship": self.emergency_contact_relationship or "",
        }

    @property
    def insurance(self) -> dict | None:
        if not self.insurance_provider:
            return None
        return {
            "provider": self.insurance_provider,
            "policy_number": self.insurance_policy_number or "",
        }

    def compute_length_of_stay(self, now: datetime | None = None) -> int:
        """Whole days from admission to discharge (or now), never negative."""
        end = self.discharge_date or now or utcnow()
        days = (end - self.admission_date).days
        return max(days, 0)
