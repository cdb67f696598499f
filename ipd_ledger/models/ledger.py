from __future__ import annotations
from sqlalchemy import (Column, Integer, String, DateTime, Date, Text,
                        ForeignKey, Numeric, UniqueConstraint)
from ipd_ledger.db.base import Base
from ipd_ledger.utils.timezone import utcnow

# ---------------------------------------------------------------------
# Append-only clinical ledger. No row here is ever updated or deleted;
# `seq` is allocated from Episode.ledger_seq and is shared by all kinds.
# ---------------------------------------------------------------------

NOTE_CATEGORIES = ("general", "medication", "vital_signs", "treatment",
                   "observation", "incident")


class VitalsEntry(Base):
    __tablename__ = "ledger_vitals"
    __table_args__ = (
        UniqueConstraint("episode_id", "seq", name="uq_ledger_vitals_seq"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    episode_id = Column(Integer,
                        ForeignKey("episodes.id"),
                        nullable=False,
                        index=True)
    seq = Column(Integer, nullable=False)
    recorded_by = Column(Integer, nullable=False)
    recorded_by_name = Column(String(120), default="")
    recorded_date = Column(DateTime, nullable=False, default=utcnow)

    bp_systolic = Column(Integer, nullable=True)
    bp_diastolic = Column(Integer, nullable=True)
    heart_rate = Column(Integer, nullable=True)
    temperature = Column(Numeric(4, 1), nullable=True)  # deg C
    respiratory_rate = Column(Integer, nullable=True)
    oxygen_saturation = Column(Integer, nullable=True)
    notes = Column(Text, default="")

    @property
    def blood_pressure(self) -> dict | None:
        if self.bp_systolic is None and self.bp_diastolic is None:
            return None
        return {"systolic": self.bp_systolic, "diastolic": self.bp_diastolic}


class MedicationEntry(Base):
    __tablename__ = "ledger_medications"
    __table_args__ = (
        UniqueConstraint("episode_id", "seq", name="uq_ledger_medications_seq"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    episode_id = Column(Integer,
                        ForeignKey("episodes.id"),
                        nullable=False,
                        index=True)
    seq = Column(Integer, nullable=False)
    prescribed_by = Column(Integer, nullable=False)
    prescribed_by_name = Column(String(120), default="")
    prescribed_date = Column(DateTime, nullable=False, default=utcnow)

    medication = Column(String(200), nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    notes = Column(Text, default="")


class NursingNoteEntry(Base):
    __tablename__ = "ledger_nursing_notes"
    __table_args__ = (
        UniqueConstraint("episode_id", "seq", name="uq_ledger_nursing_notes_seq"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    episode_id = Column(Integer,
                        ForeignKey("episodes.id"),
                        nullable=False,
                        index=True)
    seq = Column(Integer, nullable=False)
    recorded_by = Column(Integer, nullable=False)
    recorded_by_name = Column(String(120), default="")
    recorded_date = Column(DateTime, nullable=False, default=utcnow)

    category = Column(String(20), nullable=False, default="general")
    note = Column(Text, nullable=False)


class DiagnosisEntry(Base):
    __tablename__ = "ledger_diagnoses"
    __table_args__ = (
        UniqueConstraint("episode_id", "seq", name="uq_ledger_diagnoses_seq"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
        },
    )

    id = Column(Integer, primary_key=True)
    episode_id = Column(Integer,
                        ForeignKey("episodes.id"),
                        nullable=False,
                        index=True)
    seq = Column(Integer, nullable=False)
    diagnosed_by = Column(Integer, nullable=False)
    diagnosed_by_name = Column(String(120), default="")
    diagnosed_date = Column(DateTime, nullable=False, default=utcnow)

    condition = Column(String(255), nullable=False)
    notes = Column(Text, default="")


LEDGER_MODELS = {
    "vitals": VitalsEntry,
    "medications": MedicationEntry,
    "nursing_notes": NursingNoteEntry,
    "diagnoses": DiagnosisEntry,
}
