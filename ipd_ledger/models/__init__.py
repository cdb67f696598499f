# ipd_ledger/models/__init__.py
from .episode import Episode
from .ledger import VitalsEntry, MedicationEntry, NursingNoteEntry, DiagnosisEntry
from .audit import AuditLog

__all__ = [
    "Episode",
    "VitalsEntry",
    "MedicationEntry",
    "NursingNoteEntry",
    "DiagnosisEntry",
    "AuditLog",
]
