import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from sqlalchemy.orm import sessionmaker

from ipd_ledger.core.rbac import ActorContext
from ipd_ledger.db.init_db import init_db
from ipd_ledger.db.session import make_engine
from ipd_ledger.services import episode_registry

ADMITTED_AT = datetime(2024, 1, 1, 8, 0)


def actor(role: str, actor_id: int = None, name: str = None) -> ActorContext:
    ids = {
        "admin": 1, "doctor": 2, "nurse": 3, "receptionist": 4, "pharmacist": 5,
        "lab_technician": 6, "radiologist": 7, "surgeon": 8, "mortuary_attendant": 9,
    }
    return ActorContext.for_role(actor_id or ids[role], role, name or f"{role.title()} One")


def admission_payload(**overrides) -> dict:
    payload = {
        "patient_ref": "PAT-100",
        "patient_name": "Asha Kumar",
        "ward_ref": "WARD-A",
        "bed_ref": "A-12",
        "admission_date": ADMITTED_AT.isoformat(),
        "admission_type": "emergency",
        "admission_reason": "Community acquired pneumonia",
        "emergency_contact": {"name": "Ravi Kumar", "phone": "0712000000", "relationship": "brother"},
    }
    payload.update(overrides)
    return payload


class LedgerDbTestCase(unittest.TestCase):
    """Fresh file-backed SQLite database per test (threads need real locking)."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = make_engine(f"sqlite:///{Path(self._tmp.name) / 'ipd.db'}")
        init_db(self.engine)
        self.Session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, future=True)
        self.db = self.Session()

        self.admin = actor("admin")
        self.doctor = actor("doctor")
        self.nurse = actor("nurse")
        self.receptionist = actor("receptionist")
        self.surgeon = actor("surgeon")

    def tearDown(self):
        self.db.close()
        self.engine.dispose()
        self._tmp.cleanup()

    def admit(self, **overrides):
        return episode_registry.admit(self.db, self.receptionist, admission_payload(**overrides),
                                      now=ADMITTED_AT)
