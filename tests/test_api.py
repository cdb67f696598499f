import json
from unittest import mock

from fastapi.testclient import TestClient
from jose import jwt

from ipd_ledger.api.deps import get_db, get_directory
from ipd_ledger.api.response import domain_err, ok
from ipd_ledger.core.config import settings
from ipd_ledger.core.errors import Conflict, Forbidden
from ipd_ledger.main import create_app
from ipd_ledger.services.directory import DirectoryClient
from tests.support import LedgerDbTestCase, admission_payload


class RecordingDirectory(DirectoryClient):
    """No remote directories; remembers discharge notices instead of posting them."""

    def __init__(self, staff=None):
        super().__init__()
        self.staff = staff or {}
        self.notices = []

    def staff_name(self, actor_id):
        return self.staff.get(actor_id)

    def notify_discharge(self, episode):
        self.notices.append(episode)
        return True


def token(actor_id, role, name=None):
    claims = {"sub": str(actor_id), "role": role}
    if name:
        claims["name"] = name
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def auth(actor_id, role, name=None):
    return {"Authorization": f"Bearer {token(actor_id, role, name)}"}


class ApiTestCase(LedgerDbTestCase):
    def setUp(self):
        super().setUp()
        self.directory = RecordingDirectory(staff={3: "Nurse Wanjiru"})
        app = create_app()

        def _db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _db
        app.dependency_overrides[get_directory] = lambda: self.directory
        self.client = TestClient(app)

        self.as_receptionist = auth(4, "receptionist", "Front Desk")
        self.as_doctor = auth(2, "doctor", "Dr. Achieng")
        self.as_nurse = auth(3, "nurse")
        self.as_admin = auth(1, "admin", "Admin")

    def create_episode(self, **overrides):
        r = self.client.post("/api/episodes", json=admission_payload(**overrides),
                             headers=self.as_receptionist)
        self.assertEqual(r.status_code, 201, r.text)
        return r.json()["data"]


class EpisodeLifecycleApiTests(ApiTestCase):
    def test_admit_record_discharge_flow(self):
        ep = self.create_episode()
        self.assertEqual(ep["status"], "admitted")
        self.assertTrue(ep["admission_number"].startswith("NHIP01012024"))
        self.assertEqual(ep["version"], 1)

        r = self.client.post(f"/api/episodes/{ep['id']}/vitals",
                             json={"heart_rate": 72, "temperature": 37.0},
                             headers=self.as_nurse)
        self.assertEqual(r.status_code, 201, r.text)
        vitals = r.json()["data"]
        self.assertEqual(vitals["recorded_by"], 3)
        self.assertEqual(vitals["recorded_by_name"], "Nurse Wanjiru")
        self.assertEqual(vitals["seq"], 1)

        r = self.client.post(f"/api/episodes/{ep['id']}/medications",
                             json={"medication": "Paracetamol", "dosage": "1g", "frequency": "QID"},
                             headers=self.as_doctor)
        self.assertEqual(r.status_code, 201, r.text)
        self.assertEqual(r.json()["data"]["prescribed_by_name"], "Dr. Achieng")

        r = self.client.patch(f"/api/episodes/{ep['id']}/status", json={"status": "stable"},
                              headers=self.as_nurse)
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["data"]["status"], "stable")

        r = self.client.put(f"/api/episodes/{ep['id']}/discharge",
                            json={"discharge_reason": "recovered", "discharge_summary": "Afebrile, home"},
                            headers=self.as_doctor)
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["data"]["status"], "discharged")
        self.assertEqual(body["data"]["discharged_by"], 2)

        self.assertEqual(len(self.directory.notices), 1)
        self.assertEqual(self.directory.notices[0]["admission_number"], ep["admission_number"])
        self.assertEqual(self.directory.notices[0]["bed_ref"], "A-12")

        r = self.client.post(f"/api/episodes/{ep['id']}/nursing-notes", json={"note": "late"},
                             headers=self.as_nurse)
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["error"]["code"], "episode_closed")

        r = self.client.get(f"/api/episodes/{ep['id']}", headers=self.as_doctor)
        detail = r.json()["data"]
        self.assertEqual([v["heart_rate"] for v in detail["vitals"]], [72])
        self.assertEqual(len(detail["medications"]), 1)
        self.assertEqual(detail["nursing_notes"], [])

        r = self.client.get(f"/api/episodes/{ep['id']}/audit-trail", headers=self.as_admin)
        self.assertEqual([a["action"] for a in r.json()["data"]], ["ADMIT", "STATUS", "DISCHARGE"])

    def test_listing(self):
        self.create_episode()
        self.create_episode(patient_ref="PAT-2", patient_name="Brian Otieno", ward_ref="WARD-B")
        r = self.client.get("/api/episodes", params={"ward": "WARD-B"}, headers=self.as_nurse)
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["meta"], {"count": 1})
        self.assertEqual(body["data"][0]["patient_name"], "Brian Otieno")

    def test_ledger_listing_latest_first(self):
        ep = self.create_episode()
        for text in ("first", "second"):
            self.client.post(f"/api/episodes/{ep['id']}/nursing-notes", json={"note": text},
                             headers=self.as_nurse)
        r = self.client.get(f"/api/episodes/{ep['id']}/nursing-notes",
                            params={"latest_first": "true"}, headers=self.as_doctor)
        self.assertEqual([n["note"] for n in r.json()["data"]], ["second", "first"])


class ErrorEnvelopeApiTests(ApiTestCase):
    def test_missing_token(self):
        r = self.client.get("/api/episodes")
        self.assertEqual(r.status_code, 401)
        self.assertFalse(r.json()["ok"])
        self.assertEqual(r.json()["error"]["code"], "unauthorized")

    def test_bad_tokens(self):
        bad_sig = jwt.encode({"sub": "2", "role": "doctor"}, "other-secret", algorithm="HS256")
        r = self.client.get("/api/episodes", headers={"Authorization": f"Bearer {bad_sig}"})
        self.assertEqual(r.status_code, 401)

        r = self.client.get("/api/episodes", headers=auth(2, "janitor"))
        self.assertEqual(r.status_code, 401)

    def test_forbidden_is_generic(self):
        ep = self.create_episode()
        r = self.client.post(f"/api/episodes/{ep['id']}/medications",
                             json={"medication": "X", "dosage": "1", "frequency": "OD"},
                             headers=self.as_receptionist)
        self.assertEqual(r.status_code, 403)
        error = r.json()["error"]
        self.assertEqual(error["code"], "forbidden")
        self.assertEqual(error["msg"], "Not permitted")
        self.assertNotIn("doctor", str(error))

    def test_validation_names_field(self):
        ep = self.create_episode()
        r = self.client.post(f"/api/episodes/{ep['id']}/vitals", json={"heart_rate": 500},
                             headers=self.as_nurse)
        self.assertEqual(r.status_code, 422)
        error = r.json()["error"]
        self.assertEqual(error["code"], "validation_error")
        self.assertEqual(error["details"], {"field": "heart_rate"})

    def test_not_found(self):
        r = self.client.get("/api/episodes/999", headers=self.as_doctor)
        self.assertEqual(r.status_code, 404)
        self.assertEqual(r.json()["error"]["code"], "not_found")

    def test_stale_version_conflict(self):
        ep = self.create_episode()
        r = self.client.patch(f"/api/episodes/{ep['id']}/status",
                              json={"status": "critical", "expected_version": 1},
                              headers=self.as_nurse)
        self.assertEqual(r.status_code, 200)
        r = self.client.patch(f"/api/episodes/{ep['id']}/status",
                              json={"status": "stable", "expected_version": 1},
                              headers=self.as_doctor)
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["error"]["code"], "conflict")
        self.assertEqual(r.json()["error"]["details"], {"version": 2})

    def test_health(self):
        r = self.client.get("/")
        self.assertEqual(r.status_code, 200)


class EnvelopeTests(LedgerDbTestCase):
    def test_domain_error_carries_its_own_status_code_and_details(self):
        resp = domain_err(Conflict(details={"version": 3}))
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(json.loads(resp.body), {
            "ok": False,
            "error": {"msg": "Episode was modified concurrently", "code": "conflict",
                      "details": {"version": 3}},
        })

        body = json.loads(domain_err(Forbidden()).body)
        self.assertEqual(body["error"], {"msg": "Not permitted", "code": "forbidden", "details": None})

    def test_ok_includes_meta_only_when_given(self):
        self.assertEqual(json.loads(ok([1]).body), {"ok": True, "data": [1]})
        self.assertEqual(json.loads(ok([], meta={"count": 0}).body)["meta"], {"count": 0})


class AppLifespanTests(LedgerDbTestCase):
    def test_tables_created_when_app_starts(self):
        with mock.patch("ipd_ledger.main.init_db") as init_db:
            app = create_app()
            init_db.assert_not_called()
            with TestClient(app) as client:
                self.assertEqual(client.get("/").status_code, 200)
            init_db.assert_called_once_with()
