from datetime import datetime

from ipd_ledger.core.errors import Forbidden, NotFound, ValidationError
from ipd_ledger.services import clinical_ledger, episode_query, episode_registry
from tests.support import LedgerDbTestCase, actor


class ListEpisodesTests(LedgerDbTestCase):
    def setUp(self):
        super().setUp()
        self.first = self.admit()
        self.second = self.admit(patient_ref="PAT-200", patient_name="Brian Otieno",
                                 ward_ref="WARD-B", bed_ref="B-01",
                                 admission_date="2024-01-02T10:00:00")
        self.third = self.admit(patient_ref="PAT-300", patient_name="Carla Mwangi",
                                kind="theatre", admission_date="2024-01-03T07:30:00")
        episode_registry.set_status(self.db, self.nurse, self.second.id, {"status": "critical"})

    def test_newest_admission_first(self):
        items = episode_query.list_episodes(self.db, self.doctor)
        self.assertEqual([e.id for e in items], [self.third.id, self.second.id, self.first.id])

    def test_filters(self):
        by_status = episode_query.list_episodes(self.db, self.doctor, status="critical")
        self.assertEqual([e.id for e in by_status], [self.second.id])

        by_ward = episode_query.list_episodes(self.db, self.doctor, ward="WARD-A")
        self.assertEqual({e.id for e in by_ward}, {self.first.id, self.third.id})

        by_kind = episode_query.list_episodes(self.db, self.doctor, kind="theatre")
        self.assertEqual([e.id for e in by_kind], [self.third.id])

    def test_free_text_matches_name_or_admission_number(self):
        by_name = episode_query.list_episodes(self.db, self.doctor, q="otieno")
        self.assertEqual([e.id for e in by_name], [self.second.id])

        by_number = episode_query.list_episodes(self.db, self.doctor, q=self.first.admission_number)
        self.assertEqual([e.id for e in by_number], [self.first.id])

        self.assertEqual(episode_query.list_episodes(self.db, self.doctor, q="100%"), [])

    def test_unknown_filter_values_are_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            episode_query.list_episodes(self.db, self.doctor, status="sleeping")
        self.assertEqual(ctx.exception.field, "status")
        with self.assertRaises(ValidationError) as ctx:
            episode_query.list_episodes(self.db, self.doctor, kind="clinic")
        self.assertEqual(ctx.exception.field, "kind")

    def test_limit(self):
        items = episode_query.list_episodes(self.db, self.doctor, limit=2)
        self.assertEqual(len(items), 2)

    def test_length_of_stay_decorates_open_episodes(self):
        items = episode_query.list_episodes(self.db, self.doctor, ward="WARD-A",
                                            now=datetime(2024, 1, 5, 9, 0))
        stays = {e.id: e.length_of_stay for e in items}
        self.assertEqual(stays[self.first.id], 4)
        self.assertEqual(stays[self.third.id], 2)

    def test_view_permission_required(self):
        with self.assertRaises(Forbidden):
            episode_query.list_episodes(self.db, actor("pharmacist"))
        self.assertEqual(len(episode_query.list_episodes(self.db, actor("radiologist"))), 3)


class GetEpisodeTests(LedgerDbTestCase):
    def setUp(self):
        super().setUp()
        self.ep = self.admit()
        self.v1 = clinical_ledger.append_vitals(self.db, self.nurse, self.ep.id, {"heart_rate": 90},
                                                now=datetime(2024, 1, 1, 9, 0))
        self.m1 = clinical_ledger.append_medication(self.db, self.doctor, self.ep.id,
                                                    {"medication": "Ceftriaxone", "dosage": "1g",
                                                     "frequency": "OD"},
                                                    now=datetime(2024, 1, 1, 9, 30))
        self.v2 = clinical_ledger.append_vitals(self.db, self.nurse, self.ep.id,
                                                {"heart_rate": 84,
                                                 "blood_pressure": {"systolic": 118, "diastolic": 76}},
                                                now=datetime(2024, 1, 1, 13, 0))

    def test_entries_in_insertion_order(self):
        detail = episode_query.get_episode(self.db, self.doctor, self.ep.id)
        self.assertEqual([v.seq for v in detail.vitals], [self.v1.seq, self.v2.seq])
        self.assertEqual(detail.vitals[1].blood_pressure, {"systolic": 118, "diastolic": 76})
        self.assertIsNone(detail.vitals[0].blood_pressure)
        self.assertEqual([m.medication for m in detail.medications], ["Ceftriaxone"])
        self.assertEqual(detail.nursing_notes, [])
        self.assertEqual(detail.diagnoses, [])
        self.assertEqual(detail.admission_number, self.ep.admission_number)
        self.assertEqual(detail.emergency_contact["phone"], "0712000000")

    def test_latest_first_is_a_reversed_view(self):
        detail = episode_query.get_episode(self.db, self.doctor, self.ep.id, latest_first=True)
        self.assertEqual([v.seq for v in detail.vitals], [self.v2.seq, self.v1.seq])

        rows = clinical_ledger.list_entries(self.db, self.nurse, self.ep.id, "vitals", latest_first=True)
        self.assertEqual([r.heart_rate for r in rows], [84, 90])

    def test_missing_episode(self):
        with self.assertRaises(NotFound):
            episode_query.get_episode(self.db, self.doctor, 999)

    def test_unknown_ledger_kind(self):
        with self.assertRaises(NotFound):
            clinical_ledger.list_entries(self.db, self.doctor, self.ep.id, "x_rays")

    def test_lab_technician_cannot_view(self):
        with self.assertRaises(Forbidden):
            episode_query.get_episode(self.db, actor("lab_technician"), self.ep.id)
        with self.assertRaises(Forbidden):
            clinical_ledger.list_entries(self.db, actor("lab_technician"), self.ep.id, "vitals")


class AuditTrailTests(LedgerDbTestCase):
    def test_admin_reads_trail(self):
        ep = self.admit()
        episode_registry.set_status(self.db, self.doctor, ep.id, {"status": "stable"})
        trail = episode_query.audit_trail(self.db, self.admin, ep.id)
        self.assertEqual([a.action for a in trail], ["ADMIT", "STATUS"])
        self.assertEqual(trail[1].actor_id, self.doctor.id)
        self.assertEqual(trail[1].actor_role, "doctor")
        self.assertEqual(trail[1].old_values, {"status": "admitted"})
        self.assertEqual(trail[1].new_values, {"status": "stable"})

    def test_clinical_roles_cannot_read_trail(self):
        ep = self.admit()
        for who in (self.nurse, self.doctor, self.surgeon):
            with self.assertRaises(Forbidden):
                episode_query.audit_trail(self.db, who, ep.id)
