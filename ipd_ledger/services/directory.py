# FILE: ipd_ledger/services/directory.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ipd_ledger.core.config import settings

logger = logging.getLogger(__name__)


class DirectoryClient:
    """
    Read-only access to the patient, ward/bed and staff directories plus the
    ward discharge notification. Each directory is optional; an unconfigured
    one answers None and notifications are skipped.
    """

    def __init__(
        self,
        patient_url: Optional[str] = None,
        ward_url: Optional[str] = None,
        staff_url: Optional[str] = None,
        timeout: float = 3.0,
        session: Optional[requests.Session] = None,
    ):
        self.patient_url = (patient_url or "").rstrip("/") or None
        self.ward_url = (ward_url or "").rstrip("/") or None
        self.staff_url = (staff_url or "").rstrip("/") or None
        self.timeout = timeout
        self.http = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "DirectoryClient":
        return cls(
            patient_url=settings.PATIENT_DIRECTORY_URL,
            ward_url=settings.WARD_DIRECTORY_URL,
            staff_url=settings.STAFF_DIRECTORY_URL,
            timeout=settings.DIRECTORY_TIMEOUT,
        )

    def _get_json(self, base: Optional[str], path: str) -> Optional[Dict[str, Any]]:
        if not base:
            return None
        url = f"{base}/{path}"
        try:
            resp = self.http.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Directory lookup failed: %s (%s)", url, e)
            return None

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.warning("Directory returned status %s for %s", resp.status_code, url)
            return None
        try:
            body = resp.json()
        except ValueError:
            logger.warning("Directory returned non-JSON body for %s", url)
            return None
        # accept both bare objects and {"data": {...}} envelopes
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return body if isinstance(body, dict) else None

    # ---------------- Patients ----------------

    def patient(self, patient_ref: str) -> Optional[Dict[str, Any]]:
        return self._get_json(self.patient_url, f"patients/{patient_ref}")

    def patient_name(self, patient_ref: str) -> Optional[str]:
        card = self.patient(patient_ref)
        if not card:
            return None
        full = (card.get("name") or "").strip()
        if full:
            return full
        first = (card.get("first_name") or "").strip()
        last = (card.get("last_name") or "").strip()
        return f"{first} {last}".strip() or None

    # ---------------- Wards / beds ----------------

    def ward(self, ward_ref: str) -> Optional[Dict[str, Any]]:
        return self._get_json(self.ward_url, f"wards/{ward_ref}")

    def notify_discharge(self, episode: Dict[str, Any]) -> bool:
        """
        Tell the ward/bed service the bed can be released. Returns True on
        success, False otherwise; the bed itself is never released here.
        """
        if not self.ward_url:
            logger.info("Ward directory not configured; skipping discharge notice for %s",
                        episode.get("admission_number"))
            return False

        url = f"{self.ward_url}/discharges"
        try:
            resp = self.http.post(url, json=episode, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Discharge notice failed for %s: %s",
                           episode.get("admission_number"), e)
            return False

        if resp.status_code not in (200, 201, 202, 204):
            logger.warning(
                "Ward directory returned status %s for discharge of %s. Response: %s",
                resp.status_code,
                episode.get("admission_number"),
                resp.text[:200],
            )
            return False
        logger.info("Ward notified of discharge: %s", episode.get("admission_number"))
        return True

    # ---------------- Staff ----------------

    def staff_name(self, actor_id: int) -> Optional[str]:
        card = self._get_json(self.staff_url, f"staff/{actor_id}")
        if not card:
            return None
        return (card.get("name") or card.get("full_name") or "").strip() or None
