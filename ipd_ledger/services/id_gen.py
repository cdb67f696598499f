# FILE: ipd_ledger/services/id_gen.py
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

from ipd_ledger.core.config import settings
from ipd_ledger.utils.timezone import utcnow


def _normalize_to_date(d: Optional[Union[date, datetime]]) -> date:
    """
    - None -> today (UTC)
    - datetime -> its date (columns hold naive UTC)
    - date -> as-is
    """
    if d is None:
        return utcnow().date()
    if isinstance(d, datetime):
        return d.date()
    return d


def _dt_ddmmyyyy(d: Optional[Union[date, datetime]]) -> str:
    return _normalize_to_date(d).strftime("%d%m%Y")


def _hospital_code(max_len: int = 3) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]", "", (settings.HOSPITAL_CODE or "").upper())
    return cleaned[:max_len] or "NH"


def make_admission_number(
    episode_id: int,
    *,
    on_date: Optional[Union[date, datetime]] = None,
    id_width: int = 6,
) -> str:
    """
    e.g. NHIP01012024000042. The episode id suffix makes it unique; it is
    assigned once at admission and never rewritten.
    """
    return f"{_hospital_code()}IP{_dt_ddmmyyyy(on_date)}{episode_id:0{id_width}d}"
