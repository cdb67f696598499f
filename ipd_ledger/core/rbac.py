from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from ipd_ledger.core.config import settings
from ipd_ledger.core.errors import Forbidden

logger = logging.getLogger(__name__)

ADMIN_ALL = "admin:all"

ROLES = (
    "admin",
    "doctor",
    "nurse",
    "receptionist",
    "pharmacist",
    "lab_technician",
    "radiologist",
    "surgeon",
    "mortuary_attendant",
)

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "admin": frozenset({ADMIN_ALL}),
    "doctor": frozenset({
        "view_patients", "edit_patients", "create_visits",
        "prescribe_medications", "order_lab_tests", "admit_patients"
    }),
    "nurse": frozenset({
        "view_patients", "edit_vitals", "view_visits", "admit_patients"
    }),
    "receptionist": frozenset({
        "view_patients", "view_appointments", "create_appointments",
        "edit_appointments", "view_visits", "admit_patients"
    }),
    "pharmacist": frozenset({"view_prescriptions", "dispense_medications"}),
    "lab_technician": frozenset({"view_lab_tests", "update_lab_results"}),
    "radiologist": frozenset({
        "view_patients", "view_radiology", "update_radiology_results"
    }),
    "surgeon": frozenset({
        "view_patients", "edit_patients", "prescribe_medications",
        "perform_procedures"
    }),
    "mortuary_attendant": frozenset({"view_mortuary", "manage_mortuary"}),
}

# kind-independent role gates. Role checks are identity checks, so admin
# has to appear in each set to pass them.
STATUS_ROLES = frozenset({"doctor", "nurse", "admin"})
VITALS_ROLES = frozenset({"doctor", "nurse", "admin"})
MEDICATION_ROLES = frozenset({"doctor", "admin"})
NURSING_NOTE_ROLES = frozenset({"nurse", "admin"})


def _code(x: Any) -> str:
    """
    Normalize a role/permission code.
    Supports Enum, str and objects/dicts carrying a ``code``.
    """
    if x is None:
        return ""
    if isinstance(x, Enum):
        return str(x.value)
    if isinstance(x, str):
        return x
    if isinstance(x, dict) and "code" in x:
        return _code(x["code"])
    if hasattr(x, "code"):
        return _code(getattr(x, "code"))
    return str(x)


def permissions_for_role(role: str) -> FrozenSet[str]:
    return ROLE_PERMISSIONS.get(role, frozenset())


@dataclass(frozen=True)
class ActorContext:
    """
    The authenticated caller. Built per request and passed explicitly into
    every service call.
    """
    id: int
    role: str
    name: Optional[str] = None
    permissions: FrozenSet[str] = field(default=frozenset())

    @classmethod
    def for_role(cls, actor_id: int, role: str, name: Optional[str] = None) -> "ActorContext":
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        return cls(id=actor_id, role=role, name=name, permissions=permissions_for_role(role))

    @property
    def display_name(self) -> str:
        return self.name or f"User #{self.id}"

    # ---- permission family: admin:all satisfies everything ----
    def has_permission(self, permission: Any) -> bool:
        want = _code(permission).strip()
        return ADMIN_ALL in self.permissions or want in self.permissions

    def has_any_permission(self, permissions: Iterable[Any]) -> bool:
        if ADMIN_ALL in self.permissions:
            return True
        return any(_code(p).strip() in self.permissions for p in permissions)

    def has_all_permissions(self, permissions: Iterable[Any]) -> bool:
        if ADMIN_ALL in self.permissions:
            return True
        return all(_code(p).strip() in self.permissions for p in permissions)

    # ---- role family: identity only, admin gets no bypass ----
    def has_role(self, role: Any) -> bool:
        return self.role == _code(role)

    def has_any_role(self, roles: Iterable[Any]) -> bool:
        return self.role in {_code(r) for r in roles}


# ---------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------


def _deny(actor: ActorContext, what: str) -> None:
    logger.warning("Denied actor=%s role=%s action=%s", actor.id, actor.role, what)
    raise Forbidden()


def require_permission(actor: ActorContext, permission: str, *, action: str = "") -> None:
    if not actor.has_permission(permission):
        _deny(actor, action or permission)


def require_any_role(actor: ActorContext, roles: Iterable[str], *, action: str = "") -> None:
    if not actor.has_any_role(roles):
        _deny(actor, action or "any-role")


def discharge_roles(kind: str) -> FrozenSet[str]:
    if kind == "theatre":
        return frozenset(settings.THEATRE_DISCHARGE_ROLES)
    return frozenset(settings.WARD_DISCHARGE_ROLES)


def diagnosis_roles(kind: str) -> FrozenSet[str]:
    if kind == "theatre":
        return frozenset(settings.THEATRE_DIAGNOSIS_ROLES)
    return frozenset(settings.WARD_DIAGNOSIS_ROLES)
