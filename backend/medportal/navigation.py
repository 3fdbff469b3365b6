"""
Navigation model shared by the top navigation bar and the sidebar.

The master list is declared once, in display order. Every entry must point at
a route the gate allows for each role it lists; `validate_navigation` checks
that against the route table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from medportal.auth import Session
from medportal.authorization import Decision
from medportal.roles import ALL_ROLES, CLINICAL_STAFF, Role
from medportal.routing import NOT_FOUND_VIEW, resolve_route


class Placement(str, Enum):
    TOP = "top"
    SIDEBAR = "sidebar"


@dataclass(frozen=True)
class NavEntry:
    title: str
    path: str
    allowed_roles: frozenset
    in_sidebar: bool = False

    def to_dict(self) -> dict:
        return {"title": self.title, "path": self.path}


def _roles(*roles: Role) -> frozenset:
    return frozenset(roles)


MASTER_NAV: tuple[NavEntry, ...] = (
    NavEntry("Dashboard", "/dashboard", ALL_ROLES, in_sidebar=True),
    NavEntry("Users", "/admin/users", _roles(Role.ADMIN)),
    NavEntry("Audit Logs", "/admin/audit", _roles(Role.ADMIN)),
    NavEntry("My Patients", "/doctor/patients", _roles(Role.DOCTOR), in_sidebar=True),
    NavEntry("Referrals", "/doctor/referrals", _roles(Role.DOCTOR)),
    NavEntry("Referrals", "/specialist/referrals", _roles(Role.SPECIALIST), in_sidebar=True),
    NavEntry("Consultations", "/specialist/consultations", _roles(Role.SPECIALIST), in_sidebar=True),
    NavEntry("MRI Scans", "/radiologist/scans", _roles(Role.RADIOLOGIST), in_sidebar=True),
    NavEntry("Analysis", "/radiologist/analysis", _roles(Role.RADIOLOGIST)),
    NavEntry("Patients", "/receptionist/patients", _roles(Role.RECEPTIONIST), in_sidebar=True),
    NavEntry("Appointments", "/receptionist/appointments", _roles(Role.RECEPTIONIST)),
    NavEntry("Appointments", "/patient/appointments", _roles(Role.PATIENT), in_sidebar=True),
    NavEntry("Medical Records", "/patient/records", _roles(Role.PATIENT), in_sidebar=True),
    # Cross-cutting: governed by the clinical staff set, not a single namespace.
    NavEntry("Messages", "/messages", CLINICAL_STAFF),
)


def build_nav(session: Optional[Session], placement: Placement = Placement.TOP) -> list[NavEntry]:
    if session is None:
        return []
    return [
        entry
        for entry in MASTER_NAV
        if session.role in entry.allowed_roles
        and (placement is Placement.TOP or entry.in_sidebar)
    ]


def validate_navigation(entries: tuple[NavEntry, ...] = MASTER_NAV) -> None:
    """Raise ValueError if any entry points at a route its roles cannot open."""
    problems = []
    for entry in entries:
        for role in entry.allowed_roles:
            candidate = Session(id=f"nav-check-{role.value}", email="", role=role, name="")
            resolution = resolve_route(entry.path, candidate)
            if resolution.decision is not Decision.ALLOW or resolution.view == NOT_FOUND_VIEW:
                problems.append(f"{entry.path} for {role.value}: {resolution.decision.value}")
    if problems:
        raise ValueError("navigation out of sync with route gate: " + "; ".join(problems))
