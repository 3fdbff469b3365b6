"""Client-side route table and path resolution."""

from dataclasses import dataclass
from typing import Optional

from medportal.auth import Session
from medportal.authorization import Decision, HOME_PATH, authorize, redirect_location
from medportal.roles import CLINICAL_STAFF, Role

PUBLIC_VIEWS = {
    "/": "home",
    "/login": "login",
    "/register": "register",
}

# Each namespace is gated with its role as the sole required role.
ROLE_PAGES: dict[Role, tuple[str, ...]] = {
    Role.ADMIN: ("users", "audit"),
    Role.DOCTOR: ("patients", "referrals"),
    Role.SPECIALIST: ("referrals", "consultations"),
    Role.RADIOLOGIST: ("scans", "analysis"),
    Role.RECEPTIONIST: ("patients", "appointments"),
    Role.PATIENT: ("records", "appointments"),
}

MESSAGES_PATH = "/messages"
NOT_FOUND_VIEW = "not_found"


@dataclass(frozen=True)
class RouteResolution:
    decision: Decision
    location: Optional[str] = None
    view: Optional[str] = None


def _normalize(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


def required_roles_for(path: str) -> Optional[frozenset]:
    """Role set guarding a path: None for public or unknown paths, empty for any session."""
    path = _normalize(path)
    if path in PUBLIC_VIEWS:
        return None
    if path == HOME_PATH:
        return frozenset()
    if path == MESSAGES_PATH:
        return CLINICAL_STAFF
    head = path.split("/")[1]
    for role in ROLE_PAGES:
        if head == role.value:
            return frozenset({role})
    return None


def resolve_route(path: str, session: Optional[Session], pending: bool = False) -> RouteResolution:
    path = _normalize(path)

    if path in PUBLIC_VIEWS:
        return RouteResolution(Decision.ALLOW, view=PUBLIC_VIEWS[path])

    required = required_roles_for(path)
    if required is None:
        return RouteResolution(Decision.ALLOW, view=NOT_FOUND_VIEW)

    decision = authorize(session, required, pending=pending)
    if decision is not Decision.ALLOW:
        return RouteResolution(decision, location=redirect_location(decision))

    if path == HOME_PATH:
        return RouteResolution(Decision.ALLOW, view="dashboard")
    if path == MESSAGES_PATH:
        return RouteResolution(Decision.ALLOW, view="messages")

    segments = path.split("/")[1:]
    role = Role(segments[0])
    if len(segments) == 2 and segments[1] in ROLE_PAGES[role]:
        return RouteResolution(Decision.ALLOW, view=f"{role.value}.{segments[1]}")
    # Unknown page inside a namespace the session may enter: back to the dashboard.
    return RouteResolution(Decision.REDIRECT_HOME, location=HOME_PATH)
