"""
Role authorization gate.

`authorize` is the single decision function used by client-side route
resolution, by `RouteGuard` and by the API dependencies below.
"""

from enum import Enum
from typing import Callable, Iterable, Optional

from fastapi import Depends, HTTPException

from medportal.auth import Session, get_current_session
from medportal.exceptions import AuthorizationDenied
from medportal.roles import Role
from medportal.session_state import SessionState

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


class Decision(str, Enum):
    PENDING = "pending"
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"


def authorize(
    session: Optional[Session],
    required: Optional[Iterable[Role]] = None,
    pending: bool = False,
) -> Decision:
    if pending:
        return Decision.PENDING
    if session is None:
        return Decision.REDIRECT_LOGIN
    required_roles = frozenset(required or ())
    if required_roles and session.role not in required_roles:
        return Decision.REDIRECT_HOME
    return Decision.ALLOW


def redirect_location(decision: Decision) -> Optional[str]:
    if decision is Decision.REDIRECT_LOGIN:
        return LOGIN_PATH
    if decision is Decision.REDIRECT_HOME:
        return HOME_PATH
    return None


class RouteGuard:
    """Gate bound to a session container and a required role set.

    The decision is recomputed on every read, never cached across session or
    role transitions. Observers are called with the new decision whenever the
    container changes.
    """

    def __init__(self, state: SessionState, required: Optional[Iterable[Role]] = None):
        self._state = state
        self._required = frozenset(required or ())
        self._observers: list[Callable[[Decision], None]] = []
        self._detach = state.add_listener(self._on_session_change)

    @property
    def required(self) -> frozenset:
        return self._required

    @required.setter
    def required(self, roles: Optional[Iterable[Role]]) -> None:
        self._required = frozenset(roles or ())
        self._emit()

    @property
    def decision(self) -> Decision:
        return authorize(self._state.current, self._required, pending=self._state.pending)

    def observe(self, callback: Callable[[Decision], None]) -> None:
        self._observers.append(callback)

    def close(self) -> None:
        self._detach()
        self._observers.clear()

    def _on_session_change(self, previous, current) -> None:
        self._emit()

    def _emit(self) -> None:
        decision = self.decision
        for callback in list(self._observers):
            callback(decision)


# FastAPI dependencies


async def require_session(
    session: Optional[Session] = Depends(get_current_session),
) -> Session:
    if authorize(session) is Decision.REDIRECT_LOGIN:
        raise HTTPException(
            status_code=401,
            detail={"decision": Decision.REDIRECT_LOGIN.value, "redirect_to": LOGIN_PATH},
        )
    return session


def require_roles(*roles: Role):
    """Dependency factory gating an endpoint to the given roles."""
    required = frozenset(roles)

    async def dependency(session: Optional[Session] = Depends(get_current_session)) -> Session:
        decision = authorize(session, required)
        if decision is Decision.REDIRECT_LOGIN:
            raise HTTPException(
                status_code=401,
                detail={"decision": decision.value, "redirect_to": LOGIN_PATH},
            )
        if decision is Decision.REDIRECT_HOME:
            raise AuthorizationDenied(
                f"role '{session.role.value}' not in {sorted(r.value for r in required)}",
                redirect_to=HOME_PATH,
            )
        return session

    return dependency
