"""
One portal instance: a session container plus everything that reads it.

The HTTP API is stateless (JWT), so routers build a short-lived runtime per
request or per WebSocket connection. A long-lived runtime (e.g. a CLI or a
kiosk process) can pass a FileSessionStore to resume on the same device.
"""

from datetime import datetime
from typing import Optional

from fastapi import Request

from medportal.auth import Session
from medportal.authorization import RouteGuard
from medportal.config import Settings, get_settings
from medportal.navigation import NavEntry, Placement, build_nav
from medportal.notifications import Notifier
from medportal.routing import RouteResolution, required_roles_for, resolve_route
from medportal.services.dashboard_service import DashboardResolver, DashboardView, UpdateCallback
from medportal.services.identity_service import IdentityResolver, ProfileIdentityBackend
from medportal.session_state import SessionState
from medportal.session_store import FileSessionStore, MemorySessionStore
from medportal.store import RecordStore
from medportal.time_utils import greeting_for


class PortalRuntime:
    def __init__(self, store: RecordStore, settings: Optional[Settings] = None, session_store=None):
        self.settings = settings or get_settings()
        self.store = store
        if session_store is None:
            if self.settings.session_file:
                session_store = FileSessionStore(self.settings.session_file)
            else:
                session_store = MemorySessionStore()
        self.state = SessionState()
        self.notifier = Notifier()
        self.identity = IdentityResolver(
            self.state,
            ProfileIdentityBackend(store),
            session_store=session_store,
            notifier=self.notifier,
            settings=self.settings,
        )
        self.dashboards = DashboardResolver(store, self.notifier, self.settings)

    @property
    def session(self) -> Optional[Session]:
        return self.state.current

    async def adopt(self, session: Optional[Session]) -> Optional[Session]:
        """Take over a session presented by a client (e.g. from its token) and revalidate it."""
        if session is None:
            self.state.clear()
            return None
        return await self.identity.resolve_session(session)

    def resolve(self, path: str) -> RouteResolution:
        return resolve_route(path, self.state.current, pending=self.state.pending)

    def guard(self, path: str) -> RouteGuard:
        return RouteGuard(self.state, required_roles_for(path))

    def navigation(self, placement: Placement = Placement.TOP) -> list[NavEntry]:
        return build_nav(self.state.current, placement)

    def dashboard_view(self, on_update: Optional[UpdateCallback] = None) -> DashboardView:
        return DashboardView(self.dashboards, self.state, on_update=on_update)

    def greeting(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        session = self.state.current
        text = greeting_for(now.hour)
        return f"{text}, {session.first_name}" if session and session.first_name else text


def get_runtime(request: Request) -> PortalRuntime:
    """FastAPI dependency: a fresh runtime bound to the application's store."""
    return PortalRuntime(request.app.state.store, get_settings(), session_store=MemorySessionStore())
