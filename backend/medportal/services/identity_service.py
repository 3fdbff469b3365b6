"""
Identity resolver: turns credentials into a Session.

The remote identity service (profiles collection, bcrypt password hashes) is
always tried first, once, under a timeout. Only in demo mode does a miss fall
back to the fixed demo accounts. Callers never learn whether the email or the
password was wrong.
"""

import asyncio
import uuid
from typing import Optional

import structlog
from passlib.context import CryptContext

from medportal.auth import Session
from medportal.config import Settings, get_settings
from medportal.exceptions import (
    InvalidCredentials,
    RecordConflict,
    RegistrationFailed,
    ServiceUnavailable,
)
from medportal.fixtures import find_demo_account
from medportal.notifications import Notifier
from medportal.roles import Role, parse_role
from medportal.session_state import SessionState
from medportal.session_store import MemorySessionStore
from medportal.store import RecordStore

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _session_from_profile(row: dict) -> Session:
    try:
        return Session(
            id=str(row["id"]),
            email=str(row["email"]),
            role=parse_role(row["role"]),
            name=row.get("name") or str(row["email"]),
            avatar=row.get("avatar_url") or None,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ServiceUnavailable("malformed profile record", {"error": str(e)}) from e


class ProfileIdentityBackend:
    """Password sign-in, sign-up and profile lookup on the persistence service."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def sign_in(self, email: str, password: str) -> Session:
        rows = await self.store.select("profiles", eq={"email": email}, limit=1)
        if not rows:
            raise InvalidCredentials()
        row = rows[0]
        try:
            verified = pwd_context.verify(password, row.get("password_hash") or "")
        except (ValueError, TypeError) as e:
            raise ServiceUnavailable("malformed profile record", {"error": str(e)}) from e
        if not verified:
            raise InvalidCredentials()
        return _session_from_profile(row)

    async def sign_up(self, email: str, password: str, name: str, role: Role) -> Session:
        existing = await self.store.select("profiles", eq={"email": email}, limit=1)
        if existing:
            raise RegistrationFailed("An account with this email already exists.")
        try:
            row = await self.store.insert(
                "profiles",
                {
                    "email": email,
                    "name": name,
                    "role": role.value,
                    "password_hash": hash_password(password),
                },
            )
        except RecordConflict as e:
            raise RegistrationFailed("An account with this email already exists.") from e
        return _session_from_profile(row)

    async def get_profile(self, profile_id: str) -> Optional[Session]:
        row = await self.store.get("profiles", profile_id)
        return _session_from_profile(row) if row else None


class IdentityResolver:
    def __init__(
        self,
        state: SessionState,
        backend: ProfileIdentityBackend,
        session_store=None,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.state = state
        self.backend = backend
        self.session_store = session_store or MemorySessionStore()
        self.notifier = notifier or Notifier()
        self.settings = settings or get_settings()

    async def _remote(self, awaitable):
        """Single attempt under the identity timeout. Expiry counts as unavailability."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.identity_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ServiceUnavailable("identity service timed out") from e

    def _establish(self, session: Session) -> None:
        self.session_store.save(session)
        self.state.establish(session)

    async def authenticate(self, email: str, password: str) -> Session:
        email = (email or "").strip()
        self.state.begin_resolution()
        remote_error: Optional[Exception] = None
        session: Optional[Session] = None
        try:
            session = await self._remote(self.backend.sign_in(email, password))
        except InvalidCredentials as e:
            remote_error = e
        except ServiceUnavailable as e:
            remote_error = e
            logger.warning("identity_remote_failed", reason=e.reason)
        except Exception as e:
            remote_error = ServiceUnavailable("identity service error", {"error": str(e)})
            logger.exception("identity_remote_failed")

        if session is None and self.settings.demo_mode:
            account = find_demo_account(email, password)
            if account is not None:
                session = Session(
                    id=account.id,
                    email=account.email,
                    role=account.role,
                    name=account.name,
                    avatar=account.avatar or None,
                    is_demo=True,
                )
                logger.info("identity_demo_login", role=account.role.value)

        if session is None:
            self.state.settle()
            if isinstance(remote_error, ServiceUnavailable) and not self.settings.demo_mode:
                self.notifier.failure("Login Failed", "The sign-in service is unavailable. Please try again.")
                raise remote_error
            self.notifier.failure("Login Failed", "Invalid email or password.")
            raise InvalidCredentials()

        self._establish(session)
        self.notifier.success("Login Successful", f"Welcome back, {session.name}!")
        return session

    async def register(self, email: str, password: str, name: str, role: Role) -> Session:
        email = (email or "").strip()
        role = parse_role(role)
        self.state.begin_resolution()
        try:
            session = await self._remote(self.backend.sign_up(email, password, name, role))
        except RegistrationFailed as e:
            self.state.settle()
            self.notifier.failure("Registration Failed", e.reason)
            raise
        except Exception as e:
            reason = e.reason if isinstance(e, ServiceUnavailable) else str(e)
            logger.warning("identity_signup_failed", reason=reason)
            if not self.settings.demo_mode:
                self.state.settle()
                self.notifier.failure("Registration Failed", "Could not create account. Please try again.")
                if isinstance(e, ServiceUnavailable):
                    raise
                raise ServiceUnavailable("identity service error", {"error": str(e)}) from e
            session = Session(
                id=f"local-{uuid.uuid4().hex[:12]}",
                email=email,
                role=role,
                name=name,
                is_demo=True,
            )

        self._establish(session)
        self.notifier.success("Registration Successful", f"Welcome to Quantum Medical, {name}!")
        return session

    async def resolve_session(self, candidate: Optional[Session] = None) -> Optional[Session]:
        """Restore a session on startup from the durable mirror (or a given candidate).

        A reachable identity service is the source of truth: a vanished profile
        drops the session and a changed role ends it.
        """
        self.state.begin_resolution()
        saved = candidate or self.session_store.load()
        if saved is None:
            self.state.clear()
            return None

        if saved.is_demo:
            if not self.settings.demo_mode:
                self.session_store.clear()
                self.state.clear()
                return None
            self._establish(saved)
            return saved

        try:
            profile = await self._remote(self.backend.get_profile(saved.id))
        except ServiceUnavailable as e:
            logger.warning("identity_resume_offline", reason=e.reason)
            self._establish(saved)
            return saved

        if profile is None:
            self.session_store.clear()
            self.state.clear()
            return None
        if profile.role != saved.role:
            logger.info("identity_role_changed", previous=saved.role.value, current=profile.role.value)
            self.session_store.clear()
            self.state.clear()
            self.notifier.notify("Session Ended", "Your account role changed. Please sign in again.")
            return None

        self._establish(profile)
        return profile

    def end_session(self) -> None:
        self.session_store.clear()
        self.state.clear()
        self.notifier.success("Logged Out", "You have been successfully logged out.")
