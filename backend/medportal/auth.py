"""
Session identity: the Session value object, JWT creation/validation and the
get_current_session FastAPI dependency.

Unlike a permissive API, a missing or invalid token resolves to no session at
all; route gating (medportal.authorization) decides what that means.
"""

import time
from dataclasses import dataclass, asdict
from typing import Optional
from jose import jwt, JWTError
from fastapi import Request
from medportal.config import get_settings
from medportal.roles import Role, parse_role

ALGORITHM = "HS256"


@dataclass(frozen=True)
class Session:
    """Authenticated identity bound to one application instance.

    The role never changes for the lifetime of a session; a role change on the
    identity service ends the session and requires signing in again.
    """
    id: str
    email: str
    role: Role
    name: str
    avatar: Optional[str] = None
    is_demo: bool = False

    @property
    def first_name(self) -> str:
        parts = (self.name or "").split()
        return parts[0] if parts else ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["role"] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        """Rebuild a session from its stored form. Raises ValueError when malformed."""
        try:
            return cls(
                id=str(data["id"]),
                email=str(data["email"]),
                role=parse_role(data["role"]),
                name=str(data.get("name") or data["email"]),
                avatar=data.get("avatar") or None,
                is_demo=bool(data.get("is_demo", False)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed session record: {e}") from e


def create_token(session: Session) -> str:
    """Create a signed JWT carrying the session."""
    settings = get_settings()
    payload = {
        "sub": session.id,
        "email": session.email,
        "name": session.name,
        "role": session.role.value,
        "avatar": session.avatar,
        "is_demo": session.is_demo,
        "exp": int(time.time()) + settings.token_expire_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Session]:
    """Decode and validate a JWT. Returns None if invalid/expired."""
    try:
        settings = get_settings()
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
        return Session(
            id=payload["sub"],
            email=payload["email"],
            role=parse_role(payload["role"]),
            name=payload.get("name") or payload["email"],
            avatar=payload.get("avatar"),
            is_demo=bool(payload.get("is_demo", False)),
        )
    except (JWTError, KeyError, ValueError):
        return None


def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:]


async def get_current_session(request: Request) -> Optional[Session]:
    """
    FastAPI dependency. Extracts the JWT from the Authorization header and
    returns the session it carries, or None when absent or invalid.
    """
    token = bearer_token(request)
    if not token:
        return None
    return decode_token(token)
