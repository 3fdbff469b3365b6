from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from medportal.auth import Session, create_token, get_current_session
from medportal.authorization import require_session
from medportal.config import get_settings
from medportal.fixtures import DEMO_ACCOUNTS
from medportal.runtime import PortalRuntime, get_runtime
from medportal.schemas.auth import LoginRequest, RegisterRequest, SessionOut, TokenResponse

router = APIRouter()


def _token_response(session: Session, runtime: PortalRuntime) -> TokenResponse:
    return TokenResponse(
        access_token=create_token(session),
        session=SessionOut(**session.to_dict()),
        notifications=[n.to_dict() for n in runtime.notifier.drain()],
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, runtime: PortalRuntime = Depends(get_runtime)):
    """Password sign-in. Demo accounts are accepted only in development."""
    session = await runtime.identity.authenticate(body.email, body.password)
    return _token_response(session, runtime)


@router.post("/register", response_model=TokenResponse)
async def register(body: RegisterRequest, runtime: PortalRuntime = Depends(get_runtime)):
    session = await runtime.identity.register(body.email, body.password, body.name, body.role)
    return _token_response(session, runtime)


@router.post("/logout")
async def logout(
    session: Session = Depends(require_session),
    runtime: PortalRuntime = Depends(get_runtime),
):
    runtime.identity.end_session()
    return {
        "success": True,
        "redirect_to": "/login",
        "notifications": [n.to_dict() for n in runtime.notifier.drain()],
    }


@router.get("/session")
async def current_session(
    session: Optional[Session] = Depends(get_current_session),
    runtime: PortalRuntime = Depends(get_runtime),
):
    """Revalidate the presented token against the identity service."""
    resolved = await runtime.adopt(session)
    return {
        "session": SessionOut(**resolved.to_dict()) if resolved else None,
        "notifications": [n.to_dict() for n in runtime.notifier.drain()],
    }


@router.get("/demo-accounts")
async def demo_accounts():
    """Demo credentials for the login page (development only)."""
    if not get_settings().demo_mode:
        raise HTTPException(status_code=404, detail="Not found")
    return {
        "accounts": [
            {"email": a.email, "password": a.password, "role": a.role.value, "name": a.name}
            for a in DEMO_ACCOUNTS
        ]
    }
