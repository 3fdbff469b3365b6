from typing import Optional

from fastapi import APIRouter, Depends, Query

from medportal.auth import Session, get_current_session
from medportal.navigation import Placement, build_nav
from medportal.routing import resolve_route

router = APIRouter()


@router.get("")
async def top_navigation(session: Optional[Session] = Depends(get_current_session)):
    return {"items": [entry.to_dict() for entry in build_nav(session, Placement.TOP)]}


@router.get("/sidebar")
async def sidebar_navigation(session: Optional[Session] = Depends(get_current_session)):
    return {"items": [entry.to_dict() for entry in build_nav(session, Placement.SIDEBAR)]}


@router.get("/resolve")
async def resolve(
    path: str = Query(..., description="Client-side path to resolve"),
    session: Optional[Session] = Depends(get_current_session),
):
    """Gate decision for a path: allow (with the view to render) or a redirect."""
    resolution = resolve_route(path, session)
    return {
        "path": path,
        "decision": resolution.decision.value,
        "redirect_to": resolution.location,
        "view": resolution.view,
    }
