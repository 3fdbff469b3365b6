from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from medportal.auth import Session, decode_token
from medportal.authorization import Decision, LOGIN_PATH, require_session
from medportal.config import get_settings
from medportal.role_config import ROLE_DASHBOARDS
from medportal.runtime import PortalRuntime, get_runtime
from medportal.schemas.dashboard import DashboardResponse, StatCardOut
from medportal.services.dashboard_service import DashboardData
from medportal.session_store import MemorySessionStore

logger = structlog.get_logger(__name__)

router = APIRouter()

POLICY_VIOLATION = 1008


def build_response(runtime: PortalRuntime, data: DashboardData) -> DashboardResponse:
    config = ROLE_DASHBOARDS[data.role]
    return DashboardResponse(
        role=data.role.value,
        greeting=runtime.greeting(),
        theme=config.theme,
        recent_title=config.recent_title,
        upcoming_title=config.upcoming_title,
        stat_cards=[StatCardOut(**card.to_dict()) for card in data.stat_cards],
        recent_items=data.recent_items,
        upcoming_items=data.upcoming_items,
        source=data.source.value,
        reason=data.reason,
        notifications=[n.to_dict() for n in runtime.notifier.drain()],
    )


async def _adopt_or_reject(runtime: PortalRuntime, session: Session) -> Session:
    resolved = await runtime.adopt(session)
    if resolved is None:
        raise HTTPException(
            status_code=401,
            detail={"decision": Decision.REDIRECT_LOGIN.value, "redirect_to": LOGIN_PATH},
        )
    return resolved


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    session: Session = Depends(require_session),
    runtime: PortalRuntime = Depends(get_runtime),
):
    """Role-shaped dashboard: live records, or fixture data with the reason why."""
    resolved = await _adopt_or_reject(runtime, session)
    data = await runtime.dashboards.resolve(resolved)
    return build_response(runtime, data)


@router.websocket("/live")
async def live_dashboard(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Push a fresh dashboard payload on every patients/appointments change."""
    session = decode_token(token) if token else None
    await websocket.accept()
    if session is None:
        await websocket.send_json({"decision": Decision.REDIRECT_LOGIN.value, "redirect_to": LOGIN_PATH})
        await websocket.close(code=POLICY_VIOLATION)
        return

    runtime = PortalRuntime(websocket.app.state.store, get_settings(), session_store=MemorySessionStore())
    if await runtime.adopt(session) is None:
        await websocket.send_json({"decision": Decision.REDIRECT_LOGIN.value, "redirect_to": LOGIN_PATH})
        await websocket.close(code=POLICY_VIOLATION)
        return

    async def push(data: DashboardData) -> None:
        await websocket.send_json(build_response(runtime, data).model_dump(mode="json"))

    view = runtime.dashboard_view(on_update=push)
    log = logger.bind(role=session.role.value)
    log.info("dashboard_live_opened")
    try:
        await view.open()
        while True:
            # Client messages are ignored; any text triggers a manual refresh.
            await websocket.receive_text()
            await view.refresh()
    except WebSocketDisconnect:
        pass
    finally:
        view.close()
        log.info("dashboard_live_closed")
