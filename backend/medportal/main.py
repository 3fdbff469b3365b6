from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from medportal.config import get_settings
from medportal.exceptions import (
    AnalysisConfigurationError,
    AnalysisOracleFailure,
    AnalysisPersistenceFailure,
    AuthorizationDenied,
    InvalidCredentials,
    PortalError,
    RecordConflict,
    RecordNotFound,
    RegistrationFailed,
    ScanNotFound,
    ServiceUnavailable,
)
from medportal.fixtures import DEMO_ACCOUNTS
from medportal.logging_config import configure_logging
from medportal.navigation import validate_navigation
from medportal.routers import auth as auth_router
from medportal.routers import dashboard, messages, navigation, patients, scans
from medportal.services.identity_service import hash_password
from medportal.store import RecordStore

logger = structlog.get_logger(__name__)


async def seed_demo_profiles(store: RecordStore):
    """Create the demo profiles if they don't exist. Idempotent."""
    for account in DEMO_ACCOUNTS:
        existing = await store.select("profiles", eq={"email": account.email}, limit=1)
        if not existing:
            await store.insert(
                "profiles",
                {
                    "id": account.id,
                    "email": account.email,
                    "name": account.name,
                    "role": account.role.value,
                    "password_hash": hash_password(account.password),
                },
            )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    validate_navigation()

    store = RecordStore.from_settings(settings)
    app.state.store = store
    if store.is_configured:
        await store.create_schema()
        if settings.demo_mode:
            await seed_demo_profiles(store)
    logger.info(
        "portal_started",
        environment=settings.environment,
        persistence=store.is_configured,
        oracle=settings.oracle_provider,
    )
    yield
    await store.close()


app = FastAPI(
    title="Quantum Medical Portal",
    description="Role-based medical portal with live dashboards and AI-assisted MRI analysis",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Middleware to add no-cache headers to prevent browser caching."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"
        response.headers["Expires"] = "0"
        response.headers["Pragma"] = "no-cache"
        return response


app.add_middleware(NoCacheMiddleware)


STATUS_CODES = (
    (InvalidCredentials, 401),
    (AuthorizationDenied, 403),
    (RecordNotFound, 404),
    (ScanNotFound, 404),
    (RecordConflict, 409),
    (RegistrationFailed, 400),
    (ServiceUnavailable, 503),
    (AnalysisConfigurationError, 500),
    (AnalysisOracleFailure, 502),
    (AnalysisPersistenceFailure, 500),
)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    status_code = next((code for cls, code in STATUS_CODES if isinstance(exc, cls)), 500)
    body = {"success": False, "error": exc.reason, "details": exc.details}
    if isinstance(exc, AuthorizationDenied):
        body["decision"] = "redirect_home"
        body["redirect_to"] = exc.redirect_to
    if isinstance(exc, AnalysisPersistenceFailure) and exc.result_id:
        body["result_id"] = exc.result_id
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.reason, status=status_code)
    return JSONResponse(status_code=status_code, content=body)


app.include_router(auth_router.router, prefix="/api/auth", tags=["Auth"])
app.include_router(navigation.router, prefix="/api/navigation", tags=["Navigation"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(patients.router, prefix="/api/patients", tags=["Patients"])
app.include_router(scans.router, prefix="/api/scans", tags=["Scans"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])


@app.get("/api/health")
async def health_check(request: Request):
    store = request.app.state.store
    return {"status": "healthy", "service": "medportal", "persistence": store.is_configured}
