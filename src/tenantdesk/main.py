"""Main FastAPI application for TenantDesk."""

import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text

from . import __version__
from .api import (
    account_nodes,
    accounts,
    activity,
    admin,
    auth,
    dashboard,
    documents,
    impersonation,
    me,
    memberships,
    navigation,
    persons,
    settings,
    themes,
    ticket_messages,
    tickets,
)
from .api.middleware import (
    ProblemDetailsMiddleware,
    RequestIdMiddleware,
    RequestSizeLimitMiddleware,
    register_exception_handlers,
)
from .auth.context import (
    ACCOUNT_HEADER,
    ACCOUNT_NODE_HEADER,
    IMPERSONATION_HEADER,
    REQUEST_ID_HEADER,
)
from .config import get_config
from .db.database import SessionLocal
from .utils.logging_config import get_logger, initialize_logging

initialize_logging()
logger = get_logger("main")

config = get_config()

# Create FastAPI app
app = FastAPI(
    title=config.app.app_name,
    description=config.app.description,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

register_exception_handlers(app)

# Add custom middleware in correct order (innermost first)
app.add_middleware(RequestSizeLimitMiddleware, max_body_bytes=config.app.max_body_bytes)
app.add_middleware(ProblemDetailsMiddleware)
app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.server.cors_origins,
    allow_credentials="*" not in config.server.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        REQUEST_ID_HEADER,
        ACCOUNT_HEADER,
        ACCOUNT_NODE_HEADER,
        IMPERSONATION_HEADER,
    ],
    expose_headers=[REQUEST_ID_HEADER, "Retry-After"],
)

# Register API routers
app.include_router(auth.router)
app.include_router(me.router)
app.include_router(accounts.router)
app.include_router(account_nodes.router)
app.include_router(memberships.router)
app.include_router(persons.router)
app.include_router(tickets.router)
app.include_router(ticket_messages.router)
app.include_router(documents.router)
app.include_router(activity.router)
app.include_router(settings.router)
app.include_router(themes.router)
app.include_router(navigation.router)
app.include_router(dashboard.router)
app.include_router(impersonation.router)
app.include_router(admin.router)


@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url="/docs")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "tenantdesk", "version": __version__}


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint that validates database connectivity and config."""
    start_time = time.time()
    checks = {"database": False, "config": False}
    errors = []

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        errors.append(f"Database check failed: {e}")
    finally:
        db.close()

    try:
        checks["config"] = bool(get_config().app.jwt_secret_key)
    except Exception as e:
        errors.append(f"Config check failed: {e}")

    all_ready = all(checks.values())
    response = {
        "status": "ready" if all_ready else "not_ready",
        "service": "tenantdesk",
        "version": __version__,
        "checks": checks,
        "response_time_ms": round((time.time() - start_time) * 1000, 2),
    }
    if errors:
        response["errors"] = errors
        logger.warning(f"Readiness check failed: {errors}")

    return JSONResponse(content=response, status_code=200 if all_ready else 503)
