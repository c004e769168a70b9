"""Operations Portal — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.announcements.router import router as announcements_router
from backend.approvals.router import router as approvals_router
from backend.auth.router import router as auth_router
from backend.common.exceptions import register_exception_handlers
from backend.common.rate_limit import limiter
from backend.config import settings
from backend.core_hr.router import router as employees_router
from backend.ctc.router import router as ctc_router
from backend.dashboard.router import router as dashboard_router
from backend.database import engine, get_db
from backend.helpdesk.router import router as helpdesk_router
from backend.holidays.router import router as holidays_router
from backend.leave.router import router as leave_router
from backend.notifications.router import router as notifications_router
from backend.projects.router import allocations_router
from backend.projects.router import router as projects_router
from backend.sla.router import router as sla_router
from backend.specialists.router import router as specialists_router
from backend.subcategories.router import router as subcategories_router
from backend.timesheets.router import router as timesheets_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("backend")

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Operations Portal starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Operations Portal stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Operations Portal",
        description="Helpdesk, approvals, SLA, leave, CTC, announcements, projects and timesheets",
        version=APP_VERSION,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check(db: AsyncSession = Depends(get_db)):
        database = "ok"
        try:
            await db.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Health check: database unreachable")
            database = "unreachable"
        return {
            "status": "healthy" if database == "ok" else "degraded",
            "version": APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": database,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(holidays_router, prefix="/api/v1/holidays", tags=["holidays"])
    app.include_router(subcategories_router, prefix="/api/v1/subcategories", tags=["subcategories"])
    app.include_router(specialists_router, prefix="/api/v1/specialists", tags=["specialists"])
    app.include_router(helpdesk_router, prefix="/api/v1/helpdesk", tags=["helpdesk"])
    app.include_router(approvals_router, prefix="/api/v1/approvals", tags=["approvals"])
    app.include_router(sla_router, prefix="/api/v1/sla", tags=["sla"])
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(announcements_router, prefix="/api/v1/announcements", tags=["announcements"])
    app.include_router(ctc_router, prefix="/api/v1/ctc", tags=["ctc"])
    app.include_router(projects_router, prefix="/api/v1/projects", tags=["projects"])
    app.include_router(allocations_router, prefix="/api/v1/allocations", tags=["allocations"])
    app.include_router(timesheets_router, prefix="/api/v1/timesheets", tags=["timesheets"])
    app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["dashboard"])

    return app


app = create_app()
