"""
Prayer Pipeline Meetings - Application Entry Point

Builds the FastAPI app: creates tables on startup, installs CORS and the
signed session cookie that carries the user id, mounts the meeting routes and
turns unexpected errors into JSON. Run with: python main.py
"""
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from prayer_pipeline import __version__
from prayer_pipeline.config import settings
from prayer_pipeline.database import init_db, close_db
from prayer_pipeline.api import router, to_http_error
from prayer_pipeline.exceptions import PrayerPipelineError
from prayer_pipeline.logging_config import setup_logging, get_logger
from prayer_pipeline.monitoring import record_error

setup_logging(settings.debug)
logger = get_logger(__name__)


# ============================================
# LIFESPAN CONTEXT MANAGER
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    await init_db()
    logger.info(
        "server_started",
        environment="development" if settings.debug else "production",
        cors_origins=settings.cors_origins_list,
        url=f"http://{settings.host}:{settings.port}",
    )

    yield

    await close_db()


# ============================================
# CREATE FASTAPI APP
# ============================================

app = FastAPI(
    title=settings.app_name,
    description="Meeting scheduling, meeting notes and meeting notifications for prayer groups",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)


# ============================================
# MIDDLEWARE CONFIGURATION
# ============================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

# Session cookie carries the authenticated user id
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    session_cookie="prayer_pipeline_session",
    max_age=settings.session_max_age,
    same_site="lax",
    https_only=not settings.debug,
)


# ============================================
# INCLUDE ROUTERS
# ============================================

app.include_router(router)


# ============================================
# ERROR HANDLERS
# ============================================

@app.exception_handler(PrayerPipelineError)
async def service_error_handler(request: Request, exc: PrayerPipelineError):
    """Service errors that were not converted inside a route."""
    error = to_http_error(exc)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """General exception handler for unhandled errors."""
    record_error(type(exc).__name__, "api")
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc) if settings.debug else "Internal server error"}
    )


# ============================================
# RUN APPLICATION
# ============================================

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
