import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Register every model module before create_all
from . import (
    models,  # noqa: F401
    models_archive,  # noqa: F401
    models_automation,  # noqa: F401
    models_messaging,  # noqa: F401
    models_seating,  # noqa: F401
    models_suppliers,  # noqa: F401
    models_tasks,  # noqa: F401
    models_transportation,  # noqa: F401
)
from .config import ALLOWED_ORIGINS, SECURITY_HEADERS_ENABLED
from .database import Base, engine
from .domain.archives.router import router as archives_router
from .domain.automation.router import router as automation_router
from .domain.events.router import router as events_router
from .domain.guests.router import router as guests_router
from .domain.messaging.router import router as messaging_router
from .domain.rsvp.router import router as rsvp_router
from .domain.seating.router import router as seating_router
from .domain.suppliers.router import router as suppliers_router
from .domain.tasks.router import router as tasks_router
from .domain.transportation.router import router as transportation_router
from .domain.workspaces.router import router as workspaces_router
from .routes.admin import router as admin_router
from .routes.auth import router as auth_router
from .routes.cron import router as cron_router
from .routes.twilio_webhooks import router as twilio_webhooks_router
from .security_headers import SecurityHeadersMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        if "already exists" in str(e):
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        if get_redis_client() is None:
            logger.info("Redis not configured - rate limiting runs in memory")
    except Exception as e:
        logger.warning(f"Redis connection failed - rate limiting falls back to memory: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="RSVP Manager API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors on the Authorization header into 401
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: Missing or invalid Authorization header")
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."},
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raw ValueError raised by a validator
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(workspaces_router)
app.include_router(events_router)
app.include_router(guests_router)
app.include_router(rsvp_router)
app.include_router(messaging_router)
app.include_router(seating_router)
app.include_router(suppliers_router)
app.include_router(tasks_router)
app.include_router(automation_router)
app.include_router(transportation_router)
app.include_router(archives_router)
app.include_router(twilio_webhooks_router)
app.include_router(cron_router)


@app.get("/")
def root():
    return {"message": "RSVP Manager API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
