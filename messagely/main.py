"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import asyncpg
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from messagely.api.auth import router as auth_router
from messagely.api.messages import router as messages_router
from messagely.api.middleware import CorrelationIdMiddleware
from messagely.api.routes import router
from messagely.api.users import router as users_router
from messagely.config import get_settings
from messagely.errors import InternalError, MessagelyError, StoreUnavailable, ValidationError
from messagely.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    # Initialize database connection pool and run migrations
    try:
        from messagely.database import init_database, run_migrations

        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - requests will fail with 500",
        )

    logger.info("application_started", log_level=settings.log_level)

    yield

    from messagely.services.auth_service import await_pending_logins

    await await_pending_logins(timeout=5.0)

    from messagely.database import close_database

    await close_database()

    logger.info("application_shutdown")


app = FastAPI(
    title="messagely",
    description="Direct messaging API with bearer-token authentication",
    version="0.1.0",
    lifespan=lifespan,
)


def _error_response(request: Request, exc: MessagelyError) -> JSONResponse:
    """Serialize a domain error as {"error": {"message", "status"}}."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger = structlog.get_logger()

    log = logger.error if exc.status >= 500 else logger.warning
    log(
        "request_failed",
        correlation_id=correlation_id,
        error_type=type(exc).__name__,
        status=int(exc.status),
        message=exc.message,
    )

    return JSONResponse(
        status_code=int(exc.status),
        content=exc.to_dict(),
        headers={"X-Correlation-Id": correlation_id},
    )


@app.exception_handler(MessagelyError)
async def messagely_exception_handler(request: Request, exc: MessagelyError) -> JSONResponse:
    return _error_response(request, exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report the first Pydantic validation error as a 400."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    return _error_response(request, ValidationError(detail))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Give framework errors (unknown route, wrong method) the same shape."""
    error = MessagelyError(str(exc.detail))
    error.status = exc.status_code
    return _error_response(request, error)


@app.exception_handler(asyncpg.PostgresError)
@app.exception_handler(asyncpg.InterfaceError)
@app.exception_handler(OSError)
async def store_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Database or connection failure. Not retried here."""
    structlog.get_logger().error("store_failure", error=str(exc), error_type=type(exc).__name__)
    return _error_response(request, StoreUnavailable())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything not translated above still answers in the error shape."""
    structlog.get_logger().error(
        "unhandled_exception", error=str(exc), error_type=type(exc).__name__, exc_info=exc
    )
    return _error_response(request, InternalError())


# CORS middleware for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(messages_router)
app.include_router(router)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("messagely.main:app", host="0.0.0.0", port=8000)
