# api/main.py
from contextlib import asynccontextmanager
from datetime import timedelta

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth_service.database import connect_with_retry, create_db_engine, make_session_factory
from auth_service.errors import AppError, StoreUnavailable, ValidationFailed
from auth_service.models import utcnow
from auth_service.routes import auth_router
from auth_service.security import PasswordHasher, TokenService
from config import Settings
from task_service.routes import tasks_router

from .logging_setup import configure_logging
from .middleware import RateLimitMiddleware, SanitizeRequestMiddleware, SecurityHeadersMiddleware

logger = structlog.get_logger(__name__)


def _field_errors(exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # Drop the leading "body"/"query"/"path" location segment
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return errors


def _error_body(exc: AppError) -> dict:
    body = {"status": exc.status, "message": exc.message}
    if isinstance(exc, ValidationFailed):
        body["errors"] = exc.errors
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return JSONResponse(_error_body(exc), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            _error_body(ValidationFailed(_field_errors(exc))),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = f"Can't find {request.url.path} on this server!"
        else:
            message = str(exc.detail)
        return JSONResponse(
            {"status": "fail" if exc.status_code < 500 else "error", "message": message},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    # Rendered inside the middleware stack, unlike the catch-all below
    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        _log_failure("database_error", request, exc)
        error = StoreUnavailable()
        return JSONResponse(_error_body(error), status_code=error.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        _log_failure("unhandled_error", request, exc)
        return JSONResponse(
            {"status": "error", "message": "Something went wrong"},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def _log_failure(event: str, request: Request, exc: Exception) -> None:
    identity = getattr(request.state, "identity", None)
    logger.error(
        event,
        path=request.url.path,
        method=request.method,
        user_id=identity.id if identity else None,
        exc_info=exc,
    )


def create_app(
    settings: Settings = None,
    engine=None,
    clock=utcnow,
    reset_delivery=None,
) -> FastAPI:
    """
    Build the application.

    ``engine`` defaults to one built from ``settings.database_url``; the
    database is probed (with retry) and its tables created on startup.
    ``reset_delivery`` is called with ``(user, token)`` whenever a password
    reset is issued.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)

    engine = engine or create_db_engine(settings.database_url, settings.db_pool_size)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(
            connect_with_retry,
            engine,
            retries=settings.db_connect_retries,
            delay=settings.db_retry_delay_seconds,
        )
        try:
            yield
        finally:
            engine.dispose()

    app = FastAPI(title="Task Manager API", lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.hasher = PasswordHasher(settings.bcrypt_rounds)
    app.state.tokens = TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_in=timedelta(minutes=settings.jwt_expires_minutes),
    )
    app.state.clock = clock
    app.state.reset_delivery = reset_delivery

    # Added innermost first: CORS ends up outermost, sanitisation innermost
    app.add_middleware(SanitizeRequestMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/api/health")
    def health_check():
        return {"status": "ok", "message": "Server is running"}

    app.include_router(auth_router)
    app.include_router(tasks_router)

    return app
