"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from punchd.api.routes import (
    health_router,
    pay_periods_router,
    settings_router,
    time_entries_router,
    timesheets_router,
)
from punchd.config import Settings, get_settings
from punchd.database import dispose_db, init_db
from punchd.errors import (
    AuthorizationError,
    NotFoundError,
    PunchdError,
    StateConflictError,
    ValidationError,
)
from punchd.integrations.base import FaceComparator, Notifier, PhotoStore
from punchd.integrations.stubs import InMemoryPhotoStore, LoggingNotifier, StaticFaceComparator
from punchd.models import utcnow

logger = logging.getLogger(__name__)

ERROR_STATUS: list[tuple[type[PunchdError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateConflictError, status.HTTP_409_CONFLICT),
]


def status_for(exc: PunchdError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    logging.basicConfig(level=app.state.settings.log_level)
    owns_engine = app.state.session_factory is None
    if owns_engine:
        _, app.state.session_factory = init_db()
    yield
    # Shutdown
    if owns_engine:
        await dispose_db()


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    photo_store: PhotoStore | None = None,
    face_comparator: FaceComparator | None = None,
    notifier: Notifier | None = None,
    settings: Settings | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the in-process adapters; deployments pass
    real photo storage, face comparison and notification clients.
    """
    app = FastAPI(
        title="Punchd API",
        description="Workforce time accounting: clock sessions, overtime, pay periods",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory
    app.state.photo_store = photo_store or InMemoryPhotoStore()
    app.state.face_comparator = face_comparator or StaticFaceComparator()
    app.state.notifier = notifier or LoggingNotifier()
    app.state.settings = settings or get_settings()
    app.state.clock = clock

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PunchdError)
    async def punchd_error_handler(request: Request, exc: PunchdError) -> JSONResponse:
        """Map engine errors to HTTP statuses with their structured details."""
        return JSONResponse(
            status_code=status_for(exc),
            content=jsonable_encoder({"detail": exc.message, "code": exc.code, **exc.details}),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(time_entries_router, prefix="/api/v1")
    app.include_router(pay_periods_router, prefix="/api/v1")
    app.include_router(timesheets_router, prefix="/api/v1")
    app.include_router(settings_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
