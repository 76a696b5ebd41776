import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hailcrm import __version__
from hailcrm.api.routers import rbac
from hailcrm.api.schemas.common import ErrorResponse
from hailcrm.common.logger import configure_from_settings
from hailcrm.core.config import Settings, get_settings
from hailcrm.core.exceptions import DuplicateGrantError, ForbiddenError, NotFoundError
from hailcrm.db.session import dispose_engine

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, detail: str, code: str) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map authorization engine errors onto HTTP responses."""

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError):
        # The requirement is always logged; the body names it only when configured to
        logger.warning(f"Forbidden {request.method} {request.url.path}: {exc.kind} {exc.requirement}")
        detail = exc.message if settings.expose_forbidden_detail else "Insufficient permissions"
        return _error(status.HTTP_403_FORBIDDEN, "forbidden", detail, exc.code)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "not_found", exc.message, exc.code)

    @app.exception_handler(DuplicateGrantError)
    async def conflict_handler(request: Request, exc: DuplicateGrantError):
        return _error(status.HTTP_409_CONFLICT, "conflict", exc.message, exc.code)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dispose_engine()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_from_settings(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Role-based access control for the Hail Solutions CRM",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)
    app.include_router(rbac.router, prefix="/api")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs" if settings.debug else None,
        }

    return app


app = create_app()
