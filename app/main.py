import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.logging_config import setup_logging
from .core.security import build_identity_verifier
from .database.dynamodb import Database
from .routers import events

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = Database.from_settings(settings)
    app.state.db = db
    app.state.identity_verifier = build_identity_verifier(settings)
    logger.info("CORS enabled for: %s", ", ".join(settings.cors_origins))
    try:
        yield
    finally:
        db.close()


def _envelope(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "message": message}
    )


def create_app() -> FastAPI:
    setup_logging(settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.api_version,
        description="Create, browse and join social events",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Credentials cannot be combined with a wildcard origin.
    allow_all = settings.cors_origins == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        response = _envelope(exc.status_code, str(message))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info("Invalid request to %s: %s", request.url.path, exc.errors())
        return _envelope(400, "Invalid request data")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Server error on %s", request.url.path, exc_info=exc)
        return _envelope(500, "Internal server error")

    app.include_router(events.router)

    @app.get("/")
    def read_root():
        return {
            "success": True,
            "message": settings.project_name,
            "endpoints": {"health": "/health", "events": "/events/upcoming"},
        }

    @app.get("/health")
    def health():
        return {
            "success": True,
            "message": "Server is running!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
