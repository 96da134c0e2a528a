# src/app/main.py
from __future__ import annotations

import errno
import logging
import socket
import sys
from datetime import datetime, timezone
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.app.config import Settings
from src.app.deps import build_document_store, build_media_store, build_services
from src.app.infra.db.base import DocumentStore
from src.app.infra.media.base import MediaStore
from src.app.routers.upload import router as upload_router
from src.app.schemas.upload import HealthResponse

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    # Plain stdout logging, for dev and containers
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(404, "Endpoint not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        problems = [
            f"{'.'.join(str(part) for part in err.get('loc', ())[1:])}: {err.get('msg')}"
            for err in exc.errors()
        ]
        return _error(400, "; ".join(problems) or "Invalid request")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Server error: %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    document_store: Optional[DocumentStore] = None,
    media_store: Optional[MediaStore] = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Cooktopia Upload API", version="1.0.0")
    app.state.settings = settings
    app.state.media_store = media_store or build_media_store(settings)
    app.state.services = build_services(document_store or build_document_store(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(upload_router, prefix=settings.API_PREFIX)

    @app.get(f"{settings.API_PREFIX}/health", response_model=HealthResponse)
    def health():
        return {
            "success": True,
            "message": "Upload service is running",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }

    logger.info(
        "App created: env=%s, media=%s, store=%s",
        settings.APP_ENV,
        "cloudinary" if app.state.media_store.configured else "mock",
        type(app.state.services.store).__name__,
    )
    return app


def ensure_port_available(host: str, port: int) -> None:
    """Exit with a readable message instead of a bind traceback when the port is taken."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                logger.error("Port %d is already in use; set PORT to a free port", port)
                raise SystemExit(1) from e
            raise


def run() -> None:
    import uvicorn

    load_dotenv(find_dotenv())
    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    ensure_port_available(settings.HOST, settings.PORT)

    logger.info("Upload server running on port %d", settings.PORT)
    logger.info("Health check: http://localhost:%d%s/health", settings.PORT, settings.API_PREFIX)
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


app = create_app()


if __name__ == "__main__":
    run()
