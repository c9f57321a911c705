"""
Article clipper web entrypoint.

Provides FastAPI endpoints for saving articles and testing destinations.
"""
import sys
import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from web.config import settings
from web.api import clip_router
from core.exceptions import AppError
from core.exceptions import InputError
from core.exceptions import RemoteWriteError
from core.exceptions import SchemaError
from utils.logging_setup import configure_web_logging


logger = logging.getLogger(__name__)

app = FastAPI(
    title = "Article Clipper API",
    description = "Save web articles into Notion databases or Feishu documents",
    version = "1.0.0",
    docs_url = "/docs",
    redoc_url = "/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins = settings.cors_origins,
    allow_credentials = True,
    allow_methods = ["*"],
    allow_headers = ["*"],
)


def error_status_code(exc: Exception) -> int:
    """Map one application error to an HTTP status code.

    Args:
        exc: Raised exception.
    """

    if isinstance(exc, (InputError, SchemaError)):
        return 400
    if isinstance(exc, RemoteWriteError):
        return 502
    return 500


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render classified application errors.

    Args:
        request: FastAPI request.
        exc: Application error.
    """

    status_code = error_status_code(exc)
    content = {"success": False, "error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, RemoteWriteError):
        content["cause"] = exc.cause
        content["created_id"] = exc.created_id
    logger.warning("Request %s failed with %d: %s", request.url, status_code, str(exc))
    return JSONResponse(status_code = status_code, content = content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions for API requests.

    Args:
        request: FastAPI request.
        exc: Exception instance.
    """

    logger.error("Request %s failed: %s", request.url, str(exc), exc_info = True)
    return JSONResponse(
        status_code = 500,
        content = {"success": False, "error": "InternalError", "message": str(exc)}
    )


app.include_router(clip_router, prefix = "/api", tags = ["clip"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""

    return {"status": "ok", "version": "1.0.0"}


if __name__ == "__main__":
    configure_web_logging(level = logging.INFO)

    host = settings.WEB_HOST
    port = settings.WEB_PORT
    logger.info("article clipper web service starting: host = %s, port = %d", host, port)

    uvicorn.run(
        "web.main:app",
        host = host,
        port = port,
        reload = settings.WEB_RELOAD,
        log_level = settings.LOG_LEVEL.lower(),
        access_log = True,
        log_config = None
    )
