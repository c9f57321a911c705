"""
Dependency injection utilities for FastAPI.
"""
import logging

from fastapi import Depends

from config.config import AppConfig
from core.pipeline import ClipPipeline
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)


def get_app_config() -> AppConfig:
    """Return runtime configuration loaded from environment.

    Args:
        None
    """

    return AppConfig.from_env()


def get_http_client(config: AppConfig = Depends(get_app_config)) -> HttpClient:
    """Return one HTTP client per request.

    Args:
        config: Runtime configuration.
    """

    return HttpClient(
        timeout = config.request_timeout,
        max_retries = config.max_retries,
        retry_backoff = config.retry_backoff
    )


def get_pipeline(
    config: AppConfig = Depends(get_app_config),
    http_client: HttpClient = Depends(get_http_client)
) -> ClipPipeline:
    """Return a pipeline bound to request-scoped HTTP client.

    Args:
        config: Runtime configuration.
        http_client: Request-scoped HTTP client.
    """

    return ClipPipeline(config = config, http_client = http_client)
