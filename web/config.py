"""
Configuration module for web service.

Loads environment variables and exposes a settings object.
"""
import os
import sys
from pathlib import Path


project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from config.config import load_dotenv_if_exists

load_dotenv_if_exists()


class Settings:
    """Web service settings."""

    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    WEB_HOST: str = os.getenv("WEB_HOST", os.getenv("HOST", "0.0.0.0"))
    WEB_PORT: int = int(os.getenv("WEB_PORT", os.getenv("PORT", "8000")))
    WEB_RELOAD: bool = os.getenv("WEB_RELOAD", "false").lower() == "true"
    CORS_ALLOW_ORIGINS: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    @property
    def cors_origins(self) -> list:
        return [item.strip() for item in self.CORS_ALLOW_ORIGINS.split(",") if item.strip()] or ["*"]


settings = Settings()
