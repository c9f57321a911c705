"""
Article clipping API.

Provides save and connection test endpoints.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from config.config import AppConfig
from core.feishu_adapter import FeishuAdapter
from core.feishu_adapter import FeishuCredentials
from core.notion_adapter import NotionAdapter
from core.notion_adapter import NotionCredentials
from core.pipeline import ClipPipeline
from core.pipeline import SaveCredentials
from utils.http_client import HttpClient
from web.dependencies import get_app_config
from web.dependencies import get_http_client
from web.dependencies import get_pipeline

router = APIRouter()
logger = logging.getLogger(__name__)


class CredentialsPayload(BaseModel):
    """Optional per-request credentials."""
    notion_api_key: str = ""
    notion_database_id: str = ""
    feishu_app_id: str = ""
    feishu_app_secret: str = ""
    feishu_app_token: str = ""
    feishu_table_id: str = ""


class SaveRequest(BaseModel):
    """Save request payload."""
    url: str
    destination: str = "notion"
    tags: List[str] = Field(default_factory = list)
    credentials: Optional[CredentialsPayload] = None
    summarize: bool = False


class SaveResponse(BaseModel):
    """Save response payload."""
    success: bool
    remote_id: str
    title: str
    summary: str = ""
    tags: List[str] = Field(default_factory = list)


class NotionTestRequest(BaseModel):
    """Notion connection test payload."""
    api_key: str = ""
    database_id: str = ""


class FeishuTestRequest(BaseModel):
    """Feishu connection test payload."""
    app_id: str = ""
    app_secret: str = ""
    app_token: str = ""
    table_id: str = ""


@router.post("/save", response_model = SaveResponse)
def save_article(request: SaveRequest, pipeline: ClipPipeline = Depends(get_pipeline)):
    """Clip one article into the requested destination."""
    logger.info("save request: destination = %s, url = %s", request.destination, request.url)
    credentials = None
    if request.credentials is not None:
        credentials = SaveCredentials(**request.credentials.model_dump())

    result = pipeline.save(
        url = request.url,
        destination = request.destination,
        tags = request.tags,
        credentials = credentials,
        summarize = request.summarize
    )
    return {
        "success": True,
        "remote_id": result.remote_id,
        "title": result.title,
        "summary": result.summary,
        "tags": result.tags
    }


@router.post("/test/notion")
def test_notion(
    request: NotionTestRequest,
    config: AppConfig = Depends(get_app_config),
    http_client: HttpClient = Depends(get_http_client)
):
    """Check Notion credentials and return the database title."""
    adapter = NotionAdapter.from_credentials(
        credentials = NotionCredentials(
            api_key = request.api_key or config.notion_api_key,
            database_id = request.database_id or config.notion_database_id
        ),
        http_client = http_client,
        config = config
    )
    return {"success": True, "database_title": adapter.test_connection()}


@router.post("/test/feishu")
def test_feishu(
    request: FeishuTestRequest,
    config: AppConfig = Depends(get_app_config),
    http_client: HttpClient = Depends(get_http_client)
):
    """Check Feishu credentials, listing tables when no table id is given."""
    adapter = FeishuAdapter.from_credentials(
        credentials = FeishuCredentials(
            app_id = request.app_id or config.feishu_app_id,
            app_secret = request.app_secret or config.feishu_app_secret,
            app_token = request.app_token or config.feishu_bitable_app_token,
            table_id = request.table_id
        ),
        http_client = http_client,
        config = config
    )
    if request.table_id:
        return {"success": True, "table_name": adapter.test_connection()}
    return {"success": True, "tables": adapter.list_tables()}
