"""
API integration tests.

Validate FastAPI endpoints for clipping flows and error handling.
"""

import json

import pytest
from fastapi.testclient import TestClient

from config.config import AppConfig
from core.exceptions import InputError
from core.exceptions import RemoteWriteError
from core.exceptions import SchemaError
from data.models import SaveResult
from utils.http_client import HttpResponse
from web.dependencies import get_app_config
from web.dependencies import get_http_client
from web.dependencies import get_pipeline
from web.main import app


class FakePipeline:
    """Pipeline stub returning a fixed result or raising a fixed error."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.calls = []

    def save(self, url, destination, tags = None, credentials = None, summarize = False):
        self.calls.append(
            {
                "url": url,
                "destination": destination,
                "tags": tags,
                "credentials": credentials,
                "summarize": summarize
            }
        )
        if self.error is not None:
            raise self.error
        return SaveResult(
            destination = destination,
            remote_id = "page_1",
            title = "Clip me",
            block_count = 3,
            summary = "short",
            tags = list(tags or [])
        )


class FakeHttpClient:
    """HTTP stub routing by URL substring."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        for fragment, payload in self.routes.items():
            if fragment in url:
                body = json.dumps(payload).encode("utf-8")
                return HttpResponse(status_code = 200, headers = {}, body = body)
        raise AssertionError(f"unexpected request: {method} {url}")


@pytest.fixture
def client():
    """Create a FastAPI test client and reset overrides afterwards."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def use_pipeline(pipeline: FakePipeline) -> None:
    app.dependency_overrides[get_pipeline] = lambda: pipeline


class TestSystemAPI:
    """System endpoint tests."""

    def test_health_check(self, client):
        """Verify health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": "1.0.0"}


class TestSaveAPI:
    """Save endpoint tests."""

    def test_save_success(self, client):
        """Verify save returns remote id and forwards credentials."""
        pipeline = FakePipeline()
        use_pipeline(pipeline)

        response = client.post(
            "/api/save",
            json = {
                "url": "https://mp.weixin.qq.com/s/x",
                "destination": "notion",
                "tags": ["ai"],
                "credentials": {"notion_api_key": "k", "notion_database_id": "d"}
            }
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["remote_id"] == "page_1"
        assert data["title"] == "Clip me"
        assert data["tags"] == ["ai"]
        call = pipeline.calls[0]
        assert call["destination"] == "notion"
        assert call["credentials"].notion_api_key == "k"
        assert call["credentials"].notion_database_id == "d"
        assert call["summarize"] is False

    def test_save_without_credentials(self, client):
        """Verify missing credentials payload passes None to the pipeline."""
        pipeline = FakePipeline()
        use_pipeline(pipeline)

        response = client.post("/api/save", json = {"url": "https://x/a", "destination": "feishu"})

        assert response.status_code == 200
        assert pipeline.calls[0]["credentials"] is None

    def test_save_missing_url_rejected(self, client):
        """Verify request validation rejects a payload without url."""
        use_pipeline(FakePipeline())

        response = client.post("/api/save", json = {"destination": "notion"})

        assert response.status_code == 422

    def test_input_error_maps_to_400(self, client):
        """Verify input errors are rendered as 400."""
        use_pipeline(FakePipeline(error = InputError("Source URL must be an http(s) URL: x")))

        response = client.post("/api/save", json = {"url": "x"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "InputError"
        assert "http(s)" in data["message"]

    def test_remote_write_error_maps_to_502(self, client):
        """Verify destination failures expose cause and created id."""
        error = RemoteWriteError(
            cause = "RateLimited",
            message = "Destination rate limit reached",
            created_id = "page_9"
        )
        use_pipeline(FakePipeline(error = error))

        response = client.post("/api/save", json = {"url": "https://x/a"})

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "RemoteWriteError"
        assert data["cause"] == "RateLimited"
        assert data["created_id"] == "page_9"

    def test_schema_error_maps_to_400(self, client):
        """Verify schema mismatches are client errors."""
        use_pipeline(FakePipeline(error = SchemaError("Missing title property")))

        response = client.post("/api/save", json = {"url": "https://x/a"})

        assert response.status_code == 400
        data = response.json()
        assert data["cause"] == "SchemaMismatch"
        assert data["created_id"] is None


class TestConnectionAPI:
    """Connection test endpoint tests."""

    def test_notion_connection(self, client):
        """Verify Notion test returns database title."""
        http_client = FakeHttpClient(
            {"/databases/db_1": {"title": [{"plain_text": "Reading"}], "properties": {}}}
        )
        app.dependency_overrides[get_app_config] = lambda: AppConfig()
        app.dependency_overrides[get_http_client] = lambda: http_client

        response = client.post("/api/test/notion", json = {"api_key": "k", "database_id": "db_1"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "database_title": "Reading"}
        assert http_client.calls[0]["method"] == "GET"

    def test_notion_connection_missing_key(self, client):
        """Verify empty Notion credentials are rejected."""
        app.dependency_overrides[get_app_config] = lambda: AppConfig()
        app.dependency_overrides[get_http_client] = lambda: FakeHttpClient({})

        response = client.post("/api/test/notion", json = {})

        assert response.status_code == 400
        assert response.json()["error"] == "InputError"

    def test_feishu_lists_tables_without_table_id(self, client):
        """Verify Feishu test lists tables when no table id is given."""
        http_client = FakeHttpClient(
            {
                "tenant_access_token": {"code": 0, "tenant_access_token": "t_1", "expire": 7200},
                "/tables": {
                    "code": 0,
                    "data": {"items": [{"table_id": "tbl_1", "name": "Articles"}], "has_more": False}
                }
            }
        )
        app.dependency_overrides[get_app_config] = lambda: AppConfig()
        app.dependency_overrides[get_http_client] = lambda: http_client

        response = client.post(
            "/api/test/feishu",
            json = {"app_id": "a", "app_secret": "s", "app_token": "bascn_1"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["tables"][0]["table_id"] == "tbl_1"
