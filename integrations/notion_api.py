import json

from typing import List
from typing import Optional

from core.exceptions import ApiResponseError
from core.exceptions import HttpRequestError
from utils.http_client import HttpClient


class NotionClient:
    """Minimal Notion REST client for databases, pages and block children.

    Args:
        api_key: Notion integration secret.
        http_client: Shared HTTP client.
        base_url: Notion API base url.
        notion_version: Notion-Version header value.
    """

    def __init__(
        self,
        api_key: str,
        http_client: HttpClient,
        base_url: str = "https://api.notion.com",
        notion_version: str = "2022-06-28"
    ) -> None:
        self.api_key = api_key
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version

    def retrieve_database(self, database_id: str) -> dict:
        """Fetch one database including its property schema.

        Args:
            database_id: Notion database id.
        """

        return self._request_json(method = "GET", path = f"/v1/databases/{database_id}")

    def create_page(
        self,
        database_id: str,
        properties: dict,
        children: List[dict],
        icon: Optional[dict] = None
    ) -> dict:
        """Create one page under a database.

        Args:
            database_id: Parent database id.
            properties: Page property values keyed by property name.
            children: First chunk of page content blocks.
            icon: Optional page icon.
        """

        body = {
            "parent": {"database_id": database_id},
            "properties": properties,
            "children": children
        }
        if icon:
            body["icon"] = icon
        return self._request_json(method = "POST", path = "/v1/pages", json_body = body)

    def append_block_children(self, block_id: str, children: List[dict]) -> dict:
        """Append blocks to the end of one page or block.

        Args:
            block_id: Parent page or block id.
            children: Blocks to append.
        """

        return self._request_json(
            method = "PATCH",
            path = f"/v1/blocks/{block_id}/children",
            json_body = {"children": children}
        )

    def _request_json(
        self,
        method: str,
        path: str,
        json_body: Optional[dict] = None
    ) -> dict:
        """Send signed request and parse Notion JSON payload.

        Args:
            method: HTTP method.
            path: API path.
            json_body: JSON request body.
        """

        try:
            response = self.http_client.request(
                method = method,
                url = f"{self.base_url}{path}",
                headers = {
                    "Authorization": f"Bearer {self.api_key}",
                    "Notion-Version": self.notion_version
                },
                json_body = json_body
            )
        except HttpRequestError as exc:
            payload = _safe_json(text = exc.body)
            if payload.get("object") == "error":
                raise ApiResponseError(
                    f"Notion API failed for {path}: code = {payload.get('code')}, msg = {payload.get('message')}",
                    code = payload.get("code"),
                    msg = str(payload.get("message", "")),
                    status_code = exc.status_code
                ) from exc
            raise

        payload = _safe_json(text = response.text)
        if not payload:
            raise ApiResponseError(f"Invalid JSON from {path}: {response.text[:200]}")
        if payload.get("object") == "error":
            raise ApiResponseError(
                f"Notion API failed for {path}: code = {payload.get('code')}, msg = {payload.get('message')}",
                code = payload.get("code"),
                msg = str(payload.get("message", "")),
                status_code = int(payload.get("status") or 0)
            )
        return payload


def _safe_json(text: str) -> dict:
    """Parse JSON object text, returning empty dict on failure.

    Args:
        text: Raw text.
    """

    if not text:
        return {}
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}
