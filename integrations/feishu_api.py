import time
import json
import logging

from typing import Dict
from typing import List
from typing import Optional

from core.exceptions import ApiResponseError
from core.exceptions import HttpRequestError
from utils.chunking import chunk_items
from utils.http_client import HttpClient
from utils.http_client import MultipartFile


logger = logging.getLogger(__name__)

FEISHU_DOC_URL_TEMPLATE = "https://feishu.cn/docx/{document_id}"


class FeishuAuthClient:
    """Handle tenant access token lifecycle for one Feishu app.

    The token is cached on the instance, so one client per save run
    fetches it at most once.

    Args:
        app_id: Feishu app id.
        app_secret: Feishu app secret.
        base_url: Feishu base domain.
        http_client: Shared HTTP client.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str,
        http_client: HttpClient
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client

        self._token = ""
        self._expires_at = 0.0

    def get_tenant_access_token(self) -> str:
        """Get a valid tenant access token.

        Args:
            self: Auth client instance.
        """

        now = time.time()
        if self._token and now < self._expires_at - 60:
            return self._token

        path = "/open-apis/auth/v3/tenant_access_token/internal"
        try:
            response = self.http_client.request(
                method = "POST",
                url = f"{self.base_url}{path}",
                json_body = {
                    "app_id": self.app_id,
                    "app_secret": self.app_secret
                }
            )
        except HttpRequestError as exc:
            api_error = _api_error_from_http(exc = exc, path = path)
            if api_error is None:
                raise
            raise api_error from exc

        payload = _parse_payload(text = response.text, path = path)
        code = payload.get("code")
        if code != 0:
            raise ApiResponseError(
                f"Failed to get tenant token: code = {code}, msg = {payload.get('msg', 'unknown error')}",
                code = code,
                msg = str(payload.get("msg", ""))
            )

        token = payload.get("tenant_access_token", "")
        expire = int(payload.get("expire", 7200))
        if not token:
            raise ApiResponseError("Feishu auth response missing tenant_access_token")

        self._token = token
        self._expires_at = now + expire
        return token


class FeishuServiceBase:
    """Shared request helper for Feishu open APIs.

    Args:
        auth_client: Auth client used to generate access token.
        http_client: Shared HTTP client.
        base_url: Feishu base domain.
    """

    def __init__(
        self,
        auth_client: FeishuAuthClient,
        http_client: HttpClient,
        base_url: str
    ) -> None:
        self.auth_client = auth_client
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")

    def _request_json(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        data: Optional[dict] = None,
        files: Optional[Dict[str, MultipartFile]] = None
    ) -> dict:
        """Send signed request and parse Feishu JSON payload.

        Args:
            method: HTTP method.
            path: Open API path.
            params: Query parameters.
            json_body: JSON request body.
            data: Form fields.
            files: Multipart files.
        """

        token = self.auth_client.get_tenant_access_token()
        headers = {
            "Authorization": f"Bearer {token}"
        }
        try:
            response = self.http_client.request(
                method = method,
                url = f"{self.base_url}{path}",
                headers = headers,
                params = params,
                json_body = json_body,
                data = data,
                files = files
            )
        except HttpRequestError as exc:
            api_error = _api_error_from_http(exc = exc, path = path)
            if api_error is None:
                raise
            raise api_error from exc

        payload = _parse_payload(text = response.text, path = path)
        code = payload.get("code")
        if code != 0:
            raise ApiResponseError(
                f"Feishu API failed for {path}: code = {code}, msg = {payload.get('msg', 'unknown')}",
                code = code,
                msg = str(payload.get("msg", ""))
            )

        return payload


class DocWriterService(FeishuServiceBase):
    """Create docx documents and append native blocks."""

    CREATE_CHILDREN_BATCH_SIZE = 50

    def __init__(
        self,
        auth_client: FeishuAuthClient,
        http_client: HttpClient,
        base_url: str,
        folder_token: str = "",
        batch_size: int = CREATE_CHILDREN_BATCH_SIZE
    ) -> None:
        super().__init__(
            auth_client = auth_client,
            http_client = http_client,
            base_url = base_url
        )
        self.folder_token = folder_token
        self.batch_size = batch_size

    def create_doc_with_meta(self, title: str, folder_token: str = "") -> Dict[str, str]:
        """Create an empty docx document and return metadata.

        Args:
            title: Document title.
            folder_token: Optional folder token.
        """

        payload_body = {"title": title}
        effective_folder_token = folder_token or self.folder_token
        if effective_folder_token:
            payload_body["folder_token"] = effective_folder_token

        payload = self._request_json(
            method = "POST",
            path = "/open-apis/docx/v1/documents",
            json_body = payload_body
        )
        data = payload.get("data", {})

        document_id_candidates = [
            data.get("document_id"),
            (data.get("document") or {}).get("document_id"),
            (data.get("document") or {}).get("token")
        ]
        document_id = next((item for item in document_id_candidates if item), "")
        if not document_id:
            raise ApiResponseError("create_doc response missing document_id")

        url_candidates = [
            data.get("url"),
            data.get("document_url"),
            (data.get("document") or {}).get("url"),
            (data.get("document") or {}).get("document_url")
        ]
        doc_url = next((item for item in url_candidates if item), "")
        return {
            "document_id": document_id,
            "url": doc_url or FEISHU_DOC_URL_TEMPLATE.format(document_id = document_id)
        }

    def get_root_block_id(self, document_id: str) -> str:
        """Return the page block id of one document.

        Args:
            document_id: Feishu document id.
        """

        payload = self._request_json(
            method = "GET",
            path = f"/open-apis/docx/v1/documents/{document_id}/blocks/{document_id}"
        )
        block = (payload.get("data") or {}).get("block") or {}
        return str(block.get("block_id") or document_id)

    def append_children(
        self,
        document_id: str,
        parent_block_id: str,
        blocks: List[dict],
        index: int = -1
    ) -> List[str]:
        """Append native blocks in batches and return created block ids in order.

        A failing batch re-raises its error with written_batches and
        total_batches set, so callers can report the partial write.

        Args:
            document_id: Feishu document id.
            parent_block_id: Parent block id, the root block for top-level content.
            blocks: Block payload list.
            index: Insert position, -1 appends at the end.
        """

        if not blocks:
            return []

        created_ids: List[str] = []
        batches = chunk_items(blocks, self.batch_size)
        for batch_number, batch in enumerate(batches, start = 1):
            try:
                payload = self._request_json(
                    method = "POST",
                    path = f"/open-apis/docx/v1/documents/{document_id}/blocks/{parent_block_id}/children",
                    json_body = {
                        "children": batch,
                        "index": index
                    }
                )
            except (ApiResponseError, HttpRequestError) as exc:
                exc.written_batches = batch_number - 1
                exc.total_batches = len(batches)
                raise
            children = (payload.get("data") or {}).get("children") or []
            created_ids.extend(str(child.get("block_id", "")) for child in children)
            if index >= 0:
                index += len(batch)
            logger.info("feishu children appended: batch = %d/%d, size = %d", batch_number, len(batches), len(batch))

        return created_ids

    def delete_children(
        self,
        document_id: str,
        parent_block_id: str,
        start_index: int,
        end_index: int
    ) -> None:
        """Delete children in the half-open range [start_index, end_index).

        Args:
            document_id: Feishu document id.
            parent_block_id: Parent block id.
            start_index: First child index to delete.
            end_index: Index after the last deleted child.
        """

        self._request_json(
            method = "DELETE",
            path = f"/open-apis/docx/v1/documents/{document_id}/blocks/{parent_block_id}/children/batch_delete",
            json_body = {
                "start_index": start_index,
                "end_index": end_index
            }
        )

    def replace_image(self, document_id: str, block_id: str, file_token: str) -> None:
        """Replace one image block content by uploaded file token.

        Args:
            document_id: Document id.
            block_id: Target image block id.
            file_token: Token returned by upload_all media endpoint.
        """

        self._request_json(
            method = "PATCH",
            path = f"/open-apis/docx/v1/documents/{document_id}/blocks/{block_id}",
            json_body = {
                "replace_image": {
                    "token": file_token
                }
            }
        )


class MediaService(FeishuServiceBase):
    """Upload image bytes to Feishu drive and return media token."""

    def upload_image(
        self,
        content: bytes,
        filename: str,
        parent_node: str,
        content_type: str = "application/octet-stream"
    ) -> str:
        """Upload one image attached to an image block.

        Args:
            content: Image bytes.
            filename: Uploaded filename.
            parent_node: Image block id the media belongs to.
            content_type: MIME type of the payload.
        """

        payload = self._request_json(
            method = "POST",
            path = "/open-apis/drive/v1/medias/upload_all",
            data = {
                "file_name": filename,
                "parent_type": "docx_image",
                "parent_node": parent_node,
                "size": str(len(content))
            },
            files = {
                "file": MultipartFile(
                    filename = filename,
                    content = content,
                    content_type = content_type
                )
            }
        )

        data = payload.get("data", {})
        token_candidates = [
            data.get("file_token"),
            data.get("media_id"),
            data.get("token")
        ]
        token = next((item for item in token_candidates if item), "")
        if not token:
            raise ApiResponseError("media upload response missing token")
        return token


class BitableService(FeishuServiceBase):
    """Read tables and write records of one Bitable app.

    Args:
        app_token: Bitable app token.
    """

    def __init__(
        self,
        auth_client: FeishuAuthClient,
        http_client: HttpClient,
        base_url: str,
        app_token: str
    ) -> None:
        super().__init__(
            auth_client = auth_client,
            http_client = http_client,
            base_url = base_url
        )
        self.app_token = app_token

    def create_record(self, table_id: str, fields: dict) -> str:
        """Insert one record and return record_id.

        Args:
            table_id: Target table id.
            fields: Field values keyed by field name.
        """

        payload = self._request_json(
            method = "POST",
            path = f"/open-apis/bitable/v1/apps/{self.app_token}/tables/{table_id}/records",
            json_body = {"fields": fields}
        )
        record = (payload.get("data") or {}).get("record") or {}
        record_id = str(record.get("record_id") or record.get("id") or "")
        if not record_id:
            raise ApiResponseError("create_record response missing record_id")
        return record_id

    def get_table(self, table_id: str) -> dict:
        """Fetch metadata of one table.

        Args:
            table_id: Target table id.
        """

        payload = self._request_json(
            method = "GET",
            path = f"/open-apis/bitable/v1/apps/{self.app_token}/tables/{table_id}"
        )
        data = payload.get("data") or {}
        return data.get("table") or data

    def list_tables(self) -> List[Dict[str, str]]:
        """List tables of the app as table_id/name pairs.

        Args:
            self: Bitable service instance.
        """

        tables: List[Dict[str, str]] = []
        page_token = ""
        while True:
            params = {"page_size": "100"}
            if page_token:
                params["page_token"] = page_token
            payload = self._request_json(
                method = "GET",
                path = f"/open-apis/bitable/v1/apps/{self.app_token}/tables",
                params = params
            )
            data = payload.get("data") or {}
            for item in data.get("items") or []:
                tables.append({
                    "table_id": str(item.get("table_id", "")),
                    "name": str(item.get("name", ""))
                })
            page_token = str(data.get("page_token") or "")
            if not data.get("has_more") or not page_token:
                break
        return tables


def _parse_payload(text: str, path: str) -> dict:
    """Parse a Feishu JSON body.

    Args:
        text: Raw response text.
        path: Open API path used in error messages.
    """

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ApiResponseError(f"Invalid JSON from {path}: {text[:200]}") from exc
    if not isinstance(payload, dict):
        raise ApiResponseError(f"Invalid JSON from {path}: {text[:200]}")
    return payload


def _api_error_from_http(exc: HttpRequestError, path: str) -> Optional[ApiResponseError]:
    """Lift a Feishu code out of an HTTP error body when present.

    Args:
        exc: HTTP failure.
        path: Open API path.
    """

    try:
        payload = json.loads(exc.body) if exc.body else {}
    except json.JSONDecodeError:
        payload = {}
    if isinstance(payload, dict) and "code" in payload:
        return ApiResponseError(
            f"Feishu API failed for {path}: code = {payload.get('code')}, msg = {payload.get('msg', 'unknown')}",
            code = payload.get("code"),
            msg = str(payload.get("msg", "")),
            status_code = exc.status_code
        )
    return None
