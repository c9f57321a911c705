import re
import json

from typing import Optional

from core.exceptions import ApiResponseError
from core.exceptions import HttpRequestError
from core.exceptions import RemoteWriteError
from core.exceptions import SchemaError


UNAUTHORIZED = "Unauthorized"
NOT_FOUND = "NotFound"
SCHEMA_MISMATCH = "SchemaMismatch"
PERMISSION_DENIED = "PermissionDenied"
UNKNOWN = "Unknown"

CAUSE_MESSAGES = {
    UNAUTHORIZED: "Credential is invalid or expired",
    NOT_FOUND: "Target database, table or document was not found or is not shared with the integration",
    SCHEMA_MISMATCH: "Destination fields do not match the expected schema",
    PERMISSION_DENIED: "Credential lacks access to the target resource",
    UNKNOWN: "Destination rejected the request"
}

FEISHU_CAUSES = {
    10014: UNAUTHORIZED,
    99991661: UNAUTHORIZED,
    99991663: UNAUTHORIZED,
    99991664: UNAUTHORIZED,
    99991668: UNAUTHORIZED,
    99991671: UNAUTHORIZED,
    1254001: NOT_FOUND,
    1254002: NOT_FOUND,
    1254004: NOT_FOUND,
    1770002: NOT_FOUND,
    1254043: SCHEMA_MISMATCH,
    1254045: SCHEMA_MISMATCH,
    99991672: PERMISSION_DENIED,
    99991679: PERMISSION_DENIED,
    1254302: PERMISSION_DENIED,
    1770032: PERMISSION_DENIED,
    91403: PERMISSION_DENIED
}

NOTION_CAUSES = {
    "unauthorized": UNAUTHORIZED,
    "object_not_found": NOT_FOUND,
    "restricted_resource": PERMISSION_DENIED
}

NOTION_SCHEMA_HINTS = (
    "property that does not exist",
    "is not a property that exists",
    "is not a property"
)


def classify_feishu_error(code: object) -> str:
    """Map one Feishu error code to a stable cause.

    Args:
        code: Feishu response code.
    """

    try:
        numeric = int(code)
    except (TypeError, ValueError):
        return UNKNOWN
    return FEISHU_CAUSES.get(numeric, UNKNOWN)


def classify_notion_error(code: object, status_code: int = 0, message: str = "") -> str:
    """Map one Notion error code to a stable cause.

    Args:
        code: Notion error code string.
        status_code: HTTP status code.
        message: Notion error message.
    """

    normalized = str(code or "").strip().lower()
    if normalized in NOTION_CAUSES:
        return NOTION_CAUSES[normalized]
    if normalized == "validation_error":
        lowered = (message or "").lower()
        if any(hint in lowered for hint in NOTION_SCHEMA_HINTS):
            return SCHEMA_MISMATCH
        return UNKNOWN
    if status_code == 401:
        return UNAUTHORIZED
    if status_code == 403:
        return PERMISSION_DENIED
    if status_code == 404:
        return NOT_FOUND
    return UNKNOWN


def translate_feishu_error(exc: Exception, created_id: Optional[str] = None) -> RemoteWriteError:
    """Convert a raw Feishu failure into a classified error.

    Args:
        exc: Raised exception.
        created_id: Document id created before the failure, if any.
    """

    if isinstance(exc, RemoteWriteError):
        return exc

    code, detail = _extract_feishu_code(exc = exc)
    cause = classify_feishu_error(code)
    return _build_error(cause = cause, detail = detail, created_id = created_id, code = code)


def translate_notion_error(exc: Exception, created_id: Optional[str] = None) -> RemoteWriteError:
    """Convert a raw Notion failure into a classified error.

    Args:
        exc: Raised exception.
        created_id: Page id created before the failure, if any.
    """

    if isinstance(exc, RemoteWriteError):
        return exc

    code = None
    status_code = 0
    detail = str(exc)
    if isinstance(exc, ApiResponseError):
        code = exc.code
        status_code = exc.status_code
        detail = exc.msg or detail
    elif isinstance(exc, HttpRequestError):
        status_code = exc.status_code
        payload = _parse_json_body(body = exc.body)
        code = payload.get("code")
        detail = str(payload.get("message") or detail)

    cause = classify_notion_error(code, status_code = status_code, message = detail)
    return _build_error(cause = cause, detail = detail, created_id = created_id, code = code)


def _build_error(
    cause: str,
    detail: str,
    created_id: Optional[str],
    code: object
) -> RemoteWriteError:
    """Build the classified error, keeping the original message for Unknown.

    Args:
        cause: Stable cause.
        detail: Original destination message.
        created_id: Container id created before the failure.
        code: Raw destination code.
    """

    if cause == UNKNOWN:
        message = f"{CAUSE_MESSAGES[UNKNOWN]}: {detail}"
    else:
        message = f"{CAUSE_MESSAGES[cause]} (code = {code})"

    if cause == SCHEMA_MISMATCH:
        return SchemaError(message = f"{message}: {detail}", detail = detail, created_id = created_id)
    return RemoteWriteError(
        cause = cause,
        message = message,
        detail = detail,
        created_id = created_id
    )


def _extract_feishu_code(exc: Exception) -> tuple:
    """Extract Feishu code and message from wrapped exceptions.

    Args:
        exc: Raised exception.
    """

    if isinstance(exc, ApiResponseError) and exc.code is not None:
        return exc.code, exc.msg or str(exc)

    if isinstance(exc, HttpRequestError):
        payload = _parse_json_body(body = exc.body)
        if "code" in payload:
            return payload.get("code"), str(payload.get("msg") or exc)

    match = re.search(r"code\s*=\s*([0-9]+)", str(exc))
    if match:
        return int(match.group(1)), str(exc)
    return None, str(exc)


def _parse_json_body(body: str) -> dict:
    """Parse an error body as JSON object, empty dict otherwise.

    Args:
        body: Raw body text.
    """

    if not body:
        return {}
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return {}
    if isinstance(payload, dict):
        return payload
    return {}
