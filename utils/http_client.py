import io
import http.client
import json
import time
import uuid
import urllib.error
import urllib.parse
import urllib.request

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.exceptions import HttpRequestError


BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.114 Safari/537.36"
)
RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})
NETWORK_ERROR_STATUS = 0
# URLError and socket timeouts are OSError; ValueError covers malformed URLs.
TRANSPORT_ERRORS = (OSError, http.client.HTTPException, ValueError)


@dataclass
class MultipartFile:
    """One file part of a multipart upload, e.g. an image sent to Feishu drive.

    Args:
        filename: Uploaded filename.
        content: Binary payload.
        content_type: MIME type value.
    """

    filename: str
    content: bytes
    content_type: str


@dataclass
class HttpResponse:
    """Status, headers and raw body of one finished request.

    Args:
        status_code: HTTP response status code.
        headers: Response headers map.
        body: Raw response bytes.
    """

    status_code: int
    headers: Dict[str, str]
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors = "replace")

    @property
    def content_type(self) -> str:
        """Return lower-cased content type without parameters.

        Args:
            self: Response object.
        """

        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value.split(";")[0].strip().lower()
        return ""

    def json(self) -> dict:
        return json.loads(self.text)


class HttpClient:
    """Blocking urllib client shared by the fetcher, image hosts and destination APIs.

    Every failure surfaces as HttpRequestError carrying the status code
    (0 for network errors) and the raw body, so destination clients can lift
    error payloads out of it.

    Args:
        timeout: Request timeout in seconds.
        max_retries: Total attempts for temporary failures, 1 disables retry.
        retry_backoff: Backoff multiplier used between retries.
        user_agent: Default User-Agent header, a desktop browser string.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 1,
        retry_backoff: float = 1.0,
        user_agent: str = BROWSER_USER_AGENT
    ) -> None:
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.retry_backoff = retry_backoff
        self.user_agent = user_agent

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[dict] = None,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, MultipartFile]] = None,
        allow_status: Optional[tuple] = None
    ) -> HttpResponse:
        """Send one request, retrying temporary failures up to max_retries attempts.

        Args:
            method: HTTP method.
            url: Target URL.
            headers: Optional request headers, merged over the User-Agent.
            params: Optional query parameters.
            json_body: Optional JSON body.
            data: Optional form fields, multipart fields when files are given.
            files: Optional multipart files map.
            allow_status: Error status codes returned instead of raised.
        """

        allow_status = allow_status or tuple()
        method = method.upper()
        final_url = self._build_url(url = url, params = params)
        request_headers = {"User-Agent": self.user_agent}
        if headers:
            request_headers.update(headers)
        payload, content_type = self._prepare_body(json_body = json_body, data = data, files = files)
        if content_type:
            request_headers["Content-Type"] = content_type

        attempts = 0
        while True:
            attempts += 1
            try:
                response = self._send(method = method, url = final_url, headers = request_headers, payload = payload)
            except TRANSPORT_ERRORS as exc:
                if self._should_retry(status_code = 503, attempts = attempts):
                    self._sleep(attempts = attempts)
                    continue
                reason = getattr(exc, "reason", None) or str(exc) or type(exc).__name__
                raise HttpRequestError(
                    f"Network error for {method} {final_url}: {reason}",
                    status_code = NETWORK_ERROR_STATUS
                ) from exc

            if response.status_code < 400 or response.status_code in allow_status:
                return response
            if self._should_retry(status_code = response.status_code, attempts = attempts):
                self._sleep(attempts = attempts)
                continue
            raise HttpRequestError(
                f"HTTP {response.status_code} for {method} {final_url}: {response.text}",
                status_code = response.status_code,
                body = response.text
            )

    def _send(self, method: str, url: str, headers: Dict[str, str], payload: Optional[bytes]) -> HttpResponse:
        """Run one attempt, turning HTTP error statuses into responses.

        Args:
            method: Upper-case HTTP method.
            url: Final URL including query.
            headers: Request headers.
            payload: Encoded body or None.
        """

        req = urllib.request.Request(url, data = payload, headers = headers, method = method)
        try:
            with urllib.request.urlopen(req, timeout = self.timeout) as resp:
                return HttpResponse(
                    status_code = resp.getcode(),
                    headers = dict(resp.headers.items()),
                    body = resp.read()
                )
        except urllib.error.HTTPError as exc:
            return HttpResponse(
                status_code = int(exc.code),
                headers = dict(exc.headers.items()) if exc.headers else {},
                body = exc.read()
            )

    def _prepare_body(
        self,
        json_body: Optional[dict],
        data: Optional[Dict[str, str]],
        files: Optional[Dict[str, MultipartFile]]
    ) -> Tuple[Optional[bytes], str]:
        """Encode the request body and return it with its content type.

        Args:
            json_body: JSON body, sent as UTF-8 without ASCII escaping.
            data: Form fields.
            files: Multipart files map.
        """

        if files:
            return self._encode_multipart(data = data or {}, files = files)
        if json_body is not None:
            payload = json.dumps(json_body, ensure_ascii = False).encode("utf-8")
            return payload, "application/json; charset=utf-8"
        if data is not None:
            return urllib.parse.urlencode(data).encode("utf-8"), "application/x-www-form-urlencoded"
        return None, ""

    def _build_url(self, url: str, params: Optional[Dict[str, str]]) -> str:
        if not params:
            return url
        parsed = urllib.parse.urlparse(url)
        existing = urllib.parse.parse_qs(parsed.query)
        for key, value in params.items():
            existing[key] = [value]
        query = urllib.parse.urlencode(existing, doseq = True)
        return urllib.parse.urlunparse(parsed._replace(query = query))

    def _should_retry(self, status_code: int, attempts: int) -> bool:
        if attempts >= self.max_retries:
            return False
        return status_code in RETRYABLE_STATUS

    def _sleep(self, attempts: int) -> None:
        time.sleep(self.retry_backoff * attempts)

    def _encode_multipart(
        self,
        data: Dict[str, str],
        files: Dict[str, MultipartFile]
    ) -> Tuple[bytes, str]:
        """Build multipart/form-data payload, fields first and files last.

        Args:
            data: Form fields.
            files: File map keyed by field name.
        """

        boundary = f"----clipper-boundary-{uuid.uuid4().hex}"
        buffer = io.BytesIO()

        for key, value in data.items():
            buffer.write(f"--{boundary}\r\n".encode("utf-8"))
            buffer.write(f'Content-Disposition: form-data; name="{key}"\r\n\r\n'.encode("utf-8"))
            buffer.write(str(value).encode("utf-8"))
            buffer.write(b"\r\n")

        for key, part in files.items():
            disposition = f'Content-Disposition: form-data; name="{key}"; filename="{part.filename}"\r\n'
            buffer.write(f"--{boundary}\r\n".encode("utf-8"))
            buffer.write(disposition.encode("utf-8"))
            buffer.write(f"Content-Type: {part.content_type}\r\n\r\n".encode("utf-8"))
            buffer.write(part.content)
            buffer.write(b"\r\n")

        buffer.write(f"--{boundary}--\r\n".encode("utf-8"))
        return buffer.getvalue(), f"multipart/form-data; boundary={boundary}"
