import http.client
import io
import json
import unittest
import urllib.error

from unittest import mock

from core.exceptions import HttpRequestError
from utils.http_client import HttpClient
from utils.http_client import MultipartFile


class FakeUrlResponse:
    """Context-managed stand-in for urlopen results."""

    def __init__(self, status: int, body: bytes, headers: dict = None):
        self.status = status
        self.body = body
        self.headers = headers or {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def getcode(self) -> int:
        return self.status

    def read(self) -> bytes:
        return self.body


def http_error(status: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://x", status, "error", {}, io.BytesIO(body))


class TestHttpClient(unittest.TestCase):
    """Tests for urllib based HTTP client."""

    def test_json_request_encodes_body_and_query(self) -> None:
        """JSON bodies are UTF-8 without escaping and params extend the query.

        Args:
            self: Test case instance.
        """

        captured = {}

        def fake_urlopen(req, timeout):
            captured["req"] = req
            return FakeUrlResponse(200, b'{"ok": true}', {"Content-Type": "application/json; charset=utf-8"})

        with mock.patch("urllib.request.urlopen", side_effect = fake_urlopen):
            response = HttpClient().request(
                method = "post",
                url = "https://api.x/v1?a=1",
                params = {"b": "2"},
                json_body = {"title": "标题"}
            )

        req = captured["req"]
        self.assertEqual(req.get_method(), "POST")
        self.assertEqual(req.full_url, "https://api.x/v1?a=1&b=2")
        self.assertEqual(json.loads(req.data.decode("utf-8")), {"title": "标题"})
        self.assertIn("标题".encode("utf-8"), req.data)
        self.assertEqual(response.json(), {"ok": True})
        self.assertEqual(response.content_type, "application/json")

    def test_error_status_raises_with_body(self) -> None:
        """Error statuses raise once with status code and body, no retry by default.

        Args:
            self: Test case instance.
        """

        with mock.patch("urllib.request.urlopen", side_effect = http_error(500, b'{"code": 1}')) as urlopen:
            with self.assertRaises(HttpRequestError) as ctx:
                HttpClient().request(method = "GET", url = "https://x")

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.body, '{"code": 1}')
        self.assertEqual(urlopen.call_count, 1)

    def test_retry_and_allow_status(self) -> None:
        """Temporary failures retry when enabled and allowed statuses return.

        Args:
            self: Test case instance.
        """

        responses = [http_error(503, b"busy"), FakeUrlResponse(200, b"ok")]
        with mock.patch("urllib.request.urlopen", side_effect = responses), mock.patch("time.sleep"):
            response = HttpClient(max_retries = 2).request(method = "GET", url = "https://x")
        self.assertEqual(response.text, "ok")

        with mock.patch("urllib.request.urlopen", side_effect = http_error(404, b"missing")):
            response = HttpClient().request(method = "GET", url = "https://x", allow_status = (404,))
        self.assertEqual(response.status_code, 404)

    def test_network_error_has_zero_status(self) -> None:
        """Network failures raise with status code 0.

        Args:
            self: Test case instance.
        """

        with mock.patch("urllib.request.urlopen", side_effect = urllib.error.URLError("refused")):
            with self.assertRaises(HttpRequestError) as ctx:
                HttpClient().request(method = "GET", url = "https://x")

        self.assertEqual(ctx.exception.status_code, 0)

    def test_transport_failures_become_request_errors(self) -> None:
        """Read timeouts, dropped connections and bad URLs raise HttpRequestError.

        Args:
            self: Test case instance.
        """

        failures = [
            TimeoutError("timed out"),
            http.client.RemoteDisconnected("Remote end closed connection without response"),
            ValueError("unknown url type: 'nota url'")
        ]
        for failure in failures:
            with mock.patch.object(HttpClient, "_send", side_effect = failure):
                with self.assertRaises(HttpRequestError) as ctx:
                    HttpClient(timeout = 0.5).request(method = "GET", url = "https://x/slow")

            self.assertEqual(ctx.exception.status_code, 0)
            self.assertIs(ctx.exception.__cause__, failure)

    def test_multipart_payload(self) -> None:
        """Multipart bodies carry fields and file parts.

        Args:
            self: Test case instance.
        """

        captured = {}

        def fake_urlopen(req, timeout):
            captured["req"] = req
            return FakeUrlResponse(200, b"{}")

        with mock.patch("urllib.request.urlopen", side_effect = fake_urlopen):
            HttpClient().request(
                method = "POST",
                url = "https://x/upload",
                data = {"parent_type": "docx_image"},
                files = {"file": MultipartFile(filename = "a.png", content = b"\x89PNG", content_type = "image/png")}
            )

        req = captured["req"]
        self.assertTrue(req.get_header("Content-type").startswith("multipart/form-data; boundary="))
        self.assertIn(b'name="parent_type"\r\n\r\ndocx_image', req.data)
        self.assertIn(b'filename="a.png"', req.data)
        self.assertIn(b"\x89PNG", req.data)


if __name__ == "__main__":
    unittest.main()
