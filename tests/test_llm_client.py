import json
import unittest

from core.exceptions import HttpRequestError
from integrations.llm_client import OpenAICompatibleLlmClient
from utils.http_client import HttpResponse


class FakeHttpClient:
    """Fake HTTP client returning one chat completion."""

    def __init__(self, content: str = "", error: Exception = None):
        self.content = content
        self.error = error
        self.calls = []

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        payload = {"choices": [{"message": {"content": self.content}}]}
        return HttpResponse(status_code = 200, headers = {}, body = json.dumps(payload).encode("utf-8"))


def build_client(http_client: FakeHttpClient) -> OpenAICompatibleLlmClient:
    return OpenAICompatibleLlmClient(
        base_url = "https://api.deepseek.com",
        api_key = "sk_x",
        model = "deepseek-chat",
        http_client = http_client
    )


class TestLlmClient(unittest.TestCase):
    """Tests for article summary client."""

    def test_summary_parsed_and_input_truncated(self) -> None:
        """JSON content yields summary and tags; input is capped at 8000 chars.

        Args:
            self: Test case instance.
        """

        http_client = FakeHttpClient(content = '{"summary": "Short", "tags": ["AI", " ", "LLM"]}')
        summary = build_client(http_client).summarize_article("x" * 9000)

        self.assertEqual(summary.summary, "Short")
        self.assertEqual(summary.tags, ["AI", "LLM"])
        call = http_client.calls[0]
        self.assertEqual(call["url"], "https://api.deepseek.com/chat/completions")
        self.assertEqual(len(call["json_body"]["messages"][1]["content"]), 8000)

    def test_non_json_content_used_as_summary(self) -> None:
        """Plain text replies become the summary without tags.

        Args:
            self: Test case instance.
        """

        summary = build_client(FakeHttpClient(content = "just text")).summarize_article("body")

        self.assertEqual(summary.summary, "just text")
        self.assertEqual(summary.tags, [])

    def test_failure_returns_empty(self) -> None:
        """Transport failures and missing config yield an empty summary.

        Args:
            self: Test case instance.
        """

        failing = build_client(FakeHttpClient(error = HttpRequestError("HTTP 500", status_code = 500)))
        self.assertEqual(failing.summarize_article("body").summary, "")

        unconfigured = OpenAICompatibleLlmClient(base_url = "", api_key = "", model = "", http_client = FakeHttpClient())
        self.assertFalse(unconfigured.is_ready())
        self.assertEqual(unconfigured.summarize_article("body").tags, [])


if __name__ == "__main__":
    unittest.main()
