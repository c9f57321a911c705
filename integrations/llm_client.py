import json
import logging
import re

from typing import Any

from data.models import ArticleSummary
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

SUMMARY_INPUT_MAX_CHARS = 8000
SUMMARY_MAX_TOKENS = 500
SUMMARY_SYSTEM_PROMPT = (
    "你是专业的文章摘要助手。请阅读文章，用中文生成一段简短的摘要（100字以内），"
    "并提取3-5个关键标签。返回格式必须是 JSON："
    "{\"summary\": \"...\", \"tags\": [\"tag1\", \"tag2\"]}"
)
JSON_OBJECT_PATTERN = re.compile(r"\{.*\}", flags = re.DOTALL)


class OpenAICompatibleLlmClient:
    """OpenAI-compatible chat completion client for article summaries."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        http_client: HttpClient
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self.api_key = (api_key or "").strip()
        self.model = (model or "").strip()
        self.http_client = http_client

    def is_ready(self) -> bool:
        return bool(self.base_url and self.api_key and self.model)

    def summarize_article(self, text: str) -> ArticleSummary:
        """Summarize article text and suggest tags.

        Any failure returns an empty summary. A reply that is not a JSON
        object is kept as the summary without tags.

        Args:
            text: Article plain text, truncated to the first 8000 characters.
        """

        if not self.is_ready() or not text.strip():
            return ArticleSummary()

        endpoint = self.base_url
        if not endpoint.endswith("/chat/completions"):
            endpoint = f"{endpoint}/chat/completions"

        try:
            response = self.http_client.request(
                method = "POST",
                url = endpoint,
                headers = {"Authorization": f"Bearer {self.api_key}"},
                json_body = {
                    "model": self.model,
                    "max_tokens": SUMMARY_MAX_TOKENS,
                    "response_format": {"type": "json_object"},
                    "messages": [
                        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                        {"role": "user", "content": text[:SUMMARY_INPUT_MAX_CHARS]}
                    ]
                }
            )
            content = message_content(payload = response.json())
        except Exception as exc:
            logger.warning("LLM request failed for article summary: %s", str(exc))
            return ArticleSummary()

        if not content.strip():
            return ArticleSummary()

        parsed = parse_json_object(text = content)
        if not parsed:
            return ArticleSummary(summary = content.strip())

        raw_tags = parsed.get("tags")
        if not isinstance(raw_tags, list):
            raw_tags = []
        logger.info("article summary received: tags = %d", len(raw_tags))
        return ArticleSummary(
            summary = str(parsed.get("summary", "")).strip(),
            tags = [str(tag).strip() for tag in raw_tags if str(tag).strip()]
        )


def message_content(payload: dict[str, Any]) -> str:
    """Return the first choice's message text, joining list-style content parts.

    Args:
        payload: JSON payload from completion API.
    """

    choices = payload.get("choices") or []
    if not choices:
        return ""
    content = ((choices[0] or {}).get("message") or {}).get("content", "")
    if isinstance(content, list):
        return "".join(
            str(item.get("text")) for item in content
            if isinstance(item, dict) and item.get("text")
        )
    return content if isinstance(content, str) else ""


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object from model output, also when wrapped in prose or fences.

    Args:
        text: Raw response text.
    """

    content = text.strip()
    candidates = [content]
    match = JSON_OBJECT_PATTERN.search(content)
    if match and match.group(0) != content:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return {}
