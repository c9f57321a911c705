import logging
import urllib.parse

from dataclasses import dataclass
from typing import Callable
from typing import List
from typing import Optional

from config.config import AppConfig
from core.block_builder import BlockBuilder
from core.exceptions import InputError
from core.feishu_adapter import FeishuAdapter
from core.feishu_adapter import FeishuCredentials
from core.image_resolver import ImageResolver
from core.image_resolver import build_image_resolver
from core.notion_adapter import NotionAdapter
from core.notion_adapter import NotionCredentials
from data.extractor import ArticleExtractor
from data.fetcher import ArticleFetcher
from data.models import Article
from data.models import ArticleSummary
from data.models import SaveResult
from integrations.llm_client import OpenAICompatibleLlmClient
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

DESTINATIONS = ("notion", "feishu")
SUMMARY_MAX_CHARS = 8000


@dataclass
class SaveCredentials:
    """Per-call destination credentials overriding the environment.

    Each destination group must be given completely or not at all.
    """

    notion_api_key: str = ""
    notion_database_id: str = ""
    feishu_app_id: str = ""
    feishu_app_secret: str = ""
    feishu_app_token: str = ""
    feishu_table_id: str = ""


def validate_source_url(url: str) -> str:
    """Check that url is an absolute http(s) URL and return it stripped.

    Args:
        url: Candidate source URL.
    """

    value = (url or "").strip()
    if not value:
        raise InputError("Source URL is required")
    parsed = urllib.parse.urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InputError(f"Source URL must be an http(s) URL: {value}")
    return value


def resolve_notion_credentials(config: AppConfig, credentials: Optional[SaveCredentials]) -> NotionCredentials:
    """Merge per-call Notion credentials with configuration.

    Args:
        config: Runtime configuration.
        credentials: Optional per-call override.
    """

    override = credentials or SaveCredentials()
    given = [bool(override.notion_api_key), bool(override.notion_database_id)]
    if any(given) and not all(given):
        raise InputError("Notion override needs both API key and database id")
    if all(given):
        return NotionCredentials(api_key = override.notion_api_key, database_id = override.notion_database_id)
    if not config.notion_api_key or not config.notion_database_id:
        raise InputError("Missing Notion credentials: set NOTION_API_KEY and NOTION_DATABASE_ID")
    return NotionCredentials(api_key = config.notion_api_key, database_id = config.notion_database_id)


def resolve_feishu_credentials(config: AppConfig, credentials: Optional[SaveCredentials]) -> FeishuCredentials:
    """Merge per-call Feishu credentials with configuration.

    Args:
        config: Runtime configuration.
        credentials: Optional per-call override.
    """

    override = credentials or SaveCredentials()
    values = [
        override.feishu_app_id,
        override.feishu_app_secret,
        override.feishu_app_token,
        override.feishu_table_id
    ]
    if any(values) and not all(values):
        raise InputError("Feishu override needs app id, app secret, app token and table id")
    if all(values):
        return FeishuCredentials(*values)

    resolved = FeishuCredentials(
        app_id = config.feishu_app_id,
        app_secret = config.feishu_app_secret,
        app_token = config.feishu_bitable_app_token,
        table_id = config.feishu_table_id
    )
    if not all([resolved.app_id, resolved.app_secret, resolved.app_token, resolved.table_id]):
        raise InputError(
            "Missing Feishu credentials: set FEISHU_APP_ID, FEISHU_APP_SECRET, "
            "FEISHU_BITABLE_APP_TOKEN and FEISHU_TABLE_ID"
        )
    return resolved


class ClipPipeline:
    """Run one article from URL to a destination write.

    Args:
        config: Runtime configuration.
        http_client: Shared HTTP client, built from config when omitted.
        image_strategy: Optional override of config.image_strategy.
        adapter_factory: Optional callable (destination, credentials) -> adapter.
        llm_client: Optional summary client, built from config when omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        http_client: Optional[HttpClient] = None,
        image_strategy: str = "",
        adapter_factory: Optional[Callable] = None,
        llm_client: Optional[OpenAICompatibleLlmClient] = None
    ) -> None:
        self.config = config
        self.http_client = http_client or HttpClient(
            timeout = config.request_timeout,
            max_retries = config.max_retries,
            retry_backoff = config.retry_backoff
        )
        self.image_strategy = image_strategy
        self.adapter_factory = adapter_factory or self._build_adapter
        self.llm_client = llm_client or OpenAICompatibleLlmClient(
            base_url = config.llm_base_url,
            api_key = config.llm_api_key,
            model = config.llm_model,
            http_client = self.http_client
        )
        self.fetcher = ArticleFetcher(http_client = self.http_client)
        self.extractor = ArticleExtractor()

    def parse(self, url: str) -> Article:
        """Fetch and convert one page into a canonical article.

        Args:
            url: Source URL.
        """

        source_url = validate_source_url(url = url)
        html = self.fetcher.fetch_html(url = source_url)
        extracted = self.extractor.extract(html = html)
        blocks = BlockBuilder().build(content_html = extracted.content_html)
        return Article(
            title = extracted.title,
            author = extracted.author,
            excerpt = extracted.excerpt,
            blocks = tuple(blocks)
        )

    def save(
        self,
        url: str,
        destination: str,
        tags: Optional[List[str]] = None,
        credentials: Optional[SaveCredentials] = None,
        summarize: bool = False
    ) -> SaveResult:
        """Parse one article and write it to one destination.

        Args:
            url: Source URL.
            destination: notion or feishu.
            tags: Optional tag names.
            credentials: Optional per-call credential override.
            summarize: Whether to request an AI summary.
        """

        if destination not in DESTINATIONS:
            raise InputError(f"Unsupported destination: {destination}")
        source_url = validate_source_url(url = url)
        adapter = self.adapter_factory(destination, credentials)

        article = self.parse(url = source_url)
        if destination == "notion":
            article = self.build_resolver().resolve_article(article = article)

        tags = [tag for tag in (tags or []) if tag and tag.strip()]
        summary = ArticleSummary()
        if summarize:
            summary = self.summarize(article = article)
            if not tags and summary.tags:
                tags = list(summary.tags)

        remote_id = adapter.save(article = article, source_url = source_url, tags = tags)
        logger.info(
            "article saved: destination = %s, remote_id = %s, blocks = %d",
            destination,
            remote_id,
            len(article.blocks)
        )
        return SaveResult(
            destination = destination,
            remote_id = remote_id,
            title = article.title,
            block_count = len(article.blocks),
            summary = summary.summary,
            tags = tags
        )

    def summarize(self, article: Article) -> ArticleSummary:
        """Request a summary when an LLM is configured.

        Args:
            article: Canonical article.
        """

        if not self.llm_client.is_ready():
            logger.info("LLM is not configured, skip summary")
            return ArticleSummary()
        return self.llm_client.summarize_article(text = article.plain_text(max_chars = SUMMARY_MAX_CHARS))

    def build_resolver(self) -> ImageResolver:
        return build_image_resolver(
            config = self.config,
            http_client = self.http_client,
            strategy = self.image_strategy
        )

    def _build_adapter(self, destination: str, credentials: Optional[SaveCredentials]):
        """Build the destination adapter from merged credentials.

        Args:
            destination: notion or feishu.
            credentials: Optional per-call override.
        """

        if destination == "notion":
            return NotionAdapter.from_credentials(
                credentials = resolve_notion_credentials(config = self.config, credentials = credentials),
                http_client = self.http_client,
                config = self.config
            )
        return FeishuAdapter.from_credentials(
            credentials = resolve_feishu_credentials(config = self.config, credentials = credentials),
            http_client = self.http_client,
            config = self.config
        )
