import logging

from dataclasses import dataclass
from typing import List
from typing import Optional

from config.config import AppConfig
from core.error_translator import translate_notion_error
from core.exceptions import ApiResponseError
from core.exceptions import HttpRequestError
from core.exceptions import InputError
from core.exceptions import SchemaError
from data.models import Article
from data.models import Block
from data.models import Divider
from data.models import Heading
from data.models import Image
from data.models import ListItem
from data.models import Paragraph
from data.models import Quote
from data.models import RichText
from data.models import TextRun
from integrations.notion_api import NotionClient
from utils.chunking import chunk_items
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

NOTION_CHUNK_SIZE = 95
NOTION_PAGE_ICON = "🔗"
DEFAULT_PAGE_TITLE = "Untitled Article"
PREFERRED_TAGS_PROPERTY = "Tags"
REMOTE_ERRORS = (ApiResponseError, HttpRequestError)


@dataclass
class NotionCredentials:
    """Per-call Notion credentials.

    Args:
        api_key: Integration secret.
        database_id: Target database id.
    """

    api_key: str
    database_id: str


@dataclass
class NotionSchema:
    """Resolved database property names.

    Args:
        title_property: Name of the title-typed property.
        tags_property: Name of the multi-select property, empty when absent.
    """

    title_property: str
    tags_property: str = ""


def to_notion_rich_text(rich_text: RichText) -> List[dict]:
    """Translate canonical runs into Notion rich text objects.

    Args:
        rich_text: Canonical runs.
    """

    result = []
    for run in rich_text:
        text_payload = {"content": run.content}
        if run.link:
            text_payload["link"] = {"url": run.link}
        item = {"type": "text", "text": text_payload}
        if run.has_annotations:
            item["annotations"] = {
                "bold": run.bold,
                "italic": run.italic,
                "strikethrough": run.strikethrough,
                "underline": run.underline
            }
        result.append(item)
    return result


def to_notion_block(block: Block) -> dict:
    """Translate one canonical block into a Notion block object.

    Args:
        block: Canonical block.
    """

    if isinstance(block, Heading):
        block_type = f"heading_{block.level}"
        return _text_block(block_type = block_type, rich_text = block.text)
    if isinstance(block, Paragraph):
        return _text_block(block_type = "paragraph", rich_text = block.text)
    if isinstance(block, ListItem):
        block_type = "numbered_list_item" if block.ordered else "bulleted_list_item"
        return _text_block(block_type = block_type, rich_text = block.text)
    if isinstance(block, Quote):
        return _text_block(block_type = "quote", rich_text = block.text)
    if isinstance(block, Image):
        return {
            "object": "block",
            "type": "image",
            "image": {
                "type": "external",
                "external": {"url": block.url}
            }
        }
    if isinstance(block, Divider):
        return {"object": "block", "type": "divider", "divider": {}}
    raise TypeError(f"Unsupported block type: {type(block).__name__}")


def _text_block(block_type: str, rich_text: RichText) -> dict:
    return {
        "object": "block",
        "type": block_type,
        block_type: {
            "rich_text": to_notion_rich_text(rich_text)
        }
    }


def build_source_block(source_url: str) -> Paragraph:
    """Build the synthetic source link paragraph.

    Args:
        source_url: Original article URL.
    """

    return Paragraph(
        text = (
            TextRun(content = "Source: "),
            TextRun(content = source_url, link = source_url)
        )
    )


class NotionAdapter:
    """Write one article as a page of a Notion database.

    Args:
        client: Notion REST client.
        database_id: Target database id.
        chunk_size: Maximum children per create/append call.
    """

    def __init__(
        self,
        client: NotionClient,
        database_id: str,
        chunk_size: int = NOTION_CHUNK_SIZE
    ) -> None:
        self.client = client
        self.database_id = database_id
        self.chunk_size = chunk_size

    @classmethod
    def from_credentials(
        cls,
        credentials: NotionCredentials,
        http_client: HttpClient,
        config: Optional[AppConfig] = None
    ) -> "NotionAdapter":
        """Build adapter from per-call credentials.

        Args:
            credentials: Notion credentials.
            http_client: Shared HTTP client.
            config: Optional runtime configuration for base url and version.
        """

        if not credentials.api_key or not credentials.database_id:
            raise InputError("Notion API key and database id are both required")

        config = config or AppConfig()
        client = NotionClient(
            api_key = credentials.api_key,
            http_client = http_client,
            base_url = config.notion_base_url,
            notion_version = config.notion_version
        )
        return cls(client = client, database_id = credentials.database_id)

    def resolve_schema(self) -> NotionSchema:
        """Find the title property and optional multi-select tag property.

        Args:
            self: Adapter instance.
        """

        try:
            database = self.client.retrieve_database(database_id = self.database_id)
        except REMOTE_ERRORS as exc:
            raise translate_notion_error(exc) from exc

        properties = database.get("properties") or {}
        title_property = next(
            (name for name, prop in properties.items() if (prop or {}).get("type") == "title"),
            ""
        )
        if not title_property:
            available = ", ".join(
                f"{name} ({(prop or {}).get('type', '?')})" for name, prop in properties.items()
            )
            raise SchemaError(
                f"Notion database has no title property. Available properties: {available or 'none'}"
            )

        multi_select = [
            name for name, prop in properties.items() if (prop or {}).get("type") == "multi_select"
        ]
        if PREFERRED_TAGS_PROPERTY in multi_select:
            tags_property = PREFERRED_TAGS_PROPERTY
        else:
            tags_property = multi_select[0] if multi_select else ""

        return NotionSchema(title_property = title_property, tags_property = tags_property)

    def build_children(self, article: Article, source_url: str) -> List[dict]:
        """Translate the source block plus article blocks in order.

        Args:
            article: Canonical article.
            source_url: Original article URL.
        """

        blocks = [build_source_block(source_url = source_url), *article.blocks]
        return [to_notion_block(block) for block in blocks]

    def build_properties(self, schema: NotionSchema, title: str, tags: List[str]) -> dict:
        """Build page properties for the resolved schema.

        Args:
            schema: Resolved schema.
            title: Page title.
            tags: Tag names.
        """

        properties = {
            schema.title_property: {
                "title": [{"text": {"content": title or DEFAULT_PAGE_TITLE}}]
            }
        }
        clean_tags = [tag.replace(",", " ").strip() for tag in tags or []]
        clean_tags = [tag for tag in clean_tags if tag]
        if clean_tags and schema.tags_property:
            properties[schema.tags_property] = {
                "multi_select": [{"name": tag} for tag in clean_tags]
            }
        return properties

    def save(self, article: Article, source_url: str, tags: Optional[List[str]] = None) -> str:
        """Create the page with the first chunk and append remaining chunks in order.

        Args:
            article: Canonical article.
            source_url: Original article URL.
            tags: Optional tag names.
        """

        schema = self.resolve_schema()
        chunks = chunk_items(self.build_children(article = article, source_url = source_url), self.chunk_size)

        try:
            page = self.client.create_page(
                database_id = self.database_id,
                properties = self.build_properties(schema = schema, title = article.title, tags = tags or []),
                children = chunks[0],
                icon = {"type": "emoji", "emoji": NOTION_PAGE_ICON}
            )
        except REMOTE_ERRORS as exc:
            raise translate_notion_error(exc) from exc

        page_id = str(page.get("id", ""))
        logger.info("notion page created: page_id = %s, chunks = %d", page_id, len(chunks))

        for index, chunk in enumerate(chunks[1:], start = 2):
            try:
                self.client.append_block_children(block_id = page_id, children = chunk)
            except REMOTE_ERRORS as exc:
                logger.error(
                    "partial write: notion page %s kept with %d/%d chunks, append failed: %s",
                    page_id,
                    index - 1,
                    len(chunks),
                    str(exc)
                )
                raise translate_notion_error(exc, created_id = page_id) from exc

        return page_id

    def test_connection(self) -> str:
        """Check credentials and return the database title.

        Args:
            self: Adapter instance.
        """

        try:
            database = self.client.retrieve_database(database_id = self.database_id)
        except REMOTE_ERRORS as exc:
            raise translate_notion_error(exc) from exc

        title_items = database.get("title") or []
        if title_items:
            return str(title_items[0].get("plain_text") or "Database")
        return "Database"
