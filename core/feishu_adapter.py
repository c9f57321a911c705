import math
import time
import logging

from dataclasses import dataclass
from typing import Dict
from typing import List
from typing import Optional

from config.config import AppConfig
from core.error_translator import translate_feishu_error
from core.exceptions import ApiResponseError
from core.exceptions import FetchError
from core.exceptions import HttpRequestError
from core.exceptions import InputError
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
from data.models import plain_rich_text
from integrations.feishu_api import BitableService
from integrations.feishu_api import DocWriterService
from integrations.feishu_api import FeishuAuthClient
from integrations.feishu_api import MediaService
from integrations.image_host import ImageDownloader
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

BLOCK_TYPE_TEXT = 2
BLOCK_TYPE_HEADING_BASE = 2
BLOCK_TYPE_BULLET = 6
BLOCK_TYPE_ORDERED = 7
BLOCK_TYPE_QUOTE = 9
BLOCK_TYPE_DIVIDER = 22
BLOCK_TYPE_IMAGE = 27

DEFAULT_DOC_TITLE = "未命名文章"
SOURCE_PREFIX = "来源: "
REMOTE_ERRORS = (ApiResponseError, HttpRequestError)

FIELD_TITLE = "标题"
FIELD_DOC_LINK = "文档链接"
FIELD_SOURCE_LINK = "链接"
FIELD_SAVED_AT = "保存时间"
FIELD_TAGS = "标签"


@dataclass
class FeishuCredentials:
    """Per-call Feishu credentials.

    Args:
        app_id: Feishu app id.
        app_secret: Feishu app secret.
        app_token: Bitable app token.
        table_id: Bitable table id.
    """

    app_id: str
    app_secret: str
    app_token: str
    table_id: str = ""


@dataclass
class ImageUpload:
    """Two-phase state of one image placeholder.

    Args:
        position: Index in the translated child list.
        image: Canonical image block.
        block_id: Created placeholder block id.
    """

    position: int
    image: Image
    block_id: str = ""


def to_feishu_elements(rich_text: RichText) -> List[dict]:
    """Translate canonical runs into Feishu text elements.

    Args:
        rich_text: Canonical runs.
    """

    elements = []
    for run in rich_text:
        if not run.content:
            continue
        style = {}
        if run.bold:
            style["bold"] = True
        if run.italic:
            style["italic"] = True
        if run.strikethrough:
            style["strikethrough"] = True
        if run.underline:
            style["underline"] = True
        if run.link:
            style["link"] = {"url": run.link}
        text_run = {"content": run.content}
        if style:
            text_run["text_element_style"] = style
        elements.append({"text_run": text_run})

    if not elements:
        return [{"text_run": {"content": " "}}]
    return elements


def to_feishu_block(block: Block) -> dict:
    """Translate one canonical block into a Feishu docx block.

    Args:
        block: Canonical block.
    """

    if isinstance(block, Heading):
        key = f"heading{block.level}"
        return {
            "block_type": BLOCK_TYPE_HEADING_BASE + block.level,
            key: {"elements": to_feishu_elements(block.text)}
        }
    if isinstance(block, Paragraph):
        return {"block_type": BLOCK_TYPE_TEXT, "text": {"elements": to_feishu_elements(block.text)}}
    if isinstance(block, ListItem):
        if block.ordered:
            return {"block_type": BLOCK_TYPE_ORDERED, "ordered": {"elements": to_feishu_elements(block.text)}}
        return {"block_type": BLOCK_TYPE_BULLET, "bullet": {"elements": to_feishu_elements(block.text)}}
    if isinstance(block, Quote):
        return {"block_type": BLOCK_TYPE_QUOTE, "quote": {"elements": to_feishu_elements(block.text)}}
    if isinstance(block, Image):
        return {"block_type": BLOCK_TYPE_IMAGE, "image": {}}
    if isinstance(block, Divider):
        return {"block_type": BLOCK_TYPE_DIVIDER, "divider": {}}
    raise TypeError(f"Unsupported block type: {type(block).__name__}")


def build_source_block(source_url: str) -> Paragraph:
    """Build the synthetic source link text block.

    Args:
        source_url: Original article URL.
    """

    return Paragraph(
        text = (
            TextRun(content = SOURCE_PREFIX),
            TextRun(content = source_url, link = source_url)
        )
    )


class FeishuAdapter:
    """Write one article as a Feishu docx document plus one Bitable record.

    Args:
        doc_writer: Docx service.
        media: Drive media service.
        bitable: Bitable service.
        table_id: Bitable table id.
        downloader: Image downloader with hot-link headers.
    """

    def __init__(
        self,
        doc_writer: DocWriterService,
        media: MediaService,
        bitable: BitableService,
        table_id: str,
        downloader: ImageDownloader
    ) -> None:
        self.doc_writer = doc_writer
        self.media = media
        self.bitable = bitable
        self.table_id = table_id
        self.downloader = downloader

    @classmethod
    def from_credentials(
        cls,
        credentials: FeishuCredentials,
        http_client: HttpClient,
        config: Optional[AppConfig] = None
    ) -> "FeishuAdapter":
        """Build adapter and its services from per-call credentials.

        Args:
            credentials: Feishu credentials.
            http_client: Shared HTTP client.
            config: Optional runtime configuration.
        """

        missing = [
            name for name, value in (
                ("app_id", credentials.app_id),
                ("app_secret", credentials.app_secret),
                ("app_token", credentials.app_token)
            ) if not value
        ]
        if missing:
            raise InputError(f"Missing Feishu credentials: {', '.join(missing)}")

        config = config or AppConfig()
        base_url = config.feishu_base_url
        auth_client = FeishuAuthClient(
            app_id = credentials.app_id,
            app_secret = credentials.app_secret,
            base_url = base_url,
            http_client = http_client
        )
        return cls(
            doc_writer = DocWriterService(
                auth_client = auth_client,
                http_client = http_client,
                base_url = base_url,
                folder_token = config.feishu_folder_token
            ),
            media = MediaService(auth_client = auth_client, http_client = http_client, base_url = base_url),
            bitable = BitableService(
                auth_client = auth_client,
                http_client = http_client,
                base_url = base_url,
                app_token = credentials.app_token
            ),
            table_id = credentials.table_id,
            downloader = ImageDownloader(http_client = http_client)
        )

    def build_children(self, article: Article, source_url: str) -> List[dict]:
        """Translate the source block plus article blocks in order.

        Args:
            article: Canonical article.
            source_url: Original article URL.
        """

        blocks = [build_source_block(source_url = source_url), *article.blocks]
        return [to_feishu_block(block) for block in blocks]

    def save(self, article: Article, source_url: str, tags: Optional[List[str]] = None) -> str:
        """Create the document, upload images and write the index record.

        Args:
            article: Canonical article.
            source_url: Original article URL.
            tags: Optional tag names.
        """

        if not self.table_id:
            raise InputError("Missing Feishu credentials: table_id")

        title = article.title or DEFAULT_DOC_TITLE
        try:
            doc_meta = self.doc_writer.create_doc_with_meta(title = title)
        except REMOTE_ERRORS as exc:
            raise translate_feishu_error(exc) from exc

        document_id = doc_meta["document_id"]
        logger.info("feishu document created: document_id = %s", document_id)

        children = self.build_children(article = article, source_url = source_url)
        uploads = [
            ImageUpload(position = position, image = block)
            for position, block in enumerate(article.blocks, start = 1)
            if isinstance(block, Image)
        ]

        try:
            root_block_id = self.doc_writer.get_root_block_id(document_id = document_id)
            block_ids = self.doc_writer.append_children(
                document_id = document_id,
                parent_block_id = root_block_id,
                blocks = children
            )
        except REMOTE_ERRORS as exc:
            logger.error(
                "partial write: feishu document %s kept with %d/%d chunks: %s",
                document_id,
                getattr(exc, "written_batches", 0),
                getattr(exc, "total_batches", math.ceil(len(children) / self.doc_writer.batch_size)),
                str(exc)
            )
            raise translate_feishu_error(exc, created_id = document_id) from exc

        shift = 0
        for upload in uploads:
            if upload.position < len(block_ids):
                upload.block_id = block_ids[upload.position]
            shift += self._upload_image(
                document_id = document_id,
                root_block_id = root_block_id,
                upload = upload,
                shift = shift
            )

        fields = {
            FIELD_TITLE: title,
            FIELD_DOC_LINK: {"link": doc_meta["url"], "text": title},
            FIELD_SOURCE_LINK: {"link": source_url, "text": source_url},
            FIELD_SAVED_AT: int(time.time() * 1000)
        }
        clean_tags = [tag.strip() for tag in tags or [] if tag and tag.strip()]
        if clean_tags:
            fields[FIELD_TAGS] = ", ".join(clean_tags)

        try:
            record_id = self.bitable.create_record(table_id = self.table_id, fields = fields)
        except REMOTE_ERRORS as exc:
            logger.error("partial write: feishu document %s kept, record write failed: %s", document_id, str(exc))
            raise translate_feishu_error(exc, created_id = document_id) from exc

        logger.info("feishu record created: record_id = %s, document_id = %s", record_id, document_id)
        return record_id

    def _upload_image(self, document_id: str, root_block_id: str, upload: ImageUpload, shift: int = 0) -> int:
        """Fill one image placeholder, degrading it to a URL text block on failure.

        Returns how many extra root children this image left behind, which
        shifts the index of every later placeholder.

        Args:
            document_id: Feishu document id.
            root_block_id: Root block id holding the placeholder.
            upload: Placeholder state.
            shift: Extra children left by earlier fallbacks.
        """

        upload.image = upload.image.uploading()
        try:
            if not upload.block_id:
                raise ApiResponseError("image placeholder block id missing")
            downloaded = self.downloader.download(url = upload.image.source_url)
            file_token = self.media.upload_image(
                content = downloaded.content,
                filename = downloaded.filename,
                parent_node = upload.block_id,
                content_type = downloaded.content_type
            )
            self.doc_writer.replace_image(
                document_id = document_id,
                block_id = upload.block_id,
                file_token = file_token
            )
        except (FetchError, ApiResponseError, HttpRequestError) as exc:
            logger.warning("feishu image upload failed, fallback to url text %s: %s", upload.image.source_url[:80], str(exc))
            upload.image = upload.image.failed()
            return self._replace_with_url_text(
                document_id = document_id,
                root_block_id = root_block_id,
                upload = upload,
                shift = shift
            )

        upload.image = upload.image.resolved(file_token)
        return 0

    def _replace_with_url_text(self, document_id: str, root_block_id: str, upload: ImageUpload, shift: int) -> int:
        """Swap a failed image placeholder for a text block carrying the original URL.

        Returns 1 when the text block was inserted but the placeholder stayed.

        Args:
            document_id: Feishu document id.
            root_block_id: Root block id.
            upload: Failed placeholder state.
            shift: Extra children left by earlier fallbacks.
        """

        url = upload.image.source_url
        index = upload.position + shift
        text_block = to_feishu_block(Paragraph(text = plain_rich_text(url)))
        try:
            self.doc_writer.append_children(
                document_id = document_id,
                parent_block_id = root_block_id,
                blocks = [text_block],
                index = index
            )
        except REMOTE_ERRORS as exc:
            logger.warning("feishu image fallback text failed for %s: %s", url[:80], str(exc))
            return 0

        if not upload.block_id:
            return 1
        try:
            self.doc_writer.delete_children(
                document_id = document_id,
                parent_block_id = root_block_id,
                start_index = index + 1,
                end_index = index + 2
            )
        except REMOTE_ERRORS as exc:
            logger.warning("feishu image placeholder kept for %s: %s", url[:80], str(exc))
            return 1
        return 0

    def test_connection(self) -> str:
        """Check credentials and return the table name.

        Args:
            self: Adapter instance.
        """

        if not self.table_id:
            raise InputError("Missing Feishu credentials: table_id")

        try:
            table = self.bitable.get_table(table_id = self.table_id)
        except REMOTE_ERRORS as exc:
            raise translate_feishu_error(exc) from exc
        return str(table.get("name") or self.table_id)

    def list_tables(self) -> List[Dict[str, str]]:
        """List tables of the configured Bitable app.

        Args:
            self: Adapter instance.
        """

        try:
            return self.bitable.list_tables()
        except REMOTE_ERRORS as exc:
            raise translate_feishu_error(exc) from exc
