import enum
import dataclasses

from dataclasses import dataclass
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union


MAX_RUN_CHARS = 2000


@dataclass(frozen = True)
class TextRun:
    """One styled run of text inside a block.

    Content longer than MAX_RUN_CHARS is truncated on construction.

    Args:
        content: Run text.
        bold: Bold annotation.
        italic: Italic annotation.
        strikethrough: Strikethrough annotation.
        underline: Underline annotation.
        link: Optional hyperlink target.
    """

    content: str
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    link: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.content) > MAX_RUN_CHARS:
            object.__setattr__(self, "content", self.content[:MAX_RUN_CHARS])

    @property
    def has_annotations(self) -> bool:
        return self.bold or self.italic or self.strikethrough or self.underline


RichText = Tuple[TextRun, ...]


def plain_rich_text(text: str) -> RichText:
    """Build a single unstyled run.

    Args:
        text: Run text.
    """

    return (TextRun(content = text),)


def rich_text_to_plain(rich_text: RichText) -> str:
    """Join run contents into plain text.

    Args:
        rich_text: Runs to join.
    """

    return "".join(run.content for run in rich_text)


@dataclass(frozen = True)
class Heading:
    level: int
    text: RichText

    def __post_init__(self) -> None:
        object.__setattr__(self, "level", min(max(int(self.level), 1), 3))


@dataclass(frozen = True)
class Paragraph:
    text: RichText


@dataclass(frozen = True)
class ListItem:
    ordered: bool
    text: RichText


@dataclass(frozen = True)
class Quote:
    text: RichText


class ImageState(str, enum.Enum):
    """Resolution state of one image block."""

    PENDING = "pending"
    UPLOADING = "uploading"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen = True)
class Image:
    """Image reference discovered in the source markup.

    Args:
        source_url: Original absolute image URL, unique within one article.
        resolved_url: URL the destination should fetch, once resolved.
        state: Resolution state.
    """

    source_url: str
    resolved_url: str = ""
    state: ImageState = ImageState.PENDING

    @property
    def url(self) -> str:
        """Return the best known URL for the destination.

        Args:
            self: Image block.
        """

        if self.state == ImageState.RESOLVED and self.resolved_url:
            return self.resolved_url
        return self.source_url

    def uploading(self) -> "Image":
        return dataclasses.replace(self, state = ImageState.UPLOADING)

    def resolved(self, url: str) -> "Image":
        return dataclasses.replace(self, resolved_url = url, state = ImageState.RESOLVED)

    def failed(self) -> "Image":
        return dataclasses.replace(self, resolved_url = "", state = ImageState.FAILED)


@dataclass(frozen = True)
class Divider:
    pass


Block = Union[Heading, Paragraph, ListItem, Quote, Image, Divider]
TEXT_BLOCK_TYPES = (Heading, Paragraph, ListItem, Quote)


def block_plain_text(block: Block) -> str:
    """Return plain text of a text-bearing block, empty otherwise.

    Args:
        block: Canonical block.
    """

    if isinstance(block, TEXT_BLOCK_TYPES):
        return rich_text_to_plain(block.text)
    return ""


@dataclass(frozen = True)
class ExtractedContent:
    """Extractor output for one source page.

    Args:
        title: Article title.
        author: Article author.
        excerpt: Short description.
        content_html: Inner markup of the main content container.
    """

    title: str
    author: str
    excerpt: str
    content_html: str


@dataclass(frozen = True)
class Article:
    """Canonical article handed to exactly one destination adapter.

    Args:
        title: Article title.
        author: Article author.
        excerpt: Short description.
        blocks: Ordered canonical blocks.
    """

    title: str
    author: str
    excerpt: str
    blocks: Tuple[Block, ...] = ()

    @property
    def images(self) -> List[Image]:
        return [block for block in self.blocks if isinstance(block, Image)]

    def plain_text(self, max_chars: int = 0) -> str:
        """Join block texts with newlines.

        Args:
            max_chars: Optional maximum length, 0 means unlimited.
        """

        text = "\n".join(
            value for value in (block_plain_text(block) for block in self.blocks) if value
        )
        if max_chars > 0:
            return text[:max_chars]
        return text


@dataclass
class ArticleSummary:
    """AI summary output.

    Args:
        summary: Short summary text.
        tags: Suggested tags.
    """

    summary: str = ""
    tags: List[str] = dataclasses.field(default_factory = list)


@dataclass
class SaveResult:
    """Final result of one save run.

    Args:
        destination: notion or feishu.
        remote_id: Created page id or record id.
        title: Article title.
        block_count: Canonical block count written.
        summary: Optional AI summary.
        tags: Tags written to the destination.
    """

    destination: str
    remote_id: str
    title: str
    block_count: int
    summary: str = ""
    tags: List[str] = dataclasses.field(default_factory = list)
