import re
import copy
import logging
import dataclasses

from dataclasses import dataclass
from typing import List
from typing import Set

from bs4 import BeautifulSoup
from bs4 import Tag

from data.models import Block
from data.models import Divider
from data.models import Heading
from data.models import Image
from data.models import ListItem
from data.models import Paragraph
from data.models import Quote
from data.models import plain_rich_text


logger = logging.getLogger(__name__)

HEADING_TAG_PATTERN = re.compile(r"^h([1-6])$")
IMAGE_SOURCE_ATTRS = ("src", "data-src", "data-croporisrc")
LIST_TAGS = ("ul", "ol")
DIVIDER_TAGS = ("hr",)


@dataclass
class BuildState:
    """Mutable state owned by exactly one build run.

    Args:
        blocks: Emitted blocks in document order.
        seen_texts: Trimmed texts already emitted.
        seen_images: Image URLs already emitted.
    """

    blocks: List[Block] = dataclasses.field(default_factory = list)
    seen_texts: Set[str] = dataclasses.field(default_factory = set)
    seen_images: Set[str] = dataclasses.field(default_factory = set)


class BlockBuilder:
    """Walk content markup depth-first and emit canonical blocks.

    Text blocks are de-duplicated by exact trimmed text and images by exact
    URL, within a single `build` call only. A failing element is logged and
    skipped; the walk continues with its siblings.
    """

    def build(self, content_html: str) -> List[Block]:
        """Convert content markup into an ordered block list.

        Args:
            content_html: Inner markup of the main content container.
        """

        state = BuildState()
        if not content_html or not content_html.strip():
            return state.blocks

        soup = BeautifulSoup(content_html, "html.parser")
        for child in soup.children:
            if isinstance(child, Tag):
                self._visit(element = child, state = state)

        logger.info(
            "extracted blocks: blocks = %d, images = %d, texts = %d",
            len(state.blocks),
            len(state.seen_images),
            len(state.seen_texts)
        )
        return state.blocks

    def _visit(self, element: Tag, state: BuildState) -> None:
        """Visit one element, isolating failures to that element.

        Args:
            element: Current element.
            state: Run state.
        """

        try:
            self._dispatch(element = element, state = state)
        except Exception as exc:
            logger.warning(
                "skip element <%s> after extraction failure: %s",
                getattr(element, "name", "?"),
                str(exc)
            )

    def _dispatch(self, element: Tag, state: BuildState) -> None:
        """Apply the traversal policy for one element kind.

        Args:
            element: Current element.
            state: Run state.
        """

        tag_name = (element.name or "").lower()

        if tag_name == "img":
            self._visit_image(element = element, state = state)
            return

        heading_match = HEADING_TAG_PATTERN.match(tag_name)
        if heading_match:
            text = element.get_text().strip()
            if self._accept_text(text = text, state = state, min_length = 1):
                state.blocks.append(
                    Heading(level = int(heading_match.group(1)), text = plain_rich_text(text))
                )
            return

        if tag_name in LIST_TAGS:
            ordered = tag_name == "ol"
            for item in element.find_all("li", recursive = False):
                text = item.get_text().strip()
                if self._accept_text(text = text, state = state, min_length = 1):
                    state.blocks.append(ListItem(ordered = ordered, text = plain_rich_text(text)))
            return

        if tag_name == "blockquote":
            text = element.get_text().strip()
            if self._accept_text(text = text, state = state, min_length = 1):
                state.blocks.append(Quote(text = plain_rich_text(text)))
            return

        if tag_name == "p":
            self._visit_paragraph(element = element, state = state)
            return

        if tag_name in DIVIDER_TAGS:
            state.blocks.append(Divider())
            return

        children = [child for child in element.children if isinstance(child, Tag)]
        if children:
            for child in children:
                self._visit(element = child, state = state)
            return

        text = element.get_text().strip()
        if self._accept_text(text = text, state = state, min_length = 2):
            state.blocks.append(Paragraph(text = plain_rich_text(text)))

    def _visit_paragraph(self, element: Tag, state: BuildState) -> None:
        """Emit nested images first, then the paragraph text without images.

        Args:
            element: Paragraph element.
            state: Run state.
        """

        for image in element.find_all("img"):
            self._visit_image(element = image, state = state)

        clone = copy.copy(element)
        for image in clone.find_all("img"):
            image.decompose()

        text = clone.get_text().strip()
        if self._accept_text(text = text, state = state, min_length = 2):
            state.blocks.append(Paragraph(text = plain_rich_text(text)))

    def _visit_image(self, element: Tag, state: BuildState) -> None:
        """Emit one image block for an unseen absolute source URL.

        Args:
            element: Image element.
            state: Run state.
        """

        source_url = self._image_source(element = element)
        if not source_url or source_url in state.seen_images:
            return
        state.seen_images.add(source_url)
        logger.debug("found image: %s", source_url[:80])
        state.blocks.append(Image(source_url = source_url))

    def _image_source(self, element: Tag) -> str:
        """Return the first absolute http(s) URL among source attributes.

        Args:
            element: Image element.
        """

        for attr in IMAGE_SOURCE_ATTRS:
            value = str(element.get(attr) or "").strip()
            if not value:
                continue
            if value.startswith("//"):
                value = f"https:{value}"
            if value.startswith("http://") or value.startswith("https://"):
                return value
        return ""

    def _accept_text(self, text: str, state: BuildState, min_length: int) -> bool:
        """Check length and uniqueness, recording accepted text.

        Args:
            text: Trimmed text.
            state: Run state.
            min_length: Minimum accepted length.
        """

        if len(text) < min_length or text in state.seen_texts:
            return False
        state.seen_texts.add(text)
        return True
