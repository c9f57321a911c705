import logging

from typing import Optional

from bs4 import BeautifulSoup
from bs4 import Tag

from data.models import ExtractedContent


logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
DEFAULT_AUTHOR = "Unknown Author"

CONTENT_SELECTORS = (
    "#js_content",
    ".rich_media_content"
)
TITLE_SELECTORS = (
    ("text", "#activity-name"),
    ("meta", 'meta[property="og:title"]'),
    ("text", "title")
)
AUTHOR_SELECTORS = (
    ("text", "#js_name"),
    ("meta", 'meta[name="author"]')
)
EXCERPT_SELECTORS = (
    ("meta", 'meta[name="description"]'),
    ("meta", 'meta[property="og:description"]')
)
STRIPPED_TAGS = ("script", "style")


class ArticleExtractor:
    """Locate article metadata and the main content region in a page."""

    def extract(self, html: str) -> ExtractedContent:
        """Extract metadata and content markup.

        Args:
            html: Full page markup.
        """

        soup = BeautifulSoup(html or "", "html.parser")

        title = self._first_value(soup = soup, selectors = TITLE_SELECTORS) or DEFAULT_TITLE
        author = self._first_value(soup = soup, selectors = AUTHOR_SELECTORS) or DEFAULT_AUTHOR
        excerpt = self._first_value(soup = soup, selectors = EXCERPT_SELECTORS)

        content = self._find_content(soup = soup)
        if content is None:
            logger.warning("no main content container matched: selectors = %s", ", ".join(CONTENT_SELECTORS))
            content_html = ""
        else:
            for element in content.find_all(STRIPPED_TAGS):
                element.decompose()
            content_html = content.decode_contents()

        return ExtractedContent(
            title = title,
            author = author,
            excerpt = excerpt,
            content_html = content_html
        )

    def _find_content(self, soup: BeautifulSoup) -> Optional[Tag]:
        """Return the first matching main content container.

        Args:
            soup: Parsed page.
        """

        for selector in CONTENT_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                return element
        return None

    def _first_value(self, soup: BeautifulSoup, selectors: tuple) -> str:
        """Resolve one field by a prioritized selector list.

        Args:
            soup: Parsed page.
            selectors: (kind, css selector) pairs; kind is text or meta.
        """

        for kind, selector in selectors:
            element = soup.select_one(selector)
            if element is None:
                continue
            if kind == "meta":
                value = str(element.get("content") or "").strip()
            else:
                value = element.get_text().strip()
            if value:
                return value
        return ""
