import re
import logging

from core.exceptions import FetchError
from core.exceptions import HttpRequestError
from utils.http_client import BROWSER_USER_AGENT
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

IMG_TAG_PATTERN = re.compile(r"<img\b[^>]*>", flags = re.IGNORECASE)
PLAIN_SRC_ATTR_PATTERN = re.compile(
    r"""\ssrc\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""",
    flags = re.IGNORECASE
)
LAZY_SRC_ATTR_PATTERN = re.compile(r"\bdata-src\s*=", flags = re.IGNORECASE)


def normalize_lazy_images(html: str) -> str:
    """Promote lazy-loading `data-src` attributes to `src` on img tags.

    A placeholder `src` on the same tag is dropped so the real image wins.

    Args:
        html: Raw page markup.
    """

    def _rewrite(match: re.Match) -> str:
        tag = match.group(0)
        if not LAZY_SRC_ATTR_PATTERN.search(tag):
            return tag
        tag = PLAIN_SRC_ATTR_PATTERN.sub("", tag)
        return LAZY_SRC_ATTR_PATTERN.sub("src=", tag, count = 1)

    return IMG_TAG_PATTERN.sub(_rewrite, html)


class ArticleFetcher:
    """Fetch article markup with browser-like headers.

    Args:
        http_client: Shared HTTP client.
    """

    DEFAULT_HEADERS = {
        "User-Agent": BROWSER_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8"
    }

    def __init__(self, http_client: HttpClient) -> None:
        self.http_client = http_client

    def fetch_html(self, url: str) -> str:
        """Fetch one page and return normalized markup.

        Args:
            url: Source article URL.
        """

        try:
            response = self.http_client.request(
                method = "GET",
                url = url,
                headers = dict(self.DEFAULT_HEADERS)
            )
        except HttpRequestError as exc:
            raise FetchError(f"Failed to fetch source page {url}: {str(exc)}") from exc

        html = response.text
        logger.info(
            "fetched source page: url = %s, status = %d, length = %d",
            url,
            response.status_code,
            len(html)
        )
        if len(html) < 500:
            logger.warning("source page looks too short: %s", html[:200])

        return normalize_lazy_images(html)
