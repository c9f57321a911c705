import abc
import logging
import dataclasses
import urllib.parse

from typing import List
from typing import Sequence
from concurrent.futures import ThreadPoolExecutor

from config.config import AppConfig
from data.models import Article
from data.models import Block
from data.models import Image
from integrations.image_host import ImageDownloader
from integrations.image_host import ImgurUploader
from utils.chunking import chunk_items
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)


def build_proxy_url(proxy_host: str, source_url: str) -> str:
    """Rewrite one image URL through a public image proxy.

    Args:
        proxy_host: Proxy host name, e.g. images.weserv.nl.
        source_url: Original image URL.
    """

    host = proxy_host.strip().rstrip("/")
    if "://" in host:
        host = host.split("://", 1)[1]
    return f"https://{host}/?url={urllib.parse.quote(source_url, safe = '')}"


class ImageResolver(abc.ABC):
    """Produce a destination-usable URL for every image block."""

    def resolve_article(self, article: Article) -> Article:
        """Return a copy of the article with image blocks resolved.

        Args:
            article: Canonical article.
        """

        if not article.images:
            return article
        return dataclasses.replace(article, blocks = tuple(self.resolve(blocks = article.blocks)))

    @abc.abstractmethod
    def resolve(self, blocks: Sequence[Block]) -> List[Block]:
        """Resolve image blocks, keeping every block at its position.

        Args:
            blocks: Canonical blocks.
        """


class PassthroughImageResolver(ImageResolver):
    """Keep original image URLs untouched."""

    def resolve(self, blocks: Sequence[Block]) -> List[Block]:
        return list(blocks)


class ProxyImageResolver(ImageResolver):
    """Rewrite image URLs through an image proxy, without network calls.

    Args:
        proxy_host: Proxy host name.
    """

    def __init__(self, proxy_host: str = "images.weserv.nl") -> None:
        self.proxy_host = proxy_host

    def resolve(self, blocks: Sequence[Block]) -> List[Block]:
        result: List[Block] = []
        for block in blocks:
            if isinstance(block, Image):
                block = block.resolved(build_proxy_url(self.proxy_host, block.source_url))
            result.append(block)
        return result


class RehostImageResolver(ImageResolver):
    """Download images with hot-link headers and re-upload them to an image host.

    Uploads run in sequential batches of `batch_size` concurrent uploads.
    A failed image keeps its original URL and is marked failed.

    Args:
        downloader: Hot-link aware image downloader.
        uploader: Public image host uploader.
        batch_size: Concurrent uploads per batch.
    """

    def __init__(
        self,
        downloader: ImageDownloader,
        uploader: ImgurUploader,
        batch_size: int = 3
    ) -> None:
        self.downloader = downloader
        self.uploader = uploader
        self.batch_size = max(1, batch_size)

    def resolve(self, blocks: Sequence[Block]) -> List[Block]:
        result: List[Block] = list(blocks)
        positions = [index for index, block in enumerate(result) if isinstance(block, Image)]
        if not positions:
            return result

        logger.info("re-hosting images: count = %d, batch_size = %d", len(positions), self.batch_size)
        batches = chunk_items(positions, self.batch_size)
        with ThreadPoolExecutor(max_workers = self.batch_size) as executor:
            for batch_index, batch in enumerate(batches, start = 1):
                for position in batch:
                    result[position] = result[position].uploading()
                futures = {
                    position: executor.submit(self._rehost, result[position])
                    for position in batch
                }
                for position, future in futures.items():
                    result[position] = future.result()
                logger.info("re-host batch done: %d/%d", batch_index, len(batches))

        return result

    def _rehost(self, image: Image) -> Image:
        """Re-host one image, never raising.

        Args:
            image: Image block in uploading state.
        """

        try:
            downloaded = self.downloader.download(url = image.source_url)
            new_url = self.uploader.upload(image = downloaded)
        except Exception as exc:
            logger.warning("image re-host failed, keep original url %s: %s", image.source_url[:80], str(exc))
            return image.failed()
        return image.resolved(new_url)


def build_image_resolver(config: AppConfig, http_client: HttpClient, strategy: str = "") -> ImageResolver:
    """Create the image resolver selected by configuration.

    Args:
        config: Runtime configuration.
        http_client: Shared HTTP client.
        strategy: Optional override of config.image_strategy.
    """

    selected = (strategy or config.image_strategy or "proxy").lower()
    if selected == "none":
        return PassthroughImageResolver()
    if selected == "rehost":
        uploader = ImgurUploader(client_id = config.imgur_client_id, http_client = http_client)
        if not uploader.is_ready():
            logger.warning("IMGUR_CLIENT_ID is empty, falling back to proxy image strategy")
            return ProxyImageResolver(proxy_host = config.image_proxy_host)
        return RehostImageResolver(
            downloader = ImageDownloader(http_client = http_client),
            uploader = uploader,
            batch_size = config.image_upload_batch_size
        )
    return ProxyImageResolver(proxy_host = config.image_proxy_host)
