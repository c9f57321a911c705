import base64
import logging
import mimetypes
import os
import urllib.parse

from dataclasses import dataclass

from core.exceptions import ApiResponseError
from core.exceptions import FetchError
from core.exceptions import HttpRequestError
from utils.http_client import BROWSER_USER_AGENT
from utils.http_client import HttpClient


logger = logging.getLogger(__name__)

SOURCE_REFERER = "https://mp.weixin.qq.com/"
IMAGE_ACCEPT = "image/webp,image/apng,image/*,*/*;q=0.8"
IMAGE_EXT_BY_CONTENT_TYPE = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp"
}


@dataclass
class DownloadedImage:
    """Image bytes fetched from the source platform.

    Args:
        content: Binary payload.
        content_type: Response MIME type.
        filename: Filename guessed from URL or MIME type.
    """

    content: bytes
    content_type: str
    filename: str


def sniff_image_ext(data: bytes) -> str:
    """Guess image extension from magic bytes.

    Args:
        data: Image bytes.
    """

    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return ".png"
    if data[:3] == b"\xff\xd8\xff":
        return ".jpg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ".gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    return ""


class ImageDownloader:
    """Download images with headers accepted by hot-link protection.

    Args:
        http_client: Shared HTTP client.
        referer: Referer header matching the source platform.
    """

    def __init__(self, http_client: HttpClient, referer: str = SOURCE_REFERER) -> None:
        self.http_client = http_client
        self.referer = referer

    def download(self, url: str) -> DownloadedImage:
        """Fetch one image.

        Args:
            url: Absolute image URL.
        """

        try:
            response = self.http_client.request(
                method = "GET",
                url = url,
                headers = {
                    "User-Agent": BROWSER_USER_AGENT,
                    "Referer": self.referer,
                    "Accept": IMAGE_ACCEPT
                }
            )
        except HttpRequestError as exc:
            raise FetchError(f"Failed to download image {url}: {str(exc)}") from exc

        content = response.body
        if not content:
            raise FetchError(f"Empty image body for {url}")

        content_type = response.content_type
        if content_type and not content_type.startswith("image/") and not sniff_image_ext(content):
            raise FetchError(f"Unexpected content type {content_type} for image {url}")

        return DownloadedImage(
            content = content,
            content_type = content_type or "application/octet-stream",
            filename = self._guess_filename(url = url, content_type = content_type, content = content)
        )

    def _guess_filename(self, url: str, content_type: str, content: bytes) -> str:
        """Build a filename with a plausible image extension.

        Args:
            url: Image URL.
            content_type: Response MIME type.
            content: Image bytes.
        """

        path = urllib.parse.urlparse(url).path
        basename = os.path.basename(path) or "image"
        stem, ext = os.path.splitext(basename)
        if ext and mimetypes.guess_type(basename)[0]:
            return basename
        ext = IMAGE_EXT_BY_CONTENT_TYPE.get(content_type, "") or sniff_image_ext(content) or ".jpg"
        return f"{stem or 'image'}{ext}"


class ImgurUploader:
    """Anonymous image upload to Imgur.

    Args:
        client_id: Imgur application client id.
        http_client: Shared HTTP client.
        endpoint: Upload endpoint.
    """

    def __init__(
        self,
        client_id: str,
        http_client: HttpClient,
        endpoint: str = "https://api.imgur.com/3/image"
    ) -> None:
        self.client_id = (client_id or "").strip()
        self.http_client = http_client
        self.endpoint = endpoint

    def is_ready(self) -> bool:
        return bool(self.client_id)

    def upload(self, image: DownloadedImage) -> str:
        """Upload image bytes and return the public link.

        Args:
            image: Downloaded image.
        """

        response = self.http_client.request(
            method = "POST",
            url = self.endpoint,
            headers = {
                "Authorization": f"Client-ID {self.client_id}"
            },
            json_body = {
                "image": base64.b64encode(image.content).decode("ascii"),
                "type": "base64"
            }
        )
        payload = response.json()
        link = str((payload.get("data") or {}).get("link", "")).strip()
        if not payload.get("success") or not link:
            raise ApiResponseError(
                f"Image host upload failed: {str(payload)[:200]}",
                code = payload.get("status"),
                msg = str((payload.get("data") or {}).get("error", ""))
            )
        return link
