"""
Media download adapter: fetch a media asset and hand it to object storage.
"""
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from kondo_scraping.adapters.stores import ObjectStorage
from kondo_scraping.config import config
from kondo_scraping.errors import FetchError, FetchNetworkError
from kondo_scraping.layers.media_dimensions import parse_image_dimensions
from kondo_scraping.utils.logger import LayerLogger
from kondo_scraping.utils.retry import RetryPolicy


MAX_FILENAME_LENGTH = 100
UNSAFE_FILENAME_CHARACTERS = re.compile(r"[^a-zA-Z0-9._-]")
MAX_CONTENT_BYTES = 100 * 1024 * 1024

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}


def extension_for_content_type(content_type: Optional[str]) -> str:
    mime = (content_type or "image/jpeg").split(";")[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(mime, "jpg")


def build_filename(url: str, content_type: Optional[str] = None) -> str:
    """
    Last path segment, sanitised to [a-zA-Z0-9._-] and cut to 100 chars.
    An extension from the content type is added when the name has none.
    """
    name = urlparse(url).path.rsplit("/", 1)[-1]
    name = UNSAFE_FILENAME_CHARACTERS.sub("_", name)[:MAX_FILENAME_LENGTH]
    if not re.search(r"\.\w+$", name):
        name = f"{name or 'media'}.{extension_for_content_type(content_type)}"
    return name


@dataclass
class MediaFilters:
    min_size_kb: int = field(default_factory=lambda: config.MEDIA_MIN_FILE_SIZE_KB)
    min_resolution: Optional[Tuple[int, int]] = None
    supported_formats: List[str] = field(default_factory=lambda: list(config.MEDIA_SUPPORTED_FORMATS))


@dataclass
class DownloadedMedia:
    filename: str
    cdn_url: str
    content_type: str
    size_bytes: int


class MediaDownloader:
    """Download → filter → upload. Returns None when an asset is skipped or fails."""

    def __init__(
        self,
        storage: ObjectStorage,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.storage = storage
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.transport = transport
        self.retry = retry_policy or RetryPolicy()
        self.logger = LayerLogger("media_downloader")

    async def download_and_upload(
        self,
        url: str,
        kondo_id: int,
        filters: Optional[MediaFilters] = None,
    ) -> Optional[DownloadedMedia]:
        """
        Args:
            url: Media asset URL
            kondo_id: Listing the media belongs to (used in the storage key)
            filters: Size, resolution and format requirements

        Returns:
            DownloadedMedia, or None when the asset was filtered out or failed
        """
        filters = filters or MediaFilters()
        try:
            content, content_type = await self.retry.with_retry(
                lambda: self._download(url),
                operation="media_download",
            )
        except FetchError as e:
            self.logger.log_error(str(e), error_type=e.error_type, url=url, kondo_id=kondo_id)
            return None

        filename = build_filename(url, content_type)
        skip_reason = self._skip_reason(filename, content, filters)
        if skip_reason:
            self.logger.log_rejection(url, skip_reason)
            return None

        key = f"kondos/{kondo_id}/kondo-{int(time.time() * 1000)}-{filename}"
        cdn_url = await self.storage.upload(key, content, content_type)
        self.logger.log_action(
            "media_upload",
            "completed",
            url=url,
            kondo_id=kondo_id,
            cdn_url=cdn_url,
            size_bytes=len(content),
        )
        return DownloadedMedia(
            filename=filename,
            cdn_url=cdn_url,
            content_type=content_type,
            size_bytes=len(content),
        )

    async def _download(self, url: str) -> Tuple[bytes, str]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url, headers={"User-Agent": "Kondos-API/1.0"})
        except httpx.HTTPError as e:
            raise FetchNetworkError(f"Failed to download {url}: {e}", url=url, platform="media") from e

        if response.status_code >= 400:
            raise FetchError(
                f"Media download returned HTTP {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
                platform="media",
            )
        content_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        return response.content, content_type

    def _skip_reason(self, filename: str, content: bytes, filters: MediaFilters) -> Optional[str]:
        extension = filename.rsplit(".", 1)[-1].lower()
        supported = [fmt.lower() for fmt in filters.supported_formats]
        if supported and extension not in supported:
            return f"unsupported format .{extension}"
        if len(content) > MAX_CONTENT_BYTES:
            return f"file too large ({len(content)} bytes)"
        if filters.min_size_kb and len(content) < filters.min_size_kb * 1024:
            return f"file too small ({len(content) // 1024}KB < {filters.min_size_kb}KB)"
        if filters.min_resolution:
            dimensions = parse_image_dimensions(content)
            min_width, min_height = filters.min_resolution
            if dimensions and (dimensions.width < min_width or dimensions.height < min_height):
                return f"resolution {dimensions.width}x{dimensions.height} below {min_width}x{min_height}"
        return None
