"""
URL and text helpers shared by parsers and the media pipeline.
"""
import re
import unicodedata
from typing import Optional
from urllib.parse import urljoin, urlparse

MAX_URL_LENGTH = 2000

VIDEO_EXTENSIONS = ("mp4", "webm", "ogg", "mov", "avi")
EXTERNAL_VIDEO_HOSTS = ("youtube.com", "youtu.be", "vimeo.com")


def normalize_url(url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """
    Make a media or link URL absolute.

    Protocol-relative URLs become https, relative paths are resolved against
    base_url. data: URIs and anything that does not end up http(s) return None.
    """
    if not url:
        return None
    url = url.strip()
    if not url or url.startswith(("data:", "javascript:", "blob:", "#")):
        return None
    if url.startswith("//"):
        url = f"https:{url}"
    elif not url.lower().startswith(("http://", "https://")):
        if not base_url:
            return None
        url = urljoin(base_url, url)
    if not url.lower().startswith(("http://", "https://")) or len(url) > MAX_URL_LENGTH:
        return None
    return url


def get_domain(url: str) -> str:
    """Hostname without a leading www., lowercased ("" when unparsable)."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def get_extension(url: str) -> str:
    """Lowercased file extension of the URL path, without query string."""
    path = urlparse(url).path
    filename = path.rsplit("/", 1)[-1]
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def is_external_video(url: str) -> bool:
    domain = get_domain(url)
    return any(domain == host or domain.endswith("." + host) for host in EXTERNAL_VIDEO_HOSTS)


def is_video_url(url: str) -> bool:
    """Video if the extension is a video container or the host is a video platform."""
    return get_extension(url) in VIDEO_EXTENSIONS or is_external_video(url)


def slugify(text: str) -> str:
    """ASCII slug: accents stripped, non-alphanumerics collapsed to dashes."""
    normalized = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")
    return re.sub(r"[^a-z0-9]+", "-", stripped).strip("-")
