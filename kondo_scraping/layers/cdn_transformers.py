"""
CDN URL transformers.
Each transformer recognises one image CDN and rewrites thumbnail or blurred
variants to the highest-quality variant the CDN will serve.
"""
import re
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from kondo_scraping.models.scraping import ImageDimensions


class CdnTransformer:
    """Base class; subclasses set `name` and implement matches/transform."""

    name = "cdn"

    def matches(self, url: str) -> bool:
        raise NotImplementedError

    def transform(self, url: str) -> str:
        raise NotImplementedError

    def extract_dimensions(self, url: str) -> Optional[ImageDimensions]:
        return None


class WixTransformer(CdnTransformer):
    """
    static.wixstatic.com media URLs carry the rendition in the path:
    /v1/fill/w_300,h_200,al_c,q_80,blur_2/file.jpg
    """

    name = "wix"

    HOSTS = ("static.wixstatic.com", "static.parastorage.com")
    BLUR = re.compile(r",blur_\d+")
    FILL_SIZE = re.compile(r"(/v\d+/fill/)w_\d+,h_\d+(,|/)")
    SIZE = re.compile(r"/fill/w_(\d+),h_(\d+)")

    TARGET_WIDTH = 1920
    TARGET_HEIGHT = 1080

    def matches(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        return host in self.HOSTS

    def transform(self, url: str) -> str:
        url = self.BLUR.sub("", url)
        return self.FILL_SIZE.sub(
            rf"\g<1>w_{self.TARGET_WIDTH},h_{self.TARGET_HEIGHT}\g<2>",
            url,
        )

    def extract_dimensions(self, url: str) -> Optional[ImageDimensions]:
        match = self.SIZE.search(url)
        if not match:
            return None
        return ImageDimensions(width=int(match.group(1)), height=int(match.group(2)), format="wix")


class ImgixTransformer(CdnTransformer):
    """imgix renditions are query parameters: w, h, q, auto, fit."""

    name = "imgix"

    HOST = re.compile(r"\.imgix\.net$", re.IGNORECASE)
    TARGET_WIDTH = "2400"
    TARGET_HEIGHT = "1600"
    TARGET_QUALITY = "90"

    def matches(self, url: str) -> bool:
        return bool(self.HOST.search(urlparse(url).hostname or ""))

    def transform(self, url: str) -> str:
        parsed = urlparse(url)
        params = dict(parse_qsl(parsed.query, keep_blank_values=True))

        if "w" in params or "h" in params:
            params["w"] = self.TARGET_WIDTH
            params["h"] = self.TARGET_HEIGHT
        params["q"] = self.TARGET_QUALITY
        if "compress" in params.get("auto", ""):
            del params["auto"]
        params.setdefault("fit", "max")

        return urlunparse(parsed._replace(query=urlencode(params)))

    def extract_dimensions(self, url: str) -> Optional[ImageDimensions]:
        params = dict(parse_qsl(urlparse(url).query))
        try:
            return ImageDimensions(width=int(params["w"]), height=int(params["h"]), format="imgix")
        except (KeyError, ValueError):
            return None


def default_transformers() -> List[CdnTransformer]:
    return [WixTransformer(), ImgixTransformer()]
