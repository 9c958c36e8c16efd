"""
Media Dimension Validation.
Reads true pixel dimensions from the first bytes of an image (ranged GET),
without downloading the full asset.
"""
import struct
from dataclasses import dataclass
from typing import Optional

import httpx

from kondo_scraping.config import config
from kondo_scraping.models.scraping import ImageDimensions
from kondo_scraping.utils.logger import LayerLogger


PNG_SIGNATURE = b"\x89PNG"
JPEG_SIGNATURE = b"\xff\xd8\xff"
PROBE_BYTES = 65535
MAX_AVIF_DIMENSION = 50000

# SOF markers carrying frame dimensions (baseline, extended, progressive, lossless)
JPEG_SOF_MARKERS = {0xC0, 0xC1, 0xC2, 0xC3}
# Markers without a length field
JPEG_STANDALONE_MARKERS = {0x01, 0xD8, 0xD9} | set(range(0xD0, 0xD8))


def detect_image_format(data: bytes) -> Optional[str]:
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if data.startswith(JPEG_SIGNATURE):
        return "jpeg"
    if len(data) >= 12 and data[4:8] == b"ftyp" and data[8:12] in (b"avif", b"avis", b"mif1"):
        return "avif"
    return None


def parse_png_dimensions(data: bytes) -> Optional[ImageDimensions]:
    """IHDR is always the first chunk: width and height are big-endian at 16 and 20."""
    if len(data) < 24 or not data.startswith(PNG_SIGNATURE) or data[12:16] != b"IHDR":
        return None
    width, height = struct.unpack(">II", data[16:24])
    return ImageDimensions(width=width, height=height, format="png")


def parse_jpeg_dimensions(data: bytes) -> Optional[ImageDimensions]:
    """Walk the marker segments until a SOF0-SOF3 frame header."""
    if not data.startswith(JPEG_SIGNATURE):
        return None

    offset = 2
    length = len(data)
    while offset < length:
        if data[offset] != 0xFF:
            return None
        # Fill bytes: any number of 0xFF before the marker code
        while offset < length and data[offset] == 0xFF:
            offset += 1
        if offset >= length:
            return None

        marker = data[offset]
        offset += 1
        if marker in JPEG_STANDALONE_MARKERS:
            continue
        if offset + 2 > length:
            return None

        segment_length = struct.unpack(">H", data[offset:offset + 2])[0]
        if marker in JPEG_SOF_MARKERS:
            if offset + 7 > length:
                return None
            height, width = struct.unpack(">HH", data[offset + 3:offset + 7])
            return ImageDimensions(width=width, height=height, format="jpeg")
        if segment_length < 2:
            return None
        offset += segment_length
    return None


def parse_avif_dimensions(data: bytes) -> Optional[ImageDimensions]:
    """
    Best effort: the first `ispe` property box. Its payload is a full box
    (4 bytes version/flags) followed by 32-bit width and height.
    """
    index = data.find(b"ispe")
    if index < 0 or index + 16 > len(data):
        return None
    width, height = struct.unpack(">II", data[index + 8:index + 16])
    if not (0 < width < MAX_AVIF_DIMENSION and 0 < height < MAX_AVIF_DIMENSION):
        return None
    return ImageDimensions(width=width, height=height, format="avif")


PARSERS = {
    "png": parse_png_dimensions,
    "jpeg": parse_jpeg_dimensions,
    "avif": parse_avif_dimensions,
}


def parse_image_dimensions(data: bytes) -> Optional[ImageDimensions]:
    image_format = detect_image_format(data)
    if image_format is None:
        return None
    return PARSERS[image_format](data)


@dataclass
class DimensionValidation:
    valid: bool
    dimensions: Optional[ImageDimensions] = None
    reason: str = ""


class MediaDimensionValidator:
    """Ranged-GET probe plus header parsing for PNG, JPEG and AVIF."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        probe_bytes: int = PROBE_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or config.MEDIA_PROBE_TIMEOUT
        self.probe_bytes = probe_bytes
        self.transport = transport
        self.logger = LayerLogger("media_dimensions")

    async def get_image_dimensions(self, url: str) -> Optional[ImageDimensions]:
        """
        Returns None (never raises) when the probe fails or the format
        is not supported.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url, headers={"Range": f"bytes=0-{self.probe_bytes}"})
        except httpx.HTTPError as e:
            self.logger.log_fetch(url, "dimension_probe", None, "network_error", error=str(e))
            return None

        if response.status_code not in (200, 206):
            self.logger.log_fetch(url, "dimension_probe", response.status_code, "unexpected_status")
            return None

        dimensions = parse_image_dimensions(response.content[: self.probe_bytes + 1])
        self.logger.log_fetch(
            url,
            "dimension_probe",
            response.status_code,
            "parsed" if dimensions else "unsupported_format",
            width=dimensions.width if dimensions else None,
            height=dimensions.height if dimensions else None,
        )
        return dimensions

    async def validate(
        self,
        url: str,
        min_width: Optional[int] = None,
        min_height: Optional[int] = None,
    ) -> DimensionValidation:
        min_width = min_width if min_width is not None else config.MEDIA_MIN_WIDTH
        min_height = min_height if min_height is not None else config.MEDIA_MIN_HEIGHT

        dimensions = await self.get_image_dimensions(url)
        if dimensions is None:
            return DimensionValidation(valid=False, reason="dimensions unavailable")
        if dimensions.width < min_width or dimensions.height < min_height:
            return DimensionValidation(
                valid=False,
                dimensions=dimensions,
                reason=f"{dimensions.width}x{dimensions.height} below {min_width}x{min_height}",
            )
        return DimensionValidation(
            valid=True,
            dimensions=dimensions,
            reason=f"{dimensions.width}x{dimensions.height} meets {min_width}x{min_height}",
        )
