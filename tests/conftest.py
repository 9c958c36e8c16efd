"""
Shared fixtures and fakes for the scraping pipeline tests.
"""
import struct
from typing import Dict, List, Optional, Tuple, Union

import pytest

from kondo_scraping.adapters.media_downloader import DownloadedMedia
from kondo_scraping.adapters.platform import FetchMetadata, FetchOptions, FetchProvider, FetchResponse
from kondo_scraping.adapters.stores import InMemoryKondoStore, InMemoryMediaStore, InMemoryObjectStorage
from kondo_scraping.layers.media_dimensions import DimensionValidation
from kondo_scraping.layers.media_heuristics import MediaHeuristics
from kondo_scraping.layers.orchestration import ScrapingOrchestrator
from kondo_scraping.models.scraping import ImageDimensions
from kondo_scraping.utils.retry import RetryPolicy


PageContent = Union[str, Exception]

SOMATTOS_URL = "https://somattos.com.br/empreendimentos/reserva-verde"
PISCINA_URL = "https://somattos.com.br/wp-content/uploads/piscina-1.jpg"
FACHADA_URL = "https://somattos.com.br/wp-content/uploads/fachada.jpg"
YOUTUBE_URL = "https://www.youtube.com/embed/abc123"


class FakeFetchProvider(FetchProvider):
    """Serves canned HTML per URL; rendered pages can differ from static ones."""

    name = "fake"

    def __init__(
        self,
        pages: Optional[Dict[str, PageContent]] = None,
        rendered_pages: Optional[Dict[str, PageContent]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__()
        self.pages = pages or {}
        self.rendered_pages = rendered_pages or {}
        self.headers = headers or {}
        self.calls: List[Tuple[str, bool]] = []

    async def fetch_html(self, url: str, options: Optional[FetchOptions] = None) -> FetchResponse:
        options = options or FetchOptions()
        self.calls.append((url, options.render_js))
        source = self.rendered_pages if options.render_js and url in self.rendered_pages else self.pages
        content = source.get(url, "<html><body></body></html>")
        if isinstance(content, Exception):
            raise content
        return FetchResponse(
            html=content,
            metadata=FetchMetadata(
                status_code=200,
                response_time_ms=5,
                rendered_js=options.render_js,
                headers=dict(self.headers),
            ),
        )


class FakeDimensionValidator:
    """Dimension probe answering from a URL → (width, height) table."""

    def __init__(self, sizes: Optional[Dict[str, Tuple[int, int]]] = None, min_width=400, min_height=300):
        self.sizes = sizes or {}
        self.min_width = min_width
        self.min_height = min_height
        self.probed: List[str] = []

    async def validate(self, url, min_width=None, min_height=None):
        self.probed.append(url)
        if url not in self.sizes:
            return DimensionValidation(valid=False, reason="dimensions unavailable")
        width, height = self.sizes[url]
        dimensions = ImageDimensions(width=width, height=height, format="jpeg")
        valid = width >= self.min_width and height >= self.min_height
        return DimensionValidation(valid=valid, dimensions=dimensions, reason=f"{width}x{height}")


class FakeDownloader:
    """Pretends every download succeeds and uploads to a fake CDN."""

    def __init__(self, fail_urls: Optional[List[str]] = None):
        self.fail_urls = set(fail_urls or [])
        self.downloaded: List[str] = []

    async def download_and_upload(self, url, kondo_id, filters=None):
        if url in self.fail_urls:
            return None
        self.downloaded.append(url)
        filename = url.rsplit("/", 1)[-1]
        return DownloadedMedia(
            filename=filename,
            cdn_url=f"https://cdn.kondo.test/kondos/{kondo_id}/{filename}",
            content_type="image/jpeg",
            size_bytes=50_000,
        )


async def no_sleep(seconds: float) -> None:
    return None


def make_png(width: int, height: int) -> bytes:
    """Minimal PNG header: signature + IHDR chunk."""
    ihdr = struct.pack(">II", width, height) + b"\x08\x02\x00\x00\x00"
    return b"\x89PNG\r\n\x1a\n" + struct.pack(">I", 13) + b"IHDR" + ihdr + b"\x00\x00\x00\x00"


def make_jpeg(width: int, height: int) -> bytes:
    """SOI, an APP0 segment, then a SOF0 frame header."""
    app0 = b"\xff\xe0" + struct.pack(">H", 16) + b"JFIF\x00" + b"\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    sof0 = b"\xff\xc0" + struct.pack(">HBHH", 17, 8, height, width) + b"\x03" + b"\x00" * 9
    return b"\xff\xd8" + app0 + sof0 + b"\xff\xd9"


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, delay_ms=0, backoff_multiplier=2, sleep=no_sleep)


@pytest.fixture
def heuristics():
    return MediaHeuristics()


@pytest.fixture
def kondo_store():
    return InMemoryKondoStore([
        {
            "id": 1,
            "url": SOMATTOS_URL,
            "status": "scraping",
            "name": "Reserva Verde",
            "slug": "reserva-verde",
            "description": "",
            "lot_avg_price": 0,
            "featured_image": None,
        },
        {"id": 2, "url": None, "status": "scraping", "name": "Sem URL"},
        {"id": 3, "url": "https://example.com/imovel", "status": "done", "name": "Finished"},
    ])


@pytest.fixture
def media_store():
    return InMemoryMediaStore()


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def somattos_html():
    return """
    <html>
      <head>
        <title>Reserva Verde - Somattos</title>
        <meta property="og:description" content="Condomínio exclusivo com piscina e academia, a 10 minutos do centro.">
      </head>
      <body>
        <h1>Reserva Verde</h1>
        <div class="endereco">Rua das Acácias, 250</div>
        <div class="cidade">Nova Lima</div>
        <div class="preco">R$ 450.000,00</div>
        <p>Casas com piscina, churrasqueira e portaria 24h. Financiamento facilitado.</p>
        <div class="gallery">
          <img src="/wp-content/uploads/piscina-1.jpg" alt="Piscina">
          <img src="/wp-content/uploads/fachada.jpg" alt="Fachada">
          <img src="/wp-content/themes/somattos/logo.png" alt="Somattos">
        </div>
        <iframe src="https://www.youtube.com/embed/abc123"></iframe>
      </body>
    </html>
    """


@pytest.fixture
def fetch_provider(somattos_html):
    return FakeFetchProvider(pages={SOMATTOS_URL: somattos_html}, headers={"etag": '"v1"'})


@pytest.fixture
def dimension_validator():
    return FakeDimensionValidator({
        PISCINA_URL: (1600, 1067),
        FACHADA_URL: (320, 240),
    })


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def orchestrator(
    kondo_store,
    media_store,
    fetch_provider,
    heuristics,
    retry_policy,
    dimension_validator,
    downloader,
):
    return ScrapingOrchestrator(
        kondo_store=kondo_store,
        media_store=media_store,
        fetch_provider=fetch_provider,
        heuristics=heuristics,
        retry_policy=retry_policy,
        dimension_validator=dimension_validator,
        downloader=downloader,
        sleep=no_sleep,
    )
