"""Adapters package initialization."""
from kondo_scraping.adapters.platform import (
    FetchMetadata,
    FetchOptions,
    FetchProvider,
    FetchResponse,
    create_fetch_provider,
)
from kondo_scraping.adapters.direct import DirectFetchProvider
from kondo_scraping.adapters.scrapfly import ScrapflyProvider
from kondo_scraping.adapters.scrapingdog import ScrapingDogProvider
from kondo_scraping.adapters.site_cache import FileSiteCache, InMemorySiteCache, SiteCache
from kondo_scraping.adapters.stores import (
    InMemoryKondoStore,
    InMemoryMediaStore,
    InMemoryObjectStorage,
    KondoStore,
    MediaStore,
    ObjectStorage,
)

__all__ = [
    "FetchMetadata",
    "FetchOptions",
    "FetchProvider",
    "FetchResponse",
    "create_fetch_provider",
    "DirectFetchProvider",
    "ScrapflyProvider",
    "ScrapingDogProvider",
    "SiteCache",
    "InMemorySiteCache",
    "FileSiteCache",
    "KondoStore",
    "MediaStore",
    "ObjectStorage",
    "InMemoryKondoStore",
    "InMemoryMediaStore",
    "InMemoryObjectStorage",
]
