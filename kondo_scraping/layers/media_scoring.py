"""
Media Relevance Scoring.
Pure URL-based estimate of how likely a media URL shows the property itself.
"""
import re
from typing import Optional
from urllib.parse import unquote, urlparse

from kondo_scraping.utils.urls import get_domain, get_extension


# Keywords that almost certainly mean property photos (one-time boost)
MATCH_KEYWORDS = [
    "area", "comum", "conveniencia", "playground", "piscina", "churrasqueira",
    "barbecue", "gourmet", "hall", "entrance", "lounge", "building", "predio",
    "lobby", "exterior", "fachada", "rua", "street", "condominio",
]

POSITIVE_KEYWORDS = [
    "galeria", "foto", "fotos", "image", "images", "property", "kondo",
    "empreendimento", "imovel", "imóvel", "sala", "quarto", "suite", "cozinha",
    "banheiro", "varanda", "lazer",
]

NEGATIVE_KEYWORDS = [
    "logo", "icon", "avatar", "team", "user", "profile", "background", "banner",
    "ads", "advertisement", "institutio", "default", "placeholder", "thumbnail",
    "thumb", "social", "employee", "staff", "office", "company", "apartamento",
    "planta", "blueprint", "artboard",
]

EXTERNAL_VIDEO_DOMAINS = [
    "youtube.com", "youtu.be", "vimeo.com", "dailymotion.com", "twitch.tv",
    "instagram.com", "facebook.com", "tiktok.com",
]

CDN_PATTERNS = [
    "cdn", "cloudflare", "cloudfront", "akamai", "fastly", "imgix", "imagekit",
    "s3", "amazonaws", "digitalocean",
]

PROPERTY_DOMAIN_PATTERNS = [
    "imovel", "imoveis", "imobiliaria", "construtora", "incorporadora",
    "empreendimento", "residencial", "condominio", "realty", "homes",
]

BAD_DOMAIN_PATTERNS = [
    "stock", "shutterstock", "getty", "adobe", "pixabay", "unsplash", "pexels",
    "gravatar", "wordpress",
]

EXTENSION_SCORES = {
    "jpg": 1.0, "jpeg": 1.0, "png": 1.0, "avif": 1.0,
    "webp": 0.7, "gif": 0.7,
    "mp4": 0.8, "webm": 0.8, "mov": 0.8, "avi": 0.8,
    "svg": 0.2, "ico": 0.2, "bmp": 0.2,
}

MATCH_BOOST = 0.7
POSITIVE_BOOST = 0.1
NEGATIVE_PENALTY = 0.15
BASE_PATH_SCORE = 0.5
UNSAFE_CHARACTERS = re.compile(r"[\s#%&]")

WEIGHT_EXTENSION = 0.2
WEIGHT_PATH = 0.4
WEIGHT_DOMAIN = 0.3
WEIGHT_LENGTH = 0.1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class MediaRelevanceScorer:
    """Weighted sum of extension, path keywords, domain reputation and URL length."""

    def score(self, url: str, property_domain: Optional[str] = None) -> float:
        if self.is_external_video(url):
            return 0.0

        total = (
            self.score_extension(url) * WEIGHT_EXTENSION
            + self.score_path(url) * WEIGHT_PATH
            + self.score_domain(url, property_domain) * WEIGHT_DOMAIN
            + self.score_length(url) * WEIGHT_LENGTH
        )
        return _clamp(total)

    def is_external_video(self, url: str) -> bool:
        domain = get_domain(url)
        return any(domain == host or domain.endswith("." + host) for host in EXTERNAL_VIDEO_DOMAINS)

    def score_extension(self, url: str) -> float:
        return EXTENSION_SCORES.get(get_extension(url), 0.5)

    def score_path(self, url: str) -> float:
        path = unquote(urlparse(url).path).lower()
        score = BASE_PATH_SCORE

        if any(keyword in path for keyword in MATCH_KEYWORDS):
            score += MATCH_BOOST

        score += POSITIVE_BOOST * sum(1 for keyword in POSITIVE_KEYWORDS if keyword in path)
        score -= NEGATIVE_PENALTY * sum(1 for keyword in NEGATIVE_KEYWORDS if keyword in path)

        filename = path.rsplit("/", 1)[-1]
        if len(filename) > 50:
            score -= 0.1
        if UNSAFE_CHARACTERS.search(filename):
            score -= 0.1

        return _clamp(score)

    def score_domain(self, url: str, property_domain: Optional[str] = None) -> float:
        try:
            host = (urlparse(url.lower()).hostname or "")
        except ValueError:
            return 0.3
        if not host:
            return 0.3

        if property_domain:
            bare = property_domain.lower()
            bare = bare[4:] if bare.startswith("www.") else bare
            if bare and bare in host:
                return 0.95

        if any(pattern in host for pattern in BAD_DOMAIN_PATTERNS):
            return 0.1
        if any(pattern in host for pattern in CDN_PATTERNS):
            return 0.85
        if any(pattern in host for pattern in PROPERTY_DOMAIN_PATTERNS):
            return 0.75
        return 0.5

    def score_length(self, url: str) -> float:
        length = len(url.split("?", 1)[0])
        if length > 200:
            return 0.2
        if length > 150:
            return 0.4
        if length > 100:
            return 0.7
        return 1.0
