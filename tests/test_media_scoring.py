"""
Tests for URL-based media relevance scoring.
"""
import pytest

from kondo_scraping.layers.media_scoring import MediaRelevanceScorer


SOMATTOS_DOMAIN = "somattos.com.br"


class TestMediaRelevanceScorer:
    """Tests for MediaRelevanceScorer."""

    def test_property_photo_on_own_domain(self):
        """Test that an amenity photo on the listing's domain scores near the top."""
        score = MediaRelevanceScorer().score(
            "https://somattos.com.br/wp-content/uploads/piscina-1.jpg", SOMATTOS_DOMAIN
        )

        assert score == pytest.approx(0.985, abs=0.001)

    def test_logo_scores_lower_than_photo(self):
        """Test that site chrome ranks below property photos."""
        scorer = MediaRelevanceScorer()

        logo = scorer.score("https://somattos.com.br/wp-content/themes/somattos/logo.png", SOMATTOS_DOMAIN)
        photo = scorer.score("https://somattos.com.br/wp-content/uploads/piscina-1.jpg", SOMATTOS_DOMAIN)

        assert logo == pytest.approx(0.725, abs=0.001)
        assert logo < photo

    def test_external_video_scores_zero(self):
        """Test that embedded platform videos are never ranked as photos."""
        scorer = MediaRelevanceScorer()

        assert scorer.score("https://www.youtube.com/embed/abc123") == 0.0
        assert scorer.score("https://player.vimeo.com/video/42") == 0.0

    def test_score_is_clamped(self):
        """Test that every score lands in [0, 1]."""
        scorer = MediaRelevanceScorer()
        urls = [
            "https://stock.adobe.com/icon-logo-avatar-banner-thumb.svg",
            "https://cdn.site.com.br/galeria/fotos/piscina-fachada-lazer.jpg",
        ]

        for url in urls:
            assert 0.0 <= scorer.score(url) <= 1.0


class TestScoreComponents:
    """Tests for the individual scoring components."""

    def test_extension(self):
        """Test extension scores, with 0.5 for unknown."""
        scorer = MediaRelevanceScorer()

        assert scorer.score_extension("https://a.com/x.JPG") == 1.0
        assert scorer.score_extension("https://a.com/x.webp") == 0.7
        assert scorer.score_extension("https://a.com/x.mp4") == 0.8
        assert scorer.score_extension("https://a.com/x.svg") == 0.2
        assert scorer.score_extension("https://a.com/x") == 0.5

    def test_path_keywords(self):
        """Test match boost, positive boosts and negative penalties."""
        scorer = MediaRelevanceScorer()

        assert scorer.score_path("https://a.com/piscina.jpg") == 1.0
        assert scorer.score_path("https://a.com/galeria/foto.jpg") == pytest.approx(0.7)
        assert scorer.score_path("https://a.com/logo.png") == pytest.approx(0.35)
        assert scorer.score_path("https://a.com/x.jpg") == 0.5

    def test_path_filename_penalties(self):
        """Test penalties for very long and unsafe filenames."""
        scorer = MediaRelevanceScorer()

        assert scorer.score_path("https://a.com/" + "x" * 60 + ".jpg") == pytest.approx(0.4)
        assert scorer.score_path("https://a.com/minha%20foto.jpg") == pytest.approx(0.5)

    def test_domain_reputation(self):
        """Test own-domain, bad, CDN and property-like domains."""
        scorer = MediaRelevanceScorer()

        assert scorer.score_domain("https://img.somattos.com.br/a.jpg", "www.somattos.com.br") == 0.95
        assert scorer.score_domain("https://d1abc.cloudfront.net/a.jpg") == 0.85
        assert scorer.score_domain("https://www.construtoraalpha.com.br/a.jpg") == 0.75
        assert scorer.score_domain("https://example.org/a.jpg") == 0.5
        assert scorer.score_domain("not a url") == 0.3

    def test_bad_domain_checked_before_cdn(self):
        """Test that a stock-photo CDN is still a bad domain."""
        scorer = MediaRelevanceScorer()

        assert scorer.score_domain("https://cdn.shutterstock.com/a.jpg") == 0.1

    def test_length_buckets(self):
        """Test URL length buckets, ignoring the query string."""
        scorer = MediaRelevanceScorer()
        base = "https://a.com/"

        assert scorer.score_length(base + "x.jpg?" + "q" * 300) == 1.0
        assert scorer.score_length(base + "x" * 100) == 0.7
        assert scorer.score_length(base + "x" * 150) == 0.4
        assert scorer.score_length(base + "x" * 200) == 0.2
