"""
Tests for engine selection: forced names, URL patterns, HTML signatures.
"""
import asyncio

import pytest

from conftest import SOMATTOS_URL, FakeFetchProvider
from kondo_scraping.engines import CanopusEngine, ConartesEngine, SomattosEngine
from kondo_scraping.errors import EngineNotFoundError, FetchNetworkError
from kondo_scraping.layers.engine_selection import EngineSelector, EngineType, MatchedBy


ELEMENTOR_HTML = """
<html><body>
  <div class="elementor-section elementor-element">
    <div class="elementor-widget elementor-widget-heading">
      <h2 class="elementor-heading-title">Residencial Bosque</h2>
    </div>
  </div>
</body></html>
"""

NEXTJS_HTML = """
<html><body>
  <div id="__next"></div>
  <script id="__NEXT_DATA__" type="application/json">{"props": {"pageProps": {}}}</script>
</body></html>
"""


class TestUrlPatterns:
    """Tests for the site-specific URL patterns."""

    def test_somattos(self):
        """Test that only development pages match."""
        assert SomattosEngine.matches_url(SOMATTOS_URL)
        assert not SomattosEngine.matches_url("https://somattos.com.br/contato")

    def test_conartes(self):
        """Test the www host and the empreendimento path."""
        assert ConartesEngine.matches_url("https://www.conartes.com.br/empreendimento/lourdes-prime")
        assert not ConartesEngine.matches_url("https://conartes.com.br/empreendimento/lourdes-prime")

    def test_canopus_excludes_wordpress_paths(self):
        """Test that wp- assets are not development pages."""
        assert CanopusEngine.matches_url("https://canopus.com.br/vert-savassi")
        assert not CanopusEngine.matches_url("https://canopus.com.br/wp-content/uploads/a.jpg")


class TestEngineSelector:
    """Tests for EngineSelector.select."""

    def test_forced_engine_wins(self):
        """Test that a forced name bypasses URL matching, case-insensitively."""
        provider = FakeFetchProvider()

        result = asyncio.run(EngineSelector(provider).select(SOMATTOS_URL, force_engine="Generic"))

        assert result.engine_name == "generic"
        assert result.matched_by == MatchedBy.FORCED
        assert result.confidence == 1.0
        assert provider.calls == []

    def test_unknown_forced_engine(self):
        """Test that an unregistered name raises with the available names."""
        with pytest.raises(EngineNotFoundError, match="somattos"):
            asyncio.run(EngineSelector(FakeFetchProvider()).select(SOMATTOS_URL, force_engine="nope"))

    def test_url_pattern_needs_no_fetch(self):
        """Test that a URL pattern match selects without probing the page."""
        provider = FakeFetchProvider()

        result = asyncio.run(EngineSelector(provider).select(SOMATTOS_URL))

        assert result.engine_name == "somattos"
        assert result.engine_type == EngineType.SITE_SPECIFIC
        assert result.matched_by == MatchedBy.URL_PATTERN
        assert provider.calls == []

    def test_elementor_signature(self):
        """Test that Elementor markup selects the Elementor engine."""
        url = "https://www.residencialbosque.com.br/"
        provider = FakeFetchProvider(pages={url: ELEMENTOR_HTML})

        result = asyncio.run(EngineSelector(provider).select(url))

        assert result.engine_name == "elementor"
        assert result.engine_type == EngineType.FRAMEWORK
        assert result.matched_by == MatchedBy.HTML_SIGNATURE
        assert result.confidence == 0.8
        assert provider.calls == [(url, False)]

    def test_nextjs_signature(self):
        """Test that __NEXT_DATA__ selects the Next.js engine."""
        url = "https://www.vistadolago.com.br/"
        provider = FakeFetchProvider(pages={url: NEXTJS_HTML})

        result = asyncio.run(EngineSelector(provider).select(url))

        assert result.engine_name == "nextjs"
        assert result.confidence == 0.7

    def test_generic_fallback(self):
        """Test that plain pages fall back to the generic engine."""
        url = "https://www.jardinsdovale.com.br/"
        provider = FakeFetchProvider(pages={url: "<html><body><h1>Jardins do Vale</h1></body></html>"})

        result = asyncio.run(EngineSelector(provider).select(url))

        assert result.engine_name == "generic"
        assert result.engine_type == EngineType.GENERIC
        assert result.matched_by == MatchedBy.FALLBACK
        assert result.confidence == 0.3

    def test_failed_probe_falls_back_to_generic(self):
        """Test that a signature fetch failure never aborts selection."""
        url = "https://www.jardinsdovale.com.br/"
        provider = FakeFetchProvider(pages={url: FetchNetworkError("boom", url=url)})

        result = asyncio.run(EngineSelector(provider).select(url))

        assert result.engine_name == "generic"
        assert result.matched_by == MatchedBy.FALLBACK

    def test_selected_engine_shares_collaborators(self, heuristics):
        """Test that the engine is built with the selector's provider and heuristics."""
        provider = FakeFetchProvider()

        result = asyncio.run(EngineSelector(provider, heuristics).select(SOMATTOS_URL))

        assert result.engine.fetch_provider is provider
        assert result.engine.heuristics is heuristics
