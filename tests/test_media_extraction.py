"""
Tests for media discovery: embedded payloads and page markup.
"""
from kondo_scraping.layers.html_media import HtmlMediaConfig, HtmlMediaExtractor, largest_srcset_candidate
from kondo_scraping.layers.structured_media import StructuredMediaExtractor, is_image_url


PAGE_URL = "https://www.construtora.com.br/empreendimentos/vila-serena"


class TestStructuredMediaExtractor:
    """Tests for StructuredMediaExtractor.extract."""

    def test_aldea_payload(self):
        """Test the aldeaData gallery layout."""
        data = {
            "galeria_fotos": {
                "galeria": [
                    {"area_images": [{"url": "https://cdn.aldea.com.br/lazer/piscina.jpg"}]},
                    {"area_images": [{"url": "https://cdn.aldea.com.br/lazer/quadra.jpg"}]},
                ]
            },
            "images": ["https://cdn.aldea.com.br/fachada.png"],
        }

        urls = StructuredMediaExtractor().extract(data, "aldeaData")

        assert urls == [
            "https://cdn.aldea.com.br/lazer/piscina.jpg",
            "https://cdn.aldea.com.br/lazer/quadra.jpg",
            "https://cdn.aldea.com.br/fachada.png",
        ]

    def test_next_data_page_props(self):
        """Test images and gallery lists under props.pageProps."""
        data = {
            "props": {
                "pageProps": {
                    "images": [{"src": "https://cdn.site.com.br/a.jpg"}],
                    "gallery": ["https://cdn.site.com.br/b.webp"],
                }
            }
        }

        urls = StructuredMediaExtractor().extract(data, "__NEXT_DATA__")

        assert urls == ["https://cdn.site.com.br/a.jpg", "https://cdn.site.com.br/b.webp"]

    def test_deep_search_when_layout_unknown(self):
        """Test that unknown payloads are walked for image-like values."""
        data = {
            "empreendimento": {
                "capa": {"image": "//cdn.site.com.br/capa.jpg"},
                "plantas": [{"file": "https://cdn.site.com.br/planta-1.png"}],
                "site": "https://www.site.com.br",
            }
        }

        urls = StructuredMediaExtractor().extract(data, "__INITIAL_STATE__", PAGE_URL)

        assert urls == ["https://cdn.site.com.br/capa.jpg", "https://cdn.site.com.br/planta-1.png"]

    def test_known_source_without_media_falls_back_to_deep_search(self):
        """Test that an empty source-specific result triggers the deep search."""
        data = {"data": [{"bloco": {"image": "https://cdn.site.com.br/f.jpg"}}]}

        urls = StructuredMediaExtractor().extract(data, "__NUXT__")

        assert urls == ["https://cdn.site.com.br/f.jpg"]

    def test_cycles_and_depth_are_bounded(self):
        """Test that self-referencing payloads terminate."""
        data = {"image": "https://cdn.site.com.br/a.jpg", "child": {}}
        data["child"]["parent"] = data

        urls = StructuredMediaExtractor().extract(data)

        assert urls == ["https://cdn.site.com.br/a.jpg"]

    def test_duplicates_removed(self):
        """Test that repeated URLs are returned once, in discovery order."""
        data = {"images": ["https://cdn.site.com.br/a.jpg", "https://cdn.site.com.br/a.jpg"]}

        assert StructuredMediaExtractor().extract(data, "aldeaData") == ["https://cdn.site.com.br/a.jpg"]

    def test_none_payload(self):
        """Test that no payload means no media."""
        assert StructuredMediaExtractor().extract(None) == []

    def test_is_image_url(self):
        """Test image URL recognition."""
        assert is_image_url("https://cdn.site.com.br/a.jpeg?w=800")
        assert is_image_url("//cdn.site.com.br/a.avif")
        assert not is_image_url("/relative/a.jpg")
        assert not is_image_url("https://cdn.site.com.br/video.mp4")
        assert not is_image_url(None)


class TestHtmlMediaExtractor:
    """Tests for HtmlMediaExtractor."""

    HTML = """
    <html><body>
      <div class="gallery">
        <img src="/fotos/sala.jpg" alt="Sala">
        <img src="data:image/gif;base64,R0lGOD" data-src="https://cdn.site.com.br/lazy.jpg">
      </div>
      <img srcset="/s/pequena.jpg 480w, /s/grande.jpg 1200w">
      <img src="/outra.jpg" width="50" height="40">
      <img src="/fotos/sala.jpg">
      <iframe src="https://www.youtube.com/embed/xyz"></iframe>
    </body></html>
    """

    def test_selectors_catch_all_and_videos(self):
        """Test discovery order: selectors, then remaining <img>, then videos."""
        urls = HtmlMediaExtractor().extract(self.HTML, PAGE_URL)

        assert urls == [
            "https://www.construtora.com.br/fotos/sala.jpg",
            "https://cdn.site.com.br/lazy.jpg",
            "https://www.construtora.com.br/s/grande.jpg",
            "https://www.construtora.com.br/outra.jpg",
            "https://www.youtube.com/embed/xyz",
        ]

    def test_attribute_dimensions_and_alt(self):
        """Test that width/height attributes and alt text are carried on candidates."""
        candidates = {c.url: c for c in HtmlMediaExtractor().extract_candidates(self.HTML, PAGE_URL)}

        small = candidates["https://www.construtora.com.br/outra.jpg"]
        assert (small.dimensions.width, small.dimensions.height) == (50, 40)
        assert candidates["https://www.construtora.com.br/fotos/sala.jpg"].alt_text == "Sala"

    def test_without_catch_all(self):
        """Test that only selector matches are kept when catch-all is off."""
        extractor = HtmlMediaExtractor(HtmlMediaConfig(catch_all_images=False, video_selectors=[]))

        urls = extractor.extract(self.HTML, PAGE_URL)

        assert "https://www.construtora.com.br/outra.jpg" not in urls
        assert "https://www.youtube.com/embed/xyz" not in urls

    def test_filter_and_rewriter_hooks(self):
        """Test that url_rewriter runs before url_filter."""
        extractor = HtmlMediaExtractor(
            url_rewriter=lambda url: url.replace("/fotos/", "/hd/"),
            url_filter=lambda url: "/hd/" in url,
        )

        assert extractor.extract(self.HTML, PAGE_URL) == ["https://www.construtora.com.br/hd/sala.jpg"]

    def test_max_urls(self):
        """Test that the result is cut to max_urls."""
        extractor = HtmlMediaExtractor(HtmlMediaConfig(max_urls=2))

        assert len(extractor.extract(self.HTML, PAGE_URL)) == 2

    def test_invalid_selector_is_skipped(self):
        """Test that a malformed selector is logged, not raised."""
        extractor = HtmlMediaExtractor(HtmlMediaConfig(image_selectors=["img[", ".gallery img"]))

        assert "https://www.construtora.com.br/fotos/sala.jpg" in extractor.extract(self.HTML, PAGE_URL)

    def test_largest_srcset_candidate(self):
        """Test width and density descriptors."""
        assert largest_srcset_candidate("a.jpg 480w, b.jpg 1080w, c.jpg 768w") == "b.jpg"
        assert largest_srcset_candidate("x1.jpg 1x, x2.jpg 2x") == "x2.jpg"
        assert largest_srcset_candidate("unica.jpg") == "unica.jpg"
