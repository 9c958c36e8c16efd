"""
Tests for the kondo-scrape command line.
"""
import json

import pytest

from conftest import SOMATTOS_URL, FakeFetchProvider
from kondo_scraping import cli
from kondo_scraping.config import config
from kondo_scraping.errors import FetchNetworkError


# No media on the page, so nothing is probed or downloaded
PAGE = """
<html>
  <head><meta property="og:description" content="Casas em condomínio fechado com piscina."></head>
  <body><h1>Reserva Verde</h1><div class="cidade">Nova Lima</div></body>
</html>
"""


@pytest.fixture
def provider(monkeypatch):
    fake = FakeFetchProvider(pages={SOMATTOS_URL: PAGE})
    monkeypatch.setattr(cli, "create_fetch_provider", lambda platform=None: fake)
    return fake


class TestCli:
    """Tests for cli.main."""

    def test_single_url_dry_run(self, provider, capsys):
        """Test scraping one URL into a throwaway listing."""
        exit_code = cli.main(["--url", SOMATTOS_URL, "--dry-run"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["success"] is True
        assert output["engine"] == "somattos"
        assert output["dry_run"] is True
        assert "city" in output["updated_fields"]
        assert provider.calls == [(SOMATTOS_URL, True)]

    def test_records_file(self, provider, tmp_path, capsys):
        """Test a batch over a records file, with only pending listings scraped."""
        records = tmp_path / "kondos.json"
        records.write_text(
            json.dumps([
                {"id": 7, "url": SOMATTOS_URL, "status": "scraping"},
                {"id": 8, "url": SOMATTOS_URL, "status": "done"},
            ]),
            encoding="utf-8",
        )

        exit_code = cli.main(["--records", str(records), "--dry-run", "--skip-delay"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["total"] == 1
        assert output["success"] == 1
        assert output["results"][0]["kondo_id"] == 7

    def test_kondo_id_filter(self, provider, tmp_path, capsys):
        """Test that --kondo-id narrows the batch."""
        records = tmp_path / "kondos.json"
        records.write_text(
            json.dumps([
                {"id": 7, "url": SOMATTOS_URL, "status": "scraping"},
                {"id": 9, "url": SOMATTOS_URL, "status": "scraping"},
            ]),
            encoding="utf-8",
        )

        cli.main(["--records", str(records), "--kondo-id", "9", "--dry-run"])

        output = json.loads(capsys.readouterr().out)
        assert output["total"] == 1
        assert output["results"][0]["kondo_id"] == 9

    def test_failed_scrape_exit_code(self, monkeypatch, capsys):
        """Test that a failed scrape exits non-zero and still prints the result."""
        fake = FakeFetchProvider(pages={SOMATTOS_URL: FetchNetworkError("connection reset", url=SOMATTOS_URL)})
        monkeypatch.setattr(cli, "create_fetch_provider", lambda platform=None: fake)
        monkeypatch.setattr(config, "SCRAPING_RETRY_DELAY_MS", 0)

        exit_code = cli.main(["--url", SOMATTOS_URL])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 1
        assert output["success"] is False
        assert output["error"] == "connection reset"

    def test_invalid_records_file(self, provider, tmp_path, capsys):
        """Test that a records file without a list is reported on stderr."""
        records = tmp_path / "kondos.json"
        records.write_text('{"id": 1}', encoding="utf-8")

        exit_code = cli.main(["--records", str(records)])

        assert exit_code == 1
        assert "must contain a JSON list" in capsys.readouterr().err

    def test_source_is_required(self):
        """Test that one of --records / --url is mandatory."""
        with pytest.raises(SystemExit):
            cli.main([])
