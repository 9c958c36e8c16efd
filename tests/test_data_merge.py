"""
Tests for merging scraped fields into an existing listing.
"""
import pytest

from kondo_scraping.layers.data_merge import DataMergeService
from kondo_scraping.models.listing import ScrapedFields
from kondo_scraping.models.scraping import ProtectedFieldConfig, ProtectionMode


EXISTING = {
    "name": "Reserva Verde",
    "slug": "reserva-verde",
    "type": None,
    "description": "",
    "lot_avg_price": 450000.0,
    "city": "Nova Lima",
    "infra_pool": False,
}


class TestBuildProtectionMap:
    """Tests for DataMergeService.build_protection_map."""

    def test_mixed_entries(self):
        """Test that strings, dicts and configs are normalised."""
        protection = DataMergeService.build_protection_map([
            "slug",
            {"field": "name", "mode": "if-empty"},
            ProtectedFieldConfig(field="description", mode=ProtectionMode.QUALITY_CHECK),
        ])

        assert protection == {
            "slug": ProtectionMode.NEVER,
            "name": ProtectionMode.IF_EMPTY,
            "description": ProtectionMode.QUALITY_CHECK,
        }

    def test_dict_without_mode_defaults_to_never(self):
        """Test the default protection mode."""
        assert DataMergeService.build_protection_map([{"field": "slug"}]) == {"slug": ProtectionMode.NEVER}

    def test_unknown_mode_raises(self):
        """Test that an invalid mode is a configuration error."""
        with pytest.raises(ValueError):
            DataMergeService.build_protection_map([{"field": "slug", "mode": "sometimes"}])

    def test_none(self):
        """Test that no configuration means no protection."""
        assert DataMergeService.build_protection_map(None) == {}


class TestMergeData:
    """Tests for DataMergeService.merge_data."""

    def test_every_field_is_accepted_or_rejected(self):
        """Test that the merge accounts for each scraped field exactly once."""
        scraped = ScrapedFields(
            name="Residencial Reserva Verde Nova Lima",
            slug="residencial-reserva-verde",
            type="casas",
            description="Condomínio de casas com lazer completo.",
            lot_avg_price=0.0,
            infra_pool=True,
        )

        result = DataMergeService().merge_data(
            EXISTING, scraped, ["slug", {"field": "name", "mode": "if-empty"}, {"field": "type", "mode": "if-empty"}]
        )

        accepted = {change.field for change in result.accepted}
        rejected = {rejection.field for rejection in result.rejected}
        assert accepted == {"type", "description", "infra_pool"}
        assert rejected == {"name", "slug", "lot_avg_price"}
        assert result.updates == {
            "type": "casas",
            "description": "Condomínio de casas com lazer completo.",
            "infra_pool": True,
        }
        assert result.protected_skipped == 2
        assert result.quality_rejected == 1

    def test_protection_reasons(self):
        """Test the reason strings of both protection modes."""
        result = DataMergeService().merge_data(
            EXISTING,
            {"slug": "novo-slug", "name": "Outro nome bem mais comprido"},
            ["slug", {"field": "name", "mode": "if-empty"}],
        )

        reasons = {rejection.field: rejection.reason for rejection in result.rejected}
        assert reasons["slug"] == "Protected field (never overwrite)"
        assert reasons["name"].startswith("Protected field (if-empty)")

    def test_if_empty_fills_empty_field(self):
        """Test that if-empty protection lets a value into an empty field."""
        result = DataMergeService().merge_data(
            {"type": ""}, {"type": "casas"}, [{"field": "type", "mode": "if-empty"}]
        )

        assert result.updates == {"type": "casas"}
        assert result.accepted[0].reason == "Protected field (if-empty): filling empty field"

    def test_quality_check_mode_uses_quality_rules(self):
        """Test that quality-check protection behaves like no protection."""
        result = DataMergeService().merge_data(
            {"description": "Casas em Nova Lima"},
            {"description": "Casas"},
            [{"field": "description", "mode": "quality-check"}],
        )

        assert result.updates == {}
        assert "significantly shorter" in result.rejected[0].reason

    def test_pipeline_fields_are_not_merged(self):
        """Test that media lists and provenance never reach the listing."""
        result = DataMergeService().merge_data(
            {},
            {"city": "Nova Lima", "medias": ["https://a.com/x.jpg"], "source_url": "https://a.com"},
        )

        assert result.updates == {"city": "Nova Lima"}
        assert result.rejected == []

    def test_missing_fields_are_not_considered(self):
        """Test that fields a parser did not find do not appear in the result."""
        result = DataMergeService().merge_data(EXISTING, ScrapedFields(city="Sabará"))

        assert [r.field for r in result.rejected] == ["city"]
        assert result.accepted == []

    def test_changes_carry_old_and_new_values(self):
        """Test the verbose change records."""
        result = DataMergeService().merge_data(EXISTING, {"lot_avg_price": 480000.0})

        [change] = result.accepted
        assert change.old_value == 450000.0
        assert change.new_value == 480000.0
