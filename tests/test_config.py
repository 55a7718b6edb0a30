"""Tests for pipeline configuration loading."""

import json
import logging

from app.core.config import PipelineConfig


class TestPipelineConfig:
    """Test defaults and overrides."""

    def test_domains_for_is_case_insensitive(self):
        """Test competitor domain lookup."""
        config = PipelineConfig()
        assert config.domains_for("smarsh") == ("smarsh.com",)
        assert config.domains_for(" Global Relay ") == ("globalrelay.com",)
        assert config.domains_for("Vendorly") == ()

    def test_from_dict_overrides_sections(self):
        """Test that a partial dict replaces only the named values."""
        config = PipelineConfig.from_dict(
            {
                "scoring": {"unverified_threshold": 60},
                "entities": {"fake_names": ["test person"]},
                "competitor_domains": {"Vendorly": ["vendorly.io"]},
            }
        )
        assert config.scoring.unverified_threshold == 60
        assert config.scoring.verified_url_bonus == 15
        assert config.entities.fake_names == ("test person",)
        assert config.domains_for("vendorly") == ("vendorly.io",)
        assert config.domains_for("Smarsh") == ()

    def test_unknown_keys_are_ignored(self, caplog):
        """Test that unknown keys are logged and skipped."""
        with caplog.at_level(logging.WARNING):
            config = PipelineConfig.from_dict({"dedup": {"max_leadership_changes": 3, "bogus": 1}})
        assert config.dedup.max_leadership_changes == 3
        assert "Ignoring unknown config key: bogus" in caplog.text

    def test_from_file(self, tmp_path):
        """Test loading overrides from a JSON file."""
        path = tmp_path / "pipeline.json"
        path.write_text(json.dumps({"reputable_sources": ["example.com"]}), encoding="utf-8")
        config = PipelineConfig.from_file(str(path))
        assert config.reputable_sources == ("example.com",)
