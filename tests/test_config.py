"""
Tests for configuration loading.
"""

import pytest

from utils.config import Config
from utils.formatting import format_currency, format_percent


class TestConfig:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        for name in ("PUBLISH_THRESHOLD", "REVIEWER_ROLES", "PERSIST", "SIMILAR_LIMIT"):
            monkeypatch.delenv(name, raising=False)

        config = Config.load()

        assert config.publish_threshold == 80
        assert config.reviewer_roles == ("reviewer", "admin")
        assert config.similar_limit == 3
        assert config.persist_path is None

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PUBLISH_THRESHOLD", "70")
        monkeypatch.setenv("REVIEWER_ROLES", " Compliance , admin,")
        monkeypatch.setenv("PERSIST", "true")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))

        config = Config.load()

        assert config.publish_threshold == 70
        assert config.reviewer_roles == ("compliance", "admin")
        assert config.persist_path == str(tmp_path / "listings.json")

    def test_rejects_out_of_range_threshold(self):
        with pytest.raises(ValueError, match="PUBLISH_THRESHOLD"):
            Config(publish_threshold=120)

    def test_to_dict(self, config):
        data = config.to_dict()

        assert data["trust_document_type"] == "rpp_certificate"
        assert data["reviewer_roles"] == ["reviewer", "admin"]


class TestFormatting:
    """Tests for display helpers."""

    def test_format_currency(self):
        assert format_currency(2_000_000) == "$2,000,000 MXN"
        assert format_currency(1500.4, "USD") == "$1,500 USD"

    def test_format_percent(self):
        assert format_percent(78) == "78%"
        assert format_percent(12.34, decimals=1) == "12.3%"
