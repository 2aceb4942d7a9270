"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import make_settings
from src.config.loader import load_config, upload_limits
from src.config.settings import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.rate_limit_delay_ms == 5000
        assert settings.storage_backend == "bunny"
        assert settings.bunny_storage_region == "de"
        assert settings.openai_vision_model == "gpt-4o"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RATE_LIMIT_DELAY_MS", "1500")
        monkeypatch.setenv("AIRTABLE_TABLE_NAME", "Dishes")
        settings = Settings(_env_file=None)
        assert settings.rate_limit_delay_ms == 1500
        assert settings.airtable_table_name == "Dishes"

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_settings(rate_limit_delay_ms=-1)

    def test_fully_configured(self) -> None:
        settings = make_settings()
        assert settings.missing_credentials() == []
        assert settings.credentials_configured() is True

    def test_missing_credentials_listed_by_env_name(self) -> None:
        settings = make_settings(openai_api_key="", airtable_base_id="  ")
        assert settings.missing_credentials() == ["OPENAI_API_KEY", "AIRTABLE_BASE_ID"]
        assert settings.credentials_configured() is False

    def test_inline_storage_needs_no_bunny_credentials(self) -> None:
        settings = make_settings(
            storage_backend="inline",
            bunny_storage_access_key="",
            bunny_storage_name="",
        )
        assert settings.uses_inline_storage is True
        assert settings.missing_credentials() == []

    def test_bunny_credentials_required_by_default(self) -> None:
        settings = make_settings(bunny_storage_access_key="")
        assert settings.missing_credentials() == ["BUNNY_STORAGE_ACCESS_KEY"]


class TestLoadConfig:
    def test_repo_config_merged_with_settings(self) -> None:
        config = load_config(settings=make_settings(rate_limit_delay_ms=250))
        assert config["app"]["name"] == "recipeSnap"
        assert config["upload"]["max_image_dim"] == 2048
        assert config["pipeline"]["rate_limit_delay_ms"] == 250

    def test_custom_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("upload:\n  max_file_size_mb: 3\nextra:\n  key: value\n")
        config = load_config(path, settings=make_settings())
        assert config["upload"]["max_file_size_mb"] == 3
        assert config["extra"] == {"key": "value"}
        assert config["storage"]["backend"] == "bunny"

    def test_missing_file_gives_settings_only(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "absent.yaml", settings=make_settings())
        assert "upload" not in config
        assert config["logging"]["level"] == "INFO"


class TestUploadLimits:
    def test_from_config(self) -> None:
        config = {"upload": {"max_file_size_mb": 2, "max_image_dim": 1024}}
        assert upload_limits(config) == (2 * 1024 * 1024, 1024)

    def test_defaults(self) -> None:
        assert upload_limits({}) == (10 * 1024 * 1024, 2048)
        assert upload_limits({"upload": None}) == (10 * 1024 * 1024, 2048)

    def test_non_positive_rejected(self) -> None:
        with pytest.raises(ValueError):
            upload_limits({"upload": {"max_image_dim": 0}})
