"""Unit tests for configuration defaults and directory checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import platformdirs
import pytest

from docserve.config import _DEFAULT_CACHE_DIR, PathSettings, Settings
from docserve.errors import DocserveError, ErrorCode

if TYPE_CHECKING:
    from pathlib import Path


class TestPlatformDefaults:
    """Verify config defaults use platformdirs instead of hardcoded Unix paths."""

    def test_default_cache_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_cache_dir("docserve") == _DEFAULT_CACHE_DIR

    def test_path_settings_use_platform_default(self) -> None:
        settings = PathSettings()
        assert settings.cache == _DEFAULT_CACHE_DIR
        assert settings.docs is None


class TestEnvironmentOverrides:
    def test_nested_env_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOCSERVE__SERVER__PORT", "9090")
        monkeypatch.setenv("DOCSERVE__CHECKS__LINKS", "false")

        settings = Settings()

        assert settings.server.port == 9090
        assert settings.checks.links is False
        assert settings.checks.anchor_depth == 1


class TestRequireDirectories:
    def test_missing_configuration(self) -> None:
        with pytest.raises(DocserveError) as exc_info:
            Settings(paths={"docs": None, "styling": None}).require_directories()
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

    def test_nonexistent_directory(self, tmp_path: Path) -> None:
        settings = Settings(paths={"docs": str(tmp_path / "nope"), "styling": str(tmp_path)})
        with pytest.raises(DocserveError) as exc_info:
            settings.require_directories()
        assert "nope" in exc_info.value.message

    def test_cache_directory_is_created(self, docs_dir: Path, styling_dir: Path, tmp_path: Path) -> None:
        cache = tmp_path / "new" / "cache"
        settings = Settings(paths={"docs": str(docs_dir), "styling": str(styling_dir), "cache": str(cache)})

        assert settings.require_directories() == (docs_dir, styling_dir, cache)
        assert cache.is_dir()
