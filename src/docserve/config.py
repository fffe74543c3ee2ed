"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (DOCSERVE__SERVER__PORT=9090)
  2. docserve.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

Only the three directories under ``paths`` have no usable default; everything
else can be left out of the config file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from docserve.errors import DocserveError, ErrorCode

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("docserve")


def _find_config_file() -> str | None:
    """Return the path of the first docserve.yaml found, or None."""
    candidates = [
        Path("docserve.yaml"),
        Path(platformdirs.user_config_dir("docserve")) / "docserve.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class PathSettings(BaseModel):
    docs: str | None = None  # checkout of the documentation sources
    styling: str | None = None  # templates and assets for the renderer
    cache: str = _DEFAULT_CACHE_DIR


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8088
    public_url: str = "http://localhost:8088"


class RendererSettings(BaseModel):
    command: list[str] = ["asciidoctor"]
    branch: str = "localdev"
    toc_titles: dict[str, str] = {"de": "Auf dieser Seite", "en": "On this page"}
    benign_pattern: str = r"checkmk\.css"
    edition: Literal["onprem", "saas"] = "onprem"
    extra_attributes: dict[str, str] = {}


class CheckSettings(BaseModel):
    links: bool = True
    spelling: bool = True
    structure: bool = False
    anchor_depth: int = 1
    link_timeout_seconds: float = 30.0
    self_link_patterns: list[str] = [
        r"^https://checkmk\.com$",
        r"checkmk-docs/edit/localdev/",
        r"docs\.checkmk\.com/",
        r"^mailto",
    ]
    # Linked internally but redirected externally on the live site.
    ignore_broken: list[str] = ["check_plugins_catalog.html"]


class SpellingSettings(BaseModel):
    dictionaries: dict[str, list[str]] = {
        "de": [
            "/usr/share/hunspell/en_US.dic",
            "/usr/share/hunspell/de_DE.dic",
        ],
        "en": ["/usr/share/hunspell/en_US.dic"],
    }


class InjectSettings(BaseModel):
    css: list[str] = []
    js: list[str] = []


class BuildSettings(BaseModel):
    batch: bool = False
    build_all: bool = False
    prebuild: list[str] = []
    since: str | None = None  # passed verbatim to ``git log --since``


class NotifySettings(BaseModel):
    slack_token: str | None = None
    channel: str | None = None


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: DOCSERVE__CHECKS__LINKS=false
        env_prefix="DOCSERVE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    languages: list[str] = ["de", "en"]
    paths: PathSettings = PathSettings()
    server: ServerSettings = ServerSettings()
    renderer: RendererSettings = RendererSettings()
    checks: CheckSettings = CheckSettings()
    spelling: SpellingSettings = SpellingSettings()
    inject: InjectSettings = InjectSettings()
    build: BuildSettings = BuildSettings()
    notify: NotifySettings = NotifySettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )

    def require_directories(self) -> tuple[Path, Path, Path]:
        """Return (docs, styling, cache) or raise CONFIG_INVALID.

        The cache directory is created if needed; the other two must exist.
        """
        if self.paths.docs is None or self.paths.styling is None:
            raise DocserveError(
                code=ErrorCode.CONFIG_INVALID,
                message="Both paths.docs and paths.styling must be configured",
                suggestion="Set DOCSERVE__PATHS__DOCS and DOCSERVE__PATHS__STYLING "
                "or add them to docserve.yaml.",
            )
        docs = Path(self.paths.docs).expanduser()
        styling = Path(self.paths.styling).expanduser()
        for path in (docs, styling):
            if not path.is_dir():
                raise DocserveError(
                    code=ErrorCode.CONFIG_INVALID,
                    message=f"Directory does not exist: {path}",
                    suggestion="Point the path settings at existing checkouts.",
                )
        cache = Path(self.paths.cache).expanduser()
        cache.mkdir(parents=True, exist_ok=True)
        return docs, styling, cache
