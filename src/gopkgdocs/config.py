"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments   (the CLI passes its flags this way)
  2. Environment variables   (GOPKGDOCS__SCRAPER__MAX_CONCURRENCY=4)
  3. gopkgdocs.yaml          (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional. All fields have sensible defaults.
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

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("gopkgdocs")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "packages.db")

DEFAULT_BASE_URL = "https://pkg.go.dev"
DEFAULT_USER_AGENT = "gopkgdocs-scraper/1.0"


def _find_config_file() -> str | None:
    """Return the path of the first gopkgdocs.yaml found, or None."""
    candidates = [
        Path("gopkgdocs.yaml"),
        Path(platformdirs.user_config_dir("gopkgdocs")) / "gopkgdocs.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ScraperSettings(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    allowed_domains: list[str] = ["pkg.go.dev"]
    max_concurrency: int = 2
    delay_seconds: float = 2.0
    timeout_seconds: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    # Process packages one at a time, in input order.
    sequential: bool = False
    # Serve a canned page instead of hitting the network. Implies sequential.
    test_mode: bool = False


class CacheSettings(BaseModel):
    # Empty string disables the document store.
    db_path: str = _DEFAULT_DB_PATH


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class OutputSettings(BaseModel):
    # Empty string writes Markdown to stdout.
    directory: str = ""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: GOPKGDOCS__CACHE__DB_PATH=/tmp/x.db
        env_prefix="GOPKGDOCS__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    scraper: ScraperSettings = ScraperSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()
    output: OutputSettings = OutputSettings()

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
            # dotenv and file secrets intentionally excluded
        )
