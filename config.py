"""Run configuration, read once at start-up and passed to every component."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

from errors import ConfigurationError

DEFAULT_CACHE_DIR = ".cache"
DEFAULT_MODEL_ID = "gpt-4o-mini"
DEFAULT_SS_MAX_RETRY_COUNT = 15
DEFAULT_SS_WAIT_SECONDS = 30.0

# Setting attribute -> key used in the environment and in config.toml.
_KEYS: dict[str, str] = {
    "semantic_scholar_api_key": "SEMANTIC_SCHOLAR_API_KEY",
    "notion_api_key": "NOTION_API_KEY",
    "notion_paper_database_id": "NOTION_PAPER_DATABASE_ID",
    "notion_author_database_id": "NOTION_AUTHOR_DATABASE_ID",
    "openai_api_key": "OPENAI_API_KEY",
    "cache_dir": "CACHE_DIR",
    "model_id": "OPENAI_MODEL",
    "ss_max_retry_count": "SS_MAX_RETRY_COUNT",
    "ss_wait_seconds": "SS_WAIT_SECONDS",
    "instruction_path": "SUMMARY_INSTRUCTION_PATH",
}


@dataclass(frozen=True, slots=True)
class Settings:
    """Explicit configuration for one pipeline run."""

    semantic_scholar_api_key: str = ""
    notion_api_key: str = ""
    notion_paper_database_id: str = ""
    notion_author_database_id: str = ""
    openai_api_key: str = ""
    cache_dir: str = DEFAULT_CACHE_DIR
    model_id: str = DEFAULT_MODEL_ID
    ss_max_retry_count: int = DEFAULT_SS_MAX_RETRY_COUNT
    ss_wait_seconds: float = DEFAULT_SS_WAIT_SECONDS
    instruction_path: str = ""

    @property
    def ledger_path(self) -> Path:
        return Path(self.cache_dir) / "cache.json"

    def require(self, *names: str) -> None:
        """Raise ConfigurationError for the first named setting that is empty."""
        for name in names:
            if not getattr(self, name):
                raise ConfigurationError(f"{_KEYS[name]} is required but not set")


def load_settings(config_path: Path | None = None) -> Settings:
    """Build Settings from a TOML file, or from `.env` plus the environment."""
    if config_path is not None:
        try:
            with config_path.open("rb") as fh:
                raw: Mapping[str, Any] = tomllib.load(fh)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigurationError(f"Failed to load config {config_path}: {exc}") from exc
    else:
        load_dotenv()
        raw = os.environ
    return settings_from_mapping(raw)


def settings_from_mapping(raw: Mapping[str, Any]) -> Settings:
    values: dict[str, Any] = {}
    for attr, key in _KEYS.items():
        value = raw.get(key)
        if value is None or value == "":
            continue
        values[attr] = value

    try:
        if "ss_max_retry_count" in values:
            values["ss_max_retry_count"] = int(values["ss_max_retry_count"])
        if "ss_wait_seconds" in values:
            values["ss_wait_seconds"] = float(values["ss_wait_seconds"])
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid numeric setting: {exc}") from exc

    for attr in values:
        if attr not in ("ss_max_retry_count", "ss_wait_seconds"):
            values[attr] = str(values[attr])
    return Settings(**values)
