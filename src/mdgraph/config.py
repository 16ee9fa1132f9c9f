from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError
from .ingest.repository import DEFAULT_EXCLUDES


load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ("mdgraph.config.json", ".mdgraph.json")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: tuple[str, ...]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a non-negative integer", e) from e
    if value < 0:
        raise ConfigurationError(f"{name} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class Settings:
    # Where the graph JSON goes; defaults to <target>/.garden-graph.json.
    output_file: str | None = field(default_factory=lambda: os.getenv("MDGRAPH_OUTPUT_FILE") or None)

    # Scanning
    excludes: list[str] = field(default_factory=lambda: _env_list("MDGRAPH_EXCLUDES", DEFAULT_EXCLUDES))
    include_hidden: bool = field(default_factory=lambda: _env_bool("MDGRAPH_INCLUDE_HIDDEN", False))

    # Watch mode
    debounce_ms: int = field(default_factory=lambda: _env_int("MDGRAPH_DEBOUNCE_MS", 300))

    # Implicit links from noun phrases
    natural_language: bool = field(default_factory=lambda: _env_bool("MDGRAPH_NATURAL_LANGUAGE", True))


@dataclass(frozen=True)
class GraphConfig:
    target_directory: str | None = None
    output_file: str | None = None
    verbose: bool = False
    quiet: bool = False
    excludes: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    include_hidden: bool = False
    debounce_ms: int = 300
    just_node_names: bool = False
    no_sections: bool = False
    natural_language: bool = True


_FIELD_NAMES = {f.name for f in fields(GraphConfig)}


def default_search_paths() -> list[Path]:
    cwd = Path.cwd()
    return [cwd, cwd / ".config", cwd.parent]


def load_config_file(name: str | None = None, search_paths: list[Path] | None = None) -> dict[str, Any]:
    """Return the first config file found, or an empty dict."""
    names = (name,) if name else CONFIG_FILE_NAMES
    for directory in search_paths if search_paths is not None else default_search_paths():
        for candidate in names:
            path = Path(directory) / candidate
            if not path.is_file():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Failed to load config from {path}: {e}", e) from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"Failed to load config from {path}: configuration must be a JSON object")
            logger.debug("Loaded config from %s", path)
            return data
    return {}


def validate_config(data: dict[str, Any]) -> None:
    for key in ("target_directory", "output_file"):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ConfigurationError(f"{key} must be a string")

    excludes = data.get("excludes")
    if excludes is not None and (
        not isinstance(excludes, list) or any(not isinstance(e, str) for e in excludes)
    ):
        raise ConfigurationError("excludes must be an array of strings")

    for key in ("verbose", "quiet", "include_hidden", "just_node_names", "no_sections", "natural_language"):
        if key in data and not isinstance(data[key], bool):
            raise ConfigurationError(f"{key} must be a boolean")

    debounce = data.get("debounce_ms")
    if debounce is not None and (isinstance(debounce, bool) or not isinstance(debounce, int) or debounce < 0):
        raise ConfigurationError("debounce_ms must be a non-negative integer")


def load_config(
    cli_options: dict[str, Any] | None = None,
    *,
    config_name: str | None = None,
    search_paths: list[Path] | None = None,
    settings: Settings | None = None,
) -> GraphConfig:
    """Merge settings: CLI options > config file > environment > defaults.

    CLI options set to None are treated as not given.
    """
    settings = settings or Settings()
    merged: dict[str, Any] = {
        "output_file": settings.output_file,
        "excludes": list(settings.excludes),
        "include_hidden": settings.include_hidden,
        "debounce_ms": settings.debounce_ms,
        "natural_language": settings.natural_language,
    }

    file_config = load_config_file(config_name, search_paths)
    for key, value in file_config.items():
        if key not in _FIELD_NAMES:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        merged[key] = value

    merged.update({k: v for k, v in (cli_options or {}).items() if v is not None and k in _FIELD_NAMES})

    validate_config(merged)
    return GraphConfig(**merged)
