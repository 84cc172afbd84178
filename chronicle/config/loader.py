"""TOML configuration loader.

Layers ``default.toml`` and ``{env}.toml`` from one config directory.
Environment variables are applied later, by the settings sources.
"""

import os
import tomllib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "CHRONICLE_CONFIG_DIR"
ENVIRONMENT_ENV = "CHRONICLE_ENV"
DEFAULT_ENVIRONMENT = "development"

# How far up from the working directory to look for config/
_SEARCH_DEPTH = 5


def _search_paths(start: Path) -> Iterator[Path]:
    current = start
    for _ in range(_SEARCH_DEPTH):
        yield current / "config"
        if current.parent == current:
            return
        current = current.parent


def get_config_dir(start: Path | None = None) -> Path:
    """Locate the configuration directory.

    CHRONICLE_CONFIG_DIR wins when set and must exist. Otherwise the first
    ``config/`` found walking up from ``start`` (default: the working
    directory) is used.

    Raises:
        FileNotFoundError: CHRONICLE_CONFIG_DIR points at a missing directory
    """
    configured = os.environ.get(CONFIG_DIR_ENV)
    if configured:
        path = Path(configured)
        if not path.exists():
            raise FileNotFoundError(f"Config directory not found: {configured}")
        return path

    for candidate in _search_paths(start or Path.cwd()):
        if candidate.is_dir():
            return candidate
    return Path("config")


def get_environment() -> str:
    """Deployment environment name from CHRONICLE_ENV (default: development)."""
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Read one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` onto ``base`` without mutating either.

    Tables merge key by key. Arrays (``[[routing.branches]]``,
    ``[[drivers]]``) and scalars are replaced wholesale, so an environment
    file redefines a list instead of appending to it.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_dir: Path | None = None,
    environment: str | None = None,
) -> dict[str, Any]:
    """Load and merge the TOML layers.

    Args:
        config_dir: Directory holding the files (default: get_config_dir())
        environment: Environment overlay name (default: get_environment())

    Returns:
        default.toml merged with {environment}.toml when that file exists

    Raises:
        FileNotFoundError: default.toml is missing
    """
    config_dir = config_dir or get_config_dir()
    environment = environment or get_environment()

    default_path = config_dir / "default.toml"
    if not default_path.exists():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/default.toml or set {CONFIG_DIR_ENV}."
        )

    config = load_toml(default_path)
    overlay_path = config_dir / f"{environment}.toml"
    if overlay_path.exists():
        config = deep_merge(config, load_toml(overlay_path))
    return config
