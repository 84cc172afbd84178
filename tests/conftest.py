"""Shared test fixtures for the chronicle test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from chronicle.models import EventRuleSet, EventTypeRegistry
from chronicle.transformer import Transformer
from tests.factories import BASE_TIME


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "[observability]\\nlog_level = 'DEBUG'",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"CHRONICLE_DIGEST__TICK_INTERVAL": "60"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache and loaded TOML before and after each test."""
    from chronicle.config import get_settings
    from chronicle.config.settings import set_toml_config

    get_settings.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    set_toml_config({})


@pytest.fixture
def rule_set() -> EventRuleSet:
    """Rule set with digestible updates and a digestible custom type."""
    return EventRuleSet({
        "update": {"digestible": True, "digest_window": "5m", "digest_fields_limit": 10},
        "comment": {"digestible": True, "digest_window": "10m"},
    })


@pytest.fixture
def registry() -> EventTypeRegistry:
    return EventTypeRegistry(system_types=["digest"], custom_types=["submit", "comment"])


@pytest.fixture
def transformer(rule_set: EventRuleSet, registry: EventTypeRegistry) -> Transformer:
    return Transformer(rules=rule_set, registry=registry, clock=lambda: BASE_TIME)
