"""
Unit tests for infrastructure/config.py - TOML engine configuration

Tests:
- Path resolution (argument, environment variable, default file)
- Decoding into frozen EngineConfig structs
- Fallback to defaults on missing or invalid files
"""
import msgspec
import pytest

from infrastructure.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    EngineConfig,
    config_from_dict,
    default_config,
    load_engine_config,
    load_toml_config,
)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "engine.toml"
    path.write_text(
        "[closure]\n"
        "precompute = true\n"
        "\n"
        "[validation]\n"
        "min_priority = 0\n"
        "max_priority = 9\n"
    )
    return path


def test_shipped_config_matches_defaults():
    """config/prereq_engine.toml decodes to the built-in defaults."""
    assert DEFAULT_CONFIG_PATH.exists()
    assert load_engine_config(DEFAULT_CONFIG_PATH) == default_config()


def test_load_from_explicit_path(config_file):
    config = load_engine_config(config_file)

    assert config.closure.precompute is True
    assert config.validation.min_priority == 0
    assert config.validation.max_priority == 9
    # Sections absent from the file keep their defaults
    assert config.diagnostics.emit_cycle_warnings is True


def test_env_var_overrides_default_path(config_file, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))

    assert load_engine_config().closure.precompute is True


def test_missing_file_gives_defaults(tmp_path):
    missing = tmp_path / "nope.toml"

    assert load_toml_config(missing) == {}
    assert load_engine_config(missing) == EngineConfig()


def test_unparseable_file_warns(tmp_path):
    path = tmp_path / "broken.toml"
    path.write_text("[closure\nprecompute = ")

    with pytest.warns(UserWarning, match="Failed to load config"):
        assert load_engine_config(path) == EngineConfig()


def test_wrong_types_warn_and_fall_back(tmp_path):
    path = tmp_path / "typed.toml"
    path.write_text('[closure]\nprecompute = "yes please"\n')

    with pytest.warns(UserWarning, match="Invalid engine config"):
        assert load_engine_config(path) == EngineConfig()


def test_inverted_priority_bounds_rejected():
    with pytest.raises(msgspec.ValidationError, match="exceeds"):
        config_from_dict({"validation": {"min_priority": 5, "max_priority": 1}})


def test_config_is_frozen():
    config = default_config()

    with pytest.raises(AttributeError):
        config.closure.precompute = True
