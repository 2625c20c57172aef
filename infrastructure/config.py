"""
ENGINE CONFIGURATION - TOML-backed settings

Configuration is loaded once from config/prereq_engine.toml and decoded
into frozen msgspec structs. Components receive an EngineConfig instance
explicitly; there is no module-level singleton.

Usage:
    from infrastructure.config import load_engine_config

    config = load_engine_config()
    graph = load(nodes, edges, config=config)

Path resolution:
    1. explicit `path` argument
    2. PREREQ_ENGINE_CONFIG environment variable
    3. <repo>/config/prereq_engine.toml
"""
import logging
import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional, Union

import msgspec

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PREREQ_ENGINE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "prereq_engine.toml"


# =============================================================================
# CONFIG SECTIONS
# =============================================================================

class ClosureConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Ancestor closure behaviour."""
    precompute: bool = False            # Resolve every node at load time


class DiagnosticsConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Cycle reporting and logging."""
    emit_cycle_warnings: bool = True    # warnings.warn(CycleDetectedWarning)
    log_level: str = "INFO"


class ValidationConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Load-time validation bounds."""
    min_priority: int = 1                # 1 = highest priority
    max_priority: int = 5


class EngineConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Complete engine configuration."""
    closure: ClosureConfig = msgspec.field(default_factory=ClosureConfig)
    diagnostics: DiagnosticsConfig = msgspec.field(default_factory=DiagnosticsConfig)
    validation: ValidationConfig = msgspec.field(default_factory=ValidationConfig)


# =============================================================================
# LOADING
# =============================================================================

def _resolve_path(path: Optional[Union[str, Path]]) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_toml_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the raw TOML configuration.

    Returns:
        Dict with all configuration sections, or {} if the file cannot be read
    """
    config_path = _resolve_path(path)
    try:
        import tomllib

        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        logger.debug(f"[CONFIG] No config file at {config_path}, using defaults")
        return {}
    except Exception as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def config_from_dict(raw: Dict[str, Any]) -> EngineConfig:
    """
    Build an EngineConfig from a plain dict (e.g. parsed TOML).

    Raises:
        msgspec.ValidationError: If a section has the wrong shape or types
    """
    config = msgspec.convert(raw, type=EngineConfig)
    if config.validation.min_priority > config.validation.max_priority:
        raise msgspec.ValidationError(
            f"validation.min_priority ({config.validation.min_priority}) "
            f"exceeds validation.max_priority ({config.validation.max_priority})"
        )
    return config


def load_engine_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load configuration, falling back to defaults on any problem.

    Invalid sections produce a warning rather than an exception; the engine
    should stay usable with a broken config file.
    """
    raw = load_toml_config(path)
    if not raw:
        return EngineConfig()

    try:
        return config_from_dict(raw)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid engine config, using defaults: {e}")
        return EngineConfig()


def default_config() -> EngineConfig:
    """Defaults without touching the filesystem."""
    return EngineConfig()
