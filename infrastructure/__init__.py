"""
PREREQUISITE INFRASTRUCTURE - Ambient modules

This package contains:
- config: TOML-backed EngineConfig
- diagnostics: logging setup, query timing, snapshot state lines
"""
