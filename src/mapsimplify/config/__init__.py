"""
Configuration management for the mapsimplify CLI.

This module provides Pydantic-based configuration schemas for validating
and loading TOML configuration files used by the mapsimplify CLI.

Key exports:
- MasterConfig: Root configuration from simplify.toml
- SettingsConfig: Simplification and output settings
- LayerConfig: Configuration for a single input layer
- load_config(): Load and validate master configuration
"""

from .defaults import (
    DEFAULT_FILE_FORMAT,
    DEFAULT_KEEP,
    DEFAULT_METHOD,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_WORKERS,
    ENV_LOG_FILE,
    ENV_OUTPUT_DIR,
)
from .schema import LayerConfig, MasterConfig, SettingsConfig, load_config

__all__ = [
    # Main models
    "MasterConfig",
    "LayerConfig",
    "SettingsConfig",
    # Loaders
    "load_config",
    # Defaults
    "DEFAULT_KEEP",
    "DEFAULT_METHOD",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_FILE_FORMAT",
    "DEFAULT_WORKERS",
    # Environment variables
    "ENV_OUTPUT_DIR",
    "ENV_LOG_FILE",
]
