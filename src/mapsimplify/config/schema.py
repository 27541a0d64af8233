"""
Pydantic models for mapsimplify configuration files.

This module defines the configuration schema for the mapsimplify CLI using
Pydantic v2. It validates TOML configuration files and provides type-safe
access to configuration values.

The configuration hierarchy:
- MasterConfig (simplify.toml): Top-level configuration with global settings and layers
- SettingsConfig: Simplification and output settings shared by all layers
- LayerConfig: A single input layer (name + path, optional per-layer keep)
"""

import logging
import re
import tomllib
from pathlib import Path
from typing import Literal

import pyproj
from pyproj.exceptions import CRSError
from pydantic import BaseModel, Field, field_validator, model_validator

from .defaults import (
    DEFAULT_DROP_NULL_GEOMETRIES,
    DEFAULT_FILE_FORMAT,
    DEFAULT_KEEP,
    DEFAULT_KEEP_SHAPES,
    DEFAULT_METHOD,
    DEFAULT_ON_INVALID,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_REPAIR,
    DEFAULT_WEIGHTING,
    DEFAULT_WORKERS,
)

logger = logging.getLogger(__name__)


class LayerConfig(BaseModel):
    """
    Configuration for a single input layer.

    Each layer has a name (used for the output file) and a path to any
    vector file geopandas can read.
    """

    name: str = Field(..., description="Layer name, used for the output file and GeoPackage layer")
    input: str = Field(..., description="Path to the input vector file")
    source_layer: str | None = Field(default=None, description="Layer to read from a multi-layer source")
    keep: float | None = Field(default=None, gt=0, le=1, description="Per-layer override of settings.keep")

    @field_validator("name")
    @classmethod
    def validate_layer_name(cls, v: str) -> str:
        """
        Validate layer name is a valid identifier.

        Layer names become file names and GeoPackage layer names, so they
        are restricted to letters, digits and underscores.
        """
        if not v or not v.strip():
            raise ValueError("Layer name cannot be empty")

        v = v.strip()

        if not re.match(r"^[a-zA-Z][a-zA-Z0-9_]*$", v):
            raise ValueError(
                f"Layer name '{v}' must be a valid identifier "
                "(start with letter, contain only letters, numbers, and underscores)"
            )

        return v

    @field_validator("input")
    @classmethod
    def validate_input_path(cls, v: str) -> str:
        """Ensure input path is not empty."""
        if not v or not v.strip():
            raise ValueError("Input path cannot be empty")
        return v.strip()


class SettingsConfig(BaseModel):
    """
    Global settings for the simplification run.

    These settings apply to every layer unless a layer overrides them.
    """

    keep: float = Field(default=DEFAULT_KEEP, gt=0, le=1, description="Proportion of vertices to retain")
    method: Literal["vis", "dp"] = Field(default=DEFAULT_METHOD, description="Vertex ranking method")
    weighting: float = Field(default=DEFAULT_WEIGHTING, ge=0, le=1, description="Angle weighting for 'vis'")
    keep_shapes: bool = Field(
        default=DEFAULT_KEEP_SHAPES, description="Never drop a feature because its geometry collapsed"
    )
    drop_null_geometries: bool = Field(
        default=DEFAULT_DROP_NULL_GEOMETRIES, description="Remove features whose geometry collapsed entirely"
    )
    repair: bool = Field(default=DEFAULT_REPAIR, description="Restore vertices where simplified arcs cross")
    snap_interval: float | None = Field(
        default=None, gt=0, description="Snap vertices closer than this before detecting shared borders"
    )
    on_invalid: Literal["skip", "raise"] = Field(
        default=DEFAULT_ON_INVALID, description="Skip malformed features or abort the run"
    )
    workers: int = Field(default=DEFAULT_WORKERS, ge=1, description="Worker processes per layer")
    output_dir: str = Field(default=DEFAULT_OUTPUT_DIR, description="Base directory for all outputs")
    file_format: Literal["gpkg", "shp"] = Field(default=DEFAULT_FILE_FORMAT, description="Output file format")
    target_crs: str | None = Field(default=None, description="Reproject outputs to this CRS (e.g. 'EPSG:27700')")

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        """Validate output directory path is not empty."""
        if not v or not v.strip():
            raise ValueError("output_dir cannot be empty")
        return v.strip()

    @field_validator("target_crs")
    @classmethod
    def validate_target_crs(cls, v: str | None) -> str | None:
        """Ensure target_crs is something pyproj understands."""
        if v is None:
            return v
        try:
            pyproj.CRS.from_user_input(v)
        except CRSError as e:
            raise ValueError(f"Invalid target_crs '{v}': {e}") from e
        return v


class MasterConfig(BaseModel):
    """
    Master configuration for the mapsimplify CLI.

    This is the root configuration loaded from simplify.toml. It contains
    global settings and a list of layers to process.
    """

    settings: SettingsConfig = Field(default_factory=SettingsConfig, description="Global settings")
    layers: list[LayerConfig] = Field(..., description="List of layers to simplify")

    @model_validator(mode="after")
    def validate_unique_layer_names(self) -> "MasterConfig":
        """Ensure all layer names are unique."""
        names = [layer.name for layer in self.layers]
        duplicates = [name for name in set(names) if names.count(name) > 1]

        if duplicates:
            raise ValueError(f"Duplicate layer names found: {duplicates}")

        return self

    @model_validator(mode="after")
    def validate_at_least_one_layer(self) -> "MasterConfig":
        """Ensure at least one layer is configured."""
        if not self.layers:
            raise ValueError("At least one layer must be configured")

        return self

    def keep_for(self, layer: LayerConfig) -> float:
        """Retention fraction for a layer, honouring its override."""
        return layer.keep if layer.keep is not None else self.settings.keep


def load_config(config_path: Path) -> MasterConfig:
    """
    Load and validate a master configuration file.

    This function reads a TOML configuration file, validates it using Pydantic,
    and resolves relative input paths relative to the config file location.

    Args:
        config_path: Path to the master configuration TOML file (simplify.toml)

    Returns:
        Validated MasterConfig instance with resolved paths

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the TOML file is malformed
        pydantic.ValidationError: If the configuration is invalid

    Example:
        >>> config = load_config(Path("simplify.toml"))
        >>> print(config.settings.keep)
        0.05
        >>> print(config.layers[0].name)
        counties
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in configuration file: {e}") from e

    config = MasterConfig.model_validate(data)

    # Make relative input paths absolute relative to the config file location
    config_dir = config_path.parent
    for layer in config.layers:
        input_path = Path(layer.input)
        if not input_path.is_absolute():
            resolved_path = (config_dir / input_path).resolve()
            layer.input = str(resolved_path)
            logger.debug(f"Resolved input path for layer '{layer.name}': {resolved_path}")

    logger.info(f"Successfully loaded configuration with {len(config.layers)} layer(s)")

    return config
