"""
Default values and environment variables for mapsimplify configuration.

This module centralizes all default values and environment variable names
used throughout the mapsimplify CLI.
"""

# Default simplification settings
DEFAULT_KEEP = 0.05
DEFAULT_METHOD = "vis"
DEFAULT_WEIGHTING = 0.0
DEFAULT_KEEP_SHAPES = True
DEFAULT_DROP_NULL_GEOMETRIES = True
DEFAULT_REPAIR = True
DEFAULT_ON_INVALID = "skip"
DEFAULT_WORKERS = 1

# Default output settings
DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_FILE_FORMAT = "gpkg"

# Environment variable names
ENV_OUTPUT_DIR = "MAPSIMPLIFY_OUTPUT_DIR"
ENV_LOG_FILE = "MAPSIMPLIFY_LOG_FILE"
