"""
Shared pytest fixtures for CLI tests.
"""

import logging
from pathlib import Path

import geopandas as gpd
import pytest

from mapsimplify.config import ENV_LOG_FILE, ENV_OUTPUT_DIR


@pytest.fixture(autouse=True)
def isolate_cli_environment(monkeypatch):
    """Clear CLI environment variables and restore root logging after each test."""
    monkeypatch.delenv(ENV_OUTPUT_DIR, raising=False)
    monkeypatch.delenv(ENV_LOG_FILE, raising=False)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def squares_gpkg(adjacent_squares_gdf: gpd.GeoDataFrame, test_data_dir: Path) -> Path:
    """Adjacent squares written to a GeoPackage."""
    path = test_data_dir / "squares.gpkg"
    adjacent_squares_gdf.to_file(path, driver="GPKG")
    return path


@pytest.fixture
def mixed_geojson(mixed_geometry_gdf: gpd.GeoDataFrame, test_data_dir: Path) -> Path:
    """A polygon and a point written to GeoJSON."""
    path = test_data_dir / "mixed.geojson"
    mixed_geometry_gdf.to_file(path, driver="GeoJSON")
    return path


@pytest.fixture
def write_config(test_data_dir: Path, tmp_path: Path):
    """Factory writing a simplify.toml next to the test data."""

    def _write(layers: dict[str, str], **settings) -> Path:
        settings.setdefault("output_dir", (tmp_path / "out").as_posix())
        lines = ["[settings]"]
        for key, value in settings.items():
            lines.append(f"{key} = {value!r}" if isinstance(value, str) else f"{key} = {str(value).lower()}")
        for name, input_path in layers.items():
            lines += ["", "[[layers]]", f'name = "{name}"', f'input = "{input_path}"']

        config_path = test_data_dir / "simplify.toml"
        config_path.write_text("\n".join(lines) + "\n")
        return config_path

    return _write
