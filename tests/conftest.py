"""
Pytest configuration and shared fixtures for the test suite.
"""

import logging
from pathlib import Path

import geopandas as gpd
import pytest
from shapely.geometry import Point, Polygon, box


@pytest.fixture(autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.WARNING,  # Reduce noise during tests
        format="%(name)s - %(levelname)s - %(message)s",
    )


@pytest.fixture
def adjacent_squares_gdf() -> gpd.GeoDataFrame:
    """Two unit squares sharing the edge x=1, plus a detached square."""
    return gpd.GeoDataFrame(
        {"name": ["west", "east", "island"], "population": [100, 200, 5]},
        index=[10, 20, 30],
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(5, 5, 6, 6)],
        crs="EPSG:4326",
    )


@pytest.fixture
def jagged_gdf() -> gpd.GeoDataFrame:
    """Two polygons sharing a zigzag border along x=10."""
    border = [(10, 0)] + [(10.5 if i % 2 else 10, i) for i in range(1, 10)] + [(10, 10)]
    west = Polygon([(0, 0), *border, (0, 10)])
    east = Polygon([(10, 0), (20, 0), (20, 10), *reversed(border[1:])])
    return gpd.GeoDataFrame({"name": ["west", "east"]}, geometry=[west, east], crs="EPSG:4326")


@pytest.fixture
def mixed_geometry_gdf() -> gpd.GeoDataFrame:
    """Polygon layer with one point feature that cannot be simplified."""
    return gpd.GeoDataFrame(
        {"name": ["square", "point"]},
        geometry=[box(0, 0, 1, 1), Point(3, 3)],
        crs="EPSG:4326",
    )


@pytest.fixture
def test_data_dir(tmp_path: Path) -> Path:
    """Create a temporary test data directory."""
    data_dir = tmp_path / "test_data"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
