"""
Shared pytest fixtures for core module tests.

Provides small synthetic feature collections built directly from the typed
geometry model, without reading any files.
"""

import pytest

from mapsimplify.core.geometry import Feature, MultiPolygon, Polygon, Ring


def make_feature(
    feature_id,
    vertices: list[tuple[float, float]],
    holes: list[list[tuple[float, float]]] | None = None,
    **properties,
) -> Feature:
    """
    Create a single-polygon Feature from open vertex lists.

    Args:
        feature_id: Feature identifier
        vertices: Exterior vertices, closing point omitted
        holes: Optional hole vertex lists, closing point omitted
        **properties: Attribute values

    Returns:
        Feature with one polygon
    """
    polygon = Polygon(
        exterior=Ring.from_vertices(vertices),
        holes=tuple(Ring.from_vertices(h) for h in holes or []),
    )
    return Feature(id=feature_id, geometry=MultiPolygon((polygon,)), properties=properties)


ZIGZAG_BORDER = [(10.0, 0.0)] + [(10.5 if i % 2 else 10.0, float(i)) for i in range(1, 10)] + [(10.0, 10.0)]


@pytest.fixture
def square() -> Feature:
    """Unit square, counter-clockwise, starting at the origin."""
    return make_feature("square", [(0, 0), (1, 0), (1, 1), (0, 1)], name="square")


@pytest.fixture
def triangle() -> Feature:
    return make_feature("triangle", [(0, 0), (4, 0), (2, 3)])


@pytest.fixture
def adjacent_squares() -> list[Feature]:
    """Two unit squares sharing the edge from (1, 0) to (1, 1)."""
    return [
        make_feature("A", [(0, 0), (1, 0), (1, 1), (0, 1)], name="A"),
        make_feature("B", [(1, 0), (2, 0), (2, 1), (1, 1)], name="B"),
    ]


@pytest.fixture
def zigzag_neighbours() -> list[Feature]:
    """
    Two 13-vertex polygons sharing a zigzag border along x=10.

    The border has 9 interior vertices; each polygon has 2 more vertices
    away from the border.
    """
    west = make_feature("west", [(0.0, 0.0), *ZIGZAG_BORDER, (0.0, 10.0)])
    east = make_feature("east", [(10.0, 0.0), (20.0, 0.0), (20.0, 10.0), *reversed(ZIGZAG_BORDER[1:])])
    return [west, east]


@pytest.fixture
def pinned_sliver() -> list[Feature]:
    """
    A thin triangle whose base corners and midpoint are all junctions.

    Removing the apex of the sliver leaves three collinear pinned vertices,
    so it collapses to zero area. The two squares below pin (0,0), (1,0)
    and (2,0).
    """
    return [
        make_feature("sliver", [(0, 0), (1, 0), (2, 0), (1, 0.01)]),
        make_feature("left", [(0, 0), (0, -1), (1, -1), (1, 0)]),
        make_feature("right", [(1, 0), (1, -1), (2, -1), (2, 0)]),
    ]


@pytest.fixture
def island_in_hole() -> list[Feature]:
    """A square with a hole exactly filled by a second feature."""
    return [
        make_feature("lake_shore", [(0, 0), (3, 0), (3, 3), (0, 3)], holes=[[(1, 1), (1, 2), (2, 2), (2, 1)]]),
        make_feature("lake", [(1, 1), (2, 1), (2, 2), (1, 2)]),
    ]


@pytest.fixture
def build_feature():
    """Factory fixture exposing make_feature to tests."""
    return make_feature
