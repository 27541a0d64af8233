"""
Typed polygon geometry model used by the simplifier.

Features carry their shape as a MultiPolygon built from closed Rings of
immutable Points. Rings are checked with validate() rather than on
construction, so malformed input can be rejected one feature at a time.

Conversions to and from shapely live here as well, since shapely (through
geopandas) is how geometry enters and leaves the package.
"""

import logging
from collections.abc import Hashable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

import numpy as np
from shapely.geometry import MultiPolygon as ShapelyMultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

MIN_RING_COORDINATES = 4  # three distinct vertices plus the closing point
MIN_RING_VERTICES = 3


class SimplificationError(Exception):
    """Raised when a feature collection cannot be simplified."""

    pass


class RingValidationError(SimplificationError, ValueError):
    """Raised when input geometry is malformed (unclosed, too short, wrong type)."""

    pass


class Point(NamedTuple):
    """A planar coordinate pair."""

    x: float
    y: float


def signed_area(vertices: Iterable[tuple[float, float]]) -> float:
    """
    Shoelace area of an open vertex sequence.

    Counter-clockwise rings have positive area, clockwise rings negative.
    """
    xy = np.asarray(list(vertices), dtype=float)
    if len(xy) < 3:
        return 0.0

    x, y = xy[:, 0], xy[:, 1]
    return float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)) / 2.0


@dataclass(frozen=True)
class Ring:
    """
    A closed contour of a polygon.

    Attributes:
        points: Coordinates with the first point repeated at the end
    """

    points: tuple[Point, ...]

    def __post_init__(self) -> None:
        """Normalize coordinates to float Points, dropping any Z value."""
        points = tuple(Point(float(c[0]), float(c[1])) for c in self.points)
        object.__setattr__(self, "points", points)

    def validate(self) -> None:
        """
        Check that the ring is closed and large enough to bound an area.

        Raises:
            RingValidationError: If the ring has fewer than 4 coordinates,
                is not closed, or has fewer than 3 distinct vertices
        """
        points = self.points
        if len(points) < MIN_RING_COORDINATES:
            raise RingValidationError(
                f"Ring has {len(points)} coordinates; at least {MIN_RING_COORDINATES} are required"
            )
        if points[0] != points[-1]:
            raise RingValidationError(
                f"Ring is not closed: first point {tuple(points[0])} != last point {tuple(points[-1])}"
            )
        if len(set(points[:-1])) < MIN_RING_VERTICES:
            raise RingValidationError(f"Ring has fewer than {MIN_RING_VERTICES} distinct vertices")

    @classmethod
    def from_vertices(cls, vertices: Iterable[tuple[float, float]]) -> "Ring":
        """Build a ring from an open vertex sequence, closing it."""
        pts = [Point(float(x), float(y)) for x, y in vertices]
        if pts:
            pts.append(pts[0])
        return cls(tuple(pts))

    @property
    def vertices(self) -> tuple[Point, ...]:
        """Ring vertices without the closing point."""
        return self.points[:-1]

    @property
    def vertex_count(self) -> int:
        return len(self.points) - 1

    @property
    def signed_area(self) -> float:
        return signed_area(self.vertices)

    @property
    def area(self) -> float:
        return abs(self.signed_area)


@dataclass(frozen=True)
class Polygon:
    """An exterior ring with optional holes."""

    exterior: Ring
    holes: tuple[Ring, ...] = ()

    @property
    def rings(self) -> tuple[Ring, ...]:
        """Exterior first, then holes."""
        return (self.exterior, *self.holes)


@dataclass(frozen=True)
class MultiPolygon:
    """
    One or more polygons under a single feature identity.

    An empty MultiPolygon stands for a null geometry.
    """

    polygons: tuple[Polygon, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.polygons

    @property
    def vertex_count(self) -> int:
        return sum(ring.vertex_count for polygon in self.polygons for ring in polygon.rings)


@dataclass(frozen=True)
class Feature:
    """
    A polygon feature with its attribute record.

    Attributes:
        id: Identifier that survives simplification unchanged
        geometry: Feature shape
        properties: Attribute values keyed by field name
    """

    id: Hashable
    geometry: MultiPolygon
    properties: Mapping[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """
        Validate every ring of the feature.

        Raises:
            RingValidationError: Naming the offending polygon and ring
        """
        if not isinstance(self.geometry, MultiPolygon):
            raise RingValidationError(
                f"Feature {self.id!r}: unsupported geometry type {type(self.geometry).__name__}"
            )
        for pi, polygon in enumerate(self.geometry.polygons):
            for ri, ring in enumerate(polygon.rings):
                try:
                    ring.validate()
                except RingValidationError as e:
                    kind = "exterior" if ri == 0 else f"hole {ri}"
                    raise RingValidationError(f"Feature {self.id!r}, polygon {pi}, {kind}: {e}") from e


def iter_rings(features: Iterable[Feature]) -> Iterator[tuple[int, int, int, Ring]]:
    """
    Iterate over every ring of a feature collection.

    Yields:
        (feature_index, polygon_index, ring_index, ring) with ring_index 0
        for the exterior and 1.. for holes
    """
    for fi, feature in enumerate(features):
        for pi, polygon in enumerate(feature.geometry.polygons):
            for ri, ring in enumerate(polygon.rings):
                yield fi, pi, ri, ring


def _polygon_from_shapely(poly: ShapelyPolygon) -> Polygon:
    exterior = Ring(tuple(Point(*c[:2]) for c in poly.exterior.coords))
    holes = tuple(Ring(tuple(Point(*c[:2]) for c in interior.coords)) for interior in poly.interiors)
    return Polygon(exterior=exterior, holes=holes)


def from_shapely(geom: BaseGeometry | None) -> MultiPolygon:
    """
    Convert a shapely Polygon or MultiPolygon to the typed model.

    Z values are dropped. None and empty geometries become an empty
    MultiPolygon.

    Raises:
        RingValidationError: For other geometry types or malformed rings
    """
    if geom is None or geom.is_empty:
        return MultiPolygon()

    if isinstance(geom, ShapelyPolygon):
        return MultiPolygon((_polygon_from_shapely(geom),))
    elif isinstance(geom, ShapelyMultiPolygon):
        return MultiPolygon(tuple(_polygon_from_shapely(p) for p in geom.geoms if not p.is_empty))
    else:
        raise RingValidationError(f"Unsupported geometry type: {geom.geom_type}")


def _polygon_from_coordinates(rings: list) -> Polygon:
    if not rings:
        raise RingValidationError("Polygon has no rings")
    exterior, *holes = (Ring(tuple(Point(c[0], c[1]) for c in ring)) for ring in rings)
    return Polygon(exterior=exterior, holes=tuple(holes))


def from_geojson(geometry: Mapping[str, Any] | None) -> MultiPolygon:
    """
    Convert a GeoJSON geometry mapping to the typed model.

    Coordinates are taken as given, without closing or repairing rings, so
    malformed input is caught later by Feature.validate().

    Raises:
        RingValidationError: For geometry types other than Polygon/MultiPolygon
    """
    if not geometry:
        return MultiPolygon()

    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates") or []

    if geom_type == "Polygon":
        return MultiPolygon((_polygon_from_coordinates(coordinates),)) if coordinates else MultiPolygon()
    elif geom_type == "MultiPolygon":
        return MultiPolygon(tuple(_polygon_from_coordinates(p) for p in coordinates))
    else:
        raise RingValidationError(f"Unsupported geometry type: {geom_type}")


def to_shapely(geometry: MultiPolygon) -> ShapelyPolygon | ShapelyMultiPolygon | None:
    """
    Convert the typed model back to shapely.

    Single-part geometries come back as a Polygon so that round-tripping a
    Polygon layer does not silently promote it. Empty geometries become None.
    """
    if geometry.is_empty:
        return None

    polygons = [
        ShapelyPolygon(polygon.exterior.points, holes=[hole.points for hole in polygon.holes])
        for polygon in geometry.polygons
    ]
    if len(polygons) == 1:
        return polygons[0]
    return ShapelyMultiPolygon(polygons)
