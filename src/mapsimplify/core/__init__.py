"""
Core utilities for topology-preserving polygon simplification.

This module contains core functionality for:
- The typed polygon geometry model and shapely/GeoJSON conversion
- Shared-boundary (arc) decomposition of feature collections
- Vertex ranking (Visvalingam effective area, Douglas-Peucker)
- The simplifier and its parallel variant
- GeoDataFrame conversion and output writing
"""

from .geometry import (
    Feature,
    MultiPolygon,
    Point,
    Polygon,
    Ring,
    RingValidationError,
    SimplificationError,
    from_geojson,
    from_shapely,
    iter_rings,
    to_shapely,
)
from .io import features_from_geodataframe, features_to_geodataframe, read_features, simplify_geodataframe
from .output_writer import OutputFormat, OutputWriter, RejectedRecord
from .ranking import douglas_peucker_thresholds, effective_areas, rank_arc
from .simplify import (
    RejectedFeature,
    SimplifyResult,
    simplify_features,
    simplify_features_parallel,
    target_vertex_count,
)
from .topology import Topology, boundary_groups, find_junctions, snap_features

__all__ = [
    # Geometry model
    "Feature",
    "MultiPolygon",
    "Point",
    "Polygon",
    "Ring",
    "RingValidationError",
    "SimplificationError",
    "from_geojson",
    "from_shapely",
    "iter_rings",
    "to_shapely",
    # Topology
    "Topology",
    "boundary_groups",
    "find_junctions",
    "snap_features",
    # Ranking
    "douglas_peucker_thresholds",
    "effective_areas",
    "rank_arc",
    # Simplification
    "RejectedFeature",
    "SimplifyResult",
    "simplify_features",
    "simplify_features_parallel",
    "target_vertex_count",
    # GeoDataFrame I/O
    "features_from_geodataframe",
    "features_to_geodataframe",
    "read_features",
    "simplify_geodataframe",
    # Output writing
    "OutputFormat",
    "OutputWriter",
    "RejectedRecord",
]
