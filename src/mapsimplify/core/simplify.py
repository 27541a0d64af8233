"""
Topology-preserving polygon simplification.

Reduces the vertex count of every ring to roughly a fraction of the original
while keeping shared borders between neighbouring features identical:

1. Validate features, rejecting malformed ones
2. Optionally snap nearly coincident vertices
3. Decompose rings into shared arcs and rank arc vertices
4. Remove vertices in ascending rank order while every ring using the arc
   stays at or above its target count
5. Restore vertices where arcs now cross each other
6. Apply the shape-retention policy to rings that collapsed

The removal order is Visvalingam-Whyatt effective area by default. Ties are
broken by arc id, then by position along the arc.
"""

import heapq
import logging
from collections.abc import Hashable, Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from functools import partial

from mapsimplify.core.geometry import (
    MIN_RING_VERTICES,
    Feature,
    MultiPolygon,
    Polygon,
    Ring,
    RingValidationError,
    SimplificationError,
)
from mapsimplify.core.topology import Topology, boundary_groups, snap_features

logger = logging.getLogger(__name__)

ON_INVALID_CHOICES = ("skip", "raise")
METHOD_CHOICES = ("vis", "dp")


@dataclass
class RejectedFeature:
    """
    Record of a feature that could not be simplified.

    Attributes:
        feature_id: Identifier of the rejected feature
        error: Description of what was wrong with it
    """

    feature_id: Hashable
    error: str


@dataclass
class SimplifyResult:
    """
    Result of simplifying a feature collection.

    Attributes:
        features: Simplified features, in input order
        rejected: Features rejected as malformed
        dropped: Ids of features removed because their geometry collapsed
        vertices_before: Vertex count of the accepted input features
        vertices_after: Vertex count of the output features
        source_indices: Input position of each output feature
    """

    features: list[Feature]
    rejected: list[RejectedFeature] = field(default_factory=list)
    dropped: list[Hashable] = field(default_factory=list)
    vertices_before: int = 0
    vertices_after: int = 0
    source_indices: list[int] = field(default_factory=list)

    @property
    def retained_fraction(self) -> float:
        if self.vertices_before == 0:
            return 1.0
        return self.vertices_after / self.vertices_before


def target_vertex_count(original_count: int, keep: float) -> int:
    """
    Number of vertices a ring should keep.

    Args:
        original_count: Vertices in the input ring (closing point excluded)
        keep: Retention fraction in (0, 1]

    Returns:
        max(3, round(keep * original_count)), never above original_count
    """
    return min(original_count, max(MIN_RING_VERTICES, round(keep * original_count)))


def _check_parameters(keep: float, method: str, weighting: float, on_invalid: str) -> None:
    if not 0 < keep <= 1:
        raise ValueError(f"keep must be in (0, 1], got {keep}")
    if method not in METHOD_CHOICES:
        raise ValueError(f"method must be one of {METHOD_CHOICES}, got '{method}'")
    if not 0 <= weighting <= 1:
        raise ValueError(f"weighting must be in [0, 1], got {weighting}")
    if on_invalid not in ON_INVALID_CHOICES:
        raise ValueError(f"on_invalid must be one of {ON_INVALID_CHOICES}, got '{on_invalid}'")


def _validate_features(
    features: Iterable[Feature],
    on_invalid: str,
) -> tuple[list[Feature], list[int], list[RejectedFeature]]:
    """Split input into valid features (with their positions) and rejections."""
    valid: list[Feature] = []
    positions: list[int] = []
    rejected: list[RejectedFeature] = []

    for index, feature in enumerate(features):
        try:
            feature.validate()
        except RingValidationError as e:
            if on_invalid == "raise":
                raise
            logger.warning(f"Rejected feature {feature.id!r}: {e}")
            rejected.append(RejectedFeature(feature_id=feature.id, error=str(e)))
            continue
        valid.append(feature)
        positions.append(index)

    return valid, positions, rejected


def _remove_vertices(topology: Topology, targets: Sequence[int]) -> int:
    """Remove ranked vertices until every ring reaches its target. Returns removals."""
    heap: list[tuple[float, int, int]] = [
        (threshold, arc_id, pos)
        for arc_id, arc in enumerate(topology.arcs)
        for pos, threshold in enumerate(arc.thresholds)
        if 0 < pos < len(arc.coords) - 1
    ]
    heapq.heapify(heap)

    removed = 0
    while heap:
        _, arc_id, pos = heapq.heappop(heap)
        if topology.can_remove(arc_id, targets):
            topology.remove(arc_id, pos)
            removed += 1

    return removed


def _repair_intersections(topology: Topology) -> bool:
    """Restore vertices on crossing arcs until none cross. Returns True if anything changed."""
    changed = False
    while True:
        offenders = topology.find_intersecting_arcs()
        if not offenders:
            return changed

        restored = [arc_id for arc_id in sorted(offenders) if topology.restore_last(arc_id)]
        if not restored:
            logger.warning(f"{len(offenders)} arcs still intersect with all vertices restored; input may be invalid")
            return changed

        logger.debug(f"Restored one vertex on each of {len(restored)} intersecting arcs")
        changed = True


def _restore_degenerate(topology: Topology) -> bool:
    """Restore vertices on collapsed rings until each has a valid shape again."""
    changed = False
    for ring_id in range(len(topology.rings)):
        while topology.is_degenerate(ring_id):
            if not topology.restore_latest_in_ring(ring_id):
                break
            changed = True
    return changed


def _assemble(
    features: Sequence[Feature],
    topology: Topology,
    drop_degenerate: bool,
) -> list[MultiPolygon]:
    """Rebuild each feature's geometry from the kept arc vertices."""
    rings: dict[tuple[int, int, int], Ring | None] = {}
    for ring_id, entry in enumerate(topology.rings):
        key = (entry.feature_index, entry.polygon_index, entry.ring_index)
        if drop_degenerate and topology.is_degenerate(ring_id):
            rings[key] = None
        else:
            rings[key] = Ring(topology.ring_coordinates(ring_id))

    geometries: list[MultiPolygon] = []
    for fi, feature in enumerate(features):
        polygons = []
        for pi, polygon in enumerate(feature.geometry.polygons):
            exterior = rings[(fi, pi, 0)]
            if exterior is None:
                continue
            holes = [rings[(fi, pi, ri)] for ri in range(1, len(polygon.rings))]
            polygons.append(Polygon(exterior=exterior, holes=tuple(h for h in holes if h is not None)))
        geometries.append(MultiPolygon(tuple(polygons)))

    return geometries


def simplify_features(
    features: Iterable[Feature],
    keep: float,
    preserve_all_features: bool = True,
    *,
    method: str = "vis",
    weighting: float = 0.0,
    repair: bool = True,
    snap_interval: float | None = None,
    drop_null_geometries: bool = True,
    on_invalid: str = "skip",
) -> SimplifyResult:
    """
    Simplify a polygon feature collection, preserving shared boundaries.

    Each ring keeps about `keep` of its vertices (never fewer than 3).
    Vertices on a border shared by several rings are removed from all of
    them at once, so neighbouring features never develop gaps or overlaps.

    Consecutive duplicate vertices are collapsed before counting, so even at
    keep=1.0 a ring that repeats a vertex comes back without the repeat.
    Otherwise keep=1.0 returns the input geometry unchanged.

    Args:
        features: Input features; they are not modified
        keep: Retention fraction in (0, 1]
        preserve_all_features: Keep collapsed rings at their last valid
            vertex count instead of dropping them
        method: "vis" (Visvalingam effective area) or "dp" (Douglas-Peucker)
        weighting: Angle weighting for "vis"; 0 gives plain effective area
        repair: Restore vertices where simplified arcs cross each other
        snap_interval: Snap vertices closer than this before detecting
            shared borders (None disables snapping)
        drop_null_geometries: Remove features whose geometry collapsed
            entirely; otherwise keep them with an empty geometry
        on_invalid: "skip" records malformed features in the result and
            continues; "raise" aborts the batch

    Returns:
        SimplifyResult with features in input order

    Raises:
        ValueError: If a parameter is out of range
        RingValidationError: For malformed input when on_invalid="raise"

    Example:
        >>> result = simplify_features(features, keep=0.05)
        >>> [f.id for f in result.features] == [f.id for f in features]
        True
    """
    _check_parameters(keep, method, weighting, on_invalid)

    valid, positions, rejected = _validate_features(features, on_invalid)
    if not valid:
        return SimplifyResult(features=[], rejected=rejected)

    if snap_interval:
        valid = snap_features(valid, snap_interval)

    topology = Topology.build(valid, method=method, weighting=weighting)
    targets = [target_vertex_count(ring.original_vertex_count, keep) for ring in topology.rings]
    vertices_before = sum(ring.original_vertex_count for ring in topology.rings)

    removed = _remove_vertices(topology, targets)
    logger.debug(f"Removed {removed} of {vertices_before} vertices before repair")

    while True:
        changed = _repair_intersections(topology) if repair else False
        if preserve_all_features and _restore_degenerate(topology):
            changed = True
        if not changed:
            break

    geometries = _assemble(valid, topology, drop_degenerate=not preserve_all_features)

    output: list[Feature] = []
    source_indices: list[int] = []
    dropped: list[Hashable] = []
    for feature, geometry, position in zip(valid, geometries, positions, strict=True):
        if geometry.is_empty and not feature.geometry.is_empty:
            if drop_null_geometries:
                logger.info(f"Dropped feature {feature.id!r}: geometry collapsed during simplification")
                dropped.append(feature.id)
                continue
            logger.info(f"Feature {feature.id!r} kept with empty geometry")
        output.append(Feature(id=feature.id, geometry=geometry, properties=feature.properties))
        source_indices.append(position)

    result = SimplifyResult(
        features=output,
        rejected=rejected,
        dropped=dropped,
        vertices_before=vertices_before,
        vertices_after=sum(f.geometry.vertex_count for f in output),
        source_indices=source_indices,
    )
    logger.info(
        f"Simplified {len(output)} features: {result.vertices_before} -> {result.vertices_after} vertices "
        f"({result.retained_fraction:.1%} retained), {len(rejected)} rejected, {len(dropped)} dropped"
    )
    return result


def simplify_features_parallel(
    features: Sequence[Feature],
    keep: float,
    preserve_all_features: bool = True,
    *,
    workers: int = 1,
    snap_interval: float | None = None,
    on_invalid: str = "skip",
    **options,
) -> SimplifyResult:
    """
    Simplify independent boundary groups in worker processes.

    Features whose bounding boxes are disjoint are simplified in separate
    processes. Neighbours sharing a border, and features close enough for
    their simplified outlines to cross, always stay in the same group, so
    intersection repair sees every arc it could involve. Output order
    matches the serial version.

    Args:
        features: Input features
        keep: Retention fraction in (0, 1]
        preserve_all_features: See simplify_features
        workers: Number of worker processes (1 runs serially)
        snap_interval: Applied to the whole collection before grouping
        on_invalid: See simplify_features
        **options: Forwarded to simplify_features (method, weighting,
            repair, drop_null_geometries)

    Returns:
        SimplifyResult equivalent to simplify_features on the whole input
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    run = partial(simplify_features, keep=keep, preserve_all_features=preserve_all_features, **options)

    if workers == 1:
        return run(features, snap_interval=snap_interval, on_invalid=on_invalid)

    _check_parameters(keep, options.get("method", "vis"), options.get("weighting", 0.0), on_invalid)
    valid, positions, rejected = _validate_features(features, on_invalid)
    if snap_interval:
        valid = snap_features(valid, snap_interval)

    groups = boundary_groups(valid)
    logger.info(f"Simplifying {len(valid)} features in {len(groups)} boundary groups with {workers} workers")

    batches = [[valid[i] for i in group] for group in groups]
    with ProcessPoolExecutor(max_workers=workers) as executor:
        partials = list(executor.map(run, batches))

    indexed: list[tuple[int, Feature]] = []
    dropped: list[Hashable] = []
    vertices_before = 0
    for group, part in zip(groups, partials, strict=True):
        if part.rejected:
            raise SimplificationError(f"Unexpected rejection inside boundary group: {part.rejected[0].error}")
        for local, feature in zip(part.source_indices, part.features, strict=True):
            indexed.append((positions[group[local]], feature))
        dropped.extend(part.dropped)
        vertices_before += part.vertices_before

    indexed.sort(key=lambda item: item[0])
    output = [feature for _, feature in indexed]
    return SimplifyResult(
        features=output,
        rejected=rejected,
        dropped=dropped,
        vertices_before=vertices_before,
        vertices_after=sum(f.geometry.vertex_count for f in output),
        source_indices=[position for position, _ in indexed],
    )
