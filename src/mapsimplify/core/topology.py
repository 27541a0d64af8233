"""
Shared-boundary bookkeeping for polygon collections.

Rings are cut into arcs at junctions, the points where neighbouring rings
start or stop sharing a boundary. An arc shared by two rings is stored once
and both rings refer to it, so any vertex removed from a shared arc
disappears from every ring that uses it. Arc endpoints are never removed.

A coordinate is a junction when it occurs more than once in the collection
with different neighbours (the same rule TopoJSON uses). A ring without any
junction becomes a closed arc anchored at its smallest coordinate, so an
island and the hole it fills produce the same arc.
"""

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from shapely import STRtree
from shapely.geometry import LineString, MultiPoint
from shapely.geometry import Point as ShapelyPoint

from mapsimplify.core.geometry import Feature, MultiPolygon, Point, Polygon, Ring, iter_rings, signed_area
from mapsimplify.core.ranking import rank_arc

logger = logging.getLogger(__name__)


@dataclass
class Arc:
    """
    A run of boundary shared by one or more rings.

    Attributes:
        coords: Arc coordinates from endpoint to endpoint; closed loops
                repeat their anchor at the end
        ring_uses: Ring id -> number of times that ring traverses the arc
        kept: Whether each position is currently part of the output
        thresholds: Removal threshold per position (inf for endpoints)
        removed: Removal log of (sequence number, position), most recent last
    """

    coords: tuple[Point, ...]
    ring_uses: Counter = field(default_factory=Counter)
    kept: list[bool] = field(default_factory=list)
    thresholds: list[float] = field(default_factory=list)
    removed: list[tuple[int, int]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.kept:
            self.kept = [True] * len(self.coords)

    @property
    def is_closed(self) -> bool:
        return self.coords[0] == self.coords[-1]

    def kept_coords(self) -> list[Point]:
        return [c for c, keep in zip(self.coords, self.kept, strict=True) if keep]


@dataclass
class RingEntry:
    """
    A ring of the input collection expressed as arc references.

    Attributes:
        feature_index: Position of the owning feature in the input
        polygon_index: Polygon within the feature's MultiPolygon
        ring_index: 0 for the exterior, 1.. for holes
        refs: (arc_id, position) for every ring vertex, in ring order
        original_signed_area: Signed area before simplification
    """

    feature_index: int
    polygon_index: int
    ring_index: int
    refs: list[tuple[int, int]]
    original_signed_area: float

    @property
    def original_vertex_count(self) -> int:
        return len(self.refs)


def _dedupe_vertices(vertices: Sequence[Point]) -> list[Point]:
    """Drop consecutive repeated vertices, including across the ring closure."""
    out: list[Point] = []
    for v in vertices:
        if not out or out[-1] != v:
            out.append(v)
    while len(out) > 1 and out[0] == out[-1]:
        out.pop()
    return out


def find_junctions(rings: Sequence[Sequence[Point]]) -> set[Point]:
    """
    Find coordinates where boundary sharing begins, ends or branches.

    Args:
        rings: Open vertex sequences (closing point excluded)

    Returns:
        Set of junction coordinates
    """
    neighbours: dict[Point, set[tuple[Point, Point]]] = {}
    occurrences: Counter = Counter()

    for vertices in rings:
        n = len(vertices)
        for i, v in enumerate(vertices):
            a, b = vertices[i - 1], vertices[(i + 1) % n]
            pair = (a, b) if a <= b else (b, a)
            neighbours.setdefault(v, set()).add(pair)
            occurrences[v] += 1

    # More than two occurrences with identical neighbours would mean three
    # rings on one edge; treat those as junctions too.
    return {v for v, pairs in neighbours.items() if len(pairs) > 1 or occurrences[v] > 2}


def _canonical_loop(vertices: Sequence[Point]) -> tuple[Point, ...]:
    """Rotate and orient a junction-free ring so equal loops share one key."""
    start = min(range(len(vertices)), key=lambda i: vertices[i])
    rotated = list(vertices[start:]) + list(vertices[:start])
    if len(rotated) > 2 and rotated[-1] < rotated[1]:
        rotated = [rotated[0], *reversed(rotated[1:])]
    return (*rotated, rotated[0])


class Topology:
    """
    Arc decomposition of a feature collection with removal bookkeeping.

    The Topology owns the kept/removed state of every arc vertex and the
    current vertex count of every ring, and can rebuild simplified rings.
    """

    def __init__(self, arcs: list[Arc], rings: list[RingEntry]) -> None:
        self.arcs = arcs
        self.rings = rings
        self.vertex_counts = [ring.original_vertex_count for ring in rings]
        self._sequence = 0

    @classmethod
    def build(cls, features: Sequence[Feature], method: str = "vis", weighting: float = 0.0) -> "Topology":
        """
        Decompose every ring of a collection into ranked arcs.

        Args:
            features: Validated features
            method: Ranking method passed to rank_arc ("vis" or "dp")
            weighting: Angle weighting for the "vis" method

        Returns:
            Topology with all vertices kept
        """
        locations: list[tuple[int, int, int]] = []
        vertex_lists: list[list[Point]] = []
        for fi, pi, ri, ring in iter_rings(features):
            locations.append((fi, pi, ri))
            vertex_lists.append(_dedupe_vertices(ring.vertices))

        junctions = find_junctions(vertex_lists)

        arcs: list[Arc] = []
        arc_index: dict[tuple[Point, ...], int] = {}
        entries: list[RingEntry] = []

        def lookup(key: tuple[Point, ...]) -> tuple[int, bool]:
            """Return (arc_id, reversed), creating the arc when unseen."""
            if key in arc_index:
                return arc_index[key], False
            reverse_key = key[::-1]
            if reverse_key in arc_index:
                return arc_index[reverse_key], True
            arc_index[key] = len(arcs)
            arcs.append(Arc(coords=key))
            return arc_index[key], False

        for ring_id, ((fi, pi, ri), vertices) in enumerate(zip(locations, vertex_lists, strict=True)):
            n = len(vertices)
            refs: list[tuple[int, int]] = [(-1, -1)] * n
            cuts = [i for i, v in enumerate(vertices) if v in junctions]

            if not cuts:
                key = _canonical_loop(vertices)
                arc_id, _ = lookup(key)
                positions = {c: pos for pos, c in enumerate(key[:-1])}
                for i, v in enumerate(vertices):
                    refs[i] = (arc_id, positions[v])
                arcs[arc_id].ring_uses[ring_id] += 1
            else:
                for k, start in enumerate(cuts):
                    end = cuts[k + 1] if k + 1 < len(cuts) else cuts[0] + n
                    indices = [j % n for j in range(start, end + 1)]
                    key = tuple(vertices[j] for j in indices)
                    arc_id, is_reversed = lookup(key)
                    last = len(key) - 1
                    for local, j in enumerate(indices[:-1]):
                        refs[j] = (arc_id, last - local if is_reversed else local)
                    arcs[arc_id].ring_uses[ring_id] += 1

            entries.append(
                RingEntry(
                    feature_index=fi,
                    polygon_index=pi,
                    ring_index=ri,
                    refs=refs,
                    original_signed_area=signed_area(vertices),
                )
            )

        for arc in arcs:
            arc.thresholds = rank_arc(arc.coords, method=method, weighting=weighting)

        shared = sum(1 for arc in arcs if len(arc.ring_uses) > 1)
        logger.debug(
            f"Built topology: {len(entries)} rings, {len(arcs)} arcs ({shared} shared), {len(junctions)} junctions"
        )
        return cls(arcs, entries)

    def ring_vertices(self, ring_id: int) -> list[Point]:
        """Kept vertices of a ring in original order (open sequence)."""
        arcs = self.arcs
        return [arcs[a].coords[pos] for a, pos in self.rings[ring_id].refs if arcs[a].kept[pos]]

    def ring_coordinates(self, ring_id: int) -> tuple[Point, ...]:
        """Kept vertices of a ring, closed."""
        vertices = self.ring_vertices(ring_id)
        return (*vertices, vertices[0])

    def ring_signed_area(self, ring_id: int) -> float:
        return signed_area(self.ring_vertices(ring_id))

    def is_degenerate(self, ring_id: int) -> bool:
        """
        True when the ring has collapsed to zero area or flipped orientation.

        A ring that already had zero area in the input has nothing left to
        collapse and is never reported.
        """
        original = self.rings[ring_id].original_signed_area
        if original == 0:
            return False
        area = self.ring_signed_area(ring_id)
        return area == 0 or (area > 0) != (original > 0)

    def can_remove(self, arc_id: int, targets: Sequence[int]) -> bool:
        """Whether removing one vertex of an arc keeps every using ring at or above target."""
        counts = self.vertex_counts
        return all(counts[r] - uses >= targets[r] for r, uses in self.arcs[arc_id].ring_uses.items())

    def remove(self, arc_id: int, position: int) -> None:
        """Remove an interior vertex from an arc and from every ring using it."""
        arc = self.arcs[arc_id]
        if position in (0, len(arc.coords) - 1):
            raise ValueError(f"Cannot remove pinned endpoint {position} of arc {arc_id}")

        arc.kept[position] = False
        self._sequence += 1
        arc.removed.append((self._sequence, position))
        for r, uses in arc.ring_uses.items():
            self.vertex_counts[r] -= uses

    def restore_last(self, arc_id: int) -> bool:
        """
        Put back the most recently removed vertex of an arc.

        Returns:
            False when the arc has nothing left to restore
        """
        arc = self.arcs[arc_id]
        if not arc.removed:
            return False

        _, position = arc.removed.pop()
        arc.kept[position] = True
        for r, uses in arc.ring_uses.items():
            self.vertex_counts[r] += uses
        return True

    def ring_arcs(self, ring_id: int) -> set[int]:
        return {a for a, _ in self.rings[ring_id].refs}

    def restore_latest_in_ring(self, ring_id: int) -> bool:
        """Restore the most recent removal among the arcs of a ring."""
        candidates = [a for a in self.ring_arcs(ring_id) if self.arcs[a].removed]
        if not candidates:
            return False
        latest = max(candidates, key=lambda a: self.arcs[a].removed[-1][0])
        return self.restore_last(latest)

    def find_intersecting_arcs(self) -> set[int]:
        """
        Find arcs that self-intersect or cross another arc.

        Arcs may only meet at shared endpoints; any other contact between two
        arcs, or a non-simple arc, is reported.
        """
        lines = [LineString(arc.kept_coords()) for arc in self.arcs]
        offenders = {i for i, line in enumerate(lines) if not line.is_simple}

        tree = STRtree(lines)
        for i, line in enumerate(lines):
            for j in tree.query(line, predicate="intersects"):
                j = int(j)
                if j <= i:
                    continue
                a, b = self.arcs[i], self.arcs[j]
                allowed = {a.coords[0], a.coords[-1]} & {b.coords[0], b.coords[-1]}
                contact = line.intersection(lines[j])
                if contact.is_empty:
                    continue

                if contact.geom_type == "Point":
                    points = [contact]
                elif contact.geom_type == "MultiPoint":
                    points = list(contact.geoms)
                else:
                    # Shared segments: the arcs overlap
                    offenders.update((i, j))
                    continue

                if any((p.x, p.y) not in allowed for p in points):
                    offenders.update((i, j))

        return offenders


def boundary_groups(features: Sequence[Feature]) -> list[list[int]]:
    """
    Partition features into groups that can be simplified independently.

    Two features land in the same group when their bounding boxes intersect,
    which covers every pair sharing a coordinate. Simplification only ever
    keeps a subset of a ring's vertices, so a simplified feature stays inside
    its original bounding box and can never reach a feature in another group.

    Returns:
        Lists of feature indices, ordered by their smallest index
    """
    parent = list(range(len(features)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    owners: list[int] = []
    envelopes = []
    for fi, feature in enumerate(features):
        vertices = [v for _, _, _, ring in iter_rings([feature]) for v in ring.vertices]
        if not vertices:
            continue
        owners.append(fi)
        envelopes.append(MultiPoint(vertices).envelope)

    if envelopes:
        tree = STRtree(envelopes)
        left, right = tree.query(envelopes, predicate="intersects")
        for i, j in zip(left.tolist(), right.tolist(), strict=True):
            root_a, root_b = find(owners[i]), find(owners[j])
            if root_a != root_b:
                parent[max(root_a, root_b)] = min(root_a, root_b)

    groups: dict[int, list[int]] = {}
    for i in range(len(features)):
        groups.setdefault(find(i), []).append(i)

    return sorted(groups.values(), key=lambda g: g[0])


def snap_features(features: Sequence[Feature], interval: float) -> list[Feature]:
    """
    Snap nearly coincident vertices together.

    Every coordinate within `interval` of an earlier (already kept)
    coordinate is moved onto it, so borders digitised slightly apart are
    detected as shared. A feature whose rings would collapse is left
    unsnapped.

    Args:
        features: Validated features
        interval: Snapping distance in coordinate units

    Returns:
        New features with snapped coordinates
    """
    if interval <= 0:
        raise ValueError(f"snap_interval must be positive, got {interval}")

    unique: list[Point] = list(dict.fromkeys(v for _, _, _, ring in iter_rings(features) for v in ring.vertices))
    if not unique:
        return list(features)

    tree = STRtree([ShapelyPoint(c) for c in unique])
    target: dict[Point, Point] = {}
    for c in unique:
        if c in target:
            continue
        target[c] = c
        for j in tree.query(ShapelyPoint(c), predicate="dwithin", distance=interval):
            other = unique[int(j)]
            if other not in target:
                target[other] = c

    moved = sum(1 for c, t in target.items() if c != t)
    logger.info(f"Snapped {moved} of {len(unique)} coordinates within {interval}")

    snapped: list[Feature] = []
    for feature in features:
        polygons = []
        try:
            for polygon in feature.geometry.polygons:
                rings = []
                for ring in polygon.rings:
                    new_ring = Ring.from_vertices(_dedupe_vertices([target[v] for v in ring.vertices]))
                    new_ring.validate()
                    rings.append(new_ring)
                polygons.append(Polygon(exterior=rings[0], holes=tuple(rings[1:])))
        except ValueError as e:
            logger.warning(f"Feature {feature.id!r} left unsnapped: {e}")
            snapped.append(feature)
            continue
        snapped.append(Feature(id=feature.id, geometry=MultiPolygon(tuple(polygons)), properties=feature.properties))

    return snapped
