"""
Vertex ranking for arc simplification.

Each function takes the coordinates of a single arc and returns one removal
threshold per vertex: vertices with lower thresholds are removed first. Arc
endpoints always get an infinite threshold because they are pinned.

Two rankings are available:
- Visvalingam-Whyatt effective area (optionally angle weighted)
- Douglas-Peucker distance tolerance

Ties are broken by position: among vertices with the same threshold the one
nearer the start of the arc is removed first.
"""

import heapq
import logging
import math
from collections.abc import Sequence

logger = logging.getLogger(__name__)

Coordinate = tuple[float, float]


def triangle_area(a: Coordinate, b: Coordinate, c: Coordinate) -> float:
    """Unsigned area of the triangle a-b-c."""
    return abs((b[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (b[1] - a[1])) / 2.0


def angle_weight(a: Coordinate, b: Coordinate, c: Coordinate, weighting: float) -> float:
    """
    Weight applied to the effective area at vertex b.

    Returns 1 - cos(theta) * weighting, where theta is the interior angle at b.
    Spikes (theta near 0) get a weight below 1 and are removed earlier.
    With weighting in [0, 1] the weight stays within [0, 2].
    """
    ux, uy = a[0] - b[0], a[1] - b[1]
    vx, vy = c[0] - b[0], c[1] - b[1]
    norm = math.hypot(ux, uy) * math.hypot(vx, vy)
    if norm == 0:
        return 1.0
    cos_theta = (ux * vx + uy * vy) / norm
    return 1.0 - cos_theta * weighting


def effective_areas(coords: Sequence[Coordinate], weighting: float = 0.0) -> list[float]:
    """
    Compute Visvalingam-Whyatt removal thresholds for an arc.

    The vertex forming the smallest triangle with its neighbours is removed
    first, then its two neighbours are re-scored against their new neighbours.
    A vertex's threshold is never lower than that of a vertex removed before
    it, so thresholds increase along the removal order.

    Args:
        coords: Arc coordinates; a closed loop repeats its first coordinate
        weighting: Angle weighting factor (0 disables weighting)

    Returns:
        Threshold per vertex, with math.inf at both endpoints

    Example:
        >>> effective_areas([(0, 0), (1, 1), (2, 0)])
        [inf, 1.0, inf]
    """
    n = len(coords)
    thresholds = [math.inf] * n
    if n < 3:
        return thresholds

    prev = list(range(-1, n - 1))
    nxt = list(range(1, n + 1))
    current = [math.inf] * n
    removed = [False] * n

    def score(i: int) -> float:
        a, b, c = coords[prev[i]], coords[i], coords[nxt[i]]
        area = triangle_area(a, b, c)
        if weighting:
            area *= angle_weight(a, b, c, weighting)
        return area

    heap: list[tuple[float, int]] = []
    for i in range(1, n - 1):
        current[i] = score(i)
        heap.append((current[i], i))
    heapq.heapify(heap)

    floor = 0.0
    while heap:
        area, i = heapq.heappop(heap)
        if removed[i] or area != current[i]:
            continue

        floor = max(floor, area)
        thresholds[i] = floor
        removed[i] = True

        p, q = prev[i], nxt[i]
        nxt[p] = q
        prev[q] = p

        for j in (p, q):
            if 0 < j < n - 1:
                current[j] = score(j)
                heapq.heappush(heap, (current[j], j))

    return thresholds


def point_segment_distance(p: Coordinate, a: Coordinate, b: Coordinate) -> float:
    """Distance from p to the segment a-b (or to a when the segment is degenerate)."""
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(p[0] - a[0], p[1] - a[1])

    t = ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(p[0] - (a[0] + t * dx), p[1] - (a[1] + t * dy))


def douglas_peucker_thresholds(coords: Sequence[Coordinate]) -> list[float]:
    """
    Compute Douglas-Peucker removal thresholds for an arc.

    A vertex's threshold is the largest tolerance at which Douglas-Peucker
    would still keep it, capped by the threshold of the vertex that split its
    range so that removal never orphans a child before its parent.

    Args:
        coords: Arc coordinates; a closed loop repeats its first coordinate

    Returns:
        Threshold per vertex, with math.inf at both endpoints
    """
    n = len(coords)
    thresholds = [math.inf] * n
    if n < 3:
        return thresholds

    stack: list[tuple[int, int, float]] = [(0, n - 1, math.inf)]
    while stack:
        start, end, cap = stack.pop()
        if end - start < 2:
            continue

        best_index = start + 1
        best_dist = -1.0
        for k in range(start + 1, end):
            dist = point_segment_distance(coords[k], coords[start], coords[end])
            if dist > best_dist:
                best_index, best_dist = k, dist

        threshold = min(best_dist, cap)
        thresholds[best_index] = threshold
        stack.append((start, best_index, threshold))
        stack.append((best_index, end, threshold))

    return thresholds


def rank_arc(coords: Sequence[Coordinate], method: str = "vis", weighting: float = 0.0) -> list[float]:
    """
    Rank arc vertices with the requested method.

    Raises:
        ValueError: If method is not "vis" or "dp"
    """
    if method == "vis":
        return effective_areas(coords, weighting=weighting)
    elif method == "dp":
        return douglas_peucker_thresholds(coords)
    else:
        raise ValueError(f"Unknown simplification method '{method}'. Must be 'vis' or 'dp'.")
