"""Polygon measurements and self-intersection detection for recorded paths."""

from __future__ import annotations

from typing import Sequence

from territory_claim.geo import centroid, distance_m, project_to_local_plane
from territory_claim.models import GeoPoint

# A path whose ends are farther apart than this is closed explicitly before area math.
CLOSING_TOLERANCE_M = 1.0


def total_distance(path: Sequence[GeoPoint]) -> float:
    """Traversed length in meters (the closing segment is not included)."""

    return sum(distance_m(path[i - 1], path[i]) for i in range(1, len(path)))


def _closed_projection(path: Sequence[GeoPoint]) -> list[tuple[float, float]]:
    ring = list(path)
    if distance_m(ring[-1], ring[0]) > CLOSING_TOLERANCE_M:
        ring.append(ring[0])
    # Centroid over the original points, not the duplicated closing vertex.
    return project_to_local_plane(ring, centroid(path))


def enclosed_area(path: Sequence[GeoPoint]) -> float:
    """Enclosed area in square meters using the shoelace formula.

    Args:
        path: Ordered vertices. The ring is closed automatically when the last
            point is not on top of the first.

    Returns:
        Absolute area, 0.0 for fewer than 3 points.
    """

    if len(path) < 3:
        return 0.0
    xy = _closed_projection(path)
    s = 0.0
    n = len(xy)
    for i in range(n):
        x1, y1 = xy[i]
        x2, y2 = xy[(i + 1) % n]
        s += x1 * y2 - x2 * y1
    return abs(s) / 2.0


def bounding_box_area(path: Sequence[GeoPoint]) -> float:
    """Area of the axis-aligned bounding box in the local plane."""

    if len(path) < 2:
        return 0.0
    xy = project_to_local_plane(path, centroid(path))
    xs = [x for x, _ in xy]
    ys = [y for _, y in xy]
    return (max(xs) - min(xs)) * (max(ys) - min(ys))


def compactness_ratio(path: Sequence[GeoPoint]) -> float:
    """Enclosed area as a percentage of the bounding-box area.

    Collinear paths have a zero bounding box and get 0.0.
    """

    box = bounding_box_area(path)
    if box <= 0.0:
        return 0.0
    return enclosed_area(path) / box * 100.0


def _ccw(a: GeoPoint, b: GeoPoint, c: GeoPoint) -> bool:
    return (c.latitude - a.latitude) * (b.longitude - a.longitude) > (b.latitude - a.latitude) * (
        c.longitude - a.longitude
    )


def segments_intersect(p1: GeoPoint, p2: GeoPoint, p3: GeoPoint, p4: GeoPoint) -> bool:
    """Whether segment p1-p2 properly crosses segment p3-p4 (CCW test).

    Longitude is x and latitude is y.
    """

    return _ccw(p1, p3, p4) != _ccw(p2, p3, p4) and _ccw(p1, p2, p3) != _ccw(p1, p2, p4)


def has_self_intersection(path: Sequence[GeoPoint]) -> bool:
    """Check whether the path crosses itself.

    Segment i runs from point i to point i+1. Segments sharing a vertex
    (j == i + 1) are skipped, and so is the pair made of the first and the last
    segment, whose ends meet by construction once the path is closed. Every
    other pair is tested.
    """

    if len(path) < 4:
        return False

    last_segment = len(path) - 2
    for i in range(last_segment + 1):
        for j in range(i + 2, last_segment + 1):
            if i == 0 and j == last_segment:
                continue
            if segments_intersect(path[i], path[i + 1], path[j], path[j + 1]):
                return True
    return False
