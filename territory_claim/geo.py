"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import Sequence

from territory_claim.models import GeoPoint

# Local equirectangular approximation, valid for extents below ~1 km.
METERS_PER_DEGREE_LAT = 111_320.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    r = 6_371_000.0  # mean Earth radius in meters
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return r * c


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters between two points."""

    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def centroid(points: Sequence[GeoPoint]) -> GeoPoint:
    """Arithmetic mean of latitudes and longitudes.

    Raises:
        ValueError: If points is empty.
    """

    if not points:
        raise ValueError("centroid of an empty point list")
    n = float(len(points))
    return GeoPoint(
        latitude=sum(p.latitude for p in points) / n,
        longitude=sum(p.longitude for p in points) / n,
    )


def meters_per_degree_lon(latitude_deg: float) -> float:
    return METERS_PER_DEGREE_LAT * math.cos(math.radians(latitude_deg))


def project_to_local_plane(points: Sequence[GeoPoint], origin: GeoPoint) -> list[tuple[float, float]]:
    """Project points to a tangent plane around origin.

    Args:
        points: Points to project.
        origin: Plane origin, normally the path centroid. Its latitude sets the
            longitude scale.

    Returns:
        (x, y) offsets in meters, x growing east and y growing north.
    """

    k_lon = meters_per_degree_lon(origin.latitude)
    return [
        (
            (p.longitude - origin.longitude) * k_lon,
            (p.latitude - origin.latitude) * METERS_PER_DEGREE_LAT,
        )
        for p in points
    ]


def bounding_box(points: Sequence[GeoPoint]) -> tuple[float, float, float, float] | None:
    """Return (min_lat, max_lat, min_lon, max_lon), or None for no points."""

    if not points:
        return None
    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return min(lats), max(lats), min(lons), max(lons)
