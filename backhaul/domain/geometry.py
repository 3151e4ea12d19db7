"""
Route geometry: polyline decoding, distance and segmentation.

Distances are great-circle (Haversine) distances over the decoded polyline
vertices.  The polyline comes from the driver's mapping provider, so road
curvature is already captured by vertex density; no routing engine is
consulted here.

Segmentation walk
-----------------
Walk consecutive vertex pairs accumulating distance since the last
boundary.  Once the accumulator reaches the target, emit a segment from the
boundary to the current vertex with the *actual* accumulated distance and
reset.  Leftover distance becomes a final partial segment.  Every hop is
counted exactly once, so segment distances sum to the polyline length.

Complexity: O(n) in the number of vertices.
"""

from __future__ import annotations

import math
from typing import Sequence

import polyline

from .entities import Coordinate, RouteSegment
from .errors import InvalidGeometry

EARTH_RADIUS_KM = 6_371.0

# Vertex coordinates carry 1e-5 degree precision (~1 m), so a boundary that
# falls short of the target by less than that is treated as reached.
_BOUNDARY_TOLERANCE_KM = 0.001

LatLng = tuple[float, float]


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def decode_polyline(encoded: str) -> list[LatLng]:
    """Decode a Google encoded polyline (precision 5) into (lat, lng) pairs."""
    try:
        points = polyline.decode(encoded)
    except (IndexError, TypeError, ValueError) as exc:
        raise InvalidGeometry("Polyline could not be decoded") from exc

    for lat, lng in points:
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            raise InvalidGeometry(
                "Polyline contains out-of-range coordinates", lat=lat, lng=lng
            )
    return points


def encode_line(points: Sequence[LatLng]) -> str:
    return polyline.encode(list(points))


def path_length_km(points: Sequence[LatLng]) -> float:
    return sum(
        haversine_km(a[0], a[1], b[0], b[1]) for a, b in zip(points, points[1:])
    )


def polyline_length_km(encoded: str) -> float:
    return path_length_km(decode_polyline(encoded))


def split_into_segments(
    points: Sequence[LatLng], target_km: float
) -> list[RouteSegment]:
    """
    Partition *points* into consecutive segments of roughly *target_km*.

    Zero-length hops (duplicate vertices) are skipped.  Raises
    ``InvalidGeometry`` for a non-positive target, fewer than two points,
    or a path with no length at all.
    """
    if target_km <= 0:
        raise InvalidGeometry(
            "Segment distance must be positive", target_km=target_km
        )
    if len(points) < 2:
        raise InvalidGeometry(
            "A route needs at least two points", points=len(points)
        )

    segments: list[RouteSegment] = []
    boundary = points[0]
    accumulated = 0.0
    travelled = 0.0

    for prev, cur in zip(points, points[1:]):
        step = haversine_km(prev[0], prev[1], cur[0], cur[1])
        if step == 0.0:
            continue
        accumulated += step
        if accumulated >= target_km - _BOUNDARY_TOLERANCE_KM:
            travelled += accumulated
            segments.append(
                _segment(len(segments), boundary, cur, accumulated, travelled)
            )
            boundary, accumulated = cur, 0.0

    if accumulated > 0.0:
        travelled += accumulated
        segments.append(
            _segment(len(segments), boundary, points[-1], accumulated, travelled)
        )

    if not segments:
        raise InvalidGeometry("Polyline has no length")
    return segments


def _segment(
    index: int, start: LatLng, end: LatLng, distance: float, cumulative: float
) -> RouteSegment:
    return RouteSegment(
        index=index,
        start=Coordinate(start[0], start[1]),
        end=Coordinate(end[0], end[1]),
        distance_km=distance,
        cumulative_km=cumulative,
    )
