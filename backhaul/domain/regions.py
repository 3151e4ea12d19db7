"""
Spatial binning of route endpoints.

Origins and destinations are mapped to H3 hexagons (resolution 7, about
5.16 km²).  Two routes are "comparable" for price history when both their
origin cells and their destination cells match, which keeps the history
lookup a plain indexed equality query.
"""

from __future__ import annotations

import h3


def region_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(float(lat), float(lng), resolution)
