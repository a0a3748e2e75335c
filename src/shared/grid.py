"""Geographic grid generation for search-only locator vendors.

Vendors that only answer "stores near a point" are swept over a set of
points. The longitude step is widened per row by 1/cos(latitude) so that
neighbouring points stay roughly ``step_miles`` apart on the ground.
"""

import logging
import math
from typing import Dict, List, NamedTuple, Optional

from config.grid_config import STRATEGIC_US_POINTS, get_region
from src.shared.constants import GRID

__all__ = [
    'GridBounds',
    'GridPoint',
    'STRATEGIC_POINTS',
    'STRATEGIC_ZIPS',
    'generate_grid',
    'sweep_points',
]


class GridPoint(NamedTuple):
    """A sweep centre."""
    lat: float
    lng: float


class GridBounds(NamedTuple):
    """Bounding box and spacing for a computed grid."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    step_miles: float


STRATEGIC_POINTS: List[GridPoint] = [GridPoint(lat, lng) for lat, lng, _ in STRATEGIC_US_POINTS]

# Representative ZIP per strategic point, for vendors whose form wants one
STRATEGIC_ZIPS: Dict[GridPoint, str] = {
    GridPoint(lat, lng): zip_code for lat, lng, zip_code in STRATEGIC_US_POINTS
}


def generate_grid(bounds: GridBounds) -> List[GridPoint]:
    """Generate sweep points covering a bounding box.

    Rows run from min_lat to max_lat and columns from min_lng to max_lng,
    both inclusive with up to half a step of overshoot. Output is a pure
    function of the bounds.

    Args:
        bounds: Bounding box and step size in miles

    Returns:
        Points in row-major order (south to north, west to east)

    Raises:
        ValueError: If step_miles is not positive
    """
    if bounds.step_miles <= 0:
        raise ValueError(f"step_miles must be positive, got {bounds.step_miles}")

    lat_step = bounds.step_miles / GRID.MILES_PER_LAT_DEGREE
    points = []

    lat = bounds.min_lat
    while lat <= bounds.max_lat + lat_step * 0.5:
        # Clamp so cos() never reaches zero at the poles
        cos_lat = max(math.cos(math.radians(lat)), 1e-6)
        lng_step = bounds.step_miles / (GRID.MILES_PER_LAT_DEGREE * cos_lat)

        lng = bounds.min_lng
        while lng <= bounds.max_lng + lng_step * 0.5:
            points.append(GridPoint(lat, lng))
            lng += lng_step
        lat += lat_step

    logging.debug(f"Generated {len(points)} grid points at {bounds.step_miles}-mile spacing")
    return points


def sweep_points(region: Optional[str] = None) -> List[GridPoint]:
    """Points a sweep vendor should be queried at.

    Args:
        region: Named region from config/grid_config.py, or None for the
            strategic city centres

    Raises:
        KeyError: If the region name is unknown
    """
    if region is None:
        return list(STRATEGIC_POINTS)
    preset = get_region(region)
    return generate_grid(GridBounds(*preset))
