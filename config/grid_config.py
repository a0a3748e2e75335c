"""Geographic sweep configuration for search-only locator vendors

Some locator vendors only answer "stores near (lat, lng)" queries. Coverage
is approximated either by a fixed list of strategic city centres (cheap,
rough national coverage) or by a computed grid over a named region.
"""

from typing import Dict, NamedTuple, Tuple


class RegionPreset(NamedTuple):
    """Bounding box plus grid spacing for a named sweep region."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    step_miles: float


REGIONS: Dict[str, RegionPreset] = {
    # South Carolina and its border markets
    'sc_region': RegionPreset(32.0, 35.2, -83.4, -78.5, 30.0),
    # Continental US at a coarse spacing
    'conus_coarse': RegionPreset(24.4, 49.4, -125.0, -66.9, 200.0),
}

# (latitude, longitude, representative ZIP) for major metro centres.
# The ZIP feeds vendors whose search form wants a postal code alongside
# coordinates.
STRATEGIC_US_POINTS: Tuple[Tuple[float, float, str], ...] = (
    (44.9778, -93.2650, "55401"),   # Minneapolis
    (39.8283, -98.5795, "67202"),   # Geographic centre (Kansas)
    (34.0522, -118.2437, "90001"),  # Los Angeles
    (40.7128, -74.0060, "10001"),   # New York
    (41.8781, -87.6298, "60601"),   # Chicago
    (29.7604, -95.3698, "77001"),   # Houston
    (39.7392, -104.9903, "80202"),  # Denver
    (33.4484, -112.0740, "85001"),  # Phoenix
    (35.2271, -80.8431, "28202"),   # Charlotte
)


def get_region(name: str) -> RegionPreset:
    """Look up a named sweep region.

    Raises:
        KeyError: If the region is unknown (message lists the known names)
    """
    if name not in REGIONS:
        raise KeyError(f"Unknown sweep region '{name}' (known: {', '.join(sorted(REGIONS))})")
    return REGIONS[name]
