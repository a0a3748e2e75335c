"""Static configuration tables for the store locator engine"""

from config.grid_config import REGIONS, STRATEGIC_US_POINTS, get_region
from config.locator_config import (
    BOT_CHALLENGE_MARKERS,
    BROWSER_FALLBACK_UA,
    LOCATOR_PATHS,
    VENDOR_MARKERS,
)

__all__ = [
    'BOT_CHALLENGE_MARKERS',
    'BROWSER_FALLBACK_UA',
    'LOCATOR_PATHS',
    'REGIONS',
    'STRATEGIC_US_POINTS',
    'VENDOR_MARKERS',
    'get_region',
]
