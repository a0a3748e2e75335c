"""Trust gate for scraped location batches.

Decides whether a strategy's output is reliable enough to mutate stored
state. Structured vendor APIs and schema.org markup are trusted outright;
the embedded-JSON heuristic must clear a size and quality floor.
"""

import logging
from typing import FrozenSet, Sequence

from src.shared.constants import TRUST
from src.shared.location_schema import RawLocation

__all__ = [
    'EMBED_SOURCE',
    'TRUSTED_SOURCES',
    'TrustRejected',
    'has_minimum_shape',
    'quality_ratio',
    'validate_locations_trust',
]

TRUSTED_SOURCES: FrozenSet[str] = frozenset({
    'locally',
    'storemapper',
    'stockist',
    'storepoint',
    'destini',
    'vtinfo',
    'jsonld',
})

EMBED_SOURCE = 'json_embed'


class TrustRejected(Exception):
    """Raised when a scrape result fails the trust gate."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def has_minimum_shape(location: RawLocation) -> bool:
    """True when a record names a store and says where it is.

    Requires a non-empty name plus an address, a city and state, or both
    coordinates.
    """
    if not location.name or not location.name.strip():
        return False
    has_address = bool(location.address_line1)
    has_city_state = bool(location.city) and bool(location.state)
    return has_address or has_city_state or location.has_coordinates


def quality_ratio(locations: Sequence[RawLocation]) -> float:
    if not locations:
        return 0.0
    well_shaped = sum(1 for location in locations if has_minimum_shape(location))
    return well_shaped / len(locations)


def validate_locations_trust(locations: Sequence[RawLocation]) -> None:
    """Accept or reject a batch of scraped locations.

    The batch's source is taken from its first record; strategies never mix
    sources.

    Args:
        locations: Output of a single extraction strategy

    Raises:
        TrustRejected: With a human-readable reason when the batch is rejected
    """
    if not locations:
        raise TrustRejected("scrape returned zero locations")

    source = locations[0].locator_source
    if source in TRUSTED_SOURCES:
        return

    if source == EMBED_SOURCE:
        count = len(locations)
        ratio = quality_ratio(locations)
        if count >= TRUST.EMBED_MIN_COUNT and ratio >= TRUST.EMBED_MIN_QUALITY_RATIO:
            return
        logging.debug(f"Embedded JSON batch rejected: count={count}, quality_ratio={ratio:.2f}")
        raise TrustRejected(
            f"json_embed scrape below trust threshold (count={count}, quality_ratio={ratio:.2f})"
        )

    raise TrustRejected(f"unknown locator source '{source}'")
