"""Reconcile a fresh scrape into stored locations.

Rows are upserted by identity key and stored rows missing from the scrape
are deactivated, never deleted. A snapshot of the previously active keys is
taken first so the run log can report added/removed counts; that snapshot
is best-effort and a failure only empties the diff.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List

from src.shared.brands import Brand
from src.shared.location_schema import RawLocation, compute_location_key
from src.shared.persistence import KeyedLocation, LocationStore

__all__ = [
    'ReconcileError',
    'ReconcileResult',
    'key_locations',
    'reconcile',
]


class ReconcileError(Exception):
    """The store could not upsert or deactivate a brand's locations."""


@dataclass(frozen=True)
class ReconcileResult:
    new: int
    kept: int
    lost: int
    added: int = 0
    removed: int = 0

    @property
    def active(self) -> int:
        return self.new + self.kept


def key_locations(brand_id, locations: Iterable[RawLocation]) -> List[KeyedLocation]:
    """Pair each location with its key; repeats within one scrape keep the first."""
    keyed: Dict[str, RawLocation] = {}
    for location in locations:
        keyed.setdefault(compute_location_key(brand_id, location), location)
    return list(keyed.items())


def reconcile(store: LocationStore, brand: Brand, keyed_locations: List[KeyedLocation]) -> ReconcileResult:
    """Upsert the scrape and deactivate everything it no longer lists.

    Args:
        store: Location store
        brand: Brand being reconciled
        keyed_locations: Output of key_locations()

    Returns:
        ReconcileResult with new/kept/lost and the added/removed diff

    Raises:
        ReconcileError: If the upsert or deactivation fails
    """
    prefix = f"[{brand.slug}]"
    current_keys = {key for key, _ in keyed_locations}

    try:
        previous_keys = store.get_active_location_keys(brand.id)
    except Exception as e:
        logging.warning(f"{prefix} Could not snapshot active locations, diff unavailable: {e}")
        previous_keys = set()

    try:
        new, kept = store.upsert_locations(brand.id, keyed_locations)
        lost = store.deactivate_missing(brand.id, current_keys)
    except Exception as e:
        raise ReconcileError(str(e)) from e

    added = len(current_keys - previous_keys)
    removed = len(previous_keys - current_keys)
    if added or removed:
        logging.info(f"{prefix} Location diff: +{added} added, -{removed} removed")

    return ReconcileResult(new, kept, lost, added, removed)
