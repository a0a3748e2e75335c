"""schema.org structured data strategy

Reads every ``<script type="application/ld+json">`` block and keeps objects
typed as a physical business location. Blocks may hold a single object, an
array, or an ``@graph`` container.
"""

import json
import logging
from typing import Any, Iterable, List, Optional

from bs4 import BeautifulSoup

from src.locators.base import LocatorContext, LocatorStrategy
from src.shared.location_schema import RawLocation, first_float, first_str

ACCEPTED_TYPES = frozenset(t.lower() for t in (
    "LocalBusiness",
    "Store",
    "FoodEstablishment",
    "GroceryStore",
    "ConvenienceStore",
    "DrinkingEstablishment",
    "BarOrPub",
    "Brewery",
))


def _is_ld_json(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() == "application/ld+json"


def _candidates(value: Any) -> List[Any]:
    """Flatten a decoded block into candidate items, expanding @graph."""
    items = list(value) if isinstance(value, list) else [value]
    expanded = []
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("@graph"), list):
            expanded.extend(item["@graph"])
    return items + expanded


def has_accepted_type(item: dict) -> bool:
    type_node = item.get("@type")
    if isinstance(type_node, str):
        types: Iterable[Any] = (type_node,)
    elif isinstance(type_node, list):
        types = type_node
    else:
        return False
    return any(isinstance(t, str) and t.strip().lower() in ACCEPTED_TYPES for t in types)


def item_to_location(item: Any) -> Optional[RawLocation]:
    if not isinstance(item, dict) or not has_accepted_type(item):
        return None

    name = first_str(item, ('name',))
    if not name:
        return None

    address = item.get("address")
    address = address if isinstance(address, dict) else {}
    geo = item.get("geo")
    geo = geo if isinstance(geo, dict) else {}

    country = address.get("addressCountry")
    if isinstance(country, dict):
        # {"@type": "Country", "name": "US"}
        country = country.get("name")

    return RawLocation(
        name=name,
        locator_source=JsonLdStrategy.source,
        external_id=first_str(item, ('@id',)),
        address_line1=first_str(address, ('streetAddress',)),
        city=first_str(address, ('addressLocality',)),
        state=first_str(address, ('addressRegion',)),
        zip=first_str(address, ('postalCode',)),
        country=country if isinstance(country, str) else None,
        latitude=first_float(geo, ('latitude',)),
        longitude=first_float(geo, ('longitude',)),
        phone=first_str(item, ('telephone',)),
        raw_data=item,
    )


def extract_jsonld_locations(html: str) -> List[RawLocation]:
    """Extract locations from every structured-data block in a page.

    Blocks that are not valid JSON are skipped.
    """
    soup = BeautifulSoup(html, 'html.parser')
    results = []
    for script in soup.find_all('script', attrs={'type': _is_ld_json}):
        text = script.string if script.string is not None else script.get_text()
        if not text or not text.strip():
            continue
        try:
            value = json.loads(text)
        except ValueError:
            logging.debug("Skipping malformed JSON-LD block")
            continue
        for item in _candidates(value):
            location = item_to_location(item)
            if location is not None:
                results.append(location)
    return results


class JsonLdStrategy(LocatorStrategy):
    """Detection and extraction are the same parse; detect() returns the records."""

    source = "jsonld"

    def detect(self, html: str, context: LocatorContext) -> Optional[List[RawLocation]]:
        if "ld+json" not in html.lower():
            return None
        return extract_jsonld_locations(html) or None

    def fetch(self, token: List[RawLocation], context: LocatorContext) -> List[RawLocation]:
        return token
