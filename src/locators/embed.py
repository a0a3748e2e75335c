"""Embedded JSON heuristic strategy

Some locators ship their store list as a JSON array literal inside an inline
script. A permissive regex finds the start of something that looks like an
array of store objects, a bracket scanner cuts out the complete array, and
the array is parsed as JSON.

This is the least reliable source, so its output must clear the trust
gate's size and quality floor.
"""

import json
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from src.locators.base import LocatorContext, LocatorStrategy
from src.shared.location_schema import FieldAliases, RawLocation, first_float, first_str, map_location

# A '[' followed by an object holding a name-like key and a location-like key
CANDIDATE_RE = re.compile(
    r'\[\s*\{[^}]*"(?:name|store_name|Name)"[^}]*"(?:city|lat|address|latitude)"[^}]*\}',
    re.IGNORECASE | re.DOTALL,
)

ALIASES: FieldAliases = {
    'external_id': ('id',),
    'name': ('name', 'store_name', 'Name'),
    'address_line1': ('address', 'address1', 'street'),
    'city': ('city', 'City'),
    'state': ('state', 'State', 'province'),
    'zip': ('zip', 'postal_code', 'postcode'),
    'country': ('country', 'Country'),
    'latitude': ('lat', 'latitude', 'Lat'),
    'longitude': ('lng', 'longitude', 'Lng', 'lon'),
    'phone': ('phone', 'Phone'),
}


def extract_balanced_array(text: str) -> Optional[str]:
    """Return the JSON array literal at the start of ``text``.

    Scans character by character tracking nesting depth, skipping string
    contents and escaped characters. Only a ``]`` that brings the depth back
    to zero ends the match; ``}`` merely decrements, so an array closed by
    the wrong bracket never matches.

    Args:
        text: Text that should begin with '['

    Returns:
        The array substring including both brackets, or None
    """
    if not text.startswith('['):
        return None

    depth = 0
    in_string = False
    escape = False
    for index, char in enumerate(text):
        if escape:
            escape = False
            continue
        if in_string:
            if char == '\\':
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in '[{':
            depth += 1
        elif char == '}':
            depth -= 1
        elif char == ']':
            depth -= 1
            if depth == 0:
                return text[:index + 1]
    return None


def object_to_location(obj) -> Optional[RawLocation]:
    """Map one array element, requiring a city, an address or a coordinate pair."""
    if not isinstance(obj, dict):
        return None
    has_coordinates = (
        first_float(obj, ALIASES['latitude']) is not None
        and first_float(obj, ALIASES['longitude']) is not None
    )
    has_place = (
        has_coordinates
        or first_str(obj, ALIASES['city']) is not None
        or first_str(obj, ALIASES['address_line1']) is not None
    )
    if not has_place:
        return None
    return map_location(obj, ALIASES, EmbedStrategy.source)


def extract_embedded_locations(html: str) -> List[RawLocation]:
    """Locations from the first inline script holding a store-like array."""
    soup = BeautifulSoup(html, 'html.parser')
    for script in soup.find_all('script'):
        content = script.string if script.string is not None else script.get_text()
        if not content:
            continue
        for match in CANDIDATE_RE.finditer(content):
            array_text = extract_balanced_array(content[match.start():])
            if array_text is None:
                continue
            try:
                value = json.loads(array_text)
            except ValueError:
                continue
            if not isinstance(value, list):
                continue
            locations = [loc for loc in (object_to_location(obj) for obj in value) if loc]
            if locations:
                return locations
    return []


class EmbedStrategy(LocatorStrategy):
    source = "json_embed"

    def detect(self, html: str, context: LocatorContext) -> Optional[List[RawLocation]]:
        return extract_embedded_locations(html) or None

    def fetch(self, token: List[RawLocation], context: LocatorContext) -> List[RawLocation]:
        return token
