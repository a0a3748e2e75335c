"""Storepoint widget strategy

Storepoint returns one single-line address per location
(``"123 Main St, Austin TX 78701, US"``), so city, state and ZIP are parsed
from its tail when the API does not supply them.
"""

import re
from typing import List, Optional, Tuple

from config.locator_config import STOREPOINT_API_URL
from src.locators.base import LocatorContext, LocatorStrategy, compile_patterns, first_match
from src.shared.http import fetch_json
from src.shared.location_schema import RawLocation, first_float, first_id, first_str

PATTERNS = compile_patterns(
    r"""StorepointWidget\(\s*['"]([A-Za-z0-9]+)['"]""",
    # Constructor call inside a JS-escaped string ("\n", " " between tokens)
    r"""StorepointWidget\((?:\\[nrt]|\\u[0-9a-fA-F]{4}|\s)*['"]([A-Za-z0-9]+)['"]""",
    r"api\.storepoint\.co/v2/([A-Za-z0-9]+)/locations",
    r"widget\.storepoint\.co/([A-Za-z0-9]+)",
)

_ZIP_RE = re.compile(r"^(?=.*\d)[\d-]+$")
_STATE_RE = re.compile(r"^[A-Za-z]{2}$")

AddressTail = Tuple[Optional[str], Optional[str], Optional[str]]


def extract_widget_id(html: str) -> Optional[str]:
    if "storepoint" not in html.lower():
        return None
    return first_match(html, PATTERNS)


def _city_state_zip(segment: str) -> AddressTail:
    tokens = segment.split()
    if len(tokens) < 3:
        return None, None, None
    zip_code, state = tokens[-1], tokens[-2]
    if not _ZIP_RE.match(zip_code) or not _STATE_RE.match(state):
        return None, None, None
    city = " ".join(tokens[:-2]) or None
    return city, state, zip_code


def parse_address_tail(address: str, has_country: bool = False) -> Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]:
    """Split ``"street, City ST 12345, Country"`` into city, state, zip, country.

    When the API already supplied a country the address may end at the
    ``City ST ZIP`` segment, so the last segment is tried first. Otherwise
    the last segment is taken as the country.

    Returns:
        (city, state, zip, country); country is None when has_country is set
    """
    parts = [part.strip() for part in address.split(',') if part.strip()]
    if not parts:
        return None, None, None, None

    if has_country:
        city, state, zip_code = _city_state_zip(parts[-1])
        if state is None and len(parts) >= 2:
            city, state, zip_code = _city_state_zip(parts[-2])
        return city, state, zip_code, None

    country = parts[-1]
    if len(parts) < 2:
        return None, None, None, country
    city, state, zip_code = _city_state_zip(parts[-2])
    return city, state, zip_code, country


def map_store(store) -> Optional[RawLocation]:
    if not isinstance(store, dict):
        return None
    name = first_str(store, ('name',))
    if not name:
        return None

    address = first_str(store, ('streetaddress', 'address'))
    explicit_country = first_str(store, ('country',))
    city = state = zip_code = country = None
    if address:
        city, state, zip_code, country = parse_address_tail(address, has_country=explicit_country is not None)

    return RawLocation(
        name=name,
        locator_source=StorepointStrategy.source,
        external_id=first_id(store, ('id',)),
        address_line1=address,
        city=first_str(store, ('city',)) or city,
        state=first_str(store, ('state',)) or state,
        zip=first_str(store, ('zip', 'postcode')) or zip_code,
        country=explicit_country or country,
        latitude=first_float(store, ('loc_lat',)),
        longitude=first_float(store, ('loc_long',)),
        phone=first_str(store, ('phone',)),
        raw_data=store,
    )


def parse_locations(data) -> List[RawLocation]:
    results = data.get("results") if isinstance(data, dict) else None
    stores = results.get("locations") if isinstance(results, dict) else None
    if not isinstance(stores, list):
        return []
    return [loc for loc in (map_store(store) for store in stores) if loc]


class StorepointStrategy(LocatorStrategy):
    source = "storepoint"

    def detect(self, html: str, context: LocatorContext) -> Optional[str]:
        return extract_widget_id(html)

    def fetch(self, token: str, context: LocatorContext) -> List[RawLocation]:
        data = fetch_json(context.session, STOREPOINT_API_URL.format(widget_id=token),
                          context.timeout, context.user_agent)
        return parse_locations(data)
