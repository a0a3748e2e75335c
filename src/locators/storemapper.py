"""Storemapper widget strategy

The widget token is read from the API URL, a data attribute, or (last, and
only on pages that mention storemapper) a generic ``token`` assignment.
"""

from typing import List, Optional

from config.locator_config import STOREMAPPER_API_URL
from src.locators.base import LocatorContext, LocatorStrategy, compile_patterns, first_match
from src.shared.http import fetch_json
from src.shared.location_schema import FieldAliases, RawLocation, map_location

PATTERNS = compile_patterns(
    r"""storemapper\.co/api/stores\?token=([^"'&\s]+)""",
    r"""data-storemapper-token\s*=\s*["']([^"']+)["']""",
    r"""token["'\s:=]+([A-Za-z0-9_-]{8,})""",
)

ALIASES: FieldAliases = {
    'external_id': ('id',),
    'name': ('name',),
    'address_line1': ('address',),
    'city': ('city',),
    'state': ('state',),
    'zip': ('zip', 'postal_code'),
    'country': ('country',),
    'latitude': ('lat', 'latitude'),
    'longitude': ('lng', 'longitude'),
    'phone': ('phone',),
}


def extract_token(html: str) -> Optional[str]:
    if "storemapper" not in html:
        return None
    return first_match(html, PATTERNS)


def parse_stores(data) -> List[RawLocation]:
    stores = data.get("stores") if isinstance(data, dict) else None
    if not isinstance(stores, list):
        return []
    return [loc for loc in (map_location(store, ALIASES, StoremapperStrategy.source) for store in stores) if loc]


class StoremapperStrategy(LocatorStrategy):
    source = "storemapper"

    def detect(self, html: str, context: LocatorContext) -> Optional[str]:
        return extract_token(html)

    def fetch(self, token: str, context: LocatorContext) -> List[RawLocation]:
        data = fetch_json(context.session, STOREMAPPER_API_URL.format(token=token),
                          context.timeout, context.user_agent)
        return parse_stores(data)
