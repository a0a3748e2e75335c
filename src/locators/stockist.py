"""Stockist widget strategy

Stockist serves a JSONP widget config (search centre and radius) and a
location search endpoint. A single search from the configured centre with
a very wide radius returns the whole listing.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from config.locator_config import (
    STOCKIST_CONFIG_URL,
    STOCKIST_DEFAULT_DISTANCE,
    STOCKIST_SEARCH_URL,
    US_CENTER_LATITUDE,
    US_CENTER_LONGITUDE,
)
from src.locators.base import LocatorContext, LocatorStrategy, compile_patterns, first_match
from src.shared.http import InvalidJsonError, fetch_json, fetch_text
from src.shared.location_schema import FieldAliases, RawLocation, first_float, map_location

PATTERNS = compile_patterns(
    r"""data-stockist-widget-tag\s*=\s*["']([^"']+)["']""",
    r"stockist\.co/api/v1/([A-Za-z0-9_-]+)/",
    r"_stockistConfigCallback_([A-Za-z0-9_-]+)",
)

ALIASES: FieldAliases = {
    'external_id': ('id',),
    'name': ('name',),
    'address_line1': ('address_line_1', 'full_address'),
    'city': ('city',),
    'state': ('state',),
    'zip': ('postal_code', 'zip'),
    'country': ('country',),
    'latitude': ('latitude', 'lat'),
    'longitude': ('longitude', 'lng'),
    'phone': ('phone',),
}


def extract_widget_tag(html: str) -> Optional[str]:
    if "stockist" not in html:
        return None
    return first_match(html, PATTERNS)


def parse_jsonp(body: str, url: str) -> Dict[str, Any]:
    """Decode the payload of a ``callback({...})`` JSONP body.

    Returns an empty dict when the body has no call parentheses.
    """
    open_index = body.find('(')
    close_index = body.rfind(')')
    if open_index < 0 or close_index <= open_index:
        return {}
    try:
        payload = json.loads(body[open_index + 1:close_index].strip())
    except ValueError as e:
        raise InvalidJsonError(url, e) from e
    return payload if isinstance(payload, dict) else {}


def search_distance(config: Dict[str, Any]) -> int:
    for key in ('max_distance', 'distance'):
        value = config.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return STOCKIST_DEFAULT_DISTANCE


def parse_locations(data) -> List[RawLocation]:
    stores = data.get("locations") if isinstance(data, dict) else None
    if not isinstance(stores, list):
        return []
    return [loc for loc in (map_location(store, ALIASES, StockistStrategy.source) for store in stores) if loc]


class StockistStrategy(LocatorStrategy):
    source = "stockist"

    def detect(self, html: str, context: LocatorContext) -> Optional[str]:
        return extract_widget_tag(html)

    def fetch(self, token: str, context: LocatorContext) -> List[RawLocation]:
        config_url = STOCKIST_CONFIG_URL.format(tag=token)
        body = fetch_text(context.session, config_url, context.timeout, context.user_agent)
        config = parse_jsonp(body, config_url)

        latitude = first_float(config, ('latitude',))
        longitude = first_float(config, ('longitude',))
        search_url = STOCKIST_SEARCH_URL.format(
            tag=token,
            latitude=latitude if latitude is not None else US_CENTER_LATITUDE,
            longitude=longitude if longitude is not None else US_CENTER_LONGITUDE,
            distance=search_distance(config),
        )
        data = fetch_json(context.session, search_url, context.timeout, context.user_agent)
        locations = parse_locations(data)
        logging.debug(f"{self.log_prefix(context)} Widget {token} returned {len(locations)} locations")
        return locations
