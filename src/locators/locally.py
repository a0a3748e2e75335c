"""Locally.com widget strategy

The widget is configured with a numeric company id that appears either in
the stores JSON URL or as a page variable. The public stores endpoint then
returns the full listing in one call.
"""

import logging
from typing import List, Optional

from config.locator_config import LOCALLY_API_URL
from src.locators.base import LocatorContext, LocatorStrategy, compile_patterns, first_match
from src.shared.http import fetch_json
from src.shared.location_schema import FieldAliases, RawLocation, map_location

# Most specific first; the bare company_id pattern only runs once the page
# is known to reference Locally.
PATTERNS = compile_patterns(
    r"""locally\.com/stores/json\?[^"']*company_id=(\d+)""",
    r"locallyWidgetCompanyId\s*[=:]\s*(\d+)",
    r"company_id\s*[=:]\s*(\d+)",
)

ALIASES: FieldAliases = {
    'external_id': ('id',),
    'name': ('name',),
    'address_line1': ('address',),
    'city': ('city',),
    'state': ('state',),
    'zip': ('zip',),
    'country': ('country',),
    'latitude': ('lat', 'latitude'),
    'longitude': ('lng', 'longitude'),
    'phone': ('phone',),
}


def extract_company_id(html: str) -> Optional[str]:
    if "locally.com" not in html and "locallyWidgetCompanyId" not in html:
        return None
    return first_match(html, PATTERNS)


def parse_stores(data) -> List[RawLocation]:
    stores = data.get("stores") if isinstance(data, dict) else None
    if not isinstance(stores, list):
        return []
    return [loc for loc in (map_location(store, ALIASES, LocallyStrategy.source) for store in stores) if loc]


class LocallyStrategy(LocatorStrategy):
    source = "locally"

    def detect(self, html: str, context: LocatorContext) -> Optional[str]:
        return extract_company_id(html)

    def fetch(self, token: str, context: LocatorContext) -> List[RawLocation]:
        url = LOCALLY_API_URL.format(company_id=token)
        data = fetch_json(context.session, url, context.timeout, context.user_agent)
        locations = parse_stores(data)
        logging.debug(f"{self.log_prefix(context)} Company {token} returned {len(locations)} stores")
        return locations
