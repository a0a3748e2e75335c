"""Destini (lets.shop) locator strategy

Destini's widget only answers "stores near a point" searches, so it is swept
over the configured sweep points and the results are unioned.

Approach:
1. Find the locator alpha code and id in the page (widget attributes or the
   bootstrap JSON path), probing the page's script bundles if needed
2. Fetch the bootstrap JSON for the client id, search API base and defaults
3. List the client's product ids (searches are filtered by product)
4. Search once per sweep point and de-duplicate
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from config.locator_config import (
    DESTINI_BOOTSTRAP_URL,
    DESTINI_DEFAULT_DISTANCE_MILES,
    DESTINI_DEFAULT_KNOX_URL,
    DESTINI_DEFAULT_MAX_STORES,
    DESTINI_DEFAULT_TEXT_STYLE,
    DESTINI_MAX_SCRIPT_PROBES,
)
from src.locators.base import LocatorContext, LocatorStrategy, dedupe_locations
from src.shared.http import LocatorError, fetch_json, fetch_text, post_json, sanitize_url
from src.shared.location_schema import FieldAliases, RawLocation, first_id, first_str, map_location

ALPHA_CODE_RE = re.compile(r"""alpha-code\s*=\s*["']([A-Za-z0-9_-]{1,64})["']""")
LOCATOR_ID_RE = re.compile(r"""locator-id\s*=\s*["']([A-Za-z0-9_-]{1,64})["']""")
CLIENT_ID_RE = re.compile(r"""client-id\s*=\s*["']([A-Za-z0-9_-]{1,128})["']""")
BOOTSTRAP_PATH_RE = re.compile(
    r"lets\.shop/locators/([A-Za-z0-9_-]{1,64})/([A-Za-z0-9_-]{1,64})/([A-Za-z0-9_-]{1,64})\.json"
)

# Script URLs worth probing for an embedded locator config
PROBE_HINTS = ("/_nuxt/", "locator", "where-to-buy", "lets.shop")

ALIASES: FieldAliases = {
    'external_id': ('id',),
    'name': ('name',),
    'address_line1': ('address',),
    'city': ('city',),
    'state': ('state',),
    'zip': ('postalCode', 'zip'),
    'country': ('country',),
    'latitude': ('latitude',),
    'longitude': ('longitude',),
    'phone': ('phone',),
}


@dataclass(frozen=True)
class DestiniConfig:
    alpha_code: str
    locator_id: str
    client_id: Optional[str] = None


def _capture(regex, text: str) -> Optional[str]:
    match = regex.search(text)
    return match.group(1) if match else None


def extract_locator_config(html: str) -> Optional[DestiniConfig]:
    """Read the locator ids from widget attributes or the bootstrap path."""
    if "destini-locator" not in html and "lets.shop" not in html:
        return None

    alpha_code = _capture(ALPHA_CODE_RE, html)
    locator_id = _capture(LOCATOR_ID_RE, html)

    if alpha_code is None or locator_id is None:
        match = BOOTSTRAP_PATH_RE.search(html)
        # The path repeats the locator id: /locators/<alpha>/<id>/<id>.json
        if match and match.group(2) == match.group(3):
            alpha_code = alpha_code or match.group(1)
            locator_id = locator_id or match.group(2)

    if alpha_code is None or locator_id is None:
        return None
    return DestiniConfig(alpha_code, locator_id, _capture(CLIENT_ID_RE, html))


def script_urls_to_probe(html: str, locator_url: str) -> List[str]:
    """Absolute URLs of script bundles that may embed the locator config."""
    soup = BeautifulSoup(html, 'html.parser')
    sources = [tag.get('src') for tag in soup.find_all('script', src=True)]
    sources += [tag.get('href') for tag in soup.find_all('link', href=True)]

    urls = []
    seen = set()
    for source in sources:
        source = (source or '').strip()
        if '.js' not in source:
            continue
        url = urljoin(locator_url, source)
        if not url.startswith(('http://', 'https://')):
            continue
        if not any(hint in url.lower() for hint in PROBE_HINTS):
            continue
        if url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def parse_product_ids(response: Any) -> List[str]:
    """Unique, sorted product ids from a productCategories response."""
    ids = set()
    if not isinstance(response, dict):
        return []
    for category in response.get("categories") or []:
        if not isinstance(category, dict):
            continue
        for sub_category in category.get("subCategories") or []:
            if not isinstance(sub_category, dict):
                continue
            for product in sub_category.get("products") or []:
                if isinstance(product, dict):
                    product_id = first_id(product, ('pID', 'productId'))
                    if product_id:
                        ids.add(product_id)
    return sorted(ids)


def parse_knox_locations(response: Any) -> List[RawLocation]:
    stores = response.get("data") if isinstance(response, dict) else None
    if not isinstance(stores, list):
        return []
    return [loc for loc in (map_location(store, ALIASES, DestiniStrategy.source) for store in stores) if loc]


def _join(base: str, path: str) -> str:
    return base.rstrip('/') + '/' + path


def _int_setting(settings: Dict[str, Any], key: str, default: int) -> int:
    value = settings.get(key)
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return default


class DestiniStrategy(LocatorStrategy):
    source = "destini"

    def detect(self, html: str, context: LocatorContext) -> Optional[DestiniConfig]:
        config = extract_locator_config(html)
        if config is not None:
            return config

        for script_url in script_urls_to_probe(html, context.locator_url)[:DESTINI_MAX_SCRIPT_PROBES]:
            try:
                body = fetch_text(context.session, script_url, context.timeout, context.user_agent)
            except LocatorError as e:
                logging.debug(f"{self.log_prefix(context)} Script probe failed for {sanitize_url(script_url)}: {e}")
                continue
            config = extract_locator_config(body)
            if config is not None:
                logging.debug(f"{self.log_prefix(context)} Found locator config in {sanitize_url(script_url)}")
                return config
        return None

    def fetch(self, token: DestiniConfig, context: LocatorContext) -> List[RawLocation]:
        prefix = self.log_prefix(context)
        bootstrap_url = DESTINI_BOOTSTRAP_URL.format(alpha_code=token.alpha_code, locator_id=token.locator_id)
        bootstrap = fetch_json(context.session, bootstrap_url, context.timeout, context.user_agent)
        bootstrap_context = bootstrap.get("context") if isinstance(bootstrap, dict) else None
        bootstrap_context = bootstrap_context if isinstance(bootstrap_context, dict) else {}

        client_id = token.client_id or first_id(bootstrap_context, ('clientId',))
        if not client_id:
            logging.warning(f"{prefix} No client id for locator {token.alpha_code}/{token.locator_id}")
            return []

        knox_base = first_str(bootstrap_context, ('knoxUrl',)) or DESTINI_DEFAULT_KNOX_URL
        settings = bootstrap_context.get("settings")
        settings = settings if isinstance(settings, dict) else {}
        distance = _int_setting(settings, "radius", DESTINI_DEFAULT_DISTANCE_MILES)
        max_stores = _int_setting(settings, "maxStores", DESTINI_DEFAULT_MAX_STORES)
        text_style = first_str(settings, ('textStyleBm',)) or DESTINI_DEFAULT_TEXT_STYLE

        categories = post_json(
            context.session,
            _join(knox_base, "productCategories"),
            {"params": {"categoryIds": "", "subCategoryIds": "", "clientId": client_id, "level": 2}},
            context.timeout,
            context.user_agent,
        )
        product_ids = parse_product_ids(categories)
        if not product_ids:
            logging.warning(f"{prefix} Client {client_id} lists no products")
            return []

        knox_url = _join(knox_base, "knox")
        points = context.sweep_points()
        collected: List[RawLocation] = []
        failures = 0
        last_error: Optional[LocatorError] = None

        for point in points:
            payload = {
                "params": {
                    "distance": distance,
                    "products": product_ids,
                    "latitude": point.lat,
                    "longitude": point.lng,
                    "client": client_id,
                    "maxStores": max_stores,
                    "textStyleBm": text_style,
                }
            }
            try:
                response = post_json(context.session, knox_url, payload, context.timeout, context.user_agent)
            except LocatorError as e:
                failures += 1
                last_error = e
                logging.warning(f"{prefix} Search at ({point.lat:.4f}, {point.lng:.4f}) failed: {e}")
                continue
            collected.extend(parse_knox_locations(response))

        if last_error is not None and failures == len(points):
            raise last_error

        locations = dedupe_locations(collected)
        logging.info(f"{prefix} Swept {len(points)} points: {len(locations)} unique locations")
        return locations
