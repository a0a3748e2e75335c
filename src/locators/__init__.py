"""Locator strategy registry

Strategies are tried in a fixed order against one fetched locator page.
The first strategy whose output is non-empty wins; results from different
strategies are never merged.
"""

import logging
from typing import List, Tuple

from src.locators.base import LocatorContext, LocatorStrategy
from src.locators.destini import DestiniStrategy
from src.locators.embed import EmbedStrategy
from src.locators.jsonld import JsonLdStrategy
from src.locators.locally import LocallyStrategy
from src.locators.stockist import StockistStrategy
from src.locators.storemapper import StoremapperStrategy
from src.locators.storepoint import StorepointStrategy
from src.locators.vtinfo import VtinfoStrategy
from src.shared.http import fetch_html, sanitize_url
from src.shared.location_schema import RawLocation

# Vendor widgets first, generic markup next, the embedded-JSON heuristic
# before the slow grid-sweep vendors.
STRATEGY_ORDER: Tuple[LocatorStrategy, ...] = (
    LocallyStrategy(),
    StoremapperStrategy(),
    StockistStrategy(),
    StorepointStrategy(),
    JsonLdStrategy(),
    EmbedStrategy(),
    DestiniStrategy(),
    VtinfoStrategy(),
)


def get_strategy_sources() -> List[str]:
    """Source tags of all registered strategies, in evaluation order."""
    return [strategy.source for strategy in STRATEGY_ORDER]


def run_strategies(html: str, context: LocatorContext,
                   strategies: Tuple[LocatorStrategy, ...] = STRATEGY_ORDER) -> List[RawLocation]:
    """Run strategies against an already fetched page.

    Raises:
        LocatorError: If the firing strategy's vendor API fails
    """
    for strategy in strategies:
        token = strategy.detect(html, context)
        if token is None:
            continue
        logging.info(f"{strategy.log_prefix(context)} Detected locator on {sanitize_url(context.locator_url)}")
        locations = strategy.fetch(token, context)
        if locations:
            logging.info(f"{strategy.log_prefix(context)} Extracted {len(locations)} locations")
            return locations
        logging.debug(f"{strategy.log_prefix(context)} Detected but returned no locations")
    return []


def fetch_store_locations(context: LocatorContext) -> List[RawLocation]:
    """Fetch a brand's locator page and extract its store locations.

    Args:
        context: Brand fetch context (locator URL, session, timeout...)

    Returns:
        Locations from the first strategy that produced any, or [] if none did

    Raises:
        LocatorError: If the page cannot be fetched or a vendor API call fails
    """
    html = fetch_html(
        context.session,
        context.locator_url,
        context.timeout,
        context.user_agent,
        use_curl=context.use_curl,
    )
    locations = run_strategies(html, context)
    if not locations:
        prefix = f"[{context.brand_slug}]" if context.brand_slug else ""
        logging.warning(f"{prefix} No locator strategy matched {sanitize_url(context.locator_url)}".strip())
    return locations


__all__ = [
    'LocatorContext',
    'LocatorStrategy',
    'STRATEGY_ORDER',
    'fetch_store_locations',
    'get_strategy_sources',
    'run_strategies',
]
