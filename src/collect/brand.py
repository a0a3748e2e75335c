"""Per-brand location collection.

collect_brand_locations() runs one brand through
resolve -> fetch -> extract -> trust -> reconcile and always returns a
BrandLocationOutcome. A brand's failure is data, never an exception, so it
cannot take down sibling brands running on other worker threads.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from src.collect.resolver import resolve_locator_url
from src.locators import LocatorContext, fetch_store_locations
from src.shared.app_config import AppConfig
from src.shared.brands import Brand
from src.shared.http import LocatorError, create_session
from src.shared.persistence import LocationStore
from src.shared.reconcile import ReconcileError, key_locations, reconcile
from src.shared.sentry_integration import capture_brand_error
from src.shared.trust import TrustRejected, validate_locations_trust

__all__ = [
    'BrandLocationOutcome',
    'CollectionContext',
    'collect_brand_locations',
]


@dataclass
class CollectionContext:
    """Shared resources for a collection run.

    Attributes:
        store: Location store (the only shared mutable resource)
        settings: Effective process configuration
        run_id: Run to write audit rows against; None skips the audit
    """
    store: LocationStore
    settings: AppConfig
    run_id: Optional[str] = None


@dataclass(frozen=True)
class BrandLocationOutcome:
    """Result of collecting one brand."""
    brand_slug: str
    active: int = 0
    new: int = 0
    lost: int = 0
    source: Optional[str] = None
    succeeded: bool = False
    error: Optional[str] = None


def _record_outcome(brand: Brand, context: CollectionContext, status: str,
                    record_count: Optional[int] = None, error: Optional[str] = None) -> None:
    """Best-effort audit write; failures are logged, never raised."""
    if context.run_id is None:
        return
    try:
        context.store.record_brand_run_outcome(context.run_id, brand.id, status, record_count, error)
    except Exception as e:
        logging.warning(f"[{brand.slug}] Failed to record run outcome: {e}")


def _fail(brand: Brand, context: CollectionContext, error: str,
          source: Optional[str] = None) -> BrandLocationOutcome:
    logging.warning(f"[{brand.slug}] {error}")
    _record_outcome(brand, context, "failed", error=error)
    return BrandLocationOutcome(brand_slug=brand.slug, source=source, succeeded=False, error=error)


def _collect(brand: Brand, context: CollectionContext, session: requests.Session) -> BrandLocationOutcome:
    settings = context.settings

    locator_url = resolve_locator_url(brand, session, settings.user_agent)
    if not locator_url:
        return _fail(brand, context, "no locator URL configured or discovered")

    locator_context = LocatorContext(
        locator_url=locator_url,
        session=session,
        timeout=settings.request_timeout_secs,
        user_agent=settings.user_agent,
        use_curl=settings.use_curl,
        sweep_region=settings.sweep_region,
        brand_slug=brand.slug,
    )

    try:
        locations = fetch_store_locations(locator_context)
    except LocatorError as e:
        return _fail(brand, context, f"scrape failed: {e}")

    source = locations[0].locator_source if locations else None

    try:
        validate_locations_trust(locations)
    except TrustRejected as e:
        return _fail(brand, context, f"untrusted scrape result: {e.reason}", source)

    keyed = key_locations(brand.id, locations)
    try:
        result = reconcile(context.store, brand, keyed)
    except ReconcileError as e:
        return _fail(brand, context, f"reconcile failed: {e}", source)

    _record_outcome(brand, context, "succeeded", record_count=result.active)
    logging.info(
        f"[{brand.slug}] Collected {result.active} locations via {source} "
        f"({result.new} new, {result.kept} kept, {result.lost} lost)"
    )
    return BrandLocationOutcome(
        brand_slug=brand.slug,
        active=result.active,
        new=result.new,
        lost=result.lost,
        source=source,
        succeeded=True,
    )


def collect_brand_locations(brand: Brand, context: CollectionContext) -> BrandLocationOutcome:
    """Collect and reconcile one brand's store locations.

    Never raises: every failure, expected or not, comes back as a failed
    outcome with an error message. Each call owns its HTTP session.

    Args:
        brand: Brand to collect
        context: Store, settings and run id

    Returns:
        BrandLocationOutcome
    """
    session = create_session()
    try:
        return _collect(brand, context, session)
    except Exception as e:
        logging.exception(f"[{brand.slug}] Unexpected error collecting locations")
        capture_brand_error(e, brand.slug, {"domain": brand.domain, "locator_url": brand.store_locator_url})
        return _fail(brand, context, f"unexpected error: {e}")
    finally:
        session.close()
