"""Run-level orchestration: fan brands out over a worker pool.

Brands are independent; outcomes are collected in completion order and
summarised after the pool drains. The run fails only when every brand
failed.
"""

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from src.collect.brand import BrandLocationOutcome, CollectionContext, collect_brand_locations
from src.shared.app_config import AppConfig
from src.shared.brands import Brand
from src.shared.persistence import LocationStore

__all__ = [
    'RunFailed',
    'RunSummary',
    'collect_all_locations',
    'plan_collection',
    'run_locations_collection',
    'select_brands',
    'summarize_outcomes',
]


class RunFailed(Exception):
    """Every brand in the run failed."""


@dataclass(frozen=True)
class RunSummary:
    brand_count: int
    total_active: int
    total_new: int
    failed: int

    @property
    def all_failed(self) -> bool:
        return self.brand_count > 0 and self.failed == self.brand_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brand_count": self.brand_count,
            "total_active": self.total_active,
            "total_new": self.total_new,
            "failed": self.failed,
        }


def summarize_outcomes(outcomes: Sequence[BrandLocationOutcome]) -> RunSummary:
    return RunSummary(
        brand_count=len(outcomes),
        total_active=sum(o.active for o in outcomes),
        total_new=sum(o.new for o in outcomes),
        failed=sum(1 for o in outcomes if not o.succeeded),
    )


def collect_all_locations(brands: Sequence[Brand], context: CollectionContext,
                          max_concurrency: int) -> List[BrandLocationOutcome]:
    """Collect every brand with at most ``max_concurrency`` in flight.

    Args:
        brands: Brands to collect
        context: Shared store, settings and run id
        max_concurrency: Worker count (values below 1 are treated as 1)

    Returns:
        One outcome per brand, in completion order
    """
    outcomes: List[BrandLocationOutcome] = []
    if not brands:
        return outcomes

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, max_concurrency), thread_name_prefix='brand'
    ) as executor:
        futures = {executor.submit(collect_brand_locations, brand, context): brand for brand in brands}
        for future in concurrent.futures.as_completed(futures):
            outcomes.append(future.result())
    return outcomes


def select_brands(store: LocationStore, brand_filter: Optional[str] = None) -> List[Brand]:
    """Eligible brands, optionally narrowed to one slug.

    Raises:
        ValueError: If ``brand_filter`` names no eligible brand
    """
    brands = store.list_brands_needing_locations()
    if brand_filter is None:
        return brands
    selected = [brand for brand in brands if brand.slug == brand_filter]
    if not selected:
        raise ValueError(
            f"Unknown or inactive brand: {brand_filter}. "
            f"Available: {', '.join(b.slug for b in brands) or 'none'}"
        )
    return selected


def plan_collection(brands: Sequence[Brand]) -> List[str]:
    """Describe, per brand, where its locator URL will come from."""
    lines = []
    for brand in brands:
        if brand.store_locator_url:
            lines.append(f"{brand.slug}: configured ({brand.store_locator_url})")
        else:
            lines.append(f"{brand.slug}: auto-discover")
    return lines


def run_locations_collection(store: LocationStore, settings: AppConfig,
                             brand_filter: Optional[str] = None,
                             dry_run: bool = False) -> Optional[RunSummary]:
    """Collect locations for all eligible brands as one audited run.

    Args:
        store: Location store
        settings: Effective configuration
        brand_filter: Only collect this brand slug
        dry_run: Print the plan and return without creating a run

    Returns:
        The run summary, or None for a dry run

    Raises:
        ValueError: If no brands are eligible or the filter matches none
        RunFailed: If every brand failed
    """
    brands = select_brands(store, brand_filter)
    if not brands:
        raise ValueError("No active brands need location collection")

    if dry_run:
        print(f"Dry run: {len(brands)} brand(s) would be collected")
        for line in plan_collection(brands):
            print(f"  {line}")
        return None

    run_id = store.create_run()
    logging.info(f"Starting location run {run_id} for {len(brands)} brand(s)")
    context = CollectionContext(store=store, settings=settings, run_id=run_id)
    outcomes = collect_all_locations(brands, context, settings.max_concurrent_brands)
    summary = summarize_outcomes(outcomes)

    print("\n" + "=" * 40)
    print("LOCATION RESULTS")
    print("=" * 40)
    for outcome in outcomes:
        if outcome.succeeded:
            print(f"  {outcome.brand_slug}: {outcome.active} active "
                  f"({outcome.new} new, {outcome.lost} lost) via {outcome.source}")
        else:
            print(f"  {outcome.brand_slug}: failed")
            print(f"    Error: {outcome.error}")

    if summary.all_failed:
        message = f"all {summary.brand_count} brands failed location collection"
        store.fail_run(run_id, message, summary.to_dict())
        raise RunFailed(message)

    store.complete_run(run_id, summary.to_dict())
    logging.info(
        f"Run {run_id} complete: {summary.total_active} active, {summary.total_new} new, "
        f"{summary.failed}/{summary.brand_count} brands failed"
    )
    return summary
