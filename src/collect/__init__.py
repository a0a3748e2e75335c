"""Brand and run orchestration for store location collection"""

from src.collect.brand import BrandLocationOutcome, CollectionContext, collect_brand_locations
from src.collect.runner import (
    RunFailed,
    RunSummary,
    collect_all_locations,
    run_locations_collection,
    summarize_outcomes,
)

__all__ = [
    'BrandLocationOutcome',
    'CollectionContext',
    'RunFailed',
    'RunSummary',
    'collect_all_locations',
    'collect_brand_locations',
    'run_locations_collection',
    'summarize_outcomes',
]
