"""Tests for run-level orchestration"""

import threading
from unittest.mock import patch

import pytest

from src.collect.brand import BrandLocationOutcome, CollectionContext
from src.collect.runner import (
    RunFailed,
    collect_all_locations,
    plan_collection,
    run_locations_collection,
    summarize_outcomes,
)
from src.shared.brands import Brand
from src.shared.persistence import InMemoryLocationStore

BRANDS = [
    Brand(id=1, slug="cann", name="Cann", domain="drinkcann.com"),
    Brand(id=2, slug="recess", name="Recess", store_locator_url="https://takearecess.com/pages/where-to-buy"),
    Brand(id=3, slug="brez", name="Brez", domain="drinkbrez.com", is_active=False),
]


def _ok(slug, active=3, new=1):
    return BrandLocationOutcome(brand_slug=slug, active=active, new=new, source="locally", succeeded=True)


def _failed(slug):
    return BrandLocationOutcome(brand_slug=slug, error="scrape failed: boom")


class TestSummarize:
    def test_totals(self):
        summary = summarize_outcomes([_ok("a", 3, 1), _ok("b", 5, 2), _failed("c")])
        assert (summary.brand_count, summary.total_active, summary.total_new, summary.failed) == (3, 8, 3, 1)
        assert not summary.all_failed

    def test_all_failed(self):
        assert summarize_outcomes([_failed("a"), _failed("b")]).all_failed

    def test_empty_is_not_all_failed(self):
        assert not summarize_outcomes([]).all_failed


class TestCollectAllLocations:
    """Tests for collect_all_locations()"""

    def test_one_outcome_per_brand(self, settings):
        context = CollectionContext(InMemoryLocationStore(), settings)
        with patch('src.collect.runner.collect_brand_locations',
                   side_effect=lambda brand, ctx: _ok(brand.slug)):
            outcomes = collect_all_locations(BRANDS[:2], context, max_concurrency=0)

        assert sorted(o.brand_slug for o in outcomes) == ["cann", "recess"]

    def test_runs_brands_in_parallel(self, settings):
        """With two workers both brands are in flight at once."""
        barrier = threading.Barrier(2, timeout=5)

        def collect(brand, ctx):
            barrier.wait()
            return _ok(brand.slug)

        context = CollectionContext(InMemoryLocationStore(), settings)
        with patch('src.collect.runner.collect_brand_locations', side_effect=collect):
            outcomes = collect_all_locations(BRANDS[:2], context, max_concurrency=2)

        assert len(outcomes) == 2

    def test_no_brands(self, settings):
        assert collect_all_locations([], CollectionContext(InMemoryLocationStore(), settings), 4) == []


class TestRunLocationsCollection:
    """Tests for run_locations_collection()"""

    def test_dry_run_lists_plan_without_run(self, settings, capsys):
        store = InMemoryLocationStore(BRANDS)
        with patch('src.collect.runner.collect_brand_locations') as mock_collect:
            assert run_locations_collection(store, settings, dry_run=True) is None

        output = capsys.readouterr().out
        assert "cann: auto-discover" in output
        assert "recess: configured (https://takearecess.com/pages/where-to-buy)" in output
        assert "brez" not in output
        mock_collect.assert_not_called()
        assert store._runs == {}

    def test_plan_lines(self):
        assert plan_collection(BRANDS[:1]) == ["cann: auto-discover"]

    def test_brand_filter(self, settings):
        store = InMemoryLocationStore(BRANDS)
        with patch('src.collect.runner.collect_brand_locations',
                   side_effect=lambda brand, ctx: _ok(brand.slug)) as mock_collect:
            run_locations_collection(store, settings, brand_filter="recess")

        assert [c[0][0].slug for c in mock_collect.call_args_list] == ["recess"]

    def test_unknown_brand_filter(self, settings):
        with pytest.raises(ValueError, match="Unknown or inactive brand: brez"):
            run_locations_collection(InMemoryLocationStore(BRANDS), settings, brand_filter="brez")

    def test_no_brands(self, settings):
        with pytest.raises(ValueError, match="No active brands"):
            run_locations_collection(InMemoryLocationStore([]), settings)

    def test_partial_failure_completes_run(self, settings):
        store = InMemoryLocationStore(BRANDS)
        outcomes = {"cann": _ok("cann", 4, 4), "recess": _failed("recess")}
        with patch('src.collect.runner.collect_brand_locations',
                   side_effect=lambda brand, ctx: outcomes[brand.slug]):
            summary = run_locations_collection(store, settings)

        assert summary.failed == 1
        run_id, run = next(iter(store._runs.items()))
        assert run["status"] == "complete"
        assert run["summary"]["total_active"] == 4

    def test_all_failed_fails_run(self, settings):
        store = InMemoryLocationStore(BRANDS)
        with patch('src.collect.runner.collect_brand_locations',
                   side_effect=lambda brand, ctx: _failed(brand.slug)):
            with pytest.raises(RunFailed, match="all 2 brands failed location collection"):
                run_locations_collection(store, settings)

        run = next(iter(store._runs.values()))
        assert run["status"] == "failed"
        assert run["error"] == "all 2 brands failed location collection"

    def test_context_carries_run_id(self, settings):
        store = InMemoryLocationStore(BRANDS)
        with patch('src.collect.runner.collect_brand_locations',
                   side_effect=lambda brand, ctx: _ok(brand.slug)) as mock_collect:
            run_locations_collection(store, settings, brand_filter="cann")

        context = mock_collect.call_args[0][1]
        assert context.run_id in store._runs
        assert context.store is store
