"""Tests for per-brand collection"""

import json
from unittest.mock import Mock, patch

import pytest

from src.collect.brand import BrandLocationOutcome, CollectionContext, collect_brand_locations
from src.shared.brands import Brand
from src.shared.persistence import InMemoryLocationStore, LocationStore

ACME_PAGE = (
    '<html><head><script type="application/ld+json">'
    + json.dumps({
        "@context": "https://schema.org",
        "@type": "LocalBusiness",
        "name": "Acme Downtown",
        "address": {"@type": "PostalAddress", "addressLocality": "Springfield"},
    })
    + '</script></head><body></body></html>'
)


@pytest.fixture
def wire(mock_session):
    """Route collect_brand_locations' private session to the mock."""
    with patch('src.collect.brand.create_session', return_value=mock_session), \
         patch('src.shared.http.time.sleep'):
        yield mock_session


def _probe_stores_only(mock_response_factory):
    def respond(url, headers=None, timeout=None, allow_redirects=None):
        return mock_response_factory(200 if url.endswith("/stores") else 404)
    return respond


class TestEndToEnd:
    """A brand discovered, scraped, trusted and reconciled"""

    def test_acme_scenario(self, wire, acme_brand, settings, mock_response_factory):
        """Discovery hits /stores, JSON-LD yields one store, reconciliation reports one new."""
        wire.head.side_effect = _probe_stores_only(mock_response_factory)
        wire.get.return_value = mock_response_factory(200, text=ACME_PAGE)
        store = InMemoryLocationStore([acme_brand])
        run_id = store.create_run()

        outcome = collect_brand_locations(acme_brand, CollectionContext(store, settings, run_id))

        assert outcome == BrandLocationOutcome(
            brand_slug="acme", active=1, new=1, lost=0, source="jsonld", succeeded=True, error=None,
        )
        assert wire.get.call_args[0][0] == "https://acme.com/stores"
        assert store.get_run(run_id)["brands"][acme_brand.id] == {
            "status": "succeeded", "record_count": 1, "error": None,
        }
        wire.close.assert_called_once()

    def test_second_run_keeps_location(self, wire, acme_brand, settings, mock_response_factory):
        wire.head.side_effect = _probe_stores_only(mock_response_factory)
        wire.get.return_value = mock_response_factory(200, text=ACME_PAGE)
        store = InMemoryLocationStore([acme_brand])
        context = CollectionContext(store, settings)

        collect_brand_locations(acme_brand, context)
        outcome = collect_brand_locations(acme_brand, context)

        assert (outcome.active, outcome.new, outcome.lost) == (1, 0, 0)


class TestFailures:
    """Every failure comes back as data"""

    def test_no_domain_no_url(self, wire, settings):
        brand = Brand(id=9, slug="ghost", name="Ghost")
        store = InMemoryLocationStore([brand])
        run_id = store.create_run()

        outcome = collect_brand_locations(brand, CollectionContext(store, settings, run_id))

        assert outcome.succeeded is False
        assert outcome.active == 0
        assert outcome.error == "no locator URL configured or discovered"
        assert store.get_run(run_id)["brands"][9]["status"] == "failed"

    def test_fetch_failure(self, wire, acme_brand, settings, mock_response_factory):
        wire.head.side_effect = _probe_stores_only(mock_response_factory)
        wire.get.return_value = mock_response_factory(503, text="unavailable")

        outcome = collect_brand_locations(acme_brand, CollectionContext(InMemoryLocationStore(), settings))

        assert not outcome.succeeded
        assert outcome.error.startswith("scrape failed: all 3 fetch attempts failed")

    def test_untrusted_result(self, wire, settings, mock_response_factory):
        brand = Brand(id=3, slug="tiny", name="Tiny", store_locator_url="https://tiny.com/stores")
        page = ('<script>var s = [{"name": "One", "city": "Austin", "state": "TX"},'
                '{"name": "Two", "city": "Waco", "state": "TX"}];</script>')
        wire.get.return_value = mock_response_factory(200, text=page)

        outcome = collect_brand_locations(brand, CollectionContext(InMemoryLocationStore(), settings))

        assert not outcome.succeeded
        assert outcome.source == "json_embed"
        assert outcome.error.startswith("untrusted scrape result: json_embed scrape below trust threshold")
        wire.head.assert_not_called()

    def test_nothing_extracted(self, wire, settings, mock_response_factory):
        brand = Brand(id=3, slug="tiny", name="Tiny", store_locator_url="https://tiny.com/stores")
        wire.get.return_value = mock_response_factory(200, text="<html><body>Coming soon</body></html>")

        outcome = collect_brand_locations(brand, CollectionContext(InMemoryLocationStore(), settings))

        assert outcome.error == "untrusted scrape result: scrape returned zero locations"

    def test_reconcile_failure(self, wire, acme_brand, settings, mock_response_factory):
        wire.head.side_effect = _probe_stores_only(mock_response_factory)
        wire.get.return_value = mock_response_factory(200, text=ACME_PAGE)
        store = Mock(spec=LocationStore)
        store.get_active_location_keys.return_value = set()
        store.upsert_locations.side_effect = RuntimeError("connection reset")

        outcome = collect_brand_locations(acme_brand, CollectionContext(store, settings, "run-1"))

        assert not outcome.succeeded
        assert outcome.error == "reconcile failed: connection reset"
        store.record_brand_run_outcome.assert_called_once_with(
            "run-1", acme_brand.id, "failed", None, "reconcile failed: connection reset"
        )

    def test_audit_failure_does_not_change_outcome(self, wire, acme_brand, settings, mock_response_factory):
        wire.head.side_effect = _probe_stores_only(mock_response_factory)
        wire.get.return_value = mock_response_factory(200, text=ACME_PAGE)
        store = InMemoryLocationStore([acme_brand])

        outcome = collect_brand_locations(acme_brand, CollectionContext(store, settings, "no-such-run"))

        assert outcome.succeeded
        assert outcome.active == 1

    def test_unexpected_error_reported(self, wire, acme_brand, settings):
        with patch('src.collect.brand.resolve_locator_url', side_effect=RuntimeError("bug")), \
             patch('src.collect.brand.capture_brand_error') as mock_capture:
            outcome = collect_brand_locations(acme_brand, CollectionContext(InMemoryLocationStore(), settings))

        assert not outcome.succeeded
        assert outcome.error == "unexpected error: bug"
        mock_capture.assert_called_once()
        assert mock_capture.call_args[0][1] == "acme"
        wire.close.assert_called_once()
