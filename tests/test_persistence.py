"""Tests for location stores, run audit files and atomic JSON storage"""

import json

import pytest

from src.shared.brands import Brand
from src.shared.checkpoint import read_json, write_json_atomic
from src.shared.persistence import CorruptStoreError, InMemoryLocationStore, JsonLocationStore
from src.shared.reconcile import key_locations
from src.shared.run_tracker import RunTracker, get_run_history

BRANDS = [
    Brand(id=1, slug="acme", name="Acme", domain="acme.com"),
    Brand(id=2, slug="dormant", name="Dormant", is_active=False),
]


class TestAtomicJson:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "doc.json"
        write_json_atomic({"a": [1, 2]}, path)
        assert read_json(path) == {"a": [1, 2]}
        assert [p.name for p in path.parent.iterdir()] == ["doc.json"]

    def test_missing_file(self, tmp_path):
        assert read_json(tmp_path / "absent.json") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{broken", encoding="utf-8")
        assert read_json(path) is None

    def test_unserializable_leaves_no_temp_file(self, tmp_path):
        path = tmp_path / "doc.json"
        with pytest.raises(TypeError):
            write_json_atomic({"a": object()}, path)
        assert list(tmp_path.iterdir()) == []


class TestInMemoryLocationStore:
    """Tests for InMemoryLocationStore"""

    def test_only_active_brands_need_locations(self):
        store = InMemoryLocationStore(BRANDS)
        assert [b.slug for b in store.list_brands_needing_locations()] == ["acme"]

    def test_upsert_counts(self, location_factory):
        store = InMemoryLocationStore()
        keyed = key_locations(1, [location_factory(name="A"), location_factory(name="B")])

        assert store.upsert_locations(1, keyed) == (2, 0)
        assert store.upsert_locations(1, keyed) == (0, 2)
        assert store.get_active_location_keys(1) == {key for key, _ in keyed}

    def test_upsert_refreshes_attributes(self, location_factory):
        store = InMemoryLocationStore()
        store.upsert_locations(1, key_locations(1, [location_factory(name="A", phone="111")]))
        store.upsert_locations(1, key_locations(1, [location_factory(name="A", phone="222")]))

        rows = store.get_locations(1)
        assert len(rows) == 1
        assert rows[0].attributes["phone"] == "222"
        assert rows[0].first_seen_at <= rows[0].last_seen_at

    def test_brands_are_isolated(self, location_factory):
        store = InMemoryLocationStore()
        store.upsert_locations(1, key_locations(1, [location_factory(name="A")]))
        assert store.deactivate_missing(2, set()) == 0
        assert len(store.get_active_location_keys(1)) == 1

    def test_run_bookkeeping(self):
        store = InMemoryLocationStore()
        run_id = store.create_run()
        store.record_brand_run_outcome(run_id, 1, "succeeded", 3)
        store.complete_run(run_id, {"total_active": 3})

        run = store.get_run(run_id)
        assert run["status"] == "complete"
        assert run["brands"][1] == {"status": "succeeded", "record_count": 3, "error": None}

    def test_unknown_run_rejected(self):
        with pytest.raises(KeyError):
            InMemoryLocationStore().record_brand_run_outcome("nope", 1, "failed", error="x")


class TestJsonLocationStore:
    """Tests for JsonLocationStore"""

    def test_rows_survive_reload(self, tmp_path, location_factory):
        keyed = key_locations(1, [location_factory(name="A"), location_factory(name="B")])
        JsonLocationStore(str(tmp_path), BRANDS).upsert_locations(1, keyed)

        reloaded = JsonLocationStore(str(tmp_path), BRANDS)
        assert reloaded.get_active_location_keys(1) == {key for key, _ in keyed}
        assert reloaded.upsert_locations(1, keyed) == (0, 2)

        data = json.loads((tmp_path / "locations" / "1.json").read_text(encoding="utf-8"))
        assert data["brand_id"] == 1
        assert len(data["locations"]) == 2

    def test_deactivation_persisted(self, tmp_path, location_factory):
        keyed = key_locations(1, [location_factory(name="A")])
        store = JsonLocationStore(str(tmp_path))
        store.upsert_locations(1, keyed)
        assert store.deactivate_missing(1, set()) == 1

        assert JsonLocationStore(str(tmp_path)).get_active_location_keys(1) == set()

    def test_corrupt_file_raises_and_is_preserved(self, tmp_path, location_factory):
        """An unreadable brand file fails loudly instead of being replaced."""
        store = JsonLocationStore(str(tmp_path))
        store.upsert_locations(7, key_locations(7, [location_factory(name="A")]))
        brand_file = tmp_path / "locations" / "7.json"
        brand_file.write_text('{"brand_id": 7, "locati', encoding="utf-8")

        fresh = JsonLocationStore(str(tmp_path))
        with pytest.raises(CorruptStoreError):
            fresh.upsert_locations(7, key_locations(7, [location_factory(name="C")]))
        with pytest.raises(CorruptStoreError):
            fresh.get_active_location_keys(7)

        assert brand_file.read_text(encoding="utf-8") == '{"brand_id": 7, "locati'

    def test_malformed_row_raises(self, tmp_path):
        brand_file = tmp_path / "locations" / "7.json"
        brand_file.parent.mkdir(parents=True)
        brand_file.write_text(json.dumps({"brand_id": 7, "locations": [{"key": "k"}]}), encoding="utf-8")

        with pytest.raises(CorruptStoreError):
            JsonLocationStore(str(tmp_path)).get_locations(7)

    def test_run_audit_file(self, tmp_path):
        store = JsonLocationStore(str(tmp_path))
        run_id = store.create_run()
        store.record_brand_run_outcome(run_id, 1, "failed", error="scrape failed: boom")
        store.fail_run(run_id, "all 1 brands failed location collection", {"failed": 1})

        data = read_json(tmp_path / "runs" / f"{run_id}.json")
        assert data["status"] == "failed"
        assert data["brands"]["1"]["error"] == "scrape failed: boom"
        assert data["summary"] == {"failed": 1}
        assert data["errors"][0]["message"] == "all 1 brands failed location collection"
        assert data["completed_at"] is not None


class TestRunTracker:
    """Tests for RunTracker and get_run_history()"""

    def test_reopen_existing_run(self, tmp_path):
        tracker = RunTracker(str(tmp_path))
        tracker.record_brand(5, "succeeded", 10)

        reopened = RunTracker(str(tmp_path), run_id=tracker.run_id)
        assert reopened.get_metadata()["brands"]["5"]["record_count"] == 10
        assert reopened.status == "running"

    def test_history(self, tmp_path):
        first = RunTracker(str(tmp_path))
        first.complete({"total_active": 1})

        history = get_run_history(str(tmp_path), limit=5)
        assert [run["run_id"] for run in history] == [first.run_id]
        assert history[0]["status"] == "complete"

    def test_history_missing_dir(self, tmp_path):
        assert get_run_history(str(tmp_path / "none")) == []
