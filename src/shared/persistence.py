"""Location storage backends.

LocationStore is the persistence collaborator used by reconciliation and
the run orchestrator. Brands never contend on the same key (keys are
brand-scoped), but several brand workers call into one store at once, so
implementations must be safe for concurrent use.

Two implementations:
- InMemoryLocationStore keeps everything in lock-guarded dicts (tests,
  dry experiments).
- JsonLocationStore persists each brand's rows to
  ``<data_dir>/locations/<brand_id>.json`` and each run's audit to
  ``<data_dir>/runs/<run_id>.json``.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.shared.brands import Brand
from src.shared.checkpoint import read_json, write_json_atomic
from src.shared.location_schema import RawLocation
from src.shared.run_tracker import RunTracker, utc_now

__all__ = [
    'CorruptStoreError',
    'InMemoryLocationStore',
    'JsonLocationStore',
    'KeyedLocation',
    'LocationStore',
    'StoredLocation',
]

KeyedLocation = Tuple[str, RawLocation]


class CorruptStoreError(Exception):
    """A stored brand file exists but cannot be decoded.

    The file is left untouched so that no stored history is overwritten.
    """


@dataclass
class StoredLocation:
    """A persisted location row."""
    key: str
    brand_id: Any
    attributes: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    first_seen_at: str = ""
    last_seen_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StoredLocation':
        return cls(
            key=data['key'],
            brand_id=data.get('brand_id'),
            attributes=data.get('attributes') or {},
            is_active=bool(data.get('is_active', True)),
            first_seen_at=data.get('first_seen_at') or "",
            last_seen_at=data.get('last_seen_at') or "",
        )


class LocationStore(ABC):
    """Persistence operations consumed by the collection core."""

    @abstractmethod
    def list_brands_needing_locations(self) -> List[Brand]:
        """Active brands eligible for collection."""

    @abstractmethod
    def get_active_location_keys(self, brand_id: Any) -> Set[str]:
        """Keys of the brand's currently active locations."""

    @abstractmethod
    def upsert_locations(self, brand_id: Any, keyed_locations: Sequence[KeyedLocation]) -> Tuple[int, int]:
        """Insert unseen keys, refresh and reactivate known ones.

        Returns:
            (new_count, kept_count)
        """

    @abstractmethod
    def deactivate_missing(self, brand_id: Any, active_keys: Set[str]) -> int:
        """Mark active rows whose key is not in ``active_keys`` inactive.

        Returns:
            Number of rows deactivated
        """

    @abstractmethod
    def record_brand_run_outcome(self, run_id: str, brand_id: Any, status: str,
                                 record_count: Optional[int] = None, error: Optional[str] = None) -> None:
        """Write one brand's audit row for a run."""

    @abstractmethod
    def create_run(self, trigger: str = "cli") -> str:
        """Open a run record and return its id."""

    @abstractmethod
    def complete_run(self, run_id: str, summary: Optional[Dict[str, Any]] = None) -> None:
        """Close a run as complete."""

    @abstractmethod
    def fail_run(self, run_id: str, error: str, summary: Optional[Dict[str, Any]] = None) -> None:
        """Close a run as failed."""


class InMemoryLocationStore(LocationStore):
    """Dict-backed store.

    Subclasses can persist by overriding ``_load_brand`` and ``_save_brand``;
    both are called with the store lock held.
    """

    def __init__(self, brands: Iterable[Brand] = ()):
        self._brands = list(brands)
        self._rows: Dict[Any, Dict[str, StoredLocation]] = {}
        self._runs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    # -- brand rows ---------------------------------------------------------

    def _load_brand(self, brand_id: Any) -> Dict[str, StoredLocation]:
        return {}

    def _save_brand(self, brand_id: Any, rows: Dict[str, StoredLocation]) -> None:
        pass

    def _brand_rows(self, brand_id: Any) -> Dict[str, StoredLocation]:
        if brand_id not in self._rows:
            self._rows[brand_id] = self._load_brand(brand_id)
        return self._rows[brand_id]

    def list_brands_needing_locations(self) -> List[Brand]:
        return [brand for brand in self._brands if brand.is_active]

    def get_locations(self, brand_id: Any) -> List[StoredLocation]:
        """All stored rows for a brand, active or not."""
        with self._lock:
            return list(self._brand_rows(brand_id).values())

    def get_active_location_keys(self, brand_id: Any) -> Set[str]:
        with self._lock:
            return {key for key, row in self._brand_rows(brand_id).items() if row.is_active}

    def upsert_locations(self, brand_id: Any, keyed_locations: Sequence[KeyedLocation]) -> Tuple[int, int]:
        new = 0
        kept = 0
        now = utc_now()
        with self._lock:
            rows = self._brand_rows(brand_id)
            for key, location in keyed_locations:
                attributes = location.to_dict()
                row = rows.get(key)
                if row is None:
                    rows[key] = StoredLocation(key, brand_id, attributes, True, now, now)
                    new += 1
                else:
                    row.attributes = attributes
                    row.is_active = True
                    row.last_seen_at = now
                    kept += 1
            self._save_brand(brand_id, rows)
        return new, kept

    def deactivate_missing(self, brand_id: Any, active_keys: Set[str]) -> int:
        lost = 0
        with self._lock:
            rows = self._brand_rows(brand_id)
            for key, row in rows.items():
                if row.is_active and key not in active_keys:
                    row.is_active = False
                    lost += 1
            if lost:
                self._save_brand(brand_id, rows)
        return lost

    # -- run bookkeeping ----------------------------------------------------

    def create_run(self, trigger: str = "cli") -> str:
        run_id = f"run_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._runs[run_id] = {"status": "running", "trigger": trigger, "brands": {},
                                  "summary": {}, "error": None}
        return run_id

    def get_run(self, run_id: str) -> Dict[str, Any]:
        with self._lock:
            return self._runs[run_id]

    def record_brand_run_outcome(self, run_id: str, brand_id: Any, status: str,
                                 record_count: Optional[int] = None, error: Optional[str] = None) -> None:
        with self._lock:
            if run_id not in self._runs:
                raise KeyError(f"Unknown run: {run_id}")
            self._runs[run_id]["brands"][brand_id] = {
                "status": status, "record_count": record_count, "error": error,
            }

    def complete_run(self, run_id: str, summary: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            run = self._runs[run_id]
            run["status"] = "complete"
            run["summary"].update(summary or {})

    def fail_run(self, run_id: str, error: str, summary: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            run = self._runs[run_id]
            run["status"] = "failed"
            run["error"] = error
            run["summary"].update(summary or {})


class JsonLocationStore(InMemoryLocationStore):
    """File-backed store under a data directory."""

    def __init__(self, data_dir: str = "data", brands: Iterable[Brand] = ()):
        super().__init__(brands)
        self.data_dir = Path(data_dir)
        self.locations_dir = self.data_dir / "locations"
        self.runs_dir = self.data_dir / "runs"
        self._trackers: Dict[str, RunTracker] = {}

    def _brand_file(self, brand_id: Any) -> Path:
        return self.locations_dir / f"{brand_id}.json"

    def _load_brand(self, brand_id: Any) -> Dict[str, StoredLocation]:
        path = self._brand_file(brand_id)
        if not path.exists():
            return {}
        data = read_json(path)
        if not isinstance(data, dict):
            raise CorruptStoreError(f"Stored locations for brand {brand_id} are unreadable: {path}")
        rows = {}
        for item in data.get("locations", []):
            try:
                row = StoredLocation.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                raise CorruptStoreError(f"Malformed stored location for brand {brand_id} in {path}: {e}") from e
            rows[row.key] = row
        return rows

    def _save_brand(self, brand_id: Any, rows: Dict[str, StoredLocation]) -> None:
        write_json_atomic(
            {"brand_id": brand_id, "updated_at": utc_now(),
             "locations": [row.to_dict() for row in rows.values()]},
            self._brand_file(brand_id),
        )

    def _tracker(self, run_id: str) -> RunTracker:
        with self._lock:
            tracker = self._trackers.get(run_id)
            if tracker is None:
                tracker = RunTracker(str(self.runs_dir), run_id=run_id)
                self._trackers[run_id] = tracker
            return tracker

    def create_run(self, trigger: str = "cli") -> str:
        tracker = RunTracker(str(self.runs_dir), trigger=trigger)
        with self._lock:
            self._trackers[tracker.run_id] = tracker
        return tracker.run_id

    def get_run(self, run_id: str) -> Dict[str, Any]:
        return self._tracker(run_id).get_metadata()

    def record_brand_run_outcome(self, run_id: str, brand_id: Any, status: str,
                                 record_count: Optional[int] = None, error: Optional[str] = None) -> None:
        self._tracker(run_id).record_brand(brand_id, status, record_count, error)

    def complete_run(self, run_id: str, summary: Optional[Dict[str, Any]] = None) -> None:
        self._tracker(run_id).complete(summary)

    def fail_run(self, run_id: str, error: str, summary: Optional[Dict[str, Any]] = None) -> None:
        self._tracker(run_id).fail(error, summary)
