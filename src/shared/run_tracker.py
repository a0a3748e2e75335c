"""Run audit files for location collection runs.

Each run writes ``<runs_dir>/<run_id>.json`` holding the run status, the
per-brand outcomes as they arrive and the final summary. Brand workers
record outcomes concurrently, so every mutation is lock-guarded and
re-saves the whole document atomically.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.shared.checkpoint import read_json, write_json_atomic
from src.shared.constants import RUN_HISTORY

__all__ = [
    'RunTracker',
    'get_run_history',
    'utc_now',
]


def utc_now() -> str:
    """Current UTC time as ISO-8601 with a trailing Z."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _generate_run_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"locations_{timestamp}_{uuid.uuid4().hex[:6]}"


class RunTracker:
    """Track metadata for one collection run"""

    def __init__(self, runs_dir: str = "data/runs", run_id: Optional[str] = None, trigger: str = "cli"):
        """Initialize run tracker

        Args:
            runs_dir: Directory holding run audit files
            run_id: Existing run to reopen; a new id is generated if None
            trigger: What started the run (cli, schedule...)
        """
        self.run_id = run_id or _generate_run_id()
        self.run_file = Path(runs_dir) / f"{self.run_id}.json"
        self._lock = threading.Lock()

        existing = read_json(self.run_file) if run_id else None
        if existing:
            self.metadata = existing
        else:
            self.metadata = self._create_fresh_metadata(trigger)
            self._save()

    def _create_fresh_metadata(self, trigger: str) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "trigger": trigger,
            "status": "running",
            "started_at": utc_now(),
            "completed_at": None,
            "summary": {},
            "brands": {},
            "errors": [],
        }

    def _save(self) -> None:
        write_json_atomic(self.metadata, self.run_file)

    def record_brand(self, brand_id: Any, status: str, record_count: Optional[int] = None,
                     error: Optional[str] = None) -> None:
        """Record (or overwrite) one brand's outcome for this run.

        Args:
            brand_id: Brand id
            status: "succeeded" or "failed"
            record_count: Active location count on success
            error: Failure message
        """
        with self._lock:
            self.metadata["brands"][str(brand_id)] = {
                "status": status,
                "record_count": record_count,
                "error": error,
                "recorded_at": utc_now(),
            }
            self._save()

    def _finish(self, status: str, summary: Optional[Dict[str, Any]], error: Optional[str]) -> None:
        with self._lock:
            self.metadata["status"] = status
            self.metadata["completed_at"] = utc_now()
            if summary:
                self.metadata["summary"].update(summary)
            if error:
                self.metadata["errors"].append({"timestamp": utc_now(), "message": error})
            self._save()

    def complete(self, summary: Optional[Dict[str, Any]] = None) -> None:
        """Mark run as complete"""
        self._finish("complete", summary, None)

    def fail(self, error_msg: Optional[str] = None, summary: Optional[Dict[str, Any]] = None) -> None:
        """Mark run as failed"""
        self._finish("failed", summary, error_msg)

    @property
    def status(self) -> str:
        return self.metadata["status"]

    def get_metadata(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self.metadata)


def get_run_history(runs_dir: str = "data/runs", limit: int = RUN_HISTORY.HISTORY_LIMIT) -> List[Dict[str, Any]]:
    """Most recent run audit documents, newest first.

    Args:
        runs_dir: Directory holding run audit files
        limit: Maximum number of runs to return
    """
    run_dir = Path(runs_dir)
    if not run_dir.exists():
        return []

    run_files = sorted(run_dir.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)[:limit]

    runs = []
    for run_file in run_files:
        metadata = read_json(run_file)
        if metadata:
            runs.append(metadata)
        else:
            logging.debug(f"Skipping unreadable run file {run_file}")
    return runs
