"""Centralized constants for the store locator engine.

This module provides frozen dataclass-based configuration groups for the
magic numbers used throughout the codebase. Values that operators tune per
deployment (request timeout, user agent, concurrency) live in
src/shared/app_config.py instead and are read from the environment.

Usage:
    from src.shared.constants import FETCH, TRUST, WORKERS

    delays = FETCH.BACKOFF_DELAYS_MS
    if count >= TRUST.EMBED_MIN_COUNT:
        ...
"""

from dataclasses import dataclass
from typing import Tuple

__all__ = [
    'DISCOVERY',
    'DiscoveryDefaults',
    'FETCH',
    'FetchDefaults',
    'GRID',
    'GridDefaults',
    'HTTP',
    'HttpDefaults',
    'LOGGING',
    'LoggingDefaults',
    'RUN_HISTORY',
    'RunHistoryDefaults',
    'TRUST',
    'TrustDefaults',
    'VTINFO',
    'VtinfoDefaults',
    'WORKERS',
    'WorkerDefaults',
]


@dataclass(frozen=True)
class HttpDefaults:
    """HTTP request configuration defaults.

    These are fallbacks; the effective request timeout and user agent come
    from AppConfig (LOCATOR_REQUEST_TIMEOUT_SECS / LOCATOR_USER_AGENT).
    """

    TIMEOUT: int = 30
    """Request timeout in seconds."""

    USER_AGENT: str = "where-to-buy-locator/0.1 (store-intelligence)"
    """Default user agent for library-level requests."""


@dataclass(frozen=True)
class FetchDefaults:
    """Locator page fetch retry policy.

    Each attempt tries the curl backend first, then the requests backend
    with the caller's user agent and the browser fallback user agent.
    """

    BACKOFF_DELAYS_MS: Tuple[int, ...] = (0, 300, 900)
    """Delay before attempts 1, 2 and 3 (length is the attempt budget)."""


@dataclass(frozen=True)
class DiscoveryDefaults:
    """Locator URL auto-discovery settings."""

    PROBE_TIMEOUT: int = 5
    """HEAD probe timeout in seconds, independent of the scrape timeout."""


@dataclass(frozen=True)
class TrustDefaults:
    """Trust gate thresholds for the embedded-JSON heuristic source."""

    EMBED_MIN_COUNT: int = 5
    """Minimum record count for an embedded-JSON batch to be trusted."""

    EMBED_MIN_QUALITY_RATIO: float = 0.80
    """Minimum fraction of records with minimum shape."""


@dataclass(frozen=True)
class GridDefaults:
    """Grid generation constants."""

    MILES_PER_LAT_DEGREE: float = 69.0
    """Miles per degree of latitude (treated as constant)."""


@dataclass(frozen=True)
class VtinfoDefaults:
    """Pacing and retry policy for the VTInfo finder.

    The finder rate limits aggressively, so requests are spaced per customer
    and globally across threads.
    """

    MAX_FETCH_ATTEMPTS: int = 5
    """Attempts per iframe/search request."""

    BACKOFF_BASE_MS: int = 500
    """Base retry backoff, doubled per attempt."""

    BACKOFF_MAX_MS: int = 6000
    """Retry backoff ceiling."""

    PACING_BASE_MS: int = 350
    """Minimum delay before each sweep point request."""

    PACING_SPREAD_MS: int = 400
    """Deterministic per-customer jitter added to the pacing delay."""

    GLOBAL_MIN_GAP_MS: int = 900
    """Minimum gap between any two VTInfo requests in the process."""

    RETRY_AFTER_CAP_SECONDS: int = 10
    """Upper bound for honouring a Retry-After header."""


@dataclass(frozen=True)
class WorkerDefaults:
    """Parallel worker configuration."""

    MAX_CONCURRENT_BRANDS: int = 1
    """Default number of brands collected concurrently."""


@dataclass(frozen=True)
class LoggingDefaults:
    """Logging configuration.

    Controls log file rotation settings.
    """

    LOG_FILE: str = "logs/locator.log"
    """Default log file path."""

    MAX_BYTES: int = 10 * 1024 * 1024
    """Maximum log file size before rotation (10MB)."""

    BACKUP_COUNT: int = 5
    """Number of backup log files to keep."""


@dataclass(frozen=True)
class RunHistoryDefaults:
    """Run history settings."""

    HISTORY_LIMIT: int = 10
    """Default number of run history entries to retrieve."""


# Singleton instances for easy import
HTTP = HttpDefaults()
FETCH = FetchDefaults()
DISCOVERY = DiscoveryDefaults()
TRUST = TrustDefaults()
GRID = GridDefaults()
VTINFO = VtinfoDefaults()
WORKERS = WorkerDefaults()
LOGGING = LoggingDefaults()
RUN_HISTORY = RunHistoryDefaults()
