"""Sentry.io integration for error monitoring.

This module initializes the Sentry SDK with project-specific configuration,
including a brand tag on captured events and scrubbing of vendor tokens and
query strings from messages.

Usage:
    from src.shared.sentry_integration import init_sentry, capture_brand_error

    # Initialize at application startup (run.py)
    init_sentry()

    # Capture errors with brand context
    capture_brand_error(exception, brand="acme", extra={"locator_url": url})
"""

import logging
import os
import re
import subprocess
from typing import Any, Dict, Optional

import sentry_sdk

__all__ = [
    'capture_brand_error',
    'flush',
    'init_sentry',
]

_sentry_initialized = False

logger = logging.getLogger(__name__)


def init_sentry(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    release: Optional[str] = None,
) -> bool:
    """Initialize Sentry SDK with project configuration.

    Args:
        dsn: Sentry DSN (defaults to SENTRY_DSN env var)
        environment: Environment name (defaults to SENTRY_ENVIRONMENT or 'development')
        release: Release version (defaults to SENTRY_RELEASE or git hash)

    Returns:
        True if Sentry was initialized, False if disabled
    """
    global _sentry_initialized

    if _sentry_initialized:
        return True

    dsn = dsn or os.getenv("SENTRY_DSN", "")
    if not dsn:
        logger.debug("SENTRY_DSN not set, Sentry disabled")
        return False

    environment = environment or os.getenv("SENTRY_ENVIRONMENT", "development")
    release = release or os.getenv("SENTRY_RELEASE") or _get_git_release()

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release,
            traces_sample_rate=0.0,
            before_send=_before_send,
            send_default_pii=False,
            attach_stacktrace=True,
            max_breadcrumbs=50,
        )
        sentry_sdk.set_tag("project", "where-to-buy-locator")

        _sentry_initialized = True
        logger.info(f"Sentry initialized (environment={environment}, release={release})")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Sentry: {e}")
        return False


def _get_git_release() -> Optional[str]:
    """Get current git commit hash as release version."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass
    return None


def _before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Scrub vendor tokens from exception values and breadcrumbs."""
    for exception in event.get("exception", {}).get("values", []):
        if "value" in exception:
            exception["value"] = _scrub_sensitive_data(exception["value"])

    for breadcrumb in event.get("breadcrumbs", {}).get("values", []):
        if "message" in breadcrumb:
            breadcrumb["message"] = _scrub_sensitive_data(breadcrumb["message"])

    return event


def _scrub_sensitive_data(text: str) -> str:
    """Remove credentials and widget tokens from text."""
    if not isinstance(text, str):
        return text

    # user:pass@host
    text = re.sub(r"://[^:/\s]+:[^@/\s]+@", "://[REDACTED]@", text)

    # Widget tokens and API keys in query strings
    text = re.sub(
        r"(api[_-]?key|password|secret|token|company_id|custID|UUID)=[^&\s]+",
        r"\1=[REDACTED]",
        text,
        flags=re.IGNORECASE,
    )
    return text


def capture_brand_error(
    exception: Exception,
    brand: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Capture an exception with brand context.

    Args:
        exception: The exception to capture
        brand: Brand slug for context
        extra: Additional context data (e.g., locator URL)

    Returns:
        Sentry event ID if captured, None otherwise
    """
    if not _sentry_initialized:
        return None

    with sentry_sdk.new_scope() as scope:
        if brand:
            scope.set_tag("brand", brand)

        if extra:
            safe_extra = {
                key: _scrub_sensitive_data(value) if isinstance(value, str) else value
                for key, value in extra.items()
            }
            scope.set_context("locator_context", safe_extra)

        return sentry_sdk.capture_exception(exception)


def flush(timeout: float = 2.0) -> None:
    """Flush pending events to Sentry before exit.

    Args:
        timeout: Maximum time to wait in seconds
    """
    if _sentry_initialized:
        sentry_sdk.flush(timeout=timeout)
