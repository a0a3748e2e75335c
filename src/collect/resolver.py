"""Locator URL resolution.

A configured locator URL is used verbatim. Otherwise the brand's domain is
probed with cheap HEAD requests over LOCATOR_PATHS and the first path that
answers 2xx is used.
"""

import logging
from typing import Optional

import requests

from config.locator_config import LOCATOR_PATHS
from src.shared.brands import Brand
from src.shared.constants import DISCOVERY
from src.shared.http import get_headers, is_success

__all__ = [
    'normalize_base_url',
    'probe_locator_path',
    'resolve_locator_url',
]


def normalize_base_url(domain: str) -> Optional[str]:
    """Turn a bare domain or URL into a base URL without a trailing slash.

    ``acme.com`` becomes ``https://acme.com``; an explicit scheme is kept.
    """
    domain = (domain or "").strip()
    if not domain:
        return None
    if not domain.startswith(('http://', 'https://')):
        domain = f"https://{domain}"
    return domain.rstrip('/')


def probe_locator_path(session: requests.Session, url: str, user_agent: str) -> bool:
    """HEAD ``url`` (following redirects) and report whether it answered 2xx."""
    try:
        response = session.head(
            url,
            headers=get_headers(user_agent),
            timeout=DISCOVERY.PROBE_TIMEOUT,
            allow_redirects=True,
        )
    except requests.exceptions.RequestException as e:
        logging.debug(f"Probe failed for {url}: {e}")
        return False
    return is_success(response.status_code)


def resolve_locator_url(brand: Brand, session: requests.Session, user_agent: str) -> Optional[str]:
    """Find the page to scrape for a brand.

    Args:
        brand: Brand to resolve
        session: Session used for the discovery probes
        user_agent: User agent for the probes

    Returns:
        The configured or discovered locator URL, or None
    """
    if brand.store_locator_url:
        return brand.store_locator_url

    base_url = normalize_base_url(brand.domain or "")
    if base_url is None:
        logging.info(f"[{brand.slug}] No domain configured, cannot discover a locator")
        return None

    for path in LOCATOR_PATHS:
        candidate = base_url + path
        if probe_locator_path(session, candidate, user_agent):
            logging.info(f"[{brand.slug}] Discovered locator at {candidate}")
            return candidate

    logging.info(f"[{brand.slug}] No locator found under {base_url} ({len(LOCATOR_PATHS)} paths probed)")
    return None
