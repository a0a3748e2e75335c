"""HTTP utility functions for locator fetching.

This module provides the locator page fetcher (retry, user-agent fallback,
bot-challenge detection) plus no-retry helpers for vendor API calls.

Two fetch backends share one interface:
- CurlBackend shells out to ``curl`` with a browser user agent. Some
  anti-bot stacks fingerprint the HTTP client library itself and pass a
  curl request that they would block from requests.
- RequestsBackend issues a plain ``requests.Session.get``.
"""

import logging
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urlparse

import requests

from config.locator_config import BOT_CHALLENGE_MARKERS, BROWSER_FALLBACK_UA, VENDOR_MARKERS
from src.shared.constants import FETCH, HTTP

__all__ = [
    'AllAttemptsFailed',
    'CurlBackend',
    'FetchBackend',
    'FetchResult',
    'HttpStatusError',
    'InvalidJsonError',
    'LocatorError',
    'RequestsBackend',
    'TransportError',
    'create_session',
    'fetch_html',
    'fetch_json',
    'fetch_text',
    'get_headers',
    'is_success',
    'is_usable_body',
    'looks_like_bot_challenge',
    'post_json',
    'sanitize_url',
]


# =============================================================================
# ERRORS
# =============================================================================

class LocatorError(Exception):
    """Base class for locator fetch and vendor API failures."""


class TransportError(LocatorError):
    """Connection, timeout or other transport-level failure."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"request to {sanitize_url(url)} failed: {cause}")
        self.url = url
        self.cause = cause


class HttpStatusError(LocatorError):
    """Non-2xx response from a vendor API."""

    def __init__(self, status: int, url: str):
        super().__init__(f"HTTP {status} from {sanitize_url(url)}")
        self.status = status
        self.url = url


class InvalidJsonError(LocatorError):
    """Response body was not valid JSON."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"invalid JSON from {sanitize_url(url)}: {cause}")
        self.url = url


class AllAttemptsFailed(LocatorError):
    """No fetch attempt produced a usable locator page."""

    def __init__(self, url: str, attempts: int, last_status: Optional[int] = None):
        status = last_status if last_status is not None else 'no response'
        super().__init__(
            f"all {attempts} fetch attempts failed for {sanitize_url(url)} (last status: {status})"
        )
        self.url = url
        self.attempts = attempts
        self.last_status = last_status


# =============================================================================
# HELPERS
# =============================================================================

def sanitize_url(url: str) -> str:
    """Redact query parameters from URL for safe logging.

    Widget tokens and company ids travel in query strings, so only scheme,
    host and path are kept.

    Args:
        url: URL to sanitize

    Returns:
        Sanitized URL with query parameters redacted
    """
    try:
        parsed = urlparse(url)
        safe_url = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
        if parsed.query:
            safe_url += "?[REDACTED]"
        return safe_url
    except ValueError:
        return "[INVALID_URL]"


def get_headers(user_agent: Optional[str] = None, referer: Optional[str] = None,
                accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8") -> Dict[str, str]:
    """Get a browser-like header set.

    Args:
        user_agent: User agent string (defaults to the configured agent)
        referer: Optional Referer header
        accept: Accept header value

    Returns:
        Dictionary of HTTP headers
    """
    headers = {
        "User-Agent": user_agent or HTTP.USER_AGENT,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.5",
    }
    if referer:
        headers["Referer"] = referer
    return headers


def create_session() -> requests.Session:
    """Create a fresh session.

    requests.Session is NOT thread-safe; each brand gets its own.
    """
    return requests.Session()


def is_success(status: int) -> bool:
    return 200 <= status < 300


def looks_like_bot_challenge(body: str) -> bool:
    """True if the body matches a known "are you human" interstitial."""
    lowered = body.lower()
    return any(marker in lowered for marker in BOT_CHALLENGE_MARKERS)


def is_usable_body(body: Optional[str]) -> bool:
    """True if a fetched page is worth handing to the extraction strategies.

    A body is usable when it is non-empty and either carries a locator
    vendor marker or does not look like a bot challenge.
    """
    if not body or not body.strip():
        return False
    lowered = body.lower()
    if any(marker in lowered for marker in VENDOR_MARKERS):
        return True
    return not looks_like_bot_challenge(body)


# =============================================================================
# FETCH BACKENDS
# =============================================================================

class FetchResult(NamedTuple):
    status: int
    body: str


class FetchBackend(ABC):
    """One way of issuing a GET for a locator page.

    Implementations return None when the attempt could not be made at all
    (transport error, missing binary); HTTP error statuses are returned as
    results.
    """

    name = "backend"

    @abstractmethod
    def get(self, url: str, user_agent: str, timeout: int,
            headers: Optional[Mapping[str, str]] = None) -> Optional[FetchResult]:
        """Fetch ``url`` and return its status and body."""


class CurlBackend(FetchBackend):
    """Fetch through the ``curl`` binary."""

    name = "curl"
    _STATUS_SEPARATOR = "\n__HTTP_STATUS__:"

    def __init__(self, binary: str = "curl"):
        self.binary = binary

    def _run(self, args: List[str], url: str, timeout: int) -> Optional[FetchResult]:
        command = [self.binary, "-Ls", "--compressed", "--max-time", str(timeout)]
        command += args
        command += ["--write-out", self._STATUS_SEPARATOR + "%{http_code}", url]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                timeout=timeout + 5,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logging.debug(f"curl fetch of {sanitize_url(url)} could not run: {e}")
            return None

        if completed.returncode != 0:
            logging.debug(f"curl fetch of {sanitize_url(url)} exited with {completed.returncode}")
            return None

        output = completed.stdout.decode('utf-8', errors='replace')
        body, _, status_text = output.rpartition(self._STATUS_SEPARATOR)
        try:
            status = int(status_text.strip())
        except ValueError:
            return None
        return FetchResult(status, body)

    @staticmethod
    def _header_args(user_agent: str, headers: Optional[Mapping[str, str]]) -> List[str]:
        args = ["--user-agent", user_agent]
        for key, value in (headers or {}).items():
            if key.lower() == "user-agent":
                continue
            args += ["-H", f"{key}: {value}"]
        return args

    def get(self, url: str, user_agent: str, timeout: int,
            headers: Optional[Mapping[str, str]] = None) -> Optional[FetchResult]:
        return self._run(self._header_args(user_agent, headers), url, timeout)

    def post_form(self, url: str, form: Sequence[Tuple[str, str]], user_agent: str, timeout: int,
                  headers: Optional[Mapping[str, str]] = None) -> Optional[FetchResult]:
        """POST url-encoded form fields (repeated keys allowed)."""
        args = self._header_args(user_agent, headers)
        args += ["-H", "Content-Type: application/x-www-form-urlencoded; charset=UTF-8"]
        for key, value in form:
            args += ["--data-urlencode", f"{key}={value}"]
        return self._run(args, url, timeout)


class RequestsBackend(FetchBackend):
    """Fetch through a requests session."""

    name = "requests"

    def __init__(self, session: requests.Session):
        self.session = session

    def get(self, url: str, user_agent: str, timeout: int,
            headers: Optional[Mapping[str, str]] = None) -> Optional[FetchResult]:
        request_headers = dict(headers or {})
        request_headers["User-Agent"] = user_agent
        try:
            response = self.session.get(url, headers=request_headers, timeout=timeout)
        except requests.exceptions.RequestException as e:
            logging.debug(f"Request error for {sanitize_url(url)}: {e}")
            return None
        return FetchResult(response.status_code, response.text or "")


# =============================================================================
# LOCATOR PAGE FETCH
# =============================================================================

def fetch_html(
    session: Optional[requests.Session],
    url: str,
    timeout: int,
    user_agent: str,
    use_curl: bool = True,
    headers: Optional[Mapping[str, str]] = None,
    curl: Optional[CurlBackend] = None,
) -> str:
    """Fetch a locator page, retrying across backends and user agents.

    Up to len(FETCH.BACKOFF_DELAYS_MS) attempts, sleeping the matching delay
    before each. Every attempt tries curl with the browser user agent first
    and returns at once on a usable 2xx body. Otherwise requests is tried
    with the caller's user agent and then the browser agent; the browser
    body wins when both succeed since widgets often hide their embed from
    non-browser agents.

    Args:
        session: Session for the requests backend (a private one is created if None)
        url: Locator page URL
        timeout: Per-request timeout in seconds
        user_agent: Preferred user agent for the requests backend
        use_curl: Whether to try the curl backend
        headers: Extra request headers (e.g. Referer)
        curl: Curl backend override

    Returns:
        The page body

    Raises:
        AllAttemptsFailed: If no attempt yields a usable body
    """
    owns_session = session is None
    session = session or create_session()
    requests_backend = RequestsBackend(session)
    curl_backend = (curl or CurlBackend()) if use_curl else None
    base_headers = dict(headers or get_headers(user_agent))

    agents = [user_agent]
    if user_agent != BROWSER_FALLBACK_UA:
        agents.append(BROWSER_FALLBACK_UA)

    safe_url = sanitize_url(url)
    last_status: Optional[int] = None
    delays = FETCH.BACKOFF_DELAYS_MS

    try:
        for attempt, delay_ms in enumerate(delays, start=1):
            if delay_ms:
                time.sleep(delay_ms / 1000)

            if curl_backend is not None:
                result = curl_backend.get(url, BROWSER_FALLBACK_UA, timeout, base_headers)
                if result is not None:
                    last_status = result.status
                    if is_success(result.status) and is_usable_body(result.body):
                        logging.debug(f"Fetched {safe_url} via curl (attempt {attempt})")
                        return result.body

            bodies: Dict[str, str] = {}
            for agent in agents:
                result = requests_backend.get(url, agent, timeout, base_headers)
                if result is None:
                    continue
                last_status = result.status
                if is_success(result.status) and is_usable_body(result.body):
                    bodies[agent] = result.body

            if BROWSER_FALLBACK_UA in bodies:
                return bodies[BROWSER_FALLBACK_UA]
            if user_agent in bodies:
                return bodies[user_agent]

            logging.warning(
                f"Fetch attempt {attempt}/{len(delays)} for {safe_url} yielded no usable body "
                f"(last status: {last_status if last_status is not None else 'no response'})"
            )
    finally:
        if owns_session:
            session.close()

    raise AllAttemptsFailed(url, len(delays), last_status)


# =============================================================================
# VENDOR API HELPERS (no retry)
# =============================================================================

def _send(
    session: requests.Session,
    method: str,
    url: str,
    timeout: int,
    user_agent: str,
    headers: Optional[Mapping[str, str]] = None,
    **kwargs,
) -> requests.Response:
    request_headers = dict(headers or {})
    request_headers["User-Agent"] = user_agent
    try:
        send = session.get if method == "GET" else session.post
        response = send(url, headers=request_headers, timeout=timeout, **kwargs)
    except requests.exceptions.RequestException as e:
        raise TransportError(url, e) from e

    if not is_success(response.status_code):
        raise HttpStatusError(response.status_code, url)
    return response


def _decode_json(response: requests.Response, url: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise InvalidJsonError(url, e) from e


def fetch_text(session: requests.Session, url: str, timeout: int, user_agent: str,
               headers: Optional[Mapping[str, str]] = None) -> str:
    """GET a URL and return its body.

    Raises:
        HttpStatusError: On a non-2xx response
        TransportError: On connection/timeout errors
    """
    return _send(session, "GET", url, timeout, user_agent, headers).text


def fetch_json(session: requests.Session, url: str, timeout: int, user_agent: str,
               headers: Optional[Mapping[str, str]] = None) -> Any:
    """GET a URL and decode its JSON body.

    Raises:
        HttpStatusError: On a non-2xx response
        TransportError: On connection/timeout errors
        InvalidJsonError: If the body is not JSON
    """
    response = _send(session, "GET", url, timeout, user_agent, headers)
    return _decode_json(response, url)


def post_json(session: requests.Session, url: str, payload: Any, timeout: int, user_agent: str,
              headers: Optional[Mapping[str, str]] = None) -> Any:
    """POST a JSON payload and decode the JSON response."""
    response = _send(session, "POST", url, timeout, user_agent, headers, json=payload)
    return _decode_json(response, url)
