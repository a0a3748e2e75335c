"""VTInfo (finder.vtinfo.com) locator strategy

VTInfo's beverage finder is an iframe app: the iframe page carries hidden
form fields and a CSRF token, and results come back as HTML fragments from a
form POST around a point. The finder rate limits aggressively, so every
request is paced (per customer and process-wide) and retried with backoff,
falling back to curl with a browser user agent.

The sweep stops early once VTINFO_MAX_LOCATIONS unique locations are held.
"""

import hashlib
import html as html_lib
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlencode

import requests
from bs4 import BeautifulSoup

from config.locator_config import (
    BROWSER_FALLBACK_UA,
    VTINFO_DEFAULT_OFF_PREM,
    VTINFO_DEFAULT_ON_PREM,
    VTINFO_DEFAULT_PAGESIZE,
    VTINFO_IFRAME_URL,
    VTINFO_MAX_LOCATIONS,
    VTINFO_RATE_LIMIT_MARKERS,
    VTINFO_SEARCH_RADIUS_MILES,
    VTINFO_SEARCH_URL,
)
from src.locators.base import LocatorContext, LocatorStrategy
from src.shared.constants import VTINFO
from src.shared.grid import STRATEGIC_ZIPS, GridPoint
from src.shared.http import CurlBackend, FetchResult, is_success
from src.shared.location_schema import RawLocation, identity_fields

EMBED_RE = re.compile(r"""finder\.vtinfo\.com/finder/web/v2/iframe\?([^"'\s>]+)""")

_FNV_OFFSET = 14695981039346656037
_FNV_PRIME = 1099511628211
_U64 = 0xFFFFFFFFFFFFFFFF

# Process-wide spacing between VTInfo requests (brands may run in parallel)
_slot_lock = threading.Lock()
_last_request_at: Optional[float] = None


@dataclass(frozen=True)
class VtinfoEmbed:
    cust_id: str
    uuid: Optional[str] = None

    @property
    def iframe_url(self) -> str:
        params = {"custID": self.cust_id}
        if self.uuid:
            params["UUID"] = self.uuid
        return f"{VTINFO_IFRAME_URL}?{urlencode(params)}"


@dataclass(frozen=True)
class IframeForm:
    """Values scraped from the iframe page that every search must echo."""
    pagesize: str
    implementation_id: str
    uuid: Optional[str]
    csrf_token: str
    on_prem: str
    off_prem: str


# =============================================================================
# DETECTION AND PARSING
# =============================================================================

def extract_embed(html: str) -> Optional[VtinfoEmbed]:
    """Find the finder iframe's customer id (and UUID) in a page."""
    if "finder.vtinfo.com" not in html:
        return None

    normalized = (
        html.replace("&amp;", "&")
        .replace("\\\\/", "/")
        .replace("\\/", "/")
        .replace("\n", "")
    )
    match = EMBED_RE.search(normalized)
    if not match:
        return None

    cust_id = None
    uuid = None
    for part in match.group(1).split("&"):
        key, _, value = part.partition("=")
        if key == "custID" and value:
            cust_id = value
        elif key == "UUID" and value:
            uuid = value
    if not cust_id:
        return None
    return VtinfoEmbed(cust_id, uuid)


def decode_text(value: str) -> str:
    """Undo JS string escaping and HTML entities."""
    value = value.replace("\\/", "/").replace('\\"', '"').replace("\\u0026", "&")
    return html_lib.unescape(value).strip()


def extract_hidden_input(page: str, name: str) -> Optional[str]:
    soup = BeautifulSoup(page, 'html.parser')
    tag = soup.find('input', attrs={'name': name})
    if tag is None or tag.get('value') is None:
        return None
    return tag.get('value').strip()


def extract_js_assignment(page: str, variable: str) -> Optional[str]:
    match = re.search(rf'{re.escape(variable)}\s*=\s*"([^"]*)"', page)
    return decode_text(match.group(1)) if match else None


def parse_iframe_form(page: str, embed: VtinfoEmbed) -> IframeForm:
    return IframeForm(
        pagesize=extract_hidden_input(page, "pagesize") or VTINFO_DEFAULT_PAGESIZE,
        implementation_id=extract_hidden_input(page, "implementationID") or "",
        uuid=extract_hidden_input(page, "UUID") or embed.uuid,
        csrf_token=extract_js_assignment(page, "CSRFToken") or "",
        on_prem=extract_js_assignment(page, "onPremDescription") or VTINFO_DEFAULT_ON_PREM,
        off_prem=extract_js_assignment(page, "offPremDescription") or VTINFO_DEFAULT_OFF_PREM,
    )


def build_search_form(cust_id: str, form: IframeForm, zip_code: str, point: GridPoint) -> List[Tuple[str, str]]:
    """Form fields for one search; storeType appears twice (on and off premise)."""
    fields = [
        ("custID", cust_id),
        ("pagesize", form.pagesize),
        ("implementationID", form.implementation_id),
        ("action", "results"),
        ("d", zip_code),
        ("z", zip_code),
        ("m", VTINFO_SEARCH_RADIUS_MILES),
        ("lat", str(point.lat)),
        ("long", str(point.lng)),
        ("themeVersion", "3"),
        ("onPremDescription", form.on_prem),
        ("offPremDescription", form.off_prem),
        ("CSRFToken", form.csrf_token),
        ("storeType", "on"),
        ("storeType", "off"),
    ]
    if form.uuid:
        fields.append(("UUID", form.uuid))
    fields.append(("minResults", ""))
    fields.append(("minSold", ""))
    return fields


def _float_attr(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def _text(tag) -> Optional[str]:
    if tag is None:
        return None
    text = tag.get_text(" ", strip=True)
    return text or None


def parse_search_results(page: str) -> List[RawLocation]:
    """Locations from a search response's ``article.finder_location`` blocks."""
    soup = BeautifulSoup(page, 'html.parser')
    locations = []
    for article in soup.find_all('article', class_='finder_location'):
        name = _text(article.find('h2', class_='finder_dba_text'))
        if not name:
            continue

        coords = article if article.has_attr('data-latitude') else article.find(attrs={'data-latitude': True})
        latitude = _float_attr(coords.get('data-latitude')) if coords is not None else None
        longitude = _float_attr(coords.get('data-longitude')) if coords is not None else None

        address_link = article.find('a', class_='finder_address')
        phone_link = article.find('a', href=re.compile(r'^tel:'))

        locations.append(RawLocation(
            name=name,
            locator_source=VtinfoStrategy.source,
            address_line1=_text(address_link.find('span')) if address_link is not None else None,
            city=_text(article.find('span', class_='finder_address_city')),
            state=_text(article.find('span', class_='finder_address_state')),
            country="US",
            latitude=latitude,
            longitude=longitude,
            phone=_text(phone_link.find('span')) if phone_link is not None else None,
            raw_data={"html": str(article)},
        ))
    return locations


# =============================================================================
# PACING AND RETRY
# =============================================================================

def is_rate_limited_body(body: str) -> bool:
    lowered = body.lower()
    return any(marker in lowered for marker in VTINFO_RATE_LIMIT_MARKERS)


def stable_hash(seed: str, request_index: int) -> int:
    """64-bit FNV-1a of ``seed`` mixed with the request index."""
    value = _FNV_OFFSET
    for byte in seed.encode('utf-8'):
        value ^= byte
        value = (value * _FNV_PRIME) & _U64
    return value ^ ((request_index * _FNV_PRIME) & _U64)


def pacing_delay(cust_id: str, request_index: int) -> float:
    """Seconds to wait before sweep request ``request_index`` for a customer.

    Deterministic, so parallel brands spread out instead of bursting.
    """
    spread = stable_hash(cust_id, request_index) % VTINFO.PACING_SPREAD_MS if VTINFO.PACING_SPREAD_MS else 0
    return (VTINFO.PACING_BASE_MS + spread) / 1000


def retry_backoff_delay(attempt: int) -> float:
    delay_ms = min(VTINFO.BACKOFF_BASE_MS * (2 ** min(attempt, 6)), VTINFO.BACKOFF_MAX_MS)
    return delay_ms / 1000


def retry_after_delay(headers: Mapping[str, str]) -> Optional[float]:
    raw = (headers or {}).get("Retry-After")
    if raw is None:
        return None
    try:
        seconds = int(str(raw).strip())
    except ValueError:
        return None
    return float(min(max(seconds, 0), VTINFO.RETRY_AFTER_CAP_SECONDS))


def _wait_for_request_slot() -> None:
    global _last_request_at
    with _slot_lock:
        min_gap = VTINFO.GLOBAL_MIN_GAP_MS / 1000
        now = time.monotonic()
        if _last_request_at is not None and now - _last_request_at < min_gap:
            time.sleep(min_gap - (now - _last_request_at))
        _last_request_at = time.monotonic()


def request_with_retry(
    send: Callable[[str], requests.Response],
    curl_send: Optional[Callable[[], Optional[FetchResult]]],
    user_agents: Sequence[str],
) -> Optional[str]:
    """Run a VTInfo request until it yields a non-empty, non-throttled body.

    Each attempt tries every user agent through ``send`` and then curl.
    A 429 honours Retry-After; a throttle page backs off before the next try.

    Returns:
        The response body, or None when every attempt failed
    """
    for attempt in range(VTINFO.MAX_FETCH_ATTEMPTS):
        if attempt > 0:
            time.sleep(retry_backoff_delay(attempt - 1))

        for agent in user_agents:
            _wait_for_request_slot()
            try:
                response = send(agent)
            except requests.exceptions.RequestException as e:
                logging.debug(f"VTInfo request error: {e}")
                continue
            if response.status_code == 429:
                delay = retry_after_delay(response.headers)
                if delay:
                    time.sleep(delay)
                continue
            if not is_success(response.status_code):
                continue
            body = response.text or ""
            if body.strip() and not is_rate_limited_body(body):
                return body
            if is_rate_limited_body(body):
                time.sleep(retry_backoff_delay(attempt))

        if curl_send is not None:
            _wait_for_request_slot()
            result = curl_send()
            if result is not None and is_success(result.status):
                if result.body.strip() and not is_rate_limited_body(result.body):
                    return result.body
                if is_rate_limited_body(result.body):
                    time.sleep(retry_backoff_delay(attempt))

    return None


# =============================================================================
# STRATEGY
# =============================================================================

class VtinfoStrategy(LocatorStrategy):
    source = "vtinfo"

    def __init__(self, curl: Optional[CurlBackend] = None):
        self.curl = curl or CurlBackend()

    def detect(self, html: str, context: LocatorContext) -> Optional[VtinfoEmbed]:
        return extract_embed(html)

    @staticmethod
    def _user_agents(context: LocatorContext) -> List[str]:
        if context.user_agent == BROWSER_FALLBACK_UA:
            return [BROWSER_FALLBACK_UA]
        return [context.user_agent, BROWSER_FALLBACK_UA]

    def _fetch_iframe(self, embed: VtinfoEmbed, context: LocatorContext) -> Optional[str]:
        iframe_url = embed.iframe_url
        referer = context.locator_url

        def send(agent: str) -> requests.Response:
            return context.session.get(
                iframe_url,
                headers={"User-Agent": agent, "Referer": referer},
                timeout=context.timeout,
            )

        def curl_send() -> Optional[FetchResult]:
            return self.curl.get(iframe_url, BROWSER_FALLBACK_UA, context.timeout, {"Referer": referer})

        return request_with_retry(send, curl_send if context.use_curl else None, self._user_agents(context))

    def _search(self, embed: VtinfoEmbed, form_fields: List[Tuple[str, str]],
                context: LocatorContext) -> Optional[str]:
        referer = embed.iframe_url

        def send(agent: str) -> requests.Response:
            return context.session.post(
                VTINFO_SEARCH_URL,
                data=form_fields,
                headers={"User-Agent": agent, "Referer": referer},
                timeout=context.timeout,
            )

        def curl_send() -> Optional[FetchResult]:
            return self.curl.post_form(VTINFO_SEARCH_URL, form_fields, BROWSER_FALLBACK_UA,
                                       context.timeout, {"Referer": referer})

        return request_with_retry(send, curl_send if context.use_curl else None, self._user_agents(context))

    def fetch(self, token: VtinfoEmbed, context: LocatorContext) -> List[RawLocation]:
        prefix = self.log_prefix(context)
        iframe_page = self._fetch_iframe(token, context)
        if iframe_page is None:
            logging.warning(f"{prefix} Could not load finder iframe for customer {_short(token.cust_id)}")
            return []

        form = parse_iframe_form(iframe_page, token)
        unique: Dict[Tuple[str, str, str, str], RawLocation] = {}

        for index, point in enumerate(context.sweep_points()):
            time.sleep(pacing_delay(token.cust_id, index))
            zip_code = STRATEGIC_ZIPS.get(point, "")
            page = self._search(token, build_search_form(token.cust_id, form, zip_code, point), context)
            if page is None:
                logging.warning(f"{prefix} Search at ({point.lat:.4f}, {point.lng:.4f}) failed, skipping")
                continue

            for location in parse_search_results(page):
                unique.setdefault(identity_fields(location), location)

            if len(unique) >= VTINFO_MAX_LOCATIONS:
                logging.info(f"{prefix} Reached {VTINFO_MAX_LOCATIONS} locations, stopping sweep")
                break

        return list(unique.values())


def _short(value: str) -> str:
    """Fingerprint an id for logs without exposing it."""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()[:8]
