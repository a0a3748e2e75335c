"""Configuration constants for store locator discovery and fetching

Brand sites expose their store locator through a handful of third-party
widgets or through markup on a well-known path. These tables drive URL
auto-discovery, usable-body detection and the vendor API endpoints used by
the extraction strategies.

All tables are immutable tuples; strategy ordering lives in
src/locators/__init__.py.
"""

# Path suffixes probed (in order) when a brand has no configured locator URL.
# Shopify-style /pages/... paths first since most brands run on Shopify.
LOCATOR_PATHS = (
    "/pages/where-to-buy",
    "/pages/store-locator",
    "/pages/storelocator",
    "/pages/find-us",
    "/pages/locations",
    "/pages/retailers",
    "/pages/find",
    "/pages/beverage-finder",
    "/locator",
    "/storelocator",
    "/find-products",
    "/find",
    "/beverage-finder",
    "/stores",
)

# Browser profile used by the curl backend and as the second user agent tried
# by the requests backend. Locator widgets often hide their embed from
# non-browser agents.
BROWSER_FALLBACK_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# A body containing any of these is usable even if it also trips the
# bot-challenge heuristics (some vendors load behind a soft interstitial).
VENDOR_MARKERS = (
    "locally.com",
    "locallywidgetcompanyid",
    "storemapper",
    "stockist",
    "storepoint",
    "destini-locator",
    "lets.shop",
    "finder.vtinfo.com",
    "application/ld+json",
)

# Substrings (lowercase) unique to edge-security "are you human" pages.
# Bot-management script paths (/cdn-cgi/challenge-platform/...) also ship on
# ordinary pages and must not be listed here.
BOT_CHALLENGE_MARKERS = (
    "cf-browser-verification",
    "cf-challenge",
    "just a moment...",
    "attention required! | cloudflare",
    "checking your browser before accessing",
    "enable javascript and cookies to continue",
)

# Vendor endpoints
LOCALLY_API_URL = "https://api.locally.com/stores/json?company_id={company_id}&take=10000"
STOREMAPPER_API_URL = "https://storemapper.co/api/stores?token={token}"
STOCKIST_CONFIG_URL = "https://stockist.co/api/v1/{tag}/widget.js?callback=_stockistConfigCallback_{tag}"
STOCKIST_SEARCH_URL = (
    "https://stockist.co/api/v1/{tag}/locations/search"
    "?latitude={latitude}&longitude={longitude}&distance={distance}"
    "&units=mi&page=1&per_page=10000"
)
STOREPOINT_API_URL = "https://api.storepoint.co/v2/{widget_id}/locations"
DESTINI_BOOTSTRAP_URL = "https://lets.shop/locators/{alpha_code}/{locator_id}/{locator_id}.json"
DESTINI_DEFAULT_KNOX_URL = "https://hlc7l6v5w6.execute-api.us-west-2.amazonaws.com/prod/"
VTINFO_IFRAME_URL = "https://finder.vtinfo.com/finder/web/v2/iframe"
VTINFO_SEARCH_URL = "https://finder.vtinfo.com/finder/web/v2/iframe/search"

# Geographic centre of the contiguous US, used when a vendor config omits one
US_CENTER_LATITUDE = 39.828175
US_CENTER_LONGITUDE = -98.5795

# Stockist search radius (miles) when the widget config has none
STOCKIST_DEFAULT_DISTANCE = 50000

# Destini search defaults (overridden by the bootstrap JSON settings)
DESTINI_DEFAULT_DISTANCE_MILES = 100
DESTINI_DEFAULT_MAX_STORES = 100
DESTINI_DEFAULT_TEXT_STYLE = "RESPECTCASINGPASSED"
DESTINI_MAX_SCRIPT_PROBES = 24

# VTInfo search form defaults
VTINFO_DEFAULT_PAGESIZE = "50"
VTINFO_DEFAULT_ON_PREM = "Restaurants and Bars"
VTINFO_DEFAULT_OFF_PREM = "Retail Stores"
VTINFO_SEARCH_RADIUS_MILES = "100"
VTINFO_MAX_LOCATIONS = 100
VTINFO_RATE_LIMIT_MARKERS = (
    "429 too many requests",
    "you have sent too many requests",
    "rate limit",
)
