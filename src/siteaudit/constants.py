# src/siteaudit/constants.py
"""Centralized constants for the site audit pipeline.

This module contains magic numbers and fixed values that are used across
multiple modules. For user-configurable values, see config.py and
ConsistencyThresholds.
"""

# =============================================================================
# Fetch Tier Constants
# =============================================================================

# Direct HTTP fetch (tier 1)
HTTP_TIER_ATTEMPTS = 3
HTTP_TIER_TIMEOUT_SECONDS = 8.0
HTTP_MAX_REDIRECTS = 3

# Headless render (tier 2)
HEADLESS_TIER_TIMEOUT_SECONDS = 30.0

# Third-party extraction API (tier 3)
THIRD_PARTY_TIMEOUT_SECONDS = 60.0
THIRD_PARTY_MIN_CONTENT_BYTES = 100
FIRECRAWL_WAIT_FOR_MS = 2000

# Words of page text that mark a blocked 2xx response as a real page rather
# than a challenge interstitial
BLOCKED_PAGE_MIN_WORDS = 80

# Realistic browser user agents, rotated by attempt index
BROWSER_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

# Headers sent with every direct fetch so the request looks like a browser
BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}


# =============================================================================
# Crawl Constants
# =============================================================================

# Maximum number of pages (homepage included) analyzed per acquisition
DEFAULT_MAX_PAGES = 6

# Worker pool size for the multi-page crawl
MAX_CRAWL_WORKERS = 3

# Per-page timeout for secondary pages; no retries
CRAWL_PAGE_TIMEOUT_SECONDS = 5.0

# Delay applied per worker id before it starts pulling from the queue
CRAWL_WORKER_STAGGER_SECONDS = 0.2

# Maximum same-site links kept from a single page
MAX_DISCOVERED_LINKS = 10

# Paths crawled before generic pages, in this order
PRIORITY_PATHS = [
    "/about",
    "/contact",
    "/services",
    "/products",
    "/pricing",
    "/blog",
    "/home",
]

# File extensions never worth fetching as pages
SKIP_EXTENSIONS = {
    '.pdf', '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp',
    '.zip', '.tar', '.gz', '.mp4', '.mp3', '.avi', '.mov',
    '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.css', '.js', '.xml', '.json', '.ico', '.woff', '.woff2', '.ttf'
}


# =============================================================================
# Parser Constants
# =============================================================================

MAX_PARAGRAPHS = 10
MAX_LINK_TEXTS = 20
MAX_MENU_ITEM_LENGTH = 50
SECTION_PREVIEW_CHARS = 100


# =============================================================================
# Metrics Collector Constants
# =============================================================================

PSI_TIMEOUT_SECONDS = 45.0
SEO_PROBE_TIMEOUT_SECONDS = 5.0
TLS_PORT = 443


# =============================================================================
# Fingerprint & Cache Constants
# =============================================================================

# Characters of aggregated page content folded into the content hash
CONTENT_HASH_CHARS = 5000

# Score cache entries expire after this many days
CACHE_TTL_DAYS = 7

# Marker used for every text field of a fallback result
UNAVAILABLE_MARKER = "Data unavailable"


# =============================================================================
# Scoring Constants
# =============================================================================

SCORING_VERSION = "3.0.0"

# Allowed drift (percent) between audits of unchanged content
MAX_SCORE_VARIATION_PERCENT = 5.0

# Standard deviations from the historical mean that count as an outlier
SCORE_OUTLIER_THRESHOLD = 2.0
