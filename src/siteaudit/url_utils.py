"""URL helpers shared by the fetchers, the analyzers and the crawl coordinator."""

import re
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import tldextract

from siteaudit.constants import SKIP_EXTENSIONS

# Offline extractor: uses the public suffix snapshot bundled with tldextract
_extract = tldextract.TLDExtract(suffix_list_urls=())

_NON_PAGE_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "sms:")


def normalize_url(url: str) -> str:
    """Normalize a URL for consistent processing.

    Adds an https scheme when missing, lower-cases the host, strips trailing
    slashes from the path, sorts query parameters and drops the fragment.

    Args:
        url: Raw URL as typed by a user or found in a page

    Returns:
        Normalized URL, or the stripped input if it cannot be parsed
    """
    url = url.strip()
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = f"https://{url}"

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    path = parsed.path.rstrip("/") or "/"
    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        path,
        parsed.params,
        query,
        "",
    ))


def is_valid_url(url: str) -> bool:
    """Check that a URL has an http(s) scheme and a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def extract_domain(url: str) -> str:
    """Host name without a leading www."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return url
    if not host:
        return url
    return re.sub(r"^www\.", "", host)


def registrable_domain(url: str) -> str:
    """Registrable domain (eTLD+1) of a URL, e.g. 'shop.example.co.uk' -> 'example.co.uk'.

    Hosts without a public suffix (localhost, IP addresses) are returned as-is.
    """
    host = extract_domain(url)
    parts = _extract(host)
    if parts.domain and parts.suffix:
        return f"{parts.domain}.{parts.suffix}"
    return host


def same_site(url: str, base_url: str) -> bool:
    """True when both URLs share a registrable domain."""
    return registrable_domain(url) == registrable_domain(base_url)


def origin(url: str) -> str:
    """Scheme and authority of a URL, e.g. 'https://example.com'."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def resolve_link(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve an anchor href to an absolute page URL.

    Returns:
        Absolute URL without fragment, or None for fragments, non-page
        schemes and hrefs that fail to parse
    """
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith("#"):
        return None
    if href.lower().startswith(_NON_PAGE_SCHEMES):
        return None

    try:
        absolute = urljoin(base_url, href)
        parsed = urlparse(absolute)
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https"):
        return None
    return urlunparse(parsed._replace(fragment=""))


def is_page_url(url: str) -> bool:
    """False for static assets (images, documents, scripts, fonts)."""
    path = urlparse(url).path.lower()
    return not any(path.endswith(ext) for ext in SKIP_EXTENSIONS)


def extract_company_name(url: str, title: Optional[str] = None) -> str:
    """Best-effort company name from a page title, falling back to the domain.

    Args:
        url: Site URL
        title: Homepage title, if known

    Returns:
        Title-cased company name, or "Website" when nothing usable is found
    """
    if title:
        clean = title.lower()
        clean = re.sub(r"\s*-\s*(home|homepage|welcome)$", "", clean)
        clean = re.sub(r"\s*\|.*$", "", clean)
        clean = re.sub(r"\s*-\s.*$", "", clean).strip()
        if 0 < len(clean) < 50:
            return " ".join(word[:1].upper() + word[1:] for word in clean.split(" "))

    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    if not host:
        return "Website"
    host = re.sub(r"^www\.", "", host)
    name = _extract(host).domain or host.split(".")[0]
    return name[:1].upper() + name[1:] if name else "Website"
