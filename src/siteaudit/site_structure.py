"""
Site structure analysis.

Discovers same-site links on a page, reads its navigation and layout, and
classifies URLs by probable purpose so the crawl coordinator can visit the
most informative pages first.
"""

import logging
import re
from typing import Iterable, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from siteaudit.constants import MAX_DISCOVERED_LINKS, MAX_MENU_ITEM_LENGTH, PRIORITY_PATHS, SECTION_PREVIEW_CHARS
from siteaudit.models import PageType, SiteStructure
from siteaudit.url_utils import is_page_url, normalize_url, resolve_link, same_site

logger = logging.getLogger(__name__)


# Classification rules in priority order; first match wins.
# Each rule is (page type, path fragments, text phrases).
PAGE_TYPE_RULES = [
    (PageType.ABOUT, ("/about",), ("about us", "our story", "who we are")),
    (PageType.CONTACT, ("/contact",), ("contact us", "get in touch")),
    (PageType.SERVICES, ("/services", "/service"), ("our services",)),
    (PageType.PRODUCTS, ("/products", "/product", "/shop"), ("our products", "products")),
    (PageType.PRICING, ("/pricing", "/plans"), ("pricing",)),
    (PageType.BLOG, ("/blog", "/news", "/articles"), ()),
]

NAVIGATION_SELECTOR = "nav, .nav, .navbar, .navigation"
MENU_LINK_SELECTOR = "nav a, .nav a, .navbar a, .menu a"
SEARCH_SELECTOR = 'input[type="search"], [role="search"], .search'
LANGUAGE_SELECTOR = '.language, .lang, link[hreflang], a[hreflang], select[name*="lang"]'
SECTION_SELECTOR = "section, .section, article, .article"

CONTACT_PATTERN = re.compile(r"contact|phone|email|address")
ABOUT_PATTERN = re.compile(r"about|our story|who we are")
BLOG_PATTERN = re.compile(r"blog|news|articles")
PRODUCTS_PATTERN = re.compile(r"product|service|shop|buy")


def clean_text(element) -> str:
    """Visible text of an element with whitespace collapsed."""
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def classify_page_type(url: str, text: str = "") -> PageType:
    """Classify a page by its URL path and nearby text.

    Args:
        url: Absolute page URL
        text: Anchor text, title or heading text associated with the page

    Returns:
        The first PageType whose path fragment or phrase matches
    """
    path = urlparse(url).path.lower() or "/"
    text_lower = text.lower()

    for page_type, path_fragments, phrases in PAGE_TYPE_RULES:
        if any(fragment in path for fragment in path_fragments):
            return page_type
        if any(phrase in text_lower for phrase in phrases):
            return page_type

    if path == "/" or "/home" in path:
        return PageType.HOMEPAGE

    return PageType.OTHER


def _priority_rank(url: str) -> int:
    path = urlparse(url).path.lower()
    for rank, priority_path in enumerate(PRIORITY_PATHS):
        if priority_path in path:
            return rank
    return len(PRIORITY_PATHS)


def prioritize_links(links: Iterable[str]) -> list[str]:
    """Order links so priority pages (about, contact, ...) come first.

    Duplicates are dropped; relative order is otherwise preserved.
    """
    unique = list(dict.fromkeys(links))
    return sorted(unique, key=_priority_rank)


class SiteStructureAnalyzer:
    """Derives SiteStructure from a single page."""

    def __init__(self, max_links: int = MAX_DISCOVERED_LINKS):
        self.max_links = max_links

    def analyze(self, base_url: str, html: Optional[str]) -> SiteStructure:
        """Analyze the link and layout structure of one page.

        Args:
            base_url: URL the HTML was fetched from
            html: Raw HTML (may be malformed or empty)

        Returns:
            SiteStructure; empty when the HTML cannot be parsed
        """
        if not html:
            return SiteStructure()

        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            logger.warning(f"Could not parse HTML for structure analysis of {base_url}: {e}")
            return SiteStructure()

        links = self.discover_links(soup, base_url)
        page_text = soup.get_text(" ").lower()

        main_nav = soup.select_one(NAVIGATION_SELECTOR)
        breadcrumbs = soup.select(".breadcrumb, .breadcrumbs")
        footer = soup.find("footer")

        return SiteStructure(
            discovered_internal_links=links[:self.max_links],
            navigation_menu_items=self._menu_items(soup),
            main_navigation_text=clean_text(main_nav),
            breadcrumbs_text=" ".join(clean_text(b) for b in breadcrumbs).strip(),
            footer_text=clean_text(footer),
            has_search=bool(soup.select(SEARCH_SELECTOR)),
            has_language_selector=self._has_language_selector(soup),
            heading_level_sequence=[h.name for h in soup.find_all(re.compile(r"^h[1-6]$"))],
            sections=[
                text[:SECTION_PREVIEW_CHARS]
                for text in (clean_text(s) for s in soup.select(SECTION_SELECTOR))
                if text
            ],
            has_contact_info=bool(CONTACT_PATTERN.search(page_text)),
            has_about_page=bool(ABOUT_PATTERN.search(page_text)),
            has_blog=bool(BLOG_PATTERN.search(page_text)),
            has_products=bool(PRODUCTS_PATTERN.search(page_text)),
            page_count=len(links),
        )

    def discover_links(self, soup: BeautifulSoup, base_url: str) -> list[str]:
        """All distinct same-site page links on a page, in document order.

        The page itself, fragments, non-page schemes and static assets are
        excluded.
        """
        self_url = normalize_url(base_url)
        links: dict[str, None] = {}

        for anchor in soup.find_all("a", href=True):
            absolute = resolve_link(anchor.get("href"), base_url)
            if not absolute:
                continue
            if not same_site(absolute, base_url) or not is_page_url(absolute):
                continue
            normalized = normalize_url(absolute)
            if normalized != self_url:
                links[normalized] = None

        return list(links)

    def _menu_items(self, soup: BeautifulSoup) -> list[str]:
        items: dict[str, None] = {}
        for anchor in soup.select(MENU_LINK_SELECTOR):
            text = clean_text(anchor)
            if 0 < len(text) < MAX_MENU_ITEM_LENGTH:
                items[text] = None
        return list(items)

    def _has_language_selector(self, soup: BeautifulSoup) -> bool:
        if soup.select(LANGUAGE_SELECTOR):
            return True
        # lang on <html> is a document language, not a selector
        return any(el.name != "html" for el in soup.find_all(attrs={"lang": True}))
