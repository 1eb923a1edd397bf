"""HTML content parser.

Extracts a PageContent from raw HTML using fixed selectors, independent of
which fetch tier produced the HTML. Parsing is deterministic for identical
input and never raises on malformed markup.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from siteaudit.constants import MAX_LINK_TEXTS, MAX_PARAGRAPHS
from siteaudit.models import (
    AccessibilitySummary,
    FormSummary,
    InteractivitySummary,
    MediaSummary,
    PageContent,
    PageType,
    SocialSummary,
)
from siteaudit.site_structure import classify_page_type, clean_text
from siteaudit.url_utils import resolve_link, same_site

logger = logging.getLogger(__name__)

NAVIGATION_SELECTOR = "nav, .nav, .menu, .navbar"
BRAND_SELECTOR = ".logo, .brand, #logo, #brand"
LOGO_SELECTOR = '.logo, .brand, #logo, #brand, [alt*="logo" i]'
SKIP_LINK_SELECTOR = '[href="#content"], [href="#main"]'
VIDEO_SELECTOR = 'video, iframe[src*="youtube"], iframe[src*="vimeo"]'
LAZY_SELECTOR = '[loading="lazy"], [data-src]'
BUTTON_SELECTOR = 'button, input[type="button"], input[type="submit"]'
SOCIAL_LINK_SELECTOR = (
    '[href*="facebook"], [href*="twitter"], [href*="x.com/"], '
    '[href*="linkedin"], [href*="instagram"]'
)
SHARE_SELECTOR = ".share, .social-share, [data-share]"

_DESCRIPTION_NAME = re.compile(r"^description$", re.IGNORECASE)


class ContentParser:
    """Extracts structured page facts from HTML."""

    def parse(self, html: Optional[str], base_url: str, is_homepage: bool = False) -> PageContent:
        """Parse one page.

        Args:
            html: Raw HTML (may be empty or malformed)
            base_url: URL the HTML was fetched from
            is_homepage: Whether this is the site's entry page

        Returns:
            PageContent; fields that cannot be found are left empty
        """
        html = html or ""
        try:
            soup = BeautifulSoup(html, "html.parser")
            return self._extract(soup, html, base_url, is_homepage)
        except Exception as e:
            # html.parser recovers from almost anything; keep the contract if it does not
            logger.warning(f"Failed to parse {base_url}, returning empty content: {e}")
            return PageContent(
                url=base_url,
                is_homepage=is_homepage,
                page_type=PageType.HOMEPAGE if is_homepage else classify_page_type(base_url),
                html_length=len(html),
            )

    def _extract(self, soup: BeautifulSoup, html: str, base_url: str, is_homepage: bool) -> PageContent:
        title_tag = soup.find("title")
        title = clean_text(title_tag)
        h1_tags = soup.find_all("h1")

        headings = [
            text for text in (clean_text(h) for h in soup.find_all(["h1", "h2", "h3"]))
            if text
        ]
        paragraphs = [
            text for text in (clean_text(p) for p in soup.find_all("p"))
            if text
        ][:MAX_PARAGRAPHS]
        image_alt_texts = [
            img["alt"].strip() for img in soup.find_all("img", alt=True)
            if img["alt"].strip()
        ]
        link_texts = [
            text for text in (clean_text(a) for a in soup.find_all("a"))
            if text
        ][:MAX_LINK_TEXTS]

        internal_links, external_links = self._count_links(soup, base_url)
        body_text = soup.get_text(" ")

        if is_homepage:
            page_type = PageType.HOMEPAGE
        else:
            h1_text = " ".join(clean_text(h) for h in h1_tags)
            page_type = classify_page_type(base_url, f"{title} {h1_text}")

        return PageContent(
            url=base_url,
            title=title,
            description=self._description(soup),
            headings=headings,
            paragraphs=paragraphs,
            image_alt_texts=image_alt_texts,
            link_texts=link_texts,
            navigation_text=clean_text(soup.select_one(NAVIGATION_SELECTOR)),
            footer_text=clean_text(soup.find("footer")),
            brand_marker_text=self._brand_marker(soup),
            forms=self._forms(soup),
            accessibility=self._accessibility(soup, len(h1_tags)),
            media=self._media(soup),
            interactivity=self._interactivity(soup),
            social=self._social(soup),
            is_homepage=is_homepage,
            page_type=page_type,
            has_logo=bool(soup.select(LOGO_SELECTOR)),
            h1_count=len(h1_tags),
            word_count=len(body_text.split()),
            content_length=len(" ".join(body_text.split())),
            html_length=len(html),
            internal_link_count=internal_links,
            external_link_count=external_links,
        )

    def _description(self, soup: BeautifulSoup) -> str:
        meta = soup.find("meta", attrs={"name": _DESCRIPTION_NAME})
        if meta is None or not meta.get("content"):
            meta = soup.find("meta", attrs={"property": "og:description"})
        if meta is None:
            return ""
        return " ".join((meta.get("content") or "").split())

    def _brand_marker(self, soup: BeautifulSoup) -> str:
        brand = soup.select_one(BRAND_SELECTOR)
        text = clean_text(brand)
        if text:
            return text
        if brand is not None:
            img = brand.find("img", alt=True)
            if img is not None:
                return img["alt"].strip()
        logo_img = soup.select_one('img[alt*="logo" i]')
        if logo_img is not None:
            return logo_img["alt"].strip()
        return ""

    def _count_links(self, soup: BeautifulSoup, base_url: str) -> tuple[int, int]:
        internal = external = 0
        for anchor in soup.find_all("a", href=True):
            absolute = resolve_link(anchor["href"], base_url)
            if absolute is None:
                continue
            if same_site(absolute, base_url):
                internal += 1
            else:
                external += 1
        return internal, external

    def _forms(self, soup: BeautifulSoup) -> FormSummary:
        forms = soup.find_all("form")
        form_text = " ".join(f.get_text(" ") for f in forms).lower()
        return FormSummary(
            count=len(forms),
            has_labels=soup.find("label") is not None,
            has_validation=bool(soup.select("[required], .required")),
            has_contact_form="contact" in form_text,
        )

    def _accessibility(self, soup: BeautifulSoup, h1_count: int) -> AccessibilitySummary:
        images = soup.find_all("img")
        with_alt = [img for img in images if img.has_attr("alt")]
        return AccessibilitySummary(
            has_alt_text=bool(with_alt),
            missing_alt_text=len(images) - len(with_alt),
            has_skip_links=bool(soup.select(SKIP_LINK_SELECTOR)),
            has_aria_labels=bool(soup.select("[aria-label], [aria-labelledby]")),
            has_single_h1=h1_count == 1,
        )

    def _media(self, soup: BeautifulSoup) -> MediaSummary:
        return MediaSummary(
            images=len(soup.find_all("img")),
            videos=len(soup.select(VIDEO_SELECTOR)),
            has_lazy_loading=bool(soup.select(LAZY_SELECTOR)),
        )

    def _interactivity(self, soup: BeautifulSoup) -> InteractivitySummary:
        return InteractivitySummary(
            buttons=len(soup.select(BUTTON_SELECTOR)),
            dropdowns=len(soup.select("select, .dropdown")),
            modals=len(soup.select("[data-modal], .modal")),
            carousels=len(soup.select("[data-carousel], .carousel, .slider")),
        )

    def _social(self, soup: BeautifulSoup) -> SocialSummary:
        return SocialSummary(
            social_links=len(soup.select(SOCIAL_LINK_SELECTOR)),
            has_social_sharing=bool(soup.select(SHARE_SELECTOR)),
        )
