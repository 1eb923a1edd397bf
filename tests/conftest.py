"""Shared fixtures for site audit tests."""

import json

import pytest

from siteaudit.models import (
    AccessibilitySummary,
    AnalysisDepth,
    CrawlResult,
    FetchTier,
    PageContent,
    PageType,
    SEOMetrics,
    SiteStructure,
)
from siteaudit.scoring import SECTION_KEYS

HOMEPAGE_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <title>Acme Widgets | Quality Widgets Since 1990</title>
    <meta name="description" content="Acme makes durable widgets for industrial customers.">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <link rel="canonical" href="https://acme.example.com/">
</head>
<body>
    <header>
        <div class="logo"><img src="/logo.png" alt="Acme logo"></div>
        <nav>
            <a href="/">Home</a>
            <a href="/about">About</a>
            <a href="/services">Services</a>
            <a href="/contact">Contact</a>
            <a href="/blog">Blog</a>
        </nav>
    </header>
    <main>
        <h1>Widgets that last</h1>
        <h2>Why Acme</h2>
        <p>We have built widgets for thirty years.</p>
        <p>Our products ship worldwide.</p>
        <section><h3>Industrial range</h3><p>Heavy duty widgets.</p></section>
        <img src="/hero.jpg" alt="Factory floor">
        <img src="/decor.jpg">
        <a href="https://twitter.com/acme">Twitter</a>
        <a href="mailto:sales@acme.example.com">Email us</a>
        <a href="tel:+15551234">Call</a>
        <a href="#top">Back to top</a>
        <a href="/brochure.pdf">Brochure</a>
        <a href="https://partner.example.org/deal">Partner</a>
        <form><label for="q">Search</label><input type="search" id="q" required></form>
    </main>
    <footer>Acme Widgets Inc. Contact: hello@acme.example.com</footer>
</body>
</html>
"""

ABOUT_HTML = """
<html><head><title>About | Acme Widgets</title></head>
<body>
    <div class="logo">Acme</div>
    <nav><a href="/">Home</a><a href="/about">About</a><a href="/contact">Contact</a></nav>
    <h1>About us</h1>
    <p>Founded in 1990 by engineers.</p>
</body></html>
"""

TURNSTILE_CONTACT_HTML = """
<html lang="en"><head><title>Contact Us | Acme Widgets</title>
<meta name="description" content="Talk to the Acme Widgets sales and support teams.">
<script src="https://challenges.cloudflare.com/turnstile/v0/api.js" async defer></script>
</head>
<body>
    <nav><a href="/">Home</a><a href="/about">About</a><a href="/contact">Contact</a></nav>
    <h1>Contact Acme Widgets</h1>
    <p>Our sales team answers questions about industrial widgets, custom tooling,
    bulk pricing and delivery schedules for customers in every region we serve.</p>
    <p>Support engineers are available on weekdays from eight in the morning until
    six in the evening and can help with installation, maintenance and warranty claims.</p>
    <p>For press enquiries, partnership proposals or supplier registration please use
    the form below and include as much detail as you can so that the right person
    can reply to you within two working days.</p>
    <p>Visitors are welcome at our factory showroom by appointment, where the full
    range of widgets is on display alongside the latest prototypes from our design team.</p>
    <form action="/contact" method="post">
        <label for="name">Name</label><input id="name" name="name" required>
        <label for="email">Email</label><input id="email" name="email" type="email" required>
        <label for="message">Message</label><textarea id="message" name="message"></textarea>
        <div class="cf-turnstile" data-sitekey="0x4AAAAAAA"></div>
        <button type="submit">Send</button>
    </form>
    <footer>Acme Widgets Inc. 1 Factory Road. hello@acme.example.com</footer>
</body></html>
"""

CLOUDFLARE_HTML = """
<html><head><title>Just a moment...</title></head>
<body>
    <div id="cf-browser-verification">Checking your browser before accessing acme.example.com.</div>
    <script src="https://challenges.cloudflare.com/turnstile/v0/api.js"></script>
</body></html>
"""


@pytest.fixture
def homepage_html():
    return HOMEPAGE_HTML


@pytest.fixture
def about_html():
    return ABOUT_HTML


@pytest.fixture
def cloudflare_html():
    return CLOUDFLARE_HTML


@pytest.fixture
def turnstile_contact_html():
    return TURNSTILE_CONTACT_HTML


def make_page(
    url: str = "https://acme.example.com/",
    title: str = "Home | Acme",
    navigation_text: str = "Home About Contact",
    has_logo: bool = True,
    h1_count: int = 1,
    **kwargs,
) -> PageContent:
    """Build a PageContent with sensible defaults for analyzer tests."""
    return PageContent(
        url=url,
        title=title,
        navigation_text=navigation_text,
        has_logo=has_logo,
        h1_count=h1_count,
        accessibility=AccessibilitySummary(has_single_h1=h1_count == 1),
        **kwargs,
    )


def make_crawl_result(
    title: str = "Acme Widgets | Home",
    paragraphs=None,
    navigation=None,
    pages=None,
    has_ssl: bool = True,
    load_time: float = 1.23,
    **kwargs,
) -> CrawlResult:
    """Build a successful single-tier CrawlResult for fingerprint and scoring tests."""
    homepage = PageContent(
        url="https://acme.example.com/",
        title=title,
        headings=["Widgets that last"],
        paragraphs=paragraphs if paragraphs is not None else ["We build widgets."],
        is_homepage=True,
        page_type=PageType.HOMEPAGE,
    )
    return CrawlResult(
        url="https://acme.example.com/",
        homepage=homepage,
        pages=pages if pages is not None else [homepage],
        seo=SEOMetrics(has_ssl=has_ssl),
        site_structure=SiteStructure(
            navigation_menu_items=navigation if navigation is not None else ["Home", "About", "Contact"],
        ),
        analysis_depth=kwargs.pop("analysis_depth", AnalysisDepth.SINGLE_PAGE),
        acquired_with=kwargs.pop("acquired_with", FetchTier.HTTP),
        company_name="Acme Widgets",
        load_time=load_time,
        **kwargs,
    )


def llm_response(scores=None, with_keys=True, summary="Solid site with weak CTAs.") -> str:
    """JSON audit text shaped like a well-behaved model response."""
    scores = scores or [80, 75, 70, 65, 60, 85, 90, 55, 50, 95]
    sections = []
    for key, score in zip(SECTION_KEYS, scores):
        section = {"score": score, "issues": [f"{key} issue"], "recommendations": [f"Fix {key}"]}
        if with_keys:
            section["key"] = key
        sections.append(section)
    return json.dumps({"summary": summary, "sections": sections})
