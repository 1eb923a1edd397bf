"""Bot-protection page detection.

Pure substring matching over lower-cased page HTML and title. A match only
sends the URL to the next fetch tier; the orchestrator still analyzes a
flagged response that carries a full page when no tier gets past it.
"""

from dataclasses import dataclass
from typing import Optional

# Vendor-specific wording found on block and challenge pages
PROVIDER_SIGNATURES = {
    "cloudflare": [
        "attention required! | cloudflare",
        "checking your browser before accessing",
        "enable javascript and cookies to continue",
        "performance & security by cloudflare",
        "please turn javascript on and reload the page",
        "cf-browser-verification",
        "cf-challenge-running",
        "cf_chl_opt",
    ],
    "akamai": [
        "you don't have permission to access",
        "your request has been blocked",
        "akamai ghost",
        "ak-challenge",
        "sec-cpt-if",
    ],
    "sucuri": [
        "sucuri website firewall",
        "access denied - sucuri",
        "blocked by sucuri",
    ],
    "imperva": [
        "incapsula incident",
        "powered by incapsula",
        "_incapsula_resource",
    ],
    "aws_waf": [
        "request blocked by aws waf",
        "this request was blocked by the security rules",
    ],
    "datadome": [
        "blocked by datadome",
        "datadome captcha",
        "geo.captcha-delivery.com",
    ],
    "perimeterx": [
        "perimeterx",
        "px-captcha",
        "press & hold",
    ],
}

# Challenge and interstitial wording shared across vendors
GENERIC_SIGNATURES = [
    "just a moment...",
    "checking your browser",
    "checking if the site connection is secure",
    "please wait while we verify your browser",
    "please enable javascript and cookies",
    "ddos protection by",
    "please complete the security check to access",
    "please verify you are human",
    "verify you are a human",
    "prove you are not a robot",
    "complete the captcha",
    "suspicious activity detected",
    "you have been blocked",
    "your ip has been blocked",
    "automated access",
    "robot or bot",
]

# Markers that also appear on ordinary pages (the Turnstile widget script is
# loaded by many contact forms); they only count next to challenge wording
CORROBORATED_SIGNATURES = {
    "challenges.cloudflare.com": (
        "cloudflare",
        ["cf_chl_opt", "just a moment", "checking your browser", "cf-challenge"],
    ),
}

# Titles that on their own identify a block or challenge page
TITLE_SIGNATURES = [
    "just a moment",
    "attention required",
    "access denied",
    "403 forbidden",
    "one more step",
    "browser verification",
    "security check",
    "are you a robot",
]


@dataclass(frozen=True)
class BotProtectionResult:
    """Outcome of bot-protection classification."""
    blocked: bool
    provider: Optional[str] = None  # Vendor name, "challenge_page" when unknown
    signature: Optional[str] = None  # Matched substring


def classify(raw_html: Optional[str], page_title: Optional[str] = None) -> BotProtectionResult:
    """Classify fetched content as a bot-protection page or real content.

    Args:
        raw_html: Raw HTML body
        page_title: Page title, if already extracted

    Returns:
        BotProtectionResult with the detected provider when blocked
    """
    html_lower = raw_html.lower() if raw_html else ""
    title_lower = page_title.lower().strip() if page_title else ""

    for pattern, (provider, companions) in CORROBORATED_SIGNATURES.items():
        if pattern in html_lower and any(c in html_lower or c in title_lower for c in companions):
            return BotProtectionResult(blocked=True, provider=provider, signature=pattern)

    for provider, patterns in PROVIDER_SIGNATURES.items():
        for pattern in patterns:
            if pattern in html_lower or pattern in title_lower:
                return BotProtectionResult(blocked=True, provider=provider, signature=pattern)

    for pattern in TITLE_SIGNATURES:
        if pattern in title_lower or f"<title>{pattern}" in html_lower:
            return BotProtectionResult(
                blocked=True, provider=_guess_provider(html_lower), signature=pattern
            )

    for pattern in GENERIC_SIGNATURES:
        if pattern in html_lower or pattern in title_lower:
            return BotProtectionResult(
                blocked=True, provider=_guess_provider(html_lower), signature=pattern
            )

    return BotProtectionResult(blocked=False)


def is_blocked(raw_html: Optional[str], page_title: Optional[str] = None) -> bool:
    """Shorthand for classify(...).blocked."""
    return classify(raw_html, page_title).blocked


def _guess_provider(html_lower: str) -> str:
    """Name the vendor from incidental markers such as CDN hostnames."""
    if "cloudflare" in html_lower or "cf-ray" in html_lower:
        return "cloudflare"
    if "akamai" in html_lower:
        return "akamai"
    if "incapsula" in html_lower or "imperva" in html_lower:
        return "imperva"
    return "challenge_page"
