"""Business context detection.

Keyword heuristics that guess a site's industry and business model from the
text gathered during acquisition. The result only enriches the audit prompt
and selects industry weights; it never feeds the cache key.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from siteaudit.models import CrawlResult

INDUSTRY_PATTERNS: Dict[str, re.Pattern] = {
    'ecommerce': re.compile(r'shop|store|buy|cart|product|ecommerce|marketplace|retail|purchase|checkout'),
    'saas': re.compile(r'software|saas|platform|dashboard|\bapi\b|subscription|trial|demo|\bapp\b|cloud'),
    'healthcare': re.compile(r'health|medical|doctor|clinic|hospital|patient|therapy|wellness|medicine'),
    'finance': re.compile(r'finance|bank|investment|loan|insurance|mortgage|credit|financial|wealth'),
    'education': re.compile(r'education|school|university|course|learning|student|teacher|academic|training'),
    'realestate': re.compile(r'real estate|property|homes|\brent\b|lease|realtor|listing'),
    'restaurant': re.compile(r'restaurant|\bfood\b|\bmenu\b|dining|chef|cuisine|catering|takeout'),
    'legal': re.compile(r'\blaw\b|lawyer|attorney|legal|court|litigation|counsel'),
    'consulting': re.compile(r'consulting|consultant|advisory|strategy|professional services'),
    'agency': re.compile(r'agency|marketing|advertising|creative|branding'),
    'nonprofit': re.compile(r'nonprofit|non-profit|charity|donation|volunteer|foundation'),
    'portfolio': re.compile(r'portfolio|photographer|artist|freelance'),
}

# Checked in order; the first match wins, otherwise b2c
BUSINESS_TYPE_PATTERNS: Dict[str, re.Pattern] = {
    'b2b': re.compile(r'enterprise|business|corporate|professional|solution|industry|commercial'),
    'b2c': re.compile(r'customer|consumer|personal|individual|family|home|lifestyle'),
    'marketplace': re.compile(r'marketplace|platform|connect|network|community|seller|buyer'),
}

INDUSTRY_PRIORITIES: Dict[str, List[str]] = {
    'ecommerce': ['conversion_optimization', 'product_presentation', 'checkout_flow', 'trust_signals'],
    'saas': ['user_onboarding', 'feature_clarity', 'trial_conversion', 'support_accessibility'],
    'healthcare': ['credibility', 'accessibility', 'privacy_compliance', 'appointment_booking'],
    'finance': ['security', 'compliance', 'trust_building', 'clear_communication'],
    'general': ['user_experience', 'content_quality', 'mobile_optimization', 'performance'],
}

_ECOMMERCE = re.compile(r'shop|store|cart|buy|product|price')
_BOOKING = re.compile(r'book|appointment|schedule|reserve|calendar')
_LOGIN = re.compile(r'login|log in|sign in|account|dashboard')
_BLOG = re.compile(r'blog|news|article')


@dataclass(frozen=True)
class BusinessContext:
    """Detected industry, business model and feature flags."""
    industry: str = 'general'
    business_type: str = 'b2c'
    confidence: float = 0.0
    has_ecommerce: bool = False
    has_booking: bool = False
    has_login: bool = False
    has_blog: bool = False
    is_service_based: bool = False
    is_content_focused: bool = False
    priorities: List[str] = field(default_factory=lambda: list(INDUSTRY_PRIORITIES['general']))

    def to_dict(self) -> dict:
        return asdict(self)


def _site_text(crawl_result: CrawlResult) -> str:
    homepage = crawl_result.homepage
    parts = [homepage.title, homepage.description, homepage.navigation_text]
    for page in crawl_result.pages or [homepage]:
        parts.extend(page.headings)
        parts.extend(page.paragraphs)
    return ' '.join(part for part in parts if part).lower()


def detect_business_context(crawl_result: CrawlResult) -> BusinessContext:
    """
    Guess industry and business model for a crawl result.

    The industry with the most distinct keyword hits wins; ties keep the
    earlier entry in INDUSTRY_PATTERNS. Fallback results always come back
    as the general context.

    Args:
        crawl_result: Acquisition output

    Returns:
        BusinessContext
    """
    if crawl_result.fallback_used:
        return BusinessContext()

    text = _site_text(crawl_result)

    industry = 'general'
    best = 0
    for name, pattern in INDUSTRY_PATTERNS.items():
        hits = len(set(pattern.findall(text)))
        if hits > best:
            industry, best = name, hits

    business_type = next(
        (name for name, pattern in BUSINESS_TYPE_PATTERNS.items() if pattern.search(text)),
        'b2c',
    )

    has_blog = crawl_result.site_structure.has_blog or bool(_BLOG.search(text))
    has_login = crawl_result.homepage.forms.count > 0 or bool(_LOGIN.search(text))

    return BusinessContext(
        industry=industry,
        business_type=business_type,
        confidence=round(min(best / 3, 1.0), 2),
        has_ecommerce=bool(_ECOMMERCE.search(text)),
        has_booking=bool(_BOOKING.search(text)),
        has_login=has_login,
        has_blog=has_blog,
        is_service_based=business_type == 'b2b' or industry == 'consulting',
        is_content_focused=has_blog or industry == 'education',
        priorities=list(INDUSTRY_PRIORITIES.get(industry, INDUSTRY_PRIORITIES['general'])),
    )
