"""Data models for website acquisition and analysis."""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from siteaudit.constants import UNAVAILABLE_MARKER


def _serialize(value: Any) -> Any:
    """Recursively convert models into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


# =============================================================================
# Enumerations
# =============================================================================

class FetchTier(Enum):
    """Escalation level of the scraping orchestrator."""
    HTTP = "http"
    HEADLESS = "headless"
    THIRD_PARTY = "third_party"


class FetchStatus(Enum):
    """Outcome classification of one fetch attempt."""
    OK = "ok"
    BLOCKED = "blocked"
    ERROR = "error"


class PageType(Enum):
    """Probable purpose of a page, in classification priority order."""
    ABOUT = "about"
    CONTACT = "contact"
    SERVICES = "services"
    PRODUCTS = "products"
    PRICING = "pricing"
    BLOG = "blog"
    HOMEPAGE = "homepage"
    OTHER = "other"


class AnalysisDepth(Enum):
    """How much real access the analysis is based on."""
    LIMITED = "limited"
    SINGLE_PAGE = "single_page"
    MULTI_PAGE = "multi_page"
    HEADLESS = "headless"
    THIRD_PARTY = "third_party"


# =============================================================================
# Fetch Records
# =============================================================================

@dataclass(frozen=True)
class FetchAttempt:
    """Immutable record of one fetch try."""

    tier: FetchTier
    url: str
    status: FetchStatus
    latency: float = 0.0  # seconds
    raw_body: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    attempt: int = 0
    user_agent: Optional[str] = None
    final_url: Optional[str] = None
    redirect_count: int = 0
    blocked_by: Optional[str] = None  # Protection provider, when detected
    metadata: dict = field(default_factory=dict)  # Provider-extracted title/description

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK

    def to_dict(self, include_body: bool = False) -> dict:
        data = _serialize(self)
        if not include_body:
            data.pop("raw_body", None)
        return data


# =============================================================================
# Page Content
# =============================================================================

@dataclass(frozen=True)
class FormSummary:
    """Form usage on a page."""
    count: int = 0
    has_labels: bool = False
    has_validation: bool = False
    has_contact_form: bool = False


@dataclass(frozen=True)
class AccessibilitySummary:
    """Accessibility markers found on a page."""
    has_alt_text: bool = False
    missing_alt_text: int = 0
    has_skip_links: bool = False
    has_aria_labels: bool = False
    has_single_h1: bool = False  # Exactly one H1


@dataclass(frozen=True)
class MediaSummary:
    """Media usage on a page."""
    images: int = 0
    videos: int = 0
    has_lazy_loading: bool = False


@dataclass(frozen=True)
class InteractivitySummary:
    """Interactive widgets on a page."""
    buttons: int = 0
    dropdowns: int = 0
    modals: int = 0
    carousels: int = 0


@dataclass(frozen=True)
class SocialSummary:
    """Social network integration on a page."""
    social_links: int = 0
    has_social_sharing: bool = False


@dataclass(frozen=True)
class PageContent:
    """Structured facts extracted from one page's HTML."""

    url: str
    title: str = ""
    description: str = ""
    headings: list[str] = field(default_factory=list)
    paragraphs: list[str] = field(default_factory=list)
    image_alt_texts: list[str] = field(default_factory=list)
    link_texts: list[str] = field(default_factory=list)
    navigation_text: str = ""
    footer_text: str = ""
    brand_marker_text: str = ""
    forms: FormSummary = field(default_factory=FormSummary)
    accessibility: AccessibilitySummary = field(default_factory=AccessibilitySummary)
    media: MediaSummary = field(default_factory=MediaSummary)
    interactivity: InteractivitySummary = field(default_factory=InteractivitySummary)
    social: SocialSummary = field(default_factory=SocialSummary)
    is_homepage: bool = False
    page_type: PageType = PageType.OTHER

    # Derived counts
    has_logo: bool = False
    h1_count: int = 0
    word_count: int = 0
    content_length: int = 0
    html_length: int = 0
    internal_link_count: int = 0
    external_link_count: int = 0

    @property
    def text_content(self) -> str:
        """Aggregated visible text used for fingerprinting."""
        return " ".join(self.headings + self.paragraphs)

    def to_dict(self) -> dict:
        return _serialize(self)


@dataclass(frozen=True)
class SiteStructure:
    """Link and layout structure derived from one page."""

    discovered_internal_links: list[str] = field(default_factory=list)
    navigation_menu_items: list[str] = field(default_factory=list)
    main_navigation_text: str = ""
    breadcrumbs_text: str = ""
    footer_text: str = ""
    has_search: bool = False
    has_language_selector: bool = False
    heading_level_sequence: list[str] = field(default_factory=list)
    sections: list[str] = field(default_factory=list)
    has_contact_info: bool = False
    has_about_page: bool = False
    has_blog: bool = False
    has_products: bool = False
    page_count: int = 0  # Same-site links found before the cap

    def to_dict(self) -> dict:
        return _serialize(self)


# =============================================================================
# Cross-Page Consistency
# =============================================================================

@dataclass(frozen=True)
class DimensionScore:
    """Score for one consistency dimension."""
    score: int
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConsistencyReport:
    """Brand, navigation and content consistency across pages."""

    brand: DimensionScore
    navigation: DimensionScore
    content: DimensionScore
    pages_compared: int = 0

    @property
    def brand_score(self) -> int:
        return self.brand.score

    @property
    def navigation_score(self) -> int:
        return self.navigation.score

    @property
    def content_score(self) -> int:
        return self.content.score

    @property
    def issues(self) -> list[str]:
        return self.brand.issues + self.navigation.issues + self.content.issues

    @property
    def recommendations(self) -> list[str]:
        return (
            self.brand.recommendations
            + self.navigation.recommendations
            + self.content.recommendations
        )

    def to_dict(self) -> dict:
        data = _serialize(self)
        data.update({
            "brand_score": self.brand_score,
            "navigation_score": self.navigation_score,
            "content_score": self.content_score,
            "issues": self.issues,
            "recommendations": self.recommendations,
        })
        return data


# =============================================================================
# External Metrics
# =============================================================================

@dataclass(frozen=True)
class PerformanceMetrics:
    """Lighthouse category scores and core web vitals."""

    performance_score: Optional[float] = None  # 0-100
    accessibility_score: Optional[float] = None  # 0-100
    best_practices_score: Optional[float] = None  # 0-100
    seo_score: Optional[float] = None  # 0-100
    lcp: Optional[int] = None  # Largest Contentful Paint (ms)
    fid: Optional[int] = None  # Max potential First Input Delay (ms)
    cls: Optional[float] = None  # Cumulative Layout Shift (score)
    fcp: Optional[int] = None  # First Contentful Paint (ms)
    tbt: Optional[int] = None  # Total Blocking Time (ms)
    strategy: str = "mobile"
    fetch_time: Optional[str] = None

    def to_dict(self) -> dict:
        return _serialize(self)


@dataclass(frozen=True)
class SEOMetrics:
    """Results of direct SEO probes against the target host."""

    has_robots_txt: bool = False
    has_sitemap: bool = False
    has_ssl: bool = False
    mobile_optimized: bool = False
    canonical_url: Optional[str] = None
    page_size_kb: float = 0.0
    response_time_ms: Optional[float] = None
    redirect_count: int = 0
    has_service_worker: bool = False

    def to_dict(self) -> dict:
        return _serialize(self)


# =============================================================================
# Crawl Result
# =============================================================================

@dataclass(frozen=True)
class CrawlResult:
    """Terminal output of the acquisition pipeline.

    For a fallback result (fallback_used True) every page text field holds
    UNAVAILABLE_MARKER. company_name does not: it is derived from the domain
    of the requested URL, which needs no fetch.
    """

    url: str
    homepage: PageContent
    pages: list[PageContent] = field(default_factory=list)
    consistency: Optional[ConsistencyReport] = None
    performance: Optional[PerformanceMetrics] = None
    seo: SEOMetrics = field(default_factory=SEOMetrics)
    site_structure: SiteStructure = field(default_factory=SiteStructure)
    analysis_depth: AnalysisDepth = AnalysisDepth.LIMITED
    fallback_used: bool = False
    acquired_with: Optional[FetchTier] = None
    attempts: list[FetchAttempt] = field(default_factory=list)
    company_name: str = ""
    load_time: float = 0.0  # seconds, homepage fetch
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def has_images(self) -> bool:
        return any(page.media.images > 0 for page in self.pages)

    @property
    def has_forms(self) -> bool:
        return any(page.forms.count > 0 for page in self.pages)

    def to_dict(self) -> dict:
        data = _serialize(self)
        data["attempts"] = [attempt.to_dict() for attempt in self.attempts]
        return data


# =============================================================================
# Fingerprint & Score Cache
# =============================================================================

@dataclass(frozen=True)
class WebsiteSignature:
    """Stable identity of an analysis, used to key the score cache."""

    content_hash: str
    structure_hash: str
    metadata_hash: str
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def cache_key(self) -> str:
        return f"{self.content_hash}-{self.structure_hash}"

    def to_dict(self) -> dict:
        return _serialize(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WebsiteSignature":
        return cls(
            content_hash=data["content_hash"],
            structure_hash=data["structure_hash"],
            metadata_hash=data["metadata_hash"],
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class ScoreCacheEntry:
    """Previously computed scores for one signature."""

    signature: WebsiteSignature
    section_scores: list[float]
    overall_score: float
    methodology_version: str
    expires_at: datetime
    sections: list[dict] = field(default_factory=list)
    evidence: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def is_expired(self, now: datetime) -> bool:
        """An entry is valid strictly before its expiry instant."""
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return _serialize(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScoreCacheEntry":
        return cls(
            signature=WebsiteSignature.from_dict(data["signature"]),
            section_scores=list(data["section_scores"]),
            overall_score=data["overall_score"],
            methodology_version=data["methodology_version"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
            sections=data.get("sections", []),
            evidence=data.get("evidence", {}),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


# =============================================================================
# Audit Report
# =============================================================================

@dataclass
class AuditReport:
    """Scored report handed to the storage layer."""

    id: str
    url: str
    title: str
    overall_score: float
    section_scores: list[float]
    sections: list[dict] = field(default_factory=list)
    summary: str = ""
    analysis_depth: AnalysisDepth = AnalysisDepth.LIMITED
    fallback_used: bool = False
    from_cache: bool = False
    scoring_version: str = ""
    signature: Optional[WebsiteSignature] = None
    created_at: datetime = field(default_factory=datetime.now)
    industry: Optional[str] = None
    industry_adjusted_score: Optional[float] = None  # Reported only; overall_score uses standard weights

    def to_dict(self) -> dict:
        return _serialize(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AuditReport":
        signature = data.get("signature")
        return cls(
            id=data["id"],
            url=data["url"],
            title=data["title"],
            overall_score=data["overall_score"],
            section_scores=list(data["section_scores"]),
            sections=data.get("sections", []),
            summary=data.get("summary", ""),
            analysis_depth=AnalysisDepth(data.get("analysis_depth", "limited")),
            fallback_used=data.get("fallback_used", False),
            from_cache=data.get("from_cache", False),
            scoring_version=data.get("scoring_version", ""),
            signature=WebsiteSignature.from_dict(signature) if signature else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            industry=data.get("industry"),
            industry_adjusted_score=data.get("industry_adjusted_score"),
        )


def unavailable_page(url: str) -> PageContent:
    """Build a PageContent whose every text field carries the unavailable marker."""
    return PageContent(
        url=url,
        title=UNAVAILABLE_MARKER,
        description=UNAVAILABLE_MARKER,
        headings=[UNAVAILABLE_MARKER],
        paragraphs=[UNAVAILABLE_MARKER],
        image_alt_texts=[UNAVAILABLE_MARKER],
        link_texts=[UNAVAILABLE_MARKER],
        navigation_text=UNAVAILABLE_MARKER,
        footer_text=UNAVAILABLE_MARKER,
        brand_marker_text=UNAVAILABLE_MARKER,
        is_homepage=True,
        page_type=PageType.HOMEPAGE,
    )
