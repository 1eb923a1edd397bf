"""Website acquisition, analysis and deterministic scoring."""

__version__ = "0.1.0"

from siteaudit.orchestrator import ScrapingOrchestrator, build_fallback_result
from siteaudit.fetcher import PageFetcher
from siteaudit.browser_fetcher import HeadlessFetcher
from siteaudit.parser import ContentParser
from siteaudit.site_structure import SiteStructureAnalyzer, classify_page_type
from siteaudit.crawl_coordinator import MultiPageCrawler
from siteaudit.consistency import ConsistencyAnalyzer
from siteaudit.bot_detection import classify as classify_bot_protection
from siteaudit.fingerprint import fingerprint
from siteaudit.score_cache import ScoreCache, InMemoryScoreStore, SqliteScoreStore
from siteaudit.auditor import SiteAuditor
from siteaudit.llm import LLMClient
from siteaudit.report_store import get_report_store
from siteaudit.models import (
    AnalysisDepth,
    AuditReport,
    ConsistencyReport,
    CrawlResult,
    FetchAttempt,
    FetchStatus,
    FetchTier,
    PageContent,
    PageType,
    PerformanceMetrics,
    SEOMetrics,
    ScoreCacheEntry,
    SiteStructure,
    WebsiteSignature,
)
from siteaudit.config import Config, settings

# External services
from siteaudit.external import (
    PageSpeedInsightsAPI,
    SEOProbe,
    ThirdPartyFetcher,
    ScraperAPIFetcher,
    FirecrawlFetcher,
    build_third_party_fetcher,
)

__all__ = [
    # Pipeline
    "ScrapingOrchestrator",
    "build_fallback_result",
    "PageFetcher",
    "HeadlessFetcher",
    "ContentParser",
    "SiteStructureAnalyzer",
    "classify_page_type",
    "MultiPageCrawler",
    "ConsistencyAnalyzer",
    "classify_bot_protection",
    # Fingerprint and cache
    "fingerprint",
    "ScoreCache",
    "InMemoryScoreStore",
    "SqliteScoreStore",
    # Scoring
    "SiteAuditor",
    "LLMClient",
    "get_report_store",
    # Models
    "AnalysisDepth",
    "AuditReport",
    "ConsistencyReport",
    "CrawlResult",
    "FetchAttempt",
    "FetchStatus",
    "FetchTier",
    "PageContent",
    "PageType",
    "PerformanceMetrics",
    "SEOMetrics",
    "ScoreCacheEntry",
    "SiteStructure",
    "WebsiteSignature",
    "Config",
    "settings",
    # External
    "PageSpeedInsightsAPI",
    "SEOProbe",
    "ThirdPartyFetcher",
    "ScraperAPIFetcher",
    "FirecrawlFetcher",
    "build_third_party_fetcher",
]
