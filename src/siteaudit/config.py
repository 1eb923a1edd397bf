from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import json
import os

from siteaudit.constants import (
    CACHE_TTL_DAYS,
    CRAWL_PAGE_TIMEOUT_SECONDS,
    CRAWL_WORKER_STAGGER_SECONDS,
    DEFAULT_MAX_PAGES,
    HEADLESS_TIER_TIMEOUT_SECONDS,
    HTTP_TIER_ATTEMPTS,
    HTTP_TIER_TIMEOUT_SECONDS,
    MAX_CRAWL_WORKERS,
    THIRD_PARTY_TIMEOUT_SECONDS,
)

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    # Text-generation backend
    LLM_API_KEY = os.getenv("LLM_API_KEY")
    LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4")
    LLM_PROVIDER = os.getenv("LLM_PROVIDER", "openai")

    # External metrics
    GOOGLE_PSI_API_KEY = os.getenv("GOOGLE_PSI_API_KEY")

    # Third-party extraction (tier 3)
    THIRD_PARTY_PROVIDER = os.getenv("THIRD_PARTY_PROVIDER", "scraperapi")  # 'scraperapi' or 'firecrawl'
    SCRAPER_API_KEY = os.getenv("SCRAPER_API_KEY")
    FIRECRAWL_API_KEY = os.getenv("FIRECRAWL_API_KEY")

    # Report storage
    REPORT_BACKEND = os.getenv("REPORT_BACKEND", "memory")  # 'memory' or 'sqlite'
    REPORT_DB_PATH = os.getenv("REPORT_DB_PATH", "siteaudit_reports.db")


settings = Settings()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Configuration for one acquisition pipeline."""
    # Tier 1
    http_attempts: int = HTTP_TIER_ATTEMPTS
    http_timeout: float = HTTP_TIER_TIMEOUT_SECONDS

    # Tier 2
    headless_enabled: bool = True
    headless_timeout: float = HEADLESS_TIER_TIMEOUT_SECONDS
    browser_type: str = "chromium"

    # Tier 3
    third_party_provider: str = "scraperapi"
    scraper_api_key: Optional[str] = None
    firecrawl_api_key: Optional[str] = None
    third_party_timeout: float = THIRD_PARTY_TIMEOUT_SECONDS

    # Multi-page crawl
    max_pages: int = DEFAULT_MAX_PAGES
    crawl_workers: int = MAX_CRAWL_WORKERS
    crawl_page_timeout: float = CRAWL_PAGE_TIMEOUT_SECONDS
    crawl_stagger: float = CRAWL_WORKER_STAGGER_SECONDS

    # External metrics
    collect_metrics: bool = True
    google_psi_api_key: Optional[str] = None
    psi_strategy: str = "mobile"  # 'mobile' or 'desktop'

    # Score cache
    cache_ttl_days: int = CACHE_TTL_DAYS

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config: Configuration instance with values from environment
        """
        return cls(
            http_attempts=int(os.getenv("HTTP_ATTEMPTS", str(HTTP_TIER_ATTEMPTS))),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", str(HTTP_TIER_TIMEOUT_SECONDS))),
            headless_enabled=_env_bool("HEADLESS_ENABLED", True),
            headless_timeout=float(os.getenv("HEADLESS_TIMEOUT", str(HEADLESS_TIER_TIMEOUT_SECONDS))),
            browser_type=os.getenv("BROWSER_TYPE", "chromium"),
            third_party_provider=os.getenv("THIRD_PARTY_PROVIDER", "scraperapi"),
            scraper_api_key=os.getenv("SCRAPER_API_KEY"),
            firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY"),
            third_party_timeout=float(os.getenv("THIRD_PARTY_TIMEOUT", str(THIRD_PARTY_TIMEOUT_SECONDS))),
            max_pages=int(os.getenv("MAX_PAGES", str(DEFAULT_MAX_PAGES))),
            crawl_workers=int(os.getenv("CRAWL_WORKERS", str(MAX_CRAWL_WORKERS))),
            crawl_page_timeout=float(os.getenv("CRAWL_PAGE_TIMEOUT", str(CRAWL_PAGE_TIMEOUT_SECONDS))),
            crawl_stagger=float(os.getenv("CRAWL_STAGGER", str(CRAWL_WORKER_STAGGER_SECONDS))),
            collect_metrics=_env_bool("COLLECT_METRICS", True),
            google_psi_api_key=os.getenv("GOOGLE_PSI_API_KEY"),
            psi_strategy=os.getenv("PSI_STRATEGY", "mobile"),
            cache_ttl_days=int(os.getenv("CACHE_TTL_DAYS", str(CACHE_TTL_DAYS))),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class ConsistencyThresholds:
    """Fixed thresholds of the cross-page consistency analysis.

    Changing these changes what scores mean; they are configurable only so
    that experiments can be run side by side.
    """

    # Fewer pages than this yields the low-confidence default report
    min_pages: int = 2
    insufficient_pages_score: int = 50

    # Starting score per dimension
    brand_base_score: int = 85
    navigation_base_score: int = 80
    content_base_score: int = 75

    # Brand: logo/brand marker must appear on at least this share of pages
    brand_presence_min: float = 0.8
    brand_penalty: int = 15

    # Navigation: more distinct renderings than this is inconsistent
    max_navigation_variants: int = 2
    navigation_penalty: int = 20

    # Content: share of deviating pages tolerated before a penalty applies
    content_inconsistency_tolerance: float = 0.2
    title_pattern_penalty: int = 10
    heading_structure_penalty: int = 15

    @classmethod
    def from_env(cls) -> "ConsistencyThresholds":
        """Load thresholds from environment variables.

        Environment variables should be prefixed with SITEAUDIT_THRESHOLD_
        e.g., SITEAUDIT_THRESHOLD_BRAND_PENALTY=10

        Returns:
            ConsistencyThresholds with values from environment
        """
        thresholds = cls()
        prefix = "SITEAUDIT_THRESHOLD_"

        for field_name in thresholds.__dataclass_fields__:
            env_value = os.getenv(f"{prefix}{field_name.upper()}")

            if env_value is not None:
                field_type = thresholds.__dataclass_fields__[field_name].type
                try:
                    if field_type == int:
                        setattr(thresholds, field_name, int(env_value))
                    elif field_type == float:
                        setattr(thresholds, field_name, float(env_value))
                except ValueError:
                    pass  # Keep default if conversion fails

        return thresholds

    @classmethod
    def from_file(cls, path: str) -> "ConsistencyThresholds":
        """Load thresholds from a JSON configuration file.

        Args:
            path: Path to JSON configuration file

        Returns:
            ConsistencyThresholds with values from file
        """
        thresholds = cls()
        file_path = Path(path)

        if not file_path.exists():
            return thresholds

        with open(file_path, 'r') as f:
            config = json.load(f)

        threshold_config = config.get('thresholds', config)

        for field_name in thresholds.__dataclass_fields__:
            if field_name in threshold_config:
                setattr(thresholds, field_name, threshold_config[field_name])

        return thresholds

    def to_dict(self) -> dict:
        """Convert thresholds to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


# Global default thresholds instance
default_thresholds = ConsistencyThresholds()
