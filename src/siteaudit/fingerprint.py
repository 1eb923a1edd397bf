"""Website fingerprinting.

A WebsiteSignature is three SHA-256 digests over independent projections of
a CrawlResult:

- content: homepage title + first 5000 characters of aggregated page text
- structure: navigation menu items, page count, image/form flags
- metadata: SSL flag + homepage load time rounded to 0.1s

Only content and structure gate score-cache hits; the metadata digest lets
callers see that timing or TLS changed without invalidating scores.
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Optional

from siteaudit.constants import CONTENT_HASH_CHARS
from siteaudit.models import CrawlResult, WebsiteSignature


def _digest(payload: dict[str, Any]) -> str:
    """SHA-256 over canonical JSON (sorted keys, compact separators)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def aggregated_content(crawl_result: CrawlResult) -> str:
    """Visible text of all analyzed pages, homepage first, in crawl priority order."""
    pages = crawl_result.pages or [crawl_result.homepage]
    return "\n".join(page.text_content for page in pages)


def content_projection(crawl_result: CrawlResult) -> dict[str, Any]:
    return {
        "title": crawl_result.homepage.title,
        "content": aggregated_content(crawl_result)[:CONTENT_HASH_CHARS],
    }


def structure_projection(crawl_result: CrawlResult) -> dict[str, Any]:
    return {
        "navigation": list(crawl_result.site_structure.navigation_menu_items),
        "pageCount": max(crawl_result.page_count, 1),
        "hasImages": crawl_result.has_images,
        "hasForms": crawl_result.has_forms,
    }


def metadata_projection(crawl_result: CrawlResult) -> dict[str, Any]:
    return {
        "hasSSL": crawl_result.seo.has_ssl,
        "loadTime": round(crawl_result.load_time, 1),
    }


def fingerprint(crawl_result: CrawlResult, now: Optional[datetime] = None) -> WebsiteSignature:
    """Derive the signature of a crawl result.

    Args:
        crawl_result: Acquisition output
        now: Creation timestamp (default: current time); not part of equality

    Returns:
        WebsiteSignature
    """
    return WebsiteSignature(
        content_hash=_digest(content_projection(crawl_result)),
        structure_hash=_digest(structure_projection(crawl_result)),
        metadata_hash=_digest(metadata_projection(crawl_result)),
        created_at=now or datetime.now(),
    )


def cache_key(signature: WebsiteSignature) -> str:
    """Score-cache key: content and structure digests only."""
    return signature.cache_key


def diff_signatures(old: WebsiteSignature, new: WebsiteSignature) -> list[str]:
    """Name the projections that changed between two signatures.

    Returns:
        Subset of ["content", "structure", "metadata"], empty when identical
    """
    changed = []
    if old.content_hash != new.content_hash:
        changed.append("content")
    if old.structure_hash != new.structure_hash:
        changed.append("structure")
    if old.metadata_hash != new.metadata_hash:
        changed.append("metadata")
    return changed
