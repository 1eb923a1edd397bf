"""
Multi-page crawl coordinator.

Runs a small fixed-size worker pool over a prioritized queue of same-site
links. Each queue claim is exclusive, each page gets one attempt under a
hard deadline, and failed pages are dropped rather than retried.
"""

import asyncio
import logging
from typing import Iterable, Optional

from siteaudit.constants import CRAWL_PAGE_TIMEOUT_SECONDS, CRAWL_WORKER_STAGGER_SECONDS, MAX_CRAWL_WORKERS
from siteaudit.fetcher import PageFetcher
from siteaudit.models import PageContent
from siteaudit.parser import ContentParser
from siteaudit.site_structure import prioritize_links
from siteaudit.url_utils import same_site

logger = logging.getLogger(__name__)


class MultiPageCrawler:
    """Bounded-concurrency crawler for a site's secondary pages."""

    def __init__(
        self,
        fetcher: PageFetcher,
        parser: Optional[ContentParser] = None,
        max_workers: int = MAX_CRAWL_WORKERS,
        page_timeout: float = CRAWL_PAGE_TIMEOUT_SECONDS,
        stagger: float = CRAWL_WORKER_STAGGER_SECONDS,
    ):
        """
        Initialize the crawler.

        Args:
            fetcher: Fetcher used for every page request
            parser: Content parser (default: new ContentParser)
            max_workers: Upper bound on concurrent requests
            page_timeout: Hard deadline per page in seconds
            stagger: Start delay per worker id in seconds
        """
        self.fetcher = fetcher
        self.parser = parser or ContentParser()
        self.max_workers = max_workers
        self.page_timeout = page_timeout
        self.stagger = stagger

        self.failed_urls: dict[str, str] = {}
        self.attempted_urls: list[str] = []
        self._in_flight = 0
        self.peak_concurrency = 0

    async def crawl(self, base_url: str, candidate_links: Iterable[str], max_pages: int) -> list[PageContent]:
        """
        Crawl candidate pages until the queue is empty or max_pages are parsed.

        Args:
            base_url: Site URL; links on other sites are ignored
            candidate_links: Discovered same-site links
            max_pages: Maximum number of pages to return

        Returns:
            Parsed pages in priority order, at most max_pages
        """
        self.failed_urls = {}
        self.attempted_urls = []
        self.peak_concurrency = 0

        links = [link for link in prioritize_links(candidate_links) if same_site(link, base_url)]
        if not links or max_pages <= 0:
            return []

        queue: asyncio.Queue = asyncio.Queue()
        for link in links:
            queue.put_nowait(link)

        results: list[PageContent] = []
        worker_count = min(self.max_workers, len(links))
        logger.info(f"Starting multi-page crawl of {len(links)} candidates with {worker_count} workers (max {max_pages} pages)")

        await asyncio.gather(*(
            self._worker(worker_id, queue, results, max_pages)
            for worker_id in range(worker_count)
        ))

        order = {link: index for index, link in enumerate(links)}
        pages = sorted(results, key=lambda page: order.get(page.url, len(order)))[:max_pages]

        logger.info(f"Completed multi-page crawl: {len(pages)} pages parsed, {len(self.failed_urls)} dropped")
        return pages

    async def _worker(self, worker_id: int, queue: asyncio.Queue, results: list, max_pages: int) -> None:
        """Pull URLs until the queue is drained or enough pages are parsed."""
        if worker_id and self.stagger:
            await asyncio.sleep(worker_id * self.stagger)

        while len(results) < max_pages:
            try:
                url = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            self.attempted_urls.append(url)
            logger.debug(f"Worker {worker_id} crawling {url}")
            attempt, reason = await self._fetch(url)

            if attempt is None or not attempt.ok:
                self.failed_urls[url] = reason
                logger.info(f"Skipping {url} - {reason}")
                continue

            if len(results) >= max_pages:
                return
            results.append(self.parser.parse(attempt.raw_body, url))

    async def _fetch(self, url: str):
        """One attempt under the page deadline. Returns (attempt, failure reason)."""
        self._in_flight += 1
        self.peak_concurrency = max(self.peak_concurrency, self._in_flight)
        try:
            attempt = await asyncio.wait_for(
                self.fetcher.fetch(url, timeout=self.page_timeout),
                timeout=self.page_timeout,
            )
            return attempt, attempt.error or attempt.status.value
        except asyncio.TimeoutError:
            return None, f"Timeout after {self.page_timeout:.0f}s"
        except Exception as e:
            logger.warning(f"Unexpected error crawling {url}: {e}")
            return None, str(e) or type(e).__name__
        finally:
            self._in_flight -= 1

    def get_crawl_summary(self) -> dict:
        """Get a summary of the last crawl.

        Returns:
            Dictionary with crawl statistics
        """
        return {
            'attempted_pages': len(self.attempted_urls),
            'failed_pages': len(self.failed_urls),
            'failed_urls': dict(self.failed_urls),
            'peak_concurrency': self.peak_concurrency,
        }
