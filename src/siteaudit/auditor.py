"""
Audit service.

Glues acquisition, fingerprinting, the score cache and the text-generation
backend into one call:

    acquire -> fingerprint -> cache lookup -> (hit) reuse scores
                                           -> (miss) prompt -> LLM -> parse -> cache put
            -> report store

Fallback results are scored but never cached, so a site that was briefly
unreachable does not pin placeholder scores for a week.
"""

import asyncio
import logging
import uuid
from typing import Optional

from siteaudit.business_context import detect_business_context
from siteaudit.config import Config
from siteaudit.constants import SCORING_VERSION
from siteaudit.fingerprint import diff_signatures, fingerprint
from siteaudit.llm import LLMClient, build_audit_prompt, parse_section_scores
from siteaudit.models import AuditReport, CrawlResult
from siteaudit.orchestrator import ScrapingOrchestrator
from siteaudit.report_store import InMemoryReportStore, ReportStore
from siteaudit.score_cache import ScoreCache
from siteaudit.scoring import calculate_overall_score, industry_weights, validate_score_consistency

logger = logging.getLogger(__name__)


class SiteAuditor:
    """Produces scored audit reports for URLs."""

    def __init__(
        self,
        config: Optional[Config] = None,
        orchestrator: Optional[ScrapingOrchestrator] = None,
        llm_client: Optional[LLMClient] = None,
        score_cache: Optional[ScoreCache] = None,
        report_store: Optional[ReportStore] = None,
    ):
        """
        Initialize the auditor.

        Args:
            config: Pipeline configuration (default: Config.from_env())
            orchestrator: Acquisition orchestrator
            llm_client: Text-generation client; created on first cache miss
            score_cache: Score cache (default: in-memory, config TTL)
            report_store: Report storage (default: in-memory)
        """
        self.config = config or Config.from_env()
        self.orchestrator = orchestrator or ScrapingOrchestrator(self.config)
        self._llm_client = llm_client
        self.score_cache = score_cache or ScoreCache(ttl_days=self.config.cache_ttl_days)
        self.report_store = report_store or InMemoryReportStore()

    @property
    def llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = LLMClient()
        return self._llm_client

    async def audit(self, url: str) -> AuditReport:
        """
        Audit a URL.

        Args:
            url: Site URL (scheme optional)

        Returns:
            Stored AuditReport

        Raises:
            ScoringError: If the backend response has no usable scores
        """
        crawl_result = await self.orchestrator.acquire(url)
        signature = fingerprint(crawl_result)
        title = f"{crawl_result.company_name} Website Audit"

        cached = None if crawl_result.fallback_used else self.score_cache.get(signature)
        if cached is not None:
            report = AuditReport(
                id=uuid.uuid4().hex,
                url=crawl_result.url,
                title=title,
                overall_score=cached.overall_score,
                section_scores=list(cached.section_scores),
                sections=list(cached.sections),
                summary=cached.evidence.get('summary', ''),
                analysis_depth=crawl_result.analysis_depth,
                fallback_used=False,
                from_cache=True,
                scoring_version=cached.methodology_version,
                signature=signature,
                industry=cached.evidence.get('industry'),
                industry_adjusted_score=cached.evidence.get('industry_adjusted_score'),
            )
        else:
            report = await self._score(crawl_result, signature, title)

        self._check_history(report)
        self.report_store.put(report)
        logger.info(
            f"Audit complete for {report.url}: overall={report.overall_score} "
            f"(depth={report.analysis_depth.value}, cached={report.from_cache})"
        )
        return report

    async def _score(self, crawl_result: CrawlResult, signature, title: str) -> AuditReport:
        """Score a crawl result with the text-generation backend."""
        context = detect_business_context(crawl_result)
        prompt = build_audit_prompt(crawl_result, context)

        response = await asyncio.to_thread(self.llm_client.generate_report, prompt)
        parsed = parse_section_scores(response)
        overall = calculate_overall_score(parsed['scores'])
        industry_adjusted = calculate_overall_score(parsed['scores'], industry_weights(context.industry))

        if crawl_result.fallback_used:
            logger.warning(f"Not caching scores for {crawl_result.url}: analysis based on fallback data")
        else:
            self.score_cache.put(
                signature,
                parsed['scores'],
                sections=parsed['sections'],
                methodology=SCORING_VERSION,
                overall_score=overall,
                evidence={
                    'summary': parsed['summary'],
                    'industry': context.industry,
                    'industry_adjusted_score': industry_adjusted,
                    'business_type': context.business_type,
                    'analysis_depth': crawl_result.analysis_depth.value,
                    'pages_analyzed': len(crawl_result.pages),
                },
            )

        return AuditReport(
            id=uuid.uuid4().hex,
            url=crawl_result.url,
            title=title,
            overall_score=overall,
            section_scores=parsed['scores'],
            sections=parsed['sections'],
            summary=parsed['summary'],
            analysis_depth=crawl_result.analysis_depth,
            fallback_used=crawl_result.fallback_used,
            from_cache=False,
            scoring_version=SCORING_VERSION,
            signature=signature,
            industry=context.industry,
            industry_adjusted_score=industry_adjusted,
        )

    def _check_history(self, report: AuditReport) -> None:
        """Log when a fresh score drifts from earlier scores for the same URL."""
        if report.from_cache or report.fallback_used:
            return

        previous = [r for r in self.report_store.list(url=report.url) if not r.fallback_used]
        if not previous:
            return

        changed = False
        if previous[0].signature and report.signature:
            changed = bool({'content', 'structure'} & set(diff_signatures(previous[0].signature, report.signature)))
        result = validate_score_consistency(
            report.overall_score,
            [r.overall_score for r in previous],
            website_changed=changed,
        )
        if not result.is_consistent or result.flagged_as_outlier:
            logger.warning(
                f"Score for {report.url} ({report.overall_score}) outside expected range "
                f"{result.expected_min:.1f}-{result.expected_max:.1f} "
                f"(outlier={result.flagged_as_outlier}, website_changed={changed})"
            )
