"""Cross-page consistency analysis.

Compares parsed pages for brand, navigation and content consistency using
fixed thresholds (see ConsistencyThresholds). With fewer than two pages the
analyzer returns a documented low-confidence default instead of a score.
"""

import logging
from typing import Optional, Sequence

from siteaudit.config import ConsistencyThresholds, default_thresholds
from siteaudit.models import ConsistencyReport, DimensionScore, PageContent

logger = logging.getLogger(__name__)


def title_pattern(title: str) -> str:
    """'structured' for titles with a separator (| or -), otherwise 'simple'."""
    return "structured" if "|" in title or "-" in title else "simple"


def _clamp(score: int) -> int:
    return max(0, min(100, score))


class ConsistencyAnalyzer:
    """Scores how consistently a site presents itself across pages."""

    def __init__(self, thresholds: Optional[ConsistencyThresholds] = None):
        self.thresholds = thresholds or default_thresholds

    def compare(self, pages: Sequence[PageContent]) -> ConsistencyReport:
        """Compare pages for brand, navigation and content consistency.

        Args:
            pages: Parsed pages, homepage first

        Returns:
            ConsistencyReport with scores in [0, 100]
        """
        t = self.thresholds
        if len(pages) < t.min_pages:
            return self.insufficient_pages_report(len(pages))

        report = ConsistencyReport(
            brand=self._brand(pages),
            navigation=self._navigation(pages),
            content=self._content(pages),
            pages_compared=len(pages),
        )
        logger.info(
            f"Consistency across {len(pages)} pages: brand={report.brand_score}, "
            f"navigation={report.navigation_score}, content={report.content_score}"
        )
        return report

    def insufficient_pages_report(self, page_count: int = 0) -> ConsistencyReport:
        """Low-confidence default used when fewer than min_pages were parsed."""
        score = self.thresholds.insufficient_pages_score
        return ConsistencyReport(
            brand=DimensionScore(
                score=score,
                issues=["Insufficient pages analyzed for consistency check"],
                recommendations=["Make key pages (about, contact, services) reachable for a multi-page review"],
            ),
            navigation=DimensionScore(score=score, issues=["Limited navigation analysis"]),
            content=DimensionScore(score=score, issues=["Single page analysis only"]),
            pages_compared=page_count,
        )

    def _brand(self, pages: Sequence[PageContent]) -> DimensionScore:
        t = self.thresholds
        score = t.brand_base_score
        issues, recommendations = [], []

        with_logo = sum(1 for page in pages if page.has_logo)
        if with_logo / len(pages) < t.brand_presence_min:
            score -= t.brand_penalty
            issues.append(
                f"Logo not consistently present across all pages ({with_logo} of {len(pages)})"
            )
            recommendations.append("Ensure logo appears on all pages for brand recognition")

        return DimensionScore(score=_clamp(score), issues=issues, recommendations=recommendations)

    def _navigation(self, pages: Sequence[PageContent]) -> DimensionScore:
        t = self.thresholds
        score = t.navigation_base_score
        issues, recommendations = [], []

        variants = len({page.navigation_text for page in pages})
        if variants > t.max_navigation_variants:
            score -= t.navigation_penalty
            issues.append("Navigation structure varies significantly between pages")
            recommendations.append("Standardize navigation menu across all pages")

        return DimensionScore(score=_clamp(score), issues=issues, recommendations=recommendations)

    def _content(self, pages: Sequence[PageContent]) -> DimensionScore:
        t = self.thresholds
        score = t.content_base_score
        issues, recommendations = [], []
        total = len(pages)

        reference = title_pattern(pages[0].title)
        deviating_titles = sum(1 for page in pages if title_pattern(page.title) != reference)
        if deviating_titles / total > t.content_inconsistency_tolerance:
            score -= t.title_pattern_penalty
            issues.append("Title tag format inconsistent across pages")
            recommendations.append('Establish consistent title tag pattern (e.g., "Page Title | Brand Name")')

        without_single_h1 = sum(1 for page in pages if not page.accessibility.has_single_h1)
        if without_single_h1 / total > t.content_inconsistency_tolerance:
            score -= t.heading_structure_penalty
            issues.append(
                f"Heading structure inconsistent: {without_single_h1} of {total} pages lack exactly one H1"
            )
            recommendations.append("Ensure every page has exactly one H1 heading")

        return DimensionScore(score=_clamp(score), issues=issues, recommendations=recommendations)
