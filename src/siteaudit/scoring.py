"""Audit section weights and score arithmetic."""

import math
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

from siteaudit.constants import MAX_SCORE_VARIATION_PERCENT, SCORE_OUTLIER_THRESHOLD

# Section key -> (display title, weight); order is the canonical section order
SECTIONS: Dict[str, tuple] = {
    'visual_design': ('Visual Design & Flow', 0.12),
    'content_messaging': ('Content Quality & Messaging', 0.15),
    'seo_technical': ('SEO Technical & On-Page', 0.12),
    'performance': ('Performance & Speed', 0.10),
    'mobile_usability': ('Mobile Usability & Responsiveness', 0.10),
    'ux_navigation': ('User Experience & Navigation', 0.10),
    'accessibility': ('Accessibility', 0.08),
    'security': ('Security & Technical Integrity', 0.08),
    'competitive_positioning': ('Competitive Advantage & Market Positioning', 0.08),
    'conversion': ('Conversion & CTA Optimization', 0.07),
}

SECTION_KEYS: List[str] = list(SECTIONS)
SECTION_TITLES: List[str] = [title for title, _ in SECTIONS.values()]
SECTION_WEIGHTS: List[float] = [weight for _, weight in SECTIONS.values()]

if abs(sum(SECTION_WEIGHTS) - 1.0) > 0.001:
    raise ValueError(f"Section weights must sum to 1.0, got {sum(SECTION_WEIGHTS)}")

# Additive adjustments per industry, renormalized by industry_weights()
INDUSTRY_ADJUSTMENTS: Dict[str, Dict[str, float]] = {
    'ecommerce': {
        'conversion': 0.05,
        'performance': 0.03,
        'visual_design': -0.02,
        'content_messaging': -0.02,
    },
    'saas': {
        'ux_navigation': 0.07,
        'content_messaging': 0.03,
        'seo_technical': 0.02,
        'visual_design': -0.03,
    },
    'healthcare': {
        'accessibility': 0.10,
        'security': 0.05,
        'ux_navigation': 0.03,
        'conversion': -0.05,
        'competitive_positioning': -0.03,
    },
    'finance': {
        'security': 0.12,
        'accessibility': 0.05,
        'content_messaging': 0.03,
        'conversion': -0.05,
        'visual_design': -0.03,
    },
}


@dataclass(frozen=True)
class ScoreConsistency:
    """Comparison of a new overall score against earlier scores for the same site."""
    is_consistent: bool
    flagged_as_outlier: bool
    mean: float
    variance: float
    expected_min: float
    expected_max: float

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_overall_score(section_scores: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    """
    Weighted overall score.

    Args:
        section_scores: One score per section in canonical order
        weights: Section weights (default: SECTION_WEIGHTS)

    Returns:
        Weighted sum rounded to one decimal place

    Raises:
        ValueError: If the number of scores does not match the number of sections
    """
    weights = list(weights) if weights is not None else SECTION_WEIGHTS
    if len(section_scores) != len(weights):
        raise ValueError(f"Expected {len(weights)} section scores, got {len(section_scores)}")
    return round(sum(score * weight for score, weight in zip(section_scores, weights)), 1)


def industry_weights(industry: Optional[str]) -> List[float]:
    """Section weights adjusted for an industry, renormalized to sum to 1.0.

    Unknown or missing industries get the standard weights.
    """
    adjustments = INDUSTRY_ADJUSTMENTS.get((industry or '').lower())
    if not adjustments:
        return list(SECTION_WEIGHTS)

    adjusted = [
        max(weight + adjustments.get(key, 0.0), 0.0)
        for key, weight in zip(SECTION_KEYS, SECTION_WEIGHTS)
    ]
    total = sum(adjusted)
    return [weight / total for weight in adjusted]


def validate_score_consistency(
    new_score: float,
    historical_scores: Sequence[float],
    website_changed: bool = False,
) -> ScoreConsistency:
    """
    Check whether a new score stays within the expected range of earlier ones.

    The allowed variation doubles when the site itself changed. An outlier is
    a score more than two standard deviations from the historical mean.

    Args:
        new_score: Freshly computed overall score
        historical_scores: Earlier overall scores for the same site
        website_changed: Whether the content or structure signature changed

    Returns:
        ScoreConsistency
    """
    if not historical_scores:
        return ScoreConsistency(
            is_consistent=True,
            flagged_as_outlier=False,
            mean=new_score,
            variance=0.0,
            expected_min=max(0.0, new_score - MAX_SCORE_VARIATION_PERCENT),
            expected_max=min(100.0, new_score + MAX_SCORE_VARIATION_PERCENT),
        )

    mean = sum(historical_scores) / len(historical_scores)
    variance = sum((score - mean) ** 2 for score in historical_scores) / len(historical_scores)
    std_dev = math.sqrt(variance)

    allowed = MAX_SCORE_VARIATION_PERCENT * (2 if website_changed else 1)
    expected_min = max(0.0, mean - allowed)
    expected_max = min(100.0, mean + allowed)

    return ScoreConsistency(
        is_consistent=expected_min <= new_score <= expected_max,
        flagged_as_outlier=abs(new_score - mean) > std_dev * SCORE_OUTLIER_THRESHOLD,
        mean=mean,
        variance=variance,
        expected_min=expected_min,
        expected_max=expected_max,
    )
