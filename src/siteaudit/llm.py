"""Text-generation backend for audit scoring."""

import json
import logging
import os
import re
import time
from typing import Optional

import anthropic
import openai

from siteaudit.business_context import BusinessContext
from siteaudit.config import settings
from siteaudit.constants import UNAVAILABLE_MARKER
from siteaudit.exceptions import ScoringError
from siteaudit.models import CrawlResult
from siteaudit.scoring import SECTION_KEYS, SECTIONS

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an expert website auditor. You score strictly from the evidence provided."

# Substrings of provider errors that will not go away on retry
NON_RETRYABLE_ERRORS = [
    'invalid api key',
    'authentication',
    'unauthorized',
    'invalid_api_key',
    'model not found',
    'invalid model',
]

_JSON_FENCE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class LLMClient:
    """Client for the text-generation provider that writes audit reports."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        max_tokens: int = 4096,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for the provider (default: LLM_API_KEY)
            model: Model name (default: LLM_MODEL)
            provider: "openai" or "anthropic" (default: LLM_PROVIDER)
            max_tokens: Maximum tokens for the response

        Raises:
            ValueError: If no API key is available
        """
        self.api_key = api_key or os.getenv("LLM_API_KEY")
        self.model = model or settings.LLM_MODEL
        self.provider = provider or settings.LLM_PROVIDER
        self.max_tokens = max_tokens

        if not self.api_key:
            raise ValueError(
                "API key must be provided or set in LLM_API_KEY environment variable"
            )

    def generate_report(self, prompt: str) -> str:
        """Generate the raw audit text for a prompt.

        Args:
            prompt: Fully rendered audit prompt

        Returns:
            Response text

        Raises:
            ScoringError: If the provider returned nothing
        """
        response = self._call_llm(prompt)
        if not response or not response.strip():
            raise ScoringError("LLM returned empty response")
        return response

    def _call_llm(
        self,
        prompt: str,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        backoff_factor: float = 2.0,
    ) -> str:
        """Call the LLM with exponential backoff on transient failures.

        Authentication and unknown-model errors are raised immediately.

        Args:
            prompt: The prompt to send
            max_retries: Maximum number of retry attempts
            retry_delay: Initial delay between retries in seconds
            backoff_factor: Multiplier for delay after each retry

        Returns:
            LLM response text
        """
        last_exception = None
        current_delay = retry_delay

        for attempt in range(max_retries + 1):
            try:
                if self.provider == "openai":
                    return self._call_openai(prompt)
                elif self.provider == "anthropic":
                    return self._call_anthropic(prompt)
                else:
                    raise ValueError(f"Unsupported provider: {self.provider}")

            except ValueError:
                raise
            except Exception as e:
                last_exception = e
                if any(err in str(e).lower() for err in NON_RETRYABLE_ERRORS):
                    logger.error(f"Non-retryable LLM error: {e}")
                    raise

                if attempt < max_retries:
                    logger.warning(
                        f"LLM call failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                        f"Retrying in {current_delay:.1f}s..."
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff_factor
                else:
                    logger.error(f"LLM call failed after {max_retries + 1} attempts: {e}")

        raise last_exception

    def _call_openai(self, prompt: str) -> str:
        client = openai.OpenAI(api_key=self.api_key)
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content

    def _call_anthropic(self, prompt: str) -> str:
        client = anthropic.Anthropic(api_key=self.api_key)
        response = client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text


def _bullet_list(items, limit: int = 10) -> str:
    items = [item for item in items if item][:limit]
    return "\n".join(f"- {item}" for item in items) if items else "- None found"


def build_audit_prompt(crawl_result: CrawlResult, context: Optional[BusinessContext] = None) -> str:
    """Render a crawl result into the audit prompt.

    Fallback results are called out explicitly so the model scores absence
    of data instead of describing content it never saw.

    Args:
        crawl_result: Acquisition output
        context: Detected business context

    Returns:
        Prompt text
    """
    context = context or BusinessContext()
    home = crawl_result.homepage
    seo = crawl_result.seo
    perf = crawl_result.performance
    consistency = crawl_result.consistency

    if crawl_result.fallback_used:
        access_note = (
            "DATA ACCESS: The site could not be fetched by any method. Every field marked "
            f"\"{UNAVAILABLE_MARKER}\" is unknown. Do NOT invent content, branding or copy; "
            "score only what is evidenced and state clearly that the analysis is limited."
        )
    else:
        access_note = (
            f"DATA ACCESS: Acquired via {crawl_result.acquired_with.value} tier, "
            f"{len(crawl_result.pages)} page(s) analyzed ({crawl_result.analysis_depth.value})."
        )

    if perf is not None:
        performance_block = (
            f"- Performance score: {perf.performance_score}\n"
            f"- LCP: {perf.lcp} ms, CLS: {perf.cls}, TBT: {perf.tbt} ms, FCP: {perf.fcp} ms"
        )
    else:
        performance_block = f"- {UNAVAILABLE_MARKER}"

    if consistency is not None:
        consistency_block = (
            f"- Brand: {consistency.brand_score}, Navigation: {consistency.navigation_score}, "
            f"Content: {consistency.content_score}\n"
            + _bullet_list(consistency.issues)
        )
    else:
        consistency_block = f"- {UNAVAILABLE_MARKER}"

    section_lines = "\n".join(
        f"{index + 1}. {key}: {title} (weight {weight:.2f})"
        for index, (key, (title, weight)) in enumerate(SECTIONS.items())
    )

    return f"""Audit the website below and score it section by section.

{access_note}

COMPANY: {crawl_result.company_name}
URL: {crawl_result.url}
INDUSTRY: {context.industry} ({context.business_type}, confidence {context.confidence})
PRIORITIES: {', '.join(context.priorities)}

HOMEPAGE
- Title: {home.title}
- Description: {home.description}
- Word count: {home.word_count}, H1 count: {home.h1_count}
- Navigation: {home.navigation_text[:300]}

Headings:
{_bullet_list(home.headings)}

Content excerpts:
{_bullet_list(home.paragraphs, limit=5)}

UX FEATURES
- Forms: {home.forms.count} (labels: {home.forms.has_labels}, contact form: {home.forms.has_contact_form})
- Images: {home.media.images}, missing alt text: {home.accessibility.missing_alt_text}
- Skip links: {home.accessibility.has_skip_links}, ARIA labels: {home.accessibility.has_aria_labels}
- Social links: {home.social.social_links}

TECHNICAL SEO
- SSL: {seo.has_ssl}, robots.txt: {seo.has_robots_txt}, sitemap: {seo.has_sitemap}
- Mobile viewport: {seo.mobile_optimized}, canonical: {seo.canonical_url or 'none'}
- Page size: {seo.page_size_kb} KB, redirects: {seo.redirect_count}

PERFORMANCE
{performance_block}

CROSS-PAGE CONSISTENCY
{consistency_block}

SECTIONS (score each 0-100):
{section_lines}

Respond with ONLY a JSON object of this shape:
{{"summary": "<two sentences>",
  "sections": [{{"key": "<section key>", "score": <0-100>, "issues": ["..."], "recommendations": ["..."]}}]}}
Include all {len(SECTION_KEYS)} sections in the order listed.
"""


def _extract_json(text: str) -> dict:
    match = _JSON_FENCE.search(text)
    if match:
        candidate = match.group(1)
    else:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ScoringError("No JSON object found in LLM response")
        candidate = text[start:end + 1]

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ScoringError(f"Malformed JSON in LLM response: {e}") from e
    if not isinstance(data, dict):
        raise ScoringError("LLM response JSON is not an object")
    return data


def parse_section_scores(text: str) -> dict:
    """Extract section scores from a free-form LLM response.

    Sections are matched by key when the model supplied one, otherwise by
    position. Scores are clamped to 0-100.

    Args:
        text: Raw response text

    Returns:
        Dictionary with 'scores' (canonical order), 'sections' and 'summary'

    Raises:
        ScoringError: If no usable set of section scores is present
    """
    data = _extract_json(text)
    raw_sections = data.get("sections")
    if not isinstance(raw_sections, list) or len(raw_sections) < len(SECTION_KEYS):
        found = len(raw_sections) if isinstance(raw_sections, list) else 0
        raise ScoringError(f"Expected {len(SECTION_KEYS)} sections, got {found}")

    by_key = {
        section.get("key"): section
        for section in raw_sections
        if isinstance(section, dict) and section.get("key") in SECTIONS
    }
    if len(by_key) == len(SECTION_KEYS):
        ordered = [by_key[key] for key in SECTION_KEYS]
    else:
        ordered = raw_sections[:len(SECTION_KEYS)]

    scores = []
    sections = []
    for key, section in zip(SECTION_KEYS, ordered):
        if not isinstance(section, dict):
            raise ScoringError(f"Section {key} is not an object")
        try:
            score = float(section.get("score"))
        except (TypeError, ValueError) as e:
            raise ScoringError(f"Section {key} has no numeric score") from e
        score = max(0.0, min(100.0, score))
        scores.append(score)
        sections.append({
            "key": key,
            "title": SECTIONS[key][0],
            "score": score,
            "issues": list(section.get("issues") or []),
            "recommendations": list(section.get("recommendations") or []),
        })

    return {
        "scores": scores,
        "sections": sections,
        "summary": str(data.get("summary") or ""),
    }
