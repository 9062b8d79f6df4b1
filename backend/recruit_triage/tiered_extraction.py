"""
Tiered extraction orchestrator.

Tiers are tried in a fixed order and the first accepted result wins:

    fast path -> generative -> statistical -> pattern fallback -> exhausted

A tier answers None for "no match". Exceptions and timeouts inside a tier are logged
and treated the same way, so `TieredExtractor.extract` never raises. Whatever tier
produced the title, the keyword category overlay is applied last.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .category_overlay import apply_category_overlay
from .collaborators import StatisticalModels, TextGenerator
from .config import Settings, settings as default_settings
from .errors import CollaboratorFailure
from .generative_extraction import GenerativeExtractor
from .grounding import is_grounded
from .job_title_extraction import find_job_title, strip_reply_prefix
from .schemas import UNCLEAR, EmailContent, ExtractionResult, JobCategory, SourceTier
from .statistical_classifier import StatisticalClassifier

logger = logging.getLogger(__name__)

FAST_PATH_CONFIDENCE = 0.8


@dataclass(frozen=True)
class TierContext:
    """Per-email values shared by every tier. Built once, never mutated."""
    subject: str
    body: str
    source_text: str
    hint_title: Optional[str]
    subject_title: Optional[str]
    attachment_text: Optional[str] = None

    @classmethod
    def from_email(cls, email: EmailContent) -> "TierContext":
        subject = strip_reply_prefix(email.subject)
        body = email.body or ""
        return cls(
            subject=subject,
            body=body,
            source_text=f"{email.subject} {body}",
            hint_title=find_job_title(subject, body),
            subject_title=find_job_title(subject),
            attachment_text=email.attachment_text,
        )


class ExtractionTier(Protocol):
    name: str

    async def attempt(self, email: EmailContent, ctx: TierContext) -> Optional[ExtractionResult]: ...


class FastPathTier:
    """Very short body and a subject-only pattern match: nothing deeper is worth running."""

    name = "fast_path"

    def __init__(self, max_body_chars: int):
        self.max_body_chars = max_body_chars

    async def attempt(self, email: EmailContent, ctx: TierContext) -> Optional[ExtractionResult]:
        if len(ctx.body.strip()) >= self.max_body_chars or not ctx.subject_title:
            return None
        logger.info(f"[Extraction] Fast path: {ctx.subject_title!r} from subject")
        return ExtractionResult(
            job_title=ctx.subject_title,
            confidence=FAST_PATH_CONFIDENCE,
            source_tier=SourceTier.FAST_PATH,
        )


class GenerativeTier:
    name = "generative"

    def __init__(self, generator: TextGenerator):
        self.extractor = GenerativeExtractor(generator)

    async def attempt(self, email: EmailContent, ctx: TierContext) -> Optional[ExtractionResult]:
        return await self.extractor.extract(ctx.subject, ctx.body, ctx.hint_title)


class StatisticalTier:
    """QA span for the title, zero-shot for category/experience. The span must be grounded."""

    name = "statistical"

    def __init__(self, models: StatisticalModels, max_context_chars: Optional[int] = None):
        self.classifier = StatisticalClassifier(models, max_context_chars)

    async def attempt(self, email: EmailContent, ctx: TierContext) -> Optional[ExtractionResult]:
        span = await self.classifier.extract_title_span(ctx.subject, ctx.body)
        if span.is_unclear:
            return None

        verdict = is_grounded(span.title, ctx.source_text)
        if not verdict.exists:
            logger.warning(
                f"[Extraction] Ungrounded QA span discarded: {span.title!r}. "
                f"Source preview: {ctx.source_text[:500]!r}"
            )
            return None

        text = " ".join(part for part in (ctx.subject, ctx.body, ctx.attachment_text) if part)
        classification = await self.classifier.classify(text)
        return ExtractionResult(
            job_title=span.title,
            category=classification.category,
            experience_status=classification.experience_status,
            confidence=span.confidence,
            source_tier=SourceTier.STATISTICAL,
        )


class PatternFallbackTier:
    """Best-effort pattern title (subject or body). Never claims any confidence."""

    name = "pattern_fallback"

    async def attempt(self, email: EmailContent, ctx: TierContext) -> Optional[ExtractionResult]:
        if not ctx.hint_title:
            return None
        return ExtractionResult(
            job_title=ctx.hint_title,
            category=JobCategory.UNCLEAR,
            confidence=0.0,
            source_tier=SourceTier.PATTERN_FALLBACK,
        )


def exhausted_result() -> ExtractionResult:
    return ExtractionResult(source_tier=SourceTier.EXHAUSTED)


def build_tiers(
    generator: Optional[TextGenerator] = None,
    statistical: Optional[StatisticalModels] = None,
    app_settings: Optional[Settings] = None,
) -> list[ExtractionTier]:
    """The escalation chain. Tiers whose collaborator is missing are left out."""
    s = app_settings or default_settings
    tiers: list[ExtractionTier] = [FastPathTier(s.fast_path_max_body_chars)]
    if generator is not None:
        tiers.append(GenerativeTier(generator))
    if statistical is not None:
        tiers.append(StatisticalTier(statistical, s.context_max_chars))
    tiers.append(PatternFallbackTier())
    return tiers


class TieredExtractor:
    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        statistical: Optional[StatisticalModels] = None,
        app_settings: Optional[Settings] = None,
        tiers: Optional[Sequence[ExtractionTier]] = None,
    ):
        self._settings = app_settings or default_settings
        self.tiers = list(tiers) if tiers is not None else build_tiers(generator, statistical, self._settings)
        self.timeout_s = self._settings.model_call_timeout_s
        self.title_max_chars = self._settings.title_max_chars

    def without_tiers(self, *names: str) -> "TieredExtractor":
        """Same settings and collaborators, minus the named tiers."""
        return TieredExtractor(app_settings=self._settings, tiers=[t for t in self.tiers if t.name not in names])

    async def _run_tier(self, tier: ExtractionTier, email: EmailContent, ctx: TierContext) -> Optional[ExtractionResult]:
        try:
            if self.timeout_s:
                return await asyncio.wait_for(tier.attempt(email, ctx), timeout=self.timeout_s)
            return await tier.attempt(email, ctx)
        except asyncio.TimeoutError as e:
            failure = CollaboratorFailure(tier.name, f"timed out after {self.timeout_s}s", e)
        except Exception as e:
            failure = CollaboratorFailure(tier.name, str(e) or type(e).__name__, e)
        logger.error(f"[Extraction] Tier {tier.name} failed, escalating: {failure}")
        return None

    def _finalize(self, result: ExtractionResult) -> ExtractionResult:
        title = result.job_title
        if title != UNCLEAR and len(title) > self.title_max_chars:
            title = title[: self.title_max_chars].rstrip()
        category = apply_category_overlay(title, result.category)
        if title == result.job_title and category == result.category:
            return result
        return result.model_copy(update={"job_title": title, "category": category})

    async def extract(self, email: EmailContent) -> ExtractionResult:
        """
        Run the tiers in order and return the first accepted result, overlaid with the
        keyword category. Returns an all-"unclear" result when every tier comes up empty.
        """
        try:
            ctx = TierContext.from_email(email)
        except Exception as e:
            logger.exception(f"[Extraction] Could not prepare email for extraction: {e}")
            return exhausted_result()

        for tier in self.tiers:
            result = await self._run_tier(tier, email, ctx)
            if result is None:
                continue
            final = self._finalize(result)
            logger.info(
                f"[Extraction] Accepted from {tier.name}: title={final.job_title!r}, "
                f"category={final.category.value}, confidence={final.confidence:.2f}"
            )
            return final

        logger.warning(f"[Extraction] All tiers exhausted for subject {ctx.subject[:80]!r}")
        return exhausted_result()


def build_default_extractor(app_settings: Optional[Settings] = None) -> TieredExtractor:
    """Extractor wired to the configured OpenAI generator and the shared transformers models."""
    from .llm_client import build_default_generator
    from .model_service import get_statistical_models

    s = app_settings or default_settings
    statistical = get_statistical_models() if s.statistical_tier_enabled else None
    return TieredExtractor(build_default_generator(s), statistical, s)
