"""
Statistical tier glue: extractive QA for the title span, zero-shot classification for
category and experience level.

Explicit textual markers ("5 years of experience", "fresher") always pre-empt the
zero-shot experience label, which is unreliable on short text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .collaborators import StatisticalModels
from .config import settings
from .schemas import UNCLEAR, ExperienceStatus, JobCategory

logger = logging.getLogger(__name__)

JOB_CATEGORY_LABELS = (
    "Software Developer or Engineer",
    "Web Designer or UI/UX Designer",
    "Recruiter or HR",
    "Sales or Marketing",
    "Other",
)

EXPERIENCE_LABELS = (
    "Experienced professional with years of work experience",
    "Fresh graduate or entry level candidate or intern",
    "Cannot determine experience level",
)

TITLE_QUESTIONS = (
    "What job position is mentioned?",
    "What role is the person applying for?",
)

# Answers that echo the question or the context scaffolding are not titles.
_QUESTION_WORDS = ("what", "which", "who", "job title", "mentioned", "applying for")
_SCAFFOLD_ANSWERS = {"the email subject is", "the email body says"}

MIN_ANSWER_CHARS = 3
MAX_ANSWER_CHARS = 50
MIN_ANSWER_SCORE = 0.05
MIN_CONTEXT_CHARS = 20
MIN_TEXT_CHARS = 10
CATEGORY_SCORE_THRESHOLD = 0.3
EXPERIENCE_SCORE_THRESHOLD = 0.5
EXPERIENCE_MIN_TEXT_CHARS = 100

_YEARS_EXPERIENCE_RE = re.compile(r"\b(?:[2-9]|\d{2,})\+?\s*(?:years?|yrs?)\s*(?:of\s*)?experience", re.I)
_ONE_YEAR_EXPERIENCE_RE = re.compile(r"\b1\s*(?:year|yr)\s*(?:of\s*)?experience", re.I)
_FRESHER_RE = re.compile(
    r"fresher|fresh\s+graduate|entry[\s-]level|internship|\bintern\b|recently\s+completed|just\s+graduated",
    re.I,
)


@dataclass(frozen=True)
class TitleSpan:
    title: str
    confidence: float

    @property
    def is_unclear(self) -> bool:
        return self.title.strip().lower() == UNCLEAR


@dataclass(frozen=True)
class Classification:
    category: JobCategory
    experience_status: ExperienceStatus
    category_confidence: float
    experience_confidence: float


UNCLEAR_SPAN = TitleSpan(UNCLEAR, 0.0)


def category_from_label(label: str) -> JobCategory:
    if "Developer" in label or "Engineer" in label:
        return JobCategory.DEVELOPER
    if "Designer" in label:
        return JobCategory.WEB_DESIGNER
    if "Recruiter" in label or "HR" in label:
        return JobCategory.RECRUITER
    if "Sales" in label or "Marketing" in label:
        return JobCategory.SALES_MARKETING
    return JobCategory.UNCLEAR


def experience_from_markers(text: str) -> Optional[ExperienceStatus]:
    """Regex evidence for experience, or None when the text has no explicit marker."""
    if _YEARS_EXPERIENCE_RE.search(text):
        return ExperienceStatus.EXPERIENCED
    if _FRESHER_RE.search(text):
        return ExperienceStatus.FRESHER
    if _ONE_YEAR_EXPERIENCE_RE.search(text):
        # TODO: confirm with the hiring team whether a single year should count as experienced.
        return ExperienceStatus.EXPERIENCED
    return None


def _is_echo(answer: str) -> bool:
    lowered = answer.lower()
    if lowered in _SCAFFOLD_ANSWERS:
        return True
    return sum(1 for w in _QUESTION_WORDS if w in lowered) >= 2


def build_title_context(subject: str, body: str, max_body_chars: int) -> str:
    parts = []
    if subject:
        parts.append(f'The email subject is: "{subject}".')
    if body and body.strip():
        parts.append(f"The email body says: {body[:max_body_chars]}")
    return " ".join(parts)


class StatisticalClassifier:
    def __init__(self, models: StatisticalModels, max_context_chars: Optional[int] = None):
        self.models = models
        self.max_context_chars = max_context_chars or settings.context_max_chars

    async def extract_title_span(self, subject: str, body: str) -> TitleSpan:
        context = build_title_context(subject, body, self.max_context_chars)
        if len(context) < MIN_CONTEXT_CHARS:
            return UNCLEAR_SPAN

        best_answer, best_score = "", 0.0
        for question in TITLE_QUESTIONS:
            result = await self.models.answer_question(context, question)
            answer = (result.answer or "").strip()
            if not (MIN_ANSWER_CHARS <= len(answer) <= MAX_ANSWER_CHARS):
                continue
            if _is_echo(answer):
                continue
            if result.score > best_score:
                best_answer, best_score = answer, result.score

        if best_answer and best_score > MIN_ANSWER_SCORE:
            return TitleSpan(best_answer, best_score)
        return UNCLEAR_SPAN

    async def classify(self, text: str) -> Classification:
        sample = (text or "")[: self.max_context_chars]
        if len(sample.strip()) < MIN_TEXT_CHARS:
            return Classification(JobCategory.UNCLEAR, ExperienceStatus.UNCLEAR, 0.0, 0.0)

        category_ranking = await self.models.classify(sample, JOB_CATEGORY_LABELS)
        experience_ranking = await self.models.classify(sample, EXPERIENCE_LABELS)

        top_category, category_score = category_ranking[0] if category_ranking else ("", 0.0)
        top_experience, experience_score = experience_ranking[0] if experience_ranking else ("", 0.0)

        category = JobCategory.UNCLEAR
        if category_score > CATEGORY_SCORE_THRESHOLD:
            category = category_from_label(top_category)

        experience = experience_from_markers(sample)
        if experience is None:
            experience = ExperienceStatus.UNCLEAR
            if len(sample) > EXPERIENCE_MIN_TEXT_CHARS and experience_score > EXPERIENCE_SCORE_THRESHOLD:
                if top_experience.startswith("Experienced"):
                    experience = ExperienceStatus.EXPERIENCED
                elif top_experience.startswith("Fresh") or "entry level" in top_experience:
                    experience = ExperienceStatus.FRESHER

        logger.debug(
            f"Zero-shot: category={top_category!r} ({category_score:.2f}), "
            f"experience={top_experience!r} ({experience_score:.2f}) -> {category.value}/{experience.value}"
        )
        return Classification(category, experience, category_score, experience_score)
