"""
Key details from an applicant's reply to the questionnaire.

Applicants labelled "Stage1 Interview" answer with position, CTCs, work experience,
location and interview availability, usually as "Label: value" lines. A regex pass
reads those; the tiered extractor only runs when position or work experience is still
missing.
"""
import logging
import re
from typing import Optional

from .category_overlay import apply_category_overlay
from .job_title_extraction import clean_job_title, find_job_title, is_plausible_job_title
from .schemas import UNCLEAR, ExperienceStatus, ExtractionResult, JobCategory, SourceTier
from .statistical_classifier import experience_from_markers

logger = logging.getLogger(__name__)

REQUIRED_KEY_DETAILS = ("job_title", "work_exp")
KEY_DETAIL_FIELDS = ("job_title", "current_ctc", "expected_ctc", "work_exp", "interview_time", "location", "agreement")

# Values applicants (and models) use for "I did not answer this"
NOT_PROVIDED = {"unclear", "not provided", "n/a", "na", "nil", "none", "-", "--", "tbd"}
MAX_VALUE_CHARS = 60

_VALUE = r"\s*(?:is|=|:|-|–)?\s*([^\n;]+)"
_FIELD_PATTERNS = {
    "job_title": [
        r"\b(?:position|role|job\s+title|applied\s+(?:for|position))\s*(?:applied\s+for)?\s*[:\-–]\s*([^\n;,]+)",
    ],
    "current_ctc": [
        r"current\s+(?:ctc|salary|package|compensation)" + _VALUE,
        r"\bcctc\b" + _VALUE,
    ],
    "expected_ctc": [
        r"expected\s+(?:ctc|salary|package|compensation)" + _VALUE,
        r"\bectc\b" + _VALUE,
    ],
    "work_exp": [
        r"(?:total\s+|work\s+|relevant\s+)?(?:work\s+)?exp(?:erience)?\s*[:\-–=]\s*([^\n;]+)",
        r"\b(\d+(?:\.\d+)?\+?\s*(?:years?|yrs?)(?:\s+(?:and\s+)?\d+\s*months?)?)(?:\s+of)?\s+(?:work\s+|total\s+|relevant\s+)?experience",
        r"\b(fresher)\b",
    ],
    "interview_time": [
        r"(?:interview\s+(?:time|slot|availability)|available\s+for\s+(?:an?\s+)?interview(?:\s+on)?)" + _VALUE,
    ],
    "location": [
        r"\b(?:current\s+|preferred\s+)?location" + _VALUE,
        r"(?:based|located)\s+(?:in|at)\s+([A-Z][^\n;,.]+)",
    ],
    "agreement": [
        r"(?:agreement|bond|terms\s+and\s+conditions)" + _VALUE,
        r"\b(i\s+(?:agree|accept)\b[^\n.;]*)",
    ],
}
_COMPILED = {
    name: [re.compile(p, re.I) for p in patterns] for name, patterns in _FIELD_PATTERNS.items()
}


def clean_value(raw: Optional[str]) -> str:
    value = re.sub(r"\s+", " ", raw or "").strip(" \t\"'`.,:")
    if not value or value.lower() in NOT_PROVIDED:
        return UNCLEAR
    return value[:MAX_VALUE_CHARS].rstrip()


def is_provided(value: Optional[str]) -> bool:
    return clean_value(value) != UNCLEAR


def _match_field(name: str, text: str) -> str:
    for pattern in _COMPILED[name]:
        m = pattern.search(text)
        if m:
            value = clean_value(m.group(1))
            if value != UNCLEAR:
                return value
    return UNCLEAR


def _position(subject: str, text: str) -> str:
    labelled = _match_field("job_title", text)
    if labelled != UNCLEAR:
        cleaned = clean_job_title(labelled)
        if cleaned and is_plausible_job_title(cleaned):
            return cleaned
    return find_job_title(subject, text) or UNCLEAR


def extract_key_details(subject: str, body: str, context: Optional[str] = None) -> ExtractionResult:
    """
    Regex pass over the reply (and the original application as context). Every value
    is copied from the text, so nothing here needs a grounding check.
    """
    text = "\n".join(part for part in (body, context) if part)
    values = {name: _match_field(name, text) for name in KEY_DETAIL_FIELDS if name != "job_title"}
    title = _position(subject or "", text)
    return ExtractionResult(
        job_title=title,
        category=apply_category_overlay(title, JobCategory.UNCLEAR),
        experience_status=experience_from_markers(text) or ExperienceStatus.UNCLEAR,
        confidence=0.0,
        source_tier=SourceTier.PATTERN_FALLBACK,
        **values,
    )


def missing_key_details(details: ExtractionResult) -> list[str]:
    return [name for name in REQUIRED_KEY_DETAILS if not is_provided(getattr(details, name))]


def merge_key_details(primary: ExtractionResult, fallback: ExtractionResult) -> ExtractionResult:
    """Fill the primary result's unanswered key details from the fallback."""
    update = {
        name: getattr(fallback, name)
        for name in KEY_DETAIL_FIELDS
        if not is_provided(getattr(primary, name)) and is_provided(getattr(fallback, name))
    }
    if primary.experience_status == ExperienceStatus.UNCLEAR and fallback.experience_status != ExperienceStatus.UNCLEAR:
        update["experience_status"] = fallback.experience_status
    if not update:
        return primary
    if "job_title" in update:
        update["category"] = apply_category_overlay(update["job_title"], primary.category)
    logger.debug(f"[KeyDetails] Filled {sorted(update)} from {fallback.source_tier.value}")
    return primary.model_copy(update=update)
