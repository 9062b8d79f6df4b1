"""
Grounding checks: does an extracted value actually appear in the email it came from?

Every model-produced title goes through `is_grounded` before it is trusted. A value
that is confident but not grounded is discarded, not down-weighted.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from .schemas import GroundingVerdict, MatchKind

_WS_RE = re.compile(r"\s+")
_COMPOSE_RE = re.compile(r"[/&]")

# Acceptance floors for generative output: lenient when the title is in the source,
# strict when it is not.
GROUNDED_CONFIDENCE_FLOOR = 0.1
UNGROUNDED_CONFIDENCE_FLOOR = 0.7


def normalize_text(s: Optional[str]) -> str:
    """Lowercase and collapse whitespace."""
    return _WS_RE.sub(" ", (s or "").lower()).strip()


def is_grounded(candidate: Optional[str], source_text: Optional[str]) -> GroundingVerdict:
    """
    Exact when the normalized candidate is a substring of the normalized source.
    Partial-composed when the candidate contains "/" or "&" and every non-empty part
    is independently present (e.g. "Frontend/Backend Developer").
    """
    value = normalize_text(candidate)
    source = normalize_text(source_text)
    if not value or not source:
        return GroundingVerdict(exists=False, match_kind=MatchKind.NONE)

    if value in source:
        return GroundingVerdict(exists=True, match_kind=MatchKind.EXACT)

    if _COMPOSE_RE.search(value):
        parts = [p.strip() for p in _COMPOSE_RE.split(value)]
        parts = [p for p in parts if p]
        if parts and all(p in source for p in parts):
            return GroundingVerdict(exists=True, match_kind=MatchKind.PARTIAL_COMPOSED)

    return GroundingVerdict(exists=False, match_kind=MatchKind.NONE)


def acceptance_floor(verdict: GroundingVerdict) -> float:
    return GROUNDED_CONFIDENCE_FLOOR if verdict.exists else UNGROUNDED_CONFIDENCE_FLOOR


def effective_trust(confidence: float, verdict: GroundingVerdict) -> float:
    """Stated confidence if grounded, else zero."""
    if not verdict.exists:
        return 0.0
    return min(max(float(confidence or 0.0), 0.0), 1.0)


def is_trusted(confidence: float, verdict: GroundingVerdict) -> bool:
    return verdict.exists and effective_trust(confidence, verdict) >= acceptance_floor(verdict)


def _keyword_re(keyword: str) -> re.Pattern:
    # Keyword must not sit inside a longer alphanumeric token ("cv" vs "cvs").
    return re.compile(r"(?<![a-z0-9])" + re.escape(normalize_text(keyword)) + r"(?![a-z0-9])")


def find_keywords(text: Optional[str], keywords: Iterable[str]) -> list[str]:
    """Return the keywords present in text (normalized, token-bounded)."""
    source = normalize_text(text)
    if not source:
        return []
    return [kw for kw in keywords if _keyword_re(kw).search(source)]


def contains_keyword(
    text: Optional[str],
    keywords: Iterable[str],
    patterns: Iterable[str] = (),
) -> bool:
    """True if any keyword (token-bounded) or any regex pattern matches the text."""
    if find_keywords(text, keywords):
        return True
    source = normalize_text(text)
    return any(re.search(p, source, re.I) for p in patterns)
