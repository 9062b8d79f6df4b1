"""
Job title extraction from application-email phrasings.

Deterministic and side-effect free: an ordered list of templates is tried against the
subject first, then the body. The first template whose cleaned capture passes the
plausibility checks wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence


_WS_RE = re.compile(r"\s+")

_REPLY = r"(?:Re|Fwd|FW|回复|转发)\s*:\s*"

MIN_TITLE_CHARS = 3
MAX_TITLE_CHARS = 60

# Body matches must name an actual role; the subject templates are specific enough.
ROLE_KEYWORDS = (
    "developer",
    "engineer",
    "designer",
    "manager",
    "analyst",
    "consultant",
    "specialist",
    "recruiter",
    "recruitment",
    "intern",
    "lead",
    "architect",
    "tester",
    "programmer",
)


@dataclass(frozen=True)
class TitleTemplate:
    pattern: re.Pattern
    source: str  # e.g. "subject:application_for"


def _t(pattern: str, source: str, flags: int = re.I) -> TitleTemplate:
    return TitleTemplate(re.compile(pattern, flags), source)


SUBJECT_TEMPLATES: Sequence[TitleTemplate] = (
    # Indeed: "New Message from Jane Doe - React Developer"
    _t(r"New\s+Message\s+from\s+.+?\s*[–—-]\s*(.+?)$", "subject:indeed_message"),
    # Indeed: "[Action required] New application for Node Developer, Pune"
    _t(r"\[Action\s+required\]\s+New\s+application\s+for\s+(.+?)(?:,|\s*\d+\s*at|$)", "subject:indeed_action"),
    _t(r"^Application\s+for\s+(.+?)(?:\s*\(|\s+Role\b|\s+Position\b|$)", "subject:application_for"),
    _t(r"^New\s+application\s+(?:received\s+)?for\s+the\s+position\s+of\s+(.+?)(?:\s+at\s+|\s*\[|$)", "subject:new_application"),
    _t(r"^New\s+application\s+for\s+(?:the\s+)?(.+?)(?:,|\s+at\s+|\s*\[|$)", "subject:new_application_for"),
    _t(r"^Job\s+Opening\s*:\s*(.+?)(?:\s*\[|\s+at\s+|$)", "subject:job_opening"),
    _t(r"^Applying\s+for\s+(?:the\s+)?(.+?)(?:\s+(?:position|role|job)\b|$)", "subject:applying_for"),
    # Reply / forward variants
    _t(r"^" + _REPLY + r"Application\s+for\s+(.+?)(?:\s*\(|\s+Role\b|\s+Position\b|$)", "subject:reply_application_for"),
    _t(r"^" + _REPLY + r"New\s+application\s+(?:received\s+)?for\s+the\s+position\s+of\s+(.+?)(?:\s+at\s+|\s*\[|$)", "subject:reply_new_application"),
    _t(r"^" + _REPLY + r"Job\s+Opening\s*:\s*(.+?)(?:\s*\[|\s+at\s+|$)", "subject:reply_job_opening"),
    _t(r"^" + _REPLY + r"Applying\s+for\s+(?:the\s+)?(.+?)(?:\s+(?:position|role|job)\b|$)", "subject:reply_applying_for"),
    _t(r"^" + _REPLY + r"(.+?)\s+(?:position|role|application)$", "subject:reply_title_suffix"),
    # "React Developer - Immediate Joiner"
    _t(r"^(.+?)\s*[–—-]\s*Immediate\s+Joiner", "subject:immediate_joiner"),
    # "Submission of Resume - QA Tester"
    _t(r"Submission\s+of\s+.+?[–—-]\s*(.+?)$", "subject:submission_of"),
)

_BODY_END = r"(?:\s+(?:position|role|job|post|opening)\b|[.,;!?](?:\s|$)|$)"

BODY_TEMPLATES: Sequence[TitleTemplate] = (
    _t(r"(?:I\s+am|I'm|I’m)\s+(?:applying|interested)\s+(?:for|in)\s+(?:the\s+)?(.+?)" + _BODY_END, "body:i_am_applying", re.I | re.M),
    _t(r"(?:I\s+would\s+like\s+to\s+confirm|applying)\s+for\s+(?:the\s+)?(.+?)" + _BODY_END, "body:confirm_for", re.I | re.M),
    _t(r"(?:position|role|post)\s+of\s+(?:the\s+)?(.+?)(?:\s+(?:position|role|job|at)\b|[.,;!?](?:\s|$)|$)", "body:position_of", re.I | re.M),
    _t(r"(?:applying|applied)\s+for\s+(?:the\s+)?(.+?)" + _BODY_END, "body:applied_for", re.I | re.M),
)


def _collapse_ws(s: str) -> str:
    return _WS_RE.sub(" ", (s or "").strip())


def strip_reply_prefix(subject: Optional[str]) -> str:
    """Remove leading "Re:", "Fwd:", "FW:" (repeated) from a subject."""
    s = (subject or "").strip()
    prev = None
    while prev != s:
        prev = s
        s = re.sub(r"^" + _REPLY, "", s, flags=re.I).strip()
    return s


def clean_job_title(raw: Optional[str]) -> Optional[str]:
    """
    Clean a captured span while keeping it close to the email's wording.
    Drops parenthetical suffixes, a leading "for"/"the", trailing
    "job/role/position" and trailing "at <company>".
    """
    if not raw:
        return None
    s = _collapse_ws(raw)
    s = s.strip(" \t\r\n\"'“”‘’`")

    s = re.sub(r"\s*\(.*\)\s*$", "", s)
    s = re.sub(r"^for\s+", "", s, flags=re.I)
    s = re.sub(r"^the\s+", "", s, flags=re.I)
    s = re.sub(r"\s+(?:job|role|position)$", "", s, flags=re.I)
    s = re.sub(r"\s+at\s+.+$", "", s, flags=re.I)

    s = s.strip(" \t\r\n\"'“”‘’`").rstrip(" .,:;|/\\-–—")
    s = _collapse_ws(s)
    return s or None


def has_role_keyword(title: str) -> bool:
    lowered = title.lower()
    return any(kw in lowered for kw in ROLE_KEYWORDS)


def is_plausible_job_title(title: Optional[str], *, require_role_keyword: bool = False) -> bool:
    if not title:
        return False
    if not (MIN_TITLE_CHARS <= len(title) <= MAX_TITLE_CHARS):
        return False
    if require_role_keyword and not has_role_keyword(title):
        return False
    return True


def _first_match(
    text: str,
    templates: Sequence[TitleTemplate],
    *,
    require_role_keyword: bool,
) -> Optional[str]:
    for template in templates:
        m = template.pattern.search(text)
        if not m or not m.group(1):
            continue
        title = clean_job_title(m.group(1))
        if is_plausible_job_title(title, require_role_keyword=require_role_keyword):
            return title
    return None


def find_job_title(subject: Optional[str], body: Optional[str] = None) -> Optional[str]:
    """
    Return the first title matched by the subject templates, then the body templates.
    Returns None on no match; never raises.
    """
    subject = _collapse_ws(subject or "")
    title = _first_match(subject, SUBJECT_TEMPLATES, require_role_keyword=False) if subject else None
    if title:
        return title
    if body:
        return _first_match(body, BODY_TEMPLATES, require_role_keyword=True)
    return None
