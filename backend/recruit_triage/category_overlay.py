"""
Keyword overlay for job category.

Applied last, whichever tier produced the title: a keyword hit in the title overrides
the category any upstream tier proposed, so category stays auditable.
"""
import re
from typing import Optional

from .schemas import UNCLEAR, JobCategory

# Checked in this order; first hit wins ("frontend" is a Developer keyword first).
CATEGORY_KEYWORDS: tuple[tuple[JobCategory, tuple[str, ...]], ...] = (
    (
        JobCategory.DEVELOPER,
        (
            "developer", "engineer", "programmer", "backend", "back-end", "frontend",
            "front-end", "full-stack", "fullstack", "full stack", "node", "nodejs",
            "node.js", "react", "angular", "vue", "flutter", "python", "java",
            "javascript", "typescript", "go", "golang", "rust", "c++", "c#", "php",
            "laravel", "mobile", "app", "software", "devops", "cloud", "aws", "azure",
            "gcp", "stack", "mern", "mean",
        ),
    ),
    (
        JobCategory.WEB_DESIGNER,
        (
            "designer", "ui/ux", "ux/ui", "ui", "ux", "web design", "css", "html",
            "figma", "sketch", "adobe", "creative", "graphic", "motion", "illustrator",
        ),
    ),
    (
        JobCategory.RECRUITER,
        (
            "recruiter", "recruitment", "hr", "talent acquisition", "talent",
            "hiring", "staffing", "human resource", "human resources",
        ),
    ),
    (
        JobCategory.SALES_MARKETING,
        (
            "sales", "marketing", "business development", "bde", "growth",
            "business analyst", "seo", "content", "copywriter", "social media", "ads",
        ),
    ),
)

_PATTERNS = tuple(
    (
        category,
        # Token-bounded, with an optional plural ("developers", "apps").
        re.compile(
            "|".join(r"(?<![a-z0-9])" + re.escape(kw) + r"s?(?![a-z0-9])" for kw in keywords)
        ),
    )
    for category, keywords in CATEGORY_KEYWORDS
)


def category_for_title(title: Optional[str]) -> Optional[JobCategory]:
    """Category implied by the title's keywords, or None if nothing matches."""
    lowered = (title or "").lower()
    if not lowered or lowered == UNCLEAR:
        return None
    for category, pattern in _PATTERNS:
        if pattern.search(lowered):
            return category
    return None


def apply_category_overlay(title: Optional[str], current: JobCategory) -> JobCategory:
    return category_for_title(title) or current
