"""
Resume / cover letter presence detection.

Layered evidence, cheapest first, short-circuiting on the first positive layer. The
signals feed routing only; they are never treated as extraction truth.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional, Sequence

from .collaborators import AttachmentDecoder, AttachmentFetcher, AttachmentRef
from .document_reader import decode_attachment_to_text
from .email_parts import extract_resume_link
from .grounding import contains_keyword, find_keywords, normalize_text
from .schemas import DocumentSignal, Evidence

logger = logging.getLogger(__name__)

RESUME_FILENAME_KEYWORDS = ("resume", "cv", "curriculum vitae", "profile", "application", "bio", "portfolio")

RESUME_BODY_PHRASES = (
    "resume attached",
    "cv attached",
    "please find my resume",
    "please find attached my resume",
    "attached is my resume",
    "attached my resume",
    "find attached resume",
    "find attached cv",
    "resume is attached",
    "cv is attached",
    "attached resume",
    "attached cv",
)

RESUME_CONTENT_INDICATORS = (
    "experience", "work history", "education", "skills", "projects", "summary",
    "objective", "contact", "achievements", "certifications", "technical skills",
    "professional profile", "employment", "academic", "qualification", "university",
    "college", "degree", "github", "linkedin", "portfolio", "technologies",
)
MIN_RESUME_INDICATORS = 4
RESUME_LITERALS = ("curriculum vitae", "resume")

RESUME_GENERIC_KEYWORDS = ("resume", "cv", "curriculum vitae")

SNIFFABLE_EXTENSIONS = re.compile(r"\.(pdf|docx|doc)$", re.I)

COVER_LETTER_FILENAME_KEYWORDS = ("cover letter", "coverletter", "cover_letter", "application letter", "motivation letter")

COVER_LETTER_BODY_PHRASES = (
    "cover letter", "dear hiring manager", "dear sir or madam", "dear team",
    "dear recruiter", "i am writing to", "i am excited to apply", "i am reaching out",
    "i am interested in", "thank you for considering", "thank you for your time",
    "sincerely yours", "best regards", "with hands-on experience in",
    "i bring to the table", "i am eager to", "i am passionate about",
    "i am confident that", "i would love the opportunity", "i am looking forward to",
    "contribute to your team", "add value to your organization",
    "aligns with my career goals", "proficient in", "expertise in", "skilled at",
    "experience working with", "experience includes", "hands-on knowledge of",
    "demonstrated ability in", "proven track record", "strong background in",
    "solid understanding of", "led the development", "successfully launched",
    "real-world projects", "team-oriented", "detail-oriented", "self-motivated",
    "fast learner", "problem-solving", "communication skills",
    "your company's mission", "your company’s mission", "your development team",
    "your engineering culture", "your commitment to excellence",
)
COVER_LETTER_BODY_PATTERNS = (r"with \d+\+? years of experience",)
MIN_COVER_LETTER_CHARS = 100
MIN_COVER_LETTER_WORDS = 20

# Unfilled template placeholders. More than MAX_PLACEHOLDERS means generated boilerplate.
TEMPLATE_PLACEHOLDERS = (
    "[job title]", "[company name]", "[candidate name]", "[your name]", "[position]",
    "[category]", "[experience status]", "[job description]", "[responsibilities]",
    "[skills]", "[qualifications]", "[salary range]", "[location]", "[industry]",
    "[job type]", "[company size]", "[company website]", "[company email]",
    "[company phone]", "[company address]", "[hiring manager name]",
    "[hiring manager email]", "[hiring manager phone]", "[hiring manager title]",
    "[recruiter name]", "[recruiter email]", "[recruiter phone]", "[recruiter title]",
    "[company mission]", "[company values]", "[company culture]", "[platform]",
    "[your email]", "[your phone number]", "[date]", "[address]",
)
MAX_PLACEHOLDERS = 2


def count_template_placeholders(body: Optional[str]) -> int:
    lowered = normalize_text(body)
    return sum(1 for p in TEMPLATE_PLACEHOLDERS if p in lowered)


def looks_like_resume_text(text: Optional[str]) -> bool:
    lowered = normalize_text(text)
    if not lowered:
        return False
    if any(literal in lowered for literal in RESUME_LITERALS):
        return True
    return len(find_keywords(lowered, RESUME_CONTENT_INDICATORS)) >= MIN_RESUME_INDICATORS


def filename_has_keyword(filename: Optional[str], keywords: Sequence[str]) -> Optional[str]:
    """First keyword found anywhere in the filename ("JaneDoeResume.pdf", "MyCV.pdf")."""
    lowered = normalize_text(filename)
    if not lowered:
        return None
    spaced = re.sub(r"[_\-.]+", " ", lowered)
    for keyword in keywords:
        if keyword in lowered or keyword in spaced:
            return keyword
    return None


async def _sniff_attachments(
    attachments: Sequence[AttachmentRef],
    fetch_attachment: Optional[AttachmentFetcher],
    decode_attachment: AttachmentDecoder,
) -> Optional[str]:
    """Filename of the first PDF/DOC/DOCX attachment whose text reads like a resume."""
    for ref in attachments:
        if not SNIFFABLE_EXTENSIONS.search(ref.filename or ""):
            continue
        try:
            text = ref.text
            if text is None:
                data = ref.data
                if data is None:
                    if fetch_attachment is None or not ref.attachment_id or not ref.message_id:
                        continue
                    data = await fetch_attachment(ref.message_id, ref.attachment_id)
                if not data:
                    continue
                text = await asyncio.to_thread(decode_attachment, ref.filename, data)
            if looks_like_resume_text(text):
                return ref.filename
        except Exception as e:
            logger.error(f"[ResumeDetection] Error checking attachment content for {ref.filename}: {e}")
    return None


async def detect_resume(
    body: Optional[str],
    attachments: Sequence[AttachmentRef] = (),
    *,
    resume_link: Optional[str] = None,
    fetch_attachment: Optional[AttachmentFetcher] = None,
    decode_attachment: AttachmentDecoder = decode_attachment_to_text,
) -> DocumentSignal:
    body = body or ""

    link = resume_link or extract_resume_link(body)
    if link:
        return DocumentSignal(present=True, evidence=Evidence.EXPLICIT_LINK, detail=link)

    for ref in attachments:
        if filename_has_keyword(ref.filename, RESUME_FILENAME_KEYWORDS):
            return DocumentSignal(present=True, evidence=Evidence.FILENAME_KEYWORD, detail=ref.filename)

    phrases = find_keywords(body, RESUME_BODY_PHRASES)
    if phrases:
        return DocumentSignal(present=True, evidence=Evidence.BODY_KEYWORD, detail=phrases[0])

    sniffed = await _sniff_attachments(attachments, fetch_attachment, decode_attachment)
    if sniffed:
        return DocumentSignal(present=True, evidence=Evidence.CONTENT_SNIFFED, detail=sniffed)

    generic = find_keywords(body, RESUME_GENERIC_KEYWORDS)
    if generic:
        return DocumentSignal(present=True, evidence=Evidence.GENERIC_KEYWORD, detail=generic[0])

    return DocumentSignal(present=False)


def detect_cover_letter(body: Optional[str], attachment_filenames: Sequence[str] = ()) -> DocumentSignal:
    body = body or ""

    placeholders = count_template_placeholders(body)
    if placeholders > MAX_PLACEHOLDERS:
        return DocumentSignal(
            present=False,
            evidence=Evidence.TEMPLATE_REJECTED,
            detail=f"{placeholders} template placeholders",
        )

    for filename in attachment_filenames:
        if filename_has_keyword(filename, COVER_LETTER_FILENAME_KEYWORDS):
            return DocumentSignal(present=True, evidence=Evidence.FILENAME_KEYWORD, detail=filename)

    if len(body) >= MIN_COVER_LETTER_CHARS and len(body.split()) >= MIN_COVER_LETTER_WORDS:
        phrases = find_keywords(body, COVER_LETTER_BODY_PHRASES)
        if phrases:
            return DocumentSignal(present=True, evidence=Evidence.BODY_KEYWORD, detail=phrases[0])
        if contains_keyword(body, (), COVER_LETTER_BODY_PATTERNS):
            return DocumentSignal(present=True, evidence=Evidence.BODY_KEYWORD, detail="years of experience")

    return DocumentSignal(present=False)


async def has_resume(body: Optional[str], attachments: Sequence[AttachmentRef] = (), **kwargs) -> bool:
    return bool(await detect_resume(body, attachments, **kwargs))


def has_cover_letter(body: Optional[str], attachment_filenames: Sequence[str] = ()) -> bool:
    return bool(detect_cover_letter(body, attachment_filenames))
