"""
Generative extraction: one structured-extraction prompt to a language model, strict
parse-then-validate of its answer, and a grounding gate on the returned title.

The model may fabricate titles, so nothing it says about the title is trusted until
`is_grounded` finds it in the subject or body.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import ValidationError

from .collaborators import GenerationOptions, TextGenerator
from .config import settings
from .grounding import acceptance_floor, is_grounded, is_trusted
from .schemas import (
    UNCLEAR,
    ExtractionResult,
    ModelExtraction,
    SourceTier,
    normalize_category,
    normalize_experience,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a job-application parser. Return strict JSON only."


@dataclass(frozen=True)
class ParsedExtraction:
    value: ModelExtraction


@dataclass(frozen=True)
class ParseError:
    reason: str


@dataclass(frozen=True)
class SchemaError:
    reason: str


ParseOutcome = Union[ParsedExtraction, ParseError, SchemaError]


def build_extraction_prompt(subject: str, body: str, hint_title: Optional[str] = None) -> str:
    hint = f"'{hint_title}'" if hint_title else "None"
    return f"""Analyze this job application email and extract the following information.

EMAIL SUBJECT (cleaned): {(subject or '').strip()}
EMAIL BODY: {(body or '').strip()}
HINT_TITLE: {hint}

CRITICAL RULES:
1. Search BOTH subject AND body for the job title.
2. ONLY extract a job title if it EXPLICITLY appears in the subject or body.
3. If no clear job title is mentioned, return "unclear" - DO NOT make up or guess a title.
4. Clean the job title by removing prefixes like "Application for", "Resume for", "Job for", and trailing noise like "Position", "Role", "at Company".
5. HINT_TITLE was found by simple rules; confirm it if it is right, override it if the email names a different title.
6. If job_title is "unclear", confidence must be below 0.5.

CATEGORY RULES (based on the job title):
- developer, engineer, programmer, backend, frontend, full-stack, devops, etc. -> "Developer"
- designer, ui/ux, web design, figma, creative -> "Web Designer"
- recruiter, hr, talent acquisition, hiring -> "Recruiter"
- sales, marketing, business development, growth, seo -> "Sales/Marketing"
- otherwise -> "unclear"

Return ONLY a JSON object in this exact format (no markdown, no explanation):
{{
  "job_title": "the extracted job title or unclear",
  "experience_status": "one of: experienced, fresher, unclear",
  "category": "one of: Developer, Web Designer, Recruiter, Sales/Marketing, unclear",
  "currentCTC": "string or unclear",
  "expectedCTC": "string or unclear",
  "workExp": "string or unclear",
  "interviewTime": "string or unclear",
  "location": "string or unclear",
  "agreement": "string or unclear",
  "confidence": 0.0,
  "reasoning": "brief explanation"
}}"""


def _clean_json_response(text: str) -> str:
    """Clean markdown code blocks from JSON response."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text).replace("```", "").strip()
    return text


def find_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} span, honoring string literals, or None."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this brace; try the next one.
        start = text.find("{", start + 1)
    return None


def strip_trailing_commas(raw: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", raw)


def parse_model_output(text: str) -> ParseOutcome:
    candidate = find_first_json_object(_clean_json_response(text))
    if candidate is None:
        return ParseError("no JSON object in model output")
    try:
        data = json.loads(strip_trailing_commas(candidate))
    except json.JSONDecodeError as e:
        return ParseError(f"invalid JSON: {e}")
    if not isinstance(data, dict):
        return SchemaError("model output is not a JSON object")
    try:
        return ParsedExtraction(ModelExtraction.model_validate(data))
    except ValidationError as e:
        return SchemaError(f"unexpected shape: {e.errors()[0].get('msg', e)}")


def _source_preview(subject: str, body: str, limit: int = 500) -> str:
    return f"{subject} {body}"[:limit].replace("\n", " ")


class GenerativeExtractor:
    def __init__(self, generator: TextGenerator, options: Optional[GenerationOptions] = None):
        self.generator = generator
        self.options = options or GenerationOptions(
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            system_prompt=SYSTEM_PROMPT,
        )

    async def extract(self, subject: str, body: str, hint_title: Optional[str] = None) -> Optional[ExtractionResult]:
        """
        Returns an ExtractionResult only for a parsed, grounded, sufficiently confident
        answer; None in every other case (malformed output, unclear or ungrounded title).
        Collaborator exceptions propagate to the caller's tier boundary.
        """
        prompt = build_extraction_prompt(subject, body, hint_title)
        response_text = await self.generator.generate(prompt, self.options)

        outcome = parse_model_output(response_text)
        if isinstance(outcome, (ParseError, SchemaError)):
            logger.warning(f"[Extraction] Malformed model output ({type(outcome).__name__}): {outcome.reason}")
            return None

        parsed = outcome.value
        title = (parsed.job_title or "").strip()
        if not title or title.lower() == UNCLEAR:
            logger.info(f"[Extraction] Model returned no title. Reasoning: {parsed.reasoning or 'N/A'}")
            return None

        verdict = is_grounded(title, f"{subject} {body}")
        confidence = parsed.confidence
        logger.info(
            f"[Extraction] Model title: {title!r}, confidence: {confidence}, "
            f"grounded: {verdict.match_kind.value}"
        )
        if not is_trusted(confidence, verdict):
            if not verdict.exists:
                logger.warning(
                    f"[Extraction] Ungrounded claim discarded: {title!r} not found in source. "
                    f"Source preview: {_source_preview(subject, body)!r}"
                )
            else:
                logger.warning(
                    f"[Extraction] Low confidence ({confidence} < {acceptance_floor(verdict)}) for {title!r}"
                )
            return None

        return ExtractionResult(
            job_title=title,
            category=normalize_category(parsed.category),
            experience_status=normalize_experience(parsed.experience_status),
            current_ctc=parsed.current_ctc,
            expected_ctc=parsed.expected_ctc,
            work_exp=parsed.work_exp,
            interview_time=parsed.interview_time,
            location=parsed.location,
            agreement=parsed.agreement,
            confidence=confidence,
            source_tier=SourceTier.GENERATIVE,
        )
