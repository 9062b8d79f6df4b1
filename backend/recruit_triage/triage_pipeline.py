"""
LangGraph-powered application triage pipeline.

This module implements a small graph for:
1. Resume / cover letter presence detection
2. Field extraction (tiered, grounded), only when a document is present
3. Routing: which reply template to send and which labels to move

Sending the reply and moving labels belong to the mailbox integration; the pipeline
only decides.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from .collaborators import AttachmentDecoder, AttachmentFetcher, AttachmentRef, EmailService
from .config import settings
from .document_detection import detect_cover_letter, detect_resume
from .document_reader import decode_attachment_to_text
from .email_parts import list_attachments, message_to_email_content
from .key_details import REQUIRED_KEY_DETAILS, extract_key_details, merge_key_details, missing_key_details
from .schemas import (
    UNCLEAR,
    EmailContent,
    EmailInput,
    Evidence,
    ExperienceStatus,
    ExtractionResult,
    JobCategory,
    TriageResult,
)
from .services.dedup_cache import claim_message, release_message
from .tiered_extraction import FastPathTier, TieredExtractor, build_default_extractor, exhausted_result

logger = logging.getLogger(__name__)


# =============================================================================
# Routing
# =============================================================================

class NextAction:
    SEND_QUESTIONNAIRE = "send_questionnaire"
    REQUEST_MISSING_INFO = "request_missing_info"
    MARK_UNCLEAR = "mark_unclear"
    ADVANCE_TO_PRE_QUESTIONNAIRE = "advance_to_pre_questionnaire"
    RESEND_KEY_DETAILS = "resend_key_details"
    SKIPPED_DUPLICATE = "skipped_duplicate"


PRE_STAGE_LABEL = "Pre-Stage"
STAGE1_LABEL = "Stage1 Interview"
PRE_QUESTIONNAIRE_LABEL = "Stage1 Pre-Questionnaire"
UNCLEAR_LABEL = "Unclear Applications"

# Which conversation a message belongs to, decided from its labels
STAGE_APPLICATION = "application"
STAGE_KEY_DETAILS = "key_details"

QUESTIONNAIRE_TEMPLATES = {
    (JobCategory.DEVELOPER, ExperienceStatus.EXPERIENCED): "templates-request_key_details-developer-experienced",
    (JobCategory.DEVELOPER, ExperienceStatus.FRESHER): "templates-request_key_details-developer-fresher",
}
CATEGORY_TEMPLATES = {
    JobCategory.RECRUITER: "templates-request_key_details-non-tech",
    JobCategory.SALES_MARKETING: "templates-request_key_details-non-tech",
    JobCategory.WEB_DESIGNER: "templates-request_key_details-creative",
}

MISSING_MULTIPLE_TEMPLATE = "templates-rejection-missing_multiple_details"
NO_RESUME_TEMPLATE = "templates-rejection-no_resume"
NO_COVER_LETTER_TEMPLATE = "templates-rejection-no_cover_letter"
NO_CLEAR_POSITION_TEMPLATE = "templates-rejection-no_clear_job_position"
PRE_QUESTIONNAIRE_TEMPLATE = "templates-pre-questionnaire-details"
RESEND_KEY_DETAILS_TEMPLATE = "templates-request_key_details-resend_key_details"


@dataclass(frozen=True)
class RoutingDecision:
    next_action: str
    template_id: Optional[str] = None
    add_labels: List[str] = field(default_factory=list)
    remove_labels: List[str] = field(default_factory=list)


def _mark_unclear() -> RoutingDecision:
    return RoutingDecision(NextAction.MARK_UNCLEAR, None, [UNCLEAR_LABEL], [PRE_STAGE_LABEL])


def route_action(has_resume: bool, has_cover_letter: bool, extraction: ExtractionResult) -> RoutingDecision:
    """
    Decide the follow-up for one application.

    Complete applications (a document plus a clear title and category) get the
    questionnaire for their category; incomplete ones get a request naming what
    is missing.
    """
    title_unclear = extraction.job_title == UNCLEAR
    category = extraction.category
    complete = (has_resume or has_cover_letter) and not title_unclear and category != JobCategory.UNCLEAR

    if not complete:
        missing = [not has_resume, not has_cover_letter, title_unclear]
        if sum(missing) > 1:
            template = MISSING_MULTIPLE_TEMPLATE
        elif not has_resume:
            template = NO_RESUME_TEMPLATE
        elif not has_cover_letter:
            template = NO_COVER_LETTER_TEMPLATE
        elif title_unclear:
            template = NO_CLEAR_POSITION_TEMPLATE
        else:
            # Everything present, category still unknown
            return _mark_unclear()
        return RoutingDecision(NextAction.REQUEST_MISSING_INFO, template, [PRE_STAGE_LABEL], [])

    if category == JobCategory.DEVELOPER:
        template = QUESTIONNAIRE_TEMPLATES.get((category, extraction.experience_status))
    else:
        template = CATEGORY_TEMPLATES.get(category)
    if template is None:
        return _mark_unclear()
    return RoutingDecision(
        NextAction.SEND_QUESTIONNAIRE,
        template,
        [category.value, STAGE1_LABEL],
        [PRE_STAGE_LABEL],
    )


def compute_missing_fields(has_resume: bool, has_cover_letter: bool, extraction: ExtractionResult) -> List[str]:
    missing = []
    if not has_resume:
        missing.append("resume")
    if not has_cover_letter:
        missing.append("cover_letter")
    missing.extend(f for f in REQUIRED_KEY_DETAILS if getattr(extraction, f) == UNCLEAR)
    return missing


def triage_stage(labels: Sequence[str]) -> str:
    """Replies in a "Stage1 Interview" thread answer the questionnaire; anything else is an application."""
    return STAGE_KEY_DETAILS if STAGE1_LABEL in (labels or ()) else STAGE_APPLICATION


def route_key_details(details: ExtractionResult) -> RoutingDecision:
    """Stage1 replies move on once position and work experience are answered, else get asked again."""
    if missing_key_details(details):
        return RoutingDecision(NextAction.RESEND_KEY_DETAILS, RESEND_KEY_DETAILS_TEMPLATE, [STAGE1_LABEL], [])
    return RoutingDecision(
        NextAction.ADVANCE_TO_PRE_QUESTIONNAIRE,
        PRE_QUESTIONNAIRE_TEMPLATE,
        [PRE_QUESTIONNAIRE_LABEL],
        [STAGE1_LABEL],
    )


# =============================================================================
# State Schema
# =============================================================================

class TriageState(TypedDict, total=False):
    """State that flows through the LangGraph pipeline."""
    # Input fields
    email_id: str
    subject: str
    body: str
    sender: str
    resume_link: Optional[str]
    attachments: List[AttachmentRef]
    attachment_text: Optional[str]
    labels: List[str]
    first_message_body: Optional[str]
    stage: str

    # Document presence
    has_resume: bool
    resume_evidence: Evidence
    has_cover_letter: bool
    cover_letter_evidence: Evidence

    # Extraction
    extraction: ExtractionResult

    # Routing
    next_action: str
    template_id: Optional[str]
    add_labels: List[str]
    remove_labels: List[str]
    missing_fields: List[str]

    # Processing status
    processing_status: str
    errors: List[str]


# =============================================================================
# Graph Construction
# =============================================================================

def create_triage_graph(
    extractor: TieredExtractor,
    fetch_attachment: Optional[AttachmentFetcher] = None,
    decode_attachment: AttachmentDecoder = decode_attachment_to_text,
) -> Any:
    """
    Build the triage workflow.

    Applications:   START -> detect_documents -> [extract_details] -> route_action -> END
    Stage1 replies: START -> extract_key_details -> route_key_details -> END
    """
    # The fast path yields a title only; replies are routed on work experience too.
    key_details_extractor = extractor.without_tiers(FastPathTier.name)

    async def detect_documents_node(state: TriageState) -> dict:
        attachments = state.get("attachments") or []
        errors = list(state.get("errors", []))
        try:
            resume = await detect_resume(
                state.get("body", ""),
                attachments,
                resume_link=state.get("resume_link"),
                fetch_attachment=fetch_attachment,
                decode_attachment=decode_attachment,
            )
        except Exception as e:
            logger.error(f"Resume detection failed for {state.get('email_id')}: {e}")
            errors.append(f"resume_detection_error: {e}")
            resume = None
        cover_letter = detect_cover_letter(state.get("body", ""), [a.filename for a in attachments])
        return {
            "has_resume": bool(resume),
            "resume_evidence": resume.evidence if resume is not None else Evidence.NONE,
            "has_cover_letter": bool(cover_letter),
            "cover_letter_evidence": cover_letter.evidence,
            "errors": errors,
        }

    def documents_present(state: TriageState) -> str:
        if state.get("has_resume") or state.get("has_cover_letter"):
            return "extract_details"
        return "route_action"

    async def extract_details_node(state: TriageState) -> dict:
        email = EmailContent(
            subject=state.get("subject", ""),
            body=state.get("body", ""),
            attachment_text=state.get("attachment_text"),
        )
        return {"extraction": await extractor.extract(email)}

    def route_action_node(state: TriageState) -> dict:
        extraction = state.get("extraction") or exhausted_result()
        has_resume = bool(state.get("has_resume"))
        has_cover_letter = bool(state.get("has_cover_letter"))
        decision = route_action(has_resume, has_cover_letter, extraction)
        return {
            "extraction": extraction,
            "next_action": decision.next_action,
            "template_id": decision.template_id,
            "add_labels": list(decision.add_labels),
            "remove_labels": list(decision.remove_labels),
            "missing_fields": compute_missing_fields(has_resume, has_cover_letter, extraction),
            "processing_status": "completed",
        }

    async def extract_key_details_node(state: TriageState) -> dict:
        subject = state.get("subject", "")
        body = state.get("body", "")
        first_body = state.get("first_message_body")
        details = extract_key_details(subject, body, first_body)
        if missing_key_details(details):
            context = body + (f"\n\nOriginal Context:\n{first_body}" if first_body else "")
            email = EmailContent(subject=subject, body=context, attachment_text=state.get("attachment_text"))
            details = merge_key_details(await key_details_extractor.extract(email), details)
        return {"extraction": details}

    def route_key_details_node(state: TriageState) -> dict:
        details = state.get("extraction") or exhausted_result()
        decision = route_key_details(details)
        return {
            "extraction": details,
            "next_action": decision.next_action,
            "template_id": decision.template_id,
            "add_labels": list(decision.add_labels),
            "remove_labels": list(decision.remove_labels),
            "missing_fields": missing_key_details(details),
            "processing_status": "completed",
        }

    def stage_entry(state: TriageState) -> str:
        if state.get("stage") == STAGE_KEY_DETAILS:
            return "extract_key_details"
        return "detect_documents"

    graph = StateGraph(TriageState)

    graph.add_node("detect_documents", detect_documents_node)
    graph.add_node("extract_details", extract_details_node)
    graph.add_node("route_action", route_action_node)
    graph.add_node("extract_key_details", extract_key_details_node)
    graph.add_node("route_key_details", route_key_details_node)

    graph.add_conditional_edges(
        START,
        stage_entry,
        {"detect_documents": "detect_documents", "extract_key_details": "extract_key_details"},
    )
    graph.add_conditional_edges(
        "detect_documents",
        documents_present,
        {"extract_details": "extract_details", "route_action": "route_action"},
    )
    graph.add_edge("extract_details", "route_action")
    graph.add_edge("route_action", END)
    graph.add_edge("extract_key_details", "route_key_details")
    graph.add_edge("route_key_details", END)

    return graph.compile()


def _state_to_result(state: TriageState) -> TriageResult:
    return TriageResult(
        email_id=state.get("email_id", ""),
        stage=state.get("stage", STAGE_APPLICATION),
        extraction=state.get("extraction") or exhausted_result(),
        has_resume=bool(state.get("has_resume")),
        resume_evidence=state.get("resume_evidence", Evidence.NONE),
        has_cover_letter=bool(state.get("has_cover_letter")),
        cover_letter_evidence=state.get("cover_letter_evidence", Evidence.NONE),
        next_action=state.get("next_action", NextAction.MARK_UNCLEAR),
        template_id=state.get("template_id"),
        add_labels=state.get("add_labels", []),
        remove_labels=state.get("remove_labels", []),
        missing_fields=state.get("missing_fields", []),
        errors=state.get("errors", []),
    )


def email_input_to_refs(email: EmailInput) -> List[AttachmentRef]:
    return [AttachmentRef(filename=a.filename, text=a.text) for a in email.attachments]


# =============================================================================
# Public API
# =============================================================================

class TriagePipeline:
    def __init__(
        self,
        extractor: TieredExtractor,
        fetch_attachment: Optional[AttachmentFetcher] = None,
        decode_attachment: AttachmentDecoder = decode_attachment_to_text,
        batch_concurrency: Optional[int] = None,
    ):
        self.extractor = extractor
        self.fetch_attachment = fetch_attachment
        self.decode_attachment = decode_attachment
        self.graph = create_triage_graph(extractor, fetch_attachment, decode_attachment)
        self.batch_concurrency = batch_concurrency or settings.batch_concurrency

    async def process_email(
        self,
        email_id: str,
        subject: str,
        body: str,
        sender: str = "",
        attachments: Sequence[AttachmentRef] = (),
        resume_link: Optional[str] = None,
        attachment_text: Optional[str] = None,
        labels: Sequence[str] = (),
        first_message_body: Optional[str] = None,
    ) -> TriageResult:
        """
        Process a single application email through the graph.

        Args:
            email_id: Unique identifier (e.g., Gmail message ID)
            subject: Email subject line (MIME-decoded)
            body: Plain-text body with quoted replies removed
            attachments: Attachment references, with data or text when already known
            resume_link: Structured resume link, when the caller already parsed one
            labels: Mailbox label names on the thread; "Stage1 Interview" marks a questionnaire reply
            first_message_body: Body of the thread's first message, context for questionnaire replies

        Returns:
            TriageResult with presence signals, extraction and routing decision
        """
        initial_state: TriageState = {
            "email_id": email_id,
            "subject": subject or "",
            "body": body or "",
            "sender": sender or "",
            "resume_link": resume_link,
            "attachments": list(attachments),
            "attachment_text": attachment_text,
            "labels": list(labels),
            "first_message_body": first_message_body,
            "stage": triage_stage(labels),
            "errors": [],
        }
        result = await self.graph.ainvoke(initial_state)
        return _state_to_result(result)

    async def process_input(self, email: EmailInput) -> TriageResult:
        texts = [a.text for a in email.attachments if a.text]
        return await self.process_email(
            email.email_id,
            email.subject,
            email.body,
            email.sender,
            attachments=email_input_to_refs(email),
            resume_link=email.resume_link,
            attachment_text="\n\n".join(texts) or None,
            labels=email.labels,
            first_message_body=email.first_message_body,
        )

    async def process_message(
        self,
        message: dict,
        labels: Optional[Sequence[str]] = None,
        first_message_body: Optional[str] = None,
    ) -> TriageResult:
        """
        Process a fetched Gmail-style message dict (headers, MIME parts, attachment ids).
        Labels default to the message's own `labelIds`.
        """
        content = message_to_email_content(message)
        return await self.process_email(
            message.get("id", ""),
            content.subject,
            content.body,
            attachments=list_attachments(message),
            labels=labels if labels is not None else message.get("labelIds", []),
            first_message_body=first_message_body,
        )

    async def triage_mailbox(self, service: EmailService, query: str) -> List[TriageResult]:
        """
        Search the mailbox, fetch each hit and triage it. Decisions are returned, not
        applied: replying and moving labels stay with the caller.
        """
        pipeline = self
        if self.fetch_attachment is None:
            pipeline = TriagePipeline(self.extractor, service.fetch_attachment, self.decode_attachment, self.batch_concurrency)

        results = []
        seen = set()
        for hit in await service.search_emails(query):
            message_id = hit.get("id", "")
            if message_id in seen or not claim_message(message_id):
                continue
            seen.add(message_id)
            try:
                message = await service.fetch_email(message_id)
                first_body = await self._first_message_body(service, message)
                results.append(await pipeline.process_message(message, first_message_body=first_body))
            except Exception as e:
                logger.error(f"Triage failed for mailbox message {message_id}: {e}")
                release_message(message_id)
        logger.info(f"Mailbox triage for {query!r}: {len(results)} messages")
        return results

    @staticmethod
    async def _first_message_body(service: EmailService, message: dict) -> Optional[str]:
        """The original application in a Stage1 thread, used as context for the reply."""
        thread_id = message.get("threadId")
        if not thread_id or triage_stage(message.get("labelIds", [])) != STAGE_KEY_DETAILS:
            return None
        thread = await service.fetch_thread(thread_id)
        if not thread or thread[0].get("id") == message.get("id"):
            return None
        return message_to_email_content(thread[0]).body or None

    async def _process_one(self, email: EmailInput, semaphore: asyncio.Semaphore, claimed: bool) -> TriageResult:
        if not claimed:
            logger.info(f"Skipping already triaged message {email.email_id}")
            return _empty_result(email.email_id, NextAction.SKIPPED_DUPLICATE)
        async with semaphore:
            try:
                return await self.process_input(email)
            except Exception as e:
                logger.exception(f"Triage failed for {email.email_id}: {e}")
                release_message(email.email_id)
                return _empty_result(email.email_id, NextAction.MARK_UNCLEAR, [f"pipeline_error: {e}"])

    async def process_emails_batch(self, emails: Sequence[EmailInput]) -> List[TriageResult]:
        """
        Triage many emails concurrently. Each email's tiers still run in order. Every id
        is claimed in the dedup cache before any work starts, so repeats within the batch
        and messages held by another run are skipped. Results keep the input order.
        """
        seen = set()
        claims = []
        for email in emails:
            if email.email_id and email.email_id in seen:
                claims.append(False)
                continue
            seen.add(email.email_id)
            claims.append(claim_message(email.email_id))

        semaphore = asyncio.Semaphore(self.batch_concurrency)
        results = await asyncio.gather(*(self._process_one(e, semaphore, c) for e, c in zip(emails, claims)))
        done = sum(1 for r in results if r.next_action != NextAction.SKIPPED_DUPLICATE)
        logger.info(f"Triage batch finished: {done} processed, {len(results) - done} skipped")
        return list(results)


def _empty_result(email_id: str, next_action: str, errors: Optional[List[str]] = None) -> TriageResult:
    return TriageResult(
        email_id=email_id,
        extraction=exhausted_result(),
        has_resume=False,
        resume_evidence=Evidence.NONE,
        has_cover_letter=False,
        cover_letter_evidence=Evidence.NONE,
        next_action=next_action,
        errors=errors or [],
    )


_pipeline: Optional[TriagePipeline] = None


def get_triage_pipeline() -> TriagePipeline:
    """Process-wide pipeline wired to the default extractor."""
    global _pipeline
    if _pipeline is None:
        _pipeline = TriagePipeline(build_default_extractor())
    return _pipeline
