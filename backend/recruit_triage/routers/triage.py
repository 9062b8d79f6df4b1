"""Triage API endpoints: field extraction, routing for one email, and batches."""
from typing import List

from fastapi import APIRouter, Depends

from ..schemas import EmailContent, EmailInput, ExtractionResult, TriageResult
from ..tiered_extraction import TieredExtractor
from ..triage_pipeline import TriagePipeline, get_triage_pipeline

router = APIRouter(prefix="/api/triage", tags=["Triage"])


def get_pipeline() -> TriagePipeline:
    return get_triage_pipeline()


def get_extractor(pipeline: TriagePipeline = Depends(get_pipeline)) -> TieredExtractor:
    return pipeline.extractor


@router.post("/extract", response_model=ExtractionResult)
async def extract_fields(email: EmailInput, extractor: TieredExtractor = Depends(get_extractor)):
    """
    Run tiered extraction only. Never fails on model trouble: the worst outcome is an
    all-"unclear" result.
    """
    texts = [a.text for a in email.attachments if a.text]
    content = EmailContent(
        subject=email.subject,
        body=email.body,
        attachment_text="\n\n".join(texts) or None,
    )
    return await extractor.extract(content)


@router.post("/process", response_model=TriageResult)
async def process_single_email(email: EmailInput, pipeline: TriagePipeline = Depends(get_pipeline)):
    """Presence detection, extraction and routing decision for one email."""
    return await pipeline.process_input(email)


@router.post("/batch", response_model=List[TriageResult])
async def process_batch(emails: List[EmailInput], pipeline: TriagePipeline = Depends(get_pipeline)):
    """Triage several emails; messages already triaged recently come back as skipped_duplicate."""
    return await pipeline.process_emails_batch(emails)
