"""Pydantic schemas: extraction contract, grounding verdicts, document signals, API I/O."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

UNCLEAR = "unclear"


class JobCategory(str, Enum):
    DEVELOPER = "Developer"
    WEB_DESIGNER = "Web Designer"
    RECRUITER = "Recruiter"
    SALES_MARKETING = "Sales/Marketing"
    UNCLEAR = "unclear"


class ExperienceStatus(str, Enum):
    EXPERIENCED = "experienced"
    FRESHER = "fresher"
    UNCLEAR = "unclear"


class MatchKind(str, Enum):
    EXACT = "exact"
    PARTIAL_COMPOSED = "partial-composed"
    NONE = "none"


class SourceTier(str, Enum):
    FAST_PATH = "fast_path"
    GENERATIVE = "generative"
    STATISTICAL = "statistical"
    PATTERN_FALLBACK = "pattern_fallback"
    EXHAUSTED = "exhausted"


class Evidence(str, Enum):
    """Where a resume / cover letter signal came from."""
    EXPLICIT_LINK = "explicit_link"
    FILENAME_KEYWORD = "filename_keyword"
    BODY_KEYWORD = "body_keyword"
    CONTENT_SNIFFED = "content_sniffed"
    GENERIC_KEYWORD = "generic_keyword"
    TEMPLATE_REJECTED = "template_rejected"
    NONE = "none"


def normalize_category(raw: Optional[str]) -> JobCategory:
    """Map free-form category text (model output, labels) onto JobCategory."""
    value = " ".join((raw or "").split()).lower().replace(" / ", "/")
    for cat in JobCategory:
        if value == cat.value.lower():
            return cat
    return JobCategory.UNCLEAR


def normalize_experience(raw: Optional[str]) -> ExperienceStatus:
    value = (raw or "").strip().lower()
    for status in ExperienceStatus:
        if value == status.value:
            return status
    return ExperienceStatus.UNCLEAR


class EmailContent(BaseModel):
    """Inputs to extraction, one per processed email."""
    subject: str = ""
    body: str = ""
    attachment_text: Optional[str] = None

    class Config:
        frozen = True

    @field_validator("subject", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or ""


class ExtractionResult(BaseModel):
    job_title: str = UNCLEAR
    category: JobCategory = JobCategory.UNCLEAR
    experience_status: ExperienceStatus = ExperienceStatus.UNCLEAR
    current_ctc: str = UNCLEAR
    expected_ctc: str = UNCLEAR
    work_exp: str = UNCLEAR
    interview_time: str = UNCLEAR
    location: str = UNCLEAR
    agreement: str = UNCLEAR
    confidence: float = 0.0
    source_tier: SourceTier = SourceTier.EXHAUSTED

    class Config:
        frozen = True

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        v = float(v or 0.0)
        return min(max(v, 0.0), 1.0)

    @field_validator(
        "job_title", "current_ctc", "expected_ctc", "work_exp",
        "interview_time", "location", "agreement",
        mode="before",
    )
    @classmethod
    def _blank_to_unclear(cls, v):
        if v is None:
            return UNCLEAR
        v = str(v).strip()
        return v or UNCLEAR

    @model_validator(mode="after")
    def _unclear_title_has_low_confidence(self):
        if self.job_title == UNCLEAR and self.confidence >= 0.5:
            raise ValueError("an unclear job title cannot carry confidence >= 0.5")
        return self

    @property
    def is_unclear(self) -> bool:
        return self.job_title == UNCLEAR


class GroundingVerdict(BaseModel):
    exists: bool
    match_kind: MatchKind

    class Config:
        frozen = True


class DocumentSignal(BaseModel):
    """Resume / cover letter presence with the provenance of the evidence."""
    present: bool
    evidence: Evidence = Evidence.NONE
    detail: Optional[str] = None

    class Config:
        frozen = True

    def __bool__(self) -> bool:
        return self.present


class ModelExtraction(BaseModel):
    """Shape the generative model is asked to return. Unknown keys are ignored."""
    job_title: Optional[str] = None
    category: Optional[str] = None
    experience_status: Optional[str] = None
    current_ctc: Optional[str] = Field(default=None, alias="currentCTC")
    expected_ctc: Optional[str] = Field(default=None, alias="expectedCTC")
    work_exp: Optional[str] = Field(default=None, alias="workExp")
    interview_time: Optional[str] = Field(default=None, alias="interviewTime")
    location: Optional[str] = None
    agreement: Optional[str] = None
    confidence: float = 0.0
    reasoning: Optional[str] = None

    class Config:
        extra = "ignore"
        populate_by_name = True

    @field_validator(
        "current_ctc", "expected_ctc", "work_exp", "interview_time",
        "location", "agreement", "category", "experience_status",
        mode="before",
    )
    @classmethod
    def _scalar_to_str(cls, v):
        # Models often answer numbers for CTC / experience fields.
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v):
        if v is None:
            return 0.0
        if isinstance(v, bool):
            raise ValueError("confidence must be a number")
        return min(max(float(v), 0.0), 1.0)


# --- API ---------------------------------------------------------------------


class AttachmentInput(BaseModel):
    filename: str
    text: Optional[str] = None


class EmailInput(BaseModel):
    email_id: str = ""
    subject: str = ""
    body: str = ""
    sender: str = ""
    resume_link: Optional[str] = None
    attachments: List[AttachmentInput] = []
    labels: List[str] = []
    first_message_body: Optional[str] = None


class TriageResult(BaseModel):
    email_id: str
    stage: str = "application"
    extraction: ExtractionResult
    has_resume: bool
    resume_evidence: Evidence
    has_cover_letter: bool
    cover_letter_evidence: Evidence
    next_action: str
    template_id: Optional[str] = None
    add_labels: List[str] = []
    remove_labels: List[str] = []
    missing_fields: List[str] = []
    errors: List[str] = []
