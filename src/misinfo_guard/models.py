from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Literal, Sequence
from uuid import UUID

from pydantic import BaseModel, Field


InputType = Literal["text", "url"]
Region = Literal["WHO", "US", "UK"]
Tone = Literal["neutral", "empathetic", "direct"]
Audience = Literal["general", "patient", "clinician"]
Platform = Literal["general", "social", "email"]

AnalysisStatus = Literal["pending", "running", "error", "done"]
AnalysisStep = Literal["ingest", "claims", "risk", "response"]
Stance = Literal["supported", "contradicted", "uncertain"]
Severity = Literal["low", "medium", "high", "critical"]
HarmLevel = Literal["low", "medium", "high"]
UrgencyHint = Literal["none", "low", "medium", "high"]
OutputFormat = Literal["social_reply", "handout", "clinician_note"]
OutputLength = Literal["short", "medium", "long"]
FeedbackRating = Literal["helpful", "not_helpful", "missing_sources"]

STEP_ORDER: tuple[AnalysisStep, ...] = ("ingest", "claims", "risk", "response")
SEVERITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2, "critical": 3}
SEVERITY_LEVELS: tuple[Severity, ...] = ("low", "medium", "high", "critical")
OUTPUT_FORMATS: tuple[OutputFormat, ...] = ("social_reply", "handout", "clinician_note")
OUTPUT_LENGTHS: tuple[OutputLength, ...] = ("short", "medium", "long")


def next_step(completed: Sequence[str]) -> AnalysisStep | None:
    if list(completed) != list(STEP_ORDER[: len(completed)]):
        raise ValueError(f"completed steps {list(completed)} are not a prefix of {list(STEP_ORDER)}")
    if len(completed) >= len(STEP_ORDER):
        return None
    return STEP_ORDER[len(completed)]


def max_severity(values: Iterable[str]) -> Severity:
    best: Severity = "low"
    for value in values:
        if SEVERITY_RANK.get(value, 0) > SEVERITY_RANK[best]:
            best = value  # type: ignore[assignment]
    return best


class SourceDocument(BaseModel):
    id: int
    title: str
    organization: str
    url: str | None = None
    content: str
    category: str | None = None


class ExampleInput(BaseModel):
    id: int
    title: str
    content: str
    category: str
    expected_severity: Severity


class ClaimDraft(BaseModel):
    claim_text: str = Field(..., min_length=1)
    claim_type: str = "factual"
    topic: str | None = None
    target_population: str = "general"
    urgency_hint: UrgencyHint = "none"
    potential_harm: HarmLevel = "low"
    certainty_in_text: int = Field(50, ge=0, le=100)


class CitationDraft(BaseModel):
    source_org: str
    source_title: str
    source_url: str | None = None
    snippet: str | None = None
    relevance: int = Field(..., ge=0, le=100)


class ClaimAssessment(BaseModel):
    stance: Stance
    stance_confidence: int = Field(..., ge=0, le=100)
    stance_explanation: str
    severity: Severity
    risk_reason: str
    risk_tags: List[str] = Field(default_factory=list)
    citations: List[CitationDraft] = Field(default_factory=list)


class Citation(CitationDraft):
    id: UUID
    claim_id: UUID


class Claim(ClaimDraft):
    id: UUID
    analysis_id: UUID
    stance: Stance | None = None
    stance_confidence: int | None = None
    stance_explanation: str | None = None
    severity: Severity | None = None
    risk_reason: str | None = None
    risk_tags: List[str] = Field(default_factory=list)
    citations: List[Citation] = Field(default_factory=list)


class GeneratedOutput(BaseModel):
    id: UUID
    analysis_id: UUID
    format: OutputFormat
    length: OutputLength
    content: str


class OutputDraft(BaseModel):
    format: OutputFormat
    length: OutputLength
    content: str = Field(..., min_length=1)


class AnalysisSummary(BaseModel):
    disclaimer: str
    what_is_wrong: str
    what_we_know: str
    what_to_do: str
    when_to_seek_care: str
    uncertainty_notes: str | None = None


class Analysis(BaseModel):
    id: UUID
    input_type: InputType
    input_text: str = ""
    input_url: str | None = None
    region: Region = "WHO"
    tone: Tone = "neutral"
    audience: Audience = "general"
    platform: Platform = "general"
    status: AnalysisStatus = "pending"
    current_step: AnalysisStep | None = None
    completed_steps: List[AnalysisStep] = Field(default_factory=list)
    overall_severity: Severity | None = None
    red_flags_detected: bool = False
    red_flags: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    disclaimer: str | None = None
    what_is_wrong: str | None = None
    what_we_know: str | None = None
    what_to_do: str | None = None
    when_to_seek_care: str | None = None
    uncertainty_notes: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class AnalysisDetail(Analysis):
    claims: List[Claim] = Field(default_factory=list)
    outputs: List[GeneratedOutput] = Field(default_factory=list)


class Feedback(BaseModel):
    id: UUID
    analysis_id: UUID
    rating: FeedbackRating
    comment: str | None = None
    created_at: datetime
