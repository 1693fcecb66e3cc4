from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from .models import (
    AnalysisStatus,
    Audience,
    FeedbackRating,
    InputType,
    Platform,
    Region,
    Severity,
    Tone,
)


class AnalysisCreateRequest(BaseModel):
    input_type: InputType = "text"
    input_text: str | None = Field(None, max_length=200_000)
    input_url: str | None = Field(None, max_length=2000)
    region: Region = "WHO"
    tone: Tone = "neutral"
    audience: Audience = "general"
    platform: Platform = "general"


class AnalysisCreateResponse(BaseModel):
    id: UUID
    status: AnalysisStatus
    poll_url: str


class AnalysisListItem(BaseModel):
    id: UUID
    input_type: InputType
    status: AnalysisStatus
    overall_severity: Severity | None = None
    red_flags_detected: bool = False
    topics: List[str] = Field(default_factory=list)
    created_at: datetime
    completed_at: datetime | None = None


class AnalysisListResponse(BaseModel):
    items: List[AnalysisListItem]
    total: int


class FeedbackRequest(BaseModel):
    rating: FeedbackRating
    comment: str | None = Field(None, max_length=2000)


class FeedbackResponse(BaseModel):
    id: UUID
    analysis_id: UUID
    rating: FeedbackRating
    created_at: datetime


class HealthResponse(BaseModel):
    status: str
    services: dict
    version: str = "1.0.0"
