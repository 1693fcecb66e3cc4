from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

from fastapi import APIRouter, HTTPException, Query, Request

from ..middleware.rate_limit import rate_limit_dependency
from ..models import AnalysisDetail, Feedback
from ..schemas import (
    AnalysisCreateRequest,
    AnalysisCreateResponse,
    AnalysisListItem,
    AnalysisListResponse,
    FeedbackRequest,
    FeedbackResponse,
)


router = APIRouter(tags=["analysis"])


async def _rate_limit(request: Request) -> None:
    limiter = rate_limit_dependency(request.app.state.settings)
    await limiter(request)


@router.post("/analyze", response_model=AnalysisCreateResponse, status_code=202)
async def create_analysis(payload: AnalysisCreateRequest, request: Request) -> AnalysisCreateResponse:
    await _rate_limit(request)
    orchestrator = request.app.state.orchestrator
    analysis = await orchestrator.submit(payload)
    return AnalysisCreateResponse(
        id=analysis.id,
        status=analysis.status,
        poll_url=f"/api/v1/analysis/{analysis.id}",
    )


@router.get("/analysis/{analysis_id}", response_model=AnalysisDetail)
async def get_analysis(analysis_id: UUID, request: Request) -> AnalysisDetail:
    await _rate_limit(request)
    detail = await request.app.state.orchestrator.get_status(analysis_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return detail


@router.get("/analyses", response_model=AnalysisListResponse)
async def list_analyses(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
) -> AnalysisListResponse:
    await _rate_limit(request)
    store = request.app.state.store
    analyses = await store.list_analyses(limit)
    total = await store.count_analyses()
    items = [
        AnalysisListItem(
            id=analysis.id,
            input_type=analysis.input_type,
            status=analysis.status,
            overall_severity=analysis.overall_severity,
            red_flags_detected=analysis.red_flags_detected,
            topics=analysis.topics,
            created_at=analysis.created_at,
            completed_at=analysis.completed_at,
        )
        for analysis in analyses
    ]
    return AnalysisListResponse(items=items, total=total)


@router.post(
    "/analysis/{analysis_id}/feedback",
    response_model=FeedbackResponse,
    status_code=201,
)
async def submit_feedback(
    analysis_id: UUID,
    payload: FeedbackRequest,
    request: Request,
) -> FeedbackResponse:
    await _rate_limit(request)
    store = request.app.state.store
    if await store.get_analysis(analysis_id) is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    feedback = await store.add_feedback(
        Feedback(
            id=uuid4(),
            analysis_id=analysis_id,
            rating=payload.rating,
            comment=(payload.comment or "").strip() or None,
            created_at=datetime.now(timezone.utc),
        )
    )
    return FeedbackResponse(
        id=feedback.id,
        analysis_id=feedback.analysis_id,
        rating=feedback.rating,
        created_at=feedback.created_at,
    )
