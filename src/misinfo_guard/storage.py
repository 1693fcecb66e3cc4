from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List
from uuid import UUID, uuid4

import asyncpg

from . import db
from .models import (
    Analysis,
    AnalysisDetail,
    Citation,
    CitationDraft,
    Claim,
    ClaimAssessment,
    ClaimDraft,
    Feedback,
    GeneratedOutput,
    OutputDraft,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_claims(analysis_id: UUID, drafts: Iterable[ClaimDraft]) -> List[Claim]:
    return [
        Claim(id=uuid4(), analysis_id=analysis_id, **draft.model_dump())
        for draft in drafts
    ]


def build_citations(claim_id: UUID, drafts: Iterable[CitationDraft]) -> List[Citation]:
    ordered = sorted(drafts, key=lambda item: item.relevance, reverse=True)
    return [Citation(id=uuid4(), claim_id=claim_id, **draft.model_dump()) for draft in ordered]


def build_outputs(analysis_id: UUID, drafts: Iterable[OutputDraft]) -> List[GeneratedOutput]:
    return [
        GeneratedOutput(id=uuid4(), analysis_id=analysis_id, **draft.model_dump())
        for draft in drafts
    ]


def apply_assessment(claim: Claim, assessment: ClaimAssessment) -> tuple[Claim, List[Citation]]:
    citations = build_citations(claim.id, assessment.citations)
    updated = claim.model_copy(
        update={
            "stance": assessment.stance,
            "stance_confidence": assessment.stance_confidence,
            "stance_explanation": assessment.stance_explanation,
            "severity": assessment.severity,
            "risk_reason": assessment.risk_reason,
            "risk_tags": list(assessment.risk_tags),
            "citations": citations,
        }
    )
    return updated, citations


class AnalysisStore:
    """Persistence boundary for analyses and everything the pipeline writes."""

    async def create_analysis(self, analysis: Analysis) -> Analysis:
        raise NotImplementedError

    async def get_analysis(self, analysis_id: UUID) -> Analysis | None:
        raise NotImplementedError

    async def update_analysis(self, analysis_id: UUID, **fields: Any) -> Analysis:
        raise NotImplementedError

    async def list_analyses(self, limit: int) -> List[Analysis]:
        raise NotImplementedError

    async def count_analyses(self) -> int:
        raise NotImplementedError

    async def replace_claims(self, analysis_id: UUID, drafts: Iterable[ClaimDraft]) -> List[Claim]:
        raise NotImplementedError

    async def save_assessment(self, claim: Claim, assessment: ClaimAssessment) -> Claim:
        raise NotImplementedError

    async def get_claims(self, analysis_id: UUID) -> List[Claim]:
        raise NotImplementedError

    async def replace_outputs(
        self, analysis_id: UUID, drafts: Iterable[OutputDraft]
    ) -> List[GeneratedOutput]:
        raise NotImplementedError

    async def get_outputs(self, analysis_id: UUID) -> List[GeneratedOutput]:
        raise NotImplementedError

    async def add_feedback(self, feedback: Feedback) -> Feedback:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def get_detail(self, analysis_id: UUID) -> AnalysisDetail | None:
        analysis = await self.get_analysis(analysis_id)
        if analysis is None:
            return None
        claims = await self.get_claims(analysis_id)
        outputs = await self.get_outputs(analysis_id)
        return AnalysisDetail(**analysis.model_dump(), claims=claims, outputs=outputs)


class InMemoryAnalysisStore(AnalysisStore):
    def __init__(self) -> None:
        self._analyses: Dict[UUID, Analysis] = {}
        self._claims: Dict[UUID, List[Claim]] = {}
        self._outputs: Dict[UUID, List[GeneratedOutput]] = {}
        self._feedback: Dict[UUID, List[Feedback]] = {}

    async def create_analysis(self, analysis: Analysis) -> Analysis:
        self._analyses[analysis.id] = analysis.model_copy(deep=True)
        return analysis

    async def get_analysis(self, analysis_id: UUID) -> Analysis | None:
        analysis = self._analyses.get(analysis_id)
        return analysis.model_copy(deep=True) if analysis else None

    async def update_analysis(self, analysis_id: UUID, **fields: Any) -> Analysis:
        current = self._analyses.get(analysis_id)
        if current is None:
            raise KeyError(analysis_id)
        unknown = set(fields) - db.ANALYSIS_UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"cannot update analysis fields: {sorted(unknown)}")
        updated = Analysis.model_validate({**current.model_dump(), **fields})
        self._analyses[analysis_id] = updated
        return updated.model_copy(deep=True)

    async def list_analyses(self, limit: int) -> List[Analysis]:
        ordered = sorted(self._analyses.values(), key=lambda item: item.created_at, reverse=True)
        return [item.model_copy(deep=True) for item in ordered[:limit]]

    async def count_analyses(self) -> int:
        return len(self._analyses)

    async def replace_claims(self, analysis_id: UUID, drafts: Iterable[ClaimDraft]) -> List[Claim]:
        claims = build_claims(analysis_id, drafts)
        self._claims[analysis_id] = claims
        return [claim.model_copy(deep=True) for claim in claims]

    async def save_assessment(self, claim: Claim, assessment: ClaimAssessment) -> Claim:
        stored = self._claims.get(claim.analysis_id, [])
        for index, existing in enumerate(stored):
            if existing.id == claim.id:
                updated, _ = apply_assessment(existing, assessment)
                stored[index] = updated
                return updated.model_copy(deep=True)
        raise KeyError(claim.id)

    async def get_claims(self, analysis_id: UUID) -> List[Claim]:
        return [claim.model_copy(deep=True) for claim in self._claims.get(analysis_id, [])]

    async def replace_outputs(
        self, analysis_id: UUID, drafts: Iterable[OutputDraft]
    ) -> List[GeneratedOutput]:
        outputs = build_outputs(analysis_id, drafts)
        self._outputs[analysis_id] = outputs
        return list(outputs)

    async def get_outputs(self, analysis_id: UUID) -> List[GeneratedOutput]:
        return list(self._outputs.get(analysis_id, []))

    async def add_feedback(self, feedback: Feedback) -> Feedback:
        self._feedback.setdefault(feedback.analysis_id, []).append(feedback)
        return feedback

    async def get_feedback(self, analysis_id: UUID) -> List[Feedback]:
        return list(self._feedback.get(analysis_id, []))


def _analysis_from_record(row: asyncpg.Record) -> Analysis:
    data = dict(row)
    for key in ("completed_steps", "red_flags", "topics"):
        data[key] = list(data.get(key) or [])
    return Analysis.model_validate(data)


def _claim_from_record(row: asyncpg.Record, citations: List[Citation]) -> Claim:
    data = dict(row)
    data.pop("position", None)
    data.pop("created_at", None)
    data["risk_tags"] = list(data.get("risk_tags") or [])
    return Claim.model_validate({**data, "citations": citations})


def _citation_from_record(row: asyncpg.Record) -> Citation:
    data = dict(row)
    data.pop("position", None)
    data.pop("created_at", None)
    return Citation.model_validate(data)


class PostgresAnalysisStore(AnalysisStore):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def create_analysis(self, analysis: Analysis) -> Analysis:
        await db.insert_analysis(self._pool, analysis)
        return analysis

    async def get_analysis(self, analysis_id: UUID) -> Analysis | None:
        row = await db.fetch_analysis(self._pool, analysis_id)
        return _analysis_from_record(row) if row else None

    async def update_analysis(self, analysis_id: UUID, **fields: Any) -> Analysis:
        await db.update_analysis(self._pool, analysis_id, fields)
        analysis = await self.get_analysis(analysis_id)
        if analysis is None:
            raise KeyError(analysis_id)
        return analysis

    async def list_analyses(self, limit: int) -> List[Analysis]:
        rows = await db.fetch_recent_analyses(self._pool, limit)
        return [_analysis_from_record(row) for row in rows]

    async def count_analyses(self) -> int:
        return await db.count_analyses(self._pool)

    async def replace_claims(self, analysis_id: UUID, drafts: Iterable[ClaimDraft]) -> List[Claim]:
        claims = build_claims(analysis_id, drafts)
        await db.replace_claims(self._pool, analysis_id, claims)
        return claims

    async def save_assessment(self, claim: Claim, assessment: ClaimAssessment) -> Claim:
        updated, citations = apply_assessment(claim, assessment)
        await db.update_claim_assessment(self._pool, updated, citations)
        return updated

    async def get_claims(self, analysis_id: UUID) -> List[Claim]:
        rows = await db.fetch_claims(self._pool, analysis_id)
        citation_rows = await db.fetch_citations(self._pool, [row["id"] for row in rows])
        by_claim: Dict[UUID, List[Citation]] = {}
        for citation_row in citation_rows:
            by_claim.setdefault(citation_row["claim_id"], []).append(
                _citation_from_record(citation_row)
            )
        return [_claim_from_record(row, by_claim.get(row["id"], [])) for row in rows]

    async def replace_outputs(
        self, analysis_id: UUID, drafts: Iterable[OutputDraft]
    ) -> List[GeneratedOutput]:
        outputs = build_outputs(analysis_id, drafts)
        await db.replace_outputs(self._pool, analysis_id, outputs)
        return outputs

    async def get_outputs(self, analysis_id: UUID) -> List[GeneratedOutput]:
        rows = await db.fetch_outputs(self._pool, analysis_id)
        outputs: List[GeneratedOutput] = []
        for row in rows:
            data = dict(row)
            data.pop("position", None)
            data.pop("created_at", None)
            outputs.append(GeneratedOutput.model_validate(data))
        return outputs

    async def add_feedback(self, feedback: Feedback) -> Feedback:
        await db.insert_feedback(self._pool, feedback)
        return feedback

    async def ping(self) -> bool:
        await self._pool.fetchval("SELECT 1")
        return True
