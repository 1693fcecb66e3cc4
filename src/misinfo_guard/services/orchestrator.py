from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List
from uuid import UUID, uuid4

from ..chains.claim_extractor import extract_claims
from ..chains.evidence_matcher import EvidenceMatcher
from ..chains.report_generator import generate_response
from ..config import Settings
from ..errors import AnalysisStateError, InputError, PipelineError
from ..llm_client import LLMClient
from ..models import Analysis, AnalysisDetail, Claim, max_severity, next_step
from ..observability import observe_step, set_analysis_id
from ..schemas import AnalysisCreateRequest
from ..storage import AnalysisStore
from .ingestor import Ingestor


logger = logging.getLogger(__name__)

_ESCALATED = {"high", "critical"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """Runs one analysis job per id through ingest, claims, risk and response."""

    def __init__(
        self,
        store: AnalysisStore,
        ingestor: Ingestor,
        matcher: EvidenceMatcher,
        settings: Settings,
        llm: LLMClient | None = None,
    ) -> None:
        self._store = store
        self._ingestor = ingestor
        self._matcher = matcher
        self._settings = settings
        self._llm = llm
        self._tasks: Dict[UUID, asyncio.Task[None]] = {}

    async def submit(self, request: AnalysisCreateRequest) -> Analysis:
        _validate_request(request)
        analysis = Analysis(
            id=uuid4(),
            input_type=request.input_type,
            input_text=(request.input_text or "").strip() if request.input_type == "text" else "",
            input_url=(request.input_url or "").strip() if request.input_type == "url" else None,
            region=request.region,
            tone=request.tone,
            audience=request.audience,
            platform=request.platform,
            created_at=_utcnow(),
        )
        await self._store.create_analysis(analysis)
        task = asyncio.create_task(self.run(analysis.id))
        task.add_done_callback(_log_task_failure)
        self._tasks[analysis.id] = task
        logger.info("analysis_submitted", extra={"status": analysis.status})
        return analysis

    async def get_status(self, analysis_id: UUID) -> AnalysisDetail | None:
        return await self._store.get_detail(analysis_id)

    async def wait(self, analysis_id: UUID) -> AnalysisDetail | None:
        task = self._tasks.get(analysis_id)
        if task is not None:
            await asyncio.shield(task)
        return await self.get_status(analysis_id)

    def is_active(self, analysis_id: UUID) -> bool:
        task = self._tasks.get(analysis_id)
        return task is not None and not task.done() and task is not asyncio.current_task()

    async def run(self, analysis_id: UUID) -> None:
        if self.is_active(analysis_id):
            raise AnalysisStateError(analysis_id, "running")
        analysis = await self._store.get_analysis(analysis_id)
        if analysis is None:
            raise KeyError(analysis_id)
        if analysis.status != "pending":
            raise AnalysisStateError(analysis_id, analysis.status)

        set_analysis_id(str(analysis_id))
        analysis = await self._store.update_analysis(analysis_id, status="running")
        logger.info("analysis_started")
        try:
            step = next_step(analysis.completed_steps)
            while step is not None:
                updated = await self._run_step(analysis, step)
                if updated is None:
                    return
                analysis = updated
                step = next_step(analysis.completed_steps)
        finally:
            self._tasks.pop(analysis_id, None)
            set_analysis_id(None)

    async def _run_step(self, analysis: Analysis, step: str) -> Analysis | None:
        """Run one step; returns None once the analysis has been marked as failed."""
        analysis = await self._store.update_analysis(analysis.id, current_step=step)
        logger.info("analysis_step_started", extra={"step": step})
        started = time.perf_counter()
        handlers = {
            "ingest": self._step_ingest,
            "claims": self._step_claims,
            "risk": self._step_risk,
            "response": self._step_response,
        }
        try:
            fields = await handlers[step](analysis)
        except PipelineError as exc:
            await self._fail(analysis, step, exc.message, started)
            return None
        except Exception:
            logger.exception("analysis_step_crashed", extra={"step": step})
            await self._fail(analysis, step, "an unexpected internal error occurred", started)
            return None

        completed = [*analysis.completed_steps, step]
        fields["completed_steps"] = completed
        if next_step(completed) is None:
            fields.update(status="done", current_step=None, completed_at=_utcnow())
        duration_ms = int((time.perf_counter() - started) * 1000)
        observe_step(step, "success", duration_ms)
        logger.info("analysis_step_completed", extra={"step": step, "duration_ms": duration_ms})
        updated = await self._store.update_analysis(analysis.id, **fields)
        if updated.status == "done":
            logger.info("analysis_completed", extra={"status": "done"})
        return updated

    async def _fail(self, analysis: Analysis, step: str, reason: str, started: float) -> None:
        duration_ms = int((time.perf_counter() - started) * 1000)
        observe_step(step, "error", duration_ms)
        logger.warning("analysis_step_failed", extra={"step": step, "duration_ms": duration_ms})
        try:
            await self._store.update_analysis(
                analysis.id,
                status="error",
                current_step=step,
                error_message=f"{step} step failed: {reason}",
                completed_at=_utcnow(),
            )
        except Exception:
            # Store unavailable: the analysis is left as running.
            logger.exception("analysis_failure_not_recorded", extra={"step": step})

    async def _step_ingest(self, analysis: Analysis) -> dict:
        result = await self._ingestor.ingest(
            analysis.input_type,
            text=analysis.input_text,
            url=analysis.input_url,
        )
        return {"input_text": result.text}

    async def _step_claims(self, analysis: Analysis) -> dict:
        drafts = await extract_claims(analysis.input_text, self._llm, self._settings.max_claims)
        claims = await self._store.replace_claims(analysis.id, drafts)
        logger.info("claims_persisted", extra={"claims": len(claims)})
        topics: List[str] = []
        for claim in claims:
            if claim.topic and claim.topic not in topics:
                topics.append(claim.topic)
        return {"topics": topics}

    async def _step_risk(self, analysis: Analysis) -> dict:
        claims = await self._store.get_claims(analysis.id)
        semaphore = asyncio.Semaphore(max(1, self._settings.risk_max_concurrency))

        async def classify(claim: Claim) -> Claim:
            async with semaphore:
                assessment = await self._matcher.classify(claim)
                return await self._store.save_assessment(claim, assessment)

        assessed = await _gather_or_cancel([classify(claim) for claim in claims])
        escalated = [claim for claim in assessed if claim.severity in _ESCALATED]
        red_flags: List[str] = []
        for claim in escalated:
            for tag in claim.risk_tags:
                if tag not in red_flags:
                    red_flags.append(tag)
        return {
            "overall_severity": max_severity(claim.severity or "low" for claim in assessed),
            "red_flags_detected": bool(escalated),
            "red_flags": red_flags,
        }

    async def _step_response(self, analysis: Analysis) -> dict:
        claims = await self._store.get_claims(analysis.id)
        bundle = await generate_response(analysis, claims)
        await self._store.replace_outputs(analysis.id, bundle.outputs)
        return bundle.summary.model_dump()


def _log_task_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("analysis_task_crashed", exc_info=exc)


async def _gather_or_cancel(coroutines: List) -> List[Claim]:
    """Run coroutines concurrently; on the first failure cancel the rest and re-raise."""
    if not coroutines:
        return []
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    for task in tasks:
        if task in done and not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
    return [task.result() for task in tasks]


def _validate_request(request: AnalysisCreateRequest) -> None:
    if request.input_type == "text" and not (request.input_text or "").strip():
        raise InputError("input_text must not be empty", {"field": "input_text"})
    if request.input_type == "url" and not (request.input_url or "").strip():
        raise InputError("input_url must not be empty", {"field": "input_url"})
