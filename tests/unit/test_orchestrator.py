from __future__ import annotations

import asyncio
import itertools
from typing import List

import httpx
import pytest

from misinfo_guard.chains.evidence_matcher import EvidenceMatcher
from misinfo_guard.config import Settings
from misinfo_guard.errors import AnalysisStateError, CorpusUnavailableError, InputError
from misinfo_guard.models import OUTPUT_FORMATS, OUTPUT_LENGTHS, SEVERITY_RANK, STEP_ORDER, Analysis
from misinfo_guard.schemas import AnalysisCreateRequest
from misinfo_guard.seed import example_inputs
from misinfo_guard.services import orchestrator as orchestrator_module
from misinfo_guard.services.corpus import InMemoryEvidenceCorpus
from misinfo_guard.services.ingestor import Ingestor
from misinfo_guard.services.orchestrator import Orchestrator
from misinfo_guard.storage import InMemoryAnalysisStore


class _RecordingStore(InMemoryAnalysisStore):
    def __init__(self) -> None:
        super().__init__()
        self.snapshots: List[Analysis] = []

    async def update_analysis(self, analysis_id, **fields):
        updated = await super().update_analysis(analysis_id, **fields)
        self.snapshots.append(updated)
        return updated


class _FailingAfterCorpus(InMemoryEvidenceCorpus):
    def __init__(self, successes: int) -> None:
        super().__init__()
        self.successes = successes
        self.calls = 0

    async def documents(self):
        self.calls += 1
        if self.calls > self.successes:
            raise CorpusUnavailableError("database connection lost")
        return await super().documents()


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def _build(corpus=None, handler=_unreachable, **settings_overrides):
    settings = Settings(evidence_retry_backoff=0.0, **settings_overrides)
    store = _RecordingStore()
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    matcher = EvidenceMatcher(
        corpus or InMemoryEvidenceCorpus(),
        max_retries=settings.evidence_max_retries,
        backoff_seconds=settings.evidence_retry_backoff,
    )
    orchestrator = Orchestrator(store, Ingestor(http_client), matcher, settings)
    return orchestrator, store


def _run(orchestrator: Orchestrator, request: AnalysisCreateRequest):
    async def scenario():
        analysis = await orchestrator.submit(request)
        assert analysis.status == "pending"
        return await orchestrator.wait(analysis.id)

    return asyncio.run(scenario())


def test_antibiotics_claim_end_to_end() -> None:
    orchestrator, store = _build()
    detail = _run(orchestrator, AnalysisCreateRequest(input_text="Antibiotics cure colds."))

    assert detail.status == "done"
    assert detail.completed_steps == list(STEP_ORDER)
    assert detail.current_step is None
    assert detail.completed_at is not None
    assert detail.topics == ["antibiotics"]

    (claim,) = detail.claims
    assert claim.topic in {"antibiotics", "viral"}
    assert claim.stance == "contradicted"
    assert SEVERITY_RANK[claim.severity] >= SEVERITY_RANK["high"]
    assert {citation.source_org for citation in claim.citations} & {"CDC", "WHO", "NHS"}

    assert detail.overall_severity == "high"
    assert detail.red_flags_detected is True
    assert detail.red_flags == ["antibiotic_misuse"]
    assert detail.when_to_seek_care
    assert detail.disclaimer

    pairs = [(output.format, output.length) for output in detail.outputs]
    assert sorted(pairs) == sorted(itertools.product(OUTPUT_FORMATS, OUTPUT_LENGTHS))


def test_feeling_statement_finishes_without_claims() -> None:
    orchestrator, _ = _build()
    detail = _run(orchestrator, AnalysisCreateRequest(input_text="I feel tired today."))

    assert detail.status == "done"
    assert detail.claims == []
    assert detail.red_flags_detected is False
    assert detail.topics == []
    assert detail.overall_severity == "low"
    assert len(detail.outputs) == 9


def test_unreachable_url_fails_at_ingest() -> None:
    orchestrator, _ = _build()
    detail = _run(
        orchestrator,
        AnalysisCreateRequest(input_type="url", input_url="http://unreachable.invalid/article"),
    )

    assert detail.status == "error"
    assert detail.current_step == "ingest"
    assert detail.error_message.startswith("ingest step failed")
    assert detail.completed_steps == []
    assert detail.completed_at is not None
    assert detail.claims == []
    assert detail.outputs == []


def test_corpus_outage_keeps_claims_already_classified() -> None:
    corpus = _FailingAfterCorpus(successes=2)
    orchestrator, _ = _build(corpus=corpus, risk_max_concurrency=1, evidence_max_retries=0)
    detail = _run(
        orchestrator,
        AnalysisCreateRequest(
            input_text=(
                "Antibiotics cure colds. Vaccines cause autism in children. "
                "Essential oils cure cancer naturally."
            )
        ),
    )

    assert detail.status == "error"
    assert detail.current_step == "risk"
    assert detail.error_message == "risk step failed: the trusted evidence corpus is unavailable"
    assert detail.completed_steps == ["ingest", "claims"]
    assert len(detail.claims) == 3
    first, second, third = detail.claims
    assert first.stance is not None and first.citations
    assert second.stance is not None and second.citations
    assert third.stance is None and third.citations == []
    assert detail.overall_severity is None
    assert detail.outputs == []


def test_unexpected_failure_is_reported_with_step(monkeypatch) -> None:
    async def _broken(analysis, claims):
        raise RuntimeError("template exploded")

    monkeypatch.setattr(orchestrator_module, "generate_response", _broken)
    orchestrator, _ = _build()
    detail = _run(orchestrator, AnalysisCreateRequest(input_text="Antibiotics cure colds."))

    assert detail.status == "error"
    assert detail.current_step == "response"
    assert detail.error_message == "response step failed: an unexpected internal error occurred"
    assert detail.completed_steps == ["ingest", "claims", "risk"]
    assert detail.claims[0].citations


def test_progress_is_monotonic_and_severity_set_after_risk() -> None:
    orchestrator, store = _build()
    _run(orchestrator, AnalysisCreateRequest(input_text="Vaccines cause autism in children."))

    previous: List[str] = []
    for snapshot in store.snapshots:
        steps = list(snapshot.completed_steps)
        assert steps == list(STEP_ORDER[: len(steps)])
        assert steps[: len(previous)] == previous
        previous = steps
        if "risk" not in steps:
            assert snapshot.overall_severity is None
        else:
            assert snapshot.overall_severity == "high"


def test_blank_input_is_rejected_before_creation() -> None:
    orchestrator, store = _build()

    async def scenario():
        with pytest.raises(InputError):
            await orchestrator.submit(AnalysisCreateRequest(input_text="   "))
        with pytest.raises(InputError):
            await orchestrator.submit(AnalysisCreateRequest(input_type="url"))
        return await store.count_analyses()

    assert asyncio.run(scenario()) == 0


def test_terminal_analysis_cannot_run_again() -> None:
    orchestrator, store = _build()

    async def scenario():
        analysis = await orchestrator.submit(AnalysisCreateRequest(input_text="Antibiotics cure colds."))
        with pytest.raises(AnalysisStateError):
            await orchestrator.run(analysis.id)
        await orchestrator.wait(analysis.id)
        with pytest.raises(AnalysisStateError):
            await orchestrator.run(analysis.id)
        return await store.get_analysis(analysis.id)

    assert asyncio.run(scenario()).status == "done"


@pytest.mark.parametrize("example", example_inputs(), ids=lambda example: example.title)
def test_seed_examples_reach_expected_severity(example) -> None:
    orchestrator, _ = _build()
    detail = _run(orchestrator, AnalysisCreateRequest(input_text=example.content))
    assert detail.status == "done"
    assert detail.overall_severity == example.expected_severity
    assert detail.red_flags_detected is True


class _BrokenWritesStore(InMemoryAnalysisStore):
    def __init__(self, broken_status: str) -> None:
        super().__init__()
        self.broken_status = broken_status

    async def update_analysis(self, analysis_id, **fields):
        if fields.get("status") == self.broken_status:
            raise RuntimeError("database connection lost")
        return await super().update_analysis(analysis_id, **fields)


def _build_with_store(store: InMemoryAnalysisStore) -> Orchestrator:
    settings = Settings(evidence_retry_backoff=0.0)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_unreachable))
    matcher = EvidenceMatcher(InMemoryEvidenceCorpus(), backoff_seconds=0.0)
    return Orchestrator(store, Ingestor(http_client), matcher, settings)


def test_failed_error_write_is_logged_and_run_finishes(caplog) -> None:
    store = _BrokenWritesStore("error")
    orchestrator = _build_with_store(store)

    async def scenario():
        analysis = await orchestrator.submit(
            AnalysisCreateRequest(input_type="url", input_url="http://unreachable.invalid/article")
        )
        detail = await orchestrator.wait(analysis.id)
        return detail, orchestrator.is_active(analysis.id)

    detail, active = asyncio.run(scenario())

    assert detail.status == "running"
    assert detail.current_step == "ingest"
    assert active is False
    assert "analysis_failure_not_recorded" in [record.getMessage() for record in caplog.records]


def test_crashed_run_is_logged(caplog) -> None:
    store = _BrokenWritesStore("done")
    orchestrator = _build_with_store(store)

    async def scenario():
        analysis = await orchestrator.submit(AnalysisCreateRequest(input_text="Antibiotics cure colds."))
        with pytest.raises(RuntimeError):
            await orchestrator.wait(analysis.id)

    asyncio.run(scenario())

    crashed = [record for record in caplog.records if record.getMessage() == "analysis_task_crashed"]
    assert len(crashed) == 1
    assert isinstance(crashed[0].exc_info[1], RuntimeError)
