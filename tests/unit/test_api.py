from __future__ import annotations

import asyncio
from uuid import UUID, uuid4

import httpx

from misinfo_guard.config import Settings
from misinfo_guard.main import configure_state, create_app
from misinfo_guard.services.corpus import InMemoryEvidenceCorpus
from misinfo_guard.storage import InMemoryAnalysisStore


def _app():
    app = create_app()
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(404, text="missing"))
    )
    configure_state(
        app,
        Settings(evidence_retry_backoff=0.0),
        InMemoryAnalysisStore(),
        InMemoryEvidenceCorpus(),
        http_client,
    )
    return app


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def test_submit_and_poll_terminal_analysis() -> None:
    app = _app()

    async def scenario():
        async with _client(app) as client:
            created = await client.post(
                "/api/v1/analyze",
                json={"input_type": "text", "input_text": "Antibiotics cure colds.", "region": "UK"},
            )
            assert created.status_code == 202
            body = created.json()
            assert body["status"] == "pending"
            assert body["poll_url"] == f"/api/v1/analysis/{body['id']}"

            await app.state.orchestrator.wait(UUID(body["id"]))
            first = await client.get(body["poll_url"])
            second = await client.get(body["poll_url"])
            listing = await client.get("/api/v1/analyses", params={"limit": 5})
            return first, second, listing

    first, second, listing = asyncio.run(scenario())
    assert first.status_code == 200
    assert first.content == second.content
    payload = first.json()
    assert payload["status"] == "done"
    assert len(payload["outputs"]) == 9
    assert payload["claims"][0]["citations"]
    assert "999" in payload["when_to_seek_care"]

    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["items"][0]["overall_severity"] == "high"


def test_blank_input_is_rejected_with_422() -> None:
    app = _app()

    async def scenario():
        async with _client(app) as client:
            rejected = await client.post("/api/v1/analyze", json={"input_type": "text", "input_text": "  "})
            listing = await client.get("/api/v1/analyses")
            return rejected, listing

    rejected, listing = asyncio.run(scenario())
    assert rejected.status_code == 422
    assert rejected.json()["error"] == "InvalidInput"
    assert listing.json()["total"] == 0


def test_unknown_analysis_returns_404() -> None:
    app = _app()

    async def scenario():
        async with _client(app) as client:
            missing = await client.get(f"/api/v1/analysis/{uuid4()}")
            feedback = await client.post(
                f"/api/v1/analysis/{uuid4()}/feedback", json={"rating": "helpful"}
            )
            return missing, feedback

    missing, feedback = asyncio.run(scenario())
    assert missing.status_code == 404
    assert feedback.status_code == 404


def test_feedback_is_recorded() -> None:
    app = _app()

    async def scenario():
        async with _client(app) as client:
            created = await client.post(
                "/api/v1/analyze", json={"input_type": "text", "input_text": "Vaccines cause autism."}
            )
            analysis_id = created.json()["id"]
            await app.state.orchestrator.wait(UUID(analysis_id))
            response = await client.post(
                f"/api/v1/analysis/{analysis_id}/feedback",
                json={"rating": "missing_sources", "comment": "  add more sources  "},
            )
            stored = await app.state.store.get_feedback(UUID(analysis_id))
            return response, stored

    response, stored = asyncio.run(scenario())
    assert response.status_code == 201
    assert response.json()["rating"] == "missing_sources"
    assert stored[0].comment == "add more sources"


def test_corpus_health_and_metrics_endpoints() -> None:
    app = _app()

    async def scenario():
        async with _client(app) as client:
            return (
                await client.get("/api/v1/sources"),
                await client.get("/api/v1/examples"),
                await client.get("/health"),
                await client.get("/metrics"),
            )

    sources, examples, health, metrics = asyncio.run(scenario())
    assert len(sources.json()) == 10
    assert {item["organization"] for item in sources.json()} == {"CDC", "WHO", "NHS"}
    assert len(examples.json()) == 5
    assert health.json() == {
        "status": "healthy",
        "services": {"store": "up", "corpus": "up", "redis": "disabled"},
        "version": "1.0.0",
    }
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text
