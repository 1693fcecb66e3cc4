from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .chains.evidence_matcher import EvidenceMatcher
from .config import Settings
from .db import create_pool
from .errors import AnalysisStateError, CorpusUnavailableError, InputError
from .llm_client import LLMClient
from .observability import configure_logging, metrics_response, observability_middleware
from .redis_client import create_redis
from .routers import analysis as analysis_router
from .routers import corpus as corpus_router
from .routers import health as health_router
from .services.corpus import EvidenceCorpus, InMemoryEvidenceCorpus, PostgresEvidenceCorpus
from .services.ingestor import DEFAULT_HEADERS, Ingestor
from .services.orchestrator import Orchestrator
from .storage import AnalysisStore, InMemoryAnalysisStore, PostgresAnalysisStore


logger = logging.getLogger(__name__)


def configure_state(
    app: FastAPI,
    settings: Settings,
    store: AnalysisStore,
    corpus: EvidenceCorpus,
    http_client: httpx.AsyncClient,
    redis=None,
    llm: LLMClient | None = None,
) -> Orchestrator:
    matcher = EvidenceMatcher(
        corpus,
        top_k=settings.evidence_top_k,
        min_relevance=settings.evidence_min_relevance,
        max_retries=settings.evidence_max_retries,
        backoff_seconds=settings.evidence_retry_backoff,
    )
    ingestor = Ingestor(
        http_client,
        max_chars=settings.ingest_max_chars,
        timeout=settings.ingest_timeout,
        max_bytes=settings.ingest_max_bytes,
    )
    orchestrator = Orchestrator(store, ingestor, matcher, settings, llm=llm)
    app.state.settings = settings
    app.state.store = store
    app.state.corpus = corpus
    app.state.http_client = http_client
    app.state.redis = redis
    app.state.orchestrator = orchestrator
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = Settings()
    pool = None
    if settings.storage_backend == "postgres":
        pool = await create_pool(settings.database_dsn)
        store: AnalysisStore = PostgresAnalysisStore(pool)
        corpus: EvidenceCorpus = PostgresEvidenceCorpus(pool)
    else:
        store = InMemoryAnalysisStore()
        corpus = InMemoryEvidenceCorpus()
    redis = await create_redis(settings.redis_url)
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.ingest_timeout),
        follow_redirects=True,
        headers=DEFAULT_HEADERS,
    )
    configure_state(app, settings, store, corpus, http_client, redis, LLMClient.from_settings(settings))
    logger.info("service_started", extra={"status": settings.storage_backend})
    try:
        yield
    finally:
        await http_client.aclose()
        if redis is not None:
            await redis.close()
        if pool is not None:
            await pool.close()


def create_app() -> FastAPI:
    app = FastAPI(title="Misinfo Guard", version="1.0.0", lifespan=lifespan)
    app.middleware("http")(observability_middleware)

    @app.exception_handler(InputError)
    async def _input_error(request: Request, exc: InputError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": "InvalidInput", "message": exc.message, "details": exc.details},
        )

    @app.exception_handler(AnalysisStateError)
    async def _state_error(request: Request, exc: AnalysisStateError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"error": "AnalysisStateError", "message": str(exc), "status": exc.status},
        )

    @app.exception_handler(CorpusUnavailableError)
    async def _corpus_error(request: Request, exc: CorpusUnavailableError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={"error": "CorpusUnavailable", "message": "the evidence corpus is unavailable"},
        )

    app.include_router(analysis_router.router, prefix="/api/v1")
    app.include_router(corpus_router.router, prefix="/api/v1")
    app.include_router(health_router.router)

    @app.get("/metrics")
    async def metrics():
        return metrics_response()

    return app


configure_logging("misinfo-guard")
app = create_app()
