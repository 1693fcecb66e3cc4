from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List
from uuid import UUID

import asyncpg

from .models import Analysis, Citation, Claim, ExampleInput, Feedback, GeneratedOutput, SourceDocument

ANALYSIS_UPDATABLE_COLUMNS = frozenset(
    {
        "input_text",
        "status",
        "current_step",
        "completed_steps",
        "overall_severity",
        "red_flags_detected",
        "red_flags",
        "topics",
        "disclaimer",
        "what_is_wrong",
        "what_we_know",
        "what_to_do",
        "when_to_seek_care",
        "uncertainty_notes",
        "error_message",
        "completed_at",
    }
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_pool(dsn: str) -> asyncpg.Pool:
    return await asyncpg.create_pool(dsn=dsn, min_size=1, max_size=10)


async def insert_analysis(pool: asyncpg.Pool, analysis: Analysis) -> None:
    await pool.execute(
        "INSERT INTO analyses "
        "(id, input_type, input_text, input_url, region, tone, audience, platform, "
        "status, completed_steps, red_flags_detected, red_flags, topics, created_at) "
        "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)",
        analysis.id,
        analysis.input_type,
        analysis.input_text,
        analysis.input_url,
        analysis.region,
        analysis.tone,
        analysis.audience,
        analysis.platform,
        analysis.status,
        list(analysis.completed_steps),
        analysis.red_flags_detected,
        list(analysis.red_flags),
        list(analysis.topics),
        analysis.created_at,
    )


async def update_analysis(pool: asyncpg.Pool, analysis_id: UUID, fields: Dict[str, Any]) -> None:
    unknown = set(fields) - ANALYSIS_UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"cannot update analysis columns: {sorted(unknown)}")
    if not fields:
        return
    columns = sorted(fields)
    assignments = ", ".join(f"{column}=${index}" for index, column in enumerate(columns, start=2))
    values = [list(fields[c]) if isinstance(fields[c], (list, tuple)) else fields[c] for c in columns]
    await pool.execute(
        f"UPDATE analyses SET {assignments} WHERE id=$1",
        analysis_id,
        *values,
    )


async def fetch_analysis(pool: asyncpg.Pool, analysis_id: UUID) -> asyncpg.Record | None:
    return await pool.fetchrow("SELECT * FROM analyses WHERE id=$1", analysis_id)


async def fetch_recent_analyses(pool: asyncpg.Pool, limit: int) -> List[asyncpg.Record]:
    return await pool.fetch(
        "SELECT * FROM analyses ORDER BY created_at DESC LIMIT $1",
        limit,
    )


async def count_analyses(pool: asyncpg.Pool) -> int:
    row = await pool.fetchrow("SELECT COUNT(*) AS total FROM analyses")
    return int(row["total"]) if row else 0


async def replace_claims(pool: asyncpg.Pool, analysis_id: UUID, claims: Iterable[Claim]) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute("DELETE FROM claims WHERE analysis_id=$1", analysis_id)
            for position, claim in enumerate(claims):
                await conn.execute(
                    "INSERT INTO claims "
                    "(id, analysis_id, position, claim_text, claim_type, topic, "
                    "target_population, urgency_hint, potential_harm, certainty_in_text, "
                    "risk_tags, created_at) "
                    "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)",
                    claim.id,
                    analysis_id,
                    position,
                    claim.claim_text,
                    claim.claim_type,
                    claim.topic,
                    claim.target_population,
                    claim.urgency_hint,
                    claim.potential_harm,
                    claim.certainty_in_text,
                    list(claim.risk_tags),
                    _utcnow(),
                )


async def update_claim_assessment(
    pool: asyncpg.Pool,
    claim: Claim,
    citations: Iterable[Citation],
) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(
                "UPDATE claims SET stance=$2, stance_confidence=$3, stance_explanation=$4, "
                "severity=$5, risk_reason=$6, risk_tags=$7 WHERE id=$1",
                claim.id,
                claim.stance,
                claim.stance_confidence,
                claim.stance_explanation,
                claim.severity,
                claim.risk_reason,
                list(claim.risk_tags),
            )
            await conn.execute("DELETE FROM citations WHERE claim_id=$1", claim.id)
            for position, citation in enumerate(citations):
                await conn.execute(
                    "INSERT INTO citations "
                    "(id, claim_id, position, source_org, source_title, source_url, snippet, "
                    "relevance, created_at) "
                    "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)",
                    citation.id,
                    claim.id,
                    position,
                    citation.source_org,
                    citation.source_title,
                    citation.source_url,
                    citation.snippet,
                    citation.relevance,
                    _utcnow(),
                )


async def fetch_claims(pool: asyncpg.Pool, analysis_id: UUID) -> List[asyncpg.Record]:
    return await pool.fetch(
        "SELECT * FROM claims WHERE analysis_id=$1 ORDER BY position",
        analysis_id,
    )


async def fetch_citations(pool: asyncpg.Pool, claim_ids: Iterable[UUID]) -> List[asyncpg.Record]:
    claim_ids_list = list(claim_ids)
    if not claim_ids_list:
        return []
    return await pool.fetch(
        "SELECT * FROM citations WHERE claim_id = ANY($1::uuid[]) ORDER BY claim_id, position",
        claim_ids_list,
    )


async def replace_outputs(
    pool: asyncpg.Pool,
    analysis_id: UUID,
    outputs: Iterable[GeneratedOutput],
) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute("DELETE FROM generated_outputs WHERE analysis_id=$1", analysis_id)
            for position, output in enumerate(outputs):
                await conn.execute(
                    "INSERT INTO generated_outputs "
                    "(id, analysis_id, position, format, length, content, created_at) "
                    "VALUES ($1, $2, $3, $4, $5, $6, $7)",
                    output.id,
                    analysis_id,
                    position,
                    output.format,
                    output.length,
                    output.content,
                    _utcnow(),
                )


async def fetch_outputs(pool: asyncpg.Pool, analysis_id: UUID) -> List[asyncpg.Record]:
    return await pool.fetch(
        "SELECT * FROM generated_outputs WHERE analysis_id=$1 ORDER BY position",
        analysis_id,
    )


async def insert_feedback(pool: asyncpg.Pool, feedback: Feedback) -> None:
    await pool.execute(
        "INSERT INTO feedback (id, analysis_id, rating, comment, created_at) "
        "VALUES ($1, $2, $3, $4, $5)",
        feedback.id,
        feedback.analysis_id,
        feedback.rating,
        feedback.comment,
        feedback.created_at,
    )


async def fetch_source_documents(pool: asyncpg.Pool) -> List[asyncpg.Record]:
    return await pool.fetch("SELECT * FROM source_documents ORDER BY id")


async def fetch_example_inputs(pool: asyncpg.Pool) -> List[asyncpg.Record]:
    return await pool.fetch("SELECT * FROM example_inputs ORDER BY id")


async def count_source_documents(pool: asyncpg.Pool) -> int:
    row = await pool.fetchrow("SELECT COUNT(*) AS total FROM source_documents")
    return int(row["total"]) if row else 0


async def insert_source_documents(
    pool: asyncpg.Pool,
    documents: Iterable[SourceDocument],
) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            for document in documents:
                await conn.execute(
                    "INSERT INTO source_documents "
                    "(id, title, organization, url, content, category, created_at) "
                    "VALUES ($1, $2, $3, $4, $5, $6, $7) ON CONFLICT (id) DO NOTHING",
                    document.id,
                    document.title,
                    document.organization,
                    document.url,
                    document.content,
                    document.category,
                    _utcnow(),
                )


async def insert_example_inputs(pool: asyncpg.Pool, examples: Iterable[ExampleInput]) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            for example in examples:
                await conn.execute(
                    "INSERT INTO example_inputs "
                    "(id, title, content, category, expected_severity, created_at) "
                    "VALUES ($1, $2, $3, $4, $5, $6) ON CONFLICT (id) DO NOTHING",
                    example.id,
                    example.title,
                    example.content,
                    example.category,
                    example.expected_severity,
                    _utcnow(),
                )
