from __future__ import annotations

import logging
from typing import Iterable, List

import asyncpg

from .. import db
from ..errors import CorpusUnavailableError
from ..models import ExampleInput, SourceDocument
from ..seed import example_inputs, source_documents

logger = logging.getLogger(__name__)


class EvidenceCorpus:
    """Read-only access to trusted documents and demo inputs."""

    async def documents(self) -> List[SourceDocument]:
        raise NotImplementedError

    async def examples(self) -> List[ExampleInput]:
        raise NotImplementedError

    async def ping(self) -> bool:
        await self.documents()
        return True


class InMemoryEvidenceCorpus(EvidenceCorpus):
    def __init__(
        self,
        documents: Iterable[SourceDocument] | None = None,
        examples: Iterable[ExampleInput] | None = None,
    ) -> None:
        self._documents = tuple(documents) if documents is not None else tuple(source_documents())
        self._examples = tuple(examples) if examples is not None else tuple(example_inputs())

    async def documents(self) -> List[SourceDocument]:
        return list(self._documents)

    async def examples(self) -> List[ExampleInput]:
        return list(self._examples)


class PostgresEvidenceCorpus(EvidenceCorpus):
    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def documents(self) -> List[SourceDocument]:
        try:
            rows = await db.fetch_source_documents(self._pool)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            logger.warning("corpus_query_failed", extra={"status": type(exc).__name__})
            raise CorpusUnavailableError(str(exc)) from exc
        return [
            SourceDocument(
                id=row["id"],
                title=row["title"],
                organization=row["organization"],
                url=row["url"],
                content=row["content"],
                category=row["category"],
            )
            for row in rows
        ]

    async def examples(self) -> List[ExampleInput]:
        try:
            rows = await db.fetch_example_inputs(self._pool)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            raise CorpusUnavailableError(str(exc)) from exc
        return [
            ExampleInput(
                id=row["id"],
                title=row["title"],
                content=row["content"],
                category=row["category"],
                expected_severity=row["expected_severity"],
            )
            for row in rows
        ]
