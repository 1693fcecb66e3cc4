from __future__ import annotations

from typing import List

from fastapi import APIRouter, Request

from ..models import ExampleInput, SourceDocument


router = APIRouter(tags=["corpus"])


@router.get("/sources", response_model=List[SourceDocument])
async def list_sources(request: Request) -> List[SourceDocument]:
    return await request.app.state.corpus.documents()


@router.get("/examples", response_model=List[ExampleInput])
async def list_examples(request: Request) -> List[ExampleInput]:
    return await request.app.state.corpus.examples()
