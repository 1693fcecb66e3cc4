from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from misinfo_guard.llm_client import LLMClient


def _client(max_retries: int = 2) -> LLMClient:
    return LLMClient(
        provider="openai",
        model="test-model",
        api_key="test-key",
        base_url="https://example.invalid/v1",
        temperature=0.0,
        max_tokens=128,
        max_retries=max_retries,
        backoff_seconds=0.0,
    )


def _fake_client(responses: list, calls: list):
    class _FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def post(self, url, json=None, headers=None):
            calls.append((json or {}).get("model"))
            status, body = responses.pop(0)
            return httpx.Response(status_code=status, request=httpx.Request("POST", url), json=body)

    return _FakeAsyncClient


def _completion(payload: object) -> dict:
    return {"choices": [{"message": {"content": json.dumps(payload)}}]}


def test_llm_retries_server_errors(monkeypatch) -> None:
    calls: list = []
    responses = [
        (503, {"error": {"message": "overloaded"}}),
        (200, _completion({"claims": []})),
    ]
    monkeypatch.setattr(httpx, "AsyncClient", _fake_client(responses, calls))

    result = asyncio.run(_client().generate_json("extract", "payload", trace={"stage": "claims"}))

    assert result == {"claims": []}
    assert calls == ["test-model", "test-model"]


def test_llm_does_not_retry_client_errors(monkeypatch) -> None:
    calls: list = []
    responses = [(401, {"error": {"message": "bad key"}})]
    monkeypatch.setattr(httpx, "AsyncClient", _fake_client(responses, calls))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_client().generate_json("extract", "payload"))
    assert len(calls) == 1


def test_llm_extracts_json_from_wrapped_content(monkeypatch) -> None:
    calls: list = []
    wrapped = {"choices": [{"message": {"content": 'Here you go: {"claims": [1]} thanks'}}]}
    monkeypatch.setattr(httpx, "AsyncClient", _fake_client([(200, wrapped)], calls))

    assert asyncio.run(_client().generate_json("extract", "payload")) == {"claims": [1]}


def test_disabled_client_refuses_requests() -> None:
    client = LLMClient(
        provider="",
        model=None,
        api_key=None,
        base_url=None,
        temperature=0.0,
        max_tokens=128,
    )
    assert client.enabled is False
    with pytest.raises(RuntimeError):
        asyncio.run(client.generate_json("extract", "payload"))
