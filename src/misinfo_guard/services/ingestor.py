from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from ..errors import ContentExtractionError, EmptyInputError, FetchError
from ..text_utils import normalize_whitespace, truncate_chars

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPES = ("text/html", "text/plain", "application/xhtml+xml")
_STRIPPED_TAGS = ("script", "style", "nav", "header", "footer", "aside", "form", "noscript", "svg")
_BLOCK_TAGS = ("p", "li", "h1", "h2", "h3", "h4", "blockquote", "td")

DEFAULT_HEADERS = {
    "User-Agent": "misinfo-guard/1.0 (+health claim review)",
    "Accept": "text/html,application/xhtml+xml,text/plain;q=0.9,*/*;q=0.5",
}


@dataclass(frozen=True)
class IngestResult:
    text: str
    truncated: bool
    source_url: str | None = None


class Ingestor:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        max_chars: int = 20000,
        timeout: float = 15.0,
        max_bytes: int = 2_000_000,
    ) -> None:
        self._http_client = http_client
        self._max_chars = max_chars
        self._timeout = timeout
        self._max_bytes = max_bytes

    async def ingest(self, input_type: str, text: str | None = None, url: str | None = None) -> IngestResult:
        if input_type == "url":
            if not url or not url.strip():
                raise EmptyInputError("input_url is required for url input")
            return await self.ingest_url(url.strip())
        if not text or not text.strip():
            raise EmptyInputError("input_text is empty")
        return self._finalize(text.strip())

    async def ingest_url(self, url: str) -> IngestResult:
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise FetchError(url, "only absolute http(s) URLs are supported")
        try:
            response = await self._http_client.get(
                url,
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
                timeout=httpx.Timeout(self._timeout),
            )
        except httpx.HTTPError as exc:
            raise FetchError(url, type(exc).__name__) from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise FetchError(url, f"HTTP {response.status_code}")
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type not in TEXT_CONTENT_TYPES:
            raise FetchError(url, f"unsupported content type {content_type or 'unknown'}")
        if len(response.content) > self._max_bytes:
            raise FetchError(url, "response body too large")

        if content_type == "text/plain":
            text = normalize_whitespace(response.text)
        else:
            text = extract_readable_text(response.text)
        if not text:
            raise ContentExtractionError(url)
        logger.info("url_ingested", extra={"status": response.status_code, "endpoint": url})
        return self._finalize(text, source_url=str(response.url))

    def _finalize(self, text: str, source_url: str | None = None) -> IngestResult:
        capped = truncate_chars(text, self._max_chars)
        return IngestResult(text=capped, truncated=len(capped) < len(text), source_url=source_url)


def extract_readable_text(html: str) -> str:
    """Primary readable text of an HTML page, one block per line."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(list(_STRIPPED_TAGS)):
        tag.decompose()
    root = soup.find("article") or soup.find("main") or soup.body or soup
    blocks = [
        normalize_whitespace(node.get_text(" ", strip=True))
        for node in root.find_all(list(_BLOCK_TAGS))
    ]
    blocks = [block for block in blocks if block]
    if not blocks:
        fallback = normalize_whitespace(root.get_text(" ", strip=True))
        return fallback
    return "\n".join(_dedupe(blocks))


def _dedupe(blocks: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for block in blocks:
        if block in seen:
            continue
        seen.add(block)
        unique.append(block)
    return unique
