"""Source aggregation: uploaded files, fetched pages and pasted text."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from content_engine.errors import EmptySourceError, WorkspaceValidationError
from content_engine.gateway.base import DraftingBackend
from content_engine.models.source import Source, SourceKind, SourceMeta
from content_engine.utils.text import join_blocks

logger = logging.getLogger(__name__)


def validate_url(raw: str) -> str:
    """Return the trimmed URL, or raise if it is not an absolute http(s) URL."""
    candidate = (raw or "").strip()
    if not candidate:
        raise WorkspaceValidationError("Enter a URL to add.")
    try:
        parsed = httpx.URL(candidate)
    except httpx.InvalidURL as exc:
        raise WorkspaceValidationError(f"Invalid URL: {candidate}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise WorkspaceValidationError(f"Invalid URL: {candidate}")
    return candidate


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class SourceAggregator:
    """Ordered list of sources plus the free-form pasted text.

    Sources are only ever appended or removed; reads that finish in any order
    each append their own entry.
    """

    def __init__(self) -> None:
        self._sources: list[Source] = []
        self.manual_text: str = ""

    @property
    def sources(self) -> tuple[Source, ...]:
        return tuple(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def add_upload(self, name: str, data: bytes) -> Source:
        source = Source(name=name, text=decode_text(data), kind=SourceKind.FILE, size=len(data))
        self._sources.append(source)
        logger.info("Added file source %s (%d bytes)", name, len(data))
        return source

    async def add_file(self, path: Path | str) -> Source:
        """Read ``path`` in a worker thread and append it once the read completes."""
        path = Path(path)
        data = await asyncio.to_thread(path.read_bytes)
        return self.add_upload(path.name, data)

    async def add_files(self, paths: list[Path | str]) -> list[Source]:
        """Read every path concurrently; the first failure is raised once all reads are done."""
        results = await asyncio.gather(*(self.add_file(p) for p in paths), return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for extra in errors[1:]:
                logger.warning("File read failed: %s", extra)
            raise errors[0]
        return list(results)

    async def add_url(self, url: str, backend: DraftingBackend) -> Source:
        """Fetch ``url`` through the backend and append it if it produced text.

        Raises ``WorkspaceValidationError`` before any request for malformed
        URLs and ``EmptySourceError`` when the page had no text.
        """
        url = validate_url(url)
        page = await backend.fetch_url(url)
        if not page.text.strip():
            raise EmptySourceError(f"No text could be extracted from {url}")
        source = Source(
            name=page.title or url,
            text=page.text,
            kind=SourceKind.URL,
            url=url,
        )
        self._sources.append(source)
        logger.info("Added URL source %s (%d chars)", url, len(page.text))
        return source

    def remove_source(self, index: int) -> Source:
        if not 0 <= index < len(self._sources):
            raise WorkspaceValidationError(f"No source at position {index}")
        return self._sources.pop(index)

    def clear(self) -> None:
        self._sources.clear()
        self.manual_text = ""

    def combined_text(self) -> str:
        """Pasted text first, then each source in insertion order, blank-line separated."""
        return join_blocks([self.manual_text, *(s.text for s in self._sources)])

    def snapshot(self) -> tuple[SourceMeta, ...]:
        return tuple(s.meta() for s in self._sources)
