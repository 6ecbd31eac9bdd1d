"""Result types and protocol shared by drafting backend gateways."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from content_engine.models.analysis import StatementAnalysis
from content_engine.models.version import PublicSource


class ApiStatus(Enum):
    UNKNOWN = "unknown"
    OK = "ok"
    ERROR = "error"


class ResponseShape(Enum):
    """Which branch of the normalisation chain produced a result."""

    RAW_TEXT = "raw_text"
    OUTPUTS = "outputs"
    OUTPUT = "output"
    CHOICES = "choices"
    RESULT = "result"
    PRETTY_JSON = "pretty_json"


@dataclass(frozen=True)
class OutputRecord:
    """One drafted output; ``output_type`` is whatever the backend reported."""

    text: str
    output_type: str | None = None
    score: float | None = None
    metrics: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ParsedResponse:
    shape: ResponseShape
    outputs: tuple[OutputRecord, ...]
    public_sources: tuple[PublicSource, ...] = ()

    @property
    def primary(self) -> OutputRecord:
        return self.outputs[0]


@dataclass(frozen=True)
class FetchedPage:
    text: str
    title: str | None = None
    url: str | None = None


@runtime_checkable
class DraftingBackend(Protocol):
    """Interface the workspace expects from a backend gateway."""

    base_url: str

    async def check_health(self) -> ApiStatus: ...

    async def call_generate(self, payload: dict[str, Any]) -> ParsedResponse: ...

    async def call_rewrite(self, payload: dict[str, Any]) -> ParsedResponse: ...

    async def fetch_url(self, url: str) -> FetchedPage: ...

    async def analyse_statements(
        self, text: str, scenario: str | None = None, version_type: str | None = None
    ) -> StatementAnalysis: ...
