"""Version data model: one immutable generated or rewritten draft."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from content_engine.models.source import SourceMeta
from content_engine.models.workspace_config import ModelSettings, OutputType, Scenario
from content_engine.utils.format import format_number
from content_engine.utils.text import word_count


@dataclass(frozen=True)
class PublicSource:
    """A public document the backend consulted when public search was on."""

    title: str
    url: str
    text_length: int | None = None

    def to_dict(self) -> dict:
        return {"title": self.title, "url": self.url, "textLength": self.text_length}


@dataclass(frozen=True)
class Version:
    """A snapshot of one draft. Edits go to the workspace scratch buffer instead."""

    id: str
    version_number: int
    created_at: datetime
    title: str
    scenario: Scenario | None
    output_type: OutputType
    text: str
    score: float | None = None
    metrics: dict[str, float] = field(default_factory=dict)
    sources: tuple[SourceMeta, ...] = ()
    comment: str = ""
    model: ModelSettings | None = None
    public_search: bool = False
    public_sources: tuple[PublicSource, ...] = ()

    @property
    def word_count(self) -> int:
        return word_count(self.text)

    @property
    def label(self) -> str:
        parts = [f"V{self.version_number}", self.output_type.label, f"{format_number(self.word_count)} words"]
        if self.score is not None:
            parts.append(f"score {format_number(self.score)}")
        return " · ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "versionNumber": self.version_number,
            "createdAt": self.created_at.isoformat(),
            "title": self.title,
            "scenario": self.scenario.value if self.scenario else None,
            "outputType": self.output_type.value,
            "text": self.text,
            "score": self.score,
            "metrics": dict(self.metrics),
            "sources": [s.to_dict() for s in self.sources],
            "comment": self.comment,
            "model": self.model.to_dict() if self.model else None,
            "publicSearch": self.public_search,
            "publicSources": [p.to_dict() for p in self.public_sources],
            "wordCount": self.word_count,
            "label": self.label,
        }
