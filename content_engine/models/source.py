"""Source data model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SourceKind(Enum):
    FILE = "file"
    URL = "url"
    TEXT = "text"


@dataclass(frozen=True)
class SourceMeta:
    """Point-in-time description of a source, kept on each version."""

    name: str
    kind: SourceKind
    size: int | None = None
    url: str | None = None

    def to_dict(self) -> dict:
        return {"name": self.name, "kind": self.kind.value, "size": self.size, "url": self.url}


@dataclass(frozen=True)
class Source:
    """A unit of input text: an uploaded file or a fetched page."""

    name: str
    text: str
    kind: SourceKind
    size: int | None = None
    url: str | None = None

    def meta(self) -> SourceMeta:
        return SourceMeta(name=self.name, kind=self.kind, size=self.size, url=self.url)

    def preview(self, limit: int = 160) -> str:
        return self.text[:limit]

    def to_dict(self) -> dict:
        data = self.meta().to_dict()
        data["preview"] = self.preview()
        data["length"] = len(self.text)
        return data
