"""Statement-reliability analysis returned by the drafting backend."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _BackendModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Statement(_BackendModel):
    """A single factual statement found in the draft."""

    id: str | int | None = None
    text: str
    reliability: float = Field(ge=0.0, le=1.0)
    category: str | None = None
    implication: str | None = None


class AnalysisSummary(_BackendModel):
    total_statements: int = 0
    low_reliability_count: int = 0
    average_reliability: float | None = None
    reliability_band: str | None = None


class StatementAnalysis(_BackendModel):
    statements: list[Statement] = Field(default_factory=list)
    summary: AnalysisSummary | None = None
