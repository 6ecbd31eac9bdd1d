"""Drafting configuration: output types, scenarios, and model settings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class OutputType(Enum):
    INVESTOR_COMMENTARY = "investor_commentary"
    DETAILED_NOTE = "detailed_note"
    PRESS_RELEASE = "press_release"
    LINKEDIN_POST = "linkedin_post"

    @property
    def label(self) -> str:
        return _OUTPUT_TYPE_LABELS[self]


_OUTPUT_TYPE_LABELS = {
    OutputType.INVESTOR_COMMENTARY: "Investor reporting commentary",
    OutputType.DETAILED_NOTE: "Detailed note for existing investors",
    OutputType.PRESS_RELEASE: "Press release",
    OutputType.LINKEDIN_POST: "LinkedIn post",
}


class Scenario(Enum):
    RESULTS = "results"
    FUNDRAISING = "fundraising"
    ACQUISITION = "acquisition"
    EXIT = "exit"
    PORTFOLIO_UPDATE = "portfolio_update"
    LEADERSHIP_CHANGE = "leadership_change"
    GENERAL = "general"


class VersionType(Enum):
    """Whether a draft may use confidential material or only public facts."""

    COMPLETE = "complete"
    PUBLIC = "public"


@dataclass(frozen=True)
class ModelOption:
    id: str
    label: str


MODEL_OPTIONS: tuple[ModelOption, ...] = (
    ModelOption("gpt-4o-mini", "GPT-4o Mini"),
    ModelOption("gpt-4o", "GPT-4o"),
)

DEFAULT_MODEL_ID = MODEL_OPTIONS[0].id


def model_label(model_id: str) -> str:
    for option in MODEL_OPTIONS:
        if option.id == model_id:
            return option.label
    return model_id


@dataclass(frozen=True)
class ModelSettings:
    """Model parameters recorded on each version."""

    model_id: str
    temperature: float
    max_tokens: int

    def to_dict(self) -> dict:
        return {
            "modelId": self.model_id,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
        }


class WorkspaceConfig(BaseModel):
    """Transient drafting settings for the current workspace."""

    title: str = ""
    notes: str = ""
    selected_types: list[OutputType] = Field(
        default_factory=lambda: [OutputType.INVESTOR_COMMENTARY], min_length=1
    )
    scenario: Scenario | None = None
    model_id: str = DEFAULT_MODEL_ID
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    max_tokens: int = Field(default=2048, gt=0)
    max_words: int | None = Field(default=None, gt=0)
    public_search: bool = False
    version_type: VersionType = VersionType.COMPLETE

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
        protected_namespaces=(),
    )

    @field_validator("selected_types")
    @classmethod
    def _dedupe_types(cls, value: list[OutputType]) -> list[OutputType]:
        seen: list[OutputType] = []
        for item in value:
            if item not in seen:
                seen.append(item)
        return seen

    @property
    def primary_type(self) -> OutputType:
        return self.selected_types[0]

    @property
    def model_settings(self) -> ModelSettings:
        return ModelSettings(self.model_id, self.temperature, self.max_tokens)

    def toggle_output_type(self, output_type: OutputType) -> bool:
        """Flip ``output_type`` in the selection.

        Returns False, leaving the selection untouched, when the last selected
        type would be removed.
        """
        current = list(self.selected_types)
        if output_type in current:
            if len(current) == 1:
                return False
            current.remove(output_type)
        else:
            current.append(output_type)
        self.selected_types = current
        return True
