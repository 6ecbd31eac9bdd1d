"""Build the JSON bodies sent to ``/generate`` and ``/rewrite``.

Both builders are pure: the same inputs always give an equal payload.
Optional keys are left out entirely when unset.
"""

from __future__ import annotations

from typing import Any

from content_engine.models.workspace_config import OutputType, WorkspaceConfig


def _common(config: WorkspaceConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "title": config.title,
        "publicSearch": config.public_search,
        "modelId": config.model_id,
        "temperature": config.temperature,
        "maxTokens": config.max_tokens,
        "versionType": config.version_type.value,
    }
    if config.scenario is not None:
        payload["scenario"] = config.scenario.value
    if config.max_words is not None:
        payload["maxWords"] = config.max_words
    return payload


def build_generate_payload(config: WorkspaceConfig, source_text: str) -> dict[str, Any]:
    return {
        "mode": "generate",
        **_common(config),
        "notes": config.notes,
        "selectedTypes": [t.value for t in config.selected_types],
        "text": source_text,
    }


def build_rewrite_payload(
    config: WorkspaceConfig,
    source_text: str,
    previous_content: str,
    output_type: OutputType,
    instructions: str | None = None,
) -> dict[str, Any]:
    """Payload asking the backend to revise ``previous_content``.

    ``notes`` carries the rewrite instructions, or the general notes when no
    instructions were given.
    """
    notes = (instructions or "").strip() or config.notes
    return {
        "mode": "rewrite",
        **_common(config),
        "notes": notes,
        "outputType": output_type.value,
        "text": source_text,
        "previousContent": previous_content,
    }
