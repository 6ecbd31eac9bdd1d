"""Workspace controller: sources, configuration and version history in one place.

All state changes go through the methods below. Generate and rewrite share a
single ``activity`` value, so at most one of them is ever in flight; a second
request while busy is ignored without touching the backend.

Recoverable failures (``ContentEngineError``) never escape an operation. They
are logged, queued as error notifications and the operation returns None.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from content_engine.config import settings
from content_engine.errors import ContentEngineError, WorkspaceValidationError
from content_engine.gateway.base import ApiStatus, DraftingBackend, OutputRecord, ParsedResponse
from content_engine.gateway.http import BackendGateway
from content_engine.models.analysis import StatementAnalysis
from content_engine.models.source import Source, SourceMeta
from content_engine.models.version import PublicSource, Version
from content_engine.models.workspace_config import (
    MODEL_OPTIONS,
    OutputType,
    WorkspaceConfig,
    model_label,
)
from content_engine.utils.ids import new_version_id
from content_engine.utils.text import summarize_rewrite
from content_engine.utils.time import utc_now
from content_engine.workspace.notifications import Level, NotificationLog
from content_engine.workspace.requests import build_generate_payload, build_rewrite_payload
from content_engine.workspace.sources import SourceAggregator, validate_url
from content_engine.workspace.versions import VersionStore

logger = logging.getLogger(__name__)

EventListener = Callable[[dict[str, Any]], Awaitable[None]]


class Activity(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    REWRITING = "rewriting"


def _resolve_output_type(reported: str | None, requested: list[OutputType], index: int) -> OutputType:
    if reported:
        try:
            return OutputType(reported)
        except ValueError:
            logger.warning("Backend reported unknown output type %r", reported)
    return requested[index] if index < len(requested) else requested[0]


class Workspace:
    """A single drafting session."""

    def __init__(
        self,
        backend: DraftingBackend | None = None,
        max_notifications: int | None = None,
    ) -> None:
        self.backend: DraftingBackend = backend or BackendGateway()
        self.sources = SourceAggregator()
        self.versions = VersionStore()
        self.config = WorkspaceConfig()
        self.rewrite_instructions = ""
        self.activity = Activity.IDLE
        self.api_status = ApiStatus.UNKNOWN
        self.notifications = NotificationLog(max_notifications or settings.max_notifications)
        self._analysis: StatementAnalysis | None = None
        self._analysis_key: tuple[str | None, str] | None = None
        self._listeners: list[EventListener] = []

    # -- State --

    @property
    def is_generating(self) -> bool:
        return self.activity is Activity.GENERATING

    @property
    def is_rewriting(self) -> bool:
        return self.activity is Activity.REWRITING

    @property
    def is_busy(self) -> bool:
        return self.activity is not Activity.IDLE

    @property
    def draft_text(self) -> str:
        return self.versions.draft_text

    @property
    def selected_version(self) -> Version | None:
        return self.versions.selected

    @property
    def analysis(self) -> StatementAnalysis | None:
        return self._analysis

    @property
    def api_base_url(self) -> str:
        return self.backend.base_url

    def set_api_base_url(self, url: str) -> None:
        self.backend.base_url = url.strip()
        self.api_status = ApiStatus.UNKNOWN

    # -- Events --

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _emit(self, event: dict[str, Any]) -> None:
        for listener in list(self._listeners):
            await listener(event)

    async def _notify(self, level: Level, message: str) -> None:
        notification = self.notifications.push(level, message)
        await self._emit({"type": "notification", **notification.to_dict()})

    async def _report(self, exc: ContentEngineError) -> None:
        logger.warning("%s: %s", type(exc).__name__, exc.message)
        await self._notify(Level.ERROR, exc.message)

    async def _changed(self) -> None:
        await self._emit({"type": "workspace", "workspace": self.snapshot()})

    def _require_backend(self) -> None:
        if not self.backend.base_url.strip():
            raise WorkspaceValidationError("Set the API base URL before calling the backend.")

    def _invalidate_analysis(self) -> None:
        self._analysis = None
        self._analysis_key = None

    # -- Configuration --

    async def update_config(self, **changes: Any) -> WorkspaceConfig | None:
        """Apply several config changes at once; nothing changes if any is invalid."""
        merged = {**self.config.model_dump(), **changes}
        try:
            config = WorkspaceConfig.model_validate(merged)
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            await self._report(WorkspaceValidationError(f"Invalid {field}: {error['msg']}"))
            return None
        self.config = config
        await self._changed()
        return config

    async def toggle_output_type(self, output_type: OutputType) -> bool:
        changed = self.config.toggle_output_type(output_type)
        if changed:
            await self._changed()
        return changed

    async def set_manual_text(self, text: str) -> None:
        self.sources.manual_text = text
        await self._changed()

    async def set_draft_text(self, text: str) -> None:
        """Edit the scratch buffer; stored versions are left alone."""
        self.versions.draft_text = text
        await self._changed()

    async def set_rewrite_instructions(self, text: str) -> None:
        self.rewrite_instructions = text
        await self._changed()

    # -- Sources --

    async def add_upload(self, name: str, data: bytes) -> Source:
        source = self.sources.add_upload(name, data)
        await self._changed()
        return source

    async def add_files(self, paths: list[Path | str]) -> list[Source] | None:
        try:
            added = await self.sources.add_files(paths)
        except OSError as exc:
            # Reads that succeeded keep their sources.
            logger.warning("File read failed: %s", exc)
            await self._notify(Level.ERROR, f"Could not read file: {exc}")
            await self._changed()
            return None
        await self._changed()
        return added

    async def add_url(self, url: str) -> Source | None:
        try:
            validate_url(url)
            self._require_backend()
            source = await self.sources.add_url(url, self.backend)
        except ContentEngineError as exc:
            await self._report(exc)
            return None
        await self._notify(Level.SUCCESS, f"Added {source.name}")
        await self._changed()
        return source

    async def remove_source(self, index: int) -> Source | None:
        try:
            source = self.sources.remove_source(index)
        except WorkspaceValidationError as exc:
            await self._report(exc)
            return None
        await self._changed()
        return source

    # -- Drafting --

    async def generate(self) -> list[Version] | None:
        """Request a first draft for every selected output type."""
        if self.is_busy:
            logger.info("Generate ignored while %s", self.activity.value)
            return None

        config = self.config.model_copy(deep=True)
        try:
            self._require_backend()
            source_text = self.sources.combined_text()
            if not source_text:
                raise WorkspaceValidationError("Add at least one source or some text before generating.")
            if not config.selected_types:
                raise WorkspaceValidationError("Select at least one output type.")
        except WorkspaceValidationError as exc:
            await self._report(exc)
            return None

        payload = build_generate_payload(config, source_text)
        sources_meta = self.sources.snapshot()

        self.activity = Activity.GENERATING
        try:
            await self._emit({"type": "status", "stage": Activity.GENERATING.value})
            parsed = await self.backend.call_generate(payload)
        except ContentEngineError as exc:
            await self._report(exc)
            return None
        finally:
            self.activity = Activity.IDLE

        created = self._store_generated(parsed, config, sources_meta)
        await self._notify(Level.SUCCESS, f"Generated {len(created)} version(s)")
        await self._changed()
        return created

    def _store_generated(
        self, parsed: ParsedResponse, config: WorkspaceConfig, sources_meta: tuple[SourceMeta, ...]
    ) -> list[Version]:
        numbers = self.versions.allocate_numbers(len(parsed.outputs))
        created_at = utc_now()
        created = [
            self._make_version(
                record,
                number,
                created_at,
                config,
                _resolve_output_type(record.output_type, config.selected_types, index),
                sources_meta,
                comment="Initial generation",
                public_sources=parsed.public_sources,
            )
            for index, (number, record) in enumerate(zip(numbers, parsed.outputs))
        ]
        self.versions.append(created, select=created[0])
        self._invalidate_analysis()
        return created

    @staticmethod
    def _make_version(
        record: OutputRecord,
        number: int,
        created_at: datetime,
        config: WorkspaceConfig,
        output_type: OutputType,
        sources_meta: tuple[SourceMeta, ...],
        comment: str,
        public_sources: tuple[PublicSource, ...] = (),
    ) -> Version:
        return Version(
            id=new_version_id(),
            version_number=number,
            created_at=created_at,
            title=config.title,
            scenario=config.scenario,
            output_type=output_type,
            text=record.text,
            score=record.score,
            metrics=dict(record.metrics),
            sources=sources_meta,
            comment=comment,
            model=config.model_settings,
            public_search=config.public_search,
            public_sources=public_sources,
        )

    def _rewrite_base(self) -> str:
        if self.versions.draft_text.strip():
            return self.versions.draft_text
        selected = self.versions.selected
        return selected.text if selected else ""

    async def rewrite(self, instructions: str | None = None) -> Version | None:
        """Revise the current draft; the instructions apply to this rewrite only."""
        if self.is_busy:
            logger.info("Rewrite ignored while %s", self.activity.value)
            return None
        if instructions is not None:
            self.rewrite_instructions = instructions

        config = self.config.model_copy(deep=True)
        base = self.versions.selected
        previous = self._rewrite_base()
        try:
            self._require_backend()
            if not previous.strip():
                raise WorkspaceValidationError("There is no draft to rewrite yet.")
        except WorkspaceValidationError as exc:
            await self._report(exc)
            return None

        output_type = base.output_type if base else config.primary_type
        used_instructions = self.rewrite_instructions
        payload = build_rewrite_payload(
            config, self.sources.combined_text(), previous, output_type, used_instructions
        )
        sources_meta = self.sources.snapshot()

        self.activity = Activity.REWRITING
        try:
            await self._emit({"type": "status", "stage": Activity.REWRITING.value})
            parsed = await self.backend.call_rewrite(payload)
        except ContentEngineError as exc:
            await self._report(exc)
            return None
        finally:
            self.activity = Activity.IDLE

        number = self.versions.allocate_numbers(1)[0]
        version = self._make_version(
            parsed.primary,
            number,
            utc_now(),
            config,
            output_type,
            sources_meta,
            comment=summarize_rewrite(used_instructions),
        )
        self.versions.append([version], select=version)
        self.rewrite_instructions = ""
        self._invalidate_analysis()
        await self._notify(Level.SUCCESS, f"Rewrite saved as V{version.version_number}")
        await self._changed()
        return version

    async def save_draft_as_version(self) -> Version | None:
        """Store the edited scratch buffer as a new version."""
        base = self.versions.selected
        text = self.versions.draft_text
        try:
            if not text.strip():
                raise WorkspaceValidationError("The draft is empty.")
            if base is not None and text == base.text:
                raise WorkspaceValidationError("The draft has no unsaved changes.")
        except WorkspaceValidationError as exc:
            await self._report(exc)
            return None

        number = self.versions.allocate_numbers(1)[0]
        version = Version(
            id=new_version_id(),
            version_number=number,
            created_at=utc_now(),
            title=base.title if base else self.config.title,
            scenario=base.scenario if base else self.config.scenario,
            output_type=base.output_type if base else self.config.primary_type,
            text=text,
            sources=base.sources if base else self.sources.snapshot(),
            comment="Manual edit",
            model=base.model if base else self.config.model_settings,
            public_search=base.public_search if base else self.config.public_search,
        )
        self.versions.append([version], select=version)
        self._invalidate_analysis()
        await self._changed()
        return version

    # -- Version history --

    async def select_version(self, version_id: str) -> Version | None:
        """Select a version; unsaved draft edits are discarded."""
        try:
            version = self.versions.select(version_id)
        except WorkspaceValidationError as exc:
            await self._report(exc)
            return None
        self._invalidate_analysis()
        await self._changed()
        return version

    async def delete_version(self, version_id: str) -> Version | None:
        was_selected = self.versions.selected_id == version_id
        try:
            version = self.versions.delete(version_id)
        except WorkspaceValidationError as exc:
            await self._report(exc)
            return None
        if was_selected:
            self._invalidate_analysis()
        await self._changed()
        return version

    def list_versions(self, newest_first: bool = False) -> list[Version]:
        return self.versions.ordered(newest_first=newest_first)

    async def reset_workspace(self) -> bool:
        """Start a new output: drop sources, versions, draft and configuration."""
        if self.is_busy:
            await self._report(WorkspaceValidationError("Wait for the current request to finish."))
            return False
        self.sources.clear()
        self.versions.clear()
        self.config = WorkspaceConfig()
        self.rewrite_instructions = ""
        self._invalidate_analysis()
        logger.info("Workspace reset")
        await self._changed()
        return True

    # -- Backend --

    async def check_health(self) -> ApiStatus:
        if not self.backend.base_url.strip():
            self.api_status = ApiStatus.UNKNOWN
            return self.api_status
        self.api_status = await self.backend.check_health()
        await self._emit({"type": "api_status", "status": self.api_status.value})
        return self.api_status

    async def analyse_statements(self) -> StatementAnalysis | None:
        """Rate the statements in the current draft, reusing the cached result."""
        text = self._rewrite_base()
        key = (self.versions.selected_id, text)
        if self._analysis is not None and self._analysis_key == key:
            return self._analysis
        try:
            self._require_backend()
            if not text.strip():
                raise WorkspaceValidationError("There is no draft to analyse.")
            scenario = self.config.scenario.value if self.config.scenario else None
            analysis = await self.backend.analyse_statements(
                text, scenario=scenario, version_type=self.config.version_type.value
            )
        except ContentEngineError as exc:
            await self._report(exc)
            return None
        self._analysis = analysis
        self._analysis_key = key
        return analysis

    # -- Views --

    def diagnostics(self) -> list[str]:
        """Quick sanity checks for the session."""
        messages = [
            f"OK: {len(OutputType)} output types defined.",
            f"OK: {len(MODEL_OPTIONS)} model options present.",
            f"OK: Model {model_label(self.config.model_id)} selected.",
        ]
        if not self.versions:
            messages.append("OK: No versions yet (fresh session).")
        else:
            latest = max(v.version_number for v in self.versions.versions)
            messages.append(f"OK: {len(self.versions)} version(s) stored, latest V{latest}.")
        if self.versions.selected_id is not None and self.versions.selected is None:
            messages.append("WARN: Selected version no longer exists.")
        if self.backend.base_url.strip():
            messages.append(f"OK: Backend {self.backend.base_url} (status {self.api_status.value}).")
        else:
            messages.append("WARN: No API base URL configured.")
        return messages

    def snapshot(self) -> dict[str, Any]:
        selected = self.versions.selected
        return {
            "config": self.config.model_dump(mode="json", by_alias=True),
            "manualText": self.sources.manual_text,
            "sources": [s.to_dict() for s in self.sources.sources],
            "versions": [v.to_dict() for v in self.versions.versions],
            "selectedVersionId": selected.id if selected else None,
            "draftText": self.versions.draft_text,
            "rewriteInstructions": self.rewrite_instructions,
            "activity": self.activity.value,
            "apiBaseUrl": self.backend.base_url,
            "apiStatus": self.api_status.value,
        }
