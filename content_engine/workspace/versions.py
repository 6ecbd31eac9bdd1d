"""Append-only version history with a selected version and a scratch buffer."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from content_engine.errors import WorkspaceValidationError
from content_engine.models.version import Version

logger = logging.getLogger(__name__)


class VersionStore:
    """Versions in insertion order, plus the selection and the editable draft.

    ``draft_text`` is only overwritten by ``append`` (when selecting), by
    ``select``, and by the fallback after deleting the selected version.
    Plain edits never touch the stored versions.
    """

    def __init__(self) -> None:
        self._versions: list[Version] = []
        self._last_number = 0
        self.selected_id: str | None = None
        self.draft_text: str = ""

    @property
    def versions(self) -> tuple[Version, ...]:
        return tuple(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    @property
    def selected(self) -> Version | None:
        if self.selected_id is None:
            return None
        return self._find(self.selected_id)

    def _find(self, version_id: str) -> Version | None:
        for version in self._versions:
            if version.id == version_id:
                return version
        return None

    def get(self, version_id: str) -> Version:
        version = self._find(version_id)
        if version is None:
            raise WorkspaceValidationError(f"Version {version_id} not found")
        return version

    def allocate_numbers(self, count: int) -> list[int]:
        """Reserve ``count`` consecutive version numbers; numbers are never handed out twice."""
        start = max([self._last_number, *(v.version_number for v in self._versions)]) + 1
        self._last_number = start + count - 1
        return list(range(start, start + count))

    def append(self, versions: Sequence[Version], select: Version | None = None) -> None:
        self._versions.extend(versions)
        if select is not None:
            self.selected_id = select.id
            self.draft_text = select.text
        logger.info(
            "Stored %d version(s): %s",
            len(versions),
            ", ".join(f"V{v.version_number}" for v in versions),
        )

    def select(self, version_id: str) -> Version:
        """Select a version, discarding any unsaved edits to the draft."""
        version = self.get(version_id)
        self.selected_id = version.id
        self.draft_text = version.text
        return version

    def delete(self, version_id: str) -> Version:
        version = self.get(version_id)
        self._versions.remove(version)
        if self.selected_id == version_id:
            fallback = self._versions[-1] if self._versions else None
            self.selected_id = fallback.id if fallback else None
            self.draft_text = fallback.text if fallback else ""
        return version

    def ordered(self, newest_first: bool = False) -> list[Version]:
        return sorted(self._versions, key=lambda v: v.version_number, reverse=newest_first)

    def clear(self) -> None:
        self._versions.clear()
        self._last_number = 0
        self.selected_id = None
        self.draft_text = ""
