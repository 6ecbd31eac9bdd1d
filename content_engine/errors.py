"""Error types raised inside the workspace and the backend gateway.

Every error here is recoverable: the workspace turns it into a user-facing
notification and carries on.
"""

from __future__ import annotations

from content_engine.utils.text import truncate


class ContentEngineError(Exception):
    """Base class for errors that are reported to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WorkspaceValidationError(ContentEngineError):
    """Required input is missing or malformed; no request was sent."""


class BackendError(ContentEngineError):
    """The drafting backend could not satisfy a request."""


class BackendUnavailableError(BackendError):
    """The backend could not be reached at all."""


class BackendResponseError(BackendError):
    """The backend answered with a non-2xx status or an unusable body."""

    def __init__(self, status_code: int, body: str, limit: int = 200) -> None:
        self.status_code = status_code
        self.body = body
        detail = truncate(body.strip(), limit) or "(empty response)"
        super().__init__(f"Backend error {status_code}: {detail}")


class EmptySourceError(BackendError):
    """A fetched URL produced no usable text."""
