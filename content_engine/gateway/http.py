"""HTTP gateway to the drafting backend, via httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from content_engine.config import settings
from content_engine.errors import BackendResponseError, BackendUnavailableError
from content_engine.gateway.base import ApiStatus, FetchedPage, ParsedResponse
from content_engine.gateway.normalize import parse_response
from content_engine.models.analysis import StatementAnalysis

logger = logging.getLogger(__name__)


class BackendGateway:
    """Talks to the generate/rewrite/fetch-url/analyse-statements endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        health_timeout: float | None = None,
        error_message_limit: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = settings.api_base_url if base_url is None else base_url
        self.timeout = timeout or settings.request_timeout
        self.health_timeout = health_timeout or settings.health_timeout
        self.error_message_limit = error_message_limit or settings.error_message_limit
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path}"

    async def check_health(self) -> ApiStatus:
        """Probe ``/health``. Never raises."""
        url = self._url("health")
        try:
            async with self._client(self.health_timeout) as client:
                response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Health check against %s failed: %s", url, exc)
            return ApiStatus.ERROR
        return ApiStatus.OK if response.is_success else ApiStatus.ERROR

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        url = self._url(path)
        logger.info("Calling backend %s", url)
        logger.debug("Request body: %s", payload)
        try:
            async with self._client(self.timeout) as client:
                response = await client.post(url, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise BackendUnavailableError(f"Could not reach backend at {url}: {exc}") from exc

        logger.debug("Raw backend response (%d): %s", response.status_code, response.text)
        if not response.is_success:
            raise BackendResponseError(response.status_code, response.text, self.error_message_limit)
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise BackendResponseError(
                response.status_code, response.text, self.error_message_limit
            ) from exc

    async def call_generate(self, payload: dict[str, Any]) -> ParsedResponse:
        response = await self._post("generate", payload)
        return parse_response(response.text)

    async def call_rewrite(self, payload: dict[str, Any]) -> ParsedResponse:
        response = await self._post("rewrite", payload)
        return parse_response(response.text)

    async def fetch_url(self, url: str) -> FetchedPage:
        """Ask the backend to download ``url`` and extract its text."""
        response = await self._post("fetch-url", {"url": url})
        data = self._json(response)
        if not isinstance(data, dict):
            raise BackendResponseError(response.status_code, response.text, self.error_message_limit)
        text = data.get("text")
        title = data.get("title")
        return FetchedPage(
            text=text if isinstance(text, str) else "",
            title=title if isinstance(title, str) and title.strip() else None,
            url=data.get("url") or url,
        )

    async def analyse_statements(
        self, text: str, scenario: str | None = None, version_type: str | None = None
    ) -> StatementAnalysis:
        """Ask the backend to rate the reliability of each statement in ``text``."""
        payload: dict[str, Any] = {"text": text}
        if scenario:
            payload["scenario"] = scenario
        if version_type:
            payload["versionType"] = version_type
        response = await self._post("analyse-statements", payload)
        try:
            return StatementAnalysis.model_validate(self._json(response))
        except ValidationError as exc:
            logger.warning("Malformed statement analysis: %s", exc)
            raise BackendResponseError(
                response.status_code, response.text, self.error_message_limit
            ) from exc
