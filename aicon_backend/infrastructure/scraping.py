"""Client for the external scraping and analysis service.

Only the narrow request/response contract is used::

    POST /scrape {url, workspaceId} -> {scrapeId, status, processedData?}
    GET  /scrape/{scrapeId}/status  -> {status, processedData?, error?}
    POST /analyze/{scrapeId}        -> {analysis: {...}}

The ingestion coordinator depends on the :class:`ScrapeService` protocol; a
deployment installs :class:`HttpScrapeService` with
``configure_scrape_service`` during start-up.
"""
from __future__ import annotations

from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from aicon_backend.core.errors import ServiceError
from aicon_backend.core.schema import ContentAnalysis, ScrapeStatus, ScrapeSubmission


class ScrapeService(Protocol):
    """Contract for scraping/analysis integrations."""

    async def submit(self, url: str, workspace_id: str | None) -> ScrapeSubmission: ...

    async def status(self, scrape_id: str) -> ScrapeStatus: ...

    async def analyze(self, scrape_id: str) -> ContentAnalysis: ...


class UnconfiguredScrapeService:
    """Fallback used when no scraping provider is configured."""

    async def submit(self, url: str, workspace_id: str | None) -> ScrapeSubmission:
        raise ServiceError("Scraping service not configured")

    async def status(self, scrape_id: str) -> ScrapeStatus:
        raise ServiceError("Scraping service not configured")

    async def analyze(self, scrape_id: str) -> ContentAnalysis:
        raise ServiceError("Scraping service not configured")


class HttpScrapeService:
    """httpx based client for the scraping/analysis HTTP API."""

    def __init__(
        self,
        api_base: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        base = api_base.rstrip("/")
        if not base.startswith(("http://", "https://")):
            raise ValueError("api_base must include scheme and host")
        self._base = base
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.is_error:
            message = body.get("error") or body.get("detail") or f"HTTP {response.status_code}"
            raise ServiceError(str(message), status_code=response.status_code)
        return body

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._client.request(method, f"{self._base}{path}", **kwargs)
        return self._decode(response)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def submit(self, url: str, workspace_id: str | None) -> ScrapeSubmission:
        body = await self._request("POST", "/scrape", json={"url": url, "workspaceId": workspace_id})
        try:
            return ScrapeSubmission.model_validate(body)
        except ValidationError as exc:
            raise ServiceError(body.get("error") or "Failed to start scraping") from exc

    async def status(self, scrape_id: str) -> ScrapeStatus:
        body = await self._request("GET", f"/scrape/{scrape_id}/status")
        try:
            return ScrapeStatus.model_validate(body)
        except ValidationError as exc:
            raise ServiceError("Malformed scrape status response") from exc

    async def analyze(self, scrape_id: str) -> ContentAnalysis:
        body = await self._request("POST", f"/analyze/{scrape_id}", json={"addToLibrary": True})
        analysis = body.get("analysis")
        if not isinstance(analysis, dict):
            raise ServiceError(body.get("error") or "Failed to analyze content")
        return ContentAnalysis.model_validate(analysis)

    async def aclose(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            await self._client.aclose()


_service: ScrapeService = UnconfiguredScrapeService()


def configure_scrape_service(service: ScrapeService) -> None:
    """Install the scraping client used by ingestion jobs."""

    global _service
    _service = service


def get_scrape_service() -> ScrapeService:
    """Return the currently configured scraping client."""

    return _service


__all__ = [
    "HttpScrapeService",
    "ScrapeService",
    "UnconfiguredScrapeService",
    "configure_scrape_service",
    "get_scrape_service",
]
