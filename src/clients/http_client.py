# src/clients/http_client.py - v1
"""httpx-based agent API client implementing TaskSource and DocumentFetcher.

Usage:
    async with AgentApiClient(settings) as client:
        response = await client.fetch_task("15")
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urljoin

import httpx

from taskdocs.clients.base import DocumentFetcher, TaskSource
from taskdocs.config.settings import Settings
from taskdocs.core.models import AckResponse, TaskResponse, parse_task

logger = logging.getLogger(__name__)


class AgentApiClient(TaskSource, DocumentFetcher):
    """Agent API over HTTP.

    Args:
        settings: Provides base URL, endpoints and timeout.
        transport: Optional httpx transport (tests inject MockTransport).
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> AgentApiClient:
        await self.boot()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def boot(self) -> None:
        """Initialise the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            timeout=self._settings.http_timeout_s,
            transport=self._transport,
            follow_redirects=True,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def resolve_url(self, ref: str) -> str:
        """Absolute URL for a ref; relative refs hang off api_base_url."""
        if ref.startswith(("http://", "https://")):
            return ref
        base = self._settings.api_base_url.rstrip("/") + "/"
        return urljoin(base, ref.lstrip("/"))

    # --- TaskSource ---

    async def fetch_task(self, principal_id: str) -> TaskResponse:
        endpoint = self._settings.task_endpoint.format(principal_id=principal_id)
        response = await self._request("GET", endpoint)
        body = _json_body(response)
        status_code = body.get("statusCode")
        if not response.is_success:
            logger.warning(
                "Task fetch for principal %s returned HTTP %d",
                principal_id, response.status_code,
            )
            return TaskResponse(status=False, status_code=status_code or response.status_code)
        return TaskResponse(
            status=True,
            data=parse_task(body.get("data")),
            status_code=status_code,
        )

    async def acknowledge_keyed_on(self, task_id: str, principal_id: str) -> AckResponse:
        try:
            response = await self._request(
                "POST",
                self._settings.keyed_on_endpoint,
                json={"taskid": task_id, "roleid": principal_id},
            )
        except httpx.HTTPError as e:
            return AckResponse(status=False, error=str(e))
        if not response.is_success:
            return AckResponse(
                status=False,
                error=f"HTTP {response.status_code}: {response.text[:200]}",
            )
        return AckResponse(status=True, data=_json_body(response).get("data"))

    # --- DocumentFetcher ---

    async def fetch_binary(self, ref: str) -> bytes:
        response = await self._request("GET", ref)
        response.raise_for_status()
        return response.content

    async def fetch_json(self, ref: str) -> Any:
        response = await self._request("GET", ref)
        response.raise_for_status()
        return response.json()

    # --- Core request ---

    async def _request(
        self, method: str, ref: str, json: dict | None = None
    ) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")
        return await self._client.request(method, self.resolve_url(ref), json=json)


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body; anything else reads as {}."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
