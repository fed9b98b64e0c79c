"""HTTP client for the orchestration (internal export) API."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from flickmv_worker.config import get_settings
from flickmv_worker.exceptions import OrchestrationError
from flickmv_worker.schemas.export_job import ExportJob

logger = logging.getLogger(__name__)


class OrchestrationClient:
    """Fetches export jobs and posts status updates.

    A call fails on transport errors, non-2xx responses, and JSON bodies with
    ``success: false``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.internal_api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "x-internal-key": api_key or settings.internal_api_key,
                "Content-Type": "application/json",
            },
            timeout=timeout or settings.http_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OrchestrationClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def get_export_job(self, export_job_id: str) -> ExportJob:
        body = await self._request("GET", f"/export/jobs/{export_job_id}")
        try:
            return ExportJob.model_validate(body["data"]["exportJob"])
        except (KeyError, TypeError, ValidationError) as e:
            raise OrchestrationError(f"Malformed export job response for {export_job_id}") from e

    async def post_status(self, export_job_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", f"/export/jobs/{export_job_id}/status", json=payload)

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise OrchestrationError(f"Internal {method} {path} failed: {e}") from e

        logger.debug(f"[API] {method} {path} -> {resp.status_code}")
        body = self._safe_json(resp)
        if resp.is_error or body.get("success") is False:
            detail = body.get("message") or body.get("error") or f"HTTP {resp.status_code}"
            raise OrchestrationError(
                f"Internal {method} {path} failed: {detail}", status_code=resp.status_code
            )
        return body

    @staticmethod
    def _safe_json(resp: httpx.Response) -> dict[str, Any]:
        if "application/json" not in resp.headers.get("content-type", ""):
            return {}
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
