"""Async HTTP client for the UCIE job endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from config import get_settings
from utils.exceptions import RemoteFailure, TransientPollError, TriggerError


logger = logging.getLogger(__name__)


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or "")[:200]
    return ""


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError("expected a JSON object")
    return payload


class UCIEClient:
    """Thin wrapper over ``httpx.AsyncClient`` mapping failures to the error taxonomy.

    Nothing here retries: trigger failures surface as ``TriggerError``, status
    query failures as ``TransientPollError`` (absorbed by the poller) and result
    fetch failures as ``RemoteFailure``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        settings = get_settings().api
        self.base_url = str(base_url or settings.base_url).strip().rstrip("/")
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.request_timeout)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "UCIEClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def trigger(
        self,
        method: str,
        path: str,
        *,
        job_kind: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Issue exactly one job-creation request."""
        try:
            response = await self._client.request(method, path, params=params, json=payload)
        except httpx.TimeoutException as exc:
            raise TriggerError(f"{job_kind} trigger timed out", job_kind=job_kind) from exc
        except httpx.RequestError as exc:
            raise TriggerError(f"{job_kind} trigger failed: {exc}", job_kind=job_kind) from exc

        if response.status_code >= 400:
            reason = _error_text(response) or f"HTTP {response.status_code}"
            raise TriggerError(
                f"Failed to start {job_kind}: {reason}",
                job_kind=job_kind,
                status_code=response.status_code,
            )
        try:
            return _json_body(response)
        except ValueError:
            # acknowledgement-only endpoints may answer with an empty body
            if not response.content.strip():
                return {}
            raise TriggerError(f"Invalid response from {job_kind} trigger", job_kind=job_kind)

    async def get_status(self, path: str) -> Dict[str, Any]:
        """One status query. Every failure mode is transient from the poller's view."""
        try:
            response = await self._client.get(path)
        except httpx.TimeoutException as exc:
            raise TransientPollError(f"status query timed out: {path}") from exc
        except httpx.RequestError as exc:
            raise TransientPollError(f"status query failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransientPollError(
                f"status query HTTP {response.status_code}: {_error_text(response)}",
                status_code=response.status_code,
            )
        try:
            return _json_body(response)
        except ValueError as exc:
            raise TransientPollError(f"unparsable status payload from {path}") from exc

    async def fetch(self, path: str) -> Dict[str, Any]:
        """Fetch a completed job's result payload."""
        try:
            response = await self._client.get(path)
        except httpx.RequestError as exc:
            raise RemoteFailure(f"Failed to fetch analysis result: {exc}") from exc

        if response.status_code >= 400:
            raise RemoteFailure(
                f"Analysis fetch failed: {response.status_code}",
                details={"path": path, "error": _error_text(response)},
            )
        try:
            return _json_body(response)
        except ValueError as exc:
            raise RemoteFailure("Failed to parse analysis result") from exc


def decode_result(value: Any) -> Dict[str, Any]:
    """Decode a job ``result`` that may arrive as a JSON string."""
    if value is None:
        raise RemoteFailure("No result data in completed response")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as exc:
            raise RemoteFailure("Failed to parse analysis result") from exc
    if not isinstance(value, dict):
        raise RemoteFailure("Failed to parse analysis result")
    return value
