"""Destinations that receive a copy of every recorded activity."""

from __future__ import annotations

import hashlib
import hmac
import json
from abc import ABC, abstractmethod

import httpx

from leadflow.activity.models import Activity


class ActivitySink(ABC):
    """Something outside the process that mirrors the lead timeline.

    Subclass this to push activities to a CRM timeline, a warehouse table
    or a message bus. :class:`~leadflow.activity.log.ActivityLog` keeps the
    queryable copy itself; sinks only receive writes.
    """

    @abstractmethod
    async def write(self, entry: Activity) -> None:
        """Forward a single activity."""

    async def close(self) -> None:
        """Release resources held by the sink."""


class WebhookActivitySink(ActivitySink):
    """POSTs each activity to an HTTP endpoint using httpx.

    The body is ``{"event": <activity type>, "lead_id": ..., "activity": {...}}``.
    When ``secret`` is set, the raw body is signed with HMAC-SHA256 and the
    hex digest is sent in ``X-Leadflow-Signature``.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        *,
        secret: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._secret = secret
        self._http_client = http_client
        self._timeout = timeout_seconds

    @staticmethod
    def compute_signature(body: bytes, secret: str) -> str:
        return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    async def write(self, entry: Activity) -> None:
        body = json.dumps(
            {
                "event": entry.type.value,
                "lead_id": entry.lead_id,
                "activity": entry.model_dump(mode="json"),
            }
        ).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Leadflow-Event": entry.type.value,
            **self._headers,
        }
        if self._secret:
            headers["X-Leadflow-Signature"] = self.compute_signature(body, self._secret)

        if self._http_client is not None:
            response = await self._http_client.post(
                self._url, content=body, headers=headers, timeout=self._timeout
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._url, content=body, headers=headers, timeout=self._timeout
                )
        response.raise_for_status()

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
