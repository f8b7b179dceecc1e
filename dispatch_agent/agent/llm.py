"""Language-model client with bounded retry on rate limiting.

A client's `attempt()` returns an explicit outcome (`Ok`, `RateLimited` or
`Fatal`) instead of raising; `RetryingModelClient.call()` drives attempts and
only raises when an attempt is fatal or every retry is used up.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel, Field


ANTHROPIC_VERSION = "2023-06-01"


class ModelServiceError(RuntimeError):
    """Non-retryable failure talking to the language-model service."""


class ExhaustedRetries(ModelServiceError):
    def __init__(self, attempts: int) -> None:
        super().__init__(f"Model service still rate limited after {attempts} attempts")
        self.attempts = attempts


class ModelResponse(BaseModel):
    id: str = ""
    content: List[Dict[str, Any]] = Field(default_factory=list)
    stop_reason: Optional[str] = None

    @property
    def tool_uses(self) -> List[Dict[str, Any]]:
        return [b for b in self.content if b.get("type") == "tool_use"]

    @property
    def text(self) -> str:
        return "\n".join(b.get("text", "") for b in self.content if b.get("type") == "text").strip()


@dataclass(frozen=True)
class Ok:
    response: ModelResponse


@dataclass(frozen=True)
class RateLimited:
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class Fatal:
    error: Exception


Outcome = Union[Ok, RateLimited, Fatal]


class MessagesClient:
    """Single-attempt HTTP client for the Messages API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def attempt(self, params: Dict[str, Any]) -> Outcome:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=httpx.Timeout(self.timeout), transport=self._transport
            ) as client:
                r = await client.post("/v1/messages", json=params, headers=headers)
        except httpx.HTTPError as exc:
            return Fatal(ModelServiceError(f"Model service unreachable: {exc}"))

        if r.status_code == 429:
            retry_after = r.headers.get("retry-after")
            try:
                return RateLimited(float(retry_after) if retry_after else None)
            except ValueError:
                return RateLimited()
        if not r.is_success:
            return Fatal(ModelServiceError(f"Model service error {r.status_code}: {r.text[:300]}"))
        try:
            return Ok(ModelResponse.model_validate(r.json()))
        except ValueError as exc:
            return Fatal(ModelServiceError(f"Malformed model response: {exc}"))


class OfflineClient:
    """Answers without network access; used for smoke runs (AGENT_OFFLINE=1)."""

    async def attempt(self, params: Dict[str, Any]) -> Outcome:
        messages = params.get("messages") or []
        last = messages[-1].get("content") if messages else ""
        if not isinstance(last, str):
            last = json.dumps(last)
        text = f"(offline) Received: {last[:200]}"
        return Ok(ModelResponse(id="offline", content=[{"type": "text", "text": text}], stop_reason="end_turn"))


class RetryingModelClient:
    def __init__(
        self,
        client: Any,
        max_retries: int = 2,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    async def call(self, params: Dict[str, Any]) -> ModelResponse:
        attempt = 0
        while True:
            outcome = await self.client.attempt(params)
            if isinstance(outcome, Ok):
                return outcome.response
            if isinstance(outcome, Fatal):
                raise outcome.error
            if attempt >= self.max_retries:
                raise ExhaustedRetries(attempt + 1)
            await self._sleep((2 ** attempt) * self.base_delay)
            attempt += 1


__all__ = [
    "ModelServiceError",
    "ExhaustedRetries",
    "ModelResponse",
    "Ok",
    "RateLimited",
    "Fatal",
    "Outcome",
    "MessagesClient",
    "OfflineClient",
    "RetryingModelClient",
]
