import asyncio
import json

import httpx
import pytest

from dispatch_agent.agent.llm import (
    ExhaustedRetries,
    Fatal,
    MessagesClient,
    ModelResponse,
    ModelServiceError,
    Ok,
    OfflineClient,
    RateLimited,
    RetryingModelClient,
)


class SequenceClient:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.attempts = 0

    async def attempt(self, params):
        self.attempts += 1
        return self.outcomes.pop(0)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


OK = Ok(ModelResponse(content=[{"type": "text", "text": "hi"}], stop_reason="end_turn"))


def test_returns_first_ok_without_sleeping():
    sleep = RecordingSleep()
    client = SequenceClient([OK])
    resp = asyncio.run(RetryingModelClient(client, sleep=sleep).call({}))
    assert resp.text == "hi"
    assert sleep.delays == []


def test_retries_rate_limit_with_exponential_backoff():
    sleep = RecordingSleep()
    client = SequenceClient([RateLimited(), RateLimited(), OK])
    resp = asyncio.run(RetryingModelClient(client, max_retries=2, base_delay=0.5, sleep=sleep).call({}))
    assert resp.text == "hi"
    assert client.attempts == 3
    assert sleep.delays == [0.5, 1.0]


def test_exhausted_after_retry_limit():
    sleep = RecordingSleep()
    client = SequenceClient([RateLimited(), RateLimited(), RateLimited(), OK])
    with pytest.raises(ExhaustedRetries) as info:
        asyncio.run(RetryingModelClient(client, max_retries=2, base_delay=1.0, sleep=sleep).call({}))
    assert info.value.attempts == 3
    assert client.attempts == 3
    assert sleep.delays == [1.0, 2.0]


def test_fatal_is_not_retried():
    sleep = RecordingSleep()
    client = SequenceClient([Fatal(ModelServiceError("400 bad request")), OK])
    with pytest.raises(ModelServiceError, match="400"):
        asyncio.run(RetryingModelClient(client, sleep=sleep).call({}))
    assert client.attempts == 1
    assert sleep.delays == []


def _messages_client(handler):
    return MessagesClient("test-key", base_url="https://llm.test", transport=httpx.MockTransport(handler))


def test_messages_client_posts_params_and_parses_reply():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("x-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "msg_1",
                "content": [{"type": "tool_use", "id": "tu_1", "name": "get_drone_details", "input": {"droneId": "4"}}],
                "stop_reason": "tool_use",
            },
        )

    outcome = asyncio.run(_messages_client(handler).attempt({"model": "m", "messages": []}))
    assert isinstance(outcome, Ok)
    assert outcome.response.tool_uses[0]["name"] == "get_drone_details"
    assert seen["path"] == "/v1/messages"
    assert seen["key"] == "test-key"
    assert seen["body"]["model"] == "m"


def test_messages_client_maps_status_codes():
    limited = asyncio.run(_messages_client(lambda r: httpx.Response(429, headers={"retry-after": "3"})).attempt({}))
    assert isinstance(limited, RateLimited)
    assert limited.retry_after == 3.0

    server_error = asyncio.run(_messages_client(lambda r: httpx.Response(500, text="boom")).attempt({}))
    assert isinstance(server_error, Fatal)
    assert "500" in str(server_error.error)


def test_messages_client_transport_failure_is_fatal():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    outcome = asyncio.run(_messages_client(handler).attempt({}))
    assert isinstance(outcome, Fatal)
    assert isinstance(outcome.error, ModelServiceError)


def test_offline_client_answers_with_text():
    outcome = asyncio.run(OfflineClient().attempt({"messages": [{"role": "user", "content": "ping"}]}))
    assert isinstance(outcome, Ok)
    assert "ping" in outcome.response.text
    assert outcome.response.tool_uses == []
