"""Test suite for the chat completions client.

Uses httpx.MockTransport; backoff sleeps are recorded, never awaited.
"""

import httpx
import orjson
import pytest

from lexiforge.errors import ModelRequestError, RateLimitError, TransportError
from lexiforge.interop.model_client import ModelClientConfig, OpenRouterClient, clean_json, exponential_backoff


def completion(text: str, status: int = 200, headers=None) -> httpx.Response:
    body = {
        "choices": [{"message": {"content": text}}],
        "usage": {"prompt_tokens": 11, "completion_tokens": 7, "total_tokens": 18},
    }
    return httpx.Response(status, json=body, headers=headers)


def error(status: int, message: str = "nope", headers=None) -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": message}}, headers=headers)


class Script:
    """Transport handler replaying responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class TestHelpers:

    def test_clean_json_strips_fences(self):
        assert clean_json('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert clean_json('  {"a": 1}  ') == '{"a": 1}'

    def test_backoff_is_capped(self):
        assert 1.0 <= exponential_backoff(1) <= 1.5
        assert 10.0 <= exponential_backoff(20) <= 10.5


class TestOpenRouterClient:
    """Test retries, error mapping and usage accounting."""

    def setup_method(self):
        self.sleeps: list[float] = []
        self.config = ModelClientConfig(api_key="secret", model="test/model", max_retries=3)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def client(self, script: Script) -> OpenRouterClient:
        return OpenRouterClient(self.config, transport=httpx.MockTransport(script), sleep=self.sleep)

    async def test_success_builds_request_and_records_usage(self):
        script = Script(completion('```json\n{"ok": true}\n```'))
        async with self.client(script) as client:
            text = await client.complete("explain_rule", "system", "user", max_tokens=100)

        assert text == '{"ok": true}'
        request = script.requests[0]
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["Authorization"] == "Bearer secret"
        body = orjson.loads(request.content)
        assert body["model"] == "test/model"
        assert body["max_tokens"] == 100
        assert body["response_format"] == {"type": "json_object"}
        assert body["messages"][0]["role"] == "system"
        assert client.usage_summary() == {"total_input_tokens": 11, "total_output_tokens": 7, "calls": 1}

    async def test_rate_limit_honours_retry_after(self):
        script = Script(error(429, headers={"Retry-After": "2"}), completion("{}"))
        async with self.client(script) as client:
            assert await client.complete("generate_lexicon", "s", "u") == "{}"
        assert self.sleeps == [3.0]

    async def test_rate_limit_exhaustion(self):
        script = Script(error(429), error(429), error(429))
        async with self.client(script) as client:
            with pytest.raises(RateLimitError):
                await client.complete("generate_lexicon", "s", "u")
        assert len(script.requests) == 3
        assert len(self.sleeps) == 2

    async def test_server_errors_exhaust_to_transport_error(self):
        script = Script(error(502), error(503), error(500))
        async with self.client(script) as client:
            with pytest.raises(TransportError):
                await client.complete("generate_lexicon", "s", "u")
        assert len(script.requests) == 3

    @pytest.mark.parametrize("status", [400, 401, 403, 413, 404])
    async def test_client_errors_are_not_retried(self, status):
        script = Script(error(status, "bad key"))
        async with self.client(script) as client:
            with pytest.raises(ModelRequestError) as exc:
                await client.complete("generate_lexicon", "s", "u")
        assert exc.value.status == status
        assert "bad key" in exc.value.message
        assert len(script.requests) == 1
        assert self.sleeps == []

    async def test_connection_errors_are_retried(self):
        script = Script(httpx.ConnectError("refused"), completion("{}"))
        async with self.client(script) as client:
            assert await client.complete("generate_lexicon", "s", "u") == "{}"
        assert len(self.sleeps) == 1

    async def test_timeouts_exhaust_to_transport_error(self):
        script = Script(*[httpx.ReadTimeout("slow") for _ in range(3)])
        async with self.client(script) as client:
            with pytest.raises(TransportError) as exc:
                await client.complete("generate_lexicon", "s", "u")
        assert exc.value.context["attempts"] == 3

    async def test_malformed_envelope(self):
        script = Script(httpx.Response(200, json={"choices": []}))
        async with self.client(script) as client:
            with pytest.raises(TransportError):
                await client.complete("generate_lexicon", "s", "u")
