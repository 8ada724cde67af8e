"""HTTP client for an OpenAI-compatible chat completions endpoint.

Defaults target OpenRouter. All transport concerns live here: retries with
exponential backoff (honouring Retry-After), per-request timeouts, code
fence stripping and token usage accounting. The gated executor only sees
the final text or one of the typed errors below.
"""

import asyncio
import random
import re
from dataclasses import dataclass, field
from time import perf_counter
from typing import Awaitable, Callable, Optional

import httpx

from lexiforge.config import Settings
from lexiforge.core.types import utc_now
from lexiforge.errors import ModelRequestError, RateLimitError, TransportError
from lexiforge.observ import get_logger, log_model_call

logger = get_logger(__name__)

JSON_ONLY_INSTRUCTION = (
    "CRITICAL: Respond with ONLY valid JSON. No markdown code fences, no preamble, "
    "no explanation outside the JSON object."
)
NON_RETRYABLE_STATUSES = frozenset({400, 401, 403, 413})
MAX_BACKOFF_SECONDS = 10.0

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```\s*$")


@dataclass(frozen=True)
class ModelClientConfig:
    api_key: str = ""
    model: str = "stepfun/step-3.5-flash:free"
    base_url: str = "https://openrouter.ai/api/v1"
    timeout_seconds: float = 30.0
    max_retries: int = 5
    max_tokens: int = 4096
    temperature: float = 0.7
    site_url: str = "https://lexiforge.dev"
    site_name: str = "Lexiforge"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelClientConfig":
        return cls(
            api_key=settings.model_api_key,
            model=settings.model_name,
            base_url=settings.model_base_url,
            timeout_seconds=settings.model_timeout_seconds,
            max_retries=settings.model_max_retries,
            max_tokens=settings.model_max_tokens,
            temperature=settings.model_temperature,
            site_url=settings.site_url,
            site_name=settings.site_name
        )


@dataclass
class TokenUsage:
    operation: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    timestamp: str = field(default_factory=utc_now)


def clean_json(raw: str) -> str:
    """Strip a surrounding markdown code fence, if any."""
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", raw.strip())).strip()


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait after a failed attempt (1-based), with jitter."""
    return min(2.0 ** (attempt - 1), MAX_BACKOFF_SECONDS) + random.uniform(0, 0.5)


def _retry_after(response: httpx.Response) -> Optional[float]:
    header = response.headers.get("retry-after")
    if header is None:
        return None
    try:
        return float(header)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return str(payload["error"].get("message", response.text))
    return response.text


class OpenRouterClient:
    """Async chat completions client.

    One instance owns one ``httpx.AsyncClient``; pass ``transport`` to
    route requests elsewhere (``httpx.MockTransport`` in tests) and
    ``sleep`` to observe backoff without waiting.
    """

    def __init__(
        self,
        config: ModelClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self._config = config
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=config.base_url.rstrip("/") + "/",
            timeout=config.timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "HTTP-Referer": config.site_url,
                "X-Title": config.site_name,
            }
        )
        self.usage_log: list[TokenUsage] = []

    async def __aenter__(self) -> "OpenRouterClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def usage_summary(self) -> dict:
        return {
            "total_input_tokens": sum(u.input_tokens for u in self.usage_log),
            "total_output_tokens": sum(u.output_tokens for u in self.usage_log),
            "calls": len(self.usage_log),
        }

    def _body(self, system_prompt: str, user_message: str, max_tokens: Optional[int]) -> dict:
        return {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}"},
                {"role": "user", "content": user_message},
            ],
            "max_tokens": max_tokens or self._config.max_tokens,
            "response_format": {"type": "json_object"},
            "temperature": self._config.temperature,
        }

    async def complete(
        self,
        operation: str,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> str:
        """Send one structured (JSON) request and return the cleaned text.

        Raises:
            ModelRequestError: Provider rejected the request (400/401/403/413 or other 4xx).
            RateLimitError: Still rate limited after the last retry.
            TransportError: Timeouts, connection failures or 5xx after the last retry.
        """
        body = self._body(system_prompt, user_message, max_tokens)
        max_retries = self._config.max_retries
        start = perf_counter()

        for attempt in range(1, max_retries + 1):
            try:
                response = await self._http.post("chat/completions", json=body)
            except httpx.TransportError as e:
                logger.warning(
                    "model_transport_failed", operation=operation, attempt=attempt,
                    error=str(e), error_type=type(e).__name__
                )
                if attempt == max_retries:
                    log_model_call(logger, operation, (perf_counter() - start) * 1000, success=False)
                    raise TransportError(operation, str(e) or type(e).__name__, attempts=attempt) from e
                await self._sleep(exponential_backoff(attempt))
                continue

            status = response.status_code
            if status in NON_RETRYABLE_STATUSES:
                raise ModelRequestError(operation, status, _error_message(response))

            if status == 429 or status >= 500:
                retry_after = _retry_after(response)
                logger.warning("model_call_retryable_status", operation=operation, attempt=attempt, status=status)
                if attempt < max_retries:
                    delay = retry_after + 1.0 if retry_after is not None else exponential_backoff(attempt)
                    await self._sleep(delay)
                    continue
                log_model_call(logger, operation, (perf_counter() - start) * 1000, success=False, status=status)
                if status == 429:
                    raise RateLimitError(limit=max_retries, window="request", retry_after=retry_after)
                raise TransportError(operation, f"HTTP {status}: {_error_message(response)}", attempts=attempt)

            if status >= 400:
                raise ModelRequestError(operation, status, _error_message(response))

            text = self._extract(operation, response)
            log_model_call(
                logger, operation, (perf_counter() - start) * 1000,
                attempts=attempt, output_tokens=self.usage_log[-1].output_tokens
            )
            return clean_json(text)

        raise TransportError(operation, "no attempts were made", attempts=0)

    def _extract(self, operation: str, response: httpx.Response) -> str:
        try:
            payload = response.json()
            text = payload["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TransportError(operation, f"malformed completion envelope: {e}") from e

        usage = payload.get("usage") or {}
        self.usage_log.append(TokenUsage(
            operation=operation,
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0)
        ))
        return text
