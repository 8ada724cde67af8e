"""Validator-gated execution of model operations.

Each operation runs up to ``max_attempts`` semantic attempts. An attempt
either parses and passes its gate, or produces feedback lines that are fed
into the next attempt's prompt. Transport failures are not attempts: the
model client already retried them and they propagate unchanged.
"""

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Callable, Optional, Union

import orjson

from lexiforge.core import (
    LanguageDefinition,
    LLMOperationResult,
    OperationName,
    ValidationIssue,
    ValidationResult,
)
from lexiforge.core.contracts import IModelClient
from lexiforge.errors import OperationExhaustedError, ResponseParseError
from lexiforge.observ import get_logger
from lexiforge.services.operations import OperationAdapter, get_adapter
from lexiforge.services.prompts import retry_preamble
from lexiforge.services.validation import validate
from lexiforge.storage.cache import OperationCache

logger = get_logger(__name__)

Validator = Callable[[LanguageDefinition], ValidationResult]


@dataclass
class Success:
    data: Any
    raw: str
    validation: ValidationResult


@dataclass
class ParseFailure:
    raw: str
    reason: str
    kind: str = "parse"

    @property
    def feedback(self) -> list[str]:
        return [f"Parse error: {self.reason}"]


@dataclass
class ValidationFailure:
    raw: str
    errors: list[ValidationIssue] = field(default_factory=list)
    kind: str = "validation"

    @property
    def feedback(self) -> list[str]:
        if not self.errors:
            return ["Response was rejected by the structural check: required content is empty"]
        return [issue.as_feedback() for issue in self.errors]


Outcome = Union[Success, ParseFailure, ValidationFailure]


# Fields that never distinguish one logical request from another
CACHE_KEY_EXCLUDE = {
    "force": True,
    "language": {"meta": {"created_at": True, "updated_at": True}},
}


def cache_payload(request: Any) -> Any:
    """Request as keyed in the cache, without ``force`` or language timestamps."""
    return request.model_dump(mode="json", by_alias=True, exclude=CACHE_KEY_EXCLUDE)


class GatedExecutor:
    """Runs operations through cache, model and validator gate."""

    def __init__(
        self,
        client: IModelClient,
        cache: Optional[OperationCache] = None,
        max_attempts: int = 3,
        validator: Validator = validate
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._client = client
        self._cache = cache
        self._max_attempts = max_attempts
        self._validator = validator

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute_operation(
        self,
        name: Union[OperationName, str],
        request: Any,
        base: LanguageDefinition
    ) -> LLMOperationResult:
        """Look up the adapter by name and execute. ``request`` may be a dict."""
        adapter = get_adapter(name)
        return await self.execute(adapter, adapter.parse_request(request), base)

    async def execute(
        self,
        adapter: OperationAdapter,
        request: Any,
        base: LanguageDefinition
    ) -> LLMOperationResult:
        start = perf_counter()
        operation = adapter.name
        payload = cache_payload(request)
        force = bool(getattr(request, "force", False))

        if self._cache is not None and not force:
            cached = await self._from_cache(adapter, payload, base, start)
            if cached is not None:
                return cached

        retry_reasons: list[list[str]] = []
        failure_kinds: list[str] = []
        last_error = ""

        for attempt in range(1, self._max_attempts + 1):
            message = adapter.user_message(request, base)
            if retry_reasons:
                message = f"{retry_preamble(retry_reasons[-1], attempt, self._max_attempts)}\n\n{message}"

            raw = await self._client.complete(
                operation.value,
                adapter.system_prompt(),
                message,
                max_tokens=adapter.max_tokens
            )
            outcome = self._evaluate(adapter, raw, base)

            if isinstance(outcome, Success):
                key = None
                if self._cache is not None:
                    key = await self._cache.set(operation, payload, adapter.encode(outcome.data))
                duration_ms = (perf_counter() - start) * 1000
                logger.info(
                    "operation_succeeded",
                    operation=operation.value,
                    attempt=attempt,
                    duration_ms=round(duration_ms, 2)
                )
                return LLMOperationResult(
                    operation=operation,
                    attempt=attempt,
                    raw_response=raw,
                    data=outcome.data,
                    validation=outcome.validation,
                    duration_ms=duration_ms,
                    from_cache=False,
                    cache_key=key
                )

            retry_reasons.append(outcome.feedback)
            failure_kinds.append(outcome.kind)
            last_error = "; ".join(outcome.feedback)
            logger.warning(
                "operation_attempt_failed",
                operation=operation.value,
                attempt=attempt,
                max_attempts=self._max_attempts,
                failure_kind=outcome.kind,
                feedback_count=len(outcome.feedback),
                first_feedback=outcome.feedback[0]
            )

        duration_ms = (perf_counter() - start) * 1000
        logger.error(
            "operation_exhausted",
            operation=operation.value,
            attempts=self._max_attempts,
            failure_kinds=failure_kinds,
            duration_ms=round(duration_ms, 2)
        )
        raise OperationExhaustedError(
            operation=operation.value,
            attempt=self._max_attempts,
            final_error=last_error,
            retry_reasons=retry_reasons,
            failure_kinds=failure_kinds,
            duration_ms=duration_ms
        )

    def _evaluate(self, adapter: OperationAdapter, raw: str, base: LanguageDefinition) -> Outcome:
        try:
            data = adapter.decode(raw, base)
        except ResponseParseError as e:
            return ParseFailure(raw=raw, reason=e.reason)

        if adapter.structural_only:
            if adapter.accepts(data):
                return Success(data=data, raw=raw, validation=ValidationResult.structural(True))
            return ValidationFailure(raw=raw)

        candidate = adapter.apply(data, base)
        result = self._validator(candidate)
        blocking = adapter.relevant_errors(result.errors, data, base)
        if blocking:
            return ValidationFailure(raw=raw, errors=blocking)
        return Success(data=data, raw=raw, validation=result)

    async def _from_cache(
        self,
        adapter: OperationAdapter,
        payload: Any,
        base: LanguageDefinition,
        start: float
    ) -> Optional[LLMOperationResult]:
        entry = await self._cache.get(adapter.name, payload)
        if entry is None:
            return None

        raw = orjson.dumps(entry.data).decode()
        try:
            data = adapter.decode(raw, base)
        except ResponseParseError as e:
            logger.warning("operation_cache_stale_entry", operation=adapter.name.value, key=entry.key, error=e.reason)
            await self._cache.invalidate(adapter.name, payload)
            return None

        if adapter.structural_only:
            validation = ValidationResult.structural(adapter.accepts(data))
        else:
            validation = self._validator(adapter.apply(data, base))

        logger.info("operation_cache_hit", operation=adapter.name.value, key=entry.key)
        return LLMOperationResult(
            operation=adapter.name,
            attempt=0,
            raw_response=raw,
            data=data,
            validation=validation,
            duration_ms=(perf_counter() - start) * 1000,
            from_cache=True,
            cache_key=entry.key
        )
