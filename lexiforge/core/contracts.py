"""Service contracts and interfaces.

Defines protocols for dependency injection and testing.
"""

from typing import Any, Optional, Protocol, TypeVar

from .types import LanguageDefinition, OperationName, ValidationIssue


T = TypeVar("T")


class IModelClient(Protocol):
    """Contract for the language model call primitive.

    Transport retries (rate limits, 5xx, timeouts) happen inside
    ``complete``; callers only see the final text or an exception.
    """

    async def complete(
        self,
        operation: str,
        system_prompt: str,
        user_message: str,
        max_tokens: Optional[int] = None
    ) -> str:
        """Return the model's text response."""
        ...


class ICacheBackend(Protocol):
    """Contract for the raw key/value store behind the operation cache."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_prefix(self, prefix: str) -> int:
        ...


class IOperationAdapter(Protocol[T]):
    """Contract for one gated operation's request/response mapping."""

    name: OperationName
    max_tokens: int
    structural_only: bool

    def system_prompt(self) -> str:
        ...

    def user_message(self, request: Any, base: LanguageDefinition) -> str:
        """Prompt body for a first attempt; retries prepend their feedback."""
        ...

    def decode(self, raw: str, base: LanguageDefinition) -> T:
        """Parse raw model text into typed data or raise ResponseParseError."""
        ...

    def encode(self, data: T) -> Any:
        """JSON-compatible form of decoded data, as stored in the cache."""
        ...

    def apply(self, data: T, base: LanguageDefinition) -> LanguageDefinition:
        """Produce the candidate language the validator runs against."""
        ...

    def relevant_errors(
        self,
        errors: list[ValidationIssue],
        data: T,
        base: LanguageDefinition
    ) -> list[ValidationIssue]:
        """Select the validator errors that gate this operation."""
        ...

    def accepts(self, data: T) -> bool:
        """Structural acceptance check for operations with no validator slice."""
        ...
