"""Lexiforge - validation-gated constructed language generation.

Rule-based linguistic validation plus a retry-gated orchestration layer
that drives a language model through a fixed generation pipeline.
"""

__version__ = "0.1.0"

# Observability exports for convenience
from lexiforge.observ import get_logger, timer
from lexiforge.errors import (
    LexiforgeError,
    ErrorCode,
    ValidationError,
    InvalidIPAError,
    UnknownSymbolError,
    TemplateConfigError,
    ResourceNotFoundError,
    ProcessingError,
    ResponseParseError,
    OperationExhaustedError,
    PipelineError,
    PipelineCancelledError,
    ServiceError,
    TransportError,
    ModelRequestError,
    RateLimitError,
)

__all__ = [
    # Version
    "__version__",
    # Logging
    "get_logger",
    "timer",
    # Errors
    "LexiforgeError",
    "ErrorCode",
    "ValidationError",
    "InvalidIPAError",
    "UnknownSymbolError",
    "TemplateConfigError",
    "ResourceNotFoundError",
    "ProcessingError",
    "ResponseParseError",
    "OperationExhaustedError",
    "PipelineError",
    "PipelineCancelledError",
    "ServiceError",
    "TransportError",
    "ModelRequestError",
    "RateLimitError",
]
