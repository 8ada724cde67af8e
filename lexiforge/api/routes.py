"""FastAPI route definitions.

Thin routing layer that delegates to services. The browser (or any
client) is the source of truth: every route receives the full language
definition it operates on.
"""

import asyncio
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import Field

from lexiforge.api.dependencies import ServiceContainer, get_cache, get_orchestrator
from lexiforge.core import LanguageDefinition, PipelineRequest, ValidationResult
from lexiforge.core.types import Schema
from lexiforge.observ import get_logger, set_language_id
from lexiforge.services import PipelineOrchestrator, get_adapter, validate
from lexiforge.storage import OperationCache


logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1")


class OperationCall(Schema):
    request: dict[str, Any] = Field(default_factory=dict)
    language: LanguageDefinition


class OperationResponse(Schema):
    result: dict[str, Any]
    language: Optional[LanguageDefinition] = None


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@router.post("/validate", response_model=ValidationResult)
async def validate_language(language: LanguageDefinition) -> ValidationResult:
    """Run the four validation passes over a language definition."""
    set_language_id(language.meta.id)
    result = validate(language)
    logger.info("validate_requested", valid=result.valid, errors=len(result.errors))
    return result


@router.post("/operations/{operation}", response_model=OperationResponse)
async def run_operation(operation: str, body: OperationCall) -> OperationResponse:
    """Run one gated operation against the supplied language.

    Gated operations also return the language with the result applied;
    audit operations (explain, consistency) return the result only.
    Requests that carry a language default to the one in the body.
    """
    adapter = get_adapter(operation)
    set_language_id(body.language.meta.id)
    payload = {
        "languageId": body.language.meta.id,
        "language": body.language.model_dump(mode="json", by_alias=True),
        **body.request
    }
    result = await ServiceContainer.get_executor().execute_operation(adapter.name, payload, body.language)

    updated = None if adapter.structural_only else adapter.apply(result.data, body.language)
    return OperationResponse(result=result.model_dump(mode="json", by_alias=True), language=updated)


async def _event_stream(
    orchestrator: PipelineOrchestrator,
    request: PipelineRequest,
    cancel: asyncio.Event
) -> AsyncIterator[str]:
    try:
        async for event in orchestrator.run(request, cancel):
            yield f"event: {event.type}\ndata: {event.model_dump_json(by_alias=True)}\n\n"
    finally:
        # Client went away; stop at the next call boundary.
        cancel.set()


@router.post("/pipeline")
async def run_pipeline_stream(
    request: PipelineRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator)
) -> StreamingResponse:
    """Run the autonomous pipeline, streaming its events as server-sent events."""
    logger.info("pipeline_requested", language_id=request.language_id, complexity=request.complexity)
    return StreamingResponse(
        _event_stream(orchestrator, request, asyncio.Event()),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )


@router.get("/cache/stats")
async def cache_stats(cache: OperationCache = Depends(get_cache)) -> dict:
    return cache.stats


@router.delete("/cache/{language_id}")
async def invalidate_language_cache(language_id: str, cache: OperationCache = Depends(get_cache)) -> dict:
    """Drop every cached operation result of one language."""
    removed = await cache.invalidate_language(language_id)
    return {"languageId": language_id, "removed": removed}
