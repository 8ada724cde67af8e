"""Dependency injection container for services.

Holds the process-wide cache, model client and executor. They are built
once at application startup and shared by every request; independent
pipeline runs only share the cache.
"""

from typing import Optional

from lexiforge.config import Settings, get_settings
from lexiforge.interop import ModelClientConfig, OpenRouterClient
from lexiforge.observ import get_logger
from lexiforge.services import GatedExecutor, PipelineConfig, PipelineOrchestrator
from lexiforge.storage import OperationCache, RedisCacheBackend, build_cache_backend

logger = get_logger(__name__)


class ServiceContainer:
    """Container for singleton service instances."""

    _cache: Optional[OperationCache] = None
    _client: Optional[OpenRouterClient] = None
    _executor: Optional[GatedExecutor] = None
    _pipeline_config: Optional[PipelineConfig] = None

    @classmethod
    async def initialize(cls, settings: Optional[Settings] = None) -> None:
        """Build the cache, model client and executor at application startup."""
        settings = settings or get_settings()
        logger.info("services_initializing", cache_backend=settings.cache_backend, model=settings.model_name)

        backend = build_cache_backend(settings)
        if isinstance(backend, RedisCacheBackend):
            await backend.connect()
        cls._cache = OperationCache.from_settings(settings, backend)

        cls._client = OpenRouterClient(ModelClientConfig.from_settings(settings))
        cls._executor = GatedExecutor(cls._client, cls._cache, max_attempts=settings.max_attempts)
        cls._pipeline_config = PipelineConfig.from_settings(settings)

        logger.info("services_initialized")

    @classmethod
    def get_cache(cls) -> OperationCache:
        if cls._cache is None:
            raise RuntimeError(
                "OperationCache not initialized. "
                "Ensure ServiceContainer.initialize() is called at startup."
            )
        return cls._cache

    @classmethod
    def get_executor(cls) -> GatedExecutor:
        if cls._executor is None:
            raise RuntimeError(
                "GatedExecutor not initialized. "
                "Ensure ServiceContainer.initialize() is called at startup."
            )
        return cls._executor

    @classmethod
    def get_orchestrator(cls) -> PipelineOrchestrator:
        """A fresh orchestrator per run over the shared executor."""
        return PipelineOrchestrator(cls.get_executor(), cls._pipeline_config)

    @classmethod
    async def cleanup(cls) -> None:
        """Release network resources at application shutdown."""
        logger.info("services_cleanup")
        if cls._client is not None:
            await cls._client.aclose()
        if cls._cache is not None and isinstance(cls._cache.backend, RedisCacheBackend):
            await cls._cache.backend.close()
        cls._cache = None
        cls._client = None
        cls._executor = None
        cls._pipeline_config = None


# FastAPI dependency functions
def get_cache() -> OperationCache:
    """Provide the operation cache for dependency injection."""
    return ServiceContainer.get_cache()


def get_orchestrator() -> PipelineOrchestrator:
    """Provide a pipeline orchestrator for dependency injection."""
    return ServiceContainer.get_orchestrator()
