"""Service layer implementations.

Barrel export for the validator, the gated executor and the pipeline.
"""

from .validation import validate
from .operations import ADAPTERS, get_adapter, prune_language
from .executor import GatedExecutor
from .pipeline import PipelineConfig, PipelineOrchestrator, run_pipeline

__all__ = [
    "validate",
    "ADAPTERS",
    "get_adapter",
    "prune_language",
    "GatedExecutor",
    "PipelineConfig",
    "PipelineOrchestrator",
    "run_pipeline",
]
