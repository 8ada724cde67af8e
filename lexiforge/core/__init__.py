"""Core domain models and types.

Barrel export for clean imports across the application.
"""

from .types import (
    PartOfSpeech,
    Severity,
    ValidationModule,
    SyllablePosition,
    AffixType,
    WordOrder,
    Alignment,
    Register,
    OperationName,
    PhonemeInventory,
    AllophonyRule,
    Phonotactics,
    Suprasegmentals,
    PhonologyConfig,
    DerivationalRule,
    AlternationRule,
    MorphologyConfig,
    PhraseStructureSlot,
    SyntaxConfig,
    LexicalSense,
    DerivedForm,
    LexicalEntry,
    InterlinearLine,
    CorpusSample,
    RegisterDefinition,
    PragmaticsConfig,
    LanguageMeta,
    ValidationIssue,
    PassSummary,
    ValidationSummary,
    ValidationResult,
    ValidationState,
    LanguageDefinition,
    LLMOperationResult,
    PipelineRequest,
    ProgressEvent,
    OperationCompleteEvent,
    CompleteEvent,
    ErrorEvent,
    PipelineEvent,
    PipelineResult,
)

__all__ = [
    "PartOfSpeech",
    "Severity",
    "ValidationModule",
    "SyllablePosition",
    "AffixType",
    "WordOrder",
    "Alignment",
    "Register",
    "OperationName",
    "PhonemeInventory",
    "AllophonyRule",
    "Phonotactics",
    "Suprasegmentals",
    "PhonologyConfig",
    "DerivationalRule",
    "AlternationRule",
    "MorphologyConfig",
    "PhraseStructureSlot",
    "SyntaxConfig",
    "LexicalSense",
    "DerivedForm",
    "LexicalEntry",
    "InterlinearLine",
    "CorpusSample",
    "RegisterDefinition",
    "PragmaticsConfig",
    "LanguageMeta",
    "ValidationIssue",
    "PassSummary",
    "ValidationSummary",
    "ValidationResult",
    "ValidationState",
    "LanguageDefinition",
    "LLMOperationResult",
    "PipelineRequest",
    "ProgressEvent",
    "OperationCompleteEvent",
    "CompleteEvent",
    "ErrorEvent",
    "PipelineEvent",
    "PipelineResult",
]
