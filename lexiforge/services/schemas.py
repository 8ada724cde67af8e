"""Request and response models of the six gated operations.

Requests double as cache keys, so they carry every input that shapes the
prompt. Responses are what the model must return; decoding either fully
succeeds against these models or fails as a parse error.
"""

from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from lexiforge.core import (
    CorpusSample,
    LanguageDefinition,
    LexicalEntry,
    MorphologyConfig,
    PartOfSpeech,
    PhonemeInventory,
    PhonologyConfig,
    Register,
)
from lexiforge.core.types import Schema


# ═════════════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════════════

class SuggestInventoryRequest(Schema):
    language_id: str
    naturalism_score: float = Field(default=0.7, ge=0.0, le=1.0)
    preset: Literal["naturalistic", "experimental"] = "naturalistic"
    world: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    existing_inventory: Optional[PhonemeInventory] = None
    seed: Optional[str] = None
    force: bool = False  # bypass the cache


class FillParadigmGapsRequest(Schema):
    language_id: str
    morphology: MorphologyConfig
    phonology: PhonologyConfig
    target_paradigms: list[str] = Field(default_factory=list)


class TargetSlot(Schema):
    slot: str
    pos: PartOfSpeech
    subcategory: Optional[str] = None
    semantic_field: str = ""


class GenerateLexiconRequest(Schema):
    language_id: str
    phonology: PhonologyConfig
    morphology: MorphologyConfig
    target_slots: list[TargetSlot]
    batch_size: int = Field(default=5, ge=1)
    existing_orth_forms: list[str] = Field(default_factory=list)
    world: Optional[str] = None
    naturalism_score: float = Field(default=0.7, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)


class GenerateCorpusRequest(Schema):
    language_id: str
    language: LanguageDefinition
    count: int = Field(default=5, ge=1)
    registers: list[Register] = Field(default_factory=lambda: [Register.INFORMAL])
    user_prompt: Optional[str] = None


class ExplainRuleRequest(Schema):
    language_id: str
    module: Literal["phonology", "morphology", "syntax"]
    rule_ref: str
    rule_data: dict[str, Any] = Field(default_factory=dict)
    language: LanguageDefinition
    depth: Literal["beginner", "technical"] = "beginner"


FocusArea = Literal["phonology-morphology", "morphology-syntax", "syntax-pragmatics", "lexicon-phonology"]


class CheckConsistencyRequest(Schema):
    language_id: str
    language: LanguageDefinition
    focus_areas: Optional[list[FocusArea]] = None


# ═════════════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════════════

class SuggestInventoryResponse(Schema):
    phonology: PhonologyConfig
    rationale: str = ""


class FillParadigmGapsResponse(Schema):
    morphology: MorphologyConfig
    rationale: str = ""


class GenerateLexiconResponse(Schema):
    entries: list[LexicalEntry] = Field(min_length=1)
    phonological_notes: str = ""


class GenerateCorpusResponse(Schema):
    samples: list[CorpusSample] = Field(min_length=1)
    new_entries: list[LexicalEntry] = Field(default_factory=list)


class WorkedExample(Schema):
    input: str
    output: str
    steps: list[str] = Field(default_factory=list)


class ExplainRuleResponse(Schema):
    explanation: str = Field(min_length=1)
    examples: list[WorkedExample] = Field(default_factory=list)
    cross_linguistic_parallels: list[str] = Field(default_factory=list)


class LinguisticIssue(Schema):
    severity: Literal["error", "warning", "note"] = "note"
    module: str = ""
    description: str
    suggestion: str = ""


class CheckConsistencyResponse(Schema):
    overall_score: float
    linguistic_issues: list[LinguisticIssue] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)

    @field_validator("overall_score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return max(0.0, min(100.0, v))
