"""Core type definitions for constructed language generation.

Provides domain models with strict typing. All entities are Pydantic
models for validation and serialization. Field names are snake_case in
Python and camelCase on the wire (JSON files, API payloads, model output).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Literal, Optional, TypeVar, Union
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


T = TypeVar("T")


def utc_now() -> str:
    """ISO 8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


class Schema(BaseModel):
    """Base model accepting both snake_case and camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FrozenSchema(Schema):
    """Immutable value object."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ═════════════════════════════════════════════════════════════════════════════
# Enumerations
# ═════════════════════════════════════════════════════════════════════════════

class PartOfSpeech(str, Enum):
    """Lexical categories."""
    NOUN = "noun"
    VERB = "verb"
    ADJECTIVE = "adjective"
    ADVERB = "adverb"
    PARTICLE = "particle"
    PRONOUN = "pronoun"
    NUMERAL = "numeral"
    OTHER = "other"


class Severity(str, Enum):
    """Errors block a commit, warnings never do."""
    ERROR = "error"
    WARNING = "warning"


class ValidationModule(str, Enum):
    """Module an issue is attributed to."""
    PHONOLOGY = "phonology"
    MORPHOLOGY = "morphology"
    SYNTAX = "syntax"
    LEXICON = "lexicon"
    CROSS_MODULE = "cross-module"
    WRITING_SYSTEM = "writing-system"


class SyllablePosition(str, Enum):
    ONSET = "onset"
    NUCLEUS = "nucleus"
    CODA = "coda"


class AffixType(str, Enum):
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CIRCUMFIX = "circumfix"
    INFIX = "infix"


class WordOrder(str, Enum):
    SOV = "SOV"
    SVO = "SVO"
    VSO = "VSO"
    VOS = "VOS"
    OVS = "OVS"
    OSV = "OSV"
    FREE = "free"


class Alignment(str, Enum):
    NOMINATIVE_ACCUSATIVE = "nominative-accusative"
    ERGATIVE_ABSOLUTIVE = "ergative-absolutive"
    TRIPARTITE = "tripartite"
    SPLIT_ERGATIVE = "split-ergative"
    ACTIVE_STATIVE = "active-stative"


class Register(str, Enum):
    FORMAL = "formal"
    INFORMAL = "informal"
    RITUAL = "ritual"
    TECHNICAL = "technical"
    NARRATIVE = "narrative"


class OperationName(str, Enum):
    """The six gated model operations."""
    SUGGEST_INVENTORY = "suggest_phoneme_inventory"
    FILL_PARADIGMS = "fill_paradigm_gaps"
    GENERATE_LEXICON = "generate_lexicon"
    GENERATE_CORPUS = "generate_corpus"
    EXPLAIN_RULE = "explain_rule"
    CHECK_CONSISTENCY = "check_consistency"


# ═════════════════════════════════════════════════════════════════════════════
# Phonology
# ═════════════════════════════════════════════════════════════════════════════

class PhonemeInventory(Schema):
    """Consonant, vowel and tone symbols. Empty sets are allowed mid-generation."""

    consonants: list[str] = Field(default_factory=list)
    vowels: list[str] = Field(default_factory=list)
    tones: list[str] = Field(default_factory=list)

    @property
    def segments(self) -> list[str]:
        """Consonants then vowels, the symbols a word form may use."""
        return [*self.consonants, *self.vowels]


class AllophonyRule(Schema):
    phoneme: str
    allophone: str
    environment: str = ""
    position: Optional[SyllablePosition] = None


class Phonotactics(Schema):
    syllable_templates: list[str] = Field(default_factory=list)
    onset_clusters: list[list[str]] = Field(default_factory=list)
    coda_clusters: list[list[str]] = Field(default_factory=list)
    allophony_rules: list[AllophonyRule] = Field(default_factory=list)


class Suprasegmentals(Schema):
    has_lexical_tone: bool = False
    has_phonemic_stress: bool = False
    has_vowel_length: bool = False
    has_phonemic_nasalization: bool = False


class PhonologyConfig(Schema):
    inventory: PhonemeInventory = Field(default_factory=PhonemeInventory)
    phonotactics: Phonotactics = Field(default_factory=Phonotactics)
    orthography: dict[str, str] = Field(default_factory=dict)  # phoneme -> grapheme
    suprasegmentals: Suprasegmentals = Field(default_factory=Suprasegmentals)


# ═════════════════════════════════════════════════════════════════════════════
# Morphology
# ═════════════════════════════════════════════════════════════════════════════

class DerivationalRule(Schema):
    id: str = ""
    source_pos: PartOfSpeech
    target_pos: PartOfSpeech
    label: str = ""
    affix: str
    affix_type: AffixType = AffixType.SUFFIX


class AlternationRule(Schema):
    id: str = ""
    trigger: str = ""
    input: str
    output: str
    boundary: Literal["prefix", "suffix", "any"] = "any"


class MorphologyConfig(Schema):
    typology: Literal["analytic", "agglutinative", "fusional", "polysynthetic", "mixed"] = "agglutinative"
    # part of speech -> grammatical category names
    categories: dict[str, list[str]] = Field(default_factory=dict)
    # paradigm key (e.g. "noun_case") -> feature value -> affix
    paradigms: dict[str, dict[str, str]] = Field(default_factory=dict)
    morpheme_order: list[str] = Field(default_factory=lambda: ["root"])
    derivational_rules: list[DerivationalRule] = Field(default_factory=list)
    alternation_rules: list[AlternationRule] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════════════
# Syntax
# ═════════════════════════════════════════════════════════════════════════════

class PhraseStructureSlot(Schema):
    label: str
    optional: bool = False
    repeatable: bool = False


class SyntaxConfig(Schema):
    word_order: WordOrder = WordOrder.SOV
    alignment: Alignment = Alignment.NOMINATIVE_ACCUSATIVE
    phrase_structure: dict[str, list[PhraseStructureSlot]] = Field(default_factory=dict)
    clause_types: list[str] = Field(default_factory=list)
    headedness: Literal["head-marking", "dependent-marking", "double-marking"] = "head-marking"
    adposition_type: Literal["preposition", "postposition", "both", "none"] = "postposition"


# ═════════════════════════════════════════════════════════════════════════════
# Lexicon and Corpus
# ═════════════════════════════════════════════════════════════════════════════

class LexicalSense(Schema):
    index: int
    gloss: str = ""
    semantic_field: str = ""
    example_orthographic: Optional[str] = None
    example_translation: Optional[str] = None


class DerivedForm(Schema):
    rule_id: str
    phonological_form: str
    orthographic_form: str = ""
    pos: PartOfSpeech = PartOfSpeech.OTHER
    gloss: str = ""


class LexicalEntry(Schema):
    """Lexical entry; IDs follow the ``lex_NNNN`` pattern."""

    id: str = ""
    phonological_form: str = ""
    orthographic_form: str = ""
    pos: PartOfSpeech = PartOfSpeech.OTHER
    subcategory: Optional[str] = None
    glosses: list[str] = Field(default_factory=list)
    senses: Optional[list[LexicalSense]] = None
    semantic_fields: list[str] = Field(default_factory=list)
    derived_forms: list[DerivedForm] = Field(default_factory=list)
    semantic_roles: list[str] = Field(default_factory=list)
    etymology: Optional[str] = None
    source: Literal["generated", "user"] = "generated"


class InterlinearLine(Schema):
    word: str
    morphemes: list[str] = Field(default_factory=list)
    glosses: list[str] = Field(default_factory=list)
    pos: Optional[PartOfSpeech] = None


class CorpusSample(Schema):
    id: str = ""
    sample_register: Register = Field(default=Register.INFORMAL, alias="register")
    orthographic_text: str
    ipa_text: str = ""
    translation: str
    interlinear_gloss: list[InterlinearLine] = Field(default_factory=list)
    prompt: Optional[str] = None
    generated_at: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════════════
# Pragmatics and Meta
# ═════════════════════════════════════════════════════════════════════════════

class RegisterDefinition(Schema):
    name: Register
    description: str = ""
    markers: list[str] = Field(default_factory=list)


class PragmaticsConfig(Schema):
    has_formal_register: bool = False
    has_honorifics: bool = False
    registers: list[RegisterDefinition] = Field(default_factory=list)
    politeness_strategies: list[str] = Field(default_factory=list)


class LanguageMeta(Schema):
    id: str
    name: str
    author_id: str = "system"
    world: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    version: int = 1
    preset: Literal["naturalistic", "experimental"] = "naturalistic"
    naturalism_score: float = Field(default=0.7, ge=0.0, le=1.0)


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════

class ValidationIssue(FrozenSchema):
    """One finding of the rule validator."""

    rule_id: str
    module: ValidationModule
    severity: Severity
    message: str
    entity_ref: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def as_feedback(self) -> str:
        """Render as a corrective line for the next model attempt."""
        return f"[{self.module.value} {self.rule_id}] {self.message}"


class PassSummary(FrozenSchema):
    passed: bool = True
    error_count: int = 0
    warning_count: int = 0


class ValidationSummary(FrozenSchema):
    phonology: PassSummary = Field(default_factory=PassSummary)
    morphology: PassSummary = Field(default_factory=PassSummary)
    syntax: PassSummary = Field(default_factory=PassSummary)
    cross_module: PassSummary = Field(default_factory=PassSummary)


class ValidationResult(FrozenSchema):
    """Union of all issues from one validation run. ``valid`` iff no errors."""

    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)
    duration_ms: float = 0.0

    @classmethod
    def from_passes(
        cls,
        passes: dict[str, list[ValidationIssue]],
        duration_ms: float = 0.0
    ) -> "ValidationResult":
        """Build a result from per-pass issue lists keyed by summary field."""
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        summaries: dict[str, PassSummary] = {}
        for name, issues in passes.items():
            pass_errors = [i for i in issues if i.is_error]
            pass_warnings = [i for i in issues if not i.is_error]
            errors.extend(pass_errors)
            warnings.extend(pass_warnings)
            summaries[name] = PassSummary(
                passed=not pass_errors,
                error_count=len(pass_errors),
                warning_count=len(pass_warnings)
            )
        return cls(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            summary=ValidationSummary(**summaries),
            duration_ms=duration_ms
        )

    @classmethod
    def structural(cls, valid: bool) -> "ValidationResult":
        """Result for operations checked only against their schema."""
        return cls(valid=valid)

    @property
    def issues(self) -> list[ValidationIssue]:
        return [*self.errors, *self.warnings]


class ValidationState(Schema):
    last_run: Optional[str] = None
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationState":
        return cls(last_run=utc_now(), errors=result.errors, warnings=result.warnings)


# ═════════════════════════════════════════════════════════════════════════════
# Root Language Definition
# ═════════════════════════════════════════════════════════════════════════════

class LanguageDefinition(Schema):
    """Complete constructed language; the state accumulated by the pipeline."""

    schema_version: Literal["1.0"] = "1.0"
    meta: LanguageMeta
    phonology: PhonologyConfig = Field(default_factory=PhonologyConfig)
    morphology: MorphologyConfig = Field(default_factory=MorphologyConfig)
    syntax: SyntaxConfig = Field(default_factory=SyntaxConfig)
    pragmatics: PragmaticsConfig = Field(default_factory=PragmaticsConfig)
    lexicon: list[LexicalEntry] = Field(default_factory=list)
    corpus: list[CorpusSample] = Field(default_factory=list)
    validation_state: ValidationState = Field(default_factory=ValidationState)


# ═════════════════════════════════════════════════════════════════════════════
# Operations and Pipeline
# ═════════════════════════════════════════════════════════════════════════════

class LLMOperationResult(FrozenSchema, Generic[T]):
    """Outcome of one gated operation. ``attempt`` is 0 for cache hits."""

    operation: OperationName
    attempt: int
    raw_response: str = ""
    data: T
    validation: ValidationResult
    duration_ms: float
    from_cache: bool = False
    cache_key: Optional[str] = None


class PipelineRequest(Schema):
    language_id: str
    name: str
    world: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    preset: Literal["naturalistic", "experimental"] = "naturalistic"
    naturalism_score: float = Field(default=0.7, ge=0.0, le=1.0)
    complexity: float = Field(default=0.5, ge=0.0, le=1.0)
    seed: Optional[str] = None


class ProgressEvent(FrozenSchema):
    type: Literal["progress"] = "progress"
    step: int
    total_steps: int
    step_name: str


class OperationCompleteEvent(FrozenSchema):
    type: Literal["operation_complete"] = "operation_complete"
    result: LLMOperationResult[Any]


class CompleteEvent(FrozenSchema):
    type: Literal["complete"] = "complete"
    language: LanguageDefinition
    duration_ms: float
    steps_completed: list[OperationName] = Field(default_factory=list)
    validation: Optional[ValidationResult] = None


class ErrorEvent(FrozenSchema):
    type: Literal["error"] = "error"
    step: str
    message: str
    partial: Optional[LanguageDefinition] = None


PipelineEvent = Union[ProgressEvent, OperationCompleteEvent, CompleteEvent, ErrorEvent]


class PipelineResult(FrozenSchema):
    language: LanguageDefinition
    steps_completed: list[OperationName]
    total_duration_ms: float
    validation_result: ValidationResult
