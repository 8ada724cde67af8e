"""Adapters binding each gated operation to its prompt, schema and gate.

An adapter owns everything operation-specific: the prompts, decoding the
model text into a typed response, building the candidate language that the
validator runs against, and choosing which validator errors block it.
The retry loop itself lives in ``services.executor``.
"""

from typing import Any, Generic, Optional, TypeVar

import orjson
from pydantic import ValidationError as SchemaError

from lexiforge.core import (
    CorpusSample,
    InterlinearLine,
    LanguageDefinition,
    LexicalEntry,
    OperationName,
    SyntaxConfig,
    ValidationIssue,
    ValidationModule,
    WordOrder,
)
from lexiforge.core.types import Schema, utc_now
from lexiforge.errors import ErrorCode, ResourceNotFoundError, ResponseParseError, ValidationError
from lexiforge.services import prompts
from lexiforge.services.lexicon import format_lexeme_id
from lexiforge.services.morphology import rule_ids
from lexiforge.services.phonology import clean_form
from lexiforge.services.schemas import (
    CheckConsistencyRequest,
    CheckConsistencyResponse,
    ExplainRuleRequest,
    ExplainRuleResponse,
    FillParadigmGapsRequest,
    FillParadigmGapsResponse,
    GenerateCorpusRequest,
    GenerateCorpusResponse,
    GenerateLexiconRequest,
    GenerateLexiconResponse,
    SuggestInventoryRequest,
    SuggestInventoryResponse,
)


R = TypeVar("R", bound=Schema)

WORLD_LIMIT = 500


# ═════════════════════════════════════════════════════════════════════════════
# Pruning
# ═════════════════════════════════════════════════════════════════════════════

def _neutral_syntax() -> SyntaxConfig:
    return SyntaxConfig(word_order=WordOrder.SVO, headedness="dependent-marking", adposition_type="preposition")


def prune_language(lang: LanguageDefinition, operation: OperationName) -> LanguageDefinition:
    """Copy of the language trimmed to what an operation's prompt needs."""
    pruned = lang.model_copy(deep=True)
    world = pruned.meta.world
    if world and len(world) > WORLD_LIMIT:
        pruned.meta.world = world[:WORLD_LIMIT] + "... (truncated)"

    if operation in (OperationName.SUGGEST_INVENTORY, OperationName.FILL_PARADIGMS):
        pruned.lexicon = []
        pruned.corpus = []
        pruned.syntax = _neutral_syntax()
    elif operation == OperationName.GENERATE_LEXICON:
        pruned.lexicon = []
        pruned.corpus = []
        pruned.morphology.paradigms = {}
    elif operation in (OperationName.GENERATE_CORPUS, OperationName.CHECK_CONSISTENCY):
        pruned.lexicon = pruned.lexicon[:20]
        pruned.corpus = pruned.corpus[:3]
    elif operation == OperationName.EXPLAIN_RULE:
        pruned.corpus = []
        pruned.lexicon = pruned.lexicon[:15]
    return pruned


# ═════════════════════════════════════════════════════════════════════════════
# Base adapter
# ═════════════════════════════════════════════════════════════════════════════

def _refers_to(issue: ValidationIssue, ids: set[str]) -> bool:
    ref = issue.entity_ref
    if not ref:
        return False
    return ref in ids or ref.split(":", 1)[0] in ids


class OperationAdapter(Generic[R]):
    """Shared decoding and defaults; subclasses fill in the specifics."""

    name: OperationName
    request_model: type[Schema]
    response_model: type[R]
    max_tokens: int = 4000
    structural_only: bool = False

    def system_prompt(self) -> str:
        raise NotImplementedError

    def user_message(self, request: Any, base: LanguageDefinition) -> str:
        raise NotImplementedError

    def parse_request(self, request: Any) -> Schema:
        if isinstance(request, self.request_model):
            return request
        try:
            return self.request_model.model_validate(request)
        except SchemaError as e:
            raise ValidationError(
                f"invalid {self.name.value} request: {e.error_count()} schema errors",
                operation=self.name.value
            ) from e

    def decode(self, raw: str, base: LanguageDefinition) -> R:
        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise ResponseParseError(self.name.value, f"invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ResponseParseError(self.name.value, "top-level JSON value must be an object")
        try:
            data = self.response_model.model_validate(payload)
        except SchemaError as e:
            first = e.errors()[0]
            location = ".".join(str(p) for p in first["loc"])
            raise ResponseParseError(
                self.name.value, f"{location}: {first['msg']} ({e.error_count()} schema errors)"
            ) from e
        return self.normalize(data, base)

    def normalize(self, data: R, base: LanguageDefinition) -> R:
        """Post-decode fixups such as id assignment."""
        return data

    def encode(self, data: R) -> Any:
        return data.model_dump(mode="json", by_alias=True)

    def apply(self, data: R, base: LanguageDefinition) -> LanguageDefinition:
        return base

    def relevant_errors(
        self,
        errors: list[ValidationIssue],
        data: R,
        base: LanguageDefinition
    ) -> list[ValidationIssue]:
        return []

    def accepts(self, data: R) -> bool:
        return True


# ═════════════════════════════════════════════════════════════════════════════
# Adapters
# ═════════════════════════════════════════════════════════════════════════════

class SuggestInventoryAdapter(OperationAdapter[SuggestInventoryResponse]):
    name = OperationName.SUGGEST_INVENTORY
    request_model = SuggestInventoryRequest
    response_model = SuggestInventoryResponse
    max_tokens = 3000

    def system_prompt(self) -> str:
        return prompts.INVENTORY_SYSTEM_PROMPT

    def user_message(self, request: SuggestInventoryRequest, base: LanguageDefinition) -> str:
        return prompts.inventory_user_message(request, prune_language(base, self.name))

    def apply(self, data: SuggestInventoryResponse, base: LanguageDefinition) -> LanguageDefinition:
        return base.model_copy(update={"phonology": data.phonology})

    def relevant_errors(self, errors, data, base):
        return [e for e in errors if e.module == ValidationModule.PHONOLOGY]


class FillParadigmsAdapter(OperationAdapter[FillParadigmGapsResponse]):
    name = OperationName.FILL_PARADIGMS
    request_model = FillParadigmGapsRequest
    response_model = FillParadigmGapsResponse

    def system_prompt(self) -> str:
        return prompts.PARADIGM_SYSTEM_PROMPT

    def user_message(self, request: FillParadigmGapsRequest, base: LanguageDefinition) -> str:
        return prompts.paradigm_user_message(request, prune_language(base, self.name))

    def apply(self, data: FillParadigmGapsResponse, base: LanguageDefinition) -> LanguageDefinition:
        return base.model_copy(update={"morphology": data.morphology})

    def relevant_errors(self, errors, data, base):
        morphology = data.morphology
        owned = set(morphology.paradigms) | rule_ids(morphology.derivational_rules)
        relevant = []
        for issue in errors:
            if issue.module == ValidationModule.MORPHOLOGY:
                relevant.append(issue)
            elif issue.module == ValidationModule.CROSS_MODULE and issue.entity_ref:
                if issue.entity_ref in owned or issue.entity_ref.split(".", 1)[0] in owned:
                    relevant.append(issue)
        return relevant


class GenerateLexiconAdapter(OperationAdapter[GenerateLexiconResponse]):
    name = OperationName.GENERATE_LEXICON
    request_model = GenerateLexiconRequest
    response_model = GenerateLexiconResponse

    GATED_MODULES = frozenset({
        ValidationModule.PHONOLOGY,
        ValidationModule.MORPHOLOGY,
        ValidationModule.CROSS_MODULE,
        ValidationModule.LEXICON,
    })

    def system_prompt(self) -> str:
        return prompts.LEXICON_SYSTEM_PROMPT

    def user_message(self, request: GenerateLexiconRequest, base: LanguageDefinition) -> str:
        return prompts.lexicon_user_message(request, prune_language(base, self.name))

    def normalize(self, data: GenerateLexiconResponse, base: LanguageDefinition) -> GenerateLexiconResponse:
        start = len(base.lexicon) + 1
        entries = [
            entry.model_copy(update={
                "id": format_lexeme_id(start + i),
                "derived_forms": [],
                "source": "generated",
            })
            for i, entry in enumerate(data.entries)
        ]
        return data.model_copy(update={"entries": entries})

    def apply(self, data: GenerateLexiconResponse, base: LanguageDefinition) -> LanguageDefinition:
        return base.model_copy(update={"lexicon": [*base.lexicon, *data.entries]})

    def relevant_errors(self, errors, data, base):
        new_ids = {e.id for e in data.entries}
        return [e for e in errors if e.module in self.GATED_MODULES and _refers_to(e, new_ids)]


def normalize_samples(samples: list[CorpusSample], lexicon: list[LexicalEntry]) -> list[CorpusSample]:
    """Snap interlinear words to canonical lexicon spellings and rebuild the texts.

    A word is matched by orthographic form (case-insensitive), then by
    its first gloss. The IPA text is rebuilt only when every word matched.
    """
    if not lexicon:
        return samples

    by_form: dict[str, LexicalEntry] = {}
    by_gloss: dict[str, LexicalEntry] = {}
    for entry in lexicon:
        if entry.orthographic_form:
            by_form.setdefault(entry.orthographic_form.strip().lower(), entry)
        for gloss in entry.glosses:
            by_gloss.setdefault(gloss.strip().lower(), entry)

    def lookup(line: InterlinearLine) -> Optional[LexicalEntry]:
        entry = by_form.get(line.word.strip().lower())
        if entry is None and line.glosses:
            entry = by_gloss.get(line.glosses[0].strip().lower())
        return entry

    normalized = []
    for sample in samples:
        if not sample.interlinear_gloss:
            normalized.append(sample)
            continue
        lines = []
        ipa_parts = []
        for line in sample.interlinear_gloss:
            entry = lookup(line)
            if entry is not None:
                line = line.model_copy(update={"word": entry.orthographic_form})
                ipa_parts.append(clean_form(entry.phonological_form))
            else:
                ipa_parts.append("")
            lines.append(line)
        text = " ".join(l.word for l in lines).strip()
        ipa = f"/{' '.join(ipa_parts)}/" if all(ipa_parts) else sample.ipa_text
        normalized.append(sample.model_copy(update={
            "interlinear_gloss": lines,
            "orthographic_text": text or sample.orthographic_text,
            "ipa_text": ipa,
        }))
    return normalized


class GenerateCorpusAdapter(OperationAdapter[GenerateCorpusResponse]):
    name = OperationName.GENERATE_CORPUS
    request_model = GenerateCorpusRequest
    response_model = GenerateCorpusResponse

    def system_prompt(self) -> str:
        return prompts.CORPUS_SYSTEM_PROMPT

    def user_message(self, request: GenerateCorpusRequest, base: LanguageDefinition) -> str:
        return prompts.corpus_user_message(request, base)

    def normalize(self, data: GenerateCorpusResponse, base: LanguageDefinition) -> GenerateCorpusResponse:
        for sample in data.samples:
            if not sample.orthographic_text.strip() or not sample.translation.strip():
                raise ResponseParseError(self.name.value, "every sample needs orthographicText and translation")

        start = len(base.lexicon) + 1
        new_entries = [
            entry.model_copy(update={
                "id": format_lexeme_id(start + i),
                "phonological_form": f"/{clean_form(entry.phonological_form)}/",
                "source": "generated",
            })
            for i, entry in enumerate(data.new_entries)
        ]
        offset = len(base.corpus) + 1
        now = utc_now()
        samples = [
            sample.model_copy(update={
                "id": f"corpus_{offset + i:03d}",
                "generated_at": sample.generated_at or now,
            })
            for i, sample in enumerate(data.samples)
        ]
        samples = normalize_samples(samples, [*base.lexicon, *new_entries])
        return data.model_copy(update={"samples": samples, "new_entries": new_entries})

    def apply(self, data: GenerateCorpusResponse, base: LanguageDefinition) -> LanguageDefinition:
        return base.model_copy(update={
            "lexicon": [*base.lexicon, *data.new_entries],
            "corpus": [*base.corpus, *data.samples],
        })

    def relevant_errors(self, errors, data, base):
        owned = {s.id for s in data.samples} | {e.id for e in data.new_entries}
        return [e for e in errors if _refers_to(e, owned)]


class ExplainRuleAdapter(OperationAdapter[ExplainRuleResponse]):
    name = OperationName.EXPLAIN_RULE
    request_model = ExplainRuleRequest
    response_model = ExplainRuleResponse
    max_tokens = 3000
    structural_only = True

    def system_prompt(self) -> str:
        return prompts.EXPLAIN_SYSTEM_PROMPT

    def user_message(self, request: ExplainRuleRequest, base: LanguageDefinition) -> str:
        return prompts.explain_user_message(request, base)

    def accepts(self, data: ExplainRuleResponse) -> bool:
        return bool(data.explanation.strip())


class CheckConsistencyAdapter(OperationAdapter[CheckConsistencyResponse]):
    name = OperationName.CHECK_CONSISTENCY
    request_model = CheckConsistencyRequest
    response_model = CheckConsistencyResponse
    structural_only = True

    def system_prompt(self) -> str:
        return prompts.CONSISTENCY_SYSTEM_PROMPT

    def user_message(self, request: CheckConsistencyRequest, base: LanguageDefinition) -> str:
        return prompts.consistency_user_message(request, base)


ADAPTERS: dict[OperationName, OperationAdapter] = {
    adapter.name: adapter
    for adapter in (
        SuggestInventoryAdapter(),
        FillParadigmsAdapter(),
        GenerateLexiconAdapter(),
        GenerateCorpusAdapter(),
        ExplainRuleAdapter(),
        CheckConsistencyAdapter(),
    )
}


def get_adapter(name: Any) -> OperationAdapter:
    """Look up an adapter by ``OperationName`` or its string value."""
    try:
        operation = OperationName(name)
    except ValueError:
        raise ResourceNotFoundError("operation", str(name), code=ErrorCode.OPERATION_NOT_FOUND) from None
    return ADAPTERS[operation]
