"""Autonomous generation pipeline.

Chains the gated operations in dependency order to build a complete
LanguageDefinition from a single request:

    1. suggest_phoneme_inventory  -> phonology
    2. fill_paradigm_gaps         -> morphology
    3. generate_lexicon           (batched until the vocabulary target)
    4. generate_corpus            (only once the lexicon is large enough)
    5. check_consistency          (audit only, does not change the language)

Every step's output has already passed its validator gate inside the
executor; the pipeline only merges it into the accumulated state.
"""

import asyncio
from dataclasses import dataclass
from time import perf_counter
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from lexiforge.config import Settings
from lexiforge.core import (
    CompleteEvent,
    ErrorEvent,
    LanguageDefinition,
    LanguageMeta,
    MorphologyConfig,
    OperationCompleteEvent,
    OperationName,
    PartOfSpeech,
    PipelineRequest,
    PipelineResult,
    PhraseStructureSlot,
    ProgressEvent,
    Register,
    SyntaxConfig,
    ValidationResult,
    ValidationState,
    WordOrder,
)
from lexiforge.errors import LexiforgeError, PipelineCancelledError, PipelineError
from lexiforge.observ import get_logger, set_language_id, set_pipeline_step
from lexiforge.services.executor import GatedExecutor
from lexiforge.services.lexicon import CORE_VOCABULARY_SLOTS, CoreSlot, deduplicate_lexicon, missing_slots
from lexiforge.services.morphology import paradigm_key_categories
from lexiforge.services.operations import ADAPTERS, prune_language
from lexiforge.services.schemas import (
    CheckConsistencyRequest,
    FillParadigmGapsRequest,
    GenerateCorpusRequest,
    GenerateLexiconRequest,
    SuggestInventoryRequest,
    TargetSlot,
)
from lexiforge.services.validation import validate

logger = get_logger(__name__)

PIPELINE_NAME = "autonomous_generation"
TOTAL_STEPS = 5
MORPHEME_ORDER = ["root", "aspect", "tense", "person.number"]
MISSING_SLOT_TOLERANCE = 5

PipelineEvent = Union[ProgressEvent, OperationCompleteEvent, CompleteEvent, ErrorEvent]


@dataclass(frozen=True)
class PipelineConfig:
    batch_size: int = 5
    target_lexicon_size: int = 50
    max_lexicon_batches: int = 15
    corpus_min_lexicon: int = 50
    corpus_sample_count: int = 5
    corpus_registers: tuple[Register, ...] = (Register.INFORMAL, Register.FORMAL, Register.NARRATIVE)
    inter_call_delay_seconds: float = 12.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            batch_size=settings.lexicon_batch_size,
            target_lexicon_size=settings.target_lexicon_size,
            max_lexicon_batches=settings.max_lexicon_batches,
            corpus_min_lexicon=settings.corpus_min_lexicon,
            corpus_sample_count=settings.corpus_sample_count,
            inter_call_delay_seconds=settings.inter_call_delay_seconds
        )


# ═════════════════════════════════════════════════════════════════════════════
# Heuristics
# ═════════════════════════════════════════════════════════════════════════════

def derive_target_paradigms(complexity: float) -> list[str]:
    """Paradigm keys the morphology step should fill, growing with complexity.

    Only keys whose categories ``derive_morph_categories`` declares for
    that part of speech are kept, so a response that echoes the seeded
    categories never trips CROSS_020.
    """
    candidates = ["noun_case", "verb_tense"]
    if complexity > 0.3:
        candidates += ["verb_person_number", "noun_number"]
    if complexity > 0.6:
        candidates += ["verb_aspect", "verb_mood", "adjective_agreement"]
    if complexity > 0.8:
        candidates += ["verb_evidentiality", "noun_animacy"]

    declared = derive_morph_categories(complexity)
    return [
        key for key in candidates
        if all(c in declared.get(key.split("_", 1)[0], []) for c in paradigm_key_categories(key))
    ]


def derive_morph_categories(complexity: float) -> dict[str, list[str]]:
    noun = []
    if complexity > 0.2:
        noun.append("number")
    if complexity > 0.4:
        noun.append("case")
    if complexity > 0.7:
        noun.append("animacy")

    verb = ["tense"]
    if complexity > 0.3:
        verb += ["person", "number"]
    if complexity > 0.5:
        verb += ["aspect", "mood"]
    if complexity > 0.8:
        verb.append("evidentiality")

    adjective = []
    if complexity > 0.5:
        adjective.append("number")
    if complexity > 0.6:
        adjective.append("agreement")

    categories = {pos.value: [] for pos in PartOfSpeech}
    categories.update({
        "noun": noun,
        "verb": verb,
        "adjective": adjective,
        "pronoun": ["person", "number"] if complexity > 0.4 else [],
    })
    return categories


def build_skeleton(request: PipelineRequest) -> LanguageDefinition:
    """Empty language carrying the request's metadata and a default syntax."""
    slot = PhraseStructureSlot
    return LanguageDefinition(
        meta=LanguageMeta(
            id=request.language_id,
            name=request.name,
            world=request.world,
            tags=list(request.tags),
            preset=request.preset,
            naturalism_score=request.naturalism_score
        ),
        morphology=MorphologyConfig(
            typology="agglutinative" if request.naturalism_score > 0.5 else "analytic",
            categories={pos.value: [] for pos in PartOfSpeech}
        ),
        syntax=SyntaxConfig(
            word_order=WordOrder.SOV,
            phrase_structure={
                "NP": [slot(label="Det", optional=True), slot(label="Adj", optional=True, repeatable=True), slot(label="N")],
                "VP": [slot(label="V"), slot(label="NP", optional=True)],
                "S": [slot(label="NP"), slot(label="VP")],
            },
            clause_types=["declarative", "polar-interrogative", "imperative"],
            headedness="head-marking",
            adposition_type="postposition"
        )
    )


def plan_lexicon_batch(missing: list[CoreSlot], batch_number: int, batch_size: int) -> list[CoreSlot]:
    """Missing core slots first, topped up from a rotating window over all core slots."""
    batch = list(missing[:batch_size])
    total = len(CORE_VOCABULARY_SLOTS)
    offset = (batch_number * batch_size) % total
    for i in range(total):
        if len(batch) >= batch_size:
            break
        candidate = CORE_VOCABULARY_SLOTS[(offset + i) % total]
        if candidate not in batch:
            batch.append(candidate)
    return batch


def _target_slot(slot: CoreSlot) -> TargetSlot:
    return TargetSlot(slot=slot.slot, pos=slot.pos, subcategory=slot.subcategory, semantic_field=slot.semantic_field)


# ═════════════════════════════════════════════════════════════════════════════
# Orchestrator
# ═════════════════════════════════════════════════════════════════════════════

class PipelineOrchestrator:
    """Runs the generation steps strictly in sequence and streams events.

    ``run`` is a lazy async generator: nothing happens until it is iterated,
    and each run is independent. Cancellation is honoured only between
    calls; a call already in flight runs to completion.
    """

    def __init__(
        self,
        executor: GatedExecutor,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self._executor = executor
        self._config = config or PipelineConfig()
        self._sleep = sleep

    async def run(
        self,
        request: PipelineRequest,
        cancel: Optional[asyncio.Event] = None
    ) -> AsyncIterator[PipelineEvent]:
        start = perf_counter()
        config = self._config
        language = build_skeleton(request)
        steps_completed: list[OperationName] = []
        calls = 0
        step = OperationName.SUGGEST_INVENTORY

        set_language_id(request.language_id)
        logger.info("pipeline_started", pipeline=PIPELINE_NAME, complexity=request.complexity)

        async def call(operation: OperationName, op_request, base: LanguageDefinition):
            nonlocal calls
            if cancel is not None and cancel.is_set():
                raise PipelineCancelledError(PIPELINE_NAME, operation.value)
            set_pipeline_step(operation.value)
            if calls:
                await self._sleep(config.inter_call_delay_seconds)
            calls += 1
            return await self._executor.execute(ADAPTERS[operation], op_request, base)

        try:
            # Phonology
            yield ProgressEvent(step=1, total_steps=TOTAL_STEPS, step_name="Designing phoneme inventory")
            result = await call(step, SuggestInventoryRequest(
                language_id=request.language_id,
                naturalism_score=request.naturalism_score,
                preset=request.preset,
                world=request.world,
                tags=request.tags,
                seed=request.seed
            ), language)
            language = language.model_copy(update={"phonology": result.data.phonology})
            steps_completed.append(step)
            yield OperationCompleteEvent(result=result)

            # Morphology
            step = OperationName.FILL_PARADIGMS
            yield ProgressEvent(step=2, total_steps=TOTAL_STEPS, step_name="Building morphological paradigms")
            seeded = language.morphology.model_copy(update={
                "categories": derive_morph_categories(request.complexity),
                "morpheme_order": list(MORPHEME_ORDER),
            })
            result = await call(step, FillParadigmGapsRequest(
                language_id=request.language_id,
                morphology=seeded,
                phonology=language.phonology,
                target_paradigms=derive_target_paradigms(request.complexity)
            ), language)
            language = language.model_copy(update={"morphology": result.data.morphology})
            steps_completed.append(step)
            yield OperationCompleteEvent(result=result)

            # Lexicon
            step = OperationName.GENERATE_LEXICON
            yield ProgressEvent(
                step=3, total_steps=TOTAL_STEPS,
                step_name=f"Generating vocabulary (target: {config.target_lexicon_size} words)"
            )
            for batch_number in range(config.max_lexicon_batches):
                missing = missing_slots(language.lexicon)
                if len(language.lexicon) >= config.target_lexicon_size and len(missing) <= MISSING_SLOT_TOLERANCE:
                    break
                slots = plan_lexicon_batch(missing, batch_number, config.batch_size)
                result = await call(step, GenerateLexiconRequest(
                    language_id=request.language_id,
                    phonology=language.phonology,
                    morphology=language.morphology,
                    target_slots=[_target_slot(s) for s in slots],
                    batch_size=config.batch_size,
                    existing_orth_forms=[e.orthographic_form for e in language.lexicon],
                    world=request.world,
                    naturalism_score=request.naturalism_score,
                    tags=request.tags
                ), language)
                language = language.model_copy(update={
                    "lexicon": deduplicate_lexicon([*language.lexicon, *result.data.entries])
                })
                logger.info(
                    "lexicon_batch_merged",
                    batch=batch_number + 1,
                    lexicon_size=len(language.lexicon),
                    missing_slots=len(missing_slots(language.lexicon))
                )
                yield OperationCompleteEvent(result=result)
            steps_completed.append(step)

            # Corpus
            if len(language.lexicon) >= config.corpus_min_lexicon:
                step = OperationName.GENERATE_CORPUS
                yield ProgressEvent(step=4, total_steps=TOTAL_STEPS, step_name="Generating corpus samples")
                result = await call(step, GenerateCorpusRequest(
                    language_id=request.language_id,
                    language=prune_language(language, step),
                    count=config.corpus_sample_count,
                    registers=list(config.corpus_registers)
                ), language)
                language = language.model_copy(update={
                    "lexicon": [*language.lexicon, *result.data.new_entries],
                    "corpus": [*language.corpus, *result.data.samples],
                })
                steps_completed.append(step)
                yield OperationCompleteEvent(result=result)
            else:
                logger.info("corpus_skipped", lexicon_size=len(language.lexicon), required=config.corpus_min_lexicon)

            # Consistency audit
            step = OperationName.CHECK_CONSISTENCY
            yield ProgressEvent(step=5, total_steps=TOTAL_STEPS, step_name="Running linguistic consistency audit")
            result = await call(step, CheckConsistencyRequest(
                language_id=request.language_id,
                language=prune_language(language, step)
            ), language)
            steps_completed.append(step)
            yield OperationCompleteEvent(result=result)

        except LexiforgeError as e:
            logger.error(
                "pipeline_failed",
                pipeline=PIPELINE_NAME,
                step=step.value,
                error=e.message,
                error_type=type(e).__name__,
                steps_completed=[s.value for s in steps_completed]
            )
            yield ErrorEvent(step=step.value, message=e.message, partial=language)
            return
        except Exception as e:
            logger.error(
                "pipeline_crashed",
                pipeline=PIPELINE_NAME,
                step=step.value,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )
            yield ErrorEvent(step=step.value, message=str(e) or type(e).__name__, partial=language)
            return
        finally:
            set_pipeline_step(None)

        final = validate(language)
        language = language.model_copy(update={"validation_state": ValidationState.from_result(final)})
        duration_ms = (perf_counter() - start) * 1000
        logger.info(
            "pipeline_completed",
            pipeline=PIPELINE_NAME,
            duration_ms=round(duration_ms, 2),
            lexicon_size=len(language.lexicon),
            corpus_size=len(language.corpus),
            valid=final.valid
        )
        yield CompleteEvent(
            language=language,
            duration_ms=duration_ms,
            steps_completed=steps_completed,
            validation=final
        )


async def run_pipeline(
    orchestrator: PipelineOrchestrator,
    request: PipelineRequest,
    cancel: Optional[asyncio.Event] = None,
    on_event: Optional[Callable[[PipelineEvent], None]] = None
) -> PipelineResult:
    """Drive a pipeline run to completion.

    Raises:
        PipelineCancelledError: ``cancel`` was set before a step started.
        PipelineError: A step failed; ``partial`` holds the language so far.
    """
    async for event in orchestrator.run(request, cancel):
        if on_event is not None:
            on_event(event)
        if isinstance(event, ErrorEvent):
            if cancel is not None and cancel.is_set():
                raise PipelineCancelledError(PIPELINE_NAME, event.step)
            raise PipelineError(PIPELINE_NAME, event.step, event.message, partial=event.partial)
        if isinstance(event, CompleteEvent):
            return PipelineResult(
                language=event.language,
                steps_completed=event.steps_completed,
                total_duration_ms=event.duration_ms,
                validation_result=event.validation or ValidationResult(valid=True)
            )
    raise PipelineError(PIPELINE_NAME, "unknown", "pipeline ended without a result")
