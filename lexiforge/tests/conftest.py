"""Shared fixtures: a small valid language and a scripted model client."""

from typing import Callable, Optional, Union

import orjson
import pytest

from lexiforge.core import (
    CorpusSample,
    DerivationalRule,
    InterlinearLine,
    LanguageDefinition,
    LanguageMeta,
    LexicalEntry,
    MorphologyConfig,
    PartOfSpeech,
    PhonemeInventory,
    PhonologyConfig,
    Phonotactics,
    PhraseStructureSlot,
    SyntaxConfig,
    WordOrder,
)


CONSONANTS = ["p", "t", "k", "m", "n", "s", "l"]
VOWELS = ["a", "i", "u"]


def make_phonology(**overrides) -> PhonologyConfig:
    fields = dict(
        inventory=PhonemeInventory(consonants=list(CONSONANTS), vowels=list(VOWELS)),
        phonotactics=Phonotactics(syllable_templates=["CV(C)"]),
        orthography={s: s for s in CONSONANTS + VOWELS},
    )
    fields.update(overrides)
    return PhonologyConfig(**fields)


def make_morphology(**overrides) -> MorphologyConfig:
    fields = dict(
        typology="agglutinative",
        categories={"noun": ["number"], "verb": ["tense"]},
        paradigms={
            "noun_number": {"singular": "", "plural": "-ki"},
            "verb_tense": {"present": "", "past": "-ta", "future": "-nu"},
        },
        morpheme_order=["root", "tense", "number"],
        derivational_rules=[
            DerivationalRule(id="agent", source_pos=PartOfSpeech.VERB, target_pos=PartOfSpeech.NOUN,
                             label="agent", affix="-li"),
        ],
    )
    fields.update(overrides)
    return MorphologyConfig(**fields)


def make_entry(number: int, ipa: str, orth: Optional[str] = None, pos: PartOfSpeech = PartOfSpeech.NOUN,
               gloss: str = "thing", **extra) -> LexicalEntry:
    return LexicalEntry(
        id=f"lex_{number:04d}",
        phonological_form=f"/{ipa}/",
        orthographic_form=orth if orth is not None else ipa,
        pos=pos,
        glosses=[gloss],
        **extra
    )


def make_lexicon() -> list[LexicalEntry]:
    return [
        make_entry(1, "mata", gloss="eye"),
        make_entry(2, "kanu", pos=PartOfSpeech.VERB, gloss="eat"),
        make_entry(3, "ni", pos=PartOfSpeech.PRONOUN, gloss="I", subcategory="personal-pronoun"),
        make_entry(4, "sul", pos=PartOfSpeech.NUMERAL, gloss="one", subcategory="cardinal-number"),
        make_entry(5, "pa", pos=PartOfSpeech.PARTICLE, gloss="not", subcategory="negation"),
    ]


def make_language(**overrides) -> LanguageDefinition:
    fields = dict(
        meta=LanguageMeta(id="lang_test", name="Testish"),
        phonology=make_phonology(),
        morphology=make_morphology(),
        syntax=SyntaxConfig(
            word_order=WordOrder.SOV,
            phrase_structure={
                "NP": [PhraseStructureSlot(label="N")],
                "VP": [PhraseStructureSlot(label="V")],
                "S": [PhraseStructureSlot(label="NP"), PhraseStructureSlot(label="VP")],
            },
            clause_types=["declarative"],
        ),
        lexicon=make_lexicon(),
    )
    fields.update(overrides)
    return LanguageDefinition(**fields)


def make_sample(sample_id: str = "corpus_001", order: tuple[PartOfSpeech, ...] = (
        PartOfSpeech.PRONOUN, PartOfSpeech.NOUN, PartOfSpeech.VERB)) -> CorpusSample:
    words = {PartOfSpeech.PRONOUN: ("ni", "I"), PartOfSpeech.NOUN: ("mata", "eye"), PartOfSpeech.VERB: ("kanu", "eat")}
    lines = [InterlinearLine(word=words[p][0], morphemes=[words[p][0]], glosses=[words[p][1]], pos=p) for p in order]
    return CorpusSample(
        id=sample_id,
        orthographic_text=" ".join(l.word for l in lines),
        translation="I eat an eye",
        interlinear_gloss=lines
    )


def dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def as_json(payload: dict) -> str:
    return orjson.dumps(payload).decode()


Reply = Union[str, Exception, Callable[[str, str], str]]


class ScriptedModelClient:
    """Model client double that replays scripted replies and records calls.

    A reply may be text, an exception to raise, or a callable taking
    ``(operation, user_message)`` and returning text.
    """

    def __init__(self, replies: Optional[list[Reply]] = None, by_operation: Optional[dict[str, Callable]] = None):
        self.replies = list(replies or [])
        self.by_operation = by_operation or {}
        self.calls: list[dict] = []

    async def complete(self, operation, system_prompt, user_message, max_tokens=None) -> str:
        self.calls.append({"operation": operation, "system": system_prompt, "user": user_message})
        if operation in self.by_operation:
            return self.by_operation[operation](operation, user_message)
        if not self.replies:
            raise AssertionError(f"unexpected model call for {operation}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(operation, user_message)
        return reply

    def operations(self) -> list[str]:
        return [c["operation"] for c in self.calls]


@pytest.fixture
def language() -> LanguageDefinition:
    return make_language()


@pytest.fixture
def phonology() -> PhonologyConfig:
    return make_phonology()


@pytest.fixture
def morphology() -> MorphologyConfig:
    return make_morphology()
