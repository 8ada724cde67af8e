"""Lexicon checks, core vocabulary coverage and batch merging."""

import re
from collections import Counter
from typing import NamedTuple, Optional, Sequence

from pydantic import Field

from lexiforge.core import (
    LexicalEntry,
    MorphologyConfig,
    PartOfSpeech,
    Severity,
    ValidationIssue,
    ValidationModule,
)
from lexiforge.core.types import FrozenSchema


MINIMUM_VOCABULARY_COUNT = 200
LEXEME_ID_PATTERN = re.compile(r"^lex_[0-9]{4,}$")


class CoreSlot(NamedTuple):
    """A meaning every starter lexicon should express."""
    slot: str
    pos: PartOfSpeech
    subcategory: Optional[str]
    semantic_field: str
    roles: tuple[str, ...] = ()

    @property
    def alternatives(self) -> list[str]:
        """Lower-cased glosses that fill this slot (``"foot / leg"`` -> foot / leg, foot, leg)."""
        name = self.slot.lower()
        parts = [p.strip() for p in name.split(" / ")] if " / " in name else []
        return [name, *parts]


_N, _V, _ADJ = PartOfSpeech.NOUN, PartOfSpeech.VERB, PartOfSpeech.ADJECTIVE
_PRO, _NUM, _PRT = PartOfSpeech.PRONOUN, PartOfSpeech.NUMERAL, PartOfSpeech.PARTICLE


def _nouns(field: str, *slots: str) -> list[CoreSlot]:
    return [CoreSlot(s, _N, "swadesh-core", field) for s in slots]


def _adjectives(field: str, *slots: str) -> list[CoreSlot]:
    return [CoreSlot(s, _ADJ, "swadesh-core", field) for s in slots]


CORE_VOCABULARY_SLOTS: list[CoreSlot] = [
    # Pronouns
    *[CoreSlot(s, _PRO, "personal-pronoun", "person")
      for s in ("I", "you (sg)", "he/she/it", "we", "you (pl)", "they")],
    CoreSlot("this", _PRO, "demonstrative-pronoun", "deixis"),
    CoreSlot("that", _PRO, "demonstrative-pronoun", "deixis"),
    CoreSlot("who", _PRO, "interrogative-pronoun", "deixis"),
    CoreSlot("what", _PRO, "interrogative-pronoun", "deixis"),

    # Numerals
    *[CoreSlot(s, _NUM, "cardinal-number", "number")
      for s in ("one", "two", "three", "four", "five", "ten", "hundred")],

    # Function words
    CoreSlot("and", _PRT, "conjunction", "grammar"),
    CoreSlot("or", _PRT, "conjunction", "grammar"),
    CoreSlot("but", _PRT, "conjunction", "grammar"),
    CoreSlot("not / negation", _PRT, "negation", "grammar"),
    CoreSlot("yes", _PRT, None, "grammar"),
    CoreSlot("no", _PRT, None, "grammar"),
    CoreSlot("in / at (location)", _PRT, "adposition", "space"),
    CoreSlot("to / toward", _PRT, "adposition", "space"),
    CoreSlot("from / away", _PRT, "adposition", "space"),
    CoreSlot("with / accompaniment", _PRT, "adposition", "social"),

    # Nouns
    *_nouns("person", "person / human", "man", "woman", "child"),
    *_nouns("body", "head", "eye", "ear", "mouth", "hand", "foot / leg",
            "heart", "blood", "bone", "skin / hide", "hair"),
    *_nouns("nature", "water", "fire", "earth / soil", "stone / rock", "tree",
            "sun", "moon", "star", "sky", "wind / air", "rain"),
    *_nouns("time", "night", "day", "year"),
    *_nouns("shelter", "house / home"),
    *_nouns("identity", "name"),
    *_nouns("language", "word / speech"),
    *_nouns("space", "path / road"),
    *_nouns("sustenance", "food"),
    *_nouns("nature", "animal", "bird", "fish", "dog"),

    # Verbs
    CoreSlot("to be (exist)", _V, "copula", "existence", ("theme",)),
    CoreSlot("to have", _V, "swadesh-core", "possession", ("agent", "theme")),
    CoreSlot("to do / make", _V, "swadesh-core", "action", ("agent", "patient")),
    CoreSlot("to say / speak", _V, "swadesh-core", "language", ("agent", "theme")),
    CoreSlot("to go / walk", _V, "swadesh-core", "motion", ("agent",)),
    CoreSlot("to come", _V, "swadesh-core", "motion", ("agent",)),
    CoreSlot("to see", _V, "swadesh-core", "perception", ("experiencer", "theme")),
    CoreSlot("to hear", _V, "swadesh-core", "perception", ("experiencer", "theme")),
    CoreSlot("to know", _V, "swadesh-core", "cognition", ("experiencer", "theme")),
    CoreSlot("to think", _V, "swadesh-core", "cognition", ("agent", "theme")),
    CoreSlot("to want / desire", _V, "swadesh-core", "desire", ("experiencer", "theme")),
    CoreSlot("to eat", _V, "swadesh-core", "sustenance", ("agent", "patient")),
    CoreSlot("to drink", _V, "swadesh-core", "sustenance", ("agent", "patient")),
    CoreSlot("to sleep", _V, "swadesh-core", "body", ("theme",)),
    CoreSlot("to die", _V, "swadesh-core", "life", ("theme",)),
    CoreSlot("to live / be alive", _V, "swadesh-core", "life", ("theme",)),
    CoreSlot("to give", _V, "swadesh-core", "social", ("agent", "theme", "recipient")),
    CoreSlot("to take / receive", _V, "swadesh-core", "action", ("agent", "patient")),
    CoreSlot("to kill", _V, "swadesh-core", "action", ("agent", "patient")),
    CoreSlot("to fall", _V, "swadesh-core", "motion", ("theme",)),
    CoreSlot("to stand", _V, "swadesh-core", "motion", ("theme",)),
    CoreSlot("to sit", _V, "swadesh-core", "motion", ("theme",)),
    CoreSlot("to grow", _V, "swadesh-core", "life", ("theme",)),
    CoreSlot("to burn", _V, "swadesh-core", "nature", ("theme",)),

    # Adjectives
    *_adjectives("size", "big / large", "small / little", "long", "short"),
    *_adjectives("evaluation", "good", "bad / evil"),
    *_adjectives("time", "new", "old"),
    *_adjectives("temperature", "hot / warm", "cold"),
    *_adjectives("texture", "wet", "dry"),
    *_adjectives("quantity", "full", "empty", "many / much", "few", "one / alone", "all / every"),
    *_adjectives("life", "alive", "dead"),
    *_adjectives("color", "black", "white", "red"),
]


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════

def _lex_issue(
    rule_id: str,
    severity: Severity,
    message: str,
    entity_ref: Optional[str] = None
) -> ValidationIssue:
    return ValidationIssue(
        rule_id=rule_id,
        module=ValidationModule.LEXICON,
        severity=severity,
        message=message,
        entity_ref=entity_ref
    )


def validate_lexicon(entries: Sequence[LexicalEntry], morphology: MorphologyConfig) -> list[ValidationIssue]:
    """Structural checks over the whole lexicon (LEX_*)."""
    issues: list[ValidationIssue] = []

    if len(entries) < MINIMUM_VOCABULARY_COUNT:
        issues.append(_lex_issue(
            "LEX_001", Severity.WARNING,
            f"Lexicon has {len(entries)} entries. A functional language needs at least "
            f"{MINIMUM_VOCABULARY_COUNT} words."
        ))

    seen_ids: set[str] = set()
    seen_forms: dict[str, str] = {}
    for entry in entries:
        if entry.id in seen_ids:
            issues.append(_lex_issue(
                "LEX_002", Severity.ERROR, f"Duplicate lexical entry ID: {entry.id}.", entry.id
            ))
        seen_ids.add(entry.id)

        previous = seen_forms.get(entry.orthographic_form)
        if previous and entry.orthographic_form:
            issues.append(_lex_issue(
                "LEX_003", Severity.WARNING,
                f'Homograph "{entry.orthographic_form}" appears in both {previous} and {entry.id}. '
                "Model intentional polysemy with senses on a single entry.",
                entry.id
            ))
        seen_forms[entry.orthographic_form] = entry.id

    subcategories = {e.subcategory for e in entries}
    for rule_id, subcategory, label in (
        ("LEX_010", "personal-pronoun", "personal pronouns"),
        ("LEX_011", "negation", "negation particle"),
        ("LEX_012", "cardinal-number", "cardinal numbers"),
    ):
        if subcategory not in subcategories:
            issues.append(_lex_issue(
                rule_id, Severity.WARNING,
                f"No {label} found. Add entries with subcategory '{subcategory}'."
            ))

    known_rules = {r.id for r in morphology.derivational_rules}
    for entry in entries:
        issues.extend(_entry_issues(entry, known_rules))

    return issues


def _entry_issues(entry: LexicalEntry, known_rules: set[str]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    ref = entry.id

    if not LEXEME_ID_PATTERN.match(entry.id):
        issues.append(_lex_issue("LEX_020", Severity.ERROR, f'Entry ID "{entry.id}" must match pattern lex_NNNN.', ref))
    if not entry.glosses:
        issues.append(_lex_issue("LEX_021", Severity.ERROR, f"Entry {entry.id} has no glosses.", ref))
    if not entry.phonological_form:
        issues.append(_lex_issue("LEX_022", Severity.ERROR, f"Entry {entry.id} missing phonological form.", ref))
    if not entry.orthographic_form:
        issues.append(_lex_issue("LEX_023", Severity.ERROR, f"Entry {entry.id} missing orthographic form.", ref))

    if entry.senses:
        for position, sense in enumerate(entry.senses, start=1):
            if not sense.gloss:
                issues.append(_lex_issue(
                    "LEX_030", Severity.ERROR, f"Sense {position} of entry {entry.id} missing gloss.", ref
                ))
        indices = [s.index for s in entry.senses]
        if indices != list(range(1, len(indices) + 1)):
            issues.append(_lex_issue(
                "LEX_031", Severity.ERROR,
                f"Sense indices of entry {entry.id} must run 1..{len(indices)}, got {indices}.",
                ref
            ))

    for derived in entry.derived_forms:
        if derived.rule_id not in known_rules:
            issues.append(_lex_issue(
                "LEX_040", Severity.ERROR,
                f'Entry {entry.id} derived form references unknown rule "{derived.rule_id}".',
                ref
            ))
    return issues


# ═════════════════════════════════════════════════════════════════════════════
# Coverage
# ═════════════════════════════════════════════════════════════════════════════

class CoverageReport(FrozenSchema):
    """How well a lexicon covers the core vocabulary slots."""

    total_entries: int
    core_slots_filled: int
    core_slots_total: int
    coverage_percent: int
    missing_slots: list[str] = Field(default_factory=list)
    by_semantic_field: dict[str, int] = Field(default_factory=dict)
    by_pos: dict[str, int] = Field(default_factory=dict)


def _gloss_set(entries: Sequence[LexicalEntry]) -> set[str]:
    return {g.strip().lower() for e in entries for g in e.glosses}


def slot_filled(slot: CoreSlot, glosses: set[str]) -> bool:
    return any(alt in glosses for alt in slot.alternatives)


def missing_slots(entries: Sequence[LexicalEntry]) -> list[CoreSlot]:
    """Core slots no entry glosses, in declaration order."""
    glosses = _gloss_set(entries)
    return [s for s in CORE_VOCABULARY_SLOTS if not slot_filled(s, glosses)]


def generate_coverage_report(entries: Sequence[LexicalEntry]) -> CoverageReport:
    missing = missing_slots(entries)
    total = len(CORE_VOCABULARY_SLOTS)
    filled = total - len(missing)

    fields: Counter[str] = Counter(f for e in entries for f in e.semantic_fields)
    pos_counts: Counter[str] = Counter(e.pos.value for e in entries)

    return CoverageReport(
        total_entries=len(entries),
        core_slots_filled=filled,
        core_slots_total=total,
        coverage_percent=round(filled / total * 100),
        missing_slots=[s.slot for s in missing],
        by_semantic_field=dict(fields),
        by_pos=dict(pos_counts)
    )


# ═════════════════════════════════════════════════════════════════════════════
# Merging
# ═════════════════════════════════════════════════════════════════════════════

def format_lexeme_id(number: int) -> str:
    return f"lex_{number:04d}"


def renumber(entries: Sequence[LexicalEntry], start: int = 1) -> list[LexicalEntry]:
    """Copies of the entries with sequential ``lex_NNNN`` ids."""
    return [
        entry.model_copy(update={"id": format_lexeme_id(start + i)})
        for i, entry in enumerate(entries)
    ]


def deduplicate_lexicon(entries: Sequence[LexicalEntry]) -> list[LexicalEntry]:
    """Keep the first entry per orthographic form, then renumber from lex_0001."""
    seen: set[str] = set()
    kept: list[LexicalEntry] = []
    for entry in entries:
        key = entry.orthographic_form.strip().lower()
        if key and key in seen:
            continue
        seen.add(key)
        kept.append(entry)
    return renumber(kept)
