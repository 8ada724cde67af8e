"""Phonological analysis: tokenizer, syllabifier and template matcher.

Everything here is pure and synchronous. Word forms are tokenized by
greedy longest match against the inventory, split into syllables, and
each syllable's C/V skeleton is matched against the declared templates.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from lexiforge.core import (
    AllophonyRule,
    PhonemeInventory,
    PhonologyConfig,
    Phonotactics,
    Severity,
    SyllablePosition,
    ValidationIssue,
    ValidationModule,
)
from lexiforge.errors import InvalidIPAError, TemplateConfigError, UnknownSymbolError


SEPARATORS = frozenset({".", " "})
TEMPLATE_ALPHABET = frozenset("CV()")


# ═════════════════════════════════════════════════════════════════════════════
# Tokenizer
# ═════════════════════════════════════════════════════════════════════════════

def clean_form(form: str) -> str:
    """Strip surrounding slashes and drop syllable/word separators."""
    stripped = form.strip().strip("/")
    return "".join(ch for ch in stripped if ch not in SEPARATORS)


def ordered_symbols(symbols: Iterable[str]) -> list[str]:
    """Longest symbols first; equal lengths keep declaration order."""
    unique = [s for s in dict.fromkeys(symbols) if s]
    return sorted(unique, key=len, reverse=True)


def tokenize(form: str, symbols: Sequence[str]) -> list[str]:
    """Split a word form into phoneme tokens.

    Greedy longest match with no backtracking, so a digraph such as
    ``tʃ`` wins over ``t`` whenever both are declared.

    Raises:
        UnknownSymbolError: A position matches no symbol.
    """
    cleaned = clean_form(form)
    candidates = ordered_symbols(symbols)
    tokens: list[str] = []
    i = 0
    while i < len(cleaned):
        for symbol in candidates:
            if cleaned.startswith(symbol, i):
                tokens.append(symbol)
                i += len(symbol)
                break
        else:
            raise UnknownSymbolError(cleaned, i)
    return tokens


# ═════════════════════════════════════════════════════════════════════════════
# Syllabifier
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Syllable:
    """Onset, nucleus and coda token runs of one syllable."""

    onset: tuple[str, ...] = ()
    nucleus: tuple[str, ...] = ()
    coda: tuple[str, ...] = ()

    @property
    def segments(self) -> tuple[str, ...]:
        return (*self.onset, *self.nucleus, *self.coda)

    @property
    def text(self) -> str:
        return "".join(self.segments)

    def skeleton(self, consonants: Iterable[str], vowels: Iterable[str]) -> str:
        """C/V pattern; ``?`` marks a token outside the expected class."""
        c_set, v_set = set(consonants), set(vowels)
        return (
            "".join("C" if t in c_set else "?" for t in self.onset)
            + "".join("V" if t in v_set else "?" for t in self.nucleus)
            + "".join("C" if t in c_set else "?" for t in self.coda)
        )


def syllabify(tokens: Sequence[str], vowels: Iterable[str]) -> list[Syllable]:
    """Group tokens into syllables.

    Each vowel is a nucleus. Consonants before the nucleus form the
    onset; after it they form the coda, except that a consonant directly
    followed by a vowel starts the next syllable's onset. A vowel that
    arrives while a nucleus is open starts a new syllable (hiatus).
    Non-vowel tokens are treated as consonants.
    """
    v_set = set(vowels)
    syllables: list[Syllable] = []
    onset: list[str] = []
    nucleus: list[str] = []
    coda: list[str] = []

    def close() -> None:
        syllables.append(Syllable(tuple(onset), tuple(nucleus), tuple(coda)))
        onset.clear()
        nucleus.clear()
        coda.clear()

    for i, token in enumerate(tokens):
        if token in v_set:
            if nucleus:
                close()
            nucleus.append(token)
            continue

        if not nucleus:
            onset.append(token)
            continue

        next_is_vowel = i + 1 < len(tokens) and tokens[i + 1] in v_set
        if next_is_vowel:
            close()
            onset.append(token)
        else:
            coda.append(token)

    if onset or nucleus or coda:
        close()
    return syllables


# ═════════════════════════════════════════════════════════════════════════════
# Template Matcher
# ═════════════════════════════════════════════════════════════════════════════

def expand_template(template: str) -> tuple[str, ...]:
    """Expand a template with at most one optional group.

    ``"CV(C)"`` expands to ``("CV", "CVC")``.

    Raises:
        TemplateConfigError: Empty template, foreign characters, or
            anything other than a single non-nested group.
    """
    if not template:
        raise TemplateConfigError(template, "empty template")
    foreign = sorted(set(template) - TEMPLATE_ALPHABET)
    if foreign:
        raise TemplateConfigError(template, f"unexpected characters {''.join(foreign)!r}")

    opens, closes = template.count("("), template.count(")")
    if opens == 0 and closes == 0:
        return (template,)
    if opens != 1 or closes != 1:
        raise TemplateConfigError(template, "only one non-nested optional group is supported")

    start, end = template.index("("), template.index(")")
    inside = template[start + 1:end]
    if end < start or not inside:
        raise TemplateConfigError(template, "optional group is unbalanced or empty")

    without = template[:start] + template[end + 1:]
    with_group = template[:start] + inside + template[end + 1:]
    if not without:
        return (with_group,)
    return (without, with_group)


def malformed_templates(templates: Sequence[str]) -> list[TemplateConfigError]:
    """Collect configuration errors for every template that fails to expand."""
    problems: list[TemplateConfigError] = []
    for template in templates:
        try:
            expand_template(template)
        except TemplateConfigError as e:
            problems.append(e)
    return problems


def match_template(skeleton: str, templates: Sequence[str]) -> Optional[str]:
    """First template in declaration order accepting the skeleton.

    Malformed templates never match; they are reported separately.
    """
    for template in templates:
        try:
            expansions = expand_template(template)
        except TemplateConfigError:
            continue
        if skeleton in expansions:
            return template
    return None


# ═════════════════════════════════════════════════════════════════════════════
# Word-form validation
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SyllableParse:
    syllable: Syllable
    skeleton: str
    matched_template: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.matched_template is not None


@dataclass
class WordFormResult:
    form: str
    syllables: list[SyllableParse] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


def validate_word_form(
    form: str,
    phonotactics: Phonotactics,
    inventory: PhonemeInventory,
    module: ValidationModule = ValidationModule.PHONOLOGY,
    entity_ref: Optional[str] = None
) -> WordFormResult:
    """Run a word form through tokenizer, syllabifier and template matcher."""
    ref = entity_ref if entity_ref is not None else form
    result = WordFormResult(form=form)

    def issue(rule_id: str, message: str) -> None:
        result.issues.append(ValidationIssue(
            rule_id=rule_id,
            module=module,
            severity=Severity.ERROR,
            message=message,
            entity_ref=ref
        ))

    if not clean_form(form):
        issue("PHON_010", "Empty word form.")
        return result

    try:
        tokens = tokenize(form, inventory.segments)
    except UnknownSymbolError:
        issue("PHON_011", f'"{form}" contains symbols not in the inventory.')
        return result

    templates = phonotactics.syllable_templates
    onset_clusters = {tuple(c) for c in phonotactics.onset_clusters}
    coda_clusters = {tuple(c) for c in phonotactics.coda_clusters}

    for syllable in syllabify(tokens, inventory.vowels):
        skeleton = syllable.skeleton(inventory.consonants, inventory.vowels)
        matched = match_template(skeleton, templates)
        result.syllables.append(SyllableParse(syllable, skeleton, matched))
        if matched is None:
            issue(
                "PHON_012",
                f'Syllable "{syllable.text}" (pattern: {skeleton}) doesn\'t match '
                f'templates: [{", ".join(templates)}].'
            )
        if len(syllable.onset) > 1 and syllable.onset not in onset_clusters:
            issue("PHON_013", f"Onset cluster /{''.join(syllable.onset)}/ not permitted.")
        if len(syllable.coda) > 1 and syllable.coda not in coda_clusters:
            issue("PHON_014", f"Coda cluster /{''.join(syllable.coda)}/ not permitted.")

    return result


# ═════════════════════════════════════════════════════════════════════════════
# Inventory, orthography and phonotactics configuration
# ═════════════════════════════════════════════════════════════════════════════

def _phon_issue(
    rule_id: str,
    severity: Severity,
    message: str,
    entity_ref: Optional[str] = None
) -> ValidationIssue:
    return ValidationIssue(
        rule_id=rule_id,
        module=ValidationModule.PHONOLOGY,
        severity=severity,
        message=message,
        entity_ref=entity_ref
    )


def validate_inventory(inventory: PhonemeInventory) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not inventory.consonants:
        issues.append(_phon_issue("PHON_001", Severity.ERROR, "Inventory must contain at least one consonant."))
    if not inventory.vowels:
        issues.append(_phon_issue("PHON_002", Severity.ERROR, "Inventory must contain at least one vowel."))
    if len(inventory.vowels) == 1:
        issues.append(_phon_issue(
            "PHON_003", Severity.WARNING,
            "Single-vowel languages are extremely rare and may cause phonotactic problems."
        ))

    seen: set[str] = set()
    for symbol in [*inventory.consonants, *inventory.vowels, *inventory.tones]:
        if symbol in seen:
            issues.append(_phon_issue("PHON_004", Severity.ERROR, f'Duplicate phoneme: "{symbol}".', symbol))
        seen.add(symbol)
    return issues


@dataclass
class OrthographyReport:
    missing_phonemes: list[str]
    unused_graphemes: list[str]
    conflicts: list[str]

    @property
    def bijective(self) -> bool:
        return not (self.missing_phonemes or self.unused_graphemes or self.conflicts)


def check_orthography(inventory: PhonemeInventory, orthography: dict[str, str]) -> OrthographyReport:
    """Compare the phoneme-to-grapheme map against the inventory."""
    segments = inventory.segments
    known = set(segments)
    missing = [ph for ph in segments if ph not in orthography]
    unused = [ph for ph in orthography if ph not in known]

    by_grapheme: dict[str, list[str]] = {}
    for phoneme, grapheme in orthography.items():
        by_grapheme.setdefault(grapheme, []).append(phoneme)
    conflicts = [
        f'"{grapheme}" <- {", ".join(phonemes)}'
        for grapheme, phonemes in by_grapheme.items()
        if len(phonemes) > 1
    ]
    return OrthographyReport(missing, unused, conflicts)


def validate_orthography(inventory: PhonemeInventory, orthography: dict[str, str]) -> list[ValidationIssue]:
    """Orthography findings; gaps are warnings here and errors cross-module."""
    report = check_orthography(inventory, orthography)
    issues = [
        _phon_issue("PHON_020", Severity.WARNING, f"Phoneme /{ph}/ has no orthographic mapping.", ph)
        for ph in report.missing_phonemes
    ]
    issues.extend(
        _phon_issue("PHON_021", Severity.WARNING, f'Orthography key "{g}" is not in the inventory.', g)
        for g in report.unused_graphemes
    )
    issues.extend(
        _phon_issue(
            "PHON_022", Severity.WARNING,
            f"Orthography conflict (multiple phonemes map to one grapheme): {c}. "
            "Allowed but prefer unique graphemes.",
            c
        )
        for c in report.conflicts
    )
    return issues


def validate_phonotactics(phonology: PhonologyConfig) -> list[ValidationIssue]:
    """Template, cluster and allophony configuration checks."""
    issues: list[ValidationIssue] = []
    phonotactics = phonology.phonotactics
    known = set(phonology.inventory.segments)

    if not phonotactics.syllable_templates:
        issues.append(_phon_issue("PHON_031", Severity.ERROR, "At least one syllable template is required."))

    for cluster in [*phonotactics.onset_clusters, *phonotactics.coda_clusters]:
        for member in cluster:
            if member not in known:
                issues.append(_phon_issue(
                    "PHON_032", Severity.ERROR, f"Cluster member /{member}/ not in inventory.", member
                ))

    for problem in malformed_templates(phonotactics.syllable_templates):
        issues.append(_phon_issue("PHON_033", Severity.ERROR, problem.message, problem.template))

    for rule in phonotactics.allophony_rules:
        if rule.phoneme not in known:
            issues.append(_phon_issue(
                "PHON_040", Severity.ERROR,
                f"Allophony rule references unknown phoneme /{rule.phoneme}/.",
                rule.phoneme
            ))
    return issues


# ═════════════════════════════════════════════════════════════════════════════
# Surface realisation
# ═════════════════════════════════════════════════════════════════════════════

def apply_allophony(
    tokens: Sequence[str],
    rules: Sequence[AllophonyRule],
    vowels: Iterable[str]
) -> list[str]:
    """Replace phonemes by allophones according to their syllable position.

    The first rule matching a token wins; a rule without a position
    applies everywhere.
    """
    surface: list[str] = []
    for syllable in syllabify(tokens, vowels):
        for position, run in (
            (SyllablePosition.ONSET, syllable.onset),
            (SyllablePosition.NUCLEUS, syllable.nucleus),
            (SyllablePosition.CODA, syllable.coda),
        ):
            for token in run:
                rule = next(
                    (r for r in rules
                     if r.phoneme == token and (r.position is None or r.position == position)),
                    None
                )
                surface.append(rule.allophone if rule else token)
    return surface


def to_orthography(tokens: Sequence[str], orthography: dict[str, str]) -> str:
    """Spell phonemes with their graphemes, passing unmapped ones through."""
    return "".join(orthography.get(t, t) for t in tokens)


def surface_form(form: str, phonology: PhonologyConfig) -> str:
    """Phonetic realisation of a phonemic form, as ``[...]``.

    Raises:
        InvalidIPAError: The form is empty once slashes and separators are removed.
        UnknownSymbolError: The form uses symbols outside the inventory.
    """
    if not clean_form(form):
        raise InvalidIPAError(form, "empty form")
    inventory = phonology.inventory
    tokens = tokenize(form, inventory.segments)
    surface = apply_allophony(tokens, phonology.phonotactics.allophony_rules, inventory.vowels)
    return f"[{''.join(surface)}]"
