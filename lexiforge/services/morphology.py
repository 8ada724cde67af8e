"""Inflectional paradigms, derivation and morphology validation."""

from dataclasses import dataclass, field
from itertools import product
from typing import Optional, Sequence

from lexiforge.core import (
    AffixType,
    DerivationalRule,
    DerivedForm,
    LexicalEntry,
    MorphologyConfig,
    PhonologyConfig,
    Severity,
    ValidationIssue,
    ValidationModule,
)
from lexiforge.errors import UnknownSymbolError
from lexiforge.services.phonology import clean_form, to_orthography, tokenize, validate_word_form


CIRCUMFIX_SEPARATORS = ("…", "...")

# Feature values assumed when no paradigm declares a category
DEFAULT_FEATURE_VALUES: dict[str, list[str]] = {
    "tense": ["present", "past", "future"],
    "aspect": ["perfective", "imperfective"],
    "mood": ["indicative", "subjunctive", "imperative"],
    "person": ["1", "2", "3"],
    "number": ["singular", "plural"],
    "case": ["nominative", "accusative", "dative"],
    "gender": ["masculine", "feminine"],
    "nounClass": ["class1", "class2"],
    "evidentiality": ["direct", "reported", "inferential"],
    "mirativity": ["mirative", "non-mirative"],
    "definiteness": ["definite", "indefinite"],
    "animacy": ["animate", "inanimate"],
}


@dataclass(frozen=True)
class ParadigmRow:
    label: str
    features: dict[str, str]
    orthographic_form: str
    phonological_form: str


@dataclass
class ParadigmTable:
    lexeme_id: str
    pos: str
    rows: list[ParadigmRow] = field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════════════
# Affixes
# ═════════════════════════════════════════════════════════════════════════════

def strip_affix(affix: str) -> str:
    """Remove boundary hyphens: ``-ka`` and ``ka-`` both become ``ka``."""
    return affix.strip().strip("-")


def split_circumfix(affix: str) -> tuple[str, str]:
    for separator in CIRCUMFIX_SEPARATORS:
        if separator in affix:
            before, _, after = affix.partition(separator)
            return strip_affix(before), strip_affix(after)
    return strip_affix(affix), ""


def affix_segments(affix: str) -> list[str]:
    """The phonological material of an affix, one string per part."""
    if any(sep in affix for sep in CIRCUMFIX_SEPARATORS):
        return [part for part in split_circumfix(affix) if part]
    stripped = strip_affix(affix)
    return [stripped] if stripped else []


def infer_affix_type(affix: str) -> AffixType:
    """Paradigm cells mark position with hyphens; unmarked cells are suffixes."""
    if any(sep in affix for sep in CIRCUMFIX_SEPARATORS):
        return AffixType.CIRCUMFIX
    if affix.endswith("-") and not affix.startswith("-"):
        return AffixType.PREFIX
    return AffixType.SUFFIX


def _after_first_vowel(text: str, vowels: Sequence[str]) -> Optional[int]:
    ordered = sorted((v for v in vowels if v), key=len, reverse=True)
    for i in range(len(text)):
        for vowel in ordered:
            if text.startswith(vowel, i):
                return i + len(vowel)
    return None


def _attach(stem: str, affix: str, affix_type: AffixType, vowels: Sequence[str]) -> str:
    if affix_type == AffixType.PREFIX:
        return strip_affix(affix) + stem
    if affix_type == AffixType.CIRCUMFIX:
        before, after = split_circumfix(affix)
        return before + stem + after
    if affix_type == AffixType.INFIX:
        position = _after_first_vowel(stem, vowels)
        if position is not None:
            return stem[:position] + strip_affix(affix) + stem[position:]
    return stem + strip_affix(affix)


def apply_alternations(
    stem: str,
    affix_type: AffixType,
    morphology: MorphologyConfig
) -> str:
    """Apply alternation rules at the junction the affix attaches to."""
    boundary = "prefix" if affix_type == AffixType.PREFIX else "suffix"
    for rule in morphology.alternation_rules:
        if rule.boundary not in (boundary, "any") or not rule.input:
            continue
        if boundary == "suffix" and stem.endswith(rule.input):
            stem = stem[:len(stem) - len(rule.input)] + rule.output
        elif boundary == "prefix" and stem.startswith(rule.input):
            stem = rule.output + stem[len(rule.input):]
    return stem


def apply_affix(
    orthographic: str,
    phonological: str,
    affix: str,
    affix_type: AffixType,
    morphology: MorphologyConfig,
    phonology: PhonologyConfig
) -> tuple[str, str]:
    """Attach an affix to both the spelling and the bare IPA of a stem.

    Returns ``(orthographic, phonological)`` with the IPA left unslashed.
    """
    if not affix_segments(affix):
        return orthographic, clean_form(phonological)

    vowels = phonology.inventory.vowels
    orth_vowels = [phonology.orthography.get(v, v) for v in vowels]
    ipa_stem = apply_alternations(clean_form(phonological), affix_type, morphology)

    return (
        _attach(orthographic, spell_affix(affix, phonology), affix_type, orth_vowels),
        _attach(ipa_stem, affix, affix_type, vowels),
    )


def _spell(material: str, phonology: PhonologyConfig) -> str:
    try:
        tokens = tokenize(material, phonology.inventory.segments)
    except UnknownSymbolError:
        return material
    return to_orthography(tokens, phonology.orthography)


def spell_affix(affix: str, phonology: PhonologyConfig) -> str:
    """Orthographic rendering of an IPA affix, keeping its hyphen marks."""
    if any(sep in affix for sep in CIRCUMFIX_SEPARATORS):
        before, after = split_circumfix(affix)
        return f"{_spell(before, phonology)}-…-{_spell(after, phonology)}"
    core = strip_affix(affix)
    return affix.replace(core, _spell(core, phonology), 1) if core else affix


# ═════════════════════════════════════════════════════════════════════════════
# Paradigms
# ═════════════════════════════════════════════════════════════════════════════

def paradigm_key_categories(key: str) -> list[str]:
    """Category names of a paradigm key; ``verb_person_number`` -> person, number."""
    parts = key.split("_")
    return parts[1:] if len(parts) > 1 else parts


def feature_values(pos: str, category: str, morphology: MorphologyConfig) -> list[str]:
    """Values of a category, from the single-category paradigm if declared."""
    own = morphology.paradigms.get(f"{pos}_{category}")
    if own:
        return list(own)
    for key, cells in morphology.paradigms.items():
        if paradigm_key_categories(key) == [category] and cells:
            return list(cells)
    return DEFAULT_FEATURE_VALUES.get(category, ["base"])


def _slot_plan(pos: str, categories: list[str], morphology: MorphologyConfig) -> list[list[str]]:
    """Category groups in affixation order, following the morpheme order.

    A multi-category slot stays fused only when ``<pos>_<a>_<b>`` has
    cells of its own; otherwise its categories inflect one by one.
    """
    plan: list[list[str]] = []
    placed: set[str] = set()
    for slot in morphology.morpheme_order:
        if slot == "root":
            continue
        group = [c for c in slot.split(".") if c in categories and c not in placed]
        if not group:
            continue
        if len(group) > 1 and not morphology.paradigms.get(f"{pos}_{'_'.join(group)}"):
            plan.extend([c] for c in group)
        else:
            plan.append(group)
        placed.update(group)
    plan.extend([c] for c in categories if c not in placed)
    return plan


def group_values(pos: str, group: list[str], morphology: MorphologyConfig) -> list[str]:
    """Values of one slot group; a fused group uses its portmanteau cell keys (``1sg``)."""
    if len(group) == 1:
        return feature_values(pos, group[0], morphology)
    return list(morphology.paradigms[f"{pos}_{'_'.join(group)}"])


def _cell_key(group: list[str], features: dict[str, str]) -> Optional[str]:
    fused = ".".join(group)
    if fused in features:
        return features[fused]
    if all(c in features for c in group):
        return ".".join(features[c] for c in group)
    return None


def inflect(
    entry: LexicalEntry,
    features: dict[str, str],
    morphology: MorphologyConfig,
    phonology: PhonologyConfig
) -> tuple[str, str]:
    """Surface form of an entry for one feature combination, IPA slashed.

    Features are keyed by category (``{"tense": "past"}``) or, for a
    fused slot, by the dotted group (``{"person.number": "1sg"}``).
    """
    orthographic = entry.orthographic_form
    phonological = clean_form(entry.phonological_form)
    pos = entry.pos.value
    categories = [c for key in features for c in key.split(".")]

    for group in _slot_plan(pos, categories, morphology):
        cells = morphology.paradigms.get(f"{pos}_{'_'.join(group)}")
        key = _cell_key(group, features)
        if cells is None or key is None:
            continue
        affix = cells.get(key)
        if not affix:
            continue
        orthographic, phonological = apply_affix(
            orthographic, phonological, affix, infer_affix_type(affix), morphology, phonology
        )

    return orthographic, f"/{phonological}/"


def generate_paradigm_table(
    entry: LexicalEntry,
    morphology: MorphologyConfig,
    phonology: PhonologyConfig
) -> ParadigmTable:
    """Every inflected form of an entry: the cartesian product of its slot groups."""
    pos = entry.pos.value
    categories = morphology.categories.get(pos, [])
    table = ParadigmTable(lexeme_id=entry.id, pos=pos)

    if not categories:
        table.rows.append(ParadigmRow(
            label="base",
            features={},
            orthographic_form=entry.orthographic_form,
            phonological_form=entry.phonological_form
        ))
        return table

    groups = _slot_plan(pos, categories, morphology)
    value_sets = [group_values(pos, g, morphology) for g in groups]
    for combo in product(*value_sets):
        features = {".".join(g): value for g, value in zip(groups, combo)}
        orthographic, phonological = inflect(entry, features, morphology, phonology)
        table.rows.append(ParadigmRow(
            label=".".join(combo),
            features=features,
            orthographic_form=orthographic,
            phonological_form=phonological
        ))
    return table


def derive_forms(
    entry: LexicalEntry,
    morphology: MorphologyConfig,
    phonology: PhonologyConfig
) -> list[DerivedForm]:
    """Apply every derivational rule whose source POS matches the entry."""
    derived: list[DerivedForm] = []
    for rule in morphology.derivational_rules:
        if rule.source_pos != entry.pos:
            continue
        orthographic, phonological = apply_affix(
            entry.orthographic_form, entry.phonological_form,
            rule.affix, rule.affix_type, morphology, phonology
        )
        base_gloss = entry.glosses[0] if entry.glosses else "?"
        derived.append(DerivedForm(
            rule_id=rule.id,
            phonological_form=f"/{phonological}/",
            orthographic_form=orthographic,
            pos=rule.target_pos,
            gloss=f"{base_gloss} ({rule.label})"
        ))
    return derived


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════

def _morph_issue(
    rule_id: str,
    message: str,
    entity_ref: Optional[str] = None,
    severity: Severity = Severity.ERROR
) -> ValidationIssue:
    return ValidationIssue(
        rule_id=rule_id,
        module=ValidationModule.MORPHOLOGY,
        severity=severity,
        message=message,
        entity_ref=entity_ref
    )


def _foreign_symbol(material: str, segments: list[str]) -> Optional[str]:
    """The first untokenizable stretch of an affix, or None if it is clean."""
    try:
        tokenize(material, segments)
    except UnknownSymbolError as e:
        return e.form[e.position:e.position + 1]
    return None


def validate_morphology_config(
    morphology: MorphologyConfig,
    phonology: PhonologyConfig
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    segments = phonology.inventory.segments

    if "root" not in morphology.morpheme_order:
        issues.append(_morph_issue("MORPH_001", 'Morpheme order must include a "root" slot.'))

    for key, cells in morphology.paradigms.items():
        for value, affix in cells.items():
            for part in affix_segments(affix):
                bad = _foreign_symbol(part, segments)
                if bad is not None:
                    issues.append(_morph_issue(
                        "MORPH_002",
                        f'Paradigm "{key}[{value}]": affix "{affix}" contains /{bad}/ not in inventory.',
                        f"{key}.{value}"
                    ))

    for rule in morphology.derivational_rules:
        if not rule.id:
            issues.append(_morph_issue("MORPH_010", "Derivational rule missing id.", rule.label or None))
        for part in affix_segments(rule.affix):
            bad = _foreign_symbol(part, segments)
            if bad is not None:
                issues.append(_morph_issue(
                    "MORPH_003",
                    f'Derivational rule "{rule.id}" affix "{rule.affix}" contains /{bad}/ not in inventory.',
                    rule.id
                ))

    for rule in morphology.alternation_rules:
        for side in (rule.input, rule.output):
            bad = _foreign_symbol(side, segments) if side else None
            if bad is not None:
                issues.append(_morph_issue(
                    "MORPH_004",
                    f'Alternation rule "{rule.id}" segment "{side}" contains /{bad}/ not in inventory.',
                    rule.id
                ))
    return issues


def validate_paradigm_phonology(
    table: ParadigmTable,
    phonology: PhonologyConfig
) -> list[ValidationIssue]:
    """Re-check every generated cell against the phonotactics."""
    issues: list[ValidationIssue] = []
    for row in table.rows:
        result = validate_word_form(
            row.phonological_form,
            phonology.phonotactics,
            phonology.inventory,
            module=ValidationModule.MORPHOLOGY,
            entity_ref=table.lexeme_id
        )
        for issue in result.issues:
            issues.append(_morph_issue(
                f"MORPH_PHN_{issue.rule_id}",
                f'Paradigm cell [{row.label}] -> "{row.orthographic_form}": {issue.message}',
                table.lexeme_id
            ))
    return issues


def rule_ids(rules: Sequence[DerivationalRule]) -> set[str]:
    return {r.id for r in rules if r.id}
