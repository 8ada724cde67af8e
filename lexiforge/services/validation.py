"""Rule validator: four independent passes over a language definition.

``validate`` never raises. Every finding becomes a ``ValidationIssue`` and
the definition is valid iff no pass produced an error. Passes are pure
functions of the definition, so they can be called on candidate states the
executor has not committed yet.
"""

import re
from time import perf_counter

from lexiforge.core import (
    LanguageDefinition,
    PartOfSpeech,
    Severity,
    ValidationIssue,
    ValidationModule,
    ValidationResult,
)
from lexiforge.observ import get_logger, log_validation_result
from lexiforge.services.lexicon import (
    MINIMUM_VOCABULARY_COUNT,
    generate_coverage_report,
    validate_lexicon,
)
from lexiforge.services.morphology import (
    generate_paradigm_table,
    paradigm_key_categories,
    validate_morphology_config,
    validate_paradigm_phonology,
)
from lexiforge.services.phonology import (
    validate_inventory,
    validate_orthography,
    validate_phonotactics,
    validate_word_form,
)
from lexiforge.services.syntax import validate_corpus_consistency, validate_syntax_config


logger = get_logger(__name__)

PARADIGM_SAMPLE_SIZE = 50
SEGMENT_CHAR = re.compile(r"[a-zɐ-ʒ]")


# ═════════════════════════════════════════════════════════════════════════════
# Pass 1: Phonological
# ═════════════════════════════════════════════════════════════════════════════

def run_phonological_pass(lang: LanguageDefinition) -> list[ValidationIssue]:
    phonology = lang.phonology
    issues: list[ValidationIssue] = []
    issues.extend(validate_inventory(phonology.inventory))
    issues.extend(validate_orthography(phonology.inventory, phonology.orthography))
    issues.extend(validate_phonotactics(phonology))

    for entry in lang.lexicon:
        result = validate_word_form(
            entry.phonological_form,
            phonology.phonotactics,
            phonology.inventory,
            entity_ref=entry.id
        )
        issues.extend(result.issues)

        for derived in entry.derived_forms:
            derived_result = validate_word_form(
                derived.phonological_form, phonology.phonotactics, phonology.inventory
            )
            issues.extend(
                issue.model_copy(update={
                    "rule_id": f"{issue.rule_id}_DRV",
                    "entity_ref": f"{entry.id}:{derived.rule_id}"
                })
                for issue in derived_result.issues
            )
    return issues


# ═════════════════════════════════════════════════════════════════════════════
# Pass 2: Morphological
# ═════════════════════════════════════════════════════════════════════════════

def run_morphological_pass(lang: LanguageDefinition) -> list[ValidationIssue]:
    issues = validate_morphology_config(lang.morphology, lang.phonology)
    for entry in lang.lexicon[:PARADIGM_SAMPLE_SIZE]:
        table = generate_paradigm_table(entry, lang.morphology, lang.phonology)
        issues.extend(validate_paradigm_phonology(table, lang.phonology))
    return issues


# ═════════════════════════════════════════════════════════════════════════════
# Pass 3: Syntactic
# ═════════════════════════════════════════════════════════════════════════════

def run_syntactic_pass(lang: LanguageDefinition) -> list[ValidationIssue]:
    issues = validate_syntax_config(lang.syntax)
    if lang.corpus:
        issues.extend(validate_corpus_consistency(lang.corpus, lang.syntax))
    return issues


# ═════════════════════════════════════════════════════════════════════════════
# Pass 4: Cross-module
# ═════════════════════════════════════════════════════════════════════════════

def _cross_issue(rule_id: str, severity: Severity, message: str, entity_ref=None) -> ValidationIssue:
    return ValidationIssue(
        rule_id=rule_id,
        module=ValidationModule.CROSS_MODULE,
        severity=severity,
        message=message,
        entity_ref=entity_ref
    )


def _foreign_chars(affix: str, inventory: set[str]) -> list[str]:
    """Lower-case IPA letters of an affix that are not phonemes on their own."""
    stripped = affix.strip("-")
    return [ch for ch in stripped if SEGMENT_CHAR.match(ch) and ch not in inventory]


def run_cross_module_pass(lang: LanguageDefinition) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    morphology = lang.morphology
    inventory = set(lang.phonology.inventory.segments)

    for key, cells in morphology.paradigms.items():
        for value, affix in cells.items():
            for ch in _foreign_chars(affix, inventory):
                issues.append(_cross_issue(
                    "CROSS_001", Severity.WARNING,
                    f'Paradigm "{key}[{value}]" affix "{affix}" contains /{ch}/ not in inventory.',
                    f"{key}.{value}"
                ))

    for rule in morphology.derivational_rules:
        for ch in _foreign_chars(rule.affix, inventory):
            issues.append(_cross_issue(
                "CROSS_002", Severity.WARNING,
                f'Derivational rule "{rule.id}" affix "{rule.affix}" contains /{ch}/ not in inventory.',
                rule.id
            ))

    for phoneme in lang.phonology.inventory.segments:
        if phoneme not in lang.phonology.orthography:
            issues.append(_cross_issue(
                "CROSS_010", Severity.ERROR,
                f"Phoneme /{phoneme}/ in inventory has no orthographic mapping. Orthography is incomplete.",
                phoneme
            ))

    declared = {c for values in morphology.categories.values() for c in values}
    for key in morphology.paradigms:
        for category in paradigm_key_categories(key):
            if category not in declared:
                issues.append(_cross_issue(
                    "CROSS_020", Severity.ERROR,
                    f'Paradigm key "{key}" references category "{category}" not in morphology categories.',
                    key
                ))

    report = generate_coverage_report(lang.lexicon)
    if report.total_entries < MINIMUM_VOCABULARY_COUNT:
        issues.append(_cross_issue(
            "CROSS_030", Severity.WARNING,
            f"Lexicon has {report.total_entries}/{MINIMUM_VOCABULARY_COUNT} minimum required entries. "
            f"Coverage: {report.coverage_percent}% of core slots."
        ))
    if not report.by_pos.get(PartOfSpeech.PRONOUN.value):
        issues.append(_cross_issue("CROSS_031", Severity.WARNING, "No pronouns in lexicon."))
    if not report.by_pos.get(PartOfSpeech.NUMERAL.value):
        issues.append(_cross_issue("CROSS_032", Severity.WARNING, "No numerals in lexicon."))

    issues.extend(validate_lexicon(lang.lexicon, morphology))

    pragmatics = lang.pragmatics
    if pragmatics.has_honorifics and not pragmatics.politeness_strategies:
        issues.append(_cross_issue(
            "CROSS_040", Severity.WARNING,
            "Honorifics are enabled but no politeness strategies are defined."
        ))
    return issues


# ═════════════════════════════════════════════════════════════════════════════
# Entry point
# ═════════════════════════════════════════════════════════════════════════════

def validate(lang: LanguageDefinition) -> ValidationResult:
    """Run all four passes; the result is valid iff no pass reports an error."""
    start = perf_counter()
    passes = {
        "phonology": run_phonological_pass(lang),
        "morphology": run_morphological_pass(lang),
        "syntax": run_syntactic_pass(lang),
        "cross_module": run_cross_module_pass(lang),
    }
    duration_ms = (perf_counter() - start) * 1000
    result = ValidationResult.from_passes(passes, round(duration_ms, 2))

    log_validation_result(
        logger,
        valid=result.valid,
        error_count=len(result.errors),
        warning_count=len(result.warnings),
        duration_ms=duration_ms,
        language_id=lang.meta.id
    )
    return result
