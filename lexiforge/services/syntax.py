"""Syntax configuration checks and corpus word-order spot checks."""

from typing import Optional

from lexiforge.core import (
    CorpusSample,
    PartOfSpeech,
    Severity,
    SyntaxConfig,
    ValidationIssue,
    ValidationModule,
    WordOrder,
)


KNOWN_CONSTITUENTS = frozenset({
    "NP", "VP", "PP", "CP", "DP", "AP", "S",
    "N", "V", "Det", "Adj", "Adv", "P", "C", "T",
})

NOMINALS = (PartOfSpeech.NOUN, PartOfSpeech.PRONOUN)
VERB_INITIAL = (WordOrder.VSO, WordOrder.VOS)
SUBJECT_INITIAL = (WordOrder.SOV, WordOrder.SVO)


def _syn_issue(
    rule_id: str,
    severity: Severity,
    message: str,
    entity_ref: Optional[str] = None
) -> ValidationIssue:
    return ValidationIssue(
        rule_id=rule_id,
        module=ValidationModule.SYNTAX,
        severity=severity,
        message=message,
        entity_ref=entity_ref
    )


def validate_syntax_config(config: SyntaxConfig) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not config.clause_types:
        issues.append(_syn_issue("SYN_003", Severity.ERROR, "At least one clause type must be defined."))
    if "declarative" not in config.clause_types:
        issues.append(_syn_issue(
            "SYN_004", Severity.WARNING,
            "Languages typically have at least a declarative clause type."
        ))

    declared = set(config.phrase_structure)
    for constituent, slots in config.phrase_structure.items():
        for slot in slots:
            if slot.label not in KNOWN_CONSTITUENTS and slot.label not in declared:
                issues.append(_syn_issue(
                    "SYN_010", Severity.WARNING,
                    f'Phrase structure slot "{slot.label}" in {constituent} is not a recognized constituent label.',
                    constituent
                ))
    return issues


def validate_corpus_consistency(corpus: list[CorpusSample], config: SyntaxConfig) -> list[ValidationIssue]:
    """Heuristic check that glossed samples put the verb where the word order expects.

    Only samples whose interlinear lines carry part-of-speech tags are
    inspected; free word order is never flagged.
    """
    issues: list[ValidationIssue] = []
    if config.word_order == WordOrder.FREE:
        return issues

    for sample in corpus:
        tags = [line.pos for line in sample.interlinear_gloss if line.pos is not None]
        first_nominal = next((i for i, p in enumerate(tags) if p in NOMINALS), None)
        first_verb = next((i for i, p in enumerate(tags) if p == PartOfSpeech.VERB), None)
        if first_nominal is None or first_verb is None:
            continue

        order = config.word_order.value
        if config.word_order in SUBJECT_INITIAL and first_verb < first_nominal:
            issues.append(_syn_issue(
                "SYN_020", Severity.WARNING,
                f'Corpus sample "{sample.id}" might violate {order} order: verb found before subject/object.',
                sample.id
            ))
        elif config.word_order in VERB_INITIAL and first_nominal < first_verb:
            issues.append(_syn_issue(
                "SYN_021", Severity.WARNING,
                f'Corpus sample "{sample.id}" might violate {order} order: subject/object found before verb.',
                sample.id
            ))
    return issues


def constituent_order(word_order: WordOrder) -> list[str]:
    """S/V/O positions for a word order; free order reads as SVO."""
    if word_order == WordOrder.FREE:
        return ["S", "V", "O"]
    return list(word_order.value)


def render_interlinear(sample: CorpusSample) -> str:
    """Leipzig-style multi-line rendering of a glossed sample."""
    lines = [sample.orthographic_text]
    if sample.ipa_text:
        lines.append(sample.ipa_text)
    if sample.interlinear_gloss:
        lines.append("  ".join("-".join(l.morphemes) or l.word for l in sample.interlinear_gloss))
        lines.append("  ".join("-".join(l.glosses) for l in sample.interlinear_gloss))
    lines.append(f"'{sample.translation}'")
    return "\n".join(lines)
