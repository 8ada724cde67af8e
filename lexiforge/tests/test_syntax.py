"""Test suite for syntax configuration and corpus word-order checks."""

from lexiforge.core import CorpusSample, PartOfSpeech, PhraseStructureSlot, SyntaxConfig, WordOrder
from lexiforge.services.syntax import (
    constituent_order,
    render_interlinear,
    validate_corpus_consistency,
    validate_syntax_config,
)
from lexiforge.tests.conftest import make_sample


class TestSyntaxConfig:
    """Test SYN_* configuration rules."""

    def test_valid_config(self):
        config = SyntaxConfig(
            clause_types=["declarative"],
            phrase_structure={"NP": [PhraseStructureSlot(label="Det"), PhraseStructureSlot(label="N")]}
        )
        assert validate_syntax_config(config) == []

    def test_clause_types_required(self):
        rules = [(i.rule_id, i.severity.value) for i in validate_syntax_config(SyntaxConfig())]
        assert rules == [("SYN_003", "error"), ("SYN_004", "warning")]

    def test_missing_declarative_is_warning(self):
        issues = validate_syntax_config(SyntaxConfig(clause_types=["imperative"]))
        assert [i.rule_id for i in issues] == ["SYN_004"]

    def test_unknown_slot_label(self):
        config = SyntaxConfig(
            clause_types=["declarative"],
            phrase_structure={
                "NP": [PhraseStructureSlot(label="Classifier"), PhraseStructureSlot(label="RelP")],
                "RelP": [PhraseStructureSlot(label="C")],
            }
        )
        issues = validate_syntax_config(config)
        assert [(i.rule_id, i.entity_ref) for i in issues] == [("SYN_010", "NP")]


class TestCorpusConsistency:
    """Test heuristic word-order spot checks."""

    def test_matching_order_is_clean(self):
        config = SyntaxConfig(word_order=WordOrder.SOV, clause_types=["declarative"])
        assert validate_corpus_consistency([make_sample()], config) == []

    def test_verb_first_in_sov(self):
        sample = make_sample(order=(PartOfSpeech.VERB, PartOfSpeech.PRONOUN, PartOfSpeech.NOUN))
        issues = validate_corpus_consistency([sample], SyntaxConfig(word_order=WordOrder.SOV))
        assert [(i.rule_id, i.entity_ref) for i in issues] == [("SYN_020", "corpus_001")]

    def test_subject_first_in_vso(self):
        issues = validate_corpus_consistency([make_sample()], SyntaxConfig(word_order=WordOrder.VSO))
        assert [i.rule_id for i in issues] == ["SYN_021"]

    def test_free_order_never_flagged(self):
        sample = make_sample(order=(PartOfSpeech.VERB, PartOfSpeech.NOUN))
        assert validate_corpus_consistency([sample], SyntaxConfig(word_order=WordOrder.FREE)) == []

    def test_untagged_samples_are_skipped(self):
        sample = CorpusSample(id="corpus_002", orthographic_text="kanu mata", translation="eat eye")
        assert validate_corpus_consistency([sample], SyntaxConfig(word_order=WordOrder.SOV)) == []


class TestRendering:

    def test_constituent_order(self):
        assert constituent_order(WordOrder.VSO) == ["V", "S", "O"]
        assert constituent_order(WordOrder.FREE) == ["S", "V", "O"]

    def test_interlinear(self):
        text = render_interlinear(make_sample())
        assert text.splitlines() == [
            "ni mata kanu",
            "ni  mata  kanu",
            "I  eye  eat",
            "'I eat an eye'",
        ]
