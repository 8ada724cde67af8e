"""Test suite for lexicon rules, coverage and merging."""

from lexiforge.core import DerivedForm, LexicalSense, PartOfSpeech
from lexiforge.services.lexicon import (
    CORE_VOCABULARY_SLOTS,
    CoreSlot,
    deduplicate_lexicon,
    format_lexeme_id,
    generate_coverage_report,
    missing_slots,
    validate_lexicon,
)
from lexiforge.tests.conftest import make_entry, make_lexicon, make_morphology


def rule_ids(issues):
    return [i.rule_id for i in issues]


class TestLexiconRules:
    """Test LEX_* rules."""

    def setup_method(self):
        self.morphology = make_morphology()

    def test_small_but_complete_lexicon_only_warns_on_size(self):
        issues = validate_lexicon(make_lexicon(), self.morphology)
        assert rule_ids(issues) == ["LEX_001"]
        assert all(not i.is_error for i in issues)

    def test_missing_closed_classes(self):
        issues = validate_lexicon([make_entry(1, "mata")], self.morphology)
        assert rule_ids(issues) == ["LEX_001", "LEX_010", "LEX_011", "LEX_012"]

    def test_duplicate_ids_and_homographs(self):
        entries = [*make_lexicon(), make_entry(1, "mata", gloss="face")]
        rules = rule_ids(validate_lexicon(entries, self.morphology))
        assert "LEX_002" in rules
        assert "LEX_003" in rules

    def test_entry_structure(self):
        entry = make_entry(6, "", orth="").model_copy(update={"id": "word6", "glosses": [], "phonological_form": ""})
        rules = rule_ids(validate_lexicon([*make_lexicon(), entry], self.morphology))
        assert rules[1:] == ["LEX_020", "LEX_021", "LEX_022", "LEX_023"]

    def test_senses(self):
        entry = make_entry(6, "tika", senses=[
            LexicalSense(index=1, gloss="stone"),
            LexicalSense(index=3, gloss=""),
        ])
        rules = rule_ids(validate_lexicon([*make_lexicon(), entry], self.morphology))
        assert rules[1:] == ["LEX_030", "LEX_031"]

    def test_derived_forms_need_known_rules(self):
        entry = make_entry(6, "tika", derived_forms=[DerivedForm(rule_id="nope", phonological_form="/tikali/")])
        issues = validate_lexicon([*make_lexicon(), entry], self.morphology)
        assert [(i.rule_id, i.entity_ref) for i in issues[1:]] == [("LEX_040", "lex_0006")]


class TestCoverage:
    """Test core vocabulary coverage."""

    def test_slot_alternatives(self):
        slot = CoreSlot("foot / leg", PartOfSpeech.NOUN, None, "body")
        assert slot.alternatives == ["foot / leg", "foot", "leg"]

    def test_missing_slots_by_gloss(self):
        missing = missing_slots(make_lexicon())
        slots = {s.slot for s in missing}
        assert "I" not in slots
        assert "eye" not in slots
        assert "one" not in slots
        assert "to eat" in slots
        # "one" fills both the numeral and "one / alone"
        assert len(missing) == len(CORE_VOCABULARY_SLOTS) - 5

    def test_report(self):
        report = generate_coverage_report(make_lexicon())
        assert report.total_entries == 5
        assert report.core_slots_total == len(CORE_VOCABULARY_SLOTS)
        assert report.core_slots_filled == report.core_slots_total - len(report.missing_slots)
        assert report.by_pos["noun"] == 1
        assert report.by_pos["pronoun"] == 1

    def test_empty_lexicon(self):
        report = generate_coverage_report([])
        assert report.coverage_percent == 0
        assert report.core_slots_filled == 0


class TestMerging:
    """Test deduplication and renumbering."""

    def test_format_id(self):
        assert format_lexeme_id(7) == "lex_0007"
        assert format_lexeme_id(12345) == "lex_12345"

    def test_first_form_wins_and_ids_are_sequential(self):
        entries = [
            make_entry(10, "mata", gloss="eye"),
            make_entry(11, "kanu", gloss="eat"),
            make_entry(12, "mata", orth="Mata", gloss="face"),
        ]
        merged = deduplicate_lexicon(entries)
        assert [e.id for e in merged] == ["lex_0001", "lex_0002"]
        assert merged[0].glosses == ["eye"]
