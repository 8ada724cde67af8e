"""Test suite for the tokenizer, syllabifier and template matcher.

Demonstrates testing strategy for pure functions.
"""

import pytest

from lexiforge.core import AllophonyRule, PhonemeInventory, Phonotactics, SyllablePosition, ValidationModule
from lexiforge.errors import InvalidIPAError, TemplateConfigError, UnknownSymbolError
from lexiforge.services.phonology import (
    Syllable,
    check_orthography,
    clean_form,
    expand_template,
    malformed_templates,
    match_template,
    surface_form,
    syllabify,
    tokenize,
    to_orthography,
    validate_inventory,
    validate_orthography,
    validate_phonotactics,
    validate_word_form,
)
from lexiforge.tests.conftest import make_phonology


class TestTokenizer:
    """Test greedy longest-match tokenization."""

    def setup_method(self):
        self.symbols = ["t", "ʃ", "tʃ", "a", "i"]

    def test_strips_slashes_and_separators(self):
        assert clean_form("/ta.ʃi/") == "taʃi"
        assert clean_form("  /ta ʃi/ ") == "taʃi"

    def test_digraph_wins(self):
        assert tokenize("/tʃa/", self.symbols) == ["tʃ", "a"]

    def test_no_backtracking(self):
        assert tokenize("taʃi", self.symbols) == ["t", "a", "ʃ", "i"]

    def test_unknown_symbol_reports_position(self):
        with pytest.raises(UnknownSymbolError) as exc:
            tokenize("/tax/", self.symbols)
        assert exc.value.position == 2
        assert exc.value.form == "tax"

    def test_empty_form(self):
        assert tokenize("//", self.symbols) == []


class TestSyllabifier:
    """Test onset/nucleus/coda grouping."""

    def test_single_intervocalic_consonant_is_onset(self):
        syllables = syllabify(["m", "a", "t", "a"], ["a"])
        assert [s.text for s in syllables] == ["ma", "ta"]

    def test_cluster_splits_coda_and_onset(self):
        syllables = syllabify(["p", "a", "k", "t", "a"], ["a"])
        assert syllables[0] == Syllable(("p",), ("a",), ("k",))
        assert syllables[1] == Syllable(("t",), ("a",), ())

    def test_hiatus_starts_new_syllable(self):
        syllables = syllabify(["a", "i"], ["a", "i"])
        assert len(syllables) == 2
        assert syllables[1].onset == ()

    def test_final_consonants_form_coda(self):
        syllables = syllabify(["s", "u", "l", "t"], ["u"])
        assert syllables == [Syllable(("s",), ("u",), ("l", "t"))]

    def test_skeleton_marks_foreign_tokens(self):
        syllable = Syllable(("p",), ("a",), ("x",))
        assert syllable.skeleton(["p"], ["a"]) == "CV?"


class TestTemplateMatcher:
    """Test template expansion and matching."""

    def test_expands_optional_group(self):
        assert expand_template("CV(C)") == ("CV", "CVC")
        assert expand_template("(C)V") == ("V", "CV")
        assert expand_template("CVC") == ("CVC",)

    @pytest.mark.parametrize("template", ["", "CXV", "C(V)(C)", "C((V))", "CV()", "C)V("])
    def test_rejects_malformed(self, template):
        with pytest.raises(TemplateConfigError):
            expand_template(template)

    def test_first_matching_template_wins(self):
        assert match_template("CV", ["CVC", "CV(C)", "CV"]) == "CV(C)"
        assert match_template("CCV", ["CV(C)"]) is None

    def test_malformed_templates_never_match(self):
        assert match_template("CV", ["C(V", "CV"]) == "CV"
        assert len(malformed_templates(["C(V", "CV", "Q"])) == 2


class TestWordForm:
    """Test full word-form validation."""

    def setup_method(self):
        self.phonology = make_phonology()

    def check(self, form, **kwargs):
        return validate_word_form(form, self.phonology.phonotactics, self.phonology.inventory, **kwargs)

    def test_valid_form(self):
        result = self.check("/matal/")
        assert result.valid
        assert [p.matched_template for p in result.syllables] == ["CV(C)", "CV(C)"]

    def test_empty_form(self):
        assert [i.rule_id for i in self.check("//").issues] == ["PHON_010"]

    def test_unknown_symbol(self):
        result = self.check("/maxa/", entity_ref="lex_0001")
        assert [i.rule_id for i in result.issues] == ["PHON_011"]
        assert result.issues[0].entity_ref == "lex_0001"

    def test_template_mismatch(self):
        result = self.check("/a/")
        assert [i.rule_id for i in result.issues] == ["PHON_012"]
        assert "pattern: V" in result.issues[0].message

    def test_onset_cluster_not_permitted(self):
        phonology = make_phonology(phonotactics=Phonotactics(syllable_templates=["(C)CV"]))
        result = validate_word_form("/pla/", phonology.phonotactics, phonology.inventory)
        assert [i.rule_id for i in result.issues] == ["PHON_013"]

    def test_declared_cluster_is_allowed(self):
        phonology = make_phonology(phonotactics=Phonotactics(syllable_templates=["(C)CV"], onset_clusters=[["p", "l"]]))
        assert validate_word_form("/pla/", phonology.phonotactics, phonology.inventory).valid

    def test_module_override(self):
        result = self.check("/a/", module=ValidationModule.MORPHOLOGY)
        assert result.issues[0].module == ValidationModule.MORPHOLOGY


class TestConfigurationChecks:
    """Test inventory, orthography and phonotactics configuration rules."""

    def test_inventory_rules(self):
        rules = [i.rule_id for i in validate_inventory(PhonemeInventory(consonants=["p", "p"], vowels=["a"]))]
        assert rules == ["PHON_003", "PHON_004"]
        assert {i.rule_id for i in validate_inventory(PhonemeInventory())} == {"PHON_001", "PHON_002"}

    def test_orthography_report(self):
        inventory = PhonemeInventory(consonants=["p", "b"], vowels=["a"])
        report = check_orthography(inventory, {"p": "p", "b": "p", "x": "x"})
        assert report.missing_phonemes == ["a"]
        assert report.unused_graphemes == ["x"]
        assert len(report.conflicts) == 1
        assert not report.bijective

    def test_orthography_issues_are_warnings(self):
        inventory = PhonemeInventory(consonants=["p"], vowels=["a"])
        issues = validate_orthography(inventory, {"p": "p"})
        assert [(i.rule_id, i.severity.value) for i in issues] == [("PHON_020", "warning")]

    def test_phonotactics_rules(self):
        phonology = make_phonology(phonotactics=Phonotactics(
            syllable_templates=["CV", "C(V"],
            coda_clusters=[["n", "x"]],
            allophony_rules=[AllophonyRule(phoneme="q", allophone="ʔ")]
        ))
        assert [i.rule_id for i in validate_phonotactics(phonology)] == ["PHON_032", "PHON_033", "PHON_040"]

    def test_missing_templates(self):
        phonology = make_phonology(phonotactics=Phonotactics())
        assert [i.rule_id for i in validate_phonotactics(phonology)] == ["PHON_031"]


class TestSurface:
    """Test allophony and spelling."""

    def test_positional_allophony(self):
        phonology = make_phonology(phonotactics=Phonotactics(
            syllable_templates=["CV(C)"],
            allophony_rules=[AllophonyRule(phoneme="t", allophone="ɾ", position=SyllablePosition.ONSET)]
        ))
        assert surface_form("/tat/", phonology) == "[ɾat]"

    def test_unpositioned_rule_applies_everywhere(self):
        phonology = make_phonology(phonotactics=Phonotactics(
            syllable_templates=["CV(C)"],
            allophony_rules=[AllophonyRule(phoneme="n", allophone="ŋ")]
        ))
        assert surface_form("/nan/", phonology) == "[ŋaŋ]"

    def test_empty_form_is_rejected(self):
        with pytest.raises(InvalidIPAError):
            surface_form("/ . /", make_phonology())

    def test_to_orthography_passes_unmapped_through(self):
        assert to_orthography(["ʃ", "a"], {"ʃ": "sh"}) == "sha"
        assert to_orthography(["ʃ", "a"], {}) == "ʃa"
