"""Test suite for affixation, paradigm generation and morphology checks."""

import pytest

from lexiforge.core import AffixType, AlternationRule, DerivationalRule, PartOfSpeech, PhonemeInventory
from lexiforge.services.morphology import (
    affix_segments,
    apply_affix,
    derive_forms,
    feature_values,
    generate_paradigm_table,
    group_values,
    infer_affix_type,
    inflect,
    paradigm_key_categories,
    spell_affix,
    validate_morphology_config,
    validate_paradigm_phonology,
)
from lexiforge.tests.conftest import make_entry, make_morphology, make_phonology


class TestAffixes:
    """Test affix parsing and attachment."""

    def setup_method(self):
        self.phonology = make_phonology()
        self.morphology = make_morphology()

    @pytest.mark.parametrize("affix, expected", [
        ("-ki", AffixType.SUFFIX),
        ("ki", AffixType.SUFFIX),
        ("ma-", AffixType.PREFIX),
        ("ka-…-n", AffixType.CIRCUMFIX),
        ("ka-...-n", AffixType.CIRCUMFIX),
    ])
    def test_infer_affix_type(self, affix, expected):
        assert infer_affix_type(affix) == expected

    def test_affix_segments(self):
        assert affix_segments("-ki") == ["ki"]
        assert affix_segments("ka-…-n") == ["ka", "n"]
        assert affix_segments("") == []

    def test_suffix_and_prefix(self):
        assert apply_affix("mata", "/mata/", "-ki", AffixType.SUFFIX, self.morphology, self.phonology) == (
            "mataki", "mataki"
        )
        assert apply_affix("mata", "/mata/", "ni-", AffixType.PREFIX, self.morphology, self.phonology) == (
            "nimata", "nimata"
        )

    def test_circumfix(self):
        orth, ipa = apply_affix("mata", "mata", "ka-…-n", AffixType.CIRCUMFIX, self.morphology, self.phonology)
        assert (orth, ipa) == ("kamatan", "kamatan")

    def test_infix_after_first_vowel(self):
        _, ipa = apply_affix("mata", "mata", "-l-", AffixType.INFIX, self.morphology, self.phonology)
        assert ipa == "malta"

    def test_empty_affix_leaves_stem(self):
        assert apply_affix("mata", "/ma.ta/", "", AffixType.SUFFIX, self.morphology, self.phonology) == (
            "mata", "mata"
        )

    def test_spelling_uses_orthography(self):
        phonology = make_phonology(orthography={**make_phonology().orthography, "k": "c"})
        assert spell_affix("-ki", phonology) == "-ci"
        orth, ipa = apply_affix("mata", "mata", "-ki", AffixType.SUFFIX, self.morphology, phonology)
        assert (orth, ipa) == ("mataci", "mataki")

    def test_suffix_alternation(self):
        morphology = make_morphology(alternation_rules=[
            AlternationRule(id="a_i", input="a", output="i", boundary="suffix")
        ])
        _, ipa = apply_affix("mata", "mata", "-ki", AffixType.SUFFIX, morphology, self.phonology)
        assert ipa == "matiki"


class TestParadigms:
    """Test paradigm tables."""

    def setup_method(self):
        self.phonology = make_phonology()
        self.morphology = make_morphology()

    def test_key_categories(self):
        assert paradigm_key_categories("verb_person_number") == ["person", "number"]
        assert paradigm_key_categories("tense") == ["tense"]

    def test_feature_values_from_paradigm_or_defaults(self):
        assert feature_values("noun", "number", self.morphology) == ["singular", "plural"]
        assert feature_values("noun", "case", self.morphology) == ["nominative", "accusative", "dative"]
        assert feature_values("noun", "shape", self.morphology) == ["base"]

    def test_noun_table(self):
        table = generate_paradigm_table(make_entry(1, "mata"), self.morphology, self.phonology)
        assert [(r.label, r.orthographic_form, r.phonological_form) for r in table.rows] == [
            ("singular", "mata", "/mata/"),
            ("plural", "mataki", "/mataki/"),
        ]

    def test_uninflected_pos_has_base_row(self):
        entry = make_entry(3, "ni", pos=PartOfSpeech.PRONOUN)
        table = generate_paradigm_table(entry, self.morphology, self.phonology)
        assert [r.label for r in table.rows] == ["base"]

    def test_multi_category_product_follows_morpheme_order(self):
        morphology = make_morphology(
            categories={"verb": ["number", "tense"]},
            paradigms={
                "verb_tense": {"present": "", "past": "-ta"},
                "verb_number": {"singular": "", "plural": "-li"},
            }
        )
        entry = make_entry(2, "kanu", pos=PartOfSpeech.VERB)
        assert inflect(entry, {"number": "plural", "tense": "past"}, morphology, self.phonology) == (
            "kanutali", "/kanutali/"
        )
        assert len(generate_paradigm_table(entry, morphology, self.phonology).rows) == 4

    def test_fused_slot_uses_portmanteau_cells(self):
        morphology = make_morphology(
            categories={"verb": ["tense", "person", "number"]},
            paradigms={
                "verb_tense": {"present": "", "past": "-ta"},
                "verb_person_number": {"1sg": "-kt", "3sg": ""},
            },
            morpheme_order=["root", "tense", "person.number"]
        )
        entry = make_entry(2, "kanu", pos=PartOfSpeech.VERB)
        table = generate_paradigm_table(entry, morphology, self.phonology)

        assert [(r.label, r.phonological_form) for r in table.rows] == [
            ("present.1sg", "/kanukt/"),
            ("present.3sg", "/kanu/"),
            ("past.1sg", "/kanutakt/"),
            ("past.3sg", "/kanuta/"),
        ]
        assert table.rows[2].features == {"tense": "past", "person.number": "1sg"}
        assert group_values("verb", ["person", "number"], morphology) == ["1sg", "3sg"]
        assert inflect(entry, {"tense": "past", "person.number": "1sg"}, morphology, self.phonology) == (
            "kanutakt", "/kanutakt/"
        )

    def test_empty_fused_paradigm_falls_back_to_single_categories(self):
        morphology = make_morphology(
            categories={"verb": ["person", "number"]},
            paradigms={"verb_person_number": {}, "verb_number": {"singular": "", "plural": "-li"}},
            morpheme_order=["root", "person.number"]
        )
        entry = make_entry(2, "kanu", pos=PartOfSpeech.VERB)
        table = generate_paradigm_table(entry, morphology, self.phonology)
        assert len(table.rows) == 6
        assert table.rows[1].phonological_form == "/kanuli/"

    def test_cell_phonotactics(self):
        morphology = make_morphology(paradigms={"noun_number": {"singular": "", "plural": "-a"}})
        table = generate_paradigm_table(make_entry(1, "mata"), morphology, self.phonology)
        issues = validate_paradigm_phonology(table, self.phonology)
        assert [i.rule_id for i in issues] == ["MORPH_PHN_PHON_012"]
        assert issues[0].entity_ref == "lex_0001"


class TestDerivation:
    """Test derivational rules."""

    def test_only_matching_source_pos(self):
        phonology, morphology = make_phonology(), make_morphology()
        assert derive_forms(make_entry(1, "mata"), morphology, phonology) == []

        derived = derive_forms(make_entry(2, "kanu", pos=PartOfSpeech.VERB, gloss="eat"), morphology, phonology)
        assert len(derived) == 1
        assert derived[0].rule_id == "agent"
        assert derived[0].phonological_form == "/kanuli/"
        assert derived[0].pos == PartOfSpeech.NOUN
        assert derived[0].gloss == "eat (agent)"


class TestMorphologyConfig:
    """Test MORPH_* configuration rules."""

    def test_valid_config(self):
        assert validate_morphology_config(make_morphology(), make_phonology()) == []

    def test_root_slot_required(self):
        issues = validate_morphology_config(make_morphology(morpheme_order=["tense"]), make_phonology())
        assert [i.rule_id for i in issues] == ["MORPH_001"]

    def test_foreign_affix_symbols(self):
        morphology = make_morphology(
            paradigms={"noun_number": {"plural": "-xi"}},
            derivational_rules=[DerivationalRule(source_pos=PartOfSpeech.VERB, target_pos=PartOfSpeech.NOUN,
                                                 affix="-ro")]
        )
        issues = validate_morphology_config(morphology, make_phonology())
        assert [i.rule_id for i in issues] == ["MORPH_002", "MORPH_010", "MORPH_003"]
        assert issues[0].entity_ref == "noun_number.plural"

    def test_alternation_segments(self):
        morphology = make_morphology(alternation_rules=[AlternationRule(id="alt", input="a", output="e")])
        issues = validate_morphology_config(morphology, make_phonology())
        assert [i.rule_id for i in issues] == ["MORPH_004"]

    def test_inventory_digraphs_are_respected(self):
        phonology = make_phonology(inventory=PhonemeInventory(consonants=["tʃ", "k"], vowels=["a"]))
        morphology = make_morphology(paradigms={"noun_number": {"plural": "-tʃa"}}, derivational_rules=[])
        assert validate_morphology_config(morphology, phonology) == []
