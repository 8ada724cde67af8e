"""Prompt text for the six gated operations.

User messages are built from the request plus a pruned copy of the
language; the executor prepends the retry preamble on later attempts.
"""

from typing import Sequence

import orjson

from lexiforge.core import LanguageDefinition, LexicalEntry
from lexiforge.services.phonology import clean_form
from lexiforge.services.schemas import (
    CheckConsistencyRequest,
    ExplainRuleRequest,
    FillParadigmGapsRequest,
    GenerateCorpusRequest,
    GenerateLexiconRequest,
    SuggestInventoryRequest,
)


def _json(value) -> str:
    return orjson.dumps(value, option=orjson.OPT_INDENT_2).decode()


def retry_preamble(feedback: Sequence[str], attempt: int, max_attempts: int) -> str:
    """Corrective header listing the previous attempt's failures."""
    numbered = "\n".join(f"{i}. {line}" for i, line in enumerate(feedback, start=1))
    return (
        f"[RETRY ATTEMPT {attempt}/{max_attempts}]\n"
        "Your previous response failed the linguistic validation engine with the following errors:\n\n"
        f"{numbered}\n\n"
        "Please fix ALL of the above issues in your response. Pay careful attention to:\n"
        "- Only use phoneme symbols that appear in the language's inventory\n"
        "- All affixes must produce phonotactically valid forms\n"
        "- All required fields must be present and non-empty\n"
        '- IPA forms must use the format "/phonemes/" (with slashes)'
    )


# ═════════════════════════════════════════════════════════════════════════════
# suggest_phoneme_inventory
# ═════════════════════════════════════════════════════════════════════════════

INVENTORY_SYSTEM_PROMPT = """You are an expert linguistic typologist and constructed language designer with deep knowledge of phonological systems across the world's languages.

Your task is to design phonological systems for constructed languages. You must:
1. Draw from typological diversity; avoid defaulting to English-like phonology
2. Ensure internal consistency: all inventory members must be usable in words
3. Respect naturalismScore constraints strictly
4. Produce phoneme inventories that interact correctly with the provided syllable templates
5. Use only standard IPA symbols in inventory arrays
6. Never use IPA diacritics in the main inventory; put those in suprasegmentals flags
7. Map every inventory phoneme to an orthographic grapheme; prefer unique graphemes"""


def inventory_user_message(req: SuggestInventoryRequest, lang: LanguageDefinition) -> str:
    naturalism = req.naturalism_score
    if req.preset == "experimental" or naturalism < 0.3:
        guidance = (
            f"EXPERIMENTAL MODE (naturalismScore={naturalism:.2f}):\n"
            "- Include unusual features like clicks, ejectives, pharyngeals, or complex tone systems\n"
            "- Consider rare phonotactics (large onset clusters, unusual syllable shapes)\n"
            "- Avoid the standard 5-vowel system; consider 3 vowels, or 7+, or non-modal phonation"
        )
    else:
        guidance = (
            f"NATURALISTIC MODE (naturalismScore={naturalism:.2f}):\n"
            "- Model after attested natural language patterns\n"
            f"- Inventory size: {round(8 + naturalism * 22)} consonants, "
            f"{round(3 + naturalism * 7)} vowels (approximate)"
        )

    world = req.world or lang.meta.world
    existing = ""
    if req.existing_inventory is not None:
        existing = "\nExisting inventory to build on:\n" + _json(req.existing_inventory.model_dump(by_alias=True))
    seed = f"\nSeed: {req.seed}" if req.seed else ""

    return f"""Design a complete phonology system for a constructed language with these parameters:
- Name: {lang.meta.name}
- World: {f'"{world}"' if world else "no specific world"}
- Tags: {", ".join(req.tags) or "none specified"}
{guidance}{existing}{seed}

Respond with ONLY this JSON structure:
{{
  "phonology": {{
    "inventory": {{"consonants": ["<IPA>", ...], "vowels": ["<IPA>", ...], "tones": []}},
    "phonotactics": {{
      "syllableTemplates": ["CV", "CV(C)", "V(C)"],
      "onsetClusters": [],
      "codaClusters": [],
      "allophonyRules": []
    }},
    "orthography": {{"<IPA>": "<grapheme>", ...}},
    "suprasegmentals": {{
      "hasLexicalTone": false,
      "hasPhonemicStress": false,
      "hasVowelLength": false,
      "hasPhonemicNasalization": false
    }}
  }},
  "rationale": "<2-3 sentences explaining typological choices>"
}}

CRITICAL CONSTRAINTS:
1. Every consonant and vowel in the inventory MUST have an entry in orthography
2. syllableTemplates use only "C" and "V", with at most one optional group in "()"
3. onsetClusters and codaClusters are lists of phoneme lists, only if templates allow clusters
4. allophonyRules: each rule needs phoneme, allophone, environment, optional position
5. IPA symbols only; no X-SAMPA, no made-up notation"""


# ═════════════════════════════════════════════════════════════════════════════
# fill_paradigm_gaps
# ═════════════════════════════════════════════════════════════════════════════

PARADIGM_SYSTEM_PROMPT = """You are an expert morphologist specializing in constructed language design.

Your task is to complete morphological paradigm tables for constructed languages. You must:
1. Use ONLY phoneme symbols from the provided inventory
2. Produce affixes that create phonotactically valid forms when combined with roots
3. Maintain typological consistency with the specified morphological type
4. Provide paradigm cells for ALL grammatical features defined in the categories config
5. Format all affixes as: "-suffix" for suffixes, "prefix-" for prefixes
6. Ensure fusional paradigms have portmanteau cells (e.g. "1sg" not separate "1" + "sg")"""

TYPOLOGY_GUIDANCE = {
    "agglutinative": "  * One meaning per affix (clear segmentation)\n"
                     "  * Affixes should be short (1-3 phonemes) and phonologically regular",
    "fusional": "  * Paradigm cells can bundle multiple categories (e.g. tense+person+number)\n"
                "  * Allow some irregularity and allomorphy",
    "polysynthetic": "  * Allow long, complex morpheme chains\n"
                     "  * Verbs can incorporate nominal arguments",
}


def paradigm_user_message(req: FillParadigmGapsRequest, lang: LanguageDefinition) -> str:
    inventory = req.phonology.inventory
    consonants = ", ".join(inventory.consonants)
    vowels = ", ".join(inventory.vowels)
    morphology = req.morphology
    guidance = TYPOLOGY_GUIDANCE.get(
        morphology.typology, "  * Minimal affixation; use separate particles or word order instead"
    )
    rules = [r.model_dump(by_alias=True, mode="json") for r in morphology.derivational_rules]
    alternations = [r.model_dump(by_alias=True, mode="json") for r in morphology.alternation_rules]

    return f"""Complete the morphological paradigms for the constructed language "{lang.meta.name}".

PHONEME INVENTORY:
- Consonants: {consonants}
- Vowels: {vowels}
- Syllable templates: {", ".join(req.phonology.phonotactics.syllable_templates)}

MORPHOLOGICAL TYPOLOGY: {morphology.typology}

GRAMMATICAL CATEGORIES TO FILL:
{_json(morphology.categories)}

TARGET PARADIGMS (fill these):
{", ".join(req.target_paradigms)}

EXISTING PARADIGMS (keep these):
{_json(morphology.paradigms)}

MORPHEME ORDER: {" -> ".join(morphology.morpheme_order)}

INSTRUCTIONS:
- For {morphology.typology} morphology:
{guidance}
- ALL affixes must use ONLY the phoneme inventory: {consonants}, {vowels}
- Paradigm keys have the form <pos>_<category> (e.g. "noun_case", "verb_tense")
- Every category in a paradigm key must be listed under categories for that part of speech
- For person+number combined use the key "<pos>_person_number" with cells "1sg", "2sg", "3sg", "1pl", "2pl", "3pl"

Respond with ONLY this JSON structure:
{{
  "morphology": {{
    "typology": "{morphology.typology}",
    "categories": <same as input>,
    "paradigms": {{"<paradigm_key>": {{"<feature_value>": "-<affix>", ...}}, ...}},
    "morphemeOrder": {_json(morphology.morpheme_order)},
    "derivationalRules": {_json(rules)},
    "alternationRules": {_json(alternations)}
  }},
  "rationale": "<explanation of typological choices>"
}}"""


# ═════════════════════════════════════════════════════════════════════════════
# generate_lexicon
# ═════════════════════════════════════════════════════════════════════════════

LEXICON_SYSTEM_PROMPT = """You are a linguistic expert specializing in constructed language lexicon design.

You generate vocabulary for constructed languages. Each word must:
1. Use ONLY phonemes from the provided inventory, with NO exceptions.
2. Follow the syllable templates exactly.
3. Respect the morphological categories and morpheme order.
4. Have a valid IPA form AND an orthographic form derived from the orthography map.
5. Include polysemy where natural (1-2 senses per word).
6. Avoid phonological collision with existing words.
7. NEVER invent new phonemes.

Generate core vocabulary efficiently. Prioritize Swadesh-style words."""


def lexicon_user_message(req: GenerateLexiconRequest, lang: LanguageDefinition) -> str:
    inventory = req.phonology.inventory
    allowed = ", ".join(inventory.segments)
    templates = ", ".join(req.phonology.phonotactics.syllable_templates)
    orthography = ", ".join(f"{p}->{g}" for p, g in req.phonology.orthography.items())

    slots = "\n".join(
        f'  - "{s.slot}" ({s.pos.value}'
        + (f", subcategory: {s.subcategory}" if s.subcategory else "")
        + f", field: {s.semantic_field})"
        for s in req.target_slots[:req.batch_size]
    )
    existing = ""
    if req.existing_orth_forms:
        existing = "\nAVOID THESE EXISTING FORMS (no homophones):\n" + ", ".join(req.existing_orth_forms[-30:])
    world = f'\nWORLD/CULTURE CONTEXT: "{req.world}"; let this flavor naming subtly' if req.world else ""

    return f"""Generate {req.batch_size} lexical entries for the constructed language "{lang.meta.name}".

PHONEME INVENTORY (use ONLY these symbols in phonologicalForm):
- Consonants: {" ".join(inventory.consonants)}
- Vowels: {" ".join(inventory.vowels)}
- Syllable templates: {templates}
- Orthography (IPA->spelling): {orthography}

ALLOWED IPA SYMBOLS ONLY: [ {allowed} ]

MORPHOLOGY: typology {req.morphology.typology}; categories {_json(req.morphology.categories)}
NATURALISM SCORE: {req.naturalism_score:.2f} (0=experimental, 1=naturalistic)
TAGS: {", ".join(req.tags) or "none"}{world}{existing}

SEMANTIC SLOTS TO FILL (one entry per slot; use the slot name as the first gloss):
{slots}

Derive the orthographic form by substituting each IPA phoneme using the orthography map.

Respond with ONLY this JSON:
{{
  "entries": [
    {{
      "phonologicalForm": "/<ipa>/",
      "orthographicForm": "<orthographic>",
      "pos": "<noun|verb|adjective|adverb|particle|pronoun|numeral|other>",
      "subcategory": "<optional: personal-pronoun|cardinal-number|negation|copula|conjunction|adposition|swadesh-core>",
      "glosses": ["<primary gloss>", "<secondary gloss if polysemous>"],
      "senses": [{{"index": 1, "gloss": "<gloss>", "semanticField": "<field>"}}],
      "semanticFields": ["<field>"],
      "semanticRoles": ["agent", "patient"],
      "derivedForms": [],
      "source": "generated"
    }}
  ],
  "phonologicalNotes": "<brief note on phonological patterns used>"
}}

Phonemes only from: {allowed}. Templates: {templates}."""


# ═════════════════════════════════════════════════════════════════════════════
# generate_corpus
# ═════════════════════════════════════════════════════════════════════════════

CORPUS_SYSTEM_PROMPT = """You are an expert in constructed language text creation, syntax, and interlinear glossing.

You create corpus samples for constructed languages. Each sample must:
1. Be a coherent, natural sentence in one of the requested registers.
2. Strictly follow the language's word order, phrase structure, headedness and adposition type.
3. Apply the correct inflectional morphology using the paradigm tables.
4. Prioritize words from the provided lexicon; coin a new word only as a last resort.
5. List every coined word in "newEntries", using ONLY inventory phonemes and the syllable templates.
6. Produce interlinear glosses in the Leipzig convention, tagging each word with its part of speech.
7. Include an IPA transcription using only inventory phonemes.
8. Give an English free translation."""


def _lexicon_lines(entries: Sequence[LexicalEntry]) -> str:
    return "\n".join(
        f'  {e.orthographic_form} /{clean_form(e.phonological_form)}/ ({e.pos.value}) = "{", ".join(e.glosses)}"'
        for e in entries
    )


def _phrase_rules(lang: LanguageDefinition) -> str:
    lines = []
    for head, slots in lang.syntax.phrase_structure.items():
        parts = []
        for slot in slots:
            label = f"[{slot.label}]" if slot.optional else slot.label
            parts.append(f"{label}+" if slot.repeatable else label)
        lines.append(f"  - {head} -> {' '.join(parts)}")
    return "\n".join(lines) or "  (use standard X-bar mappings for the word order)"


def corpus_user_message(req: GenerateCorpusRequest, lang: LanguageDefinition) -> str:
    language = req.language
    syntax = language.syntax
    inventory = language.phonology.inventory
    paradigms = dict(list(language.morphology.paradigms.items())[:4])
    registers = [r.value for r in req.registers]
    prompt = f'\n- USER PROMPT: "{req.user_prompt}"' if req.user_prompt else ""

    return f"""Generate {req.count} corpus sample(s) for the constructed language "{language.meta.name}".

SYNTAX (STRICT COMPLIANCE REQUIRED)
- Word order: {syntax.word_order.value}
- Alignment: {syntax.alignment.value}
- Headedness: {syntax.headedness}
- Adposition type: {syntax.adposition_type}
- Clause types: {", ".join(syntax.clause_types)}
Phrase structure rules:
{_phrase_rules(language)}

LEXICON (PRIORITIZE THESE WORDS)
{_lexicon_lines(language.lexicon)}
...and {max(0, len(lang.lexicon) - len(language.lexicon))} more entries.

PHONOLOGY
- Allowed symbols: [ {", ".join(inventory.segments)} ]
- Syllable templates: {", ".join(language.phonology.phonotactics.syllable_templates)}

MORPHOLOGY PARADIGMS (SAMPLE)
Typology: {language.morphology.typology}
{_json(paradigms)}

REQUEST
- Registers: {", ".join(registers)}{prompt}

Respond with ONLY this JSON:
{{
  "samples": [
    {{
      "register": "{registers[0] if registers else "informal"}",
      "orthographicText": "<text in the language's orthography>",
      "ipaText": "/<full IPA transcription>/",
      "translation": "<English free translation>",
      "interlinearGloss": [
        {{"word": "<orthographic word>", "morphemes": ["<root>", "-<suffix>"], "glosses": ["root.gloss", "GRAM"], "pos": "<noun|verb|...>"}}
      ]
    }}
  ],
  "newEntries": [
    {{"orthographicForm": "<spelling>", "phonologicalForm": "/<ipa>/", "pos": "noun", "glosses": ["<gloss>"]}}
  ]
}}"""


# ═════════════════════════════════════════════════════════════════════════════
# explain_rule
# ═════════════════════════════════════════════════════════════════════════════

EXPLAIN_SYSTEM_PROMPT = """You are a linguistics teacher who explains constructed language features clearly.

When explaining a rule:
1. Start with the core idea in plain language
2. Show worked examples using the language's actual vocabulary
3. Note cross-linguistic parallels in natural languages
4. For technical depth, describe the formal phonological or morphological account
5. Keep beginner explanations jargon-free"""


def explain_user_message(req: ExplainRuleRequest, lang: LanguageDefinition) -> str:
    vocabulary = ", ".join(
        f'{e.orthographic_form} = "{e.glosses[0]}"' for e in req.language.lexicon[:5] if e.glosses
    )
    return f"""Explain this {req.module} rule from the constructed language "{req.language.meta.name}".

RULE REFERENCE: {req.rule_ref}
RULE DATA: {_json(req.rule_data)}

LANGUAGE CONTEXT:
- Morphological type: {req.language.morphology.typology}
- Word order: {req.language.syntax.word_order.value}
- Sample vocabulary: {vocabulary or "none yet"}

EXPLANATION DEPTH: {req.depth}

Respond with ONLY this JSON:
{{
  "explanation": "<clear explanation appropriate for {req.depth} level>",
  "examples": [{{"input": "<base form>", "output": "<derived form>", "steps": ["step 1: ...", "step 2: ..."]}}],
  "crossLinguisticParallels": ["<natural language example>", ...]
}}"""


# ═════════════════════════════════════════════════════════════════════════════
# check_consistency
# ═════════════════════════════════════════════════════════════════════════════

CONSISTENCY_SYSTEM_PROMPT = """You are a professional linguistic consultant reviewing constructed languages.

Identify inconsistencies that rule-based validators miss:
1. Typological mismatches (e.g. SOV order with prepositions)
2. Phonological texture that mixes very different language families
3. Morphological complexity out of proportion with the inventory
4. Pragmatic gaps (honorifics flagged but no way to express politeness)
5. Lexical gaps for the stated typology

Be constructive and note strengths as well as problems. Score 0-100 (100 = perfectly consistent)."""


def consistency_user_message(req: CheckConsistencyRequest, lang: LanguageDefinition) -> str:
    language = req.language
    phonology = language.phonology
    morphology = language.morphology
    syntax = language.syntax
    pragmatics = language.pragmatics
    focus = ", ".join(req.focus_areas) if req.focus_areas else "all areas"
    pronouns = sum(1 for e in lang.lexicon if e.subcategory == "personal-pronoun")
    numerals = sum(1 for e in lang.lexicon if e.subcategory == "cardinal-number")

    return f"""Perform a linguistic consistency review of "{language.meta.name}".

FOCUS AREAS: {focus}

PHONOLOGY:
- Consonants ({len(phonology.inventory.consonants)}): {" ".join(phonology.inventory.consonants)}
- Vowels ({len(phonology.inventory.vowels)}): {" ".join(phonology.inventory.vowels)}
- Suprasegmentals: tone={phonology.suprasegmentals.has_lexical_tone}, stress={phonology.suprasegmentals.has_phonemic_stress}
- Templates: {", ".join(phonology.phonotactics.syllable_templates)}

MORPHOLOGY:
- Typology: {morphology.typology}
- Categories: {_json(morphology.categories)}
- Paradigm keys: {", ".join(morphology.paradigms)}
- Morpheme order: {" -> ".join(morphology.morpheme_order)}

SYNTAX:
- Word order: {syntax.word_order.value}
- Alignment: {syntax.alignment.value}
- Headedness: {syntax.headedness}
- Adposition type: {syntax.adposition_type}
- Clause types: {", ".join(syntax.clause_types)}

PRAGMATICS:
- Formal register: {pragmatics.has_formal_register}
- Honorifics: {pragmatics.has_honorifics}
- Strategies: {", ".join(pragmatics.politeness_strategies) or "none"}

LEXICON: {len(lang.lexicon)} entries ({pronouns} pronouns, {numerals} numerals)

Respond with ONLY this JSON:
{{
  "overallScore": <0-100>,
  "linguisticIssues": [
    {{"severity": "error|warning|note", "module": "<phonology|morphology|syntax|pragmatics|cross>", "description": "<what is inconsistent>", "suggestion": "<how to fix it>"}}
  ],
  "strengths": ["<positive feature>", ...],
  "suggestions": ["<actionable improvement>", ...]
}}"""
