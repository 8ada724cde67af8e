"""Test suite for the validator-gated executor."""

import pytest

from lexiforge.core import OperationName
from lexiforge.errors import OperationExhaustedError, ResourceNotFoundError, TransportError, ValidationError
from lexiforge.services.executor import GatedExecutor, cache_payload
from lexiforge.services.operations import get_adapter
from lexiforge.services.schemas import CheckConsistencyRequest, ExplainRuleRequest, GenerateLexiconRequest, TargetSlot
from lexiforge.storage.cache import MemoryCacheBackend, OperationCache

from lexiforge.tests.conftest import ScriptedModelClient, as_json, dump, make_language, make_phonology


GOOD_LEXICON = as_json({
    "entries": [
        {"phonologicalForm": "/tala/", "orthographicForm": "tala", "pos": "noun", "glosses": ["stone"]},
    ]
})
BAD_LEXICON = as_json({
    "entries": [
        {"phonologicalForm": "/xyz/", "orthographicForm": "xyz", "pos": "noun", "glosses": ["stone"]},
    ]
})


def lexicon_request(language, **overrides) -> GenerateLexiconRequest:
    fields = dict(
        language_id=language.meta.id,
        phonology=language.phonology,
        morphology=language.morphology,
        target_slots=[TargetSlot(slot="stone", pos="noun", semantic_field="nature")],
        batch_size=1,
    )
    fields.update(overrides)
    return GenerateLexiconRequest(**fields)


class TestGatedExecutor:
    """Test the attempt loop, feedback and caching."""

    def setup_method(self):
        self.language = make_language()
        self.adapter = get_adapter(OperationName.GENERATE_LEXICON)
        self.request = lexicon_request(self.language)

    async def test_first_attempt_success(self):
        client = ScriptedModelClient([GOOD_LEXICON])
        result = await GatedExecutor(client).execute(self.adapter, self.request, self.language)

        assert result.attempt == 1
        assert result.from_cache is False
        assert result.cache_key is None
        assert result.data.entries[0].id == "lex_0006"
        assert result.raw_response == GOOD_LEXICON
        assert len(client.calls) == 1
        assert "[RETRY ATTEMPT" not in client.calls[0]["user"]

    async def test_parse_failure_feeds_next_attempt(self):
        client = ScriptedModelClient(["not json at all", GOOD_LEXICON])
        result = await GatedExecutor(client).execute(self.adapter, self.request, self.language)

        assert result.attempt == 2
        retry_message = client.calls[1]["user"]
        assert retry_message.startswith("[RETRY ATTEMPT 2/3]")
        assert "Parse error" in retry_message

    async def test_validation_failure_feeds_issue_lines(self):
        client = ScriptedModelClient([BAD_LEXICON, GOOD_LEXICON])
        result = await GatedExecutor(client).execute(self.adapter, self.request, self.language)

        assert result.attempt == 2
        assert "[phonology " in client.calls[1]["user"]

    async def test_exhaustion_carries_history(self):
        client = ScriptedModelClient([BAD_LEXICON, "{}", BAD_LEXICON])
        with pytest.raises(OperationExhaustedError) as exc:
            await GatedExecutor(client).execute(self.adapter, self.request, self.language)

        error = exc.value
        assert error.operation == "generate_lexicon"
        assert error.attempt == 3
        assert len(error.retry_reasons) == 3
        assert error.failure_kinds == ["validation", "parse", "validation"]
        assert error.final_error == "; ".join(error.retry_reasons[-1])
        assert len(client.calls) == 3

    async def test_exhaustion_message_lists_every_last_attempt_issue(self):
        client = ScriptedModelClient([BAD_LEXICON] * 3)
        with pytest.raises(OperationExhaustedError) as exc:
            await GatedExecutor(client).execute(self.adapter, self.request, self.language)

        last = exc.value.retry_reasons[-1]
        assert len(last) > 1
        assert all(line in exc.value.message for line in last)

    def test_cache_key_ignores_language_timestamps(self):
        later = self.language.model_copy(update={
            "meta": self.language.meta.model_copy(update={"created_at": "2030-01-01T00:00:00+00:00"})
        })
        first = cache_payload(CheckConsistencyRequest(language_id="lang_test", language=self.language))
        second = cache_payload(CheckConsistencyRequest(language_id="lang_test", language=later))

        assert first == second
        assert "createdAt" not in first["language"]["meta"]
        assert first["language"]["meta"]["name"] == "Testish"

    async def test_transport_errors_propagate(self):
        client = ScriptedModelClient([TransportError("generate_lexicon", "timed out")])
        with pytest.raises(TransportError):
            await GatedExecutor(client).execute(self.adapter, self.request, self.language)
        assert len(client.calls) == 1

    async def test_cache_hit_skips_model(self):
        cache = OperationCache(MemoryCacheBackend())
        first = await GatedExecutor(ScriptedModelClient([GOOD_LEXICON]), cache).execute(
            self.adapter, self.request, self.language
        )
        client = ScriptedModelClient()
        second = await GatedExecutor(client, cache).execute(self.adapter, self.request, self.language)

        assert client.calls == []
        assert second.from_cache is True
        assert second.attempt == 0
        assert second.cache_key == first.cache_key
        assert second.data.entries[0].orthographic_form == "tala"
        assert second.validation.valid

    async def test_force_bypasses_cache_read(self):
        reply = as_json({"phonology": dump(make_phonology())})
        client = ScriptedModelClient([reply, reply])
        executor = GatedExecutor(client, OperationCache(MemoryCacheBackend()))
        operation = "suggest_phoneme_inventory"

        await executor.execute_operation(operation, {"languageId": "lang_test"}, self.language)
        forced = await executor.execute_operation(operation, {"languageId": "lang_test", "force": True}, self.language)
        cached = await executor.execute_operation(operation, {"languageId": "lang_test"}, self.language)

        assert forced.from_cache is False
        assert cached.from_cache is True
        assert forced.cache_key == cached.cache_key
        assert len(client.calls) == 2

    async def test_stale_cache_entry_is_replaced(self):
        cache = OperationCache(MemoryCacheBackend())
        await cache.set(OperationName.GENERATE_LEXICON, cache_payload(self.request), {"entries": []})
        client = ScriptedModelClient([GOOD_LEXICON])

        result = await GatedExecutor(client, cache).execute(self.adapter, self.request, self.language)
        assert result.from_cache is False
        assert len(client.calls) == 1

    async def test_structural_operation(self):
        request = ExplainRuleRequest(
            language_id="lang_test", module="morphology", rule_ref="noun_number", language=self.language
        )
        adapter = get_adapter("explain_rule")
        client = ScriptedModelClient(['{"explanation": "   "}', '{"explanation": "Plurals take -ki."}'])

        result = await GatedExecutor(client).execute(adapter, request, self.language)
        assert result.attempt == 2
        assert result.validation.valid
        assert result.data.explanation == "Plurals take -ki."
        assert "structural check" in client.calls[1]["user"]

    async def test_execute_operation_accepts_dict(self):
        client = ScriptedModelClient([GOOD_LEXICON])
        request = {
            "languageId": "lang_test",
            "phonology": self.language.phonology.model_dump(by_alias=True),
            "morphology": self.language.morphology.model_dump(by_alias=True),
            "targetSlots": [{"slot": "stone", "pos": "noun"}],
        }
        result = await GatedExecutor(client).execute_operation("generate_lexicon", request, self.language)
        assert result.operation == OperationName.GENERATE_LEXICON

    async def test_bad_request_and_unknown_operation(self):
        executor = GatedExecutor(ScriptedModelClient())
        with pytest.raises(ValidationError):
            await executor.execute_operation("generate_lexicon", {"languageId": "x"}, self.language)
        with pytest.raises(ResourceNotFoundError):
            await executor.execute_operation("summon_dragon", {}, self.language)

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            GatedExecutor(ScriptedModelClient(), max_attempts=0)
