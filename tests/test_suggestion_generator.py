import pytest

from contracts.errors import GenerationError, ReasoningModelError, SchemaValidationError
from contracts.models import PreferenceSet, PriceLimit, StoreInfo, SuggestionDraftList
from services.memory_bank import MemoryBankService
from services.suggestion_generator import SuggestionGenerator


@pytest.fixture
def preferences():
    return PreferenceSet(
        stores=[StoreInfo(name="Acme", preference="preferred"), StoreInfo(name="Zeta", preference="avoided")],
        price_limits=[PriceLimit(clothing_type="jacket", max_price=200)],
    )


@pytest.mark.asyncio
async def test_generate_assigns_ids_and_pending_status(model, wardrobe, preferences, suggestion_payload):
    model.queue(SuggestionDraftList, suggestion_payload)

    suggestions = await SuggestionGenerator(model).generate(wardrobe, preferences)

    assert len(suggestions) == 4
    assert all(s.status == "pending" for s in suggestions)
    assert len({s.id for s in suggestions}) == 4
    assert suggestions[0].clothing_type == "jacket"


@pytest.mark.asyncio
async def test_unknown_compatible_ids_are_pruned(model, wardrobe, preferences):
    model.queue(SuggestionDraftList, {"suggestions": [
        {"description": "Camel coat", "type": "coat", "rationale": "r", "compatible_piece_ids": [1, 99, "3", "x"]},
    ]})

    [suggestion] = await SuggestionGenerator(model).generate(wardrobe, preferences)

    assert suggestion.compatible_piece_ids == ["1", "3"]


@pytest.mark.asyncio
@pytest.mark.parametrize("count", [1, 7])
async def test_batch_size_outside_three_to_five_is_kept(model, wardrobe, preferences, count):
    model.queue(SuggestionDraftList, {"suggestions": [
        {"description": f"d{i}", "type": "top", "rationale": "r"} for i in range(count)
    ]})

    suggestions = await SuggestionGenerator(model).generate(wardrobe, preferences)
    assert len(suggestions) == count


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [
    ReasoningModelError("timeout"),
    SchemaValidationError("missing rationale"),
])
async def test_model_failures_raise_generation_error(model, wardrobe, preferences, failure):
    model.queue(SuggestionDraftList, failure)

    with pytest.raises(GenerationError):
        await SuggestionGenerator(model).generate(wardrobe, preferences)


@pytest.mark.asyncio
async def test_prompt_contains_wardrobe_and_preferences(model, wardrobe, preferences, suggestion_payload):
    model.queue(SuggestionDraftList, suggestion_payload)

    await SuggestionGenerator(model).generate(wardrobe, preferences)

    [call] = model.calls
    assert "[ID:1] Wide leg trousers by Acme Studio - Navy, Wool blend" in call["prompt"]
    assert "Preferred stores: Acme" in call["prompt"]
    assert "Avoided stores: Zeta" in call["prompt"]
    assert "jacket: max $200" in call["prompt"]
    assert call["tools"] == frozenset()


@pytest.mark.asyncio
async def test_prompt_includes_user_context(model, storage, wardrobe, preferences, suggestion_payload):
    memory_bank = MemoryBankService(storage)
    await memory_bank.save_assessment_summary("You dress for a creative office.")
    model.queue(SuggestionDraftList, suggestion_payload)

    await SuggestionGenerator(model, memory_bank=memory_bank).generate(wardrobe, preferences)

    assert "USER STYLE PROFILE:\nYou dress for a creative office." in model.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_corrupt_assessment_does_not_block_generation(model, store, storage, wardrobe, preferences,
                                                            suggestion_payload):
    await store.set(storage.context.key("assessment"), "not json{")
    model.queue(SuggestionDraftList, suggestion_payload)

    suggestions = await SuggestionGenerator(model, memory_bank=MemoryBankService(storage)).generate(
        wardrobe, preferences
    )

    assert len(suggestions) == 4
    assert "USER STYLE PROFILE" not in model.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_user_context_failure_falls_back_to_empty(model, storage, wardrobe, preferences, suggestion_payload):
    class BrokenMemoryBank(MemoryBankService):
        async def build_user_context(self):
            raise ConnectionError("redis unavailable")

    model.queue(SuggestionDraftList, suggestion_payload)

    suggestions = await SuggestionGenerator(model, memory_bank=BrokenMemoryBank(storage)).generate(
        wardrobe, preferences
    )

    assert len(suggestions) == 4
    assert "USER CONTEXT:\n\nWARDROBE INVENTORY:" in model.calls[0]["prompt"]
