# main.py
"""
Entry point for the wardrobe recommendation core.
Wires the pipeline for one user:
1. Preferences (seeded from wardrobe order history)
2. Suggestion generation
3. Review (approve / refine)
4. Product search + URL verification
"""
import asyncio
import json
from typing import Optional

from infra.background import BackgroundTasks
from infra.storage import KeyValueStore, RecommendationStorage, StorageContext, create_store
from integrations.reasoning_model import get_reasoning_model
from services.memory_bank import MemoryBankService
from services.preference_store import PreferenceStore
from services.product_search import ProductSearchEngine
from services.recommendation_session import RecommendationSessionManager
from services.suggestion_generator import SuggestionGenerator
from services.url_verifier import UrlVerifier
from services.wardrobe_provider import StaticWardrobeProvider, WardrobeProvider


def create_session_manager(
    user_id: str,
    wardrobe_provider: WardrobeProvider,
    store: Optional[KeyValueStore] = None,
    discard_stale_results: bool = False
) -> RecommendationSessionManager:
    """
    Build a session manager with the configured storage backend and models.

    Args:
        user_id: Authenticated user the storage calls are scoped to
        wardrobe_provider: Source of wardrobe snapshots
        store: Key-value backend (defaults to config.STORAGE_BACKEND)
        discard_stale_results: Drop completions of superseded searches

    Returns:
        RecommendationSessionManager ready for ``resume()`` or a first action
    """
    storage = RecommendationStorage(store or create_store(), StorageContext(user_id=user_id))
    text_model = get_reasoning_model(needs_tools=False)
    tool_model = get_reasoning_model(needs_tools=True)
    memory_bank = MemoryBankService(storage, model=text_model)

    return RecommendationSessionManager(
        storage=storage,
        wardrobe_provider=wardrobe_provider,
        preference_store=PreferenceStore(storage),
        generator=SuggestionGenerator(text_model, memory_bank=memory_bank),
        search_engine=ProductSearchEngine(tool_model),
        verifier=UrlVerifier(tool_model),
        memory_bank=memory_bank,
        background=BackgroundTasks(),
        discard_stale_results=discard_stale_results,
    )


SAMPLE_WARDROBE = [
    {
        "id": 1,
        "name": "Straight leg jeans",
        "type": "denim",
        "color": "Indigo",
        "style": "High-rise, rigid cotton",
        "designer": "Levi's",
        "order": {"order_date": "2024-03-02", "order_number": "LV-10021", "retailer": "Levi's"}
    },
    {
        "id": 2,
        "name": "Merino crewneck",
        "type": "knitwear",
        "color": "Oatmeal",
        "style": "Relaxed fit, fine gauge",
        "designer": "COS",
        "order": {"order_date": "2024-10-14", "order_number": "C-88412", "retailer": "COS"}
    },
    {
        "id": 3,
        "name": "Leather loafers",
        "type": "shoes",
        "color": "Black",
        "style": "Penny loafer, chunky sole",
        "designer": "G.H. Bass",
        "order": {"order_date": "2023-11-30", "order_number": "N-552190", "retailer": "Nordstrom"}
    },
    {
        "id": 4,
        "name": "Silk slip skirt",
        "type": "skirt",
        "color": "Champagne",
        "style": "Bias cut, midi length",
        "designer": "Vince"
    },
]


async def run_demo(user_id: str = "demo-user") -> dict:
    """
    Generate suggestions, approve the first one and search for it.
    Uses the in-memory store so nothing outlives the process.
    """
    manager = create_session_manager(
        user_id,
        StaticWardrobeProvider(SAMPLE_WARDROBE),
        store=create_store("memory"),
    )

    print("Step 1: Generating suggestions...")
    session = await manager.generate_suggestions()
    first = session.suggestions[0]

    print(f"Step 2: Approving '{first.description}'...")
    await manager.update_suggestion_status(first.id, "approved")

    print("Step 3: Searching and verifying products...")
    session = await manager.search_for_products(first.id)

    await manager.background.drain()
    return session.model_dump(mode="json")


if __name__ == "__main__":
    print("=" * 60)
    print("WARDROBE RECOMMENDATIONS")
    print("=" * 60)
    print()

    result = asyncio.run(run_demo())

    print()
    print(json.dumps(result, indent=2))
