"""
Pytest configuration and shared fixtures.

The reasoning model is replaced by a scripted fake that records every call,
so prompts can be asserted on and responses (or failures) queued per schema.
"""
from typing import Any, Dict, List

import pytest
from pydantic import BaseModel

from contracts.models import WardrobeItem
from infra.background import BackgroundTasks
from infra.storage import InMemoryKeyValueStore, RecommendationStorage, StorageContext
from integrations.reasoning_model import ReasoningModel
from services.memory_bank import MemoryBankService
from services.preference_store import PreferenceStore
from services.product_search import ProductSearchEngine
from services.recommendation_session import RecommendationSessionManager
from services.suggestion_generator import SuggestionGenerator
from services.url_verifier import UrlVerifier
from services.wardrobe_provider import StaticWardrobeProvider


class ScriptedReasoningModel(ReasoningModel):
    """
    Fake reasoning model.

    Queue responses per schema with ``queue(schema, response)``. A response
    may be a dict (validated against the schema), a model instance, an
    exception instance (raised), or an async callable taking the prompt.
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self._responses: Dict[type, list] = {}

    def queue(self, schema, response):
        self._responses.setdefault(schema, []).append(response)
        return self

    def calls_for(self, schema) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["schema"] is schema]

    async def generate_structured(self, system_instruction, prompt, schema, temperature=0.2,
                                  tools=frozenset(), max_tokens=None):
        self.calls.append({
            "system_instruction": system_instruction,
            "prompt": prompt,
            "schema": schema,
            "temperature": temperature,
            "tools": frozenset(tools),
            "max_tokens": max_tokens,
        })
        queued = self._responses.get(schema)
        if not queued:
            raise AssertionError(f"No scripted response for {schema.__name__}")
        response = queued.pop(0)
        if callable(response):
            response = await response(prompt)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, BaseModel):
            return response
        return schema.model_validate(response)


@pytest.fixture
def model():
    return ScriptedReasoningModel()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def storage(store):
    return RecommendationStorage(store, StorageContext(user_id="user-1"))


@pytest.fixture
def wardrobe():
    return [
        WardrobeItem(id=1, name="Wide leg trousers", type="pants", color="Navy", style="Wool blend",
                     designer="Acme Studio", order={"order_number": "A-1", "retailer": "Acme"}),
        WardrobeItem(id=2, name="Poplin shirt", type="top", color="White", style="Oversized",
                     designer="Zeta", order={"order_number": "Z-9", "retailer": "Zeta"}),
        WardrobeItem(id=3, name="Ankle boots", type="shoes", color="Black", style="Leather",
                     designer="Acme Studio", order={"order_number": "A-2", "retailer": "Acme"}),
    ]


@pytest.fixture
def wardrobe_provider(wardrobe):
    return StaticWardrobeProvider(wardrobe)


@pytest.fixture
def suggestion_payload():
    return {
        "suggestions": [
            {"description": f"Suggestion {i}", "type": "jacket", "color": "Camel",
             "style": "Wool", "rationale": f"Reason {i}", "compatible_piece_ids": [1, 2]}
            for i in range(1, 5)
        ]
    }


def product_payload(*urls, retailer="Acme"):
    return {
        "products": [
            {"name": f"Product {i}", "retailer": retailer, "price": 120.0, "currency": "USD",
             "url": url, "image_url": None}
            for i, url in enumerate(urls, 1)
        ]
    }


def verification_payload(*urls, valid=True):
    return {
        "results": [
            {"url": url, "is_valid": valid, "reason": "available", "image_url": None, "available_sizes": ["M"]}
            for url in urls
        ]
    }


@pytest.fixture
def make_manager(storage, wardrobe_provider, model):
    """Factory for a session manager wired to the scripted model."""

    def _make(discard_stale_results=False, search_engine=None, verifier=None, with_memory_bank=False):
        memory_bank = MemoryBankService(storage, model=None) if with_memory_bank else None
        return RecommendationSessionManager(
            storage=storage,
            wardrobe_provider=wardrobe_provider,
            preference_store=PreferenceStore(storage),
            generator=SuggestionGenerator(model),
            search_engine=search_engine or ProductSearchEngine(model),
            verifier=verifier or UrlVerifier(model, enabled=True),
            memory_bank=memory_bank,
            background=BackgroundTasks(),
            discard_stale_results=discard_stale_results,
        )

    return _make
