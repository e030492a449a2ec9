# services/preference_store.py
"""
Shopping Preference Store.

Holds the user's preferred/avoided retailers and per-category price ceilings.
Retailers found in the wardrobe's order history are folded in on every load:
on first load they seed the set as "preferred"; afterwards any newly seen
retailer is added as "neutral" so existing choices are never overridden.

Every mutation stamps ``last_updated`` and persists the whole set.
"""
import logging
from typing import List, Optional

from contracts.errors import PreferencesNotLoadedError
from contracts.models import (
    PreferenceSet,
    PriceLimit,
    StoreInfo,
    StorePreference,
    WardrobeItem,
    utc_now,
)
from infra.storage import RecommendationStorage

logger = logging.getLogger(__name__)


def extract_retailers(items: List[WardrobeItem]) -> List[str]:
    """
    Distinct retailer names from the wardrobe's order history, sorted.
    Spellings that differ only by case collapse to the first one seen.
    """
    seen = {}
    for item in items:
        retailer = (item.order.retailer or "").strip() if item.order else ""
        if retailer and retailer.lower() not in seen:
            seen[retailer.lower()] = retailer
    return sorted(seen.values())


class PreferenceStore:
    """Async store for one user's PreferenceSet."""

    def __init__(self, storage: RecommendationStorage):
        self.storage = storage
        self._preferences: Optional[PreferenceSet] = None
        self.detected_retailers: List[str] = []

    @property
    def preferences(self) -> PreferenceSet:
        if self._preferences is None:
            raise PreferencesNotLoadedError("Preferences have not been loaded yet")
        return self._preferences

    @property
    def is_loaded(self) -> bool:
        return self._preferences is not None

    async def load(self, wardrobe: List[WardrobeItem]) -> PreferenceSet:
        """
        Load stored preferences and merge in retailers from order history.

        Args:
            wardrobe: Current wardrobe snapshot

        Returns:
            The merged PreferenceSet (persisted if anything changed)
        """
        detected = extract_retailers(wardrobe)
        self.detected_retailers = detected
        stored = await self.storage.get_preferences()

        if stored is None:
            preferences = PreferenceSet(
                stores=[StoreInfo(name=name, is_from_history=True, preference="preferred") for name in detected],
                price_limits=[],
            )
            logger.info(f"[Preferences] Seeded {len(detected)} stores from order history")
            return await self._commit(preferences)

        new_stores = [
            StoreInfo(name=name, is_from_history=True, preference="neutral")
            for name in detected
            if stored.find_store(name) is None
        ]
        if new_stores:
            logger.info(f"[Preferences] Added {len(new_stores)} newly detected stores as neutral")
            await self._commit(stored.model_copy(update={"stores": stored.stores + new_stores}))
        else:
            self._preferences = stored
        return self.preferences

    async def update_store_preference(self, name: str, preference: StorePreference) -> PreferenceSet:
        current = self.preferences
        if current.find_store(name) is None:
            return current
        stores = [
            s.model_copy(update={"preference": preference}) if s.name.lower() == name.lower() else s
            for s in current.stores
        ]
        return await self._commit(current.model_copy(update={"stores": stores}))

    async def add_store(self, name: str) -> PreferenceSet:
        current = self.preferences
        name = name.strip()
        if not name or current.find_store(name) is not None:
            return current
        store = StoreInfo(name=name, is_from_history=False, preference="preferred")
        return await self._commit(current.model_copy(update={"stores": current.stores + [store]}))

    async def remove_store(self, name: str) -> PreferenceSet:
        # History-derived stores are protected in the UI, not here
        current = self.preferences
        if current.find_store(name) is None:
            return current
        stores = [s for s in current.stores if s.name.lower() != name.lower()]
        return await self._commit(current.model_copy(update={"stores": stores}))

    async def upsert_price_limit(self, clothing_type: str, max_price: float) -> PreferenceSet:
        current = self.preferences
        limit = PriceLimit(clothing_type=clothing_type, max_price=max_price)
        limits = list(current.price_limits)
        index = next((i for i, p in enumerate(limits) if p.clothing_type == clothing_type), None)
        if index is None:
            limits.append(limit)
        else:
            limits[index] = limit
        return await self._commit(current.model_copy(update={"price_limits": limits}))

    async def remove_price_limit(self, clothing_type: str) -> PreferenceSet:
        current = self.preferences
        limits = [p for p in current.price_limits if p.clothing_type != clothing_type]
        if len(limits) == len(current.price_limits):
            return current
        return await self._commit(current.model_copy(update={"price_limits": limits}))

    async def _commit(self, preferences: PreferenceSet) -> PreferenceSet:
        preferences = preferences.model_copy(update={"last_updated": utc_now()})
        self._preferences = preferences
        await self.storage.save_preferences(preferences)
        return preferences
