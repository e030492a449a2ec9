# services/product_search.py
"""
Product Search Engine.

Uses the reasoning model's live web search to find products for a suggestion
(or a free-text query). Store preferences steer the search: preferred stores
are searched first, avoided stores are excluded, and a matching per-category
price limit becomes a hard constraint in the instructions.
"""
import logging
import uuid
from typing import List, Optional

import config
from contracts.errors import ReasoningModelError, SearchError
from contracts.models import (
    CLOTHING_TYPES,
    PieceSuggestion,
    PreferenceSet,
    PriceLimit,
    ProductCandidateList,
    ProductResult,
)
from infra.logging import log_event
from integrations.reasoning_model import ModelTool, ReasoningModel
from services.wardrobe_context import format_price

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an expert personal shopper skilled at finding clothing products online "
    "that match specific style descriptions."
)

SEARCH_TOOLS = frozenset({ModelTool.WEB_SEARCH, ModelTool.WEB_FETCH})


def match_price_limit(query: str, preferences: PreferenceSet) -> Optional[PriceLimit]:
    """
    Price limit for the first clothing-type keyword contained in the query.

    Example: "wool jacket" matches "jacket". Only the first keyword found (in
    CLOTHING_TYPES order) is considered.
    """
    query_lower = query.lower()
    matched_type = next((t for t in CLOTHING_TYPES if t in query_lower), None)
    return preferences.price_limit_for(matched_type)


def is_preferred_retailer(retailer: str, preferred_stores: List[str]) -> bool:
    retailer_lower = retailer.lower()
    return any(store.lower() in retailer_lower for store in preferred_stores)


def build_search_prompt(query: str, preferences: PreferenceSet, min_results: int = 3, max_results: int = 10) -> str:
    preferred = preferences.preferred_stores()
    avoided = preferences.avoided_stores()
    price_limit = match_price_limit(query, preferences)

    lines = [
        f'TASK: Search for products matching this description: "{query}". '
        "You MUST use the web search tool to find real products currently for sale online.",
        "After you have found a product, use the web fetch tool to check that the item is still available at the given link.",
        "",
    ]
    if price_limit:
        lines.append(f"PRICE LIMIT: Under ${format_price(price_limit.max_price)}")
    if preferred:
        lines.append(f"PRIORITIZE these stores (search them first): {', '.join(preferred)}")
    if avoided:
        lines.append(f"AVOID these stores: {', '.join(avoided)}")
    lines += [
        "",
        f"Return {min_results}-{max_results} actual products currently for sale online that match this description. "
        "For each product, provide:",
        "- name: Full product name",
        "- retailer: Store or brand name",
        "- price: Price as a number (null if unavailable)",
        "- currency: Currency code (default USD)",
        "- url: Direct link to the product page",
        "- image_url: Product image URL (null if unavailable)",
        "",
        "Focus on finding real, currently available products from legitimate retailers. "
        "Prioritize the preferred stores if specified. If nothing matches, return an empty products list.",
    ]
    return "\n".join(lines)


class ProductSearchEngine:

    def __init__(self, model: ReasoningModel, min_results: int = 3, max_results: int = 10):
        self.model = model
        self.min_results = min_results
        self.max_results = max_results

    async def search(self, query: str, preferences: PreferenceSet) -> List[ProductResult]:
        """
        Find products for a free-text description.

        Args:
            query: Suggestion description or user-entered query
            preferences: Store and price preferences

        Returns:
            Candidate products (unverified); empty if nothing was found

        Raises:
            SearchError: the model call failed
        """
        logger.info(f"[ProductSearch] Searching for: {query}")
        prompt = build_search_prompt(query, preferences, self.min_results, self.max_results)

        try:
            candidates = await self.model.generate_structured(
                system_instruction=SYSTEM_INSTRUCTION,
                prompt=prompt,
                schema=ProductCandidateList,
                temperature=config.SEARCH_TEMPERATURE,
                tools=SEARCH_TOOLS,
                max_tokens=config.SEARCH_MAX_TOKENS,
            )
        except ReasoningModelError as e:
            raise SearchError(f"Failed to search for products: {e}") from e

        preferred = preferences.preferred_stores()
        products = [
            ProductResult(
                id=f"product-{uuid.uuid4().hex}",
                name=c.name,
                retailer=c.retailer,
                url=c.url,
                price=c.price,
                currency=c.currency or config.DEFAULT_CURRENCY,
                image_url=c.image_url or None,
                is_preferred_store=is_preferred_retailer(c.retailer, preferred),
            )
            for c in candidates.products
        ]

        log_event("product_search_complete", query=query, count=len(products),
                  preferred=sum(p.is_preferred_store for p in products))
        return products

    async def search_for_suggestion(self, suggestion: PieceSuggestion, preferences: PreferenceSet) -> List[ProductResult]:
        return await self.search(suggestion.effective_description, preferences)
