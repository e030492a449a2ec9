# services/recommendation_session.py
"""
Recommendation Session.

Orchestrates the recommendation flow for one user and keeps the session
persisted after every visible change:

    empty -> suggestions -> (per suggestion) loading <-> complete | error
    empty -> direct-search loading -> complete | error

Searches for different suggestions run independently and are keyed by
suggestion id; results are always merged into the *current* session, so
out-of-order completions never overwrite each other.

Two searches for the same key resolve last-completion-wins. Pass
``discard_stale_results=True`` to drop completions from searches that have
been superseded by a newer one for the same key.

Cancelling an in-flight action (``asyncio.CancelledError``) restores the
state that preceded it; cancellation is never recorded as an error.
"""
import asyncio
import itertools
import logging
from typing import Dict, List, Optional

from contracts.errors import SessionStateError, SuggestionNotFoundError
from contracts.models import (
    DIRECT_SEARCH_ID,
    DirectSearch,
    PreferenceSet,
    ProductResult,
    ProductSearchResults,
    RecommendationSession,
    SuggestionStatus,
    WardrobeItem,
)
from infra.background import BackgroundTasks
from infra.logging import log_error, log_event
from infra.storage import RecommendationStorage
from services import suggestion_review
from services.memory_bank import MemoryBankService
from services.preference_store import PreferenceStore
from services.product_search import ProductSearchEngine
from services.suggestion_generator import SuggestionGenerator
from services.url_verifier import UrlVerifier
from services.wardrobe_provider import WardrobeProvider

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Failed to search for products"


class RecommendationSessionManager:
    """
    Owns the current RecommendationSession and the action coroutines the UI
    calls. Single writer per user session; no locking.
    """

    def __init__(
        self,
        storage: RecommendationStorage,
        wardrobe_provider: WardrobeProvider,
        preference_store: PreferenceStore,
        generator: SuggestionGenerator,
        search_engine: ProductSearchEngine,
        verifier: UrlVerifier,
        memory_bank: Optional[MemoryBankService] = None,
        background: Optional[BackgroundTasks] = None,
        discard_stale_results: bool = False
    ):
        self.storage = storage
        self.wardrobe_provider = wardrobe_provider
        self.preference_store = preference_store
        self.generator = generator
        self.search_engine = search_engine
        self.verifier = verifier
        self.memory_bank = memory_bank
        self.background = background or BackgroundTasks()
        self.discard_stale_results = discard_stale_results

        self.session: Optional[RecommendationSession] = None
        # Latest generation per search key; numbers are never reused, even after reset
        self._search_generations: Dict[str, int] = {}
        self._generation_counter = itertools.count(1)

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------
    @property
    def state(self) -> str:
        """``empty``, ``suggestions`` or ``direct-search``."""
        return self.session.mode if self.session else "empty"

    async def resume(self) -> Optional[RecommendationSession]:
        """Load the persisted session, if any."""
        self.session = await self.storage.get_session()
        if self.session:
            logger.info(f"[Session] Resumed {self.session.mode} session")
        return self.session

    async def _commit(self, session: Optional[RecommendationSession]) -> Optional[RecommendationSession]:
        self.session = session
        if session is None:
            await self.storage.clear_session()
        else:
            await self.storage.save_session(session)
        return session

    async def _load_preferences(self, wardrobe: Optional[List[WardrobeItem]] = None) -> PreferenceSet:
        if not self.preference_store.is_loaded:
            if wardrobe is None:
                wardrobe = await self.wardrobe_provider.get_wardrobe_snapshot()
            await self.preference_store.load(wardrobe)
        return self.preference_store.preferences

    def _require_suggestions_mode(self) -> RecommendationSession:
        if self.session is None or self.session.mode != "suggestions":
            raise SessionStateError(f"Action requires a suggestions session (current state: {self.state})")
        return self.session

    def _next_generation(self, key: str) -> int:
        generation = next(self._generation_counter)
        self._search_generations[key] = generation
        return generation

    def _is_current(self, key: str, generation: int) -> bool:
        return self._search_generations.get(key) == generation

    # ------------------------------------------------------------------
    # Suggestions flow
    # ------------------------------------------------------------------
    async def generate_suggestions(self) -> RecommendationSession:
        """
        Create a suggestions session from the current wardrobe.

        Raises:
            SessionStateError: a session already exists (reset first)
            GenerationError: generation failed; the session stays empty
        """
        if self.session is not None:
            raise SessionStateError(f"Reset the session before generating suggestions (current state: {self.state})")

        wardrobe = await self.wardrobe_provider.get_wardrobe_snapshot()
        preferences = await self._load_preferences(wardrobe)
        suggestions = await self.generator.generate(wardrobe, preferences)

        if self.session is not None:
            logger.warning(f"[Session] Replacing {self.session.mode} session created while generating")
        session = RecommendationSession(mode="suggestions", suggestions=suggestions, search_results=[])
        await self._commit(session)
        log_event("session_created", mode="suggestions", suggestions=len(suggestions))
        return session

    async def update_suggestion_status(self, suggestion_id: str, status: SuggestionStatus) -> RecommendationSession:
        session = self._require_suggestions_mode()
        suggestions = suggestion_review.set_status(session.suggestions, suggestion_id, status)
        log_event("suggestion_status", suggestion_id=suggestion_id, status=status)
        return await self._commit(session.model_copy(update={"suggestions": suggestions}))

    async def refine_suggestion(self, suggestion_id: str, new_description: str) -> RecommendationSession:
        session = self._require_suggestions_mode()
        suggestions = suggestion_review.refine(session.suggestions, suggestion_id, new_description)
        log_event("suggestion_refined", suggestion_id=suggestion_id)
        return await self._commit(session.model_copy(update={"suggestions": suggestions}))

    async def search_for_products(self, suggestion_id: str) -> RecommendationSession:
        """
        Search + verify products for one suggestion.

        Records a ``loading`` entry right away, then replaces it with a
        ``complete`` or ``error`` entry for the same suggestion id.
        """
        session = self._require_suggestions_mode()
        suggestion = session.find_suggestion(suggestion_id)
        if suggestion is None:
            raise SuggestionNotFoundError(f"Unknown suggestion: {suggestion_id}")

        previous = session.result_for(suggestion_id)
        generation = self._next_generation(suggestion_id)
        await self._commit(session.with_result(ProductSearchResults.loading(suggestion_id)))
        log_event("search_started", suggestion_id=suggestion_id, generation=generation)

        try:
            products = await self._search_and_verify(suggestion.effective_description)
            result = ProductSearchResults.complete(suggestion_id, products)
        except asyncio.CancelledError:
            await self._restore_suggestion_result(suggestion_id, generation, previous)
            raise
        except Exception as e:
            log_error(str(e), action="search_for_products", suggestion_id=suggestion_id)
            result = ProductSearchResults.failed(suggestion_id, str(e) or SEARCH_FAILED_MESSAGE)

        return await self._complete_suggestion_search(suggestion_id, generation, result)

    def start_search(self, suggestion_id: str) -> "asyncio.Task[RecommendationSession]":
        """Launch ``search_for_products`` as a task so several can run at once."""
        session = self._require_suggestions_mode()
        if session.find_suggestion(suggestion_id) is None:
            raise SuggestionNotFoundError(f"Unknown suggestion: {suggestion_id}")
        return asyncio.ensure_future(self.search_for_products(suggestion_id))

    async def _search_and_verify(self, query: str) -> List[ProductResult]:
        preferences = await self._load_preferences()
        products = await self.search_engine.search(query, preferences)
        return await self.verifier.verify(products)

    async def _complete_suggestion_search(
        self, suggestion_id: str, generation: int, result: ProductSearchResults
    ) -> Optional[RecommendationSession]:
        if self.discard_stale_results and not self._is_current(suggestion_id, generation):
            logger.info(f"[Session] Dropping stale search result for {suggestion_id}")
            return self.session

        current = self.session
        if current is None or current.mode != "suggestions" or current.find_suggestion(suggestion_id) is None:
            # Session was reset or replaced while the search ran
            logger.info(f"[Session] Dropping search result for {suggestion_id}; session changed")
            return self.session

        log_event("search_finished", suggestion_id=suggestion_id, status=result.status,
                  products=len(result.products))
        return await self._commit(current.with_result(result))

    async def _restore_suggestion_result(
        self, suggestion_id: str, generation: int, previous: Optional[ProductSearchResults]
    ) -> None:
        current = self.session
        if not self._is_current(suggestion_id, generation):
            return
        if current is None or current.mode != "suggestions" or current.find_suggestion(suggestion_id) is None:
            return
        restored = current.with_result(previous) if previous else current.without_result(suggestion_id)
        await self._commit(restored)
        log_event("search_cancelled", suggestion_id=suggestion_id)

    # ------------------------------------------------------------------
    # Direct search flow
    # ------------------------------------------------------------------
    async def search_direct(self, query: str) -> RecommendationSession:
        """
        Free-text search that bypasses suggestions.

        Replaces any existing direct-search session (including one still
        loading). Not allowed while a suggestions session exists.
        """
        query = query.strip()
        if not query:
            raise ValueError("Please enter a search query")
        if self.session is not None and self.session.mode == "suggestions":
            raise SessionStateError("Reset the suggestions session before searching directly")

        previous = self.session
        generation = self._next_generation(DIRECT_SEARCH_ID)
        loading_session = RecommendationSession(
            mode="direct-search",
            direct_search=DirectSearch(query=query, results=ProductSearchResults.loading(DIRECT_SEARCH_ID)),
        )
        await self._commit(loading_session)
        log_event("session_created", mode="direct-search", generation=generation)

        if self.memory_bank is not None:
            self.background.submit(self.memory_bank.record_query(query, "search"), name="memory_bank.record_query")

        try:
            products = await self._search_and_verify(query)
            results = ProductSearchResults.complete(DIRECT_SEARCH_ID, products)
        except asyncio.CancelledError:
            if self._is_current(DIRECT_SEARCH_ID, generation) and self.session is loading_session:
                await self._commit(previous)
                log_event("search_cancelled", suggestion_id=DIRECT_SEARCH_ID)
            raise
        except Exception as e:
            log_error(str(e), action="search_direct")
            results = ProductSearchResults.failed(DIRECT_SEARCH_ID, str(e) or SEARCH_FAILED_MESSAGE)

        if self.discard_stale_results and not self._is_current(DIRECT_SEARCH_ID, generation):
            logger.info("[Session] Dropping stale direct search result")
            return self.session
        if self.session is None or self.session.mode != "direct-search":
            logger.info("[Session] Dropping direct search result; session changed")
            return self.session

        log_event("search_finished", suggestion_id=DIRECT_SEARCH_ID, status=results.status,
                  products=len(results.products))
        return await self._commit(loading_session.model_copy(
            update={"direct_search": DirectSearch(query=query, results=results)}
        ))

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------
    async def reset_session(self) -> None:
        await self._commit(None)
        self._search_generations.clear()
        log_event("session_reset")
