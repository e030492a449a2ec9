# services/suggestion_generator.py
"""
Suggestion Generator.

Asks the reasoning model for 3-5 new piece concepts that would extend the
user's wardrobe, then normalizes the answer into PieceSuggestion objects:
fresh ids, pending status, and compatible-piece ids restricted to pieces that
actually exist in the snapshot the prompt was built from.
"""
import logging
import uuid
from typing import List, Optional

import config
from contracts.errors import GenerationError, ReasoningModelError
from contracts.models import (
    CLOTHING_TYPES,
    PieceSuggestion,
    PreferenceSet,
    SuggestionDraftList,
    WardrobeItem,
)
from infra.logging import log_event
from integrations.reasoning_model import ReasoningModel
from services.memory_bank import MemoryBankService
from services.wardrobe_context import build_preference_context, build_wardrobe_context

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = "You are a personal stylist analyzing a wardrobe to suggest new pieces that would enhance it."

SUGGESTION_PROMPT = """TASK: Analyze the wardrobe and suggest 3-5 specific piece types that would enhance this collection.

For each suggestion provide:
- description: Be specific about style and type (e.g., "Cropped wool jacket" not just "jacket")
- type: One of: {clothing_types}
- color: Primary color of the item
- style: Brief style description (materials, fit, details)
- rationale: Why this piece would complement the existing wardrobe - what gap does it fill? What outfits would it enable?
- compatible_piece_ids: IDs of existing pieces (the [ID:x] values below) that this new piece would pair well with

Focus on pieces that would be versatile and work with multiple existing items. Consider both gaps in the wardrobe and opportunities to create new outfit combinations.

USER SHOPPING PREFERENCES:
{preferences}

USER CONTEXT:
{user_context}
WARDROBE INVENTORY:
{wardrobe}
"""


class SuggestionGenerator:

    def __init__(self, model: ReasoningModel, memory_bank: Optional[MemoryBankService] = None):
        self.model = model
        self.memory_bank = memory_bank

    def build_prompt(self, wardrobe: List[WardrobeItem], preferences: PreferenceSet, user_context: str = "") -> str:
        return SUGGESTION_PROMPT.format(
            clothing_types=", ".join(CLOTHING_TYPES),
            preferences=build_preference_context(preferences),
            user_context=user_context,
            wardrobe=build_wardrobe_context(wardrobe),
        )

    async def _user_context(self) -> str:
        # User context is optional; lookup failures fall back to no context
        if self.memory_bank is None:
            return ""
        try:
            return await self.memory_bank.build_user_context()
        except Exception as e:
            logger.warning(f"[Suggestions] User context unavailable, continuing without it: {e}")
            return ""

    async def generate(self, wardrobe: List[WardrobeItem], preferences: PreferenceSet) -> List[PieceSuggestion]:
        """
        Generate piece suggestions for a wardrobe snapshot.

        Args:
            wardrobe: Snapshot the suggestions (and their compatible ids) refer to
            preferences: Current shopping preferences

        Returns:
            Suggestions in model order; the batch size is not enforced

        Raises:
            GenerationError: model call failed or the answer did not parse
        """
        user_context = await self._user_context()
        prompt = self.build_prompt(wardrobe, preferences, user_context)

        try:
            drafts = await self.model.generate_structured(
                system_instruction=SYSTEM_INSTRUCTION,
                prompt=prompt,
                schema=SuggestionDraftList,
                temperature=config.SUGGESTION_TEMPERATURE,
                max_tokens=config.SUGGESTION_MAX_TOKENS,
            )
        except ReasoningModelError as e:
            raise GenerationError(f"Failed to generate suggestions: {e}") from e

        known_ids = {item.id for item in wardrobe}
        suggestions = []
        for draft in drafts.suggestions:
            # Drop stale or hallucinated piece ids, keep order, no duplicates
            compatible = [str(pid) for pid in draft.compatible_piece_ids if str(pid) in known_ids]
            suggestions.append(PieceSuggestion(
                id=f"suggestion-{uuid.uuid4().hex}",
                description=draft.description,
                rationale=draft.rationale,
                compatible_piece_ids=list(dict.fromkeys(compatible)),
                status="pending",
                clothing_type=draft.type or None,
                color=draft.color or None,
                style=draft.style or None,
            ))

        if not 3 <= len(suggestions) <= 5:
            logger.warning(f"[Suggestions] Model returned {len(suggestions)} suggestions (asked for 3-5)")
        log_event("suggestions_generated", count=len(suggestions), wardrobe_size=len(wardrobe))
        return suggestions
