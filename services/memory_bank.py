# services/memory_bank.py
"""
User memory bank.

Keeps a rolling window of the user's recent style queries and, every few
queries, asks the reasoning model for short reflections about the user. The
reflections and the stored style-assessment summary become the USER CONTEXT
block of the suggestion prompt.
"""
import logging
from typing import Dict, Optional

import config
from contracts.errors import ReasoningModelError
from contracts.models import QueryRecord, StyleAssessmentDraft, UserReflections, UserReflectionsDraft
from infra.storage import RecommendationStorage
from integrations.reasoning_model import ReasoningModel

logger = logging.getLogger(__name__)

REFLECTIONS_PROMPT = """Analyze these user queries about their wardrobe and style to create reflections about them.

USER QUERIES:
{queries}

Provide reflections with these fields:
- purpose_and_context: What is the user trying to achieve with their style? What's driving their interest?
- current_state: Where are they in their style journey? What do they seem confident about vs uncertain?
- approach_and_patterns: What patterns do you see in how they think about clothes and style? What preferences emerge?

Be insightful and read between the lines. Keep each section to 2-3 sentences."""

ASSESSMENT_PROMPT = """ASSESSMENT RESPONSES:
{answers}

Based on these answers, write a thoughtful summary that:
1. Captures their lifestyle and how it relates to their wardrobe needs
2. Identifies their style aspirations and what's holding them back
3. Notes their inspirations and what that reveals about their aesthetic preferences
4. Reads between the lines to understand their deeper style desires

Write in second person ("You...") and keep it warm but sophisticated.
Keep the summary to 3-4 short paragraphs. Return it in the "summary" field."""


class MemoryBankService:

    def __init__(
        self,
        storage: RecommendationStorage,
        model: Optional[ReasoningModel] = None,
        max_stored_queries: Optional[int] = None,
        reflection_interval: Optional[int] = None
    ):
        self.storage = storage
        self.model = model
        self.max_stored_queries = max_stored_queries or config.MEMORY_MAX_STORED_QUERIES
        self.reflection_interval = reflection_interval or config.MEMORY_REFLECTION_INTERVAL

    async def record_query(self, query: str, source: str) -> None:
        """
        Append a query and refresh reflections on every Nth query.

        A failed reflection refresh keeps the previous reflections; the query
        itself is still recorded.

        Read-modify-write without locking: two overlapping calls for the same
        user (e.g. quick successive direct searches, with a reflection call in
        between) can lose one query. History is best-effort context only.
        """
        memory_bank = await self.storage.get_memory_bank()
        queries = memory_bank.queries + [QueryRecord(query=query, source=source)]
        memory_bank = memory_bank.model_copy(update={
            "queries": queries[-self.max_stored_queries:],
            "total_query_count": memory_bank.total_query_count + 1,
        })

        if self.model is not None and memory_bank.total_query_count % self.reflection_interval == 0:
            try:
                reflections = await self._generate_reflections(memory_bank.queries)
                memory_bank = memory_bank.model_copy(update={"reflections": reflections})
                logger.info("[MemoryBank] Reflections refreshed")
            except ReasoningModelError as e:
                logger.error(f"[MemoryBank] Failed to update reflections: {e}")

        await self.storage.save_memory_bank(memory_bank)

    async def _generate_reflections(self, queries) -> UserReflections:
        queries_text = "\n".join(f"[{q.source}] {q.query}" for q in queries)
        draft = await self.model.generate_structured(
            system_instruction="You are a personal style advisor who reads between the lines.",
            prompt=REFLECTIONS_PROMPT.format(queries=queries_text),
            schema=UserReflectionsDraft,
            temperature=0.7,
            max_tokens=config.REFLECTION_MAX_TOKENS,
        )
        return UserReflections(**draft.model_dump())

    async def generate_assessment_summary(self, answers: Dict[str, str]) -> str:
        """
        Turn style-assessment answers into the STYLE PROFILE and store it.

        Args:
            answers: Question id -> the user's answer

        Returns:
            The stored summary

        Raises:
            ReasoningModelError: no model configured or the call failed
        """
        if self.model is None:
            raise ReasoningModelError("A reasoning model is required to summarize the assessment")

        answers_text = "\n\n".join(f"{question}: {answer}" for question, answer in answers.items())
        draft = await self.model.generate_structured(
            system_instruction="You are a personal style advisor analyzing a client's style assessment responses.",
            prompt=ASSESSMENT_PROMPT.format(answers=answers_text),
            schema=StyleAssessmentDraft,
            temperature=0.7,
            max_tokens=config.REFLECTION_MAX_TOKENS,
        )
        summary = draft.summary.strip()
        await self.save_assessment_summary(summary)
        return summary

    async def save_assessment_summary(self, summary: str) -> None:
        await self.storage.save_assessment_summary(summary.strip())

    async def build_user_context(self) -> str:
        """Style profile and reflections, or an empty string if neither exists."""
        context = ""
        summary = await self.storage.get_assessment_summary()
        if summary:
            context += f"USER STYLE PROFILE:\n{summary}\n\n"

        memory_bank = await self.storage.get_memory_bank()
        reflections = memory_bank.reflections
        if reflections:
            context += "USER REFLECTIONS (based on conversation history):\n"
            context += f"- Purpose & Context: {reflections.purpose_and_context}\n"
            context += f"- Current State: {reflections.current_state}\n"
            context += f"- Approach & Patterns: {reflections.approach_and_patterns}\n\n"

        return context
