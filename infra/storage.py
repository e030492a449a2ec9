# infra/storage.py
"""
Key-value persistence for recommendation preferences, sessions and the memory bank.

Backed by Redis in production and by a process-local dict for demos and tests.
Every call takes the caller's StorageContext so the user scope is explicit
instead of living in a module-level "current user" variable.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import redis.asyncio as redis

import config
from contracts.models import MemoryBank, PreferenceSet, RecommendationSession, StyleAssessment

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "recommendation_preferences"
SESSION_KEY = "recommendation_session"
MEMORY_BANK_KEY = "memory_bank"
ASSESSMENT_KEY = "assessment"


@dataclass(frozen=True)
class StorageContext:
    """Authenticated-session scope for storage calls."""
    user_id: str
    key_prefix: str = config.STORAGE_KEY_PREFIX

    def key(self, name: str) -> str:
        return f"{self.key_prefix}:{self.user_id}:{name}"


class KeyValueStore(ABC):
    """Minimal async string store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        return None


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store; state lives as long as the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed store.

    Unlike a cache, keys are written without TTL: preferences and sessions
    live until explicitly overwritten or cleared.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """
        Args:
            redis_url: Redis connection URL (falls back to config.REDIS_URL)
            client: Pre-built client, mainly for tests
        """
        self.redis_url = redis_url or config.REDIS_URL
        self._client = client

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            logger.info("[Storage] Connected to Redis")
        return self._client

    async def get(self, key: str) -> Optional[str]:
        return await self._get_client().get(key)

    async def set(self, key: str, value: str) -> None:
        await self._get_client().set(key, value)

    async def delete(self, key: str) -> None:
        await self._get_client().delete(key)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("[Storage] Disconnected from Redis")


def create_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the store selected by config.STORAGE_BACKEND."""
    backend = (backend or config.STORAGE_BACKEND).lower()
    if backend == "redis":
        return RedisKeyValueStore()
    if backend == "memory":
        return InMemoryKeyValueStore()
    raise ValueError(f"Unknown storage backend: {backend}")


class RecommendationStorage:
    """
    Typed accessors over a KeyValueStore.

    Corrupt payloads are logged and treated as absent so a bad write never
    locks the user out of the recommendation flow.
    """

    def __init__(self, store: KeyValueStore, context: StorageContext):
        self.store = store
        self.context = context

    async def _load(self, name: str, model_cls):
        raw = await self.store.get(self.context.key(name))
        if not raw:
            return None
        try:
            return model_cls.model_validate_json(raw)
        except ValueError as e:
            logger.warning(f"[Storage] Discarding unreadable {name}: {e}")
            return None

    async def _save(self, name: str, model) -> None:
        await self.store.set(self.context.key(name), model.model_dump_json())

    async def get_preferences(self) -> Optional[PreferenceSet]:
        return await self._load(PREFERENCES_KEY, PreferenceSet)

    async def save_preferences(self, preferences: PreferenceSet) -> None:
        await self._save(PREFERENCES_KEY, preferences)

    async def get_session(self) -> Optional[RecommendationSession]:
        return await self._load(SESSION_KEY, RecommendationSession)

    async def save_session(self, session: RecommendationSession) -> None:
        await self._save(SESSION_KEY, session)

    async def clear_session(self) -> None:
        await self.store.delete(self.context.key(SESSION_KEY))

    async def get_memory_bank(self) -> MemoryBank:
        return await self._load(MEMORY_BANK_KEY, MemoryBank) or MemoryBank()

    async def save_memory_bank(self, memory_bank: MemoryBank) -> None:
        await self._save(MEMORY_BANK_KEY, memory_bank)

    async def get_assessment_summary(self) -> Optional[str]:
        assessment = await self._load(ASSESSMENT_KEY, StyleAssessment)
        return assessment.summary if assessment else None

    async def save_assessment_summary(self, summary: str) -> None:
        await self._save(ASSESSMENT_KEY, StyleAssessment(summary=summary))
