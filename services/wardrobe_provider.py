# services/wardrobe_provider.py
"""
Read-only access to the user's wardrobe snapshot.
The wardrobe CRUD subsystem lives elsewhere; these adapters only hand us pieces.
"""
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List

from contracts.models import WardrobeItem


class WardrobeProvider(ABC):

    @abstractmethod
    async def get_wardrobe_snapshot(self) -> List[WardrobeItem]:
        ...


class StaticWardrobeProvider(WardrobeProvider):
    """Serves a fixed list of pieces."""

    def __init__(self, items: Iterable):
        self._items = [
            item if isinstance(item, WardrobeItem) else WardrobeItem(**item)
            for item in items
        ]

    async def get_wardrobe_snapshot(self) -> List[WardrobeItem]:
        return list(self._items)


class JsonFileWardrobeProvider(WardrobeProvider):
    """
    Reads a wardrobe export: either a bare JSON array of pieces or an object
    with a ``wardrobe`` array. Re-read on every call so edits show up.
    """

    def __init__(self, path):
        self.path = Path(path)

    async def get_wardrobe_snapshot(self) -> List[WardrobeItem]:
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("wardrobe", [])
        return [WardrobeItem(**raw) for raw in data]
