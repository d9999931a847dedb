"""Optional knowledge-snippet enrichment for completion prompts."""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from switchboard.errors import ConfigurationError
from switchboard.logging_config import get_logger

logger = get_logger("knowledge")

MIN_WORD_LENGTH = 3
CONTEXT_RESULTS = 3


class KnowledgeItem(BaseModel):
    id: str
    title: str
    content: str
    category: Optional[str] = None  # department scope, None = every department
    keywords: List[str] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list)
    priority: int = 0


class KnowledgeLookup(ABC):
    @abstractmethod
    def get_context_for_message(self, text: str, department: str) -> str:
        """Prompt-ready context block, or "" when nothing relevant is known."""
        pass


def _words(text: str) -> list[str]:
    return [word for word in re.findall(r"[\w']+", (text or "").lower()) if len(word) >= MIN_WORD_LENGTH]


def format_knowledge_context(items: Iterable[KnowledgeItem]) -> str:
    items = list(items)
    if not items:
        return ""

    context = "\n\nKnowledge Base Context:\n"
    for item in items:
        context += f"\n- {item.title}: {item.content}"
        if item.answers:
            context += f"\n  Quick answers: {'; '.join(item.answers)}"
    return context + "\n"


class InMemoryKnowledgeBase(KnowledgeLookup):
    """Word index over titles, keywords and content. Partial matches count."""

    def __init__(self, items: Iterable[KnowledgeItem] = ()):
        self._items: dict[str, KnowledgeItem] = {}
        self._index: dict[str, set[str]] = {}
        for item in items:
            self.add(item)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: KnowledgeItem) -> None:
        if item.id in self._items:
            self.remove(item.id)
        self._items[item.id] = item
        for word in set(_words(item.title) + _words(item.content) + [k.lower() for k in item.keywords]):
            self._index.setdefault(word, set()).add(item.id)

    def remove(self, item_id: str) -> bool:
        if self._items.pop(item_id, None) is None:
            return False
        for ids in self._index.values():
            ids.discard(item_id)
        return True

    def search(self, query: str, department: Optional[str] = None, limit: int = 5) -> list[KnowledgeItem]:
        hits: dict[str, int] = {}
        for word in _words(query):
            for keyword, ids in self._index.items():
                if keyword == word or word in keyword:
                    for item_id in ids:
                        hits[item_id] = hits.get(item_id, 0) + 1

        matched = [
            self._items[item_id]
            for item_id in hits
            if department is None or self._items[item_id].category in (None, department)
        ]
        matched.sort(key=lambda item: (hits[item.id], item.priority), reverse=True)
        return matched[:limit]

    def get_context_for_message(self, text: str, department: str) -> str:
        return format_knowledge_context(self.search(text, department, CONTEXT_RESULTS))

    @classmethod
    def from_file(cls, path) -> "InMemoryKnowledgeBase":
        """Load ``{"items": [...]}`` (or a bare list) of knowledge items."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            raw_items = data.get("items", []) if isinstance(data, dict) else data
            items = [KnowledgeItem.model_validate(raw) for raw in raw_items]
        except (OSError, ValueError, ValidationError) as e:
            raise ConfigurationError(f"Cannot load knowledge file {path}: {e}") from e

        logger.info(f"Knowledge base loaded: {len(items)} items from {path}")
        return cls(items)
