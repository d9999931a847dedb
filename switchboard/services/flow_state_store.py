"""Per-conversation state storage.

The router only depends on ``FlowStateStore``; the in-memory map is the
default backend and the Redis store is a drop-in replacement for
deployments that run more than one worker.
"""

import threading
from abc import ABC, abstractmethod
from typing import Iterator, Optional

import redis

from switchboard.logging_config import get_logger
from switchboard.models.conversation import Conversation

logger = get_logger("flow_state_store")


class FlowStateStore(ABC):
    """Key-value store of Conversation state keyed by conversation id. No TTL logic."""

    @abstractmethod
    def get(self, conversation_id: str) -> Optional[Conversation]:
        pass

    @abstractmethod
    def put(self, conversation_id: str, conversation: Conversation) -> None:
        pass

    @abstractmethod
    def delete(self, conversation_id: str) -> bool:
        """Remove a conversation. Returns False when it was not stored."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        pass

    def __iter__(self) -> Iterator[Conversation]:
        for conversation_id in self.keys():
            conversation = self.get(conversation_id)
            if conversation is not None:
                yield conversation


class InMemoryFlowStateStore(FlowStateStore):
    """Dict-backed store. Values are copied in and out so callers never share instances."""

    def __init__(self):
        self._items: dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            conversation = self._items.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation is not None else None

    def put(self, conversation_id: str, conversation: Conversation) -> None:
        snapshot = conversation.model_copy(deep=True)
        with self._lock:
            self._items[conversation_id] = snapshot

    def delete(self, conversation_id: str) -> bool:
        with self._lock:
            return self._items.pop(conversation_id, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class RedisFlowStateStore(FlowStateStore):
    """Conversations as JSON documents under ``<prefix>:<conversation id>``."""

    def __init__(self, client: redis.Redis, prefix: str = "switchboard:conversation"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "switchboard:conversation") -> "RedisFlowStateStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix=prefix)

    def _key(self, conversation_id: str) -> str:
        return f"{self.prefix}:{conversation_id}"

    def get(self, conversation_id: str) -> Optional[Conversation]:
        raw = self.client.get(self._key(conversation_id))
        if not raw:
            return None
        try:
            return Conversation.model_validate_json(raw)
        except ValueError as e:
            logger.error(
                f"Corrupt conversation document: {e}",
                extra={"context": {"conversation_id": conversation_id}},
            )
            return None

    def put(self, conversation_id: str, conversation: Conversation) -> None:
        self.client.set(self._key(conversation_id), conversation.model_dump_json())

    def delete(self, conversation_id: str) -> bool:
        return bool(self.client.delete(self._key(conversation_id)))

    def keys(self) -> list[str]:
        offset = len(self.prefix) + 1
        return [key[offset:] for key in self.client.scan_iter(match=f"{self.prefix}:*")]
