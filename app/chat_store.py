"""Conversation history persistence.

Provides:
- make_redis: Redis client from REDIS_URL with decode_responses.
- RedisConversationStore: one JSON list per conversation id, overwritten on save.
- InMemoryConversationStore: dict-backed equivalent for local development and tests.

Unknown ids load as an empty history; a conversation exists once it is first saved.
"""
import json
import logging
import threading
from typing import Dict, List, Protocol

import redis

from app.config import settings
from app.schemas import Message

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    def load(self, conversation_id: str) -> List[Message]: ...

    def save(self, conversation_id: str, messages: List[Message]) -> None: ...


def make_redis(url: str = "") -> redis.Redis:
    """Return a Redis client configured from ``url`` (defaults to settings.REDIS_URL).

    Returns:
        redis.Redis: Client with decode_responses=True.
    """
    return redis.from_url(url or settings.REDIS_URL, decode_responses=True)


def _key_for_conversation(conversation_id: str) -> str:
    return f"chat:{conversation_id}"


def dump_messages(messages: List[Message]) -> str:
    return json.dumps([m.model_dump(mode="json", by_alias=True) for m in messages])


def load_messages(raw: str) -> List[Message]:
    return [Message.model_validate(m) for m in json.loads(raw)]


class RedisConversationStore:
    def __init__(self, client: redis.Redis, ttl_seconds: int | None = None):
        self.client = client
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CHAT_HISTORY_TTL_SECONDS

    def load(self, conversation_id: str) -> List[Message]:
        """Load the stored history for ``conversation_id``.

        Returns:
            List[Message]: Stored messages in order; empty if the id is unknown.
        """
        raw = self.client.get(_key_for_conversation(conversation_id))
        if not raw:
            return []
        return load_messages(raw)

    def save(self, conversation_id: str, messages: List[Message]) -> None:
        """Overwrite the stored history for ``conversation_id``."""
        key = _key_for_conversation(conversation_id)
        if self.ttl_seconds and self.ttl_seconds > 0:
            self.client.setex(key, self.ttl_seconds, dump_messages(messages))
        else:
            self.client.set(key, dump_messages(messages))
        logger.info("Saved conversation %s (%d messages)", conversation_id, len(messages))


class InMemoryConversationStore:
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, conversation_id: str) -> List[Message]:
        with self._lock:
            raw = self._data.get(conversation_id)
        return load_messages(raw) if raw else []

    def save(self, conversation_id: str, messages: List[Message]) -> None:
        with self._lock:
            self._data[conversation_id] = dump_messages(messages)
