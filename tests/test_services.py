import pytest

from app.chat_store import InMemoryConversationStore, RedisConversationStore
from app.config import Settings
from app.knowledge_store import InMemoryKnowledgeStore, PgVectorKnowledgeStore
from app.services import build_services, make_conversation_store, make_knowledge_store


def _settings(**overrides):
    values = {
        "OPENAI_API_KEY": "sk-test",
        "DATABASE_URL": "sqlite://",
        "KNOWLEDGE_STORE_BACKEND": "memory",
        "CHAT_STORE_BACKEND": "memory",
    }
    values.update(overrides)
    return Settings(**values)


def test_backend_selection(session_factory):
    assert isinstance(make_knowledge_store(_settings(), session_factory), InMemoryKnowledgeStore)
    pg = make_knowledge_store(_settings(KNOWLEDGE_STORE_BACKEND="pgvector"), session_factory)
    assert isinstance(pg, PgVectorKnowledgeStore)

    closeables = []
    assert isinstance(make_conversation_store(_settings(), closeables), InMemoryConversationStore)
    redis_store = make_conversation_store(_settings(CHAT_STORE_BACKEND="redis"), closeables)
    assert isinstance(redis_store, RedisConversationStore)
    assert len(closeables) == 1


def test_build_services_wires_orchestrator():
    services = build_services(_settings(MAX_STEPS=3, MAX_DURATION_SECONDS=10))
    try:
        assert services.orchestrator.max_steps == 3
        assert services.orchestrator.max_duration == 10
        assert services.orchestrator.tools is services.tools
        assert services.retrieval.top_k == 4
        assert "getInformation" in services.tools
    finally:
        services.close()


def test_invalid_backend_rejected():
    with pytest.raises(ValueError):
        Settings(KNOWLEDGE_STORE_BACKEND="faiss")
