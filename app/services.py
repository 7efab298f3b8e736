"""Process-wide collaborators, built once at startup and passed to request handlers.

build_services selects store backends from settings:
- KNOWLEDGE_STORE_BACKEND: 'pgvector' (PostgreSQL) or 'memory'
- CHAT_STORE_BACKEND: 'redis' or 'memory'
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.chat import ChatOrchestrator
from app.chat_store import ConversationStore, InMemoryConversationStore, RedisConversationStore, make_redis
from app.config import Settings, settings as default_settings
from app.db import make_engine, make_session_factory
from app.embedding import Embedder, OpenAIEmbedder, make_client
from app.events import EventsClient
from app.knowledge_store import InMemoryKnowledgeStore, KnowledgeStore, PgVectorKnowledgeStore
from app.llm import ChatModel, OpenAIChatModel, make_async_client
from app.retrieval import RetrievalService
from app.tools import ToolRegistry, build_tool_registry

logger = logging.getLogger(__name__)


@dataclass
class Services:
    session_factory: sessionmaker
    embedder: Embedder
    knowledge_store: KnowledgeStore
    retrieval: RetrievalService
    conversations: ConversationStore
    model: ChatModel
    tools: ToolRegistry
    orchestrator: ChatOrchestrator
    engine: Optional[Engine] = None
    closeables: List[Any] = field(default_factory=list)

    def close(self) -> None:
        for resource in self.closeables:
            try:
                resource.close()
            except Exception as e:
                logger.warning("Error closing %s: %s", type(resource).__name__, e)
        if self.engine is not None:
            self.engine.dispose()


def make_knowledge_store(cfg: Settings, session_factory: sessionmaker) -> KnowledgeStore:
    backend = cfg.KNOWLEDGE_STORE_BACKEND.lower()
    if backend == "pgvector":
        return PgVectorKnowledgeStore(session_factory)
    if backend == "memory":
        logger.info("Using in-memory knowledge store (local dev mode)")
        return InMemoryKnowledgeStore()
    raise ValueError(f"Invalid KNOWLEDGE_STORE_BACKEND: {backend}. Must be 'pgvector' or 'memory'.")


def make_conversation_store(cfg: Settings, closeables: List[Any]) -> ConversationStore:
    backend = cfg.CHAT_STORE_BACKEND.lower()
    if backend == "redis":
        client = make_redis(cfg.REDIS_URL)
        closeables.append(client)
        return RedisConversationStore(client, cfg.CHAT_HISTORY_TTL_SECONDS)
    if backend == "memory":
        logger.info("Using in-memory conversation store (local dev mode)")
        return InMemoryConversationStore()
    raise ValueError(f"Invalid CHAT_STORE_BACKEND: {backend}. Must be 'redis' or 'memory'.")


def build_services(cfg: Settings = default_settings) -> Services:
    """Construct every collaborator from settings."""
    engine = make_engine(cfg.DATABASE_URL)
    session_factory = make_session_factory(engine)
    closeables: List[Any] = []

    embedder = OpenAIEmbedder(make_client(cfg.OPENAI_API_KEY), cfg.OPENAI_EMBEDDING_MODEL)
    knowledge_store = make_knowledge_store(cfg, session_factory)
    retrieval = RetrievalService(
        embedder, knowledge_store, top_k=cfg.RETRIEVAL_TOP_K, min_similarity=cfg.RETRIEVAL_MIN_SIMILARITY
    )
    events = EventsClient(
        url=cfg.EVENTS_API_URL,
        api_key=cfg.EVENTS_API_KEY,
        host=cfg.EVENTS_API_HOST,
        timeout=cfg.EVENTS_API_TIMEOUT_SECONDS,
    )
    closeables.append(events.session)
    conversations = make_conversation_store(cfg, closeables)
    model = OpenAIChatModel(make_async_client(cfg.OPENAI_API_KEY), cfg.OPENAI_MODEL)
    tools = build_tool_registry(retrieval, events)
    orchestrator = ChatOrchestrator(
        model, tools, conversations, max_steps=cfg.MAX_STEPS, max_duration=cfg.MAX_DURATION_SECONDS
    )
    return Services(
        session_factory=session_factory,
        embedder=embedder,
        knowledge_store=knowledge_store,
        retrieval=retrieval,
        conversations=conversations,
        model=model,
        tools=tools,
        orchestrator=orchestrator,
        engine=engine,
        closeables=closeables,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the application's Services."""
    return request.app.state.services
