"""
Shared test fixtures and stub collaborators.

Provides: keyword embedder, scripted chat models, in-memory stores, SQLite-backed
session factory, and a Services builder for API tests.
"""

import asyncio
from typing import Callable, List, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.auth import SessionInfo, SessionUser
from app.chat import ChatOrchestrator
from app.chat_store import InMemoryConversationStore
from app.db import init_db, make_session_factory
from app.knowledge_store import InMemoryKnowledgeStore
from app.llm import StepFinish, TextDelta, ToolCallArgsDelta, ToolCallRequest, ToolCallStart
from app.retrieval import RetrievalService
from app.services import Services
from app.tools import build_tool_registry

KEYWORDS = ["paris", "capital", "france", "weather", "berlin"]


class KeywordEmbedder:
    """Deterministic embedder: one dimension per keyword, counting occurrences."""

    def __init__(self, keywords: List[str] = KEYWORDS):
        self.keywords = keywords
        self.batch_calls: List[List[str]] = []
        self.one_calls: List[str] = []

    def _vector(self, text: str) -> List[float]:
        lowered = text.lower()
        return [float(lowered.count(k)) for k in self.keywords]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed_one(self, text: str) -> List[float]:
        self.one_calls.append(text)
        return self._vector(text)


class FailingEmbedder(KeywordEmbedder):
    def embed_batch(self, texts):
        raise RuntimeError("embedding service down")

    def embed_one(self, text):
        raise RuntimeError("embedding service down")


class ScriptedModel:
    """Chat model stub replaying one scripted list of events per call."""

    def __init__(self, steps: List[list], delay: float = 0.0):
        self.steps = steps
        self.delay = delay
        self.calls: List[dict] = []

    async def stream(self, system, messages, tools):
        self.calls.append({"system": system, "messages": messages, "tools": tools})
        events = self.steps[min(len(self.calls), len(self.steps)) - 1]
        for event in events:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield event


class AlwaysToolModel:
    """Chat model stub that requests a weather lookup on every step."""

    def __init__(self):
        self.calls: List[dict] = []

    async def stream(self, system, messages, tools):
        self.calls.append({"system": system, "messages": messages, "tools": tools})
        call_id = f"call_{len(self.calls)}"
        yield TextDelta(f"step {len(self.calls)} ")
        yield ToolCallStart(call_id, "getWeatherInformation")
        yield ToolCallArgsDelta(call_id, '{"city": "Paris"}')
        yield StepFinish("tool_calls", [ToolCallRequest(call_id, "getWeatherInformation", '{"city": "Paris"}')])


class FailingModel:
    def __init__(self):
        self.calls: List[dict] = []

    async def stream(self, system, messages, tools):
        self.calls.append({"system": system, "messages": messages, "tools": tools})
        raise RuntimeError("model provider unavailable")
        yield  # pragma: no cover


def text_step(*chunks: str) -> list:
    return [TextDelta(c) for c in chunks] + [StepFinish("stop")]


def tool_step(call_id: str, name: str, arguments: str) -> list:
    return [
        ToolCallStart(call_id, name),
        ToolCallArgsDelta(call_id, arguments),
        StepFinish("tool_calls", [ToolCallRequest(call_id, name, arguments)]),
    ]


SIGNED_IN = SessionInfo(
    session_id="sess_1",
    expires_at="2099-01-01T00:00:00",
    user=SessionUser(id="user_1", name="Ada", email="ada@example.com"),
)


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def knowledge_store():
    return InMemoryKnowledgeStore()


@pytest.fixture
def retrieval(embedder, knowledge_store):
    return RetrievalService(embedder, knowledge_store, top_k=4, min_similarity=0.5)


@pytest.fixture
def conversations():
    return InMemoryConversationStore()


@pytest.fixture
def events_client():
    return MagicMock()


@pytest.fixture
def tools(retrieval, events_client):
    return build_tool_registry(retrieval, events_client)


@pytest.fixture
def session_factory():
    """In-memory SQLite database with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def make_services(session_factory, embedder, knowledge_store, retrieval, conversations, tools) -> Callable:
    """Build Services around a given chat model stub."""

    def _make(model, max_steps: int = 5, max_duration: Optional[float] = 5.0) -> Services:
        return Services(
            session_factory=session_factory,
            embedder=embedder,
            knowledge_store=knowledge_store,
            retrieval=retrieval,
            conversations=conversations,
            model=model,
            tools=tools,
            orchestrator=ChatOrchestrator(
                model, tools, conversations, max_steps=max_steps, max_duration=max_duration
            ),
        )

    return _make
