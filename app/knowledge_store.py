"""Knowledge base persistence and similarity search.

Two interchangeable stores share one contract:
- PgVectorKnowledgeStore: rows in the ``embeddings`` table ranked with pgvector
  cosine distance (similarity = 1 - distance).
- InMemoryKnowledgeStore: process-local list ranked with exact cosine similarity;
  used for local development and tests.

Both are append-only: records are never updated, duplicates are stored independently.
"""
import logging
import math
import threading
from typing import Dict, List, Protocol, Sequence, Tuple

from sqlalchemy import Select, select
from sqlalchemy.orm import sessionmaker

from app.db import session_scope
from app.models import Embedding, Resource

logger = logging.getLogger(__name__)

Vector = Sequence[float]


class KnowledgeStore(Protocol):
    def insert(self, content: str, embedding: Vector) -> None: ...

    def insert_resource(self, content: str, records: List[Tuple[str, Vector]]) -> str: ...

    def query_top_k(self, query_embedding: Vector, k: int, min_similarity: float) -> List[Dict]: ...


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero norm."""
    if len(a) != len(b):
        raise ValueError(f"dimension mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0.0:
        return 0.0
    return dot / norm


def top_k_statement(query_embedding: Vector, k: int, min_similarity: float) -> Select:
    """Build the similarity query: rank by 1 - cosine distance, filter, limit."""
    similarity = (1 - Embedding.embedding.cosine_distance(list(query_embedding))).label("similarity")
    return (
        select(Embedding.content, similarity)
        .where(similarity > min_similarity)
        .order_by(similarity.desc(), Embedding.id)
        .limit(k)
    )


class PgVectorKnowledgeStore:
    """Knowledge store on PostgreSQL + pgvector."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def insert(self, content: str, embedding: Vector) -> None:
        with session_scope(self.session_factory) as db:
            db.add(Embedding(content=content, embedding=list(embedding)))

    def insert_resource(self, content: str, records: List[Tuple[str, Vector]]) -> str:
        """Insert a resource row and all of its chunk embeddings in one transaction.

        Returns:
            str: The new resource id.
        """
        with session_scope(self.session_factory) as db:
            resource = Resource(content=content)
            db.add(resource)
            db.flush()
            db.add_all(
                Embedding(resource_id=resource.id, content=chunk, embedding=list(vec))
                for chunk, vec in records
            )
            resource_id = resource.id
        logger.info("Stored resource %s with %d chunks", resource_id, len(records))
        return resource_id

    def query_top_k(self, query_embedding: Vector, k: int, min_similarity: float) -> List[Dict]:
        """Return up to ``k`` chunks with similarity above ``min_similarity``.

        Returns:
            List[Dict]: ``{"content", "similarity"}`` items, most similar first.
        """
        with session_scope(self.session_factory) as db:
            rows = db.execute(top_k_statement(query_embedding, k, min_similarity)).all()
        return [{"content": r.content, "similarity": float(r.similarity)} for r in rows]


class InMemoryKnowledgeStore:
    """Process-local knowledge store with the same ranking contract."""

    def __init__(self):
        self._records: List[Tuple[str, List[float]]] = []
        self._lock = threading.Lock()
        self._resources = 0

    def __len__(self) -> int:
        return len(self._records)

    def insert(self, content: str, embedding: Vector) -> None:
        with self._lock:
            self._check_dim(embedding)
            self._records.append((content, list(embedding)))

    def insert_resource(self, content: str, records: List[Tuple[str, Vector]]) -> str:
        with self._lock:
            for _, vec in records:
                self._check_dim(vec)
            self._records.extend((chunk, list(vec)) for chunk, vec in records)
            self._resources += 1
            return f"memory-{self._resources}"

    def query_top_k(self, query_embedding: Vector, k: int, min_similarity: float) -> List[Dict]:
        with self._lock:
            records = list(self._records)
        scored = [
            {"content": content, "similarity": cosine_similarity(vec, query_embedding)}
            for content, vec in records
        ]
        # sorted() is stable: ties keep insertion order
        ranked = sorted(
            (s for s in scored if s["similarity"] > min_similarity),
            key=lambda s: s["similarity"],
            reverse=True,
        )
        return ranked[: max(0, k)]

    def _check_dim(self, embedding: Vector) -> None:
        if self._records and len(embedding) != len(self._records[0][1]):
            raise ValueError(
                f"embedding dimension {len(embedding)} does not match store dimension {len(self._records[0][1])}"
            )
