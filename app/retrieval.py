"""Retrieval service backing the addResource and getInformation tools.

- add_resource: chunk source text, embed all chunks in one batch request, and
  store the resource with its chunks in a single transaction. If embedding
  fails nothing is written; if the insert fails the transaction rolls back.
- get_information: embed the question and rank stored chunks by cosine
  similarity (similarity = 1 - distance), keeping at most top_k results above
  the similarity threshold. An empty result means "nothing relevant".
"""
import logging
from typing import Dict, List

from app.config import settings
from app.embedding import Embedder
from app.knowledge_store import KnowledgeStore
from app.utils import generate_chunks

logger = logging.getLogger(__name__)

RESOURCE_CREATED = "Resource successfully created and embedded."


class RetrievalService:
    def __init__(
        self,
        embedder: Embedder,
        store: KnowledgeStore,
        top_k: int | None = None,
        min_similarity: float | None = None,
    ):
        self.embedder = embedder
        self.store = store
        self.top_k = top_k if top_k is not None else settings.RETRIEVAL_TOP_K
        self.min_similarity = (
            min_similarity if min_similarity is not None else settings.RETRIEVAL_MIN_SIMILARITY
        )

    def add_resource(self, content: str) -> str:
        """Add a piece of knowledge to the knowledge base.

        Args:
            content: Source text; split into period-delimited chunks.

        Returns:
            str: Confirmation message for the model.
        """
        chunks = generate_chunks(content)
        embeddings = self.embedder.embed_batch(chunks)
        if len(embeddings) != len(chunks):
            raise RuntimeError(f"embedding count mismatch: got {len(embeddings)} for {len(chunks)} chunks")
        self.store.insert_resource(content, list(zip(chunks, embeddings)))
        logger.info("Added resource (%d chars, %d chunks)", len(content), len(chunks))
        return RESOURCE_CREATED

    def get_information(self, question: str) -> List[Dict]:
        """Find stored chunks relevant to a question.

        Args:
            question: The user's question.

        Returns:
            List[Dict]: ``{"content", "similarity"}`` items, most similar first.
        """
        query_embedding = self.embedder.embed_one(question)
        results = self.store.query_top_k(query_embedding, self.top_k, self.min_similarity)
        logger.info(
            "Knowledge lookup returned %d results (best=%.3f)",
            len(results),
            results[0]["similarity"] if results else 0.0,
        )
        return results
