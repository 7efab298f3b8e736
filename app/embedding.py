"""Embedding utilities wrapping OpenAI's embeddings API.

Provides:
- make_client: OpenAI client initialized with the configured API key.
- OpenAIEmbedder: batch and single-text embedding against one configured model.

Provider errors are not caught here; retries belong to the OpenAI client itself.
"""
from typing import List, Protocol

from openai import OpenAI

from app.config import settings


class Embedder(Protocol):
    def embed_batch(self, texts: List[str]) -> List[List[float]]: ...

    def embed_one(self, text: str) -> List[float]: ...


def make_client(api_key: str = "") -> OpenAI:
    """Return an OpenAI client for the given key (defaults to settings)."""
    return OpenAI(api_key=api_key or settings.OPENAI_API_KEY)


class OpenAIEmbedder:
    """Embedder backed by the OpenAI embeddings endpoint."""

    def __init__(self, client: OpenAI, model: str = ""):
        self.client = client
        self.model = model or settings.OPENAI_EMBEDDING_MODEL

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts in a single request.

        Args:
            texts: List of input strings to embed.

        Returns:
            List[List[float]]: One embedding vector per input text, in input order.
        """
        if not texts:
            return []
        resp = self.client.embeddings.create(model=self.model, input=texts)
        # The API reports an index per item; do not rely on response ordering.
        data = sorted(resp.data, key=lambda d: getattr(d, "index", 0))
        return [d.embedding for d in data]

    def embed_one(self, text: str) -> List[float]:
        """Embed a single string.

        Literal backslash-n sequences (already-escaped newlines) are replaced by
        a space before submission.

        Args:
            text: The text to embed.

        Returns:
            List[float]: The embedding vector.
        """
        value = text.replace("\\n", " ")
        resp = self.client.embeddings.create(model=self.model, input=value)
        return resp.data[0].embedding
