"""Plain-text knowledge ingestor.

Reads text from a file, a URL, or the command line and adds it to the knowledge
base through RetrievalService.add_resource, the same path the addResource tool
uses: period-delimited chunks, one batch embedding request, one transaction.

Usage:
  python -m app.ingestion.ingest_text --file notes.txt
  python -m app.ingestion.ingest_text --url https://example.com/facts.txt
  python -m app.ingestion.ingest_text --text "Paris is the capital of France."

Configuration:
- Database: app.config.settings.DATABASE_URL
- Embeddings: app.config.settings.OPENAI_EMBEDDING_MODEL
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

import requests

from app.config import settings
from app.db import init_db
from app.retrieval import RetrievalService
from app.services import build_services

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "RAG-Ingestor/1.0",
    "Accept": "text/plain, text/markdown;q=0.9, */*;q=0.5",
}


def fetch_text(url: str, timeout: int = 30) -> str:
    """Fetch a text document from a URL."""
    logger.info("Fetching text: %s", url)
    resp = requests.get(url, headers=HEADERS, timeout=timeout)
    logger.info("HTTP %d from %s (bytes=%d)", resp.status_code, url, len(resp.content or b""))
    resp.raise_for_status()
    return resp.text


def ingest_text(retrieval: RetrievalService, text: str) -> str:
    """Add ``text`` as one resource; returns the confirmation message."""
    if not text.strip():
        raise ValueError("nothing to ingest: input text is empty")
    return retrieval.add_resource(text)


def main():
    parser = argparse.ArgumentParser(description="Add plain text to the knowledge base.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a UTF-8 text file")
    source.add_argument("--url", help="URL of a text document")
    source.add_argument("--text", help="Literal text to add")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    if args.file:
        text = Path(args.file).read_text(encoding="utf-8")
    elif args.url:
        text = fetch_text(args.url)
    else:
        text = args.text

    services = build_services(settings)
    try:
        init_db(services.engine)
        message = ingest_text(services.retrieval, text)
        logger.info("Completed ingestion (%d chars)", len(text))
        print(f"[INGEST-TEXT] {message}")
    except Exception:
        logger.exception("Ingestion failed")
        raise
    finally:
        services.close()


if __name__ == "__main__":
    main()
