"""Ingestion package for offline pipelines.

Contains ingestors that populate the knowledge base with chunked, embedded
content. See ingest_text.py for the plain-text ingestor.
"""
