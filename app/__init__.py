"""Application package for the retrieval-augmented chat backend.

Submodules overview:
- main: FastAPI application bootstrap, lifecycle, and the /api/chat endpoint.
- posts: Posts API routes.
- auth: Session-token authentication dependency.
- chat_request: Inbound chat body shape detection.
- chat: Conversation orchestrator (multi-step tool loop, streaming, persistence).
- llm: Chat model client and provider message conversion.
- tools: Closed tool registry (weather, events, confirmation, location, knowledge base).
- events: Events search API client.
- retrieval: Knowledge base ingestion and lookup service.
- knowledge_store: pgvector and in-memory similarity stores.
- embedding: Embedding client.
- chat_store: Conversation history persistence (Redis, in-memory).
- streaming: Data stream protocol encoding and error formatting.
- services: Startup construction of collaborators.
- config: Application settings and environment variable loading.
- db: Database engine/session management helpers.
- models: ORM models.
- schemas: Pydantic message and API contracts.
- obs: Logging and observability utilities (tracing/spans).
- utils: Chunking and id helpers.
- ingestion: Offline ingestion jobs.
"""
