"""FastAPI application entrypoint and routes.

Exposes health, the streaming /api/chat endpoint, and the posts API. Collaborators
(database, stores, model and embedding clients, tools, orchestrator) are built at
startup into a Services container on ``app.state`` and released at shutdown, after
in-flight chat turns have finished persisting.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from app import posts
from app.auth import SessionInfo, get_auth_session
from app.chat import DEFAULT_SYSTEM_PROMPT, KNOWLEDGE_BASE_SYSTEM_PROMPT
from app.chat_request import decode_body, parse_chat_request
from app.config import settings
from app.db import init_db
from app.obs import configure_logging
from app.services import Services, build_services, get_services
from app.streaming import DATA_STREAM_HEADERS

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Create the API application.

    Args:
        services: Prebuilt collaborators; when omitted they are built from
            settings at startup and the database schema is initialized.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "services", None) is None
        if owned:
            configure_logging(settings.LOG_LEVEL)
            app.state.services = build_services(settings)
            init_db(app.state.services.engine)
        try:
            yield
        finally:
            await app.state.services.orchestrator.drain()
            if owned:
                app.state.services.close()

    app = FastAPI(title="RAG Chat API", version="0.1.0", lifespan=lifespan)
    if services is not None:
        app.state.services = services

    # Allow any dev origin; tighten for prod
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_credentials=True,
        allow_headers=["*"],
    )
    app.include_router(posts.router)

    @app.get("/health")
    def health():
        """Liveness probe endpoint."""
        return {"status": "ok"}

    @app.post("/api/chat")
    async def chat(
        request: Request,
        auth: Optional[SessionInfo] = Depends(get_auth_session),
        services: Services = Depends(get_services),
    ):
        """Stream an assistant reply for a chat turn.

        Body is either ``{"id", "message"}`` (stored conversation: history is
        loaded, and saved once generation completes) or ``{"messages"}`` (history
        supplied by the caller, nothing stored). Unrecognized bodies are treated
        as an empty message list.
        """
        if auth is None:
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

        req = parse_chat_request(decode_body(await request.body()))
        system = KNOWLEDGE_BASE_SYSTEM_PROMPT if req.persisted else DEFAULT_SYSTEM_PROMPT
        run = services.orchestrator.start(req.messages, system, conversation_id=req.conversation_id)
        return StreamingResponse(
            run.stream(),
            media_type="text/plain; charset=utf-8",
            headers=DATA_STREAM_HEADERS,
        )

    return app


app = create_app()
