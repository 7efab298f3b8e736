"""Inbound chat request shape detection.

Two body shapes are accepted:
- ``{"id": str, "message": {...}}``: one new message for a stored conversation.
- ``{"messages": [...]}``: the full history supplied by the caller.

Detection is structural. Anything that is not a valid first shape is read as the
second one, and a body that fits neither yields an empty message list.
"""
import json
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from app.schemas import ChatRequest, Message

logger = logging.getLogger(__name__)


def decode_body(raw: bytes) -> Any:
    """Decode a JSON body; undecodable input is treated as no body."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Chat request body is not valid JSON (%d bytes)", len(raw))
        return None


def _coerce_message(raw: Any) -> Optional[Message]:
    if not isinstance(raw, dict):
        return None
    try:
        return Message.model_validate(raw)
    except ValidationError as e:
        logger.debug("Dropping invalid message: %s", e)
        return None


def _extract_messages(body: Any) -> List[Message]:
    raw_messages = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(raw_messages, list):
        return []
    return [m for m in (_coerce_message(r) for r in raw_messages) if m is not None]


def parse_chat_request(body: Any) -> ChatRequest:
    """Normalize a decoded request body into a ChatRequest."""
    if isinstance(body, dict) and isinstance(body.get("id"), str) and isinstance(body.get("message"), dict):
        message = _coerce_message(body["message"])
        if message is not None:
            logger.info("Chat request for conversation %s", body["id"])
            return ChatRequest(conversation_id=body["id"], messages=[message])

    messages = _extract_messages(body)
    logger.info("Chat request with caller-supplied history (%d messages)", len(messages))
    return ChatRequest(messages=messages)
