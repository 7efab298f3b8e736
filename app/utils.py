"""Utility helpers for text chunking and identifier generation.

This module provides:
- generate_chunks: naive period-based splitting of source text into retrieval chunks
- generate_id: random alphanumeric identifier for database rows
- generate_message_id: prefixed identifier for server-generated chat messages
- utcnow: naive UTC timestamp for database columns stored without a time zone
"""
import secrets
import string
from datetime import datetime, timezone
from typing import List

ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
MESSAGE_ID_PREFIX = "msgs"
MESSAGE_ID_SIZE = 16


def generate_chunks(text: str) -> List[str]:
    """Split text into chunks on the literal period character.

    The input is trimmed once; segments are kept verbatim (no per-segment
    trimming) and only empty segments are dropped, so consecutive periods do
    not produce empty chunks.

    Args:
        text: Raw source text.

    Returns:
        List[str]: Chunks in original text order.
    """
    return [segment for segment in text.strip().split(".") if segment != ""]


def generate_id(size: int = 21) -> str:
    """Return a random alphanumeric identifier of ``size`` characters."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(size))


def generate_message_id() -> str:
    """Return an id for a server-generated message, e.g. ``msgs-3fJk...``."""
    return f"{MESSAGE_ID_PREFIX}-{generate_id(MESSAGE_ID_SIZE)}"


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching the ``DateTime`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
