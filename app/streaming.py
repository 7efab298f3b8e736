"""Data stream protocol used for chat responses.

Each part is one line ``<code>:<json>\\n``, compatible with AI SDK data stream
clients (``x-vercel-ai-data-stream: v1``):

    0  text delta                 g  reasoning delta
    b  tool call streaming start  c  tool call argument delta
    9  tool call                  a  tool result
    3  error                      f  start step
    e  finish step                d  finish message (completion marker)
"""
import json
from typing import Any, NamedTuple

DATA_STREAM_HEADERS = {
    "x-vercel-ai-data-stream": "v1",
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}

PART_CODES = {
    "text": "0",
    "reasoning": "g",
    "tool_call_streaming_start": "b",
    "tool_call_delta": "c",
    "tool_call": "9",
    "tool_result": "a",
    "error": "3",
    "start_step": "f",
    "finish_step": "e",
    "finish_message": "d",
}


class StreamPart(NamedTuple):
    type: str
    value: Any

    def encode(self) -> str:
        return f"{PART_CODES[self.type]}:{json.dumps(self.value, separators=(',', ':'), default=str)}\n"


def format_error(error: Any) -> str:
    """Normalize an arbitrary error value into a message for the stream."""
    if error is None:
        return "unknown error"
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error)
    return json.dumps(error, default=str)


def usage_dict(usage: Any) -> dict:
    """Token usage in the stream's shape; zeros when the provider reported none."""
    return {
        "promptTokens": getattr(usage, "prompt_tokens", 0) or 0,
        "completionTokens": getattr(usage, "completion_tokens", 0) or 0,
    }
