"""Chat model client over OpenAI streaming chat completions.

Provides:
- Model events (TextDelta, ReasoningDelta, ToolCallStart, ToolCallArgsDelta,
  StepFinish) yielded by a ChatModel for one generation step.
- OpenAIChatModel: streams one completion, accumulating tool-call fragments by index.
- to_openai_messages: converts stored conversation messages to the provider payload.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Union

from openai import AsyncOpenAI

from app.config import settings
from app.schemas import Message

logger = logging.getLogger(__name__)


@dataclass
class TextDelta:
    text: str


@dataclass
class ReasoningDelta:
    text: str


@dataclass
class ToolCallStart:
    tool_call_id: str
    tool_name: str


@dataclass
class ToolCallArgsDelta:
    tool_call_id: str
    args_text_delta: str


@dataclass
class ToolCallRequest:
    tool_call_id: str
    tool_name: str
    arguments: str  # raw JSON text as produced by the model


@dataclass
class StepFinish:
    finish_reason: str
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    usage: Any = None


ModelEvent = Union[TextDelta, ReasoningDelta, ToolCallStart, ToolCallArgsDelta, StepFinish]


class ChatModel(Protocol):
    def stream(
        self, system: str, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> AsyncIterator[ModelEvent]: ...


def make_async_client(api_key: str = "") -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key or settings.OPENAI_API_KEY)


class OpenAIChatModel:
    """ChatModel backed by ``chat.completions.create(stream=True)``."""

    def __init__(self, client: AsyncOpenAI, model: str = ""):
        self.client = client
        self.model = model or settings.OPENAI_MODEL

    async def stream(
        self, system: str, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> AsyncIterator[ModelEvent]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            kwargs["tools"] = tools
        stream = await self.client.chat.completions.create(**kwargs)

        calls: Dict[int, Dict[str, str]] = {}
        finish_reason: Optional[str] = None
        usage = None
        async for chunk in stream:
            # Final chunk with usage has empty choices
            if getattr(chunk, "usage", None) is not None:
                usage = chunk.usage
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta
            if choice.finish_reason:
                finish_reason = choice.finish_reason

            # Some OpenAI-compatible providers stream reasoning separately
            reasoning = getattr(delta, "reasoning_content", None)
            if reasoning:
                yield ReasoningDelta(reasoning)
            if delta.content:
                yield TextDelta(delta.content)

            for tc in delta.tool_calls or []:
                entry = calls.get(tc.index)
                if entry is None:
                    entry = calls[tc.index] = {"id": tc.id or "", "name": "", "args": ""}
                    if tc.function and tc.function.name:
                        entry["name"] = tc.function.name
                    yield ToolCallStart(entry["id"], entry["name"])
                else:
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function and tc.function.name:
                        entry["name"] = tc.function.name
                if tc.function and tc.function.arguments:
                    entry["args"] += tc.function.arguments
                    yield ToolCallArgsDelta(entry["id"], tc.function.arguments)

        tool_calls = [
            ToolCallRequest(calls[i]["id"], calls[i]["name"], calls[i]["args"]) for i in sorted(calls)
        ]
        yield StepFinish(finish_reason or ("tool_calls" if tool_calls else "stop"), tool_calls, usage)


def _tool_results_by_call_id(messages: List[Message]) -> Dict[str, Any]:
    results: Dict[str, Any] = {}
    for m in messages:
        for inv in m.tool_invocations:
            if inv.state == "result":
                results[inv.tool_call_id] = inv.result
    return results


def _as_text(result: Any) -> str:
    return result if isinstance(result, str) else json.dumps(result, default=str)


def to_openai_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    """Convert conversation history to chat completion messages.

    Results supplied later by ``tool`` messages are paired with the assistant
    call they answer; calls that never received a result are left out, since the
    provider rejects tool calls without a matching tool message.
    """
    results = _tool_results_by_call_id(messages)
    out: List[Dict[str, Any]] = []
    for m in messages:
        if m.role == "user":
            out.append({"role": "user", "content": m.content})
        elif m.role == "assistant":
            resolved = [inv for inv in m.tool_invocations if inv.tool_call_id in results]
            msg: Dict[str, Any] = {"role": "assistant", "content": m.content or None}
            if resolved:
                msg["tool_calls"] = [
                    {
                        "id": inv.tool_call_id,
                        "type": "function",
                        "function": {"name": inv.tool_name, "arguments": _as_text(inv.args)},
                    }
                    for inv in resolved
                ]
            if msg["content"] is None and not resolved:
                continue
            out.append(msg)
            for inv in resolved:
                out.append(
                    {
                        "role": "tool",
                        "tool_call_id": inv.tool_call_id,
                        "content": _as_text(results[inv.tool_call_id]),
                    }
                )
        # tool messages are folded into the assistant call they answer
    return out
