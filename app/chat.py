"""Conversation orchestration: bounded multi-step tool calling with streamed output.

One chat turn runs as a generation task that feeds a queue of stream parts:

    model step -> tool calls resolved in order -> next model step ...

until a step produces no tool calls, a client-side tool call is left pending, or
the step budget is spent (partial output is returned, not an error).

The HTTP response only reads from the queue. A separate completion observer task
awaits the generation task and persists the conversation, so a client
disconnecting from the stream never cancels generation or the history write.
"""
import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional, Set

from app.chat_store import ConversationStore
from app.config import settings
from app.llm import (
    ChatModel,
    ReasoningDelta,
    StepFinish,
    TextDelta,
    ToolCallArgsDelta,
    ToolCallRequest,
    ToolCallStart,
    to_openai_messages,
)
from app.obs import Trace, span
from app.schemas import Message, ToolInvocation
from app.streaming import StreamPart, format_error, usage_dict
from app.tools import ToolError, ToolRegistry

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_SYSTEM_PROMPT = (
    "You are a helpful assistant. Check your knowledge base before answering any questions.\n"
    "Only respond to questions using information from tool calls.\n"
    "if no relevant information is found in the tool calls, respond, \"Sorry, I don't know.\""
)
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class ChatRun:
    """State of one chat turn shared by the generation task and its consumers."""

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id
        self.queue: "asyncio.Queue[Optional[StreamPart]]" = asyncio.Queue()
        self.history: List[Message] = []
        self.response_messages: List[Message] = []
        self.steps = 0
        self.task: Optional[asyncio.Task] = None
        self.completion: Optional[asyncio.Task] = None

    def emit(self, type: str, value) -> None:
        self.queue.put_nowait(StreamPart(type, value))

    def close(self) -> None:
        self.queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[str]:
        """Encoded stream parts for the client; safe to abandon mid-way."""
        while True:
            part = await self.queue.get()
            if part is None:
                return
            yield part.encode()


class ChatOrchestrator:
    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        conversations: ConversationStore,
        max_steps: int | None = None,
        max_duration: float | None = None,
    ):
        self.model = model
        self.tools = tools
        self.conversations = conversations
        self.max_steps = max_steps if max_steps is not None else settings.MAX_STEPS
        self.max_duration = max_duration if max_duration is not None else settings.MAX_DURATION_SECONDS
        self._pending: Set[asyncio.Task] = set()

    def start(
        self,
        messages: List[Message],
        system: str = DEFAULT_SYSTEM_PROMPT,
        conversation_id: Optional[str] = None,
    ) -> ChatRun:
        """Start a chat turn in the background and return its run handle.

        Args:
            messages: New message(s) when ``conversation_id`` is set (stored
                history is loaded and prepended), otherwise the full history.
            system: System prompt for every step.
            conversation_id: Conversation to load and persist, if any.

        Returns:
            ChatRun: Handle whose ``stream()`` yields the encoded response.
        """
        run = ChatRun(conversation_id)
        run.task = self._spawn(self._run(run, list(messages), system))
        run.completion = self._spawn(self._complete(run))
        return run

    async def drain(self) -> None:
        """Wait for every in-flight turn, including persistence."""
        pending = [t for t in self._pending if not t.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [t for t in self._pending if not t.done()]

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, run: ChatRun, messages: List[Message], system: str) -> List[Message]:
        trace = Trace("chat", input={"conversation_id": run.conversation_id, "messages": len(messages)})
        try:
            await asyncio.wait_for(self._generate(run, messages, system, trace), timeout=self.max_duration)
        except asyncio.TimeoutError:
            logger.warning("Chat turn exceeded %.0fs after %d steps", self.max_duration, run.steps)
            run.emit("error", format_error(f"response timed out after {self.max_duration:.0f} seconds"))
            raise
        except Exception as e:
            logger.exception("Chat generation failed after %d steps", run.steps)
            run.emit("error", format_error(e))
            raise
        finally:
            trace.end(output={"steps": run.steps, "messages": len(run.response_messages)})
            run.close()
        return run.response_messages

    async def _generate(self, run: ChatRun, messages: List[Message], system: str, trace: Trace) -> None:
        if run.conversation_id is not None:
            previous = await asyncio.to_thread(self.conversations.load, run.conversation_id)
            if previous and messages and messages[0].id == previous[-1].id:
                # client resubmitted its last message, e.g. with tool results filled in
                previous = previous[:-1]
            run.history = previous + messages
        else:
            run.history = messages
        working = list(run.history)
        declarations = self.tools.declarations()
        prompt_tokens = completion_tokens = 0
        finish_reason = "stop"

        for step in range(self.max_steps):
            run.steps = step + 1
            message = Message(role="assistant")
            run.emit("start_step", {"messageId": message.id})
            finish = StepFinish("stop")
            with span("chat.step", {"step": run.steps}):
                async for event in self.model.stream(system, to_openai_messages(working), declarations):
                    if isinstance(event, TextDelta):
                        message.content += event.text
                        run.emit("text", event.text)
                    elif isinstance(event, ReasoningDelta):
                        run.emit("reasoning", event.text)
                    elif isinstance(event, ToolCallStart):
                        run.emit(
                            "tool_call_streaming_start",
                            {"toolCallId": event.tool_call_id, "toolName": event.tool_name},
                        )
                    elif isinstance(event, ToolCallArgsDelta):
                        run.emit(
                            "tool_call_delta",
                            {"toolCallId": event.tool_call_id, "argsTextDelta": event.args_text_delta},
                        )
                    elif isinstance(event, StepFinish):
                        finish = event
                awaiting_client = await self._resolve_tool_calls(run, message, finish.tool_calls)

            run.response_messages.append(message)
            working.append(message)
            usage = usage_dict(finish.usage)
            prompt_tokens += usage["promptTokens"]
            completion_tokens += usage["completionTokens"]
            finish_reason = finish.finish_reason
            run.emit("finish_step", {"finishReason": finish_reason, "usage": usage, "isContinued": False})
            trace.event("step", {"step": run.steps, "finish_reason": finish_reason, "tool_calls": len(finish.tool_calls)})
            logger.info(
                "Step %d finished: reason=%s tool_calls=%d text_len=%d",
                run.steps, finish_reason, len(finish.tool_calls), len(message.content),
            )
            if not finish.tool_calls or awaiting_client:
                break
        else:
            logger.info("Step budget of %d exhausted; returning partial response", self.max_steps)

        run.emit(
            "finish_message",
            {
                "finishReason": finish_reason,
                "usage": {"promptTokens": prompt_tokens, "completionTokens": completion_tokens},
            },
        )

    async def _resolve_tool_calls(self, run: ChatRun, message: Message, calls: List[ToolCallRequest]) -> bool:
        """Resolve tool calls in order; returns True if a client-side call is pending."""
        awaiting_client = False
        for call in calls:
            invocation = ToolInvocation(tool_call_id=call.tool_call_id, tool_name=call.tool_name)
            message.tool_invocations.append(invocation)
            try:
                tool, params, invocation.args = self.tools.parse_call(call.tool_name, call.arguments)
            except ToolError as e:
                logger.warning("Rejected tool call %s: %s", call.tool_name, e)
                run.emit("tool_call", {"toolCallId": call.tool_call_id, "toolName": call.tool_name, "args": {}})
                self._set_result(run, invocation, {"error": format_error(e)})
                continue

            run.emit(
                "tool_call",
                {"toolCallId": call.tool_call_id, "toolName": call.tool_name, "args": invocation.args},
            )
            if tool.client_side:
                awaiting_client = True
                continue
            self._set_result(run, invocation, await self._execute(tool.execute, params, call.tool_name))
        return awaiting_client

    async def _execute(self, execute: Callable, params, tool_name: str):
        with span("chat.tool", {"tool": tool_name}):
            try:
                return await asyncio.to_thread(execute, params)
            except Exception as e:
                logger.warning("Tool %s failed: %s", tool_name, e)
                return {"error": format_error(e)}

    @staticmethod
    def _set_result(run: ChatRun, invocation: ToolInvocation, result) -> None:
        invocation.state = "result"
        invocation.result = result
        run.emit("tool_result", {"toolCallId": invocation.tool_call_id, "result": result})

    async def _complete(self, run: ChatRun) -> None:
        await asyncio.wait([run.task])
        if run.task.cancelled() or run.task.exception() is not None:
            logger.warning("Chat turn did not complete; conversation %s not saved", run.conversation_id)
            return
        if run.conversation_id is None:
            return
        messages = run.history + run.task.result()
        try:
            await asyncio.to_thread(self.conversations.save, run.conversation_id, messages)
        except Exception:
            logger.exception("Failed to save conversation %s", run.conversation_id)
