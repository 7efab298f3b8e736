"""Pydantic schemas shared by the API, the conversation store, and the orchestrator.

Defines:
- ToolInvocation: one tool call made by the assistant, with its result once resolved.
- Message: one entry of a conversation's history.
- ChatRequest: the normalized form of an inbound chat request (either shape).
- PostCreate / PostOut / Greeting: posts API contracts.
"""
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.utils import generate_message_id

Role = Literal["user", "assistant", "tool"]


class ToolInvocation(BaseModel):
    """A tool call requested by the model.

    Attributes:
        tool_call_id: Provider-assigned call id, used to pair calls and results.
        tool_name: Name of the tool in the registry.
        args: Arguments supplied by the model.
        state: ``call`` while unresolved, ``result`` once a result is available.
        result: Tool output (or ``{"error": ...}``) when state is ``result``.
    """
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId")
    tool_name: str = Field(alias="toolName")
    args: dict = Field(default_factory=dict)
    state: Literal["call", "result"] = "call"
    result: Any = None


class Message(BaseModel):
    """A conversation message.

    Assistant messages may carry tool invocations. ``tool`` messages are sent by
    clients to supply results for client-side tools.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_message_id)
    role: Role
    content: str = ""
    tool_invocations: List[ToolInvocation] = Field(default_factory=list, alias="toolInvocations")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")


class ChatRequest(BaseModel):
    """Normalized chat request.

    Attributes:
        conversation_id: Set for the id + message shape; history is loaded and saved.
        messages: The single new message, or the full client-supplied history.
    """
    conversation_id: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)

    @property
    def persisted(self) -> bool:
        return self.conversation_id is not None


class PostCreate(BaseModel):
    name: str = Field(..., min_length=1)


class PostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class Greeting(BaseModel):
    greeting: str
