"""Data models for chatbot messages and conversations."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ToolCallRecord:
    """A ``read_data`` call made during a turn and its JSON ToolResponse."""

    query: str
    response: str
    success: bool


@dataclass
class Message:
    """A single message within a conversation.

    Attributes:
        role: One of "system", "user", "assistant", or "tool".
        content: The text content (None for assistant messages that only
            carry tool calls).
        tool_calls: Records of gate calls made for this assistant message.
        tool_call_id: The tool_call_id for tool-role messages.
        timestamp: When the message was created.
    """

    role: str
    content: str | None = None
    tool_calls: list[ToolCallRecord] | None = None
    tool_call_id: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    # Tool calls exactly as the model sent them; replayed on later requests
    raw_tool_calls: list[dict[str, Any]] | None = field(default=None, repr=False)

    def to_api_dict(self) -> dict[str, Any]:
        """Serialize into the dict format expected by the chat completions API."""
        if self.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id,
                "content": self.content or "",
            }

        result: dict[str, Any] = {"role": self.role}
        if self.content is not None:
            result["content"] = self.content
        if self.raw_tool_calls:
            result["tool_calls"] = self.raw_tool_calls
        return result


class Conversation:
    """An ordered sequence of messages with a unique identifier."""

    def __init__(self) -> None:
        self.id: str = uuid.uuid4().hex
        self.messages: list[Message] = []
        self.created_at: datetime = datetime.now()
        self.last_message: datetime = self.created_at

    def add_message(self, message: Message) -> None:
        """Append a message and update the last_message timestamp."""
        self.messages.append(message)
        self.last_message = message.timestamp
