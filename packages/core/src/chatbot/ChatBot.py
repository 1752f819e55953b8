"""Chatbot that answers questions through the read-only ``read_data`` tool.

The model proposes SQL via OpenAI function calling. Every proposed query
goes through ReadDataTool, and the JSON ToolResponse (including validation
and execution failures) is handed back to the model so it can correct itself.
"""

import json
import logging
from collections.abc import AsyncGenerator, Callable
from typing import Any

import tiktoken  # type: ignore
from openai import AsyncOpenAI, BadRequestError  # type: ignore

from chatbot.models import Conversation, Message, ToolCallRecord
from chatbot.prompts import get_system_prompt
from chatbot.tools import TOOLS
from gate.ReadDataTool import ReadDataTool

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

# Reserve space for tools and the model response. gpt-4o-mini context is 128k.
MAX_CONTEXT_TOKENS = 128_000
MAX_REQUEST_TOKENS = MAX_CONTEXT_TOKENS - 5_000
FALLBACK_REQUEST_TOKENS = 12_000

# Tool rounds per user message before the model must answer without tools
MAX_TOOL_ROUNDS = 5

_CONTEXT_LENGTH_MSG = (
    "Conversation is too long. Please start a new conversation."
)

_TRUNCATION_NOTE = (
    "\n[Tool result truncated to fit the context window: {shown} of {total} "
    "characters shown. Run a narrower query to see the rest.]"
)


def _parse_arguments(arguments: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class ChatBot:
    """Conversational assistant backed by OpenAI with the read-only SQL tool."""

    def __init__(
        self,
        tool: ReadDataTool,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialize the chatbot.

        Args:
            tool: The gate every model-proposed query is sent through.
            api_key: OpenAI API key, used when no client is given.
            model: Chat completions model name.
            client: Preconfigured async OpenAI client.
        """
        self._tool = tool
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model
        self._conversations: dict[str, Conversation] = {}
        self._encoding: tiktoken.Encoding | None = None

    # ------------------------------------------------------------------
    # Conversation store
    # ------------------------------------------------------------------

    def create_conversation(self) -> Conversation:
        """Create a new conversation seeded with the system prompt."""
        conversation = Conversation()
        conversation.add_message(Message(role="system", content=get_system_prompt()))
        self._conversations[conversation.id] = conversation
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def list_conversations(self) -> list[Conversation]:
        return list(self._conversations.values())

    def delete_conversation(self, conversation_id: str) -> bool:
        """Remove a conversation; returns False if it did not exist."""
        return self._conversations.pop(conversation_id, None) is not None

    # ------------------------------------------------------------------
    # Context window management
    # ------------------------------------------------------------------

    def _get_encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self._model)
            except KeyError:
                self._encoding = tiktoken.get_encoding("o200k_base")
        return self._encoding

    @staticmethod
    def _count_tokens_for_messages(
        encoding: tiktoken.Encoding, messages: list[dict[str, Any]]
    ) -> int:
        """Return estimated token count for a list of API-style message dicts."""
        # Per cookbook: 3 tokens of overhead per message, plus content.
        tokens_per_message = 3
        num_tokens = 0
        for msg in messages:
            num_tokens += tokens_per_message
            for key, value in msg.items():
                if value is None:
                    continue
                if isinstance(value, str):
                    num_tokens += len(encoding.encode(value))
                elif key == "tool_calls" and isinstance(value, list):
                    num_tokens += len(encoding.encode(json.dumps(value)))
                else:
                    num_tokens += len(encoding.encode(str(value)))
        num_tokens += 3  # every reply is primed with the assistant header
        return num_tokens

    def _build_api_messages(
        self,
        conversation: Conversation,
        max_tokens: int = MAX_REQUEST_TOKENS,
    ) -> list[dict[str, Any]]:
        """Build the request with a fresh system prompt and the newest turns that fit.

        Whole turns (a user message plus the assistant and tool messages
        after it) are dropped oldest first, so tool-call chains stay valid.
        The newest turn is always kept, with its tool results shortened when
        it does not fit on its own. Does not mutate the conversation.
        """
        encoding = self._get_encoding()
        system_msg = {"role": "system", "content": get_system_prompt()}

        turns: list[list[Message]] = []
        for message in conversation.messages[1:]:
            if message.role == "user" or not turns:
                turns.append([message])
            else:
                turns[-1].append(message)

        tail: list[Message] = []
        for turn in reversed(turns):
            candidate = turn + tail
            msgs = [system_msg] + [m.to_api_dict() for m in candidate]
            if self._count_tokens_for_messages(encoding, msgs) > max_tokens:
                break
            tail = candidate

        if turns and not tail:
            # The current turn is always sent; its tool results are cut instead
            newest = [m.to_api_dict() for m in turns[-1]]
            return [system_msg] + self._shorten_tool_results(
                encoding, system_msg, newest, max_tokens
            )

        return [system_msg] + [m.to_api_dict() for m in tail]

    def _shorten_tool_results(
        self,
        encoding: tiktoken.Encoding,
        system_msg: dict[str, Any],
        messages: list[dict[str, Any]],
        max_tokens: int,
    ) -> list[dict[str, Any]]:
        """Halve tool message contents until the request fits ``max_tokens``.

        Each cut content ends with a note telling the model how much it saw.
        If the turn still does not fit once tool results are gone, it is
        returned as-is and the completion call reports the overflow.
        """
        originals = {
            i: msg["content"] for i, msg in enumerate(messages) if msg["role"] == "tool"
        }
        limit = max((len(content) for content in originals.values()), default=0)

        while limit > 0 and (
            self._count_tokens_for_messages(encoding, [system_msg] + messages)
            > max_tokens
        ):
            limit //= 2
            for i, content in originals.items():
                if len(content) > limit:
                    messages[i]["content"] = content[:limit] + _TRUNCATION_NOTE.format(
                        shown=limit, total=len(content)
                    )

        if originals and limit < max(len(c) for c in originals.values()):
            logger.warning("Tool results shortened to %d characters to fit the context", limit)
        return messages

    async def _create_stream(self, conversation: Conversation, allow_tools: bool):
        """Start a streaming completion, shrinking the context once if needed."""
        for budget in (MAX_REQUEST_TOKENS, FALLBACK_REQUEST_TOKENS):
            try:
                return await self._client.chat.completions.create(
                    model=self._model,
                    messages=self._build_api_messages(conversation, budget),
                    tools=TOOLS,
                    tool_choice="auto" if allow_tools else "none",
                    stream=True,
                )
            except BadRequestError as e:
                if "context_length_exceeded" not in str(e):
                    raise
                logger.warning("Context length exceeded with a %d token budget", budget)
        raise RuntimeError(_CONTEXT_LENGTH_MSG)

    # ------------------------------------------------------------------
    # Message processing
    # ------------------------------------------------------------------

    async def _process_message_events(
        self,
        user_message: str,
        conversation_id: str | None = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        conversation = self._conversations.get(conversation_id or "")
        if conversation is None:
            conversation = self.create_conversation()

        conversation.add_message(Message(role="user", content=user_message))

        for round_number in range(MAX_TOOL_ROUNDS + 1):
            yield {"type": "status", "status": "thinking"}

            stream = await self._create_stream(
                conversation, allow_tools=round_number < MAX_TOOL_ROUNDS
            )

            content_parts: list[str] = []
            tool_calls_acc: dict[int, dict[str, str]] = {}

            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta

                if delta.content:
                    content_parts.append(delta.content)
                    yield {"type": "token", "token": delta.content}

                for tc_delta in delta.tool_calls or []:
                    acc = tool_calls_acc.setdefault(
                        tc_delta.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if tc_delta.id:
                        acc["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            acc["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            acc["arguments"] += tc_delta.function.arguments

            full_content = "".join(content_parts) or None

            if not tool_calls_acc:
                conversation.add_message(Message(role="assistant", content=full_content))
                yield {
                    "type": "done",
                    "conversation_id": conversation.id,
                    "response": full_content or "",
                }
                return

            raw_tool_calls = [
                {
                    "id": tc["id"],
                    "type": "function",
                    "function": {"name": tc["name"], "arguments": tc["arguments"]},
                }
                for _, tc in sorted(tool_calls_acc.items())
            ]
            assistant_msg = Message(
                role="assistant", content=full_content, raw_tool_calls=raw_tool_calls
            )
            conversation.add_message(assistant_msg)

            records: list[ToolCallRecord] = []
            for raw_tc in raw_tool_calls:
                function = raw_tc["function"]
                args = _parse_arguments(function["arguments"]) or {}
                query = args.get("query", "")
                yield {"type": "tool_call", "query": query}

                payload = await self._execute_tool(function["name"], function["arguments"])
                result = json.dumps(payload, default=str)
                success = payload.get("success") is True
                yield {
                    "type": "tool_result",
                    "query": query,
                    "success": success,
                    "result": result,
                }

                records.append(ToolCallRecord(query=str(query), response=result, success=success))
                conversation.add_message(
                    Message(role="tool", content=result, tool_call_id=raw_tc["id"])
                )

            assistant_msg.tool_calls = records

    async def process_message(
        self,
        user_message: str,
        conversation_id: str | None = None,
        on_tool_call: Callable[[str], None] | None = None,
    ) -> tuple[str, str]:
        """Process a user message within a conversation.

        A new conversation is created when ``conversation_id`` is missing or
        unknown.

        Args:
            user_message: The message from the user.
            conversation_id: Optional existing conversation identifier.
            on_tool_call: Optional callback invoked with each SQL query
                before it is sent through the gate.

        Returns:
            A tuple of (conversation_id, assistant_response_text).
        """
        async for event in self._process_message_events(user_message, conversation_id):
            if event["type"] == "tool_call" and on_tool_call:
                on_tool_call(event.get("query", ""))
            if event["type"] == "done":
                return event["conversation_id"], event.get("response", "") or ""
        return "", ""

    async def process_message_stream(
        self,
        user_message: str,
        conversation_id: str | None = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Process a user message, yielding SSE-friendly event dicts.

        Yields events of the following types:
            - ``status``      - processing phase (e.g. "thinking")
            - ``token``       - a single content token from the model
            - ``tool_call``   - a SQL query is about to go through the gate
            - ``tool_result`` - the gate responded (includes success flag)
            - ``done``        - final response with full text
        """
        async for event in self._process_message_events(user_message, conversation_id):
            yield event

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def _execute_tool(self, function_name: str, arguments: str) -> dict[str, Any]:
        """Run a tool call and return the payload reported back to the model."""
        if function_name != ReadDataTool.name:
            return {"success": False, "message": f"Unknown tool: {function_name}"}

        args = _parse_arguments(arguments)
        if args is None:
            return {
                "success": False,
                "message": "Tool arguments must be a JSON object with a 'query' field",
            }

        response = await self._tool.run(args.get("query"))
        return response.to_dict()
