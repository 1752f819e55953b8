"""API route definitions."""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from api.auth import require_api_key
from api.rate_limit import get_limit, limiter, rate_limit
from api.schemas import (
    ChatRequest,
    ChatResponse,
    ConversationDetail,
    ConversationSummary,
    MessageSchema,
    RateLimitStatus,
    ReadDataRequest,
    ToolDescription,
    ToolResponseSchema,
)
from chatbot.ChatBot import ChatBot
from chatbot.models import Conversation
from gate.ReadDataTool import ReadDataTool

router = APIRouter()


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@router.get("/health")
async def health_check():
    """Basic liveness probe -- no auth required."""
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _tool_dependency(request: Request) -> ReadDataTool:
    """Retrieve the shared ReadDataTool from app state."""
    return request.app.state.tool


def _bot_dependency(request: Request) -> ChatBot:
    """Retrieve the ChatBot from app state, or 503 when chat is not configured."""
    bot = getattr(request.app.state, "bot", None)
    if bot is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat is not configured (set OPENAI_API_KEY)",
        )
    return bot


def _get_conversation_or_404(bot: ChatBot, conversation_id: str) -> Conversation:
    conversation = bot.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )
    return conversation


def _summary(conversation: Conversation) -> ConversationSummary:
    return ConversationSummary(
        id=conversation.id,
        created_at=conversation.created_at.isoformat(),
        last_message=conversation.last_message.isoformat(),
    )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@router.get("/tools", response_model=list[ToolDescription])
async def list_tools(api_key: str = Depends(require_api_key)):
    """Describe the tools this host exposes."""
    return [
        ToolDescription(
            name=ReadDataTool.name,
            description=ReadDataTool.description,
            input_schema=ReadDataTool.input_schema,
        )
    ]


@router.post(
    "/tools/read_data",
    response_model=ToolResponseSchema,
    response_model_exclude_none=True,
)
async def read_data(
    body: ReadDataRequest,
    api_key: str = Depends(rate_limit),
    tool: ReadDataTool = Depends(_tool_dependency),
):
    """Run one query through the read-only gate.

    Validation and execution failures are reported in the body with
    ``success: false``; the HTTP status is 200 either way. This endpoint is
    rate-limited.
    """
    result = await tool.run(body.query)
    return ToolResponseSchema.model_validate(result.to_dict())


# ---------------------------------------------------------------------------
# Conversation CRUD
# ---------------------------------------------------------------------------


@router.post(
    "/conversations",
    response_model=ConversationSummary,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    api_key: str = Depends(require_api_key),
    bot: ChatBot = Depends(_bot_dependency),
):
    """Create a new conversation."""
    return _summary(bot.create_conversation())


@router.get("/conversations", response_model=list[ConversationSummary])
async def list_conversations(
    api_key: str = Depends(require_api_key),
    bot: ChatBot = Depends(_bot_dependency),
):
    """List all active conversations."""
    return [_summary(c) for c in bot.list_conversations()]


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: str,
    api_key: str = Depends(require_api_key),
    bot: ChatBot = Depends(_bot_dependency),
):
    """Get a conversation with its message history (system prompt excluded)."""
    conversation = _get_conversation_or_404(bot, conversation_id)
    return ConversationDetail(
        **_summary(conversation).model_dump(),
        messages=[
            MessageSchema(
                role=m.role,
                content=m.content,
                timestamp=m.timestamp.isoformat(),
            )
            for m in conversation.messages
            if m.role != "system"
        ],
    )


@router.delete(
    "/conversations/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_conversation(
    conversation_id: str,
    api_key: str = Depends(require_api_key),
    bot: ChatBot = Depends(_bot_dependency),
):
    """Delete a conversation."""
    if not bot.delete_conversation(conversation_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Conversation not found",
        )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/conversations/{conversation_id}/chat",
    response_model=ChatResponse,
)
async def chat(
    conversation_id: str,
    body: ChatRequest,
    api_key: str = Depends(rate_limit),
    bot: ChatBot = Depends(_bot_dependency),
):
    """Send a message and receive the assistant's reply. Rate-limited."""
    _get_conversation_or_404(bot, conversation_id)

    conv_id, reply = await bot.process_message(
        body.message,
        conversation_id=conversation_id,
    )

    return ChatResponse(
        conversation_id=conv_id,
        response=reply,
        remaining_requests=limiter.remaining(api_key, get_limit()),
    )


@router.post("/conversations/{conversation_id}/chat/stream")
async def chat_stream(
    conversation_id: str,
    body: ChatRequest,
    api_key: str = Depends(rate_limit),
    bot: ChatBot = Depends(_bot_dependency),
):
    """Send a message and stream the reply as Server-Sent Events.

    Each event has an ``event`` field (status, token, tool_call,
    tool_result, done, error) and a JSON ``data`` payload. Rate-limited.
    """
    _get_conversation_or_404(bot, conversation_id)

    async def _event_generator():
        try:
            async for event in bot.process_message_stream(
                body.message, conversation_id=conversation_id
            ):
                yield f"event: {event['type']}\ndata: {json.dumps(event)}\n\n"
        except Exception as exc:  # noqa: BLE001
            error_event = {"type": "error", "message": str(exc)}
            yield f"event: error\ndata: {json.dumps(error_event)}\n\n"

    return StreamingResponse(
        _event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            **limiter.headers(api_key, get_limit()),
        },
    )


# ---------------------------------------------------------------------------
# Rate-limit status
# ---------------------------------------------------------------------------


@router.get("/rate-limit", response_model=RateLimitStatus)
async def get_rate_limit_status(
    api_key: str = Depends(require_api_key),
):
    """Return the current rate-limit status for the calling API key."""
    limit = get_limit()
    return RateLimitStatus(
        limit=limit,
        remaining=limiter.remaining(api_key, limit),
        reset=limiter.reset_time(api_key),
    )
