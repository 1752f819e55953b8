"""Pydantic request/response models for the API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReadDataRequest(BaseModel):
    """Body for the ``read_data`` tool endpoint.

    ``query`` is deliberately untyped; the gate itself rejects anything
    that is not a non-empty string.
    """

    query: Any = None


class ErrorDiagnosticSchema(BaseModel):
    """Diagnostic chain reported for a failed execution."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    message: str | None = None
    code: str | None = None
    number: int | None = None
    state: Any = None
    severity: int | None = Field(default=None, alias="class")
    server_name: str | None = Field(default=None, alias="serverName")
    proc_name: str | None = Field(default=None, alias="procName")
    line_number: int | None = Field(default=None, alias="lineNumber")
    original_error: "ErrorDiagnosticSchema | None" = Field(
        default=None, alias="originalError"
    )
    preceding_errors: "list[ErrorDiagnosticSchema] | None" = Field(
        default=None, alias="precedingErrors"
    )


class ToolResponseSchema(BaseModel):
    """Result of one ``read_data`` invocation; branch on ``success``."""

    # BLOB values (sqlite bytes) go out as base64 instead of failing UTF-8 encoding
    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="base64")

    success: bool
    message: str
    data: list[Any] | None = None
    record_count: int | None = Field(default=None, alias="recordCount")
    total_records: int | None = Field(default=None, alias="totalRecords")
    error: str | None = None
    details: ErrorDiagnosticSchema | None = None
    execution_time: str = Field(alias="executionTime")


class ToolDescription(BaseModel):
    """A tool offered by this host."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(alias="inputSchema")


class ChatRequest(BaseModel):
    """Body for the chat endpoint."""

    message: str


class ChatResponse(BaseModel):
    """Response from the chat endpoint."""

    conversation_id: str
    response: str
    remaining_requests: int


class MessageSchema(BaseModel):
    """A single message within a conversation."""

    role: str
    content: str | None
    timestamp: str


class ConversationSummary(BaseModel):
    """Lightweight representation of a conversation."""

    id: str
    created_at: str
    last_message: str


class ConversationDetail(ConversationSummary):
    """Full conversation including its messages."""

    messages: list[MessageSchema]


class RateLimitStatus(BaseModel):
    """Current rate-limit status for the calling API key."""

    limit: int
    remaining: int
    reset: str
