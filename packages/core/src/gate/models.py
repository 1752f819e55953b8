"""Data models shared by the read-only query gate.

Everything here is produced once per request and discarded afterwards.
``to_dict`` methods render the camelCase wire contract consumed by tool
hosts, omitting fields that were never set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToolErrorCode(str, Enum):
    """Tags distinguishing the two terminal failure kinds."""

    SECURITY_VALIDATION_FAILED = "SECURITY_VALIDATION_FAILED"
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"


@dataclass(frozen=True)
class ValidationVerdict:
    """Outcome of validating a single query.

    ``reason`` is set exactly when ``valid`` is False.
    """

    valid: bool
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.valid == (self.reason is not None):
            raise ValueError("reason must be given iff the verdict is invalid")

    @classmethod
    def ok(cls) -> "ValidationVerdict":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationVerdict":
        return cls(valid=False, reason=reason)


@dataclass
class ErrorDiagnostic:
    """Structured description of a failed execution.

    Mirrors the chain a database driver reports: the root error, at most
    one wrapped original error, and the server messages that preceded it.
    ``severity`` is the server's error class and is rendered as ``class``.
    """

    name: str | None = None
    message: str | None = None
    code: str | None = None
    number: int | None = None
    state: Any = None
    severity: int | None = None
    server_name: str | None = None
    proc_name: str | None = None
    line_number: int | None = None
    original_error: "ErrorDiagnostic | None" = None
    preceding_errors: "list[ErrorDiagnostic] | None" = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in (
            ("name", self.name),
            ("message", self.message),
            ("code", self.code),
            ("number", self.number),
            ("state", self.state),
            ("class", self.severity),
            ("serverName", self.server_name),
            ("procName", self.proc_name),
            ("lineNumber", self.line_number),
        ):
            if value is not None:
                result[key] = value

        if self.original_error is not None:
            result["originalError"] = self.original_error.to_dict()
        if self.preceding_errors is not None:
            result["precedingErrors"] = [e.to_dict() for e in self.preceding_errors]
        return result


@dataclass
class ExecutionSuccess:
    """Rows returned by the execution capability, after sanitization."""

    rows: list[Any]
    total_row_count: int
    returned_row_count: int


@dataclass
class ExecutionFailure:
    """An execution capability failure, already converted to a diagnostic."""

    diagnostic: ErrorDiagnostic
    fallback_message: str = "Unknown error occurred"

    @property
    def message(self) -> str:
        return self.diagnostic.message or self.fallback_message


ExecutionOutcome = ExecutionSuccess | ExecutionFailure


@dataclass
class ToolResponse:
    """The externally visible result of one ``read_data`` invocation.

    Consumers must branch on ``success``; every other field is informational.
    """

    success: bool
    message: str
    execution_time: str
    data: list[Any] | None = None
    record_count: int | None = None
    total_records: int | None = None
    error: ToolErrorCode | None = None
    details: ErrorDiagnostic | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize into the JSON-compatible wire shape."""
        result: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        if self.record_count is not None:
            result["recordCount"] = self.record_count
        if self.total_records is not None:
            result["totalRecords"] = self.total_records
        if self.error is not None:
            result["error"] = self.error.value
        if self.details is not None:
            result["details"] = self.details.to_dict()
        result["executionTime"] = self.execution_time
        return result
