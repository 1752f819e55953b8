"""Structured failures raised by execution capabilities."""

from typing import Any


class QueryExecutionError(Exception):
    """A database refused or failed to run a query.

    Carries the fields a driver reports about the failure so callers can
    tell a timeout from a missing object without parsing messages.
    ``original_error`` is the wrapped lower-level error, and
    ``preceding_errors`` holds messages the server emitted before it.
    """

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        code: str | None = None,
        number: int | None = None,
        state: Any = None,
        severity: int | None = None,
        server_name: str | None = None,
        proc_name: str | None = None,
        line_number: int | None = None,
        original_error: BaseException | None = None,
        preceding_errors: list[BaseException] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.name = name or type(self).__name__
        self.code = code
        self.number = number
        self.state = state
        self.severity = severity
        self.server_name = server_name
        self.proc_name = proc_name
        self.line_number = line_number
        self.original_error = original_error
        self.preceding_errors = preceding_errors
