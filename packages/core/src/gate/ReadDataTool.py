"""The ``read_data`` tool: validate, execute and sanitize one query.

The tool never raises to its caller. Validation failures and execution
failures both come back as a ToolResponse with ``success=False`` and an
error tag, so hosts only need to branch on ``success``.
"""

import asyncio
import logging
import time
from typing import Any, Protocol

from gate.QueryValidator import QueryValidator
from gate.ResultSanitizer import ResultSanitizer
from gate.diagnostics import extract_diagnostic
from gate.models import (
    ExecutionFailure,
    ExecutionOutcome,
    ExecutionSuccess,
    ToolErrorCode,
    ToolResponse,
)

logger = logging.getLogger(__name__)


class QueryRunner(Protocol):
    """Anything that can run a SQL string and return rows as mappings."""

    def execute_query(self, query: str) -> list[dict[str, Any]]: ...


def _preview(query: object, limit: int) -> str:
    text = query if isinstance(query, str) else repr(query)
    return text[:limit] + ("..." if len(text) > limit else "")


def _elapsed(started: float) -> str:
    return f"{int((time.perf_counter() - started) * 1000)}ms"


class ReadDataTool:
    """Executes read-only SQL queries behind the validation gate."""

    name = "read_data"
    description = (
        "Executes a read-only SQL query on the database. Queries must begin "
        "with SELECT (or WITH for CTEs) and cannot contain any destructive "
        "SQL operations."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": (
                    "SQL read query to execute (must start with SELECT or WITH "
                    "and cannot contain destructive operations). Example: "
                    "SELECT * FROM movies WHERE genre = 'comedy'"
                ),
            },
        },
        "required": ["query"],
    }

    def __init__(
        self,
        executor: QueryRunner,
        validator: QueryValidator | None = None,
        sanitizer: ResultSanitizer | None = None,
    ) -> None:
        """Initialize the tool around an execution capability.

        Args:
            executor: Runs validated queries against the database.
            validator: Query validator; a default one is created if omitted.
            sanitizer: Result sanitizer; a default one is created if omitted.
        """
        self._executor = executor
        self._validator = validator or QueryValidator()
        self._sanitizer = sanitizer or ResultSanitizer()

    async def run(self, query: object) -> ToolResponse:
        """Validate and execute ``query``, returning a structured response.

        Args:
            query: The untrusted SQL text supplied by the caller.

        Returns:
            A ToolResponse. ``error`` is SECURITY_VALIDATION_FAILED when the
            query was rejected before reaching the database, and
            QUERY_EXECUTION_FAILED when the database reported a failure.
        """
        started = time.perf_counter()

        verdict = self._validator.validate(query)
        if not verdict.valid:
            logger.warning(
                "Security validation failed for query: %s", _preview(query, 100)
            )
            return ToolResponse(
                success=False,
                message=f"Security validation failed: {verdict.reason}",
                error=ToolErrorCode.SECURITY_VALIDATION_FAILED,
                execution_time=_elapsed(started),
            )

        logger.info("Executing validated SELECT query: %s", _preview(query, 200))
        outcome = await self._execute(query)

        if isinstance(outcome, ExecutionFailure):
            return ToolResponse(
                success=False,
                message=f"Failed to execute query: {outcome.message}",
                error=ToolErrorCode.QUERY_EXECUTION_FAILED,
                details=outcome.diagnostic,
                execution_time=_elapsed(started),
            )

        message = (
            "Query executed successfully. "
            f"Retrieved {outcome.returned_row_count} record(s)"
        )
        if outcome.returned_row_count != outcome.total_row_count:
            message += f" (limited from {outcome.total_row_count} total records)"

        return ToolResponse(
            success=True,
            message=message,
            data=outcome.rows,
            record_count=outcome.returned_row_count,
            total_records=outcome.total_row_count,
            execution_time=_elapsed(started),
        )

    async def _execute(self, query: str) -> ExecutionOutcome:
        """Run the query on a worker thread and sanitize the rows."""
        try:
            rows = await asyncio.to_thread(self._executor.execute_query, query)
        except Exception as e:
            logger.exception("Error executing query")
            return ExecutionFailure(
                diagnostic=extract_diagnostic(e),
                fallback_message=str(e) or "Unknown error occurred",
            )

        sanitized = self._sanitizer.sanitize(rows)
        total = len(rows) if isinstance(rows, (list, tuple)) else 0
        return ExecutionSuccess(
            rows=sanitized,
            total_row_count=total,
            returned_row_count=len(sanitized),
        )
