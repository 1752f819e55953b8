"""SQLAlchemy execution capability for server databases (SQL Server, Postgres, ...).

Driver failures arrive wrapped in ``sqlalchemy.exc.DBAPIError``. The wrapper
becomes the root of the QueryExecutionError and the driver exception its
``original_error``, which gives the same two-level chain the gate reports
for any other driver.
"""

from typing import Any

from sqlalchemy import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from database.errors import QueryExecutionError

# Attribute names drivers use for structured error fields, in lookup order.
# pymssql exposes number/severity/state/line/procname/srvname on its
# database exceptions; other drivers expose a subset or none.
_FIELD_ATTRIBUTES = {
    "number": ("number", "errno", "sqlite_errorcode"),
    "state": ("state", "sqlstate", "pgcode"),
    "severity": ("severity",),
    "server_name": ("srvname", "server_name"),
    "proc_name": ("procname", "proc_name"),
    "line_number": ("line", "line_number"),
}


def _probe(error: BaseException, names: tuple[str, ...]) -> Any:
    for name in names:
        value = getattr(error, name, None)
        if value is not None:
            return value
    return None


def _driver_message(error: BaseException) -> str:
    text = getattr(error, "text", None)
    if isinstance(text, bytes):
        return text.decode("utf-8", errors="replace").strip()
    if isinstance(text, str) and text:
        return text.strip()

    # DB-API drivers commonly raise (number, message) or (sqlstate, message)
    args = error.args
    if len(args) >= 2 and isinstance(args[1], (str, bytes)):
        message = args[1]
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        return message.strip()
    return str(error)


def driver_error_to_execution_error(error: BaseException) -> QueryExecutionError:
    """Describe a raw DB-API exception as a QueryExecutionError."""
    fields = {key: _probe(error, names) for key, names in _FIELD_ATTRIBUTES.items()}

    args = error.args
    if fields["number"] is None and args and isinstance(args[0], int):
        fields["number"] = args[0]
    if fields["state"] is None and len(args) >= 2 and isinstance(args[0], str):
        # pyodbc puts the SQLSTATE first
        fields["state"] = args[0]

    return QueryExecutionError(
        _driver_message(error),
        name=type(error).__name__,
        code=getattr(error, "sqlite_errorname", None),
        **fields,
    )


class EngineQueryExecutor:
    """Executes queries through a SQLAlchemy engine.

    The query text is passed to the driver as-is, without SQLAlchemy's
    bind-parameter parsing, so literals such as ``'10:30'`` are untouched,
    and with no parameter collection, so ``%`` reaches pyformat drivers as-is.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def execute_query(self, query: str) -> list[dict[str, Any]]:
        """Execute a query and return all rows keyed by column name.

        Raises:
            QueryExecutionError: If the driver or SQLAlchemy reports an error.
        """
        try:
            with self._engine.connect() as conn:
                result = conn.execution_options(no_parameters=True).exec_driver_sql(
                    query
                )
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except DBAPIError as e:
            original = (
                driver_error_to_execution_error(e.orig)
                if e.orig is not None
                else None
            )
            raise QueryExecutionError(
                original.message if original else str(e),
                name=type(e).__name__,
                code=e.code,
                original_error=original,
            ) from e
        except SQLAlchemyError as e:
            raise QueryExecutionError(
                str(e), name=type(e).__name__, code=e.code
            ) from e
