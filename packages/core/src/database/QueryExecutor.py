"""SQLite execution capability for the read-only query gate.

The executor runs exactly the text it is given. Validation is the gate's
job; this layer only turns driver failures into QueryExecutionError.
"""

import sqlite3
from typing import Any

from database.errors import QueryExecutionError


class QueryExecutor:
    """Executes queries against an SQLite connection and returns row mappings.

    The connection is expected to be opened read-only (see
    DatabaseProvider), so a statement that slips past validation still
    cannot modify data.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def execute_query(self, query: str) -> list[dict[str, Any]]:
        """Execute a query and return all rows keyed by column name.

        Args:
            query: A SQL statement that has already passed validation.

        Returns:
            A list of dicts, one per row. Duplicate column names keep the
            right-most value.

        Raises:
            QueryExecutionError: If SQLite reports an error.
        """
        cursor = self._connection.cursor()
        try:
            cursor.execute(query)
            if cursor.description is None:
                return []
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise QueryExecutionError(
                str(e),
                name=type(e).__name__,
                code=getattr(e, "sqlite_errorname", None),
                number=getattr(e, "sqlite_errorcode", None),
            ) from e
        finally:
            cursor.close()
