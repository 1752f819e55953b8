"""Post-execution clean-up of result sets before they leave the gate."""

import logging
import re
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger(__name__)

MAX_RECORDS = 10_000

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9 _.\-]")


class ResultSanitizer:
    """Bounds a row set and strips suspicious characters from column names."""

    def __init__(self, max_records: int = MAX_RECORDS) -> None:
        self._max_records = max_records

    def sanitize(self, rows: Any) -> list[Any]:
        """Return at most ``max_records`` rows with sanitized keys.

        Anything that is not a list or tuple yields an empty list. Callers
        detect truncation by comparing the result length with the input.
        """
        if not isinstance(rows, (list, tuple)):
            return []

        if len(rows) > self._max_records:
            logger.warning(
                "Query returned %d records, limiting to %d",
                len(rows),
                self._max_records,
            )
            rows = rows[: self._max_records]

        return [self._sanitize_record(record) for record in rows]

    @staticmethod
    def _sanitize_record(record: Any) -> Any:
        if not isinstance(record, Mapping):
            return record

        sanitized: dict[str, Any] = {}
        for key, value in record.items():
            key = str(key)
            clean_key = _UNSAFE_KEY_CHARS.sub("", key)
            if clean_key != key:
                logger.warning("Column name sanitized: %r -> %r", key, clean_key)
            sanitized[clean_key] = value
        return sanitized
