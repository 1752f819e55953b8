"""Static, text-level validation of untrusted SQL before execution.

This is a heuristic gate, not a SQL parser. Checks run in a fixed order and
the first failure wins:

1. type / emptiness
2. comment stripping and whitespace normalization
3. SELECT / WITH prefix
4. whole-word keyword blocklist
5. dangerous-pattern scan over the original text
6. multiple statements
7. character-conversion functions
8. length cap

The layers overlap on purpose. A query that slips past one of them (for
example by hiding a keyword in a comment) is usually caught by another.
"""

import logging
import re

from gate.models import ValidationVerdict

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 10_000

# Keywords that indicate a mutating or administrative statement.
# Matched as whole words so column names like DROPDOWN_FLAG still pass.
DANGEROUS_KEYWORDS = (
    "DELETE",
    "DROP",
    "UPDATE",
    "INSERT",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "EXEC",
    "EXECUTE",
    "MERGE",
    "REPLACE",
    "GRANT",
    "REVOKE",
    "COMMIT",
    "ROLLBACK",
    "TRANSACTION",
    "BEGIN",
    "DECLARE",
    "SET",
    "USE",
    "BACKUP",
    "RESTORE",
    "KILL",
    "SHUTDOWN",
    "WAITFOR",
    "OPENROWSET",
    "OPENDATASOURCE",
    "OPENQUERY",
    "OPENXML",
    "BULK",
)

_KEYWORD_PATTERNS = tuple(
    (keyword, re.compile(rf"(?<![A-Za-z0-9_]){keyword}(?![A-Za-z0-9_])"))
    for keyword in DANGEROUS_KEYWORDS
)

_MUTATING = "DELETE|DROP|UPDATE|INSERT|ALTER|CREATE|TRUNCATE|EXEC|EXECUTE"

# Scanned against the raw query so comment and whitespace structure is visible.
DANGEROUS_PATTERNS = tuple(
    re.compile(pattern, flags)
    for pattern, flags in (
        # Statement stacking with a mutating keyword
        (rf";\s*({_MUTATING}|MERGE|REPLACE|GRANT|REVOKE)", re.IGNORECASE),
        # UNION injection carrying a mutating keyword
        (rf"UNION\s+(?:ALL\s+)?SELECT.*?({_MUTATING})", re.IGNORECASE),
        # Mutating keywords hidden in comments
        (rf"--.*?({_MUTATING})", re.IGNORECASE),
        (rf"/\*.*?({_MUTATING}).*?\*/", re.IGNORECASE),
        # Dynamic SQL and stored procedures
        (r"EXEC\s*\(", re.IGNORECASE),
        (r"EXECUTE\s*\(", re.IGNORECASE),
        (r"sp_", re.IGNORECASE),
        (r"xp_", re.IGNORECASE),
        # Bulk loads and external rowsets
        (r"BULK\s+INSERT", re.IGNORECASE),
        (r"OPENROWSET", re.IGNORECASE),
        (r"OPENDATASOURCE", re.IGNORECASE),
        # System and environment introspection
        (r"@@", 0),
        (r"SYSTEM_USER", re.IGNORECASE),
        (r"USER_NAME", re.IGNORECASE),
        (r"DB_NAME", re.IGNORECASE),
        (r"HOST_NAME", re.IGNORECASE),
        # Time delays
        (r"WAITFOR\s+DELAY", re.IGNORECASE),
        (r"WAITFOR\s+TIME", re.IGNORECASE),
        # A second statement after a semicolon
        (r";\s*\w", 0),
        # Concatenation used to hide code
        (r"\+\s*CHAR\s*\(", re.IGNORECASE),
        (r"\+\s*NCHAR\s*\(", re.IGNORECASE),
        (r"\+\s*ASCII\s*\(", re.IGNORECASE),
    )
)

OBFUSCATION_TOKENS = ("CHAR(", "NCHAR(", "ASCII(")

_LINE_COMMENT = re.compile(r"--.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Remove comments and collapse whitespace."""
    cleaned = _LINE_COMMENT.sub("", query)
    cleaned = _BLOCK_COMMENT.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


class QueryValidator:
    """Validates untrusted SQL against the read-only policy.

    Holds no state; the keyword and pattern tables are module constants,
    so one instance can be shared across concurrent requests.
    """

    def validate(self, query: object) -> ValidationVerdict:
        """Decide whether ``query`` may run as a single read-only statement.

        Never raises and performs no I/O.

        Args:
            query: Untrusted input, normally a SQL string.

        Returns:
            A ValidationVerdict. The reason for a pattern-scan rejection is
            generic and does not say which rule fired.
        """
        if not isinstance(query, str) or not query:
            return ValidationVerdict.reject("Query must be a non-empty string")

        clean_query = normalize_query(query)
        if not clean_query:
            return ValidationVerdict.reject(
                "Query cannot be empty after removing comments"
            )

        upper_query = clean_query.upper()

        # CTEs are reads too, so WITH is accepted alongside SELECT
        if not upper_query.startswith(("SELECT", "WITH")):
            return ValidationVerdict.reject(
                "Query must start with SELECT (or WITH for CTE queries) "
                "for security reasons"
            )

        for keyword, pattern in _KEYWORD_PATTERNS:
            if pattern.search(upper_query):
                return ValidationVerdict.reject(
                    f"Dangerous keyword '{keyword}' detected in query. "
                    "Only SELECT operations are allowed."
                )

        for pattern in DANGEROUS_PATTERNS:
            if pattern.search(query):
                logger.debug("Query matched dangerous pattern %r", pattern.pattern)
                return ValidationVerdict.reject(
                    "Potentially malicious SQL pattern detected. "
                    "Only simple SELECT queries are allowed."
                )

        # A single trailing semicolon leaves one non-empty fragment
        statements = [s for s in clean_query.split(";") if s.strip()]
        if len(statements) > 1:
            return ValidationVerdict.reject(
                "Multiple SQL statements are not allowed. "
                "Use only a single SELECT statement."
            )

        if any(token in query for token in OBFUSCATION_TOKENS):
            return ValidationVerdict.reject(
                "Character conversion functions are not allowed "
                "as they may be used for obfuscation."
            )

        if len(query) > MAX_QUERY_LENGTH:
            return ValidationVerdict.reject(
                "Query is too long. Maximum allowed length is 10,000 characters."
            )

        return ValidationVerdict.ok()
