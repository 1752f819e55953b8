"""Conversion of execution failures into ErrorDiagnostic trees.

Two kinds of failure are recognised. A ``QueryExecutionError`` comes from a
database driver and carries structured fields. Anything else is a generic
failure: it contributes its type name and message, plus whichever
structured fields it happens to expose as attributes.

The resulting tree has bounded depth: the root, at most one original error,
and a flat list of preceding errors. Neither of the nested levels is
expanded further.
"""

from typing import Any

from database.errors import QueryExecutionError
from gate.models import ErrorDiagnostic

# Attribute names read off generic exceptions, in lookup order.
_GENERIC_ATTRIBUTES = {
    "code": ("code",),
    "number": ("number",),
    "state": ("state",),
    "severity": ("class", "severity"),
    "server_name": ("serverName", "server_name"),
    "proc_name": ("procName", "proc_name"),
    "line_number": ("lineNumber", "line_number"),
}


def _attribute(error: BaseException, names: tuple[str, ...]) -> Any:
    for name in names:
        try:
            value = getattr(error, name, None)
        except Exception:
            # A property on a foreign exception type may itself fail
            continue
        if value is not None and not callable(value):
            return value
    return None


def _shallow(error: BaseException) -> ErrorDiagnostic:
    if isinstance(error, QueryExecutionError):
        return ErrorDiagnostic(
            name=error.name,
            message=error.message,
            code=error.code,
            number=error.number,
            state=error.state,
            severity=error.severity,
            server_name=error.server_name,
            proc_name=error.proc_name,
            line_number=error.line_number,
        )
    fields = {key: _attribute(error, names) for key, names in _GENERIC_ATTRIBUTES.items()}
    return ErrorDiagnostic(
        name=type(error).__name__, message=str(error) or None, **fields
    )


def _nested(error: BaseException) -> tuple[Any, Any]:
    if isinstance(error, QueryExecutionError):
        return error.original_error, error.preceding_errors
    return (
        _attribute(error, ("originalError", "original_error")),
        _attribute(error, ("precedingErrors", "preceding_errors")),
    )


def extract_diagnostic(error: BaseException) -> ErrorDiagnostic:
    """Build the diagnostic tree for ``error``.

    Never raises; missing fields are left unset.
    """
    diagnostic = _shallow(error)
    original, preceding = _nested(error)

    if isinstance(original, BaseException):
        diagnostic.original_error = _shallow(original)
    if isinstance(preceding, (list, tuple)):
        diagnostic.preceding_errors = [
            _shallow(item) for item in preceding if isinstance(item, BaseException)
        ]
    return diagnostic
