import pytest

from conftest import DriverError
from database.errors import QueryExecutionError
from gate.diagnostics import extract_diagnostic
from gate.models import (
    ErrorDiagnostic,
    ToolErrorCode,
    ToolResponse,
    ValidationVerdict,
)


def test_verdict_reason_is_present_only_when_invalid():
    assert ValidationVerdict.ok().reason is None
    assert ValidationVerdict.reject("nope").reason == "nope"

    with pytest.raises(ValueError):
        ValidationVerdict(valid=True, reason="unexpected")
    with pytest.raises(ValueError):
        ValidationVerdict(valid=False)


def test_diagnostic_to_dict_uses_wire_names_and_omits_unset_fields():
    diagnostic = ErrorDiagnostic(
        name="RequestError",
        message="Timeout: Request failed to complete in 15000ms",
        code="ETIMEOUT",
        severity=11,
        proc_name="report_proc",
        line_number=4,
    )

    assert diagnostic.to_dict() == {
        "name": "RequestError",
        "message": "Timeout: Request failed to complete in 15000ms",
        "code": "ETIMEOUT",
        "class": 11,
        "procName": "report_proc",
        "lineNumber": 4,
    }


def test_extract_diagnostic_expands_only_one_level():
    innermost = QueryExecutionError("socket closed", name="ConnectionError")
    original = QueryExecutionError(
        "Connection lost", name="DriverError", original_error=innermost
    )
    root = QueryExecutionError("Request failed", code="ESOCKET", original_error=original)

    diagnostic = extract_diagnostic(root)

    assert diagnostic.name == "QueryExecutionError"
    assert diagnostic.code == "ESOCKET"
    assert diagnostic.original_error.name == "DriverError"
    assert diagnostic.original_error.original_error is None


def test_extract_diagnostic_of_generic_exception():
    diagnostic = extract_diagnostic(KeyError("column"))

    assert diagnostic.name == "KeyError"
    assert diagnostic.message == "'column'"
    assert diagnostic.original_error is None
    assert diagnostic.preceding_errors is None


def test_extract_diagnostic_keeps_empty_preceding_list():
    diagnostic = extract_diagnostic(QueryExecutionError("boom", preceding_errors=[]))

    assert diagnostic.to_dict()["precedingErrors"] == []


def test_tool_response_to_dict_success_shape():
    response = ToolResponse(
        success=True,
        message="Query executed successfully. Retrieved 1 record(s)",
        data=[{"x": 1}],
        record_count=1,
        total_records=1,
        execution_time="3ms",
    )

    assert response.to_dict() == {
        "success": True,
        "message": "Query executed successfully. Retrieved 1 record(s)",
        "data": [{"x": 1}],
        "recordCount": 1,
        "totalRecords": 1,
        "executionTime": "3ms",
    }


def test_tool_response_to_dict_failure_shape():
    response = ToolResponse(
        success=False,
        message="Failed to execute query: boom",
        error=ToolErrorCode.QUERY_EXECUTION_FAILED,
        details=ErrorDiagnostic(name="RuntimeError", message="boom"),
        execution_time="0ms",
    )

    assert response.to_dict() == {
        "success": False,
        "message": "Failed to execute query: boom",
        "error": "QUERY_EXECUTION_FAILED",
        "details": {"name": "RuntimeError", "message": "boom"},
        "executionTime": "0ms",
    }


def test_extract_diagnostic_reads_attributes_of_generic_exception():
    error = DriverError(
        "Invalid object name 'x'.",
        number=208,
        lineNumber=1,
        original_error=DriverError("login timeout", state="HYT00"),
        preceding_errors=[DriverError("Statement could not be prepared.", number=8180)],
        **{"class": 16},
    )

    assert extract_diagnostic(error).to_dict() == {
        "name": "DriverError",
        "message": "Invalid object name 'x'.",
        "number": 208,
        "class": 16,
        "lineNumber": 1,
        "originalError": {
            "name": "DriverError",
            "message": "login timeout",
            "state": "HYT00",
        },
        "precedingErrors": [
            {
                "name": "DriverError",
                "message": "Statement could not be prepared.",
                "number": 8180,
            }
        ],
    }
