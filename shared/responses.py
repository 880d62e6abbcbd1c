"""
Standard HTTP response helpers for consistent API responses.

Success bodies are keyed by entity (``{"client": {...}}``), failures use the
``{"error": str, "details"?: any, "code"?: str}`` envelope.
"""

import json
from typing import Any, Optional, Dict, List, Union
import azure.functions as func
from .validation import ValidationError


def json_serialize(obj: Any) -> str:
    """
    Serialize object to JSON, handling datetime and UUID types.
    """
    import datetime
    import uuid

    def default_serializer(o):
        if isinstance(o, (datetime.datetime, datetime.date)):
            return o.isoformat()
        if isinstance(o, uuid.UUID):
            return str(o)
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(obj, default=default_serializer)


def success_response(
    data: Union[Dict, List, Any],
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    """
    Create a successful JSON response.

    Args:
        data: Response data to serialize
        status_code: HTTP status code (default: 200)
        headers: Optional additional headers

    Returns:
        Azure Functions HttpResponse
    """
    response_headers = {
        "Content-Type": "application/json",
        **(headers or {})
    }

    return func.HttpResponse(
        json_serialize(data),
        status_code=status_code,
        mimetype="application/json",
        headers=response_headers
    )


def created_response(
    data: Union[Dict, List, Any],
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    """Create a 201 Created response."""
    return success_response(data, status_code=201, headers=headers)


def error_response(
    message: str,
    status_code: int = 400,
    details: Optional[Any] = None,
    code: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    """
    Create an error JSON response.

    Args:
        message: Human-readable error message
        status_code: HTTP status code (default: 400)
        details: Optional extra information (e.g. per-item validation messages)
        code: Optional machine-readable error code
        headers: Optional additional headers

    Returns:
        Azure Functions HttpResponse with error details
    """
    error_body: Dict[str, Any] = {
        "error": message,
    }

    if details is not None:
        error_body["details"] = details
    if code:
        error_body["code"] = code

    response_headers = {
        "Content-Type": "application/json",
        **(headers or {})
    }

    return func.HttpResponse(
        json_serialize(error_body),
        status_code=status_code,
        mimetype="application/json",
        headers=response_headers
    )


def not_found_response(
    resource: str = "Resource",
    message: Optional[str] = None
) -> func.HttpResponse:
    """Create a 404 Not Found response."""
    return error_response(
        message or f"{resource} not found",
        status_code=404
    )


def forbidden_response(message: str = "Forbidden") -> func.HttpResponse:
    """Create a 403 Forbidden response."""
    return error_response(message, status_code=403)


def unauthorized_response(message: str = "Unauthorized") -> func.HttpResponse:
    """Create a 401 Unauthorized response."""
    return error_response(message, status_code=401)


def conflict_response(message: str) -> func.HttpResponse:
    """Create a 409 Conflict response."""
    return error_response(message, status_code=409)


def validation_error_response(
    errors: List[Any],
    message: str = "Validation failed"
) -> func.HttpResponse:
    """
    Create a 400 response carrying a list of validation messages.

    Args:
        errors: Per-field or per-item validation messages
        message: Overall error message
    """
    return error_response(message, status_code=400, details=errors)


def parse_json_body(req: func.HttpRequest) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Raises:
        ValidationError: If the body is not valid JSON or not an object
    """
    try:
        body = req.get_json()
    except ValueError:
        raise ValidationError("Invalid JSON body")

    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON body")

    return body
