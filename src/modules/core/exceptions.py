"""Standard API error body.

Every error response has the shape::

    {"type": "<kind>", "errors": [{"code": "<code>", "detail": "<message>"}]}

``standard_exception_handler`` is installed as DRF's
``EXCEPTION_HANDLER``; views use ``error_response`` for the domain
errors they translate themselves.
"""

from __future__ import annotations

from typing import Any, List

from rest_framework.response import Response
from rest_framework.views import exception_handler


def error_body(kind: str, errors: List[dict]) -> dict:
    return {"type": kind, "errors": errors}


def error_response(kind: str, detail: str, status: int, code: str | None = None) -> Response:
    return Response(
        error_body(kind, [{"code": code or kind, "detail": detail}]),
        status=status,
    )


def _flatten(detail: Any, field: str | None = None) -> List[dict]:
    if isinstance(detail, dict):
        errors: List[dict] = []
        for key, value in detail.items():
            nested = field if key in ("non_field_errors", "detail") else key
            errors.extend(_flatten(value, nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for value in detail:
            errors.extend(_flatten(value, field))
        return errors
    entry = {"code": getattr(detail, "code", "error"), "detail": str(detail)}
    if field:
        entry["field"] = field
    return [entry]


def standard_exception_handler(exc: Exception, context: dict) -> Response | None:
    response = exception_handler(exc, context)
    if response is None:
        return None
    kind = getattr(exc, "default_code", "error")
    response.data = error_body(kind, _flatten(response.data))
    return response
