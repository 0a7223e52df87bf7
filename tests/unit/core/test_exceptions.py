"""Unit tests for the standard error body."""

from __future__ import annotations

import pytest
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, ValidationError

from modules.core.exceptions import error_response, standard_exception_handler

pytestmark = pytest.mark.unit


def test_error_response_shape():
    response = error_response("wrong_state", "Order is delivered.", status.HTTP_409_CONFLICT)

    assert response.status_code == 409
    assert response.data == {
        "type": "wrong_state",
        "errors": [{"code": "wrong_state", "detail": "Order is delivered."}],
    }


def test_validation_errors_are_flattened_with_fields():
    exc = ValidationError({"items": ["This list may not be empty."], "non_field_errors": ["Bad."]})

    response = standard_exception_handler(exc, {})

    assert response.status_code == 400
    assert response.data["type"] == "invalid"
    fields = [error.get("field") for error in response.data["errors"]]
    assert fields == ["items", None]


def test_detail_key_has_no_field():
    response = standard_exception_handler(NotAuthenticated(), {})

    assert response.data["type"] == "not_authenticated"
    assert response.data["errors"][0]["code"] == "not_authenticated"
    assert "field" not in response.data["errors"][0]


def test_unhandled_exceptions_pass_through():
    assert standard_exception_handler(RuntimeError("boom"), {}) is None


def test_nested_non_field_errors_keep_parent_field():
    exc = ValidationError({"items": {"non_field_errors": ["This list may not be empty."]}})

    response = standard_exception_handler(exc, {})

    assert response.data["errors"][0]["field"] == "items"
