"""Integration tests for API authentication.

Validates:
  - /health is public (plain Django view, no DRF).
  - Order endpoints return 401 without a token or with a bad one.
  - A SimpleJWT access token for a user in a role group reaches the API.
"""

import pytest

pytestmark = pytest.mark.integration

ORDERS_URL = "/api/v1/orders/"


class TestPublicEndpoints:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestProtectedEndpoints:
    """Order endpoints require a valid JWT (fail closed)."""

    def test_no_token_returns_401(self, api_client):
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401

    def test_invalid_token_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer invalid.token.here")
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401

    def test_malformed_auth_header_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Token some-token")
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401

    def test_empty_bearer_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer ")
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401

    def test_401_includes_www_authenticate_header(self, api_client):
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401
        assert "Bearer" in response.get("WWW-Authenticate", "")


class TestSimpleJWTLogin:
    def _token_for(self, api_client, username: str) -> str:
        response = api_client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": "testpass123"},
            format="json",
        )
        assert response.status_code == 200
        return response.json()["access"]

    def test_token_for_role_user_reaches_orders(self, api_client, customer_user):
        token = self._token_for(api_client, customer_user.username)

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = api_client.get(ORDERS_URL)

        assert response.status_code == 200

    def test_token_without_role_is_forbidden(self, api_client, django_user_model):
        django_user_model.objects.create_user(username="nobody", password="testpass123")
        token = self._token_for(api_client, "nobody")

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = api_client.get(ORDERS_URL)

        assert response.status_code == 403
