"""Shared fixtures for API integration tests.

Workflow roles come from Django auth groups; the actor id of a Django
user is its primary key.
"""

from __future__ import annotations

import copy

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

User = get_user_model()

ORDER_PAYLOAD = {
    "items": [
        {
            "product_id": "6f1c2f0e-8f52-4d0b-9a53-2d3f4d1c8a10",
            "name": "Linen shirt",
            "quantity": 2,
            "unit_price": "1499.00",
            "size": "M",
            "color": "white",
        }
    ],
    "shipping_address": {
        "full_name": "Asha Rao",
        "phone": "+91 98450 12345",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560001",
    },
}

CUSTOM_ORDER_PAYLOAD = {
    **ORDER_PAYLOAD,
    "items": [
        {
            "design_id": "0b7e9c55-3e0a-4d4e-8d1e-5c6a7b8c9d01",
            "name": "Embroidered kurta",
            "quantity": 1,
            "unit_price": "8500.00",
        }
    ],
}


@pytest.fixture()
def order_payload():
    return copy.deepcopy(ORDER_PAYLOAD)


@pytest.fixture()
def custom_order_payload():
    return copy.deepcopy(CUSTOM_ORDER_PAYLOAD)


@pytest.fixture()
def role_user():
    """Create a Django user belonging to the group named after ``role``."""

    def _make(role: str, username: str | None = None):
        user = User.objects.create_user(
            username=username or f"{role}-user", password="testpass123"
        )
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
        return user

    return _make


@pytest.fixture()
def client_as():
    """APIClient force-authenticated as ``user``."""

    def _client(user) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client


@pytest.fixture()
def customer_user(role_user):
    return role_user("customer")


@pytest.fixture()
def manager_user(role_user):
    return role_user("manager")


@pytest.fixture()
def designer_user(role_user):
    return role_user("designer")


@pytest.fixture()
def delivery_user(role_user):
    return role_user("delivery")


@pytest.fixture()
def customer_client(client_as, customer_user):
    return client_as(customer_user)


@pytest.fixture()
def manager_client(client_as, manager_user):
    return client_as(manager_user)


@pytest.fixture()
def designer_client(client_as, designer_user):
    return client_as(designer_user)


@pytest.fixture()
def delivery_client(client_as, delivery_user):
    return client_as(delivery_user)


@pytest.fixture()
def placed_order(customer_client, order_payload):
    """A ready-made shop order placed through the API."""
    response = customer_client.post("/api/v1/orders/", order_payload, format="json")
    assert response.status_code == 201, response.json()
    return response.json()


@pytest.fixture()
def placed_custom_order(customer_client, custom_order_payload):
    response = customer_client.post(
        "/api/v1/orders/", custom_order_payload, format="json"
    )
    assert response.status_code == 201, response.json()
    return response.json()
